from datetime import datetime
from pydantic import BaseModel

class BaseSchema(BaseModel):
    class Config:
        from_attributes = True

class Pagination(BaseModel):
    current_page: int
    total_pages: int
    total: int
    has_next_page: bool
    has_prev_page: bool

    @classmethod
    def build(cls, page: int, limit: int, total: int) -> "Pagination":
        total_pages = (total + limit - 1) // limit if limit else 0
        return cls(
            current_page=page,
            total_pages=total_pages,
            total=total,
            has_next_page=page < total_pages,
            has_prev_page=page > 1,
        )

class UserSummary(BaseSchema):
    user_id: str
    name: str | None = None
    age: int | None = None
    city: str | None = None
    bio: str | None = None
    photo_url: str | None = None
    last_active: datetime | None = None
