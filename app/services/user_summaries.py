"""
Read-model helpers: attach display summaries of users to responses.
The services only ever deal in user ids; this is where ids become
names and photos.
"""
from typing import Dict, Iterable, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.models.profile import Profile
from app.schemas.base import UserSummary


def load_summaries(db: Session, user_ids: Iterable[str]) -> Dict[str, UserSummary]:
    ids = {str(u) for u in user_ids if u}
    if not ids:
        return {}

    rows = db.execute(select(Profile).where(Profile.user_id.in_(ids))).scalars().all()
    return {p.user_id: UserSummary.model_validate(p) for p in rows}


def summary_for(summaries: Dict[str, UserSummary], user_id: str) -> Optional[UserSummary]:
    # unknown profiles still render with their id
    return summaries.get(user_id) or UserSummary(user_id=user_id)
