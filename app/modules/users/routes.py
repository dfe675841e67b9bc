from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.auth import get_current_user_id
from app.core.clock import Clock, get_clock
from app.core.db import get_db
from app.schemas.base import UserSummary
from app.schemas.users import ProfileOut, UpdateProfileIn, UserDetailOut
from .service import get_profile, get_user, update_profile

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/me", response_model=ProfileOut)
def my_profile(
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    return get_profile(db, user_id)


@router.put("/me", response_model=ProfileOut)
def my_profile_update(
    payload: UpdateProfileIn,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    changes = payload.model_dump(exclude_unset=True, exclude_none=True)
    return update_profile(db, user_id, changes, clock=clock)


@router.get("/{user_id}", response_model=UserDetailOut)
def user_detail(
    user_id: str,
    viewer_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    profile, status = get_user(db, user_id, viewer_id)
    return UserDetailOut(user=UserSummary.model_validate(profile), connection_status=status)
