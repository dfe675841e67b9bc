from typing import Any, Dict, Optional, Tuple

from loguru import logger
from sqlalchemy.orm import Session

from app.core.clock import Clock, get_clock
from app.core.db import store_errors
from app.core.errors import InvalidInput, NotFound
from app.models.profile import Profile
from app.modules.connections.store import ConnectionStore

UPDATABLE_FIELDS = ("name", "age", "bio", "city", "photo_url")


# ---------- USER DIRECTORY ----------

def get_profile(db: Session, user_id: str) -> Profile:
    with store_errors(db, "get_profile"):
        profile = db.get(Profile, user_id)
    if not profile:
        raise NotFound("User not found")
    return profile


def update_profile(
    db: Session,
    user_id: str,
    changes: Dict[str, Any],
    clock: Optional[Clock] = None,
) -> Profile:
    """
    Upsert the caller's profile. Identity lives elsewhere, so the first
    update is what creates the directory entry; it must carry a name.
    """
    clock = clock or get_clock()

    unknown = set(changes) - set(UPDATABLE_FIELDS)
    if unknown:
        raise InvalidInput(f"Cannot update fields: {', '.join(sorted(unknown))}")

    with store_errors(db, "update_profile"):
        profile = db.get(Profile, user_id)
        created = profile is None
        if created:
            if not changes.get("name"):
                raise InvalidInput("name is required to create a profile")
            profile = Profile(user_id=user_id)

        for key, value in changes.items():
            setattr(profile, key, value)
        profile.last_active = clock.now()

        db.add(profile)
        db.commit()
        db.refresh(profile)

    logger.info(f"Profile {'created' if created else 'updated'} | user={user_id} fields={sorted(changes)}")
    return profile


def get_user(db: Session, user_id: str, viewer_id: str) -> Tuple[Profile, Optional[str]]:
    """Someone else's profile, plus the status of any connection with the viewer."""
    profile = get_profile(db, user_id)

    status = None
    if user_id != viewer_id:
        with store_errors(db, "get_user"):
            conn = ConnectionStore(db).find_by_pair(viewer_id, user_id)
        status = conn.status if conn else None
    return profile, status
