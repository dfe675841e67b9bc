import os
from dataclasses import dataclass
from typing import Any, Dict, Optional

from fastapi import Depends, Header, HTTPException
from jose import jwt, JWTError
from loguru import logger

from app.core.config import JWT_ALGORITHM, JWT_SECRET


AUTH_DEBUG = os.getenv("AUTH_DEBUG", "false").lower() in ("1", "true", "yes")


@dataclass(frozen=True)
class AuthUser:
    user_id: str
    is_premium: bool = False


# ------------------------------------------------------------
# Helpers
# ------------------------------------------------------------
def _get_bearer_token(authorization: Optional[str]) -> str:
    if not authorization:
        raise HTTPException(status_code=401, detail="Missing Authorization header")

    parts = authorization.split(" ", 1)
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise HTTPException(status_code=401, detail="Invalid Authorization header format")

    token = parts[1].strip()
    if not token:
        raise HTTPException(status_code=401, detail="Missing bearer token")

    return token


def _premium_claim(payload: Dict[str, Any]) -> bool:
    if "is_premium" in payload:
        return bool(payload["is_premium"])
    app_metadata = payload.get("app_metadata") or {}
    return bool(app_metadata.get("is_premium", False))


# ------------------------------------------------------------
# Verification
# ------------------------------------------------------------
def decode_token(token: str) -> AuthUser:
    """
    Verify an issued access token and return the identity it carries.
    Issuance lives with the identity service; we only read `sub` and the
    premium flag.
    """
    try:
        payload = jwt.decode(
            token,
            JWT_SECRET,
            algorithms=[JWT_ALGORITHM],
            options={"verify_aud": False},
        )
    except JWTError:
        raise HTTPException(status_code=401, detail="Invalid or expired token")

    sub = payload.get("sub")
    if not sub:
        raise HTTPException(status_code=401, detail="Token missing sub claim")

    user = AuthUser(user_id=str(sub), is_premium=_premium_claim(payload))

    if AUTH_DEBUG:
        logger.debug(f"[auth] user_id={user.user_id} premium={user.is_premium}")

    return user


# ------------------------------------------------------------
# Dependencies
# ------------------------------------------------------------
def get_current_user(
    authorization: Optional[str] = Header(default=None),
) -> AuthUser:
    token = _get_bearer_token(authorization)
    return decode_token(token)


def get_current_user_id(user: AuthUser = Depends(get_current_user)) -> str:
    return user.user_id


def require_premium(user: AuthUser = Depends(get_current_user)) -> AuthUser:
    if not user.is_premium:
        raise HTTPException(status_code=403, detail="Premium subscription required")
    return user
