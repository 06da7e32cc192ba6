"""
Bearer-token authentication against Supabase auth.

The token's user id is resolved to a ``Profile`` row; that profile is the
"viewer" every service receives.
"""

import logging
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from launchpad.database import crud
from launchpad.database.database import db_session
from launchpad.database.models import Profile
from launchpad.exceptions import AuthenticationError
from launchpad.storage.supabase import get_supabase

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


def authenticate_token(token: str) -> Optional[str]:
    """User id for a Supabase access token, or None if it is not valid."""
    try:
        response = get_supabase().auth.get_user(token)
    except Exception as exc:
        logger.warning("Token verification failed: %s", exc)
        return None
    user = getattr(response, "user", None)
    return user.id if user else None


def resolve_viewer(db: Session, token: Optional[str]) -> Profile:
    if not token:
        raise AuthenticationError()
    user_id = authenticate_token(token)
    if not user_id:
        logger.warning("Unauthorized access attempt with an invalid token")
        raise AuthenticationError("Invalid or expired session. Please sign in again.")
    profile = crud.get_profile(db, user_id)
    if profile is None:
        raise AuthenticationError("Profile not found. Please complete signup.")
    return profile


def get_current_viewer(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Profile:
    with db_session() as db:
        return resolve_viewer(db, credentials.credentials if credentials else None)
