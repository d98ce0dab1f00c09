from typing import Optional
from fastapi import Depends, Header

from showsphere.core.config import Settings, get_settings
from showsphere.core.exceptions import ForbiddenError, UnauthenticatedError


def get_current_user_id(x_user_id: Optional[str] = Header(default=None, alias="X-User-Id")) -> str:
    """The identity provider in front of the API forwards the authenticated user id in X-User-Id."""
    if not x_user_id or not x_user_id.strip():
        raise UnauthenticatedError()
    return x_user_id.strip()


def require_admin(
        user_id: str = Depends(get_current_user_id),
        settings: Settings = Depends(get_settings)) -> str:
    if user_id not in settings.ADMIN_USER_IDS:
        raise ForbiddenError()
    return user_id
