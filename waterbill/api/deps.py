"""Shared FastAPI dependencies."""

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from waterbill.config import Settings, get_settings
from waterbill.models.user import User
from waterbill.services import get_db, get_session_factory
from waterbill.services.magic_link_service import MagicLinkService


def get_app_settings() -> Settings:
    return get_settings()


def get_staff_user(
    request: Request,
    db: Session = Depends(get_db),  # noqa: B008
    settings: Settings = Depends(get_app_settings),  # noqa: B008
) -> User | None:
    """Back-office user behind the session cookie, if any.

    Customer sessions never count as back-office actors.
    """
    token = request.cookies.get(settings.session_cookie_name)
    user = MagicLinkService(db, settings).get_session_user(token)
    if user is None or user.is_customer:
        return None
    return user


__all__ = ["get_app_settings", "get_db", "get_session_factory", "get_staff_user"]
