"""Magic link redemption.

Every outcome is a redirect: to the payment page with a session cookie on
success, or to the unauthorized page with a reason code otherwise.
"""

import logging
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, Request
from fastapi.responses import RedirectResponse
from sqlalchemy.orm import Session

from waterbill.api.deps import get_app_settings, get_db
from waterbill.config import Settings
from waterbill.services.errors import TokenError
from waterbill.services.magic_link_service import MagicLinkService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])


def _origin(request: Request, settings: Settings) -> str:
    return settings.origin or str(request.base_url).rstrip("/")


def _unauthorized(origin: str, reason: str) -> RedirectResponse:
    return RedirectResponse(
        f"{origin}/unauthorized?{urlencode({'reason': reason})}", status_code=302
    )


@router.get("/magic")
def redeem_magic_link(
    request: Request,
    token: str | None = None,
    db: Session = Depends(get_db),  # noqa: B008
    settings: Settings = Depends(get_app_settings),  # noqa: B008
) -> RedirectResponse:
    origin = _origin(request, settings)
    if not token:
        return _unauthorized(origin, "missing_token")

    try:
        redemption = MagicLinkService(db, settings).redeem(token)
    except TokenError as e:
        logger.info("Magic link rejected: %s", e.reason.value)
        return _unauthorized(origin, e.reason.value)
    except Exception:
        logger.exception("Magic link redemption failed")
        return _unauthorized(origin, "server_error")

    target = f"{origin}/pelunasan"
    if redemption.bill_id is not None:
        target = f"{target}?{urlencode({'tagihanId': redemption.bill_id})}"
    response = RedirectResponse(target, status_code=302)
    response.set_cookie(
        settings.session_cookie_name,
        redemption.session_token,
        max_age=settings.session_ttl_days * 24 * 3600,
        httponly=True,
        samesite="lax",
        secure=settings.session_cookie_secure,
        path="/",
    )
    return response


__all__ = ["router"]
