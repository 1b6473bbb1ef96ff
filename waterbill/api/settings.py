"""Billing settings endpoints."""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from waterbill.api.deps import get_db, get_staff_user
from waterbill.api.schemas import SettingResponse, SettingUpdateRequest
from waterbill.models.user import User
from waterbill.services.errors import SettingMissingError
from waterbill.services.settings_service import BillingSettingService

router = APIRouter(prefix="/api/settings", tags=["settings"])


@router.get("", response_model=SettingResponse)
def get_current_setting(db: Session = Depends(get_db)) -> SettingResponse:  # noqa: B008
    setting = BillingSettingService(db).current()
    if setting is None:
        raise SettingMissingError()
    return SettingResponse.model_validate(setting)


@router.put("", response_model=SettingResponse)
def publish_setting(
    request: SettingUpdateRequest,
    db: Session = Depends(get_db),  # noqa: B008
    user: User | None = Depends(get_staff_user),  # noqa: B008
) -> SettingResponse:
    """Publish a new setting version; earlier bills keep their snapshot."""
    setting = BillingSettingService(db).publish(
        actor_id=user.id if user else None,
        **request.model_dump(exclude_none=True),
    )
    return SettingResponse.model_validate(setting)


__all__ = ["router"]
