"""Versioned billing settings and the immutable snapshot used for pricing."""

import logging
from dataclasses import dataclass

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from waterbill.models.billing_setting import BillingSetting
from waterbill.services.audit_service import AuditService
from waterbill.services.errors import SettingMissingError, ValidationError

logger = logging.getLogger(__name__)

PRICING_FIELDS = (
    "unit_rate",
    "base_fee",
    "admin_fee",
    "due_day",
    "late_fee_tier1",
    "late_fee_tier2",
)
CONTACT_FIELDS = ("company_name", "phone", "email", "address")


@dataclass(frozen=True)
class TariffSnapshot:
    """Billing settings frozen at one version.

    Passed into finalization so replays and tests price bills
    deterministically instead of reading live settings.
    """

    version: int
    unit_rate: int
    base_fee: int
    admin_fee: int
    due_day: int
    late_fee_tier1: int
    late_fee_tier2: int
    company_name: str | None = None
    phone: str | None = None
    email: str | None = None
    address: str | None = None

    @classmethod
    def from_setting(cls, setting: BillingSetting) -> "TariffSnapshot":
        return cls(
            version=setting.version,
            unit_rate=setting.unit_rate,
            base_fee=setting.base_fee,
            admin_fee=setting.admin_fee,
            due_day=setting.due_day,
            late_fee_tier1=setting.late_fee_tier1,
            late_fee_tier2=setting.late_fee_tier2,
            company_name=setting.company_name,
            phone=setting.phone,
            email=setting.email,
            address=setting.address,
        )


class BillingSettingService:
    """Reads and publishes versions of the billing configuration."""

    def __init__(self, db_session: Session):
        """Initialize with database session."""
        self.db = db_session

    def current(self) -> BillingSetting | None:
        """Latest published version, or None if nothing was published yet."""
        return self.db.execute(
            select(BillingSetting).order_by(BillingSetting.version.desc()).limit(1)
        ).scalar_one_or_none()

    def snapshot(self) -> TariffSnapshot:
        """Freeze the latest version.

        Raises:
            SettingMissingError: No setting has been published
        """
        setting = self.current()
        if setting is None:
            raise SettingMissingError()
        return TariffSnapshot.from_setting(setting)

    def publish(self, actor_id: int | None = None, **values) -> BillingSetting:
        """Publish a new version, carrying over fields not supplied.

        Raises:
            ValidationError: Unknown field, negative amount, or a first
                version missing a pricing field
        """
        unknown = set(values) - set(PRICING_FIELDS) - set(CONTACT_FIELDS)
        if unknown:
            raise ValidationError(f"Unknown setting fields: {', '.join(sorted(unknown))}")
        for name in PRICING_FIELDS:
            value = values.get(name)
            if value is not None and value < 0:
                raise ValidationError(f"{name} must not be negative")
        due_day = values.get("due_day")
        if due_day is not None and not 1 <= due_day <= 31:
            raise ValidationError("due_day must be between 1 and 31")

        previous = self.current()
        merged = {}
        for name in PRICING_FIELDS + CONTACT_FIELDS:
            if values.get(name) is not None:
                merged[name] = values[name]
            elif previous is not None:
                merged[name] = getattr(previous, name)

        if previous is None and "unit_rate" not in merged:
            raise ValidationError("unit_rate is required for the first setting")

        next_version = (
            self.db.execute(select(func.max(BillingSetting.version))).scalar() or 0
        ) + 1

        try:
            setting = BillingSetting(version=next_version, **merged)
            self.db.add(setting)
            self.db.flush()
            AuditService.log(
                self.db,
                "setting",
                setting.id,
                "publish",
                actor_id,
                {name: merged.get(name) for name in PRICING_FIELDS},
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info("Published billing setting version %d", next_version)
        return setting


__all__ = ["BillingSettingService", "TariffSnapshot"]
