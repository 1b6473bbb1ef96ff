"""SQLAlchemy base model with common fields and model exports."""

from datetime import datetime, timezone

from sqlalchemy import DateTime
from sqlalchemy.orm import Mapped, declarative_base, mapped_column

# Base class for all models
Base = declarative_base()


class BaseModel:
    """Base model with common timestamp fields."""

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )


# Import models to register them with Base (after Base is defined)
# This must be after Base declaration to avoid circular imports
from waterbill.models.access_token import AccessToken, AuthSession, TokenPurpose, TokenState  # noqa: E402
from waterbill.models.audit_log import AuditLog  # noqa: E402
from waterbill.models.bill import Bill, PaymentStatus, VerificationStatus  # noqa: E402
from waterbill.models.billing_period import BillingPeriod, PeriodStatus  # noqa: E402
from waterbill.models.billing_setting import BillingSetting  # noqa: E402
from waterbill.models.customer import Customer  # noqa: E402
from waterbill.models.meter_reading import MeterReading, ReadingStatus  # noqa: E402
from waterbill.models.notification_log import (  # noqa: E402
    NotificationKind,
    NotificationLog,
    NotificationStatus,
)
from waterbill.models.outbox import OutboxIntent, OutboxKind, OutboxStatus  # noqa: E402
from waterbill.models.payment import Payment, PaymentMethod  # noqa: E402
from waterbill.models.user import User, UserRole  # noqa: E402

__all__ = [
    "Base",
    "BaseModel",
    "AccessToken",
    "AuthSession",
    "TokenPurpose",
    "TokenState",
    "AuditLog",
    "Bill",
    "PaymentStatus",
    "VerificationStatus",
    "BillingPeriod",
    "PeriodStatus",
    "BillingSetting",
    "Customer",
    "MeterReading",
    "ReadingStatus",
    "NotificationKind",
    "NotificationLog",
    "NotificationStatus",
    "OutboxIntent",
    "OutboxKind",
    "OutboxStatus",
    "Payment",
    "PaymentMethod",
    "User",
    "UserRole",
]
