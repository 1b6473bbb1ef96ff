"""Billing period ORM model (one calendar month of meter readings)."""

from datetime import datetime
from enum import Enum

from sqlalchemy import DateTime, Integer, String
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from waterbill.models import Base, BaseModel


class PeriodStatus(str, Enum):
    """Lifecycle of a billing period."""

    DRAFT = "draft"
    """Rows may be added, edited and finalized"""

    FINAL = "final"
    """Period locked, no further row mutation"""


class BillingPeriod(Base, BaseModel):
    """Model representing a monthly billing period keyed by ``YYYY-MM``.

    Holds the tariff snapshot taken when the period was started and the
    aggregate progress counts (kept equal to the live row statuses).
    """

    __tablename__ = "billing_periods"

    period_key: Mapped[str] = mapped_column(
        String(7),
        nullable=False,
        unique=True,
        index=True,
        comment="Period identifier, YYYY-MM",
    )
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    month: Mapped[int] = mapped_column(Integer, nullable=False)

    unit_rate: Mapped[int] = mapped_column(
        Integer, nullable=False, comment="Price per cubic meter snapshotted at period start"
    )
    base_fee: Mapped[int] = mapped_column(
        Integer, nullable=False, comment="Subscription fee snapshotted at period start"
    )

    status: Mapped[PeriodStatus] = mapped_column(
        SQLEnum(PeriodStatus),
        nullable=False,
        default=PeriodStatus.DRAFT,
        comment="DRAFT while readings are captured, FINAL once locked",
    )

    total_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    completed_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    pending_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    started_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    finalized_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    finalized_by: Mapped[str | None] = mapped_column(String(255), nullable=True)

    readings: Mapped[list["MeterReading"]] = relationship(  # noqa: F821
        "MeterReading",
        back_populates="period",
    )

    @property
    def is_locked(self) -> bool:
        return self.status == PeriodStatus.FINAL

    def __repr__(self) -> str:
        return (
            f"<BillingPeriod(id={self.id}, period_key={self.period_key}, status={self.status}, "
            f"total={self.total_count}, completed={self.completed_count}, "
            f"pending={self.pending_count})>"
        )


__all__ = ["BillingPeriod", "PeriodStatus"]
