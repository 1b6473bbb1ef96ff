"""Meter reading ORM model (one customer's row within a billing period)."""

from datetime import datetime
from enum import Enum

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, String
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from waterbill.models import Base, BaseModel


class ReadingStatus(str, Enum):
    """Status of a reading row."""

    PENDING = "pending"
    DONE = "done"
    """Finalized: a bill exists for this customer and period"""


class MeterReading(Base, BaseModel):
    """
    A customer's meter reading for one billing period.

    ``unit_rate`` and ``base_fee`` are optional per-row overrides until the
    row is finalized; finalization snapshots the effective values onto the
    row. Rows are never hard-deleted, only excluded via ``deleted_at``.
    """

    __tablename__ = "meter_readings"

    period_id: Mapped[int] = mapped_column(
        ForeignKey("billing_periods.id"), nullable=False, index=True
    )
    customer_id: Mapped[int] = mapped_column(
        ForeignKey("customers.id"), nullable=False, index=True
    )

    start_reading: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    end_reading: Mapped[int | None] = mapped_column(
        Integer, nullable=True, comment="Null until the meter has been read"
    )
    usage: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, comment="max(0, end - start) in cubic meters"
    )
    unit_rate: Mapped[int | None] = mapped_column(
        Integer, nullable=True, comment="Row-level rate override, snapshotted at finalize"
    )
    base_fee: Mapped[int | None] = mapped_column(
        Integer, nullable=True, comment="Row-level fee override, snapshotted at finalize"
    )
    total: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    note: Mapped[str | None] = mapped_column(
        String(500), nullable=True, comment="Field issue noted by the meter reader"
    )

    status: Mapped[ReadingStatus] = mapped_column(
        SQLEnum(ReadingStatus),
        nullable=False,
        default=ReadingStatus.PENDING,
    )
    is_locked: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, comment="Row lock bit, set with DONE"
    )
    deleted_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True, comment="Soft-delete marker"
    )

    period: Mapped["BillingPeriod"] = relationship(  # noqa: F821
        "BillingPeriod", back_populates="readings"
    )
    customer: Mapped["Customer"] = relationship("Customer")  # noqa: F821

    __table_args__ = (
        Index("idx_reading_period_customer", "period_id", "customer_id"),
        Index("idx_reading_period_status", "period_id", "status"),
    )

    def __repr__(self) -> str:
        return (
            f"<MeterReading(id={self.id}, period_id={self.period_id}, "
            f"customer_id={self.customer_id}, start={self.start_reading}, "
            f"end={self.end_reading}, status={self.status}, locked={self.is_locked})>"
        )


__all__ = ["MeterReading", "ReadingStatus"]
