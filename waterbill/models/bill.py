"""Bill ORM model: the invoice for one customer in one period."""

from datetime import date
from enum import Enum

from sqlalchemy import Date, ForeignKey, Integer, UniqueConstraint
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from waterbill.models import Base, BaseModel


class PaymentStatus(str, Enum):
    """Settlement status of a bill."""

    UNPAID = "unpaid"
    PAID = "paid"


class VerificationStatus(str, Enum):
    """Back-office verification of submitted payment proof."""

    UNVERIFIED = "unverified"
    VERIFIED = "verified"


class Bill(Base, BaseModel):
    """
    Invoice for a (customer, period) pair, created or refreshed by finalization.

    ``total`` excludes the late fee; the late fee is recomputed when a
    payment is applied. Rates are snapshots, never looked up again.
    """

    __tablename__ = "bills"

    customer_id: Mapped[int] = mapped_column(
        ForeignKey("customers.id"), nullable=False, index=True
    )
    period_id: Mapped[int] = mapped_column(
        ForeignKey("billing_periods.id"), nullable=False, index=True
    )

    usage: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    unit_rate: Mapped[int] = mapped_column(Integer, nullable=False)
    base_fee: Mapped[int] = mapped_column(Integer, nullable=False)
    admin_fee: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        comment="unit_rate * usage + base_fee + admin_fee (late fee excluded)",
    )
    late_fee: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, comment="Denda, recomputed on payment"
    )
    due_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    setting_version: Mapped[int | None] = mapped_column(
        Integer, nullable=True, comment="Billing setting version that priced this bill"
    )

    payment_status: Mapped[PaymentStatus] = mapped_column(
        SQLEnum(PaymentStatus), nullable=False, default=PaymentStatus.UNPAID
    )
    verification_status: Mapped[VerificationStatus] = mapped_column(
        SQLEnum(VerificationStatus), nullable=False, default=VerificationStatus.UNVERIFIED
    )

    customer: Mapped["Customer"] = relationship("Customer")  # noqa: F821
    period: Mapped["BillingPeriod"] = relationship("BillingPeriod")  # noqa: F821
    payments: Mapped[list["Payment"]] = relationship(  # noqa: F821
        "Payment",
        back_populates="bill",
        order_by="Payment.id",
    )

    __table_args__ = (
        UniqueConstraint("customer_id", "period_id", name="uq_bill_customer_period"),
    )

    @property
    def amount_due(self) -> int:
        return self.total + self.late_fee

    def __repr__(self) -> str:
        return (
            f"<Bill(id={self.id}, customer_id={self.customer_id}, period_id={self.period_id}, "
            f"total={self.total}, late_fee={self.late_fee}, status={self.payment_status})>"
        )


__all__ = ["Bill", "PaymentStatus", "VerificationStatus"]
