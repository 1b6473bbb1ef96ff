"""Payment ORM model (append-only, soft-deletable)."""

from datetime import date, datetime
from enum import Enum

from sqlalchemy import Date, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from waterbill.models import Base, BaseModel


class PaymentMethod(str, Enum):
    """How a payment was made."""

    CASH = "cash"
    TRANSFER = "transfer"
    EWALLET = "ewallet"
    QRIS = "qris"


class Payment(Base, BaseModel):
    """Model representing a payment against a bill.

    Payments are never edited. Voiding sets ``deleted_at`` and removes the
    payment from the bill's paid amount.
    """

    __tablename__ = "payments"

    bill_id: Mapped[int] = mapped_column(ForeignKey("bills.id"), nullable=False, index=True)
    amount: Mapped[int] = mapped_column(Integer, nullable=False, comment="Amount paid")
    payment_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    method: Mapped[PaymentMethod] = mapped_column(
        SQLEnum(PaymentMethod), nullable=False, default=PaymentMethod.CASH
    )
    proof_url: Mapped[str | None] = mapped_column(
        String(1000), nullable=True, comment="Reference to the externally stored proof upload"
    )
    recorded_by: Mapped[str | None] = mapped_column(
        String(255), nullable=True, comment="Staff member who recorded the payment"
    )
    note: Mapped[str | None] = mapped_column(Text, nullable=True)
    deleted_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True, comment="Soft-delete (void) marker"
    )

    bill: Mapped["Bill"] = relationship("Bill", back_populates="payments")  # noqa: F821

    __table_args__ = (Index("idx_payment_bill_deleted", "bill_id", "deleted_at"),)

    def __repr__(self) -> str:
        return (
            f"<Payment(id={self.id}, bill_id={self.bill_id}, amount={self.amount}, "
            f"payment_date={self.payment_date}, method={self.method})>"
        )


__all__ = ["Payment", "PaymentMethod"]
