"""Versioned billing settings (tariff, fees, due day, late fee tiers)."""

from sqlalchemy import Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from waterbill.models import Base, BaseModel


class BillingSetting(Base, BaseModel):
    """One published version of the billing configuration.

    Rows are append-only: publishing a change inserts a new row with the next
    version number, so bills can record exactly which version priced them.
    """

    __tablename__ = "billing_settings"

    version: Mapped[int] = mapped_column(
        Integer, nullable=False, unique=True, comment="Monotonic version number"
    )
    unit_rate: Mapped[int] = mapped_column(
        Integer, nullable=False, comment="Price per cubic meter"
    )
    base_fee: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, comment="Fixed monthly subscription fee"
    )
    admin_fee: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, comment="Administration fee added to every bill"
    )
    due_day: Mapped[int] = mapped_column(
        Integer, nullable=False, default=15, comment="Day of the period month bills fall due"
    )
    late_fee_tier1: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, comment="Late fee within the first 30 days"
    )
    late_fee_tier2: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, comment="Late fee from day 30 onwards (flat)"
    )

    company_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    address: Mapped[str | None] = mapped_column(String(500), nullable=True)

    def __repr__(self) -> str:
        return (
            f"<BillingSetting(version={self.version}, unit_rate={self.unit_rate}, "
            f"base_fee={self.base_fee}, admin_fee={self.admin_fee}, due_day={self.due_day})>"
        )


__all__ = ["BillingSetting"]
