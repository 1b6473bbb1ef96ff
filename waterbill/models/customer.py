"""Customer ORM model (metered household connection)."""

from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from waterbill.models import Base, BaseModel


class Customer(Base, BaseModel):
    """A metered water connection billed once per period.

    Maintained by the customer screens; the billing pipeline only reads it
    and links it to a login account when a bill is first finalized.
    """

    __tablename__ = "customers"

    code: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        unique=True,
        comment="Customer code, also used as username of the provisioned account",
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    phone: Mapped[str | None] = mapped_column(
        String(50), nullable=True, comment="Messaging number for bill notifications"
    )
    address: Mapped[str | None] = mapped_column(String(500), nullable=True)
    initial_reading: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        comment="Meter value at installation, used when no previous period reading exists",
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False, index=True)
    deleted_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True, comment="Soft-delete marker"
    )
    user_id: Mapped[int | None] = mapped_column(
        ForeignKey("users.id"),
        nullable=True,
        index=True,
        comment="Linked login account (provisioned on first finalized bill)",
    )

    user: Mapped["User | None"] = relationship("User", foreign_keys=[user_id])  # noqa: F821

    def __repr__(self) -> str:
        return f"<Customer(id={self.id}, code={self.code}, name={self.name})>"


__all__ = ["Customer"]
