"""User ORM model for staff and customer logins."""

from enum import Enum

from sqlalchemy import Boolean, Index, String
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column

from waterbill.models import Base, BaseModel


class UserRole(str, Enum):
    """Role of a login account."""

    ADMIN = "admin"
    STAFF = "staff"
    CUSTOMER = "customer"
    """Household account provisioned for a customer (self-service payment only)"""


class User(Base, BaseModel):
    """
    Login account for back-office staff and for customers.

    Customer accounts are provisioned automatically the first time one of
    their bills is finalized; they normally enter through a magic link
    rather than a password.
    """

    __tablename__ = "users"

    username: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        unique=True,
        comment="Login name (customer code for provisioned customer accounts)",
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False, comment="Display name")
    phone: Mapped[str | None] = mapped_column(
        String(50), nullable=True, comment="Contact phone number"
    )
    password_hash: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="Salted PBKDF2 hash: pbkdf2_sha256$<iterations>$<salt>$<hex>",
    )
    role: Mapped[UserRole] = mapped_column(
        SQLEnum(UserRole),
        nullable=False,
        default=UserRole.CUSTOMER,
        comment="Account role",
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
        index=True,
        comment="Inactive users cannot redeem magic links",
    )

    __table_args__ = (Index("idx_user_role_active", "role", "is_active"),)

    @property
    def is_customer(self) -> bool:
        return self.role == UserRole.CUSTOMER

    def __repr__(self) -> str:
        return (
            f"<User(id={self.id}, username={self.username}, role={self.role}, "
            f"is_active={self.is_active})>"
        )


__all__ = ["User", "UserRole"]
