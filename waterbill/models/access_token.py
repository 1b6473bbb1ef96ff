"""Single-use access tokens (magic links) and the sessions they open."""

from datetime import datetime, timezone
from enum import Enum

from sqlalchemy import DateTime, ForeignKey, String
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from waterbill.models import Base, BaseModel


class TokenPurpose(str, Enum):
    """What a magic link grants access to."""

    PAYMENT = "payment"


class TokenState(str, Enum):
    """Derived lifecycle state of an access token."""

    ACTIVE = "active"
    USED = "used"
    EXPIRED = "expired"


def _aware(value: datetime) -> datetime:
    # SQLite hands back naive datetimes even for timezone-aware columns
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


class AccessToken(Base, BaseModel):
    """
    Magic-link token granting a customer one payment session.

    ``used_at`` is written exactly once, through a conditional update
    (``WHERE used_at IS NULL``), so concurrent redemptions cannot both win.
    """

    __tablename__ = "access_tokens"

    token: Mapped[str] = mapped_column(
        String(128), nullable=False, unique=True, index=True, comment="URL-safe random secret"
    )
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    bill_id: Mapped[int | None] = mapped_column(
        ForeignKey("bills.id"), nullable=True, comment="Bill the link lands on, if scoped"
    )
    purpose: Mapped[TokenPurpose] = mapped_column(SQLEnum(TokenPurpose), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    used_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    user: Mapped["User"] = relationship("User")  # noqa: F821

    def state(self, now: datetime) -> TokenState:
        if self.used_at is not None:
            return TokenState.USED
        if _aware(self.expires_at) <= now:
            return TokenState.EXPIRED
        return TokenState.ACTIVE

    def __repr__(self) -> str:
        return (
            f"<AccessToken(id={self.id}, user_id={self.user_id}, bill_id={self.bill_id}, "
            f"purpose={self.purpose}, expires_at={self.expires_at}, used_at={self.used_at})>"
        )


class AuthSession(Base, BaseModel):
    """Browser session opened by redeeming a magic link."""

    __tablename__ = "auth_sessions"

    token: Mapped[str] = mapped_column(String(128), nullable=False, unique=True, index=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    user: Mapped["User"] = relationship("User")  # noqa: F821

    def is_expired(self, now: datetime) -> bool:
        return _aware(self.expires_at) <= now

    def __repr__(self) -> str:
        return f"<AuthSession(id={self.id}, user_id={self.user_id}, expires_at={self.expires_at})>"


__all__ = ["AccessToken", "AuthSession", "TokenPurpose", "TokenState"]
