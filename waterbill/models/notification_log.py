"""Append-only log of outbound notification attempts."""

from enum import Enum
from typing import Any

from sqlalchemy import JSON, Integer, String
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column

from waterbill.models import Base, BaseModel


class NotificationStatus(str, Enum):
    """Delivery outcome of one attempt."""

    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"


class NotificationKind(str, Enum):
    """Gateway endpoint used for the attempt."""

    BILL_REMINDER = "bill_reminder"
    """Text message via POST {base}/send"""

    BILL_DOCUMENT = "bill_document"
    """Document delivery via POST {base}/send-document"""


class NotificationLog(Base, BaseModel):
    """One outbound message attempt.

    Written as PENDING before the network call, then moved once to SENT or
    FAILED. FAILED is terminal; nothing retries it automatically.
    """

    __tablename__ = "notification_logs"

    destination: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    kind: Mapped[NotificationKind] = mapped_column(SQLEnum(NotificationKind), nullable=False)
    payload: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    status: Mapped[NotificationStatus] = mapped_column(
        SQLEnum(NotificationStatus), nullable=False, default=NotificationStatus.PENDING
    )
    http_status: Mapped[int | None] = mapped_column(Integer, nullable=True)
    error: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    def __repr__(self) -> str:
        return (
            f"<NotificationLog(id={self.id}, destination={self.destination}, "
            f"kind={self.kind}, status={self.status})>"
        )


__all__ = ["NotificationLog", "NotificationKind", "NotificationStatus"]
