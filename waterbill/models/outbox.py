"""Outbox intents recorded alongside finalization and processed after commit."""

from datetime import datetime
from enum import Enum
from typing import Any

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, String
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column

from waterbill.models import Base, BaseModel


class OutboxKind(str, Enum):
    """Kind of follow-up work."""

    BILL_FINALIZED = "bill_finalized"
    """Provision customer login, issue magic link, notify"""


class OutboxStatus(str, Enum):
    PENDING = "pending"
    DONE = "done"


class OutboxIntent(Base, BaseModel):
    """Durable record of best-effort work triggered by a committed change."""

    __tablename__ = "outbox_intents"

    kind: Mapped[OutboxKind] = mapped_column(SQLEnum(OutboxKind), nullable=False)
    bill_id: Mapped[int] = mapped_column(ForeignKey("bills.id"), nullable=False, index=True)
    notify: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    document_url: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    status: Mapped[OutboxStatus] = mapped_column(
        SQLEnum(OutboxStatus), nullable=False, default=OutboxStatus.PENDING, index=True
    )
    processed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    failed_steps: Mapped[list[str] | None] = mapped_column(JSON, nullable=True)
    """Sub-steps that failed during processing: ["issue_token", "notify_reminder", ...]."""

    result: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)

    def __repr__(self) -> str:
        return (
            f"<OutboxIntent(id={self.id}, kind={self.kind}, bill_id={self.bill_id}, "
            f"status={self.status})>"
        )


__all__ = ["OutboxIntent", "OutboxKind", "OutboxStatus"]
