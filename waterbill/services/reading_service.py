"""Meter reading capture and removal while a period is still DRAFT."""

import logging
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.orm import Session

from waterbill.models.meter_reading import MeterReading
from waterbill.services.billing_calculator import compute_total, compute_usage
from waterbill.services.errors import (
    NotFoundError,
    PeriodLockedError,
    StateConflictError,
    ValidationError,
)
from waterbill.services.period_service import PeriodService

logger = logging.getLogger(__name__)


class ReadingService:
    """Service for editing reading rows before they are finalized."""

    def __init__(self, db_session: Session):
        """Initialize with database session."""
        self.db = db_session

    def get_row(self, row_id: int, for_update: bool = False) -> MeterReading | None:
        stmt = select(MeterReading).where(MeterReading.id == row_id)
        if for_update:
            stmt = stmt.with_for_update()
        return self.db.execute(stmt).scalar_one_or_none()

    def _require_editable(self, row_id: int) -> MeterReading:
        row = self.get_row(row_id, for_update=True)
        if row is None or row.deleted_at is not None:
            raise NotFoundError(f"Reading {row_id} not found")
        if row.period.is_locked:
            raise PeriodLockedError(row.period.period_key)
        if row.is_locked:
            raise StateConflictError(f"Reading {row_id} is already finalized")
        return row

    def record_reading(self, row_id: int, end_reading: int, note: str | None = None) -> MeterReading:
        """Store the ending meter value of a row.

        The row stays PENDING; it becomes DONE only when finalized together
        with its bill. The stored total is provisional (no admin fee).

        Raises:
            NotFoundError: Row missing or soft-deleted
            PeriodLockedError: Period is FINAL
            StateConflictError: Row already finalized
            ValidationError: Ending reading below the starting reading
        """
        row = self._require_editable(row_id)
        if end_reading < row.start_reading:
            raise ValidationError(
                f"Ending reading {end_reading} is below starting reading {row.start_reading}"
            )

        unit_rate = row.unit_rate if row.unit_rate is not None else row.period.unit_rate
        base_fee = row.base_fee if row.base_fee is not None else row.period.base_fee
        try:
            row.end_reading = end_reading
            row.usage = compute_usage(row.start_reading, end_reading)
            row.total = compute_total(row.usage, unit_rate, base_fee)
            row.note = (note or "").strip() or None
            PeriodService(self.db).recompute_progress(row.period)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.debug("Recorded reading %d: end=%d usage=%d", row.id, end_reading, row.usage)
        return row

    def soft_delete_row(self, row_id: int) -> MeterReading:
        """Exclude a row from the period and every aggregate."""
        row = self._require_editable(row_id)
        try:
            row.deleted_at = datetime.now(timezone.utc)
            PeriodService(self.db).recompute_progress(row.period)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info("Soft-deleted reading %d of period %s", row.id, row.period.period_key)
        return row


__all__ = ["ReadingService"]
