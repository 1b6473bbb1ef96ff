"""Integration tests for starting, tracking and locking billing periods."""

import pytest
from sqlalchemy import select

from waterbill.models import Bill, BillingPeriod, MeterReading, PeriodStatus, ReadingStatus
from waterbill.services.errors import (
    NotFoundError,
    PendingReadingsError,
    PeriodLockedError,
    SettingMissingError,
    StateConflictError,
    ValidationError,
)
from waterbill.services.finalize_service import MeterRowFinalizer
from waterbill.services.period_service import PeriodService
from waterbill.services.reading_service import ReadingService


def _rows_by_customer(db_session, period):
    rows = PeriodService(db_session).live_rows(period.id)
    return {row.customer_id: row for row in rows}


class TestStartPeriod:
    def test_generates_pending_row_per_active_customer(
        self, db_session, billing_setting, customers, customer_factory
    ):
        customer_factory("C004", "Pasif", is_active=False)

        result = PeriodService(db_session).start_period("2025-06", started_by="admin")

        assert result.created == 3
        assert result.skipped == 0
        assert result.period.status == PeriodStatus.DRAFT
        assert result.period.unit_rate == 5000
        assert result.period.total_count == 3
        assert result.period.pending_count == 3
        rows = _rows_by_customer(db_session, result.period)
        assert rows[customers[0].id].start_reading == 100
        assert all(row.status == ReadingStatus.PENDING for row in rows.values())

    def test_is_idempotent(self, db_session, billing_setting, customers):
        service = PeriodService(db_session)
        service.start_period("2025-06")

        again = service.start_period("2025-06")

        assert again.created == 0
        assert again.skipped == 3

    def test_requires_setting(self, db_session, customers):
        with pytest.raises(SettingMissingError):
            PeriodService(db_session).start_period("2025-06")
        assert db_session.execute(select(BillingPeriod)).first() is None

    def test_malformed_key(self, db_session, billing_setting):
        with pytest.raises(ValidationError):
            PeriodService(db_session).start_period("2025-6")

    def test_previous_period_must_be_final(self, db_session, billing_setting, customers):
        service = PeriodService(db_session)
        service.start_period("2025-06")

        with pytest.raises(StateConflictError):
            service.start_period("2025-07")

    def test_cannot_skip_months(self, db_session, billing_setting, customers):
        service = PeriodService(db_session)
        service.start_period("2025-06")

        with pytest.raises(ValidationError):
            service.start_period("2025-08")

    def test_start_reading_carries_forward(self, db_session, billing_setting, customers):
        period_service = PeriodService(db_session)
        june = period_service.start_period("2025-06").period
        finalizer = MeterRowFinalizer(db_session)
        for customer_id, row in _rows_by_customer(db_session, june).items():
            ReadingService(db_session).record_reading(row.id, row.start_reading + 7)
            finalizer.finalize_row(row.id)
        period_service.finalize_period("2025-06")

        july = period_service.start_period("2025-07").period

        rows = _rows_by_customer(db_session, july)
        assert rows[customers[0].id].start_reading == 107
        assert rows[customers[1].id].start_reading == 257

    def test_final_period_rejects_start(self, db_session, billing_setting, customers):
        service = PeriodService(db_session)
        june = service.start_period("2025-06").period
        for row in service.live_rows(june.id):
            MeterRowFinalizer(db_session).finalize_row(row.id)
        service.finalize_period("2025-06")

        with pytest.raises(PeriodLockedError):
            service.start_period("2025-06")


class TestFinalizePeriod:
    def test_pending_row_blocks_then_retry_succeeds(self, db_session, billing_setting, customers):
        """Three rows, one without an ending reading: refused, then locked."""
        service = PeriodService(db_session)
        period = service.start_period("2025-06").period
        rows = _rows_by_customer(db_session, period)
        finalizer = MeterRowFinalizer(db_session)
        for customer in customers[:2]:
            row = rows[customer.id]
            ReadingService(db_session).record_reading(row.id, row.start_reading + 10)
            finalizer.finalize_row(row.id)

        with pytest.raises(PendingReadingsError) as exc_info:
            service.finalize_period("2025-06")

        assert exc_info.value.progress == {"total": 3, "selesai": 2, "pending": 1, "percent": 67}
        db_session.refresh(period)
        assert period.status == PeriodStatus.DRAFT
        assert period.pending_count == 1

        last = rows[customers[2].id]
        ReadingService(db_session).record_reading(last.id, last.start_reading + 3)
        finalizer.finalize_row(last.id)

        result = service.finalize_period("2025-06", finalized_by="admin")

        assert result.progress.pending == 0
        assert result.period.status == PeriodStatus.FINAL
        assert result.period.finalized_by == "admin"
        assert result.period.finalized_at is not None

    def test_self_heals_rows_with_reading_but_pending(
        self, db_session, billing_setting, customers
    ):
        service = PeriodService(db_session)
        period = service.start_period("2025-06").period
        for row in service.live_rows(period.id):
            ReadingService(db_session).record_reading(row.id, row.start_reading + 5)

        result = service.finalize_period("2025-06")

        assert result.period.status == PeriodStatus.FINAL
        assert len(result.healed_bills) == 3
        for row in service.live_rows(period.id):
            assert row.status == ReadingStatus.DONE
            assert row.is_locked
        bills = db_session.execute(select(Bill)).scalars().all()
        assert len(bills) == 3

    def test_already_final_is_idempotent(self, db_session, billing_setting, customers):
        service = PeriodService(db_session)
        period = service.start_period("2025-06").period
        for row in service.live_rows(period.id):
            MeterRowFinalizer(db_session).finalize_row(row.id)
        service.finalize_period("2025-06")

        result = service.finalize_period("2025-06")

        assert result.already_locked
        assert result.progress.pending == 0

    def test_unknown_period(self, db_session, billing_setting):
        with pytest.raises(NotFoundError):
            PeriodService(db_session).finalize_period("2030-01")

    def test_deleted_rows_do_not_count(self, db_session, billing_setting, customers):
        service = PeriodService(db_session)
        period = service.start_period("2025-06").period
        rows = _rows_by_customer(db_session, period)
        ReadingService(db_session).soft_delete_row(rows[customers[2].id].id)
        for customer in customers[:2]:
            MeterRowFinalizer(db_session).finalize_row(rows[customer.id].id)

        result = service.finalize_period("2025-06")

        assert result.progress.total == 2
        assert result.period.status == PeriodStatus.FINAL


class TestProgress:
    def test_unknown_period_is_empty(self, db_session):
        period, progress, rows = PeriodService(db_session).get_progress("2025-06")

        assert period is None
        assert progress.as_dict() == {"total": 0, "selesai": 0, "pending": 0, "percent": 0}
        assert rows == []

    def test_counts_match_rows(self, db_session, billing_setting, customers):
        service = PeriodService(db_session)
        period = service.start_period("2025-06").period
        first = service.live_rows(period.id)[0]
        MeterRowFinalizer(db_session).finalize_row(first.id)

        _, progress, rows = service.get_progress("2025-06")

        assert (progress.total, progress.completed, progress.pending) == (3, 1, 2)
        assert progress.percent == 33
        assert len(rows) == 3
        done = db_session.execute(
            select(MeterReading).where(MeterReading.status == ReadingStatus.DONE)
        ).scalars().all()
        assert len(done) == progress.completed
