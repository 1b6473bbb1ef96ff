"""Billing period lifecycle: start, progress aggregation and locking."""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from waterbill.models.bill import Bill
from waterbill.models.billing_period import BillingPeriod, PeriodStatus
from waterbill.models.customer import Customer
from waterbill.models.meter_reading import MeterReading, ReadingStatus
from waterbill.services.audit_service import AuditService
from waterbill.services.billing_calculator import (
    next_period_key,
    parse_period_key,
    previous_period_key,
    validate_period_key,
)
from waterbill.services.errors import (
    NotFoundError,
    PendingReadingsError,
    PeriodLockedError,
    StateConflictError,
    ValidationError,
)
from waterbill.services.settings_service import BillingSettingService, TariffSnapshot
from waterbill.services.transitions import ensure_transition

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PeriodProgress:
    """Aggregate row counts of a period."""

    total: int
    completed: int
    pending: int

    @property
    def percent(self) -> int:
        return round(self.completed * 100 / self.total) if self.total else 0

    def as_dict(self) -> dict[str, int]:
        return {
            "total": self.total,
            "selesai": self.completed,
            "pending": self.pending,
            "percent": self.percent,
        }


@dataclass
class StartPeriodResult:
    period: BillingPeriod
    created: int
    skipped: int


@dataclass
class PeriodFinalizeResult:
    period: BillingPeriod
    progress: PeriodProgress
    already_locked: bool = False
    healed_bills: list[Bill] = field(default_factory=list)


class PeriodService:
    """Service for billing period database operations.

    Owns the DRAFT -> FINAL transition and the aggregate counts stored on
    the period, which are always recomputed from live rows.
    """

    def __init__(self, db_session: Session):
        """Initialize with database session."""
        self.db = db_session

    def get_by_key(self, period_key: str, for_update: bool = False) -> BillingPeriod | None:
        stmt = select(BillingPeriod).where(BillingPeriod.period_key == period_key)
        if for_update:
            stmt = stmt.with_for_update()
        return self.db.execute(stmt).scalar_one_or_none()

    def require(self, period_key: str, for_update: bool = False) -> BillingPeriod:
        validate_period_key(period_key)
        period = self.get_by_key(period_key, for_update=for_update)
        if period is None:
            raise NotFoundError(f"Period {period_key} not found; start it first")
        return period

    def get_latest(self) -> BillingPeriod | None:
        return self.db.execute(
            select(BillingPeriod)
            .order_by(BillingPeriod.year.desc(), BillingPeriod.month.desc())
            .limit(1)
        ).scalar_one_or_none()

    def live_rows(self, period_id: int) -> list[MeterReading]:
        """Non-deleted rows of a period in customer order."""
        return list(
            self.db.execute(
                select(MeterReading)
                .join(Customer, Customer.id == MeterReading.customer_id)
                .where(MeterReading.period_id == period_id, MeterReading.deleted_at.is_(None))
                .order_by(Customer.created_at.asc(), MeterReading.id.asc())
            ).scalars()
        )

    def count_rows(self, period_id: int) -> PeriodProgress:
        """Count live rows by status."""
        rows = self.db.execute(
            select(MeterReading.status, func.count(MeterReading.id))
            .where(MeterReading.period_id == period_id, MeterReading.deleted_at.is_(None))
            .group_by(MeterReading.status)
        ).all()
        counts = {status: count for status, count in rows}
        completed = counts.get(ReadingStatus.DONE, 0)
        pending = counts.get(ReadingStatus.PENDING, 0)
        return PeriodProgress(total=completed + pending, completed=completed, pending=pending)

    def recompute_progress(self, period: BillingPeriod) -> PeriodProgress:
        """Recount live rows and store the counts on the period (caller commits)."""
        self.db.flush()
        progress = self.count_rows(period.id)
        period.total_count = progress.total
        period.completed_count = progress.completed
        period.pending_count = progress.pending
        return progress

    def get_progress(self, period_key: str) -> tuple[BillingPeriod | None, PeriodProgress, list[MeterReading]]:
        """Status screen data; an unknown period reports empty progress."""
        validate_period_key(period_key)
        period = self.get_by_key(period_key)
        if period is None:
            return None, PeriodProgress(0, 0, 0), []
        return period, self.count_rows(period.id), self.live_rows(period.id)

    def start_period(
        self,
        period_key: str,
        started_by: str | None = None,
        actor_id: int | None = None,
    ) -> StartPeriodResult:
        """Create the period if needed and generate one PENDING row per active customer.

        Safe to call repeatedly: customers that already have a live row are
        skipped.

        Raises:
            ValidationError: Malformed key, or a month would be skipped
            StateConflictError: The latest period is not FINAL yet
            PeriodLockedError: The period is already FINAL
            SettingMissingError: No billing setting to snapshot rates from
        """
        year, month = parse_period_key(period_key)

        try:
            period = self.get_by_key(period_key, for_update=True)
            if period is None:
                latest = self.get_latest()
                if latest is not None:
                    expected = next_period_key(latest.period_key)
                    if period_key != expected:
                        raise ValidationError(
                            f"Cannot skip months; the next valid period is {expected}"
                        )
                    if not latest.is_locked:
                        raise StateConflictError(
                            f"Period {latest.period_key} must be finalized before starting "
                            f"{period_key}"
                        )
                tariff = BillingSettingService(self.db).snapshot()
                period = BillingPeriod(
                    period_key=period_key,
                    year=year,
                    month=month,
                    unit_rate=tariff.unit_rate,
                    base_fee=tariff.base_fee,
                    status=PeriodStatus.DRAFT,
                    started_by=started_by,
                )
                self.db.add(period)
                self.db.flush()
                AuditService.log(
                    self.db,
                    "period",
                    period.id,
                    "start",
                    actor_id,
                    {"period": period_key, "setting_version": tariff.version},
                )
            elif period.is_locked:
                raise PeriodLockedError(period_key)

            created, skipped = self._generate_rows(period)
            self.recompute_progress(period)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(
            "Started period %s: created=%d skipped=%d", period_key, created, skipped
        )
        return StartPeriodResult(period=period, created=created, skipped=skipped)

    def _generate_rows(self, period: BillingPeriod) -> tuple[int, int]:
        customers = self.db.execute(
            select(Customer)
            .where(Customer.is_active.is_(True), Customer.deleted_at.is_(None))
            .order_by(Customer.created_at.asc(), Customer.id.asc())
        ).scalars().all()

        existing = set(
            self.db.execute(
                select(MeterReading.customer_id).where(
                    MeterReading.period_id == period.id, MeterReading.deleted_at.is_(None)
                )
            ).scalars()
        )

        last_readings: dict[int, int] = {}
        previous = self.get_by_key(previous_period_key(period.period_key))
        if previous is not None:
            for customer_id, end_reading in self.db.execute(
                select(MeterReading.customer_id, MeterReading.end_reading).where(
                    MeterReading.period_id == previous.id,
                    MeterReading.deleted_at.is_(None),
                    MeterReading.end_reading.is_not(None),
                )
            ):
                last_readings[customer_id] = end_reading

        created = 0
        for customer in customers:
            if customer.id in existing:
                continue
            self.db.add(
                MeterReading(
                    period_id=period.id,
                    customer_id=customer.id,
                    start_reading=last_readings.get(customer.id, customer.initial_reading or 0),
                    end_reading=None,
                    usage=0,
                    total=0,
                    status=ReadingStatus.PENDING,
                    is_locked=False,
                )
            )
            created += 1
        return created, len(existing)

    def finalize_period(
        self,
        period_key: str,
        finalized_by: str | None = None,
        actor_id: int | None = None,
        tariff: TariffSnapshot | None = None,
    ) -> PeriodFinalizeResult:
        """Lock a period once every live row is DONE.

        Rows that already carry an ending reading but are still PENDING are
        finalized first (bill upserted, row locked) so a drifted status does
        not block the lock. Counts are recomputed from live rows and stored
        before the pending check; that write is kept even when the lock is
        refused.

        Raises:
            ValidationError: Malformed key
            NotFoundError: Period does not exist
            PendingReadingsError: Rows still pending; carries the progress
            SettingMissingError: Rows need finalizing but no setting exists
        """
        # Import here to avoid circular import
        from waterbill.services.finalize_service import MeterRowFinalizer

        period = self.require(period_key, for_update=True)
        if period.is_locked:
            progress = self.count_rows(period.id)
            return PeriodFinalizeResult(period=period, progress=progress, already_locked=True)

        healed: list[Bill] = []
        try:
            drifted = self.db.execute(
                select(MeterReading)
                .where(
                    MeterReading.period_id == period.id,
                    MeterReading.deleted_at.is_(None),
                    MeterReading.status == ReadingStatus.PENDING,
                    MeterReading.end_reading.is_not(None),
                )
                .with_for_update()
            ).scalars().all()

            if drifted:
                if tariff is None:
                    tariff = BillingSettingService(self.db).snapshot()
                finalizer = MeterRowFinalizer(self.db)
                for row in drifted:
                    bill, _ = finalizer.apply_finalization(
                        row, period, tariff, notify=False, actor_id=actor_id
                    )
                    healed.append(bill)

            progress = self.recompute_progress(period)
            if progress.pending == 0:
                ensure_transition("period", period.status, PeriodStatus.FINAL)
                period.status = PeriodStatus.FINAL
                period.finalized_at = datetime.now(timezone.utc)
                period.finalized_by = finalized_by or "system"
                AuditService.log(
                    self.db,
                    "period",
                    period.id,
                    "finalize",
                    actor_id,
                    {"status": PeriodStatus.FINAL.value, **progress.as_dict()},
                )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        if progress.pending:
            logger.info(
                "Refused to finalize %s: %d of %d rows pending",
                period_key,
                progress.pending,
                progress.total,
            )
            raise PendingReadingsError(period_key, progress.as_dict())

        logger.info(
            "Finalized period %s: %d rows, %d healed", period_key, progress.total, len(healed)
        )
        return PeriodFinalizeResult(period=period, progress=progress, healed_bills=healed)


__all__ = [
    "PeriodService",
    "PeriodProgress",
    "StartPeriodResult",
    "PeriodFinalizeResult",
]
