"""Per-customer finalization: price the reading, upsert the bill, lock the row."""

import logging
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from waterbill.config import Settings, get_settings
from waterbill.models.bill import Bill, PaymentStatus, VerificationStatus
from waterbill.models.billing_period import BillingPeriod
from waterbill.models.meter_reading import MeterReading, ReadingStatus
from waterbill.models.outbox import OutboxIntent, OutboxKind, OutboxStatus
from waterbill.services.audit_service import AuditService
from waterbill.services.billing_calculator import clamp_end_reading, compute_total, due_date_for
from waterbill.services.errors import NotFoundError, PeriodLockedError
from waterbill.services.period_service import PeriodService
from waterbill.services.settings_service import BillingSettingService, TariffSnapshot
from waterbill.services.transitions import ensure_transition

logger = logging.getLogger(__name__)


@dataclass
class FinalizeResult:
    """Outcome of finalizing one row."""

    locked: bool
    bill: Bill | None
    already_locked: bool = False
    intent_id: int | None = None


class MeterRowFinalizer:
    """Turns one reading row into a locked row plus an authoritative bill.

    Row lock, bill upsert, aggregate recount and the outbox intent for the
    follow-up work are written in one transaction; nobody can observe a
    DONE row without its bill.
    """

    def __init__(self, db_session: Session, settings: Settings | None = None):
        """Initialize with database session."""
        self.db = db_session
        self.settings = settings or get_settings()

    def finalize_row(
        self,
        row_id: int,
        notify: bool = False,
        tariff: TariffSnapshot | None = None,
        actor_id: int | None = None,
    ) -> FinalizeResult:
        """Finalize a reading row.

        Calling it again on a locked row is a no-op that returns the
        existing bill.

        Args:
            row_id: Reading row ID
            notify: Send the customer a reminder (and document) after commit
            tariff: Settings snapshot to price with (default: latest published)
            actor_id: User performing the action (for the audit trail)

        Raises:
            NotFoundError: Row missing or soft-deleted
            PeriodLockedError: The row's period is FINAL
            SettingMissingError: No tariff given and none published
        """
        row = self.db.execute(
            select(MeterReading).where(MeterReading.id == row_id).with_for_update()
        ).scalar_one_or_none()
        if row is None or row.deleted_at is not None:
            raise NotFoundError(f"Reading {row_id} not found")

        period = self.db.execute(
            select(BillingPeriod).where(BillingPeriod.id == row.period_id).with_for_update()
        ).scalar_one()
        if period.is_locked:
            raise PeriodLockedError(period.period_key)

        if row.is_locked:
            logger.debug("Reading %d already finalized; returning existing bill", row_id)
            return FinalizeResult(
                locked=True,
                bill=self._find_bill(row.customer_id, period.id),
                already_locked=True,
            )

        if tariff is None:
            tariff = BillingSettingService(self.db).snapshot()

        try:
            bill, intent = self.apply_finalization(
                row, period, tariff, notify=notify, actor_id=actor_id
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(
            "Finalized reading %d: customer=%d period=%s usage=%d total=%d bill=%d",
            row.id,
            row.customer_id,
            period.period_key,
            row.usage,
            bill.total,
            bill.id,
        )
        return FinalizeResult(locked=True, bill=bill, intent_id=intent.id)

    def apply_finalization(
        self,
        row: MeterReading,
        period: BillingPeriod,
        tariff: TariffSnapshot,
        notify: bool = False,
        actor_id: int | None = None,
    ) -> tuple[Bill, OutboxIntent]:
        """Write the finalization of one row into the current transaction (no commit)."""
        end_reading = clamp_end_reading(row.start_reading, row.end_reading)
        usage = end_reading - row.start_reading
        unit_rate = row.unit_rate if row.unit_rate is not None else period.unit_rate
        base_fee = row.base_fee if row.base_fee is not None else period.base_fee
        total = compute_total(usage, unit_rate, base_fee, tariff.admin_fee)

        bill = self._upsert_bill(
            customer_id=row.customer_id,
            period_id=period.id,
            usage=usage,
            unit_rate=unit_rate,
            base_fee=base_fee,
            admin_fee=tariff.admin_fee,
            total=total,
            due_date=due_date_for(period.period_key, tariff.due_day),
            setting_version=tariff.version,
        )

        ensure_transition("reading", row.status, ReadingStatus.DONE)
        row.end_reading = end_reading
        row.usage = usage
        row.unit_rate = unit_rate
        row.base_fee = base_fee
        row.total = total
        row.status = ReadingStatus.DONE
        row.is_locked = True

        PeriodService(self.db).recompute_progress(period)

        intent = OutboxIntent(
            kind=OutboxKind.BILL_FINALIZED,
            bill_id=bill.id,
            notify=notify,
            document_url=self._document_url(row.customer_id),
            status=OutboxStatus.PENDING,
        )
        self.db.add(intent)

        AuditService.log(
            self.db,
            "reading",
            row.id,
            "finalize",
            actor_id,
            {
                "bill_id": bill.id,
                "usage": usage,
                "total": total,
                "setting_version": tariff.version,
            },
        )
        self.db.flush()
        return bill, intent

    def _find_bill(self, customer_id: int, period_id: int, for_update: bool = False) -> Bill | None:
        stmt = select(Bill).where(Bill.customer_id == customer_id, Bill.period_id == period_id)
        if for_update:
            stmt = stmt.with_for_update()
        return self.db.execute(stmt).scalar_one_or_none()

    def _upsert_bill(self, customer_id: int, period_id: int, **values) -> Bill:
        """Insert the (customer, period) bill or refresh the existing one.

        A concurrent insert of the same key loses on the unique constraint
        inside a savepoint and falls back to updating the winner's row.
        """
        bill = self._find_bill(customer_id, period_id, for_update=True)
        if bill is None:
            try:
                with self.db.begin_nested():
                    bill = Bill(
                        customer_id=customer_id,
                        period_id=period_id,
                        late_fee=0,
                        payment_status=PaymentStatus.UNPAID,
                        verification_status=VerificationStatus.UNVERIFIED,
                        **values,
                    )
                    self.db.add(bill)
                    self.db.flush()
                return bill
            except IntegrityError:
                bill = self._find_bill(customer_id, period_id, for_update=True)
                if bill is None:
                    raise

        ensure_transition("bill", bill.payment_status, PaymentStatus.UNPAID)
        for name, value in values.items():
            setattr(bill, name, value)
        # Late fee is recomputed when a payment arrives, never at finalize time
        bill.late_fee = 0
        bill.payment_status = PaymentStatus.UNPAID
        bill.verification_status = VerificationStatus.UNVERIFIED
        self.db.flush()
        return bill

    def _document_url(self, customer_id: int) -> str | None:
        origin = self.settings.origin
        if not origin:
            return None
        return f"{origin}/print/invoice/{customer_id}"


__all__ = ["MeterRowFinalizer", "FinalizeResult"]
