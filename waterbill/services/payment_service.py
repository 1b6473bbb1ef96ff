"""Payment application, late fee accrual and bill status reconciliation."""

import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from waterbill.models.bill import Bill, PaymentStatus
from waterbill.models.payment import Payment, PaymentMethod
from waterbill.services.audit_service import AuditService
from waterbill.services.billing_calculator import due_date_for
from waterbill.services.errors import NotFoundError, ValidationError
from waterbill.services.late_fee import compute_late_fee
from waterbill.services.settings_service import BillingSettingService, TariffSnapshot
from waterbill.services.transitions import ensure_transition

logger = logging.getLogger(__name__)


def parse_method(raw: str | PaymentMethod | None) -> PaymentMethod:
    """Map free-form input to a payment method; unknown values mean cash."""
    if isinstance(raw, PaymentMethod):
        return raw
    try:
        return PaymentMethod((raw or "").strip().lower())
    except ValueError:
        return PaymentMethod.CASH


@dataclass
class BillBalance:
    """Paid and owed amounts of a bill."""

    bill: Bill
    amount_paid: int
    amount_due: int

    @property
    def outstanding(self) -> int:
        return max(0, self.amount_due - self.amount_paid)


@dataclass
class PaymentResult:
    payment: Payment
    bill: Bill
    amount_paid: int
    amount_due: int


class PaymentReconciler:
    """Applies payments to bills and keeps the bill status in step.

    A bill is PAID exactly when its non-void payments cover total plus the
    current late fee. Partial payment leaves it UNPAID.
    """

    def __init__(self, db_session: Session):
        """Initialize with database session."""
        self.db = db_session

    def _get_bill(self, bill_id: int, for_update: bool = False) -> Bill:
        stmt = select(Bill).where(Bill.id == bill_id)
        if for_update:
            stmt = stmt.with_for_update()
        bill = self.db.execute(stmt).scalar_one_or_none()
        if bill is None:
            raise NotFoundError(f"Bill {bill_id} not found")
        return bill

    def amount_paid(self, bill_id: int) -> int:
        """Sum of non-void payments."""
        return int(
            self.db.execute(
                select(func.coalesce(func.sum(Payment.amount), 0)).where(
                    Payment.bill_id == bill_id, Payment.deleted_at.is_(None)
                )
            ).scalar()
        )

    def resolve_due_date(self, bill: Bill, tariff: TariffSnapshot | None) -> date | None:
        """Stored due date, else derived from the period and the configured day."""
        if bill.due_date is not None:
            return bill.due_date
        try:
            return due_date_for(bill.period.period_key, tariff.due_day if tariff else None)
        except (ValidationError, AttributeError, ValueError):
            logger.warning("Bill %d has no usable due date; late fee skipped", bill.id)
            return None

    def _current_tariff(self) -> TariffSnapshot | None:
        setting = BillingSettingService(self.db).current()
        if setting is None:
            logger.warning("No billing setting published; late fees default to 0")
            return None
        return TariffSnapshot.from_setting(setting)

    def _reconcile_status(self, bill: Bill) -> tuple[int, int]:
        self.db.flush()
        paid = self.amount_paid(bill.id)
        due = bill.total + bill.late_fee
        target = PaymentStatus.PAID if paid >= due else PaymentStatus.UNPAID
        ensure_transition("bill", bill.payment_status, target)
        bill.payment_status = target
        return paid, due

    def apply_payment(
        self,
        bill_id: int,
        amount: int,
        payment_date: date | None = None,
        method: str | PaymentMethod | None = PaymentMethod.CASH,
        proof_url: str | None = None,
        note: str | None = None,
        recorded_by: str | None = None,
        actor_id: int | None = None,
        tariff: TariffSnapshot | None = None,
    ) -> PaymentResult:
        """Record a payment and reconcile the bill.

        Steps, in one transaction: recompute the late fee for
        ``payment_date`` (written only when it changed), append the
        payment, recount the paid amount and set PAID/UNPAID.

        Raises:
            ValidationError: amount not positive
            NotFoundError: bill does not exist
        """
        if amount is None or int(amount) <= 0:
            raise ValidationError("Payment amount must be greater than zero")
        amount = int(round(amount))
        payment_date = payment_date or date.today()

        bill = self._get_bill(bill_id, for_update=True)
        if tariff is None:
            tariff = self._current_tariff()

        try:
            due_date = self.resolve_due_date(bill, tariff)
            late_fee = compute_late_fee(
                due_date,
                payment_date,
                tariff.late_fee_tier1 if tariff else 0,
                tariff.late_fee_tier2 if tariff else 0,
            )
            if late_fee != bill.late_fee:
                bill.late_fee = late_fee

            payment = Payment(
                bill_id=bill.id,
                amount=amount,
                payment_date=payment_date,
                method=parse_method(method),
                proof_url=proof_url,
                recorded_by=recorded_by,
                note=(note or "").strip() or None,
            )
            self.db.add(payment)
            self.db.flush()

            paid, due = self._reconcile_status(bill)
            AuditService.log(
                self.db,
                "payment",
                payment.id,
                "record",
                actor_id,
                {
                    "bill_id": bill.id,
                    "amount": amount,
                    "late_fee": bill.late_fee,
                    "status": bill.payment_status.value,
                },
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(
            "Applied payment %d to bill %d: amount=%d late_fee=%d paid=%d due=%d status=%s",
            payment.id,
            bill.id,
            amount,
            bill.late_fee,
            paid,
            due,
            bill.payment_status.value,
        )
        return PaymentResult(payment=payment, bill=bill, amount_paid=paid, amount_due=due)

    def void_payment(self, payment_id: int, actor_id: int | None = None) -> BillBalance:
        """Soft-delete a payment and reconcile its bill against the current late fee."""
        payment = self.db.execute(
            select(Payment).where(Payment.id == payment_id).with_for_update()
        ).scalar_one_or_none()
        if payment is None or payment.deleted_at is not None:
            raise NotFoundError(f"Payment {payment_id} not found")

        bill = self._get_bill(payment.bill_id, for_update=True)
        try:
            payment.deleted_at = datetime.now(timezone.utc)
            paid, due = self._reconcile_status(bill)
            AuditService.log(
                self.db,
                "payment",
                payment.id,
                "void",
                actor_id,
                {"bill_id": bill.id, "status": bill.payment_status.value},
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info("Voided payment %d; bill %d now %s", payment_id, bill.id, bill.payment_status.value)
        return BillBalance(bill=bill, amount_paid=paid, amount_due=due)

    def get_balance(self, bill_id: int) -> BillBalance:
        bill = self._get_bill(bill_id)
        return BillBalance(
            bill=bill,
            amount_paid=self.amount_paid(bill.id),
            amount_due=bill.total + bill.late_fee,
        )


__all__ = [
    "PaymentReconciler",
    "PaymentResult",
    "BillBalance",
    "parse_method",
]
