"""Processing of follow-up work recorded by finalization.

Each BILL_FINALIZED intent runs these sub-steps, every one isolated and
logged, never undoing the finalization that produced it:

1. provision_user   - make sure the customer has a login account
2. issue_token      - mint a single-use payment link bound to the bill
3. notify_reminder  - send the bill reminder (only when notify was requested)
4. notify_document  - send the bill document (notify requested and a URL exists)
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from urllib.parse import quote

from sqlalchemy import select
from sqlalchemy.orm import sessionmaker

from waterbill.config import Settings, get_settings
from waterbill.models.access_token import TokenPurpose
from waterbill.models.bill import Bill
from waterbill.models.meter_reading import MeterReading
from waterbill.models.notification_log import NotificationStatus
from waterbill.models.outbox import OutboxIntent, OutboxStatus
from waterbill.services.magic_link_service import MagicLinkService
from waterbill.services.messages import (
    BillSummary,
    compose_bill_reminder,
    document_caption,
    document_filename,
)
from waterbill.services.notification_service import NotificationDispatcher
from waterbill.services.settings_service import BillingSettingService, TariffSnapshot
from waterbill.services.transitions import ensure_transition
from waterbill.services.user_service import UserService

logger = logging.getLogger(__name__)


@dataclass
class _Prepared:
    """Data gathered inside the database phase, used after it closes."""

    summary: BillSummary
    phone: str | None
    tariff: TariffSnapshot | None
    magic_url: str | None


class OutboxProcessor:
    """Runs pending outbox intents with short, independent sessions."""

    def __init__(
        self,
        session_factory: sessionmaker,
        settings: Settings | None = None,
        dispatcher: NotificationDispatcher | None = None,
    ):
        self.session_factory = session_factory
        self.settings = settings or get_settings()
        self.dispatcher = dispatcher or NotificationDispatcher(session_factory, self.settings)

    def pending_ids(self, limit: int = 100) -> list[int]:
        with self.session_factory() as db:
            return list(
                db.execute(
                    select(OutboxIntent.id)
                    .where(OutboxIntent.status == OutboxStatus.PENDING)
                    .order_by(OutboxIntent.id)
                    .limit(limit)
                ).scalars()
            )

    def process_pending(self, limit: int = 100) -> int:
        """Process each pending intent once; returns how many were handled."""
        handled = 0
        for intent_id in self.pending_ids(limit):
            try:
                self.process_intent(intent_id)
                handled += 1
            except Exception:
                logger.exception("Outbox intent %d could not be processed", intent_id)
        return handled

    def process_intent(self, intent_id: int) -> OutboxIntent | None:
        failed: list[str] = []
        result: dict[str, object] = {}

        prepared = self._prepare(intent_id, failed, result)
        if prepared is None:
            return None

        with self.session_factory() as db:
            intent = db.get(OutboxIntent, intent_id)
            notify, document_url = intent.notify, intent.document_url

        if notify and prepared.phone:
            status = self.dispatcher.send(
                prepared.phone,
                {
                    "text": compose_bill_reminder(
                        prepared.summary, prepared.tariff, prepared.magic_url
                    )
                },
            )
            result["reminder"] = status.value
            if status != NotificationStatus.SENT:
                failed.append("notify_reminder")

            if document_url:
                status = self.dispatcher.send_document(
                    prepared.phone,
                    document_url,
                    document_filename(prepared.summary.bill_id, prepared.summary.issued_on),
                    document_caption(prepared.summary.period_key, prepared.summary.customer_name),
                )
                result["document"] = status.value
                if status != NotificationStatus.SENT:
                    failed.append("notify_document")
        elif notify:
            logger.info("Bill %d: customer has no phone number, nothing sent", prepared.summary.bill_id)

        with self.session_factory() as db:
            intent = db.get(OutboxIntent, intent_id)
            ensure_transition("outbox", intent.status, OutboxStatus.DONE)
            intent.status = OutboxStatus.DONE
            intent.processed_at = datetime.now(timezone.utc)
            intent.failed_steps = failed or None
            intent.result = result
            db.commit()
            db.refresh(intent)
            db.expunge(intent)

        if failed:
            logger.warning("Outbox intent %d finished with failed steps: %s", intent_id, failed)
        else:
            logger.info("Outbox intent %d done", intent_id)
        return intent

    def _prepare(self, intent_id: int, failed: list[str], result: dict) -> _Prepared | None:
        """Provision the user and issue the token, then gather message data."""
        with self.session_factory() as db:
            intent = db.get(OutboxIntent, intent_id)
            if intent is None or intent.status != OutboxStatus.PENDING:
                return None
            bill = db.get(Bill, intent.bill_id)
            customer = bill.customer
            period = bill.period

            user = None
            try:
                user = UserService(db).ensure_customer_user(customer)
            except Exception:
                logger.exception("Bill %d: user provisioning failed", bill.id)
                db.rollback()
                failed.append("provision_user")

            magic_url = None
            if user is not None:
                try:
                    token = MagicLinkService(db, self.settings).issue(
                        user.id, TokenPurpose.PAYMENT, bill_id=bill.id
                    )
                    result["token_id"] = token.id
                    if self.settings.origin:
                        magic_url = (
                            f"{self.settings.origin}/api/auth/magic?token={quote(token.token)}"
                        )
                except Exception:
                    logger.exception("Bill %d: magic link issuance failed", bill.id)
                    db.rollback()
                    failed.append("issue_token")
            else:
                failed.append("issue_token")

            row = db.execute(
                select(MeterReading).where(
                    MeterReading.customer_id == bill.customer_id,
                    MeterReading.period_id == bill.period_id,
                    MeterReading.is_locked.is_(True),
                    MeterReading.deleted_at.is_(None),
                )
            ).scalars().first()

            setting = BillingSettingService(db).current()
            summary = BillSummary(
                bill_id=bill.id,
                period_key=period.period_key,
                customer_name=customer.name,
                start_reading=row.start_reading if row else 0,
                end_reading=row.end_reading if row and row.end_reading is not None else 0,
                usage=bill.usage,
                unit_rate=bill.unit_rate,
                base_fee=bill.base_fee,
                admin_fee=bill.admin_fee,
                total=bill.total,
                due_date=bill.due_date,
                issued_on=(bill.updated_at or datetime.now(timezone.utc)).date(),
            )
            return _Prepared(
                summary=summary,
                phone=customer.phone,
                tariff=TariffSnapshot.from_setting(setting) if setting else None,
                magic_url=magic_url,
            )


def process_outbox(session_factory: sessionmaker, settings: Settings | None = None) -> int:
    """Entry point for background tasks scheduled after a commit."""
    return OutboxProcessor(session_factory, settings).process_pending()


__all__ = ["OutboxProcessor", "process_outbox"]
