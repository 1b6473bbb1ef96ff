"""Transition tables for every stateful entity in the billing pipeline."""

from enum import Enum

from waterbill.models.access_token import TokenState
from waterbill.models.bill import PaymentStatus
from waterbill.models.billing_period import PeriodStatus
from waterbill.models.meter_reading import ReadingStatus
from waterbill.models.notification_log import NotificationStatus
from waterbill.models.outbox import OutboxStatus
from waterbill.services.errors import InvalidTransitionError

TRANSITIONS: dict[str, set[tuple[Enum, Enum]]] = {
    # No transition out of FINAL; unlocking is an administrative escape hatch
    "period": {
        (PeriodStatus.DRAFT, PeriodStatus.FINAL),
    },
    "reading": {
        (ReadingStatus.PENDING, ReadingStatus.DONE),
    },
    # PAID -> UNPAID only happens when a payment is voided
    "bill": {
        (PaymentStatus.UNPAID, PaymentStatus.UNPAID),
        (PaymentStatus.UNPAID, PaymentStatus.PAID),
        (PaymentStatus.PAID, PaymentStatus.PAID),
        (PaymentStatus.PAID, PaymentStatus.UNPAID),
    },
    "token": {
        (TokenState.ACTIVE, TokenState.USED),
    },
    "notification": {
        (NotificationStatus.PENDING, NotificationStatus.SENT),
        (NotificationStatus.PENDING, NotificationStatus.FAILED),
    },
    "outbox": {
        (OutboxStatus.PENDING, OutboxStatus.DONE),
    },
}


def can_transition(entity: str, current: Enum, target: Enum) -> bool:
    return (current, target) in TRANSITIONS[entity]


def ensure_transition(entity: str, current: Enum, target: Enum) -> None:
    """Raise InvalidTransitionError unless (current, target) is in the entity's table."""
    if not can_transition(entity, current, target):
        raise InvalidTransitionError(entity, current, target)


__all__ = ["TRANSITIONS", "can_transition", "ensure_transition"]
