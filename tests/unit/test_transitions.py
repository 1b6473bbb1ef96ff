"""Tests for the explicit state transition tables."""

import pytest

from waterbill.models import (
    NotificationStatus,
    OutboxStatus,
    PaymentStatus,
    PeriodStatus,
    ReadingStatus,
    TokenState,
)
from waterbill.services.errors import InvalidTransitionError
from waterbill.services.transitions import can_transition, ensure_transition


class TestTransitions:
    def test_period_locks_once(self):
        assert can_transition("period", PeriodStatus.DRAFT, PeriodStatus.FINAL)
        assert not can_transition("period", PeriodStatus.FINAL, PeriodStatus.DRAFT)

    def test_reading_only_moves_forward(self):
        assert can_transition("reading", ReadingStatus.PENDING, ReadingStatus.DONE)
        assert not can_transition("reading", ReadingStatus.DONE, ReadingStatus.PENDING)

    def test_bill_can_flip_back_after_void(self):
        assert can_transition("bill", PaymentStatus.PAID, PaymentStatus.UNPAID)

    def test_used_token_is_terminal(self):
        assert not can_transition("token", TokenState.USED, TokenState.USED)
        assert not can_transition("token", TokenState.EXPIRED, TokenState.USED)

    def test_notification_outcomes(self):
        assert can_transition("notification", NotificationStatus.PENDING, NotificationStatus.SENT)
        assert not can_transition("notification", NotificationStatus.FAILED, NotificationStatus.SENT)

    def test_ensure_transition_raises_with_details(self):
        with pytest.raises(InvalidTransitionError) as exc_info:
            ensure_transition("outbox", OutboxStatus.DONE, OutboxStatus.PENDING)

        assert exc_info.value.http_status == 409
        assert exc_info.value.details == {"entity": "outbox", "from": "done", "to": "pending"}
