"""Tests for usage, total, due date and period key arithmetic."""

from datetime import date

import pytest

from waterbill.services.billing_calculator import (
    clamp_end_reading,
    compute_total,
    compute_usage,
    due_date_for,
    next_period_key,
    parse_period_key,
    previous_period_key,
    validate_period_key,
)
from waterbill.services.errors import ValidationError


class TestUsage:
    """Usage is never negative."""

    def test_usage_is_difference(self):
        assert compute_usage(100, 120) == 20

    def test_sub_baseline_reading_is_clamped(self):
        """An ending reading below the start counts as zero usage."""
        assert clamp_end_reading(100, 90) == 100
        assert compute_usage(100, 90) == 0

    def test_missing_reading_means_no_usage(self):
        assert clamp_end_reading(100, None) == 100
        assert compute_usage(100, None) == 0

    @pytest.mark.parametrize("start,end", [(0, 0), (5, 3), (10, 11), (999, 1500)])
    def test_usage_never_negative(self, start, end):
        assert compute_usage(start, end) >= 0


class TestTotal:
    def test_total_formula(self):
        assert compute_total(20, 5000, 10000) == 110000

    def test_total_includes_admin_fee(self):
        assert compute_total(20, 5000, 10000, 2500) == 112500

    def test_zero_usage_charges_fees_only(self):
        assert compute_total(0, 5000, 10000, 2500) == 12500

    def test_negative_usage_rejected(self):
        with pytest.raises(ValueError):
            compute_total(-1, 5000, 10000)


class TestPeriodKeys:
    @pytest.mark.parametrize("key", ["2025-6", "25-06", "2025-13", "2025-00", "", "2025/06"])
    def test_malformed_keys_rejected(self, key):
        with pytest.raises(ValidationError):
            validate_period_key(key)

    def test_parse(self):
        assert parse_period_key("2025-06") == (2025, 6)

    def test_next_and_previous_wrap_year(self):
        assert next_period_key("2025-12") == "2026-01"
        assert previous_period_key("2026-01") == "2025-12"
        assert next_period_key("2025-06") == "2025-07"


class TestDueDate:
    def test_configured_day(self):
        assert due_date_for("2025-06", 15) == date(2025, 6, 15)

    def test_defaults_to_fifteenth(self):
        assert due_date_for("2025-06", None) == date(2025, 6, 15)

    def test_clamped_to_end_of_month(self):
        assert due_date_for("2025-02", 31) == date(2025, 2, 28)
        assert due_date_for("2024-02", 31) == date(2024, 2, 29)
