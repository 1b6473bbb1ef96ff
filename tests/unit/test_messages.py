"""Tests for reminder text, document naming and amount formatting."""

from datetime import date

from waterbill.services.locale_service import format_amount, format_month
from waterbill.services.messages import (
    BillSummary,
    compose_bill_reminder,
    document_caption,
    document_filename,
    normalize_phone,
)
from waterbill.services.settings_service import TariffSnapshot


def _summary(**overrides):
    values = dict(
        bill_id=42,
        period_key="2025-06",
        customer_name="Budi Santoso",
        start_reading=100,
        end_reading=120,
        usage=20,
        unit_rate=5000,
        base_fee=10000,
        admin_fee=2500,
        total=112500,
        due_date=date(2025, 6, 15),
        issued_on=date(2025, 7, 1),
    )
    values.update(overrides)
    return BillSummary(**values)


def _tariff(**overrides):
    values = dict(
        version=1,
        unit_rate=5000,
        base_fee=10000,
        admin_fee=2500,
        due_day=15,
        late_fee_tier1=5000,
        late_fee_tier2=10000,
        company_name="Tirta Sejahtera",
        phone="0215550100",
        email=None,
    )
    values.update(overrides)
    return TariffSnapshot(**values)


class TestNormalizePhone:
    def test_local_prefix_becomes_country_code(self):
        assert normalize_phone("0812-3456-7890") == "6281234567890"

    def test_international_number_kept(self):
        assert normalize_phone("+62 812 3456 7890") == "6281234567890"

    def test_empty(self):
        assert normalize_phone("") == ""


class TestReminder:
    def test_contains_summary_and_breakdown(self):
        text = compose_bill_reminder(_summary(), _tariff())

        assert "Tirta Sejahtera" in text
        assert "Budi Santoso" in text
        assert "Pemakaian: 20 m³" in text
        assert "112.500" in text
        assert "Meter Awal: 100" in text
        assert "Meter Akhir: 120" in text
        assert "Telepon: 0215550100" in text
        assert "Email:" not in text

    def test_magic_link_appended_last(self):
        url = "https://air.example.com/api/auth/magic?token=abc"
        text = compose_bill_reminder(_summary(), _tariff(), magic_url=url)

        assert text.endswith(url)

    def test_without_tariff_uses_default_company_and_no_contacts(self):
        text = compose_bill_reminder(_summary())

        assert "*Bantuan*" not in text
        assert "Terima kasih" in text


class TestDocument:
    def test_filename_pads_bill_id(self):
        assert document_filename(42, date(2025, 7, 1)) == "INV/20250701/000042.pdf"

    def test_filename_keeps_last_six_digits(self):
        assert document_filename(12345678, date(2025, 7, 1)) == "INV/20250701/345678.pdf"

    def test_caption(self):
        caption = document_caption("2025-06", "Budi Santoso")

        assert caption.startswith("Tagihan Air Periode ")
        assert caption.endswith(" - Budi Santoso")
        assert "2025" in caption


class TestLocale:
    def test_amount_uses_grouping_without_decimals(self):
        formatted = format_amount(100000)

        assert "100.000" in formatted
        assert ",00" not in formatted

    def test_month_name(self):
        assert "2025" in format_month(date(2025, 6, 1))
