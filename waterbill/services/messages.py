"""Composition of customer-facing bill notifications."""

import re
from dataclasses import dataclass
from datetime import date

from waterbill.services.billing_calculator import parse_period_key
from waterbill.services.locale_service import format_amount, format_long_date, format_month
from waterbill.services.settings_service import TariffSnapshot

DEFAULT_COMPANY = "Tirtabening"
PAYMENT_CHANNELS = (
    "• Tunai di kantor kami.",
    "• Transfer bank ke rekening resmi perusahaan.",
)


@dataclass
class BillSummary:
    """Everything a reminder mentions about one finalized bill."""

    bill_id: int
    period_key: str
    customer_name: str
    start_reading: int
    end_reading: int
    usage: int
    unit_rate: int
    base_fee: int
    admin_fee: int
    total: int
    due_date: date
    issued_on: date


def normalize_phone(raw: str) -> str:
    """Digits only, local leading 0 replaced by country code 62."""
    digits = re.sub(r"\D", "", raw or "")
    return re.sub(r"^0", "62", digits)


def _period_start(period_key: str) -> date:
    year, month = parse_period_key(period_key)
    return date(year, month, 1)


def compose_bill_reminder(
    summary: BillSummary,
    tariff: TariffSnapshot | None = None,
    magic_url: str | None = None,
) -> str:
    """Reminder text sent through the gateway's /send endpoint."""
    company = (tariff.company_name if tariff else None) or DEFAULT_COMPANY
    month = format_month(_period_start(summary.period_key))

    sections = [
        "\n".join(
            [
                f"Kepada pelanggan {company} yang terhormat,\n",
                f"Tagihan Air Bulan {month}",
                f"Pelanggan: *{summary.customer_name}*",
            ]
        ),
        "\n".join(
            [
                "*Ringkasan*",
                f"• Pemakaian: {summary.usage} m³",
                f"• Total Tagihan: *{format_amount(summary.total)}*",
                f"• Batas Bayar: *{format_long_date(summary.due_date)}*",
            ]
        ),
        "\n".join(
            [
                "*Rincian*",
                f"• Meter Awal: {summary.start_reading}",
                f"• Meter Akhir: {summary.end_reading}",
                f"• Pemakaian: {summary.usage} m³",
                f"• Tarif/m³: {format_amount(summary.unit_rate)}",
                f"• Abonemen: {format_amount(summary.base_fee)}",
                f"• Biaya Admin: {format_amount(summary.admin_fee)}",
                "-----",
                f"*Total Tagihan: {format_amount(summary.total)}*",
            ]
        ),
        "\n".join(["*Informasi Pembayaran*", *PAYMENT_CHANNELS]),
    ]

    contact = [
        line
        for line in (
            f"Telepon: {tariff.phone}" if tariff and tariff.phone else None,
            f"Email: {tariff.email}" if tariff and tariff.email else None,
        )
        if line
    ]
    if contact:
        sections.append("\n".join(["*Bantuan*", *contact]))

    sections.append("Terima kasih 🙏")

    if magic_url:
        sections.append(f"Bayar/unggah bukti dengan aman via tautan berikut:\n{magic_url}")

    return "\n\n".join(section.rstrip() for section in sections)


def document_filename(bill_id: int, issued_on: date) -> str:
    """e.g. INV/20250701/000042.pdf"""
    return f"INV/{issued_on.strftime('%Y%m%d')}/{str(bill_id)[-6:].zfill(6)}.pdf"


def document_caption(period_key: str, customer_name: str) -> str:
    return f"Tagihan Air Periode {format_month(_period_start(period_key))} - {customer_name}"


__all__ = [
    "BillSummary",
    "normalize_phone",
    "compose_bill_reminder",
    "document_filename",
    "document_caption",
]
