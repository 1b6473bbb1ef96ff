"""Centralized locale service for currency and date formatting.

Single source of truth for how amounts and dates appear in customer
messages. Uses babel; the locale comes from the LOCALE setting (default
id_ID) and falls back to id_ID when babel does not know it.

Example:
    >>> from waterbill.services.locale_service import format_amount
    >>> format_amount(100000)
    'Rp 100.000'
"""

import logging
from datetime import date

from babel import Locale, UnknownLocaleError
from babel.dates import format_date as babel_format_date
from babel.numbers import format_currency as babel_format_currency
from babel.numbers import get_territory_currencies

from waterbill.config import get_settings

logger = logging.getLogger(__name__)

DEFAULT_LOCALE = "id_ID"
DEFAULT_CURRENCY = "IDR"


def _get_locale() -> str:
    locale_str = get_settings().locale
    try:
        Locale.parse(locale_str)
        return locale_str
    except (UnknownLocaleError, ValueError) as e:
        logger.warning("Invalid LOCALE '%s': %s. Falling back to '%s'", locale_str, e, DEFAULT_LOCALE)
        return DEFAULT_LOCALE


def _get_currency_from_locale(locale_str: str) -> str:
    try:
        territory = Locale.parse(locale_str).territory
        if territory:
            currencies = get_territory_currencies(territory)
            if currencies:
                return currencies[0]
    except (UnknownLocaleError, ValueError) as e:
        logger.warning("Could not derive currency from locale '%s': %s", locale_str, e)
    return DEFAULT_CURRENCY


def format_amount(amount: int) -> str:
    """Whole currency amount with symbol, e.g. 'Rp 100.000'."""
    locale = _get_locale()
    return babel_format_currency(
        amount,
        _get_currency_from_locale(locale),
        format="¤ #,##0",
        locale=locale,
        currency_digits=False,
    )


def format_long_date(value: date) -> str:
    """Weekday, day, month and year, e.g. 'Minggu, 15 Juni 2025'."""
    return babel_format_date(value, format="full", locale=_get_locale())


def format_month(value: date) -> str:
    """Month name and year, e.g. 'Juni 2025'."""
    return babel_format_date(value, format="LLLL yyyy", locale=_get_locale())


__all__ = ["format_amount", "format_long_date", "format_month"]
