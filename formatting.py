"""
Locale-aware display helpers built on Babel: country names, currency and counts.
"""

import datetime
import functools
import logging
from typing import Dict

from babel import Locale, UnknownLocaleError
from babel.dates import format_date
from babel.numbers import format_currency, format_decimal

logger = logging.getLogger(__name__)

DATE_LABEL_PATTERN = "MMM d, y"


@functools.lru_cache(maxsize=8)
def _territory_names(locale: str) -> Dict[str, str]:
    return dict(Locale.parse(locale).territories)


def country_display_name(country_code: str, locale: str = "en") -> str:
    """Map an ISO region code to its display name, falling back to the raw code."""
    if not country_code:
        return country_code
    try:
        names = _territory_names(locale)
    except (UnknownLocaleError, ValueError) as exc:
        logger.warning("Unknown locale '%s' for region names: %s", locale, exc)
        return country_code
    return names.get(country_code.upper(), country_code)


@functools.lru_cache(maxsize=4096)
def format_date_label(value: datetime.date, locale: str = "en") -> str:
    return format_date(value, format=DATE_LABEL_PATTERN, locale=locale)


def format_usd(amount: float, locale: str = "en") -> str:
    return format_currency(amount, "USD", locale=locale)


def format_count(value: int, locale: str = "en") -> str:
    return format_decimal(value, locale=locale)
