"""Locale service for amount and date formatting and the billing calendar.

Amounts are rendered with babel for the configured locale and currency.
Billing months are counted on the calendar of the configured zone, so a
payment made just after local midnight belongs to the new local month even
though the stored UTC timestamp still falls on the previous day.
"""

import logging
from datetime import date, datetime, timezone, tzinfo
from decimal import Decimal

from babel import Locale, UnknownLocaleError
from babel.dates import LOCALTZ, get_timezone
from babel.dates import format_date as babel_format_date
from babel.numbers import format_currency as babel_format_currency
from babel.numbers import format_decimal

from society_portal.config import get_settings

logger = logging.getLogger(__name__)

DEFAULT_LOCALE = "en_IN"
DATE_FORMAT = "dd/MM/yyyy"


def get_locale(name: str | None = None) -> str:
    """Get a validated locale name.

    Args:
        name: Locale name (default: configured locale)

    Returns:
        The locale name, or DEFAULT_LOCALE if babel does not know it
    """
    name = name or get_settings().locale
    try:
        Locale.parse(name)
        return name
    except (UnknownLocaleError, ValueError):
        logger.warning(f"Invalid locale '{name}', falling back to {DEFAULT_LOCALE}")
        return DEFAULT_LOCALE


def get_local_timezone(name: str | None = None) -> tzinfo:
    """Get the billing timezone.

    Args:
        name: IANA zone name (default: configured zone; empty means system zone)

    Returns:
        tzinfo for the zone, or the system zone if the name is unknown
    """
    name = get_settings().timezone if name is None else name
    if not name:
        return LOCALTZ
    try:
        return get_timezone(name)
    except LookupError:
        logger.warning(f"Unknown timezone '{name}', using system timezone")
        return LOCALTZ


def to_local_date(value: date | datetime, tz: tzinfo | None = None) -> date:
    """Calendar date of a timestamp in the billing timezone.

    Naive datetimes are stored UTC. Plain dates are returned unchanged.
    """
    if not isinstance(value, datetime):
        return value
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(tz or get_local_timezone()).date()


def format_amount(
    amount: Decimal | float | int,
    currency: str | None = None,
    locale: str | None = None,
    include_symbol: bool = True,
) -> str:
    """Format an amount for display.

    Args:
        amount: Amount in major units
        currency: ISO currency code (default: configured currency)
        locale: Locale name (default: configured locale)
        include_symbol: Prefix the currency symbol

    Returns:
        Formatted amount, e.g. "₹1,800.00" for en_IN
    """
    locale = get_locale(locale)
    if not include_symbol:
        return format_decimal(float(amount), format="#,##0.00", locale=locale)
    return babel_format_currency(
        float(amount), currency or get_settings().currency, locale=locale
    )


def format_local_date(
    value: date | datetime,
    format: str = DATE_FORMAT,
    tz: tzinfo | None = None,
    locale: str | None = None,
) -> str:
    """Format a stored timestamp as a date in the billing timezone."""
    return babel_format_date(to_local_date(value, tz), format=format, locale=get_locale(locale))


__all__ = [
    "DATE_FORMAT",
    "format_amount",
    "format_local_date",
    "get_local_timezone",
    "get_locale",
    "to_local_date",
]
