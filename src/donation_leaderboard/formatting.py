"""Value formatting for leaderboard placeholders."""

import html
import re
from datetime import datetime, timedelta
from decimal import Decimal

from babel import Locale
from babel.core import UnknownLocaleError
from babel.dates import format_date, format_time, format_timedelta, get_timezone
from babel.numbers import format_currency

_SCRIPT_STYLE = re.compile(r"<(script|style)[^>]*?>.*?</\1>", re.IGNORECASE | re.DOTALL)
_TAG = re.compile(r"<[^>]*>")


def strip_tags(text: str) -> str:
    """Remove markup, including the bodies of script and style elements."""
    text = _SCRIPT_STYLE.sub("", text or "")
    return _TAG.sub("", text).strip()


def clean(text: str) -> str:
    return html.escape(strip_tags(text))


def get_initials(name: str) -> str:
    """'John Allen' -> 'J.A.'; runs of whitespace do not produce empty initials."""
    return "".join(f"{part[0].upper()}." for part in (name or "").split())


def get_company_or_name(company: str, first: str, last: str) -> str:
    """Company when set, otherwise first name plus last-name initials (John D.)."""
    company = strip_tags(company)
    if company:
        return html.escape(company)
    return html.escape(f"{strip_tags(first)} {get_initials(strip_tags(last))}")


def human_time_diff(timestamp: int, now: float, locale: str = "en_US") -> str:
    """'<span ...>3 hours</span> ago' for a timestamp in the past."""
    delta = timedelta(seconds=max(0.0, now - timestamp))
    amount = html.escape(format_timedelta(delta, locale=locale))
    return f'<span class="leaderboard-emphasized">{amount}</span> ago'


def format_amount(total: Decimal, currency: str, locale: str = "en_US") -> str:
    amount = html.escape(format_currency(total, currency, locale=locale))
    return f'<span class="leaderboard-amount">{amount}</span>'


def _localize(timestamp: int, tz: str) -> datetime:
    return datetime.fromtimestamp(timestamp, tz=get_timezone(tz))


def format_order_date(timestamp: int, date_format: str, locale: str = "en_US", tz: str = "UTC") -> str:
    return format_date(_localize(timestamp, tz).date(), format=date_format, locale=locale)


def format_order_datetime(
    timestamp: int,
    date_format: str,
    time_format: str,
    locale: str = "en_US",
    tz: str = "UTC",
) -> str:
    moment = _localize(timestamp, tz)
    date_part = format_date(moment.date(), format=date_format, locale=locale)
    time_part = format_time(moment, format=time_format, tzinfo=moment.tzinfo, locale=locale)
    return f"{date_part} {time_part}"


def country_name(code: str, locale: str = "en_US") -> str:
    """Display name for an ISO country code, or the code itself when unknown."""
    code = strip_tags(code).upper()
    if not code:
        return ""
    try:
        territories = Locale.parse(locale).territories
    except (UnknownLocaleError, ValueError):
        return code
    return territories.get(code, code)
