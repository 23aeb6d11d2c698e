"""
Coercion helpers shared by the metric adapters.

Every helper here is total: malformed input degrades to a safe default
instead of raising, so adapters built on top of them never throw.
"""
import math
from datetime import date, datetime, timezone
from typing import Any, Optional


def parse_amount(value: Any) -> float:
    """Parse a decimal string (or number) into a finite float, defaulting to 0."""
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        amount = float(str(value).strip().replace(',', '').lstrip('$'))
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(amount):
        return 0.0
    return amount


def safe_percentage(numerator: float, denominator: float) -> float:
    """numerator / denominator * 100, or 0 when the denominator is 0."""
    if not denominator:
        return 0.0
    return numerator * 100 / denominator


def normalize_key(value: Any) -> str:
    """Grouping key for free-text categories and statuses."""
    if value is None:
        return ''
    return ' '.join(str(value).split()).casefold()


def utc_now() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_datetime(value: Any) -> Optional[datetime]:
    """Parse ISO strings, dates and datetimes into naive UTC datetimes."""
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    else:
        try:
            parsed = datetime.fromisoformat(str(value).strip().replace('Z', '+00:00'))
        except ValueError:
            return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def parse_date(value: Any) -> Optional[date]:
    parsed = parse_datetime(value)
    return parsed.date() if parsed else None
