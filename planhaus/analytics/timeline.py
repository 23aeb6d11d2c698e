"""
Timeline adapter: task burndown series.
"""
from datetime import date, datetime, timedelta
from typing import Any, Dict, List, Optional

from .common import parse_date, utc_now
from .tasks import is_completed

DEFAULT_WINDOW_DAYS = 30


def to_burndown(
    tasks: List[Dict[str, Any]],
    from_date: Any = None,
    to_date: Any = None,
    today: Optional[date] = None,
) -> Dict[str, Any]:
    """
    Bucket tasks by creation day into open/closed counts.

    The series covers every day from ``from_date`` to ``to_date`` inclusive
    (default: 30 days either side of today), so days without tasks still
    produce a zero point. Tasks created outside the range are ignored.
    """
    if today is None:
        today = utc_now().date()
    elif isinstance(today, datetime):
        today = today.date()

    start = parse_date(from_date) or today - timedelta(days=DEFAULT_WINDOW_DAYS)
    end = parse_date(to_date) or today + timedelta(days=DEFAULT_WINDOW_DAYS)

    buckets: Dict[date, Dict[str, int]] = {}
    day = start
    while day <= end:
        buckets[day] = {'open': 0, 'closed': 0}
        day += timedelta(days=1)

    for task in tasks or []:
        created = parse_date(task.get('createdAt'))
        if created is None or created not in buckets:
            continue
        buckets[created]['closed' if is_completed(task) else 'open'] += 1

    points = [
        {'date': day.isoformat(), 'open': counts['open'], 'closed': counts['closed']}
        for day, counts in sorted(buckets.items())
    ]
    return {'points': points, 'today': today.isoformat()}
