"""
Task adapters: status bar segments, progress and priority breakdowns.
"""
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from .common import normalize_key, parse_datetime, safe_percentage, utc_now

DUE_SOON_DAYS = 7

STATUS_COLORS = {
    'overdue': '#EF4444',  # red-500
    'due_soon': '#F59E0B',  # amber-500
    'on_track': '#10B981',  # emerald-500
    'completed': '#6B7280',  # gray-500
}

PRIORITIES = ('high', 'medium', 'low')


def is_completed(task: Dict[str, Any]) -> bool:
    return normalize_key(task.get('status')) == 'completed'


def _due_bucket(task: Dict[str, Any], now: datetime) -> str:
    """Classify an open task as overdue, due_soon or on_track."""
    due = parse_datetime(task.get('dueDate'))
    if due is None:
        return 'on_track'
    if due < now:
        return 'overdue'
    if due - now <= timedelta(days=DUE_SOON_DAYS):
        return 'due_soon'
    return 'on_track'


def to_status(tasks: List[Dict[str, Any]], now: Optional[datetime] = None) -> Dict[str, Any]:
    """Count tasks per status bucket for the task status bar."""
    now = now or utc_now()
    counts = {'overdue': 0, 'due_soon': 0, 'on_track': 0, 'completed': 0}
    for task in tasks or []:
        if is_completed(task):
            counts['completed'] += 1
        else:
            counts[_due_bucket(task, now)] += 1

    labels = (
        ('overdue', 'Overdue'),
        ('due_soon', 'Due Soon'),
        ('on_track', 'On Track'),
        ('completed', 'Completed'),
    )
    return {
        'segments': [
            {'label': label, 'value': counts[key], 'color': STATUS_COLORS[key]}
            for key, label in labels
        ]
    }


def calculate_task_progress(tasks: List[Dict[str, Any]], now: Optional[datetime] = None) -> Dict[str, Any]:
    now = now or utc_now()
    tasks = tasks or []
    total = len(tasks)
    completed = sum(1 for t in tasks if is_completed(t))
    open_buckets = [_due_bucket(t, now) for t in tasks if not is_completed(t)]
    return {
        'total': total,
        'completed': completed,
        'percentage': safe_percentage(completed, total),
        'overdue': open_buckets.count('overdue'),
        'dueSoon': open_buckets.count('due_soon'),
    }


def get_task_priority_breakdown(tasks: List[Dict[str, Any]]) -> Dict[str, int]:
    """Open tasks per priority; tasks without a known priority are 'unassigned'."""
    breakdown = {'high': 0, 'medium': 0, 'low': 0, 'unassigned': 0}
    for task in tasks or []:
        if is_completed(task):
            continue
        priority = normalize_key(task.get('priority'))
        breakdown[priority if priority in PRIORITIES else 'unassigned'] += 1
    return breakdown


def get_tasks_due_this_week(tasks: List[Dict[str, Any]], now: Optional[datetime] = None) -> List[Dict[str, Any]]:
    now = now or utc_now()
    week_from_now = now + timedelta(days=DUE_SOON_DAYS)
    due = []
    for task in tasks or []:
        if is_completed(task):
            continue
        due_date = parse_datetime(task.get('dueDate'))
        if due_date is not None and now <= due_date <= week_from_now:
            due.append(task)
    return due
