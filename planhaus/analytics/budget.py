"""
Budget adapters: donut chart segments and budget progress.
"""
from typing import Any, Dict, List

from .common import normalize_key, parse_amount, safe_percentage

CATEGORY_COLORS = [
    '#3B82F6',  # blue-500
    '#10B981',  # emerald-500
    '#F59E0B',  # amber-500
    '#EF4444',  # red-500
    '#8B5CF6',  # violet-500
    '#06B6D4',  # cyan-500
    '#F97316',  # orange-500
    '#EC4899',  # pink-500
]

OVER_BUDGET_THRESHOLD = 100
ON_TRACK_THRESHOLD = 90


def summarize_budget_items(items: List[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Build the budget payload consumed by `to_donut` from raw budget items.

    ``total`` is the sum of estimated costs and ``spent`` the sum of actual
    costs; each item becomes one category line.
    """
    total = 0.0
    spent = 0.0
    categories = []
    for item in items or []:
        estimated = parse_amount(item.get('estimatedCost'))
        actual = parse_amount(item.get('actualCost'))
        total += estimated
        spent += actual
        categories.append({
            'name': item.get('category') or 'Other',
            'estimatedCost': str(estimated),
            'actualCost': str(actual),
        })
    return {'total': total, 'spent': spent, 'categories': categories}


def to_donut(budget_data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Transform budget data into donut-chart segments.

    Line items are grouped by category (trimmed, case-insensitive; the first
    spelling seen is displayed) and their actual costs summed. Items without
    a category are left out of the segments.
    """
    budget_data = budget_data or {}
    total = parse_amount(budget_data.get('total'))
    spent = parse_amount(budget_data.get('spent'))
    remaining = max(0.0, total - spent)

    grouped: Dict[str, Dict[str, Any]] = {}
    for item in budget_data.get('categories') or []:
        name = item.get('name')
        key = normalize_key(name)
        if not key:
            continue
        if key not in grouped:
            grouped[key] = {'name': ' '.join(str(name).split()), 'value': 0.0}
        grouped[key]['value'] += parse_amount(item.get('actualCost'))

    categories = [
        {
            'name': entry['name'],
            'value': entry['value'],
            'color': CATEGORY_COLORS[index % len(CATEGORY_COLORS)],
        }
        for index, entry in enumerate(grouped.values())
    ]

    return {'spent': spent, 'remaining': remaining, 'categories': categories}


def calculate_budget_progress(budget_data: Dict[str, Any]) -> Dict[str, Any]:
    """Percentage of the budget spent and whether it is under, on track or over."""
    budget_data = budget_data or {}
    total = parse_amount(budget_data.get('total'))
    spent = parse_amount(budget_data.get('spent'))
    if total == 0:
        return {'percentage': 0, 'status': 'on-track'}

    percentage = safe_percentage(spent, total)
    if percentage > OVER_BUDGET_THRESHOLD:
        status = 'over'
    elif percentage > ON_TRACK_THRESHOLD:
        status = 'on-track'
    else:
        status = 'under'
    return {'percentage': percentage, 'status': status}
