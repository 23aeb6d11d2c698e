"""
Metric adapters: pure transforms from planning collections to chart shapes.
"""

from .budget import CATEGORY_COLORS, calculate_budget_progress, summarize_budget_items, to_donut
from .tasks import (
    calculate_task_progress,
    get_task_priority_breakdown,
    get_tasks_due_this_week,
    to_status,
)
from .timeline import to_burndown
from .vendors import (
    FUNNEL_STAGES,
    get_vendor_category_breakdown,
    get_vendor_conversion_rates,
    get_vendor_cost_analysis,
    normalize_vendor_status,
    to_funnel,
)

__all__ = [
    'CATEGORY_COLORS',
    'FUNNEL_STAGES',
    'calculate_budget_progress',
    'calculate_task_progress',
    'get_task_priority_breakdown',
    'get_tasks_due_this_week',
    'get_vendor_category_breakdown',
    'get_vendor_conversion_rates',
    'get_vendor_cost_analysis',
    'normalize_vendor_status',
    'summarize_budget_items',
    'to_burndown',
    'to_donut',
    'to_funnel',
    'to_status',
]
