"""
Vendor adapters: booking funnel, category and cost breakdowns.
"""
from typing import Any, Dict, List

from .common import normalize_key, parse_amount, safe_percentage

FUNNEL_STAGES = ['researching', 'contacted', 'quote_received', 'contract_sent', 'booked']
CANCELLED = 'cancelled'

STAGE_LABELS = {
    'researching': 'Researching',
    'contacted': 'Contacted',
    'quote_received': 'Quote Received',
    'contract_sent': 'Contract Sent',
    'booked': 'Booked',
}

STAGE_COLORS = {
    'researching': '#6B7280',  # gray-500
    'contacted': '#3B82F6',  # blue-500
    'quote_received': '#F59E0B',  # amber-500
    'contract_sent': '#8B5CF6',  # violet-500
    'booked': '#10B981',  # emerald-500
}

# Older status spellings still found in stored vendors
STATUS_ALIASES = {
    'pending': 'researching',
    'not_contacted': 'researching',
    'shortlisted': 'quote_received',
    'quoted': 'quote_received',
    'confirmed': 'booked',
    'declined': CANCELLED,
    'canceled': CANCELLED,
}


def normalize_vendor_status(status: Any) -> str:
    key = normalize_key(status).replace(' ', '_').replace('-', '_')
    return STATUS_ALIASES.get(key, key)


def _stage_counts(vendors: List[Dict[str, Any]]) -> Dict[str, int]:
    counts = {stage: 0 for stage in FUNNEL_STAGES + [CANCELLED]}
    for vendor in vendors or []:
        status = normalize_vendor_status(vendor.get('status'))
        if status in counts:
            counts[status] += 1
    return counts


def to_funnel(vendors: List[Dict[str, Any]]) -> Dict[str, Any]:
    """Count vendors per funnel stage, stages in pipeline order."""
    counts = _stage_counts(vendors)
    return {
        'stages': [
            {
                'key': stage,
                'label': STAGE_LABELS[stage],
                'value': counts[stage],
                'color': STAGE_COLORS[stage],
            }
            for stage in FUNNEL_STAGES
        ],
        'cancelled': counts[CANCELLED],
    }


def get_vendor_category_breakdown(vendors: List[Dict[str, Any]]) -> Dict[str, int]:
    breakdown: Dict[str, int] = {}
    names: Dict[str, str] = {}
    for vendor in vendors or []:
        raw = vendor.get('category')
        key = normalize_key(raw)
        if key not in names:
            names[key] = ' '.join(str(raw).split()) if key else 'Other'
        label = names[key]
        breakdown[label] = breakdown.get(label, 0) + 1
    return breakdown


def get_vendor_cost_analysis(vendors: List[Dict[str, Any]]) -> Dict[str, Any]:
    booked = [v for v in vendors or [] if normalize_vendor_status(v.get('status')) == 'booked']
    total_estimated = sum(parse_amount(v.get('estimatedCost') or v.get('quote')) for v in booked)
    total_actual = sum(parse_amount(v.get('actualCost')) for v in booked)
    return {
        'totalEstimated': total_estimated,
        'totalActual': total_actual,
        'variance': total_actual - total_estimated,
        'bookedVendors': len(booked),
    }


def get_vendor_conversion_rates(vendors: List[Dict[str, Any]]) -> Dict[str, float]:
    """
    Stage-to-stage conversion, counting a vendor as having reached every
    stage up to its current one.
    """
    counts = _stage_counts(vendors)

    def reached(stage: str) -> int:
        index = FUNNEL_STAGES.index(stage)
        return sum(counts[s] for s in FUNNEL_STAGES[index:])

    return {
        'contactedToQuoted': safe_percentage(reached('quote_received'), reached('contacted')),
        'quotedToBooked': safe_percentage(reached('booked'), reached('quote_received')),
        'overallConversion': safe_percentage(counts['booked'], len(vendors or [])),
    }
