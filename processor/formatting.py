"""Display formatting for analytics figures and status labels."""
from datetime import date
from decimal import Decimal, ROUND_CEILING, ROUND_HALF_EVEN, ROUND_HALF_UP
from typing import Dict

from processor.models import (
    AnalyticsResult,
    EventStatus,
    EventType,
    ExpenseStatus,
    GuestCategory,
    RsvpStatus,
    TaskStatus,
)

# Float noise below this precision is discarded before rounding up
NOISE_QUANTUM = Decimal('1e-9')
AMOUNT_QUANTUM = Decimal('0.001')

EVENT_STATUS_LABELS = {
    EventStatus.planning: 'Planning',
    EventStatus.active: 'Active',
    EventStatus.completed: 'Completed',
    EventStatus.cancelled: 'Cancelled',
}

GUEST_CATEGORY_LABELS = {
    GuestCategory.general: 'General',
    GuestCategory.vip: 'VIP',
    GuestCategory.speaker: 'Speakers',
    GuestCategory.volunteer: 'Volunteers',
    GuestCategory.staff: 'Staff',
}

RSVP_STATUS_LABELS = {
    RsvpStatus.pending: 'Pending',
    RsvpStatus.accepted: 'Accepted',
    RsvpStatus.declined: 'Declined',
    RsvpStatus.maybe: 'Maybe',
}

TASK_STATUS_LABELS = {
    TaskStatus.todo: 'To Do',
    TaskStatus.in_progress: 'In Progress',
    TaskStatus.completed: 'Completed',
}

EXPENSE_STATUS_LABELS = {
    ExpenseStatus.pending: 'Pending',
    ExpenseStatus.paid: 'Paid',
    ExpenseStatus.overdue: 'Overdue',
}


def round_up(value: float, decimals: int = 1) -> float:
    """
    Round a number up (towards positive infinity) to a number of decimals.

    Args:
        value: Number to round
        decimals: Number of decimal places to keep

    Returns:
        Rounded value, e.g. round_up(66.6667, 1) == 66.7
    """
    exact = Decimal(repr(float(value))).quantize(
        NOISE_QUANTUM, rounding=ROUND_HALF_EVEN
    )
    step = Decimal(1).scaleb(-decimals)
    return float(exact.quantize(step, rounding=ROUND_CEILING))


def format_percent(value: float) -> str:
    """Format a percentage rounded up to one decimal, e.g. '66.7%'."""
    return f"{round_up(value, 1):.1f}%"


def format_amount(value: float) -> str:
    """
    Format a monetary amount with grouped thousands.

    No decimal places are forced; at most three fraction digits are kept.

    Args:
        value: Amount to format

    Returns:
        Formatted string, e.g. '7,500' or '1,234.5'
    """
    amount = Decimal(repr(float(value))).quantize(
        AMOUNT_QUANTUM, rounding=ROUND_HALF_UP
    )
    if not amount:
        amount = abs(amount)

    text = f"{amount:,f}"
    if '.' in text:
        text = text.rstrip('0').rstrip('.')
    return text


def format_long_date(value: date) -> str:
    """Format a date as 'Monday, January 1, 2025'."""
    return f"{value:%A}, {value:%B} {value.day}, {value.year}"


def format_event_type(event_type: EventType) -> str:
    """Capitalize an event type for display."""
    text = event_type.value
    return text[:1].upper() + text[1:]


def _labelled(breakdown: Dict[str, int], labels: dict) -> Dict[str, int]:
    return {labels[member]: breakdown.get(member.value, 0) for member in labels}


def to_display(result: AnalyticsResult) -> Dict[str, object]:
    """
    Render analytics figures as the strings shown on screen.

    Args:
        result: Computed analytics

    Returns:
        Dictionary of display values keyed by metric name
    """
    return {
        'rsvp_rate': format_percent(result.rsvp_rate),
        'task_completion_rate': format_percent(result.task_completion_rate),
        'budget_utilization': format_percent(result.budget_utilization),
        'total_budget': format_amount(result.total_budget),
        'total_spent_amount': format_amount(result.total_spent_amount),
        'remaining_budget': format_amount(result.remaining_budget),
        'event_status_breakdown': _labelled(
            result.event_status_breakdown, EVENT_STATUS_LABELS
        ),
        'guest_category_breakdown': _labelled(
            result.guest_category_breakdown, GUEST_CATEGORY_LABELS
        ),
        'rsvp_status_breakdown': _labelled(
            result.rsvp_status_breakdown, RSVP_STATUS_LABELS
        ),
        'task_status_breakdown': _labelled(
            result.task_status_breakdown, TASK_STATUS_LABELS
        ),
        'expense_status_breakdown': _labelled(
            result.expense_status_breakdown, EXPENSE_STATUS_LABELS
        ),
    }
