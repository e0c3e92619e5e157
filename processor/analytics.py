"""Analytics aggregation across events, tasks, guests and expenses."""
import logging
import math
from collections import Counter
from datetime import date
from typing import Dict, Iterable, List, Optional, Union

from processor.models import (
    AnalyticsResult,
    BudgetSummary,
    Event,
    EventStatus,
    Expense,
    ExpenseStatus,
    Guest,
    GuestCategory,
    Period,
    RsvpStatus,
    Task,
    TaskStatus,
)

logger = logging.getLogger(__name__)

ALL_STATUSES = "all"


def week_number(value: date) -> int:
    """
    Week of the year with weeks starting on Sunday.

    Computed as ceil((days_since_jan_1 + weekday_of_jan_1 + 1) / 7) with
    Sunday as weekday 0. This is not the ISO-8601 week number.

    Args:
        value: Date to number

    Returns:
        Week number, 1 for the week containing January 1
    """
    first_day = date(value.year, 1, 1)
    past_days = (value - first_day).days
    first_weekday = (first_day.weekday() + 1) % 7
    return math.ceil((past_days + first_weekday + 1) / 7)


def percentage(part: float, whole: float) -> float:
    """Ratio as a percentage, 0 when the denominator is 0."""
    if not whole:
        return 0.0
    return part / whole * 100


def _partition(values: Iterable, members) -> Dict[str, int]:
    counts = Counter(values)
    return {member.value: counts.get(member, 0) for member in members}


class AnalyticsAggregator:
    """Computes period and status filtered statistics for display."""

    def __init__(
        self,
        period: Union[Period, str] = Period.month,
        status_filter: Optional[Union[EventStatus, str]] = None
    ):
        """
        Initialize the aggregator.

        Args:
            period: Time window applied to event dates (default: month)
            status_filter: Event status to keep, or None/'all' for every status
        """
        self.period = Period(period)
        if status_filter is None or status_filter == ALL_STATUSES:
            self.status_filter = None
        else:
            self.status_filter = EventStatus(status_filter)

    def filter_events(
        self,
        events: List[Event],
        today: Optional[date] = None
    ) -> List[Event]:
        """
        Keep events in the current period matching the status filter.

        Args:
            events: All events for the user
            today: Reference date (default: current date)

        Returns:
            Filtered list of events
        """
        today = today or date.today()
        return [
            event for event in events
            if self._in_period(event.date, today) and self._status_matches(event)
        ]

    def aggregate(
        self,
        events: List[Event],
        tasks: List[Task],
        guests: List[Guest],
        expenses: List[Expense],
        today: Optional[date] = None
    ) -> AnalyticsResult:
        """
        Compute statistics over the filtered collections.

        Tasks, guests and expenses are restricted to those attached to a
        filtered event; their own dates are never consulted.

        Args:
            events: All events for the user
            tasks: All tasks for the user
            guests: All guests for the user
            expenses: All expenses for the user
            today: Reference date (default: current date)

        Returns:
            AnalyticsResult with counts, rates, totals and breakdowns
        """
        filtered_events = self.filter_events(events, today)
        event_ids = {event.id for event in filtered_events}

        filtered_tasks = [t for t in tasks if t.event_id in event_ids]
        filtered_guests = [g for g in guests if g.event_id in event_ids]
        filtered_expenses = [e for e in expenses if e.event_id in event_ids]

        event_breakdown = _partition(
            (e.status for e in filtered_events), EventStatus
        )
        rsvp_breakdown = _partition(
            (g.rsvp_status for g in filtered_guests), RsvpStatus
        )
        task_breakdown = _partition(
            (t.status for t in filtered_tasks), TaskStatus
        )

        total_guests = len(filtered_guests)
        accepted_guests = rsvp_breakdown[RsvpStatus.accepted.value]
        total_tasks = len(filtered_tasks)
        completed_tasks = task_breakdown[TaskStatus.completed.value]
        total_budget = sum((e.budget for e in filtered_events), 0.0)
        total_spent = sum((e.amount for e in filtered_expenses), 0.0)

        result = AnalyticsResult(
            total_events=len(filtered_events),
            active_events=event_breakdown[EventStatus.active.value],
            completed_events=event_breakdown[EventStatus.completed.value],
            total_guests=total_guests,
            accepted_guests=accepted_guests,
            rsvp_rate=percentage(accepted_guests, total_guests),
            total_tasks=total_tasks,
            completed_tasks=completed_tasks,
            task_completion_rate=percentage(completed_tasks, total_tasks),
            total_budget=total_budget,
            total_spent_amount=total_spent,
            budget_utilization=percentage(total_spent, total_budget),
            remaining_budget=total_budget - total_spent,
            event_status_breakdown=event_breakdown,
            guest_category_breakdown=_partition(
                (g.category for g in filtered_guests), GuestCategory
            ),
            rsvp_status_breakdown=rsvp_breakdown,
            task_status_breakdown=task_breakdown,
            expense_status_breakdown=_partition(
                (e.status for e in filtered_expenses), ExpenseStatus
            ),
        )

        logger.debug(
            f"Aggregated {result.total_events} of {len(events)} events "
            f"for period '{self.period.value}'"
        )
        return result

    def _in_period(self, event_date: date, today: date) -> bool:
        if event_date.year != today.year:
            return False
        if self.period is Period.year:
            return True
        if self.period is Period.month:
            return event_date.month == today.month
        if self.period is Period.week:
            return week_number(event_date) == week_number(today)
        raise ValueError(f"Unhandled period: {self.period}")

    def _status_matches(self, event: Event) -> bool:
        return self.status_filter is None or event.status == self.status_filter


def aggregate(
    events: List[Event],
    tasks: List[Task],
    guests: List[Guest],
    expenses: List[Expense],
    period: Union[Period, str] = Period.month,
    status_filter: Optional[Union[EventStatus, str]] = None,
    today: Optional[date] = None
) -> AnalyticsResult:
    """Compute analytics for one period and status selection."""
    aggregator = AnalyticsAggregator(period=period, status_filter=status_filter)
    return aggregator.aggregate(events, tasks, guests, expenses, today=today)


def event_budget_summary(event: Event, expenses: List[Expense]) -> BudgetSummary:
    """
    Budget, spending and remaining amount for a single event.

    Args:
        event: Event whose budget is summarized
        expenses: Expenses for any events; only this event's are counted

    Returns:
        BudgetSummary for the event
    """
    spent = sum((e.amount for e in expenses if e.event_id == event.id), 0.0)
    return BudgetSummary(
        event_id=event.id,
        budget=event.budget,
        spent=spent,
        remaining=event.budget - spent,
        utilization=percentage(spent, event.budget)
    )


def spent_by_category(
    expenses: List[Expense],
    event_id: Optional[str] = None
) -> Dict[str, float]:
    """Total spent per expense category, optionally for a single event."""
    totals: Dict[str, float] = {}
    for expense in expenses:
        if event_id is not None and expense.event_id != event_id:
            continue
        totals[expense.category] = totals.get(expense.category, 0.0) + expense.amount
    return totals
