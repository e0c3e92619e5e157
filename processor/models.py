"""Data models for events, guests, tasks, expenses and RSVP tokens."""
import enum
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, Optional


class EventType(str, enum.Enum):
    physical = "physical"
    virtual = "virtual"
    hybrid = "hybrid"


class EventStatus(str, enum.Enum):
    planning = "planning"
    active = "active"
    completed = "completed"
    cancelled = "cancelled"


class GuestCategory(str, enum.Enum):
    general = "general"
    vip = "vip"
    speaker = "speaker"
    volunteer = "volunteer"
    staff = "staff"


class RsvpStatus(str, enum.Enum):
    pending = "pending"
    accepted = "accepted"
    declined = "declined"
    maybe = "maybe"


class TaskStatus(str, enum.Enum):
    todo = "todo"
    in_progress = "in-progress"
    completed = "completed"


class TaskPriority(str, enum.Enum):
    low = "low"
    medium = "medium"
    high = "high"
    urgent = "urgent"


class ExpenseStatus(str, enum.Enum):
    pending = "pending"
    paid = "paid"
    overdue = "overdue"


class Period(str, enum.Enum):
    week = "week"
    month = "month"
    year = "year"


# Statuses a guest can answer with; one token is minted for each.
RESPONSE_STATUSES = (RsvpStatus.accepted, RsvpStatus.declined, RsvpStatus.maybe)


@dataclass
class Event:
    """Event owned by a single user."""
    id: str
    user_id: str
    name: str
    description: str
    date: date
    time: str
    location: str
    type: EventType
    theme: str
    budget: float
    status: EventStatus
    created_at: str
    updated_at: str
    cover_image: Optional[str] = None


@dataclass
class Guest:
    """Guest invited to one event."""
    id: str
    event_id: str
    user_id: str
    name: str
    email: str
    category: GuestCategory
    rsvp_status: RsvpStatus
    invited_at: str
    phone: Optional[str] = None
    responded_at: Optional[str] = None
    notes: Optional[str] = None


@dataclass
class Task:
    """Planning task attached to an event."""
    id: str
    event_id: str
    user_id: str
    title: str
    description: str
    assigned_to: str
    due_date: str
    status: TaskStatus
    priority: TaskPriority
    category: str
    created_at: str
    updated_at: str


@dataclass
class Expense:
    """Budget line item attached to an event."""
    id: str
    event_id: str
    user_id: str
    title: str
    amount: float
    category: str
    date: str
    status: ExpenseStatus
    vendor: Optional[str] = None
    receipt: Optional[str] = None
    notes: Optional[str] = None


@dataclass
class RsvpToken:
    """Single-use response token bound to a guest and an answer."""
    token: str
    guest_id: str
    status: RsvpStatus
    generation: int
    issued_at: str
    redeemed_at: Optional[str] = None


@dataclass
class InvitationResult:
    """Outcome of a successful invitation."""
    success: bool
    guest_id: str
    event_id: str
    generation: int
    recipient: str
    message_id: Optional[str] = None


@dataclass
class RedemptionResult:
    """Outcome of a successful token redemption."""
    guest_id: str
    status: RsvpStatus
    responded_at: str


@dataclass
class BudgetSummary:
    """Budget position of a single event."""
    event_id: str
    budget: float
    spent: float
    remaining: float
    utilization: float


@dataclass
class AnalyticsResult:
    """Statistics derived from the filtered collections."""
    total_events: int = 0
    active_events: int = 0
    completed_events: int = 0
    total_guests: int = 0
    accepted_guests: int = 0
    rsvp_rate: float = 0.0
    total_tasks: int = 0
    completed_tasks: int = 0
    task_completion_rate: float = 0.0
    total_budget: float = 0.0
    total_spent_amount: float = 0.0
    budget_utilization: float = 0.0
    remaining_budget: float = 0.0
    event_status_breakdown: Dict[str, int] = field(default_factory=dict)
    guest_category_breakdown: Dict[str, int] = field(default_factory=dict)
    rsvp_status_breakdown: Dict[str, int] = field(default_factory=dict)
    task_status_breakdown: Dict[str, int] = field(default_factory=dict)
    expense_status_breakdown: Dict[str, int] = field(default_factory=dict)
