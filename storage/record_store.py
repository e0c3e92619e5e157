"""DynamoDB access for events, guests, tasks and expenses."""
import logging
from datetime import date
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional

import boto3
from boto3.dynamodb.conditions import Attr
from botocore.config import Config
from botocore.exceptions import ClientError

from processor.models import (
    Event,
    EventStatus,
    EventType,
    Expense,
    ExpenseStatus,
    Guest,
    GuestCategory,
    RsvpStatus,
    Task,
    TaskPriority,
    TaskStatus,
)

logger = logging.getLogger(__name__)


def dynamodb_resource(timeout: int = 10):
    """
    Create a DynamoDB resource with bounded connect and read timeouts.

    Args:
        timeout: Connect and read timeout in seconds

    Returns:
        boto3 DynamoDB service resource
    """
    config = Config(
        connect_timeout=timeout,
        read_timeout=timeout,
        retries={'max_attempts': 3, 'mode': 'standard'}
    )
    return boto3.resource('dynamodb', config=config)


def parse_date(value: str) -> date:
    """Parse 'YYYY-MM-DD' or a full ISO-8601 timestamp into a date."""
    return date.fromisoformat(str(value)[:10])


def _optional(item: dict, key: str) -> Optional[str]:
    return item.get(key) or None


def _drop_empty(item: Dict[str, Any]) -> Dict[str, Any]:
    return {key: value for key, value in item.items() if value is not None}


class RecordStore:
    """Reads and writes planner records, one DynamoDB table per record type."""

    def __init__(self, table_prefix: str, timeout: int = 10, dynamodb=None):
        """
        Initialize table references.

        Args:
            table_prefix: Prefix of the table names, e.g. 'event-planner'
            timeout: DynamoDB connect and read timeout in seconds
            dynamodb: Existing DynamoDB resource to reuse
        """
        self.table_prefix = table_prefix
        self.dynamodb = dynamodb or dynamodb_resource(timeout)
        self.events_table = self.dynamodb.Table(f"{table_prefix}-events")
        self.guests_table = self.dynamodb.Table(f"{table_prefix}-guests")
        self.tasks_table = self.dynamodb.Table(f"{table_prefix}-tasks")
        self.expenses_table = self.dynamodb.Table(f"{table_prefix}-expenses")
        logger.info(f"Initialized RecordStore for table prefix: {table_prefix}")

    def get_event(self, event_id: str) -> Optional[Event]:
        """Fetch a single event by id, or None if it does not exist."""
        item = self._get_item(self.events_table, event_id)
        return self._item_to_event(item) if item else None

    def get_guest(self, guest_id: str) -> Optional[Guest]:
        """Fetch a single guest by id, or None if it does not exist."""
        item = self._get_item(self.guests_table, guest_id)
        return self._item_to_guest(item) if item else None

    def list_events(self, user_id: str) -> List[Event]:
        """All events owned by a user."""
        return self._scan(self.events_table, user_id, self._item_to_event)

    def list_guests(self, user_id: str) -> List[Guest]:
        """All guests across a user's events."""
        return self._scan(self.guests_table, user_id, self._item_to_guest)

    def list_tasks(self, user_id: str) -> List[Task]:
        """All tasks across a user's events."""
        return self._scan(self.tasks_table, user_id, self._item_to_task)

    def list_expenses(self, user_id: str) -> List[Expense]:
        """All expenses across a user's events."""
        return self._scan(self.expenses_table, user_id, self._item_to_expense)

    def put_event(self, event: Event) -> None:
        """Insert or replace an event."""
        self.events_table.put_item(Item=self._event_to_item(event))

    def put_guest(self, guest: Guest) -> None:
        """Insert or replace a guest."""
        self.guests_table.put_item(Item=self._guest_to_item(guest))

    def put_task(self, task: Task) -> None:
        """Insert or replace a task."""
        self.tasks_table.put_item(Item=self._task_to_item(task))

    def put_expense(self, expense: Expense) -> None:
        """Insert or replace an expense."""
        self.expenses_table.put_item(Item=self._expense_to_item(expense))

    def _get_item(self, table, record_id: str) -> Optional[dict]:
        try:
            response = table.get_item(Key={'id': record_id})
        except ClientError as e:
            logger.error(f"Error reading {record_id} from {table.name}: {e}")
            raise
        return response.get('Item')

    def _scan(self, table, user_id: str, convert: Callable) -> list:
        """
        Scan a table for one user's records.

        Args:
            table: DynamoDB table to scan
            user_id: Owner of the records
            convert: Function turning an item into a model (None to skip)

        Returns:
            List of converted records
        """
        filter_expression = Attr('user_id').eq(user_id)

        try:
            response = table.scan(FilterExpression=filter_expression)
            items = response.get('Items', [])

            # Handle pagination
            while 'LastEvaluatedKey' in response:
                response = table.scan(
                    FilterExpression=filter_expression,
                    ExclusiveStartKey=response['LastEvaluatedKey']
                )
                items.extend(response.get('Items', []))
        except ClientError as e:
            logger.error(f"Error scanning table {table.name}: {e}")
            raise

        records = [record for record in map(convert, items) if record]
        logger.info(f"Retrieved {len(records)} records from {table.name}")
        return records

    def _item_to_event(self, item: dict) -> Optional[Event]:
        """
        Convert DynamoDB item to Event object.

        Args:
            item: DynamoDB item dictionary

        Returns:
            Event object or None if conversion fails
        """
        try:
            return Event(
                id=item['id'],
                user_id=item['user_id'],
                name=item['name'],
                description=item.get('description', ''),
                date=parse_date(item['date']),
                time=item.get('time', ''),
                location=item.get('location', ''),
                type=EventType(item['type']),
                theme=item.get('theme', ''),
                budget=float(item.get('budget', 0)),
                status=EventStatus(item['status']),
                created_at=item.get('created_at', ''),
                updated_at=item.get('updated_at', ''),
                cover_image=_optional(item, 'cover_image')
            )
        except (KeyError, ValueError) as e:
            logger.warning(f"Failed to convert item to Event: {e}")
            return None

    def _item_to_guest(self, item: dict) -> Optional[Guest]:
        try:
            return Guest(
                id=item['id'],
                event_id=item['event_id'],
                user_id=item['user_id'],
                name=item['name'],
                email=item['email'],
                category=GuestCategory(item.get('category', 'general')),
                rsvp_status=RsvpStatus(item.get('rsvp_status', 'pending')),
                invited_at=item.get('invited_at', ''),
                phone=_optional(item, 'phone'),
                responded_at=_optional(item, 'responded_at'),
                notes=_optional(item, 'notes')
            )
        except (KeyError, ValueError) as e:
            logger.warning(f"Failed to convert item to Guest: {e}")
            return None

    def _item_to_task(self, item: dict) -> Optional[Task]:
        try:
            return Task(
                id=item['id'],
                event_id=item['event_id'],
                user_id=item['user_id'],
                title=item['title'],
                description=item.get('description', ''),
                assigned_to=item.get('assigned_to', ''),
                due_date=item.get('due_date', ''),
                status=TaskStatus(item['status']),
                priority=TaskPriority(item.get('priority', 'medium')),
                category=item.get('category', ''),
                created_at=item.get('created_at', ''),
                updated_at=item.get('updated_at', '')
            )
        except (KeyError, ValueError) as e:
            logger.warning(f"Failed to convert item to Task: {e}")
            return None

    def _item_to_expense(self, item: dict) -> Optional[Expense]:
        try:
            return Expense(
                id=item['id'],
                event_id=item['event_id'],
                user_id=item['user_id'],
                title=item['title'],
                amount=float(item['amount']),
                category=item.get('category', ''),
                date=item.get('date', ''),
                status=ExpenseStatus(item['status']),
                vendor=_optional(item, 'vendor'),
                receipt=_optional(item, 'receipt'),
                notes=_optional(item, 'notes')
            )
        except (KeyError, ValueError) as e:
            logger.warning(f"Failed to convert item to Expense: {e}")
            return None

    def _event_to_item(self, event: Event) -> dict:
        return _drop_empty({
            'id': event.id,
            'user_id': event.user_id,
            'name': event.name,
            'description': event.description,
            'date': event.date.isoformat(),
            'time': event.time,
            'location': event.location,
            'type': event.type.value,
            'theme': event.theme,
            'budget': Decimal(str(event.budget)),
            'status': event.status.value,
            'created_at': event.created_at,
            'updated_at': event.updated_at,
            'cover_image': event.cover_image
        })

    def _guest_to_item(self, guest: Guest) -> dict:
        return _drop_empty({
            'id': guest.id,
            'event_id': guest.event_id,
            'user_id': guest.user_id,
            'name': guest.name,
            'email': guest.email,
            'category': guest.category.value,
            'rsvp_status': guest.rsvp_status.value,
            'invited_at': guest.invited_at,
            'phone': guest.phone,
            'responded_at': guest.responded_at,
            'notes': guest.notes
        })

    def _task_to_item(self, task: Task) -> dict:
        return _drop_empty({
            'id': task.id,
            'event_id': task.event_id,
            'user_id': task.user_id,
            'title': task.title,
            'description': task.description,
            'assigned_to': task.assigned_to,
            'due_date': task.due_date,
            'status': task.status.value,
            'priority': task.priority.value,
            'category': task.category,
            'created_at': task.created_at,
            'updated_at': task.updated_at
        })

    def _expense_to_item(self, expense: Expense) -> dict:
        return _drop_empty({
            'id': expense.id,
            'event_id': expense.event_id,
            'user_id': expense.user_id,
            'title': expense.title,
            'amount': Decimal(str(expense.amount)),
            'category': expense.category,
            'date': expense.date,
            'status': expense.status.value,
            'vendor': expense.vendor,
            'receipt': expense.receipt,
            'notes': expense.notes
        })
