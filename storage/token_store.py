"""DynamoDB storage for RSVP response tokens and their batches."""
import logging
from typing import Dict, List, Optional

from boto3.dynamodb.conditions import Attr
from boto3.dynamodb.types import TypeSerializer
from botocore.exceptions import ClientError

from processor.errors import InvalidTokenError, NotFoundError
from processor.models import RsvpStatus, RsvpToken
from storage.record_store import dynamodb_resource

logger = logging.getLogger(__name__)

TRANSACTION_CANCELED = 'TransactionCanceledException'
# Per-item code in the CancellationReasons of a cancelled transaction
CONDITION_FAILED_REASON = 'ConditionalCheckFailed'

_serializer = TypeSerializer()


def mask_token(token: str) -> str:
    """Shorten a token for log output."""
    return f"{token[:6]}..." if token else ''


def _values(**values) -> dict:
    """Expression attribute values in the low-level DynamoDB wire format."""
    return {f':{name}': _serializer.serialize(value) for name, value in values.items()}


class TokenStore:
    """
    Stores response tokens and the per-guest batch that governs them.

    Each guest has one batch record holding the current generation and a
    claimed flag. Tokens carry the generation they were minted for, so a token
    is only redeemable while its generation is current and the batch is
    unclaimed. Issuing a new batch bumps the generation, which supersedes every
    earlier token for the guest.

    Redeeming writes the guest's answer to the guests table in the same
    transaction as the claim.
    """

    def __init__(self, table_prefix: str, timeout: int = 10, dynamodb=None):
        """
        Initialize table references.

        Args:
            table_prefix: Prefix of the table names, e.g. 'event-planner'
            timeout: DynamoDB connect and read timeout in seconds
            dynamodb: Existing DynamoDB resource to reuse
        """
        self.dynamodb = dynamodb or dynamodb_resource(timeout)
        self.tokens_table = self.dynamodb.Table(f"{table_prefix}-rsvp-tokens")
        self.batches_table = self.dynamodb.Table(f"{table_prefix}-rsvp-batches")
        self.guests_table_name = f"{table_prefix}-guests"
        self.client = self.dynamodb.meta.client
        logger.info(f"Initialized TokenStore for table prefix: {table_prefix}")

    def store_batch(
        self,
        guest_id: str,
        tokens: Dict[RsvpStatus, str],
        issued_at: str
    ) -> int:
        """
        Supersede the guest's current batch and store a new one.

        Args:
            guest_id: Guest the tokens belong to
            tokens: Mapping of response status to token string
            issued_at: ISO-8601 issue timestamp

        Returns:
            Generation number of the new batch

        Raises:
            ClientError: If any write fails or a token already exists
        """
        generation = self._next_generation(guest_id, issued_at)

        for status, token in tokens.items():
            try:
                self.tokens_table.put_item(
                    Item={
                        'token': token,
                        'guest_id': guest_id,
                        'status': status.value,
                        'generation': generation,
                        'issued_at': issued_at
                    },
                    ConditionExpression=Attr('token').not_exists()
                )
            except ClientError as e:
                logger.error(
                    f"Error storing token {mask_token(token)} for guest {guest_id}: {e}"
                )
                raise

        logger.info(
            f"Stored {len(tokens)} tokens for guest {guest_id} "
            f"(generation {generation})"
        )
        return generation

    def get_token(self, token: str) -> Optional[RsvpToken]:
        """Fetch a token record, or None if it does not exist."""
        try:
            response = self.tokens_table.get_item(Key={'token': token})
        except ClientError as e:
            logger.error(f"Error reading token {mask_token(token)}: {e}")
            raise

        item = response.get('Item')
        return self._item_to_token(item) if item else None

    def claim(self, token: str, claimed_at: str) -> RsvpToken:
        """
        Atomically claim a token's batch and record the guest's answer.

        One transaction claims the batch, sets the guest's rsvp_status and
        responded_at, and marks the token redeemed. The batch write only
        succeeds if the token's generation is the guest's current generation
        and no token of that batch was redeemed yet. If any write fails,
        nothing is written and the link stays usable.

        Args:
            token: Token string from the response link
            claimed_at: ISO-8601 redemption timestamp

        Returns:
            The claimed token record

        Raises:
            InvalidTokenError: If the token is unknown, used or superseded
            NotFoundError: If the guest no longer exists
            ClientError: If DynamoDB fails for another reason
        """
        record = self.get_token(token)
        if record is None:
            raise InvalidTokenError("Unknown RSVP token")

        try:
            self.client.transact_write_items(
                TransactItems=self._claim_items(record, claimed_at)
            )
        except ClientError as e:
            if e.response['Error']['Code'] != TRANSACTION_CANCELED:
                logger.error(f"Error claiming token {mask_token(token)}: {e}")
                raise

            # Reasons follow the item order: batch, guest, token
            reasons = [
                reason.get('Code') for reason in e.response.get('CancellationReasons', [])
            ]
            if reasons[1:2] == [CONDITION_FAILED_REASON]:
                logger.warning(f"Guest {record.guest_id} for token {mask_token(token)} is gone")
                raise NotFoundError(f"Guest {record.guest_id} not found")
            if reasons and reasons[0] != CONDITION_FAILED_REASON:
                logger.error(f"Error claiming token {mask_token(token)}: {reasons}")
                raise

            logger.warning(
                f"Rejected token {mask_token(token)} for guest "
                f"{record.guest_id}: already used or superseded"
            )
            raise InvalidTokenError("RSVP token already used or expired")

        logger.info(
            f"Guest {record.guest_id} RSVP set to '{record.status.value}' "
            f"(generation {record.generation})"
        )
        record.redeemed_at = claimed_at
        return record

    def _claim_items(self, record: RsvpToken, claimed_at: str) -> List[dict]:
        return [
            {'Update': {
                'TableName': self.batches_table.name,
                'Key': {'guest_id': _serializer.serialize(record.guest_id)},
                'UpdateExpression': (
                    'SET claimed = :true, claimed_token = :token, claimed_at = :claimed_at'
                ),
                'ConditionExpression': '#generation = :generation AND claimed = :false',
                'ExpressionAttributeNames': {'#generation': 'generation'},
                'ExpressionAttributeValues': _values(
                    true=True,
                    false=False,
                    token=record.token,
                    claimed_at=claimed_at,
                    generation=record.generation
                )
            }},
            {'Update': {
                'TableName': self.guests_table_name,
                'Key': {'id': _serializer.serialize(record.guest_id)},
                'UpdateExpression': 'SET rsvp_status = :status, responded_at = :responded_at',
                'ConditionExpression': 'attribute_exists(#id)',
                'ExpressionAttributeNames': {'#id': 'id'},
                'ExpressionAttributeValues': _values(
                    status=record.status.value,
                    responded_at=claimed_at
                )
            }},
            {'Update': {
                'TableName': self.tokens_table.name,
                'Key': {'token': _serializer.serialize(record.token)},
                'UpdateExpression': 'SET redeemed_at = :redeemed_at',
                'ExpressionAttributeValues': _values(redeemed_at=claimed_at)
            }},
        ]

    def _next_generation(self, guest_id: str, issued_at: str) -> int:
        try:
            response = self.batches_table.update_item(
                Key={'guest_id': guest_id},
                UpdateExpression=(
                    'SET generation = if_not_exists(generation, :zero) + :one, '
                    'claimed = :false, issued_at = :issued_at '
                    'REMOVE claimed_token, claimed_at'
                ),
                ExpressionAttributeValues={
                    ':zero': 0,
                    ':one': 1,
                    ':false': False,
                    ':issued_at': issued_at
                },
                ReturnValues='UPDATED_NEW'
            )
        except ClientError as e:
            logger.error(f"Error starting token batch for guest {guest_id}: {e}")
            raise

        return int(response['Attributes']['generation'])

    def _item_to_token(self, item: dict) -> Optional[RsvpToken]:
        try:
            return RsvpToken(
                token=item['token'],
                guest_id=item['guest_id'],
                status=RsvpStatus(item['status']),
                generation=int(item['generation']),
                issued_at=item.get('issued_at', ''),
                redeemed_at=item.get('redeemed_at')
            )
        except (KeyError, ValueError) as e:
            logger.warning(f"Failed to convert item to RsvpToken: {e}")
            return None
