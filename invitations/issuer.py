"""Invitation issuing and RSVP token redemption."""
import logging
import secrets
from datetime import datetime, timezone
from typing import Dict, Tuple

import requests
from botocore.exceptions import BotoCoreError, ClientError

from invitations.mailer import MailClient
from invitations.templates import INVITATION_SUBJECT, html_to_text, render_invitation
from processor.errors import (
    DispatchError,
    InvalidTokenError,
    IssuerError,
    NotFoundError,
    PersistenceError,
)
from processor.models import (
    RESPONSE_STATUSES,
    Event,
    Guest,
    InvitationResult,
    RedemptionResult,
    RsvpStatus,
)
from storage.record_store import RecordStore
from storage.token_store import TokenStore, mask_token

logger = logging.getLogger(__name__)

STORAGE_ERRORS = (ClientError, BotoCoreError)


def utc_now() -> str:
    """Current time as an ISO-8601 UTC timestamp."""
    return datetime.now(timezone.utc).isoformat()


class InvitationIssuer:
    """
    Issues invitation emails with single-use RSVP links.

    Issuing runs lookup, token persistence and email dispatch in that order;
    a failure in one phase raises the matching IssuerError and no later phase
    runs.
    """

    TOKEN_BYTES = 32

    def __init__(
        self,
        records: RecordStore,
        tokens: TokenStore,
        mailer: MailClient,
        rsvp_base_url: str
    ):
        """
        Initialize the issuer with its collaborators.

        Args:
            records: Store for guests and events
            tokens: Store for response tokens
            mailer: Client used to send the invitation
            rsvp_base_url: Base URL that serves /rsvp-response
        """
        self.records = records
        self.tokens = tokens
        self.mailer = mailer
        self.rsvp_base_url = rsvp_base_url

    def issue(self, guest_id: str, event_id: str, user_id: str) -> InvitationResult:
        """
        Mint a token batch for a guest and email them the invitation.

        Any earlier batch for the guest is superseded and its links stop
        working.

        Args:
            guest_id: Guest to invite
            event_id: Event the guest is invited to
            user_id: Authenticated caller; must own the guest and the event

        Returns:
            InvitationResult describing the sent invitation

        Raises:
            NotFoundError: If the guest or event does not exist or belongs
                to another user
            PersistenceError: If the tokens could not be stored
            DispatchError: If the email could not be sent
        """
        guest, event = self._lookup(guest_id, event_id, user_id)

        tokens = self.mint_tokens()
        try:
            generation = self.tokens.store_batch(guest.id, tokens, utc_now())
        except STORAGE_ERRORS as e:
            raise PersistenceError(f"Failed to store RSVP tokens: {e}") from e

        html = render_invitation(event, guest, tokens, self.rsvp_base_url)
        subject = INVITATION_SUBJECT.format(name=event.name)

        try:
            message_id = self.mailer.send(
                to=guest.email,
                subject=subject,
                html=html,
                text=html_to_text(html)
            )
        except requests.RequestException as e:
            raise DispatchError(f"Failed to send invitation email: {e}") from e

        logger.info(
            f"Sent invitation to {guest.email} for event {event.name}",
            extra={'guest_id': guest.id, 'event_id': event.id, 'generation': generation}
        )
        return InvitationResult(
            success=True,
            guest_id=guest.id,
            event_id=event.id,
            generation=generation,
            recipient=guest.email,
            message_id=message_id
        )

    def redeem(self, token: str) -> RedemptionResult:
        """
        Record the answer bound to a response token.

        Claiming a token invalidates every token of its batch, so at most one
        link per invitation takes effect. The claim and the guest update
        commit together; if either fails the link stays usable.

        Args:
            token: Token from the response link

        Returns:
            RedemptionResult with the guest and the recorded status

        Raises:
            InvalidTokenError: If the token is unknown, used or superseded
            NotFoundError: If the guest no longer exists
        """
        if not token:
            raise InvalidTokenError("Missing RSVP token")

        responded_at = utc_now()
        try:
            record = self.tokens.claim(token, responded_at)
        except STORAGE_ERRORS as e:
            raise IssuerError(f"Failed to record RSVP response: {e}", phase="redeem") from e

        logger.info(
            f"Redeemed token {mask_token(token)}: guest {record.guest_id} "
            f"is '{record.status.value}'"
        )
        return RedemptionResult(
            guest_id=record.guest_id,
            status=record.status,
            responded_at=responded_at
        )

    def mint_tokens(self) -> Dict[RsvpStatus, str]:
        """Generate one unguessable token per response status."""
        return {
            status: secrets.token_urlsafe(self.TOKEN_BYTES)
            for status in RESPONSE_STATUSES
        }

    def _lookup(self, guest_id: str, event_id: str, user_id: str) -> Tuple[Guest, Event]:
        try:
            guest = self.records.get_guest(guest_id)
            event = self.records.get_event(event_id)
        except STORAGE_ERRORS as e:
            raise IssuerError(f"Failed to read guest or event: {e}", phase="lookup") from e

        # Records of other users are reported as missing
        if guest is None or guest.user_id != user_id:
            raise NotFoundError(f"Guest {guest_id} not found")
        if event is None or event.user_id != user_id:
            raise NotFoundError(f"Event {event_id} not found")
        if guest.event_id != event.id:
            raise NotFoundError(f"Guest {guest_id} is not invited to event {event_id}")
        return guest, event
