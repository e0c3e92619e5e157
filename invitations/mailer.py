"""HTTP client for the transactional mail API."""
import logging
import time
from typing import Optional

import requests

logger = logging.getLogger(__name__)


class MailClient:
    """Sends emails through a Resend-compatible JSON API."""

    DEFAULT_API_URL = "https://api.resend.com"

    def __init__(
        self,
        api_key: str,
        sender: str,
        api_url: str = DEFAULT_API_URL,
        timeout: int = 10,
        max_retries: int = 3
    ):
        """
        Initialize the mail client.

        Args:
            api_key: Bearer key for the mail API
            sender: From address, e.g. 'Event Manager <invites@example.com>'
            api_url: Base URL of the mail API
            timeout: HTTP request timeout in seconds (default: 10)
            max_retries: Attempts before giving up (default: 3)
        """
        self.api_key = api_key
        self.sender = sender
        self.api_url = api_url.rstrip('/')
        self.timeout = timeout
        self.max_retries = max(1, max_retries)

    def send(
        self,
        to: str,
        subject: str,
        html: str,
        text: Optional[str] = None
    ) -> Optional[str]:
        """
        Send one email with retry logic.

        Args:
            to: Recipient address
            subject: Subject line
            html: HTML body
            text: Optional plain-text alternative

        Returns:
            Message id reported by the mail API, if any

        Raises:
            requests.RequestException: If the mail API rejects the request
                (4xx) or all retry attempts fail
        """
        payload = {
            'from': self.sender,
            'to': [to],
            'subject': subject,
            'html': html
        }
        if text:
            payload['text'] = text

        headers = {'Authorization': f"Bearer {self.api_key}"}
        base_delay = 1  # seconds

        for attempt in range(self.max_retries):
            try:
                logger.info(
                    f"Sending email to {to} (attempt {attempt + 1}/{self.max_retries})"
                )
                response = requests.post(
                    f"{self.api_url}/emails",
                    json=payload,
                    headers=headers,
                    timeout=self.timeout
                )
                response.raise_for_status()
                return self._message_id(response)

            except requests.RequestException as e:
                if not self._is_retryable(e):
                    logger.error(f"Mail API rejected the send: {e}")
                    raise
                if attempt < self.max_retries - 1:
                    # Calculate exponential backoff delay
                    delay = base_delay * (2 ** attempt)
                    logger.warning(
                        f"Send failed (attempt {attempt + 1}/{self.max_retries}): {e}. "
                        f"Retrying in {delay} seconds..."
                    )
                    time.sleep(delay)
                else:
                    logger.error(
                        f"All {self.max_retries} send attempts failed. Last error: {e}"
                    )
                    raise

    def _is_retryable(self, error: requests.RequestException) -> bool:
        """Timeouts, connection errors and 5xx replies are worth another try."""
        response = getattr(error, 'response', None)
        if response is None:
            return True
        return response.status_code >= 500

    def _message_id(self, response: requests.Response) -> Optional[str]:
        try:
            data = response.json()
        except ValueError:
            return None
        return data.get('id') if isinstance(data, dict) else None
