"""
Outbound SMS notifications through the Twilio REST API.

The Twilio helper library is synchronous, so each send runs in a worker thread to
keep the event loop free for the live audio relay.
"""

import asyncio
import logging
from typing import Optional

from twilio.rest import Client

from handyman_voice.config import settings
from handyman_voice.config.constants import LOGGER_NAME

logger = logging.getLogger(LOGGER_NAME)


class SmsNotifier:
    """Sends text messages from the business's Twilio number.

    When no credentials or sender number are configured the notifier is disabled:
    ``send`` logs a warning and returns None instead of raising.
    """

    def __init__(
        self,
        account_sid: Optional[str] = None,
        auth_token: Optional[str] = None,
        from_number: Optional[str] = None,
        client: Optional[Client] = None,
    ):
        account_sid = account_sid if account_sid is not None else settings.TWILIO_ACCOUNT_SID
        auth_token = auth_token if auth_token is not None else settings.TWILIO_AUTH_TOKEN
        self.from_number = (
            from_number if from_number is not None else settings.TWILIO_FROM_NUMBER
        )

        if client is None and account_sid and auth_token:
            client = Client(account_sid, auth_token)
        self._client = client

    @property
    def enabled(self) -> bool:
        return self._client is not None and bool(self.from_number)

    async def send(self, to: str, body: str) -> Optional[str]:
        """
        Send one SMS.

        Args:
            to: Destination number in E.164 format
            body: Message text

        Returns:
            The Twilio message SID, or None if the notifier is disabled

        Raises:
            twilio.base.exceptions.TwilioRestException: If Twilio rejects the message
        """
        if not self.enabled:
            logger.warning(f"SMS notifications not configured; not sending to {to}")
            return None

        message = await asyncio.to_thread(
            self._client.messages.create,
            to=to,
            from_=self.from_number,
            body=body,
        )
        logger.info(f"SMS sent to {to} (sid: {message.sid})")
        return message.sid
