"""
Booking submission: notify the customer and the operator, then log the booking.

Submission is a side effect of the live call but never feeds back into it. Every
failure is logged here and swallowed at this boundary so a Twilio outage or a full
disk cannot end a caller's conversation.
"""

import asyncio
import logging
from typing import Optional, Set

from handyman_voice.config import settings
from handyman_voice.config.constants import LOGGER_NAME
from handyman_voice.models.booking import BookingRecord
from handyman_voice.services.booking_log import BookingLog
from handyman_voice.services.notifications import SmsNotifier

logger = logging.getLogger(LOGGER_NAME)


def compose_customer_message(record: BookingRecord) -> str:
    return (
        f"Thanks {record.display('name')}! We've got your handyman booking: "
        f"{record.display('job')} in {record.display('suburb')}, "
        f"preferred time {record.display('time')}. "
        "We'll be in touch shortly to confirm."
    )


def compose_operator_message(record: BookingRecord, caller: str) -> str:
    return (
        f"New handyman lead: {record.display('name')} ({record.display('phone')}). "
        f"Job: {record.display('job')}. Suburb: {record.display('suburb')}. "
        f"Preferred time: {record.display('time')}. Caller ID: {caller}."
    )


class BookingSubmitter:
    """
    Dispatches a completed booking to the customer, the operator and the booking log.

    The two notifications are independent: one failing, or being skipped, never
    prevents the other from being attempted.
    """

    def __init__(
        self,
        notifier: Optional[SmsNotifier] = None,
        booking_log: Optional[BookingLog] = None,
        operator_number: Optional[str] = None,
    ):
        self.notifier = notifier or SmsNotifier()
        self.booking_log = booking_log or BookingLog()
        self.operator_number = (
            operator_number if operator_number is not None else settings.OPERATOR_PHONE_NUMBER
        )
        self._tasks: Set[asyncio.Task] = set()

    async def submit(self, record: BookingRecord, caller: str) -> None:
        """
        Notify both recipients and log the booking.

        Args:
            record: The booking captured from the conversation
            caller: The caller identifier from the call context, used when the
                booking carries no phone number
        """
        record = record.with_phone_fallback(caller)

        if record.has_contact_number:
            customer = self._notify("customer", record.phone, compose_customer_message(record))
        else:
            logger.warning("No phone number for this booking; skipping customer confirmation")
            customer = _skipped()

        if self.operator_number:
            operator = self._notify(
                "operator", self.operator_number, compose_operator_message(record, caller)
            )
        else:
            logger.warning("OPERATOR_PHONE_NUMBER not set; skipping operator notification")
            operator = _skipped()

        customer_sent, operator_sent = await asyncio.gather(customer, operator)

        try:
            await self.booking_log.append(record, caller, customer_sent, operator_sent)
        except OSError as e:
            logger.error(f"Failed to write booking log: {e}")

        logger.info(
            f"Booking for {record.display('name')} processed "
            f"(customer: {customer_sent}, operator: {operator_sent})"
        )

    def submit_in_background(self, record: BookingRecord, caller: str) -> asyncio.Task:
        """Schedule ``submit`` without waiting for it; the call carries on immediately."""
        task = asyncio.create_task(self._submit_safely(record, caller))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def drain(self) -> None:
        """Wait for in-flight background submissions, e.g. at server shutdown."""
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

    async def _notify(self, recipient: str, to: str, body: str) -> Optional[bool]:
        try:
            sid = await self.notifier.send(to, body)
        except Exception as e:
            logger.error(f"Failed to notify {recipient} at {to}: {e}")
            return False
        return None if sid is None else True

    async def _submit_safely(self, record: BookingRecord, caller: str) -> None:
        try:
            await self.submit(record, caller)
        except Exception as e:
            logger.error(f"Booking submission failed: {e}", exc_info=True)


async def _skipped() -> None:
    return None
