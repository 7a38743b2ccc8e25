import asyncio
import csv
from unittest.mock import AsyncMock, MagicMock

import pytest

from handyman_voice.models.booking import BookingRecord
from handyman_voice.services.booking_log import BookingLog
from handyman_voice.services.booking_submission import (
    BookingSubmitter,
    compose_customer_message,
    compose_operator_message,
)
from handyman_voice.services.notifications import SmsNotifier

OPERATOR = "+61400000999"


@pytest.fixture
def notifier():
    mock = MagicMock(spec=SmsNotifier)
    mock.send = AsyncMock(return_value="SM123")
    return mock


@pytest.fixture
def booking_log(tmp_path):
    return BookingLog(tmp_path / "bookings.csv")


@pytest.fixture
def full_record():
    return BookingRecord(
        name="Sam", job="leaky tap", suburb="Sunbury", time="tomorrow 3pm", phone="+61412345678"
    )


def read_rows(log):
    with log.path.open(newline="", encoding="utf-8") as f:
        return list(csv.DictReader(f))


def test_messages_use_placeholders():
    record = BookingRecord(name="Sam")
    assert "not provided" in compose_customer_message(record)
    operator_message = compose_operator_message(record, "+61412345678")
    assert "Sam" in operator_message
    assert "+61412345678" in operator_message


@pytest.mark.asyncio
class TestBookingSubmitter:

    async def test_notifies_customer_and_operator(self, notifier, booking_log, full_record):
        submitter = BookingSubmitter(notifier, booking_log, operator_number=OPERATOR)

        await submitter.submit(full_record, "+61412345678")

        recipients = [c.args[0] for c in notifier.send.await_args_list]
        assert sorted(recipients) == sorted(["+61412345678", OPERATOR])
        rows = read_rows(booking_log)
        assert rows[0]["name"] == "Sam"
        assert rows[0]["customer_notified"] == "sent"
        assert rows[0]["operator_notified"] == "sent"

    async def test_operator_notified_when_customer_send_fails(self, notifier, booking_log, full_record):
        async def send(to, body):
            if to == full_record.phone:
                raise RuntimeError("Twilio rejected the number")
            return "SM456"

        notifier.send = AsyncMock(side_effect=send)
        submitter = BookingSubmitter(notifier, booking_log, operator_number=OPERATOR)

        await submitter.submit(full_record, "+61412345678")

        assert notifier.send.await_count == 2
        row = read_rows(booking_log)[0]
        assert row["customer_notified"] == "failed"
        assert row["operator_notified"] == "sent"

    async def test_customer_notified_when_operator_send_fails(self, notifier, booking_log, full_record):
        async def send(to, body):
            if to == OPERATOR:
                raise RuntimeError("network down")
            return "SM789"

        notifier.send = AsyncMock(side_effect=send)
        submitter = BookingSubmitter(notifier, booking_log, operator_number=OPERATOR)

        await submitter.submit(full_record, "+61412345678")

        row = read_rows(booking_log)[0]
        assert row["customer_notified"] == "sent"
        assert row["operator_notified"] == "failed"

    async def test_phone_backfilled_from_caller(self, notifier, booking_log):
        submitter = BookingSubmitter(notifier, booking_log, operator_number=OPERATOR)

        await submitter.submit(BookingRecord(name="Sam", job="tap"), "+61412345678")

        recipients = [c.args[0] for c in notifier.send.await_args_list]
        assert "+61412345678" in recipients
        assert read_rows(booking_log)[0]["phone"] == "+61412345678"

    async def test_customer_skipped_without_any_number(self, notifier, booking_log):
        submitter = BookingSubmitter(notifier, booking_log, operator_number=OPERATOR)

        await submitter.submit(BookingRecord(name="Sam", job="tap"), "unknown")

        notifier.send.assert_awaited_once()
        assert notifier.send.await_args.args[0] == OPERATOR
        row = read_rows(booking_log)[0]
        assert row["customer_notified"] == "skipped"
        assert row["operator_notified"] == "sent"

    async def test_operator_skipped_when_not_configured(self, notifier, booking_log, full_record):
        submitter = BookingSubmitter(notifier, booking_log, operator_number="")

        await submitter.submit(full_record, "+61412345678")

        notifier.send.assert_awaited_once()
        assert read_rows(booking_log)[0]["operator_notified"] == "skipped"

    async def test_log_failure_is_swallowed(self, notifier, full_record):
        booking_log = MagicMock(spec=BookingLog)
        booking_log.append = AsyncMock(side_effect=OSError("disk full"))
        submitter = BookingSubmitter(notifier, booking_log, operator_number=OPERATOR)

        await submitter.submit(full_record, "+61412345678")

        assert notifier.send.await_count == 2

    async def test_submit_in_background_and_drain(self, notifier, booking_log, full_record):
        submitter = BookingSubmitter(notifier, booking_log, operator_number=OPERATOR)

        task = submitter.submit_in_background(full_record, "+61412345678")
        assert isinstance(task, asyncio.Task)
        await submitter.drain()

        assert task.done()
        assert notifier.send.await_count == 2

    async def test_background_failure_does_not_raise(self, notifier, booking_log, full_record):
        submitter = BookingSubmitter(notifier, booking_log, operator_number=OPERATOR)
        submitter.submit = AsyncMock(side_effect=RuntimeError("boom"))

        task = submitter.submit_in_background(full_record, "+61412345678")
        await task

        assert task.exception() is None
