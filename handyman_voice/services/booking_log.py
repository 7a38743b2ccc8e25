"""
Append-only CSV log of submitted bookings, one row per booking.
"""

import asyncio
import csv
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from handyman_voice.config import settings
from handyman_voice.config.constants import LOGGER_NAME
from handyman_voice.models.booking import BookingRecord

logger = logging.getLogger(LOGGER_NAME)

COLUMNS = [
    "logged_at",
    "caller",
    "name",
    "job",
    "suburb",
    "time",
    "phone",
    "customer_notified",
    "operator_notified",
]


class BookingLog:
    """Spreadsheet-style log of bookings written to a CSV file."""

    def __init__(self, path: Optional[Path] = None):
        self.path = Path(path) if path is not None else settings.BOOKINGS_LOG_PATH

    async def append(
        self,
        record: BookingRecord,
        caller: str,
        customer_notified: Optional[bool],
        operator_notified: Optional[bool],
    ) -> None:
        row = {
            "logged_at": datetime.now(timezone.utc).isoformat(),
            "caller": caller,
            "name": record.name or "",
            "job": record.job or "",
            "suburb": record.suburb or "",
            "time": record.time or "",
            "phone": record.phone or "",
            "customer_notified": _outcome(customer_notified),
            "operator_notified": _outcome(operator_notified),
        }
        await asyncio.to_thread(self._write_row, row)
        logger.debug(f"Booking logged to {self.path}")

    def _write_row(self, row: dict) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        write_header = not self.path.exists() or self.path.stat().st_size == 0
        with self.path.open("a", newline="", encoding="utf-8") as f:
            writer = csv.DictWriter(f, fieldnames=COLUMNS)
            if write_header:
                writer.writeheader()
            writer.writerow(row)


def _outcome(sent: Optional[bool]) -> str:
    if sent is None:
        return "skipped"
    return "sent" if sent else "failed"
