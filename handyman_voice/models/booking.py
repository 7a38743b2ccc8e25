"""
Booking record produced by a completed ``submit_booking`` tool call.
"""

import logging
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from handyman_voice.config.constants import (
    BOOKING_FIELDS,
    LOGGER_NAME,
    MISSING_FIELD_PLACEHOLDER,
    UNKNOWN_CALLER,
)

logger = logging.getLogger(LOGGER_NAME)


class BookingRecord(BaseModel):
    """Immutable booking details captured during a call.

    Every field may be absent; the AI endpoint is asked for all five but nothing
    guarantees it supplies them.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    name: Optional[str] = Field(None, description="Customer name")
    job: Optional[str] = Field(None, description="Description of the job")
    suburb: Optional[str] = Field(None, description="Suburb or rough address")
    time: Optional[str] = Field(None, description="Preferred time for the visit")
    phone: Optional[str] = Field(None, description="Customer phone number")

    @field_validator("name", "job", "suburb", "time", "phone", mode="before")
    @classmethod
    def normalize_text(cls, v):
        """Coerce scalars to stripped strings and blank values to None."""
        if v is None:
            return None
        if not isinstance(v, str):
            v = str(v)
        v = v.strip()
        return v or None

    @classmethod
    def from_arguments(cls, arguments: Dict[str, Any]) -> "BookingRecord":
        """Build a record from parsed tool-call arguments, ignoring unknown keys."""
        unknown = set(arguments) - set(BOOKING_FIELDS)
        if unknown:
            logger.debug(f"Ignoring unexpected booking arguments: {sorted(unknown)}")
        return cls(**{key: arguments.get(key) for key in BOOKING_FIELDS})

    def with_phone_fallback(self, caller: Optional[str]) -> "BookingRecord":
        """Return a copy whose empty phone is replaced by the caller identifier."""
        if self.phone or not caller or caller == UNKNOWN_CALLER:
            return self
        return self.model_copy(update={"phone": caller})

    def display(self, field_name: str) -> str:
        """Field value for message bodies, with a neutral placeholder when absent."""
        return getattr(self, field_name) or MISSING_FIELD_PLACEHOLDER

    @property
    def has_contact_number(self) -> bool:
        return bool(self.phone) and self.phone != UNKNOWN_CALLER
