"""
Per-call state for the handyman voice bridge.

A ``CallContext`` is created when Twilio opens the media websocket and lives exactly
as long as that call's bridge. It is passed by reference to the media relay and the
Realtime session adapter for that call; nothing indexes it from a shared table.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from handyman_voice.config.constants import UNKNOWN_CALLER


class CallState(str, Enum):
    """Lifecycle of one bridged call."""

    AWAITING_SESSION = "awaiting_session"
    BRIDGED = "bridged"
    CLOSED = "closed"


@dataclass
class CallContext:
    """Identity and lifecycle flags for one phone call.

    Attributes:
        caller: Caller phone number, or ``"unknown"`` when the platform withheld it
        stream_sid: Twilio stream identifier, recorded on the ``start`` event
        call_sid: Twilio call identifier, recorded on the ``start`` event
        created_at: When the media connection was accepted
        state: Current lifecycle state
        booking_submitted: Set once the first ``submit_booking`` call has been accepted
    """

    caller: str = UNKNOWN_CALLER
    stream_sid: Optional[str] = None
    call_sid: Optional[str] = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    state: CallState = CallState.AWAITING_SESSION
    booking_submitted: bool = False

    @property
    def has_known_caller(self) -> bool:
        return bool(self.caller) and self.caller != UNKNOWN_CALLER

    @property
    def is_closed(self) -> bool:
        return self.state == CallState.CLOSED

    def update_caller(self, caller: Optional[str]) -> None:
        """Record the caller number if one was provided."""
        if caller and caller.strip():
            self.caller = caller.strip()

    def label(self) -> str:
        """Short identifier used in log lines."""
        return self.stream_sid or self.call_sid or f"pending@{self.created_at:%H:%M:%S}"
