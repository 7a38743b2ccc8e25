"""
Reassembly of streamed function-call arguments from the Realtime API.

The Realtime API streams a tool call's JSON arguments as text fragments spread over
several ``response.function_call_arguments.delta`` events, then signals completion
with ``response.function_call_arguments.done``. ``ToolCallReassembler`` buffers the
fragments per invocation id and hands back the complete text exactly once.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from handyman_voice.config import settings
from handyman_voice.config.constants import LOGGER_NAME
from handyman_voice.exceptions import ToolArgumentLimitError

logger = logging.getLogger(LOGGER_NAME)


@dataclass
class PendingToolCall:
    """Arguments received so far for one function invocation."""

    name: Optional[str] = None
    fragments: List[str] = field(default_factory=list)
    size: int = 0

    @property
    def text(self) -> str:
        return "".join(self.fragments)


class ToolCallReassembler:
    """
    Per-session buffer of in-flight function-call arguments, keyed by invocation id.

    Fragments are appended in arrival order; the websocket already guarantees
    per-connection ordering so no reordering is attempted. Buffered text is bounded
    per invocation and per session.
    """

    def __init__(
        self,
        max_call_chars: Optional[int] = None,
        max_session_chars: Optional[int] = None,
    ):
        self.max_call_chars = (
            max_call_chars if max_call_chars is not None else settings.MAX_TOOL_ARGUMENT_CHARS
        )
        self.max_session_chars = (
            max_session_chars
            if max_session_chars is not None
            else settings.MAX_SESSION_TOOL_ARGUMENT_CHARS
        )
        self._pending: Dict[str, PendingToolCall] = {}
        self._rejected: Dict[str, ToolArgumentLimitError] = {}
        self._session_chars = 0

    @property
    def pending_ids(self) -> List[str]:
        return list(self._pending)

    def append(self, call_id: str, name: Optional[str], fragment: str) -> None:
        """
        Append an argument fragment to the buffer for ``call_id``.

        The entry is created on first use. A name supplied with any fragment is
        recorded, since not every event in the stream carries it. Fragments for an
        invocation already rejected for size are ignored.

        Raises:
            ToolArgumentLimitError: If the invocation or the session exceeds its bound;
                the offending invocation's buffer is dropped and the id is rejected
        """
        if call_id in self._rejected:
            return

        pending = self._pending.get(call_id)
        if pending is None:
            pending = PendingToolCall(name=name)
            self._pending[call_id] = pending
            logger.debug(f"Started buffering arguments for tool call {call_id} ({name})")
        elif name and not pending.name:
            pending.name = name

        if not fragment:
            return

        if pending.size + len(fragment) > self.max_call_chars:
            raise self._reject(ToolArgumentLimitError(call_id, self.max_call_chars, "per-call"))
        if self._session_chars + len(fragment) > self.max_session_chars:
            raise self._reject(
                ToolArgumentLimitError(call_id, self.max_session_chars, "per-session")
            )

        pending.fragments.append(fragment)
        pending.size += len(fragment)
        self._session_chars += len(fragment)

    def complete(self, call_id: str) -> Optional[Tuple[Optional[str], str]]:
        """
        Remove and return the buffered invocation.

        Returns:
            ``(name, full_text)``, or None if nothing was buffered for ``call_id``

        Raises:
            ToolArgumentLimitError: If ``call_id`` was rejected for exceeding a bound
        """
        rejected = self._rejected.pop(call_id, None)
        if rejected is not None:
            raise rejected

        pending = self._pending.pop(call_id, None)
        if pending is None:
            return None
        self._session_chars -= pending.size
        return pending.name, pending.text

    def check_size(self, call_id: str, text: str) -> None:
        """
        Apply the per-invocation bound to arguments that arrived in one piece.

        Raises:
            ToolArgumentLimitError: If ``text`` is longer than ``max_call_chars``
        """
        if len(text) > self.max_call_chars:
            raise ToolArgumentLimitError(call_id, self.max_call_chars, "per-call")

    def discard_all(self) -> int:
        """Drop every pending buffer, returning how many were discarded."""
        count = len(self._pending)
        if count:
            logger.info(f"Discarding {count} incomplete tool call(s): {self.pending_ids}")
        self._pending.clear()
        self._rejected.clear()
        self._session_chars = 0
        return count

    def _reject(self, error: ToolArgumentLimitError) -> ToolArgumentLimitError:
        pending = self._pending.pop(error.call_id, None)
        if pending is not None:
            self._session_chars -= pending.size
        self._rejected[error.call_id] = error
        return error

    def __len__(self) -> int:
        return len(self._pending)
