"""Exceptions raised inside the call bridge.

Every exception here is scoped to a single call: the orchestrator catches it,
tears the call down, and the server keeps serving other calls.
"""


class BridgeError(Exception):
    """Base class for call bridge errors."""


class SessionSetupError(BridgeError):
    """The OpenAI Realtime session could not be established for a call."""


class ToolArgumentLimitError(BridgeError):
    """Streamed tool-call arguments exceeded the configured buffer bound."""

    def __init__(self, call_id: str, limit: int, scope: str):
        self.call_id = call_id
        self.limit = limit
        self.scope = scope
        super().__init__(
            f"Tool call {call_id} exceeded the {scope} argument limit of {limit} characters"
        )
