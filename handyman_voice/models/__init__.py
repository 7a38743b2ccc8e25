"""
Models module for data structures and per-call state in the handyman voice bridge.

Key components:
- call_context: ``CallContext`` and ``CallState``, the per-call identity and
  lifecycle record shared by both legs of one bridged call.
- booking: ``BookingRecord``, the immutable payload of a ``submit_booking`` tool call.
- twilio_schemas: Pydantic models for Twilio Media Streams messages, decoded once at
  the websocket boundary.
- realtime_events: Pydantic models for OpenAI Realtime API server and client events.

Usage examples:
```python
from handyman_voice.models.twilio_schemas import parse_twilio_message

message = parse_twilio_message('{"event": "start", "start": {"streamSid": "MZ123"}}')
print(message.stream_sid)

from handyman_voice.models.booking import BookingRecord

record = BookingRecord.from_arguments({"name": "Sam", "job": "leaky tap"})
record = record.with_phone_fallback("+61412345678")
```
"""

from handyman_voice.models.booking import BookingRecord
from handyman_voice.models.call_context import CallContext, CallState
from handyman_voice.models.realtime_events import (
    FunctionCallArgumentsDeltaEvent,
    FunctionCallArgumentsDoneEvent,
    RealtimeEvent,
    SessionUpdateEvent,
    parse_realtime_event,
)
from handyman_voice.models.twilio_schemas import (
    MediaMessage,
    StartMessage,
    StopMessage,
    TwilioMessage,
    parse_twilio_message,
)
