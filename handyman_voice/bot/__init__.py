"""
Bot module bridging Twilio phone calls to the OpenAI Realtime API.

Key components:
- RealtimeSession: one WebSocket session with OpenAI's Realtime API per call. It
  configures the receptionist persona, streams caller audio in, plays assistant
  audio out, and answers the booking tool call.
- TelephonyMediaRelay: the Twilio Media Streams side of a call. It decodes Twilio
  frames, records the stream identity, and writes assistant audio back.
- CallBridge: pairs the two for one call and owns the joint teardown.
- ToolCallReassembler: rebuilds streamed function-call arguments by invocation id.

Usage examples:
```python
from fastapi import WebSocket
from handyman_voice.bot import CallBridge
from handyman_voice.services import BookingSubmitter

submitter = BookingSubmitter()

@app.websocket("/media-stream")
async def media_stream(websocket: WebSocket):
    await CallBridge(websocket, submitter).run()
```
"""

from handyman_voice.bot.call_bridge import CallBridge
from handyman_voice.bot.media_relay import TelephonyMediaRelay
from handyman_voice.bot.realtime_session import RealtimeSession
from handyman_voice.bot.tool_calls import ToolCallReassembler

__all__ = ["CallBridge", "RealtimeSession", "TelephonyMediaRelay", "ToolCallReassembler"]
