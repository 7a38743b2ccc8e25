import asyncio
import base64
import json
import logging

import pytest
from starlette.websockets import WebSocketState

from handyman_voice.models.call_context import CallContext

_CLOSED = object()


@pytest.fixture(autouse=True)
def reset_logging():
    """Reset logging configuration before each test"""
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
    logging.basicConfig(level=logging.NOTSET)
    yield


class FakeRealtimeWebSocket:
    """Stands in for a websockets client connection to the Realtime API.

    Incoming frames are queued with ``feed``; iteration blocks until ``close``.
    """

    def __init__(self, order=None):
        self.sent = []
        self.close_code = None
        self.order = order if order is not None else []
        self._incoming = asyncio.Queue()

    def feed(self, *frames):
        for frame in frames:
            self._incoming.put_nowait(frame)

    def sent_events(self, event_type=None):
        events = [json.loads(raw) for raw in self.sent]
        if event_type is None:
            return events
        return [event for event in events if event["type"] == event_type]

    async def send(self, data):
        self.sent.append(data)

    async def close(self):
        if self.close_code is None:
            self.close_code = 1000
            self.order.append("realtime")
            self._incoming.put_nowait(_CLOSED)

    def __aiter__(self):
        return self

    async def __anext__(self):
        frame = await self._incoming.get()
        if frame is _CLOSED:
            raise StopAsyncIteration
        return frame


class FakeMediaWebSocket:
    """Stands in for the FastAPI websocket Twilio connects to ``/media-stream``.

    ``frames`` may hold text or bytes. Once they run out the socket reports a
    disconnect, unless ``hold_open`` keeps it waiting until ``close``.
    """

    def __init__(self, frames=(), query_params=None, order=None, hold_open=False):
        self.frames = list(frames)
        self.query_params = query_params or {}
        self.client_state = WebSocketState.CONNECTING
        self.sent = []
        self.accepted = False
        self.order = order if order is not None else []
        self.hold_open = hold_open
        self._released = asyncio.Event()

    async def accept(self):
        self.accepted = True
        self.client_state = WebSocketState.CONNECTED

    async def receive(self):
        if self.client_state == WebSocketState.CONNECTED:
            if self.frames:
                frame = self.frames.pop(0)
                if isinstance(frame, bytes):
                    return {"type": "websocket.receive", "bytes": frame}
                return {"type": "websocket.receive", "text": frame}
            if self.hold_open:
                await self._released.wait()
        return {"type": "websocket.disconnect", "code": 1000}

    async def send_json(self, data):
        self.sent.append(data)

    async def close(self, code=1000):
        self.client_state = WebSocketState.DISCONNECTED
        self.order.append("media")
        self._released.set()


def ulaw_frame(size=160):
    """Base64 mu-law silence, as Twilio sends every 20 ms."""
    return base64.b64encode(b"\xff" * size).decode("utf-8")


@pytest.fixture
def call_context():
    return CallContext(caller="+61400000000")


@pytest.fixture
def realtime_ws():
    return FakeRealtimeWebSocket()
