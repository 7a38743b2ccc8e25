"""
Relay for the Twilio Media Streams websocket of one phone call.

Twilio opens this websocket against the bridge after the inbound-call webhook
answers with ``<Connect><Stream>``. The relay decodes each frame once, records the
stream identity into the call context, forwards caller audio to the Realtime
session, and writes assistant audio back to Twilio.
"""

import logging
from typing import Any, Awaitable, Callable, Dict, Optional

from fastapi import WebSocket
from fastapi.websockets import WebSocketDisconnect
from starlette.websockets import WebSocketState

from handyman_voice.bot.realtime_session import RealtimeSession
from handyman_voice.config.constants import (
    LOGGER_NAME,
    TWILIO_EVENT_CONNECTED,
    TWILIO_EVENT_DTMF,
    TWILIO_EVENT_MARK,
    TWILIO_EVENT_MEDIA,
    TWILIO_EVENT_START,
    TWILIO_EVENT_STOP,
)
from handyman_voice.models.call_context import CallContext
from handyman_voice.models.twilio_schemas import (
    ConnectedMessage,
    DTMFMessage,
    MarkMessage,
    MediaMessage,
    MediaPayload,
    OutgoingClearMessage,
    OutgoingMediaMessage,
    StartMessage,
    StopMessage,
    parse_twilio_message,
)

logger = logging.getLogger(LOGGER_NAME)

StopCallback = Callable[[], Awaitable[None]]


class TelephonyMediaRelay:
    """
    Handles the Twilio side of one bridged call.

    The relay never closes either connection itself: a ``stop`` event is handed to
    ``on_stop``, which is the orchestrator's joint teardown.
    """

    def __init__(
        self,
        websocket: WebSocket,
        context: CallContext,
        session: RealtimeSession,
        on_stop: StopCallback,
    ):
        self.websocket = websocket
        self.context = context
        self.session = session
        self.on_stop = on_stop
        self.frames_received = 0
        self.frames_forwarded = 0
        self._stopped = False

        self.event_handlers: Dict[str, Callable[[Any], Awaitable[None]]] = {
            TWILIO_EVENT_CONNECTED: self.handle_connected,
            TWILIO_EVENT_START: self.handle_start,
            TWILIO_EVENT_MEDIA: self.handle_media,
            TWILIO_EVENT_STOP: self.handle_stop,
            TWILIO_EVENT_MARK: self.handle_mark,
            TWILIO_EVENT_DTMF: self.handle_dtmf,
        }

    @property
    def stopped(self) -> bool:
        return self._stopped or self.context.is_closed

    async def receive_loop(self) -> None:
        """Process Twilio frames until ``stop``, a disconnect, or call teardown."""
        try:
            while not self.stopped:
                frame = await self.websocket.receive()
                if frame["type"] == "websocket.disconnect":
                    logger.info(f"Twilio media websocket closed for call {self.context.label()}")
                    break
                raw = frame.get("text")
                if raw is None:
                    logger.warning("Dropping non-text media stream frame")
                    continue
                await self.handle_message(raw)
        except WebSocketDisconnect:
            logger.info(f"Twilio media websocket disconnected for call {self.context.label()}")
        logger.debug("Twilio receive loop exited")

    async def handle_message(self, raw: str) -> None:
        """Decode one Twilio frame and dispatch it; malformed frames are logged and dropped."""
        if self.stopped:
            return

        try:
            message = parse_twilio_message(raw)
        except ValueError as e:
            logger.warning(f"Dropping malformed media stream message: {e}")
            return

        if message is None:
            logger.debug("Ignoring unhandled media stream event")
            return

        handler = self.event_handlers.get(message.event)
        if handler is not None:
            await handler(message)

    async def handle_connected(self, message: ConnectedMessage) -> None:
        logger.info(f"Twilio media stream connected (protocol {message.protocol}, version {message.version})")

    async def handle_start(self, message: StartMessage) -> None:
        self.context.stream_sid = message.stream_sid
        self.context.call_sid = message.start.callSid or self.context.call_sid
        self.context.update_caller(message.caller)
        logger.info(
            f"Stream started - SID: {self.context.stream_sid}, "
            f"Call: {self.context.call_sid}, Caller: {self.context.caller}"
        )

    async def handle_media(self, message: MediaMessage) -> None:
        self.frames_received += 1
        if await self.session.send_audio(message.media.payload):
            self.frames_forwarded += 1

    async def handle_stop(self, message: StopMessage) -> None:
        logger.info(f"Twilio stream stopped for call {self.context.label()}")
        self._stopped = True
        await self.on_stop()

    async def handle_mark(self, message: MarkMessage) -> None:
        logger.debug(f"Playback reached mark: {message.mark.name}")

    async def handle_dtmf(self, message: DTMFMessage) -> None:
        logger.info(f"DTMF digit pressed: {message.dtmf.digit}")

    # Output towards the caller

    async def send_media(self, payload_b64: str) -> None:
        """Play one base64 mu-law payload to the caller."""
        if not self._can_send():
            return
        message = OutgoingMediaMessage(
            streamSid=self.context.stream_sid, media=MediaPayload(payload=payload_b64)
        )
        await self._send_json(message.model_dump(exclude_none=True))

    async def send_clear(self) -> None:
        """Drop assistant audio Twilio has queued but not yet played."""
        if not self._can_send():
            return
        await self._send_json(OutgoingClearMessage(streamSid=self.context.stream_sid).model_dump())

    def _can_send(self) -> bool:
        if self.stopped:
            return False
        if not self.context.stream_sid:
            logger.debug("No stream SID yet; dropping outbound media stream message")
            return False
        return self.websocket.client_state == WebSocketState.CONNECTED

    async def _send_json(self, payload: Dict[str, Any]) -> None:
        try:
            await self.websocket.send_json(payload)
        except (WebSocketDisconnect, RuntimeError) as e:
            logger.debug(f"Could not write to Twilio media websocket: {e}")

    def frame_stats(self) -> Optional[str]:
        if not self.frames_received:
            return None
        return f"{self.frames_forwarded}/{self.frames_received} caller frames forwarded"
