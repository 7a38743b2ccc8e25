"""
OpenAI Realtime API session adapter for one phone call.

Each call owns exactly one ``RealtimeSession``. It opens the outbound websocket,
configures the session (instructions, voice, server VAD, transcription and the
``submit_booking`` tool), forwards caller audio in, and demultiplexes the events
that come back: assistant audio goes to the caller, tool-call fragments go to the
reassembler, and a completed booking goes to the booking submitter.
"""

import asyncio
import json
import logging
from typing import Any, Awaitable, Callable, Dict, Optional

import websockets
from websockets.exceptions import ConnectionClosed, WebSocketException

from handyman_voice.audio.codec import realtime_to_telephony, telephony_to_realtime
from handyman_voice.bot.prompts import BOOKING_TOOL, SYSTEM_INSTRUCTIONS
from handyman_voice.bot.tool_calls import ToolCallReassembler
from handyman_voice.config import settings
from handyman_voice.config.constants import (
    BOOKING_TOOL_NAME,
    EVENT_ERROR,
    EVENT_FUNCTION_CALL_ARGUMENTS_DELTA,
    EVENT_FUNCTION_CALL_ARGUMENTS_DONE,
    EVENT_RESPONSE_AUDIO_DELTA,
    EVENT_RESPONSE_AUDIO_TRANSCRIPT_DELTA,
    EVENT_RESPONSE_COMPLETED,
    EVENT_RESPONSE_CREATED,
    EVENT_RESPONSE_DONE,
    EVENT_RESPONSE_OUTPUT_ITEM_ADDED,
    EVENT_RESPONSE_TEXT_DELTA,
    EVENT_SESSION_CREATED,
    EVENT_SESSION_UPDATED,
    EVENT_SPEECH_STARTED,
    EVENT_SPEECH_STOPPED,
    LOGGER_NAME,
)
from handyman_voice.exceptions import SessionSetupError, ToolArgumentLimitError
from handyman_voice.models.booking import BookingRecord
from handyman_voice.models.call_context import CallContext
from handyman_voice.models.realtime_events import (
    ConversationItemCreateEvent,
    ErrorEvent,
    FunctionCallArgumentsDeltaEvent,
    FunctionCallArgumentsDoneEvent,
    FunctionCallOutputItem,
    FunctionTool,
    InputAudioBufferAppendEvent,
    InputAudioTranscription,
    ResponseAudioDeltaEvent,
    ResponseCancelEvent,
    ResponseCreateEvent,
    ResponseCreatedEvent,
    ResponseDoneEvent,
    ResponseOutputItemAddedEvent,
    ResponseTextDeltaEvent,
    SessionConfig,
    SessionEvent,
    SessionUpdateEvent,
    SpeechEvent,
    TurnDetection,
    parse_realtime_event,
)
from handyman_voice.services.booking_submission import BookingSubmitter

logger = logging.getLogger(LOGGER_NAME)

# WebSocket configuration for low latency
WS_MAX_SIZE = 16 * 1024 * 1024  # 16MB - large enough for audio chunks
WS_PING_INTERVAL = 5
WS_PING_TIMEOUT = 10

AudioSink = Callable[[str], Awaitable[None]]
ClearSink = Callable[[], Awaitable[None]]


class RealtimeSession:
    """
    One live connection to the OpenAI Realtime API, paired with one call.

    Attributes:
        context: The call this session belongs to
        reassembler: Buffers streamed tool-call arguments for this session only
        submitter: Receives the booking when ``submit_booking`` completes
        ws: The websocket connection, once ``connect`` succeeds
    """

    def __init__(
        self,
        context: CallContext,
        submitter: BookingSubmitter,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        url: Optional[str] = None,
        audio_format: Optional[str] = None,
        reassembler: Optional[ToolCallReassembler] = None,
    ):
        self.context = context
        self.submitter = submitter
        self.api_key = api_key if api_key is not None else settings.OPENAI_API_KEY
        self.model = model or settings.OPENAI_REALTIME_MODEL
        self.url = url or settings.OPENAI_REALTIME_URL
        self.audio_format = audio_format or settings.REALTIME_AUDIO_FORMAT
        self.reassembler = reassembler or ToolCallReassembler()
        self.ws = None

        self._closed = False
        self._active_response_id: Optional[str] = None
        self._audio_sink: Optional[AudioSink] = None
        self._clear_sink: Optional[ClearSink] = None

        self.event_handlers: Dict[str, Callable[[Any], Awaitable[None]]] = {
            EVENT_ERROR: self.handle_error,
            EVENT_SESSION_CREATED: self.handle_session_event,
            EVENT_SESSION_UPDATED: self.handle_session_event,
            EVENT_RESPONSE_CREATED: self.handle_response_created,
            EVENT_RESPONSE_DONE: self.handle_response_done,
            EVENT_RESPONSE_COMPLETED: self.handle_response_done,
            EVENT_RESPONSE_AUDIO_DELTA: self.handle_audio_delta,
            EVENT_RESPONSE_TEXT_DELTA: self.handle_text_delta,
            EVENT_RESPONSE_AUDIO_TRANSCRIPT_DELTA: self.handle_text_delta,
            EVENT_RESPONSE_OUTPUT_ITEM_ADDED: self.handle_output_item_added,
            EVENT_FUNCTION_CALL_ARGUMENTS_DELTA: self.handle_function_call_arguments_delta,
            EVENT_FUNCTION_CALL_ARGUMENTS_DONE: self.handle_function_call_arguments_done,
            EVENT_SPEECH_STARTED: self.handle_speech_started,
            EVENT_SPEECH_STOPPED: self.handle_speech_stopped,
        }

    @property
    def is_open(self) -> bool:
        return not self._closed and self.ws is not None and self.ws.close_code is None

    def attach_output(self, audio_sink: AudioSink, clear_sink: Optional[ClearSink] = None) -> None:
        """
        Route assistant audio (telephony-encoded, base64) and barge-in clears to the caller.

        Args:
            audio_sink: Coroutine taking one base64 mu-law payload
            clear_sink: Coroutine flushing audio queued on the telephony side
        """
        self._audio_sink = audio_sink
        self._clear_sink = clear_sink

    async def connect(self) -> None:
        """
        Open the Realtime websocket and send the session configuration.

        Raises:
            SessionSetupError: If the API key is missing, the connection is refused or
                rejected, or the handshake does not finish within the configured timeout
        """
        if not self.api_key:
            raise SessionSetupError("OPENAI_API_KEY environment variable not set")

        url = f"{self.url}?model={self.model}"
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "OpenAI-Beta": "realtime=v1",
        }

        logger.info(f"Connecting to OpenAI Realtime API with model {self.model} for call {self.context.label()}")
        try:
            self.ws = await asyncio.wait_for(
                websockets.connect(
                    url,
                    additional_headers=headers,
                    max_size=WS_MAX_SIZE,
                    ping_interval=WS_PING_INTERVAL,
                    ping_timeout=WS_PING_TIMEOUT,
                    compression=None,
                ),
                timeout=settings.REALTIME_CONNECT_TIMEOUT,
            )
        except asyncio.TimeoutError as e:
            raise SessionSetupError(
                f"Timed out connecting to OpenAI Realtime API after {settings.REALTIME_CONNECT_TIMEOUT}s"
            ) from e
        except (OSError, WebSocketException) as e:
            raise SessionSetupError(f"Failed to connect to OpenAI Realtime API: {e}") from e

        try:
            await self.send_session_update()
        except ConnectionClosed as e:
            await self.close()
            raise SessionSetupError(f"Realtime connection closed during session setup: {e}") from e

        logger.info(f"OpenAI Realtime session open for call {self.context.label()}")

    def build_session_config(self) -> SessionConfig:
        return SessionConfig(
            modalities=["audio", "text"],
            voice=settings.REALTIME_VOICE,
            instructions=SYSTEM_INSTRUCTIONS,
            turn_detection=TurnDetection(
                threshold=settings.VAD_THRESHOLD,
                prefix_padding_ms=settings.VAD_PREFIX_PADDING_MS,
                silence_duration_ms=settings.VAD_SILENCE_DURATION_MS,
            ),
            input_audio_format=self.audio_format,
            output_audio_format=self.audio_format,
            input_audio_transcription=InputAudioTranscription(model=settings.TRANSCRIPTION_MODEL),
            tools=[FunctionTool(**BOOKING_TOOL)],
        )

    async def send_session_update(self) -> None:
        await self._send(SessionUpdateEvent(session=self.build_session_config()))
        logger.debug("Sent session.update")

    async def send_audio(self, payload_b64: str) -> bool:
        """
        Forward one frame of caller audio as ``input_audio_buffer.append``.

        Frames arriving while the session is not open are dropped silently; during
        teardown that is expected rather than a fault.

        Returns:
            bool: True if the frame was sent
        """
        if not self.is_open:
            logger.debug("Dropping caller audio frame; Realtime session is not open")
            return False

        try:
            audio = telephony_to_realtime(payload_b64, self.audio_format)
        except ValueError as e:
            logger.warning(f"Dropping malformed caller audio frame: {e}")
            return False

        try:
            await self._send(InputAudioBufferAppendEvent(audio=audio))
        except ConnectionClosed:
            logger.debug("Realtime connection closed while sending caller audio")
            return False
        return True

    async def receive_loop(self) -> None:
        """Process Realtime events until the connection closes or the session is closed."""
        if self.ws is None:
            logger.error("Realtime receive loop started without a connection")
            return

        try:
            async for raw in self.ws:
                if self._closed:
                    break
                await self.handle_event(raw)
        except ConnectionClosed as e:
            logger.info(f"OpenAI Realtime connection closed for call {self.context.label()}: {e}")
        logger.debug("Realtime receive loop exited")

    async def handle_event(self, raw) -> None:
        """Decode one Realtime frame and dispatch it to its handler."""
        try:
            event = parse_realtime_event(raw)
        except ValueError as e:
            logger.warning(f"Dropping malformed Realtime event: {e}")
            return

        if event is None:
            return

        handler = self.event_handlers.get(event.type)
        if handler is None:
            return
        try:
            await handler(event)
        except ConnectionClosed:
            raise
        except Exception as e:
            logger.error(f"Error in handler for {event.type}: {e}", exc_info=True)

    # Realtime event handlers

    async def handle_error(self, event: ErrorEvent) -> None:
        logger.error(
            f"OpenAI Realtime error: {event.error.code or event.error.type} - {event.error.message}"
        )

    async def handle_session_event(self, event: SessionEvent) -> None:
        logger.info(f"Realtime {event.type} for call {self.context.label()}")

    async def handle_response_created(self, event: ResponseCreatedEvent) -> None:
        self._active_response_id = event.response.id
        logger.debug(f"Response started: {event.response.id}")

    async def handle_response_done(self, event: ResponseDoneEvent) -> None:
        self._active_response_id = None
        logger.info(f"Response completed ({event.response.status or 'unknown status'})")

    async def handle_audio_delta(self, event: ResponseAudioDeltaEvent) -> None:
        """Transcode one chunk of assistant audio and play it to the caller."""
        if self._audio_sink is None:
            logger.debug("No telephony output attached; dropping assistant audio")
            return
        try:
            payload = realtime_to_telephony(event.delta, self.audio_format)
        except ValueError as e:
            logger.warning(f"Dropping malformed assistant audio delta: {e}")
            return
        if payload:
            await self._audio_sink(payload)

    async def handle_text_delta(self, event: ResponseTextDeltaEvent) -> None:
        logger.debug(f"Assistant said: {event.delta}")

    async def handle_speech_started(self, event: SpeechEvent) -> None:
        """Caller started talking; optionally cut off the assistant mid-sentence."""
        logger.info("Caller speech started")
        if not settings.BARGE_IN_ENABLED:
            return
        if self._clear_sink is not None:
            await self._clear_sink()
        if self._active_response_id and self.is_open:
            await self._send(ResponseCancelEvent())
            logger.debug(f"Cancelled in-flight response {self._active_response_id}")

    async def handle_speech_stopped(self, event: SpeechEvent) -> None:
        logger.info("Caller speech stopped")

    async def handle_output_item_added(self, event: ResponseOutputItemAddedEvent) -> None:
        item = event.item
        if item.type == "function_call" and item.call_id:
            self.reassembler.append(item.call_id, item.name, "")
            logger.info(f"Function call started: {item.name} (call_id: {item.call_id})")

    async def handle_function_call_arguments_delta(self, event: FunctionCallArgumentsDeltaEvent) -> None:
        call_id = event.invocation_id
        if not call_id:
            logger.warning("Function call argument delta without an invocation id")
            return
        try:
            self.reassembler.append(call_id, event.name, event.delta)
        except ToolArgumentLimitError as e:
            logger.error(str(e))

    async def handle_function_call_arguments_done(self, event: FunctionCallArgumentsDoneEvent) -> None:
        """Parse the reassembled arguments and act on the completed tool call."""
        call_id = event.invocation_id
        if not call_id:
            logger.warning("Function call completion without an invocation id")
            return

        try:
            completed = self.reassembler.complete(call_id)
            if completed is None and event.arguments is None:
                logger.warning(f"No buffered arguments for tool call {call_id}; ignoring completion")
                return
            name, text = completed if completed is not None else (None, "")
            name = event.name or name
            # Output items open an empty buffer; the final arguments may be the only copy
            if not text and event.arguments:
                text = event.arguments
                self.reassembler.check_size(call_id, text)
        except ToolArgumentLimitError as e:
            logger.error(f"Refusing oversized tool call: {e}")
            await self._send_function_output(call_id, {"status": "error", "message": "arguments too large"})
            return

        try:
            arguments = json.loads(text)
        except json.JSONDecodeError as e:
            logger.error(f"Could not parse arguments for {name} ({call_id}): {e}")
            await self._send_function_output(call_id, {"status": "error", "message": "invalid arguments"})
            return
        if not isinstance(arguments, dict):
            logger.error(f"Arguments for {name} ({call_id}) are not an object: {text!r}")
            await self._send_function_output(call_id, {"status": "error", "message": "invalid arguments"})
            return

        if name == BOOKING_TOOL_NAME:
            output = self._submit_booking(arguments)
        else:
            logger.warning(f"Ignoring call to unknown tool: {name}")
            output = {"status": "error", "message": f"unknown tool {name}"}
        await self._send_function_output(call_id, output)

    def _submit_booking(self, arguments: Dict[str, Any]) -> Dict[str, str]:
        if self.context.booking_submitted:
            logger.warning(f"Booking already submitted for call {self.context.label()}; ignoring duplicate")
            return {"status": "already_submitted"}

        record = BookingRecord.from_arguments(arguments).with_phone_fallback(self.context.caller)
        self.context.booking_submitted = True
        self.submitter.submit_in_background(record, self.context.caller)
        logger.info(f"Booking captured for call {self.context.label()}: {record.model_dump()}")
        return {"status": "submitted"}

    async def _send_function_output(self, call_id: str, output: Dict[str, str]) -> None:
        """Return the tool result so the assistant can confirm with the caller."""
        if not self.is_open:
            return
        try:
            await self._send(
                ConversationItemCreateEvent(
                    item=FunctionCallOutputItem(call_id=call_id, output=json.dumps(output))
                )
            )
            await self._send(ResponseCreateEvent())
        except ConnectionClosed:
            logger.debug("Realtime connection closed before the tool result was sent")

    async def _send(self, event) -> None:
        await self.ws.send(event.model_dump_json(exclude_none=True))

    async def close(self) -> None:
        """Close the Realtime connection and discard any incomplete tool calls."""
        if self._closed:
            return
        self._closed = True
        self.reassembler.discard_all()

        if self.ws is not None and self.ws.close_code is None:
            try:
                await self.ws.close()
            except (ConnectionClosed, OSError) as e:
                logger.warning(f"Error closing OpenAI Realtime connection: {e}")
        logger.info(f"Closed OpenAI Realtime session for call {self.context.label()}")
