"""
Pydantic models for OpenAI Realtime API events.

Server events are decoded once by ``parse_realtime_event`` into one model per
``type`` discriminant. Client events are built as models and serialized with
``model_dump_json(exclude_none=True)`` before being sent.
"""

import json
from typing import Any, Dict, List, Literal, Optional, Type, Union

from pydantic import BaseModel, ConfigDict, Field

from handyman_voice.config.constants import (
    EVENT_CONVERSATION_ITEM_CREATE,
    EVENT_ERROR,
    EVENT_FUNCTION_CALL_ARGUMENTS_DELTA,
    EVENT_FUNCTION_CALL_ARGUMENTS_DONE,
    EVENT_INPUT_AUDIO_APPEND,
    EVENT_RESPONSE_AUDIO_DELTA,
    EVENT_RESPONSE_AUDIO_TRANSCRIPT_DELTA,
    EVENT_RESPONSE_CANCEL,
    EVENT_RESPONSE_COMPLETED,
    EVENT_RESPONSE_CREATE,
    EVENT_RESPONSE_CREATED,
    EVENT_RESPONSE_DONE,
    EVENT_RESPONSE_OUTPUT_ITEM_ADDED,
    EVENT_RESPONSE_TEXT_DELTA,
    EVENT_SESSION_CREATED,
    EVENT_SESSION_UPDATE,
    EVENT_SESSION_UPDATED,
    EVENT_SPEECH_STARTED,
    EVENT_SPEECH_STOPPED,
)


class RealtimeServerEvent(BaseModel):
    """Base model for events received from the Realtime API."""

    model_config = ConfigDict(extra="ignore")

    type: str
    event_id: Optional[str] = None


class ErrorDetail(BaseModel):
    model_config = ConfigDict(extra="ignore")

    type: Optional[str] = None
    code: Optional[str] = None
    message: Optional[str] = None


class ErrorEvent(RealtimeServerEvent):
    type: Literal["error"]
    error: ErrorDetail = Field(default_factory=ErrorDetail)


class SessionEvent(RealtimeServerEvent):
    type: Literal["session.created", "session.updated"]
    session: Dict[str, Any] = Field(default_factory=dict)


class ResponseRef(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: Optional[str] = None
    status: Optional[str] = None


class ResponseCreatedEvent(RealtimeServerEvent):
    type: Literal["response.created"]
    response: ResponseRef = Field(default_factory=ResponseRef)


class ResponseDoneEvent(RealtimeServerEvent):
    """Turn boundary; the API has emitted this as both ``response.done`` and ``response.completed``."""

    type: Literal["response.done", "response.completed"]
    response: ResponseRef = Field(default_factory=ResponseRef)


class ResponseAudioDeltaEvent(RealtimeServerEvent):
    type: Literal["response.audio.delta"]
    response_id: Optional[str] = None
    item_id: Optional[str] = None
    delta: str


class ResponseTextDeltaEvent(RealtimeServerEvent):
    type: Literal["response.text.delta", "response.audio_transcript.delta"]
    delta: str = ""


class OutputItem(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: Optional[str] = None
    type: Optional[str] = None
    call_id: Optional[str] = None
    name: Optional[str] = None


class ResponseOutputItemAddedEvent(RealtimeServerEvent):
    type: Literal["response.output_item.added"]
    item: OutputItem = Field(default_factory=OutputItem)


class FunctionCallEvent(RealtimeServerEvent):
    """Shared fields of the function-call argument events.

    Invocations are keyed by ``call_id`` on the current API; ``id`` and ``item_id``
    are accepted for peers that key on those instead.
    """

    call_id: Optional[str] = None
    id: Optional[str] = None
    item_id: Optional[str] = None
    name: Optional[str] = None

    @property
    def invocation_id(self) -> Optional[str]:
        return self.call_id or self.id or self.item_id


class FunctionCallArgumentsDeltaEvent(FunctionCallEvent):
    type: Literal["response.function_call_arguments.delta"]
    delta: str = ""


class FunctionCallArgumentsDoneEvent(FunctionCallEvent):
    type: Literal["response.function_call_arguments.done"]
    arguments: Optional[str] = None


class SpeechEvent(RealtimeServerEvent):
    type: Literal["input_audio_buffer.speech_started", "input_audio_buffer.speech_stopped"]
    audio_start_ms: Optional[int] = None
    audio_end_ms: Optional[int] = None


RealtimeEvent = Union[
    ErrorEvent,
    SessionEvent,
    ResponseCreatedEvent,
    ResponseDoneEvent,
    ResponseAudioDeltaEvent,
    ResponseTextDeltaEvent,
    ResponseOutputItemAddedEvent,
    FunctionCallArgumentsDeltaEvent,
    FunctionCallArgumentsDoneEvent,
    SpeechEvent,
]

REALTIME_EVENT_MODELS: Dict[str, Type[RealtimeServerEvent]] = {
    EVENT_ERROR: ErrorEvent,
    EVENT_SESSION_CREATED: SessionEvent,
    EVENT_SESSION_UPDATED: SessionEvent,
    EVENT_RESPONSE_CREATED: ResponseCreatedEvent,
    EVENT_RESPONSE_DONE: ResponseDoneEvent,
    EVENT_RESPONSE_COMPLETED: ResponseDoneEvent,
    EVENT_RESPONSE_AUDIO_DELTA: ResponseAudioDeltaEvent,
    EVENT_RESPONSE_TEXT_DELTA: ResponseTextDeltaEvent,
    EVENT_RESPONSE_AUDIO_TRANSCRIPT_DELTA: ResponseTextDeltaEvent,
    EVENT_RESPONSE_OUTPUT_ITEM_ADDED: ResponseOutputItemAddedEvent,
    EVENT_FUNCTION_CALL_ARGUMENTS_DELTA: FunctionCallArgumentsDeltaEvent,
    EVENT_FUNCTION_CALL_ARGUMENTS_DONE: FunctionCallArgumentsDoneEvent,
    EVENT_SPEECH_STARTED: SpeechEvent,
    EVENT_SPEECH_STOPPED: SpeechEvent,
}


def parse_realtime_event(raw: Union[str, bytes]) -> Optional[RealtimeEvent]:
    """Decode one websocket frame from the Realtime API.

    Returns:
        The typed event, or None when the event type is not one the bridge consumes

    Raises:
        json.JSONDecodeError: If the frame is not JSON
        pydantic.ValidationError: If a known event is missing required fields
        ValueError: If the frame is JSON but not an object with a string ``type`` field
    """
    data = json.loads(raw)
    if not isinstance(data, dict) or not isinstance(data.get("type"), str):
        raise ValueError("Realtime event is not an object with a string 'type' field")

    model = REALTIME_EVENT_MODELS.get(data["type"])
    if model is None:
        return None
    return model.model_validate(data)


# Client events
class TurnDetection(BaseModel):
    type: Literal["server_vad"] = "server_vad"
    threshold: float = 0.5
    prefix_padding_ms: int = 300
    silence_duration_ms: int = 700


class InputAudioTranscription(BaseModel):
    model: str


class FunctionTool(BaseModel):
    type: Literal["function"] = "function"
    name: str
    description: str
    parameters: Dict[str, Any]


class SessionConfig(BaseModel):
    modalities: List[str] = Field(default_factory=lambda: ["audio", "text"])
    voice: str
    instructions: str
    turn_detection: TurnDetection
    input_audio_format: str
    output_audio_format: str
    input_audio_transcription: InputAudioTranscription
    tools: List[FunctionTool]
    tool_choice: str = "auto"


class SessionUpdateEvent(BaseModel):
    type: Literal["session.update"] = EVENT_SESSION_UPDATE
    session: SessionConfig


class InputAudioBufferAppendEvent(BaseModel):
    type: Literal["input_audio_buffer.append"] = EVENT_INPUT_AUDIO_APPEND
    audio: str


class FunctionCallOutputItem(BaseModel):
    type: Literal["function_call_output"] = "function_call_output"
    call_id: str
    output: str


class ConversationItemCreateEvent(BaseModel):
    type: Literal["conversation.item.create"] = EVENT_CONVERSATION_ITEM_CREATE
    item: FunctionCallOutputItem


class ResponseCreateEvent(BaseModel):
    type: Literal["response.create"] = EVENT_RESPONSE_CREATE


class ResponseCancelEvent(BaseModel):
    type: Literal["response.cancel"] = EVENT_RESPONSE_CANCEL
