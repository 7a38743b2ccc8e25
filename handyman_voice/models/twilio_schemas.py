"""
Pydantic models for Twilio Media Streams websocket messages.

Inbound messages are decoded once at the websocket boundary by
``parse_twilio_message`` into one model per ``event`` discriminant; downstream
handlers never probe raw dictionaries.
"""

import json
from typing import Dict, List, Literal, Optional, Type, Union

from pydantic import BaseModel, ConfigDict, Field

from handyman_voice.config.constants import (
    TWILIO_EVENT_CLEAR,
    TWILIO_EVENT_CONNECTED,
    TWILIO_EVENT_DTMF,
    TWILIO_EVENT_MARK,
    TWILIO_EVENT_MEDIA,
    TWILIO_EVENT_START,
    TWILIO_EVENT_STOP,
)


class TwilioBaseMessage(BaseModel):
    """Base model for all Media Streams messages."""

    model_config = ConfigDict(extra="ignore")

    event: str = Field(..., description="Message type discriminant")
    streamSid: Optional[str] = Field(None, description="Stream identifier")
    sequenceNumber: Optional[str] = None


# Inbound messages
class ConnectedMessage(TwilioBaseMessage):
    """First message Twilio sends after the websocket opens."""

    event: Literal["connected"]
    protocol: Optional[str] = None
    version: Optional[str] = None


class MediaFormat(BaseModel):
    encoding: str = "audio/x-mulaw"
    sampleRate: int = 8000
    channels: int = 1


class StartMetadata(BaseModel):
    model_config = ConfigDict(extra="ignore")

    streamSid: Optional[str] = None
    accountSid: Optional[str] = None
    callSid: Optional[str] = None
    tracks: List[str] = Field(default_factory=list)
    customParameters: Dict[str, str] = Field(default_factory=dict)
    mediaFormat: Optional[MediaFormat] = None


class StartMessage(TwilioBaseMessage):
    """Stream metadata, including parameters passed through from TwiML."""

    event: Literal["start"]
    start: StartMetadata

    @property
    def stream_sid(self) -> Optional[str]:
        return self.start.streamSid or self.streamSid

    @property
    def caller(self) -> Optional[str]:
        params = self.start.customParameters
        return params.get("caller") or params.get("From") or params.get("from")


class MediaPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    payload: str = Field(..., description="Base64-encoded mu-law audio")
    track: Optional[str] = None
    chunk: Optional[str] = None
    timestamp: Optional[str] = None


class MediaMessage(TwilioBaseMessage):
    """One frame of caller audio."""

    event: Literal["media"]
    media: MediaPayload


class StopMetadata(BaseModel):
    model_config = ConfigDict(extra="ignore")

    accountSid: Optional[str] = None
    callSid: Optional[str] = None


class StopMessage(TwilioBaseMessage):
    """The caller hung up or the platform ended the stream."""

    event: Literal["stop"]
    stop: Optional[StopMetadata] = None


class MarkName(BaseModel):
    name: str


class MarkMessage(TwilioBaseMessage):
    """Playback of a previously sent mark has finished."""

    event: Literal["mark"]
    mark: MarkName


class DTMFDigit(BaseModel):
    model_config = ConfigDict(extra="ignore")

    digit: str
    track: Optional[str] = None


class DTMFMessage(TwilioBaseMessage):
    """The caller pressed a touch-tone key."""

    event: Literal["dtmf"]
    dtmf: DTMFDigit


# Outbound messages
class OutgoingMediaMessage(BaseModel):
    event: Literal["media"] = TWILIO_EVENT_MEDIA
    streamSid: str
    media: MediaPayload


class OutgoingClearMessage(BaseModel):
    """Flush audio Twilio has buffered but not yet played to the caller."""

    event: Literal["clear"] = TWILIO_EVENT_CLEAR
    streamSid: str


TwilioMessage = Union[
    ConnectedMessage,
    StartMessage,
    MediaMessage,
    StopMessage,
    MarkMessage,
    DTMFMessage,
]

TWILIO_MESSAGE_MODELS: Dict[str, Type[TwilioBaseMessage]] = {
    TWILIO_EVENT_CONNECTED: ConnectedMessage,
    TWILIO_EVENT_START: StartMessage,
    TWILIO_EVENT_MEDIA: MediaMessage,
    TWILIO_EVENT_STOP: StopMessage,
    TWILIO_EVENT_MARK: MarkMessage,
    TWILIO_EVENT_DTMF: DTMFMessage,
}


def parse_twilio_message(raw: str) -> Optional[TwilioMessage]:
    """Decode one websocket text frame from Twilio.

    Returns:
        The typed message, or None when the event type is not one we handle

    Raises:
        json.JSONDecodeError: If the frame is not JSON
        pydantic.ValidationError: If a known event is missing required fields
        ValueError: If the frame is JSON but not an object with a string ``event`` field
    """
    data = json.loads(raw)
    if not isinstance(data, dict) or not isinstance(data.get("event"), str):
        raise ValueError("Media stream message is not an object with a string 'event' field")

    model = TWILIO_MESSAGE_MODELS.get(data["event"])
    if model is None:
        return None
    return model.model_validate(data)
