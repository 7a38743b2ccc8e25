"""
TwiML for the inbound-call webhook.

Twilio posts to ``/voice`` when a call arrives; the answer connects the call's
audio to this server's ``/media-stream`` websocket and passes the caller's number
along as a stream parameter, where it shows up in the ``start`` event.
"""

import logging
from typing import Optional
from urllib.parse import urlsplit

from twilio.twiml.voice_response import Connect, VoiceResponse

from handyman_voice.config.constants import LOGGER_NAME, UNKNOWN_CALLER

logger = logging.getLogger(LOGGER_NAME)

MEDIA_STREAM_PATH = "/media-stream"


def media_stream_url(base_url: str) -> str:
    """Turn an http(s) or bare host base URL into the ``wss://`` media stream URL."""
    base_url = base_url.strip().rstrip("/")
    parts = urlsplit(base_url if "://" in base_url else f"https://{base_url}")
    scheme = "ws" if parts.scheme in ("http", "ws") else "wss"
    return f"{scheme}://{parts.netloc}{parts.path}{MEDIA_STREAM_PATH}"


def build_stream_twiml(base_url: str, caller: Optional[str] = None) -> str:
    """Return TwiML that bridges the call's audio to the media stream endpoint."""
    response = VoiceResponse()
    connect = Connect()
    stream = connect.stream(url=media_stream_url(base_url))
    stream.parameter(name="caller", value=caller or UNKNOWN_CALLER)
    response.append(connect)

    logger.info(f"Answering inbound call from {caller or UNKNOWN_CALLER} with media stream")
    return str(response)
