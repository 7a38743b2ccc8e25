"""
Environment-driven settings for the handyman voice bridge.

Values are read once at import time from the process environment, after loading
a ``.env`` file from the working directory if one exists. Modules import the
constants they need; tests patch them at module level.
"""

import os
from pathlib import Path

import dotenv

from handyman_voice.config.constants import (
    AUDIO_FORMAT_PCM16,
    DEFAULT_REALTIME_MODEL,
    DEFAULT_REALTIME_URL,
    DEFAULT_TRANSCRIPTION_MODEL,
    DEFAULT_VOICE,
)

# Load environment variables from .env file if it exists
env_path = Path(".") / ".env"
if env_path.exists():
    dotenv.load_dotenv(env_path)


def _get_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


# Server
HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "8000"))
PUBLIC_BASE_URL = os.getenv("PUBLIC_BASE_URL", "")

# OpenAI Realtime session
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")
OPENAI_REALTIME_MODEL = os.getenv("OPENAI_REALTIME_MODEL", DEFAULT_REALTIME_MODEL)
OPENAI_REALTIME_URL = os.getenv("OPENAI_REALTIME_URL", DEFAULT_REALTIME_URL)
REALTIME_VOICE = os.getenv("REALTIME_VOICE", DEFAULT_VOICE)
REALTIME_AUDIO_FORMAT = os.getenv("REALTIME_AUDIO_FORMAT", AUDIO_FORMAT_PCM16)
TRANSCRIPTION_MODEL = os.getenv("TRANSCRIPTION_MODEL", DEFAULT_TRANSCRIPTION_MODEL)
REALTIME_CONNECT_TIMEOUT = float(os.getenv("REALTIME_CONNECT_TIMEOUT", "10"))

# Server-side voice activity detection
VAD_THRESHOLD = float(os.getenv("VAD_THRESHOLD", "0.5"))
VAD_SILENCE_DURATION_MS = int(os.getenv("VAD_SILENCE_DURATION_MS", "700"))
VAD_PREFIX_PADDING_MS = int(os.getenv("VAD_PREFIX_PADDING_MS", "300"))

BARGE_IN_ENABLED = _get_bool("BARGE_IN_ENABLED", True)

# Upper bounds on buffered tool-call arguments
MAX_TOOL_ARGUMENT_CHARS = int(os.getenv("MAX_TOOL_ARGUMENT_CHARS", "8192"))
MAX_SESSION_TOOL_ARGUMENT_CHARS = int(
    os.getenv("MAX_SESSION_TOOL_ARGUMENT_CHARS", "65536")
)

# Outbound notifications
TWILIO_ACCOUNT_SID = os.getenv("TWILIO_ACCOUNT_SID", "")
TWILIO_AUTH_TOKEN = os.getenv("TWILIO_AUTH_TOKEN", "")
TWILIO_FROM_NUMBER = os.getenv("TWILIO_FROM_NUMBER", "")
OPERATOR_PHONE_NUMBER = os.getenv("OPERATOR_PHONE_NUMBER", "")

# Booking log
BOOKINGS_LOG_PATH = Path(os.getenv("BOOKINGS_LOG_PATH", "logs/bookings.csv"))
