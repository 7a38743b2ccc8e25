"""
Constants and configuration values used throughout the application.

This module defines constants that are used across different parts of the application,
providing a centralized location for protocol discriminants, audio formats and
default model settings.
"""

# Logger name used throughout the application
LOGGER_NAME = "handyman_voice"

# Default OpenAI model and endpoint for the Realtime API
DEFAULT_REALTIME_MODEL = "gpt-4o-realtime-preview-2024-12-17"
DEFAULT_REALTIME_URL = "wss://api.openai.com/v1/realtime"
DEFAULT_VOICE = "alloy"
DEFAULT_TRANSCRIPTION_MODEL = "whisper-1"

# Audio format constants
TELEPHONY_SAMPLE_RATE = 8000  # Twilio Media Streams: 8 kHz mono mu-law
REALTIME_SAMPLE_RATE = 24000  # OpenAI Realtime pcm16: 24 kHz mono
AUDIO_FORMAT_PCM16 = "pcm16"
AUDIO_FORMAT_G711_ULAW = "g711_ulaw"

# Twilio Media Streams event types
TWILIO_EVENT_CONNECTED = "connected"
TWILIO_EVENT_START = "start"
TWILIO_EVENT_MEDIA = "media"
TWILIO_EVENT_STOP = "stop"
TWILIO_EVENT_MARK = "mark"
TWILIO_EVENT_DTMF = "dtmf"
TWILIO_EVENT_CLEAR = "clear"

# OpenAI Realtime server event types
EVENT_ERROR = "error"
EVENT_SESSION_CREATED = "session.created"
EVENT_SESSION_UPDATED = "session.updated"
EVENT_RESPONSE_CREATED = "response.created"
EVENT_RESPONSE_AUDIO_DELTA = "response.audio.delta"
EVENT_RESPONSE_TEXT_DELTA = "response.text.delta"
EVENT_RESPONSE_AUDIO_TRANSCRIPT_DELTA = "response.audio_transcript.delta"
EVENT_RESPONSE_OUTPUT_ITEM_ADDED = "response.output_item.added"
EVENT_FUNCTION_CALL_ARGUMENTS_DELTA = "response.function_call_arguments.delta"
EVENT_FUNCTION_CALL_ARGUMENTS_DONE = "response.function_call_arguments.done"
EVENT_RESPONSE_COMPLETED = "response.completed"
EVENT_RESPONSE_DONE = "response.done"
EVENT_SPEECH_STARTED = "input_audio_buffer.speech_started"
EVENT_SPEECH_STOPPED = "input_audio_buffer.speech_stopped"

# OpenAI Realtime client event types
EVENT_SESSION_UPDATE = "session.update"
EVENT_INPUT_AUDIO_APPEND = "input_audio_buffer.append"
EVENT_CONVERSATION_ITEM_CREATE = "conversation.item.create"
EVENT_RESPONSE_CREATE = "response.create"
EVENT_RESPONSE_CANCEL = "response.cancel"

# Booking tool
BOOKING_TOOL_NAME = "submit_booking"
BOOKING_FIELDS = ["name", "job", "suburb", "time", "phone"]
UNKNOWN_CALLER = "unknown"
MISSING_FIELD_PLACEHOLDER = "not provided"
