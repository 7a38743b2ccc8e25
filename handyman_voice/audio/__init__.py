"""Audio transforms between the telephony leg and the Realtime session leg."""

from handyman_voice.audio.codec import (
    pcm16_to_ulaw,
    realtime_to_telephony,
    resample_pcm16,
    telephony_to_realtime,
    ulaw_to_pcm16,
)

__all__ = [
    "pcm16_to_ulaw",
    "realtime_to_telephony",
    "resample_pcm16",
    "telephony_to_realtime",
    "ulaw_to_pcm16",
]
