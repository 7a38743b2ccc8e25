"""
Audio transform between Twilio Media Streams and the OpenAI Realtime API.

Twilio carries 8 kHz mono G.711 mu-law, base64 encoded. The Realtime session is
configured for 24 kHz mono little-endian PCM16 (``pcm16``), also base64 encoded.
When the session is instead configured for ``g711_ulaw`` both directions pass
through untouched.

All functions are pure and hold no state between frames.
"""

import base64
import binascii

import numpy as np

from handyman_voice.config.constants import (
    AUDIO_FORMAT_G711_ULAW,
    AUDIO_FORMAT_PCM16,
    REALTIME_SAMPLE_RATE,
    TELEPHONY_SAMPLE_RATE,
)

ULAW_BIAS = 0x84
ULAW_CLIP = 32635

# Anti-aliasing filter length used when downsampling
LOWPASS_TAPS = 31


def _build_ulaw_decode_table() -> np.ndarray:
    table = np.zeros(256, dtype=np.int16)
    for i in range(256):
        ulaw = ~i & 0xFF
        exponent = (ulaw >> 4) & 0x07
        mantissa = ulaw & 0x0F
        magnitude = (((mantissa << 3) + ULAW_BIAS) << exponent) - ULAW_BIAS
        table[i] = -magnitude if ulaw & 0x80 else magnitude
    return table


_ULAW_DECODE_TABLE = _build_ulaw_decode_table()


def ulaw_to_pcm16(ulaw_data: bytes) -> bytes:
    """Decode G.711 mu-law bytes to little-endian PCM16."""
    if not ulaw_data:
        return b""
    ulaw_array = np.frombuffer(ulaw_data, dtype=np.uint8)
    return _ULAW_DECODE_TABLE[ulaw_array].astype("<i2").tobytes()


def pcm16_to_ulaw(pcm_data: bytes) -> bytes:
    """Encode little-endian PCM16 to G.711 mu-law.

    A trailing odd byte (half a sample) is ignored.
    """
    usable = len(pcm_data) - (len(pcm_data) % 2)
    if usable == 0:
        return b""

    samples = np.frombuffer(pcm_data[:usable], dtype="<i2").astype(np.int32)
    sign = np.where(samples < 0, 0x80, 0x00)
    magnitude = np.minimum(np.abs(samples), ULAW_CLIP) + ULAW_BIAS

    # Position of the highest set bit above bit 7 selects the segment
    exponent = np.clip(np.floor(np.log2(magnitude)).astype(np.int32) - 7, 0, 7)
    mantissa = (magnitude >> (exponent + 3)) & 0x0F

    ulaw = ~(sign | (exponent << 4) | mantissa) & 0xFF
    return ulaw.astype(np.uint8).tobytes()


def resample_pcm16(data: bytes, from_rate: int, to_rate: int) -> bytes:
    """Resample PCM16 audio using linear interpolation.

    Args:
        data: PCM16 audio data (little-endian)
        from_rate: Source sample rate in Hz
        to_rate: Target sample rate in Hz

    Returns:
        Resampled PCM16 audio data
    """
    if from_rate == to_rate or not data:
        return data

    usable = len(data) - (len(data) % 2)
    samples = np.frombuffer(data[:usable], dtype="<i2").astype(np.float32)

    # Low-pass before downsampling; frames shorter than the filter go unfiltered
    if to_rate < from_rate and len(samples) >= LOWPASS_TAPS:
        norm_cutoff = (0.45 * to_rate) / (from_rate / 2.0)
        n = np.arange(LOWPASS_TAPS) - (LOWPASS_TAPS - 1) / 2.0
        h = np.sinc(norm_cutoff * n) * np.hamming(LOWPASS_TAPS)
        h /= np.sum(h)
        samples = np.convolve(samples, h, mode="same")

    new_length = int(len(samples) * to_rate / from_rate)
    if new_length == 0:
        return b""

    old_indices = np.arange(len(samples))
    new_indices = np.linspace(0, len(samples) - 1, new_length)
    resampled = np.interp(new_indices, old_indices, samples)

    return np.clip(np.round(resampled), -32768, 32767).astype("<i2").tobytes()


def _b64decode(payload: str) -> bytes:
    try:
        return base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValueError(f"Invalid base64 audio payload: {e}") from e


def telephony_to_realtime(payload_b64: str, audio_format: str = AUDIO_FORMAT_PCM16) -> str:
    """Convert one Twilio media payload into an ``input_audio_buffer.append`` payload.

    Raises:
        ValueError: If the payload is not valid base64 or the format is unknown
    """
    if audio_format == AUDIO_FORMAT_G711_ULAW:
        return payload_b64
    if audio_format != AUDIO_FORMAT_PCM16:
        raise ValueError(f"Unsupported realtime audio format: {audio_format}")

    pcm_8k = ulaw_to_pcm16(_b64decode(payload_b64))
    pcm_24k = resample_pcm16(pcm_8k, TELEPHONY_SAMPLE_RATE, REALTIME_SAMPLE_RATE)
    return base64.b64encode(pcm_24k).decode("utf-8")


def realtime_to_telephony(delta_b64: str, audio_format: str = AUDIO_FORMAT_PCM16) -> str:
    """Convert one ``response.audio.delta`` payload into a Twilio media payload.

    Raises:
        ValueError: If the payload is not valid base64 or the format is unknown
    """
    if audio_format == AUDIO_FORMAT_G711_ULAW:
        return delta_b64
    if audio_format != AUDIO_FORMAT_PCM16:
        raise ValueError(f"Unsupported realtime audio format: {audio_format}")

    pcm_24k = _b64decode(delta_b64)
    pcm_8k = resample_pcm16(pcm_24k, REALTIME_SAMPLE_RATE, TELEPHONY_SAMPLE_RATE)
    return base64.b64encode(pcm16_to_ulaw(pcm_8k)).decode("utf-8")
