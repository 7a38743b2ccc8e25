"""
Handlers for the HTTP side of an inbound Twilio call.

- voice_webhook: builds the TwiML answer that connects a call to ``/media-stream``.
"""

from handyman_voice.handlers.voice_webhook import build_stream_twiml, media_stream_url

__all__ = ["build_stream_twiml", "media_stream_url"]
