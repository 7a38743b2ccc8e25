"""
FastAPI server bridging Twilio phone calls to the OpenAI Realtime API.

Twilio calls ``POST /voice`` when a call arrives and is told to stream the call's
audio to ``/media-stream``. Each media stream connection gets its own
``CallBridge``, which pairs it with a fresh OpenAI Realtime session acting as the
handyman business's receptionist. Confirmed bookings are texted to the customer
and the operator in the background.
"""

from contextlib import asynccontextmanager
from typing import Set

from fastapi import FastAPI, Form, Request, WebSocket
from fastapi.responses import Response

from handyman_voice.bot.call_bridge import CallBridge
from handyman_voice.config import settings
from handyman_voice.config.logging_config import configure_logging
from handyman_voice.handlers.voice_webhook import build_stream_twiml
from handyman_voice.services.booking_submission import BookingSubmitter

# Configure logging
logger = configure_logging()

APP_NAME = "Handyman Voice Bridge"
APP_DESCRIPTION = "Bridge between Twilio Media Streams and the OpenAI Realtime API"
APP_VERSION = "1.0.0"

# Shared by every call; only holds in-flight background submissions
submitter = BookingSubmitter()
active_calls: Set[CallBridge] = set()


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    logger.info("Shutting down; waiting for pending booking submissions")
    await submitter.drain()


# Create FastAPI application
app = FastAPI(
    title=APP_NAME,
    description=APP_DESCRIPTION,
    version=APP_VERSION,
    lifespan=lifespan,
)


@app.websocket("/media-stream")
async def media_stream(websocket: WebSocket):
    """WebSocket endpoint for Twilio Media Streams, one connection per call."""
    bridge = CallBridge(websocket, submitter)
    active_calls.add(bridge)
    try:
        await bridge.run()
    finally:
        active_calls.discard(bridge)


@app.post("/voice")
async def voice_webhook(request: Request, From: str = Form(default="")):
    """Inbound-call webhook: answer with TwiML that streams the call to ``/media-stream``.

    Uses ``PUBLIC_BASE_URL`` when set, otherwise the Host header Twilio reached us on.
    """
    base_url = settings.PUBLIC_BASE_URL or request.headers.get("host", request.url.netloc)
    twiml = build_stream_twiml(base_url, From or None)
    return Response(content=twiml, media_type="application/xml")


@app.get("/health")
async def health_check():
    """Health check endpoint for monitoring system status.

    Returns:
        dict: Status, whether the OpenAI and Twilio credentials are configured, and
        the number of calls currently bridged.
    """
    return {
        "status": "healthy",
        "openai_api_key_configured": bool(settings.OPENAI_API_KEY),
        "twilio_configured": bool(
            settings.TWILIO_ACCOUNT_SID and settings.TWILIO_AUTH_TOKEN and settings.TWILIO_FROM_NUMBER
        ),
        "active_calls": len(active_calls),
    }


@app.get("/")
async def root():
    """Root endpoint to display basic information about the API."""
    return {
        "name": APP_NAME,
        "description": APP_DESCRIPTION,
        "version": APP_VERSION,
        "endpoints": {
            "/voice": "Twilio inbound-call webhook (TwiML)",
            "/media-stream": "WebSocket endpoint for Twilio Media Streams",
            "/health": "Health check endpoint",
        },
    }


if __name__ == "__main__":
    import uvicorn

    logger.info(f"Starting server on http://{settings.HOST}:{settings.PORT}")
    uvicorn.run(
        app,
        host=settings.HOST,
        port=settings.PORT,
        # Frequent pings keep long phone calls alive through proxies
        websocket_ping_interval=5,
        websocket_ping_timeout=20,
        websocket_max_size=16777216,
        http="h11",
    )
