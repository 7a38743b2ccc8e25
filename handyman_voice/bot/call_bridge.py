"""
Bridge orchestrator pairing one Twilio media stream with one Realtime session.

``CallBridge`` is the only object allowed to close either leg of a call. Both
receive loops, the ``stop`` event and any error funnel into ``CallBridge.close``,
which closes the Realtime session first and the media websocket second.
"""

import asyncio
import logging
from typing import Callable, List, Optional

from fastapi import WebSocket
from starlette.websockets import WebSocketState

from handyman_voice.bot.media_relay import TelephonyMediaRelay
from handyman_voice.bot.realtime_session import RealtimeSession
from handyman_voice.config.constants import LOGGER_NAME, UNKNOWN_CALLER
from handyman_voice.exceptions import SessionSetupError
from handyman_voice.models.call_context import CallContext, CallState
from handyman_voice.services.booking_submission import BookingSubmitter

logger = logging.getLogger(LOGGER_NAME)

SessionFactory = Callable[[CallContext, BookingSubmitter], RealtimeSession]


class CallBridge:
    """
    Owns one call: its context, its media relay and its Realtime session.

    Lifecycle: ``AWAITING_SESSION`` -> ``BRIDGED`` -> ``CLOSED``, or straight to
    ``CLOSED`` when the Realtime session cannot be established.
    """

    def __init__(
        self,
        websocket: WebSocket,
        submitter: BookingSubmitter,
        session_factory: SessionFactory = RealtimeSession,
    ):
        self.websocket = websocket
        self.submitter = submitter
        self.session_factory = session_factory
        self.context = CallContext(caller=self._caller_from_query(websocket))
        self.session: Optional[RealtimeSession] = None
        self.relay: Optional[TelephonyMediaRelay] = None
        self._tasks: List[asyncio.Task] = []
        self._close_lock = asyncio.Lock()

    @property
    def state(self) -> CallState:
        return self.context.state

    async def run(self) -> None:
        """Accept the media websocket, bridge it to a new Realtime session, and run until either leg ends."""
        await self.websocket.accept()
        logger.info(f"Media stream connection accepted (caller: {self.context.caller})")

        self.session = self.session_factory(self.context, self.submitter)
        try:
            await self.session.connect()
        except SessionSetupError as e:
            logger.error(f"Realtime session setup failed; closing media stream: {e}")
            await self.close()
            return

        self.relay = TelephonyMediaRelay(self.websocket, self.context, self.session, on_stop=self.close)
        self.session.attach_output(self.relay.send_media, self.relay.send_clear)
        self.context.state = CallState.BRIDGED
        logger.info("Call bridged to OpenAI Realtime session")

        self._tasks = [
            asyncio.create_task(self.relay.receive_loop(), name="twilio-receive"),
            asyncio.create_task(self.session.receive_loop(), name="realtime-receive"),
        ]
        try:
            done, _ = await asyncio.wait(self._tasks, return_when=asyncio.FIRST_COMPLETED)
            for task in done:
                if not task.cancelled() and task.exception() is not None:
                    logger.error(
                        f"Call leg {task.get_name()} failed: {task.exception()}",
                        exc_info=task.exception(),
                    )
        finally:
            await self.close()
            await asyncio.gather(*self._tasks, return_exceptions=True)

    async def close(self) -> None:
        """
        Tear down both legs of the call exactly once.

        The Realtime session (and its pending tool-call buffers) goes first, then the
        media websocket, then whichever receive loop is still running.
        """
        async with self._close_lock:
            if self.context.state == CallState.CLOSED:
                return
            self.context.state = CallState.CLOSED

            if self.session is not None:
                await self.session.close()

            await self._close_websocket()

            current = asyncio.current_task()
            for task in self._tasks:
                if task is not current and not task.done():
                    task.cancel()

        stats = self.relay.frame_stats() if self.relay else None
        logger.info(f"Call {self.context.label()} closed" + (f" ({stats})" if stats else ""))

    async def _close_websocket(self) -> None:
        if self.websocket.client_state == WebSocketState.DISCONNECTED:
            return
        try:
            await self.websocket.close()
        except RuntimeError as e:
            logger.debug(f"Media websocket already closed: {e}")

    @staticmethod
    def _caller_from_query(websocket: WebSocket) -> str:
        try:
            caller = websocket.query_params.get("caller")
        except (AttributeError, KeyError):
            caller = None
        return caller or UNKNOWN_CALLER
