"""WebSocket push of session events.

A client receives the current session as a ``snapshot`` event when it
connects, then every ``SessionEvent`` the controller emits.
"""

import asyncio
import logging
from typing import Callable

from fastapi import WebSocket

from lanlauncher.session.models import SessionEvent, SessionEventKind, SessionInfo

logger = logging.getLogger(__name__)


class ConnectionManager:
    """Fans session events out to the connected status clients."""

    def __init__(self, snapshot: Callable[[], SessionInfo]) -> None:
        self._snapshot = snapshot
        self._clients: list[WebSocket] = []
        self._lock = asyncio.Lock()

    async def connect(self, websocket: WebSocket) -> None:
        await websocket.accept()
        greeting = SessionEvent(event=SessionEventKind.SNAPSHOT, session=self._snapshot())
        async with self._lock:
            # Under the lock so no event can overtake the snapshot
            await websocket.send_text(greeting.model_dump_json())
            self._clients.append(websocket)
        logger.info(f"Status client connected ({len(self._clients)} watching)")

    async def disconnect(self, websocket: WebSocket) -> None:
        async with self._lock:
            if websocket in self._clients:
                self._clients.remove(websocket)
        logger.info(f"Status client disconnected ({len(self._clients)} watching)")

    async def handle_event(self, event: SessionEvent) -> None:
        """Controller callback: push one event to every client, dropping dead sockets."""
        message = event.model_dump_json()
        async with self._lock:
            alive: list[WebSocket] = []
            for ws in self._clients:
                try:
                    await ws.send_text(message)
                except Exception as e:
                    logger.debug(f"Dropping status client after {event.event.value}: {e}")
                    continue
                alive.append(ws)
            self._clients = alive
