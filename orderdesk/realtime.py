"""Fire-and-forget broadcast of order and billing events to dashboards.

Nothing here is acknowledged or replayed: a client that connects after an
event went out never sees it and is expected to re-fetch state over HTTP.
"""
import asyncio
import logging
from typing import Any, Protocol

from fastapi import WebSocket

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    def emit(self, event: str, payload: Any) -> None: ...


class NullNotifier:
    """For scripts and jobs that call the services without a running app."""
    def emit(self, event: str, payload: Any) -> None:
        pass


class SocketRelay:
    def __init__(self) -> None:
        self._clients: set[WebSocket] = set()
        self._loop: asyncio.AbstractEventLoop | None = None

    @property
    def client_count(self) -> int:
        return len(self._clients)

    async def connect(self, ws: WebSocket) -> None:
        await ws.accept()
        self._loop = asyncio.get_running_loop()
        self._clients.add(ws)
        logger.info("dashboard client connected (%d total)", len(self._clients))

    def disconnect(self, ws: WebSocket) -> None:
        if ws in self._clients:
            self._clients.discard(ws)
            logger.info("dashboard client gone (%d left)", len(self._clients))

    def emit(self, event: str, payload: Any) -> None:
        # called from sync handlers running in the threadpool
        if not self._clients or self._loop is None or self._loop.is_closed():
            logger.debug("no listeners, dropped %s", event)
            return
        message = {"event": event, "data": payload}
        try:
            asyncio.run_coroutine_threadsafe(self._broadcast(message), self._loop)
        except RuntimeError:
            logger.warning("event loop unavailable, dropped %s", event)

    async def _broadcast(self, message: dict) -> None:
        for ws in list(self._clients):
            try:
                await ws.send_json(message)
            except Exception as e:
                logger.info("send failed (%s), dropping client", e)
                self.disconnect(ws)
