"""
Transport abstraction consumed by StreamingHandler.

The handler runs synchronously on a worker thread; WebSocketTransport bridges
its blocking send_text() calls onto the event loop that owns the FastAPI
WebSocket.
"""
import asyncio
import logging
from typing import Optional, Protocol, runtime_checkable

from fastapi import WebSocket
from fastapi.websockets import WebSocketState

logger = logging.getLogger(__name__)


@runtime_checkable
class Transport(Protocol):
    @property
    def id(self) -> str: ...

    def is_open(self) -> bool: ...

    def send_text(self, message: str) -> None: ...

    def close(self) -> None: ...


class WebSocketTransport:
    """Synchronous Transport over an async FastAPI WebSocket."""

    def __init__(
        self,
        websocket: WebSocket,
        loop: asyncio.AbstractEventLoop,
        connection_id: Optional[str] = None,
        send_timeout: Optional[float] = None,
    ):
        self.websocket = websocket
        self.loop = loop
        self._id = connection_id or f"ws-{id(websocket):x}"
        self.send_timeout = send_timeout
        self._closed = False

    @property
    def id(self) -> str:
        return self._id

    def is_open(self) -> bool:
        if self._closed:
            return False
        return (
            self.websocket.client_state == WebSocketState.CONNECTED
            and self.websocket.application_state == WebSocketState.CONNECTED
        )

    def mark_closed(self):
        """Record that the peer went away so later sends fail fast."""
        self._closed = True

    def send_text(self, message: str) -> None:
        """
        Send a text frame and block until the event loop has written it.

        Must not be called from the event loop thread itself.
        """
        future = asyncio.run_coroutine_threadsafe(self.websocket.send_text(message), self.loop)
        future.result(timeout=self.send_timeout)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        future = asyncio.run_coroutine_threadsafe(self.websocket.close(), self.loop)
        try:
            future.result(timeout=self.send_timeout)
        except RuntimeError as e:
            # Starlette raises once the close frame was already sent
            logger.debug(f"[{self._id}] WebSocket already closed: {e}")
