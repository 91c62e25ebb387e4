"""
WebSocket endpoint glue between FastAPI and StreamingHandler.

Each accepted connection gets a fresh handler from the factory. Handler entry
points run in a worker thread via asyncio.to_thread so that callbacks may call
the blocking send methods, which hop back onto this event loop to write.
The close notification runs inline once the transport is marked closed.
"""
import asyncio
import logging
from typing import Callable, Dict, Optional

from fastapi import WebSocket

from src.stream.handler import StreamingHandler
from src.stream.transport import WebSocketTransport

logger = logging.getLogger(__name__)

HandlerFactory = Callable[[], StreamingHandler]

# 1013 = Try Again Later
CLOSE_CODE_AT_CAPACITY = 1013


class ConnectionManager:
    """Tracks the handler of every live stream connection."""

    def __init__(self):
        self.active_handlers: Dict[str, StreamingHandler] = {}

    def connect(self, connection_id: str, handler: StreamingHandler):
        self.active_handlers[connection_id] = handler
        logger.info(f"Connection registered: {connection_id}")

    def disconnect(self, connection_id: str):
        self.active_handlers.pop(connection_id, None)
        logger.info(f"Connection removed: {connection_id}")

    def get(self, connection_id: str) -> Optional[StreamingHandler]:
        return self.active_handlers.get(connection_id)

    def get_active_count(self) -> int:
        return len(self.active_handlers)


class StreamEndpoint:
    """Serves one WebSocket connection per call to serve()."""

    def __init__(
        self,
        handler_factory: HandlerFactory,
        manager: Optional[ConnectionManager] = None,
        max_connections: Optional[int] = None,
        send_timeout: Optional[float] = None,
    ):
        self.handler_factory = handler_factory
        self.manager = manager or ConnectionManager()
        self.max_connections = max_connections
        self.send_timeout = send_timeout

    async def serve(self, websocket: WebSocket):
        if self.max_connections is not None and self.manager.get_active_count() >= self.max_connections:
            logger.warning(f"Connection rejected: at capacity ({self.max_connections} concurrent streams)")
            await websocket.close(code=CLOSE_CODE_AT_CAPACITY)
            return

        await websocket.accept()
        transport = WebSocketTransport(
            websocket,
            asyncio.get_running_loop(),
            send_timeout=self.send_timeout,
        )
        handler = self.handler_factory()
        self.manager.connect(transport.id, handler)
        close_reason: Optional[str] = None

        try:
            await asyncio.to_thread(handler.handle_open, transport)

            while True:
                message = await websocket.receive()
                if message["type"] == "websocket.disconnect":
                    close_reason = message.get("reason") or f"code {message.get('code', 1000)}"
                    break

                text = message.get("text")
                if text is None:
                    logger.warning(f"[{transport.id}] Ignoring binary frame")
                    continue

                await asyncio.to_thread(handler.handle_message, text)

        except Exception as e:
            logger.error(f"[{transport.id}] WebSocket error: {e}", exc_info=True)
            close_reason = str(e)
            await asyncio.to_thread(handler.handle_error, e)
        finally:
            # No awaits here: the task may be cancelled on shutdown.
            # The transport is closed first, so sends from disconnect callbacks fail fast.
            transport.mark_closed()
            self.manager.disconnect(transport.id)
            handler.handle_close(close_reason)
