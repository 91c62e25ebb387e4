"""
Event dispatch for a single audio stream connection.

StreamingHandler decodes incoming frames, keeps the stream metadata from the
'start' event and fans each event out to:

1. the single-slot callback registered for that event kind (if any)
2. every full listener, in registration order

Each callback runs in isolation: an exception is logged, wrapped in
CallbackError and forwarded to the error callbacks, and dispatch continues with
the next listener. Nothing raised by a callback escapes into the transport.

Usage:
    handler = StreamingHandler()
    handler.on_media(lambda event: handler.send_audio(event.raw_media))
    handler.add_listener(MyListener(handler))
"""
import base64
import logging
import threading
from datetime import datetime
from typing import Any, Callable, Dict, Optional, Tuple, Type

from src.stream.errors import CallbackError, NotConnectedError, ParseError
from src.stream.events import (
    ClearedAudioEvent,
    DtmfEvent,
    MediaEvent,
    PlayedStreamEvent,
    StartEvent,
    StopEvent,
    StreamEvent,
    decode_event,
)
from src.stream.listeners import (
    ClearedAudioCallback,
    ConnectionCallback,
    DisconnectCallback,
    DtmfCallback,
    ErrorCallback,
    MediaCallback,
    PlayedStreamCallback,
    StartCallback,
    StopCallback,
    StreamEventListener,
)
from src.stream.messages import (
    DEFAULT_CONTENT_TYPE,
    DEFAULT_SAMPLE_RATE,
    CheckpointMessage,
    ClearAudioMessage,
    MediaMessage,
    MediaPayload,
    OutgoingMessage,
    PlayAudioMessage,
    encode_message,
)
from src.stream.models import MediaFormat
from src.stream.state import ConnectionState, ConnectionStatus
from src.stream.transport import Transport

logger = logging.getLogger(__name__)

# event class -> (callback slot, listener method)
EVENT_ROUTES: Dict[Type[StreamEvent], Tuple[str, str]] = {
    StartEvent: ("start", "on_start"),
    MediaEvent: ("media", "on_media"),
    DtmfEvent: ("dtmf", "on_dtmf"),
    StopEvent: ("stop", "on_stop"),
    PlayedStreamEvent: ("played_stream", "on_played_stream"),
    ClearedAudioEvent: ("cleared_audio", "on_cleared_audio"),
}


class StreamingHandler:
    """Connection-scoped event dispatcher and outbound message sender."""

    def __init__(self):
        self.state = ConnectionState()
        self._transport: Optional[Transport] = None
        self._callbacks: Dict[str, Callable[..., Any]] = {}
        # Copy-on-write: dispatch iterates whatever tuple it read
        self._listeners: Tuple[StreamEventListener, ...] = ()
        self._listeners_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Callback registration
    # ------------------------------------------------------------------

    def on_connected(self, callback: ConnectionCallback) -> "StreamingHandler":
        self._callbacks["connected"] = callback
        return self

    def on_start(self, callback: StartCallback) -> "StreamingHandler":
        self._callbacks["start"] = callback
        return self

    def on_media(self, callback: MediaCallback) -> "StreamingHandler":
        self._callbacks["media"] = callback
        return self

    def on_dtmf(self, callback: DtmfCallback) -> "StreamingHandler":
        self._callbacks["dtmf"] = callback
        return self

    def on_stop(self, callback: StopCallback) -> "StreamingHandler":
        self._callbacks["stop"] = callback
        return self

    def on_played_stream(self, callback: PlayedStreamCallback) -> "StreamingHandler":
        self._callbacks["played_stream"] = callback
        return self

    def on_cleared_audio(self, callback: ClearedAudioCallback) -> "StreamingHandler":
        self._callbacks["cleared_audio"] = callback
        return self

    def on_disconnected(self, callback: DisconnectCallback) -> "StreamingHandler":
        self._callbacks["disconnected"] = callback
        return self

    def on_error(self, callback: ErrorCallback) -> "StreamingHandler":
        self._callbacks["error"] = callback
        return self

    def add_listener(self, listener: StreamEventListener) -> "StreamingHandler":
        with self._listeners_lock:
            self._listeners = self._listeners + (listener,)
        return self

    def remove_listener(self, listener: StreamEventListener) -> "StreamingHandler":
        """Remove the first registration of listener; unknown listeners are ignored."""
        with self._listeners_lock:
            listeners = list(self._listeners)
            if listener in listeners:
                listeners.remove(listener)
                self._listeners = tuple(listeners)
        return self

    @property
    def listeners(self) -> Tuple[StreamEventListener, ...]:
        return self._listeners

    # ------------------------------------------------------------------
    # Connection lifecycle (called by the endpoint)
    # ------------------------------------------------------------------

    def handle_open(self, transport: Transport):
        """Attach the transport and notify connection callbacks."""
        self._transport = transport
        self.state.status = ConnectionStatus.CONNECTED
        self.state.connected_at = datetime.now()
        logger.info(f"WebSocket connection opened: {transport.id}")

        self._fire("connected", "on_connected")

    def handle_message(self, message: str):
        """Decode one text frame and dispatch it."""
        try:
            event = decode_event(message)
        except ParseError as e:
            logger.error(f"Failed to parse message: {message[:200]!r}: {e}")
            self.handle_error(e)
            return

        self._dispatch(event)

    def handle_close(self, reason: Optional[str] = None):
        """Detach the transport and notify disconnect callbacks. Safe without a prior open."""
        logger.info(f"WebSocket connection closed: {reason}")
        self.state.status = ConnectionStatus.DISCONNECTED

        self._fire("disconnected", "on_disconnected", reason)

        duration = self.state.duration_seconds()
        if duration is not None:
            logger.info(
                f"Stream {self.state.stream_id} closed after {duration:.1f}s, "
                f"media received: {self.state.media_received_count}, "
                f"media sent: {self.state.media_sent_count}"
            )
        self._transport = None

    def handle_error(self, error: BaseException):
        """Report an error to the error callback and listeners. Never raises."""
        # Callback and parse failures were already logged where they happened
        if not isinstance(error, (CallbackError, ParseError)):
            logger.error(f"Stream error: {error}")

        callback = self._callbacks.get("error")
        if callback is not None:
            try:
                callback(error)
            except Exception as e:
                logger.error(f"Error in error callback: {e}", exc_info=True)

        for listener in self._listeners:
            on_error = getattr(listener, "on_error", None)
            if on_error is None:
                continue
            try:
                on_error(error)
            except Exception as e:
                logger.error(f"Error in listener error callback: {e}", exc_info=True)

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    def _dispatch(self, event: StreamEvent):
        route = EVENT_ROUTES.get(type(event))
        if route is None:
            logger.info(f"Unknown event type: {event.event!r}, dropping")
            return

        if isinstance(event, MediaEvent):
            self.state.media_received_count += 1
            logger.debug(f"Media chunk {event.chunk} on track {event.track}")
        elif isinstance(event, StartEvent):
            if event.start is not None:
                if self.state.stream_id is not None:
                    logger.warning(
                        f"Second start event on stream {self.state.stream_id}, "
                        f"overwriting with {event.start.stream_id}"
                    )
                self.state.apply_start(event.start)
            logger.info(f"Stream started: streamId={self.state.stream_id}, callId={self.state.call_id}")
        elif isinstance(event, StopEvent):
            logger.info(f"Stream stopped: {event.reason}")
        elif isinstance(event, DtmfEvent):
            logger.debug(f"DTMF detected: {event.digit}")
        elif isinstance(event, PlayedStreamEvent):
            logger.debug(f"Checkpoint played: {event.name}")
        else:
            logger.debug(f"Audio cleared on stream: {event.stream_id}")

        slot, method_name = route
        self._fire(slot, method_name, event)

    def _fire(self, slot: str, method_name: str, *args):
        callback = self._callbacks.get(slot)
        if callback is not None:
            self._invoke(f"{slot} callback", callback, *args)

        for listener in self._listeners:
            method = getattr(listener, method_name, None)
            if method is None:
                # Duck-typed listeners may implement only some events
                continue
            self._invoke(f"{type(listener).__name__}.{method_name}", method, *args)

    def _invoke(self, name: str, fn: Callable[..., Any], *args):
        try:
            fn(*args)
        except Exception as e:
            logger.error(f"Error in {name}: {e}", exc_info=True)
            self.handle_error(CallbackError(name, e))

    # ------------------------------------------------------------------
    # Outbound messages
    # ------------------------------------------------------------------

    def send_audio(
        self,
        audio: bytes,
        content_type: Optional[str] = None,
        sample_rate: Optional[int] = None,
    ):
        """
        Play audio to the caller.

        Args:
            audio: Raw audio bytes (base64-encoded here)
            content_type: e.g. "audio/x-mulaw" or "audio/x-l16" (default audio/x-mulaw)
            sample_rate: Sample rate in Hz (default 8000)

        Raises:
            NotConnectedError: If the connection is not open
            SerializationError: If the message cannot be encoded
        """
        transport = self._require_transport()
        message = PlayAudioMessage(
            media=MediaPayload(
                content_type=content_type if content_type is not None else DEFAULT_CONTENT_TYPE,
                sample_rate=sample_rate if sample_rate is not None else DEFAULT_SAMPLE_RATE,
                payload=base64.b64encode(audio).decode("ascii"),
            )
        )
        self._send(transport, message)
        self.state.media_sent_count += 1

    def send_media(
        self,
        audio: bytes,
        content_type: Optional[str] = None,
        sample_rate: Optional[int] = None,
    ):
        """
        Send audio as a legacy 'media' message.

        Unlike send_audio(), unset format fields are left out so the platform
        applies the stream's negotiated format.
        """
        transport = self._require_transport()
        message = MediaMessage(
            media=MediaPayload(
                content_type=content_type,
                sample_rate=sample_rate,
                payload=base64.b64encode(audio).decode("ascii"),
            )
        )
        self._send(transport, message)
        self.state.media_sent_count += 1

    def send_clear_audio(self):
        """Stop any audio currently playing or buffered on the stream."""
        transport = self._require_transport()
        self._send(transport, ClearAudioMessage())

    def send_checkpoint(self, name: str):
        """
        Queue a named checkpoint.

        The platform answers with a 'playedStream' event carrying the same name
        once all audio sent before the checkpoint has played.
        """
        transport = self._require_transport()
        self._send(transport, CheckpointMessage(name=name))

    def _require_transport(self) -> Transport:
        transport = self._transport
        if transport is None or not transport.is_open():
            raise NotConnectedError()
        return transport

    def _send(self, transport: Transport, message: OutgoingMessage):
        message.stream_id = self.state.stream_id
        text = encode_message(message)
        transport.send_text(text)
        logger.debug(f"Sent {message.event} message on stream {message.stream_id}")

    # ------------------------------------------------------------------
    # Stream state
    # ------------------------------------------------------------------

    @property
    def stream_id(self) -> Optional[str]:
        return self.state.stream_id

    @property
    def call_id(self) -> Optional[str]:
        return self.state.call_id

    @property
    def account_id(self) -> Optional[str]:
        return self.state.account_id

    @property
    def media_format(self) -> Optional[MediaFormat]:
        return self.state.media_format

    @property
    def is_connected(self) -> bool:
        transport = self._transport
        return transport is not None and transport.is_open()

    @property
    def transport(self) -> Optional[Transport]:
        return self._transport
