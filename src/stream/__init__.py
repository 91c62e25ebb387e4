"""Audio stream event SDK"""
from .answer import generate_stream_xml, websocket_url_for
from .endpoint import ConnectionManager, StreamEndpoint
from .errors import CallbackError, NotConnectedError, ParseError, SerializationError, StreamError
from .events import (
    ClearedAudioEvent,
    DtmfEvent,
    EventType,
    MediaEvent,
    PlayedStreamEvent,
    StartEvent,
    StopEvent,
    StreamEvent,
    decode_event,
)
from .handler import StreamingHandler
from .listeners import StreamEventListener
from .messages import (
    DEFAULT_CONTENT_TYPE,
    DEFAULT_SAMPLE_RATE,
    CheckpointMessage,
    ClearAudioMessage,
    MediaMessage,
    PlayAudioMessage,
    encode_message,
)
from .models import DtmfData, MediaData, MediaFormat, StartData
from .transport import Transport, WebSocketTransport

__all__ = [
    "generate_stream_xml",
    "websocket_url_for",
    "ConnectionManager",
    "StreamEndpoint",
    "StreamError",
    "ParseError",
    "NotConnectedError",
    "SerializationError",
    "CallbackError",
    "EventType",
    "StreamEvent",
    "StartEvent",
    "MediaEvent",
    "DtmfEvent",
    "StopEvent",
    "PlayedStreamEvent",
    "ClearedAudioEvent",
    "decode_event",
    "StreamingHandler",
    "StreamEventListener",
    "DEFAULT_CONTENT_TYPE",
    "DEFAULT_SAMPLE_RATE",
    "PlayAudioMessage",
    "MediaMessage",
    "ClearAudioMessage",
    "CheckpointMessage",
    "encode_message",
    "MediaFormat",
    "StartData",
    "MediaData",
    "DtmfData",
    "Transport",
    "WebSocketTransport",
]
