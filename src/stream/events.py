"""
Incoming stream events and the decoder that builds them from text frames.

The 'event' field alone picks the event class. Frames with a missing or
unrecognised 'event' decode to the plain StreamEvent so the common fields
are still available.
"""
import json
from enum import Enum
from typing import Dict, Literal, Optional, Type, Union

from pydantic import ValidationError

from src.stream.errors import ParseError
from src.stream.models import DtmfData, MediaData, StartData, WireModel


class EventType(str, Enum):
    START = "start"
    MEDIA = "media"
    DTMF = "dtmf"
    STOP = "stop"
    PLAYED_STREAM = "playedStream"
    CLEARED_AUDIO = "clearedAudio"


class StreamEvent(WireModel):
    """Fields shared by every event, also used for unknown event types."""

    event: Optional[str] = None
    sequence_number: int = 0
    stream_id: Optional[str] = None


class StartEvent(StreamEvent):
    event: Literal["start"] = "start"
    start: Optional[StartData] = None

    @property
    def call_id(self) -> Optional[str]:
        return self.start.call_id if self.start else None


class MediaEvent(StreamEvent):
    event: Literal["media"] = "media"
    media: Optional[MediaData] = None

    @property
    def raw_media(self) -> bytes:
        """Decoded audio bytes, or b"" if the event carries no payload."""
        return self.media.raw_payload if self.media else b""

    @property
    def track(self) -> Optional[str]:
        return self.media.track if self.media else None

    @property
    def chunk(self) -> int:
        return self.media.chunk if self.media else 0

    @property
    def timestamp(self) -> int:
        return self.media.timestamp_ms if self.media else 0


class DtmfEvent(StreamEvent):
    event: Literal["dtmf"] = "dtmf"
    dtmf: Optional[DtmfData] = None

    @property
    def digit(self) -> Optional[str]:
        return self.dtmf.digit if self.dtmf else None

    @property
    def track(self) -> Optional[str]:
        return self.dtmf.track if self.dtmf else None


class StopEvent(StreamEvent):
    event: Literal["stop"] = "stop"
    reason: Optional[str] = None


class PlayedStreamEvent(StreamEvent):
    """Sent once all audio queued before the named checkpoint has played."""

    event: Literal["playedStream"] = "playedStream"
    name: Optional[str] = None


class ClearedAudioEvent(StreamEvent):
    event: Literal["clearedAudio"] = "clearedAudio"


AnyStreamEvent = Union[
    StartEvent,
    MediaEvent,
    DtmfEvent,
    StopEvent,
    PlayedStreamEvent,
    ClearedAudioEvent,
    StreamEvent,
]

EVENT_TYPES: Dict[str, Type[StreamEvent]] = {
    EventType.START.value: StartEvent,
    EventType.MEDIA.value: MediaEvent,
    EventType.DTMF.value: DtmfEvent,
    EventType.STOP.value: StopEvent,
    EventType.PLAYED_STREAM.value: PlayedStreamEvent,
    EventType.CLEARED_AUDIO.value: ClearedAudioEvent,
}


def decode_event(raw: Union[str, bytes]) -> AnyStreamEvent:
    """
    Decode one text frame into a typed event.

    Args:
        raw: JSON text of a single event

    Returns:
        The matching StreamEvent subclass, or a plain StreamEvent for unknown types

    Raises:
        ParseError: If the frame is not a JSON object or a field has the wrong type
    """
    try:
        data = json.loads(raw)
    except (TypeError, ValueError) as e:
        raise ParseError(f"Malformed event JSON: {e}", cause=e) from e

    if not isinstance(data, dict):
        raise ParseError(f"Expected a JSON object, got {type(data).__name__}")

    name = data.get("event")
    if isinstance(name, (int, float, bool)):
        # Scalar discriminators are read as their JSON text, e.g. 5 -> "5"
        name = json.dumps(name)
        data = {**data, "event": name}
    event_cls = EVENT_TYPES.get(name, StreamEvent) if isinstance(name, str) else StreamEvent

    try:
        return event_cls.model_validate(data)
    except ValidationError as e:
        raise ParseError(f"Invalid '{name}' event: {e}", cause=e) from e
