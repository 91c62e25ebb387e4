"""
Outgoing control and audio messages.

Messages serialize with camelCase keys and omit fields that are None, since the
platform treats a missing field differently from an explicit value
(no sampleRate means "use the stream's default").
"""
from typing import Literal, Optional

from pydantic_core import PydanticSerializationError

from src.stream.errors import SerializationError
from src.stream.models import WireModel

# Default outbound audio format
DEFAULT_CONTENT_TYPE = "audio/x-mulaw"
DEFAULT_SAMPLE_RATE = 8000


class MediaPayload(WireModel):
    content_type: Optional[str] = None
    sample_rate: Optional[int] = None
    payload: Optional[str] = None  # base64-encoded audio


class OutgoingMessage(WireModel):
    event: str
    # Assigned by the handler immediately before sending
    stream_id: Optional[str] = None


class PlayAudioMessage(OutgoingMessage):
    event: Literal["playAudio"] = "playAudio"
    media: MediaPayload


class MediaMessage(OutgoingMessage):
    event: Literal["media"] = "media"
    media: MediaPayload


class ClearAudioMessage(OutgoingMessage):
    event: Literal["clearAudio"] = "clearAudio"


class CheckpointMessage(OutgoingMessage):
    event: Literal["checkpoint"] = "checkpoint"
    name: str


def encode_message(message: OutgoingMessage) -> str:
    """
    Serialize an outgoing message to compact JSON.

    Raises:
        SerializationError: If the message cannot be encoded
    """
    try:
        return message.model_dump_json(by_alias=True, exclude_none=True)
    except (PydanticSerializationError, TypeError, ValueError) as e:
        raise SerializationError(f"Failed to serialize {message.event} message: {e}", cause=e) from e
