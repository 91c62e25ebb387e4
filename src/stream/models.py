"""
Wire models for the payloads carried inside stream events.

Field names are snake_case in Python and camelCase on the wire.
Unknown fields are ignored so newer platform payloads still decode.
"""
import base64
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class WireModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


class MediaFormat(WireModel):
    encoding: Optional[str] = None  # "audio/x-mulaw"
    sample_rate: int = 0  # 8000


class StartData(WireModel):
    """Metadata sent once per stream in the 'start' event."""

    stream_id: Optional[str] = None
    call_id: Optional[str] = None
    account_id: Optional[str] = None
    tracks: List[str] = Field(default_factory=list)
    media_format: Optional[MediaFormat] = None
    custom_parameters: Dict[str, Any] = Field(default_factory=dict)


class MediaData(WireModel):
    track: Optional[str] = None
    chunk: int = 0
    timestamp: Optional[str] = None  # decimal milliseconds, sent as a string
    payload: Optional[str] = None  # base64-encoded audio

    @field_validator("timestamp", mode="before")
    @classmethod
    def _timestamp_as_text(cls, value):
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value

    @property
    def timestamp_ms(self) -> int:
        """
        Timestamp in milliseconds.

        Empty or missing timestamps read as 0. A non-numeric timestamp raises
        ValueError.
        """
        if not self.timestamp:
            return 0
        return int(self.timestamp)

    @property
    def raw_payload(self) -> bytes:
        """Decoded audio bytes, empty when there is no payload."""
        if not self.payload:
            return b""
        return base64.b64decode(self.payload)


class DtmfData(WireModel):
    digit: Optional[str] = None  # "0"-"9", "*" or "#"
    track: Optional[str] = None
