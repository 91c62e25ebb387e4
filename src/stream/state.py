"""
Connection state for a single stream handler.

States:
- DISCONNECTED: No transport (before open, or after close)
- CONNECTED: Transport open, events flowing

A handler instance lives for exactly one connection, so CONNECTED is entered at
most once and DISCONNECTED after it is terminal.
"""
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional

from src.stream.models import MediaFormat, StartData


class ConnectionStatus(Enum):
    DISCONNECTED = "disconnected"
    CONNECTED = "connected"


@dataclass
class ConnectionState:
    """
    Stream metadata learned from the 'start' event.

    Every identifier is None until 'start' arrives. The fields are assigned one
    by one without a lock; a reader on another thread may briefly see a mix of
    old and new values.
    """
    status: ConnectionStatus = ConnectionStatus.DISCONNECTED
    stream_id: Optional[str] = None
    call_id: Optional[str] = None
    account_id: Optional[str] = None
    media_format: Optional[MediaFormat] = None
    connected_at: Optional[datetime] = None

    # Audio tracking
    media_received_count: int = 0
    media_sent_count: int = 0

    def apply_start(self, start: StartData) -> None:
        # A second 'start' overwrites everything without checking the stream id
        self.stream_id = start.stream_id
        self.call_id = start.call_id
        self.account_id = start.account_id
        self.media_format = start.media_format

    def duration_seconds(self) -> Optional[float]:
        if self.connected_at is None:
            return None
        return (datetime.now() - self.connected_at).total_seconds()
