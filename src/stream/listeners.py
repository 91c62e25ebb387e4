"""
Listener interfaces for stream events.

Two registration styles can be mixed on one handler:

- single-slot callbacks (handler.on_media(fn)), one per event kind
- full listeners (handler.add_listener(obj)), subclasses of StreamEventListener

Subclasses override only the events they care about; the rest are no-ops.
"""
from typing import Callable, Optional

from src.stream.events import (
    ClearedAudioEvent,
    DtmfEvent,
    MediaEvent,
    PlayedStreamEvent,
    StartEvent,
    StopEvent,
)

ConnectionCallback = Callable[[], None]
DisconnectCallback = Callable[[Optional[str]], None]
StartCallback = Callable[[StartEvent], None]
MediaCallback = Callable[[MediaEvent], None]
DtmfCallback = Callable[[DtmfEvent], None]
StopCallback = Callable[[StopEvent], None]
PlayedStreamCallback = Callable[[PlayedStreamEvent], None]
ClearedAudioCallback = Callable[[ClearedAudioEvent], None]
ErrorCallback = Callable[[BaseException], None]


class StreamEventListener:
    """Base listener with a no-op method for every stream event."""

    def on_connected(self) -> None:
        """Called when the WebSocket connection is established."""

    def on_start(self, event: StartEvent) -> None:
        """Called when a stream starts with metadata about the call."""

    def on_media(self, event: MediaEvent) -> None:
        """Called for every inbound audio chunk."""

    def on_dtmf(self, event: DtmfEvent) -> None:
        """Called when a DTMF digit is detected."""

    def on_stop(self, event: StopEvent) -> None:
        """Called when the stream stops."""

    def on_played_stream(self, event: PlayedStreamEvent) -> None:
        """Called when audio queued before a checkpoint has finished playing."""

    def on_cleared_audio(self, event: ClearedAudioEvent) -> None:
        """Called when the platform confirms the audio buffer was cleared."""

    def on_disconnected(self, reason: Optional[str]) -> None:
        """Called when the WebSocket connection closes; reason may be None."""

    def on_error(self, error: BaseException) -> None:
        """Called when parsing or a callback fails."""
