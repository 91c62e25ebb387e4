"""
Echo stream application.

Plays every inbound audio chunk straight back to the caller using the
single-slot callbacks. Pressing 1 clears whatever is still queued for playback.
"""
import logging

from src.stream.errors import StreamError
from src.stream.events import DtmfEvent, MediaEvent, StartEvent
from src.stream.handler import StreamingHandler

logger = logging.getLogger(__name__)

CLEAR_DIGIT = "1"


def create_echo_handler() -> StreamingHandler:
    handler = StreamingHandler()

    def on_start(event: StartEvent):
        start = event.start
        if start is None:
            return
        logger.info(
            f"Stream started: {start.stream_id}, Call: {start.call_id}, "
            f"Account: {start.account_id}, Tracks: {start.tracks}"
        )
        if start.media_format:
            logger.info(f"Media format: {start.media_format.encoding} @ {start.media_format.sample_rate}Hz")

    def on_media(event: MediaEvent):
        audio = event.raw_media
        logger.debug(f"Received {len(audio)} bytes at chunk {event.chunk} (timestamp: {event.timestamp}ms)")
        if not audio:
            return

        # Echo back in the format the caller's audio arrived in
        media_format = handler.media_format
        content_type = media_format.encoding if media_format else None
        sample_rate = media_format.sample_rate if media_format and media_format.sample_rate else None
        try:
            handler.send_audio(audio, content_type, sample_rate)
        except StreamError as e:
            logger.error(f"Failed to send media: {e}")

    def on_dtmf(event: DtmfEvent):
        logger.info(f"DTMF digit '{event.digit}' pressed on track '{event.track}'")
        if event.digit == CLEAR_DIGIT:
            try:
                handler.send_clear_audio()
                logger.info("Audio buffer cleared")
            except StreamError as e:
                logger.error(f"Failed to clear audio: {e}")

    (
        handler.on_start(on_start)
        .on_media(on_media)
        .on_dtmf(on_dtmf)
        .on_disconnected(lambda reason: logger.info(f"Stream disconnected: {reason}"))
        .on_error(lambda error: logger.error(f"Stream error: {error}"))
    )
    return handler
