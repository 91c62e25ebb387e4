"""
Interactive IVR stream application.

Demonstrates the full StreamEventListener interface:
- plays a welcome prompt, then the menu, chained with checkpoints
- navigates the menu with DTMF digits, clearing any prompt still playing
- tracks whether a prompt is currently playing from playedStream/clearedAudio

Prompts are raw audio files named <prompt>.raw in the prompt directory, sent in
the stream's default format. Missing prompts are skipped.
"""
import logging
import threading
from pathlib import Path
from typing import Dict, Optional

from src.stream.errors import StreamError
from src.stream.events import ClearedAudioEvent, DtmfEvent, PlayedStreamEvent, StartEvent, StopEvent
from src.stream.handler import StreamingHandler
from src.stream.listeners import StreamEventListener

logger = logging.getLogger(__name__)

# digit -> (prompt, checkpoint sent after it); checkpoint None waits for no follow-up
MENU_OPTIONS: Dict[str, tuple] = {
    "1": ("option1", "option1_complete"),
    "2": ("option2", "option2_complete"),
    "3": ("option3", "option3_complete"),
    "0": ("transfer", None),
    "*": ("menu", "menu_complete"),
}
INVALID_OPTION = ("invalid", "invalid_complete")

# checkpoint just played -> (next prompt, its checkpoint)
FOLLOW_UPS: Dict[str, tuple] = {
    "welcome_complete": ("menu", "menu_complete"),
    "option1_complete": ("anything_else", "anything_else_complete"),
    "option2_complete": ("anything_else", "anything_else_complete"),
    "option3_complete": ("anything_else", "anything_else_complete"),
}


class PromptLibrary:
    """Loads prompt audio from disk once and caches it, shared across calls."""

    def __init__(self, audio_dir: str):
        self.audio_dir = Path(audio_dir)
        self._cache: Dict[str, bytes] = {}
        self._lock = threading.Lock()

    def load(self, name: str) -> bytes:
        with self._lock:
            cached = self._cache.get(name)
        if cached is not None:
            return cached

        path = self.audio_dir / f"{name}.raw"
        try:
            audio = path.read_bytes()
        except FileNotFoundError:
            logger.debug(f"Prompt not found, using silence: {path}")
            return b""
        except OSError as e:
            logger.warning(f"Failed to load prompt {name}: {e}")
            return b""

        with self._lock:
            self._cache[name] = audio
        return audio


class IVRListener(StreamEventListener):
    def __init__(self, handler: StreamingHandler, prompts: PromptLibrary):
        self.handler = handler
        self.prompts = prompts
        self.is_playing = False

    def on_connected(self):
        logger.info("IVR session connected")

    def on_start(self, event: StartEvent):
        logger.info(f"IVR stream started for call: {event.call_id}")
        try:
            self._play("welcome", "welcome_complete")
        except StreamError as e:
            logger.error(f"Failed to play welcome message: {e}")

    def on_dtmf(self, event: DtmfEvent):
        digit = event.digit
        logger.info(f"Menu selection: {digit}")
        prompt, checkpoint = MENU_OPTIONS.get(digit, INVALID_OPTION)
        try:
            if self.is_playing:
                self.handler.send_clear_audio()
            self._play(prompt, checkpoint)
        except StreamError as e:
            logger.error(f"Failed to handle DTMF: {e}")

    def on_played_stream(self, event: PlayedStreamEvent):
        logger.info(f"Finished playing: {event.name}")
        self.is_playing = False

        follow_up = FOLLOW_UPS.get(event.name)
        if follow_up is None:
            # After the menu or an invalid choice, wait for input
            return
        try:
            self._play(*follow_up)
        except StreamError as e:
            logger.error(f"Failed to play next prompt: {e}")

    def on_cleared_audio(self, event: ClearedAudioEvent):
        logger.debug("Audio buffer cleared")
        self.is_playing = False

    def on_stop(self, event: StopEvent):
        logger.info(f"Stream stopped: {event.reason}")

    def on_disconnected(self, reason: Optional[str]):
        logger.info(f"IVR session disconnected: {reason}")

    def on_error(self, error: BaseException):
        logger.error(f"IVR error: {error}")

    def _play(self, prompt: str, checkpoint: Optional[str]):
        audio = self.prompts.load(prompt)
        if audio:
            self.handler.send_audio(audio)
        if checkpoint:
            self.handler.send_checkpoint(checkpoint)
        self.is_playing = True


def create_ivr_handler(prompts: PromptLibrary) -> StreamingHandler:
    handler = StreamingHandler()
    handler.add_listener(IVRListener(handler, prompts))
    return handler
