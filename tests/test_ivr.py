"""Tests for the IVR example listener."""

import pytest

from src.examples.ivr import IVRListener, PromptLibrary, create_ivr_handler
from tests.conftest import START_FRAME, FakeTransport


@pytest.fixture
def prompt_dir(tmp_path):
    for name in ["welcome", "menu", "option1", "anything_else"]:
        (tmp_path / f"{name}.raw").write_bytes(name.encode())
    return tmp_path


@pytest.fixture
def ivr(prompt_dir):
    handler = create_ivr_handler(PromptLibrary(str(prompt_dir)))
    transport = FakeTransport()
    handler.handle_open(transport)
    listener = handler.listeners[0]
    return handler, listener, transport


def events_sent(transport):
    return [(m["event"], m.get("name")) for m in transport.sent_json]


def test_prompt_library_caches(prompt_dir):
    prompts = PromptLibrary(str(prompt_dir))
    assert prompts.load("welcome") == b"welcome"

    (prompt_dir / "welcome.raw").write_bytes(b"changed")
    assert prompts.load("welcome") == b"welcome"


def test_prompt_library_missing_file_is_silence(prompt_dir):
    assert PromptLibrary(str(prompt_dir)).load("nope") == b""


def test_start_plays_welcome_with_checkpoint(ivr):
    handler, listener, transport = ivr
    handler.handle_message(START_FRAME)

    assert isinstance(listener, IVRListener)
    assert events_sent(transport) == [("playAudio", None), ("checkpoint", "welcome_complete")]
    assert listener.is_playing is True


def test_welcome_complete_plays_menu(ivr):
    handler, listener, transport = ivr
    handler.handle_message(START_FRAME)
    transport.sent.clear()

    handler.handle_message('{"event":"playedStream","streamId":"S1","name":"welcome_complete"}')

    assert events_sent(transport) == [("playAudio", None), ("checkpoint", "menu_complete")]
    assert listener.is_playing is True


def test_menu_complete_waits_for_input(ivr):
    handler, listener, transport = ivr
    handler.handle_message(START_FRAME)
    transport.sent.clear()

    handler.handle_message('{"event":"playedStream","streamId":"S1","name":"menu_complete"}')

    assert transport.sent == []
    assert listener.is_playing is False


def test_dtmf_while_playing_clears_first(ivr):
    handler, listener, transport = ivr
    handler.handle_message(START_FRAME)
    transport.sent.clear()

    handler.handle_message('{"event":"dtmf","streamId":"S1","dtmf":{"digit":"1","track":"inbound"}}')

    assert events_sent(transport) == [
        ("clearAudio", None),
        ("playAudio", None),
        ("checkpoint", "option1_complete"),
    ]


def test_invalid_digit_plays_invalid_prompt(ivr):
    handler, listener, transport = ivr
    handler.handle_message(START_FRAME)
    handler.handle_message('{"event":"clearedAudio","streamId":"S1"}')
    assert listener.is_playing is False
    transport.sent.clear()

    handler.handle_message('{"event":"dtmf","streamId":"S1","dtmf":{"digit":"9","track":"inbound"}}')

    # No invalid.raw on disk, so only the checkpoint goes out
    assert events_sent(transport) == [("checkpoint", "invalid_complete")]


def test_send_failure_is_logged_not_raised(ivr):
    handler, listener, transport = ivr
    errors = []
    handler.on_error(errors.append)
    transport.close()

    handler.handle_message(START_FRAME)

    assert errors == []
    assert transport.sent == []
