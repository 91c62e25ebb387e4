import json

import pytest

from src.stream.handler import StreamingHandler

START_FRAME = json.dumps({
    "event": "start",
    "sequenceNumber": 1,
    "streamId": "S1",
    "start": {
        "streamId": "S1",
        "callId": "C1",
        "accountId": "A1",
        "tracks": ["inbound", "outbound"],
        "mediaFormat": {"encoding": "audio/x-mulaw", "sampleRate": 8000},
        "customParameters": {"k": "v"},
    },
})


class FakeTransport:
    """In-memory Transport that records every frame sent."""

    def __init__(self, is_open: bool = True, connection_id: str = "fake-1"):
        self._open = is_open
        self._id = connection_id
        self.sent = []

    @property
    def id(self) -> str:
        return self._id

    def is_open(self) -> bool:
        return self._open

    def send_text(self, message: str) -> None:
        self.sent.append(message)

    def close(self) -> None:
        self._open = False

    @property
    def sent_json(self):
        return [json.loads(m) for m in self.sent]


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def handler():
    return StreamingHandler()


@pytest.fixture
def connected_handler(handler, transport):
    handler.handle_open(transport)
    return handler
