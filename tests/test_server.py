"""End-to-end tests for the stream server over FastAPI's TestClient."""

import asyncio
import base64
import json
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi import FastAPI, WebSocket
from fastapi.testclient import TestClient
from fastapi.websockets import WebSocketDisconnect, WebSocketState

from src.main import app, manager, metrics
from src.stream.endpoint import CLOSE_CODE_AT_CAPACITY, StreamEndpoint
from src.stream.handler import StreamingHandler
from tests.conftest import START_FRAME

AUDIO = b"\xff\x7f" * 80
MEDIA_FRAME = json.dumps({
    "event": "media", "sequenceNumber": 2, "streamId": "S1",
    "media": {"track": "inbound", "chunk": 1, "timestamp": "20", "payload": base64.b64encode(AUDIO).decode()},
})


def build_app(handler_factory, **kwargs):
    test_app = FastAPI()
    endpoint = StreamEndpoint(handler_factory, **kwargs)

    @test_app.websocket("/ws")
    async def ws(websocket: WebSocket):
        await endpoint.serve(websocket)

    return test_app, endpoint


class TestDemoServer:
    def test_health(self):
        with TestClient(app) as client:
            response = client.get("/health")
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["active_streams"] == 0

    def test_metrics_format(self):
        with TestClient(app) as client:
            response = client.get("/metrics")
        assert response.status_code == 200
        assert "audio_stream_streams_opened_total" in response.text
        assert "audio_stream_streams_active 0" in response.text

    def test_metrics_fold_in_closed_stream(self):
        """Test: A finished echo session adds its frame counts to the totals"""
        before = (metrics.streams_opened, metrics.streams_closed, metrics.media_received, metrics.media_sent)
        with TestClient(app) as client:
            with client.websocket_connect("/stream") as ws:
                ws.send_text(START_FRAME)
                ws.send_text(MEDIA_FRAME)
                ws.receive_text()
        after = (metrics.streams_opened, metrics.streams_closed, metrics.media_received, metrics.media_sent)

        assert [b - a for a, b in zip(before, after)] == [1, 1, 1, 1]

    def test_stream_xml_uses_wss_behind_https_proxy(self):
        with TestClient(app) as client:
            response = client.get(
                "/stream",
                headers={"host": "abc.ngrok-free.app", "x-forwarded-proto": "https"},
            )
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("application/xml")
        assert "wss://abc.ngrok-free.app/stream" in response.text
        assert "<Stream" in response.text

    def test_stream_xml_post(self):
        with TestClient(app) as client:
            response = client.post("/stream", headers={"host": "localhost:8080"})
        assert "ws://localhost:8080/stream" in response.text

    def test_echo_plays_caller_audio_back(self):
        """Test: start then media produces a playAudio frame in the negotiated format"""
        with TestClient(app) as client:
            with client.websocket_connect("/stream") as ws:
                ws.send_text(START_FRAME)
                ws.send_text(MEDIA_FRAME)
                reply = json.loads(ws.receive_text())

        assert reply == {
            "event": "playAudio",
            "streamId": "S1",
            "media": {
                "contentType": "audio/x-mulaw",
                "sampleRate": 8000,
                "payload": base64.b64encode(AUDIO).decode(),
            },
        }
        assert manager.get_active_count() == 0

    def test_echo_clears_audio_on_digit_one(self):
        with TestClient(app) as client:
            with client.websocket_connect("/stream") as ws:
                ws.send_text(START_FRAME)
                ws.send_text('{"event":"dtmf","streamId":"S1","dtmf":{"digit":"1","track":"inbound"}}')
                reply = json.loads(ws.receive_text())

        assert reply == {"event": "clearAudio", "streamId": "S1"}


class TestStreamEndpoint:
    def test_malformed_frame_does_not_close_connection(self):
        errors = []
        closed = []

        def factory():
            handler = StreamingHandler()
            handler.on_error(errors.append)
            handler.on_start(lambda event: handler.send_checkpoint("started"))
            handler.on_disconnected(closed.append)
            return handler

        test_app, endpoint = build_app(factory)
        with TestClient(test_app) as client:
            with client.websocket_connect("/ws") as ws:
                ws.send_text("{garbage")
                ws.send_text(START_FRAME)
                reply = json.loads(ws.receive_text())

        assert reply == {"event": "checkpoint", "streamId": "S1", "name": "started"}
        assert [type(e).__name__ for e in errors] == ["ParseError"]
        assert len(closed) == 1
        assert endpoint.manager.get_active_count() == 0

    def test_connection_registered_while_open(self):
        def factory():
            handler = StreamingHandler()
            handler.on_start(lambda event: handler.send_clear_audio())
            return handler

        test_app, endpoint = build_app(factory)
        with TestClient(test_app) as client:
            with client.websocket_connect("/ws") as ws:
                ws.send_text(START_FRAME)
                ws.receive_text()
                assert endpoint.manager.get_active_count() == 1
        assert endpoint.manager.get_active_count() == 0

    def test_rejects_when_at_capacity(self):
        test_app, _ = build_app(StreamingHandler, max_connections=0)
        with TestClient(test_app) as client:
            with pytest.raises(WebSocketDisconnect) as exc_info:
                with client.websocket_connect("/ws"):
                    pass
        assert exc_info.value.code == CLOSE_CODE_AT_CAPACITY


@pytest.mark.asyncio
async def test_cancelled_serve_still_cleans_up():
    """Test: Cancelling the serve task unregisters the connection and notifies disconnect"""
    receiving = asyncio.Event()

    async def receive_forever():
        receiving.set()
        await asyncio.Event().wait()

    websocket = MagicMock()
    websocket.client_state = WebSocketState.CONNECTED
    websocket.application_state = WebSocketState.CONNECTED
    websocket.accept = AsyncMock()
    websocket.close = AsyncMock()
    websocket.receive = receive_forever

    closed = []

    def factory():
        handler = StreamingHandler()
        handler.on_disconnected(closed.append)
        return handler

    endpoint = StreamEndpoint(factory)
    task = asyncio.create_task(endpoint.serve(websocket))
    await asyncio.wait_for(receiving.wait(), timeout=5)
    assert endpoint.manager.get_active_count() == 1

    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert endpoint.manager.get_active_count() == 0
    assert closed == [None]
