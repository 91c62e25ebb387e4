import logging

from fastapi import FastAPI, Request, WebSocket
from fastapi.responses import PlainTextResponse, Response

from src.config import settings
from src.examples.echo import create_echo_handler
from src.examples.ivr import PromptLibrary, create_ivr_handler
from src.stream.answer import generate_stream_xml, websocket_url_for
from src.stream.endpoint import ConnectionManager, StreamEndpoint
from src.stream.handler import StreamingHandler
from src.stream.listeners import StreamEventListener

# Configure logging
logging.basicConfig(
    level=settings.log_level.upper(),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


# Totals across all stream connections, fed by one _MetricsListener per handler
class StreamMetrics:
    def __init__(self):
        self.streams_opened: int = 0
        self.streams_closed: int = 0
        self.errors: int = 0
        self.media_received: int = 0
        self.media_sent: int = 0
        self.stream_seconds: float = 0.0

    @property
    def avg_stream_seconds(self) -> float:
        if self.streams_closed <= 0:
            return 0.0
        return self.stream_seconds / self.streams_closed


metrics = StreamMetrics()
manager = ConnectionManager()
prompts = PromptLibrary(settings.ivr_audio_dir)


class _MetricsListener(StreamEventListener):
    """Folds a connection's ConnectionState into the totals when it closes."""

    def __init__(self, handler: StreamingHandler):
        self.handler = handler

    def on_connected(self):
        metrics.streams_opened += 1

    def on_disconnected(self, reason):
        state = self.handler.state
        metrics.streams_closed += 1
        metrics.media_received += state.media_received_count
        metrics.media_sent += state.media_sent_count
        metrics.stream_seconds += state.duration_seconds() or 0.0

    def on_error(self, error):
        metrics.errors += 1


def create_handler() -> StreamingHandler:
    """Build the handler for one connection and hook it into metrics."""
    if settings.stream_app == "ivr":
        handler = create_ivr_handler(prompts)
    else:
        handler = create_echo_handler()
    return handler.add_listener(_MetricsListener(handler))


endpoint = StreamEndpoint(
    create_handler,
    manager=manager,
    max_connections=settings.max_concurrent_streams,
    send_timeout=settings.send_timeout_seconds,
)

app = FastAPI(title="Audio Stream Server")


@app.get("/health")
async def health_check():
    """Health check with stream count."""
    return {
        "status": "healthy",
        "active_streams": manager.get_active_count(),
        "max_concurrent_streams": settings.max_concurrent_streams,
        "stream_app": settings.stream_app,
    }


@app.get("/metrics")
async def metrics_endpoint():
    """Prometheus-compatible metrics."""
    samples = [
        ("streams_opened_total", "counter", "Stream connections opened", metrics.streams_opened),
        ("streams_active", "gauge", "Stream connections currently open", manager.get_active_count()),
        ("errors_total", "counter", "Errors reported by stream handlers", metrics.errors),
        ("media_received_total", "counter", "Media frames received from closed streams", metrics.media_received),
        ("media_sent_total", "counter", "Audio messages sent on closed streams", metrics.media_sent),
        ("stream_avg_seconds", "gauge", "Average stream duration", f"{metrics.avg_stream_seconds:.1f}"),
    ]
    lines = []
    for name, kind, help_text, value in samples:
        lines.append(f"# HELP audio_stream_{name} {help_text}")
        lines.append(f"# TYPE audio_stream_{name} {kind}")
        lines.append(f"audio_stream_{name} {value}")
    return PlainTextResponse("\n".join(lines) + "\n", media_type="text/plain")


@app.api_route(settings.stream_path, methods=["GET", "POST"])
async def stream_xml_endpoint(request: Request):
    """Serve Plivo XML pointing the call at the stream WebSocket."""
    host = request.headers.get("host", f"{settings.server_host}:{settings.server_port}")
    websocket_url = websocket_url_for(
        host,
        request.headers.get("x-forwarded-proto"),
        settings.stream_path,
    )
    xml = generate_stream_xml(websocket_url, greeting=settings.stream_greeting)
    return Response(content=xml, media_type="application/xml")


@app.websocket(settings.stream_path)
async def websocket_endpoint(websocket: WebSocket):
    """WebSocket endpoint for Plivo audio streams."""
    await endpoint.serve(websocket)


if __name__ == "__main__":
    import os
    import uvicorn
    port = int(os.environ.get("PORT", settings.server_port))
    uvicorn.run(
        "src.main:app",
        host=settings.server_host,
        port=port,
        log_level=settings.log_level.lower()
    )
