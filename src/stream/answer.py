"""
Plivo answer XML for audio streams.

The answer URL returns this document to tell Plivo where to open the
bidirectional WebSocket for the call.
"""
import logging
from typing import Optional

from plivo import plivoxml

logger = logging.getLogger(__name__)


def websocket_url_for(host: str, forwarded_proto: Optional[str] = None, path: str = "/stream") -> str:
    """
    Build the WebSocket URL Plivo should connect to.

    Args:
        host: Host header of the incoming request (e.g., abc.ngrok-free.app)
        forwarded_proto: X-Forwarded-Proto header, "https" selects wss://
        path: WebSocket path on this server

    Returns:
        Full ws:// or wss:// URL
    """
    scheme = "wss" if forwarded_proto == "https" else "ws"
    return f"{scheme}://{host}{path}"


def generate_stream_xml(websocket_url: str, greeting: Optional[str] = None) -> str:
    """
    Generate Plivo XML that speaks an optional greeting then starts a stream.

    Args:
        websocket_url: Full ws(s) URL for the audio stream

    Returns:
        XML string
    """
    response = plivoxml.ResponseElement()
    if greeting:
        response.add(plivoxml.SpeakElement(greeting))
    response.add(
        plivoxml.StreamElement(
            websocket_url,
            bidirectional=True,
            keepCallAlive=True,
        )
    )

    xml = response.to_string()
    logger.info(f"Generated stream XML: {xml}")
    return xml
