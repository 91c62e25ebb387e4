"""Exceptions raised by the streaming SDK.

Only NotConnectedError and SerializationError ever reach callers of the
outbound send methods; the others are reported through the handler's error path.
"""

from typing import Optional


class StreamError(Exception):
    default_detail: str = "Stream error"

    def __init__(self, detail: Optional[str] = None, cause: Optional[BaseException] = None):
        super().__init__(detail or self.default_detail)
        self.detail = detail or self.default_detail
        self.cause = cause
        if cause is not None:
            self.__cause__ = cause


class ParseError(StreamError):
    """Incoming frame is not a valid event object."""

    default_detail = "Failed to parse stream event"


class NotConnectedError(StreamError):
    default_detail = "WebSocket session is not open"


class SerializationError(StreamError):
    default_detail = "Failed to serialize message"


class CallbackError(StreamError):
    """A registered callback or listener raised while handling an event."""

    default_detail = "Callback raised an exception"

    def __init__(
        self,
        callback_name: str,
        cause: BaseException,
        detail: Optional[str] = None,
    ):
        super().__init__(detail or f"Error in {callback_name}: {cause}", cause=cause)
        self.callback_name = callback_name
