"""Exception taxonomy for the streaming relay."""


class StreamingError(Exception):
    """Base class for errors raised while delivering a stream."""

    pass


class SinkUnflushable(StreamingError):
    """Raised when the transport cannot flush, so incremental delivery is not guaranteed."""

    pass


class FlusherUnavailable(SinkUnflushable):
    """Raised by plain data and keep-alive frames when the sink has no flusher."""

    pass


class SinkClosed(StreamingError):
    """Raised when the underlying connection is gone or a flush failed."""

    pass


class ConnectionAbsent(StreamingError):
    """Raised when a duplex channel has no bound connection."""

    pass


class EncodingError(StreamingError):
    """Raised when a payload cannot be serialized."""

    pass


class NullPayload(StreamingError):
    """Raised when None is passed where a payload is required."""

    pass


class StreamTerminated(StreamingError):
    """Raised when sending on a channel that already sent its completion marker."""

    pass
