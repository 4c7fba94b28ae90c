"""Exception hierarchy shared by the sqinn client modules."""

from __future__ import annotations


class SqinnError(Exception):
    """Base class for every failure reported by the sqinn client."""


class ValidationError(SqinnError, ValueError):
    """Raised for malformed caller input, before any bytes reach the child."""


class BindTypeError(ValidationError, TypeError):
    """Raised when a value has no wire representation."""


class ValueTypeError(ValidationError, TypeError):
    """Raised when an :class:`AnyValue` is read as a shape it does not hold."""


class TransportError(SqinnError):
    """Raised when the pipe exchange with the child fails.

    After a transport failure the request/response pairing may be out of sync;
    the only safe follow-up is to terminate the instance.
    """


class ProtocolViolation(TransportError):
    """Raised when a response payload does not match the wire format."""


class RemoteError(SqinnError):
    """Raised when the child answers a request with its failure flag set."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(f"sqinn: {message}")


class LaunchError(SqinnError):
    """Raised when the child process cannot be started."""


class ProcessError(SqinnError):
    """Raised when waiting for the child to exit fails."""


class SqinnPanic(RuntimeError):
    """Raised by the ``must_*`` helpers in place of the underlying error.

    Derives from :class:`RuntimeError` rather than :class:`SqinnError`, so
    ``except SqinnError`` handlers do not catch it.
    """
