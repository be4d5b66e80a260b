"""Error types surfaced by the synchronizer and its backends."""
from __future__ import annotations


class ListingSyncError(Exception):
    pass


class TransportError(ListingSyncError):
    """A live-data read or write failed.

    ``recoverable`` tells the UI whether re-subscribing (or re-submitting) can
    help: permission and authentication failures are not recoverable, network
    hiccups and server errors are.
    """

    def __init__(self, message: str, *, recoverable: bool = True, source: str = "") -> None:
        super().__init__(message)
        self.message = message
        self.recoverable = recoverable
        self.source = source

    def __repr__(self) -> str:
        return (
            f"TransportError({self.message!r}, recoverable={self.recoverable}, "
            f"source={self.source!r})"
        )


class LocationUnavailable(ListingSyncError):
    """The device location could not be determined (denied, timeout, unsupported)."""


def as_transport_error(exc: Exception, source: str) -> TransportError:
    """Wrap any backend failure; permission errors come out non-recoverable."""
    if isinstance(exc, TransportError):
        if not exc.source:
            exc.source = source
        return exc
    recoverable = not isinstance(exc, PermissionError)
    return TransportError(str(exc) or exc.__class__.__name__, recoverable=recoverable, source=source)
