"""
Error types.

```
                           (EngineError)
                                 ╷
          ┌─────────────┬────────┴──────────┬───────────────┐
          ╵             ╵                   ╵               ╵
      LoadError   InvalidReferenceError  CallError     ResponseError
                                            ╷
                                            ╵
                                     CallTimeoutError
```

Malformed geometries and malformed collection payloads are not errors in this sense:
they are dropped during normalization, and never raised past it.
"""

import asyncio
from dataclasses import dataclass
from json import JSONDecodeError
from typing import TypeAlias, TypeGuard

import aiohttp


__docformat__ = "google"
__all__ = (
    "EngineError",
    "LoadError",
    "InvalidReferenceError",
    "CallError",
    "CallTimeoutError",
    "ResponseError",
    "ResponseErrorCause",
    "is_load_error",
    "is_call_error",
    "is_server_error",
)


class EngineError(Exception):
    """Base exception for errors that are visible to callers of the engine."""

    @property
    def should_retry(self) -> bool:
        """Returns ``True`` if it's worth retrying when encountering this error."""
        return False


@dataclass(kw_only=True)
class LoadError(EngineError):
    """
    A dataset load did not apply.

    This error is raised when the raw input as a whole is unavailable, as opposed to
    individual collections or features being malformed. The store keeps its previous
    complete and nearby views when this is raised.

    Attributes:
        cause: a description of why the input could not be used
    """

    cause: str

    def __str__(self) -> str:
        return f"load did not apply: {self.cause}"


@dataclass(kw_only=True)
class InvalidReferenceError(EngineError, ValueError):
    """
    A reference point was rejected.

    Raised for non-finite or out-of-range latitudes and longitudes. The reference
    state is left unchanged when this is raised.

    Attributes:
        lat: the rejected latitude
        lon: the rejected longitude
    """

    lat: float
    lon: float

    def __str__(self) -> str:
        return f"invalid reference point (lat={self.lat!r}, lon={self.lon!r})"


@dataclass(kw_only=True)
class CallError(EngineError):
    """
    Failed to make a nearby lookup request.

    This error is raised when the client failed to get any response,
    f.e. due to connection issues.

    Attributes:
        cause: the exception that caused this error
    """

    cause: aiohttp.ClientError | asyncio.TimeoutError

    @property
    def should_retry(self) -> bool:
        """Returns ``True`` if it's worth retrying when encountering this error."""
        return True

    def __str__(self) -> str:
        return str(self.cause)


@dataclass(kw_only=True)
class CallTimeoutError(CallError):
    """
    A nearby lookup request timed out.

    Attributes:
        cause: the exception that caused this error
        after_secs: the configured timeout for the request
    """

    cause: asyncio.TimeoutError  # type: ignore[assignment]
    after_secs: float

    def __str__(self) -> str:
        return f"request timed out after {self.after_secs:.1f}s"


ResponseErrorCause: TypeAlias = (
    JSONDecodeError | KeyError | TypeError | ValueError | OverflowError
)
"""Causes for a ``ResponseError``."""


@dataclass(kw_only=True)
class ResponseError(EngineError):
    """
    Unexpected response of the nearby lookup endpoint.

    On the one hand, this can be an error that happened on the server, which is
    signalled by a status code ``>= 500``, in which case ``is_server_error`` is ``True``.
    On the other hand, the response may have been received fine, but its rows could
    not be mapped to ``NearbyRecord``s.

    Attributes:
        status: the HTTP status of the response
        body: the response body
        cause: an optional exception that may have caused this error
    """

    status: int
    body: str
    cause: ResponseErrorCause | None

    @property
    def should_retry(self) -> bool:
        """Returns ``True`` if it's worth retrying when encountering this error."""
        return self.is_server_error

    @property
    def is_server_error(self) -> bool:
        """Returns ``True`` if this presumably a server-side error."""
        return self.status >= 500

    def __str__(self) -> str:
        if self.cause is None:
            return f"unexpected response ({self.status})"
        return f"unexpected response ({self.status}): {self.cause}"


def is_load_error(err: BaseException | None) -> TypeGuard[LoadError]:
    """``True`` if this is a ``LoadError``."""
    return isinstance(err, LoadError)


def is_call_error(err: BaseException | None) -> TypeGuard[CallError]:
    """``True`` if this is a ``CallError``."""
    return isinstance(err, CallError)


def is_server_error(err: BaseException | None) -> TypeGuard[ResponseError]:
    """``True`` if this is a ``ResponseError`` presumably cause by a server-side error."""
    return isinstance(err, ResponseError) and err.is_server_error
