"""Error taxonomy shared by the API client, services and views."""

from __future__ import annotations


class HubError(Exception):
    """Base class for every error raised by collabhub."""


class RemoteError(HubError):
    """An expected failure of a remote call.

    Optimistic mutations roll back and report these instead of raising.
    """


class TransportError(RemoteError):
    """The request never produced an HTTP response (DNS, refused, timeout)."""


class RequestRejectedError(RemoteError):
    """The backend answered with a non-2xx status or ``success: false``."""

    def __init__(self, status_code: int, message: str, code: str | None = None) -> None:
        super().__init__(f"{status_code}: {message}")
        self.status_code = status_code
        self.code = code
        self.message = message


class SessionExpiredError(RemoteError):
    """The backend rejected the stored credential (HTTP 401)."""

    def __init__(self, message: str = "Session expired. Please log in again.") -> None:
        super().__init__(message)
        self.message = message


class FormValidationError(HubError):
    """Client-side validation failed; no request was sent."""

    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.field = field


class UnexpectedResponseError(HubError):
    """The backend answered with a body the client cannot interpret."""


class MutationInFlightError(HubError):
    """A mutation was issued for a key whose previous mutation has not settled."""

    def __init__(self, key: str) -> None:
        super().__init__(f"A mutation for {key!r} is still in flight")
        self.key = key
