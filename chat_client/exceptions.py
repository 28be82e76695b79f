"""Custom exceptions for the chat sync client."""

from typing import Optional


class ChatClientError(Exception):
    """Base exception for all chat client errors."""


class TransportError(ChatClientError):
    """Connection could not be established or was lost."""


class NotConnectedError(TransportError):
    """A protocol event was emitted while the connection is not established."""

    def __init__(self, event: str, state) -> None:
        self.event = event
        self.state = state
        super().__init__(f"cannot emit '{event}' while {state.value}")


class RosterFetchError(ChatClientError):
    """Roster query failed (network error, non-2xx status or malformed body)."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        self.status_code = status_code
        if status_code is not None:
            message = f"HTTP {status_code}: {message}"
        super().__init__(message)


class ProtocolTimeoutError(ChatClientError):
    """An expected acknowledgement did not arrive within the configured timeout."""

    def __init__(self, event: str, timeout: float) -> None:
        self.event = event
        self.timeout = timeout
        super().__init__(f"no '{event}' received within {timeout}s")


class SessionError(ChatClientError):
    """Intent is not valid in the current session state."""
