"""
oobwatch Exception Hierarchy

Defines the complete exception hierarchy for error handling throughout the client.
"""

from typing import Any, Dict, List, Optional


class OOBWatchException(Exception):
    """Base exception for all oobwatch errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} (Details: {self.details})"
        return self.message


class ConfigurationError(OOBWatchException):
    """Invalid builder or settings input. Lists every violation, not just the first."""

    def __init__(self, errors: List[str], details: Optional[Dict[str, Any]] = None) -> None:
        self.errors = list(errors)
        message = "Invalid client configuration: " + "; ".join(self.errors)
        super().__init__(message, details)


class KeyGenerationError(OOBWatchException):
    """Key pair or identifier generation failed."""

    pass


class TransportError(OOBWatchException):
    """Network or HTTP failure. Always safe to retry."""

    retryable = True


class ServerRejectionError(OOBWatchException):
    """The server answered, but refused the request at the protocol level."""

    def __init__(
        self,
        message: str,
        status_code: int,
        server_message: str = "",
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        details = dict(details or {})
        details.setdefault("status_code", status_code)
        if server_message:
            details.setdefault("server_message", server_message)
        super().__init__(message, details)
        self.status_code = status_code
        self.server_message = server_message

    @property
    def unauthorized(self) -> bool:
        """True when the server rejected the auth token."""
        return self.status_code == 401

    @property
    def retryable(self) -> bool:
        """Server-side failures and rate limits may clear up; other 4xx will not."""
        return self.status_code >= 500 or self.status_code in (408, 429)


class DecryptionError(OOBWatchException):
    """
    A poll payload (or one entry of it) could not be decoded.

    ``index`` is the position of the failing entry in the poll's ``data`` list,
    or ``None`` when the failure affects the whole batch (e.g. the AES key).
    """

    def __init__(
        self,
        message: str,
        index: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        if index is not None:
            details = dict(details or {})
            details.setdefault("index", index)
        super().__init__(message, details)
        self.index = index


class InvalidStateError(OOBWatchException):
    """Operation attempted on a client in the wrong lifecycle state."""

    retryable = False

    def __init__(self, message: str, state: Any = None) -> None:
        details = {"state": getattr(state, "value", state)} if state is not None else None
        super().__init__(message, details)
        self.state = state
