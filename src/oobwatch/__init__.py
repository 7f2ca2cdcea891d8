"""
oobwatch - Out-of-band interaction client

Client for interactsh-compatible servers: generates key material, registers a
correlation id, and polls for encrypted DNS/HTTP/SMTP/LDAP/FTP/SMB interactions.
"""

from .client import (
    ClientBuilder,
    ClientState,
    DeregisteredClient,
    InteractionLog,
    PollResult,
    RawLog,
    RegisteredClient,
    UnregisteredClient,
)
from .core.exceptions import (
    ConfigurationError,
    DecryptionError,
    InvalidStateError,
    KeyGenerationError,
    OOBWatchException,
    ServerRejectionError,
    TransportError,
)

__version__ = "0.1.0"

__all__ = [
    "ClientBuilder",
    "ClientState",
    "DeregisteredClient",
    "InteractionLog",
    "PollResult",
    "RawLog",
    "RegisteredClient",
    "UnregisteredClient",
    "ConfigurationError",
    "DecryptionError",
    "InvalidStateError",
    "KeyGenerationError",
    "OOBWatchException",
    "ServerRejectionError",
    "TransportError",
]
