"""
oobwatch Core

Configuration, logging and the exception hierarchy shared by every component.
"""

from .config import (
    AuthScheme,
    CryptoBackend,
    LoggingConfig,
    OOBWatchConfig,
    TransportConfig,
    get_config,
    load_config,
    reload_config,
)
from .exceptions import (
    ConfigurationError,
    DecryptionError,
    InvalidStateError,
    KeyGenerationError,
    OOBWatchException,
    ServerRejectionError,
    TransportError,
)
from .logging import SecretRedactionFilter, get_logger, log_structured, setup_logging

__all__ = [
    "AuthScheme",
    "CryptoBackend",
    "LoggingConfig",
    "OOBWatchConfig",
    "TransportConfig",
    "get_config",
    "load_config",
    "reload_config",
    "ConfigurationError",
    "DecryptionError",
    "InvalidStateError",
    "KeyGenerationError",
    "OOBWatchException",
    "ServerRejectionError",
    "TransportError",
    "SecretRedactionFilter",
    "get_logger",
    "log_structured",
    "setup_logging",
]
