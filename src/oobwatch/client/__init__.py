"""
oobwatch Client

Registers with an interaction server, polls for out-of-band interactions and
decrypts them.
"""

from ..core.config import AuthScheme
from .builder import DEFAULT_SERVERS, ClientBuilder
from .decoder import PayloadDecoder
from .keys import CorrelationConfig, KeyMaterial, RegistrationPayload
from .models import DnsQType, InteractionLog, LogEntry, PollResult, Protocol, RawLog
from .state import (
    ClientConfig,
    ClientState,
    DeregisteredClient,
    RegisteredClient,
    UnregisteredClient,
)
from .transport import AiohttpTransport, HttpTransport, TransportRequest, TransportResponse

__all__ = [
    "AiohttpTransport",
    "AuthScheme",
    "ClientBuilder",
    "ClientConfig",
    "ClientState",
    "CorrelationConfig",
    "DEFAULT_SERVERS",
    "DeregisteredClient",
    "DnsQType",
    "HttpTransport",
    "InteractionLog",
    "KeyMaterial",
    "LogEntry",
    "PayloadDecoder",
    "PollResult",
    "Protocol",
    "RawLog",
    "RegisteredClient",
    "RegistrationPayload",
    "TransportRequest",
    "TransportResponse",
    "UnregisteredClient",
]
