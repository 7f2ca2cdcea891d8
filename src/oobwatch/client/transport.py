"""
HTTP Transport Capability

The client core talks HTTP only through ``HttpTransport``. ``AiohttpTransport``
is the built-in implementation; callers may inject their own.
"""

import asyncio
import socket
import ssl
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import aiohttp
from aiohttp.abc import AbstractResolver
from aiohttp.resolver import DefaultResolver

from ..core.exceptions import TransportError
from ..core.logging import get_logger

logger = get_logger(__name__)

USER_AGENT = "oobwatch/0.1.0"


@dataclass
class TransportRequest:
    """One HTTP request issued by the client."""

    method: str
    url: str
    params: Dict[str, str] = field(default_factory=dict)
    json: Optional[Dict[str, Any]] = None
    headers: Dict[str, str] = field(default_factory=dict)


@dataclass
class TransportResponse:
    """Status and body of an HTTP response, fully read."""

    status: int
    body: str = ""
    headers: Dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


class HttpTransport(ABC):
    """
    Capability interface for sending HTTP requests.

    Implementations must raise TransportError for network-level failures and
    return every HTTP status (including errors) as a TransportResponse.
    """

    @abstractmethod
    async def send(self, request: TransportRequest) -> TransportResponse:
        """Send ``request`` and return the complete response."""

    async def close(self) -> None:
        """Release resources held by the transport."""

    async def __aenter__(self) -> "HttpTransport":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()


class _OverrideResolver(AbstractResolver):
    """Resolves one hostname to a fixed address and defers everything else."""

    def __init__(self, hostname: str, address: str) -> None:
        self._hostname = hostname.lower()
        self._address = address
        self._fallback = DefaultResolver()

    async def resolve(
        self, host: str, port: int = 0, family: int = socket.AF_INET
    ) -> List[Dict[str, Any]]:
        if host.lower() != self._hostname:
            return await self._fallback.resolve(host, port, family)

        address_family = socket.AF_INET6 if ":" in self._address else socket.AF_INET
        return [
            {
                "hostname": host,
                "host": self._address,
                "port": port,
                "family": address_family,
                "proto": 0,
                "flags": socket.AI_NUMERICHOST,
            }
        ]

    async def close(self) -> None:
        await self._fallback.close()


class AiohttpTransport(HttpTransport):
    """
    Transport built on an ``aiohttp.ClientSession``.

    The session is created lazily inside the running event loop. A session passed
    in by the caller is used as-is and is not closed by ``close()``.
    """

    def __init__(
        self,
        timeout: float = 15.0,
        verify_ssl: bool = False,
        ca_bundle: Optional[str] = None,
        proxy: Optional[str] = None,
        dns_override: Optional[Dict[str, str]] = None,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> None:
        """
        Initialize the transport.

        Args:
            timeout: Total timeout per request in seconds
            verify_ssl: Verify the server certificate
            ca_bundle: CA file for verification (requires verify_ssl)
            proxy: Proxy URL applied to every request
            dns_override: Mapping of one hostname to the IP address to connect to
            session: Existing session to use instead of creating one
        """
        self.timeout = timeout
        self.verify_ssl = verify_ssl
        self.ca_bundle = ca_bundle
        self.proxy = proxy
        self.dns_override = dns_override
        self._session = session
        self._owns_session = session is None

    def _ssl_option(self) -> Any:
        if not self.verify_ssl:
            return False
        if self.ca_bundle:
            return ssl.create_default_context(cafile=self.ca_bundle)
        return True

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            resolver = None
            if self.dns_override:
                ((hostname, address),) = self.dns_override.items()
                resolver = _OverrideResolver(hostname, address)

            connector = aiohttp.TCPConnector(ssl=self._ssl_option(), resolver=resolver)
            self._session = aiohttp.ClientSession(
                connector=connector,
                timeout=aiohttp.ClientTimeout(total=self.timeout),
                headers={"User-Agent": USER_AGENT},
            )
            self._owns_session = True
        return self._session

    async def send(self, request: TransportRequest) -> TransportResponse:
        session = self._get_session()
        try:
            async with session.request(
                request.method,
                request.url,
                params=request.params or None,
                json=request.json,
                headers=request.headers or None,
                proxy=self.proxy,
            ) as response:
                body = await response.text()
                return TransportResponse(
                    status=response.status,
                    body=body,
                    headers=dict(response.headers),
                )
        except asyncio.TimeoutError as e:
            raise TransportError(
                f"{request.method} {request.url} timed out after {self.timeout}s"
            ) from e
        except aiohttp.ClientError as e:
            raise TransportError(f"{request.method} {request.url} failed: {e}") from e

    async def close(self) -> None:
        if self._session is not None and self._owns_session:
            await self._session.close()
            logger.debug("Transport session closed")
        self._session = None
