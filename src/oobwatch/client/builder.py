"""
Client Builder

Collects client options, validates them all at once and produces an
UnregisteredClient with freshly generated key material.
"""

import ipaddress
import random
from typing import List, Optional, Sequence, Union
from urllib.parse import urlsplit

from pydantic import SecretStr

from ..core.config import AuthScheme, CryptoBackend, OOBWatchConfig
from ..core.exceptions import ConfigurationError
from ..core.logging import get_logger
from ..crypto import CryptoProvider, get_provider, is_supported_key_size
from .keys import DEFAULT_KEY_SIZE, CorrelationConfig, KeyMaterial, validate_subdomain_override
from .state import ClientConfig, UnregisteredClient
from .transport import AiohttpTransport, HttpTransport

logger = get_logger(__name__)

# Public servers run by the interactsh project
DEFAULT_SERVERS: Sequence[str] = (
    "oast.pro",
    "oast.live",
    "oast.site",
    "oast.online",
    "oast.fun",
    "oast.me",
)

DEFAULT_TIMEOUT = 15.0


def normalize_server_url(server: str) -> str:
    """Prefix a bare host with ``https://``; full URLs are kept as given."""
    server = server.strip()
    if "://" not in server:
        server = f"https://{server}"
    return server.rstrip("/")


def _server_url_errors(url: str) -> List[str]:
    try:
        parts = urlsplit(url)
        # Accessing port validates it
        parts.port
    except ValueError as e:
        return [f"server URL {url!r} is malformed: {e}"]

    errors = []
    if parts.scheme not in ("http", "https"):
        errors.append(f"server URL scheme must be http or https, got {parts.scheme!r}")
    if not parts.hostname:
        errors.append(f"server URL {url!r} has no host")
    if parts.path not in ("", "/") or parts.query or parts.fragment:
        errors.append(f"server URL {url!r} must not carry a path, query or fragment")
    return errors


class ClientBuilder:
    """
    Fluent builder for interaction clients.

    Every ``with_*`` method returns the builder, so options chain::

        client = (
            ClientBuilder()
            .with_server("oast.pro")
            .with_rsa_key_size(2048)
            .build()
        )
        registered = await client.register()

    ``build()`` reports every invalid option in one ConfigurationError.
    """

    def __init__(self) -> None:
        self._server: Optional[str] = None
        self._auth_token: Optional[str] = None
        self._auth_scheme: Union[AuthScheme, str] = AuthScheme.SIMPLE
        self._key_size = DEFAULT_KEY_SIZE
        self._timeout: Optional[float] = None
        self._verify_ssl: Optional[bool] = None
        self._ca_bundle: Optional[str] = None
        self._proxy: Optional[str] = None
        self._dns_override: Optional[str] = None
        self._parse_logs = True
        self._provider: Union[CryptoProvider, CryptoBackend, str] = CryptoBackend.NATIVE
        self._correlation = CorrelationConfig()
        self._subdomain_override: Optional[str] = None
        self._transport: Optional[HttpTransport] = None

    @classmethod
    def default(cls) -> "ClientBuilder":
        """Builder preset with a randomly chosen public server."""
        return cls().with_server(random.choice(DEFAULT_SERVERS))

    @classmethod
    def from_config(cls, config: OOBWatchConfig) -> "ClientBuilder":
        """
        Builder preset from process settings.

        Args:
            config: Loaded OOBWatchConfig

        Returns:
            Builder carrying every option present in ``config``
        """
        builder = cls.default() if config.server is None else cls().with_server(config.server)
        if config.auth_token is not None:
            builder.with_auth_token(config.auth_token.get_secret_value(), config.auth_scheme)

        transport = config.transport
        builder.with_rsa_key_size(config.rsa_key_size)
        builder.with_timeout(transport.timeout)
        builder.verify_ssl(transport.verify_ssl)
        if transport.ca_bundle:
            builder.with_ca_bundle(transport.ca_bundle)
        if transport.proxy:
            builder.with_proxy(transport.proxy)
        if transport.dns_override:
            builder.with_dns_override(transport.dns_override)

        builder.parse_logs(config.parse_logs)
        builder.with_crypto_backend(config.crypto_backend)
        builder.with_correlation_config(
            CorrelationConfig(
                subdomain_length=config.subdomain_length,
                correlation_id_length=config.correlation_id_length,
            )
        )
        if config.subdomain_override:
            builder.with_subdomain_override(config.subdomain_override)
        return builder

    def with_server(self, server: str) -> "ClientBuilder":
        """Server host (``oast.pro``) or base URL (``http://10.0.0.5:8080``)."""
        self._server = server
        return self

    def with_auth_token(
        self, token: str, scheme: Union[AuthScheme, str] = AuthScheme.SIMPLE
    ) -> "ClientBuilder":
        self._auth_token = token
        self._auth_scheme = scheme
        return self

    def with_rsa_key_size(self, key_size: int) -> "ClientBuilder":
        self._key_size = key_size
        return self

    def with_timeout(self, seconds: float) -> "ClientBuilder":
        self._timeout = seconds
        return self

    def verify_ssl(self, verify: bool = True) -> "ClientBuilder":
        self._verify_ssl = verify
        return self

    def with_ca_bundle(self, path: str) -> "ClientBuilder":
        self._ca_bundle = path
        return self

    def with_proxy(self, proxy_url: str) -> "ClientBuilder":
        self._proxy = proxy_url
        return self

    def with_dns_override(self, address: str) -> "ClientBuilder":
        """Connect to ``address`` instead of resolving the server host."""
        self._dns_override = address
        return self

    def parse_logs(self, enabled: bool = True) -> "ClientBuilder":
        self._parse_logs = enabled
        return self

    def with_crypto_backend(
        self, backend: Union[CryptoProvider, CryptoBackend, str]
    ) -> "ClientBuilder":
        """Use a named backend ("native"/"portable") or a provider instance."""
        self._provider = backend
        return self

    def with_correlation_config(self, correlation: CorrelationConfig) -> "ClientBuilder":
        self._correlation = correlation
        return self

    def with_subdomain_override(self, subdomain: str) -> "ClientBuilder":
        self._subdomain_override = subdomain
        return self

    def with_transport(self, transport: HttpTransport) -> "ClientBuilder":
        """Inject an HTTP transport instead of the built-in aiohttp one."""
        self._transport = transport
        return self

    def _uses_transport_options(self) -> bool:
        return any(
            option is not None
            for option in (
                self._timeout,
                self._verify_ssl,
                self._ca_bundle,
                self._proxy,
                self._dns_override,
            )
        )

    def _validate(self) -> List[str]:
        errors: List[str] = []

        if not self._server or not self._server.strip():
            errors.append("server must be set")
        else:
            errors += _server_url_errors(normalize_server_url(self._server))

        if not is_supported_key_size(self._key_size):
            errors.append(
                f"rsa key size {self._key_size} is not supported "
                "(1024 to 8192 bits, multiple of 256)"
            )

        if self._auth_token is not None and not self._auth_token.strip():
            errors.append("auth token must not be empty")

        try:
            AuthScheme(self._auth_scheme)
        except ValueError:
            errors.append(f"unknown auth scheme {self._auth_scheme!r}")

        if self._timeout is not None and self._timeout <= 0:
            errors.append("timeout must be greater than zero")

        if self._ca_bundle and not self._verify_ssl:
            errors.append("a CA bundle requires SSL verification to be enabled")

        if self._proxy:
            if urlsplit(self._proxy).scheme not in ("http", "https"):
                errors.append(f"proxy URL {self._proxy!r} must use http or https")

        if self._dns_override:
            try:
                ipaddress.ip_address(self._dns_override)
            except ValueError:
                errors.append(f"dns override {self._dns_override!r} is not an IP address")

        if self._transport is not None and self._uses_transport_options():
            errors.append(
                "timeout, SSL, proxy and DNS options cannot be combined with a custom transport"
            )

        if not isinstance(self._provider, CryptoProvider):
            try:
                CryptoBackend(self._provider)
            except ValueError:
                errors.append(f"unknown crypto backend {self._provider!r}")

        errors += self._correlation.validate()
        if self._subdomain_override is not None:
            errors += validate_subdomain_override(
                self._subdomain_override, self._correlation.correlation_id_length
            )

        return errors

    def _build_transport(self, server_url: str) -> HttpTransport:
        if self._transport is not None:
            return self._transport

        dns_override = None
        if self._dns_override:
            dns_override = {urlsplit(server_url).hostname: self._dns_override}

        return AiohttpTransport(
            timeout=self._timeout if self._timeout is not None else DEFAULT_TIMEOUT,
            verify_ssl=bool(self._verify_ssl),
            ca_bundle=self._ca_bundle,
            proxy=self._proxy,
            dns_override=dns_override,
        )

    def build(self) -> UnregisteredClient:
        """
        Validate the options and generate key material.

        Returns:
            An UnregisteredClient ready to ``register()``

        Raises:
            ConfigurationError: Listing every invalid option
            KeyGenerationError: If key generation fails
        """
        errors = self._validate()
        if errors:
            raise ConfigurationError(errors)

        server_url = normalize_server_url(self._server)
        provider = (
            self._provider
            if isinstance(self._provider, CryptoProvider)
            else get_provider(self._provider)
        )

        key_material = KeyMaterial.generate(
            key_size=self._key_size,
            provider=provider,
            correlation=self._correlation,
            subdomain_override=self._subdomain_override,
        )

        config = ClientConfig(
            server_url=server_url,
            auth_token=SecretStr(self._auth_token) if self._auth_token else None,
            auth_scheme=AuthScheme(self._auth_scheme),
            subdomain_override=self._subdomain_override,
            parse_logs=self._parse_logs,
            key_size=self._key_size,
            correlation=self._correlation,
            transport=self._build_transport(server_url),
        )

        logger.debug(f"Built client for {server_url} using {provider.name} crypto")
        return UnregisteredClient(config, key_material)
