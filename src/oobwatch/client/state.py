"""
Client Lifecycle

The client moves through three states, each represented by its own class:

    UnregisteredClient --register()--> RegisteredClient --deregister()--> DeregisteredClient

Transitions only move forward. A successful ``register()`` consumes the
unregistered instance; ``deregister()`` closes the registered instance whether or
not the server call succeeds, and wipes the key material.
"""

import logging
from enum import Enum
from typing import Optional
from urllib.parse import urlsplit

from pydantic import BaseModel, ConfigDict, Field, SecretStr, ValidationError

from ..core.config import AuthScheme
from ..core.exceptions import InvalidStateError, OOBWatchException, ServerRejectionError
from ..core.logging import get_logger, log_structured
from .decoder import PayloadDecoder
from .keys import CorrelationConfig, KeyMaterial
from .models import PollResult
from .protocol import (
    DEREGISTER_PATH,
    POLL_ID_PARAM,
    POLL_PATH,
    POLL_SECRET_PARAM,
    REGISTER_PATH,
    DeregisterRequest,
    PollEnvelope,
)
from .transport import HttpTransport, TransportRequest, TransportResponse

logger = get_logger(__name__)


class ClientState(str, Enum):
    """Lifecycle states of a client."""

    UNREGISTERED = "unregistered"
    REGISTERED = "registered"
    DEREGISTERED = "deregistered"


class ClientConfig(BaseModel):
    """Validated client configuration, produced by the ClientBuilder."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    server_url: str = Field(description="Base URL, scheme included")
    auth_token: Optional[SecretStr] = Field(default=None)
    auth_scheme: AuthScheme = Field(default=AuthScheme.SIMPLE)
    subdomain_override: Optional[str] = Field(default=None)
    parse_logs: bool = Field(default=True)
    key_size: int = Field(default=2048)
    correlation: CorrelationConfig = Field(default_factory=CorrelationConfig)
    transport: HttpTransport = Field(description="Injected HTTP capability")

    @property
    def server_domain(self) -> str:
        """Host part of the server URL, used to build interaction hostnames."""
        return urlsplit(self.server_url).hostname or ""

    def endpoint(self, path: str) -> str:
        return self.server_url.rstrip("/") + path

    def auth_headers(self) -> dict:
        if self.auth_token is None:
            return {}
        token = self.auth_token.get_secret_value()
        if self.auth_scheme == AuthScheme.BEARER:
            token = f"Bearer {token}"
        return {"Authorization": token}


def _raise_for_status(response: TransportResponse, action: str) -> None:
    if response.ok:
        return

    server_msg = response.body.strip() or "Unknown error"
    if response.status == 401:
        raise ServerRejectionError(
            f"{action} rejected: server returned Unauthorized", 401, server_msg
        )
    raise ServerRejectionError(
        f"{action} failed - {response.status}: {server_msg}", response.status, server_msg
    )


class _LifecycleClient:
    """Shared plumbing for the three client states."""

    def __init__(self, config: ClientConfig) -> None:
        self._config = config

    @property
    def config(self) -> ClientConfig:
        return self._config

    @property
    def server_url(self) -> str:
        return self._config.server_url

    async def _send(self, request: TransportRequest) -> TransportResponse:
        request.headers.update(self._config.auth_headers())
        return await self._config.transport.send(request)

    def _invalid(self, operation: str, reason: str) -> InvalidStateError:
        return InvalidStateError(
            f"Cannot {operation}: {reason}", state=self.state
        )


class UnregisteredClient(_LifecycleClient):
    """A configured client holding fresh key material, not yet known to the server."""

    def __init__(self, config: ClientConfig, key_material: KeyMaterial) -> None:
        super().__init__(config)
        self._keys: Optional[KeyMaterial] = key_material
        self._in_flight = False

    @property
    def state(self) -> ClientState:
        return ClientState.UNREGISTERED

    @property
    def consumed(self) -> bool:
        """True once this instance has turned into a RegisteredClient or was discarded."""
        return self._keys is None

    @property
    def correlation_id(self) -> str:
        self._require_keys("read the correlation id")
        return self._keys.correlation_id

    @property
    def interaction_fqdn(self) -> str:
        """Hostname the client will own once registered."""
        self._require_keys("read the interaction hostname")
        return self._keys.interaction_fqdn(self._config.server_domain)

    def _require_keys(self, operation: str) -> KeyMaterial:
        if self._keys is None:
            raise self._invalid(operation, "this client has already been registered or discarded")
        return self._keys

    async def register(self) -> "RegisteredClient":
        """
        Register the correlation id and public key with the server.

        On failure the instance stays usable so the caller can retry. On success it
        is consumed and the returned RegisteredClient owns the key material.

        Returns:
            The registered client

        Raises:
            TransportError: If the request could not be sent
            ServerRejectionError: If the server refused the registration
            InvalidStateError: If already registered, discarded, or a registration
                is in progress
        """
        keys = self._require_keys("register")
        if self._in_flight:
            raise self._invalid("register", "a registration attempt is already in progress")

        payload = keys.registration_payload()
        request = TransportRequest(
            method="POST",
            url=self._config.endpoint(REGISTER_PATH),
            json=payload.to_request().to_wire(),
        )

        self._in_flight = True
        try:
            response = await self._send(request)
            _raise_for_status(response, "Registration")
        finally:
            self._in_flight = False

        # Only a complete, successful exchange moves the state forward
        self._keys = None
        fqdn = keys.interaction_fqdn(self._config.server_domain)
        log_structured(
            logger,
            logging.INFO,
            "Client registered",
            correlation_id=keys.correlation_id,
            interaction_fqdn=fqdn,
        )
        return RegisteredClient(self._config, keys, fqdn)

    def discard(self) -> None:
        """
        Wipe the key material without registering.

        Raises:
            InvalidStateError: If a registration is in progress
        """
        if self._in_flight:
            raise self._invalid("discard", "a registration attempt is in progress")
        if self._keys is not None:
            self._keys.wipe()
            self._keys = None


class RegisteredClient(_LifecycleClient):
    """A client registered with the server; poll it as often as needed."""

    def __init__(
        self, config: ClientConfig, key_material: KeyMaterial, interaction_fqdn: str
    ) -> None:
        super().__init__(config)
        self._keys = key_material
        self._interaction_fqdn = interaction_fqdn
        self._decoder = PayloadDecoder(key_material, parse_logs=config.parse_logs)
        self._closed = False

    @property
    def state(self) -> ClientState:
        return ClientState.DEREGISTERED if self._closed else ClientState.REGISTERED

    @property
    def correlation_id(self) -> str:
        return self._keys.correlation_id

    @property
    def interaction_fqdn(self) -> str:
        """Hostname to plant in payloads; interactions with it show up in poll()."""
        return self._interaction_fqdn

    def interaction_url(self, scheme: str = "https") -> str:
        return f"{scheme}://{self._interaction_fqdn}"

    async def poll(self) -> PollResult:
        """
        Fetch and decrypt interactions recorded since the last poll.

        Transport and server failures are raised but leave the client registered;
        undecryptable entries are reported in ``PollResult.errors``.

        Returns:
            PollResult (empty when the server has nothing new)

        Raises:
            TransportError: If the request could not be sent
            ServerRejectionError: On an error status or a malformed response body
            InvalidStateError: If the client has been deregistered
        """
        if self._closed:
            raise self._invalid("poll", "client has been deregistered")

        request = TransportRequest(
            method="GET",
            url=self._config.endpoint(POLL_PATH),
            params={
                POLL_ID_PARAM: self._keys.correlation_id,
                POLL_SECRET_PARAM: self._keys.wire_secret(),
            },
        )
        response = await self._send(request)
        _raise_for_status(response, "Poll")

        if response.status == 204 or not response.body.strip():
            logger.debug("Poll returned no content")
            return PollResult()

        try:
            envelope = PollEnvelope.model_validate_json(response.body)
        except ValidationError as e:
            raise ServerRejectionError(
                "Poll failed: server response is not a valid poll body",
                response.status,
                details={"error": str(e)},
            ) from e

        if envelope.is_empty:
            return PollResult()

        result = self._decoder.decode(envelope)
        logger.debug(f"Poll decoded {len(result.logs)} logs, {len(result.errors)} errors")
        return result

    async def deregister(self) -> "DeregisteredClient":
        """
        Remove the registration from the server.

        The client is closed and its key material wiped before this returns or
        raises, regardless of the server's answer.

        Returns:
            The terminal DeregisteredClient

        Raises:
            TransportError: If the request could not be sent
            ServerRejectionError: If the server refused the request
            InvalidStateError: If the client has already been deregistered
        """
        if self._closed:
            raise self._invalid("deregister", "client has already been deregistered")
        self._closed = True

        correlation_id = self._keys.correlation_id
        request = TransportRequest(
            method="POST",
            url=self._config.endpoint(DEREGISTER_PATH),
            json=DeregisterRequest(
                correlation_id=correlation_id,
                secret_key=self._keys.wire_secret(),
            ).to_wire(),
        )

        try:
            response = await self._send(request)
            _raise_for_status(response, "Deregistration")
        finally:
            self._keys.wipe()
            logger.info(f"Client {correlation_id} deregistered")

        return DeregisteredClient(self._config, correlation_id, self._interaction_fqdn)

    async def __aenter__(self) -> "RegisteredClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._closed:
            return
        if exc_type is None:
            await self.deregister()
            return
        # Another exception is already propagating; report ours without masking it
        try:
            await self.deregister()
        except OOBWatchException as e:
            logger.warning(f"Deregistration during error unwind failed: {e}")


class DeregisteredClient(_LifecycleClient):
    """Terminal state. Every operation raises InvalidStateError without I/O."""

    def __init__(self, config: ClientConfig, correlation_id: str, interaction_fqdn: str) -> None:
        super().__init__(config)
        self.correlation_id = correlation_id
        self.interaction_fqdn = interaction_fqdn

    @property
    def state(self) -> ClientState:
        return ClientState.DEREGISTERED

    async def register(self) -> RegisteredClient:
        raise self._invalid("register", "client has been deregistered")

    async def poll(self) -> PollResult:
        raise self._invalid("poll", "client has been deregistered")

    async def deregister(self) -> "DeregisteredClient":
        raise self._invalid("deregister", "client has already been deregistered")
