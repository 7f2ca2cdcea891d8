"""
Client Key Material

Generates and owns the RSA key pair, the correlation identifiers and the
correlation secret for one client instance.
"""

import base64
import secrets
import string
import uuid
from dataclasses import dataclass, field
from typing import List, Optional

from ..core.exceptions import DecryptionError, KeyGenerationError
from ..core.logging import get_logger
from ..crypto import CryptoProvider, NativeCryptoProvider, SensitiveBytes
from .protocol import (
    PUBLIC_KEY_ENCODING,
    SECRET_WIRE_MODE,
    PublicKeyEncoding,
    RegisterRequest,
    SecretWireMode,
    encode_secret,
    hash_secret,
)

logger = get_logger(__name__)

DEFAULT_KEY_SIZE = 2048

# Subdomains must survive DNS case folding
SUBDOMAIN_ALPHABET = string.ascii_lowercase + string.digits

MAX_SUBDOMAIN_LENGTH = 63


@dataclass(frozen=True)
class CorrelationConfig:
    """
    Lengths of the generated identifiers.

    These must match the server's configuration; the defaults are what the public
    servers expect.
    """

    subdomain_length: int = 33
    correlation_id_length: int = 20

    def validate(self) -> List[str]:
        """Return every problem with this configuration (empty when valid)."""
        errors = []
        if self.correlation_id_length < 1:
            errors.append("correlation_id_length must be at least 1")
        if not 1 <= self.subdomain_length <= MAX_SUBDOMAIN_LENGTH:
            errors.append(f"subdomain_length must be between 1 and {MAX_SUBDOMAIN_LENGTH}")
        if self.subdomain_length < self.correlation_id_length:
            errors.append("subdomain_length must not be shorter than correlation_id_length")
        return errors


def validate_subdomain_override(override: str, correlation_id_length: int) -> List[str]:
    """Return every problem with a caller-supplied subdomain."""
    errors = []
    if not override:
        return ["subdomain_override must not be empty"]
    if any(ch not in SUBDOMAIN_ALPHABET for ch in override):
        errors.append("subdomain_override must contain only lowercase letters and digits")
    if len(override) > MAX_SUBDOMAIN_LENGTH:
        errors.append(f"subdomain_override must be at most {MAX_SUBDOMAIN_LENGTH} characters")
    if len(override) < correlation_id_length:
        errors.append(
            f"subdomain_override must be at least {correlation_id_length} characters "
            "so it can carry the correlation id"
        )
    return errors


def _random_token(length: int) -> str:
    return "".join(secrets.choice(SUBDOMAIN_ALPHABET) for _ in range(length))


@dataclass(frozen=True)
class RegistrationPayload:
    """Everything the register endpoint needs, in wire-ready form."""

    public_key: str
    public_key_der_base64: str
    correlation_id: str
    secret_key: str = field(repr=False)
    secret_hash: str

    def to_request(self) -> RegisterRequest:
        return RegisterRequest(
            public_key=self.public_key,
            secret_key=self.secret_key,
            correlation_id=self.correlation_id,
        )


class KeyMaterial:
    """
    Key pair, identifiers and secret belonging to exactly one client.

    The private key and secret are held in SensitiveBytes and released by
    ``wipe()``; once wiped, the material can no longer be used.
    """

    def __init__(
        self,
        provider: CryptoProvider,
        private_key: SensitiveBytes,
        public_key_pem: bytes,
        public_key_der: bytes,
        correlation_id: str,
        subdomain: str,
        secret: SensitiveBytes,
    ) -> None:
        self._provider = provider
        self._private_key = private_key
        self._public_key_pem = public_key_pem
        self._public_key_der = public_key_der
        self._correlation_id = correlation_id
        self._subdomain = subdomain
        self._secret = secret

    @classmethod
    def generate(
        cls,
        key_size: int = DEFAULT_KEY_SIZE,
        provider: Optional[CryptoProvider] = None,
        correlation: Optional[CorrelationConfig] = None,
        subdomain_override: Optional[str] = None,
    ) -> "KeyMaterial":
        """
        Generate fresh key material.

        Args:
            key_size: RSA modulus size in bits
            provider: Crypto backend (native by default)
            correlation: Identifier lengths (server defaults if None)
            subdomain_override: Fixed subdomain to use instead of a random one;
                its prefix becomes the correlation id

        Returns:
            New KeyMaterial instance

        Raises:
            KeyGenerationError: On unsupported sizes, invalid identifiers or
                entropy/backend failure
        """
        provider = provider or NativeCryptoProvider()
        correlation = correlation or CorrelationConfig()

        problems = correlation.validate()
        if subdomain_override is not None:
            problems += validate_subdomain_override(
                subdomain_override, correlation.correlation_id_length
            )
        if problems:
            raise KeyGenerationError("Invalid identifier settings", {"errors": problems})

        private_key = provider.generate_private_key(key_size)
        try:
            public_key_pem = provider.public_key_pem(private_key)
            public_key_der = provider.public_key_der(private_key)

            if subdomain_override is not None:
                subdomain = subdomain_override
            else:
                subdomain = _random_token(correlation.subdomain_length)
            correlation_id = subdomain[: correlation.correlation_id_length]
            secret = SensitiveBytes(str(uuid.uuid4()))
        except (OSError, NotImplementedError) as e:
            private_key.wipe()
            raise KeyGenerationError(f"Entropy source failure: {e}") from e
        except KeyGenerationError:
            private_key.wipe()
            raise

        logger.debug(f"Generated key material for correlation id {correlation_id}")
        return cls(
            provider=provider,
            private_key=private_key,
            public_key_pem=public_key_pem,
            public_key_der=public_key_der,
            correlation_id=correlation_id,
            subdomain=subdomain,
            secret=secret,
        )

    @property
    def provider(self) -> CryptoProvider:
        return self._provider

    @property
    def correlation_id(self) -> str:
        return self._correlation_id

    @property
    def subdomain(self) -> str:
        return self._subdomain

    @property
    def public_key_pem(self) -> bytes:
        return self._public_key_pem

    @property
    def public_key_der(self) -> bytes:
        return self._public_key_der

    @property
    def secret_hash(self) -> str:
        return hash_secret(self._secret.reveal_str())

    @property
    def wiped(self) -> bool:
        return self._private_key.wiped

    def encoded_public_key(
        self, encoding: PublicKeyEncoding = PUBLIC_KEY_ENCODING
    ) -> str:
        """Public key packed for the ``public-key`` registration field."""
        raw = self._public_key_der if encoding == PublicKeyEncoding.DER_BASE64 else self._public_key_pem
        return base64.b64encode(raw).decode("ascii")

    def wire_secret(self, mode: SecretWireMode = SECRET_WIRE_MODE) -> str:
        """The correlation secret in the form sent on poll/register/deregister."""
        return encode_secret(self._secret.reveal_str(), mode)

    def registration_payload(self) -> RegistrationPayload:
        """Build the body fields for the register endpoint."""
        return RegistrationPayload(
            public_key=self.encoded_public_key(),
            public_key_der_base64=self.encoded_public_key(PublicKeyEncoding.DER_BASE64),
            correlation_id=self._correlation_id,
            secret_key=self.wire_secret(),
            secret_hash=self.secret_hash,
        )

    def interaction_fqdn(self, server_domain: str) -> str:
        """Hostname that routes interactions to this client."""
        return f"{self._subdomain}.{server_domain}"

    def unwrap_key(self, ciphertext: bytes) -> SensitiveBytes:
        """
        Recover a symmetric key wrapped under this client's public key.

        Raises:
            DecryptionError: If the key cannot be decrypted or the material was wiped
        """
        if self.wiped:
            raise DecryptionError("Key material has been wiped")
        return SensitiveBytes(self._provider.decrypt_asymmetric(self._private_key, ciphertext))

    def wipe(self) -> None:
        """Release the private key and secret."""
        self._private_key.wipe()
        self._secret.wipe()

    def __enter__(self) -> "KeyMaterial":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.wipe()

    def __repr__(self) -> str:
        return (
            f"KeyMaterial(correlation_id={self._correlation_id!r}, "
            f"provider={self._provider.name!r}, wiped={self.wiped})"
        )
