"""
Interaction Server Wire Protocol

Endpoint paths, field names and request/response bodies exchanged with the
interaction server, plus the pinned constants that must match the server exactly.
"""

import hashlib
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

REGISTER_PATH = "/register"
POLL_PATH = "/poll"
DEREGISTER_PATH = "/deregister"

POLL_ID_PARAM = "id"
POLL_SECRET_PARAM = "secret"

# Each data entry is IV || AES-CFB(ciphertext)
IV_LENGTH = 16


class SecretWireMode(str, Enum):
    """Form in which the correlation secret is sent to the server."""

    RAW = "raw"
    SHA256 = "sha256"


# The reference server stores the registered secret verbatim and compares the
# poll/deregister secret against it byte for byte, so the same form must be used
# on all three endpoints.
SECRET_WIRE_MODE = SecretWireMode.RAW


class PublicKeyEncoding(str, Enum):
    """How the public key is packed into the ``public-key`` field."""

    PEM_BASE64 = "pem_base64"
    DER_BASE64 = "der_base64"


# The reference server base64-decodes the field and parses it as a PEM block.
PUBLIC_KEY_ENCODING = PublicKeyEncoding.PEM_BASE64


def hash_secret(secret: str) -> str:
    """One-way hash of a correlation secret (hex SHA-256)."""
    return hashlib.sha256(secret.encode("utf-8")).hexdigest()


def encode_secret(secret: str, mode: SecretWireMode = SECRET_WIRE_MODE) -> str:
    """Render ``secret`` in the form the server expects."""
    if mode == SecretWireMode.SHA256:
        return hash_secret(secret)
    return secret


class RegisterRequest(BaseModel):
    """Body of ``POST /register``."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    public_key: str = Field(alias="public-key")
    secret_key: str = Field(alias="secret-key", repr=False)
    correlation_id: str = Field(alias="correlation-id")

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)


class DeregisterRequest(BaseModel):
    """Body of ``POST /deregister``."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    correlation_id: str = Field(alias="correlation-id")
    secret_key: str = Field(alias="secret-key", repr=False)

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)


class PollEnvelope(BaseModel):
    """
    Body of a successful ``GET /poll`` response.

    ``data`` entries are encrypted under the AES key wrapped in ``aes_key``;
    ``extra`` and ``tld_data`` entries are plaintext JSON interactions.

    Entries are left untyped here; the decoder rejects non-string entries one
    at a time so the rest of the batch survives.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    aes_key: Optional[str] = Field(default=None)
    data: Optional[List[Any]] = Field(default=None)
    extra: Optional[List[Any]] = Field(default=None)
    tld_data: Optional[List[Any]] = Field(default=None, alias="tlddata")

    @property
    def encrypted_entries(self) -> List[Any]:
        return list(self.data or [])

    @property
    def plaintext_entries(self) -> List[Any]:
        return list(self.extra or []) + list(self.tld_data or [])

    @property
    def is_empty(self) -> bool:
        return not self.encrypted_entries and not self.plaintext_entries
