"""
Pytest configuration and shared fixtures for oobwatch tests.
"""

import asyncio
import base64
import inspect
import json
import os
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

import pytest

from oobwatch.client.keys import KeyMaterial
from oobwatch.client.transport import HttpTransport, TransportRequest, TransportResponse
from oobwatch.crypto import CryptoProvider, NativeCryptoProvider, PortableCryptoProvider

# Smallest supported size keeps key generation fast
TEST_KEY_SIZE = 1024

QueuedResponse = Union[
    TransportResponse,
    Exception,
    Callable[[TransportRequest], Union[TransportResponse, Awaitable[TransportResponse]]],
]


class StubTransport(HttpTransport):
    """
    In-memory transport that records requests and replays queued responses.

    Each queued item is a TransportResponse, an exception to raise, or a callable
    producing a response (or an awaitable of one) from the request. When the
    queue is empty every request gets a 200 with an empty JSON object.
    """

    def __init__(self, responses: Optional[List[QueuedResponse]] = None) -> None:
        self.responses: List[QueuedResponse] = list(responses or [])
        self.requests: List[TransportRequest] = []
        self.closed = False

    def queue(self, *responses: QueuedResponse) -> "StubTransport":
        self.responses.extend(responses)
        return self

    async def send(self, request: TransportRequest) -> TransportResponse:
        self.requests.append(request)
        if not self.responses:
            return TransportResponse(status=200, body="{}")
        queued = self.responses.pop(0)
        if isinstance(queued, Exception):
            raise queued
        if callable(queued):
            queued = queued(request)
            if inspect.isawaitable(queued):
                queued = await queued
        return queued

    async def close(self) -> None:
        self.closed = True

    def paths(self) -> List[str]:
        return [request.url.rsplit("/", 1)[-1] for request in self.requests]


def seal_documents(
    public_key_pem: bytes,
    documents: List[Union[str, Dict[str, Any]]],
    provider: Optional[CryptoProvider] = None,
    aes_key: Optional[bytes] = None,
) -> Dict[str, Any]:
    """Build a poll body the way the server does: one AES key, RSA-wrapped, per batch."""
    provider = provider or NativeCryptoProvider()
    aes_key = aes_key or os.urandom(32)
    wrapped = provider.encrypt_asymmetric(public_key_pem, aes_key)

    data = []
    for document in documents:
        text = document if isinstance(document, str) else json.dumps(document)
        iv = os.urandom(16)
        ciphertext = provider.encrypt_symmetric(aes_key, iv, text.encode("utf-8"))
        data.append(base64.b64encode(iv + ciphertext).decode("ascii"))

    return {"aes_key": base64.b64encode(wrapped).decode("ascii"), "data": data}


def held_response(
    release: asyncio.Event, response: TransportResponse
) -> Callable[[TransportRequest], Awaitable[TransportResponse]]:
    """Queue entry that answers only once ``release`` is set."""

    async def respond(request: TransportRequest) -> TransportResponse:
        await release.wait()
        return response

    return respond


def dns_log(full_id: str = "c0ffee", **overrides: Any) -> Dict[str, Any]:
    """A DNS interaction document as the server records it."""
    document = {
        "protocol": "dns",
        "unique-id": full_id[:20],
        "full-id": full_id,
        "q-type": "A",
        "raw-request": f";; QUESTION SECTION:\n;{full_id}.\tIN\t A",
        "raw-response": f";; ANSWER SECTION:\n{full_id}.\t3600\tIN\tA\t1.2.3.4",
        "remote-address": "203.0.113.7",
        "timestamp": "2024-03-01T12:30:45.123456789Z",
    }
    document.update(overrides)
    return document


@pytest.fixture(scope="session")
def native_provider() -> NativeCryptoProvider:
    return NativeCryptoProvider()


@pytest.fixture(scope="session")
def portable_provider() -> PortableCryptoProvider:
    return PortableCryptoProvider()


@pytest.fixture(scope="session", params=["native", "portable"])
def any_provider(request, native_provider, portable_provider) -> CryptoProvider:
    """Each test using this fixture runs once per backend."""
    return native_provider if request.param == "native" else portable_provider


@pytest.fixture(scope="session")
def shared_key_material(native_provider) -> KeyMaterial:
    """
    Key material reused across read-only tests.

    Never wipe this instance; tests that need to wipe should generate their own.
    """
    return KeyMaterial.generate(TEST_KEY_SIZE, provider=native_provider)


@pytest.fixture
def stub_transport() -> StubTransport:
    return StubTransport()


@pytest.fixture
def seal() -> Callable[..., Dict[str, Any]]:
    return seal_documents


@pytest.fixture
def make_dns_log() -> Callable[..., Dict[str, Any]]:
    return dns_log


@pytest.fixture
def hold() -> Callable[..., Callable[[TransportRequest], Awaitable[TransportResponse]]]:
    return held_response
