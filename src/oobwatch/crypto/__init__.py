"""
oobwatch Crypto Providers

Interchangeable RSA-OAEP / AES-CFB backends behind a single interface.
"""

from typing import Union

from ..core.config import CryptoBackend
from .native import NativeCryptoProvider
from .portable import PortableCryptoProvider
from .provider import (
    AES_BLOCK_SIZE,
    VALID_AES_KEY_SIZES,
    CryptoProvider,
    is_supported_key_size,
)
from .sensitive import SensitiveBytes

_PROVIDERS = {
    CryptoBackend.NATIVE: NativeCryptoProvider,
    CryptoBackend.PORTABLE: PortableCryptoProvider,
}


def get_provider(backend: Union[CryptoBackend, str] = CryptoBackend.NATIVE) -> CryptoProvider:
    """
    Instantiate the provider for ``backend``.

    Args:
        backend: A CryptoBackend or its string value ("native" / "portable")

    Returns:
        A new CryptoProvider instance

    Raises:
        ValueError: If the backend name is unknown
    """
    return _PROVIDERS[CryptoBackend(backend)]()


__all__ = [
    "AES_BLOCK_SIZE",
    "VALID_AES_KEY_SIZES",
    "CryptoBackend",
    "CryptoProvider",
    "NativeCryptoProvider",
    "PortableCryptoProvider",
    "SensitiveBytes",
    "get_provider",
    "is_supported_key_size",
]
