"""
Crypto Provider Interface

Defines the capability interface used by the rest of the client for RSA key
handling and hybrid decryption. Concrete providers wrap a specific library; the
client only ever talks to this interface.

Private keys cross this interface as PKCS#8 DER held in ``SensitiveBytes`` so
that both backends can consume keys generated by the other.
"""

from abc import ABC, abstractmethod

from ..core.exceptions import DecryptionError, KeyGenerationError
from .sensitive import SensitiveBytes

AES_BLOCK_SIZE = 16
VALID_AES_KEY_SIZES = (16, 24, 32)

MIN_RSA_KEY_SIZE = 1024
MAX_RSA_KEY_SIZE = 8192
RSA_KEY_SIZE_STEP = 256
RSA_PUBLIC_EXPONENT = 65537

PEM_PUBLIC_KEY_HEADER = b"-----BEGIN PUBLIC KEY-----"


def is_supported_key_size(key_size: int) -> bool:
    """Whether both backends can generate an RSA key of ``key_size`` bits."""
    return (
        isinstance(key_size, int)
        and not isinstance(key_size, bool)
        and MIN_RSA_KEY_SIZE <= key_size <= MAX_RSA_KEY_SIZE
        and key_size % RSA_KEY_SIZE_STEP == 0
    )


class CryptoProvider(ABC):
    """
    Abstract RSA-OAEP / AES-CFB provider.

    Asymmetric operations use RSA with OAEP padding, SHA-256 as both the digest
    and the MGF1 hash, and no label. Symmetric operations use AES in CFB mode with
    128-bit feedback segments.
    """

    name: str = "abstract"

    # Key management

    def generate_private_key(self, key_size: int) -> SensitiveBytes:
        """
        Generate a fresh RSA private key.

        Args:
            key_size: Modulus size in bits

        Returns:
            The private key as PKCS#8 DER

        Raises:
            KeyGenerationError: If the size is unsupported or the backend fails
        """
        if not is_supported_key_size(key_size):
            raise KeyGenerationError(
                f"Unsupported RSA key size: {key_size}",
                {
                    "min": MIN_RSA_KEY_SIZE,
                    "max": MAX_RSA_KEY_SIZE,
                    "step": RSA_KEY_SIZE_STEP,
                },
            )
        return self._generate_private_key(key_size)

    @abstractmethod
    def _generate_private_key(self, key_size: int) -> SensitiveBytes:
        """Backend-specific key generation for an already validated size."""

    @abstractmethod
    def public_key_der(self, private_key: SensitiveBytes) -> bytes:
        """SubjectPublicKeyInfo DER encoding of the key's public half."""

    @abstractmethod
    def public_key_pem(self, private_key: SensitiveBytes) -> bytes:
        """SubjectPublicKeyInfo PEM encoding of the key's public half."""

    # Decryption

    @abstractmethod
    def decrypt_asymmetric(self, private_key: SensitiveBytes, ciphertext: bytes) -> bytes:
        """
        RSA-OAEP decrypt ``ciphertext``.

        Raises:
            DecryptionError: On malformed ciphertext or a key mismatch
        """

    def decrypt_symmetric(self, key: bytes, iv: bytes, ciphertext: bytes) -> bytes:
        """
        AES-CFB decrypt ``ciphertext``.

        Raises:
            DecryptionError: On an invalid key or IV length
        """
        self._check_symmetric_params(key, iv, DecryptionError)
        return self._decrypt_symmetric(key, iv, ciphertext)

    @abstractmethod
    def _decrypt_symmetric(self, key: bytes, iv: bytes, ciphertext: bytes) -> bytes:
        """Backend-specific AES-CFB decryption for validated parameters."""

    # Encryption (the server side of the exchange, used for tests and tooling)

    @abstractmethod
    def encrypt_asymmetric(self, public_key: bytes, plaintext: bytes) -> bytes:
        """RSA-OAEP encrypt ``plaintext`` for a PEM or DER public key."""

    def encrypt_symmetric(self, key: bytes, iv: bytes, plaintext: bytes) -> bytes:
        """AES-CFB encrypt ``plaintext``."""
        self._check_symmetric_params(key, iv, ValueError)
        return self._encrypt_symmetric(key, iv, plaintext)

    @abstractmethod
    def _encrypt_symmetric(self, key: bytes, iv: bytes, plaintext: bytes) -> bytes:
        """Backend-specific AES-CFB encryption for validated parameters."""

    @staticmethod
    def _check_symmetric_params(key: bytes, iv: bytes, error_cls: type) -> None:
        if len(key) not in VALID_AES_KEY_SIZES:
            raise error_cls(
                f"Invalid AES key length: {len(key)} bytes "
                f"(expected one of {VALID_AES_KEY_SIZES})"
            )
        if len(iv) != AES_BLOCK_SIZE:
            raise error_cls(
                f"Invalid IV length: {len(iv)} bytes (expected {AES_BLOCK_SIZE})"
            )

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"
