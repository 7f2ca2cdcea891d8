"""
Portable Crypto Provider

CryptoProvider backed by ``pycryptodome``, which carries its own implementations
of RSA and AES and does not depend on the system OpenSSL.
"""

from Crypto.Cipher import AES, PKCS1_OAEP
from Crypto.Hash import SHA256
from Crypto.PublicKey import RSA

from ..core.exceptions import DecryptionError, KeyGenerationError
from ..core.logging import get_logger
from .provider import RSA_PUBLIC_EXPONENT, CryptoProvider
from .sensitive import SensitiveBytes

logger = get_logger(__name__)

# pycryptodome defaults to 8-bit CFB segments; the protocol uses full blocks
CFB_SEGMENT_BITS = 128


class PortableCryptoProvider(CryptoProvider):
    """Provider built on ``Crypto.Cipher`` / ``Crypto.PublicKey``."""

    name = "portable"

    def _generate_private_key(self, key_size: int) -> SensitiveBytes:
        try:
            key = RSA.generate(key_size, e=RSA_PUBLIC_EXPONENT)
            der = key.export_key(format="DER", pkcs=8)
        except ValueError as e:
            raise KeyGenerationError(f"Failed to generate RSA key: {e}") from e

        logger.debug(f"Generated {key_size}-bit RSA key")
        return SensitiveBytes(der)

    def _load_private_key(self, private_key: SensitiveBytes) -> RSA.RsaKey:
        key = RSA.import_key(private_key.reveal())
        if not key.has_private():
            raise ValueError("Key has no private component")
        return key

    def public_key_der(self, private_key: SensitiveBytes) -> bytes:
        return self._public_key(private_key).export_key(format="DER")

    def public_key_pem(self, private_key: SensitiveBytes) -> bytes:
        pem = self._public_key(private_key).export_key(format="PEM")
        return pem if pem.endswith(b"\n") else pem + b"\n"

    def _public_key(self, private_key: SensitiveBytes) -> RSA.RsaKey:
        try:
            return self._load_private_key(private_key).publickey()
        except (ValueError, IndexError, TypeError) as e:
            raise KeyGenerationError(f"Failed to extract RSA public key: {e}") from e

    def decrypt_asymmetric(self, private_key: SensitiveBytes, ciphertext: bytes) -> bytes:
        try:
            cipher = PKCS1_OAEP.new(self._load_private_key(private_key), hashAlgo=SHA256)
            return cipher.decrypt(ciphertext)
        except (ValueError, IndexError, TypeError) as e:
            raise DecryptionError(f"RSA decryption failed: {e}") from e

    def _decrypt_symmetric(self, key: bytes, iv: bytes, ciphertext: bytes) -> bytes:
        try:
            cipher = AES.new(key, AES.MODE_CFB, iv=iv, segment_size=CFB_SEGMENT_BITS)
            return cipher.decrypt(ciphertext)
        except (ValueError, TypeError) as e:
            raise DecryptionError(f"AES decryption failed: {e}") from e

    def encrypt_asymmetric(self, public_key: bytes, plaintext: bytes) -> bytes:
        key = RSA.import_key(public_key)
        return PKCS1_OAEP.new(key, hashAlgo=SHA256).encrypt(plaintext)

    def _encrypt_symmetric(self, key: bytes, iv: bytes, plaintext: bytes) -> bytes:
        cipher = AES.new(key, AES.MODE_CFB, iv=iv, segment_size=CFB_SEGMENT_BITS)
        return cipher.encrypt(plaintext)
