"""
Native Crypto Provider

CryptoProvider backed by the ``cryptography`` package (OpenSSL bindings).
"""

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.decrepit.ciphers.modes import CFB
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms

from ..core.exceptions import DecryptionError, KeyGenerationError
from ..core.logging import get_logger
from .provider import PEM_PUBLIC_KEY_HEADER, RSA_PUBLIC_EXPONENT, CryptoProvider
from .sensitive import SensitiveBytes

logger = get_logger(__name__)


def _oaep() -> padding.OAEP:
    return padding.OAEP(
        mgf=padding.MGF1(algorithm=hashes.SHA256()),
        algorithm=hashes.SHA256(),
        label=None,
    )


class NativeCryptoProvider(CryptoProvider):
    """OpenSSL-backed provider using ``cryptography``'s hazmat primitives."""

    name = "native"

    def _generate_private_key(self, key_size: int) -> SensitiveBytes:
        try:
            key = rsa.generate_private_key(
                public_exponent=RSA_PUBLIC_EXPONENT, key_size=key_size
            )
            der = key.private_bytes(
                encoding=serialization.Encoding.DER,
                format=serialization.PrivateFormat.PKCS8,
                encryption_algorithm=serialization.NoEncryption(),
            )
        except (ValueError, UnsupportedAlgorithm) as e:
            raise KeyGenerationError(f"Failed to generate RSA key: {e}") from e

        logger.debug(f"Generated {key_size}-bit RSA key")
        return SensitiveBytes(der)

    def _load_private_key(self, private_key: SensitiveBytes) -> rsa.RSAPrivateKey:
        key = serialization.load_der_private_key(private_key.reveal(), password=None)
        if not isinstance(key, rsa.RSAPrivateKey):
            raise ValueError("Private key is not an RSA key")
        return key

    def public_key_der(self, private_key: SensitiveBytes) -> bytes:
        return self._public_bytes(private_key, serialization.Encoding.DER)

    def public_key_pem(self, private_key: SensitiveBytes) -> bytes:
        return self._public_bytes(private_key, serialization.Encoding.PEM)

    def _public_bytes(
        self, private_key: SensitiveBytes, encoding: serialization.Encoding
    ) -> bytes:
        try:
            public_key = self._load_private_key(private_key).public_key()
        except (ValueError, TypeError, UnsupportedAlgorithm) as e:
            raise KeyGenerationError(f"Failed to extract RSA public key: {e}") from e
        return public_key.public_bytes(
            encoding=encoding,
            format=serialization.PublicFormat.SubjectPublicKeyInfo,
        )

    def decrypt_asymmetric(self, private_key: SensitiveBytes, ciphertext: bytes) -> bytes:
        try:
            key = self._load_private_key(private_key)
            return key.decrypt(ciphertext, _oaep())
        except (ValueError, TypeError, UnsupportedAlgorithm) as e:
            raise DecryptionError(f"RSA decryption failed: {e}") from e

    def _decrypt_symmetric(self, key: bytes, iv: bytes, ciphertext: bytes) -> bytes:
        try:
            decryptor = Cipher(algorithms.AES(key), CFB(iv)).decryptor()
            return decryptor.update(ciphertext) + decryptor.finalize()
        except ValueError as e:
            raise DecryptionError(f"AES decryption failed: {e}") from e

    def encrypt_asymmetric(self, public_key: bytes, plaintext: bytes) -> bytes:
        if public_key.lstrip().startswith(PEM_PUBLIC_KEY_HEADER):
            key = serialization.load_pem_public_key(public_key)
        else:
            key = serialization.load_der_public_key(public_key)
        if not isinstance(key, rsa.RSAPublicKey):
            raise ValueError("Public key is not an RSA key")
        return key.encrypt(plaintext, _oaep())

    def _encrypt_symmetric(self, key: bytes, iv: bytes, plaintext: bytes) -> bytes:
        encryptor = Cipher(algorithms.AES(key), CFB(iv)).encryptor()
        return encryptor.update(plaintext) + encryptor.finalize()
