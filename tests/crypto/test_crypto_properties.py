"""
Property-based tests for the crypto providers.

Both backends must agree on the RSA-OAEP(SHA-256) and AES-CFB128 framing, so
anything one encrypts the other decrypts.
"""

import os
import warnings

import pytest
from hypothesis import given, settings, strategies as st

from oobwatch.core.exceptions import DecryptionError, KeyGenerationError
from oobwatch.crypto import (
    CryptoBackend,
    NativeCryptoProvider,
    PortableCryptoProvider,
    SensitiveBytes,
    get_provider,
    is_supported_key_size,
)

aes_keys = st.sampled_from([16, 24, 32]).flatmap(lambda n: st.binary(min_size=n, max_size=n))
ivs = st.binary(min_size=16, max_size=16)
plaintexts = st.binary(min_size=0, max_size=512)


@pytest.fixture(scope="module")
def native_key(native_provider) -> SensitiveBytes:
    return native_provider.generate_private_key(1024)


@pytest.fixture(scope="module")
def portable_key(portable_provider) -> SensitiveBytes:
    return portable_provider.generate_private_key(1024)


class TestSymmetricInteroperability:
    """AES-CFB output is identical across backends."""

    @settings(max_examples=100)
    @given(key=aes_keys, iv=ivs, plaintext=plaintexts)
    def test_native_and_portable_agree(self, key: bytes, iv: bytes, plaintext: bytes):
        native = NativeCryptoProvider()
        portable = PortableCryptoProvider()

        native_ct = native.encrypt_symmetric(key, iv, plaintext)
        portable_ct = portable.encrypt_symmetric(key, iv, plaintext)

        # CFB is a stream mode: no padding, same length
        assert len(native_ct) == len(plaintext)
        assert native_ct == portable_ct
        assert portable.decrypt_symmetric(key, iv, native_ct) == plaintext
        assert native.decrypt_symmetric(key, iv, portable_ct) == plaintext

    @settings(max_examples=50)
    @given(iv=ivs, plaintext=st.binary(min_size=17, max_size=128))
    def test_segment_size_is_full_block(self, iv: bytes, plaintext: bytes):
        """Decrypting with 8-bit feedback would diverge after the first byte."""
        from Crypto.Cipher import AES

        key = bytes(range(32))
        ciphertext = NativeCryptoProvider().encrypt_symmetric(key, iv, plaintext)
        cfb8 = AES.new(key, AES.MODE_CFB, iv=iv, segment_size=8).decrypt(ciphertext)
        assert PortableCryptoProvider().decrypt_symmetric(key, iv, ciphertext) == plaintext
        assert cfb8[1:] != plaintext[1:]

    def test_native_cfb_raises_no_deprecation_warning(self):
        provider = NativeCryptoProvider()
        key, iv = bytes(range(32)), bytes(16)
        with warnings.catch_warnings():
            warnings.simplefilter("error")
            ciphertext = provider.encrypt_symmetric(key, iv, b"interaction")
            assert provider.decrypt_symmetric(key, iv, ciphertext) == b"interaction"

    @pytest.mark.parametrize("key_len", [0, 15, 31, 33])
    def test_invalid_key_length_is_decryption_error(self, any_provider, key_len: int):
        with pytest.raises(DecryptionError):
            any_provider.decrypt_symmetric(b"k" * key_len, b"\x00" * 16, b"data")

    @pytest.mark.parametrize("iv_len", [0, 8, 15, 17])
    def test_invalid_iv_length_is_decryption_error(self, any_provider, iv_len: int):
        with pytest.raises(DecryptionError):
            any_provider.decrypt_symmetric(b"k" * 32, b"\x00" * iv_len, b"data")


class TestAsymmetricInteroperability:
    """Keys generated by either backend work with both."""

    @settings(max_examples=10, deadline=None)
    @given(secret=st.binary(min_size=1, max_size=32))
    def test_cross_backend_key_unwrap(
        self, native_provider, portable_provider, native_key, portable_key, secret: bytes
    ):
        native_pem = native_provider.public_key_pem(native_key)
        portable_der = portable_provider.public_key_der(portable_key)

        wrapped_for_native = portable_provider.encrypt_asymmetric(native_pem, secret)
        wrapped_for_portable = native_provider.encrypt_asymmetric(portable_der, secret)

        assert native_provider.decrypt_asymmetric(native_key, wrapped_for_native) == secret
        assert portable_provider.decrypt_asymmetric(native_key, wrapped_for_native) == secret
        assert portable_provider.decrypt_asymmetric(portable_key, wrapped_for_portable) == secret
        assert native_provider.decrypt_asymmetric(portable_key, wrapped_for_portable) == secret

    def test_public_encodings_match(self, native_provider, portable_provider, native_key):
        assert native_provider.public_key_der(native_key) == portable_provider.public_key_der(native_key)
        assert native_provider.public_key_pem(native_key).startswith(b"-----BEGIN PUBLIC KEY-----")
        assert portable_provider.public_key_pem(native_key).endswith(b"\n")

    def test_wrong_private_key_fails(self, any_provider, native_key, portable_key):
        wrapped = any_provider.encrypt_asymmetric(
            any_provider.public_key_pem(native_key), os.urandom(32)
        )
        with pytest.raises(DecryptionError):
            any_provider.decrypt_asymmetric(portable_key, wrapped)

    def test_garbage_ciphertext_fails(self, any_provider, native_key):
        with pytest.raises(DecryptionError):
            any_provider.decrypt_asymmetric(native_key, b"\x01" * 128)

    def test_wiped_private_key_is_unusable(self, any_provider):
        key = any_provider.generate_private_key(1024)
        key.wipe()
        with pytest.raises(DecryptionError):
            any_provider.decrypt_asymmetric(key, b"\x00" * 128)


class TestKeyGeneration:
    """Key size validation is shared by both backends."""

    @settings(max_examples=200)
    @given(size=st.integers(min_value=-10_000, max_value=20_000))
    def test_supported_sizes(self, size: int):
        expected = 1024 <= size <= 8192 and size % 256 == 0
        assert is_supported_key_size(size) == expected

    @pytest.mark.parametrize("size", [0, 512, 1000, 2047, 8448, True])
    def test_unsupported_sizes_raise(self, any_provider, size):
        with pytest.raises(KeyGenerationError):
            any_provider.generate_private_key(size)

    def test_generated_key_has_requested_size(self, any_provider):
        from cryptography.hazmat.primitives import serialization

        key = any_provider.generate_private_key(1280)
        loaded = serialization.load_der_private_key(key.reveal(), password=None)
        assert loaded.key_size == 1280


class TestProviderRegistry:
    def test_get_provider_by_name(self):
        assert isinstance(get_provider("native"), NativeCryptoProvider)
        assert isinstance(get_provider(CryptoBackend.PORTABLE), PortableCryptoProvider)

    def test_unknown_backend(self):
        with pytest.raises(ValueError):
            get_provider("openssl-3")
