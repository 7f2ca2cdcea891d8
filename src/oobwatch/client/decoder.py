"""
Poll Payload Decoder

Turns a poll envelope into interaction records: unwraps the AES key with the
client's private key, then decrypts every data entry independently.
"""

import base64
import binascii
import json
from typing import Any, Optional

from ..core.exceptions import DecryptionError
from ..core.logging import get_logger
from ..crypto import VALID_AES_KEY_SIZES
from .keys import KeyMaterial
from .models import InteractionLog, LogEntry, PollResult, RawLog
from .protocol import IV_LENGTH, PollEnvelope

logger = get_logger(__name__)


def _b64decode(value: str, what: str, index: Optional[int] = None) -> bytes:
    try:
        return base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError) as e:
        raise DecryptionError(f"Invalid base64 in {what}: {e}", index=index) from e


def _require_text(entry: Any, index: int) -> None:
    if not isinstance(entry, str):
        raise DecryptionError(
            f"Data entry is not a string (got {type(entry).__name__})", index=index
        )


class PayloadDecoder:
    """
    Hybrid decryption of poll payloads for one client.

    The decoder never mutates the key material, so a single instance can decode
    any number of poll batches.
    """

    def __init__(self, key_material: KeyMaterial, parse_logs: bool = True) -> None:
        """
        Initialize the decoder.

        Args:
            key_material: Keys of the client the payloads are addressed to
            parse_logs: Parse entries into InteractionLog records instead of
                returning the raw JSON text
        """
        self.key_material = key_material
        self.parse_logs = parse_logs

    def decode(self, envelope: PollEnvelope) -> PollResult:
        """
        Decode every entry in ``envelope``.

        A failure to recover the AES key yields a single batch-level error and no
        logs; a failure in one data entry is recorded for that entry only.

        Args:
            envelope: Parsed poll response body

        Returns:
            PollResult with decoded logs and per-entry errors
        """
        result = PollResult()
        encrypted = envelope.encrypted_entries

        if encrypted:
            self._decode_encrypted(envelope.aes_key, encrypted, result)

        # extra / tld entries are sent in the clear
        for offset, document in enumerate(envelope.plaintext_entries):
            index = len(encrypted) + offset
            try:
                result.logs.append(self._to_log_entry(document, index))
            except DecryptionError as e:
                result.errors.append(e)

        for error in result.errors:
            logger.warning(f"Dropped poll entry: {error}")

        return result

    def _decode_encrypted(
        self, aes_key: Optional[str], entries: list, result: PollResult
    ) -> None:
        if not aes_key:
            result.errors.append(
                DecryptionError("Poll response carries data but no AES key")
            )
            return

        try:
            wrapped_key = _b64decode(aes_key, "AES key")
            symmetric_key = self.key_material.unwrap_key(wrapped_key)
        except DecryptionError as e:
            result.errors.append(DecryptionError(f"Failed to recover AES key: {e.message}"))
            return

        with symmetric_key:
            if len(symmetric_key) not in VALID_AES_KEY_SIZES:
                result.errors.append(
                    DecryptionError(
                        f"Recovered AES key has invalid length {len(symmetric_key)}"
                    )
                )
                return

            key = symmetric_key.reveal()
            for index, entry in enumerate(entries):
                try:
                    plaintext = self._decrypt_entry(key, entry, index)
                    result.logs.append(self._to_log_entry(plaintext, index))
                except DecryptionError as e:
                    result.errors.append(e)

    def _decrypt_entry(self, key: bytes, entry: Any, index: int) -> str:
        _require_text(entry, index)
        blob = _b64decode(entry, "data entry", index)
        if len(blob) < IV_LENGTH:
            raise DecryptionError(
                f"Data entry too short: {len(blob)} bytes, need at least {IV_LENGTH}",
                index=index,
            )

        iv, ciphertext = blob[:IV_LENGTH], blob[IV_LENGTH:]
        try:
            plaintext = self.key_material.provider.decrypt_symmetric(key, iv, ciphertext)
        except DecryptionError as e:
            raise DecryptionError(e.message, index=index) from e

        try:
            return plaintext.decode("utf-8")
        except UnicodeDecodeError as e:
            raise DecryptionError(
                "Decrypted data entry is not valid UTF-8", index=index
            ) from e

    def _to_log_entry(self, document: Any, index: int) -> LogEntry:
        _require_text(document, index)
        # Oversized integers raise a plain ValueError, deep nesting a RecursionError
        try:
            parsed = json.loads(document)
        except json.JSONDecodeError as e:
            raise DecryptionError(
                f"Data entry is not a JSON document: {e.msg}", index=index
            ) from e
        except (ValueError, RecursionError) as e:
            raise DecryptionError(
                f"Data entry is not a usable JSON document: {type(e).__name__}", index=index
            ) from e
        if not isinstance(parsed, dict):
            raise DecryptionError("Data entry is not a JSON object", index=index)

        if self.parse_logs:
            return InteractionLog.try_parse(document)
        return RawLog(log_entry=document)
