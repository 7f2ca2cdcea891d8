"""
Scoped container for sensitive byte strings.

Private keys, correlation secrets and decrypted AES keys are held in
``SensitiveBytes`` so that every owner can release them deterministically,
either explicitly with ``wipe()``, by leaving a ``with`` block, or when the
object is finalised.
"""

from typing import Optional, Union


class SensitiveBytes:
    """
    Mutable buffer that zeroes itself when released.

    The buffer is a ``bytearray`` so it can be overwritten in place. Reading the
    value hands out an immutable copy; callers should keep such copies as
    short-lived as possible.
    """

    __slots__ = ("_buffer", "_wiped")

    def __init__(self, value: Union[bytes, bytearray, memoryview, str]) -> None:
        if isinstance(value, str):
            value = value.encode("utf-8")
        self._buffer: Optional[bytearray] = bytearray(value)
        self._wiped = False

    @classmethod
    def adopt(cls, buffer: bytearray) -> "SensitiveBytes":
        """Take ownership of ``buffer`` and zero the caller's copy."""
        instance = cls(buffer)
        buffer[:] = b"\x00" * len(buffer)
        return instance

    @property
    def wiped(self) -> bool:
        return self._wiped

    def reveal(self) -> bytes:
        """
        Return the protected value.

        Raises:
            ValueError: If the buffer has already been wiped
        """
        if self._buffer is None:
            raise ValueError("Sensitive value has been wiped")
        return bytes(self._buffer)

    def reveal_str(self) -> str:
        """Return the protected value decoded as UTF-8."""
        return self.reveal().decode("utf-8")

    def wipe(self) -> None:
        """Overwrite the buffer with zeros and drop it. Safe to call repeatedly."""
        if self._buffer is not None:
            for i in range(len(self._buffer)):
                self._buffer[i] = 0
            self._buffer = None
        self._wiped = True

    def __len__(self) -> int:
        return 0 if self._buffer is None else len(self._buffer)

    def __enter__(self) -> "SensitiveBytes":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.wipe()

    def __del__(self) -> None:
        # __init__ may have failed before the slot was set
        if hasattr(self, "_buffer"):
            self.wipe()

    def __repr__(self) -> str:
        state = "wiped" if self._wiped else f"{len(self)} bytes"
        return f"SensitiveBytes(<redacted, {state}>)"

    __str__ = __repr__

    def __eq__(self, other: object) -> bool:
        return NotImplemented

    __hash__ = None  # type: ignore[assignment]

    def __reduce__(self):
        raise TypeError("SensitiveBytes cannot be pickled")
