"""
Binary Canonical Serialization (BCS) primitives used by Aptos
Little-endian fixed-width integers, ULEB128 lengths and enum tags
"""

from __future__ import annotations

from typing import Callable, List, TypeVar

T = TypeVar("T")

MAX_U32 = 2**32 - 1
ADDRESS_LENGTH = 32


class BcsError(ValueError):
    """Raised when bytes are not valid canonical BCS"""


class Deserializer:
    """Reads BCS values from a byte buffer, front to back"""

    def __init__(self, data: bytes):
        self._data = bytes(data)
        self._offset = 0

    @property
    def offset(self) -> int:
        return self._offset

    def remaining(self) -> int:
        return len(self._data) - self._offset

    def span(self, start: int) -> bytes:
        """Bytes consumed between start and the current offset"""
        return self._data[start:self._offset]

    def _read(self, length: int) -> bytes:
        if length < 0 or self._offset + length > len(self._data):
            raise BcsError(
                f"Unexpected end of input: need {length} bytes at offset {self._offset}, "
                f"{self.remaining()} available"
            )
        chunk = self._data[self._offset:self._offset + length]
        self._offset += length
        return chunk

    def _uint(self, width: int) -> int:
        return int.from_bytes(self._read(width), "little")

    def u8(self) -> int:
        return self._uint(1)

    def u16(self) -> int:
        return self._uint(2)

    def u32(self) -> int:
        return self._uint(4)

    def u64(self) -> int:
        return self._uint(8)

    def u128(self) -> int:
        return self._uint(16)

    def u256(self) -> int:
        return self._uint(32)

    def bool(self) -> bool:
        value = self.u8()
        if value not in (0, 1):
            raise BcsError(f"Invalid bool byte: {value}")
        return value == 1

    def uleb128(self) -> int:
        value = 0
        shift = 0
        while True:
            if shift > 28:
                raise BcsError("ULEB128 value overflows u32")
            byte = self.u8()
            value |= (byte & 0x7F) << shift
            if byte & 0x80 == 0:
                # Canonical encoding has no trailing zero groups
                if byte == 0 and shift > 0:
                    raise BcsError("Non-canonical ULEB128 encoding")
                break
            shift += 7
        if value > MAX_U32:
            raise BcsError("ULEB128 value overflows u32")
        return value

    def fixed_bytes(self, length: int) -> bytes:
        return self._read(length)

    def bytes(self) -> bytes:
        return self._read(self.uleb128())

    def str(self) -> str:
        raw = self.bytes()
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise BcsError(f"Invalid UTF-8 string: {e}") from e

    def address(self) -> bytes:
        return self._read(ADDRESS_LENGTH)

    def sequence(self, read_item: Callable[["Deserializer"], T]) -> List[T]:
        return [read_item(self) for _ in range(self.uleb128())]


class Serializer:
    """Builds BCS-encoded bytes"""

    def __init__(self):
        self._buffer = bytearray()

    def output(self) -> bytes:
        return bytes(self._buffer)

    def _uint(self, value: int, width: int) -> "Serializer":
        if value < 0 or value >= 1 << (8 * width):
            raise BcsError(f"Value {value} does not fit in {width * 8} bits")
        self._buffer += value.to_bytes(width, "little")
        return self

    def u8(self, value: int) -> "Serializer":
        return self._uint(value, 1)

    def u16(self, value: int) -> "Serializer":
        return self._uint(value, 2)

    def u32(self, value: int) -> "Serializer":
        return self._uint(value, 4)

    def u64(self, value: int) -> "Serializer":
        return self._uint(value, 8)

    def u128(self, value: int) -> "Serializer":
        return self._uint(value, 16)

    def u256(self, value: int) -> "Serializer":
        return self._uint(value, 32)

    def bool(self, value: bool) -> "Serializer":
        return self.u8(1 if value else 0)

    def uleb128(self, value: int) -> "Serializer":
        if value < 0 or value > MAX_U32:
            raise BcsError(f"ULEB128 value out of range: {value}")
        while value >= 0x80:
            self._buffer.append((value & 0x7F) | 0x80)
            value >>= 7
        self._buffer.append(value)
        return self

    def fixed_bytes(self, value: bytes) -> "Serializer":
        self._buffer += value
        return self

    def bytes(self, value: bytes) -> "Serializer":
        self.uleb128(len(value))
        self._buffer += value
        return self

    def str(self, value: str) -> "Serializer":
        return self.bytes(value.encode("utf-8"))

    def address(self, value: bytes) -> "Serializer":
        if len(value) != ADDRESS_LENGTH:
            raise BcsError(f"Address must be {ADDRESS_LENGTH} bytes, got {len(value)}")
        self._buffer += value
        return self
