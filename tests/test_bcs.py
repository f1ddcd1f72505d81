"""
Tests for BCS primitives
"""

import pytest

from x402_facilitator.aptos.bcs import BcsError, Deserializer, Serializer


class TestIntegers:
    """Fixed-width little-endian integers"""

    def test_u64_is_little_endian(self):
        assert Serializer().u64(1).output() == b"\x01" + b"\x00" * 7
        assert Deserializer(b"\x00\x01" + b"\x00" * 6).u64() == 256

    def test_u256_max(self):
        value = 2**256 - 1
        data = Serializer().u256(value).output()
        assert data == b"\xff" * 32
        assert Deserializer(data).u256() == value

    def test_out_of_range_value_rejected(self):
        with pytest.raises(BcsError):
            Serializer().u8(256)
        with pytest.raises(BcsError):
            Serializer().u64(-1)

    def test_reading_past_end(self):
        with pytest.raises(BcsError, match="Unexpected end of input"):
            Deserializer(b"\x01\x02").u32()


class TestUleb128:
    """ULEB128 lengths and enum tags"""

    @pytest.mark.parametrize("value,encoded", [
        (0, b"\x00"),
        (127, b"\x7f"),
        (128, b"\x80\x01"),
        (16384, b"\x80\x80\x01"),
    ])
    def test_known_encodings(self, value, encoded):
        assert Serializer().uleb128(value).output() == encoded
        assert Deserializer(encoded).uleb128() == value

    def test_non_canonical_encoding_rejected(self):
        with pytest.raises(BcsError, match="Non-canonical"):
            Deserializer(b"\x80\x00").uleb128()

    def test_overflow_rejected(self):
        with pytest.raises(BcsError, match="overflows"):
            Deserializer(b"\xff\xff\xff\xff\x7f").uleb128()


class TestCompositeValues:
    """Booleans, byte vectors, strings and sequences"""

    def test_invalid_bool(self):
        with pytest.raises(BcsError, match="Invalid bool"):
            Deserializer(b"\x02").bool()

    def test_bytes_and_str(self):
        data = Serializer().bytes(b"\xde\xad").str("transfer").output()
        d = Deserializer(data)
        assert d.bytes() == b"\xde\xad"
        assert d.str() == "transfer"
        assert d.remaining() == 0

    def test_invalid_utf8(self):
        with pytest.raises(BcsError, match="UTF-8"):
            Deserializer(b"\x01\xff").str()

    def test_sequence(self):
        data = Serializer().uleb128(3).u8(1).u8(2).u8(3).output()
        assert Deserializer(data).sequence(lambda d: d.u8()) == [1, 2, 3]

    def test_address_length_enforced(self):
        with pytest.raises(BcsError):
            Serializer().address(b"\x01" * 31)

    def test_span_returns_consumed_bytes(self):
        d = Deserializer(b"\x01\x02\x03\x04")
        d.u8()
        start = d.offset
        d.u16()
        assert d.span(start) == b"\x02\x03"
