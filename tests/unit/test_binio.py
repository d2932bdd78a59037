import io

import pytest

from trackmap.binio import FORMAT_REVISION, BinaryReader, BinaryWriter
from trackmap.errors import BadMagicError, TrackMapIOError, TruncatedError


class TestBinaryWriter:
    def test_little_endian_fixed_widths(self):
        buf = io.BytesIO()
        writer = BinaryWriter(buf)
        writer.write_u8(7)
        writer.write_u64(1)
        writer.write_f64(1.0)
        assert buf.getvalue() == (
            b"\x07"
            + b"\x01\x00\x00\x00\x00\x00\x00\x00"
            + b"\x00\x00\x00\x00\x00\x00\xf0\x3f"
        )

    def test_string_is_length_prefixed_utf8(self):
        buf = io.BytesIO()
        BinaryWriter(buf).write_str("Straße")
        data = buf.getvalue()
        assert data[:8] == (7).to_bytes(8, "little")
        assert data[8:].decode("utf-8") == "Straße"

    def test_header(self):
        buf = io.BytesIO()
        BinaryWriter(buf).write_header(b"MAGIC\0")
        assert buf.getvalue() == b"MAGIC\0" + bytes([FORMAT_REVISION])


class TestBinaryReader:
    def test_reads_back(self):
        buf = io.BytesIO()
        writer = BinaryWriter(buf)
        writer.write_header(b"MAGIC\0")
        writer.write_u8(255)
        writer.write_u64(2**64 - 1)
        writer.write_f64(-0.1)
        writer.write_str("")
        buf.seek(0)

        reader = BinaryReader(buf)
        reader.read_header(b"MAGIC\0")
        assert reader.read_u8() == 255
        assert reader.read_u64() == 2**64 - 1
        assert reader.read_f64() == -0.1
        assert reader.read_str() == ""

    def test_wrong_magic(self):
        reader = BinaryReader(io.BytesIO(b"OTHER\0\x01"))
        with pytest.raises(BadMagicError):
            reader.read_header(b"MAGIC\0")

    def test_wrong_revision(self):
        reader = BinaryReader(io.BytesIO(b"MAGIC\0\x09"))
        with pytest.raises(BadMagicError, match="revision"):
            reader.read_header(b"MAGIC\0")

    def test_missing_revision(self):
        reader = BinaryReader(io.BytesIO(b"MAGIC\0"))
        with pytest.raises(TruncatedError):
            reader.read_header(b"MAGIC\0")

    def test_short_read(self):
        reader = BinaryReader(io.BytesIO(b"\x01\x02\x03"))
        with pytest.raises(TruncatedError):
            reader.read_u64()

    def test_string_longer_than_data(self):
        buf = io.BytesIO((100).to_bytes(8, "little") + b"abc")
        with pytest.raises(TruncatedError):
            BinaryReader(buf).read_str()

    def test_invalid_utf8_string(self):
        buf = io.BytesIO((3).to_bytes(8, "little") + b"\xff\xfe\xfd")
        with pytest.raises(TrackMapIOError, match="offset 8"):
            BinaryReader(buf).read_str()
