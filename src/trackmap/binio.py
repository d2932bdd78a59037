"""Little-endian fixed-width binary reader and writer.

Both binary formats use u8 flags, u64 counts/ids/offsets, f64 reals and
UTF-8 strings prefixed with their u64 byte length.
"""

import struct
from typing import BinaryIO

from trackmap.errors import BadMagicError, TrackMapIOError, TruncatedError

FORMAT_REVISION = 1

_U8 = struct.Struct("<B")
_U64 = struct.Struct("<Q")
_F64 = struct.Struct("<d")


class BinaryWriter:
    def __init__(self, stream: BinaryIO):
        self.stream = stream

    def tell(self) -> int:
        return self.stream.tell()

    def seek(self, offset: int) -> None:
        self.stream.seek(offset)

    def write_bytes(self, data: bytes) -> None:
        self.stream.write(data)

    def write_u8(self, value: int) -> None:
        self.stream.write(_U8.pack(value))

    def write_u64(self, value: int) -> None:
        self.stream.write(_U64.pack(value))

    def write_f64(self, value: float) -> None:
        self.stream.write(_F64.pack(value))

    def write_str(self, value: str) -> None:
        data = value.encode("utf-8")
        self.write_u64(len(data))
        self.stream.write(data)

    def write_header(self, magic: bytes) -> None:
        self.stream.write(magic)
        self.write_u8(FORMAT_REVISION)


class BinaryReader:
    def __init__(self, stream: BinaryIO):
        self.stream = stream

    def tell(self) -> int:
        return self.stream.tell()

    def seek(self, offset: int) -> None:
        self.stream.seek(offset)

    def read_bytes(self, size: int) -> bytes:
        data = self.stream.read(size)
        if len(data) != size:
            raise TruncatedError(f"Expected {size} bytes at offset {self.tell() - len(data)}, got {len(data)}")
        return data

    def read_u8(self) -> int:
        return _U8.unpack(self.read_bytes(_U8.size))[0]

    def read_u64(self) -> int:
        return _U64.unpack(self.read_bytes(_U64.size))[0]

    def read_f64(self) -> float:
        return _F64.unpack(self.read_bytes(_F64.size))[0]

    def read_str(self) -> str:
        size = self.read_u64()
        offset = self.tell()
        try:
            return self.read_bytes(size).decode("utf-8")
        except UnicodeDecodeError as e:
            raise TrackMapIOError(f"Invalid UTF-8 string at offset {offset}: {e}") from e

    def read_header(self, magic: bytes) -> None:
        """Check the magic and format revision at the current position.

        Raises:
            BadMagicError: On a wrong signature or unknown revision.
        """
        found = self.stream.read(len(magic))
        if found != magic:
            raise BadMagicError(f"Bad signature {found!r}, expected {magic!r}")
        revision = self.stream.read(1)
        if len(revision) != 1:
            raise TruncatedError("Missing format revision")
        if revision[0] != FORMAT_REVISION:
            raise BadMagicError(f"Unsupported format revision {revision[0]}")
