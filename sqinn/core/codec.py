"""Primitive encoders and decoders for the sqinn wire format.

All fixed-width numbers travel in network byte order (big-endian). Strings and
blobs are an int32 length followed by exactly that many bytes; strings carry no
terminator.

Every decoder returns ``(value, remaining)`` so callers can chain decodes
positionally without re-slicing offsets by hand. Decoders assume a well-formed
buffer: running out of bytes means the peer or the transport is broken, so they
raise :class:`~sqinn.core.errors.ProtocolViolation` instead of guessing.
"""

from __future__ import annotations

import struct

from sqinn.core.errors import ProtocolViolation, ValidationError

_INT32 = struct.Struct(">i")
_INT64 = struct.Struct(">q")
_DOUBLE = struct.Struct(">d")

INT32_MAX = 2**31 - 1

INT32_SIZE = _INT32.size
INT64_SIZE = _INT64.size
DOUBLE_SIZE = _DOUBLE.size


def _take(buf: bytes, size: int, what: str) -> tuple[bytes, bytes]:
    if size < 0 or len(buf) < size:
        raise ProtocolViolation(f"buffer underrun decoding {what}: need {size} bytes, have {len(buf)}")
    return buf[:size], buf[size:]


def encode_int32(value: int) -> bytes:
    return _INT32.pack(value)


def decode_int32(buf: bytes) -> tuple[int, bytes]:
    raw, rest = _take(buf, INT32_SIZE, "int32")
    return _INT32.unpack(raw)[0], rest


def encode_int64(value: int) -> bytes:
    return _INT64.pack(value)


def decode_int64(buf: bytes) -> tuple[int, bytes]:
    raw, rest = _take(buf, INT64_SIZE, "int64")
    return _INT64.unpack(raw)[0], rest


def encode_double(value: float) -> bytes:
    return _DOUBLE.pack(value)


def decode_double(buf: bytes) -> tuple[float, bytes]:
    raw, rest = _take(buf, DOUBLE_SIZE, "double")
    return _DOUBLE.unpack(raw)[0], rest


def encode_bool(value: bool) -> bytes:
    return b"\x01" if value else b"\x00"


def decode_bool(buf: bytes) -> tuple[bool, bytes]:
    raw, rest = _take(buf, 1, "bool")
    return raw[0] != 0, rest


def encode_byte(value: int) -> bytes:
    return bytes((value,))


def decode_byte(buf: bytes) -> tuple[int, bytes]:
    raw, rest = _take(buf, 1, "byte")
    return raw[0], rest


def encode_string(value: str) -> bytes:
    try:
        data = value.encode("utf-8", errors="surrogateescape")
    except UnicodeEncodeError as exc:
        raise ValidationError(f"cannot encode string: {exc}") from exc
    return encode_int32(len(data)) + data


def decode_string(buf: bytes) -> tuple[str, bytes]:
    size, rest = decode_int32(buf)
    raw, rest = _take(rest, size, "string")
    # Invalid UTF-8 from TEXT columns survives as lone surrogates and re-encodes to the same bytes.
    return raw.decode("utf-8", errors="surrogateescape"), rest


def encode_blob(value: bytes | bytearray | memoryview) -> bytes:
    data = bytes(value)
    return encode_int32(len(data)) + data


def decode_blob(buf: bytes) -> tuple[bytes, bytes]:
    size, rest = decode_int32(buf)
    return _take(rest, size, "blob")
