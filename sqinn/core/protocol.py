"""Request builders and response decoders for the sqinn opcodes.

A request payload is one opcode byte followed by the opcode's arguments. A
response payload (after the transport has stripped the length prefix and the
success flag) is decoded by the matching ``decode_*`` helper below.

Builders perform all local validation, so a request that fails here never
reaches the child process.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from enum import IntEnum
from typing import Any

from sqinn.core import codec
from sqinn.core.errors import ValidationError
from sqinn.core.values import AnyValue, Row, ValueType, coerce_value_type


class Opcode(IntEnum):
    """Function codes understood by the sqinn child."""

    SQINN_VERSION = 1
    IO_VERSION = 2
    SQLITE_VERSION = 3
    OPEN = 10
    PREPARE = 11
    BIND = 12
    STEP = 13
    RESET = 14
    CHANGES = 15
    COLUMN = 16
    FINALIZE = 17
    CLOSE = 18
    EXEC = 51
    QUERY = 52


# A zero-length request asks the child to exit. It carries no opcode and the
# child sends no response frame.
SHUTDOWN_FRAME = codec.encode_int32(0)


def frame(payload: bytes) -> bytes:
    """Prefix *payload* with its int32 length."""

    return codec.encode_int32(len(payload)) + payload


def encode_value(value: Any) -> bytes:
    """Encode a bind value as tag byte plus payload, inferring the tag."""

    bound = AnyValue.infer(value)
    tag = codec.encode_byte(bound.type)
    if bound.type is ValueType.NULL:
        return tag
    if bound.type is ValueType.INT:
        return tag + codec.encode_int32(bound.value)
    if bound.type is ValueType.INT64:
        return tag + codec.encode_int64(bound.value)
    if bound.type is ValueType.DOUBLE:
        return tag + codec.encode_double(bound.value)
    if bound.type is ValueType.TEXT:
        return tag + codec.encode_string(bound.value)
    return tag + codec.encode_blob(bound.value)


def encode_values(values: Iterable[Any]) -> bytes:
    return b"".join(encode_value(value) for value in values)


def decode_typed(buf: bytes, col_type: ValueType) -> tuple[AnyValue, bytes]:
    """Decode one value of the declared *col_type* (no presence flag)."""

    if col_type is ValueType.NULL:
        return AnyValue.null(), buf
    if col_type is ValueType.INT:
        number, rest = codec.decode_int32(buf)
        return AnyValue.of_int(number), rest
    if col_type is ValueType.INT64:
        number, rest = codec.decode_int64(buf)
        return AnyValue.of_int64(number), rest
    if col_type is ValueType.DOUBLE:
        real, rest = codec.decode_double(buf)
        return AnyValue.of_double(real), rest
    if col_type is ValueType.TEXT:
        text, rest = codec.decode_string(buf)
        return AnyValue.of_text(text), rest
    blob, rest = codec.decode_blob(buf)
    return AnyValue.of_blob(blob), rest


def decode_column(buf: bytes, col_type: ValueType) -> tuple[AnyValue, bytes]:
    """Decode a presence flag and, when set, one value of *col_type*.

    A cleared flag is SQL NULL whatever the declared type.
    """

    present, rest = codec.decode_bool(buf)
    if not present:
        return AnyValue.null(), rest
    return decode_typed(rest, col_type)


def normalize_column_types(col_types: Iterable[ValueType | int | str]) -> list[ValueType]:
    return [coerce_value_type(col_type) for col_type in col_types]


def build_simple(opcode: Opcode) -> bytes:
    return codec.encode_byte(opcode)


def build_open(filename: str) -> bytes:
    return codec.encode_byte(Opcode.OPEN) + codec.encode_string(filename)


def build_prepare(sql: str) -> bytes:
    return codec.encode_byte(Opcode.PREPARE) + codec.encode_string(sql)


def build_bind(iparam: int, value: Any) -> bytes:
    if iparam < 1:
        raise ValidationError(f"Bind: iparam must be >= 1 but was {iparam}")
    if iparam > codec.INT32_MAX:
        raise ValidationError(f"Bind: iparam must be <= {codec.INT32_MAX} but was {iparam}")
    return codec.encode_byte(Opcode.BIND) + codec.encode_int32(iparam) + encode_value(value)


def build_column(icol: int, col_type: ValueType | int | str) -> tuple[bytes, ValueType]:
    if icol < 0:
        raise ValidationError(f"Column: icol must be >= 0 but was {icol}")
    if icol > codec.INT32_MAX:
        raise ValidationError(f"Column: icol must be <= {codec.INT32_MAX} but was {icol}")
    resolved = coerce_value_type(col_type)
    payload = codec.encode_byte(Opcode.COLUMN) + codec.encode_int32(icol) + codec.encode_byte(resolved)
    return payload, resolved


def build_exec(sql: str, niterations: int, nparams: int, values: Sequence[Any]) -> bytes:
    if niterations < 0:
        raise ValidationError(f"Exec '{sql}' niterations must be >= 0 but was {niterations}")
    if nparams < 0:
        raise ValidationError(f"Exec '{sql}' nparams must be >= 0 but was {nparams}")
    for name, count in (("niterations", niterations), ("nparams", nparams)):
        if count > codec.INT32_MAX:
            raise ValidationError(f"Exec '{sql}' {name} must be <= {codec.INT32_MAX} but was {count}")
    expected = niterations * nparams
    if len(values) != expected:
        raise ValidationError(f"Exec '{sql}' expected {expected} values but have {len(values)}")
    return b"".join(
        (
            codec.encode_byte(Opcode.EXEC),
            codec.encode_string(sql),
            codec.encode_int32(niterations),
            codec.encode_int32(nparams),
            encode_values(values),
        )
    )


def build_query(sql: str, values: Sequence[Any], col_types: Sequence[ValueType]) -> bytes:
    return b"".join(
        (
            codec.encode_byte(Opcode.QUERY),
            codec.encode_string(sql),
            codec.encode_int32(len(values)),
            encode_values(values),
            codec.encode_int32(len(col_types)),
            bytes(int(col_type) for col_type in col_types),
        )
    )


def decode_exec(buf: bytes, niterations: int) -> list[int]:
    changes: list[int] = []
    for _ in range(niterations):
        count, buf = codec.decode_int32(buf)
        changes.append(count)
    return changes


def decode_rows(buf: bytes, col_types: Sequence[ValueType]) -> list[Row]:
    nrows, buf = codec.decode_int32(buf)
    rows: list[Row] = []
    for _ in range(nrows):
        values: list[AnyValue] = []
        for col_type in col_types:
            value, buf = decode_column(buf, col_type)
            values.append(value)
        rows.append(Row(tuple(values)))
    return rows
