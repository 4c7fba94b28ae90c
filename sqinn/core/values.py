"""Typed scalar values used for parameter binding and column decoding."""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass
from enum import IntEnum
from typing import Any

from sqinn.core.errors import BindTypeError, ValidationError, ValueTypeError

INT32_MIN = -(2**31)
INT32_MAX = 2**31 - 1
INT64_MIN = -(2**63)
INT64_MAX = 2**63 - 1


class ValueType(IntEnum):
    """Wire tag of a value; also the column type a caller declares for a query."""

    NULL = 0
    INT = 1
    INT64 = 2
    DOUBLE = 3
    TEXT = 4
    BLOB = 5


VAL_NULL = ValueType.NULL
VAL_INT = ValueType.INT
VAL_INT64 = ValueType.INT64
VAL_DOUBLE = ValueType.DOUBLE
VAL_TEXT = ValueType.TEXT
VAL_BLOB = ValueType.BLOB

_TYPE_ALIASES: dict[str, ValueType] = {
    "null": ValueType.NULL,
    "int": ValueType.INT,
    "int32": ValueType.INT,
    "integer": ValueType.INT,
    "int64": ValueType.INT64,
    "bigint": ValueType.INT64,
    "double": ValueType.DOUBLE,
    "real": ValueType.DOUBLE,
    "float": ValueType.DOUBLE,
    "text": ValueType.TEXT,
    "string": ValueType.TEXT,
    "blob": ValueType.BLOB,
    "bytes": ValueType.BLOB,
}


@dataclass(frozen=True, slots=True)
class AnyValue:
    """A single SQL value holding exactly one shape.

    ``ValueType.NULL`` doubles as the "not set" state: a column whose presence
    flag was false, or a ``NULL`` bind parameter.
    """

    type: ValueType = ValueType.NULL
    value: Any = None

    def __post_init__(self) -> None:
        try:
            value_type = ValueType(self.type)
        except ValueError:
            raise ValueTypeError(f"invalid value type {self.type!r}") from None
        object.__setattr__(self, "type", value_type)
        _check_shape(value_type, self.value)

    @classmethod
    def null(cls) -> AnyValue:
        return cls()

    @classmethod
    def of_int(cls, value: int) -> AnyValue:
        return cls(ValueType.INT, value)

    @classmethod
    def of_int64(cls, value: int) -> AnyValue:
        return cls(ValueType.INT64, value)

    @classmethod
    def of_double(cls, value: float) -> AnyValue:
        return cls(ValueType.DOUBLE, float(value))

    @classmethod
    def of_text(cls, value: str) -> AnyValue:
        return cls(ValueType.TEXT, value)

    @classmethod
    def of_blob(cls, value: bytes | bytearray | memoryview) -> AnyValue:
        return cls(ValueType.BLOB, bytes(value))

    @classmethod
    def infer(cls, native: Any) -> AnyValue:
        """Return the bind value for *native*, choosing the tag from its Python type.

        Integers that fit in 32 bits bind as ``INT``, wider ones as ``INT64``.
        Pass an :class:`AnyValue` to pick the tag explicitly.
        """

        if isinstance(native, AnyValue):
            return native
        if native is None:
            return cls.null()
        if isinstance(native, bool):
            return cls.of_int(int(native))
        if isinstance(native, int):
            if INT32_MIN <= native <= INT32_MAX:
                return cls.of_int(native)
            if INT64_MIN <= native <= INT64_MAX:
                return cls.of_int64(native)
            raise BindTypeError(f"cannot bind type int: {native} exceeds 64 bits")
        if isinstance(native, float):
            return cls.of_double(native)
        if isinstance(native, str):
            return cls.of_text(native)
        if isinstance(native, (bytes, bytearray, memoryview)):
            return cls.of_blob(native)
        raise BindTypeError(f"cannot bind type {type(native).__name__}")

    @property
    def is_null(self) -> bool:
        return self.type is ValueType.NULL

    @property
    def is_set(self) -> bool:
        return not self.is_null

    @property
    def as_int(self) -> int:
        return self._expect(ValueType.INT)

    @property
    def as_int64(self) -> int:
        return self._expect(ValueType.INT64)

    @property
    def as_double(self) -> float:
        return self._expect(ValueType.DOUBLE)

    @property
    def as_text(self) -> str:
        return self._expect(ValueType.TEXT)

    @property
    def as_blob(self) -> bytes:
        return self._expect(ValueType.BLOB)

    def _expect(self, expected: ValueType) -> Any:
        if self.type is not expected:
            raise ValueTypeError(f"value holds {self.type.name}, not {expected.name}")
        return self.value


def _check_shape(value_type: ValueType, value: Any) -> None:
    if value_type is ValueType.NULL:
        ok = value is None
    elif value_type is ValueType.INT:
        ok = isinstance(value, int) and not isinstance(value, bool) and INT32_MIN <= value <= INT32_MAX
    elif value_type is ValueType.INT64:
        ok = isinstance(value, int) and not isinstance(value, bool) and INT64_MIN <= value <= INT64_MAX
    elif value_type is ValueType.DOUBLE:
        ok = isinstance(value, float)
    elif value_type is ValueType.TEXT:
        ok = isinstance(value, str)
    elif value_type is ValueType.BLOB:
        ok = isinstance(value, bytes)
    else:  # pragma: no cover - ValueType is closed
        ok = False
    if not ok:
        raise ValueTypeError(f"{value!r} is not a valid {value_type.name} value")


@dataclass(frozen=True, slots=True)
class Row:
    """One query result row; values follow the declared column order."""

    values: tuple[AnyValue, ...] = ()

    def __len__(self) -> int:
        return len(self.values)

    def __iter__(self) -> Iterator[AnyValue]:
        return iter(self.values)

    def __getitem__(self, index: int) -> AnyValue:
        return self.values[index]

    def natives(self) -> tuple[Any, ...]:
        """Return the plain Python values, ``None`` for SQL NULL."""

        return tuple(value.value for value in self.values)


def coerce_value_type(raw: ValueType | int | str) -> ValueType:
    """Normalize a column type given as enum member, tag byte or name."""

    if isinstance(raw, str):
        try:
            return _TYPE_ALIASES[raw.strip().lower()]
        except KeyError:
            raise ValidationError(f"unknown column type {raw!r}") from None
    try:
        return ValueType(raw)
    except ValueError:
        raise ValidationError(f"invalid col type {raw}") from None


def parse_column_types(declared: str | Iterable[ValueType | int | str]) -> list[ValueType]:
    """Turn ``"int,text"`` or an iterable of types into a list of :class:`ValueType`."""

    if isinstance(declared, str):
        parts: Sequence[ValueType | int | str] = [part for part in declared.split(",") if part.strip()]
    else:
        parts = list(declared)
    return [coerce_value_type(part) for part in parts]
