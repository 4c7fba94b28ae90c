"""Exclusive handle on the single statement a sqinn child can hold prepared."""

from __future__ import annotations

from collections.abc import Iterator, Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from sqinn.core.errors import ValidationError
from sqinn.core.protocol import normalize_column_types
from sqinn.core.values import AnyValue, Row, ValueType

if TYPE_CHECKING:  # pragma: no cover - import cycle
    from sqinn.integrations.client import Sqinn


@dataclass(slots=True)
class Statement:
    """A prepared statement obtained from :meth:`Sqinn.statement`.

    Valid only inside its ``with`` block; the session finalizes the statement
    on exit and any later call raises :class:`ValidationError`.
    """

    client: Sqinn
    sql: str
    _active: bool = field(default=True, init=False)

    def bind(self, iparam: int, value: Any) -> None:
        self._check()
        self.client.bind(iparam, value)

    def bind_all(self, values: Sequence[Any]) -> None:
        """Bind *values* to parameters ``1..len(values)``."""

        for iparam, value in enumerate(values, start=1):
            self.bind(iparam, value)

    def step(self) -> bool:
        self._check()
        return self.client.step()

    def reset(self) -> None:
        self._check()
        self.client.reset()

    def changes(self) -> int:
        self._check()
        return self.client.changes()

    def column(self, icol: int, col_type: ValueType | int | str) -> AnyValue:
        self._check()
        return self.client.column(icol, col_type)

    def columns(self, col_types: Sequence[ValueType | int | str]) -> Row:
        """Read the current row as declared by *col_types*."""

        resolved = normalize_column_types(col_types)
        return Row(tuple(self.column(icol, col_type) for icol, col_type in enumerate(resolved)))

    def rows(self, col_types: Sequence[ValueType | int | str]) -> Iterator[Row]:
        """Step through the remaining rows, yielding each one."""

        resolved = normalize_column_types(col_types)
        while self.step():
            yield self.columns(resolved)

    def execute(self, values: Sequence[Any] = ()) -> int:
        """Bind *values*, step once, reset, and return the change count."""

        self.bind_all(values)
        self.step()
        count = self.changes()
        self.reset()
        return count

    def release(self) -> None:
        self._active = False

    def _check(self) -> None:
        if not self._active:
            raise ValidationError(f"statement '{self.sql}' has been finalized")
