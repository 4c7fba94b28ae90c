"""Request encoding and local validation of the client, without a child process."""

from __future__ import annotations

import struct
from dataclasses import dataclass, field

import pytest

from sqinn.core.errors import BindTypeError, RemoteError, SqinnPanic, ValidationError
from sqinn.core.values import VAL_INT, VAL_TEXT, AnyValue
from sqinn.integrations.client import Sqinn


@dataclass
class _RecordingTransport:
    responses: list[bytes] = field(default_factory=list)
    requests: list[bytes] = field(default_factory=list)
    failure: str | None = None

    def write_and_read(self, payload: bytes) -> bytes:
        self.requests.append(payload)
        if self.failure is not None:
            raise RemoteError(self.failure)
        return self.responses.pop(0) if self.responses else b""


def _client(*responses: bytes) -> tuple[Sqinn, _RecordingTransport]:
    transport = _RecordingTransport(responses=list(responses))
    return Sqinn(process=None, transport=transport), transport  # type: ignore[arg-type]


def _i32(value: int) -> bytes:
    return struct.pack(">i", value)


def _str(value: str) -> bytes:
    data = value.encode("utf-8")
    return _i32(len(data)) + data


def test_bind_rejects_parameter_index_below_one() -> None:
    client, transport = _client()

    with pytest.raises(ValidationError, match="iparam must be >= 1"):
        client.bind(0, 1)

    assert transport.requests == []


@pytest.mark.parametrize("iparam", [2**31, 2**40])
def test_bind_rejects_parameter_index_beyond_int32(iparam: int) -> None:
    client, transport = _client()

    with pytest.raises(ValidationError, match="iparam must be <= 2147483647"):
        client.bind(iparam, 1)

    assert transport.requests == []


def test_bind_rejects_unsupported_type_before_sending() -> None:
    client, transport = _client()

    with pytest.raises(BindTypeError, match="cannot bind type dict"):
        client.bind(1, {"a": 1})

    assert transport.requests == []


def test_bind_encodes_index_and_tagged_value() -> None:
    client, transport = _client()

    client.bind(2, "hi")

    assert transport.requests == [b"\x0c" + _i32(2) + b"\x04" + _str("hi")]


@pytest.mark.parametrize(
    ("niterations", "nparams", "values"),
    [(-1, 0, []), (2, 1, [1]), (1, 2, [1, 2, 3]), (0, 1, [1]), (2**31, 0, []), (0, 2**31, [])],
)
def test_exec_validates_locally(niterations: int, nparams: int, values: list[int]) -> None:
    client, transport = _client()

    with pytest.raises(ValidationError):
        client.exec("INSERT INTO t VALUES (?)", niterations, nparams, values)

    assert transport.requests == []


def test_exec_request_layout_and_changes() -> None:
    client, transport = _client(_i32(1) + _i32(0))

    changes = client.exec("UPDATE t SET a = ?", 2, 1, [5, None])

    assert changes == [1, 0]
    assert transport.requests == [
        b"\x33" + _str("UPDATE t SET a = ?") + _i32(2) + _i32(1) + b"\x01" + _i32(5) + b"\x00"
    ]


def test_exec_zero_iterations_returns_empty_list() -> None:
    client, _ = _client(b"")

    assert client.exec("DELETE FROM t", 0, 3, []) == []


def test_exec_one_returns_single_count() -> None:
    client, transport = _client(_i32(4))

    assert client.exec_one("DELETE FROM t") == 4
    assert transport.requests[0].endswith(_i32(1) + _i32(0))


def test_query_request_layout() -> None:
    client, transport = _client(_i32(0))

    assert client.query("SELECT a, b FROM t WHERE a = ?", [7], [VAL_INT, "text"]) == []
    assert transport.requests == [
        b"\x34"
        + _str("SELECT a, b FROM t WHERE a = ?")
        + _i32(1)
        + b"\x01"
        + _i32(7)
        + _i32(2)
        + bytes([1, 4])
    ]


def test_query_rejects_unknown_column_type() -> None:
    client, transport = _client()

    with pytest.raises(ValidationError, match="invalid col type 9"):
        client.query("SELECT 1", [], [9])

    assert transport.requests == []


def test_query_without_columns_counts_rows() -> None:
    client, _ = _client(_i32(3))

    rows = client.query("SELECT 1 FROM t", [], [])

    assert [len(row) for row in rows] == [0, 0, 0]


def test_query_absent_column_is_null_for_any_declared_type() -> None:
    response = _i32(2) + b"\x00" + b"\x01" + _str("x") + b"\x01" + _i32(3) + b"\x00"
    client, _ = _client(response)

    rows = client.query("SELECT a, b FROM t", [], [VAL_INT, VAL_TEXT])

    assert rows[0].values == (AnyValue.null(), AnyValue.of_text("x"))
    assert rows[1].values == (AnyValue.of_int(3), AnyValue.null())


def test_column_request_and_presence_flag() -> None:
    client, transport = _client(b"\x01" + _i32(42), b"\x00")

    assert client.column(0, VAL_INT) == AnyValue.of_int(42)
    assert client.column(1, VAL_TEXT).is_null
    assert transport.requests[0] == b"\x10" + _i32(0) + b"\x01"


def test_simple_opcodes() -> None:
    client, transport = _client(b"\x01", _i32(2), _str("1.2.3"), b"\x02")

    assert client.step() is True
    assert client.changes() == 2
    assert client.sqinn_version() == "1.2.3"
    assert client.io_version() == 2
    client.reset()
    client.finalize()
    client.close()

    assert [request[0] for request in transport.requests] == [13, 15, 1, 2, 14, 17, 18]


def test_must_wrappers_raise_panic() -> None:
    client, transport = _client()
    transport.failure = "disk I/O error"

    with pytest.raises(SqinnPanic, match="sqinn: disk I/O error"):
        client.must_exec_one("VACUUM")
    with pytest.raises(SqinnPanic):
        client.must_exec("INSERT INTO t VALUES (?)", 1, 1, [1])
    with pytest.raises(SqinnPanic):
        client.must_query("SELECT 1", [], [VAL_INT])


def test_must_wrappers_convert_local_errors_too() -> None:
    client, transport = _client()

    with pytest.raises(SqinnPanic) as excinfo:
        client.must_exec("INSERT INTO t VALUES (?)", 1, 1, [])

    assert isinstance(excinfo.value.__cause__, ValidationError)
    assert transport.requests == []


def test_column_rejects_index_beyond_int32() -> None:
    client, transport = _client()

    with pytest.raises(ValidationError, match="icol must be <= 2147483647"):
        client.column(2**31, VAL_INT)

    assert transport.requests == []


def test_query_passes_invalid_utf8_text_through() -> None:
    response = _i32(1) + b"\x01" + _i32(2) + b"\xffa"
    client, _ = _client(response, response)

    rows = client.query("SELECT CAST(x'ff61' AS TEXT)", [], [VAL_TEXT])
    panicking = client.must_query("SELECT CAST(x'ff61' AS TEXT)", [], [VAL_TEXT])

    assert rows[0][0].as_text == "\udcffa"
    assert rows[0][0].as_text.encode("utf-8", errors="surrogateescape") == b"\xffa"
    assert panicking == rows


def test_must_exec_converts_out_of_range_counts() -> None:
    client, transport = _client()

    with pytest.raises(SqinnPanic, match="niterations must be <= 2147483647"):
        client.must_exec("DELETE FROM t", 2**31, 0, [])

    assert transport.requests == []


def test_bind_bool_is_sent_as_int() -> None:
    client, transport = _client()

    client.bind(1, True)
    client.bind(2, False)

    assert transport.requests == [
        b"\x0c" + _i32(1) + b"\x01" + _i32(1),
        b"\x0c" + _i32(2) + b"\x01" + _i32(0),
    ]
