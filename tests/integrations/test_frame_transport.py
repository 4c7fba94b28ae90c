"""Tests for request framing and response validation in the transport."""

from __future__ import annotations

import io
import struct

import pytest

from sqinn.core.errors import ProtocolViolation, RemoteError, TransportError
from sqinn.integrations.transport import FrameTransport


def _response(ok: bool, body: bytes) -> bytes:
    payload = (b"\x01" if ok else b"\x00") + body
    return struct.pack(">i", len(payload)) + payload


def _error_body(message: str) -> bytes:
    data = message.encode("utf-8")
    return struct.pack(">i", len(data)) + data


class _TrickleReader(io.RawIOBase):
    """Returns at most one byte per read call."""

    def __init__(self, data: bytes) -> None:
        self._data = data
        self._pos = 0

    def readable(self) -> bool:
        return True

    def read(self, size: int = -1) -> bytes:
        chunk = self._data[self._pos : self._pos + 1]
        self._pos += len(chunk)
        return chunk



class _ShortWriter(io.RawIOBase):
    """Accepts at most two bytes per write call."""

    def __init__(self) -> None:
        self.received = bytearray()

    def writable(self) -> bool:
        return True

    def write(self, data) -> int:
        chunk = bytes(data[:2])
        self.received.extend(chunk)
        return len(chunk)

def test_request_is_length_prefixed() -> None:
    writer = io.BytesIO()
    transport = FrameTransport(writer=writer, reader=io.BytesIO(_response(True, b"")))

    transport.write_and_read(b"\x0d")

    assert writer.getvalue() == b"\x00\x00\x00\x01\x0d"


def test_success_returns_payload_after_flag() -> None:
    transport = FrameTransport(writer=io.BytesIO(), reader=io.BytesIO(_response(True, b"abc")))

    assert transport.write_and_read(b"\x01") == b"abc"


def test_failure_flag_raises_remote_error() -> None:
    reader = io.BytesIO(_response(False, _error_body("near \"SELEC\": syntax error")))
    transport = FrameTransport(writer=io.BytesIO(), reader=reader)

    with pytest.raises(RemoteError) as excinfo:
        transport.write_and_read(b"\x0b")

    assert excinfo.value.message == 'near "SELEC": syntax error'


@pytest.mark.parametrize("size", [0, -4])
def test_non_positive_size_is_rejected(size: int) -> None:
    transport = FrameTransport(writer=io.BytesIO(), reader=io.BytesIO(struct.pack(">i", size)))

    with pytest.raises(TransportError, match=f"invalid response size {size}"):
        transport.write_and_read(b"\x01")


def test_short_reads_are_retried_until_complete() -> None:
    reader = _TrickleReader(_response(True, b"hello world"))
    transport = FrameTransport(writer=io.BytesIO(), reader=reader)  # type: ignore[arg-type]

    assert transport.write_and_read(b"\x01") == b"hello world"


def test_eof_mid_frame_is_a_transport_error() -> None:
    truncated = _response(True, b"hello")[:-2]
    transport = FrameTransport(writer=io.BytesIO(), reader=io.BytesIO(truncated))

    with pytest.raises(TransportError, match="unexpected EOF"):
        transport.write_and_read(b"\x01")


def test_closed_writer_is_a_transport_error() -> None:
    writer = io.BytesIO()
    writer.close()
    transport = FrameTransport(writer=writer, reader=io.BytesIO())

    with pytest.raises(TransportError, match="while writing to sqinn") as excinfo:
        transport.write_and_read(b"\x01")

    assert isinstance(excinfo.value.__cause__, ValueError)


def test_truncated_error_message_is_a_protocol_violation() -> None:
    body = struct.pack(">i", 50) + b"short"
    transport = FrameTransport(writer=io.BytesIO(), reader=io.BytesIO(_response(False, body)))

    with pytest.raises(ProtocolViolation):
        transport.write_and_read(b"\x01")


def test_shutdown_frame_has_no_payload() -> None:
    writer = io.BytesIO()
    transport = FrameTransport(writer=writer, reader=io.BytesIO())

    transport.write_shutdown()

    assert writer.getvalue() == b"\x00\x00\x00\x00"


def test_exchange_holds_the_lock() -> None:
    observed: list[bool] = []

    class _LockProbe(io.BytesIO):
        def write(self, data: bytes) -> int:  # type: ignore[override]
            observed.append(transport.lock.locked())
            return super().write(data)

    transport = FrameTransport(writer=_LockProbe(), reader=io.BytesIO(_response(True, b"")))
    transport.write_and_read(b"\x0e")

    assert observed == [True]
    assert not transport.lock.locked()


def test_buffered_writer_completes_frames_over_short_writes() -> None:
    raw = _ShortWriter()
    transport = FrameTransport(writer=io.BufferedWriter(raw), reader=io.BytesIO(_response(True, b"")))

    transport.write_and_read(b"\x33" + b"x" * 9)

    assert bytes(raw.received) == struct.pack(">i", 10) + b"\x33" + b"x" * 9
