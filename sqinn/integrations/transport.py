"""Length-prefixed request/response exchange with the sqinn child.

The pipe carries no request ids, so exactly one exchange may be in flight. Every
exchange holds the transport lock from the first byte written to the last byte
read; concurrent callers queue on that lock.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import BinaryIO

from sqinn.core import codec
from sqinn.core.errors import RemoteError, TransportError
from sqinn.core.protocol import SHUTDOWN_FRAME, frame

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class FrameTransport:
    """Frames requests onto *writer* and reads framed responses from *reader*."""

    writer: BinaryIO
    reader: BinaryIO
    lock: threading.Lock = field(default_factory=threading.Lock)
    trace: bool = False

    def write_and_read(self, payload: bytes) -> bytes:
        """Send one request payload and return the response payload.

        The returned bytes follow the success flag. A cleared flag raises
        :class:`RemoteError` carrying the child's message.
        """

        with self.lock:
            self._write(frame(payload))
            header = self._read_exact(codec.INT32_SIZE)
            size, _ = codec.decode_int32(header)
            if self.trace:
                LOGGER.debug("sqinn request %d bytes, response %d bytes", len(payload), size)
            if size <= 0:
                raise TransportError(f"invalid response size {size}")
            body = self._read_exact(size)

        ok, rest = codec.decode_bool(body)
        if not ok:
            message, _ = codec.decode_string(rest)
            raise RemoteError(message)
        return rest

    def write_shutdown(self) -> None:
        """Send the zero-length frame; the caller must hold :attr:`lock`."""

        self._write(SHUTDOWN_FRAME)

    def _write(self, data: bytes) -> None:
        try:
            self.writer.write(data)
            self.writer.flush()
        except (OSError, ValueError) as exc:
            raise TransportError(f"while writing to sqinn: {exc}") from exc

    def _read_exact(self, size: int) -> bytes:
        chunks: list[bytes] = []
        remaining = size
        while remaining > 0:
            try:
                chunk = self.reader.read(remaining)
            except (OSError, ValueError) as exc:
                raise TransportError(f"while reading from sqinn: {exc}") from exc
            if not chunk:
                got = size - remaining
                raise TransportError(f"while reading from sqinn: unexpected EOF after {got} of {size} bytes")
            chunks.append(chunk)
            remaining -= len(chunk)
        return b"".join(chunks)
