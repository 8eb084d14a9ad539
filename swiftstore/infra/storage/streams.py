"""Streaming helpers shared by the Swift connection implementations.

``ObjectReader`` wraps a download body and validates the object's MD5 while it
is consumed. ``SourceReader`` and ``SegmentReader`` wrap an upload source so
it can be streamed to the backend in bounded chunks without buffering whole
segments in memory.

All three accept an optional ``threading.Event``; once it is set the next
read raises ``OperationCanceledError``, which aborts the request streaming
through them.
"""

from __future__ import annotations

import hashlib
import io
import threading
from typing import Any

from swiftstore.infra.storage.client import (
    ObjectIntegrityError,
    OperationCanceledError,
    SourceReadError,
)

READ_BLOCK_SIZE = 64 * 1024


def _new_md5() -> Any:
    return hashlib.md5(usedforsecurity=False)


def _raise_if_canceled(cancel: threading.Event | None, action: str) -> None:
    if cancel is not None and cancel.is_set():
        raise OperationCanceledError(f"{action}: operation canceled")


def normalize_etag(etag: str | None) -> str | None:
    if not etag:
        return None
    return etag.strip().strip('"').lower() or None


class ObjectReader(io.RawIOBase):
    """Readable binary stream over an object body.

    When ``expected_md5`` is given the digest of the streamed bytes is compared
    with it once the body is exhausted; a mismatch is raised from ``read()``.
    """

    def __init__(
        self,
        body: Any,
        *,
        expected_md5: str | None = None,
        object_name: str = "",
        cancel: threading.Event | None = None,
    ) -> None:
        super().__init__()
        self._body = body
        self._expected = normalize_etag(expected_md5)
        self._md5 = _new_md5() if self._expected else None
        self._object_name = object_name
        self._cancel = cancel
        self._finished = False

    @property
    def verifies_checksum(self) -> bool:
        return self._expected is not None

    def readable(self) -> bool:
        return True

    def readinto(self, buffer: Any) -> int:
        if self._finished:
            return 0
        _raise_if_canceled(self._cancel, f"swift read object {self._object_name}")
        data = self._body.read(len(buffer))
        if not data:
            self._finished = True
            self._verify()
            return 0
        size = len(data)
        buffer[:size] = data
        if self._md5 is not None:
            self._md5.update(data)
        return size

    def _verify(self) -> None:
        if self._md5 is None:
            return
        actual = self._md5.hexdigest()
        if actual != self._expected:
            raise ObjectIntegrityError(
                f"checksum mismatch reading {self._object_name}: "
                f"expected {self._expected}, got {actual}"
            )

    def close(self) -> None:
        if self.closed:
            return
        try:
            close = getattr(self._body, "close", None)
            if close is not None:
                close()
        finally:
            super().close()


class SourceReader:
    """Wraps a caller-supplied upload source.

    Tracks the bytes consumed and their MD5, remembers whether the source hit
    end of stream and converts source failures into ``SourceReadError``.
    """

    def __init__(self, source: Any, *, cancel: threading.Event | None = None) -> None:
        self._source = source
        self._cancel = cancel
        self._md5 = _new_md5()
        self.bytes_read = 0
        self.eof = False
        self.read_error: BaseException | None = None

    def read(self, size: int = -1) -> bytes:
        if self.eof:
            return b""
        _raise_if_canceled(self._cancel, "read upload source")
        try:
            data = self._source.read(size)
        except Exception as exc:
            self.read_error = exc
            raise SourceReadError(f"read upload source: {exc}") from exc
        if data is None:
            # An empty chunk here would be taken for end of stream.
            self.read_error = BlockingIOError("upload source returned no data")
            raise SourceReadError("non-blocking upload sources are not supported")
        if isinstance(data, str):
            self.read_error = TypeError("upload source must be opened in binary mode")
            raise SourceReadError(str(self.read_error))
        if not data:
            if size != 0:
                self.eof = True
            return b""
        data = bytes(data)
        self._md5.update(data)
        self.bytes_read += len(data)
        return data

    def hexdigest(self) -> str:
        return self._md5.hexdigest()


class SegmentReader:
    """Exposes at most ``limit`` bytes of a ``SourceReader`` as one stream."""

    def __init__(
        self,
        source: SourceReader,
        limit: int,
        *,
        cancel: threading.Event | None = None,
    ) -> None:
        self._source = source
        self._limit = limit
        self._cancel = cancel
        self._pending = b""
        self._md5 = _new_md5()
        self.bytes_read = 0

    def prime(self) -> bool:
        """Pull the first block from the source; return False at end of stream."""
        if not self._pending and self.bytes_read == 0:
            self._pending = self._source.read(min(READ_BLOCK_SIZE, self._limit))
        return bool(self._pending)

    def read(self, size: int = -1) -> bytes:
        remaining = self._limit - self.bytes_read
        if remaining <= 0:
            return b""
        _raise_if_canceled(self._cancel, "write upload segment")
        if size is None or size < 0 or size > remaining:
            size = remaining
        if self._pending:
            data = self._pending[:size]
            self._pending = self._pending[size:]
        else:
            data = self._source.read(size)
        self._md5.update(data)
        self.bytes_read += len(data)
        return data

    def hexdigest(self) -> str:
        return self._md5.hexdigest()
