"""Backend-agnostic object store contract.

Storage-tier code depends on ``Bucket`` only; ``SwiftContainer`` is one
implementation of it.
"""

from __future__ import annotations

import io
import os
import stat
import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Any, BinaryIO, Callable, Protocol

DIR_DELIM = "/"


@dataclass(frozen=True, slots=True)
class ObjectAttributes:
    """Size and modification time of a stored object."""

    size_bytes: int
    last_modified: datetime


def try_to_get_size(source: Any) -> int | None:
    """Return the number of bytes left in ``source`` or None when unknown.

    The source is never consumed; seekable streams are restored to their
    current position.
    """
    if isinstance(source, (bytes, bytearray)):
        return len(source)
    if isinstance(source, memoryview):
        return source.nbytes
    if isinstance(source, io.BytesIO):
        return max(source.getbuffer().nbytes - source.tell(), 0)

    fileno = getattr(source, "fileno", None)
    if fileno is not None:
        try:
            info = os.fstat(fileno())
        except (OSError, ValueError, io.UnsupportedOperation):
            info = None
        if info is not None and stat.S_ISREG(info.st_mode):
            try:
                return max(info.st_size - source.tell(), 0)
            except (OSError, ValueError, io.UnsupportedOperation):
                return None

    seekable = getattr(source, "seekable", None)
    if seekable is not None:
        try:
            if seekable():
                position = source.tell()
                end = source.seek(0, io.SEEK_END)
                source.seek(position)
                return max(end - position, 0)
        except (OSError, ValueError, io.UnsupportedOperation):
            return None

    if hasattr(source, "__len__"):
        try:
            return len(source)
        except TypeError:
            return None
    return None


class Bucket(Protocol):
    """Uniform object store contract.

    Every operation accepts an optional ``cancel`` event; setting it makes
    the in-flight call raise instead of completing.
    """

    @property
    def name(self) -> str: ...

    def iterate(
        self,
        prefix: str,
        visit: Callable[[str], None],
        *,
        cancel: threading.Event | None = None,
    ) -> None: ...

    def get(self, name: str, *, cancel: threading.Event | None = None) -> BinaryIO: ...

    def get_range(
        self,
        name: str,
        offset: int,
        length: int,
        *,
        cancel: threading.Event | None = None,
    ) -> BinaryIO: ...

    def attributes(
        self, name: str, *, cancel: threading.Event | None = None
    ) -> ObjectAttributes: ...

    def exists(self, name: str, *, cancel: threading.Event | None = None) -> bool: ...

    def upload(
        self,
        name: str,
        source: BinaryIO | bytes,
        *,
        cancel: threading.Event | None = None,
    ) -> Any: ...

    def delete(self, name: str, *, cancel: threading.Event | None = None) -> None: ...

    def is_not_found_error(self, exc: BaseException) -> bool: ...

    def close(self) -> None: ...
