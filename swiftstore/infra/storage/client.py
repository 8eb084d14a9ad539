"""Swift connection protocol, data types and error taxonomy.

This module defines the capability set the container service needs from an
authenticated Swift session. It is implemented against the real service by
``SwiftConnectionClient`` and in memory by the test suite.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, BinaryIO, Iterable, Mapping, Protocol, Sequence

if TYPE_CHECKING:
    from swiftstore.infra.storage.streams import ObjectReader


class StorageError(RuntimeError):
    """Raised when object storage operations fail."""


class InvalidArgumentError(StorageError, ValueError):
    """Raised for empty object names or malformed byte ranges."""


class ObjectNotFoundError(StorageError):
    """Raised when the requested object does not exist."""


class ContainerNotFoundError(ObjectNotFoundError):
    """Raised when the requested container does not exist."""


class AuthenticationError(StorageError):
    """Raised when the identity service rejects the credentials."""


class ContainerCreateError(StorageError):
    """Raised when a missing container cannot be created."""


class SourceReadError(StorageError):
    """Raised when reading the upload source fails."""


class ObjectIntegrityError(StorageError):
    """Raised when streamed content does not match its stored checksum."""


class OperationCanceledError(StorageError):
    """Raised when the caller cancels an in-flight operation."""


class DeadlineExceededError(StorageError):
    """Raised when a backend request times out."""


def is_not_found_error(exc: BaseException | None) -> bool:
    """Return True when ``exc`` (or an exception it wraps) means "not found"."""
    seen: set[int] = set()
    while exc is not None and id(exc) not in seen:
        if isinstance(exc, ObjectNotFoundError):
            return True
        seen.add(id(exc))
        exc = exc.__cause__ or exc.__context__
    return False


@dataclass(frozen=True, slots=True)
class ObjectHead:
    """Metadata from a HEAD object request."""

    size_bytes: int
    last_modified: datetime
    etag: str | None
    is_static_large_object: bool = False


@dataclass(frozen=True, slots=True)
class SegmentInfo:
    """A segment object referenced by a static large object manifest."""

    container: str
    object_name: str
    etag: str
    size_bytes: int

    @property
    def path(self) -> str:
        return f"/{self.container}/{self.object_name}"


class SwiftConnection(Protocol):
    """Protocol defining the authenticated Swift session used by containers.

    Implementations translate backend failures into the ``StorageError``
    hierarchy above; no client-library exception may escape.
    """

    def authenticate(self) -> None:
        """Negotiate a token with the identity service.

        Raises:
            AuthenticationError: If the credentials are rejected.
        """
        ...

    def container_exists(self, *, container: str) -> bool:
        """Return True when the container exists."""
        ...

    def create_container(self, *, container: str) -> None:
        """Create a container (idempotent on the backend).

        Raises:
            ContainerCreateError: If the backend refuses the creation.
        """
        ...

    def delete_container(self, *, container: str) -> None:
        """Delete an empty container."""
        ...

    def list_objects(
        self,
        *,
        container: str,
        prefix: str = "",
        delimiter: str | None = None,
        marker: str = "",
        limit: int | None = None,
    ) -> list[str]:
        """Return a single page of object names after ``marker``.

        With a delimiter, pseudo-directories are returned as names ending in
        the delimiter.
        """
        ...

    def open_object(
        self,
        *,
        container: str,
        object_name: str,
        headers: Mapping[str, str] | None = None,
        verify_checksum: bool = True,
        cancel: threading.Event | None = None,
    ) -> ObjectReader:
        """Open an object for streaming.

        Reading from the returned stream raises ``OperationCanceledError``
        once ``cancel`` is set.

        Raises:
            ObjectNotFoundError: If the object does not exist.
        """
        ...

    def head_object(self, *, container: str, object_name: str) -> ObjectHead:
        """Get object metadata without downloading the content.

        Raises:
            ObjectNotFoundError: If the object does not exist.
        """
        ...

    def put_object(
        self,
        *,
        container: str,
        object_name: str,
        contents: BinaryIO | bytes | Iterable[bytes],
        content_length: int | None = None,
    ) -> str:
        """Write an object, streaming ``contents``, and return its ETag."""
        ...

    def put_manifest(
        self,
        *,
        container: str,
        object_name: str,
        segments: Sequence[SegmentInfo],
    ) -> str:
        """Commit a static large object manifest referencing ``segments``."""
        ...

    def get_manifest(self, *, container: str, object_name: str) -> list[SegmentInfo]:
        """Return the segments referenced by a static large object manifest."""
        ...

    def delete_object(self, *, container: str, object_name: str) -> None:
        """Delete a single object (a manifest is deleted without its segments).

        Raises:
            ObjectNotFoundError: If the object does not exist.
        """
        ...
