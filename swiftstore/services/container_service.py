"""Swift container service.

This module exposes one Swift container through the uniform object store
contract: streaming reads (whole object or byte range), attributes and
existence checks, directory-style iteration over the flat namespace, uploads
and deletion of plain and static large objects.
"""

from __future__ import annotations

import io
import logging
import threading
from typing import Any, BinaryIO, Callable

from swiftstore.common.config import DEFAULT_CHUNK_SIZE, ConfigError, SwiftSettings
from swiftstore.domain.objstore import DIR_DELIM, ObjectAttributes
from swiftstore.infra.observability.metrics import track_operation
from swiftstore.infra.storage.client import (
    ContainerNotFoundError,
    InvalidArgumentError,
    ObjectNotFoundError,
    StorageError,
    SwiftConnection,
    is_not_found_error,
)
from swiftstore.infra.storage.streams import ObjectReader
from swiftstore.infra.storage.swift_client import SwiftConnectionClient
from swiftstore.services.base import BaseService
from swiftstore.services.upload import UploadEngine, UploadResult

# Swift's default container_listing_limit.
LIST_PAGE_SIZE = 10000

startup_logger = logging.getLogger("swiftstore.startup")


def byte_range_header(offset: int, length: int) -> str:
    """Build the HTTP ``Range`` value for ``length`` bytes from ``offset``.

    A length of -1 selects everything from ``offset`` to the end.
    """
    if offset < 0:
        raise InvalidArgumentError(f"range offset must not be negative, got {offset}")
    if length == 0 or length < -1:
        raise InvalidArgumentError(f"range length must be positive or -1, got {length}")
    if length == -1:
        return f"bytes={offset}-"
    return f"bytes={offset}-{offset + length - 1}"


def normalize_prefix(prefix: str) -> str:
    if not prefix:
        return ""
    if prefix.endswith(DIR_DELIM):
        prefix = prefix[: -len(DIR_DELIM)]
    return prefix + DIR_DELIM


def ensure_container(
    connection: SwiftConnection, name: str, create_if_absent: bool
) -> bool:
    """Make sure container ``name`` exists; return True when it was created.

    Raises:
        ContainerNotFoundError: If it is missing and creation is not allowed.
        ContainerCreateError: If the backend refuses to create it.
    """
    if connection.container_exists(container=name):
        return False
    if not create_if_absent:
        raise ContainerNotFoundError(f"unable to find the expected container {name}")
    connection.create_container(container=name)
    startup_logger.info(
        "container_created container=%s",
        name,
        extra={"extra": {"container": name}},
    )
    return True


class SwiftContainer(BaseService):
    """Object store backed by one Swift container.

    Segments of large objects go to ``segments_container``, which defaults to
    the container itself. The handle keeps no mutable state, so operations may
    be issued concurrently from several threads.
    """

    def __init__(
        self,
        connection: SwiftConnection,
        *,
        name: str,
        segments_container: str | None = None,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        list_page_size: int = LIST_PAGE_SIZE,
    ) -> None:
        super().__init__(connection)
        if not name:
            raise ConfigError("container name is required")
        if chunk_size <= 0:
            raise ConfigError("chunk size must be positive")
        if list_page_size <= 0:
            raise ConfigError("list page size must be positive")
        self._name = name
        self._segments_container = segments_container or name
        self._chunk_size = chunk_size
        self._list_page_size = list_page_size

    @classmethod
    def from_settings(
        cls,
        settings: SwiftSettings,
        *,
        create_container: bool = False,
        connection: SwiftConnection | None = None,
    ) -> "SwiftContainer":
        """Authenticate, resolve both containers and return a ready handle.

        Args:
            settings: Validated Swift settings.
            create_container: Create missing containers instead of failing.
            connection: Pre-built connection; a ``SwiftConnectionClient`` is
                created from ``settings`` when omitted.

        Raises:
            ConfigError: If the container name is missing.
            AuthenticationError: If authentication fails.
            ContainerNotFoundError: If a container is missing and
                ``create_container`` is False.
            ContainerCreateError: If a container cannot be created.
        """
        if not settings.container_name:
            raise ConfigError("container_name is required")
        if connection is None:
            connection = SwiftConnectionClient(settings=settings)
        connection.authenticate()

        ensure_container(connection, settings.container_name, create_container)
        segments_container = settings.segments_container_name
        if segments_container != settings.container_name:
            ensure_container(connection, segments_container, create_container)

        startup_logger.info(
            "container_ready container=%s segments_container=%s chunk_size=%s",
            settings.container_name,
            segments_container,
            settings.large_object_chunk_size,
        )
        return cls(
            connection,
            name=settings.container_name,
            segments_container=segments_container,
            chunk_size=settings.large_object_chunk_size,
        )

    @property
    def name(self) -> str:
        return self._name

    @property
    def segments_container(self) -> str:
        return self._segments_container

    @property
    def chunk_size(self) -> int:
        return self._chunk_size

    def iterate(
        self,
        prefix: str,
        visit: Callable[[str], Any],
        *,
        cancel: threading.Event | None = None,
    ) -> None:
        """Call ``visit`` for each entry directly under ``prefix``.

        Entries are full object names; pseudo-directories are reported once,
        with a trailing ``/``, and are not descended into. Entries arrive in
        backend order. Pages are fetched until the listing is exhausted.
        """
        with track_operation("iterate"):
            prefix = normalize_prefix(prefix)
            marker = ""
            while True:
                self._check_canceled(cancel, f"swift iterate {self._name}/{prefix}")
                page = self._connection.list_objects(
                    container=self._name,
                    prefix=prefix,
                    delimiter=DIR_DELIM,
                    marker=marker,
                    limit=self._list_page_size,
                )
                if not page:
                    return
                for entry in page:
                    try:
                        visit(entry)
                    except Exception as exc:
                        raise StorageError(
                            f"swift iteration over objects {self._name}/{prefix}: {exc}"
                        ) from exc
                marker = page[-1]

    def get(self, name: str, *, cancel: threading.Event | None = None) -> ObjectReader:
        """Open the whole object; its MD5 is verified as the stream is read.

        Once ``cancel`` is set, further reads raise ``OperationCanceledError``.
        """
        with track_operation("get"):
            name = self._ensure_name(name)
            self._check_canceled(cancel, f"swift get {self._name}/{name}")
            return self._connection.open_object(
                container=self._name,
                object_name=name,
                verify_checksum=True,
                cancel=cancel,
            )

    def get_range(
        self,
        name: str,
        offset: int,
        length: int,
        *,
        cancel: threading.Event | None = None,
    ) -> ObjectReader:
        """Open ``length`` bytes starting at ``offset`` (-1 reads to the end)."""
        with track_operation("get_range"):
            name = self._ensure_name(name)
            range_header = byte_range_header(offset, length)
            self._check_canceled(cancel, f"swift get range {self._name}/{name}")
            return self._connection.open_object(
                container=self._name,
                object_name=name,
                headers={"Range": range_header},
                verify_checksum=False,
                cancel=cancel,
            )

    def attributes(
        self, name: str, *, cancel: threading.Event | None = None
    ) -> ObjectAttributes:
        with track_operation("attributes"):
            name = self._ensure_name(name)
            self._check_canceled(cancel, f"swift attributes {self._name}/{name}")
            head = self._connection.head_object(container=self._name, object_name=name)
            return ObjectAttributes(
                size_bytes=head.size_bytes, last_modified=head.last_modified
            )

    def exists(self, name: str, *, cancel: threading.Event | None = None) -> bool:
        with track_operation("exists"):
            name = self._ensure_name(name)
            self._check_canceled(cancel, f"swift exists {self._name}/{name}")
            try:
                self._connection.head_object(container=self._name, object_name=name)
            except ObjectNotFoundError:
                return False
            return True

    def is_not_found_error(self, exc: BaseException | None) -> bool:
        return is_not_found_error(exc)

    def upload(
        self,
        name: str,
        source: BinaryIO | bytes | bytearray | memoryview,
        *,
        cancel: threading.Event | None = None,
    ) -> UploadResult:
        """Write ``source`` under ``name``, overwriting any previous object.

        Sources of unknown size, or at least ``chunk_size`` bytes, are written
        as a static large object. See ``swiftstore.services.upload``.
        """
        with track_operation("upload"):
            name = self._ensure_name(name)
            if isinstance(source, (bytes, bytearray, memoryview)):
                source = io.BytesIO(bytes(source))
            engine = UploadEngine(
                self._connection,
                container=self._name,
                segments_container=self._segments_container,
                chunk_size=self._chunk_size,
                object_name=name,
                source=source,
                cancel=cancel,
            )
            return engine.run()

    def delete(self, name: str, *, cancel: threading.Event | None = None) -> None:
        """Delete an object; a static large object takes its segments with it.

        The manifest is removed first, so readers never see a manifest whose
        segments are gone.
        """
        with track_operation("delete"):
            name = self._ensure_name(name)
            self._check_canceled(cancel, f"swift delete {self._name}/{name}")
            head = self._connection.head_object(container=self._name, object_name=name)
            if not head.is_static_large_object:
                self._connection.delete_object(container=self._name, object_name=name)
                return

            segments = self._connection.get_manifest(
                container=self._name, object_name=name
            )
            self._connection.delete_object(container=self._name, object_name=name)

            failures: list[StorageError] = []
            for segment in segments:
                try:
                    self._connection.delete_object(
                        container=segment.container, object_name=segment.object_name
                    )
                except ObjectNotFoundError:
                    continue
                except StorageError as exc:
                    failures.append(exc)
            if failures:
                raise StorageError(
                    f"swift delete object {self._name}/{name}: "
                    f"{len(failures)} of {len(segments)} segments not deleted: {failures[0]}"
                ) from failures[0]

    def close(self) -> None:
        """Nothing to close; the connection holds no per-handle resources."""


def new_container(
    config: str | bytes, *, create_container: bool = False
) -> SwiftContainer:
    """Build a ``SwiftContainer`` from a YAML configuration document."""
    return SwiftContainer.from_settings(
        SwiftSettings.from_yaml(config), create_container=create_container
    )
