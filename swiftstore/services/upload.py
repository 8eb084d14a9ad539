"""Upload engine for Swift containers.

Objects smaller than the chunk size are written with a single PUT. Objects at
or above it, and sources whose size cannot be determined, are written as a
static large object: numbered segments in the segment container, then a
manifest under the object name that references them in order.

The engine is a small state machine::

    SIZING -> WRITING_SINGLE ----------------> DONE
           -> WRITING_SEGMENTED -> COMMITTING -> DONE
    (any non-final state) -> ABORTED

An aborted segmented upload deletes the segments it already wrote. The one
exception is a manifest commit that timed out: the manifest may have been
stored, so its segments are left in place.
"""

from __future__ import annotations

import logging
import threading
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Any

from swiftstore.domain.objstore import try_to_get_size
from swiftstore.infra.observability.metrics import SEGMENTS_WRITTEN, UPLOADS
from swiftstore.infra.storage.client import (
    DeadlineExceededError,
    ObjectIntegrityError,
    ObjectNotFoundError,
    OperationCanceledError,
    SegmentInfo,
    SourceReadError,
    StorageError,
    SwiftConnection,
)
from swiftstore.infra.storage.streams import (
    SegmentReader,
    SourceReader,
    normalize_etag,
)

logger = logging.getLogger(__name__)

SEGMENT_PREFIX = "segments/"


class UploadState(str, Enum):
    SIZING = "sizing"
    WRITING_SINGLE = "writing_single"
    WRITING_SEGMENTED = "writing_segmented"
    COMMITTING = "committing"
    DONE = "done"
    ABORTED = "aborted"


class UploadPath(str, Enum):
    SINGLE = "single"
    SEGMENTED = "segmented"


_TRANSITIONS: dict[UploadState, frozenset[UploadState]] = {
    UploadState.SIZING: frozenset(
        {UploadState.WRITING_SINGLE, UploadState.WRITING_SEGMENTED, UploadState.ABORTED}
    ),
    UploadState.WRITING_SINGLE: frozenset({UploadState.DONE, UploadState.ABORTED}),
    UploadState.WRITING_SEGMENTED: frozenset(
        {UploadState.COMMITTING, UploadState.ABORTED}
    ),
    UploadState.COMMITTING: frozenset({UploadState.DONE, UploadState.ABORTED}),
    UploadState.DONE: frozenset(),
    UploadState.ABORTED: frozenset(),
}


def segment_object_name(object_name: str, upload_id: str, sequence: int) -> str:
    """Name of segment ``sequence`` (1-based) of one upload of ``object_name``."""
    return f"{SEGMENT_PREFIX}{object_name}/{upload_id}/{sequence:08d}"


def choose_upload_path(size: int | None, chunk_size: int) -> UploadPath:
    if size is None or size >= chunk_size:
        return UploadPath.SEGMENTED
    return UploadPath.SINGLE


@dataclass(frozen=True, slots=True)
class UploadResult:
    """Outcome of a completed upload."""

    object_name: str
    path: UploadPath
    size_bytes: int
    etag: str
    segments: tuple[SegmentInfo, ...] = ()


class UploadEngine:
    """Writes one object, choosing between a single PUT and a large object."""

    def __init__(
        self,
        connection: SwiftConnection,
        *,
        container: str,
        segments_container: str,
        chunk_size: int,
        object_name: str,
        source: Any,
        cancel: threading.Event | None = None,
        upload_id: str | None = None,
    ) -> None:
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        self._connection = connection
        self._container = container
        self._segments_container = segments_container
        self._chunk_size = chunk_size
        self._object_name = object_name
        self._source = source
        self._cancel = cancel
        self._reader: SourceReader | None = None
        self.upload_id = upload_id or uuid.uuid4().hex
        self.path: UploadPath | None = None
        self.state = UploadState.SIZING
        self.transitions: list[UploadState] = [UploadState.SIZING]
        self.segments: list[SegmentInfo] = []

    def _transition(self, new_state: UploadState) -> None:
        if new_state not in _TRANSITIONS[self.state]:
            raise RuntimeError(
                f"illegal upload transition {self.state.value} -> {new_state.value}"
            )
        self.state = new_state
        self.transitions.append(new_state)

    def _check_canceled(self) -> None:
        if self._cancel is not None and self._cancel.is_set():
            raise OperationCanceledError(
                f"swift upload {self._object_name}: operation canceled"
            )

    def run(self) -> UploadResult:
        try:
            self._check_canceled()
            size = try_to_get_size(self._source)
            if size is None:
                logger.warning(
                    "upload_size_unknown object=%s chunk_size=%s path=segmented",
                    self._object_name,
                    self._chunk_size,
                    extra={
                        "extra": {
                            "object": self._object_name,
                            "chunk_size": self._chunk_size,
                        }
                    },
                )
            self.path = choose_upload_path(size, self._chunk_size)
            logger.debug(
                "upload_path_selected object=%s path=%s size=%s",
                self._object_name,
                self.path.value,
                size,
            )

            if self.path is UploadPath.SINGLE:
                self._transition(UploadState.WRITING_SINGLE)
                result = self._write_single(size or 0)
            else:
                self._transition(UploadState.WRITING_SEGMENTED)
                self._write_segments()
                self._transition(UploadState.COMMITTING)
                self._check_canceled()
                result = self._commit()
            self._transition(UploadState.DONE)
        except Exception as exc:
            self._abort(exc)
            raise self._wrap_error(exc) from exc

        UPLOADS.labels(path=result.path.value).inc()
        return result

    def _write_single(self, size: int) -> UploadResult:
        self._reader = SourceReader(self._source, cancel=self._cancel)
        etag = self._connection.put_object(
            container=self._container,
            object_name=self._object_name,
            contents=self._reader,
            content_length=size,
        )
        digest = self._reader.hexdigest()
        self._verify_etag(etag, digest, self._object_name)
        return UploadResult(
            object_name=self._object_name,
            path=UploadPath.SINGLE,
            size_bytes=self._reader.bytes_read,
            etag=normalize_etag(etag) or digest,
        )

    def _write_segments(self) -> None:
        self._reader = SourceReader(self._source, cancel=self._cancel)
        sequence = 0
        while True:
            self._check_canceled()
            segment_reader = SegmentReader(
                self._reader, self._chunk_size, cancel=self._cancel
            )
            if not segment_reader.prime():
                break
            sequence += 1
            segment_name = segment_object_name(
                self._object_name, self.upload_id, sequence
            )
            etag = self._connection.put_object(
                container=self._segments_container,
                object_name=segment_name,
                contents=segment_reader,
            )
            digest = segment_reader.hexdigest()
            self.segments.append(
                SegmentInfo(
                    container=self._segments_container,
                    object_name=segment_name,
                    etag=normalize_etag(etag) or digest,
                    size_bytes=segment_reader.bytes_read,
                )
            )
            self._verify_etag(etag, digest, segment_name)
            SEGMENTS_WRITTEN.inc()
            if self._reader.eof:
                break

    def _commit(self) -> UploadResult:
        if not self.segments:
            # An empty source still yields an (empty) object under the name.
            etag = self._connection.put_object(
                container=self._container,
                object_name=self._object_name,
                contents=b"",
                content_length=0,
            )
            return UploadResult(
                object_name=self._object_name,
                path=UploadPath.SEGMENTED,
                size_bytes=0,
                etag=normalize_etag(etag) or "",
            )

        etag = self._connection.put_manifest(
            container=self._container,
            object_name=self._object_name,
            segments=tuple(self.segments),
        )
        return UploadResult(
            object_name=self._object_name,
            path=UploadPath.SEGMENTED,
            size_bytes=sum(segment.size_bytes for segment in self.segments),
            etag=normalize_etag(etag) or "",
            segments=tuple(self.segments),
        )

    @staticmethod
    def _verify_etag(etag: str | None, digest: str, object_name: str) -> None:
        returned = normalize_etag(etag)
        if returned and returned != digest:
            raise ObjectIntegrityError(
                f"checksum mismatch writing {object_name}: sent {digest}, stored {returned}"
            )

    def _abort(self, exc: Exception) -> None:
        committing = self.state is UploadState.COMMITTING
        if self.state not in (UploadState.DONE, UploadState.ABORTED):
            self._transition(UploadState.ABORTED)
        if committing and isinstance(exc, DeadlineExceededError):
            logger.warning(
                "upload_commit_outcome_unknown object=%s segments=%s",
                self._object_name,
                len(self.segments),
                extra={
                    "extra": {
                        "object": self._object_name,
                        "upload_id": self.upload_id,
                        "segments": len(self.segments),
                    }
                },
            )
            return
        self._cleanup_segments()

    def _cleanup_segments(self) -> None:
        for segment in self.segments:
            try:
                self._connection.delete_object(
                    container=segment.container, object_name=segment.object_name
                )
            except ObjectNotFoundError:
                continue
            except StorageError as cleanup_exc:
                logger.warning(
                    "upload_segment_cleanup_failed object=%s segment=%s error=%s",
                    self._object_name,
                    segment.object_name,
                    cleanup_exc,
                    extra={
                        "extra": {
                            "object": self._object_name,
                            "segment": segment.object_name,
                            "error": str(cleanup_exc),
                        }
                    },
                )

    def _wrap_error(self, exc: Exception) -> Exception:
        path = self.path.value if self.path is not None else "sizing"
        action = f"swift upload {self._object_name} ({path} path)"
        if self._reader is not None and self._reader.read_error is not None:
            if isinstance(exc, SourceReadError):
                return SourceReadError(f"{action}: {exc}")
            return SourceReadError(f"{action}: read upload source: {self._reader.read_error}")
        if isinstance(exc, StorageError):
            return type(exc)(f"{action}: {exc}")
        return StorageError(f"{action}: {exc}")
