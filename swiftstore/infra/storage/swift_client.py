"""OpenStack Swift storage client implementation.

This module provides the authenticated Swift session used by
``SwiftContainer``. Every python-swiftclient, requests and urllib3 failure is
translated into the ``StorageError`` hierarchy before it leaves this module.

Dependencies:
    - python-swiftclient
    - requests
"""

from __future__ import annotations

import json
import threading
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import TYPE_CHECKING, Any, BinaryIO, Iterable, Mapping, Sequence
from urllib.parse import unquote

import requests
import urllib3.exceptions
from swiftclient import client as swift
from swiftclient.exceptions import ClientException

from swiftstore.infra.storage.client import (
    AuthenticationError,
    ContainerCreateError,
    ContainerNotFoundError,
    DeadlineExceededError,
    ObjectHead,
    ObjectNotFoundError,
    SegmentInfo,
    StorageError,
)
from swiftstore.infra.storage.streams import READ_BLOCK_SIZE, ObjectReader

if TYPE_CHECKING:
    from swiftstore.common.config import SwiftSettings

_EPOCH = datetime.fromtimestamp(0, tz=timezone.utc)

_TIMEOUT_ERRORS = (
    requests.exceptions.Timeout,
    urllib3.exceptions.TimeoutError,
    TimeoutError,
)


def _translate(
    exc: Exception, action: str, *, not_found: type[ObjectNotFoundError] = ObjectNotFoundError
) -> StorageError:
    if isinstance(exc, ClientException):
        if exc.http_status == 404:
            return not_found(f"{action}: not found")
        if isinstance(exc.__cause__, _TIMEOUT_ERRORS):
            return DeadlineExceededError(f"{action}: {exc}")
    if isinstance(exc, _TIMEOUT_ERRORS):
        return DeadlineExceededError(f"{action}: {exc}")
    return StorageError(f"{action}: {exc}")


def _auth_version(settings: "SwiftSettings") -> str:
    if settings.auth_version:
        return str(settings.auth_version)
    url = (settings.auth_url or "").rstrip("/").lower()
    if url.endswith("/v3") or "/v3/" in url:
        return "3"
    if url.endswith("/v2.0") or "/v2.0/" in url:
        return "2"
    return "1"


def _parse_last_modified(headers: Mapping[str, str]) -> datetime:
    value = headers.get("last-modified")
    if value:
        try:
            parsed = parsedate_to_datetime(value)
        except (TypeError, ValueError):
            parsed = None
        if parsed is not None:
            if parsed.tzinfo is None:
                parsed = parsed.replace(tzinfo=timezone.utc)
            return parsed
    timestamp = headers.get("x-timestamp")
    if timestamp:
        try:
            return datetime.fromtimestamp(float(timestamp), tz=timezone.utc)
        except ValueError:
            pass
    return _EPOCH


class _TranslatingBody:
    """Object body whose transport errors surface as ``StorageError``."""

    def __init__(self, body: Any, action: str) -> None:
        self._body = body
        self._action = action

    def read(self, size: int | None = None) -> bytes:
        try:
            return self._body.read(size)
        except Exception as exc:
            raise _translate(exc, self._action) from exc

    def close(self) -> None:
        close = getattr(self._body, "close", None)
        if close is not None:
            close()


class SwiftConnectionClient:
    """Authenticated OpenStack Swift session.

    Uses python-swiftclient for authentication, retries and transport. The
    retry count and the connect/read timeouts come from ``SwiftSettings``.

    A swiftclient ``Connection`` keeps per-request retry state on itself, so
    each thread gets its own one. Connections built after ``authenticate``
    reuse the negotiated storage URL and token.
    """

    def __init__(self, *, settings: "SwiftSettings") -> None:
        self._settings = settings
        self._local = threading.local()
        self._auth_lock = threading.Lock()
        self._storage_url: str | None = None
        self._token: str | None = None

    @property
    def _client(self) -> Any:
        client = getattr(self._local, "client", None)
        if client is None:
            with self._auth_lock:
                storage_url, token = self._storage_url, self._token
            client = self._build_client(
                self._settings, preauthurl=storage_url, preauthtoken=token
            )
            self._local.client = client
        return client

    @staticmethod
    def _build_client(
        settings: "SwiftSettings",
        *,
        preauthurl: str | None = None,
        preauthtoken: str | None = None,
    ) -> Any:
        """Create a swiftclient connection from settings."""
        os_options = {
            "user_id": settings.user_id,
            "user_domain_id": settings.user_domain_id,
            "user_domain_name": settings.user_domain_name,
            "domain_id": settings.domain_id,
            "domain_name": settings.domain_name,
            "project_id": settings.project_id,
            "project_name": settings.project_name,
            "tenant_id": settings.project_id,
            "tenant_name": settings.project_name,
            "project_domain_id": settings.project_domain_id,
            "project_domain_name": settings.project_domain_name,
            "region_name": settings.region_name,
        }
        connect_timeout = settings.connect_timeout_seconds
        read_timeout = settings.timeout_seconds
        timeout = None
        if connect_timeout is not None or read_timeout is not None:
            timeout = (connect_timeout, read_timeout)

        return swift.Connection(
            authurl=settings.auth_url,
            user=settings.username or None,
            key=settings.password,
            retries=settings.retries,
            auth_version=_auth_version(settings),
            os_options={key: value for key, value in os_options.items() if value},
            timeout=timeout,
            preauthurl=preauthurl,
            preauthtoken=preauthtoken,
        )

    def authenticate(self) -> None:
        """Negotiate a token with the identity service."""
        client = self._client
        try:
            client.get_auth()
        except ClientException as exc:
            raise AuthenticationError(f"swift authentication: {exc}") from exc
        except Exception as exc:
            raise _translate(exc, "swift authentication") from exc
        with self._auth_lock:
            self._storage_url = client.url
            self._token = client.token

    def container_exists(self, *, container: str) -> bool:
        try:
            self._client.head_container(container)
        except ClientException as exc:
            if exc.http_status == 404:
                return False
            raise _translate(exc, f"swift verify container {container}") from exc
        except Exception as exc:
            raise _translate(exc, f"swift verify container {container}") from exc
        return True

    def create_container(self, *, container: str) -> None:
        try:
            self._client.put_container(container)
        except Exception as exc:
            translated = _translate(exc, f"create container {container}")
            if type(translated) is StorageError:
                raise ContainerCreateError(str(translated)) from exc
            raise translated from exc

    def delete_container(self, *, container: str) -> None:
        try:
            self._client.delete_container(container)
        except Exception as exc:
            raise _translate(
                exc, f"delete container {container}", not_found=ContainerNotFoundError
            ) from exc

    def list_objects(
        self,
        *,
        container: str,
        prefix: str = "",
        delimiter: str | None = None,
        marker: str = "",
        limit: int | None = None,
    ) -> list[str]:
        """Return a single page of object names after ``marker``."""
        try:
            _, listing = self._client.get_container(
                container,
                marker=marker or None,
                limit=limit,
                prefix=prefix or None,
                delimiter=delimiter,
            )
        except Exception as exc:
            raise _translate(
                exc, f"swift list object names {container}", not_found=ContainerNotFoundError
            ) from exc

        names: list[str] = []
        for entry in listing:
            name = entry.get("subdir") or entry.get("name")
            if name:
                names.append(name)
        return names

    def open_object(
        self,
        *,
        container: str,
        object_name: str,
        headers: Mapping[str, str] | None = None,
        verify_checksum: bool = True,
        cancel: threading.Event | None = None,
    ) -> ObjectReader:
        action = f"swift open object {container}/{object_name}"
        try:
            response_headers, body = self._client.get_object(
                container,
                object_name,
                resp_chunk_size=READ_BLOCK_SIZE,
                headers=dict(headers or {}),
            )
        except Exception as exc:
            raise _translate(exc, action) from exc

        expected_md5 = None
        is_manifest = (
            "x-static-large-object" in response_headers
            or "x-object-manifest" in response_headers
        )
        if verify_checksum and not is_manifest:
            expected_md5 = response_headers.get("etag")
        return ObjectReader(
            _TranslatingBody(body, f"swift read object {container}/{object_name}"),
            expected_md5=expected_md5,
            object_name=object_name,
            cancel=cancel,
        )

    def head_object(self, *, container: str, object_name: str) -> ObjectHead:
        try:
            headers = self._client.head_object(container, object_name)
        except Exception as exc:
            raise _translate(
                exc, f"swift get object attributes {container}/{object_name}"
            ) from exc

        size = headers.get("content-length")
        return ObjectHead(
            size_bytes=int(size) if size is not None else 0,
            last_modified=_parse_last_modified(headers),
            etag=headers.get("etag"),
            is_static_large_object=(
                str(headers.get("x-static-large-object", "")).lower() == "true"
            ),
        )

    def put_object(
        self,
        *,
        container: str,
        object_name: str,
        contents: BinaryIO | bytes | Iterable[bytes],
        content_length: int | None = None,
    ) -> str:
        try:
            etag = self._client.put_object(
                container,
                object_name,
                contents,
                content_length=content_length,
                chunk_size=READ_BLOCK_SIZE,
            )
        except StorageError:
            raise
        except Exception as exc:
            raise _translate(exc, f"swift write object {container}/{object_name}") from exc
        return etag or ""

    def put_manifest(
        self,
        *,
        container: str,
        object_name: str,
        segments: Sequence[SegmentInfo],
    ) -> str:
        manifest = [
            {"path": segment.path, "etag": segment.etag, "size_bytes": segment.size_bytes}
            for segment in segments
        ]
        try:
            etag = self._client.put_object(
                container,
                object_name,
                json.dumps(manifest),
                query_string="multipart-manifest=put",
                content_type="application/octet-stream",
            )
        except Exception as exc:
            raise _translate(
                exc, f"swift commit manifest {container}/{object_name}"
            ) from exc
        return etag or ""

    def get_manifest(self, *, container: str, object_name: str) -> list[SegmentInfo]:
        action = f"swift get manifest {container}/{object_name}"
        try:
            _, body = self._client.get_object(
                container, object_name, query_string="multipart-manifest=get"
            )
        except Exception as exc:
            raise _translate(exc, action) from exc

        try:
            entries = json.loads(body)
        except ValueError as exc:
            raise StorageError(f"{action}: invalid manifest body") from exc
        if not isinstance(entries, list):
            raise StorageError(f"{action}: manifest is not a list")

        segments: list[SegmentInfo] = []
        for entry in entries:
            path = unquote(str(entry.get("name") or entry.get("path") or "")).lstrip("/")
            segment_container, _, segment_name = path.partition("/")
            if not segment_container or not segment_name:
                raise StorageError(f"{action}: malformed segment path {path!r}")
            segments.append(
                SegmentInfo(
                    container=segment_container,
                    object_name=segment_name,
                    etag=str(entry.get("hash") or entry.get("etag") or ""),
                    size_bytes=int(entry.get("bytes") or entry.get("size_bytes") or 0),
                )
            )
        return segments

    def delete_object(self, *, container: str, object_name: str) -> None:
        try:
            self._client.delete_object(container, object_name)
        except Exception as exc:
            raise _translate(exc, f"swift delete object {container}/{object_name}") from exc
