"""Helpers for running the test suite against a live Swift cluster."""

from __future__ import annotations

import dataclasses
import logging
import os
import re
import time
import uuid
from contextlib import contextmanager
from typing import Iterator

from swiftstore.common.config import ConfigError, SwiftSettings
from swiftstore.domain.objstore import DIR_DELIM
from swiftstore.infra.storage.client import ObjectNotFoundError, StorageError
from swiftstore.services.container_service import SwiftContainer

logger = logging.getLogger(__name__)

ALLOW_EXISTING_ENV = "SWIFTSTORE_ALLOW_EXISTING_CONTAINER"

_UNSAFE_CHARS = re.compile(r"[^a-z0-9-]+")


def temporary_container_name(test_name: str) -> str:
    """Return a unique, lower-case container name derived from a test name."""
    cleaned = _UNSAFE_CHARS.sub("-", test_name.lower()).strip("-")[:40]
    return f"test-{cleaned or 'swiftstore'}-{uuid.uuid4().hex[:12]}"


def empty_container(container: SwiftContainer) -> None:
    """Delete every object in ``container``, descending into pseudo-directories."""
    pending = [""]
    while pending:
        prefix = pending.pop()
        entries: list[str] = []
        container.iterate(prefix, entries.append)
        for entry in entries:
            if entry.endswith(DIR_DELIM):
                pending.append(entry)
                continue
            try:
                container.delete(entry)
            except ObjectNotFoundError:
                continue


@contextmanager
def temporary_container(
    test_name: str, *, settings: SwiftSettings | None = None
) -> Iterator[SwiftContainer]:
    """Yield a container that exists only for the duration of one test.

    When ``container_name`` is already configured the container is reused
    instead, but only if ``SWIFTSTORE_ALLOW_EXISTING_CONTAINER`` is set and the
    container is empty; it is not cleaned up afterwards.
    """
    settings = settings or SwiftSettings.from_environment()

    if settings.container_name:
        if not os.environ.get(ALLOW_EXISTING_ENV):
            raise ConfigError(
                "OS_CONTAINER_NAME is set. Tests normally create a temporary container "
                "and delete it afterwards. Unset OS_CONTAINER_NAME, or set "
                f"{ALLOW_EXISTING_ENV}=true to run against the configured (empty) "
                "container, which then has to be cleared manually."
            )
        container = SwiftContainer.from_settings(settings)
        entries: list[str] = []
        container.iterate("", entries.append)
        if entries:
            raise StorageError(f"swift check container {container.name}: container is not empty")
        logger.warning(
            "reusing_existing_container container=%s manual_cleanup=required",
            container.name,
        )
        yield container
        return

    name = temporary_container_name(test_name)
    settings = dataclasses.replace(
        settings, container_name=name, large_object_segments_container_name=name
    )
    container = SwiftContainer.from_settings(settings, create_container=True)
    logger.info("created temporary container %s", name)
    try:
        yield container
    finally:
        try:
            empty_container(container)
            # Listings lag behind deletes; give the cluster a moment.
            time.sleep(1)
            container.connection.delete_container(container=name)
        except StorageError as exc:
            logger.warning("deleting container %s failed: %s", name, exc)
