from __future__ import annotations

import pytest

from swiftstore.common.config import get_settings
from swiftstore.services.container_service import SwiftContainer
from tests.services.fake_swift import (
    CHUNK_SIZE,
    CONTAINER,
    SEGMENTS_CONTAINER,
    FakeSwiftConnection,
)


@pytest.fixture(autouse=True)
def _clear_settings_cache():
    get_settings.cache_clear()  # type: ignore[attr-defined]
    yield
    get_settings.cache_clear()  # type: ignore[attr-defined]


@pytest.fixture
def fake_swift() -> FakeSwiftConnection:
    fake = FakeSwiftConnection()
    fake.add_container(CONTAINER)
    fake.add_container(SEGMENTS_CONTAINER)
    return fake


@pytest.fixture
def container(fake_swift: FakeSwiftConnection) -> SwiftContainer:
    """Container whose segments live in a separate container."""
    return SwiftContainer(
        fake_swift,
        name=CONTAINER,
        segments_container=SEGMENTS_CONTAINER,
        chunk_size=CHUNK_SIZE,
    )


@pytest.fixture
def shared_container(fake_swift: FakeSwiftConnection) -> SwiftContainer:
    """Container that stores its own segments."""
    return SwiftContainer(fake_swift, name=CONTAINER, chunk_size=CHUNK_SIZE)
