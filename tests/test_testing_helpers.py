from unittest.mock import patch

import pytest

from swiftstore import testing
from swiftstore.common.config import ConfigError, SwiftSettings
from swiftstore.infra.storage.client import StorageError
from tests.services.fake_swift import FakeSwiftConnection


@pytest.fixture
def fake():
    fake = FakeSwiftConnection()
    with patch(
        "swiftstore.services.container_service.SwiftConnectionClient",
        side_effect=lambda settings: fake,
    ), patch.object(testing.time, "sleep"):
        yield fake


def test_temporary_container_name():
    name = testing.temporary_container_name("TestUpload::test_Big File")

    assert name.startswith("test-testupload-test-big-file-")
    assert name == name.lower()
    assert name != testing.temporary_container_name("TestUpload::test_Big File")


def test_temporary_container_lifecycle(fake):
    with testing.temporary_container("lifecycle", settings=SwiftSettings()) as container:
        assert container.name in fake.containers
        assert container.segments_container == container.name
        container.upload("dir/small", b"x")
        container.upload("big", b"y" * 64)
        name = container.name

    assert name not in fake.containers


def test_existing_container_requires_opt_in(fake, monkeypatch):
    monkeypatch.delenv(testing.ALLOW_EXISTING_ENV, raising=False)
    fake.add_container("shared")

    with pytest.raises(ConfigError, match=testing.ALLOW_EXISTING_ENV):
        with testing.temporary_container("t", settings=SwiftSettings(container_name="shared")):
            pass


def test_existing_container_must_be_empty(fake, monkeypatch):
    monkeypatch.setenv(testing.ALLOW_EXISTING_ENV, "true")
    fake.put_raw("shared", "leftover", b"x")

    with pytest.raises(StorageError, match="container is not empty"):
        with testing.temporary_container("t", settings=SwiftSettings(container_name="shared")):
            pass


def test_existing_container_is_kept(fake, monkeypatch):
    monkeypatch.setenv(testing.ALLOW_EXISTING_ENV, "true")
    fake.add_container("shared")

    with testing.temporary_container(
        "t", settings=SwiftSettings(container_name="shared")
    ) as container:
        container.upload("obj", b"data")

    assert fake.object_names("shared") == ["obj"]


def test_empty_container(fake):
    fake.put_raw("box", "a", b"1")
    fake.put_raw("box", "b/c", b"2")
    fake.put_raw("box", "b/d/e", b"3")
    container = testing.SwiftContainer(fake, name="box")

    testing.empty_container(container)

    assert fake.object_names("box") == []
