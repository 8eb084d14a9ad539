import pytest
from prometheus_client import REGISTRY

from swiftstore.infra.storage.client import ObjectNotFoundError
from tests.services.fake_swift import CHUNK_SIZE


def _sample(name: str, labels: dict[str, str] | None = None) -> float:
    return REGISTRY.get_sample_value(name, labels or {}) or 0.0


def test_operations_counted(container):
    before = _sample("swiftstore_operations_total", {"operation": "upload"})

    container.upload("counted", b"data")

    assert _sample("swiftstore_operations_total", {"operation": "upload"}) == before + 1
    assert _sample("swiftstore_operation_duration_seconds_count", {"operation": "upload"}) > 0


def test_not_found_on_read_is_not_a_failure(container):
    before = _sample("swiftstore_operation_failures_total", {"operation": "get"})

    with pytest.raises(ObjectNotFoundError):
        container.get("missing")

    assert _sample("swiftstore_operation_failures_total", {"operation": "get"}) == before


def test_not_found_on_delete_is_a_failure(container):
    before = _sample("swiftstore_operation_failures_total", {"operation": "delete"})

    with pytest.raises(ObjectNotFoundError):
        container.delete("missing")

    assert _sample("swiftstore_operation_failures_total", {"operation": "delete"}) == before + 1


def test_upload_path_and_segments_counted(container):
    single_before = _sample("swiftstore_uploads_total", {"path": "single"})
    segmented_before = _sample("swiftstore_uploads_total", {"path": "segmented"})
    segments_before = _sample("swiftstore_segments_written_total")

    container.upload("small", b"s")
    container.upload("large", b"l" * (CHUNK_SIZE * 2))

    assert _sample("swiftstore_uploads_total", {"path": "single"}) == single_before + 1
    assert _sample("swiftstore_uploads_total", {"path": "segmented"}) == segmented_before + 1
    assert _sample("swiftstore_segments_written_total") == segments_before + 2
