import time
from contextlib import contextmanager
from typing import Iterator

from prometheus_client import Counter, Histogram

from swiftstore.infra.storage.client import is_not_found_error

# Low-cardinality labels: operation names only, never object names.
OPERATIONS = Counter(
    "swiftstore_operations_total",
    "Total object store operations",
    ["operation"],
)

OPERATION_FAILURES = Counter(
    "swiftstore_operation_failures_total",
    "Object store operations that failed unexpectedly",
    ["operation"],
)

OPERATION_DURATION = Histogram(
    "swiftstore_operation_duration_seconds",
    "Object store operation latency in seconds",
    ["operation"],
)

UPLOADS = Counter(
    "swiftstore_uploads_total",
    "Completed uploads by write path",
    ["path"],
)

SEGMENTS_WRITTEN = Counter(
    "swiftstore_segments_written_total",
    "Static large object segments written",
)

# NotFound is an answer, not a failure, for these operations.
_NOT_FOUND_EXPECTED = {"get", "get_range", "attributes", "exists"}


@contextmanager
def track_operation(operation: str) -> Iterator[None]:
    OPERATIONS.labels(operation=operation).inc()
    start = time.perf_counter()
    try:
        yield
    except Exception as exc:
        if not (operation in _NOT_FOUND_EXPECTED and is_not_found_error(exc)):
            OPERATION_FAILURES.labels(operation=operation).inc()
        raise
    finally:
        OPERATION_DURATION.labels(operation=operation).observe(
            time.perf_counter() - start
        )
