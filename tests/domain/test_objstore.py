import inspect
import io
import os

import pytest

from swiftstore.domain.objstore import Bucket, try_to_get_size
from swiftstore.services.container_service import SwiftContainer


class _Unsized:
    def read(self, size=-1):
        return b""


class _Sized:
    def __len__(self):
        return 7


@pytest.mark.parametrize(
    ("source", "expected"),
    [
        (b"abc", 3),
        (bytearray(b"abcd"), 4),
        (memoryview(b"abcde"), 5),
        (_Sized(), 7),
        (_Unsized(), None),
    ],
)
def test_try_to_get_size(source, expected):
    assert try_to_get_size(source) == expected


def test_bytes_io_counts_remaining_bytes():
    buffer = io.BytesIO(b"0123456789")
    buffer.read(4)

    assert try_to_get_size(buffer) == 6
    assert buffer.tell() == 4


def test_regular_file(tmp_path):
    path = tmp_path / "data.bin"
    path.write_bytes(b"x" * 100)

    with path.open("rb") as handle:
        handle.seek(30)
        assert try_to_get_size(handle) == 70
        assert handle.tell() == 30


def test_seekable_stream_position_restored():
    stream = io.BufferedReader(io.BytesIO(b"abcdef"))
    stream.read(2)

    assert try_to_get_size(stream) == 4
    assert stream.read() == b"cdef"


def test_pipe_is_unknown():
    read_fd, write_fd = os.pipe()
    try:
        with os.fdopen(read_fd, "rb") as reader:
            assert try_to_get_size(reader) is None
    finally:
        os.close(write_fd)


@pytest.mark.parametrize(
    "method", ["iterate", "get", "get_range", "attributes", "exists", "upload", "delete"]
)
def test_operations_accept_cancel(method):
    for implementation in (Bucket, SwiftContainer):
        parameter = inspect.signature(getattr(implementation, method)).parameters["cancel"]
        assert parameter.kind is inspect.Parameter.KEYWORD_ONLY
        assert parameter.default is None
