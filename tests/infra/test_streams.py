import hashlib
import io
import threading
from unittest.mock import MagicMock

import pytest

from swiftstore.infra.storage.client import (
    ObjectIntegrityError,
    OperationCanceledError,
    SourceReadError,
)
from swiftstore.infra.storage.streams import (
    ObjectReader,
    SegmentReader,
    SourceReader,
    normalize_etag,
)


def test_normalize_etag():
    assert normalize_etag('"ABCDEF"') == "abcdef"
    assert normalize_etag(" abc ") == "abc"
    assert normalize_etag('""') is None
    assert normalize_etag(None) is None


class TestObjectReader:
    def test_matching_checksum(self):
        data = b"x" * 200_000
        reader = ObjectReader(io.BytesIO(data), expected_md5=hashlib.md5(data).hexdigest())

        assert reader.read() == data
        assert reader.read() == b""

    def test_mismatch_raised_at_end_of_stream(self):
        reader = ObjectReader(io.BytesIO(b"abc"), expected_md5="0" * 32, object_name="doc")

        assert reader.read(2) == b"ab"
        with pytest.raises(ObjectIntegrityError, match="checksum mismatch reading doc"):
            reader.read()

    def test_without_checksum(self):
        reader = ObjectReader(io.BytesIO(b"abc"))

        assert not reader.verifies_checksum
        assert reader.read() == b"abc"

    def test_close_closes_body(self):
        body = MagicMock()

        with ObjectReader(body):
            pass

        body.close.assert_called_once_with()

    def test_buffered_wrapper(self):
        data = b"line one\nline two\n"
        reader = io.BufferedReader(
            ObjectReader(io.BytesIO(data), expected_md5=hashlib.md5(data).hexdigest())
        )

        assert reader.readline() == b"line one\n"
        assert reader.read() == b"line two\n"

    def test_cancel_stops_reading(self):
        cancel = threading.Event()
        reader = ObjectReader(io.BytesIO(b"abcdef"), object_name="doc", cancel=cancel)

        assert reader.read(2) == b"ab"
        cancel.set()
        with pytest.raises(OperationCanceledError, match="swift read object doc"):
            reader.read(2)


class TestSourceReader:
    def test_tracks_bytes_and_digest(self):
        reader = SourceReader(io.BytesIO(b"hello world"))

        assert reader.read(5) == b"hello"
        assert reader.read() == b" world"
        assert reader.read() == b""
        assert reader.eof
        assert reader.bytes_read == 11
        assert reader.hexdigest() == hashlib.md5(b"hello world").hexdigest()

    def test_zero_sized_read_is_not_eof(self):
        reader = SourceReader(io.BytesIO(b"data"))

        assert reader.read(0) == b""
        assert not reader.eof

    def test_source_failure(self):
        source = MagicMock()
        source.read.side_effect = OSError("device error")
        reader = SourceReader(source)

        with pytest.raises(SourceReadError, match="device error"):
            reader.read(10)
        assert isinstance(reader.read_error, OSError)

    def test_text_source_rejected(self):
        reader = SourceReader(io.StringIO("text"))

        with pytest.raises(SourceReadError, match="binary mode"):
            reader.read(4)

    def test_non_blocking_source_rejected(self):
        source = MagicMock()
        source.read.return_value = None
        reader = SourceReader(source)

        with pytest.raises(SourceReadError, match="non-blocking upload sources"):
            reader.read(10)
        assert isinstance(reader.read_error, BlockingIOError)
        assert not reader.eof

    def test_cancel_before_read(self):
        cancel = threading.Event()
        cancel.set()
        source = MagicMock()
        reader = SourceReader(source, cancel=cancel)

        with pytest.raises(OperationCanceledError):
            reader.read(10)
        source.read.assert_not_called()


class TestSegmentReader:
    def test_limits_each_segment(self):
        source = SourceReader(io.BytesIO(b"0123456789"))

        first = SegmentReader(source, 4)
        assert first.prime()
        assert first.read() == b"0123"
        assert first.read() == b""

        second = SegmentReader(source, 4)
        assert second.prime()
        assert second.read(2) + second.read(10) == b"4567"

        third = SegmentReader(source, 4)
        assert third.prime()
        assert third.read() == b"89"
        assert third.bytes_read == 2
        assert third.hexdigest() == hashlib.md5(b"89").hexdigest()

        assert not SegmentReader(source, 4).prime()
        assert source.eof

    def test_cancel_interrupts_segment(self):
        cancel = threading.Event()
        source = SourceReader(io.BytesIO(b"0123456789"), cancel=cancel)
        segment = SegmentReader(source, 8, cancel=cancel)

        assert segment.prime()
        assert segment.read(3) == b"012"
        cancel.set()
        with pytest.raises(OperationCanceledError, match="write upload segment"):
            segment.read(3)
        assert segment.bytes_read == 3
