from __future__ import annotations

import pytest

from objstore.infra.storage.client import ByteRange, ObjectNotFoundError
from objstore.infra.storage.streaming import ChunkedStreamer
from tests.services.mock_storage import MockRemoteStore


@pytest.fixture()
def store():
    store = MockRemoteStore()
    store.put_object(bucket="b", object_key="ten", body=b"0123456789")
    store.put_object(bucket="b", object_key="empty", body=b"")
    return store


def test_chunks_cover_object_in_order(store):
    streamer = ChunkedStreamer(store, bucket="b", chunk_size=4)

    chunks = list(streamer.iter_chunks("ten"))

    assert chunks == [b"0123", b"4567", b"89"]
    assert store.range_requests == [
        ("ten", "bytes=0-3"),
        ("ten", "bytes=4-7"),
        ("ten", "bytes=8-9"),
    ]


@pytest.mark.parametrize("chunk_size, expected_count", [(1, 10), (3, 4), (5, 2), (10, 1), (64, 1)])
def test_chunk_count_is_ceiling_of_length(store, chunk_size, expected_count):
    streamer = ChunkedStreamer(store, bucket="b", chunk_size=chunk_size)

    chunks = list(streamer.iter_chunks("ten"))

    assert len(chunks) == expected_count
    assert b"".join(chunks) == b"0123456789"


def test_empty_object_yields_nothing(store):
    streamer = ChunkedStreamer(store, bucket="b", chunk_size=4)

    assert list(streamer.iter_chunks("empty")) == []


def test_stream_invokes_callback_per_chunk(store):
    received: list[bytes] = []
    ChunkedStreamer(store, bucket="b", chunk_size=6).stream("ten", received.append)

    assert received == [b"012345", b"6789"]


def test_missing_object_raises(store):
    streamer = ChunkedStreamer(store, bucket="b", chunk_size=4)

    with pytest.raises(ObjectNotFoundError):
        streamer.stream("missing", lambda chunk: None)
    assert store.range_requests == []


def test_rejects_non_positive_chunk_size(store):
    with pytest.raises(ValueError):
        ChunkedStreamer(store, bucket="b", chunk_size=0)


class TestByteRange:
    def test_exclusive_end(self):
        assert ByteRange(0, 5).to_header() == "bytes=0-4"

    def test_inclusive_end(self):
        byte_range = ByteRange(0, 5, exclude_end=False)
        assert byte_range.to_header() == "bytes=0-5"
        assert byte_range.length == 6

    def test_coerce_python_range(self):
        assert ByteRange.coerce(range(10, 20)) == ByteRange(10, 20)

    def test_coerce_rejects_stepped_range(self):
        with pytest.raises(ValueError):
            ByteRange.coerce(range(0, 10, 2))

    def test_rejects_empty_range(self):
        with pytest.raises(ValueError):
            ByteRange(3, 3)
