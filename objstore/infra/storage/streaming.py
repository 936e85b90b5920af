"""Bounded-memory, ranged reads of remote objects."""

from __future__ import annotations

from typing import Callable, Iterator

from objstore.infra.storage.client import ByteRange, RemoteStore

DEFAULT_CHUNK_SIZE = 5 * 1024 * 1024


class ChunkedStreamer:
    """Reads an object as a sequence of fixed-size byte ranges.

    Ranges are fetched one at a time in increasing offset order, so no more
    than one chunk is held in memory regardless of object size.
    """

    def __init__(
        self,
        store: RemoteStore,
        *,
        bucket: str,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> None:
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        self._store = store
        self._bucket = bucket
        self._chunk_size = chunk_size

    @property
    def chunk_size(self) -> int:
        return self._chunk_size

    def iter_chunks(self, key: str) -> Iterator[bytes]:
        """Yield the object's bytes chunk by chunk.

        Raises:
            ObjectNotFoundError: If ``key`` does not exist (on first iteration).
        """
        head = self._store.head_object(bucket=self._bucket, object_key=key)
        total = head.size_bytes
        offset = 0
        while offset < total:
            end = min(offset + self._chunk_size, total)
            yield self._store.get_object_range(
                bucket=self._bucket,
                object_key=key,
                byte_range=ByteRange(start=offset, end=end),
            )
            offset = end

    def stream(self, key: str, on_chunk: Callable[[bytes], object]) -> None:
        for chunk in self.iter_chunks(key):
            on_chunk(chunk)
