from __future__ import annotations

import threading
from collections import defaultdict
from contextlib import contextmanager
from typing import Iterator

_MIN_SIZE_CLASS = 64 * 1024


def size_class(size_hint: int) -> int:
    """Round ``size_hint`` up to the power of two used to key the pool."""

    size = _MIN_SIZE_CLASS
    while size < size_hint:
        size <<= 1
    return size


class PooledBuffer:
    """Preallocated ``bytearray`` with a write cursor.

    Writes land in the existing allocation through a ``memoryview``; the
    storage only grows (by doubling) when a write would overflow it.
    """

    __slots__ = ("_storage", "_length")

    def __init__(self, capacity: int) -> None:
        self._storage = bytearray(capacity)
        self._length = 0

    def __len__(self) -> int:
        return self._length

    @property
    def capacity(self) -> int:
        return len(self._storage)

    def write(self, chunk: bytes) -> None:
        end = self._length + len(chunk)
        if end > len(self._storage):
            capacity = max(len(self._storage), 1)
            while capacity < end:
                capacity <<= 1
            self._storage.extend(bytes(capacity - len(self._storage)))
        with memoryview(self._storage) as view:
            view[self._length:end] = chunk
        self._length = end

    def getvalue(self) -> bytes:
        with memoryview(self._storage) as view:
            return bytes(view[: self._length])

    def reset(self) -> None:
        """Zero the written prefix and rewind, keeping the allocation."""

        if self._length:
            with memoryview(self._storage) as view:
                view[: self._length] = bytes(self._length)
        self._length = 0


class BufferPool:
    """Reusable buffers grouped by size class.

    Buffers are zeroed when taken and again when returned so no bytes from one
    request are ever visible to the next. Callers release with the same size
    hint they acquired with; each size class keeps at most ``max_per_size``
    idle buffers and extras are dropped for the GC.
    """

    def __init__(self, *, max_per_size: int = 8) -> None:
        self._max_per_size = max(0, max_per_size)
        self._idle: dict[int, list[PooledBuffer]] = defaultdict(list)
        self._lock = threading.Lock()

    def acquire(self, size_hint: int = 0) -> PooledBuffer:
        key = size_class(size_hint)
        with self._lock:
            bucket = self._idle.get(key)
            buffer = bucket.pop() if bucket else None
        if buffer is None:
            return PooledBuffer(key)
        buffer.reset()
        return buffer

    def release(self, buffer: PooledBuffer, size_hint: int = 0) -> None:
        key = size_class(size_hint)
        buffer.reset()
        if buffer.capacity < key:
            return
        with self._lock:
            bucket = self._idle[key]
            if len(bucket) < self._max_per_size and not any(item is buffer for item in bucket):
                bucket.append(buffer)

    @contextmanager
    def borrow(self, size_hint: int = 0) -> Iterator[PooledBuffer]:
        buffer = self.acquire(size_hint)
        try:
            yield buffer
        finally:
            self.release(buffer, size_hint)

    def idle_count(self, size_hint: int = 0) -> int:
        with self._lock:
            return len(self._idle.get(size_class(size_hint), ()))
