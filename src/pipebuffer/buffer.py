import os
import collections
from typing import Callable, Iterator

from .common import Constants


class Chunk:
    """Bytes from a single read call, stored in a resizable buffer.

    ``offset`` bytes at the start of the storage have already been written out and
    are only kept until the next compaction.
    """

    __slots__ = ("_storage", "_length", "_offset")

    def __init__(self, capacity: int):
        self._storage = bytearray(capacity)
        self._length = 0
        self._offset = 0

    @classmethod
    def from_bytes(cls, data: bytes, *, capacity: int | None = None) -> "Chunk":
        if capacity is None:
            capacity = len(data)
        if capacity < len(data):
            raise ValueError("Capacity must be at least the length of the data.")

        chunk = cls(capacity)
        chunk._storage[: len(data)] = data
        chunk._length = len(data)
        return chunk

    @property
    def capacity(self) -> int:
        return len(self._storage)

    @property
    def length(self) -> int:
        return self._length

    @property
    def offset(self) -> int:
        return self._offset

    @property
    def remaining(self) -> int:
        return self._length - self._offset

    def read_from(self, fd: int) -> int:
        """Fills the storage with a single read from ``fd``.

        Parameters
        ----------
        fd : int
            File descriptor to read from.

        Returns
        -------
        int
            The number of bytes read, 0 at end of file.
        """

        assert self._length == 0
        self._length = os.readv(fd, [self._storage])
        return self._length

    def view(self) -> memoryview:
        return memoryview(self._storage)[self._offset : self._length]

    def advance(self, count: int):
        assert 0 <= count <= self.remaining
        self._offset += count

        # Drop the written prefix once it outweighs what is left to write.
        if self._offset * 2 >= self._length:
            self.compact()

    def compact(self):
        if self._offset == 0:
            return
        del self._storage[: self._offset]
        self._length -= self._offset
        self._offset = 0

    def shrink_to(self, size: int):
        if size < self._length:
            raise ValueError("Cannot shrink below the stored length.")
        if size < len(self._storage):
            self._storage = self._storage[:size]

    def shrink_to_fit(self):
        self.compact()
        self.shrink_to(self._length)

    def __repr__(self) -> str:
        return (
            f"Chunk(capacity={self.capacity}, length={self._length}, "
            f"offset={self._offset})"
        )


class BufferQueue:
    """FIFO of chunks waiting to be written, with the number of unwritten bytes
    tracked incrementally.

    Parameters
    ----------
    read_size : int
        Size of one input read unit. Old chunks holding at most half of this are
        shrunk by the default maintenance hook.
    shrink_threshold : int
        Queue depth from which the maintenance hook runs after each append.
    maintenance : Callable[[BufferQueue], None], optional
        Replaces ``BufferQueue.shrink_old_chunks`` as the maintenance hook.
    """

    def __init__(
        self,
        read_size: int = Constants.DEFAULT_READ_SIZE,
        *,
        shrink_threshold: int = Constants.SHRINK_THRESHOLD,
        maintenance: Callable[["BufferQueue"], None] | None = None,
    ):
        self._chunks = collections.deque[Chunk]()
        self._total_buffered = 0
        self._read_size = read_size
        self._shrink_threshold = shrink_threshold
        self._maintenance = (
            maintenance if maintenance is not None else BufferQueue.shrink_old_chunks
        )

    @property
    def total_buffered(self) -> int:
        return self._total_buffered

    @property
    def shrink_threshold(self) -> int:
        return self._shrink_threshold

    def __len__(self) -> int:
        return len(self._chunks)

    def __iter__(self) -> Iterator[Chunk]:
        return iter(self._chunks)

    def append(self, data: bytes) -> Chunk:
        chunk = Chunk.from_bytes(data)
        self.append_chunk(chunk)
        return chunk

    def append_chunk(self, chunk: Chunk):
        assert chunk.remaining > 0, "Empty chunks are never queued."

        self._chunks.append(chunk)
        self._total_buffered += chunk.remaining

        if len(self._chunks) >= self._shrink_threshold:
            self._maintenance(self)

    def front(self) -> memoryview:
        """Returns the unwritten bytes of the oldest chunk.

        The view must be released before ``consume_front`` is called, as the
        chunk's storage may be resized.
        """

        if not self._chunks:
            return memoryview(b"")
        return self._chunks[0].view()

    def consume_front(self, count: int):
        """Marks ``count`` bytes of the oldest chunk as written.

        Parameters
        ----------
        count : int
            Number of bytes written, at most the unwritten length of the oldest
            chunk.
        """

        assert self._chunks, "Nothing to consume."
        chunk = self._chunks[0]
        assert 0 <= count <= chunk.remaining

        if count == chunk.remaining:
            self._chunks.popleft()
        else:
            chunk.advance(count)

        self._total_buffered -= count

    def shrink_old_chunks(self):
        if len(self._chunks) < self._shrink_threshold:
            return

        chunk = self._chunks[-self._shrink_threshold]
        if chunk.remaining <= self._read_size // 2 and chunk.capacity > chunk.remaining:
            chunk.shrink_to_fit()
