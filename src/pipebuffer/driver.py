import os
import dataclasses

from .buffer import BufferQueue, Chunk
from .common import Constants, FatalError
from .flow import FlowState, compute_flow
from .logging import get_logger
from .shutdown import ShutdownCoordinator


LOGGER = get_logger(__name__)


@dataclasses.dataclass(slots=True)
class RunCounters:
    total_read: int = 0
    read_count: int = 0
    write_count: int = 0


@dataclasses.dataclass(frozen=True, slots=True)
class Snapshot:
    """Read-only view of the run, taken for each progress line."""

    total_read: int
    total_buffered: int
    ceiling: int
    depth: int
    read_count: int
    write_count: int

    @property
    def percent_full(self) -> int:
        return (100 * self.total_buffered) // self.ceiling


class IODriver:
    def __init__(
        self,
        input_fd: int,
        output_fd: int,
        queue: BufferQueue,
        *,
        ceiling: int,
        read_size: int = Constants.DEFAULT_READ_SIZE,
        shutdown: ShutdownCoordinator | None = None,
    ):
        if ceiling <= 0:
            raise ValueError("Ceiling must be positive.")
        if read_size <= 0:
            raise ValueError("Read size must be positive.")

        self._input_fd = input_fd
        self._output_fd = output_fd
        self._queue = queue
        self._ceiling = ceiling
        self._read_size = read_size
        self._shutdown = shutdown if shutdown is not None else ShutdownCoordinator()

        self.counters = RunCounters()
        self.end_of_input = False
        self.input_error: OSError | None = None
        self.output_failed = False

    @property
    def input_fd(self) -> int:
        return self._input_fd

    @property
    def output_fd(self) -> int:
        return self._output_fd

    @property
    def queue(self) -> BufferQueue:
        return self._queue

    @property
    def ceiling(self) -> int:
        return self._ceiling

    def flow(self) -> FlowState:
        return compute_flow(
            end_of_input=self.end_of_input or self._shutdown.requested,
            total_buffered=self._queue.total_buffered,
            ceiling=self._ceiling,
            queue_empty=len(self._queue) == 0,
        )

    def snapshot(self) -> Snapshot:
        return Snapshot(
            total_read=self.counters.total_read,
            total_buffered=self._queue.total_buffered,
            ceiling=self._ceiling,
            depth=len(self._queue),
            read_count=self.counters.read_count,
            write_count=self.counters.write_count,
        )

    def do_read(self) -> int:
        """Reads once from the input into a new chunk.

        Returns
        -------
        int
            The number of bytes queued, 0 if nothing was read.
        """

        to_read = min(self._read_size, self._ceiling - self._queue.total_buffered)
        if to_read <= 0:
            return 0

        try:
            chunk = Chunk(to_read)
        except MemoryError as e:
            raise FatalError(
                f"Could not allocate {to_read} bytes.", Constants.EXIT_ALLOCATION
            ) from e

        while True:
            try:
                count = chunk.read_from(self._input_fd)
            except InterruptedError:
                if self._shutdown.requested:
                    return 0
                continue
            except BlockingIOError:
                return 0
            except OSError as e:
                LOGGER.error("Failed to read from input: %s", e.strerror)
                self.input_error = e
                self.end_of_input = True
                return 0
            break

        if count == 0:
            LOGGER.info("End of input reached.")
            self.end_of_input = True
            return 0

        try:
            self._queue.append_chunk(chunk)
        except MemoryError as e:
            raise FatalError(
                "Could not grow the buffer queue.", Constants.EXIT_ALLOCATION
            ) from e

        self.counters.total_read += count
        self.counters.read_count += 1
        return count

    def do_write(self) -> int:
        """Writes as much of the queue as the output accepts without blocking.

        Must only be called once the output has been reported writable.

        Returns
        -------
        int
            The number of bytes written.
        """

        written_total = 0

        while len(self._queue) > 0:
            try:
                with self._queue.front() as view:
                    pending = len(view)
                    written = os.write(self._output_fd, view)
            except (BlockingIOError, InterruptedError):
                break
            except OSError as e:
                if self._shutdown.requested:
                    LOGGER.warning(
                        "Write failed during shutdown, dropping %d queued bytes: %s",
                        self._queue.total_buffered,
                        e.strerror,
                    )
                    self.output_failed = True
                    break
                raise FatalError(f"Write failed: {e.strerror}.") from e

            self._queue.consume_front(written)
            self.counters.write_count += 1
            written_total += written

            if written < pending:
                break

        return written_total
