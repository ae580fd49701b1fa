import asyncio
import dataclasses
import enum
from typing import Callable

from .common import Constants, FatalError
from .driver import IODriver
from .logging import get_logger
from .shutdown import ShutdownCoordinator


LOGGER = get_logger(__name__)


class RunState(enum.Enum):
    RUNNING = enum.auto()
    DRAINING = enum.auto()
    DONE = enum.auto()


def _mark_ready(future: asyncio.Future):
    if not future.done():
        future.set_result(None)


async def wait_readable(fd: int):
    loop = asyncio.get_running_loop()
    ready = loop.create_future()
    try:
        loop.add_reader(fd, _mark_ready, ready)
    except PermissionError:
        # Regular files cannot be polled and never block.
        return

    try:
        await ready
    finally:
        loop.remove_reader(fd)


async def wait_writable(fd: int):
    loop = asyncio.get_running_loop()
    ready = loop.create_future()
    try:
        loop.add_writer(fd, _mark_ready, ready)
    except PermissionError:
        return

    try:
        await ready
    finally:
        loop.remove_writer(fd)


async def _cancel(task: asyncio.Task):
    task.cancel()
    try:
        await task
    except asyncio.CancelledError:
        pass


@dataclasses.dataclass(slots=True)
class ReadinessTasks:
    input_ready: asyncio.Task[None] | None = None
    output_ready: asyncio.Task[None] | None = None
    stop: asyncio.Task[None] | None = None

    async def wait(self, timeout: float | None) -> set[asyncio.Task]:
        tasks: list[asyncio.Task] = []

        if self.input_ready is not None:
            tasks.append(self.input_ready)
        if self.output_ready is not None:
            tasks.append(self.output_ready)
        if self.stop is not None:
            tasks.append(self.stop)

        done_tasks, _ = await asyncio.wait(
            tasks, timeout=timeout, return_when=asyncio.FIRST_COMPLETED
        )
        return done_tasks

    async def cancel_all(self):
        for task in (self.input_ready, self.output_ready, self.stop):
            if task is not None and not task.done():
                await _cancel(task)
        self.input_ready = None
        self.output_ready = None
        self.stop = None


class EventLoop:
    """Multiplexes the input and output endpoints of an ``IODriver``.

    Parameters
    ----------
    driver : IODriver
        Performs the reads and writes.
    shutdown : ShutdownCoordinator
        Source of stop requests. Must be the one the driver was created with.
    report : Callable[[], None], optional
        Called about every ``report_interval`` seconds, and once more when the
        loop finishes.
    report_interval : float
        Seconds between calls to ``report``.
    """

    def __init__(
        self,
        driver: IODriver,
        shutdown: ShutdownCoordinator,
        *,
        report: Callable[[], None] | None = None,
        report_interval: float = Constants.PROGRESS_INTERVAL,
    ):
        self._driver = driver
        self._shutdown = shutdown
        self._report = report
        self._report_interval = report_interval
        self._next_report: float | None = None
        self._tasks = ReadinessTasks()

    @property
    def state(self) -> RunState:
        if self._shutdown.forced or self._driver.output_failed:
            return RunState.DONE

        if not (self._driver.end_of_input or self._shutdown.requested):
            return RunState.RUNNING

        if len(self._driver.queue) > 0:
            return RunState.DRAINING
        return RunState.DONE

    def _timeout(self, now: float) -> float | None:
        if self._next_report is None:
            return None
        return max(0.0, self._next_report - now)

    def _maybe_report(self, now: float, timed_out: bool):
        if self._next_report is None:
            return
        if timed_out or now >= self._next_report:
            self._report()
            self._next_report = now + self._report_interval

    async def _sync_tasks(self):
        tasks = self._tasks
        flow = self._driver.flow()

        if flow.accept_input and tasks.input_ready is None:
            tasks.input_ready = asyncio.create_task(
                wait_readable(self._driver.input_fd)
            )
        elif not flow.accept_input and tasks.input_ready is not None:
            if tasks.input_ready.done():
                self._check_readiness(tasks.input_ready, "input")
            await _cancel(tasks.input_ready)
            tasks.input_ready = None

        if flow.output_pending and tasks.output_ready is None:
            tasks.output_ready = asyncio.create_task(
                wait_writable(self._driver.output_fd)
            )
        elif not flow.output_pending and tasks.output_ready is not None:
            if tasks.output_ready.done():
                self._check_readiness(tasks.output_ready, "output")
            await _cancel(tasks.output_ready)
            tasks.output_ready = None

        if tasks.stop is None:
            if self._shutdown.requested:
                tasks.stop = asyncio.create_task(self._shutdown.wait_forced())
            else:
                tasks.stop = asyncio.create_task(self._shutdown.wait_requested())

    async def run(self) -> RunState:
        loop = asyncio.get_running_loop()
        tasks = self._tasks

        if self._report is not None:
            self._next_report = loop.time() + self._report_interval

        try:
            while (state := self.state) is not RunState.DONE:
                LOGGER.debug(
                    "Loop step in state %s, %d bytes in %d chunks.",
                    state.name,
                    self._driver.queue.total_buffered,
                    len(self._driver.queue),
                )

                await self._sync_tasks()
                done_tasks = await tasks.wait(self._timeout(loop.time()))
                self._maybe_report(loop.time(), timed_out=not done_tasks)

                if tasks.stop in done_tasks:
                    tasks.stop = None
                    continue

                flow = self._driver.flow()

                if tasks.input_ready in done_tasks:
                    ready, tasks.input_ready = tasks.input_ready, None
                    self._check_readiness(ready, "input")
                    if flow.accept_input:
                        self._driver.do_read()

                if tasks.output_ready in done_tasks:
                    ready, tasks.output_ready = tasks.output_ready, None
                    self._check_readiness(ready, "output")
                    self._driver.do_write()

        finally:
            await tasks.cancel_all()
            if self._report is not None:
                self._report()

        LOGGER.info(
            "Finished with %d bytes read and %d bytes left undelivered.",
            self._driver.counters.total_read,
            self._driver.queue.total_buffered,
        )
        return RunState.DONE

    @staticmethod
    def _check_readiness(task: asyncio.Task, name: str):
        error = task.exception()
        if error is not None:
            raise FatalError(f"Waiting for {name} readiness failed: {error}.") from error
