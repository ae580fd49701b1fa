import asyncio
import contextlib
import os
import sys
from importlib import metadata

from pipebuffer.buffer import BufferQueue
from pipebuffer.common import Constants, FatalError
from pipebuffer.config import Args, parse_args
from pipebuffer.driver import IODriver
from pipebuffer.logging import get_logger
from pipebuffer.loop import EventLoop
from pipebuffer.progress import ProgressReporter
from pipebuffer.shutdown import ShutdownCoordinator

LOGGER = get_logger(__name__)


def version_string() -> str:
    try:
        version = metadata.version("pipebuffer")
    except metadata.PackageNotFoundError:
        version = "unknown"
    return f"pipebuffer {version}"


@contextlib.contextmanager
def nonblocking(fd: int, name: str):
    try:
        was_blocking = os.get_blocking(fd)
        os.set_blocking(fd, False)
    except OSError as e:
        raise FatalError(f"Could not set O_NONBLOCK on {name}: {e.strerror}") from e

    try:
        yield fd
    finally:
        if was_blocking:
            with contextlib.suppress(OSError):
                os.set_blocking(fd, True)


def exit_status(driver: IODriver) -> int:
    undelivered = driver.queue.total_buffered
    if undelivered > 0:
        LOGGER.warning("Exiting with %d bytes undelivered.", undelivered)
        return Constants.EXIT_FATAL
    if driver.input_error is not None:
        return Constants.EXIT_INPUT_ERROR
    return Constants.EXIT_OK


async def main(args: Args, input_fd: int, output_fd: int) -> int:
    shutdown = ShutdownCoordinator()
    shutdown.install(asyncio.get_running_loop())

    driver = IODriver(
        input_fd,
        output_fd,
        BufferQueue(args.read_size),
        ceiling=args.max_queue,
        read_size=args.read_size,
        shutdown=shutdown,
    )

    try:
        if args.progress:
            with ProgressReporter(
                driver.snapshot, human_readable=args.human_readable
            ) as reporter:
                await EventLoop(driver, shutdown, report=reporter.report).run()
        else:
            await EventLoop(driver, shutdown).run()
    finally:
        shutdown.uninstall()

    return exit_status(driver)


def run():
    args = parse_args()

    if args.version:
        print(version_string())
        sys.exit(Constants.EXIT_OK)

    input_fd = sys.stdin.fileno()
    output_fd = sys.stdout.fileno()

    try:
        with nonblocking(input_fd, "STDIN"), nonblocking(output_fd, "STDOUT"):
            status = asyncio.run(main(args, input_fd, output_fd))
    except FatalError as e:
        LOGGER.error(e.message)
        sys.exit(e.exit_code)

    sys.exit(status)


if __name__ == "__main__":
    run()
