import asyncio
import signal

from .logging import get_logger


LOGGER = get_logger(__name__)


class ShutdownCoordinator:
    """Turns termination signals into a cooperative stop request.

    The first signal asks the event loop to stop accepting input and to finish
    once the queued data has been written. Any further signal forces it to finish
    straight away.
    """

    SIGNALS = (signal.SIGINT, signal.SIGHUP, signal.SIGTERM)

    def __init__(self):
        self._requested = asyncio.Event()
        self._forced = asyncio.Event()
        self._installed_on: asyncio.AbstractEventLoop | None = None

    @property
    def requested(self) -> bool:
        return self._requested.is_set()

    @property
    def forced(self) -> bool:
        return self._forced.is_set()

    def request(self, signum: int | None = None):
        name = signal.Signals(signum).name if signum is not None else "request"

        if self._requested.is_set():
            LOGGER.warning("Received %s again, abandoning queued data.", name)
            self._forced.set()
        else:
            LOGGER.info("Received %s, flushing queued data before exiting.", name)
            self._requested.set()

    async def wait_requested(self):
        await self._requested.wait()

    async def wait_forced(self):
        await self._forced.wait()

    def install(self, loop: asyncio.AbstractEventLoop):
        # Writes to a closed peer then fail with BrokenPipeError instead of
        # killing the process.
        signal.signal(signal.SIGPIPE, signal.SIG_IGN)

        for signum in self.SIGNALS:
            loop.add_signal_handler(signum, self.request, signum)
        self._installed_on = loop

    def uninstall(self):
        if self._installed_on is None:
            return

        for signum in self.SIGNALS:
            self._installed_on.remove_signal_handler(signum)
        self._installed_on = None
