"""Tests for the shutdown coordinator."""

import asyncio
import signal

import pytest

from pipebuffer.shutdown import ShutdownCoordinator


class TestRequests:
    """Verify the request and force states."""

    def test_starts_idle(self) -> None:
        """Nothing is requested before the first signal."""
        shutdown = ShutdownCoordinator()
        assert not shutdown.requested
        assert not shutdown.forced

    def test_first_request(self) -> None:
        """The first request asks for a graceful stop."""
        shutdown = ShutdownCoordinator()
        shutdown.request(signal.SIGTERM)
        assert shutdown.requested
        assert not shutdown.forced

    def test_second_request_forces(self) -> None:
        """A repeated request forces the stop."""
        shutdown = ShutdownCoordinator()
        shutdown.request(signal.SIGINT)
        shutdown.request(signal.SIGINT)
        assert shutdown.requested
        assert shutdown.forced

    @pytest.mark.anyio
    async def test_waiters_wake(self) -> None:
        """Waiting tasks are released by the matching request."""
        shutdown = ShutdownCoordinator()
        requested = asyncio.create_task(shutdown.wait_requested())
        forced = asyncio.create_task(shutdown.wait_forced())
        await asyncio.sleep(0)

        shutdown.request()
        await asyncio.wait_for(requested, 1)
        assert not forced.done()

        shutdown.request()
        await asyncio.wait_for(forced, 1)


class TestSignals:
    """Verify delivery of real signals into the running loop."""

    @pytest.mark.anyio
    async def test_signal_sets_request(self) -> None:
        """SIGHUP delivered to the process becomes a stop request."""
        shutdown = ShutdownCoordinator()
        shutdown.install(asyncio.get_running_loop())
        try:
            signal.raise_signal(signal.SIGHUP)
            await asyncio.wait_for(shutdown.wait_requested(), 1)
            assert not shutdown.forced

            signal.raise_signal(signal.SIGTERM)
            await asyncio.wait_for(shutdown.wait_forced(), 1)
        finally:
            shutdown.uninstall()

    @pytest.mark.anyio
    async def test_install_ignores_sigpipe(self) -> None:
        """Broken pipes surface as write errors instead of killing the process."""
        shutdown = ShutdownCoordinator()
        shutdown.install(asyncio.get_running_loop())
        try:
            assert signal.getsignal(signal.SIGPIPE) == signal.SIG_IGN
        finally:
            shutdown.uninstall()

    @pytest.mark.anyio
    async def test_uninstall_restores_defaults(self) -> None:
        """Removing the handlers gives the signals back to Python."""
        loop = asyncio.get_running_loop()
        shutdown = ShutdownCoordinator()
        shutdown.install(loop)
        shutdown.uninstall()

        assert signal.getsignal(signal.SIGINT) is signal.default_int_handler
        shutdown.uninstall()
