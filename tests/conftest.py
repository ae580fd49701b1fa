"""Pytest configuration and shared fixtures."""

import os

import pytest
from hypothesis import settings

settings.register_profile("no_deadline", deadline=None)
settings.load_profile("no_deadline")


@pytest.fixture
def anyio_backend():
    return "asyncio"


class Pipe:
    """An ``os.pipe()`` pair whose ends are closed when the test finishes."""

    def __init__(self):
        self.read_fd, self.write_fd = os.pipe()

    def close_read(self):
        if self.read_fd is not None:
            os.close(self.read_fd)
            self.read_fd = None

    def close_write(self):
        if self.write_fd is not None:
            os.close(self.write_fd)
            self.write_fd = None

    def close(self):
        self.close_read()
        self.close_write()

    def drain(self) -> bytes:
        """Read everything currently available without blocking."""
        os.set_blocking(self.read_fd, False)
        data = bytearray()
        while True:
            try:
                block = os.read(self.read_fd, 65536)
            except BlockingIOError:
                break
            if not block:
                break
            data += block
        return bytes(data)

    def fill(self) -> int:
        """Write until the pipe is full, returning the number of bytes written."""
        os.set_blocking(self.write_fd, False)
        total = 0
        while True:
            try:
                total += os.write(self.write_fd, b"\0" * 65536)
            except BlockingIOError:
                return total


@pytest.fixture
def make_pipe():
    pipes: list[Pipe] = []

    def factory() -> Pipe:
        pipe = Pipe()
        pipes.append(pipe)
        return pipe

    yield factory

    for pipe in pipes:
        pipe.close()
