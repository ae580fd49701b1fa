import argparse
import re
import sys
from typing import NoReturn

import tap

from .common import Constants


_SIZE_PATTERN = re.compile(r"\s*(0[xX][0-9a-fA-F]+|\d+)([kMGT]?)")
_SIZE_SHIFTS = {"": 0, "k": 10, "M": 20, "G": 30, "T": 40}


def parse_size(text: str) -> int:
    """Parses a byte count such as ``4096``, ``0x1000``, ``64k`` or ``2G``.

    Suffixes are powers of 1024.
    """

    match = _SIZE_PATTERN.fullmatch(text)
    if match is None:
        raise argparse.ArgumentTypeError(f"invalid size: '{text}'")

    digits, suffix = match.groups()
    base = 16 if digits[:2] in ("0x", "0X") else 10
    return int(digits, base) << _SIZE_SHIFTS[suffix]


class Args(tap.Tap):
    """Copy STDIN to STDOUT, storing up to a fixed number of bytes.

    In the event of a read error or end of input, this waits until all stored
    bytes have been output before exiting. No attempt is made to line-buffer or
    coalesce the input.
    """

    max_queue: int = 0
    """Maximum amount of data to store. Accepts suffixes k, M, G, T for powers of
    1024. Required unless using --version."""

    read_size: int = Constants.DEFAULT_READ_SIZE
    """Maximum amount of data to read in one go. Accepts the same suffixes."""

    progress: bool = False
    """Show a progress line on STDERR."""

    human_readable: bool = False
    """Show progress sizes in human-readable format (e.g. 1k, 23M)."""

    version: bool = False
    """Show version information."""

    def configure(self):
        self.add_argument("-m", "--max_queue", type=parse_size)
        self.add_argument("-r", "--read_size", type=parse_size)
        self.add_argument("-p", "--progress")
        self.add_argument("-s", "--human_readable")
        self.add_argument("-V", "--version")

    def process_args(self):
        if self.version:
            return
        if self.max_queue <= 0:
            self.error("a positive --max-queue is required")
        if self.read_size <= 0:
            self.error("--read-size must be positive")

    def error(self, message: str) -> NoReturn:
        self.print_usage(sys.stderr)
        self.exit(Constants.EXIT_FATAL, f"{self.prog}: error: {message}\n")


def parse_args(argv: list[str] | None = None) -> Args:
    return Args(underscores_to_dashes=True).parse_args(argv)
