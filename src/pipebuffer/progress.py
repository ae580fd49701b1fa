import sys
from typing import Callable, TextIO

from tqdm import tqdm

from .driver import Snapshot


def humanise_size(size: int) -> str:
    return tqdm.format_sizeof(size, divisor=1024)


def format_progress_line(snapshot: Snapshot, human_readable: bool = False) -> str:
    if human_readable:
        total_read = f"{humanise_size(snapshot.total_read):>6}"
        total_buffered = f"{humanise_size(snapshot.total_buffered):>6}"
    else:
        total_read = f"{snapshot.total_read:14d}"
        total_buffered = f"{snapshot.total_buffered:14d}"

    return (
        f"Read: {total_read}, "
        f"Buffer: {total_buffered} {snapshot.percent_full:3d}% ({snapshot.depth}), "
        f"Reads: {snapshot.read_count:14d}, Writes: {snapshot.write_count:14d}"
    )


class ProgressReporter:
    """Keeps a single progress line up to date on stderr."""

    def __init__(
        self,
        source: Callable[[], Snapshot],
        *,
        human_readable: bool = False,
        file: TextIO | None = None,
    ):
        self._source = source
        self._human_readable = human_readable
        self._bar = tqdm(
            bar_format="{desc}",
            file=file if file is not None else sys.stderr,
            leave=True,
        )

    def report(self):
        line = format_progress_line(self._source(), self._human_readable)
        self._bar.set_description_str(line, refresh=True)

    def close(self):
        self._bar.close()

    def __enter__(self) -> "ProgressReporter":
        return self

    def __exit__(self, *exc_info):
        self.close()
