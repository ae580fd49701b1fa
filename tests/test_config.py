"""Tests for command-line configuration."""

import argparse

import pytest

from pipebuffer.common import Constants
from pipebuffer.config import parse_args, parse_size


class TestParseSize:
    """Verify byte counts with optional binary suffixes."""

    @pytest.mark.parametrize(
        ("text", "expected"),
        [
            ("0", 0),
            ("4096", 4096),
            ("0x1000", 4096),
            ("1k", 1024),
            ("64k", 65536),
            ("2M", 2 << 20),
            ("3G", 3 << 30),
            ("1T", 1 << 40),
        ],
    )
    def test_valid(self, text, expected) -> None:
        """Plain, hexadecimal and suffixed sizes are accepted."""
        assert parse_size(text) == expected

    @pytest.mark.parametrize("text", ["", "k", "12q", "1.5M", "-1", "1kk", "1K"])
    def test_invalid(self, text) -> None:
        """Anything else is rejected."""
        with pytest.raises(argparse.ArgumentTypeError):
            parse_size(text)


class TestArgs:
    """Verify option parsing and validation."""

    def test_defaults(self) -> None:
        """Only the queue ceiling is required."""
        args = parse_args(["--max-queue", "1M"])
        assert args.max_queue == 1 << 20
        assert args.read_size == Constants.DEFAULT_READ_SIZE
        assert not args.progress
        assert not args.human_readable
        assert not args.version

    def test_short_options(self) -> None:
        """Every option has a short form."""
        args = parse_args(["-m", "10k", "-r", "4k", "-p", "-s"])
        assert args.max_queue == 10 << 10
        assert args.read_size == 4 << 10
        assert args.progress
        assert args.human_readable

    def test_missing_ceiling(self, capsys) -> None:
        """Without a ceiling the program refuses to start."""
        with pytest.raises(SystemExit) as info:
            parse_args([])
        assert info.value.code == Constants.EXIT_FATAL
        assert "max-queue" in capsys.readouterr().err

    def test_zero_read_size(self) -> None:
        """A zero read size is refused."""
        with pytest.raises(SystemExit) as info:
            parse_args(["-m", "1k", "-r", "0"])
        assert info.value.code == Constants.EXIT_FATAL

    def test_invalid_size(self, capsys) -> None:
        """A malformed size prints usage and fails."""
        with pytest.raises(SystemExit) as info:
            parse_args(["-m", "lots"])
        assert info.value.code == Constants.EXIT_FATAL
        assert "usage" in capsys.readouterr().err

    def test_version_needs_no_ceiling(self) -> None:
        """Asking for the version skips validation."""
        args = parse_args(["-V"])
        assert args.version
