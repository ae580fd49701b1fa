class GenericException(Exception):
    def __init__(self, msg: str):
        super().__init__(msg)
        self._msg = msg

    @property
    def message(self) -> str:
        return self._msg


class FatalError(GenericException):
    """Unrecoverable condition. Buffered but undelivered data is discarded and the
    process exits with ``exit_code``."""

    def __init__(self, msg: str, exit_code: int = 1):
        super().__init__(msg)
        self.exit_code = exit_code


class Constants:

    DEFAULT_READ_SIZE = 65536

    # Queue depth at which old chunks start being inspected for shrinking.
    SHRINK_THRESHOLD = 16

    # Seconds between progress lines.
    PROGRESS_INTERVAL = 1.0

    EXIT_OK = 0
    EXIT_FATAL = 1
    EXIT_ALLOCATION = 2
    EXIT_INPUT_ERROR = 3
