import logging
import os


def get_logger(name: str) -> logging.Logger:
    logger = logging.getLogger(name)
    # stdout carries the data stream, so StreamHandler's default of stderr matters here.
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s"))
        logger.addHandler(handler)
    logger.setLevel(os.environ.get("PIPEBUFFER_LOG_LEVEL", "WARNING").upper())
    return logger
