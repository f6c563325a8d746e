import logging
import time
from contextlib import contextmanager


def configure_logging(level: int | str = logging.INFO) -> None:
    """
    Configure the root logger with a basic format.
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s"
    )


def get_logger(name: str) -> logging.Logger:
    """
    Return a named logger (after logging is configured).
    """
    return logging.getLogger(name)


@contextmanager
def log_slow_operation(logger: logging.Logger, operation: str, threshold_ms: float):
    """Warn when the wrapped block takes longer than threshold_ms."""
    start = time.perf_counter()
    try:
        yield
    finally:
        elapsed_ms = (time.perf_counter() - start) * 1000
        if elapsed_ms > threshold_ms:
            logger.warning("Slow operation %s took %.1f ms", operation, elapsed_ms)
        else:
            logger.debug("%s took %.1f ms", operation, elapsed_ms)
