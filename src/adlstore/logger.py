"""Module containing utilities for logging, along with the package logger."""

import logging
from typing import Any, Optional


def _get_logger(name: Optional[str] = "adlstore") -> logging.Logger:
    logger = logging.getLogger(name)

    # Library code stays silent unless the application configures logging.
    logger.addHandler(logging.NullHandler())

    return logger


def enable_stderr_logging(level: int = logging.INFO) -> logging.Handler:
    """Attach a stderr handler to the package logger and return it."""
    stderr_output = logging.StreamHandler()

    formatter = logging.Formatter("%(asctime)s - %(levelname)s - %(message)s")
    stderr_output.setFormatter(formatter)

    log.addHandler(stderr_output)
    log.setLevel(level)

    return stderr_output


def summarize(obj: Any, max_length: int = 255) -> str:
    """Return a stringified representation of the object up to the given length."""
    stringified_obj = str(obj)

    if len(stringified_obj) <= max_length:
        return stringified_obj
    else:
        return stringified_obj[: max_length - 3] + "..."


# Default logger
log = _get_logger()
