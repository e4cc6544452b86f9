"""Shared logging configuration helpers for the pendant CLI.

Records emitted while a photo is being processed carry that photo's name,
so log lines of concurrent pipeline runs can be told apart.
"""

from __future__ import annotations

import logging
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterable, Iterator

LOG_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "critical": logging.CRITICAL,
}

LOG_LEVEL_CHOICES: Iterable[str] = tuple(LOG_LEVELS.keys())

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s%(photo)s: %(message)s"

# Libraries that log every request or plugin load at DEBUG
NOISY_LOGGERS = ("PIL", "urllib3", "asyncio")

current_photo: ContextVar[str | None] = ContextVar("current_photo", default=None)


class PhotoContextFilter(logging.Filter):
    """Adds ``record.photo`` (" [name]" or "") from the current photo context."""

    def filter(self, record: logging.LogRecord) -> bool:
        name = current_photo.get()
        record.photo = f" [{name}]" if name else ""
        return True


@contextmanager
def photo_context(name: str) -> Iterator[None]:
    """Tag log records emitted inside the block with a photo name.

    Worker threads started through asyncio.to_thread inherit the tag.
    """
    token = current_photo.set(name)
    try:
        yield
    finally:
        current_photo.reset(token)


def add_logging_args(parser) -> None:
    """Add --log-level / -v / -q options to an argparse parser."""
    parser.add_argument(
        "--log-level",
        choices=LOG_LEVEL_CHOICES,
        help="Set log verbosity (debug, info, warning, error, critical)",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Increase log verbosity (use -vv to include library debug output)",
    )
    parser.add_argument(
        "-q", "--quiet",
        action="count",
        default=0,
        help="Reduce log verbosity (use -qq for errors only)",
    )


def resolve_log_level(
    log_level: str | None = None,
    verbose: int = 0,
    quiet: int = 0,
) -> int:
    """Resolve a numeric log level from explicit or modifier flags."""
    if log_level:
        return LOG_LEVELS[log_level.lower()]

    offset = verbose - quiet
    if offset >= 1:
        return logging.DEBUG
    if offset == 0:
        return logging.INFO
    if offset == -1:
        return logging.WARNING
    return logging.ERROR


def quiet_library_loggers(level: int, verbose: int = 0) -> None:
    """Keep third-party loggers at WARNING unless -vv was requested."""
    library_level = level if verbose >= 2 else max(level, logging.WARNING)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(library_level)


def configure_logging(
    log_level: str | None = None,
    verbose: int = 0,
    quiet: int = 0,
) -> int:
    """Configure root logging and return the active level."""
    level = resolve_log_level(log_level=log_level, verbose=verbose, quiet=quiet)
    root_logger = logging.getLogger()
    quiet_library_loggers(level, verbose)

    if root_logger.handlers:
        root_logger.setLevel(level)
        for handler in root_logger.handlers:
            handler.setLevel(level)
        return level

    handler = logging.StreamHandler(sys.stderr)
    handler.addFilter(PhotoContextFilter())
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%H:%M:%S"))
    logging.basicConfig(level=level, handlers=[handler])
    return level
