"""Structured logging setup.

Consistent logging format across all modules, with the scan target stamped
on every record. The engine is a library, so nothing here runs at import
time; the embedding service (or the CLI) calls setup_logging() once.

The target lives in a ContextVar, so concurrent scans in one event loop
each see their own target in the log lines.
"""

import logging
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from pathlib import Path
from typing import Optional

LOG_FORMAT = '%(asctime)s | %(levelname)-8s | %(name)s | %(target)s | %(message)s'

_current_target: ContextVar[str] = ContextVar('scan_target', default='-')


class TargetContextFilter(logging.Filter):
    """Adds `record.target` (the domain or host being scanned, or "-")."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.target = _current_target.get()
        return True


@contextmanager
def log_target(target: str):
    """Tag log records emitted inside the block with target."""
    token = _current_target.set(target)
    try:
        yield
    finally:
        _current_target.reset(token)


def current_target() -> str:
    return _current_target.get()


def setup_logging(log_file: Optional[Path] = None, level: int = logging.INFO):
    """Configure logging for the recon engine.

    Logs to stderr and, if log_file is given, to that file as well.
    """
    formatter = logging.Formatter(LOG_FORMAT, datefmt='%Y-%m-%d %H:%M:%S')
    context = TargetContextFilter()

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    handlers = [logging.StreamHandler(sys.stderr)]
    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))

    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        handler.addFilter(context)
        root_logger.addHandler(handler)

    # aiohttp logs every connection at DEBUG
    logging.getLogger('aiohttp').setLevel(logging.WARNING)
    logging.getLogger('asyncio').setLevel(logging.WARNING)
