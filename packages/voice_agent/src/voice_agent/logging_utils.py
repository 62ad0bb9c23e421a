"""Logging helpers for run correlation.

Every loop invocation executes inside a run context. The filter below stamps
the active run id onto each log record so interleaved foreground and
background runs can be told apart in a shared log stream.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from contextvars import ContextVar
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator

LOG_FORMAT = "%(asctime)s %(levelname)s [%(run_id)s] %(name)s: %(message)s"

_current_run_id: ContextVar[str | None] = ContextVar("voice_agent_run_id", default=None)


def get_current_run_id() -> str | None:
    """Return the run id bound to the current execution context."""
    return _current_run_id.get()


@contextmanager
def run_context(run_id: str) -> Iterator[str]:
    """Bind a run id for the duration of the block."""
    token = _current_run_id.set(run_id)
    try:
        yield run_id
    finally:
        _current_run_id.reset(token)


class RunContextFilter(logging.Filter):
    """Attach run identifiers to log records when available."""

    def filter(self, record: logging.LogRecord) -> bool:
        """Inject run_id into the log record."""
        record.run_id = get_current_run_id() or "-"
        return True


def install_run_log_filter(loggers: Iterable[logging.Logger] | None = None) -> None:
    """Install run context filters for structured logging.

    Args:
        loggers: Optional iterable of loggers to attach the filter to. Defaults to root logger.
    """
    targets = list(loggers) if loggers is not None else [logging.getLogger()]
    for logger in targets:
        if any(isinstance(flt, RunContextFilter) for flt in logger.filters):
            continue
        logger.addFilter(RunContextFilter())


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging with run correlation."""
    handler = logging.StreamHandler()
    handler.addFilter(RunContextFilter())
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(level.upper())
    install_run_log_filter()
