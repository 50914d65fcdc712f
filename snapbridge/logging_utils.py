from __future__ import annotations

import contextvars
import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] [session=%(session_id)s] %(message)s"
# Observer internals log every inotify event at DEBUG.
QUIET_LOGGERS = ("watchdog",)

_session_id_var: contextvars.ContextVar[str] = contextvars.ContextVar(
    "snapbridge_session_id", default="-"
)


class SessionIdFilter(logging.Filter):
    """Stamp records with the session id bound in the emitting context."""

    def filter(self, record: logging.LogRecord) -> bool:
        if getattr(record, "session_id", None) is None:
            record.session_id = _session_id_var.get()
        return True


def _install_filter(handler: logging.Handler) -> None:
    if not any(isinstance(f, SessionIdFilter) for f in handler.filters):
        handler.addFilter(SessionIdFilter())


def _has_file_handler(root: logging.Logger, path: Path) -> bool:
    return any(
        isinstance(handler, logging.FileHandler)
        and Path(handler.baseFilename) == path
        for handler in root.handlers
    )


def configure_logging(level: str = "INFO", log_file: Optional[str] = None) -> None:
    """Attach console (and optionally file) output to the root logger.

    Safe to call repeatedly: handlers are only added once and every root
    handler ends up with exactly one SessionIdFilter.
    """
    root = logging.getLogger()
    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO

    formatter = logging.Formatter(LOG_FORMAT)
    if not root.handlers:
        console = logging.StreamHandler()
        console.setFormatter(formatter)
        root.addHandler(console)
    if log_file:
        path = Path(log_file).expanduser().resolve()
        if not _has_file_handler(root, path):
            path.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(path, encoding="utf-8")
            file_handler.setFormatter(formatter)
            root.addHandler(file_handler)
    for handler in root.handlers:
        _install_filter(handler)

    root.setLevel(numeric_level)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(numeric_level, logging.INFO))


@contextmanager
def bound_session(session_id: str) -> Iterator[None]:
    token = _session_id_var.set(session_id)
    try:
        yield
    finally:
        _session_id_var.reset(token)


def snapshot_context() -> contextvars.Context:
    """Copy of the current context, for worker threads that should log under
    the session id bound here."""
    return contextvars.copy_context()


def get_session_id() -> str:
    return _session_id_var.get()


def get_logger(name: Optional[str] = None) -> logging.Logger:
    return logging.getLogger(name)
