from __future__ import annotations

import threading
from pathlib import Path
from typing import Callable, Optional, Set

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from .logging_utils import get_logger, snapshot_context
from .state import is_qualifying_name

SETTLE_DELAY_S = 1.0
logger = get_logger(__name__)


class _SettleHandler(FileSystemEventHandler):
    def __init__(self, watcher: "EventWatcher") -> None:
        super().__init__()
        self._watcher = watcher

    def on_created(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._watcher.schedule(event.src_path)

    def on_moved(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._watcher.schedule(event.dest_path)


class EventWatcher:
    """Best-effort native change notifications for the source directory.

    Qualifying create/rename events are turned into deferred ingestions that
    fire after the settle delay. Mounted Windows drives often deliver no
    events at all, so nothing here is required for correctness.
    """

    def __init__(
        self,
        source_dir: Path,
        ingest: Callable[[Path], object],
        settle_delay_s: float = SETTLE_DELAY_S,
        observer_factory: Callable[[], object] = Observer,
    ) -> None:
        self.source_dir = source_dir
        self.settle_delay_s = settle_delay_s
        self._ingest = ingest
        self._observer_factory = observer_factory
        self._observer = None
        self._lock = threading.Lock()
        self._pending: Set[threading.Timer] = set()
        self._running: Set[threading.Timer] = set()
        self._closed = True
        self._context = snapshot_context()

    @property
    def active(self) -> bool:
        return self._observer is not None

    def pending_count(self) -> int:
        with self._lock:
            return len(self._pending)

    def start(self) -> bool:
        if self._observer is not None:
            return True
        self._closed = False
        self._context = snapshot_context()
        handler = _SettleHandler(self)
        try:
            observer = self._observer_factory()
            observer.schedule(handler, str(self.source_dir), recursive=False)
            observer.start()
        except Exception as exc:
            logger.warning(
                "watcher.unavailable source=%s error=%s", self.source_dir, str(exc)
            )
            return False
        self._observer = observer
        logger.info("watcher.start source=%s", self.source_dir)
        return True

    def schedule(self, raw_path: str | bytes) -> bool:
        if isinstance(raw_path, bytes):
            raw_path = raw_path.decode("utf-8", "surrogateescape")
        name = Path(raw_path).name
        if not is_qualifying_name(name):
            return False
        # Events carry the observer's spelling of the path; rebuild it so the
        # dedup key matches what the scanner produces.
        path = self.source_dir / name
        context = self._context.copy()
        with self._lock:
            if self._closed:
                return False
            timer = threading.Timer(self.settle_delay_s, context.run)
            timer.args = (self._fire, timer, path)
            timer.daemon = True
            self._pending.add(timer)
            timer.start()
        logger.debug("watcher.scheduled path=%s delay_s=%s", path, self.settle_delay_s)
        return True

    def _fire(self, timer: threading.Timer, path: Path) -> None:
        with self._lock:
            if timer not in self._pending:
                return
            self._pending.discard(timer)
            self._running.add(timer)
        try:
            self._ingest(path)
        except Exception as exc:  # pragma: no cover - timer threads must not die loudly
            logger.exception("watcher.ingest_failed path=%s error=%s", path, str(exc))
        finally:
            with self._lock:
                self._running.discard(timer)

    def stop(self, timeout: Optional[float] = None) -> None:
        """Cancel deferred ingestions, wait for ones already running, then
        close the subscription."""
        with self._lock:
            self._closed = True
            pending = list(self._pending)
            self._pending.clear()
            running = list(self._running)
        for timer in pending:
            timer.cancel()
        current = threading.current_thread()
        for timer in running:
            if timer is not current:
                timer.join(timeout)

        observer = self._observer
        self._observer = None
        if observer is None:
            return
        try:
            observer.stop()
            observer.join(timeout)
        except Exception as exc:
            logger.warning(
                "watcher.stop_failed source=%s error=%s", self.source_dir, str(exc)
            )
        logger.info("watcher.stop source=%s", self.source_dir)
