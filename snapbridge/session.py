from __future__ import annotations

import shutil
import threading
import time
from pathlib import Path
from typing import Callable, Optional
from uuid import uuid4

from watchdog.observers import Observer

from .config import ConfigurationError, ensure_destination_dir
from .logging_utils import bound_session, get_logger
from .pipeline import IngestionPipeline, IngestResult
from .scanner import PollScanner, find_newest_candidate
from .sinks import LoggingNotifier, LoggingPublisher, Notifier, Publisher
from .state import SessionState
from .watcher import SETTLE_DELAY_S, EventWatcher

DEFAULT_POLL_INTERVAL_MS = 500
STOP_JOIN_TIMEOUT_S = 5.0
logger = get_logger(__name__)


class MonitoringSession:
    """One monitoring run over a source directory.

    Owns the shared state, both detectors and the pipeline. start() reports
    configuration problems through the notifier and returns False; everything
    after a successful start is contained per file and never raised.
    """

    def __init__(
        self,
        publisher: Optional[Publisher] = None,
        notifier: Optional[Notifier] = None,
        clock: Callable[[], float] = time.time,
        observer_factory: Callable[[], object] = Observer,
        settle_delay_s: float = SETTLE_DELAY_S,
        auto_cleanup: bool = False,
    ) -> None:
        self.publisher = publisher or LoggingPublisher()
        self.notifier = notifier or LoggingNotifier()
        self.state = SessionState()
        self.session_id = uuid4().hex[:8]
        self.auto_cleanup = auto_cleanup
        self._clock = clock
        self._observer_factory = observer_factory
        self._settle_delay_s = settle_delay_s
        self._lifecycle_lock = threading.Lock()
        self.source_dir: Optional[Path] = None
        self.dest_dir: Optional[Path] = None
        self.pipeline: Optional[IngestionPipeline] = None
        self.scanner: Optional[PollScanner] = None
        self.watcher: Optional[EventWatcher] = None

    @property
    def running(self) -> bool:
        return self.scanner is not None

    @property
    def last_ingested_path(self) -> Optional[Path]:
        return self.state.last_ingested_path

    def start(
        self,
        source_dir: str | Path,
        dest_dir: str | Path,
        poll_interval_ms: int = DEFAULT_POLL_INTERVAL_MS,
    ) -> bool:
        with bound_session(self.session_id), self._lifecycle_lock:
            if self.scanner is not None:
                logger.warning("session.already_running source=%s", self.source_dir)
                return True
            try:
                source, dest = self._validate(source_dir, dest_dir, poll_interval_ms)
            except ConfigurationError as exc:
                logger.error("session.start_failed error=%s", str(exc))
                self._notify_error(f"Screenshot monitoring could not start: {exc}")
                return False

            self.source_dir = source
            self.dest_dir = dest
            self.state.reset(watermark=self._clock())
            self.pipeline = IngestionPipeline(
                self.state, dest, self.publisher, self.notifier
            )
            self.watcher = EventWatcher(
                source,
                self.pipeline.ingest,
                settle_delay_s=self._settle_delay_s,
                observer_factory=self._observer_factory,
            )
            self.scanner = PollScanner(
                source,
                self.state,
                self.pipeline.ingest,
                interval_s=poll_interval_ms / 1000.0,
            )
            if not self.watcher.start():
                logger.warning(
                    "session.watcher_unavailable source=%s fallback=polling", source
                )
            self.scanner.start()
            logger.info(
                "session.start source=%s dest=%s poll_interval_ms=%s",
                source,
                dest,
                poll_interval_ms,
            )
        self._notify_info("Screenshot monitoring active")
        return True

    def _validate(
        self, source_dir: str | Path, dest_dir: str | Path, poll_interval_ms: int
    ) -> tuple[Path, Path]:
        if not str(source_dir).strip():
            raise ConfigurationError("source directory is not configured")
        if not str(dest_dir).strip():
            raise ConfigurationError("destination directory is not configured")
        if not isinstance(poll_interval_ms, int) or poll_interval_ms <= 0:
            raise ConfigurationError(
                f"poll interval must be a positive integer (got {poll_interval_ms!r})"
            )
        source = Path(source_dir).expanduser().resolve()
        if not source.exists():
            raise ConfigurationError(f"source directory not found: {source}")
        if not source.is_dir():
            raise ConfigurationError(f"source path is not a directory: {source}")
        dest = ensure_destination_dir(Path(dest_dir).expanduser().resolve())
        return source, dest

    def stop(self) -> None:
        with bound_session(self.session_id), self._lifecycle_lock:
            watcher, scanner = self.watcher, self.scanner
            self.watcher = None
            self.scanner = None
            self.pipeline = None
            if watcher is not None:
                watcher.stop(STOP_JOIN_TIMEOUT_S)
            if scanner is not None:
                scanner.stop(STOP_JOIN_TIMEOUT_S)
            # Both detectors have drained their in-flight ingestions by now.
            self.state.reset()
            if scanner is not None:
                self._cleanup_destination()
                logger.info("session.stop source=%s", self.source_dir)

    def _cleanup_destination(self) -> None:
        if not self.auto_cleanup or self.dest_dir is None:
            return
        if not self.dest_dir.exists():
            return
        try:
            shutil.rmtree(self.dest_dir)
            logger.info("session.cleanup_removed dest=%s", self.dest_dir)
        except OSError as exc:
            logger.warning(
                "session.cleanup_failed dest=%s error=%s", self.dest_dir, str(exc)
            )

    def capture_latest(self) -> Optional[IngestResult]:
        """Ingest the newest qualifying file now, ignoring the watermark."""
        pipeline, source = self.pipeline, self.source_dir
        if pipeline is None or source is None:
            self._notify_error("Screenshot monitoring is not running")
            return None
        return capture_newest(source, pipeline)

    def __enter__(self) -> "MonitoringSession":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()

    def _notify_info(self, message: str) -> None:
        try:
            self.notifier.info(message)
        except Exception as exc:
            logger.warning("session.notify_failed error=%s", str(exc))

    def _notify_error(self, message: str) -> None:
        try:
            self.notifier.error(message)
        except Exception as exc:
            logger.warning("session.notify_failed error=%s", str(exc))


def capture_newest(source_dir: Path, pipeline: IngestionPipeline) -> Optional[IngestResult]:
    """Send the newest qualifying file in source_dir through the pipeline.

    Missing or unreadable directories and empty directories are reported to
    the pipeline's notifier and yield None.
    """
    try:
        candidate = find_newest_candidate(source_dir, float("-inf"))
    except OSError as exc:
        pipeline.report_error(f"Screenshots directory not readable: {exc}")
        return None
    if candidate is None:
        pipeline.report_info(f"No screenshots found in {source_dir}")
        return None
    logger.info("capture.latest path=%s mtime=%s", candidate.path, candidate.mtime)
    return pipeline.ingest(candidate.path)
