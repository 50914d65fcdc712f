from __future__ import annotations

import os
import threading
from pathlib import Path
from typing import Callable, Optional

from .logging_utils import get_logger, snapshot_context
from .state import Candidate, SessionState, is_qualifying_name

logger = get_logger(__name__)


def find_newest_candidate(source_dir: Path, floor: float) -> Optional[Candidate]:
    """Return the qualifying file with the greatest mtime strictly above floor.

    Single pass over the directory keeping only the running maximum. Entries
    that are not regular files or cannot be stat'ed are skipped. OSError
    from listing the directory itself propagates to the caller.
    """
    newest: Optional[Candidate] = None
    newest_time = floor
    with os.scandir(source_dir) as entries:
        for entry in entries:
            if not is_qualifying_name(entry.name):
                continue
            try:
                if not entry.is_file():
                    continue
                mtime = entry.stat().st_mtime
            except OSError:
                continue
            if mtime > newest_time:
                newest_time = mtime
                newest = Candidate(path=source_dir / entry.name, mtime=mtime)
    return newest


class PollScanner:
    def __init__(
        self,
        source_dir: Path,
        state: SessionState,
        ingest: Callable[[Path], object],
        interval_s: float = 0.5,
    ) -> None:
        if interval_s <= 0:
            raise ValueError("poll interval must be > 0")
        self.source_dir = source_dir
        self.state = state
        self.interval_s = interval_s
        self._ingest = ingest
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def poll_once(self) -> Optional[Candidate]:
        try:
            candidate = find_newest_candidate(self.source_dir, self.state.watermark)
        except OSError as exc:
            logger.warning(
                "scanner.cycle_skipped source=%s error=%s", self.source_dir, str(exc)
            )
            return None
        if candidate is None:
            return None
        # Advance before ingesting so a slow copy is not re-selected next cycle.
        self.state.advance_watermark(candidate.mtime)
        logger.info(
            "scanner.candidate path=%s mtime=%s", candidate.path, candidate.mtime
        )
        self._ingest(candidate.path)
        return candidate

    def _run(self) -> None:
        while not self._stop_event.wait(self.interval_s):
            try:
                self.poll_once()
            except Exception as exc:  # pragma: no cover - keep the poll loop alive
                logger.exception("scanner.cycle_failed error=%s", str(exc))

    def start(self) -> None:
        if self.running:
            return
        self._stop_event.clear()
        context = snapshot_context()
        self._thread = threading.Thread(
            target=context.run,
            args=(self._run,),
            name="snapbridge-poll",
            daemon=True,
        )
        self._thread.start()
        logger.info(
            "scanner.start source=%s interval_s=%s", self.source_dir, self.interval_s
        )

    def stop(self, timeout: Optional[float] = None) -> None:
        self._stop_event.set()
        thread = self._thread
        self._thread = None
        if thread is None:
            return
        # Joining from inside the poll thread would deadlock.
        if thread is not threading.current_thread():
            thread.join(timeout)
        logger.info("scanner.stop source=%s", self.source_dir)
