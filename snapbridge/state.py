from __future__ import annotations

import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Set

IMAGE_EXTENSIONS = (".png", ".jpg", ".jpeg")


def is_qualifying_name(name: str) -> bool:
    # Case-sensitive on purpose: "shot.PNG" does not qualify.
    return name.endswith(IMAGE_EXTENSIONS)


@dataclass(frozen=True)
class Candidate:
    path: Path
    mtime: float


class SessionState:
    """Mutable state shared by both detectors and the ingestion pipeline.

    All reads and writes go through one lock. The watermark only moves
    forward, the processed set only grows, and both are dropped together
    with the last ingested path on reset().
    """

    def __init__(self, watermark: float = 0.0) -> None:
        self._lock = threading.Lock()
        self._watermark = watermark
        self._processed: Set[str] = set()
        self._last_ingested_path: Optional[Path] = None

    @property
    def watermark(self) -> float:
        with self._lock:
            return self._watermark

    @property
    def last_ingested_path(self) -> Optional[Path]:
        with self._lock:
            return self._last_ingested_path

    def advance_watermark(self, mtime: float) -> bool:
        with self._lock:
            if mtime <= self._watermark:
                return False
            self._watermark = mtime
            return True

    def is_processed(self, path: Path) -> bool:
        with self._lock:
            return str(path) in self._processed

    def claim(self, path: Path) -> bool:
        """Atomically check membership and insert; True if this caller won."""
        key = str(path)
        with self._lock:
            if key in self._processed:
                return False
            self._processed.add(key)
            return True

    def record_ingested(self, dest_path: Path) -> None:
        with self._lock:
            self._last_ingested_path = dest_path

    def processed_paths(self) -> Set[str]:
        with self._lock:
            return set(self._processed)

    def reset(self, watermark: float = 0.0) -> None:
        with self._lock:
            self._watermark = watermark
            self._processed.clear()
            self._last_ingested_path = None
