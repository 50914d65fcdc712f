from __future__ import annotations

import shutil
import stat
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Literal, Optional

from .logging_utils import get_logger
from .sinks import Notifier, Publisher
from .state import SessionState

INGEST_STATUS = Literal["ingested", "duplicate", "not_ready", "failed"]
STATUS_INGESTED: INGEST_STATUS = "ingested"
STATUS_DUPLICATE: INGEST_STATUS = "duplicate"
STATUS_NOT_READY: INGEST_STATUS = "not_ready"
STATUS_FAILED: INGEST_STATUS = "failed"
logger = get_logger(__name__)


class TransferError(RuntimeError):
    pass


@dataclass(frozen=True)
class IngestResult:
    status: INGEST_STATUS
    source_path: Path
    dest_path: Optional[Path] = None
    error: Optional[str] = None


def _is_ready_file(path: Path) -> bool:
    try:
        info = path.stat()
    except OSError:
        return False
    return stat.S_ISREG(info.st_mode) and info.st_size > 0


def copy_to_destination(source: Path, dest_dir: Path) -> Path:
    target = dest_dir / source.name
    try:
        shutil.copyfile(source, target)
    except OSError as exc:
        raise TransferError(f"copy {source} -> {target} failed: {exc}") from exc
    return target


class IngestionPipeline:
    """Single funnel that turns a detected file into a copy plus a publish.

    Both detectors call ingest(); the dedup check and claim happen in one
    critical section on the shared state, so a path is copied at most once
    per session. A claimed path stays claimed even if the copy fails.
    """

    def __init__(
        self,
        state: SessionState,
        dest_dir: Path,
        publisher: Publisher,
        notifier: Notifier,
        transfer: Callable[[Path, Path], Path] = copy_to_destination,
    ) -> None:
        self.state = state
        self.dest_dir = dest_dir
        self.publisher = publisher
        self.notifier = notifier
        self._transfer = transfer

    def ingest(self, source_path: Path) -> IngestResult:
        source_path = Path(source_path)
        if self.state.is_processed(source_path):
            return IngestResult(status=STATUS_DUPLICATE, source_path=source_path)
        if not _is_ready_file(source_path):
            logger.debug("pipeline.not_ready source=%s", source_path)
            return IngestResult(status=STATUS_NOT_READY, source_path=source_path)
        if not self.state.claim(source_path):
            return IngestResult(status=STATUS_DUPLICATE, source_path=source_path)

        try:
            dest_path = self._transfer(source_path, self.dest_dir)
        except TransferError as exc:
            error = str(exc)
            logger.warning("pipeline.transfer_failed source=%s error=%s", source_path, error)
            self.report_error(f"Error copying screenshot: {error}")
            return IngestResult(
                status=STATUS_FAILED, source_path=source_path, error=error
            )

        self.state.record_ingested(dest_path)
        logger.info("pipeline.ingested source=%s dest=%s", source_path, dest_path)
        self._publish(dest_path)
        self.report_info(f"Screenshot copied: {dest_path.name}")
        return IngestResult(
            status=STATUS_INGESTED, source_path=source_path, dest_path=dest_path
        )

    def _publish(self, dest_path: Path) -> None:
        try:
            self.publisher.publish(dest_path)
        except Exception as exc:
            logger.warning("pipeline.publish_failed dest=%s error=%s", dest_path, str(exc))

    def report_info(self, message: str) -> None:
        try:
            self.notifier.info(message)
        except Exception as exc:
            logger.warning("pipeline.notify_failed error=%s", str(exc))

    def report_error(self, message: str) -> None:
        try:
            self.notifier.error(message)
        except Exception as exc:
            logger.warning("pipeline.notify_failed error=%s", str(exc))
