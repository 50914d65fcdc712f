from __future__ import annotations

import threading
import time
from pathlib import Path
from typing import List

from watchdog.events import DirCreatedEvent, FileCreatedEvent, FileMovedEvent

from snapbridge.watcher import SETTLE_DELAY_S, EventWatcher


class _Recorder:
    def __init__(self) -> None:
        self.paths: List[Path] = []
        self.event = threading.Event()

    def __call__(self, path: Path) -> None:
        self.paths.append(path)
        self.event.set()


def _handler(observer_factory):
    handler, _, _ = observer_factory.instances[0].scheduled[0]
    return handler


def test_default_settle_delay_is_one_second() -> None:
    assert SETTLE_DELAY_S == 1.0


def test_start_subscribes_non_recursively(source_dir: Path, observer_factory) -> None:
    watcher = EventWatcher(source_dir, _Recorder(), observer_factory=observer_factory)
    assert watcher.start() is True
    observer = observer_factory.instances[0]
    assert observer.started
    _, path, recursive = observer.scheduled[0]
    assert path == str(source_dir)
    assert recursive is False
    watcher.stop()
    assert observer.stopped and observer.joined


def test_start_failure_is_not_fatal(source_dir: Path) -> None:
    def broken_factory():
        raise OSError("inotify watch limit reached")

    watcher = EventWatcher(source_dir, _Recorder(), observer_factory=broken_factory)
    assert watcher.start() is False
    assert not watcher.active
    watcher.stop()


def test_created_event_is_ingested_after_settle_delay(
    source_dir: Path, observer_factory
) -> None:
    recorder = _Recorder()
    watcher = EventWatcher(
        source_dir, recorder, settle_delay_s=0.05, observer_factory=observer_factory
    )
    watcher.start()
    handler = _handler(observer_factory)

    started = time.monotonic()
    handler.dispatch(FileCreatedEvent(str(source_dir / "shot.png")))
    assert recorder.event.wait(2)
    assert time.monotonic() - started >= 0.04
    assert recorder.paths == [source_dir / "shot.png"]
    watcher.stop()


def test_moved_event_uses_destination_name(source_dir: Path, observer_factory) -> None:
    recorder = _Recorder()
    watcher = EventWatcher(
        source_dir, recorder, settle_delay_s=0.01, observer_factory=observer_factory
    )
    watcher.start()
    handler = _handler(observer_factory)

    handler.dispatch(
        FileMovedEvent(str(source_dir / "shot.png.tmp"), str(source_dir / "shot.png"))
    )
    assert recorder.event.wait(2)
    assert recorder.paths == [source_dir / "shot.png"]
    watcher.stop()


def test_non_qualifying_events_are_ignored(source_dir: Path, observer_factory) -> None:
    recorder = _Recorder()
    watcher = EventWatcher(
        source_dir, recorder, settle_delay_s=0.01, observer_factory=observer_factory
    )
    watcher.start()
    handler = _handler(observer_factory)

    handler.dispatch(FileCreatedEvent(str(source_dir / "shot.PNG")))
    handler.dispatch(FileCreatedEvent(str(source_dir / "anim.gif")))
    handler.dispatch(DirCreatedEvent(str(source_dir / "folder.png")))

    assert watcher.pending_count() == 0
    assert not recorder.event.wait(0.1)
    watcher.stop()


def test_stop_cancels_pending_ingestions(source_dir: Path, observer_factory) -> None:
    recorder = _Recorder()
    watcher = EventWatcher(
        source_dir, recorder, settle_delay_s=0.2, observer_factory=observer_factory
    )
    watcher.start()
    assert watcher.schedule(str(source_dir / "shot.png")) is True
    assert watcher.pending_count() == 1

    watcher.stop()
    assert watcher.pending_count() == 0
    assert not recorder.event.wait(0.4)
    assert watcher.schedule(str(source_dir / "late.png")) is False


def test_stop_is_idempotent_without_start(source_dir: Path) -> None:
    watcher = EventWatcher(source_dir, _Recorder())
    watcher.stop()
    watcher.stop()
    assert not watcher.active


def test_stop_waits_for_running_ingestion(source_dir: Path, observer_factory) -> None:
    started = threading.Event()
    finished: List[Path] = []

    def slow_ingest(path: Path) -> None:
        started.set()
        time.sleep(0.3)
        finished.append(path)

    watcher = EventWatcher(
        source_dir, slow_ingest, settle_delay_s=0.0, observer_factory=observer_factory
    )
    watcher.start()
    watcher.schedule(str(source_dir / "shot.png"))
    assert started.wait(2)

    watcher.stop(timeout=2)
    assert finished == [source_dir / "shot.png"]
    assert observer_factory.instances[0].stopped
