from __future__ import annotations

import os
import threading
from pathlib import Path
from typing import Any, Callable, List, Optional, Tuple

import pytest


class RecordingPublisher:
    def __init__(self) -> None:
        self.published: List[Path] = []
        self.event = threading.Event()

    def publish(self, path: Path) -> None:
        self.published.append(path)
        self.event.set()


class RecordingNotifier:
    def __init__(self) -> None:
        self.infos: List[str] = []
        self.errors: List[str] = []

    def info(self, message: str) -> None:
        self.infos.append(message)

    def error(self, message: str) -> None:
        self.errors.append(message)


class FakeObserver:
    def __init__(self) -> None:
        self.scheduled: List[Tuple[Any, str, bool]] = []
        self.started = False
        self.stopped = False
        self.joined = False

    def schedule(self, handler: Any, path: str, recursive: bool = False) -> None:
        self.scheduled.append((handler, path, recursive))

    def start(self) -> None:
        self.started = True

    def stop(self) -> None:
        self.stopped = True

    def join(self, timeout: Optional[float] = None) -> None:
        self.joined = True


class FakeObserverFactory:
    def __init__(self) -> None:
        self.instances: List[FakeObserver] = []

    def __call__(self) -> FakeObserver:
        observer = FakeObserver()
        self.instances.append(observer)
        return observer


@pytest.fixture()
def source_dir(tmp_path: Path) -> Path:
    path = tmp_path / "Screenshots"
    path.mkdir()
    return path


@pytest.fixture()
def dest_dir(tmp_path: Path) -> Path:
    path = tmp_path / "workspace" / ".Temp-Session-Snips"
    path.mkdir(parents=True)
    return path


@pytest.fixture()
def publisher() -> RecordingPublisher:
    return RecordingPublisher()


@pytest.fixture()
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture()
def observer_factory() -> FakeObserverFactory:
    return FakeObserverFactory()


@pytest.fixture()
def write_image() -> Callable[..., Path]:
    def _write(
        directory: Path, name: str, mtime: Optional[float] = None, data: bytes = b"\x89PNG"
    ) -> Path:
        path = directory / name
        path.write_bytes(data)
        if mtime is not None:
            os.utime(path, (mtime, mtime))
        return path

    return _write
