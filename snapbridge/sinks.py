from __future__ import annotations

import shlex
import subprocess
import sys
import threading
from contextlib import suppress
from pathlib import Path
from typing import Protocol, Sequence

from .logging_utils import get_logger

logger = get_logger(__name__)


class SinkError(RuntimeError):
    pass


class Publisher(Protocol):
    def publish(self, path: Path) -> None: ...


class Notifier(Protocol):
    def info(self, message: str) -> None: ...

    def error(self, message: str) -> None: ...


class LoggingPublisher:
    def publish(self, path: Path) -> None:
        logger.info("publisher.latest path=%s", path)


class CommandPublisher:
    """Pipe the published path into an external command such as clip.exe.

    The command is started and fed without waiting for it to exit; a daemon
    thread reaps it afterwards.
    """

    def __init__(self, command: Sequence[str] | str) -> None:
        if isinstance(command, str):
            command = shlex.split(command)
        if not command:
            raise SinkError("clipboard command must not be empty")
        self.command = list(command)

    def publish(self, path: Path) -> None:
        try:
            process = subprocess.Popen(
                self.command,
                stdin=subprocess.PIPE,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
            )
        except OSError as exc:
            raise SinkError(f"cannot start {self.command[0]}: {exc}") from exc
        try:
            process.stdin.write(str(path).encode("utf-8"))
            process.stdin.close()
        except OSError as exc:
            with suppress(OSError):
                process.stdin.close()
            raise SinkError(f"cannot write to {self.command[0]}: {exc}") from exc
        finally:
            threading.Thread(
                target=process.wait, name="snapbridge-publish-reaper", daemon=True
            ).start()


class LoggingNotifier:
    def info(self, message: str) -> None:
        logger.info("notify.info message=%s", message)

    def error(self, message: str) -> None:
        logger.error("notify.error message=%s", message)


class PrintNotifier:
    """User-facing notifier for the CLIs."""

    def info(self, message: str) -> None:
        print(message)

    def error(self, message: str) -> None:
        print(f"error: {message}", file=sys.stderr)


def build_publisher(command: str) -> Publisher:
    if command.strip():
        return CommandPublisher(command)
    return LoggingPublisher()
