from __future__ import annotations

import argparse
import threading

from snapbridge.config import (
    ConfigurationError,
    resolve_destination_dir,
    resolve_source_dir,
    settings,
)
from snapbridge.logging_utils import configure_logging, get_logger
from snapbridge.session import MonitoringSession
from snapbridge.sinks import PrintNotifier, build_publisher


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Watch a screenshot directory and copy new images to a local folder."
    )
    parser.add_argument(
        "--source",
        default=None,
        help="Screenshot directory to watch (defaults to SOURCE_DIR).",
    )
    parser.add_argument(
        "--dest",
        default=None,
        help="Directory that receives copies (defaults to DEST_DIR or the workspace temp folder).",
    )
    parser.add_argument(
        "--poll-ms",
        type=int,
        default=settings.poll_interval_ms,
        help="Polling interval in milliseconds.",
    )
    parser.add_argument(
        "--cleanup",
        action=argparse.BooleanOptionalAction,
        default=settings.auto_cleanup,
        help="Remove the destination directory when monitoring stops (default: AUTO_CLEANUP).",
    )
    return parser


def main() -> None:
    configure_logging(settings.log_level, settings.log_file or None)
    logger = get_logger(__name__)
    args = build_parser().parse_args()

    if args.poll_ms <= 0:
        raise SystemExit("--poll-ms must be > 0")

    try:
        source = args.source or resolve_source_dir(settings)
        dest = args.dest or resolve_destination_dir(settings)
    except ConfigurationError as exc:
        raise SystemExit(str(exc)) from exc

    session = MonitoringSession(
        publisher=build_publisher(settings.clipboard_command),
        notifier=PrintNotifier(),
        auto_cleanup=args.cleanup,
    )
    if not session.start(source, dest, args.poll_ms):
        raise SystemExit(1)

    try:
        threading.Event().wait()
    except KeyboardInterrupt:
        logger.info("watch.interrupted last=%s", session.last_ingested_path)
    finally:
        session.stop()


if __name__ == "__main__":
    main()
