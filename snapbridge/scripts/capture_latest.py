from __future__ import annotations

import argparse
from pathlib import Path

from snapbridge.config import (
    ConfigurationError,
    ensure_destination_dir,
    resolve_destination_dir,
    resolve_source_dir,
    settings,
)
from snapbridge.logging_utils import configure_logging
from snapbridge.pipeline import STATUS_INGESTED, IngestionPipeline
from snapbridge.session import capture_newest
from snapbridge.sinks import PrintNotifier, build_publisher
from snapbridge.state import SessionState


def main() -> None:
    configure_logging(settings.log_level, settings.log_file or None)
    parser = argparse.ArgumentParser(
        description="Copy the most recent screenshot to the destination directory."
    )
    parser.add_argument("--source", default=None, help="Screenshot directory.")
    parser.add_argument("--dest", default=None, help="Destination directory.")
    args = parser.parse_args()

    try:
        source = (
            Path(args.source).expanduser().resolve()
            if args.source
            else resolve_source_dir(settings)
        )
        dest = ensure_destination_dir(
            Path(args.dest).expanduser().resolve()
            if args.dest
            else resolve_destination_dir(settings)
        )
    except ConfigurationError as exc:
        raise SystemExit(str(exc)) from exc

    pipeline = IngestionPipeline(
        SessionState(),
        dest,
        build_publisher(settings.clipboard_command),
        PrintNotifier(),
    )
    result = capture_newest(source, pipeline)
    if result is None or result.status != STATUS_INGESTED:
        raise SystemExit(1)
    print(result.dest_path)


if __name__ == "__main__":
    main()
