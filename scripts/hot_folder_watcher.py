#!/usr/bin/env python3
"""Run the hot-folder pipeline headless.

Useful for exercising a hot-folder tree without the CAD host: geometry calls go
to the dry-run gateway, which logs imports and writes stub OBJ files.
"""

from __future__ import annotations

import argparse
import signal
import sys
import threading
from pathlib import Path
from typing import Optional

from loguru import logger

sys.path.insert(0, str(Path(__file__).parent.parent))

from app.utils.config import get_settings
from app.utils.log import configure_console
from domains.hot_folder.errors import StartupFailure
from domains.hot_folder.service import HotFolderService


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    """Parse CLI arguments."""

    parser = argparse.ArgumentParser(
        description="Watch a PanelSync hot folder and dispatch jobs and geometry drops.",
    )
    parser.add_argument(
        "--root",
        type=Path,
        default=None,
        help="Hot-folder root (default: settings / ~/OneDrive/Desktop/PanelSyncHot).",
    )
    parser.add_argument(
        "--workers",
        type=int,
        default=None,
        help="Worker pool size.",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Console and file log level.",
    )

    return parser.parse_args(argv)


def main(argv: Optional[list[str]] = None) -> int:
    """Entry point for the CLI script."""

    args = parse_args(argv)

    overrides = {}
    if args.root is not None:
        overrides["hot_root"] = args.root.expanduser()
    if args.workers is not None:
        overrides["worker_threads"] = args.workers
    if args.log_level is not None:
        overrides["log_level"] = args.log_level.upper()
    settings = get_settings().model_copy(update=overrides)

    configure_console(settings.log_level)

    service = HotFolderService(settings)
    try:
        service.activate()
    except StartupFailure as e:
        logger.error(f"Hot-folder service failed to start: {e}")
        return 1

    stop_event = threading.Event()

    def _signal_handler(signum, frame):  # noqa: D401
        logger.info(f"Received signal {signum}, shutting down.")
        stop_event.set()

    signal.signal(signal.SIGINT, _signal_handler)
    signal.signal(signal.SIGTERM, _signal_handler)

    try:
        while not stop_event.is_set():
            stop_event.wait(1.0)
    finally:
        service.deactivate()

    logger.info("Hot-folder watcher stopped.")
    return 0


if __name__ == "__main__":  # pragma: no cover - CLI bridge
    sys.exit(main())
