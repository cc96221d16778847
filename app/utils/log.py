"""
Logging setup for PanelSync.

All modules log through loguru's shared ``logger``. This module only decides
where records go: a coloured console sink and the append-only hot-folder log.
"""

import sys
from pathlib import Path

from loguru import logger

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan> - <level>{message}</level>"
)
FILE_FORMAT = "{time:YYYY-MM-DD[T]HH:mm:ss.SSSZ} [{level}] {message}"


def configure_console(level: str = "INFO") -> int:
    """Replace loguru's default handler with the console sink."""
    logger.remove()
    return logger.add(sys.stdout, format=CONSOLE_FORMAT, level=level)


def attach_file_log(log_file: Path, level: str = "INFO") -> int:
    """
    Append log records to ``log_file``.

    The sink is enqueued, so records from concurrent worker threads are
    written one at a time without blocking the workers.

    Returns:
        Sink id, to be passed to ``detach_file_log`` on shutdown
    """
    log_file.parent.mkdir(parents=True, exist_ok=True)
    return logger.add(
        str(log_file),
        format=FILE_FORMAT,
        level=level,
        enqueue=True,
        encoding="utf-8",
        backtrace=False,
    )


def detach_file_log(sink_id: int) -> None:
    """Flush and remove a sink added by ``attach_file_log``."""
    logger.remove(sink_id)
