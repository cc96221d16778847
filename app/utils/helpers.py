"""
Helper utilities for PanelSync.

Common functions used across domains.
"""

import os
import re
from datetime import datetime, timezone
from pathlib import Path, PureWindowsPath


def now_utc() -> datetime:
    """Get current timestamp as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def normalise_path(path: Path) -> Path:
    """Return a resolved version of ``path`` without forcing existence."""

    try:
        return path.expanduser().resolve()
    except (FileNotFoundError, RuntimeError):
        return path.expanduser().absolute()


def path_key(path: Path) -> str:
    """
    Identity of a path for de-duplication.

    Case-folds on platforms with case-insensitive filesystems so that two
    notifications spelling the same file differently share one key.
    """
    return os.path.normcase(str(normalise_path(path)))


def same_document_path(left: str, right: str) -> bool:
    """Compare two host document paths the way the host does (case-insensitive)."""
    return PureWindowsPath(left) == PureWindowsPath(right)


def document_stem(document_path: str) -> str:
    """File name without extension, accepting both slash styles."""
    return PureWindowsPath(document_path).stem


def sanitize_filename(filename: str) -> str:
    """Sanitize filename by removing invalid characters."""
    # Remove invalid filename characters
    sanitized = re.sub(r'[<>:"/\\|?*]', '_', filename)
    # Remove leading/trailing spaces and dots
    sanitized = sanitized.strip('. ')
    # Limit length
    if len(sanitized) > 255:
        sanitized = sanitized[:255]
    return sanitized
