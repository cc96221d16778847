"""Exceptions raised by the hot-folder pipeline."""

from pathlib import Path
from typing import Optional


class HotFolderError(Exception):
    """Base class for hot-folder errors."""


class StartupFailure(HotFolderError):
    """Required directories or watchers could not be set up."""


class WatchFailure(HotFolderError):
    """A running watcher lost its directory or its notification thread."""

    def __init__(self, folder: Path, reason: str):
        super().__init__(f"Watch on {folder} failed: {reason}")
        self.folder = folder
        self.reason = reason


class GatewayError(HotFolderError):
    """The CAD host rejected or failed an operation."""


class NoExportableGeometryError(GatewayError):
    """The document has no solid bodies to export."""

    def __init__(self, document_path: Optional[str] = None):
        super().__init__(f"No solid bodies found in {document_path or 'document'}")
        self.document_path = document_path
