"""
Fixed directory tree under the hot-folder root.

    <root>/jobs/                          job descriptors (*.json)
    <root>/<peer>/exports/iges/           geometry dropped by the peer (*.igs)
    <root>/<host>/exports/obj/            OBJ output for the peer
    <root>/<host>/Projects/               documents created for imports
    <root>/scripts/                       automation snippets for the peer
    <root>/logs/                          append-only text log
"""

from dataclasses import dataclass
from pathlib import Path

from loguru import logger

from domains.hot_folder.errors import StartupFailure

LATEST_OBJ_NAME = "latest.obj"
DEFAULT_DOCUMENT_NAME = "latest.ipt"


@dataclass(frozen=True, slots=True)
class HotFolderLayout:
    """Paths derived from a hot-folder root."""

    root: Path
    host_vendor: str = "Inventor"
    peer_vendor: str = "3DR"

    @property
    def jobs_dir(self) -> Path:
        return self.root / "jobs"

    @property
    def geometry_in_dir(self) -> Path:
        return self.root / self.peer_vendor / "exports" / "iges"

    @property
    def geometry_out_dir(self) -> Path:
        return self.root / self.host_vendor / "exports" / "obj"

    @property
    def projects_dir(self) -> Path:
        return self.root / self.host_vendor / "Projects"

    @property
    def scripts_dir(self) -> Path:
        return self.root / "scripts"

    @property
    def logs_dir(self) -> Path:
        return self.root / "logs"

    @property
    def latest_obj_path(self) -> Path:
        """Target of the ad-hoc export."""
        return self.geometry_out_dir / LATEST_OBJ_NAME

    @property
    def default_document_path(self) -> Path:
        """Where a document created for an import is saved."""
        return self.projects_dir / DEFAULT_DOCUMENT_NAME

    def directories(self) -> list[Path]:
        return [
            self.jobs_dir,
            self.geometry_in_dir,
            self.geometry_out_dir,
            self.projects_dir,
            self.scripts_dir,
            self.logs_dir,
        ]

    def ensure(self) -> "HotFolderLayout":
        """
        Create every directory of the layout.

        Idempotent. Raises StartupFailure if any directory cannot be created.
        """
        for directory in self.directories():
            try:
                directory.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise StartupFailure(f"Cannot create {directory}: {e}") from e

        logger.info(f"Hot-folder initialized at: {self.root}")
        return self
