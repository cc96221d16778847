"""
Boundary to the CAD host application.

The host's API is single-threaded: callers must hold ``SerializedGateway``'s
lock for every interaction, which ``exclusive()`` provides for a sequence of
calls.
"""

import threading
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterator, Optional, Protocol

from loguru import logger

from app.utils.helpers import document_stem, same_document_path
from domains.hot_folder.errors import GatewayError, NoExportableGeometryError


@dataclass(frozen=True)
class DocumentHandle:
    """An open host document."""
    path: str
    native: Any = None


class CadHostGateway(Protocol):
    """Operations the pipeline needs from the host application."""

    def active_document(self) -> Optional[DocumentHandle]:
        """Currently active part document, if any."""

    def find_open_document(self, path: str) -> Optional[DocumentHandle]:
        """Open document whose file is ``path``, if any."""

    def import_geometry(self, into: Optional[DocumentHandle], source: Path) -> DocumentHandle:
        """Import ``source`` into ``into``, creating a new document when None."""

    def export_geometry_as_obj(
        self, document: DocumentHandle, destination: Path, bring_to_front: bool = True
    ) -> Path:
        """
        Write ``document``'s solids to ``destination``.

        Raises:
            NoExportableGeometryError: Document has no solid bodies
        """


class SerializedGateway:
    """Wraps a gateway so that at most one call reaches the host at a time."""

    def __init__(self, gateway: CadHostGateway):
        self._gateway = gateway
        self._lock = threading.RLock()

    @contextmanager
    def exclusive(self) -> Iterator["SerializedGateway"]:
        """Hold the host for several calls in a row."""
        with self._lock:
            yield self

    def active_document(self) -> Optional[DocumentHandle]:
        with self._lock:
            return self._gateway.active_document()

    def find_open_document(self, path: str) -> Optional[DocumentHandle]:
        with self._lock:
            return self._gateway.find_open_document(path)

    def import_geometry(self, into: Optional[DocumentHandle], source: Path) -> DocumentHandle:
        with self._lock:
            return self._gateway.import_geometry(into, source)

    def export_geometry_as_obj(
        self, document: DocumentHandle, destination: Path, bring_to_front: bool = True
    ) -> Path:
        with self._lock:
            return self._gateway.export_geometry_as_obj(document, destination, bring_to_front)


class DryRunGateway:
    """
    Stand-in host used when the pipeline runs without the CAD application.

    Any existing file counts as an open document. Imports are recorded, and
    exports write a small OBJ stub so the peer side still sees output.
    """

    def __init__(self, new_document_path: Path):
        self.new_document_path = new_document_path
        self.active: Optional[DocumentHandle] = None
        self.imported: list[tuple[str, str]] = []

    def active_document(self) -> Optional[DocumentHandle]:
        return self.active

    def find_open_document(self, path: str) -> Optional[DocumentHandle]:
        if self.active is not None and same_document_path(self.active.path, path):
            return self.active
        if Path(path).is_file():
            return DocumentHandle(path=path)
        return None

    def import_geometry(self, into: Optional[DocumentHandle], source: Path) -> DocumentHandle:
        if into is None:
            self.new_document_path.parent.mkdir(parents=True, exist_ok=True)
            self.new_document_path.touch()
            into = DocumentHandle(path=str(self.new_document_path))
            self.active = into
            logger.info(f"[dry-run] Created document {into.path}")

        if not source.is_file():
            raise GatewayError(f"Import source missing: {source}")

        self.imported.append((into.path, str(source)))
        logger.info(f"[dry-run] Imported {source.name} into {into.path}")
        return into

    def export_geometry_as_obj(
        self, document: DocumentHandle, destination: Path, bring_to_front: bool = True
    ) -> Path:
        # An empty document file with nothing imported into it has no solids
        source = Path(document.path)
        has_imports = any(target == document.path for target, _ in self.imported)
        if source.is_file() and source.stat().st_size == 0 and not has_imports:
            raise NoExportableGeometryError(document.path)

        destination.write_text(
            f"# dry-run OBJ export of {document_stem(document.path)}\no {document_stem(document.path)}\n",
            encoding="utf-8",
        )
        logger.info(f"[dry-run] Exported {document.path} -> {destination}")
        return destination
