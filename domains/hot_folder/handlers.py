"""
Actions run against the CAD host once a hot-folder file is ready.

Each handler holds the gateway exclusively for its whole call sequence and
reports an AttemptOutcome. Expected conditions (document not open, nothing to
export) are logged and reported as SKIPPED; anything else raises to the
dispatcher.
"""

import os
from pathlib import Path

from loguru import logger

from app.models.schemas import AttemptOutcome, ExportPanelAsObjJob
from app.utils.helpers import document_stem, sanitize_filename
from domains.hot_folder.errors import GatewayError, NoExportableGeometryError
from domains.hot_folder.gateway import SerializedGateway
from domains.hot_folder.layout import HotFolderLayout


def obj_file_name(job: ExportPanelAsObjJob) -> str:
    """``<basename>_<panelId>_r<revision>.obj`` for a job-driven export."""
    stem = document_stem(job.source_document_path)
    return sanitize_filename(f"{stem}_{job.panel_id}_r{job.revision}") + ".obj"


def _replace_stale(path: Path):
    try:
        path.unlink(missing_ok=True)
    except OSError as e:
        # The exporter overwrites anyway; a locked stale file is not fatal here
        logger.warning(f"Could not remove previous export {path}: {e}")


def _touch(path: Path):
    if path.exists():
        os.utime(path, None)


class GeometryHandlers:
    """Import and export actions backed by one serialized gateway."""

    def __init__(self, gateway: SerializedGateway, layout: HotFolderLayout):
        self.gateway = gateway
        self.layout = layout

    def import_geometry(self, source: Path) -> AttemptOutcome:
        """
        Import a geometry file dropped by the peer application.

        Uses the active document when there is one; otherwise the gateway
        creates a new document.
        """
        logger.info(f"Detected new geometry file: {source}")

        with self.gateway.exclusive():
            document = self.gateway.active_document()
            self.gateway.import_geometry(document, source)

        logger.success(f"Geometry auto-import complete: {source.name}")
        return AttemptOutcome.DONE

    def export_panel(self, job: ExportPanelAsObjJob) -> AttemptOutcome:
        """Run an ExportPanelAsOBJ job."""
        with self.gateway.exclusive():
            document = self.gateway.find_open_document(job.source_document_path)
            if document is None:
                logger.warning(
                    f"OBJ export skipped: {job.source_document_path} is not open in the host."
                )
                return AttemptOutcome.SKIPPED

            out_folder = Path(job.out_folder)
            out_folder.mkdir(parents=True, exist_ok=True)
            destination = out_folder / obj_file_name(job)
            _replace_stale(destination)

            try:
                self.gateway.export_geometry_as_obj(document, destination, job.bring_to_front)
            except NoExportableGeometryError as e:
                logger.warning(f"OBJ export skipped: {e}")
                return AttemptOutcome.SKIPPED

        _touch(destination)
        logger.success(f"Exported OBJ -> {destination}")
        return AttemptOutcome.DONE

    def export_latest(self) -> Path:
        """
        Export the active document to the canonical ``latest.obj``.

        Raises:
            GatewayError: No active part document
            NoExportableGeometryError: The active document has no solids
        """
        destination = self.layout.latest_obj_path

        with self.gateway.exclusive():
            document = self.gateway.active_document()
            if document is None:
                raise GatewayError("No active part document open.")
            destination.parent.mkdir(parents=True, exist_ok=True)
            self.gateway.export_geometry_as_obj(document, destination)

        _touch(destination)
        logger.success(f"OBJ exported: {destination}")
        return destination
