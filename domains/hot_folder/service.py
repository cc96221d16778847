"""
Hot-folder service lifecycle.

Mirrors the host add-in's activation: ``activate()`` prepares the directory
tree, attaches the append-only log and starts watching; ``deactivate()``
undoes all of it. Everything the service needs is passed in, so several
instances (e.g. one per test) can coexist.
"""

from pathlib import Path
from typing import Optional

from loguru import logger

from app.models.schemas import ServiceStatus, WatcherStatus
from app.utils.config import Settings
from app.utils.log import attach_file_log, detach_file_log
from domains.hot_folder.dispatcher import Dispatcher, default_folders
from domains.hot_folder.errors import StartupFailure, WatchFailure
from domains.hot_folder.gateway import CadHostGateway, DryRunGateway
from domains.hot_folder.layout import HotFolderLayout
from domains.hot_folder.stability import StabilityDetector


class HotFolderService:
    """Owns the layout, the log sink and the dispatcher for one hot-folder root."""

    def __init__(self, settings: Settings, gateway: Optional[CadHostGateway] = None):
        self.settings = settings
        self.layout = HotFolderLayout(
            root=settings.hot_root.expanduser().absolute(),
            host_vendor=settings.host_vendor,
            peer_vendor=settings.peer_vendor,
        )
        self.gateway = gateway or DryRunGateway(self.layout.default_document_path)
        self.dispatcher: Optional[Dispatcher] = None
        self._log_sink: Optional[int] = None

    @property
    def active(self) -> bool:
        return self.dispatcher is not None and self.dispatcher.running

    @property
    def log_file(self) -> Path:
        return self.layout.logs_dir / self.settings.log_file_name

    def activate(self):
        """
        Prepare the hot folder and start watching.

        Raises:
            StartupFailure: Directories or watchers could not be set up
        """
        if self.active:
            return

        self.layout.ensure()
        self._log_sink = attach_file_log(self.log_file, self.settings.log_level)

        try:
            dispatcher = self._build_dispatcher()
            dispatcher.start()
        except ValueError as e:
            self._detach_log()
            raise StartupFailure(f"Invalid hot-folder settings: {e}") from e
        except Exception:
            self._detach_log()
            raise

        self.dispatcher = dispatcher
        logger.info(f"Add-in activated. Watching hot-folder at {self.layout.root}")

    def _build_dispatcher(self) -> Dispatcher:
        detector = StabilityDetector(
            initial_delay=self.settings.stability_initial_delay,
            poll_interval=self.settings.stability_poll_interval,
            timeout=self.settings.stability_timeout,
        )
        return Dispatcher(
            layout=self.layout,
            gateway=self.gateway,
            detector=detector,
            folders=default_folders(
                self.layout,
                jobs_pattern=self.settings.jobs_pattern,
                geometry_pattern=self.settings.geometry_pattern,
            ),
            max_workers=self.settings.worker_threads,
            liveness_interval=self.settings.watch_liveness_interval,
            on_watch_failure=self._watch_failed,
        )

    def deactivate(self):
        """Stop watching and release the log file."""
        if self.dispatcher is not None:
            self.dispatcher.stop()
            self.dispatcher = None
            logger.info("Add-in deactivated")
        self._detach_log()

    def _detach_log(self):
        if self._log_sink is not None:
            detach_file_log(self._log_sink)
            self._log_sink = None

    def _watch_failed(self, failure: WatchFailure):
        logger.error(f"Hot-folder watch lost, restart the add-in to resume: {failure}")

    def export_latest(self) -> Path:
        """Ad-hoc export of the active document to ``latest.obj``."""
        if self.dispatcher is None:
            raise RuntimeError("Hot-folder service is not active")
        return self.dispatcher.handlers.export_latest()

    def status(self) -> ServiceStatus:
        """Snapshot for health and admin endpoints."""
        if self.dispatcher is None:
            return ServiceStatus(active=False, hot_root=str(self.layout.root))

        watchers = [
            WatcherStatus(
                path=str(watcher.folder.path),
                pattern=watcher.folder.pattern,
                kind=watcher.folder.kind,
                alive=watcher.alive,
                failure=str(watcher.failure) if watcher.failure else None,
            )
            for watcher in self.dispatcher.watchers
        ]
        return ServiceStatus(
            active=self.active,
            hot_root=str(self.layout.root),
            watchers=watchers,
            in_flight=[str(p) for p in self.dispatcher.in_flight.snapshot()],
            outcomes=self.dispatcher.outcome_counts(),
        )
