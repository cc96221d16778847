"""
Dispatcher for hot-folder events.

One pump thread per watched folder reads its watcher's events and hands each
one to a bounded worker pool; nothing slow runs on the pump thread. A path is
claimed in the in-flight set before its attempt is queued, and released in a
``finally`` when the attempt ends, so duplicate notifications for a file that
is already queued or running are dropped.
"""

import threading
from collections import Counter
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path
from typing import Callable, Iterable, Optional

from loguru import logger

from app.models.schemas import (
    AttemptOutcome,
    ExportPanelAsObjJob,
    HandlerKind,
    RawFileEvent,
    WatchedFolder,
)
from app.utils.helpers import path_key
from domains.hot_folder.errors import StartupFailure, WatchFailure
from domains.hot_folder.gateway import CadHostGateway, SerializedGateway
from domains.hot_folder.handlers import GeometryHandlers
from domains.hot_folder.jobs import (
    DecodeFailure,
    ParsedJob,
    UnsupportedJob,
    ValidationFailure,
    parse_job,
)
from domains.hot_folder.layout import HotFolderLayout
from domains.hot_folder.stability import StabilityDetector
from domains.hot_folder.watcher import DirectoryWatcher


def default_folders(
    layout: HotFolderLayout,
    jobs_pattern: str = "*.json",
    geometry_pattern: str = "*.igs",
) -> list[WatchedFolder]:
    """Jobs folder and geometry-import folder of ``layout``."""
    return [
        WatchedFolder(path=layout.jobs_dir, pattern=jobs_pattern, kind=HandlerKind.JOBS),
        WatchedFolder(
            path=layout.geometry_in_dir,
            pattern=geometry_pattern,
            kind=HandlerKind.GEOMETRY_IMPORT,
        ),
    ]


class InFlightSet:
    """Paths with a queued or running attempt."""

    def __init__(self):
        self._lock = threading.Lock()
        self._paths: dict[str, Path] = {}

    def claim(self, path: Path) -> bool:
        """Atomically add ``path``; False if it was already present."""
        key = path_key(path)
        with self._lock:
            if key in self._paths:
                return False
            self._paths[key] = path
            return True

    def release(self, path: Path):
        with self._lock:
            self._paths.pop(path_key(path), None)

    def __contains__(self, path: Path) -> bool:
        with self._lock:
            return path_key(path) in self._paths

    def __len__(self) -> int:
        with self._lock:
            return len(self._paths)

    def snapshot(self) -> list[Path]:
        with self._lock:
            return list(self._paths.values())


class Dispatcher:
    """Routes stable hot-folder files to the import and export handlers."""

    def __init__(
        self,
        layout: HotFolderLayout,
        gateway: CadHostGateway,
        detector: Optional[StabilityDetector] = None,
        folders: Optional[Iterable[WatchedFolder]] = None,
        max_workers: int = 4,
        liveness_interval: float = 1.0,
        watcher_factory: Callable[..., DirectoryWatcher] = DirectoryWatcher,
        on_watch_failure: Optional[Callable[[WatchFailure], None]] = None,
    ):
        """
        Initialize dispatcher.

        Args:
            layout: Hot-folder layout (default folders and export targets)
            gateway: CAD host; wrapped so calls are serialized
            detector: Stability gate; defaults to 500ms/150ms/10s
            folders: Folders to watch; defaults to jobs + geometry import
            max_workers: Size of the worker pool
            liveness_interval: Seconds between watcher health checks
            watcher_factory: Builds a DirectoryWatcher for a folder
            on_watch_failure: Told about watchers that fail while running
        """
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")

        self.layout = layout
        self.gateway = gateway if isinstance(gateway, SerializedGateway) else SerializedGateway(gateway)
        self.detector = detector or StabilityDetector()
        self.folders = list(folders) if folders is not None else default_folders(layout)
        self.max_workers = max_workers
        self.liveness_interval = liveness_interval
        self.handlers = GeometryHandlers(self.gateway, layout)
        self.in_flight = InFlightSet()

        self._watcher_factory = watcher_factory
        self._on_watch_failure = on_watch_failure
        self._executor: Optional[ThreadPoolExecutor] = None
        self._watchers: list[DirectoryWatcher] = []
        self._pumps: list[threading.Thread] = []
        self._failures: list[WatchFailure] = []
        self._outcomes: Counter = Counter()
        self._stats_lock = threading.Lock()
        self._running = False

    # Lifecycle -----------------------------------------------------------------

    @property
    def running(self) -> bool:
        return self._running

    @property
    def watchers(self) -> list[DirectoryWatcher]:
        return list(self._watchers)

    @property
    def failures(self) -> list[WatchFailure]:
        with self._stats_lock:
            return list(self._failures)

    def outcome_counts(self) -> dict[str, int]:
        with self._stats_lock:
            return {outcome.value: count for outcome, count in self._outcomes.items()}

    def start(self):
        """
        Start the worker pool and one watcher per folder.

        Raises:
            StartupFailure: A folder is missing or cannot be watched
        """
        if self._running:
            raise StartupFailure("Dispatcher already started")

        self._executor = ThreadPoolExecutor(
            max_workers=self.max_workers, thread_name_prefix="hotfolder-worker"
        )

        try:
            for folder in self.folders:
                watcher = self._watcher_factory(folder, liveness_interval=self.liveness_interval)
                watcher.start()
                self._watchers.append(watcher)
        except Exception:
            self._shutdown()
            raise

        for watcher in self._watchers:
            pump = threading.Thread(
                target=self._pump,
                args=(watcher,),
                name=f"hotfolder-pump-{watcher.folder.kind.value}",
                daemon=True,
            )
            pump.start()
            self._pumps.append(pump)

        self._running = True
        logger.success(f"Dispatcher started with {len(self._watchers)} watchers")

    def stop(self):
        """Stop watchers and wait for queued attempts to finish."""
        if not self._running:
            return
        self._running = False
        self._shutdown()
        logger.info("Dispatcher stopped")

    def _shutdown(self):
        for watcher in self._watchers:
            watcher.stop()
        for pump in self._pumps:
            pump.join()
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None
        self._watchers = []
        self._pumps = []

    def _pump(self, watcher: DirectoryWatcher):
        try:
            for event in watcher.events():
                self.submit(event, watcher.folder)
        except WatchFailure as failure:
            with self._stats_lock:
                self._failures.append(failure)
            logger.error(f"Watcher stopped: {failure}")
            if self._on_watch_failure is not None:
                self._on_watch_failure(failure)

    # Processing ----------------------------------------------------------------

    def submit(self, event: RawFileEvent, folder: WatchedFolder) -> Optional[Future]:
        """
        Queue a processing attempt for ``event``.

        Returns:
            The attempt's future, or None if the path is already in flight
        """
        if self._executor is None:
            raise RuntimeError("Dispatcher is not running")

        if not self.in_flight.claim(event.path):
            logger.debug(f"Already in flight, dropping {event.kind.value} event: {event.path}")
            self._count(AttemptOutcome.DISCARDED)
            return None

        try:
            return self._executor.submit(self._run_claimed, event, folder)
        except RuntimeError:
            # Pool shut down between claim and submit
            self.in_flight.release(event.path)
            raise

    def process(self, event: RawFileEvent, folder: WatchedFolder) -> AttemptOutcome:
        """Run one attempt synchronously, claiming the path first."""
        if not self.in_flight.claim(event.path):
            self._count(AttemptOutcome.DISCARDED)
            return AttemptOutcome.DISCARDED
        return self._run_claimed(event, folder)

    def _run_claimed(self, event: RawFileEvent, folder: WatchedFolder) -> AttemptOutcome:
        path = event.path
        # Refined to the descriptor kind once a job file has been parsed
        context = {"kind": folder.kind.value}
        try:
            outcome = self._attempt(path, folder, context)
        except Exception as e:
            logger.opt(exception=e).error(
                f"Error processing {context['kind']} ({folder.kind.value}) file {path}: {e}"
            )
            outcome = AttemptOutcome.FAILED
        finally:
            self.in_flight.release(path)

        self._count(outcome)
        return outcome

    def _attempt(self, path: Path, folder: WatchedFolder, context: dict) -> AttemptOutcome:
        if not self.detector.is_stable(path):
            logger.warning(f"Skipped {folder.kind.value} file (not stable): {path}")
            return AttemptOutcome.UNSTABLE

        match folder.kind:
            case HandlerKind.JOBS:
                return self._run_job(path, context)
            case HandlerKind.GEOMETRY_IMPORT:
                return self.handlers.import_geometry(path)

    def _run_job(self, path: Path, context: dict) -> AttemptOutcome:
        result = parse_job(path.read_bytes())

        match result:
            case ParsedJob(job=ExportPanelAsObjJob() as job):
                context["kind"] = job.kind
                logger.info(f"Running {job.kind} job from {path.name}")
                return self.handlers.export_panel(job)
            case UnsupportedJob(kind=kind):
                logger.warning(f"Unknown or unsupported job kind: {kind} ({path.name})")
                return AttemptOutcome.UNSUPPORTED
            case ValidationFailure(kind=kind, errors=errors):
                logger.warning(f"Invalid {kind.value} job {path.name}: {'; '.join(errors)}")
                return AttemptOutcome.INVALID
            case DecodeFailure(reason=reason):
                logger.warning(f"Malformed job file {path.name}: {reason}")
                return AttemptOutcome.INVALID

    def _count(self, outcome: AttemptOutcome):
        with self._stats_lock:
            self._outcomes[outcome] += 1
