"""
Directory watcher for the hot folder.

Wraps a watchdog observer for one folder and one filename glob and exposes
the notifications as a blocking iterator of RawFileEvent. Duplicate
notifications for one logical write are passed through untouched.
"""

import fnmatch
import os
import queue
import threading
from pathlib import Path
from typing import Callable, Iterator, Optional, Union

from loguru import logger
from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from app.models.schemas import FileEventKind, RawFileEvent, WatchedFolder
from app.utils.helpers import now_utc, path_key
from domains.hot_folder.errors import StartupFailure, WatchFailure

_STOP = object()


class HotFolderEventHandler(FileSystemEventHandler):
    """Turns watchdog callbacks for one folder into RawFileEvents."""

    def __init__(
        self,
        folder: WatchedFolder,
        emit: Callable[[RawFileEvent], None],
        fail: Callable[[str], None],
    ):
        """
        Initialize event handler.

        Args:
            folder: Folder being watched
            emit: Receives every matching event, on the observer thread
            fail: Called when the watched directory itself goes away
        """
        super().__init__()
        self.folder = folder
        self._emit = emit
        self._fail = fail
        self._folder_key = path_key(folder.path)

    def matches(self, path: Union[str, bytes]) -> bool:
        """Case-insensitive glob match on the file name, top level only."""
        path = os.fsdecode(path)
        if path_key(Path(path).parent) != self._folder_key:
            return False
        name = os.path.basename(path)
        return fnmatch.fnmatch(name.lower(), self.folder.pattern.lower())

    def _is_folder(self, path: Union[str, bytes]) -> bool:
        return path_key(Path(os.fsdecode(path))) == self._folder_key

    def _forward(self, path: Union[str, bytes], kind: FileEventKind):
        if not self.matches(path):
            return
        self._emit(RawFileEvent(path=Path(os.fsdecode(path)), kind=kind, observed_at=now_utc()))

    def on_created(self, event: FileSystemEvent):
        """Handle file creation."""
        if event.is_directory:
            return
        self._forward(event.src_path, FileEventKind.CREATED)

    def on_modified(self, event: FileSystemEvent):
        """Handle file modification."""
        # Directory modifications are noise here
        if event.is_directory:
            return
        self._forward(event.src_path, FileEventKind.MODIFIED)

    def on_moved(self, event: FileSystemEvent):
        """Handle rename into the folder (e.g. writer renames *.tmp -> *.json)."""
        if self._is_folder(event.src_path):
            self._fail(f"directory moved to {os.fsdecode(event.dest_path)}")
            return
        if event.is_directory:
            return
        self._forward(event.dest_path, FileEventKind.RENAMED)

    def on_deleted(self, event: FileSystemEvent):
        """Only deletion of the watched directory itself matters."""
        if self._is_folder(event.src_path):
            self._fail("directory deleted")


class DirectoryWatcher:
    """Live, non-restartable stream of file events for one WatchedFolder."""

    def __init__(
        self,
        folder: WatchedFolder,
        liveness_interval: float = 1.0,
        observer_factory: Callable[[], Observer] = Observer,
    ):
        """
        Initialize watcher.

        Args:
            folder: Directory, glob and handler kind to watch
            liveness_interval: Seconds between directory/observer health checks
                while no events arrive
            observer_factory: Builds the watchdog observer
        """
        self.folder = folder
        self.liveness_interval = liveness_interval
        self._observer_factory = observer_factory
        self._observer: Optional[Observer] = None
        self._queue: "queue.Queue[object]" = queue.Queue()
        self._lock = threading.Lock()
        self._started = False
        self._stopped = False
        self._failure: Optional[WatchFailure] = None

    @property
    def failure(self) -> Optional[WatchFailure]:
        return self._failure

    @property
    def alive(self) -> bool:
        return self._started and not self._stopped and self._failure is None

    def start(self):
        """
        Begin watching.

        Raises:
            StartupFailure: Directory missing or observer could not start
        """
        with self._lock:
            if self._started:
                raise StartupFailure(f"Watcher for {self.folder.path} cannot be restarted")
            self._started = True

        if not self.folder.path.is_dir():
            raise StartupFailure(f"Watched directory does not exist: {self.folder.path}")

        handler = HotFolderEventHandler(self.folder, self._queue.put, self._mark_failed)
        observer = self._observer_factory()
        try:
            observer.schedule(handler, str(self.folder.path), recursive=False)
            observer.daemon = True
            observer.start()
        except Exception as e:
            raise StartupFailure(f"Failed to watch {self.folder.path}: {e}") from e

        self._observer = observer
        logger.info(f"Watching {self.folder.kind.value} folder: {self.folder.path} ({self.folder.pattern})")

    def stop(self):
        """Stop the observer and end any running ``events()`` iteration."""
        with self._lock:
            if self._stopped:
                return
            self._stopped = True

        if self._observer is not None:
            self._observer.stop()
            if self._observer.is_alive():
                self._observer.join()
        self._queue.put(_STOP)
        logger.info(f"Stopped watching: {self.folder.path}")

    def _mark_failed(self, reason: str):
        with self._lock:
            if self._failure is not None or self._stopped:
                return
            self._failure = WatchFailure(self.folder.path, reason)
        logger.error(str(self._failure))
        self._queue.put(_STOP)

    def _check_liveness(self):
        if not self.folder.path.is_dir():
            self._mark_failed("directory no longer exists")
        elif self._observer is not None and not self._observer.is_alive():
            self._mark_failed("observer thread exited")

    def events(self) -> Iterator[RawFileEvent]:
        """
        Yield events until ``stop()``.

        Raises:
            WatchFailure: The directory or the observer went away while watching
        """
        if not self._started:
            raise StartupFailure(f"Watcher for {self.folder.path} was not started")

        while True:
            try:
                item = self._queue.get(timeout=self.liveness_interval)
            except queue.Empty:
                if not self._stopped:
                    self._check_liveness()
                continue

            if item is _STOP:
                if self._failure is not None:
                    raise self._failure
                return
            yield item
