import shutil
import threading

import pytest

from app.models.schemas import FileEventKind, HandlerKind, WatchedFolder
from domains.hot_folder.errors import StartupFailure, WatchFailure
from domains.hot_folder.watcher import DirectoryWatcher, HotFolderEventHandler


class Collector:
    """Drains a watcher's events on a background thread."""

    def __init__(self, watcher: DirectoryWatcher):
        self.events = []
        self.error = None
        self.finished = threading.Event()
        self._thread = threading.Thread(target=self._run, args=(watcher,), daemon=True)
        self._thread.start()

    def _run(self, watcher):
        try:
            for item in watcher.events():
                self.events.append(item)
        except WatchFailure as e:
            self.error = e
        finally:
            self.finished.set()

    def names(self):
        return {e.path.name for e in self.events}


@pytest.fixture
def jobs_folder(tmp_path) -> WatchedFolder:
    path = tmp_path / "jobs"
    path.mkdir()
    return WatchedFolder(path=path, pattern="*.json", kind=HandlerKind.JOBS)


@pytest.fixture
def watcher(jobs_folder):
    watcher = DirectoryWatcher(jobs_folder, liveness_interval=0.1)
    watcher.start()
    yield watcher
    watcher.stop()


def test_created_file_matching_glob_is_reported(watcher, jobs_folder, wait_for):
    collector = Collector(watcher)

    (jobs_folder.path / "job1.json").write_text("{}")
    (jobs_folder.path / "notes.txt").write_text("ignored")

    assert wait_for(lambda: "job1.json" in collector.names())
    assert "notes.txt" not in collector.names()
    assert all(e.path.parent == jobs_folder.path for e in collector.events)


def test_glob_is_case_insensitive(watcher, jobs_folder, wait_for):
    collector = Collector(watcher)

    (jobs_folder.path / "UPPER.JSON").write_text("{}")

    assert wait_for(lambda: "UPPER.JSON" in collector.names())


def test_rename_into_pattern_reports_destination(watcher, jobs_folder, wait_for):
    staging = jobs_folder.path / "job2.tmp"
    staging.write_text("{}")
    collector = Collector(watcher)

    staging.rename(jobs_folder.path / "job2.json")

    assert wait_for(lambda: any(
        e.kind is FileEventKind.RENAMED and e.path.name == "job2.json" for e in collector.events
    ))


def test_stop_ends_iteration(watcher):
    collector = Collector(watcher)

    watcher.stop()

    assert collector.finished.wait(2.0)
    assert collector.error is None
    assert not watcher.alive


def test_deleted_directory_is_reported_as_failure(watcher, jobs_folder):
    collector = Collector(watcher)

    shutil.rmtree(jobs_folder.path)

    assert collector.finished.wait(5.0)
    assert isinstance(collector.error, WatchFailure)
    assert watcher.failure is collector.error
    assert not watcher.alive


def test_missing_directory_fails_at_start(tmp_path):
    folder = WatchedFolder(path=tmp_path / "nope", pattern="*.igs", kind=HandlerKind.GEOMETRY_IMPORT)

    with pytest.raises(StartupFailure):
        DirectoryWatcher(folder).start()


def test_watcher_cannot_be_restarted(watcher):
    watcher.stop()

    with pytest.raises(StartupFailure):
        watcher.start()


def test_handler_ignores_files_in_subdirectories(jobs_folder):
    handler = HotFolderEventHandler(jobs_folder, emit=lambda e: None, fail=lambda r: None)

    assert handler.matches(str(jobs_folder.path / "a.json"))
    assert not handler.matches(str(jobs_folder.path / "nested" / "a.json"))
    assert not handler.matches(str(jobs_folder.path / "a.json.bak"))
