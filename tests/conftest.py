import threading
import time
from pathlib import Path
from typing import Optional

import pytest
from loguru import logger

from domains.hot_folder.errors import NoExportableGeometryError
from domains.hot_folder.gateway import DocumentHandle
from domains.hot_folder.layout import HotFolderLayout


def _doc_key(path: str) -> str:
    return path.replace("\\", "/").lower()


class RecordingGateway:
    """Fake CAD host that records calls and can be told to fail or block."""

    def __init__(self):
        self.calls: list[tuple] = []
        self.open_documents: dict[str, DocumentHandle] = {}
        self.active: Optional[DocumentHandle] = None
        self.no_geometry: set[str] = set()
        self.fail_on: set[str] = set()
        self.delay = 0.0
        self.concurrent = 0
        self.max_concurrent = 0
        self._lock = threading.Lock()

    def open(self, path: str, active: bool = False) -> DocumentHandle:
        handle = DocumentHandle(path=path)
        self.open_documents[_doc_key(path)] = handle
        if active:
            self.active = handle
        return handle

    def _enter(self, *call):
        with self._lock:
            self.calls.append(call)
            self.concurrent += 1
            self.max_concurrent = max(self.max_concurrent, self.concurrent)
        try:
            if self.delay:
                time.sleep(self.delay)
        finally:
            with self._lock:
                self.concurrent -= 1

    def active_document(self):
        return self.active

    def find_open_document(self, path):
        return self.open_documents.get(_doc_key(path))

    def import_geometry(self, into, source):
        self._enter("import", into.path if into else None, Path(source).name)
        if Path(source).name in self.fail_on:
            raise RuntimeError(f"host rejected {Path(source).name}")
        return into or DocumentHandle(path="new.ipt")

    def export_geometry_as_obj(self, document, destination, bring_to_front=True):
        self._enter("export", document.path, Path(destination).name)
        if document.path in self.no_geometry:
            raise NoExportableGeometryError(document.path)
        Path(destination).write_text("o panel\n")
        return destination


def _wait_for(predicate, timeout: float = 5.0, interval: float = 0.02) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()


@pytest.fixture
def wait_for():
    """Poll a predicate until it holds or the timeout passes."""
    return _wait_for


@pytest.fixture
def gateway() -> RecordingGateway:
    return RecordingGateway()


@pytest.fixture
def layout(tmp_path) -> HotFolderLayout:
    return HotFolderLayout(root=tmp_path / "PanelSyncHot").ensure()


@pytest.fixture
def log_records():
    """Loguru records emitted during the test."""
    records = []
    sink_id = logger.add(lambda message: records.append(message.record), level="DEBUG")
    yield records
    logger.remove(sink_id)
