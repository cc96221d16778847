"""
Service-level tests for the hot-folder pipeline.

They run the real stack (watchdog observers, worker pool, stability gate,
file log) against a temporary hot folder, with a recording gateway standing
in for the CAD host.
"""

import json

import pytest
from fastapi.testclient import TestClient
from pydantic import ValidationError

from app.main import create_app
from app.utils.config import Settings
from domains.hot_folder.errors import StartupFailure
from domains.hot_folder.service import HotFolderService


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        hot_root=tmp_path / "PanelSyncHot",
        stability_initial_delay=0.05,
        stability_poll_interval=0.05,
        stability_timeout=3.0,
        watch_liveness_interval=0.1,
        worker_threads=2,
    )


@pytest.fixture
def service(settings, gateway):
    service = HotFolderService(settings, gateway)
    service.activate()
    yield service
    service.deactivate()


def test_activation_creates_layout_and_watches(service):
    status = service.status()

    assert status.active
    assert all(directory.is_dir() for directory in service.layout.directories())
    assert len(status.watchers) == 2
    assert all(watcher.alive for watcher in status.watchers)


def test_job_drop_exports_obj_end_to_end(tmp_path, service, gateway, wait_for):
    gateway.open("C:/work/Panel.ipt")
    out = tmp_path / "out"
    job = {"Kind": "ExportPanelAsOBJ", "IptPath": "C:/work/Panel.ipt", "OutFolder": str(out), "Rev": "B"}

    (service.layout.jobs_dir / "job.json").write_text(json.dumps(job))

    assert wait_for(lambda: (out / "Panel_P001_rB.obj").exists())
    assert wait_for(lambda: len(service.dispatcher.in_flight) == 0)


def test_geometry_drop_is_imported_end_to_end(service, gateway, wait_for):
    (service.layout.geometry_in_dir / "exp_20250101.igs").write_bytes(b"S      1\n" * 50)

    assert wait_for(lambda: any(call[0] == "import" for call in gateway.calls))


def test_outcomes_are_written_to_the_log_file(settings, gateway, wait_for):
    service = HotFolderService(settings, gateway)
    service.activate()
    (service.layout.jobs_dir / "rotate.json").write_text('{"Kind":"RotatePanel"}')
    assert wait_for(lambda: service.status().outcomes.get("unsupported", 0) >= 1)
    service.deactivate()

    text = service.log_file.read_text(encoding="utf-8")
    assert "Unknown or unsupported job kind: RotatePanel" in text
    assert "[WARNING]" in text


def test_deactivate_stops_watchers(settings, gateway):
    service = HotFolderService(settings, gateway)
    service.activate()

    service.deactivate()

    assert not service.active
    assert service.status().watchers == []


def test_invalid_worker_count_is_a_startup_failure(settings, gateway):
    service = HotFolderService(settings.model_copy(update={"worker_threads": 0}), gateway)

    with pytest.raises(StartupFailure):
        service.activate()

    assert not service.active
    assert service._log_sink is None


def test_settings_reject_zero_workers(tmp_path):
    with pytest.raises(ValidationError):
        Settings(hot_root=tmp_path, worker_threads=0)


def test_api_health_and_export_latest(settings, gateway):
    app = create_app(settings, gateway)

    with TestClient(app) as client:
        health = client.get("/health").json()
        assert health["status"] == "healthy"
        assert health["watchers_total"] == 2

        assert client.post("/admin/export-latest").status_code == 409

        gateway.open("C:/work/Active.ipt", active=True)
        response = client.post("/admin/export-latest")
        assert response.status_code == 200
        assert response.json()["details"]["path"].endswith("latest.obj")

        stats = client.get("/admin/stats").json()
        assert stats["active"] is True
        assert stats["hot_root"] == str(settings.hot_root)
