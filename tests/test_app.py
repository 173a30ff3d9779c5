from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest

from build_uploader import __main__ as entry
from build_uploader import app as app_module
from build_uploader.orchestrator import Orchestrator


@pytest.fixture(autouse=True)
def isolated_logging(tmp_path: Path, monkeypatch):
    monkeypatch.setattr(app_module, "get_log_path", lambda: tmp_path / "uploader.log")
    root = logging.getLogger()
    before = list(root.handlers)
    level = root.level
    yield
    for handler in root.handlers[:]:
        if handler not in before:
            root.removeHandler(handler)
            handler.close()
    root.setLevel(level)


def write_config(tmp_path: Path, **values) -> Path:
    path = tmp_path / "config.json"
    path.write_text(json.dumps(values), encoding="utf-8")
    return path


def test_build_orchestrator_wires_settings(tmp_path: Path) -> None:
    path = write_config(
        tmp_path,
        download_directory=str(tmp_path / "dl"),
        publish_tool_directory=str(tmp_path / "tool"),
        state_directory=str(tmp_path / "state"),
        targets_directory=str(tmp_path / "configs"),
    )
    app = app_module.App(path)

    orch = app_module.build_orchestrator(app.config)

    assert isinstance(orch, Orchestrator)
    assert orch.targets_dir == tmp_path / "configs"
    assert orch.state.directory == tmp_path / "state"
    assert orch.stager.download_dir == tmp_path / "dl"
    assert orch.publisher.tool_dir == tmp_path / "tool"


def test_once_with_no_targets_exits_cleanly(tmp_path: Path) -> None:
    (tmp_path / "configs").mkdir()
    path = write_config(
        tmp_path,
        download_directory=str(tmp_path / "dl"),
        publish_tool_directory=str(tmp_path / "tool"),
        state_directory=str(tmp_path / "state"),
        targets_directory=str(tmp_path / "configs"),
    )

    assert entry.main(["--config", str(path), "--once"]) == 0


def test_invalid_configuration_exits_with_status_1(tmp_path: Path, monkeypatch) -> None:
    for var in ("BUILD_UPLOADER_DOWNLOAD_DIRECTORY", "BUILD_UPLOADER_PUBLISH_TOOL_DIRECTORY"):
        monkeypatch.delenv(var, raising=False)
    path = write_config(tmp_path)

    assert entry.main(["--config", str(path), "--once"]) == 1


def test_rescan_hotkey_requests_a_pass(tmp_path: Path) -> None:
    app = app_module.App(write_config(tmp_path))
    requested = []

    class StubScheduler:
        def request_pass(self, trigger):
            requested.append(trigger)

    app.on_rescan()  # no scheduler yet: ignored
    app.scheduler = StubScheduler()
    app.on_rescan()

    assert requested == ["manual"]


def test_run_once_goes_through_the_scheduler(tmp_path: Path) -> None:
    (tmp_path / "configs").mkdir()
    path = write_config(
        tmp_path,
        download_directory=str(tmp_path / "dl"),
        publish_tool_directory=str(tmp_path / "tool"),
        state_directory=str(tmp_path / "state"),
        targets_directory=str(tmp_path / "configs"),
    )
    app = app_module.App(path)

    report = app.run_once()

    assert report.trigger == "manual"
    assert report.results == []
    assert app.scheduler is not None
    assert not app.scheduler.is_running


def test_run_once_skips_while_a_pass_is_in_flight(tmp_path: Path) -> None:
    (tmp_path / "configs").mkdir()
    path = write_config(
        tmp_path,
        download_directory=str(tmp_path / "dl"),
        publish_tool_directory=str(tmp_path / "tool"),
        state_directory=str(tmp_path / "state"),
        targets_directory=str(tmp_path / "configs"),
    )
    app = app_module.App(path)
    app.prepare()
    app.scheduler = app_module.PassScheduler(app.orchestrator.run_pass, 5)
    app.scheduler._pass_lock.acquire()
    try:
        assert app.run_once() is None
    finally:
        app.scheduler._pass_lock.release()
