from __future__ import annotations

import io
import json
import subprocess
import zipfile
from pathlib import Path
from typing import Any

import pytest
import requests

from build_uploader.cloud_build import BuildDefinition
from build_uploader.targets import BuildSource, PublishDestination, WatchTarget


class FakeResponse:
    def __init__(
        self,
        status_code: int = 200,
        payload: Any = None,
        content: bytes = b"",
        json_error: bool = False,
    ) -> None:
        self.status_code = status_code
        self._payload = payload
        self.content = content
        self._json_error = json_error
        self.closed = False

    def json(self) -> Any:
        if self._json_error:
            raise ValueError("No JSON object could be decoded")
        return self._payload

    def iter_content(self, chunk_size: int = 1):
        for start in range(0, len(self.content), chunk_size):
            yield self.content[start:start + chunk_size]

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Error")

    def __enter__(self) -> "FakeResponse":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.closed = True


class FakeSession:
    """Records requests and replays queued responses (or raises queued errors)."""

    def __init__(self, *responses: Any) -> None:
        self.responses = list(responses)
        self.calls: list[tuple[str, str, dict[str, Any]]] = []

    def _next(self, method: str, url: str, kwargs: dict[str, Any]) -> Any:
        self.calls.append((method, url, kwargs))
        if not self.responses:
            raise AssertionError(f"unexpected {method} {url}")
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    def get(self, url: str, **kwargs: Any) -> Any:
        return self._next("GET", url, kwargs)

    def post(self, url: str, **kwargs: Any) -> Any:
        return self._next("POST", url, kwargs)

    def close(self) -> None:
        pass


class FakeRunner:
    """Stands in for subprocess.run."""

    def __init__(self, returncode: int = 0, stdout: str = "", stderr: str = "", error: Exception | None = None):
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr
        self.error = error
        self.calls: list[tuple[list[str], dict[str, Any]]] = []
        self.scripts_seen: list[str] = []

    def __call__(self, args: list[str], **kwargs: Any) -> subprocess.CompletedProcess:
        self.calls.append((args, kwargs))
        script_dir = Path(kwargs["cwd"]) / "scripts"
        self.scripts_seen = sorted(p.name for p in script_dir.iterdir())
        if self.error is not None:
            raise self.error
        return subprocess.CompletedProcess(args, self.returncode, self.stdout, self.stderr)


def make_zip(files: dict[str, str]) -> bytes:
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w") as zf:
        for name, text in files.items():
            zf.writestr(name, text)
    return buf.getvalue()


def api_record(
    number: int,
    *,
    branch: str = "main",
    target_id: str = "win64",
    extension: str = "zip",
    changeset: list[dict[str, str]] | None = None,
    revision: str = "rev-0",
) -> dict[str, Any]:
    record: dict[str, Any] = {
        "build": number,
        "buildtargetid": target_id,
        "scmBranch": branch,
        "lastBuiltRevision": revision,
        "links": {
            "download_primary": {
                "href": f"https://cdn.example.com/builds/{number}.{extension}",
                "meta": {"type": extension},
            }
        },
    }
    if changeset is not None:
        record["changeset"] = changeset
    return record


def make_build(number: int = 42, **overrides: Any) -> BuildDefinition:
    fields = {
        "build_number": number,
        "file_name": f"{number}_game_win64_main.zip",
        "download_url": f"https://cdn.example.com/builds/{number}.zip",
        "commit_id": "abc123",
        "commit_message": "Fix crash on startup",
        "scm_branch": "main",
    }
    fields.update(overrides)
    return BuildDefinition(**fields)


def make_target(
    tmp_path: Path,
    name: str = "game",
    *,
    app_id: str = "480",
    branch_name: str | None = "beta",
    notification_url: str | None = None,
    template: str = "app_build_template.vdf",
    use_drm: bool = False,
) -> WatchTarget:
    return WatchTarget(
        name=name,
        source=BuildSource("org", "game", "win64", "secret-key"),
        destination=PublishDestination(
            username="builder",
            password="hunter2",
            app_id=app_id,
            executable_path="Game.exe",
            content_dir=str(tmp_path / "content" / name),
            app_script_template=template,
            display_name="My Game",
            branch_name=branch_name,
            use_drm=use_drm,
        ),
        notification_url=notification_url,
    )


def write_target_file(directory: Path, name: str, content_dir: Path, **destination: Any) -> Path:
    data = {
        "source": {
            "organization_id": "org",
            "project_name": "game",
            "target_id": "win64",
            "api_key": "secret-key",
        },
        "destination": {
            "username": "builder",
            "password": "hunter2",
            "app_id": "480",
            "branch_name": "beta",
            "executable_path": "Game.exe",
            "content_dir": str(content_dir),
            "app_script_template": "app_build_template.vdf",
            "display_name": "My Game",
            **destination,
        },
    }
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / f"{name}.json"
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


@pytest.fixture
def tool_dir(tmp_path: Path) -> Path:
    scripts = tmp_path / "tool" / "scripts"
    scripts.mkdir(parents=True)
    (scripts / "app_build_template.vdf").write_text(
        '"appbuild" { "desc" "Build $buildNumber$ ($fileName$) $commitId$: $commitMessage$ on $scmBranch$" }',
        encoding="utf-8",
    )
    return tmp_path / "tool"
