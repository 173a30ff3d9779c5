from __future__ import annotations

import json
from pathlib import Path

import pytest

from build_uploader.config import DEFAULT_API_BASE_URL, Config
from build_uploader.errors import ConfigurationError


def write_config(path: Path, **values) -> Path:
    path.write_text(json.dumps(values), encoding="utf-8")
    return path


class TestConfig:
    def test_missing_file_is_created_with_defaults(self, tmp_path: Path) -> None:
        path = tmp_path / "config.json"

        cfg = Config(path, environ={})

        assert path.exists()
        assert cfg.polling_frequency == 15
        assert cfg.targets_directory == Path("configs")
        assert cfg.api_base_url == DEFAULT_API_BASE_URL
        assert cfg.webhook_url == ""
        assert cfg.watch_targets_directory is True

    def test_stored_values_merge_over_defaults(self, tmp_path: Path) -> None:
        path = write_config(
            tmp_path / "config.json",
            polling_frequency_minutes=5,
            download_directory="downloads",
            api_base_url="https://api.example.com/v1/",
        )

        cfg = Config(path, environ={})

        assert cfg.polling_frequency == 5
        assert cfg.download_directory == Path("downloads")
        assert cfg.api_base_url == "https://api.example.com/v1"
        assert cfg.log_backup_count == 3

    def test_unreadable_file_falls_back_to_defaults(self, tmp_path: Path) -> None:
        path = tmp_path / "config.json"
        path.write_text("{ broken", encoding="utf-8")

        cfg = Config(path, environ={})

        assert cfg.polling_frequency == 15

    def test_environment_overrides_file(self, tmp_path: Path) -> None:
        path = write_config(tmp_path / "config.json", polling_frequency_minutes=5)
        environ = {
            "BUILD_UPLOADER_POLLING_FREQUENCY": "30",
            "BUILD_UPLOADER_WEBHOOK_URL": "https://hooks.example.com/x",
            "BUILD_UPLOADER_DOWNLOAD_DIRECTORY": "/srv/downloads",
        }

        cfg = Config(path, environ=environ)

        assert cfg.polling_frequency == 30
        assert cfg.webhook_url == "https://hooks.example.com/x"
        assert cfg.download_directory == Path("/srv/downloads")

    def test_publish_tool_name_defaults_per_platform(self, tmp_path: Path) -> None:
        cfg = Config(tmp_path / "config.json", environ={})

        assert cfg.publish_tool_name in ("Publish-Build.bat", "publish-build.sh")

    def test_state_directory_setting(self, tmp_path: Path) -> None:
        path = write_config(tmp_path / "config.json", state_directory=str(tmp_path / "state"))

        assert Config(path, environ={}).state_directory == tmp_path / "state"


class TestValidate:
    def test_required_settings(self, tmp_path: Path) -> None:
        cfg = Config(tmp_path / "config.json", environ={})

        with pytest.raises(ConfigurationError) as excinfo:
            cfg.validate()

        assert "download_directory" in str(excinfo.value)
        assert "publish_tool_directory" in str(excinfo.value)

    def test_bad_polling_frequency(self, tmp_path: Path) -> None:
        path = write_config(
            tmp_path / "config.json",
            polling_frequency_minutes="often",
            download_directory="d",
            publish_tool_directory="t",
        )

        with pytest.raises(ConfigurationError, match="polling_frequency"):
            Config(path, environ={}).validate()

    def test_complete_config_is_valid(self, tmp_path: Path) -> None:
        path = write_config(
            tmp_path / "config.json", download_directory="d", publish_tool_directory="t"
        )

        Config(path, environ={}).validate()
