from __future__ import annotations

import json
from pathlib import Path
from typing import Dict

import pytest

from mobile_testing.app.configuration import RuntimeConfig, load_runtime_config
from mobile_testing.app.environment import build_paths
from mobile_testing.app.settings import HarnessSettings


@pytest.fixture
def temp_ini(tmp_path: Path) -> Path:
    ini = tmp_path / "mobile_testing.ini"
    ini.write_text(
        "[harness]\n"
        "environment = ci\n"
        "element_timeout = 7.5\n"
        "persist_screenshots = false\n"
        "artifacts_dir = build/artifacts\n",
        encoding="utf-8",
    )
    return ini


def test_load_runtime_config_prefers_explicit_path(temp_ini: Path) -> None:
    cfg = load_runtime_config({}, config_path=temp_ini)
    assert cfg.environment == "ci"
    assert cfg.element_timeout == pytest.approx(7.5)
    assert cfg.persist_screenshots is False
    assert cfg.artifacts_dir == "build/artifacts"
    assert cfg.config_source == temp_ini


def test_env_overrides_ini(temp_ini: Path) -> None:
    env: Dict[str, str] = {
        "MOBILE_TESTING_ENV": "cloud",
        "MOBILE_TESTING_ELEMENT_TIMEOUT": "3",
        "MOBILE_TESTING_PERSIST_SCREENSHOTS": "yes",
        "MOBILE_TESTING_DEVICE": "android_emulator",
    }
    cfg = load_runtime_config(env, config_path=temp_ini)
    assert cfg.environment == "cloud"
    assert cfg.element_timeout == pytest.approx(3.0)
    assert cfg.persist_screenshots is True
    assert cfg.device == "android_emulator"


def test_config_file_found_through_environment(temp_ini: Path) -> None:
    cfg = load_runtime_config({"MOBILE_TESTING_CONFIG_FILE": str(temp_ini)})
    assert cfg.config_source == temp_ini
    assert cfg.environment == "ci"


def test_invalid_numbers_keep_previous_value(temp_ini: Path) -> None:
    cfg = load_runtime_config({"MOBILE_TESTING_ELEMENT_TIMEOUT": "soon"}, config_path=temp_ini)
    assert cfg.element_timeout == pytest.approx(7.5)


def test_runtime_config_applies_to_settings(temp_ini: Path) -> None:
    cfg = load_runtime_config({}, config_path=temp_ini)
    settings = HarnessSettings()
    cfg.apply_to_settings(settings)
    assert settings.environment == "ci"
    assert settings.element_timeout == pytest.approx(7.5)
    assert settings.persist_screenshots is False
    # Untouched values keep their defaults
    assert settings.device == "android_pixel_7"
    assert settings.probe_timeout == pytest.approx(2.0)


def test_load_runtime_config_handles_missing_file(tmp_path: Path) -> None:
    missing = tmp_path / "does_not_exist.ini"
    cfg = load_runtime_config({}, config_path=missing)
    assert cfg == RuntimeConfig(config_source=missing)


def test_settings_load_reads_json(tmp_path: Path) -> None:
    path = tmp_path / "settings.json"
    path.write_text(json.dumps({"environment": "ci", "element_timeout": 4, "reports_dir": "out/allure"}), encoding="utf-8")
    loaded = HarnessSettings.load(path)
    assert loaded.environment == "ci"
    assert loaded.element_timeout == pytest.approx(4.0)
    assert loaded.reports_dir == "out/allure"
    assert loaded.device == HarnessSettings.device


def test_settings_load_falls_back_to_defaults(tmp_path: Path) -> None:
    broken = tmp_path / "settings.json"
    broken.write_text("{not json", encoding="utf-8")
    assert HarnessSettings.load(broken) == HarnessSettings()
    assert HarnessSettings.load(tmp_path / "absent.json") == HarnessSettings()


def test_build_paths_uses_artifact_defaults(tmp_path: Path) -> None:
    paths = build_paths(HarnessSettings(), root=tmp_path)
    assert paths.screenshots_dir == tmp_path / "artifacts" / "screenshots"
    assert paths.reports_dir == tmp_path / "artifacts" / "allure-results"
    assert paths.marker_file == tmp_path / "artifacts" / ".cleanup-marker.json"
    assert paths.screenshots_dir.is_dir()
    assert paths.reports_dir.is_dir()
    assert paths.config_dir == tmp_path / "config"
