"""Runtime configuration loading helpers for the mobile testing harness."""

from __future__ import annotations

import configparser
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from .settings import HarnessSettings

_ENV_PREFIX = "MOBILE_TESTING_"
_BOOL_TRUE = {"1", "true", "yes", "on"}
_BOOL_FALSE = {"0", "false", "no", "off"}


@dataclass(slots=True)
class RuntimeConfig:
    """Declarative overrides sourced from environment variables or config files."""

    config_source: Optional[Path] = None
    environment: Optional[str] = None
    device: Optional[str] = None
    config_dir: Optional[str] = None
    artifacts_dir: Optional[str] = None
    screenshots_dir: Optional[str] = None
    reports_dir: Optional[str] = None
    marker_file: Optional[str] = None
    element_timeout: Optional[float] = None
    probe_timeout: Optional[float] = None
    poll_interval: Optional[float] = None
    persist_screenshots: Optional[bool] = None
    lock_timeout: Optional[float] = None

    def apply_to_settings(self, settings: HarnessSettings) -> None:
        """Project runtime overrides onto persisted settings without destroying saved values."""

        if self.environment is not None:
            settings.environment = self.environment
        if self.device is not None:
            settings.device = self.device
        if self.config_dir is not None:
            settings.config_dir = self.config_dir
        if self.artifacts_dir is not None:
            settings.artifacts_dir = self.artifacts_dir
        if self.screenshots_dir is not None:
            settings.screenshots_dir = self.screenshots_dir
        if self.reports_dir is not None:
            settings.reports_dir = self.reports_dir
        if self.marker_file is not None:
            settings.marker_file = self.marker_file
        if self.element_timeout is not None:
            settings.element_timeout = self.element_timeout
        if self.probe_timeout is not None:
            settings.probe_timeout = self.probe_timeout
        if self.poll_interval is not None:
            settings.poll_interval = self.poll_interval
        if self.persist_screenshots is not None:
            settings.persist_screenshots = self.persist_screenshots
        if self.lock_timeout is not None:
            settings.lock_timeout = self.lock_timeout


def load_runtime_config(
    env: Mapping[str, str] | None = None,
    config_path: Optional[Path] = None,
) -> RuntimeConfig:
    """Load runtime configuration overrides from environment variables and optional INI files."""

    source_env = os.environ if env is None else env
    config_file = _determine_config_path(source_env, config_path)
    config = RuntimeConfig(config_source=config_file)

    if config_file is not None and config_file.is_file():
        parser: Optional[configparser.ConfigParser] = configparser.ConfigParser(interpolation=None)
        try:
            parser.read(config_file, encoding="utf-8")
        except configparser.Error:
            parser = None  # pragma: no cover - invalid file handled via env overrides only
        if parser is not None and parser.has_section("harness"):
            section = parser["harness"]
            config.environment = section.get("environment", config.environment)
            config.device = section.get("device", config.device)
            config.config_dir = section.get("config_dir", config.config_dir)
            config.artifacts_dir = section.get("artifacts_dir", config.artifacts_dir)
            config.screenshots_dir = section.get("screenshots_dir", config.screenshots_dir)
            config.reports_dir = section.get("reports_dir", config.reports_dir)
            config.marker_file = section.get("marker_file", config.marker_file)
            config.element_timeout = _get_float(section, "element_timeout", config.element_timeout)
            config.probe_timeout = _get_float(section, "probe_timeout", config.probe_timeout)
            config.poll_interval = _get_float(section, "poll_interval", config.poll_interval)
            config.persist_screenshots = _get_bool(section, "persist_screenshots", config.persist_screenshots)
            config.lock_timeout = _get_float(section, "lock_timeout", config.lock_timeout)

    _apply_env_overrides(config, source_env)
    return config


def _determine_config_path(env: Mapping[str, str], explicit: Optional[Path]) -> Optional[Path]:
    if explicit is not None:
        return explicit
    env_override = env.get(f"{_ENV_PREFIX}CONFIG_FILE")
    if env_override:
        return Path(env_override).expanduser()
    candidates = (
        Path(env.get(f"{_ENV_PREFIX}ROOT", "")) / "mobile_testing.ini" if env.get(f"{_ENV_PREFIX}ROOT") else None,
        Path.cwd() / "mobile_testing.ini",
        Path.cwd() / "mobile-testing.ini",
    )
    for candidate in candidates:
        if candidate and candidate.is_file():
            return candidate
    return None


def _apply_env_overrides(config: RuntimeConfig, env: Mapping[str, str]) -> None:
    config.environment = env.get(f"{_ENV_PREFIX}ENV", config.environment)
    config.device = env.get(f"{_ENV_PREFIX}DEVICE", config.device)
    config.config_dir = env.get(f"{_ENV_PREFIX}CONFIG_DIR", config.config_dir)
    config.artifacts_dir = env.get(f"{_ENV_PREFIX}ARTIFACTS_DIR", config.artifacts_dir)
    config.screenshots_dir = env.get(f"{_ENV_PREFIX}SCREENSHOTS_DIR", config.screenshots_dir)
    config.reports_dir = env.get(f"{_ENV_PREFIX}REPORTS_DIR", config.reports_dir)
    config.marker_file = env.get(f"{_ENV_PREFIX}MARKER_FILE", config.marker_file)
    config.element_timeout = _get_float(env, f"{_ENV_PREFIX}ELEMENT_TIMEOUT", config.element_timeout)
    config.probe_timeout = _get_float(env, f"{_ENV_PREFIX}PROBE_TIMEOUT", config.probe_timeout)
    config.poll_interval = _get_float(env, f"{_ENV_PREFIX}POLL_INTERVAL", config.poll_interval)
    config.persist_screenshots = _get_bool(env, f"{_ENV_PREFIX}PERSIST_SCREENSHOTS", config.persist_screenshots)
    config.lock_timeout = _get_float(env, f"{_ENV_PREFIX}LOCK_TIMEOUT", config.lock_timeout)


def _get_float(source: Mapping[str, str], key: str, default: Optional[float]) -> Optional[float]:
    raw = source.get(key)
    if raw is None:
        return default
    try:
        return float(str(raw).strip())
    except (TypeError, ValueError):
        return default


def _get_bool(source: Mapping[str, str], key: str, default: Optional[bool]) -> Optional[bool]:
    raw = source.get(key)
    if raw is None:
        return default
    value = str(raw).strip().lower()
    if value in _BOOL_TRUE:
        return True
    if value in _BOOL_FALSE:
        return False
    return default
