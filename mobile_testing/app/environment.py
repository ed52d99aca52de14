# mobile_testing/app/environment.py
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .settings import HarnessSettings


@dataclass
class HarnessPaths:
    """Resolved filesystem locations used by the harness."""

    root: Path
    config_dir: Path
    artifacts_dir: Path
    screenshots_dir: Path
    reports_dir: Path
    marker_file: Path


def build_paths(settings: HarnessSettings, root: Optional[Path] = None) -> HarnessPaths:
    """Resolve the configured layout against ``root`` and ensure artifact directories exist."""
    base = Path(root) if root is not None else Path.cwd()
    artifacts_dir = _resolve(base, settings.artifacts_dir)
    paths = HarnessPaths(
        root=base,
        config_dir=_resolve(base, settings.config_dir),
        artifacts_dir=artifacts_dir,
        screenshots_dir=_resolve(base, settings.screenshots_dir) if settings.screenshots_dir else artifacts_dir / "screenshots",
        reports_dir=_resolve(base, settings.reports_dir) if settings.reports_dir else artifacts_dir / "allure-results",
        marker_file=_resolve(base, settings.marker_file) if settings.marker_file else artifacts_dir / ".cleanup-marker.json",
    )
    _ensure_dirs(paths.artifacts_dir, paths.screenshots_dir, paths.reports_dir, paths.marker_file.parent)
    return paths


def _resolve(base: Path, value: str) -> Path:
    candidate = Path(value).expanduser()
    return candidate if candidate.is_absolute() else base / candidate


def _ensure_dirs(*directories: Path) -> None:
    for directory in directories:
        directory.mkdir(parents=True, exist_ok=True)
