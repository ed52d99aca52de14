# mobile_testing/app/settings.py
from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Optional


@dataclass
class HarnessSettings:
    environment: str = "local"
    device: str = "android_pixel_7"
    config_dir: str = "config"
    artifacts_dir: str = "artifacts"
    screenshots_dir: Optional[str] = None
    reports_dir: Optional[str] = None
    marker_file: Optional[str] = None
    element_timeout: float = 15.0
    probe_timeout: float = 2.0
    poll_interval: float = 0.5
    persist_screenshots: bool = True
    lock_timeout: float = 30.0

    @classmethod
    def load(cls, path: Path) -> HarnessSettings:
        if not path.exists():
            return cls()
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except Exception:
            return cls()
        if not isinstance(data, dict):
            return cls()
        return cls(
            environment=str(data.get("environment", cls.environment)),
            device=str(data.get("device", cls.device)),
            config_dir=str(data.get("config_dir", cls.config_dir)),
            artifacts_dir=str(data.get("artifacts_dir", cls.artifacts_dir)),
            screenshots_dir=data.get("screenshots_dir"),
            reports_dir=data.get("reports_dir"),
            marker_file=data.get("marker_file"),
            element_timeout=float(data.get("element_timeout", cls.element_timeout)),
            probe_timeout=float(data.get("probe_timeout", cls.probe_timeout)),
            poll_interval=float(data.get("poll_interval", cls.poll_interval)),
            persist_screenshots=bool(data.get("persist_screenshots", cls.persist_screenshots)),
            lock_timeout=float(data.get("lock_timeout", cls.lock_timeout)),
        )
