"""Directories that accumulate failure screenshots and report fragments."""

from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List

from .driver.exceptions import ArtifactIOError, CleanupIOError
from .util import ensure_png_name

logger = logging.getLogger(__name__)


def _count_files(directory: Path) -> int:
    try:
        if not directory.is_dir():
            return 0
        return sum(1 for entry in directory.iterdir() if entry.is_file())
    except OSError as exc:
        logger.debug("Could not count files in %s: %s", directory, exc)
        return 0


@dataclass
class ArtifactStore:
    screenshots_dir: Path
    reports_dir: Path

    def ensure_dirs(self) -> None:
        for directory in (self.screenshots_dir, self.reports_dir):
            directory.mkdir(parents=True, exist_ok=True)

    def count_screenshots(self) -> int:
        return _count_files(self.screenshots_dir)

    def count_reports(self) -> int:
        return _count_files(self.reports_dir)

    def count(self) -> int:
        return self.count_screenshots() + self.count_reports()

    def clear(self, preserve: Iterable[Path] = ()) -> int:
        """
        Delete everything inside both directories, keeping the directories.

        Every entry is attempted; :class:`CleanupIOError` is raised afterwards
        if any of them could not be removed. Returns the number removed.
        """
        keep = {Path(path).resolve() for path in preserve}
        removed = 0
        failures: List[str] = []
        for directory in (self.screenshots_dir, self.reports_dir):
            if not directory.exists():
                continue
            try:
                entries = list(directory.iterdir())
            except OSError as exc:
                failures.append(f"{directory}: {exc}")
                continue
            for entry in entries:
                if entry.resolve() in keep:
                    continue
                try:
                    if entry.is_dir() and not entry.is_symlink():
                        shutil.rmtree(entry)
                    else:
                        entry.unlink()
                    removed += 1
                    logger.debug("Deleted artifact: %s", entry.name)
                except FileNotFoundError:
                    continue
                except OSError as exc:
                    failures.append(f"{entry}: {exc}")
        if failures:
            raise CleanupIOError(f"Could not remove {len(failures)} artifact(s): {'; '.join(failures)}")
        return removed

    def persist_screenshot(self, name: str, payload: bytes) -> Path:
        target = self.screenshots_dir / ensure_png_name(name)
        if not payload:
            raise ArtifactIOError(f"Screenshot data for {target.name} is empty")
        try:
            self.screenshots_dir.mkdir(parents=True, exist_ok=True)
            target.write_bytes(payload)
        except OSError as exc:
            raise ArtifactIOError(f"Failed to save screenshot to {target}: {exc}") from exc
        logger.info("Screenshot saved to: %s", target)
        return target
