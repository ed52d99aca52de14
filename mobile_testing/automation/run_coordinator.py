"""
First-vs-later test group detection and one-time artifact cleanup.

Several test groups (modules) can run inside one process and must accumulate
their screenshots and report fragments into one shared report. Only the first
group of a run may discard what a previous run left behind. The run is
identified by a :class:`RunIdentity` created once at process start and
recorded in a marker file when cleanup happens; a later group that finds its
own identity in the marker leaves the artifacts alone.

The check-and-transition sequence runs under a thread lock and an
exclusive-create lock file, so concurrent starters (threads or worker
processes sharing the run identity) clean at most once.
"""

from __future__ import annotations

import enum
import json
import logging
import os
import threading
import time
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, MutableMapping, Optional

from .artifacts import ArtifactStore
from .driver.exceptions import CleanupIOError
from .reporting.allure_helpers import ReportSink, attach_text

logger = logging.getLogger(__name__)

RUN_ID_ENV = "MOBILE_TESTING_RUN_ID"
RUN_STARTED_ENV = "MOBILE_TESTING_RUN_STARTED"


@dataclass(frozen=True)
class RunIdentity:
    """Start time and unique id of the current run."""

    started_at: float
    run_id: str

    @classmethod
    def generate(cls) -> RunIdentity:
        return cls(started_at=time.time(), run_id=f"{os.getpid()}-{uuid.uuid4().hex}")

    @classmethod
    def from_environ(cls, environ: Mapping[str, str]) -> Optional[RunIdentity]:
        run_id = environ.get(RUN_ID_ENV)
        started = environ.get(RUN_STARTED_ENV)
        if not run_id or not started:
            return None
        try:
            return cls(started_at=float(started), run_id=run_id)
        except ValueError:
            logger.warning("Ignoring malformed %s=%r", RUN_STARTED_ENV, started)
            return None

    @classmethod
    def current(cls, environ: Optional[Mapping[str, str]] = None) -> RunIdentity:
        """Identity inherited from a parent process, or a freshly generated one."""
        source = os.environ if environ is None else environ
        return cls.from_environ(source) or cls.generate()

    def export(self, environ: MutableMapping[str, str]) -> None:
        environ[RUN_ID_ENV] = self.run_id
        environ[RUN_STARTED_ENV] = repr(self.started_at)

    def withdraw(self, environ: MutableMapping[str, str]) -> None:
        """Remove exported variables, but only if they still describe this run."""
        if environ.get(RUN_ID_ENV) != self.run_id:
            return
        environ.pop(RUN_ID_ENV, None)
        environ.pop(RUN_STARTED_ENV, None)

    def to_marker(self) -> dict:
        return {"processStartTime": self.started_at, "processIdentity": self.run_id}

    @classmethod
    def from_marker(cls, data: Any) -> RunIdentity:
        if not isinstance(data, dict):
            raise ValueError("marker is not a JSON object")
        return cls(started_at=float(data["processStartTime"]), run_id=str(data["processIdentity"]))


class RunState(str, enum.Enum):
    UNINITIALIZED = "uninitialized"
    CLEANED = "cleaned"


class _MarkerLock:
    """Cross-process mutex built on exclusive file creation."""

    def __init__(self, path: Path, timeout: float, poll_interval: float = 0.05, stale_after: float = 300.0) -> None:
        self.path = path
        self.timeout = timeout
        self.poll_interval = poll_interval
        self.stale_after = stale_after
        self._held = False

    def acquire(self) -> None:
        deadline = time.monotonic() + max(self.timeout, 0.0)
        while True:
            try:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                fd = os.open(str(self.path), os.O_CREAT | os.O_EXCL | os.O_WRONLY)
            except FileExistsError:
                if self._break_if_stale():
                    continue
                if time.monotonic() >= deadline:
                    raise CleanupIOError(f"Timed out after {self.timeout:.1f}s waiting for {self.path}")
                time.sleep(self.poll_interval)
                continue
            except OSError as exc:
                raise CleanupIOError(f"Could not create lock file {self.path}: {exc}") from exc
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(str(os.getpid()))
            self._held = True
            return

    def release(self) -> None:
        if not self._held:
            return
        self._held = False
        try:
            self.path.unlink()
        except OSError as exc:
            logger.warning("Could not remove lock file %s: %s", self.path, exc)

    def _break_if_stale(self) -> bool:
        """Remove the lock if it is older than ``stale_after``. Returns True when the caller should retry at once."""
        try:
            seen = self.path.stat()
        except OSError:
            return True
        age = time.time() - seen.st_mtime
        if age < self.stale_after:
            return False
        # Move the exact file that was judged stale; a fresh lock taken meanwhile is put back.
        moved = self.path.with_name(f"{self.path.name}.{uuid.uuid4().hex}.stale")
        try:
            os.rename(self.path, moved)
        except OSError:
            return True
        try:
            try:
                current = moved.stat()
            except OSError:
                return True
            if (current.st_ino, current.st_mtime_ns) != (seen.st_ino, seen.st_mtime_ns):
                try:
                    os.link(moved, self.path)
                except OSError as exc:
                    logger.warning("Could not restore lock file %s: %s", self.path, exc)
                return False
            logger.warning("Removed stale lock file %s (%.0fs old)", self.path, age)
            return True
        finally:
            try:
                moved.unlink()
            except OSError:
                pass


class RunCoordinator:
    """Performs artifact cleanup at most once per run."""

    def __init__(
        self,
        store: ArtifactStore,
        marker_path: Path,
        identity: RunIdentity,
        *,
        lock_timeout: float = 30.0,
        sink: Optional[ReportSink] = None,
    ) -> None:
        self._store = store
        self._sink = sink
        self._marker_path = Path(marker_path)
        self._lock_path = self._marker_path.with_name(self._marker_path.name + ".lock")
        self._identity = identity
        self._lock_timeout = lock_timeout
        self._lock = threading.Lock()
        self._state = RunState.UNINITIALIZED
        self._cleanups = 0

    @property
    def identity(self) -> RunIdentity:
        return self._identity

    @property
    def state(self) -> RunState:
        return self._state

    @property
    def cleanups(self) -> int:
        """Number of cleanups this coordinator has performed (0 or 1)."""
        return self._cleanups

    @property
    def marker_path(self) -> Path:
        return self._marker_path

    def on_group_start(self, group: str = "") -> bool:
        """Signal that a test group is starting. Returns True if this call cleaned the store."""
        with self._lock:
            if self._state is RunState.CLEANED:
                logger.debug("Test group '%s' started; cleanup already handled for run %s", group, self._identity.run_id)
                return False
            file_lock = _MarkerLock(self._lock_path, self._lock_timeout)
            try:
                file_lock.acquire()
            except CleanupIOError as exc:
                logger.warning("Proceeding without cross-process lock: %s", exc)
            try:
                return self._transition(group)
            finally:
                file_lock.release()

    def read_marker(self) -> Optional[RunIdentity]:
        """Identity recorded by the last cleanup, or None when absent or unreadable."""
        if not self._marker_path.exists():
            return None
        try:
            return RunIdentity.from_marker(json.loads(self._marker_path.read_text(encoding="utf-8")))
        except (OSError, ValueError, KeyError, TypeError) as exc:
            logger.warning("Could not read cleanup marker file, treating as new run: %s", exc)
            return None

    def _transition(self, group: str) -> bool:
        marker = self.read_marker()
        if marker == self._identity:
            logger.info(
                "Later test group '%s' in run %s - preserving %d screenshot(s) and %d report file(s)",
                group,
                self._identity.run_id,
                self._store.count_screenshots(),
                self._store.count_reports(),
            )
            self._state = RunState.CLEANED
            return False

        if marker is None:
            logger.info("First test group '%s' of a new run - no previous marker found, performing cleanup", group)
        else:
            logger.info(
                "First test group '%s' of a new run - marker belongs to run %s, performing cleanup",
                group,
                marker.run_id,
            )
        before_screenshots = self._store.count_screenshots()
        before_reports = self._store.count_reports()
        failure: Optional[CleanupIOError] = None
        try:
            self._store.clear(preserve=(self._marker_path, self._lock_path))
        except CleanupIOError as exc:
            logger.warning("Failed to perform first test group cleanup: %s", exc)
            failure = exc
        after_screenshots = self._store.count_screenshots()
        after_reports = self._store.count_reports()
        logger.info(
            "Cleanup completed: screenshots %d -> %d, report files %d -> %d",
            before_screenshots,
            after_screenshots,
            before_reports,
            after_reports,
        )
        self._report_cleanup(failure, (before_screenshots, after_screenshots), (before_reports, after_reports))
        self._write_marker()
        self._state = RunState.CLEANED
        self._cleanups += 1
        return True

    def _report_cleanup(self, failure: Optional[CleanupIOError], screenshots: tuple, reports: tuple) -> None:
        if self._sink is None:
            return
        if failure is None:
            status = "SUCCESS - First test group cleanup completed"
        else:
            status = f"WARNING - Cleanup failed: {failure}"
        try:
            attach_text(self._sink, "Cleanup Status", status)
            attach_text(self._sink, "Allure Results Cleaned", "%d -> %d" % reports)
            attach_text(self._sink, "Screenshots Cleaned", "%d -> %d" % screenshots)
        except Exception as exc:
            logger.warning("Could not attach cleanup status to report: %s", exc)

    def _write_marker(self) -> None:
        try:
            self._marker_path.parent.mkdir(parents=True, exist_ok=True)
            tmp = self._marker_path.with_name(self._marker_path.name + ".tmp")
            tmp.write_text(json.dumps(self._identity.to_marker()), encoding="utf-8")
            os.replace(tmp, self._marker_path)
            logger.info("Created cleanup marker for run %s (started: %s)", self._identity.run_id, self._identity.started_at)
        except OSError as exc:
            logger.warning("Could not create cleanup marker file: %s", exc)
