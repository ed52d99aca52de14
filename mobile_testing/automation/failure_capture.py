"""
Test results, failure screenshots and guaranteed session teardown.

Every outcome is recorded in the report with its status and duration; a
failure adds its reason and stack trace. On a failed outcome the worker's
live session is asked for a screenshot. The image is attached to the report
and persisted to the artifact store inside two separate failure boundaries,
so either one can fail without affecting the other. The worker's session
is destroyed afterwards on every path.
"""

from __future__ import annotations

import enum
import logging
import traceback
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Optional

from .artifacts import ArtifactStore
from .driver.appium import SessionManager
from .driver.exceptions import FailureKind, classify_failure
from .reporting.allure_helpers import PNG, ReportSink, attach_text
from .util import failure_screenshot_name, safe_test_name

logger = logging.getLogger(__name__)


class TestStatus(str, enum.Enum):
    __test__ = False

    PASSED = "passed"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class TestOutcome:
    """Result of one test as seen by the harness."""

    __test__ = False

    name: str
    status: TestStatus
    error: Optional[BaseException] = None
    duration: Optional[float] = None

    @property
    def failed(self) -> bool:
        return self.status is TestStatus.FAILED

    @property
    def failure_kind(self) -> Optional[FailureKind]:
        if not self.failed:
            return None
        return classify_failure(self.error) or FailureKind.ERROR


class FailureCapture:
    def __init__(
        self,
        sessions: SessionManager,
        store: ArtifactStore,
        sink: ReportSink,
        *,
        persist: bool = True,
    ) -> None:
        self._sessions = sessions
        self._store = store
        self._sink = sink
        self._persist = persist

    def on_outcome(self, outcome: TestOutcome, worker_id: Optional[str] = None) -> Optional[Path]:
        """Record the outcome, capture evidence for a failure, then destroy the worker's session.

        Returns the persisted screenshot path, if one was written.
        """
        try:
            self._record_result(outcome)
            if not outcome.failed:
                return None
            self._label_failure(outcome)
            payload = self._grab_screenshot(outcome.name, worker_id)
            if payload is None:
                return None
            name = failure_screenshot_name(outcome.name, datetime.now())
            self._attach(f"Failure Screenshot - {outcome.name}", payload)
            return self._save(name, payload)
        finally:
            self._sessions.destroy(worker_id)

    def attach_step_screenshot(self, label: str, worker_id: Optional[str] = None) -> Optional[Path]:
        """Best-effort screenshot of the current screen for a named step."""
        payload = self._grab_screenshot(label, worker_id)
        if payload is None:
            return None
        stamp = datetime.now().strftime("%Y-%m-%d_%H-%M-%S")
        try:
            with self._sink.step(label):
                self._attach(label, payload)
        except Exception as exc:
            logger.error("Failed to record report step '%s': %s", label, exc)
        return self._save(f"{safe_test_name(label)}_{stamp}.png", payload)

    def _record_result(self, outcome: TestOutcome) -> None:
        try:
            attach_text(self._sink, "Test Result", outcome.status.name)
            if outcome.duration is not None:
                attach_text(self._sink, "Duration (ms)", str(round(outcome.duration * 1000)))
            if outcome.status is TestStatus.SKIPPED and outcome.error is not None:
                attach_text(self._sink, "Skip Reason", str(outcome.error))
        except Exception as exc:
            logger.error("Failed to record result of %s in report: %s", outcome.name, exc)

    def _label_failure(self, outcome: TestOutcome) -> None:
        kind = outcome.failure_kind
        error = outcome.error
        try:
            if kind is not None:
                self._sink.label("tag", kind.value)
            if error is not None:
                attach_text(self._sink, "Failure Reason", f"{type(error).__name__}: {error}")
                attach_text(
                    self._sink,
                    "Stack Trace",
                    "".join(traceback.format_exception(type(error), error, error.__traceback__)),
                )
        except Exception as exc:
            logger.error("Failed to label failure of %s in report: %s", outcome.name, exc)

    def _grab_screenshot(self, label: str, worker_id: Optional[str]) -> Optional[bytes]:
        if not self._sessions.is_active(worker_id):
            logger.warning("No active session; skipping screenshot for %s", label)
            return None
        try:
            driver = self._sessions.get(worker_id).driver
            return driver.get_screenshot_as_png()
        except Exception as exc:
            logger.error("Failed to capture screenshot for %s: %s", label, exc)
            return None

    def _attach(self, name: str, payload: bytes) -> None:
        try:
            self._sink.attach(name, payload, PNG)
            logger.info("Screenshot attached to report: %s", name)
        except Exception as exc:
            logger.error("Failed to attach screenshot '%s' to report: %s", name, exc)

    def _save(self, name: str, payload: bytes) -> Optional[Path]:
        if not self._persist:
            return None
        try:
            return self._store.persist_screenshot(name, payload)
        except Exception as exc:
            logger.error("Failed to persist screenshot %s: %s", name, exc)
            return None
