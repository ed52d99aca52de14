"""Session, interaction and artifact helpers for mobile UI tests."""

from .artifacts import ArtifactStore
from .failure_capture import FailureCapture, TestOutcome, TestStatus
from .locator import Locator
from .run_coordinator import RunCoordinator, RunIdentity, RunState
