"""Custom exception types for the automation driver layer."""

from __future__ import annotations

import enum
from typing import Any, Optional


class ConfigMissingWarning(UserWarning):
    """Emitted when configuration is absent and a default is substituted."""


class AutomationError(RuntimeError):
    """Base class for automation-related failures."""


class InfrastructureError(AutomationError):
    """Base class for failures of the environment rather than the app under test."""


class CapabilityBuildError(InfrastructureError):
    """Raised when merged capabilities lack a required platform-identity field."""


class SessionCreateError(InfrastructureError):
    """Raised when a remote session cannot be opened for a worker."""


class InteractionError(AutomationError):
    """Base class for failures while acting on a located element."""

    def __init__(self, message: str, locator: Optional[Any] = None) -> None:
        super().__init__(message)
        self.locator = locator


class ElementNotFoundError(InteractionError):
    """Raised when an element does not become visible within the wait bound."""


class ActionFailedError(InteractionError):
    """Raised when an element was found but the action on it failed."""


class InputFailedError(ActionFailedError):
    """Raised when a text field cannot be focused, cleared or typed into."""


class ArtifactIOError(AutomationError):
    """Raised when a failure artifact cannot be written to disk."""


class CleanupIOError(AutomationError):
    """Raised when stale artifacts cannot be removed."""


class FailureKind(str, enum.Enum):
    INFRASTRUCTURE = "infrastructure"
    INTERACTION = "interaction"
    ASSERTION = "assertion"
    ERROR = "error"


def classify_failure(exc: Optional[BaseException]) -> Optional[FailureKind]:
    """Map an exception to the kind reported alongside a failed test."""
    if exc is None:
        return None
    if isinstance(exc, InfrastructureError):
        return FailureKind.INFRASTRUCTURE
    if isinstance(exc, InteractionError):
        return FailureKind.INTERACTION
    if isinstance(exc, AssertionError):
        return FailureKind.ASSERTION
    return FailureKind.ERROR
