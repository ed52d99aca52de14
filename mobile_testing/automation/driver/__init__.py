"""Public exports for the Appium driver layer."""

from .appium import SessionHandle, SessionManager, attach_appium_session, current_worker_id
from .capabilities import CapabilityBuilder, SessionCapabilities
from .exceptions import (
    ActionFailedError,
    ArtifactIOError,
    AutomationError,
    CapabilityBuildError,
    CleanupIOError,
    ConfigMissingWarning,
    ElementNotFoundError,
    FailureKind,
    InfrastructureError,
    InputFailedError,
    InteractionError,
    SessionCreateError,
    classify_failure,
)
from .interactions import InteractionPrimitives, Probe, ProbeKind

__all__ = [
    "SessionHandle",
    "SessionManager",
    "attach_appium_session",
    "current_worker_id",
    "CapabilityBuilder",
    "SessionCapabilities",
    "ActionFailedError",
    "ArtifactIOError",
    "AutomationError",
    "CapabilityBuildError",
    "CleanupIOError",
    "ConfigMissingWarning",
    "ElementNotFoundError",
    "FailureKind",
    "InfrastructureError",
    "InputFailedError",
    "InteractionError",
    "SessionCreateError",
    "classify_failure",
    "InteractionPrimitives",
    "Probe",
    "ProbeKind",
]
