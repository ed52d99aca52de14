"""Application-level utilities (settings, runtime overrides, profiles)."""

from .settings import HarnessSettings
from .configuration import RuntimeConfig, load_runtime_config
from .environment import HarnessPaths, build_paths
from .profiles import (
    DEFAULT_DEVICE,
    DEVICE_NOT_FOUND,
    ConfigResolver,
    DeviceDescriptor,
    EnvironmentProfile,
)
