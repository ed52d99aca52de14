"""
Environment profiles and device catalog lookups.

Each environment (``local``, ``ci``, ``cloud`` ...) owns a flat INI profile in
the configuration directory, and a single ``devices.json`` catalog maps
environments to named device descriptors. Profile values may reference
process environment variables with ``${NAME}``; references are resolved every
time a value is read so rotated secrets are picked up without reloading.
"""

from __future__ import annotations

import configparser
import json
import logging
import os
import re
import threading
import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, Mapping, Optional, Union

from ..automation.driver.exceptions import ConfigMissingWarning

logger = logging.getLogger(__name__)

PROFILE_SECTION = "environment"
DEVICE_CATALOG_NAME = "devices.json"

_REFERENCE = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}")
_BOOL_TRUE = {"1", "true", "yes", "on"}
_BOOL_FALSE = {"0", "false", "no", "off"}
_SCALAR_TYPES = (str, bool, int, float)


@dataclass(frozen=True)
class EnvironmentProfile:
    """Raw, unresolved key/value settings for one environment."""

    name: str
    values: Mapping[str, str] = field(default_factory=dict)
    source: Optional[Path] = None

    def raw(self, key: str) -> Optional[str]:
        return self.values.get(key)

    def keys(self) -> Iterable[str]:
        return tuple(self.values.keys())

    def __len__(self) -> int:
        return len(self.values)


@dataclass(frozen=True)
class DeviceDescriptor:
    """Named bag of platform attributes for one device."""

    name: str
    attributes: Mapping[str, Any] = field(default_factory=dict)

    def get(self, key: str, default: Any = None) -> Any:
        return self.attributes.get(key, default)

    @property
    def platform_name(self) -> Optional[str]:
        return self.attributes.get("platformName")

    @property
    def platform_version(self) -> Optional[str]:
        return self.attributes.get("platformVersion")

    @property
    def device_name(self) -> Optional[str]:
        return self.attributes.get("deviceName")

    @property
    def automation_name(self) -> Optional[str]:
        return self.attributes.get("automationName")


class _DeviceNotFound:
    """Sentinel type returned when a device is missing from the catalog."""

    __slots__ = ()

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "DEVICE_NOT_FOUND"


DEVICE_NOT_FOUND = _DeviceNotFound()

DEFAULT_DEVICE = DeviceDescriptor(
    name="default",
    attributes={
        "platformName": "Android",
        "platformVersion": "11.0",
        "deviceName": "Android Emulator",
        "automationName": "UiAutomator2",
    },
)

DeviceLookup = Union[DeviceDescriptor, _DeviceNotFound]


class ConfigResolver:
    """Loads environment profiles and the device catalog from ``config_dir``."""

    def __init__(self, config_dir: Path, environ: Optional[Mapping[str, str]] = None) -> None:
        self._config_dir = Path(config_dir)
        self._environ = os.environ if environ is None else environ
        self._profiles: Dict[str, EnvironmentProfile] = {}
        self._catalog: Optional[Dict[str, Dict[str, DeviceDescriptor]]] = None
        self._lock = threading.Lock()

    @property
    def config_dir(self) -> Path:
        return self._config_dir

    def load(self, env: str) -> EnvironmentProfile:
        """Return the profile for ``env``; a missing file yields an empty profile."""
        with self._lock:
            profile = self._profiles.get(env)
            if profile is None:
                profile = self._read_profile(env)
                self._profiles[env] = profile
            return profile

    def reload(self) -> None:
        """Forget cached profiles and catalog so the next read hits disk again."""
        with self._lock:
            self._profiles.clear()
            self._catalog = None

    def get(self, key: str, env: str, default: Optional[str] = None) -> Optional[str]:
        """Resolve ``key`` for ``env``, substituting ``${NAME}`` references at call time."""
        raw = self.load(env).raw(key)
        if raw is None:
            logger.debug("Property '%s' not found for environment '%s'", key, env)
            return default
        return self._substitute(raw, key)

    def get_bool(self, key: str, env: str, default: bool = False) -> bool:
        value = self.get(key, env)
        if value is None or self.is_unresolved(value):
            return default
        lowered = value.strip().lower()
        if lowered in _BOOL_TRUE:
            return True
        if lowered in _BOOL_FALSE:
            return False
        return default

    def get_int(self, key: str, env: str, default: Optional[int] = None) -> Optional[int]:
        value = self.get(key, env)
        if value is None:
            return default
        try:
            return int(value.strip())
        except ValueError:
            logger.warning("Property '%s' for environment '%s' is not an integer: %r", key, env, value)
            return default

    def get_float(self, key: str, env: str, default: Optional[float] = None) -> Optional[float]:
        value = self.get(key, env)
        if value is None:
            return default
        try:
            return float(value.strip())
        except ValueError:
            logger.warning("Property '%s' for environment '%s' is not a number: %r", key, env, value)
            return default

    def has(self, key: str, env: str) -> bool:
        return self.load(env).raw(key) is not None

    def all(self, env: str) -> Dict[str, str]:
        """Return a resolved snapshot of every key in the profile."""
        profile = self.load(env)
        return {key: self._substitute(profile.values[key], key) for key in profile.keys()}

    @staticmethod
    def is_unresolved(value: Optional[str]) -> bool:
        """True when ``value`` still carries a ``${NAME}`` placeholder."""
        return bool(value) and _REFERENCE.search(value) is not None

    def get_device_descriptor(self, env: str, name: str) -> DeviceLookup:
        """Return the catalog entry for ``env``/``name`` or ``DEVICE_NOT_FOUND``."""
        descriptor = self._device_catalog().get(env, {}).get(name)
        if descriptor is None:
            logger.warning("Device configuration not found for environment '%s' and device '%s'", env, name)
            return DEVICE_NOT_FOUND
        return descriptor

    def descriptor_or_default(self, env: str, name: str) -> DeviceDescriptor:
        descriptor = self.get_device_descriptor(env, name)
        if descriptor is DEVICE_NOT_FOUND:
            logger.warning("No device configuration for %s/%s. Using default configuration.", env, name)
            return DEFAULT_DEVICE
        return descriptor  # type: ignore[return-value]

    def available_devices(self, env: str) -> tuple:
        return tuple(self._device_catalog().get(env, {}).keys())

    def _substitute(self, raw: str, key: str) -> str:
        def replace(match: "re.Match[str]") -> str:
            variable = match.group(1)
            resolved = self._environ.get(variable)
            if resolved is None:
                logger.warning("Environment variable not found: %s for property: %s", variable, key)
                warnings.warn(
                    f"Environment variable {variable} referenced by '{key}' is not set",
                    ConfigMissingWarning,
                    stacklevel=4,
                )
                return match.group(0)
            return resolved

        return _REFERENCE.sub(replace, raw)

    def _read_profile(self, env: str) -> EnvironmentProfile:
        path = self._config_dir / f"{env}.ini"
        if not path.is_file():
            self._warn_missing(f"Configuration file not found: {path}")
            return EnvironmentProfile(name=env, source=None)
        parser = configparser.ConfigParser(interpolation=None)
        parser.optionxform = str  # type: ignore[assignment,method-assign]
        try:
            parser.read(path, encoding="utf-8")
        except (configparser.Error, OSError, UnicodeDecodeError) as exc:
            self._warn_missing(f"Failed to load configuration file {path}: {exc}")
            return EnvironmentProfile(name=env, source=None)
        if not parser.has_section(PROFILE_SECTION):
            self._warn_missing(f"Configuration file {path} has no [{PROFILE_SECTION}] section")
            return EnvironmentProfile(name=env, source=path)
        values = dict(parser.items(PROFILE_SECTION))
        logger.info("Loaded %d properties for environment: %s", len(values), env)
        return EnvironmentProfile(name=env, values=values, source=path)

    def _device_catalog(self) -> Dict[str, Dict[str, DeviceDescriptor]]:
        with self._lock:
            if self._catalog is None:
                self._catalog = self._read_catalog(self._config_dir / DEVICE_CATALOG_NAME)
            return self._catalog

    def _read_catalog(self, path: Path) -> Dict[str, Dict[str, DeviceDescriptor]]:
        if not path.is_file():
            self._warn_missing(f"Device configuration file not found: {path}")
            return {}
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            self._warn_missing(f"Failed to load device configurations from {path}: {exc}")
            return {}
        if isinstance(data, dict) and isinstance(data.get("devices"), dict):
            data = data["devices"]
        if not isinstance(data, dict):
            self._warn_missing(f"Unsupported device catalog format in {path}")
            return {}
        catalog: Dict[str, Dict[str, DeviceDescriptor]] = {}
        for env, devices in data.items():
            if not isinstance(devices, dict):
                continue
            entries: Dict[str, DeviceDescriptor] = {}
            for name, payload in devices.items():
                if not isinstance(payload, dict):
                    continue
                entries[str(name)] = DeviceDescriptor(name=str(name), attributes=_scalar_attributes(env, name, payload))
            catalog[str(env)] = entries
        logger.info("Loaded device configurations for %d environment(s)", len(catalog))
        return catalog

    @staticmethod
    def _warn_missing(message: str) -> None:
        logger.warning(message)
        warnings.warn(message, ConfigMissingWarning, stacklevel=4)


def _scalar_attributes(env: str, name: str, payload: Mapping[str, Any]) -> Dict[str, Any]:
    attributes: Dict[str, Any] = {}
    for key, value in payload.items():
        if isinstance(value, _SCALAR_TYPES):
            attributes[str(key)] = value
        else:
            logger.warning("Ignoring non-scalar attribute '%s' on device %s/%s", key, env, name)
    return attributes
