"""
Session capability assembly.

Capabilities are merged from four layers, later layers overriding earlier
ones: the device's platform identity plus app fields from the environment
profile, the remaining device attributes, an augmentation chosen by the
environment category, and a fixed set of safety defaults.
"""

from __future__ import annotations

import copy
import logging
import warnings
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Dict, Iterator, Mapping, Optional

from appium.options.android import UiAutomator2Options

from .exceptions import CapabilityBuildError, ConfigMissingWarning

if TYPE_CHECKING:  # pragma: no cover - typing only
    from ...app.profiles import ConfigResolver, DeviceDescriptor

logger = logging.getLogger(__name__)

PLATFORM_FIELDS = ("platformName", "platformVersion", "deviceName", "automationName")
REQUIRED_FIELDS = ("platformName", "deviceName", "automationName")
ENVIRONMENT_DEVICE_FIELDS = ("avd", "systemPort", "chromeDriverPort", "udid")

PROFILE_APP_FIELDS = {
    "app.path": "app",
    "android.app.package": "appPackage",
    "android.app.activity": "appActivity",
}

SAFETY_DEFAULTS: Mapping[str, Any] = MappingProxyType(
    {
        "noReset": False,
        "fullReset": False,
        "autoAcceptAlerts": True,
        "autoDismissAlerts": True,
        "newCommandTimeout": 300,
    }
)

CATEGORY_LOCAL = "local"
CATEGORY_CI = "ci"
CATEGORY_CLOUD = "cloud"

_CATEGORY_ALIASES = {
    "local": CATEGORY_LOCAL,
    "ci": CATEGORY_CI,
    "cloud": CATEGORY_CLOUD,
    "saucelabs": CATEGORY_CLOUD,
    "sauce": CATEGORY_CLOUD,
}


def _freeze(value: Any) -> Any:
    if isinstance(value, Mapping):
        return MappingProxyType({key: _freeze(item) for key, item in value.items()})
    if isinstance(value, list):
        return tuple(_freeze(item) for item in value)
    return value


def _thaw(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {key: _thaw(item) for key, item in value.items()}
    if isinstance(value, tuple):
        return [_thaw(item) for item in value]
    return value


class SessionCapabilities(Mapping[str, Any]):
    """Read-only capability set for one session request."""

    __slots__ = ("_data", "_environment", "_category")

    def __init__(self, data: Mapping[str, Any], *, environment: str, category: Optional[str]) -> None:
        self._data = _freeze(copy.deepcopy(dict(data)))
        self._environment = environment
        self._category = category

    @property
    def environment(self) -> str:
        return self._environment

    @property
    def category(self) -> Optional[str]:
        return self._category

    def __getitem__(self, key: str) -> Any:
        return self._data[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        redacted = self.as_dict()
        cloud = redacted.get("sauce:options")
        if isinstance(cloud, dict) and "accessKey" in cloud:
            cloud["accessKey"] = "***"
        return f"SessionCapabilities(environment={self._environment!r}, {redacted!r})"

    def as_dict(self) -> Dict[str, Any]:
        """Return a mutable deep copy suitable for serialisation."""
        return _thaw(self._data)

    def to_options(self) -> UiAutomator2Options:
        """Convert to Appium options; non-W3C keys receive the ``appium:`` prefix on the wire."""
        return UiAutomator2Options().load_capabilities(self.as_dict())


class CapabilityBuilder:
    """Builds :class:`SessionCapabilities` for an environment and device."""

    def __init__(self, resolver: "ConfigResolver") -> None:
        self._resolver = resolver

    def category_for(self, env: str) -> Optional[str]:
        explicit = self._resolver.get("environment.category", env)
        key = (explicit or env or "").strip().lower()
        return _CATEGORY_ALIASES.get(key)

    def build(self, env: str, descriptor: "DeviceDescriptor") -> SessionCapabilities:
        merged: Dict[str, Any] = {}

        for field_name in PLATFORM_FIELDS:
            value = descriptor.get(field_name)
            if value is not None:
                merged[field_name] = value
        for profile_key, capability in PROFILE_APP_FIELDS.items():
            value = self._resolver.get(profile_key, env)
            if value and not self._resolver.is_unresolved(value):
                merged[capability] = value

        for key, value in descriptor.attributes.items():
            if key in PLATFORM_FIELDS or key in ENVIRONMENT_DEVICE_FIELDS:
                continue
            merged[key] = value

        category = self.category_for(env)
        if category == CATEGORY_LOCAL:
            self._add_local(merged, descriptor)
        elif category == CATEGORY_CI:
            self._add_ci(merged, descriptor)
        elif category == CATEGORY_CLOUD:
            self._add_cloud(merged, env)
        else:
            message = f"Unknown environment: {env}. Using default capabilities."
            logger.warning(message)
            warnings.warn(message, ConfigMissingWarning, stacklevel=2)

        merged.update(SAFETY_DEFAULTS)

        missing = [name for name in REQUIRED_FIELDS if merged.get(name) in (None, "")]
        if missing:
            raise CapabilityBuildError(
                f"Capabilities for environment '{env}' and device '{descriptor.name}' "
                f"lack required field(s): {', '.join(missing)}"
            )

        capabilities = SessionCapabilities(merged, environment=env, category=category)
        logger.debug("Built capabilities: %r", capabilities)
        return capabilities

    @staticmethod
    def _add_local(merged: Dict[str, Any], descriptor: "DeviceDescriptor") -> None:
        for key in ENVIRONMENT_DEVICE_FIELDS:
            value = descriptor.get(key)
            if value is not None:
                merged[key] = value

    def _add_ci(self, merged: Dict[str, Any], descriptor: "DeviceDescriptor") -> None:
        merged["isHeadless"] = True
        merged["enableVNC"] = True
        merged["enableVideo"] = True
        self._add_local(merged, descriptor)

    def _add_cloud(self, merged: Dict[str, Any], env: str) -> None:
        resolver = self._resolver
        username = resolver.get("sauce.username", env)
        access_key = resolver.get("sauce.access.key", env)
        if not username or not access_key or resolver.is_unresolved(username) or resolver.is_unresolved(access_key):
            logger.info("Cloud credentials not configured for '%s'; omitting cloud authentication block", env)
            return
        tags = resolver.get("sauce.tags", env, "") or ""
        options: Dict[str, Any] = {
            "username": username,
            "accessKey": access_key,
            "tags": [tag.strip() for tag in tags.split(",") if tag.strip()],
            "videoUploadOnPass": resolver.get_bool("sauce.video.upload.on.pass", env),
            "screenshotEnabled": resolver.get_bool("sauce.screenshot.enabled", env),
            "extendedDebugging": resolver.get_bool("sauce.extended.debugging", env),
            "capturePerformance": resolver.get_bool("sauce.capture.performance", env),
        }
        for profile_key, option in (("sauce.build.name", "build"), ("sauce.test.name", "name")):
            value = resolver.get(profile_key, env)
            if value and not resolver.is_unresolved(value):
                options[option] = value
        merged["sauce:options"] = options
