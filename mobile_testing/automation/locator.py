"""Shared locator utilities used by automation components."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

from appium.webdriver.common.appiumby import AppiumBy


def _quote(text: str) -> str:
    return str(text).replace("\\", "\\\\").replace('"', '\\"')


def uiautomator_text_selector(text: str) -> str:
    return f'new UiSelector().text("{_quote(text)}")'


@dataclass(frozen=True)
class Locator:
    """Strategy/value pair with an optional human-readable name for diagnostics."""

    by: str
    value: str
    name: Optional[str] = None

    @classmethod
    def accessibility_id(cls, value: str, name: Optional[str] = None) -> Locator:
        return cls(AppiumBy.ACCESSIBILITY_ID, value, name)

    @classmethod
    def resource_id(cls, value: str, name: Optional[str] = None) -> Locator:
        return cls(AppiumBy.ID, value, name)

    @classmethod
    def xpath(cls, value: str, name: Optional[str] = None) -> Locator:
        return cls(AppiumBy.XPATH, value, name)

    @classmethod
    def uiautomator(cls, value: str, name: Optional[str] = None) -> Locator:
        return cls(AppiumBy.ANDROID_UIAUTOMATOR, value, name)

    @classmethod
    def text(cls, value: str, name: Optional[str] = None) -> Locator:
        return cls.uiautomator(uiautomator_text_selector(value), name or value)

    def as_tuple(self) -> Tuple[str, str]:
        return (self.by, self.value)

    def __str__(self) -> str:
        label = f"{self.name} " if self.name else ""
        return f"{label}[{self.by}={self.value}]"
