"""
Bounded-wait interaction primitives shared by every screen.

Actions (``click``, ``type_text``) wait for their target and raise typed
errors carrying the locator. State probes never raise: they report an explicit
:class:`ProbeKind` so callers can tell an absent element from a broken
session. Scroll gestures are best-effort and only log on failure.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Any, Optional

from appium.webdriver.common.appiumby import AppiumBy
from selenium.common.exceptions import (
    StaleElementReferenceException,
    TimeoutException,
    WebDriverException,
)
from selenium.webdriver.support import expected_conditions as EC
from selenium.webdriver.support.ui import WebDriverWait

from ..locator import Locator, uiautomator_text_selector
from .exceptions import ActionFailedError, ElementNotFoundError, InputFailedError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 15.0
DEFAULT_POLL_INTERVAL = 0.5
DEFAULT_PROBE_TIMEOUT = 2.0

_SCROLLABLE = "new UiScrollable(new UiSelector().scrollable(true))"


class ProbeKind(str, enum.Enum):
    VISIBLE = "visible"
    HIDDEN = "hidden"
    ABSENT = "absent"
    STALE = "stale"
    ERROR = "error"


@dataclass(frozen=True)
class Probe:
    """Outcome of a non-throwing element state probe."""

    locator: Locator
    kind: ProbeKind
    error: Optional[BaseException] = None

    @property
    def displayed(self) -> bool:
        return self.kind is ProbeKind.VISIBLE

    @property
    def failed(self) -> bool:
        """True when the probe could not reach a verdict because of an infrastructure fault."""
        return self.kind is ProbeKind.ERROR


class InteractionPrimitives:
    """Wait-then-act helpers bound to one live driver."""

    def __init__(
        self,
        driver: Any,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        probe_timeout: float = DEFAULT_PROBE_TIMEOUT,
    ) -> None:
        self._driver = driver
        self._timeout = float(timeout)
        self._poll_interval = float(poll_interval)
        self._probe_timeout = float(probe_timeout)

    @property
    def driver(self) -> Any:
        return self._driver

    def _wait(self, timeout: float, *ignored: type) -> WebDriverWait:
        return WebDriverWait(
            self._driver,
            max(float(timeout), 0.0),
            poll_frequency=self._poll_interval,
            ignored_exceptions=ignored or None,
        )

    def wait_visible(self, locator: Locator, timeout: Optional[float] = None) -> Any:
        bound = self._timeout if timeout is None else timeout
        try:
            return self._wait(bound).until(EC.visibility_of_element_located(locator.as_tuple()))
        except TimeoutException as exc:
            raise ElementNotFoundError(f"Element {locator} not visible after {bound:.1f}s", locator) from exc

    def wait_clickable(self, locator: Locator, timeout: Optional[float] = None) -> Any:
        bound = self._timeout if timeout is None else timeout
        try:
            return self._wait(bound).until(EC.element_to_be_clickable(locator.as_tuple()))
        except TimeoutException as exc:
            raise ElementNotFoundError(f"Element {locator} not clickable after {bound:.1f}s", locator) from exc

    def wait_gone(self, locator: Locator, timeout: Optional[float] = None) -> bool:
        bound = self._timeout if timeout is None else timeout
        try:
            return bool(self._wait(bound).until(EC.invisibility_of_element_located(locator.as_tuple())))
        except TimeoutException:
            logger.debug("Element %s still visible after %.1fs", locator, bound)
            return False

    def click(self, locator: Locator, timeout: Optional[float] = None) -> None:
        element = self.wait_clickable(locator, timeout)
        try:
            element.click()
        except WebDriverException as exc:
            logger.error("Failed to click on element %s: %s", locator, exc)
            raise ActionFailedError(f"Click on {locator} failed: {exc}", locator) from exc
        logger.debug("Clicked on element %s", locator)

    def type_text(self, locator: Locator, text: str, *, secret: bool = False, timeout: Optional[float] = None) -> None:
        element = self.wait_visible(locator, timeout)
        shown = "***" if secret else repr(text)
        try:
            element.clear()
            element.send_keys(text)
        except WebDriverException as exc:
            logger.error("Failed to enter text %s into %s: %s", shown, locator, exc)
            raise InputFailedError(f"Text input into {locator} failed: {exc}", locator) from exc
        logger.debug("Entered text %s into %s", shown, locator)

    def get_text(self, locator: Locator, default: str = "", timeout: Optional[float] = None) -> str:
        try:
            return str(self.wait_visible(locator, timeout).text)
        except (ElementNotFoundError, WebDriverException) as exc:
            logger.warning("Failed to get text from %s: %s", locator, exc)
            return default

    def probe(self, locator: Locator, timeout: Optional[float] = None) -> Probe:
        bound = self._probe_timeout if timeout is None else timeout
        try:
            element = self._wait(bound).until(EC.presence_of_element_located(locator.as_tuple()))
        except TimeoutException:
            return Probe(locator, ProbeKind.ABSENT)
        except StaleElementReferenceException as exc:
            return Probe(locator, ProbeKind.STALE, exc)
        except Exception as exc:
            logger.debug("Probe of %s failed: %s", locator, exc)
            return Probe(locator, ProbeKind.ERROR, exc)
        try:
            visible = bool(element.is_displayed())
        except StaleElementReferenceException as exc:
            return Probe(locator, ProbeKind.STALE, exc)
        except Exception as exc:
            logger.debug("Probe of %s failed: %s", locator, exc)
            return Probe(locator, ProbeKind.ERROR, exc)
        return Probe(locator, ProbeKind.VISIBLE if visible else ProbeKind.HIDDEN)

    def query_displayed(self, locator: Locator, timeout: Optional[float] = None) -> bool:
        return self.probe(locator, timeout).displayed

    def is_enabled(self, locator: Locator, timeout: Optional[float] = None) -> bool:
        result = self.probe(locator, timeout)
        if not result.displayed:
            return False
        try:
            return bool(self._driver.find_element(*locator.as_tuple()).is_enabled())
        except Exception as exc:
            logger.debug("Element %s is not enabled or not found: %s", locator, exc)
            return False

    def scroll_to_text(self, text: str) -> bool:
        return self._gesture(
            f"{_SCROLLABLE}.scrollIntoView({uiautomator_text_selector(text)})",
            f"scroll to element with text '{text}'",
        )

    def scroll_forward(self) -> bool:
        return self._gesture(f"{_SCROLLABLE}.scrollForward()", "scroll down")

    def scroll_backward(self) -> bool:
        return self._gesture(f"{_SCROLLABLE}.scrollBackward()", "scroll up")

    def _gesture(self, selector: str, description: str) -> bool:
        try:
            self._driver.find_element(AppiumBy.ANDROID_UIAUTOMATOR, selector)
        except Exception as exc:
            logger.warning("Could not %s: %s", description, exc)
            return False
        logger.debug("Gesture succeeded: %s", description)
        return True

    def hide_keyboard(self) -> None:
        try:
            if self._driver.is_keyboard_shown():
                self._driver.hide_keyboard()
        except Exception as exc:
            logger.debug("Keyboard was not visible or could not be hidden: %s", exc)

    def press_back(self) -> None:
        try:
            self._driver.back()
        except WebDriverException as exc:
            logger.error("Failed to press back button: %s", exc)
            raise ActionFailedError(f"Back button operation failed: {exc}") from exc

    def current_activity(self) -> str:
        try:
            return str(self._driver.current_activity or "")
        except Exception as exc:
            logger.warning("Failed to get current activity: %s", exc)
            return ""

    def wait_for_activity(self, activity: str, timeout: Optional[float] = None) -> bool:
        bound = self._timeout if timeout is None else timeout
        try:
            self._wait(bound, WebDriverException).until(lambda driver: driver.current_activity == activity)
        except TimeoutException:
            logger.warning("Activity '%s' not found within %.1f seconds", activity, bound)
            return False
        return True
