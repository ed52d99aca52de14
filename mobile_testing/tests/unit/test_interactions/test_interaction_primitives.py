from __future__ import annotations

import time
from typing import Dict, List, Optional, Tuple

import pytest
from appium.webdriver.common.appiumby import AppiumBy
from selenium.common.exceptions import (
    NoSuchElementException,
    StaleElementReferenceException,
    WebDriverException,
)

from mobile_testing.automation.driver.exceptions import (
    ActionFailedError,
    ElementNotFoundError,
    InputFailedError,
)
from mobile_testing.automation.driver.interactions import InteractionPrimitives, ProbeKind
from mobile_testing.automation.locator import Locator

LOGIN_BUTTON = Locator.accessibility_id("Login button", "login button")
USERNAME = Locator.accessibility_id("Username input field")
MISSING = Locator.accessibility_id("Nowhere", "missing element")


class _FakeElement:
    def __init__(
        self,
        text: str = "",
        displayed: bool = True,
        enabled: bool = True,
        error: Optional[Exception] = None,
    ) -> None:
        self.text = text
        self.displayed = displayed
        self.enabled = enabled
        self.error = error
        self.clicks = 0
        self.typed: List[str] = []

    def is_displayed(self) -> bool:
        return self.displayed

    def is_enabled(self) -> bool:
        return self.enabled

    def click(self) -> None:
        if self.error:
            raise self.error
        self.clicks += 1

    def clear(self) -> None:
        self.typed.clear()

    def send_keys(self, *values: str) -> None:
        if self.error:
            raise self.error
        self.typed.append("".join(values))


class _FakeDriver:
    def __init__(self) -> None:
        self.elements: Dict[Tuple[str, str], _FakeElement] = {}
        self.find_error: Optional[Exception] = None
        self.uiautomator_ok = False
        self.current_activity = ".MainActivity"
        self.back_presses = 0
        self.keyboard_shown = True

    def add(self, locator: Locator, element: _FakeElement) -> _FakeElement:
        self.elements[locator.as_tuple()] = element
        return element

    def find_element(self, by: str, value: str) -> _FakeElement:
        if self.find_error is not None:
            raise self.find_error
        if by == AppiumBy.ANDROID_UIAUTOMATOR and self.uiautomator_ok:
            return _FakeElement()
        try:
            return self.elements[(by, value)]
        except KeyError:
            raise NoSuchElementException(f"{by}={value}") from None

    def back(self) -> None:
        self.back_presses += 1

    def is_keyboard_shown(self) -> bool:
        return self.keyboard_shown

    def hide_keyboard(self) -> None:
        self.keyboard_shown = False


@pytest.fixture
def driver() -> _FakeDriver:
    return _FakeDriver()


@pytest.fixture
def ui(driver: _FakeDriver) -> InteractionPrimitives:
    return InteractionPrimitives(driver, timeout=0.3, poll_interval=0.05, probe_timeout=0.2)


def test_click_waits_then_clicks(driver: _FakeDriver, ui: InteractionPrimitives) -> None:
    button = driver.add(LOGIN_BUTTON, _FakeElement())
    ui.click(LOGIN_BUTTON)
    assert button.clicks == 1


def test_click_on_missing_element_raises_element_not_found(ui: InteractionPrimitives) -> None:
    with pytest.raises(ElementNotFoundError) as excinfo:
        ui.click(MISSING)
    assert excinfo.value.locator == MISSING


def test_click_on_disabled_element_times_out(driver: _FakeDriver, ui: InteractionPrimitives) -> None:
    driver.add(LOGIN_BUTTON, _FakeElement(enabled=False))
    with pytest.raises(ElementNotFoundError, match="not clickable"):
        ui.click(LOGIN_BUTTON)


def test_click_failure_raises_action_failed(driver: _FakeDriver, ui: InteractionPrimitives) -> None:
    driver.add(LOGIN_BUTTON, _FakeElement(error=WebDriverException("tap rejected")))
    with pytest.raises(ActionFailedError) as excinfo:
        ui.click(LOGIN_BUTTON)
    assert excinfo.value.locator == LOGIN_BUTTON


def test_type_text_replaces_content(driver: _FakeDriver, ui: InteractionPrimitives) -> None:
    field = driver.add(USERNAME, _FakeElement())
    field.typed.append("old")
    ui.type_text(USERNAME, "standard_user")
    assert field.typed == ["standard_user"]


def test_type_text_failure_raises_input_failed(driver: _FakeDriver, ui: InteractionPrimitives) -> None:
    driver.add(USERNAME, _FakeElement(error=WebDriverException("keyboard gone")))
    with pytest.raises(InputFailedError) as excinfo:
        ui.type_text(USERNAME, "secret", secret=True)
    assert isinstance(excinfo.value, ActionFailedError)
    assert "secret" not in str(excinfo.value)


def test_get_text_returns_default_when_absent(driver: _FakeDriver, ui: InteractionPrimitives) -> None:
    driver.add(USERNAME, _FakeElement(text="bob"))
    assert ui.get_text(USERNAME) == "bob"
    assert ui.get_text(MISSING, default="n/a") == "n/a"


def test_query_displayed_on_absent_element_returns_false_within_bound(ui: InteractionPrimitives) -> None:
    started = time.monotonic()
    assert ui.query_displayed(MISSING) is False
    assert time.monotonic() - started < 2.0


def test_probe_distinguishes_absent_from_broken(driver: _FakeDriver, ui: InteractionPrimitives) -> None:
    driver.add(LOGIN_BUTTON, _FakeElement(displayed=False))
    assert ui.probe(LOGIN_BUTTON).kind is ProbeKind.HIDDEN
    assert ui.probe(MISSING).kind is ProbeKind.ABSENT

    driver.find_error = WebDriverException("session terminated")
    broken = ui.probe(LOGIN_BUTTON)
    assert broken.kind is ProbeKind.ERROR
    assert broken.failed
    assert not broken.displayed
    assert isinstance(broken.error, WebDriverException)


def test_probe_reports_stale_elements(driver: _FakeDriver, ui: InteractionPrimitives) -> None:
    driver.find_error = StaleElementReferenceException("detached")
    assert ui.probe(LOGIN_BUTTON).kind is ProbeKind.STALE


def test_probe_visible(driver: _FakeDriver, ui: InteractionPrimitives) -> None:
    driver.add(LOGIN_BUTTON, _FakeElement())
    result = ui.probe(LOGIN_BUTTON)
    assert result.kind is ProbeKind.VISIBLE
    assert result.displayed


def test_is_enabled(driver: _FakeDriver, ui: InteractionPrimitives) -> None:
    driver.add(LOGIN_BUTTON, _FakeElement(enabled=False))
    driver.add(USERNAME, _FakeElement())
    assert ui.is_enabled(LOGIN_BUTTON) is False
    assert ui.is_enabled(USERNAME) is True
    assert ui.is_enabled(MISSING) is False


def test_wait_gone(driver: _FakeDriver, ui: InteractionPrimitives) -> None:
    driver.add(LOGIN_BUTTON, _FakeElement())
    assert ui.wait_gone(MISSING) is True
    assert ui.wait_gone(LOGIN_BUTTON, timeout=0.1) is False


def test_scroll_degrades_gracefully(
    driver: _FakeDriver, ui: InteractionPrimitives, caplog: pytest.LogCaptureFixture
) -> None:
    assert ui.scroll_to_text("Catalog") is False
    assert ui.scroll_forward() is False
    assert "Could not scroll" in caplog.text

    driver.uiautomator_ok = True
    assert ui.scroll_to_text("Catalog") is True
    assert ui.scroll_backward() is True


def test_device_helpers(driver: _FakeDriver, ui: InteractionPrimitives) -> None:
    ui.hide_keyboard()
    assert driver.keyboard_shown is False
    ui.press_back()
    assert driver.back_presses == 1
    assert ui.current_activity() == ".MainActivity"
    assert ui.wait_for_activity(".MainActivity") is True
    assert ui.wait_for_activity(".Other", timeout=0.1) is False


def test_press_back_failure_raises(driver: _FakeDriver, ui: InteractionPrimitives) -> None:
    def broken_back() -> None:
        raise WebDriverException("no device")

    driver.back = broken_back  # type: ignore[method-assign]
    with pytest.raises(ActionFailedError):
        ui.press_back()


def test_text_locator_escapes_quotes() -> None:
    locator = Locator.text('Say "hi"')
    assert locator.by == AppiumBy.ANDROID_UIAUTOMATOR
    assert locator.value == 'new UiSelector().text("Say \\"hi\\"")'
    assert str(locator).startswith('Say "hi" [')
