"""Login screen of the demo app."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from ..driver.interactions import InteractionPrimitives
from ..locator import Locator
from . import menu

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LoginLocators:
    username: Locator = Locator.accessibility_id("Username input field", "username field")
    password: Locator = Locator.accessibility_id("Password input field", "password field")
    submit: Locator = Locator.accessibility_id("Login button", "login button")
    invalid_credentials: Locator = Locator.xpath(
        "//android.widget.TextView[contains(@text, 'Username and password do not match')]",
        "invalid credentials error",
    )
    username_required: Locator = Locator.xpath(
        "//android.widget.TextView[contains(@text, 'Username is required')]",
        "username required error",
    )
    password_required: Locator = Locator.xpath(
        "//android.widget.TextView[contains(@text, 'Password is required')]",
        "password required error",
    )


LOGIN = LoginLocators()


def navigate_to_login(ui: InteractionPrimitives) -> None:
    menu.open_menu(ui)
    menu.go_to(ui, menu.MENU.login)


def is_displayed(ui: InteractionPrimitives) -> bool:
    return ui.query_displayed(LOGIN.username) and ui.query_displayed(LOGIN.password)


def login(ui: InteractionPrimitives, username: str, password: str) -> bool:
    """Submit the credentials. Returns True once the login form has gone away."""
    logger.info("Performing login with username: %s", username)
    ui.type_text(LOGIN.username, username)
    ui.type_text(LOGIN.password, password, secret=True)
    ui.hide_keyboard()
    ui.click(LOGIN.submit)
    if ui.wait_gone(LOGIN.submit):
        return True
    logger.warning("Login appears to have failed - still on login page")
    return False


def error_message(ui: InteractionPrimitives) -> str:
    """Text of whichever validation error is showing, or '' when none is."""
    for locator in (LOGIN.invalid_credentials, LOGIN.username_required, LOGIN.password_required):
        if ui.query_displayed(locator):
            return ui.get_text(locator)
    return ""
