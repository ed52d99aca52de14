"""Navigation drawer of the demo app."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from ..driver.interactions import InteractionPrimitives
from ..locator import Locator

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MenuLocators:
    open_button: Locator = Locator.accessibility_id("Menu button", "menu button")
    close_button: Locator = Locator.accessibility_id("Close Menu", "close menu")
    catalog: Locator = Locator.accessibility_id("Catalog", "catalog item")
    about: Locator = Locator.accessibility_id("About", "about item")
    reset_app_state: Locator = Locator.accessibility_id("Reset App State", "reset app state item")
    login: Locator = Locator.accessibility_id("Login", "login item")
    logout: Locator = Locator.accessibility_id("Logout", "logout item")


MENU = MenuLocators()


def open_menu(ui: InteractionPrimitives) -> None:
    ui.click(MENU.open_button)


def is_displayed(ui: InteractionPrimitives) -> bool:
    return ui.query_displayed(MENU.catalog)


def close_menu(ui: InteractionPrimitives) -> None:
    """Close the drawer with its button, falling back to the back key."""
    if ui.query_displayed(MENU.close_button):
        ui.click(MENU.close_button)
    else:
        ui.press_back()


def go_to(ui: InteractionPrimitives, item: Locator) -> None:
    logger.info("Navigating to %s", item.name or item.value)
    if not ui.query_displayed(item):
        ui.scroll_to_text(item.value)
    ui.click(item)


def is_user_logged_in(ui: InteractionPrimitives) -> bool:
    return ui.query_displayed(MENU.logout)
