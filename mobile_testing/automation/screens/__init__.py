"""Locator sets and flows for the demo app's screens."""

from . import login, menu
from .login import LOGIN, LoginLocators
from .menu import MENU, MenuLocators

__all__ = ["login", "menu", "LOGIN", "LoginLocators", "MENU", "MenuLocators"]
