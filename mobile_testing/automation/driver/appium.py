"""Appium session ownership for harness workers."""

from __future__ import annotations

import logging
import os
import threading
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, Dict, Optional

from appium import webdriver

from .capabilities import SessionCapabilities
from .exceptions import AutomationError, SessionCreateError

if TYPE_CHECKING:  # pragma: no cover - typing only
    from ...app.profiles import ConfigResolver

logger = logging.getLogger(__name__)

DEFAULT_SERVER_URL = "http://127.0.0.1:4723"

DriverFactory = Callable[[str, SessionCapabilities], Any]


def current_worker_id() -> str:
    """Identity of the calling execution context (process, thread and xdist worker)."""
    worker = os.environ.get("PYTEST_XDIST_WORKER")
    base = f"{os.getpid()}:{threading.get_ident()}"
    return f"{worker}:{base}" if worker else base


def attach_appium_session(server_url: str, capabilities: SessionCapabilities) -> "webdriver.Remote":
    """Open a remote Appium session using UiAutomator2 options."""
    return webdriver.Remote(command_executor=server_url, options=capabilities.to_options())


@dataclass
class SessionHandle:
    """A live remote session owned by exactly one worker."""

    driver: Any
    worker_id: str
    environment: str
    capabilities: SessionCapabilities
    server_url: str
    created_at: float = field(default_factory=time.time)

    @property
    def session_id(self) -> Optional[str]:
        return getattr(self.driver, "session_id", None)


class SessionManager:
    """Creates and destroys sessions, keyed by worker identity."""

    def __init__(
        self,
        resolver: "ConfigResolver",
        driver_factory: DriverFactory = attach_appium_session,
        worker_id_provider: Callable[[], str] = current_worker_id,
    ) -> None:
        self._resolver = resolver
        self._driver_factory = driver_factory
        self._worker_id_provider = worker_id_provider
        # Each entry is only ever touched by the worker that owns it.
        self._sessions: Dict[str, SessionHandle] = {}

    @property
    def driver_factory(self) -> DriverFactory:
        """Callable that opens new drivers. Replacing it leaves live sessions alone."""
        return self._driver_factory

    @driver_factory.setter
    def driver_factory(self, factory: DriverFactory) -> None:
        self._driver_factory = factory

    def _worker(self, worker_id: Optional[str]) -> str:
        return worker_id if worker_id is not None else self._worker_id_provider()

    def create(self, env: str, capabilities: SessionCapabilities, worker_id: Optional[str] = None) -> SessionHandle:
        """Open a session for the worker; refuses to replace one that is still active."""
        owner = self._worker(worker_id)
        if owner in self._sessions:
            raise SessionCreateError(
                f"Worker {owner} already owns an active session; destroy it before creating another."
            )
        server_url = self._resolver.get("appium.server.url", env)
        if not server_url or self._resolver.is_unresolved(server_url):
            server_url = DEFAULT_SERVER_URL
        logger.info("Creating Appium session for environment '%s' on %s (worker %s)", env, server_url, owner)
        try:
            driver = self._driver_factory(server_url, capabilities)
        except Exception as exc:
            logger.error("Failed to create Appium session for environment '%s': %s", env, exc)
            raise SessionCreateError(f"Failed to create Appium session at {server_url}: {exc}") from exc
        handle = SessionHandle(
            driver=driver,
            worker_id=owner,
            environment=env,
            capabilities=capabilities,
            server_url=server_url,
        )
        self._sessions[owner] = handle
        logger.info("Appium session %s created for worker %s", handle.session_id, owner)
        return handle

    def destroy(self, worker_id: Optional[str] = None) -> None:
        """Close the worker's session if present. Close errors are logged, never raised."""
        owner = self._worker(worker_id)
        handle = self._sessions.pop(owner, None)
        if handle is None:
            return
        try:
            handle.driver.quit()
            logger.info("Appium session %s closed for worker %s", handle.session_id, owner)
        except Exception as exc:
            logger.warning("Error quitting Appium session %s for worker %s: %s", handle.session_id, owner, exc)

    def destroy_all(self) -> None:
        for owner in list(self._sessions):
            self.destroy(owner)

    def is_active(self, worker_id: Optional[str] = None) -> bool:
        return self._worker(worker_id) in self._sessions

    def get(self, worker_id: Optional[str] = None) -> SessionHandle:
        owner = self._worker(worker_id)
        handle = self._sessions.get(owner)
        if handle is None:
            raise AutomationError(f"No active session for worker {owner}. Create one first.")
        return handle

    def active_workers(self) -> tuple:
        return tuple(self._sessions)
