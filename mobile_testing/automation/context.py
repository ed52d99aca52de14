"""Process-scoped harness context."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from ..app.environment import HarnessPaths, build_paths
from ..app.profiles import ConfigResolver, DeviceDescriptor
from ..app.settings import HarnessSettings
from .artifacts import ArtifactStore
from .driver.appium import DriverFactory, SessionManager, attach_appium_session
from .driver.capabilities import CapabilityBuilder
from .driver.interactions import InteractionPrimitives
from .failure_capture import FailureCapture
from .reporting.allure_helpers import ReportSink, attach_text
from .run_coordinator import RunCoordinator, RunIdentity

logger = logging.getLogger(__name__)


@dataclass
class HarnessContext:
    """Owns every harness component for one test process.

    Built once at startup and handed to whoever needs it; ``close`` tears
    down any session still open.
    """

    settings: HarnessSettings
    paths: HarnessPaths
    identity: RunIdentity
    resolver: ConfigResolver
    builder: CapabilityBuilder
    sessions: SessionManager
    store: ArtifactStore
    coordinator: RunCoordinator
    capture: FailureCapture
    sink: ReportSink

    @classmethod
    def build(
        cls,
        settings: HarnessSettings,
        *,
        root: Optional[Path] = None,
        identity: Optional[RunIdentity] = None,
        sink: ReportSink,
        driver_factory: DriverFactory = attach_appium_session,
        environ: Optional[Mapping[str, str]] = None,
    ) -> HarnessContext:
        environ = os.environ if environ is None else environ
        paths = build_paths(settings, root)
        identity = identity or RunIdentity.current(environ)
        resolver = ConfigResolver(paths.config_dir, environ=environ)
        sessions = SessionManager(resolver, driver_factory=driver_factory)
        store = ArtifactStore(paths.screenshots_dir, paths.reports_dir)
        store.ensure_dirs()
        coordinator = RunCoordinator(
            store,
            paths.marker_file,
            identity,
            lock_timeout=settings.lock_timeout,
            sink=sink,
        )
        capture = FailureCapture(sessions, store, sink, persist=settings.persist_screenshots)
        logger.info(
            "Harness context ready (environment '%s', device '%s', run %s)",
            settings.environment,
            settings.device,
            identity.run_id,
        )
        return cls(
            settings=settings,
            paths=paths,
            identity=identity,
            resolver=resolver,
            builder=CapabilityBuilder(resolver),
            sessions=sessions,
            store=store,
            coordinator=coordinator,
            capture=capture,
            sink=sink,
        )

    @property
    def environment(self) -> str:
        return self.settings.environment

    def device_descriptor(self, device: Optional[str] = None) -> DeviceDescriptor:
        return self.resolver.descriptor_or_default(self.environment, device or self.settings.device)

    def open_session(self, device: Optional[str] = None, worker_id: Optional[str] = None) -> InteractionPrimitives:
        """Create the worker's session and return primitives bound to it."""
        descriptor = self.device_descriptor(device)
        capabilities = self.builder.build(self.environment, descriptor)
        handle = self.sessions.create(self.environment, capabilities, worker_id=worker_id)
        self._attach_environment_info(descriptor)
        return InteractionPrimitives(
            handle.driver,
            timeout=self.settings.element_timeout,
            poll_interval=self.settings.poll_interval,
            probe_timeout=self.settings.probe_timeout,
        )

    def close(self) -> None:
        self.sessions.destroy_all()
        logger.info("Harness context closed for run %s", self.identity.run_id)

    def _attach_environment_info(self, descriptor: DeviceDescriptor) -> None:
        try:
            attach_text(self.sink, "Environment", self.environment)
            attach_text(self.sink, "Device", descriptor.name)
            platform = f"{descriptor.platform_name or '?'} {descriptor.platform_version or ''}".strip()
            attach_text(self.sink, "Platform", platform)
        except Exception as exc:
            logger.warning("Could not attach environment info to report: %s", exc)
