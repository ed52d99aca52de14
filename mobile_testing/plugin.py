"""
pytest integration for the mobile test harness.

Enable it from a top-level ``conftest.py``::

    pytest_plugins = ["mobile_testing.plugin"]

or on the command line with ``-p mobile_testing.plugin``. Each test module is
one test group: the run coordinator is told about it before the module's
first test, so only the first module of a run clears old artifacts.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Dict, Optional, Tuple

import pytest

from .app.configuration import load_runtime_config
from .app.settings import HarnessSettings
from .automation.context import HarnessContext
from .automation.driver.appium import current_worker_id
from .automation.driver.exceptions import FailureKind, classify_failure
from .automation.driver.interactions import InteractionPrimitives
from .automation.failure_capture import TestOutcome, TestStatus
from .automation.reporting.allure_helpers import AllureReportSink
from .automation.run_coordinator import RunIdentity

logger = logging.getLogger(__name__)

CONTEXT_KEY = pytest.StashKey[HarnessContext]()
EXPORTED_IDENTITY_KEY = pytest.StashKey[RunIdentity]()
PHASES_KEY = pytest.StashKey[Dict[str, Tuple[pytest.TestReport, Optional[BaseException]]]]()

DEVICE_MARKER = "mobile_device"
SETTINGS_FILE = "mobile_testing.json"


def pytest_addoption(parser: pytest.Parser) -> None:
    group = parser.getgroup("mobile-testing", "mobile UI test harness")
    group.addoption(
        "--mobile-env",
        action="store",
        default=None,
        help="Environment profile to run against (local, ci, cloud ...).",
    )
    group.addoption(
        "--mobile-device",
        action="store",
        default=None,
        help="Device name from the device catalog.",
    )
    group.addoption(
        "--mobile-settings",
        action="store",
        default=None,
        help="JSON settings file (default: mobile_testing.json in the root directory).",
    )
    group.addoption(
        "--mobile-config",
        action="store",
        default=None,
        help="INI file with a [harness] section of setting overrides.",
    )


def load_settings(config: pytest.Config) -> HarnessSettings:
    """JSON settings, then the runtime INI and MOBILE_TESTING_* variables, then command line options."""
    settings_path = config.getoption("mobile_settings")
    settings = HarnessSettings.load(Path(settings_path) if settings_path else config.rootpath / SETTINGS_FILE)
    config_path = config.getoption("mobile_config")
    runtime = load_runtime_config(os.environ, config_path=Path(config_path) if config_path else None)
    runtime.apply_to_settings(settings)
    env = config.getoption("mobile_env")
    if env:
        settings.environment = env
    device = config.getoption("mobile_device")
    if device:
        settings.device = device
    alluredir = config.getoption("allure_report_dir", default=None)
    if alluredir and not settings.reports_dir:
        # Clean the directory allure-pytest actually writes to.
        settings.reports_dir = str(Path(alluredir).resolve())
    return settings


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line(
        "markers",
        f"{DEVICE_MARKER}(name): run the test on the named device from the device catalog",
    )
    settings = load_settings(config)

    identity = RunIdentity.from_environ(os.environ)
    if identity is None:
        # Worker processes started by this run inherit the identity.
        identity = RunIdentity.generate()
        identity.export(os.environ)
        config.stash[EXPORTED_IDENTITY_KEY] = identity

    config.stash[CONTEXT_KEY] = HarnessContext.build(
        settings,
        root=config.rootpath,
        identity=identity,
        sink=AllureReportSink(),
    )


def pytest_unconfigure(config: pytest.Config) -> None:
    context = config.stash.get(CONTEXT_KEY, None)
    if context is not None:
        context.close()
        del config.stash[CONTEXT_KEY]
    exported = config.stash.get(EXPORTED_IDENTITY_KEY, None)
    if exported is not None:
        exported.withdraw(os.environ)
        del config.stash[EXPORTED_IDENTITY_KEY]


@pytest.hookimpl(hookwrapper=True)
def pytest_runtest_makereport(item: pytest.Item, call: pytest.CallInfo):
    outcome = yield
    report: pytest.TestReport = outcome.get_result()
    error = call.excinfo.value if call.excinfo is not None else None
    item.stash.setdefault(PHASES_KEY, {})[report.when] = (report, error)
    if report.failed:
        kind = classify_failure(error) or FailureKind.ERROR
        # Later phase reports copy the item's properties.
        item.user_properties.append(("failure_kind", kind.value))
        report.user_properties.append(("failure_kind", kind.value))


def outcome_for(item: pytest.Item) -> TestOutcome:
    """Harness view of the item's result, taken from its call phase (or setup, if it never ran)."""
    phases = item.stash.get(PHASES_KEY, {})
    report, error = phases.get("call") or phases.get("setup") or (None, None)
    if report is None:
        return TestOutcome(item.name, TestStatus.SKIPPED)
    if report.failed:
        status = TestStatus.FAILED
    elif report.skipped:
        status = TestStatus.SKIPPED
    else:
        status = TestStatus.PASSED
    return TestOutcome(item.name, status, error=error, duration=report.duration)


@pytest.fixture(scope="session")
def mobile_context(pytestconfig: pytest.Config) -> HarnessContext:
    """The harness context built for this pytest process."""
    return pytestconfig.stash[CONTEXT_KEY]


@pytest.fixture(scope="module", autouse=True)
def _mobile_test_group(request: pytest.FixtureRequest) -> None:
    context = request.config.stash.get(CONTEXT_KEY, None)
    if context is None:
        return
    logger.debug("Test group starting: %s", request.node.nodeid)
    context.coordinator.on_group_start(request.node.nodeid)


@pytest.fixture
def mobile_ui(request: pytest.FixtureRequest, mobile_context: HarnessContext):
    """Open a device session for the test and yield its interaction primitives.

    On teardown a failed test gets a screenshot, and the session is closed.
    """
    marker = request.node.get_closest_marker(DEVICE_MARKER)
    device = marker.args[0] if marker and marker.args else None
    worker_id = current_worker_id()
    ui: InteractionPrimitives = mobile_context.open_session(device, worker_id=worker_id)
    try:
        yield ui
    finally:
        mobile_context.capture.on_outcome(outcome_for(request.node), worker_id=worker_id)
