from __future__ import annotations

import json
import os
import re
import xml.etree.ElementTree as ET

import pytest

from mobile_testing.automation.run_coordinator import RUN_ID_ENV, RUN_STARTED_ENV

pytestmark = pytest.mark.integration


@pytest.fixture(autouse=True)
def _fresh_run_identity(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv(RUN_ID_ENV, raising=False)
    monkeypatch.delenv(RUN_STARTED_ENV, raising=False)
    for name in list(os.environ):
        if name.startswith("MOBILE_TESTING_"):
            monkeypatch.delenv(name)


def test_second_group_keeps_artifacts_of_first(pytester: pytest.Pytester) -> None:
    screenshots = pytester.path / "artifacts" / "screenshots"
    reports = pytester.path / "artifacts" / "allure-results"
    screenshots.mkdir(parents=True)
    reports.mkdir(parents=True)
    for index in range(3):
        (screenshots / f"previous_{index}.png").write_bytes(b"png")
    for index in range(2):
        (reports / f"previous_{index}-result.json").write_text("{}", encoding="utf-8")

    pytester.makepyfile(
        test_group_one="""
            def test_first_group_starts_clean(mobile_context):
                store = mobile_context.store
                assert store.count() == 0
                (store.screenshots_dir / "group_one.png").write_bytes(b"png")
                (store.reports_dir / "group_one-result.json").write_text("{}")
        """,
        test_group_two="""
            def test_second_group_sees_first_group_artifacts(mobile_context):
                assert mobile_context.store.count() == 2
                assert mobile_context.coordinator.cleanups == 1
        """,
    )

    result = pytester.runpytest_subprocess("-p", "mobile_testing.plugin", "-p", "no:cacheprovider")

    result.assert_outcomes(passed=2)
    assert sorted(p.name for p in screenshots.iterdir()) == ["group_one.png"]
    assert (pytester.path / "artifacts" / ".cleanup-marker.json").exists()


def test_failure_kind_is_recorded_and_identity_withdrawn(pytester: pytest.Pytester) -> None:
    pytester.makepyfile(
        test_kinds="""
            from mobile_testing.automation.driver.exceptions import SessionCreateError

            def test_environment_broken():
                raise SessionCreateError("no Appium server")

            def test_behaviour_regressed():
                assert 1 == 2
        """
    )

    result = pytester.runpytest("-p", "mobile_testing.plugin", "--junitxml=junit.xml")

    result.assert_outcomes(failed=2)
    tree = ET.parse(pytester.path / "junit.xml")
    kinds = {
        case.get("name"): prop.get("value")
        for case in tree.iter("testcase")
        for prop in case.iter("property")
        if prop.get("name") == "failure_kind"
    }
    assert kinds == {"test_environment_broken": "infrastructure", "test_behaviour_regressed": "assertion"}
    assert RUN_ID_ENV not in os.environ


def test_settings_file_and_command_line_options_layer(pytester: pytest.Pytester) -> None:
    (pytester.path / "harness.ini").write_text("[harness]\nelement_timeout = 4\n", encoding="utf-8")
    (pytester.path / "mobile_testing.json").write_text(
        json.dumps({"environment": "cloud", "element_timeout": 9, "probe_timeout": 0.25}),
        encoding="utf-8",
    )
    pytester.makepyfile(
        test_options="""
            def test_settings(mobile_context):
                assert mobile_context.settings.probe_timeout == 0.25
                assert mobile_context.settings.environment == "ci"
                assert mobile_context.settings.device == "pixel_9"
                assert mobile_context.settings.element_timeout == 4.0
        """
    )

    result = pytester.runpytest(
        "-p",
        "mobile_testing.plugin",
        "--mobile-env=ci",
        "--mobile-device=pixel_9",
        "--mobile-config=harness.ini",
    )

    result.assert_outcomes(passed=1)


def test_mobile_ui_captures_failures_and_closes_every_session(pytester: pytest.Pytester) -> None:
    config = pytester.mkdir("config")
    (config / "local.ini").write_text(
        "[environment]\nenvironment.category = local\nappium.server.url = http://127.0.0.1:4723\n",
        encoding="utf-8",
    )
    device = {"platformName": "Android", "platformVersion": "13.0", "automationName": "UiAutomator2"}
    (config / "devices.json").write_text(
        json.dumps(
            {
                "devices": {
                    "local": {
                        "android_pixel_7": dict(device, deviceName="Pixel 7"),
                        "galaxy_s23": dict(device, deviceName="Galaxy S23"),
                    }
                }
            }
        ),
        encoding="utf-8",
    )
    pytester.makeconftest(
        """
        from pathlib import Path

        import pytest


        class FakeDriver:
            session_id = "fake-session"

            def __init__(self, caps):
                self.caps = caps

            def get_screenshot_as_png(self):
                return b"\\x89PNG fake"

            def quit(self):
                with Path("quits.log").open("a", encoding="utf-8") as log:
                    log.write(self.caps["deviceName"] + "\\n")


        @pytest.fixture(scope="session", autouse=True)
        def fake_devices(mobile_context):
            mobile_context.sessions.driver_factory = lambda url, caps: FakeDriver(caps)
        """
    )
    pytester.makepyfile(
        test_ui="""
            import pytest

            def test_passes(mobile_ui):
                assert mobile_ui.driver.caps["deviceName"] == "Pixel 7"

            def test_fails(mobile_ui):
                assert mobile_ui.driver.caps["deviceName"] == "Galaxy S23"

            @pytest.mark.mobile_device("galaxy_s23")
            def test_skipped_on_marked_device(mobile_ui):
                assert mobile_ui.driver.caps["deviceName"] == "Galaxy S23"
                pytest.skip("needs a tablet")

            def test_no_session_outlives_its_test(mobile_context):
                assert mobile_context.sessions.active_workers() == ()
        """
    )

    result = pytester.runpytest_subprocess("-p", "mobile_testing.plugin", "-p", "no:cacheprovider")

    result.assert_outcomes(passed=2, failed=1, skipped=1)
    screenshots = [p.name for p in (pytester.path / "artifacts" / "screenshots").iterdir()]
    assert len(screenshots) == 1
    assert re.fullmatch(r"FAILED_test_fails_\d{4}-\d{2}-\d{2}_\d{2}-\d{2}-\d{2}\.png", screenshots[0])
    quits = (pytester.path / "quits.log").read_text(encoding="utf-8").splitlines()
    assert quits == ["Pixel 7", "Pixel 7", "Galaxy S23"]


def test_alluredir_becomes_the_cleaned_report_directory(pytester: pytest.Pytester) -> None:
    stale = pytester.mkdir("allure-out") / "old-result.json"
    stale.write_text("{}", encoding="utf-8")
    pytester.makepyfile(
        test_reports="""
            from pathlib import Path

            def test_reports_dir(mobile_context):
                assert mobile_context.store.reports_dir == Path("allure-out").resolve()
        """
    )

    result = pytester.runpytest("-p", "mobile_testing.plugin", "--alluredir=allure-out")

    result.assert_outcomes(passed=1)
    assert not stale.exists()
