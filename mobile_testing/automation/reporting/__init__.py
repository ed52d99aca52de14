"""Report sink integration."""

from .allure_helpers import AllureReportSink, ReportSink, attach_text

__all__ = ["AllureReportSink", "ReportSink", "attach_text"]
