"""Allure reporting helpers."""

from __future__ import annotations

from contextlib import AbstractContextManager
from typing import Protocol

import allure

PNG = "image/png"
TEXT = "text/plain"


class ReportSink(Protocol):
    """Destination for named attachments, steps and labels of the running test."""

    def attach(self, name: str, payload: bytes, mime_type: str) -> None:
        ...

    def step(self, title: str) -> AbstractContextManager:
        ...

    def label(self, name: str, value: str) -> None:
        ...


class AllureReportSink:
    """ReportSink writing through the allure-pytest runtime."""

    def attach(self, name: str, payload: bytes, mime_type: str) -> None:
        allure.attach(payload, name=name, attachment_type=mime_type)

    def step(self, title: str) -> AbstractContextManager:
        return allure.step(title)

    def label(self, name: str, value: str) -> None:
        if name == "tag":
            allure.dynamic.tag(value)
        else:
            allure.dynamic.label(name, value)


def attach_text(sink: ReportSink, name: str, text: str) -> None:
    sink.attach(name, str(text).encode("utf-8"), TEXT)

