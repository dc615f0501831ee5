"""Shared pytest fixtures for Qt application lifecycle and canvas sessions."""

import asyncio
import os
import sys

# Run Qt headless unless a platform is explicitly chosen.
os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

import pytest
from PySide6.QtCore import QCoreApplication, QSettings
from PySide6.QtGui import QGuiApplication

from infiniteboard import (
    CanvasSettings,
    DragAndRouteController,
    InMemoryTimelineService,
    TimelineDataController,
)


@pytest.fixture(scope="session")
def app():
    """Provide a single QGuiApplication for all tests."""
    instance = QGuiApplication.instance()
    if instance is None:
        instance = QGuiApplication(sys.argv)

    yield instance

    # Avoid PySide shutdown crashes when clipboard owns QMimeData.
    clipboard = QGuiApplication.clipboard()
    if clipboard is not None:
        clipboard.clear()

    QCoreApplication.processEvents()


@pytest.fixture
def service():
    return InMemoryTimelineService.sample()


@pytest.fixture
def timeline(app, service):
    controller = TimelineDataController(service)
    asyncio.run(controller.loadTimeline())
    return controller


@pytest.fixture
def routing(timeline):
    return DragAndRouteController(timeline)


@pytest.fixture
def canvas_settings(app, tmp_path):
    store = QSettings(str(tmp_path / "settings.ini"), QSettings.Format.IniFormat)
    return CanvasSettings(store)
