"""UI creation functions for the timeline canvas."""

from __future__ import annotations

import argparse
import logging
import os
import sys
from typing import List, Optional

from PySide6.QtCore import QUrl
from PySide6.QtQml import QQmlApplicationEngine

from .board_model import BoardListModel
from .canvas import TimelineCanvas
from .errors import TimelineError
from .qml import QML_DIR, TIMELINE_QML_PATH

logger = logging.getLogger(__name__)


def create_timeline_window(
    canvas: TimelineCanvas,
    board_model: BoardListModel,
) -> QQmlApplicationEngine:
    """Create and return a QQmlApplicationEngine hosting the canvas UI."""
    engine = QQmlApplicationEngine()
    context = engine.rootContext()
    context.setContextProperty("timelineCanvas", canvas)
    context.setContextProperty("boardModel", board_model)
    context.setContextProperty("timeline", canvas.timeline)
    context.setContextProperty("router", canvas.routing)
    context.setContextProperty("canvasSettings", canvas.settings)
    engine.addImportPath(str(QML_DIR))
    engine.load(QUrl.fromLocalFile(str(TIMELINE_QML_PATH)))
    return engine


def build_session(store: Optional[str] = None, latency: float = 0.0):
    """Wire a service, both controllers, settings and the board model."""
    from .routing import DragAndRouteController
    from .service import InMemoryTimelineService, JsonFileTimelineService
    from .settings import CanvasSettings
    from .timeline import TimelineDataController

    if store:
        service = JsonFileTimelineService(store, latency=latency)
    else:
        service = InMemoryTimelineService.sample(latency=latency)
    timeline = TimelineDataController(service)
    routing = DragAndRouteController(timeline)
    canvas = TimelineCanvas(timeline, routing, CanvasSettings())
    board_model = BoardListModel(timeline, routing)
    return canvas, board_model


def _parse_args(argv: Optional[List[str]]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="infiniteboard", description="Infinite canvas of boards.")
    parser.add_argument("--store", help="JSON file holding the canvas (sample data if omitted)")
    parser.add_argument("--latency", type=float, default=0.0, help="simulated service delay in seconds")
    parser.add_argument("--smoke", action="store_true", help="load the UI and exit")
    parser.add_argument("-v", "--verbose", action="store_true", help="enable debug logging")
    return parser.parse_args(argv)


async def _load(canvas: TimelineCanvas) -> None:
    try:
        await canvas.load()
    except TimelineError as exc:
        # The controller already holds the message for the status bar.
        logger.error("Could not load the canvas: %s", exc)


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the standalone canvas."""
    from PySide6 import QtAsyncio
    from PySide6.QtGui import QGuiApplication

    args = _parse_args(sys.argv[1:] if argv is None else argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    smoke_mode = args.smoke or os.environ.get("INFINITEBOARD_SMOKE") == "1"

    app = QGuiApplication.instance()
    if app is None:
        app = QGuiApplication(sys.argv)
    app.setOrganizationName("InfiniteBoard")
    app.setApplicationName("InfiniteBoard")

    canvas, board_model = build_session(args.store, args.latency)
    engine = create_timeline_window(canvas, board_model)
    if not engine.rootObjects():
        logger.error("Failed to load %s", TIMELINE_QML_PATH)
        return 1

    if smoke_mode:
        return 0

    QtAsyncio.run(_load(canvas), keep_running=True, handle_sigint=True)
    return 0
