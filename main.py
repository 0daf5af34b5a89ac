#!/usr/bin/env python3
"""
Pomodoro Timer - a desktop work/rest timer with local statistics.

- Presets of work/rest durations and labeled timer buttons
- Per-day statistics of completed periods
- Tray icon and single instance control from the command line

Usage:
    pip install PySide6
    python main.py [start|stop|pause|toggle|rest|show|quit|preset "<name>"]

When an instance is already running, the arguments are forwarded to it
and this process exits right away.
"""

import logging
import os
import sys
import signal
from typing import List, Optional

logger = logging.getLogger("pomodoro")


def setup_logging():
    """Configure logging from the POMODORO_LOG_LEVEL environment variable."""
    level_name = os.environ.get("POMODORO_LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        level=getattr(logging, level_name, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def setup_exception_handling():
    """Log unhandled exceptions instead of printing a bare traceback."""
    def exception_hook(exctype, value, traceback):
        logger.error("Unhandled exception", exc_info=(exctype, value, traceback))

    sys.excepthook = exception_hook


def setup_signal_handlers(app):
    """Set up signal handlers for graceful shutdown."""
    def signal_handler(signum, frame):
        logger.info("Received signal %s, shutting down...", signum)
        app.quit()

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)


STYLESHEET = """
    QMainWindow, QWidget {
        background-color: #1e1e1e;
        color: #e0e0e0;
    }
    QLabel {
        font-size: 13px;
    }
    QComboBox, QListWidget {
        padding: 6px;
        border: 1px solid #404040;
        border-radius: 5px;
        background-color: #2d2d2d;
        color: #ffffff;
    }
    QPushButton {
        padding: 8px 14px;
        border-radius: 5px;
        background-color: #404040;
        color: #ffffff;
        font-weight: bold;
        border: none;
    }
    QPushButton:hover {
        background-color: #505050;
    }
    QMenu {
        background-color: #2d2d2d;
        color: #e0e0e0;
        border: 1px solid #404040;
    }
"""


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the Pomodoro Timer application."""
    if argv is None:
        argv = sys.argv[1:]
    command = " ".join(argv).strip()

    setup_logging()
    setup_exception_handling()

    from PySide6.QtCore import QCoreApplication

    from core.commands import CommandRouter, CommandServer, SingleInstanceGuard, send_command

    guard = SingleInstanceGuard()
    if not guard.acquire():
        # Secondary launch: forward the command without starting the GUI
        if command:
            core_app = QCoreApplication.instance() or QCoreApplication(sys.argv)
            send_command(command)
        return 0

    from PySide6.QtWidgets import QApplication

    from core.storage import ConfigStore, StatsStore
    from core.timer_engine import TimerEngine

    app = QApplication(sys.argv)
    app.setApplicationName("Pomodoro Timer")
    app.setOrganizationName("PomodoroTimer")
    app.setQuitOnLastWindowClosed(False)

    app.setStyle("Fusion")
    app.setStyleSheet(STYLESHEET)
    setup_signal_handlers(app)

    from ui.main_window import MainWindow

    engine = TimerEngine(ConfigStore(), StatsStore())
    window = MainWindow(engine)
    window.show()

    router = CommandRouter(engine, show_window=window.show_window, quit_app=window.quit)
    server = CommandServer(router)
    server.listen()

    if command:
        router.handle(command)

    try:
        return app.exec()
    finally:
        server.close()
        engine.cleanup()
        guard.release()


if __name__ == "__main__":
    sys.exit(main())
