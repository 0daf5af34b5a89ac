"""Tests for the application entry point."""

import sys

from PySide6.QtWidgets import QApplication

import core.commands
import main
from core.commands import SingleInstanceGuard


def test_secondary_launch_only_forwards_command(tmp_path, monkeypatch):
    monkeypatch.setattr(core.commands, "get_app_data_dir", lambda: tmp_path)
    monkeypatch.setattr(sys, "excepthook", sys.excepthook)
    sent = []
    monkeypatch.setattr(core.commands, "send_command", lambda text: sent.append(text) or True)

    primary = SingleInstanceGuard(tmp_path)
    assert primary.acquire()
    try:
        assert main.main(["preset", '"Deep Work"']) == 0
    finally:
        primary.release()

    assert sent == ['preset "Deep Work"']
    # No widget application was created to forward the command
    assert not isinstance(QApplication.instance(), QApplication)
