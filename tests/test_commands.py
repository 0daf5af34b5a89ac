"""Tests for command parsing, routing and the local socket transport."""

import time
import uuid
from unittest.mock import MagicMock

import pytest
from PySide6.QtCore import QCoreApplication
from PySide6.QtNetwork import QLocalSocket

from core.commands import (
    CommandRouter, CommandServer, SingleInstanceGuard, parse_command, send_command,
)
from core.timer_engine import TimerEngine


@pytest.fixture()
def mock_engine():
    return MagicMock(spec=TimerEngine)


def test_parse_command():
    assert parse_command("START") == ("start", "")
    assert parse_command('  preset "Deep Work" ') == ("preset", "Deep Work")
    assert parse_command("preset Long") == ("preset", "Long")
    assert parse_command("   ") == ("", "")


@pytest.mark.parametrize("text, method", [
    ("start", "start"),
    ("Stop", "stop"),
    ("pause", "pause"),
    ("toggle", "toggle_rest"),
    ("REST", "activate_rest_and_start"),
])
def test_router_calls_engine(mock_engine, text, method):
    router = CommandRouter(mock_engine)
    assert router.handle(text) is True
    getattr(mock_engine, method).assert_called_once_with()


def test_router_preset_by_name(mock_engine):
    router = CommandRouter(mock_engine)
    assert router.handle('preset "Deep Work"') is True
    mock_engine.select_preset_by_name.assert_called_once_with("Deep Work")


def test_router_preset_without_name_is_ignored(mock_engine):
    router = CommandRouter(mock_engine)
    router.handle("preset")
    mock_engine.select_preset_by_name.assert_not_called()


def test_router_show_and_quit_callbacks(mock_engine):
    show = MagicMock()
    quit_app = MagicMock()
    router = CommandRouter(mock_engine, show_window=show, quit_app=quit_app)

    router.handle("show")
    router.handle("quit")
    show.assert_called_once_with()
    quit_app.assert_called_once_with()


def test_router_quit_without_callback_flushes_engine(mock_engine):
    CommandRouter(mock_engine).handle("quit")
    mock_engine.cleanup.assert_called_once_with()


def test_router_ignores_unknown_and_blank(mock_engine):
    router = CommandRouter(mock_engine)
    assert router.handle("explode") is False
    assert router.handle("") is False
    assert mock_engine.method_calls == []


def test_router_drives_real_engine(engine):
    router = CommandRouter(engine)
    engine.add_preset("Sprint", 10, 2)

    router.handle("preset sprint")
    router.handle("start")
    assert engine.time_left == 10 * 60

    router.handle("rest")
    assert engine.active_button.is_rest
    assert engine.time_left == 2 * 60

    router.handle("stop")
    assert engine.time_left == 0


def test_send_command_without_server_returns_false():
    assert send_command("start", server_name=f"pomodoro-test-{uuid.uuid4().hex}") is False


def test_server_receives_command(mock_engine):
    name = f"pomodoro-test-{uuid.uuid4().hex}"
    router = CommandRouter(mock_engine)
    server = CommandServer(router, server_name=name)
    assert server.listen()
    try:
        assert send_command('preset "Long"', server_name=name) is True

        deadline = time.monotonic() + 5
        while not mock_engine.select_preset_by_name.called and time.monotonic() < deadline:
            QCoreApplication.processEvents()
            time.sleep(0.01)

        mock_engine.select_preset_by_name.assert_called_once_with("Long")
    finally:
        server.close()
    assert server.is_listening is False


def test_close_discards_unterminated_command(mock_engine):
    name = f"pomodoro-test-{uuid.uuid4().hex}"
    server = CommandServer(CommandRouter(mock_engine), server_name=name)
    assert server.listen()

    client = QLocalSocket()
    client.connectToServer(name)
    assert client.waitForConnected(1000)
    client.write(b"start")
    client.flush()

    deadline = time.monotonic() + 5
    while not any(server._buffers.values()) and time.monotonic() < deadline:
        QCoreApplication.processEvents()
        time.sleep(0.01)
    assert any(server._buffers.values())

    server.close()
    for _ in range(20):
        QCoreApplication.processEvents()
        time.sleep(0.01)

    mock_engine.start.assert_not_called()
    assert server.is_listening is False
    client.abort()


def test_single_instance_guard(tmp_path):
    first = SingleInstanceGuard(tmp_path)
    second = SingleInstanceGuard(tmp_path)

    assert first.acquire() is True
    assert second.acquire() is False

    first.release()
    assert second.acquire() is True
    second.release()
