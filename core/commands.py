"""
External command handling for the Pomodoro Timer application.

A second launch of the application does not start its own timer: it sends
its command line to the running instance over a local socket and exits.
The running instance receives commands on the Qt event loop, so every
command reaches the timer engine on the same thread as its ticks.

Supported verbs (case-insensitive):
    start, stop, pause, toggle, rest, show, quit, preset "<name>"
"""

import logging
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple

from PySide6.QtCore import QLockFile, QObject, Slot
from PySide6.QtNetwork import QLocalServer, QLocalSocket

from .storage import get_app_data_dir
from .timer_engine import TimerEngine

logger = logging.getLogger(__name__)

SERVER_NAME = 'PomodoroTimerPipe'
LOCK_FILE = 'pomodoro-timer.lock'
CONNECT_TIMEOUT_MS = 500


def parse_command(text: str) -> Tuple[str, str]:
    """
    Split a command line into a lower-cased verb and its argument.
    Surrounding quotes are removed from the argument.
    """
    parts = (text or "").strip().split(None, 1)
    if not parts:
        return "", ""
    verb = parts[0].lower()
    arg = parts[1].strip().strip('"').strip() if len(parts) > 1 else ""
    return verb, arg


class CommandRouter:
    """Translates text commands into timer engine calls."""

    def __init__(
        self,
        engine: TimerEngine,
        show_window: Optional[Callable[[], None]] = None,
        quit_app: Optional[Callable[[], None]] = None
    ):
        self.engine = engine
        self.show_window = show_window
        self.quit_app = quit_app

        self._handlers: Dict[str, Callable[[str], None]] = {
            'start': lambda arg: self.engine.start(),
            'stop': lambda arg: self.engine.stop(),
            'pause': lambda arg: self.engine.pause(),
            'toggle': lambda arg: self.engine.toggle_rest(),
            'rest': lambda arg: self.engine.activate_rest_and_start(),
            'show': lambda arg: self._show(),
            'quit': lambda arg: self._quit(),
            'preset': self._select_preset,
        }

    @property
    def verbs(self) -> List[str]:
        return list(self._handlers)

    def handle(self, text: str) -> bool:
        """
        Run a command. Returns False for blank input or an unknown verb,
        which are otherwise ignored.
        """
        verb, arg = parse_command(text)
        handler = self._handlers.get(verb)
        if handler is None:
            if verb:
                logger.debug("Ignoring unknown command: %r", text)
            return False

        logger.info("Command: %s %s", verb, arg)
        handler(arg)
        return True

    def _show(self):
        if self.show_window is not None:
            self.show_window()

    def _quit(self):
        if self.quit_app is not None:
            self.quit_app()
        else:
            self.engine.cleanup()

    def _select_preset(self, name: str):
        if name and not self.engine.select_preset_by_name(name):
            logger.debug("No preset named %r", name)


class CommandServer(QObject):
    """
    Local socket server feeding newline-terminated commands to a router.
    Runs entirely on the thread owning it; close() stops listening.
    """

    def __init__(
        self,
        router: CommandRouter,
        server_name: str = SERVER_NAME,
        parent: Optional[QObject] = None
    ):
        super().__init__(parent)

        self.router = router
        self.server_name = server_name
        self._server = QLocalServer(self)
        self._server.newConnection.connect(self._on_new_connection)
        self._buffers: Dict[QLocalSocket, bytes] = {}

    @property
    def is_listening(self) -> bool:
        return self._server.isListening()

    def listen(self) -> bool:
        """Start listening. Removes a stale socket left by a crashed instance."""
        QLocalServer.removeServer(self.server_name)
        if not self._server.listen(self.server_name):
            logger.warning(
                "Command server could not listen on %s: %s",
                self.server_name, self._server.errorString()
            )
            return False
        return True

    def close(self):
        """
        Stop listening and drop any connection still being read.
        Partial commands are discarded, not run.
        """
        self._server.close()
        sockets = list(self._buffers)
        # abort() emits disconnected synchronously; nothing may be left to flush
        self._buffers.clear()
        for socket in sockets:
            socket.abort()
            socket.deleteLater()

    @Slot()
    def _on_new_connection(self):
        while self._server.hasPendingConnections():
            socket = self._server.nextPendingConnection()
            if socket is None:
                break
            self._buffers[socket] = b""
            socket.readyRead.connect(lambda s=socket: self._on_ready_read(s))
            socket.disconnected.connect(lambda s=socket: self._on_disconnected(s))
            # Data may already be waiting
            if socket.bytesAvailable():
                self._on_ready_read(socket)

    def _on_ready_read(self, socket: QLocalSocket):
        if socket not in self._buffers:
            return
        buffer = self._buffers[socket] + bytes(socket.readAll())
        while b"\n" in buffer:
            line, buffer = buffer.split(b"\n", 1)
            self._dispatch(line)
        self._buffers[socket] = buffer

    def _on_disconnected(self, socket: QLocalSocket):
        remainder = self._buffers.pop(socket, b"")
        if remainder.strip():
            self._dispatch(remainder)
        socket.deleteLater()

    def _dispatch(self, raw: bytes):
        text = raw.decode('utf-8', errors='replace').strip()
        if text:
            self.router.handle(text)


def send_command(
    text: str,
    server_name: str = SERVER_NAME,
    timeout_ms: int = CONNECT_TIMEOUT_MS
) -> bool:
    """
    Send one command to the running instance.
    Returns False if no instance accepted it; nothing is raised.
    """
    socket = QLocalSocket()
    socket.connectToServer(server_name)
    if not socket.waitForConnected(timeout_ms):
        logger.debug("No running instance on %s", server_name)
        return False

    socket.write((text.strip() + "\n").encode('utf-8'))
    socket.flush()
    written = socket.waitForBytesWritten(timeout_ms) or socket.bytesToWrite() == 0
    socket.disconnectFromServer()
    if socket.state() != QLocalSocket.LocalSocketState.UnconnectedState:
        socket.waitForDisconnected(timeout_ms)
    return written


class SingleInstanceGuard:
    """
    System-wide single instance lock backed by a lock file in the data
    directory. The lock is released automatically if the process dies.
    """

    def __init__(self, data_dir: Optional[Path] = None):
        self.data_dir = Path(data_dir) if data_dir is not None else get_app_data_dir()
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self._lock = QLockFile(str(self.data_dir / LOCK_FILE))
        self._acquired = False

    def acquire(self) -> bool:
        """Return True if this process is the primary instance."""
        self._acquired = self._lock.tryLock(0)
        return self._acquired

    def release(self):
        if self._acquired:
            self._lock.unlock()
            self._acquired = False
