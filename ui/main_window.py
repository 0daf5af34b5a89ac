"""
Main window for the Pomodoro Timer application.
A thin shell over the timer engine: countdown, timer buttons, presets,
today's totals and the tray menu.
"""

from typing import Optional
from PySide6.QtWidgets import (
    QMainWindow, QWidget, QVBoxLayout, QHBoxLayout, QLabel, QPushButton,
    QComboBox, QCheckBox, QListWidget, QSystemTrayIcon, QMenu, QApplication
)
from PySide6.QtCore import Qt, Slot
from PySide6.QtGui import (
    QIcon, QAction, QCloseEvent, QKeyEvent, QPixmap, QPainter, QColor, QFont
)

from core.models import StatsEntry, TimerButtonDefinition, TimerState
from core.stats import clamp_to_day, format_minutes, summary_totals
from core.timer_engine import TimerEngine


def create_app_icon() -> QIcon:
    """Create a simple app icon programmatically."""
    icon = QIcon()

    for size in [16, 32, 48, 64]:
        pixmap = QPixmap(size, size)
        pixmap.fill(Qt.GlobalColor.transparent)

        painter = QPainter(pixmap)
        painter.setRenderHint(QPainter.RenderHint.Antialiasing)
        painter.setPen(Qt.PenStyle.NoPen)
        painter.setBrush(QColor("#E74C3C"))
        margin = size // 8
        painter.drawEllipse(margin, margin, size - 2*margin, size - 2*margin)
        painter.end()
        icon.addPixmap(pixmap)

    return icon


class MainWindow(QMainWindow):
    """
    Main application window.
    Closing the window hides it to the tray; quit() really exits.
    """

    def __init__(self, engine: TimerEngine):
        super().__init__()

        self.engine = engine
        self._really_quit = False

        self.setWindowTitle("Pomodoro Timer")
        self.setMinimumSize(420, 480)

        self.app_icon = create_app_icon()
        self.setWindowIcon(self.app_icon)

        self._setup_ui()
        self._setup_tray()
        self._connect_signals()

        self._refresh_buttons()
        self._refresh_presets()
        self._refresh_time()
        self._refresh_stats()
        self._apply_idle_pinning()

    def _setup_ui(self):
        """Set up the main UI."""
        central = QWidget()
        self.setCentralWidget(central)

        layout = QVBoxLayout(central)
        layout.setSpacing(12)
        layout.setContentsMargins(20, 20, 20, 20)

        self.status_label = QLabel()
        self.status_label.setAlignment(Qt.AlignmentFlag.AlignCenter)
        layout.addWidget(self.status_label)

        self.time_label = QLabel("00:00")
        self.time_label.setAlignment(Qt.AlignmentFlag.AlignCenter)
        time_font = QFont()
        time_font.setPointSize(48)
        time_font.setBold(True)
        self.time_label.setFont(time_font)
        layout.addWidget(self.time_label)

        # Timer buttons, rebuilt whenever the collection changes
        self.buttons_layout = QHBoxLayout()
        layout.addLayout(self.buttons_layout)

        controls = QHBoxLayout()
        self.start_pause_btn = QPushButton("Start")
        self.start_pause_btn.setToolTip("Start/Pause (Ctrl+Alt+D)\nStop and reset: Ctrl+Alt+S")
        self.start_pause_btn.clicked.connect(self.engine.toggle_start_pause)
        controls.addWidget(self.start_pause_btn)

        self.stop_btn = QPushButton("Stop")
        self.stop_btn.clicked.connect(self.engine.stop)
        controls.addWidget(self.stop_btn)
        layout.addLayout(controls)

        self.preset_combo = QComboBox()
        self.preset_combo.currentIndexChanged.connect(self._on_preset_selected)
        layout.addWidget(self.preset_combo)

        settings = self.engine.settings
        self.auto_continue_check = QCheckBox("Auto-continue")
        self.auto_continue_check.setChecked(settings.auto_continue)
        self.auto_continue_check.toggled.connect(self.engine.set_auto_continue)
        layout.addWidget(self.auto_continue_check)

        self.restore_check = QCheckBox("Restore window when a period ends")
        self.restore_check.setChecked(settings.restore_window_on_finish)
        self.restore_check.toggled.connect(self._on_restore_toggled)
        layout.addWidget(self.restore_check)

        self.pin_check = QCheckBox("Keep window on top while idle")
        self.pin_check.setChecked(settings.pin_window_when_idle)
        self.pin_check.toggled.connect(self._on_pin_toggled)
        layout.addWidget(self.pin_check)

        # Viewed day
        day_nav = QHBoxLayout()
        prev_btn = QPushButton("<")
        prev_btn.clicked.connect(lambda: self.engine.change_viewed_day(-1))
        day_nav.addWidget(prev_btn)
        self.day_label = QLabel()
        self.day_label.setAlignment(Qt.AlignmentFlag.AlignCenter)
        day_nav.addWidget(self.day_label, 1)
        next_btn = QPushButton(">")
        next_btn.clicked.connect(lambda: self.engine.change_viewed_day(1))
        day_nav.addWidget(next_btn)
        layout.addLayout(day_nav)

        self.entries_list = QListWidget()
        layout.addWidget(self.entries_list, 1)

        self.summary_label = QLabel()
        self.summary_label.setToolTip("Today's work / rest / 3-workday average")
        self.summary_label.setAlignment(Qt.AlignmentFlag.AlignCenter)
        layout.addWidget(self.summary_label)

    def _setup_tray(self):
        """Set up system tray icon."""
        self.tray_icon: Optional[QSystemTrayIcon] = None
        if not QSystemTrayIcon.isSystemTrayAvailable():
            return

        self.tray_icon = QSystemTrayIcon(self.app_icon, self)
        self.tray_icon.setToolTip("Pomodoro Timer")

        tray_menu = QMenu(self)
        for text, handler in (
            ("Start", self.engine.start),
            ("Pause", self.engine.pause),
            ("Stop", self.engine.stop),
            (None, None),
            ("Show", self.show_window),
            ("Quit", self.quit),
        ):
            if text is None:
                tray_menu.addSeparator()
                continue
            action = QAction(text, self)
            action.triggered.connect(handler)
            tray_menu.addAction(action)

        self.tray_icon.setContextMenu(tray_menu)
        self.tray_icon.activated.connect(self._on_tray_activated)
        self.tray_icon.show()

    def _connect_signals(self):
        self.engine.time_left_changed.connect(self._on_time_left_changed)
        self.engine.state_changed.connect(self._on_state_changed)
        self.engine.period_completed.connect(self._on_period_completed)
        self.engine.active_button_changed.connect(self._on_active_button_changed)
        self.engine.presets_changed.connect(self._refresh_presets)
        self.engine.day_changed.connect(lambda _key: self._refresh_stats())
        self.engine.viewed_day_changed.connect(lambda _key: self._refresh_stats())

    # ==================== Refresh ====================

    def _refresh_buttons(self):
        while self.buttons_layout.count():
            item = self.buttons_layout.takeAt(0)
            if item.widget() is not None:
                item.widget().deleteLater()

        for definition in self.engine.timer_buttons:
            button = QPushButton(definition.name)
            button.setStyleSheet(
                f"background-color: {definition.background_color_hex};"
                f" color: {definition.text_color_hex};"
            )
            button.clicked.connect(
                lambda _checked=False, d=definition: self.engine.activate(d, True)
            )
            self.buttons_layout.addWidget(button)

    @Slot()
    def _refresh_presets(self):
        self.preset_combo.blockSignals(True)
        self.preset_combo.clear()
        presets = self.engine.presets
        for preset in presets:
            self.preset_combo.addItem(str(preset))
        current = self.engine.current_preset
        if current in presets:
            self.preset_combo.setCurrentIndex(presets.index(current))
        self.preset_combo.blockSignals(False)

    def _refresh_time(self):
        self.time_label.setText(self.engine.format_time_left())
        color = "#EB5757" if self.engine.is_final_minutes else "#E0E0E0"
        self.time_label.setStyleSheet(f"color: {color};")

        if self.engine.is_running:
            self.status_label.setText(self.engine.status_text)
            self.start_pause_btn.setText("Pause")
        elif self.engine.state == TimerState.PAUSED:
            self.status_label.setText("Paused")
            self.start_pause_btn.setText("Resume")
        else:
            self.status_label.setText(self.engine.status_text)
            self.start_pause_btn.setText("Start")

        if self.tray_icon is not None:
            if self.engine.has_active_period:
                self.tray_icon.setToolTip(
                    f"{self.engine.format_time_left()} - {self.engine.active_button.name}"
                )
            else:
                self.tray_icon.setToolTip("Pomodoro Timer")

    def _refresh_stats(self):
        self.day_label.setText(self.engine.viewed_day.strftime("%d %B %Y"))

        self.entries_list.clear()
        for entry in self.engine.viewed_entries():
            start, end = clamp_to_day(entry)
            self.entries_list.addItem(
                f"{format_minutes(start)} - {format_minutes(end)}  {entry.type}"
            )

        work, rest, average = summary_totals(self.engine.stats_store.stats)
        self.summary_label.setText(
            "/".join([format_minutes(work), format_minutes(rest), format_minutes(average)])
        )

    # ==================== Engine signals ====================

    @Slot(int)
    def _on_time_left_changed(self, _seconds: int):
        self._refresh_time()

    @Slot(TimerState)
    def _on_state_changed(self, state: TimerState):
        self._refresh_time()
        if state == TimerState.RUNNING and self.tray_icon is not None:
            self.hide()
        self._apply_idle_pinning()

    @Slot(StatsEntry)
    def _on_period_completed(self, entry: StatsEntry):
        self._refresh_stats()
        QApplication.beep()

        if self.tray_icon is not None:
            title = "Rest finished" if entry.is_rest else "Work period finished"
            self.tray_icon.showMessage(
                title,
                f"\"{entry.type}\" finished.",
                QSystemTrayIcon.MessageIcon.Information,
                3000
            )
        if self.engine.settings.restore_window_on_finish:
            self.show_window()

    @Slot(TimerButtonDefinition)
    def _on_active_button_changed(self, _button: TimerButtonDefinition):
        self._refresh_time()

    # ==================== Settings ====================

    @Slot(int)
    def _on_preset_selected(self, index: int):
        presets = self.engine.presets
        if 0 <= index < len(presets):
            self.engine.select_preset(presets[index])

    @Slot(bool)
    def _on_restore_toggled(self, checked: bool):
        settings = self.engine.settings
        settings.restore_window_on_finish = checked
        self.engine.update_settings(settings)

    @Slot(bool)
    def _on_pin_toggled(self, checked: bool):
        settings = self.engine.settings
        settings.pin_window_when_idle = checked
        self.engine.update_settings(settings)
        self._apply_idle_pinning()

    def _apply_idle_pinning(self):
        """Keep the window visible and on top while no period is active."""
        pinned = self.engine.settings.pin_window_when_idle and not self.engine.has_active_period
        flags = self.windowFlags()
        on_top = bool(flags & Qt.WindowType.WindowStaysOnTopHint)
        if pinned != on_top:
            self.setWindowFlag(Qt.WindowType.WindowStaysOnTopHint, pinned)
            if pinned or self.isVisible():
                self.show()

    # ==================== Window ====================

    @Slot(QSystemTrayIcon.ActivationReason)
    def _on_tray_activated(self, reason: QSystemTrayIcon.ActivationReason):
        if reason == QSystemTrayIcon.ActivationReason.Trigger:
            self.show_window()

    @Slot()
    def show_window(self):
        """Show and bring window to front."""
        self.show()
        self.setWindowState(self.windowState() & ~Qt.WindowState.WindowMinimized)
        self.raise_()
        self.activateWindow()

    @Slot()
    def quit(self):
        """Persist stats and exit the application."""
        self._really_quit = True
        self.engine.cleanup()
        if self.tray_icon is not None:
            self.tray_icon.hide()
        QApplication.quit()

    def keyPressEvent(self, event: QKeyEvent):
        key = event.key()
        modifiers = event.modifiers()
        ctrl_alt = (
            modifiers & Qt.KeyboardModifier.ControlModifier
            and modifiers & Qt.KeyboardModifier.AltModifier
        )

        if ctrl_alt and key == Qt.Key.Key_D:
            self.engine.toggle_start_pause()
        elif ctrl_alt and key == Qt.Key.Key_S:
            self.engine.stop()
        elif key == Qt.Key.Key_Left:
            self.engine.change_viewed_day(-1)
        elif key == Qt.Key.Key_Right:
            self.engine.change_viewed_day(1)
        elif key == Qt.Key.Key_Up and not self.preset_combo.hasFocus():
            self.engine.cycle_preset(-1)
        elif key == Qt.Key.Key_Down and not self.preset_combo.hasFocus():
            self.engine.cycle_preset(1)
        else:
            super().keyPressEvent(event)
            return
        event.accept()

    def closeEvent(self, event: QCloseEvent):
        """Hide to the tray instead of closing, unless quitting."""
        if not self._really_quit and self.tray_icon is not None:
            event.ignore()
            self.hide()
            return

        self._really_quit = True
        self.engine.cleanup()
        event.accept()
        QApplication.quit()
