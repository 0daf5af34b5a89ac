"""
Timer engine for the Pomodoro Timer application.
Implements the countdown state machine and records completed periods.

All transitions run on the Qt event loop thread: the one second tick, the
once-a-minute day check and the auto-continue restart are QTimers owned by
the engine, so no locking is needed around the timer fields.
"""

import logging
from datetime import date, datetime, timedelta
from typing import Callable, List, Optional

from PySide6.QtCore import QObject, QTimer, Signal

from .models import (
    AppSettings, Preset, StatsEntry, TimerButtonDefinition, TimerState,
    normalize_timer_buttons, resolve_active_button,
)
from .stats import date_key, daily_series, entry_for_period
from .storage import ConfigStore, StatsStore

logger = logging.getLogger(__name__)


class TimerEngine(QObject):
    """
    Core timer engine implementing a state machine.

    States:
        IDLE: No countdown, time_left is zero
        RUNNING: Countdown decrementing once per second
        PAUSED: Countdown frozen with time left

    A finished period is not a state of its own: the tick that completes
    it records the stats entry and returns the engine to IDLE.

    Signals:
        time_left_changed: Emitted whenever the remaining seconds change
        state_changed: Emitted on every transition with the new state
        period_completed: Emitted with the StatsEntry of a finished period
        active_button_changed: Emitted when another timer button is active
        presets_changed: Emitted when presets or the current preset change
        day_changed: Emitted with the new day key after local midnight
        viewed_day_changed: Emitted with the day key shown in the daily chart
    """

    # Signals
    time_left_changed = Signal(int)
    state_changed = Signal(TimerState)
    period_completed = Signal(StatsEntry)
    active_button_changed = Signal(TimerButtonDefinition)
    presets_changed = Signal()
    day_changed = Signal(str)
    viewed_day_changed = Signal(str)

    TICK_INTERVAL_MS = 1000
    DAY_CHECK_INTERVAL_MS = 60 * 1000
    AUTO_CONTINUE_DELAY_MS = 1000

    # Work periods are highlighted during their last five minutes
    FINAL_MINUTES_SECONDS = 5 * 60

    def __init__(
        self,
        config_store: ConfigStore,
        stats_store: StatsStore,
        clock: Optional[Callable[[], datetime]] = None,
        parent: Optional[QObject] = None
    ):
        """
        Initialize the timer engine.

        Args:
            config_store: Store for presets, timer buttons and settings.
            stats_store: Store receiving completed periods.
            clock: Optional callable returning the local time.
            parent: Optional Qt parent object.
        """
        super().__init__(parent)

        self.config_store = config_store
        self.stats_store = stats_store
        self._clock = clock or datetime.now

        # Configuration
        self._presets: List[Preset] = config_store.load_presets()
        if not self._presets:
            self._presets.append(Preset("Default", 25, 5))
        self._current_preset = self._presets[0]

        self._timer_buttons = config_store.load_timer_buttons()
        self._active_button: Optional[TimerButtonDefinition] = (
            self._timer_buttons[0] if self._timer_buttons else None
        )
        self._is_work_phase = not self.active_button.is_rest

        self._settings: AppSettings = config_store.load_settings()

        # Countdown
        self._time_left = 0
        self._running = False
        self._period_start: Optional[datetime] = None
        self._period_total_seconds = 0

        # Stats
        stats_store.load()
        today = self._now().date()
        self._current_day_key = date_key(today)
        stats_store.get_or_create(self._current_day_key)
        self._viewed_day = today

        # Qt timers
        self._tick_timer = QTimer(self)
        self._tick_timer.setInterval(self.TICK_INTERVAL_MS)
        self._tick_timer.timeout.connect(self.tick)

        self._day_check_timer = QTimer(self)
        self._day_check_timer.setInterval(self.DAY_CHECK_INTERVAL_MS)
        self._day_check_timer.timeout.connect(self.ensure_current_day)
        self._day_check_timer.start()

        self._auto_start_timer = QTimer(self)
        self._auto_start_timer.setSingleShot(True)
        self._auto_start_timer.setInterval(self.AUTO_CONTINUE_DELAY_MS)
        self._auto_start_timer.timeout.connect(self._on_auto_continue)

    # ==================== State ====================

    @property
    def time_left(self) -> int:
        """Seconds left in the current period."""
        return self._time_left

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def period_start(self) -> Optional[datetime]:
        return self._period_start

    @property
    def state(self) -> TimerState:
        if self._running:
            return TimerState.RUNNING
        if self._time_left > 0:
            return TimerState.PAUSED
        return TimerState.IDLE

    @property
    def has_active_period(self) -> bool:
        return self._running or self._time_left > 0

    @property
    def is_work_phase(self) -> bool:
        return self._is_work_phase

    @property
    def active_button(self) -> TimerButtonDefinition:
        return resolve_active_button(self._active_button, self._timer_buttons)

    @property
    def timer_buttons(self) -> List[TimerButtonDefinition]:
        return list(self._timer_buttons)

    @property
    def presets(self) -> List[Preset]:
        return list(self._presets)

    @property
    def current_preset(self) -> Preset:
        return self._current_preset

    @property
    def settings(self) -> AppSettings:
        return self._settings

    @property
    def auto_continue_pending(self) -> bool:
        return self._auto_start_timer.isActive()

    @property
    def current_day_key(self) -> str:
        return self._current_day_key

    @property
    def viewed_day(self) -> date:
        return self._viewed_day

    def today_entries(self) -> List[StatsEntry]:
        return daily_series(self.stats_store.stats, self._current_day_key)

    def viewed_entries(self) -> List[StatsEntry]:
        return daily_series(self.stats_store.stats, date_key(self._viewed_day))

    def _now(self) -> datetime:
        return self._clock()

    # ==================== Transitions ====================

    def start(self):
        """Start a fresh period, or resume a paused one."""
        if self._running:
            return

        button = self.active_button
        self._active_button = button
        self._is_work_phase = not button.is_rest
        now = self._now()

        if self._time_left > 0:
            # Resume: shift the start so elapsed time excludes the pause
            elapsed = max(0, self._period_total_seconds - self._time_left)
            self._period_start = now - timedelta(seconds=elapsed)
        else:
            preset = self._current_preset
            if self._is_work_phase:
                minutes = max(1, preset.work_minutes)
            else:
                minutes = max(1, preset.rest_minutes)
            self._period_total_seconds = minutes * 60
            self._time_left = self._period_total_seconds
            self._period_start = now

        self._running = True
        self._tick_timer.start()
        logger.debug("Timer running: %s, %d seconds left", button.name, self._time_left)

        self.state_changed.emit(TimerState.RUNNING)
        self.time_left_changed.emit(self._time_left)

    def pause(self):
        """Freeze the countdown, keeping the remaining time."""
        if not self._running:
            return

        self._tick_timer.stop()
        self._running = False

        self.state_changed.emit(TimerState.PAUSED)

    def stop(self):
        """Stop the countdown and discard the current period."""
        self._tick_timer.stop()
        self._auto_start_timer.stop()
        self._running = False
        self._time_left = 0
        self._period_start = None
        self._period_total_seconds = 0

        self.state_changed.emit(TimerState.IDLE)
        self.time_left_changed.emit(0)

    def toggle_start_pause(self):
        if self._running:
            self.pause()
        else:
            self.start()

    def tick(self):
        """Advance the countdown by one second."""
        if not self._running:
            return

        if self._time_left <= 0:
            self._finish_period()
            return

        self._time_left -= 1
        self.time_left_changed.emit(self._time_left)

        if self._time_left <= 0:
            self._finish_period()

    def _finish_period(self):
        """Record the finished period and return to idle."""
        self._tick_timer.stop()
        self._running = False
        self._time_left = 0

        button = self.active_button
        if self._period_total_seconds > 0:
            duration = self._period_total_seconds / 60.0
        elif button.is_rest:
            duration = float(max(1, self._current_preset.rest_minutes))
        else:
            duration = float(max(1, self._current_preset.work_minutes))

        start = self._period_start
        if start is None:
            start = self._now() - timedelta(minutes=duration)

        self.ensure_current_day()

        # The period belongs to the day it started on
        entry = entry_for_period(button, start, duration)
        self.stats_store.add_entry(date_key(start.date()), entry)
        self.stats_store.save()

        self._period_start = None
        self._period_total_seconds = 0
        logger.info(
            "%s period \"%s\" finished (%.0f min)",
            "Rest" if entry.is_rest else "Work", button.name, duration
        )

        self.state_changed.emit(TimerState.IDLE)
        self.time_left_changed.emit(0)
        self.period_completed.emit(entry)

        if self._settings.auto_continue:
            self._auto_start_timer.start()

    def _on_auto_continue(self):
        """Restart the same button after a finished period."""
        if self.has_active_period:
            return
        self.start()

    def activate(self, button: TimerButtonDefinition, start_immediately: bool = False):
        """Make a button active, abandoning any period in progress."""
        self._active_button = button
        self._is_work_phase = not button.is_rest
        self.stop()
        self.active_button_changed.emit(button)

        if start_immediately:
            self.start()

    def toggle_rest(self):
        """Switch between the first work and the first rest button and start."""
        rest_button = next((b for b in self._timer_buttons if b.is_rest), None)
        work_button = next((b for b in self._timer_buttons if not b.is_rest), None)

        if self.active_button.is_rest and work_button is not None:
            self.activate(work_button, start_immediately=True)
        elif rest_button is not None:
            self.activate(rest_button, start_immediately=True)

    def activate_rest_and_start(self):
        """Make sure a rest period is running."""
        if self.active_button.is_rest:
            self.start()
            return

        rest_button = next((b for b in self._timer_buttons if b.is_rest), None)
        if rest_button is not None:
            self.activate(rest_button, start_immediately=True)

    # ==================== Presets ====================

    def select_preset(self, preset: Preset):
        """Use a preset for the next fresh start."""
        self._current_preset = preset
        self.presets_changed.emit()

    def select_preset_by_name(self, name: str) -> bool:
        """Select a preset by case-insensitive name. Returns False if not found."""
        wanted = (name or "").strip().casefold()
        if not wanted:
            return False

        for preset in self._presets:
            if preset.name.casefold() == wanted:
                self.select_preset(preset)
                return True
        return False

    def _preset_index(self, preset: Preset) -> Optional[int]:
        # Identity, not equality: two presets may hold the same values
        return next((i for i, p in enumerate(self._presets) if p is preset), None)

    def cycle_preset(self, direction: int):
        """Move the current preset selection, wrapping around the list."""
        if not self._presets:
            return

        index = self._preset_index(self._current_preset) or 0
        self.select_preset(self._presets[(index + direction) % len(self._presets)])

    def add_preset(self, name: str, work_minutes, rest_minutes) -> Preset:
        preset = Preset(name, work_minutes, rest_minutes)
        self._presets.append(preset)
        self.config_store.save_presets(self._presets)
        self.presets_changed.emit()
        return preset

    def update_preset(self, preset: Preset, name: str, work_minutes, rest_minutes):
        """Edit a preset in place. Invalid values fall back to defaults."""
        edited = Preset(name, work_minutes, rest_minutes)
        preset.name = edited.name
        preset.work_minutes = edited.work_minutes
        preset.rest_minutes = edited.rest_minutes
        self.config_store.save_presets(self._presets)
        self.presets_changed.emit()

    def delete_preset(self, preset: Preset) -> bool:
        """Delete a preset. The last remaining preset cannot be deleted."""
        if len(self._presets) <= 1:
            logger.info("Refusing to delete the last preset")
            return False
        index = self._preset_index(preset)
        if index is None:
            return False

        del self._presets[index]
        if self._current_preset is preset:
            self._current_preset = self._presets[0]
        self.config_store.save_presets(self._presets)
        self.presets_changed.emit()
        return True

    # ==================== Buttons and settings ====================

    def set_timer_buttons(self, buttons: List[TimerButtonDefinition]):
        """Replace the button collection, keeping the active button if it survives."""
        self._timer_buttons = normalize_timer_buttons(list(buttons))
        self.config_store.save_timer_buttons(self._timer_buttons)

        active_id = self._active_button.id if self._active_button else None
        self._active_button = next(
            (b for b in self._timer_buttons if b.id == active_id),
            self._timer_buttons[0],
        )
        self.active_button_changed.emit(self._active_button)

    def set_auto_continue(self, enabled: bool):
        self._settings.auto_continue = enabled
        if not enabled:
            self._auto_start_timer.stop()
        self.config_store.save_settings(self._settings)

    def update_settings(self, settings: AppSettings):
        self._settings = settings
        if not settings.auto_continue:
            self._auto_start_timer.stop()
        self.config_store.save_settings(settings)

    # ==================== Days ====================

    def ensure_current_day(self) -> bool:
        """
        Move to a new day after local midnight.
        Returns True if the current day changed.
        """
        today = self._now().date()
        new_key = date_key(today)
        if new_key == self._current_day_key:
            return False

        was_viewing_current = date_key(self._viewed_day) == self._current_day_key
        self._current_day_key = new_key
        self.stats_store.get_or_create(new_key)

        if was_viewing_current:
            self._viewed_day = today
        logger.info("Day changed to %s", new_key)

        self.day_changed.emit(new_key)
        if was_viewing_current:
            self.viewed_day_changed.emit(new_key)
        return True

    def change_viewed_day(self, offset: int) -> bool:
        """Move the viewed day by a number of days, never past today."""
        if offset == 0:
            return False

        today = self._now().date()
        candidate = min(self._viewed_day + timedelta(days=offset), today)
        if candidate == self._viewed_day:
            return False

        self._viewed_day = candidate
        self.viewed_day_changed.emit(date_key(candidate))
        return True

    # ==================== Display ====================

    def format_time_left(self) -> str:
        """Format remaining time as MM:SS."""
        minutes, seconds = divmod(self._time_left, 60)
        return f"{minutes:02d}:{seconds:02d}"

    @property
    def is_final_minutes(self) -> bool:
        return (
            self._is_work_phase
            and 0 < self._time_left <= self.FINAL_MINUTES_SECONDS
        )

    @property
    def status_text(self) -> str:
        button = self.active_button
        prefix = "Rest" if button.is_rest else "Work"
        return f"{prefix}: {button.name}" if button.name else prefix

    def cleanup(self):
        """Stop all timers and flush stats. Call before application exit."""
        self._tick_timer.stop()
        self._day_check_timer.stop()
        self._auto_start_timer.stop()
        self.stats_store.save()
