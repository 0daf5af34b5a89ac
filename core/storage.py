"""
JSON storage module for the Pomodoro Timer application.
Handles the application data directory, presets, timer buttons, settings
and the statistics file.

Loading never fails: a missing or unreadable file yields defaults, and
invalid fields are repaired rather than rejected. Saving never raises;
the in-memory data stays authoritative until the next successful save.
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

from .models import (
    AppSettings, Preset, StatsEntry, TimerButtonDefinition,
    default_timer_buttons, normalize_timer_buttons,
)

logger = logging.getLogger(__name__)

APP_DIR_NAME = 'PomodoroTimer'

CONFIG_FILE = 'config.json'
TIMER_BUTTONS_FILE = 'timer-buttons.json'
SETTINGS_FILE = 'window-settings.json'
STATS_FILE = 'stats.json'

StatsData = Dict[str, List[StatsEntry]]


def get_app_data_dir() -> Path:
    """
    Get the appropriate application data directory based on OS.
    The directory itself is created on first save.
    """
    if os.name == 'nt':  # Windows
        base = Path(os.environ.get('APPDATA', Path.home()))
    elif os.name == 'posix':
        # macOS uses ~/Library/Application Support, Linux uses ~/.local/share
        if os.uname().sysname == 'Darwin':
            base = Path.home() / 'Library' / 'Application Support'
        else:
            base = Path(os.environ.get('XDG_DATA_HOME', Path.home() / '.local' / 'share'))
    else:
        base = Path.home()

    return base / APP_DIR_NAME


def _read_json(path: Path) -> Optional[Any]:
    """Read a JSON document, returning None if it is missing or broken."""
    if not path.exists():
        return None
    try:
        with open(path, 'r', encoding='utf-8') as f:
            return json.load(f)
    except (OSError, ValueError) as e:
        logger.warning("Could not read %s: %s", path, e)
        return None


def _write_json(path: Path, data: Any) -> bool:
    """Write a JSON document, returning False instead of raising."""
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, 'w', encoding='utf-8') as f:
            json.dump(data, f, indent=2, ensure_ascii=False)
        return True
    except (OSError, TypeError, ValueError) as e:
        logger.warning("Could not save %s: %s", path, e)
        return False


class ConfigStore:
    """
    Presets, timer buttons and application settings.
    Each collection lives in its own JSON file.
    """

    def __init__(self, data_dir: Optional[Path] = None):
        """
        Initialize the store.

        Args:
            data_dir: Optional custom directory for the JSON files.
                    If None, uses default app data directory.
        """
        self.data_dir = Path(data_dir) if data_dir is not None else get_app_data_dir()

    @property
    def presets_path(self) -> Path:
        return self.data_dir / CONFIG_FILE

    @property
    def timer_buttons_path(self) -> Path:
        return self.data_dir / TIMER_BUTTONS_FILE

    @property
    def settings_path(self) -> Path:
        return self.data_dir / SETTINGS_FILE

    # ==================== Presets ====================

    def load_presets(self) -> List[Preset]:
        """Load presets. Returns an empty list if none are stored."""
        data = _read_json(self.presets_path)
        if not isinstance(data, list):
            return []
        return [Preset.from_dict(item) for item in data if isinstance(item, dict)]

    def save_presets(self, presets: List[Preset]) -> bool:
        return _write_json(self.presets_path, [p.to_dict() for p in presets])

    # ==================== Timer buttons ====================

    def load_timer_buttons(self) -> List[TimerButtonDefinition]:
        """
        Load timer buttons.
        Seeds the default buttons when nothing usable is stored.
        """
        data = _read_json(self.timer_buttons_path)
        buttons = []
        if isinstance(data, list):
            buttons = [
                TimerButtonDefinition.from_dict(item)
                for item in data if isinstance(item, dict)
            ]
        if not buttons:
            return default_timer_buttons()
        return normalize_timer_buttons(buttons)

    def save_timer_buttons(self, buttons: List[TimerButtonDefinition]) -> bool:
        return _write_json(self.timer_buttons_path, [b.to_dict() for b in buttons])

    # ==================== Settings ====================

    def load_settings(self) -> AppSettings:
        data = _read_json(self.settings_path)
        if not isinstance(data, dict):
            return AppSettings()
        return AppSettings.from_dict(data)

    def save_settings(self, settings: AppSettings) -> bool:
        return _write_json(self.settings_path, settings.to_dict())


class StatsStore:
    """
    Completed periods keyed by local date (YYYY-MM-DD).
    The whole mapping is kept in memory and written out as one file.
    """

    def __init__(self, data_dir: Optional[Path] = None):
        self.data_dir = Path(data_dir) if data_dir is not None else get_app_data_dir()
        self.stats: StatsData = {}

    @property
    def path(self) -> Path:
        return self.data_dir / STATS_FILE

    def load(self) -> StatsData:
        """Load the stats file, replacing the in-memory data."""
        data = _read_json(self.path)
        stats: StatsData = {}
        if isinstance(data, dict):
            for key, items in data.items():
                if not isinstance(items, list):
                    continue
                entries = [
                    StatsEntry.from_dict(item)
                    for item in items if isinstance(item, dict)
                ]
                # A period always lasted; zero or unreadable durations are dropped
                stats[str(key)] = [e for e in entries if e.duration_minutes > 0]
        self.stats = stats
        return stats

    def save(self, stats: Optional[StatsData] = None) -> bool:
        """Persist the given mapping, or the in-memory one."""
        if stats is not None:
            self.stats = stats
        payload = {
            key: [entry.to_dict() for entry in entries]
            for key, entries in self.stats.items()
        }
        return _write_json(self.path, payload)

    def entries_for(self, day_key: str) -> List[StatsEntry]:
        """Entries of a day without creating a record for it."""
        return list(self.stats.get(day_key) or [])

    def get_or_create(self, day_key: str) -> List[StatsEntry]:
        entries = self.stats.get(day_key)
        if entries is None:
            entries = []
            self.stats[day_key] = entries
        return entries

    def add_entry(self, day_key: str, entry: StatsEntry):
        self.get_or_create(day_key).append(entry)
