"""
Data models for the Pomodoro Timer application.
Uses dataclasses for clean, type-annotated data structures.

Persisted models know how to read themselves from the camelCase JSON
written to disk and how to write themselves back.
"""

from dataclasses import dataclass, field
from datetime import date
from enum import Enum, auto
from typing import Any, Dict, List, Optional
import math
import uuid


DEFAULT_WORK_MINUTES = 25
DEFAULT_REST_MINUTES = 5

WORK_BUTTON_COLOR = "#4CAF50"
REST_BUTTON_COLOR = "#9B59B6"
TEXT_COLOR = "#FFFFFF"

# Colors used for stats entries that carry no explicit color
WORK_ENTRY_COLOR = "#5AC85A"
REST_ENTRY_COLOR = "#9B59B6"

# Labels that mark an entry as rest in data written before the isRest flag
REST_LABELS = ("rest", "отдых")


class TimerState(Enum):
    """Possible states for the timer state machine."""
    IDLE = auto()
    RUNNING = auto()
    PAUSED = auto()


def coerce_minutes(value: Any, default: int) -> int:
    """Turn user or file input into a positive minute count."""
    try:
        minutes = int(value)
    except (TypeError, ValueError, OverflowError):
        return default
    return minutes if minutes > 0 else default


def _text(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def _flag(value: Any, default: bool = False) -> bool:
    # Only a JSON boolean counts; "false" must not read as true
    return value if isinstance(value, bool) else default


@dataclass
class Preset:
    """A named pair of work/rest durations."""
    name: str = "Default"
    work_minutes: int = DEFAULT_WORK_MINUTES
    rest_minutes: int = DEFAULT_REST_MINUTES

    def __post_init__(self):
        """Repair invalid values in place."""
        self.name = _text(self.name) or "Preset"
        self.work_minutes = coerce_minutes(self.work_minutes, DEFAULT_WORK_MINUTES)
        self.rest_minutes = coerce_minutes(self.rest_minutes, DEFAULT_REST_MINUTES)

    def __str__(self) -> str:
        return f"{self.name} ({self.work_minutes}/{self.rest_minutes})"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Preset":
        return cls(
            name=data.get("name", ""),
            work_minutes=data.get("workMinutes", DEFAULT_WORK_MINUTES),
            rest_minutes=data.get("restMinutes", DEFAULT_REST_MINUTES),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "workMinutes": self.work_minutes,
            "restMinutes": self.rest_minutes,
        }


@dataclass
class TimerButtonDefinition:
    """
    A labeled timer button.
    The button decides whether a period counts as work or rest, and its
    name and color are copied into the stats entry of every period it runs.
    """
    id: str = ""
    name: str = ""
    background_color_hex: str = WORK_BUTTON_COLOR
    text_color_hex: str = TEXT_COLOR
    is_rest: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TimerButtonDefinition":
        return cls(
            id=_text(data.get("id")),
            name=_text(data.get("name")),
            background_color_hex=_text(data.get("backgroundColorHex")),
            text_color_hex=_text(data.get("textColorHex")),
            is_rest=_flag(data.get("isRest")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "backgroundColorHex": self.background_color_hex,
            "textColorHex": self.text_color_hex,
            "isRest": self.is_rest,
        }


def default_work_button() -> TimerButtonDefinition:
    """Button used when no button configuration is available at all."""
    return TimerButtonDefinition(
        id="default-work",
        name="Work",
        background_color_hex=WORK_BUTTON_COLOR,
        text_color_hex=TEXT_COLOR,
        is_rest=False,
    )


def default_timer_buttons() -> List[TimerButtonDefinition]:
    """Buttons seeded on first run: five work variants and one rest."""
    return [
        TimerButtonDefinition("work", "Work", "#4CAF50", TEXT_COLOR, False),
        TimerButtonDefinition("study", "Study", "#2196F3", TEXT_COLOR, False),
        TimerButtonDefinition("coding", "Coding", "#FF9800", TEXT_COLOR, False),
        TimerButtonDefinition("reading", "Reading", "#009688", TEXT_COLOR, False),
        TimerButtonDefinition("meeting", "Meeting", "#E91E63", TEXT_COLOR, False),
        TimerButtonDefinition("rest", "Rest", REST_BUTTON_COLOR, TEXT_COLOR, True),
    ]


def normalize_timer_buttons(
    buttons: List[TimerButtonDefinition]
) -> List[TimerButtonDefinition]:
    """
    Repair a button collection in place and return it.

    Fills in missing ids, names and colors, replaces duplicated ids, and
    appends a rest or work button when the collection has none of that kind.
    """
    seen_ids = set()
    has_rest = False
    has_work = False

    for button in buttons:
        if not button.id or button.id in seen_ids:
            button.id = str(uuid.uuid4())
        seen_ids.add(button.id)

        name = _text(button.name)
        button.name = name or ("Rest" if button.is_rest else "Work")

        if not _text(button.background_color_hex):
            button.background_color_hex = (
                REST_BUTTON_COLOR if button.is_rest else WORK_BUTTON_COLOR
            )
        if not _text(button.text_color_hex):
            button.text_color_hex = TEXT_COLOR

        if button.is_rest:
            has_rest = True
        else:
            has_work = True

    if not has_work:
        work = default_work_button()
        work.id = "work" if "work" not in seen_ids else str(uuid.uuid4())
        buttons.insert(0, work)
        seen_ids.add(work.id)

    if not has_rest:
        buttons.append(TimerButtonDefinition(
            id="rest" if "rest" not in seen_ids else str(uuid.uuid4()),
            name="Rest",
            background_color_hex=REST_BUTTON_COLOR,
            text_color_hex=TEXT_COLOR,
            is_rest=True,
        ))

    return buttons


def resolve_active_button(
    active: Optional[TimerButtonDefinition],
    buttons: List[TimerButtonDefinition]
) -> TimerButtonDefinition:
    """Return the active button, else the first button, else a default."""
    if active is not None:
        return active
    if buttons:
        return buttons[0]
    return default_work_button()


def is_rest_entry(is_rest: bool, entry_type: Optional[str]) -> bool:
    """
    Classify an entry as rest.

    The explicit flag wins. The label check only exists so that stats
    written before the flag was introduced still load correctly.
    """
    if is_rest:
        return True
    label = _text(entry_type).lower()
    return label in REST_LABELS


def resolve_color(color_hex: Optional[str], is_rest: bool) -> str:
    """Prefer an explicit color, otherwise the default for the phase."""
    color = _text(color_hex)
    if color:
        return color
    return REST_ENTRY_COLOR if is_rest else WORK_ENTRY_COLOR


@dataclass
class StatsEntry:
    """
    One completed period.
    time_minutes is the start of the period in minutes since local midnight.
    """
    time_minutes: float = 0.0
    duration_minutes: float = 0.0
    type: str = "work"
    color_hex: str = WORK_ENTRY_COLOR
    is_rest: bool = False

    @property
    def end_minutes(self) -> float:
        return self.time_minutes + self.duration_minutes

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StatsEntry":
        """Build an entry from persisted JSON, normalizing legacy data."""
        entry_type = data.get("type")
        if not isinstance(entry_type, str):
            entry_type = ""
        is_rest = is_rest_entry(_flag(data.get("isRest")), entry_type)
        return cls(
            time_minutes=_as_float(data.get("timeMinutes")),
            duration_minutes=_as_float(data.get("durationMinutes")),
            type=entry_type,
            color_hex=resolve_color(data.get("colorHex"), is_rest),
            is_rest=is_rest,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timeMinutes": self.time_minutes,
            "durationMinutes": self.duration_minutes,
            "type": self.type,
            "colorHex": self.color_hex,
            "isRest": self.is_rest,
        }


def _as_float(value: Any) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError, OverflowError):
        return 0.0
    return number if math.isfinite(number) else 0.0


@dataclass
class DayTypeSegment:
    """Minutes spent on one entry type within a day or a selection of days."""
    type: str = ""
    minutes: float = 0.0
    color_hex: str = WORK_ENTRY_COLOR


@dataclass
class DaySummary:
    """Per-day totals broken down by entry type."""
    date: date
    total_minutes: float = 0.0
    segments: List[DayTypeSegment] = field(default_factory=list)


@dataclass
class WeekSummary:
    """Work/rest totals for one week of a month."""
    week: int
    work_minutes: float = 0.0
    rest_minutes: float = 0.0

    @property
    def total_minutes(self) -> float:
        return self.work_minutes + self.rest_minutes


@dataclass
class DayOverview:
    """Row of the recent days overview."""
    date: date
    total_minutes: float = 0.0
    pomodoros: int = 0
    entries: List[StatsEntry] = field(default_factory=list)


@dataclass
class AppSettings:
    """Application settings stored next to the presets."""
    auto_continue: bool = False
    restore_window_on_finish: bool = True
    pin_window_when_idle: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AppSettings":
        defaults = cls()
        return cls(
            auto_continue=_flag(data.get("autoContinue"), defaults.auto_continue),
            restore_window_on_finish=_flag(
                data.get("restoreWindowOnFinish"), defaults.restore_window_on_finish
            ),
            pin_window_when_idle=_flag(
                data.get("pinWindowWhenIdle"), defaults.pin_window_when_idle
            ),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "autoContinue": self.auto_continue,
            "restoreWindowOnFinish": self.restore_window_on_finish,
            "pinWindowWhenIdle": self.pin_window_when_idle,
        }
