"""
Statistics aggregation for the Pomodoro Timer application.

Every function here is pure: it reads a stats mapping (day key -> entries)
and returns derived values without touching the mapping.
"""

from collections import OrderedDict
from datetime import date, datetime, timedelta
from typing import Dict, Iterable, List, Optional, Tuple

from .models import (
    DayOverview, DaySummary, DayTypeSegment, StatsEntry,
    TimerButtonDefinition, WeekSummary, is_rest_entry, resolve_color,
)

MINUTES_PER_DAY = 1440
ROLLING_LOOKBACK_DAYS = 90
SUMMARY_WORKDAYS = 3

StatsData = Dict[str, List[StatsEntry]]


# ==================== Keys and dates ====================

def date_key(day: date) -> str:
    """Canonical day key for a local date."""
    return day.strftime('%Y-%m-%d')


def parse_date_key(key: str) -> Optional[date]:
    try:
        return datetime.strptime(key, '%Y-%m-%d').date()
    except (TypeError, ValueError):
        return None


def is_workday(day: date) -> bool:
    """Monday to Friday."""
    return day.weekday() < 5


def format_minutes(minutes: float) -> str:
    """Format a minute count as HH:MM."""
    total = int(max(0.0, minutes) * 60) // 60
    return f"{total // 60:02d}:{total % 60:02d}"


# ==================== Classification ====================

def entry_is_rest(entry: StatsEntry) -> bool:
    return is_rest_entry(entry.is_rest, entry.type)


def normalize_type(label: Optional[str], is_rest: bool) -> str:
    """Trimmed type label, or the phase name when the label is empty."""
    text = label.strip() if isinstance(label, str) else ""
    if text:
        return text
    return "Rest" if is_rest else "Work"


def entry_for_period(
    button: TimerButtonDefinition,
    start: datetime,
    duration_minutes: float
) -> StatsEntry:
    """Build the stats entry for a period run by a button."""
    start_minutes = (
        start.hour * 60
        + start.minute
        + (start.second + start.microsecond / 1_000_000) / 60.0
    )
    return StatsEntry(
        time_minutes=start_minutes,
        duration_minutes=float(duration_minutes),
        type=button.name,
        color_hex=resolve_color(button.background_color_hex, button.is_rest),
        is_rest=button.is_rest,
    )


def clamp_to_day(entry: StatsEntry) -> Tuple[float, float]:
    """Start and end of an entry clipped to the day it started in."""
    start = min(max(entry.time_minutes, 0.0), float(MINUTES_PER_DAY))
    end = min(max(entry.end_minutes, start), float(MINUTES_PER_DAY))
    return start, end


# ==================== Single day ====================

def daily_series(stats: StatsData, day_key: str) -> List[StatsEntry]:
    """Entries of a day ordered by start time."""
    # sorted() is stable, so equal start times keep insertion order
    return sorted(stats.get(day_key) or [], key=lambda e: e.time_minutes)


def sum_by_phase(stats: StatsData, day_key: str, is_rest: bool) -> float:
    """Total minutes of rest (or work) periods on a day."""
    return sum(
        entry.duration_minutes
        for entry in stats.get(day_key) or []
        if entry_is_rest(entry) == is_rest
    )


def rolling_workday_average(
    stats: StatsData,
    workdays: int,
    today: Optional[date] = None,
    lookback_days: int = ROLLING_LOOKBACK_DAYS
) -> float:
    """
    Mean work minutes over the most recent workdays.

    Walks backwards from today, skipping weekends, until the requested
    number of workdays has been collected or the lookback window runs out.
    Days without entries count as zero. The mean is taken over the days
    actually collected.
    """
    cursor = today or date.today()
    collected = 0
    total = 0.0

    for _ in range(lookback_days):
        if collected >= workdays:
            break
        if is_workday(cursor):
            total += sum_by_phase(stats, date_key(cursor), False)
            collected += 1
        cursor -= timedelta(days=1)

    if collected == 0:
        return 0.0
    return total / collected


def summary_totals(
    stats: StatsData,
    today: Optional[date] = None
) -> Tuple[float, float, float]:
    """Today's work minutes, rest minutes, and the rolling workday average."""
    today = today or date.today()
    key = date_key(today)
    return (
        sum_by_phase(stats, key, False),
        sum_by_phase(stats, key, True),
        rolling_workday_average(stats, SUMMARY_WORKDAYS, today),
    )


# ==================== Multiple days ====================

def _group_by_type(entries: Iterable[StatsEntry]) -> List[DayTypeSegment]:
    groups: "OrderedDict[str, DayTypeSegment]" = OrderedDict()
    for entry in entries:
        rest = entry_is_rest(entry)
        label = normalize_type(entry.type, rest)
        segment = groups.get(label)
        if segment is None:
            segment = DayTypeSegment(
                type=label,
                minutes=0.0,
                color_hex=resolve_color(entry.color_hex, rest),
            )
            groups[label] = segment
        segment.minutes += entry.duration_minutes
    return list(groups.values())


def multi_day_summary(stats: StatsData, dates: Iterable[date]) -> List[DaySummary]:
    """Per-day totals with one segment per entry type, oldest day first."""
    summaries = []
    for day in sorted(set(dates)):
        segments = sorted(
            _group_by_type(stats.get(date_key(day)) or []),
            key=lambda s: s.type,
        )
        summaries.append(DaySummary(
            date=day,
            total_minutes=sum(s.minutes for s in segments),
            segments=segments,
        ))
    return summaries


def type_breakdown(stats: StatsData, dates: Iterable[date]) -> List[DayTypeSegment]:
    """Minutes per entry type across all given days, largest first."""
    entries: List[StatsEntry] = []
    for day in sorted(set(dates)):
        entries.extend(stats.get(date_key(day)) or [])
    return sorted(_group_by_type(entries), key=lambda s: s.minutes, reverse=True)


def weekly_rollup(stats: StatsData, year: int, month: int) -> List[WeekSummary]:
    """Work and rest minutes per ISO week for the days of one month."""
    weeks: Dict[int, WeekSummary] = {}
    for key, entries in stats.items():
        day = parse_date_key(key)
        if day is None or day.year != year or day.month != month:
            continue
        week = day.isocalendar()[1]
        summary = weeks.setdefault(week, WeekSummary(week=week))
        for entry in entries or []:
            if entry_is_rest(entry):
                summary.rest_minutes += entry.duration_minutes
            else:
                summary.work_minutes += entry.duration_minutes
    return [weeks[week] for week in sorted(weeks)]


def recent_days(
    stats: StatsData,
    days: int = 7,
    today: Optional[date] = None
) -> List[DayOverview]:
    """Overview of the last few days, oldest first, including empty days."""
    today = today or date.today()
    rows = []
    for offset in range(days - 1, -1, -1):
        day = today - timedelta(days=offset)
        entries = daily_series(stats, date_key(day))
        rows.append(DayOverview(
            date=day,
            total_minutes=sum(e.duration_minutes for e in entries),
            pomodoros=sum(1 for e in entries if not entry_is_rest(e)),
            entries=entries,
        ))
    return rows


def describe_day(entries: List[StatsEntry], day: date) -> str:
    """Multi-line description of a day's periods, used for tooltips."""
    if not entries:
        return f"No pomodoros finished on {day.strftime('%d %B')}."

    lines = [day.strftime('%A, %d %B'), "Pomodoros:"]
    for entry in sorted(entries, key=lambda e: e.time_minutes):
        start, end = clamp_to_day(entry)
        lines.append(
            f"• {format_minutes(start)} – {format_minutes(end)} "
            f"({entry.duration_minutes:.0f} min)"
        )
    return "\n".join(lines)
