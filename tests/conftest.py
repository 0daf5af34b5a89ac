"""Shared test fixtures.

Every test gets its own data directory under *tmp_path* and a fake clock,
so the engine never touches the real application data or wall-clock time.
"""

from datetime import datetime, timedelta

import pytest
from PySide6.QtCore import QCoreApplication

from core.storage import ConfigStore, StatsStore
from core.timer_engine import TimerEngine


# Wednesday
START = datetime(2026, 10, 14, 9, 0, 0)


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


@pytest.fixture(scope="session", autouse=True)
def qt_app():
    """QTimer and QLocalServer need a Qt application object."""
    app = QCoreApplication.instance() or QCoreApplication([])
    yield app


@pytest.fixture()
def clock():
    return FakeClock(START)


@pytest.fixture()
def config_store(tmp_path):
    return ConfigStore(tmp_path)


@pytest.fixture()
def stats_store(tmp_path):
    return StatsStore(tmp_path)


@pytest.fixture()
def engine(config_store, stats_store, clock):
    timer = TimerEngine(config_store, stats_store, clock=clock)
    yield timer
    timer.cleanup()


def run_ticks(engine, clock, count: int):
    """Tick the engine like the Qt timer would, moving the clock along."""
    for _ in range(count):
        clock.advance(seconds=1)
        engine.tick()
