"""Spawn statistics derived from a boss's report history.

Everything here is a pure function of the boss, its events and the time
passed in, so the same inputs always give the same forecast.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from statistics import fmean, pstdev
from typing import List, Sequence

from bosstrack.errors import InsufficientHistory
from bosstrack.models import Boss, SpawnEvent
from .estimator import respawn_timer

MIN_EVENTS_FOR_ACCURACY = 2
MIN_EVENTS_FOR_WINDOWS = 3


@dataclass
class SpawnWindow:
    start: datetime
    end: datetime
    confidence: int

    def to_dict(self):
        return {
            'start': self.start.isoformat(),
            'end': self.end.isoformat(),
            'confidence': self.confidence,
        }


def _chronological(events: Sequence[SpawnEvent]) -> List[SpawnEvent]:
    return sorted(events, key=lambda e: e.spawn_time)


def inter_arrival_minutes(events: Sequence[SpawnEvent]) -> List[float]:
    ordered = _chronological(events)
    return [
        (later.spawn_time - earlier.spawn_time).total_seconds() / 60.0
        for earlier, later in zip(ordered, ordered[1:])
    ]


def spawn_accuracy(boss: Boss, events: Sequence[SpawnEvent], strict: bool = False) -> int:
    """How closely the observed mean interval matches the configured one (0-100)."""
    if len(events) < MIN_EVENTS_FOR_ACCURACY:
        if strict:
            raise InsufficientHistory(MIN_EVENTS_FOR_ACCURACY, len(events))
        return 0
    average = fmean(inter_arrival_minutes(events))
    expected = boss.respawn_interval
    accuracy = max(0.0, 100 - abs(average - expected) / expected * 100)
    return int(round(accuracy))


def predict_spawn_times(boss: Boss, events: Sequence[SpawnEvent], count: int = 3) -> List[datetime]:
    """Step forward from the latest report by the configured interval."""
    if not events:
        return []
    latest = max(e.spawn_time for e in events)
    step = timedelta(minutes=boss.respawn_interval)
    return [latest + step * i for i in range(1, count + 1)]


def spawn_windows(boss: Boss, events: Sequence[SpawnEvent], count: int = 3,
                  strict: bool = False) -> List[SpawnWindow]:
    """Predicted spawn ranges of plus or minus one standard deviation.

    Uses the observed mean interval (not the configured one) and the
    population standard deviation of the intervals.
    """
    if len(events) < MIN_EVENTS_FOR_WINDOWS:
        if strict:
            raise InsufficientHistory(MIN_EVENTS_FOR_WINDOWS, len(events))
        return []
    intervals = inter_arrival_minutes(events)
    mean = fmean(intervals)
    stddev = pstdev(intervals, mu=mean)
    if mean > 0:
        confidence = int(round(max(0.0, 100 - stddev / mean * 100)))
    else:
        confidence = 0
    spread = timedelta(minutes=stddev)
    step = timedelta(minutes=mean)
    predicted = _chronological(events)[-1].spawn_time + step
    windows = []
    for _ in range(count):
        windows.append(SpawnWindow(start=predicted - spread, end=predicted + spread, confidence=confidence))
        predicted = predicted + step
    return windows


def forecast(boss: Boss, events: Sequence[SpawnEvent], now: datetime,
             count: int = 3, window_count: int = 3) -> dict:
    return {
        'timer': respawn_timer(boss, now),
        'accuracy': spawn_accuracy(boss, events),
        'predictions': predict_spawn_times(boss, events, count),
        'windows': spawn_windows(boss, events, window_count),
    }
