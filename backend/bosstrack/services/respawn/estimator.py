import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from bosstrack.models import Boss

logger = logging.getLogger(__name__)


@dataclass
class RespawnTimer:
    boss_id: int
    boss_name: str
    server: Optional[str]
    last_spawn: Optional[datetime]
    next_spawn: Optional[datetime]
    time_remaining: int
    is_active: bool

    @property
    def formatted_remaining(self) -> str:
        return format_time_remaining(self.time_remaining)

    def to_dict(self):
        return {
            'boss_id': self.boss_id,
            'boss_name': self.boss_name,
            'server': self.server,
            'last_spawn': self.last_spawn.isoformat() if self.last_spawn else None,
            'next_spawn': self.next_spawn.isoformat() if self.next_spawn else None,
            'time_remaining': self.time_remaining,
            'is_active': self.is_active,
        }


def compute_next_spawn(boss: Boss, now: datetime, spawn_time: Optional[datetime] = None) -> datetime:
    """Base time plus the boss's interval.

    The base is the newly reported spawn_time, else the boss's recorded
    last_spawn, else ``now`` for a boss that has never been reported.
    """
    interval = timedelta(minutes=boss.respawn_interval)
    if spawn_time is not None:
        return spawn_time + interval
    if boss.last_spawn is not None:
        return boss.last_spawn + interval
    return now + interval


def time_remaining(next_spawn: Optional[datetime], now: datetime) -> int:
    if next_spawn is None:
        return 0
    return max(0, int((next_spawn - now).total_seconds()))


def is_active(next_spawn: Optional[datetime], now: datetime) -> bool:
    return next_spawn is not None and now < next_spawn


def respawn_timer(boss: Boss, now: datetime) -> RespawnTimer:
    """Timer state for display.

    A boss that was never reported still shows a countdown of one interval
    from now, but stays inactive until a spawn sets ``next_spawn``.
    """
    next_spawn = boss.next_spawn or compute_next_spawn(boss, now)
    return RespawnTimer(
        boss_id=boss.id,
        boss_name=boss.name,
        server=boss.server,
        last_spawn=boss.last_spawn,
        next_spawn=next_spawn,
        time_remaining=time_remaining(next_spawn, now),
        is_active=is_active(boss.next_spawn, now),
    )


def format_time_remaining(seconds: int) -> str:
    if seconds <= 0:
        return '00:00:00'
    hours, rest = divmod(int(seconds), 3600)
    minutes, secs = divmod(rest, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"


def apply_spawn(store, boss: Boss, spawn_time: Optional[datetime], now: datetime) -> Boss:
    """Overwrite the boss timer after a spawn report.

    This is the only writer of ``last_spawn``/``next_spawn``. Passing
    ``spawn_time=None`` clears the timer (no spawn history left).
    """
    if spawn_time is None:
        updated = store.update(Boss, boss.id, last_spawn=None, next_spawn=None)
        logger.info(f"[timer-clear] boss={boss.id}")
        return updated
    next_spawn = compute_next_spawn(boss, now, spawn_time)
    updated = store.update(Boss, boss.id, last_spawn=spawn_time, next_spawn=next_spawn)
    logger.info(f"[timer-set] boss={boss.id} last_spawn={spawn_time.isoformat()} next_spawn={next_spawn.isoformat()}")
    return updated
