from datetime import datetime

from bosstrack.errors import InvalidBossConfig
from bosstrack.models import Boss, DIFFICULTIES, MAX_RESPAWN_INTERVAL, MIN_RESPAWN_INTERVAL
from . import estimator


def validate_boss_config(respawn_interval=None, difficulty=None) -> None:
    if respawn_interval is not None:
        if isinstance(respawn_interval, bool) or not isinstance(respawn_interval, int):
            raise InvalidBossConfig('Respawn interval must be a whole number of minutes')
        if not MIN_RESPAWN_INTERVAL <= respawn_interval <= MAX_RESPAWN_INTERVAL:
            raise InvalidBossConfig(
                f'Respawn interval must be between {MIN_RESPAWN_INTERVAL} and {MAX_RESPAWN_INTERVAL} minutes'
            )
    if difficulty is not None and difficulty not in DIFFICULTIES:
        raise InvalidBossConfig(f"Difficulty must be one of: {', '.join(DIFFICULTIES)}")


def create_boss(store, name: str, respawn_interval: int, creator=None, level: int = 1,
                location=None, server=None, difficulty: str = 'medium') -> Boss:
    validate_boss_config(respawn_interval, difficulty)
    if not name or not name.strip():
        raise InvalidBossConfig('Boss name is required')
    return store.create(Boss, name=name.strip(), respawn_interval=respawn_interval, level=level,
                        location=location, server=server, difficulty=difficulty,
                        created_by=creator.id if creator else None)


def reconfigure_boss(store, boss_id: int, now: datetime, **fields) -> Boss:
    """Update boss settings; a new interval re-times the pending spawn from last_spawn."""
    validate_boss_config(fields.get('respawn_interval'), fields.get('difficulty'))
    for timer_field in ('last_spawn', 'next_spawn'):
        if timer_field in fields:
            raise InvalidBossConfig(f'{timer_field} is set by spawn reports only')
    boss = store.update(Boss, boss_id, **fields)
    if 'respawn_interval' in fields and boss.last_spawn is not None:
        boss = estimator.apply_spawn(store, boss, boss.last_spawn, now)
    return boss
