import json
import logging
import numbers
from datetime import datetime, timedelta
from typing import List, Optional

from bosstrack.clock import parse_timestamp
from bosstrack.errors import InvalidReport, InvalidTimestamp, PermissionDenied
from bosstrack.models import Boss, SpawnEvent, User
from bosstrack.store import Page
from . import estimator

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = {'verified', 'notes', 'coordinates', 'kill_time', 'participants', 'server'}
IMMUTABLE_FIELDS = {'spawn_time', 'boss_id', 'reported_by'}


def _clean_coordinates(coordinates):
    if coordinates is None:
        return {'x': None, 'y': None, 'z': None}
    if not isinstance(coordinates, dict):
        raise InvalidReport('Coordinates must be an object with x and y')

    def _number(value):
        return isinstance(value, numbers.Real) and not isinstance(value, bool)

    if not _number(coordinates.get('x')) or not _number(coordinates.get('y')):
        raise InvalidReport('Coordinates must have valid x and y values')
    z = coordinates.get('z')
    if z is not None and not _number(z):
        raise InvalidReport('Z coordinate must be a number if provided')
    return {'x': float(coordinates['x']), 'y': float(coordinates['y']),
            'z': float(z) if z is not None else None}


def _clean_participants(participants) -> List[str]:
    if participants is None:
        return []
    if isinstance(participants, str) or not isinstance(participants, (list, tuple)):
        raise InvalidReport('Participants must be a list of names or member ids')
    cleaned = []
    for p in participants:
        if isinstance(p, bool) or not isinstance(p, (str, int)):
            raise InvalidReport(f'Invalid participant: {p!r}')
        name = str(p).strip()
        if name:
            cleaned.append(name)
    return cleaned


def _clean_notes(notes):
    if notes is None:
        return None
    return str(notes).replace('<', '').replace('>', '').strip() or None


class SpawnReports:
    """Write path for spawn events.

    create: guard, persist, move the boss timer, credit participants.
    Updates and deletes are limited to the reporter or an admin.
    """

    def __init__(self, store, clock, guard, ledger, scheduler,
                 max_age_days: int = 30, recompute_on_latest_delete: bool = True):
        self.store = store
        self.clock = clock
        self.guard = guard
        self.ledger = ledger
        self.scheduler = scheduler
        self.max_age_days = max_age_days
        self.recompute_on_latest_delete = recompute_on_latest_delete

    def _spawn_time(self, value) -> datetime:
        spawn_time = parse_timestamp(value)
        floor = self.clock.now() - timedelta(days=self.max_age_days)
        if spawn_time < floor:
            raise InvalidTimestamp(f'Spawn time cannot be more than {self.max_age_days} days ago')
        return spawn_time

    def create(self, boss_id: int, spawn_time, reporter: Optional[User] = None,
               participants=None, kill_time=None, server=None, notes=None,
               coordinates=None) -> SpawnEvent:
        spawn_time = self._spawn_time(spawn_time)
        kill_time = parse_timestamp(kill_time) if kill_time is not None else None
        coords = _clean_coordinates(coordinates)
        names = _clean_participants(participants)
        boss = self.store.get(Boss, boss_id)

        self.guard.check(boss.id, spawn_time)
        event = self.store.create(
            SpawnEvent,
            boss_id=boss.id,
            spawn_time=spawn_time,
            kill_time=kill_time,
            reported_by=reporter.id if reporter else None,
            verified=False,
            server=server or boss.server,
            notes=_clean_notes(notes),
            participants=json.dumps(names) if names else None,
            **coords,
        )
        logger.info(f"[spawn-report] boss={boss.id} event={event.id} spawn_time={spawn_time.isoformat()}")

        estimator.apply_spawn(self.store, boss, spawn_time, self.clock.now())
        self.scheduler.clear_cycle(boss.id)
        if names:
            self.ledger.credit_participants(event, reporter=reporter)
        return event

    def _authorize(self, event: SpawnEvent, actor: Optional[User]) -> None:
        if actor is None or (event.reported_by != actor.id and not actor.is_admin):
            raise PermissionDenied(f'Only the reporter or an admin may change spawn event {event.id}')

    def update(self, event_id: int, actor: Optional[User], **fields) -> SpawnEvent:
        event = self.store.get(SpawnEvent, event_id)
        self._authorize(event, actor)
        frozen = IMMUTABLE_FIELDS.intersection(fields)
        if frozen:
            raise InvalidReport(f"Cannot change {', '.join(sorted(frozen))} of a spawn event")
        unknown = set(fields) - EDITABLE_FIELDS
        if unknown:
            raise InvalidReport(f"Unknown spawn event fields: {', '.join(sorted(unknown))}")

        changes = {}
        if 'verified' in fields:
            changes['verified'] = bool(fields['verified'])
        if 'notes' in fields:
            changes['notes'] = _clean_notes(fields['notes'])
        if 'server' in fields:
            changes['server'] = fields['server']
        if 'coordinates' in fields:
            changes.update(_clean_coordinates(fields['coordinates']))
        if 'kill_time' in fields:
            kill_time = fields['kill_time']
            changes['kill_time'] = parse_timestamp(kill_time) if kill_time is not None else None
        if 'participants' in fields:
            names = _clean_participants(fields['participants'])
            changes['participants'] = json.dumps(names) if names else None

        event = self.store.update(SpawnEvent, event.id, **changes)
        if 'participants' in fields:
            # Removed names keep their credit until the next recompute
            self.ledger.credit_participants(event, reporter=actor)
        return event

    def verify(self, event_id: int, actor: Optional[User]) -> SpawnEvent:
        return self.update(event_id, actor, verified=True)

    def delete(self, event_id: int, actor: Optional[User]) -> bool:
        event = self.store.get(SpawnEvent, event_id)
        self._authorize(event, actor)
        boss = self.store.get(Boss, event.boss_id)
        latest = self.store.first(SpawnEvent, {'boss_id': boss.id}, sort='-spawn_time')
        was_latest = latest is not None and latest.id == event.id
        self.store.delete(SpawnEvent, event.id)
        logger.info(f"[spawn-delete] boss={boss.id} event={event_id} latest={was_latest}")

        if was_latest and self.recompute_on_latest_delete:
            remaining = self.store.first(SpawnEvent, {'boss_id': boss.id}, sort='-spawn_time')
            estimator.apply_spawn(self.store, boss, remaining.spawn_time if remaining else None,
                                  self.clock.now())
            self.scheduler.clear_cycle(boss.id)
        return True

    def history(self, boss_id: int, limit: Optional[int] = None) -> List[SpawnEvent]:
        """Events for a boss, newest first."""
        self.store.get(Boss, boss_id)
        if limit:
            return self.store.list(SpawnEvent, {'boss_id': boss_id}, sort='-spawn_time',
                                   page=1, page_size=limit).items
        return self.store.all(SpawnEvent, {'boss_id': boss_id}, sort='-spawn_time')

    def search(self, boss_id=None, server=None, verified=None, date_from=None, date_to=None,
               page: int = 1, page_size: int = 50) -> Page:
        filters = {}
        if boss_id is not None:
            filters['boss_id'] = boss_id
        if server:
            filters['server'] = server
        if verified is not None:
            filters['verified'] = bool(verified)
        if date_from is not None or date_to is not None:
            filters['spawn_time'] = {}
            if date_from is not None:
                filters['spawn_time']['>='] = parse_timestamp(date_from)
            if date_to is not None:
                filters['spawn_time']['<='] = parse_timestamp(date_to)
        return self.store.list(SpawnEvent, filters, sort='-spawn_time', page=page, page_size=page_size)
