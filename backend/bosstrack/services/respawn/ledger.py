"""Per-guild contribution scores.

One Contribution row per (guild, member name); the score counts the spawn
events the member took part in. ``increment`` is the live path, called
as events are reported. ``recompute`` rebuilds scores from the full event
history and overwrites whatever the live path produced.
"""

import json
import logging
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from bosstrack.errors import ConcurrencyConflict, InvalidReport
from bosstrack.models import Contribution, Guild, SpawnEvent, User
from bosstrack.store import Page

logger = logging.getLogger(__name__)


class ContributionLedger:
    def __init__(self, store, clock, max_retries: int = 3, auto_create_unregistered: bool = False):
        self.store = store
        self.clock = clock
        self.max_retries = max_retries
        self.auto_create_unregistered = auto_create_unregistered

    def increment(self, guild_id: int, member_name: str, member_id: Optional[int] = None,
                  event_date: Optional[datetime] = None) -> Contribution:
        """Credit one event to a member, retrying lost write races a bounded number of times."""
        self.store.get(Guild, guild_id)
        member_name = (member_name or "").strip()
        if not member_name:
            raise InvalidReport("Member name is required")
        attempt = 0
        while True:
            attempt += 1
            try:
                row = self.store.increment_contribution(
                    guild_id, member_name, member_id=member_id,
                    event_date=event_date, initial_date=self.clock.now(),
                )
            except ConcurrencyConflict:
                if attempt > self.max_retries:
                    raise
                logger.info(f"[ledger-retry] guild={guild_id} name={member_name} attempt={attempt}")
                continue
            logger.info(f"[ledger-increment] guild={guild_id} name={member_name} score={row.contribution_score}")
            return row

    def credit_participants(self, event: SpawnEvent,
                            reporter: Optional[User] = None) -> List[Contribution]:
        """Credit the event's participants that the event has not credited yet.

        A name that matches an account is credited in that account's guild.
        Otherwise every existing row already tracking that name is credited.
        A name with neither is dropped, unless auto-creation is enabled and
        the reporter has a guild to credit it in.

        The event keeps the (guild, member) rows it has credited, so a row is
        credited at most once per event: an account listed by name and by id,
        or a name removed and later re-added, is not counted again.
        """
        credited = event.credited_keys
        targets: Dict[Tuple[int, str], Optional[int]] = {}
        for name in event.participant_names:
            name = name.strip()
            if not name:
                continue
            for guild_id, member_name, member_id in self._resolve(name, reporter):
                if (guild_id, member_name) not in credited:
                    targets.setdefault((guild_id, member_name), member_id)
        rows = [
            self.increment(guild_id, member_name, member_id=member_id, event_date=event.spawn_time)
            for (guild_id, member_name), member_id in targets.items()
        ]
        if targets:
            keys = sorted(credited | set(targets))
            self.store.update(SpawnEvent, event.id,
                              credited_members=json.dumps([list(key) for key in keys]))
        return rows

    def _resolve(self, name: str, reporter: Optional[User]) -> List[Tuple[int, str, Optional[int]]]:
        account = self.store.find_account(name)
        if account is not None:
            if account.guild_id is None:
                logger.info(f"[ledger-drop] name={name} account={account.id} has no guild")
                return []
            return [(account.guild_id, account.username, account.id)]
        tracked = self.store.all(Contribution, {'member_name': name})
        if tracked:
            return [(row.guild_id, name, row.member_id) for row in tracked]
        if self.auto_create_unregistered and reporter is not None and reporter.guild_id is not None:
            return [(reporter.guild_id, name, None)]
        logger.info(f"[ledger-drop] name={name} no account or contribution record")
        return []

    def _canonical_name(self, name: str, cache: Dict[str, str]) -> str:
        if name not in cache:
            account = self.store.find_account(name)
            cache[name] = account.username if account is not None else name
        return cache[name]

    def recompute(self, guild_id: int) -> List[Contribution]:
        """Rebuild every score in the guild from the event history.

        Names that resolve to an account are tallied under its username, and
        accounts of other guilds get no row here. Rows of members absent from
        the history are reset to zero. An increment running concurrently with
        a recompute may be overwritten.
        """
        self.store.get(Guild, guild_id)
        tally: Dict[str, Dict] = {}
        names: Dict[str, str] = {}
        for event in self.store.all(SpawnEvent, {'participants': {'!=': None}}, sort='spawn_time'):
            members = {self._canonical_name(n.strip(), names) for n in event.participant_names if n.strip()}
            for name in members:
                entry = tally.setdefault(name, {'count': 0, 'last': None})
                entry['count'] += 1
                if entry['last'] is None or event.spawn_time > entry['last']:
                    entry['last'] = event.spawn_time

        rows = []
        existing = {row.member_name: row for row in self.store.all(Contribution, {'guild_id': guild_id})}
        for name, entry in tally.items():
            row = existing.pop(name, None)
            if row is None:
                account = self.store.find_account(name)
                if account is not None and account.guild_id != guild_id:
                    continue
                row = self.store.create(Contribution, guild_id=guild_id, member_name=name,
                                        member_id=account.id if account else None,
                                        contribution_score=entry['count'], last_event_date=entry['last'])
            else:
                row = self.store.update(Contribution, row.id, contribution_score=entry['count'],
                                        last_event_date=entry['last'])
            rows.append(row)
        for row in existing.values():
            rows.append(self.store.update(Contribution, row.id, contribution_score=0, last_event_date=None))
        logger.info(f"[ledger-recompute] guild={guild_id} members={len(rows)}")
        return rows

    def leaderboard(self, guild_id: int, page: int = 1, page_size: int = 50) -> Page:
        self.store.get(Guild, guild_id)
        return self.store.list(Contribution, {'guild_id': guild_id},
                               sort=['-contribution_score', 'member_name'],
                               page=page, page_size=page_size)

