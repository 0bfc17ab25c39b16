import json
from datetime import timedelta

import pytest
import sqlalchemy as sa

from bosstrack import db
from bosstrack.errors import ConcurrencyConflict, NotFound
from bosstrack.models import Contribution, SpawnEvent
from bosstrack.services.respawn.ledger import ContributionLedger
from bosstrack.store import SqlStore


class FlakyStore(SqlStore):
    """Loses the first ``failures`` increment races."""

    def __init__(self, failures):
        super().__init__(db)
        self.failures = failures
        self.calls = 0

    def increment_contribution(self, *args, **kwargs):
        self.calls += 1
        if self.calls <= self.failures:
            raise ConcurrencyConflict('simulated concurrent insert')
        return super().increment_contribution(*args, **kwargs)


class CountingStore(SqlStore):
    def __init__(self):
        super().__init__(db)
        self.calls = 0

    def increment_contribution(self, *args, **kwargs):
        self.calls += 1
        return super().increment_contribution(*args, **kwargs)


def _score(services, guild, name):
    row = services.store.first(Contribution, {'guild_id': guild.id, 'member_name': name})
    return row.contribution_score if row else None


def test_sequential_increments_count_and_keep_latest_date(services, make_guild, clock):
    guild = make_guild()
    later = clock.now() - timedelta(hours=1)
    earlier = clock.now() - timedelta(days=2)

    services.ledger.increment(guild.id, 'Alice', event_date=later)
    row = services.ledger.increment(guild.id, 'Alice', event_date=earlier)

    assert row.contribution_score == 2
    assert row.last_event_date == later
    assert services.store.list(Contribution, {'guild_id': guild.id}).total_items == 1


def test_first_increment_without_date_uses_clock(services, make_guild, clock):
    guild = make_guild()
    row = services.ledger.increment(guild.id, 'Bob')
    assert row.contribution_score == 1
    assert row.last_event_date == clock.now()


def test_increment_unknown_guild(services):
    with pytest.raises(NotFound):
        services.ledger.increment(42, 'Alice')


def test_increment_retries_lost_races(flask_app, make_guild, clock):
    guild = make_guild()
    store = FlakyStore(failures=2)
    ledger = ContributionLedger(store, clock, max_retries=3)
    assert ledger.increment(guild.id, 'Alice').contribution_score == 1
    assert store.calls == 3


def test_increment_gives_up_after_bounded_retries(flask_app, make_guild, clock):
    guild = make_guild()
    store = FlakyStore(failures=10)
    ledger = ContributionLedger(store, clock, max_retries=2)
    with pytest.raises(ConcurrencyConflict):
        ledger.increment(guild.id, 'Alice')
    assert store.calls == 3


def test_lost_insert_race_rolls_back_and_retries(flask_app, make_guild, clock):
    guild_id = make_guild().id
    store = CountingStore()
    ledger = ContributionLedger(store, clock, max_retries=3)
    session = db.session()
    raced = []

    # another writer creates the row between our UPDATE and our INSERT
    def insert_competing_row(session, flush_context, instances):
        if raced or not any(isinstance(obj, Contribution) for obj in session.new):
            return
        raced.append(True)
        with db.engine.begin() as conn:
            conn.execute(sa.insert(Contribution).values(
                guild_id=guild_id, member_name='Alice', contribution_score=1))

    sa.event.listen(session, 'before_flush', insert_competing_row)
    try:
        row = ledger.increment(guild_id, 'Alice')
    finally:
        sa.event.remove(session, 'before_flush', insert_competing_row)

    assert raced
    assert store.calls == 2
    assert row.contribution_score == 2
    assert store.list(Contribution, {'guild_id': guild_id}).total_items == 1


def test_recompute_overwrites_live_score(services, make_guild, make_boss, clock):
    guild = make_guild()
    boss = make_boss()
    for _ in range(5):
        services.ledger.increment(guild.id, 'Alice')
    assert _score(services, guild, 'Alice') == 5

    times = [clock.now() - timedelta(hours=h) for h in (6, 4, 2)]
    for t in times:
        services.store.create(SpawnEvent, boss_id=boss.id, spawn_time=t,
                              participants=json.dumps(['Alice', 'Bob']))
    services.store.create(SpawnEvent, boss_id=boss.id, spawn_time=clock.now(), participants=None)

    services.ledger.recompute(guild.id)
    row = services.store.first(Contribution, {'guild_id': guild.id, 'member_name': 'Alice'})
    assert row.contribution_score == 3
    assert row.last_event_date == times[-1]
    assert _score(services, guild, 'Bob') == 3

    # idempotent
    services.ledger.recompute(guild.id)
    assert _score(services, guild, 'Alice') == 3


def test_recompute_resets_members_without_history(services, make_guild):
    guild = make_guild()
    services.ledger.increment(guild.id, 'Ghost')
    services.ledger.recompute(guild.id)
    row = services.store.first(Contribution, {'guild_id': guild.id, 'member_name': 'Ghost'})
    assert row.contribution_score == 0
    assert row.last_event_date is None


def test_recompute_skips_accounts_of_other_guilds(services, make_guild, make_user, make_boss, clock):
    vanguard = make_guild('Vanguard')
    wardens = make_guild('Wardens')
    make_user('kael', guild=wardens)
    boss = make_boss()
    services.store.create(SpawnEvent, boss_id=boss.id, spawn_time=clock.now(),
                          participants=json.dumps(['kael', 'Drifter']))

    services.ledger.recompute(vanguard.id)
    assert _score(services, vanguard, 'kael') is None
    assert _score(services, vanguard, 'Drifter') == 1


def test_recompute_unknown_guild(services):
    with pytest.raises(NotFound):
        services.ledger.recompute(7)


def test_report_credits_account_in_its_guild(services, make_guild, make_user, make_boss, clock):
    guild = make_guild()
    alice = make_user('alice', guild=guild)
    boss = make_boss()
    when = clock.now() - timedelta(minutes=20)

    services.reports.create(boss.id, when, participants=['alice', 'alice', str(alice.id)])

    row = services.store.first(Contribution, {'guild_id': guild.id, 'member_name': 'alice'})
    # the name and the id resolve to the same account, credited once for the event
    assert row.member_id == alice.id
    assert row.last_event_date == when
    assert row.contribution_score == 1


def test_report_credits_existing_rows_for_free_text_names(services, make_guild, make_boss, clock):
    vanguard = make_guild('Vanguard')
    wardens = make_guild('Wardens')
    services.ledger.increment(vanguard.id, 'Kael')
    services.ledger.increment(wardens.id, 'Kael')
    boss = make_boss()

    services.reports.create(boss.id, clock.now() - timedelta(minutes=5), participants=['Kael', 'Nobody'])

    assert _score(services, vanguard, 'Kael') == 2
    assert _score(services, wardens, 'Kael') == 2
    assert services.store.all(Contribution, {'member_name': 'Nobody'}) == []


def test_unregistered_names_auto_created_when_enabled(services, make_guild, make_user, make_boss, clock):
    guild = make_guild()
    reporter = make_user('scout', guild=guild)
    services.ledger.auto_create_unregistered = True
    boss = make_boss()

    services.reports.create(boss.id, clock.now() - timedelta(minutes=5), reporter=reporter,
                            participants=['Newcomer'])
    assert _score(services, guild, 'Newcomer') == 1


def test_participant_edit_credits_only_added_names(services, make_guild, make_user, make_boss, clock):
    guild = make_guild()
    alice = make_user('alice', guild=guild)
    make_user('bob', guild=guild)
    boss = make_boss()
    event = services.reports.create(boss.id, clock.now() - timedelta(minutes=5), reporter=alice,
                                    participants=['alice'])

    services.reports.update(event.id, alice, participants=['alice', 'bob'])
    assert _score(services, guild, 'alice') == 1
    assert _score(services, guild, 'bob') == 1

    services.reports.update(event.id, alice, participants=['bob'])
    assert _score(services, guild, 'alice') == 1


def test_readding_removed_participant_does_not_credit_twice(services, make_guild, make_user, make_boss, clock):
    guild = make_guild()
    alice = make_user('alice', guild=guild)
    make_user('bob', guild=guild)
    boss = make_boss()
    event = services.reports.create(boss.id, clock.now() - timedelta(minutes=5), reporter=alice,
                                    participants=['alice'])

    services.reports.update(event.id, alice, participants=['bob'])
    services.reports.update(event.id, alice, participants=['alice', 'bob'])
    assert _score(services, guild, 'alice') == 1
    assert _score(services, guild, 'bob') == 1


def test_adding_account_id_alias_does_not_credit_twice(services, make_guild, make_user, make_boss, clock):
    guild = make_guild()
    alice = make_user('alice', guild=guild)
    boss = make_boss()
    event = services.reports.create(boss.id, clock.now() - timedelta(minutes=5), reporter=alice,
                                    participants=['alice'])

    event = services.reports.update(event.id, alice, participants=['alice', str(alice.id)])
    assert _score(services, guild, 'alice') == 1
    assert event.credited_keys == {(guild.id, 'alice')}


def test_leaderboard_orders_by_score(services, make_guild):
    guild = make_guild()
    for name, times in (('Alice', 1), ('Bob', 3), ('Cara', 2)):
        for _ in range(times):
            services.ledger.increment(guild.id, name)
    page = services.ledger.leaderboard(guild.id, page_size=2)
    assert [row.member_name for row in page.items] == ['Bob', 'Cara']
    assert page.total_items == 3
    assert page.has_next
