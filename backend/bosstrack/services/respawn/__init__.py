"""Respawn domain services: timers, forecasts, duplicate checks, alerts
and the contribution ledger.

Nothing here holds state between calls; every service works through the
store handle it is constructed with. ``build_services`` wires them from an
app's config so CLI commands and tests get the same graph.
"""

from dataclasses import dataclass

from bosstrack.clock import SystemClock
from bosstrack.store import SqlStore
from .guard import DuplicateGuard
from .ledger import ContributionLedger
from .notifications import NotificationScheduler, parse_lead_times
from .reports import SpawnReports


@dataclass
class RespawnServices:
    store: SqlStore
    clock: object
    guard: DuplicateGuard
    ledger: ContributionLedger
    scheduler: NotificationScheduler
    reports: SpawnReports


def build_services(app, clock=None, store=None) -> RespawnServices:
    from bosstrack import db

    config = app.config
    clock = clock or SystemClock()
    store = store or SqlStore(db)
    guard = DuplicateGuard(store, tolerance_min=int(config.get('DUPLICATE_TOLERANCE_MIN', 5)))
    ledger = ContributionLedger(
        store, clock,
        max_retries=int(config.get('LEDGER_MAX_RETRIES', 3)),
        auto_create_unregistered=bool(config.get('AUTO_CREATE_UNREGISTERED', False)),
    )
    scheduler = NotificationScheduler(store, parse_lead_times(config.get('DEFAULT_LEAD_TIMES', 'minutes:5')))
    reports = SpawnReports(
        store, clock, guard, ledger, scheduler,
        max_age_days=int(config.get('SPAWN_MAX_AGE_DAYS', 30)),
        recompute_on_latest_delete=bool(config.get('RECOMPUTE_ON_LATEST_DELETE', True)),
    )
    return RespawnServices(store=store, clock=clock, guard=guard, ledger=ledger,
                           scheduler=scheduler, reports=reports)
