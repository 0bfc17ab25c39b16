import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterable, List, Optional

from bosstrack.models import Boss, NotificationReceipt, User
from .estimator import respawn_timer

logger = logging.getLogger(__name__)

LEAD_UNITS = ('minutes', 'seconds')


@dataclass(frozen=True)
class LeadTime:
    unit: str
    value: int

    def __post_init__(self):
        if self.unit not in LEAD_UNITS:
            raise ValueError(f"Unknown lead-time unit: {self.unit}")
        if self.value < 0:
            raise ValueError(f"Lead-time must not be negative: {self.value}")

    @property
    def key(self) -> str:
        return f"{self.unit}_{self.value}"

    @property
    def delta(self) -> timedelta:
        return timedelta(**{self.unit: self.value})

    @classmethod
    def from_dict(cls, data) -> 'LeadTime':
        # Older settings used "type" for the unit
        unit = data.get('unit') or data.get('type')
        return cls(unit=unit, value=int(data.get('value')))

    @classmethod
    def parse(cls, text: str) -> 'LeadTime':
        unit, _, value = text.partition(':')
        return cls(unit=unit.strip(), value=int(value))


def parse_lead_times(text: str) -> List[LeadTime]:
    return [LeadTime.parse(part) for part in text.split(',') if part.strip()]


def notification_time(next_spawn: datetime, lead: LeadTime) -> datetime:
    return next_spawn - lead.delta


def notification_due(next_spawn: Optional[datetime], lead: LeadTime, now: datetime) -> bool:
    if next_spawn is None:
        return False
    return now >= notification_time(next_spawn, lead)


class NotificationScheduler:
    """Decides when spawn alerts are due; never delivers anything itself.

    Fired lead-times are recorded as receipts tagged with the boss's
    ``next_spawn``. A receipt for an older cycle does not count, so each
    (user, boss, lead-time) fires at most once per cycle.
    """

    def __init__(self, store, default_lead_times: Iterable[LeadTime] = ()):
        self.store = store
        self.default_lead_times = list(default_lead_times)

    def lead_times_for(self, user: User) -> List[LeadTime]:
        leads = []
        for raw in user.lead_times:
            try:
                leads.append(LeadTime.from_dict(raw))
            except (AttributeError, TypeError, ValueError):
                logger.warning(f"[lead-skip] user={user.id} invalid lead-time {raw!r}")
        return leads or list(self.default_lead_times)

    def _receipt(self, user_id: int, boss_id: int, lead: LeadTime) -> Optional[NotificationReceipt]:
        return self.store.first(NotificationReceipt, {
            'user_id': user_id, 'boss_id': boss_id, 'lead_key': lead.key,
        })

    def has_fired(self, user_id: int, boss: Boss, lead: LeadTime) -> bool:
        receipt = self._receipt(user_id, boss.id, lead)
        return receipt is not None and receipt.cycle == boss.next_spawn

    def is_due(self, user_id: int, boss: Boss, lead: LeadTime, now: datetime) -> bool:
        if not notification_due(boss.next_spawn, lead, now):
            return False
        return not self.has_fired(user_id, boss, lead)

    def due_lead_times(self, user: User, boss: Boss, now: datetime) -> List[LeadTime]:
        return [lead for lead in self.lead_times_for(user) if self.is_due(user.id, boss, lead, now)]

    def mark_fired(self, user_id: int, boss: Boss, lead: LeadTime) -> NotificationReceipt:
        receipt = self._receipt(user_id, boss.id, lead)
        if receipt is None:
            return self.store.create(NotificationReceipt, user_id=user_id, boss_id=boss.id,
                                     lead_key=lead.key, cycle=boss.next_spawn)
        return self.store.update(NotificationReceipt, receipt.id, cycle=boss.next_spawn)

    def clear_cycle(self, boss_id: int) -> int:
        receipts = self.store.all(NotificationReceipt, {'boss_id': boss_id})
        for receipt in receipts:
            self.store.delete(NotificationReceipt, receipt.id)
        return len(receipts)


def alert_payload(boss: Boss, lead: LeadTime, now: datetime) -> dict:
    timer = respawn_timer(boss, now)
    return {
        'boss': boss.to_dict(),
        'timer': timer.to_dict(),
        'time_remaining': timer.formatted_remaining,
        'lead_time': {'unit': lead.unit, 'value': lead.value},
        'message': f"{boss.name} is expected to spawn in {lead.value} {lead.unit}",
    }


def dispatch_alerts(store, scheduler: NotificationScheduler, transport, now: datetime) -> int:
    """Deliver every due alert to members with push enabled.

    A lead-time is only marked fired when the transport reports success,
    so a failed delivery is retried on the next run.
    """
    sent = 0
    for user in store.all(User, {'push_notifications': True}):
        boss_ids = user.favorite_boss_ids
        if not boss_ids:
            continue
        for boss in store.all(Boss, {'id': {'in': boss_ids}}):
            for lead in scheduler.due_lead_times(user, boss, now):
                if transport.deliver('push', user.id, alert_payload(boss, lead, now)):
                    scheduler.mark_fired(user.id, boss, lead)
                    sent += 1
                    logger.info(f"[alert-sent] user={user.id} boss={boss.id} lead={lead.key}")
                else:
                    logger.warning(f"[alert-failed] user={user.id} boss={boss.id} lead={lead.key}")
    return sent
