import logging
from datetime import datetime, timedelta

from bosstrack.errors import DuplicateSpawnReport
from bosstrack.models import SpawnEvent

logger = logging.getLogger(__name__)


class DuplicateGuard:
    """Rejects a report within ``tolerance_min`` minutes of an existing one.

    This is a read followed by the caller's write, so two reports racing
    each other can both pass. Closing that gap needs a constraint in the
    store, not more checks here.
    """

    def __init__(self, store, tolerance_min: int = 5):
        self.store = store
        self.tolerance_min = tolerance_min

    def check(self, boss_id: int, spawn_time: datetime) -> None:
        tolerance = timedelta(minutes=self.tolerance_min)
        clash = self.store.first(SpawnEvent, {
            'boss_id': boss_id,
            'spawn_time': {'>=': spawn_time - tolerance, '<=': spawn_time + tolerance},
        })
        if clash is not None:
            logger.info(
                f"[duplicate-reject] boss={boss_id} spawn_time={spawn_time.isoformat()} existing={clash.id}"
            )
            raise DuplicateSpawnReport(boss_id, spawn_time, existing_id=clash.id,
                                       tolerance_min=self.tolerance_min)
