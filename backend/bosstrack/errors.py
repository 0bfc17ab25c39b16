"""Errors raised by the respawn tracking core.

Every error is local to the operation that raised it. Callers (the REST
layer, CLI commands) map them to their own responses.
"""


class RespawnError(Exception):
    """Base exception for respawn tracking operations."""
    pass


class NotFound(RespawnError):
    """Raised when a boss, spawn event, guild or contribution is missing."""
    pass


class DuplicateSpawnReport(RespawnError):
    """Raised when a report falls within the tolerance of an existing one."""

    def __init__(self, boss_id, spawn_time, existing_id=None, tolerance_min=5):
        self.boss_id = boss_id
        self.spawn_time = spawn_time
        self.existing_id = existing_id
        super().__init__(
            f"A spawn event for boss {boss_id} already exists within "
            f"{tolerance_min} minutes of {spawn_time.isoformat()}"
        )


class InvalidTimestamp(RespawnError):
    """Raised when a timestamp is unparsable or older than the accepted floor."""
    pass


class InsufficientHistory(RespawnError):
    """Raised in strict mode when too few spawn events exist for statistics."""

    def __init__(self, required, available):
        self.required = required
        self.available = available
        super().__init__(f"Need at least {required} spawn events, have {available}")


class ConcurrencyConflict(RespawnError):
    """Raised when a contribution write lost a race with another writer."""
    pass


class InvalidReport(RespawnError):
    """Raised for malformed report fields or edits to immutable fields."""
    pass


class InvalidBossConfig(RespawnError):
    """Raised when a boss interval or difficulty is out of range."""
    pass


class PermissionDenied(RespawnError):
    """Raised when someone other than the reporter or an admin edits an event."""
    pass
