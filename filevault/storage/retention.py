from __future__ import annotations

import dataclasses
import datetime
import math


MILLIS_PER_DAY = 24 * 60 * 60 * 1000


@dataclasses.dataclass(frozen=True)
class RetentionPolicy:
    """How long trashed objects stay restorable. All instants are epoch milliseconds."""

    retention: datetime.timedelta = datetime.timedelta(days=30)

    def __post_init__(self) -> None:
        if self.retention <= datetime.timedelta(0):
            raise ValueError("Retention duration must be positive")

    @classmethod
    def from_days(cls, days: int) -> RetentionPolicy:
        return cls(retention=datetime.timedelta(days=days))

    @property
    def retention_millis(self) -> int:
        return self.retention // datetime.timedelta(milliseconds=1)

    @property
    def retention_days(self) -> int:
        return math.ceil(self.retention_millis / MILLIS_PER_DAY)

    def expiry_of(self, deleted_at: int) -> int:
        return deleted_at + self.retention_millis

    def days_remaining(self, expires_at: int, now: int) -> int:
        # Ceiling: an object expiring in 30 minutes still has 1 day left; 0 means sweepable.
        return max(0, -((now - expires_at) // MILLIS_PER_DAY))

    def is_expired(self, deleted_at: int, now: int) -> bool:
        return (now - deleted_at) > self.retention_millis
