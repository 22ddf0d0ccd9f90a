"""
Submission attempt counting across independent dimensions.
"""

from datetime import datetime, timedelta
from typing import Callable, Optional

from shared.logging import get_logger
from shared.metrics import MetricsCollector
from ..models import UNKNOWN, AttemptDimension, RateLimitPolicy, normalize_identity, utcnow
from ..persistence.base import ElectionStore


class AbuseCounter:
    """Counts prior submissions and windowed attempts.

    Store failures on these checks are permissive: a count that cannot
    be read is treated as zero.
    """

    def __init__(self, store: ElectionStore, policy: RateLimitPolicy,
                 clock: Callable[[], datetime] = utcnow,
                 metrics: Optional[MetricsCollector] = None):
        self.store = store
        self.policy = policy
        self.clock = clock
        self.metrics = metrics
        self.logger = get_logger("elections.abuse_counter")

    def _store_error(self, operation: str, error: Exception, **fields):
        self.logger.error("Error querying submission store", operation=operation, error=str(error), **fields)
        if self.metrics:
            self.metrics.record_store_error(operation, "soft")

    async def has_prior_submission(self, name: Optional[str]) -> bool:
        """Whether this identity has ever submitted."""
        normalized = normalize_identity(name)
        if not normalized:
            return False

        try:
            return await self.store.submission_exists(normalized)
        except Exception as e:
            self._store_error("submission_exists", e)
            return False

    def window_start(self, window_hours: Optional[int] = None) -> datetime:
        hours = self.policy.window_hours if window_hours is None else window_hours
        return self.clock() - timedelta(hours=hours)

    async def count_by_dimension(self, dimension: AttemptDimension, value: Optional[str],
                                 window_hours: Optional[int] = None) -> int:
        """Attempts recorded for ``value`` within the trailing window."""
        if not value or value == UNKNOWN:
            return 0

        since = self.window_start(window_hours)
        try:
            return await self.store.count_attempts(dimension, value, since)
        except Exception as e:
            self._store_error("count_attempts", e, dimension=dimension.value)
            return 0

    async def count_ip(self, ip_address: Optional[str], window_hours: Optional[int] = None) -> int:
        return await self.count_by_dimension(AttemptDimension.IP, ip_address, window_hours)

    async def count_device(self, device_fingerprint: Optional[str], window_hours: Optional[int] = None) -> int:
        return await self.count_by_dimension(AttemptDimension.DEVICE, device_fingerprint, window_hours)
