"""
Whitelist eligibility checks.
"""

from typing import List, Optional

from shared.logging import get_logger
from shared.metrics import MetricsCollector
from ..models import normalize_identity
from ..persistence.base import ElectionStore


class EligibilityValidator:
    """Checks claimed identities against the active whitelist.

    Store failures deny: an unverified identity is never admitted
    because the whitelist could not be read.
    """

    def __init__(self, store: ElectionStore, metrics: Optional[MetricsCollector] = None):
        self.store = store
        self.metrics = metrics
        self.logger = get_logger("elections.eligibility")

    async def is_eligible(self, name: Optional[str]) -> bool:
        normalized = normalize_identity(name)
        if not normalized:
            return False

        try:
            return await self.store.is_whitelisted(normalized)
        except Exception as e:
            self.logger.error("Error checking whitelist", error=str(e))
            if self.metrics:
                self.metrics.record_store_error("is_whitelisted", "closed")
            return False

    async def list_whitelisted(self) -> List[str]:
        """Active whitelisted names, ascending."""
        try:
            return await self.store.list_whitelisted()
        except Exception as e:
            self.logger.error("Error listing whitelist", error=str(e))
            if self.metrics:
                self.metrics.record_store_error("list_whitelisted", "soft")
            return []
