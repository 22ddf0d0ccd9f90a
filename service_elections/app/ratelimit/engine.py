"""
Decision engine for election submission quotas.
"""

from typing import Optional

from shared.logging import get_logger
from ..models import Decision, RateLimitPolicy, ReasonCode
from .counter import AbuseCounter


class DecisionEngine:
    """Combines the abuse counter checks into one verdict.

    Checks run in a fixed order and the first failure wins:
    prior submission, then per-address quota, then per-device quota.
    """

    def __init__(self, counter: AbuseCounter, policy: RateLimitPolicy):
        self.counter = counter
        self.policy = policy
        self.logger = get_logger("elections.decision_engine")

    async def evaluate(self, name: str, ip_address: str, device_fingerprint: Optional[str]) -> Decision:
        if await self.counter.has_prior_submission(name):
            return Decision.deny(
                ReasonCode.DUPLICATE_IDENTITY,
                "This identity has already submitted an election entry"
            )

        ip_count = await self.counter.count_ip(ip_address)
        if ip_count >= self.policy.max_per_ip:
            self.logger.warning(
                "Address submission limit reached",
                ip_address=ip_address,
                current_count=ip_count,
                limit=self.policy.max_per_ip
            )
            return Decision.deny(
                ReasonCode.IP_LIMIT,
                f"Submission limit reached for this network address "
                f"(maximum {self.policy.max_per_ip} per {self.policy.window_hours} hours)"
            )

        device_count = await self.counter.count_device(device_fingerprint)
        if device_count >= self.policy.max_per_device:
            self.logger.warning(
                "Device submission limit reached",
                current_count=device_count,
                limit=self.policy.max_per_device
            )
            return Decision.deny(
                ReasonCode.DEVICE_LIMIT,
                f"Submission limit reached for this device "
                f"(maximum {self.policy.max_per_device} per {self.policy.window_hours} hours)"
            )

        return Decision.allow()
