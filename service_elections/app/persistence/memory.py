"""
In-process election store for local runs and tests.
"""

import asyncio
import uuid
from datetime import datetime
from typing import Dict, Iterable, List, Tuple

from shared.logging import get_logger
from shared.errors import DuplicateSubmissionError
from ..models import (
    AttemptDimension, AttemptRecord, SubmissionCreate, SubmissionRecord, normalize_identity
)
from .base import ElectionStore


class InMemoryStore(ElectionStore):
    """Election store kept in process memory.

    Submissions are keyed by normalized name, so the uniqueness rule
    matches the PostgreSQL unique index.
    """

    def __init__(self, whitelist: Iterable[str] = ()):
        self.logger = get_logger("elections.persistence.memory")
        self.whitelist: Dict[str, Tuple[str, bool]] = {}
        self.submissions: Dict[str, SubmissionRecord] = {}
        self.attempts: List[AttemptRecord] = []
        self._lock = asyncio.Lock()
        for name in whitelist:
            self._put_whitelisted(name, True)

    def _put_whitelisted(self, name: str, active: bool):
        key = normalize_identity(name)
        if key:
            self.whitelist[key] = (name.strip(), active)

    async def add_whitelisted(self, name: str, active: bool = True) -> None:
        self._put_whitelisted(name, active)

    async def is_whitelisted(self, normalized_name: str) -> bool:
        entry = self.whitelist.get(normalized_name)
        return entry is not None and entry[1]

    async def list_whitelisted(self) -> List[str]:
        return sorted(name for name, active in self.whitelist.values() if active)

    async def submission_exists(self, normalized_name: str) -> bool:
        return normalized_name in self.submissions

    async def count_attempts(self, dimension: AttemptDimension, value: str, since: datetime) -> int:
        if dimension is AttemptDimension.IP:
            return sum(1 for a in self.attempts if a.ip_address == value and a.timestamp >= since)
        return sum(1 for a in self.attempts if a.device_fingerprint == value and a.timestamp >= since)

    async def insert_attempt(self, attempt: AttemptRecord) -> None:
        self.attempts.append(attempt)

    async def insert_submission(self, submission: SubmissionCreate) -> SubmissionRecord:
        async with self._lock:
            key = submission.normalized_name
            if key in self.submissions:
                raise DuplicateSubmissionError()

            record = SubmissionRecord(
                id=str(uuid.uuid4()),
                identity_name=submission.identity_name,
                party_name=submission.party_name,
                flag_url=submission.flag_url,
                comments=submission.comments,
                attachment_url=submission.attachment_url,
                ip_address=submission.ip_address,
                device_fingerprint=submission.device_fingerprint,
                user_agent=submission.user_agent,
            )
            self.submissions[key] = record

        self.logger.info("Submission saved", submission_id=record.id)
        return record

    async def health_check(self) -> bool:
        return True
