"""
Backing store contract for the Elections service.

Names passed to lookups are already normalized with
``normalize_identity``. Implementations raise on infrastructure failure;
the callers decide whether a failure denies or permits.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import List

from ..models import AttemptDimension, AttemptRecord, SubmissionCreate, SubmissionRecord


class ElectionStore(ABC):
    """Whitelist, submission and attempt storage."""

    async def start(self):
        """Open connections and prepare the schema."""

    async def stop(self):
        """Release connections."""

    @abstractmethod
    async def is_whitelisted(self, normalized_name: str) -> bool:
        ...

    @abstractmethod
    async def list_whitelisted(self) -> List[str]:
        ...

    @abstractmethod
    async def add_whitelisted(self, name: str, active: bool = True) -> None:
        """Insert or update a whitelist entry under its normalized name."""

    @abstractmethod
    async def submission_exists(self, normalized_name: str) -> bool:
        ...

    @abstractmethod
    async def count_attempts(self, dimension: AttemptDimension, value: str, since: datetime) -> int:
        ...

    @abstractmethod
    async def insert_attempt(self, attempt: AttemptRecord) -> None:
        ...

    @abstractmethod
    async def insert_submission(self, submission: SubmissionCreate) -> SubmissionRecord:
        """Persist a submission.

        Raises DuplicateSubmissionError when the normalized name already
        has a submission.
        """

    @abstractmethod
    async def health_check(self) -> bool:
        ...
