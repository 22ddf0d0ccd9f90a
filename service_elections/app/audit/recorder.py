"""
Attempt audit recording.

Every attempt that reaches the protected write leaves one append-only
row. Writes run as background tasks; failures go to an error-reporting
callback and never reach the request that caused them.
"""

import asyncio
from datetime import datetime
from typing import Callable, Optional, Set

from shared.logging import get_logger
from shared.metrics import MetricsCollector
from ..models import UNKNOWN, AttemptRecord, utcnow
from ..persistence.base import ElectionStore

ErrorReporter = Callable[[BaseException, AttemptRecord], None]


class AttemptRecorder:
    """Best-effort writer for attempt audit rows."""

    def __init__(self, store: ElectionStore, metrics: Optional[MetricsCollector] = None,
                 error_reporter: Optional[ErrorReporter] = None,
                 clock: Callable[[], datetime] = utcnow):
        self.store = store
        self.clock = clock
        self.metrics = metrics
        self.logger = get_logger("elections.attempt_recorder")
        self.error_reporter = error_reporter or self._log_failure
        self._pending: Set[asyncio.Task] = set()

    def _log_failure(self, error: BaseException, attempt: AttemptRecord):
        self.logger.error(
            "Error recording submission attempt",
            error=str(error),
            status=attempt.status.value,
            identity_name=attempt.identity_name
        )

    def _report(self, error: BaseException, attempt: AttemptRecord):
        if self.metrics:
            self.metrics.record_attempt(attempt.status.value, "error")
        try:
            self.error_reporter(error, attempt)
        except Exception as reporter_error:
            self.logger.error("Attempt error reporter failed", error=str(reporter_error))

    def build_attempt(self, name: str, ip_address: Optional[str], device_fingerprint: Optional[str],
                      user_agent: Optional[str], related_submission_id: Optional[str] = None) -> AttemptRecord:
        return AttemptRecord(
            identity_name=(name or "").strip(),
            ip_address=ip_address or UNKNOWN,
            device_fingerprint=device_fingerprint or "",
            user_agent=user_agent or UNKNOWN,
            related_submission_id=related_submission_id or None,
            timestamp=self.clock(),
        )

    async def record_attempt(self, name: str, ip_address: Optional[str], device_fingerprint: Optional[str],
                             user_agent: Optional[str], related_submission_id: Optional[str] = None) -> None:
        """Write one attempt row. Never raises."""
        attempt = self.build_attempt(name, ip_address, device_fingerprint, user_agent, related_submission_id)
        await self._write(attempt)

    async def _write(self, attempt: AttemptRecord) -> None:
        try:
            await self.store.insert_attempt(attempt)
        except Exception as e:
            self._report(e, attempt)
            return

        if self.metrics:
            self.metrics.record_attempt(attempt.status.value, "ok")

    def schedule_attempt(self, name: str, ip_address: Optional[str], device_fingerprint: Optional[str],
                         user_agent: Optional[str], related_submission_id: Optional[str] = None) -> asyncio.Task:
        """Write one attempt row in the background."""
        attempt = self.build_attempt(name, ip_address, device_fingerprint, user_agent, related_submission_id)
        task = asyncio.create_task(self._write(attempt))
        self._pending.add(task)

        def _done(finished: asyncio.Task):
            self._pending.discard(finished)
            if finished.cancelled():
                self._report(asyncio.CancelledError("attempt write cancelled"), attempt)
                return
            error = finished.exception()
            if error is not None:
                self._report(error, attempt)

        task.add_done_callback(_done)
        return task

    @property
    def pending(self) -> int:
        return len(self._pending)

    async def drain(self) -> None:
        """Wait for all in-flight attempt writes."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
