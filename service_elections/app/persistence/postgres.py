"""
PostgreSQL persistence layer for the Elections service.
"""

import uuid
from datetime import datetime
from typing import List, Optional

import asyncpg

from shared.logging import get_logger
from shared.errors import DuplicateSubmissionError, InfrastructureError
from ..models import (
    AttemptDimension, AttemptRecord, SubmissionCreate, SubmissionRecord, normalize_identity
)
from .base import ElectionStore

_DIMENSION_COLUMNS = {
    AttemptDimension.IP: "ip_address",
    AttemptDimension.DEVICE: "device_fingerprint",
}


class PostgreSQLStore(ElectionStore):
    """PostgreSQL-backed election store."""

    def __init__(self, dsn: str, min_size: int = 2, max_size: int = 10, command_timeout: float = 10.0):
        self.dsn = dsn
        self.min_size = min_size
        self.max_size = max_size
        self.command_timeout = command_timeout
        self.logger = get_logger("elections.persistence.postgres")
        self.pool: Optional[asyncpg.Pool] = None

    async def start(self):
        """Start the persistence layer."""
        try:
            self.pool = await asyncpg.create_pool(
                self.dsn,
                min_size=self.min_size,
                max_size=self.max_size,
                command_timeout=self.command_timeout
            )

            await self._create_tables()

            self.logger.info("PostgreSQL store started")

        except Exception as e:
            self.logger.error("Failed to start PostgreSQL store", error=str(e))
            raise InfrastructureError("postgres_start", str(e))

    async def stop(self):
        """Stop the persistence layer."""
        if self.pool:
            await self.pool.close()
            self.pool = None
            self.logger.info("PostgreSQL store stopped")

    def _require_pool(self) -> asyncpg.Pool:
        if self.pool is None:
            raise InfrastructureError("postgres", "store not started")
        return self.pool

    async def _create_tables(self):
        """Create database tables."""
        async with self.pool.acquire() as conn:
            # name_normalized holds normalize_identity(name); writers must fill it.
            await conn.execute("""
                CREATE TABLE IF NOT EXISTS player_whitelist (
                    id BIGSERIAL PRIMARY KEY,
                    name VARCHAR(255) NOT NULL,
                    name_normalized VARCHAR(255) NOT NULL UNIQUE,
                    is_active BOOLEAN NOT NULL DEFAULT TRUE,
                    created_at TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT NOW()
                );
            """)

            await conn.execute("""
                CREATE TABLE IF NOT EXISTS elections (
                    id UUID PRIMARY KEY,
                    identity_name VARCHAR(255) NOT NULL,
                    name_normalized VARCHAR(255) NOT NULL,
                    party_name VARCHAR(255) NOT NULL,
                    flag_url TEXT NOT NULL,
                    comments TEXT,
                    attachment_url TEXT,
                    ip_address VARCHAR(64),
                    device_fingerprint VARCHAR(255),
                    user_agent TEXT,
                    created_at TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT NOW()
                );
            """)
            await conn.execute("""
                CREATE UNIQUE INDEX IF NOT EXISTS uq_elections_name_normalized
                ON elections(name_normalized);
            """)

            await conn.execute("""
                CREATE TABLE IF NOT EXISTS election_attempts (
                    id BIGSERIAL PRIMARY KEY,
                    identity_name VARCHAR(255) NOT NULL,
                    ip_address VARCHAR(64) NOT NULL,
                    device_fingerprint VARCHAR(255) NOT NULL DEFAULT '',
                    user_agent TEXT NOT NULL,
                    election_id UUID REFERENCES elections(id),
                    status VARCHAR(16) NOT NULL CHECK (status IN ('success', 'failed')),
                    submitted_at TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT NOW()
                );
            """)
            await conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_attempts_ip ON election_attempts(ip_address, submitted_at);
            """)
            await conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_attempts_device ON election_attempts(device_fingerprint, submitted_at);
            """)

    async def is_whitelisted(self, normalized_name: str) -> bool:
        async with self._require_pool().acquire() as conn:
            found = await conn.fetchval("""
                SELECT 1 FROM player_whitelist
                WHERE name_normalized = $1 AND is_active = TRUE
                LIMIT 1
            """, normalized_name)
            return found is not None

    async def list_whitelisted(self) -> List[str]:
        async with self._require_pool().acquire() as conn:
            rows = await conn.fetch("""
                SELECT name FROM player_whitelist
                WHERE is_active = TRUE
                ORDER BY name ASC
            """)
            return [row['name'] for row in rows]

    async def add_whitelisted(self, name: str, active: bool = True) -> None:
        """Insert or update a whitelist entry."""
        async with self._require_pool().acquire() as conn:
            await conn.execute("""
                INSERT INTO player_whitelist (name, name_normalized, is_active)
                VALUES ($1, $2, $3)
                ON CONFLICT (name_normalized) DO UPDATE SET
                    name = EXCLUDED.name,
                    is_active = EXCLUDED.is_active
            """, name.strip(), normalize_identity(name), active)

    async def submission_exists(self, normalized_name: str) -> bool:
        async with self._require_pool().acquire() as conn:
            found = await conn.fetchval("""
                SELECT 1 FROM elections WHERE name_normalized = $1 LIMIT 1
            """, normalized_name)
            return found is not None

    async def count_attempts(self, dimension: AttemptDimension, value: str, since: datetime) -> int:
        column = _DIMENSION_COLUMNS[dimension]
        async with self._require_pool().acquire() as conn:
            count = await conn.fetchval(
                f"SELECT COUNT(*) FROM election_attempts WHERE {column} = $1 AND submitted_at >= $2",
                value, since
            )
            return count or 0

    async def insert_attempt(self, attempt: AttemptRecord) -> None:
        related_id = uuid.UUID(attempt.related_submission_id) if attempt.related_submission_id else None
        async with self._require_pool().acquire() as conn:
            await conn.execute("""
                INSERT INTO election_attempts (
                    identity_name, ip_address, device_fingerprint, user_agent,
                    election_id, status, submitted_at
                ) VALUES ($1, $2, $3, $4, $5, $6, $7)
            """,
                attempt.identity_name, attempt.ip_address, attempt.device_fingerprint,
                attempt.user_agent, related_id, attempt.status.value, attempt.timestamp
            )

    async def insert_submission(self, submission: SubmissionCreate) -> SubmissionRecord:
        submission_id = uuid.uuid4()
        try:
            async with self._require_pool().acquire() as conn:
                row = await conn.fetchrow("""
                    INSERT INTO elections (
                        id, identity_name, name_normalized, party_name, flag_url, comments,
                        attachment_url, ip_address, device_fingerprint, user_agent
                    ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10)
                    RETURNING *
                """,
                    submission_id, submission.identity_name, submission.normalized_name,
                    submission.party_name, submission.flag_url, submission.comments,
                    submission.attachment_url, submission.ip_address,
                    submission.device_fingerprint, submission.user_agent
                )
        except asyncpg.UniqueViolationError:
            self.logger.warning("Duplicate submission rejected by unique index",
                                identity_name=submission.identity_name)
            raise DuplicateSubmissionError()
        except InfrastructureError:
            raise
        except Exception as e:
            self.logger.error("Error inserting submission", error=str(e))
            raise InfrastructureError("insert_submission", str(e))

        self.logger.info("Submission saved", submission_id=str(submission_id))
        return self._row_to_submission(row)

    def _row_to_submission(self, row) -> SubmissionRecord:
        """Convert database row to SubmissionRecord."""
        return SubmissionRecord(
            id=str(row['id']),
            identity_name=row['identity_name'],
            party_name=row['party_name'],
            flag_url=row['flag_url'],
            comments=row['comments'],
            attachment_url=row['attachment_url'],
            ip_address=row['ip_address'],
            device_fingerprint=row['device_fingerprint'],
            user_agent=row['user_agent'],
            created_at=row['created_at']
        )

    async def health_check(self) -> bool:
        """Check database health."""
        try:
            async with self._require_pool().acquire() as conn:
                await conn.fetchval("SELECT 1")
                return True
        except Exception:
            return False
