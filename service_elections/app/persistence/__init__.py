"""
Storage backends for the Elections service.
"""

from .base import ElectionStore
from .memory import InMemoryStore
from .postgres import PostgreSQLStore


def create_store(config) -> ElectionStore:
    """Build the backing store selected by configuration."""
    if config.store_backend == "memory":
        return InMemoryStore()
    return PostgreSQLStore(
        config.postgres_dsn,
        min_size=config.postgres_min_pool,
        max_size=config.postgres_max_pool,
        command_timeout=config.postgres_command_timeout,
    )


__all__ = [
    "ElectionStore",
    "InMemoryStore",
    "PostgreSQLStore",
    "create_store",
]
