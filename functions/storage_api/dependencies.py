"""
Dependency wiring for the FastAPI app.
"""

from __future__ import annotations

import logging

from storage_api.config import get_database_config, get_settings
from storage_api.db import InMemoryStorageDb, PostgresStorageDb, StorageDb

logger = logging.getLogger(__name__)

_storage_db: StorageDb | None = None


def get_storage_db() -> StorageDb | None:
    """
    Return a singleton storage client bound to one connection pool.

    None means no connection URL could be resolved from the environment.
    """
    global _storage_db
    if _storage_db is not None:
        return _storage_db

    settings = get_settings()
    config = get_database_config()
    if settings.use_in_memory_backend:
        logger.info("Using in-memory storage backend")
        _storage_db = InMemoryStorageDb()
    elif config.connection_url:
        _storage_db = PostgresStorageDb(config.connection_url)
    return _storage_db


def reset_storage_db() -> None:
    global _storage_db
    _storage_db = None
