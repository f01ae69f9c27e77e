"""
Storage persistence for Postgres and an in-memory test implementation.
"""

from __future__ import annotations

import copy
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Protocol

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    Text,
    create_engine,
    func,
    make_url,
    select,
    text,
)
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.schema import CreateTable

JsonDocument = Dict[str, Any]

UPSERT_DIALECTS = {"postgresql": postgresql.insert, "sqlite": sqlite.insert}


class StorageDb(Protocol):
    """Interface for key/value document storage."""

    def ensure_schema(self) -> None:
        ...

    def get_record(self, key: str) -> Optional["StorageRecord"]:
        ...

    def get_value(self, key: str) -> Optional[JsonDocument]:
        ...

    def upsert_value(self, key: str, value: JsonDocument) -> None:
        ...


@dataclass
class StorageRecord:
    key: str
    value: JsonDocument
    updated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def as_dict(self) -> dict:
        return {
            "key": self.key,
            "value": self.value,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


class InMemoryStorageDb:
    """Simple in-memory storage for development and tests."""

    def __init__(self):
        self.records: Dict[str, StorageRecord] = {}
        self.schema_checks = 0

    def ensure_schema(self) -> None:
        self.schema_checks += 1

    def get_record(self, key: str) -> Optional[StorageRecord]:
        record = self.records.get(key)
        if record is None:
            return None
        return StorageRecord(
            key=record.key,
            value=copy.deepcopy(record.value),
            updated_at=record.updated_at,
        )

    def get_value(self, key: str) -> Optional[JsonDocument]:
        record = self.get_record(key)
        return record.value if record else None

    def upsert_value(self, key: str, value: JsonDocument) -> None:
        self.records[key] = StorageRecord(key=key, value=copy.deepcopy(value))

    def reset(self) -> None:
        """Clear all stored data (useful in tests)."""
        self.records.clear()
        self.schema_checks = 0


class PostgresStorageDb:
    """
    SQLAlchemy-backed implementation. Accepts any SQLAlchemy URL (e.g., Postgres or SQLite for tests).

    The table is not created on construction; call ensure_schema() first.
    """

    def __init__(self, database_url: str):
        if not database_url:
            raise ValueError("A database URL is required for PostgresStorageDb")
        backend = make_url(database_url).get_backend_name()
        if backend not in UPSERT_DIALECTS:
            raise ValueError(f"Unsupported database backend for upserts: {backend}")
        self._insert = UPSERT_DIALECTS[backend]
        self.engine = create_engine(
            database_url,
            future=True,
            pool_pre_ping=True,
            pool_recycle=1800,
        )
        self.Session = sessionmaker(
            bind=self.engine, class_=Session, expire_on_commit=False, future=True
        )

    def ensure_schema(self) -> None:
        ddl = CreateTable(StorageRow.__table__, if_not_exists=True)
        with self.engine.begin() as conn:
            conn.execute(ddl)

    def get_record(self, key: str) -> Optional[StorageRecord]:
        with self.Session() as session:
            stmt = select(StorageRow).where(StorageRow.key == key).limit(1)
            row = session.execute(stmt).scalar_one_or_none()
            if not row:
                return None
            return StorageRecord(
                key=row.key, value=row.value or {}, updated_at=row.updated_at
            )

    def get_value(self, key: str) -> Optional[JsonDocument]:
        with self.Session() as session:
            stmt = select(StorageRow.value).where(StorageRow.key == key).limit(1)
            return session.execute(stmt).scalar_one_or_none()

    def upsert_value(self, key: str, value: JsonDocument) -> None:
        stmt = self._insert(StorageRow).values(key=key, value=value, updated_at=func.now())
        stmt = stmt.on_conflict_do_update(
            index_elements=["key"],
            set_={"value": stmt.excluded["value"], "updated_at": func.now()},
        )
        with self.Session() as session:
            session.execute(stmt)
            session.commit()


Base = declarative_base()


class StorageRow(Base):
    __tablename__ = "app_storage"

    key = Column(Text, primary_key=True)
    value = Column(
        JSON().with_variant(JSONB(), "postgresql"),
        nullable=False,
        server_default=text("'{}'"),
    )
    updated_at = Column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )


def ping_storage(db: StorageDb, ping_key: str) -> bool:
    """Write a fresh stamp and confirm the same stamp reads back."""
    stamp = str(int(time.time() * 1000))
    db.upsert_value(ping_key, {"stamp": stamp})
    stored = db.get_value(ping_key) or {}
    return isinstance(stored, dict) and stored.get("stamp") == stamp
