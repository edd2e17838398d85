"""SQLite visitor store built on SQLAlchemy Core.

Notes:
- The table is declared STRICT, so SQLite enforces column types (SQLite >= 3.37).
- AUTOINCREMENT keeps ids increasing even after the newest row is deleted.
- Nick uniqueness is a table constraint. Duplicates are recognised from the
  driver's extended error code, not by querying first.
- File databases run in WAL mode with synchronous=NORMAL.
"""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Iterator

from sqlalchemy import (
    Column,
    Integer,
    MetaData,
    Table,
    Text,
    create_engine,
    event,
    func,
    select,
    text,
)
from sqlalchemy.engine import Engine
from sqlalchemy.exc import DBAPIError, IntegrityError, SQLAlchemyError
from sqlalchemy.pool import StaticPool

from guestbook.adapters.storage.base import (
    AbstractVisitorStore,
    PublicVisitorRecord,
    VisitorRecord,
)
from guestbook.core.errors import DuplicateNickError, StoreError

logger = logging.getLogger(__name__)

MEMORY_PATH = ":memory:"

# PostgreSQL unique_violation, for drivers that expose SQLSTATE as pgcode
_PG_UNIQUE_VIOLATION = "23505"

# SQLite INTEGER range; ids outside it cannot be bound, let alone stored
_MIN_ROW_ID = -(2**63)
_MAX_ROW_ID = 2**63 - 1

metadata = MetaData()

visitor_table = Table(
    "visitor",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("created_at", Text, nullable=False),
    Column("ip", Text, nullable=False),
    Column("nick", Text, nullable=False, unique=True),
    Column("group", Text),
    Column("email", Text),
    Column("extra", Text),
    sqlite_autoincrement=True,
)

# Written by hand because the STRICT table option has no portable DDL form.
_CREATE_VISITOR_TABLE = text(
    """
    CREATE TABLE IF NOT EXISTS visitor (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        created_at TEXT NOT NULL,
        ip TEXT NOT NULL,
        nick TEXT NOT NULL UNIQUE,
        "group" TEXT,
        email TEXT,
        extra TEXT
    ) STRICT
    """
)


def _format_timestamp(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


def _parse_timestamp(value: str) -> datetime:
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _driver_message(exc: SQLAlchemyError) -> str:
    """Return the driver's own error text, without SQL or bound parameters."""
    if isinstance(exc, DBAPIError) and exc.orig is not None:
        return str(exc.orig)
    return str(exc)


def is_unique_violation(exc: IntegrityError) -> bool:
    """Tell whether an IntegrityError comes from a UNIQUE constraint.

    Args:
        exc: Error raised by SQLAlchemy.

    Returns:
        True for unique-constraint violations, False for NOT NULL, CHECK, etc.
    """
    orig = exc.orig
    sqlite_code = getattr(orig, "sqlite_errorcode", None)
    if sqlite_code is not None:
        return sqlite_code == sqlite3.SQLITE_CONSTRAINT_UNIQUE
    return getattr(orig, "pgcode", None) == _PG_UNIQUE_VIOLATION


def _build_engine(path: str, *, echo: bool = False) -> Engine:
    """Create the SQLAlchemy engine for a database file or ':memory:'."""
    connect_args: dict[str, Any] = {"check_same_thread": False}

    if path == MEMORY_PATH:
        # One shared connection, otherwise every checkout sees an empty database
        return create_engine(
            "sqlite://",
            connect_args=connect_args,
            poolclass=StaticPool,
            echo=echo,
        )

    engine = create_engine(f"sqlite:///{path}", connect_args=connect_args, echo=echo)

    @event.listens_for(engine, "connect")
    def _set_sqlite_pragmas(dbapi_connection, connection_record) -> None:  # noqa: ARG001
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA synchronous=NORMAL")
        cursor.close()

    return engine


class SQLiteVisitorStore(AbstractVisitorStore):
    """Visitor store backed by a single SQLite database.

    The SQLAlchemy connection pool is safe to share between request threads;
    SQLite serializes writers, so concurrent inserts of the same nick leave
    exactly one row.
    """

    def __init__(self, path: str = "data.db", *, echo: bool = False) -> None:
        """Initialize the store.

        Args:
            path: Database file path, or ':memory:'.
            echo: Log every SQL statement.
        """
        self._path = path
        self._engine = _build_engine(path, echo=echo)

    def __repr__(self) -> str:  # pragma: no cover - representation only
        return f"SQLiteVisitorStore(path={self._path!r})"

    @property
    def engine(self) -> Engine:
        return self._engine

    @contextmanager
    def _translate_errors(self, operation: str) -> Iterator[None]:
        try:
            yield
        except IntegrityError as exc:
            message = _driver_message(exc)
            if is_unique_violation(exc):
                raise DuplicateNickError(code="duplicate_nick", message=message) from exc
            logger.error(
                "store.integrity_error",
                extra={"operation": operation, "error_msg": message},
            )
            raise StoreError(code="store_error", message=message) from exc
        except SQLAlchemyError as exc:
            message = _driver_message(exc)
            logger.error(
                "store.error",
                extra={
                    "operation": operation,
                    "error_type": type(exc).__name__,
                    "error_msg": message,
                },
            )
            raise StoreError(code="store_error", message=message) from exc

    def initialize(self) -> None:
        with self._translate_errors("initialize"), self._engine.begin() as conn:
            conn.execute(_CREATE_VISITOR_TABLE)
        logger.info("store.initialized", extra={"db_path": self._path})

    def insert(
        self,
        *,
        created_at: datetime,
        ip: str,
        nick: str,
        group: str | None = None,
        email: str | None = None,
        extra: str | None = None,
    ) -> int:
        stmt = visitor_table.insert().values(
            created_at=_format_timestamp(created_at),
            ip=ip,
            nick=nick,
            group=group,
            email=email,
            extra=extra,
        )
        with self._translate_errors("insert"), self._engine.begin() as conn:
            result = conn.execute(stmt)
            return int(result.inserted_primary_key[0])

    def list_all(self) -> list[VisitorRecord]:
        stmt = select(visitor_table).order_by(visitor_table.c.id)
        with self._translate_errors("list_all"), self._engine.connect() as conn:
            rows = conn.execute(stmt).mappings().all()

        return [
            VisitorRecord(
                id=row["id"],
                created_at=_parse_timestamp(row["created_at"]),
                ip=row["ip"],
                nick=row["nick"],
                group=row["group"],
                email=row["email"],
                extra=row["extra"],
            )
            for row in rows
        ]

    def list_public(self) -> list[PublicVisitorRecord]:
        stmt = select(
            visitor_table.c.id,
            visitor_table.c.nick,
            visitor_table.c["group"],
        )
        with self._translate_errors("list_public"), self._engine.connect() as conn:
            rows = conn.execute(stmt).mappings().all()

        return [
            PublicVisitorRecord(id=row["id"], nick=row["nick"], group=row["group"])
            for row in rows
        ]

    def delete_by_id(self, visitor_id: int) -> bool:
        if not _MIN_ROW_ID <= visitor_id <= _MAX_ROW_ID:
            return False
        stmt = visitor_table.delete().where(visitor_table.c.id == visitor_id)
        with self._translate_errors("delete_by_id"), self._engine.begin() as conn:
            result = conn.execute(stmt)
            return result.rowcount > 0

    def count(self) -> int:
        stmt = select(func.count()).select_from(visitor_table)
        with self._translate_errors("count"), self._engine.connect() as conn:
            return int(conn.execute(stmt).scalar_one())

    def close(self) -> None:
        self._engine.dispose()
