"""
SQLite-backed store shared by the autonomous runner and the operator scripts.

Every operation reads the database file directly, so several processes (the
long-running cycle loop, the proposal review CLI, profile setup) can open the
same file without overwriting each other's writes. ``transaction()`` takes
SQLite's write lock up front (``BEGIN IMMEDIATE``), which makes an approval
atomic across processes as well as threads.
"""

import json
import logging
import sqlite3
from contextlib import closing, contextmanager
from pathlib import Path
from typing import Any, Iterator, List, Optional, Type, TypeVar, Union

from core.errors import EntityNotFoundError
from storage.base import Predicate, Repository, matches
from storage.memory import TABLES

logger = logging.getLogger(__name__)

T = TypeVar("T")

SCHEMA = """
CREATE TABLE IF NOT EXISTS entities (
    seq INTEGER PRIMARY KEY AUTOINCREMENT,
    kind TEXT NOT NULL,
    id TEXT NOT NULL,
    data TEXT NOT NULL,
    UNIQUE (kind, id)
)
"""


def _kind(entity_type: type) -> str:
    try:
        return TABLES[entity_type]
    except KeyError:
        raise TypeError(f"Unsupported entity type: {entity_type.__name__}") from None


class SqliteStore(Repository):
    """Repository persisted in one SQLite file, one JSON document per entity."""

    def __init__(self, path: Union[str, Path], timeout: float = 30.0):
        """Initialize the store, creating the file and schema if needed.

        Args:
            path: Database file
            timeout: Seconds to wait for another process's write lock
        """
        self.path = Path(path)
        self.timeout = timeout
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with closing(self._connect()) as conn:
            conn.execute(SCHEMA)
        logger.info(f"[SqliteStore] Using {self.path}")

    def _connect(self) -> sqlite3.Connection:
        # Autocommit mode; transactions are opened explicitly.
        return sqlite3.connect(str(self.path), timeout=self.timeout, isolation_level=None)

    @contextmanager
    def transaction(self) -> Iterator["SqliteTransaction"]:
        """Hold the database write lock and commit on a clean exit."""
        with closing(self._connect()) as conn:
            conn.execute("BEGIN IMMEDIATE")
            try:
                yield SqliteTransaction(conn)
            except BaseException:
                conn.execute("ROLLBACK")
                raise
            conn.execute("COMMIT")

    def add(self, entity: T) -> T:
        with self.transaction() as tx:
            return tx.add(entity)

    def update(self, entity: T) -> T:
        with self.transaction() as tx:
            return tx.update(entity)

    def get(self, entity_type: Type[T], entity_id: str) -> T:
        with closing(self._connect()) as conn:
            return SqliteTransaction(conn).get(entity_type, entity_id)

    def find(
        self, entity_type: Type[T], predicate: Optional[Predicate] = None, **filters: Any
    ) -> List[T]:
        with closing(self._connect()) as conn:
            return SqliteTransaction(conn).find(entity_type, predicate, **filters)


class SqliteTransaction(Repository):
    """Repository view bound to one open connection."""

    def __init__(self, conn: sqlite3.Connection):
        self._conn = conn

    def add(self, entity: T) -> T:
        try:
            self._conn.execute(
                "INSERT INTO entities (kind, id, data) VALUES (?, ?, ?)",
                (_kind(type(entity)), entity.id, json.dumps(entity.to_dict())),
            )
        except sqlite3.IntegrityError:
            raise ValueError(f"{type(entity).__name__} {entity.id} already exists") from None
        return entity

    def get(self, entity_type: Type[T], entity_id: str) -> T:
        row = self._conn.execute(
            "SELECT data FROM entities WHERE kind = ? AND id = ?",
            (_kind(entity_type), entity_id),
        ).fetchone()
        if row is None:
            raise EntityNotFoundError(entity_type.__name__, entity_id)
        return entity_type.from_dict(json.loads(row[0]))

    def update(self, entity: T) -> T:
        cursor = self._conn.execute(
            "UPDATE entities SET data = ? WHERE kind = ? AND id = ?",
            (json.dumps(entity.to_dict()), _kind(type(entity)), entity.id),
        )
        if cursor.rowcount == 0:
            raise EntityNotFoundError(type(entity).__name__, entity.id)
        return entity

    def find(
        self, entity_type: Type[T], predicate: Optional[Predicate] = None, **filters: Any
    ) -> List[T]:
        rows = self._conn.execute(
            "SELECT data FROM entities WHERE kind = ? ORDER BY seq", (_kind(entity_type),)
        ).fetchall()
        entities = [entity_type.from_dict(json.loads(data)) for (data,) in rows]
        return [e for e in entities if matches(e, predicate, filters)]

    @contextmanager
    def transaction(self) -> Iterator["SqliteTransaction"]:
        # Nested transactions join the outer one.
        yield self
