"""
Thread-safe in-memory repository.
"""

import copy
import logging
import threading
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, Tuple, Type, TypeVar

from core.errors import EntityNotFoundError
from models import (
    AgentInstruction,
    Application,
    Communication,
    Interview,
    Job,
    JobCriteria,
    ProposedInstructionChange,
    Resume,
    UserProfile,
)
from storage.base import Predicate, Repository, matches

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Entity type -> table name (also the entity kind stored by SqliteStore)
TABLES: Dict[type, str] = {
    UserProfile: "profiles",
    Resume: "resumes",
    JobCriteria: "criteria",
    Job: "jobs",
    Application: "applications",
    Communication: "communications",
    Interview: "interviews",
    AgentInstruction: "instructions",
    ProposedInstructionChange: "proposed_changes",
}


class InMemoryStore(Repository):
    """Dictionary-backed store guarded by a re-entrant lock."""

    def __init__(self):
        self._lock = threading.RLock()
        self._tables: Dict[type, Dict[str, Any]] = {t: {} for t in TABLES}

    def _table(self, entity_type: type) -> Dict[str, Any]:
        try:
            return self._tables[entity_type]
        except KeyError:
            raise TypeError(f"Unsupported entity type: {entity_type.__name__}") from None

    def add(self, entity: T) -> T:
        with self._lock:
            table = self._table(type(entity))
            if entity.id in table:
                raise ValueError(f"{type(entity).__name__} {entity.id} already exists")
            table[entity.id] = copy.deepcopy(entity)
        return entity

    def get(self, entity_type: Type[T], entity_id: str) -> T:
        with self._lock:
            entity = self._table(entity_type).get(entity_id)
            if entity is None:
                raise EntityNotFoundError(entity_type.__name__, entity_id)
            return copy.deepcopy(entity)

    def update(self, entity: T) -> T:
        with self._lock:
            table = self._table(type(entity))
            if entity.id not in table:
                raise EntityNotFoundError(type(entity).__name__, entity.id)
            table[entity.id] = copy.deepcopy(entity)
        return entity

    def find(
        self, entity_type: Type[T], predicate: Optional[Predicate] = None, **filters: Any
    ) -> List[T]:
        with self._lock:
            return [
                copy.deepcopy(entity)
                for entity in self._table(entity_type).values()
                if matches(entity, predicate, filters)
            ]

    @contextmanager
    def transaction(self) -> Iterator["Transaction"]:
        """Hold the store lock and commit staged writes on a clean exit."""
        with self._lock:
            tx = Transaction(self)
            yield tx
            self._commit(tx)

    def _commit(self, tx: "Transaction") -> None:
        if not tx.staged:
            return
        for (entity_type, entity_id), entity in tx.staged.items():
            self._table(entity_type)[entity_id] = entity
        logger.debug(f"[InMemoryStore] Committed {len(tx.staged)} write(s)")

    def count(self, entity_type: type) -> int:
        with self._lock:
            return len(self._table(entity_type))


class Transaction(Repository):
    """Staged view over an InMemoryStore; reads see this transaction's writes."""

    def __init__(self, store: InMemoryStore):
        self._store = store
        self.staged: Dict[Tuple[type, str], Any] = {}

    def add(self, entity: T) -> T:
        key = (type(entity), entity.id)
        if key in self.staged or entity.id in self._store._table(type(entity)):
            raise ValueError(f"{type(entity).__name__} {entity.id} already exists")
        self.staged[key] = copy.deepcopy(entity)
        return entity

    def get(self, entity_type: Type[T], entity_id: str) -> T:
        staged = self.staged.get((entity_type, entity_id))
        if staged is not None:
            return copy.deepcopy(staged)
        return self._store.get(entity_type, entity_id)

    def update(self, entity: T) -> T:
        key = (type(entity), entity.id)
        if key not in self.staged and entity.id not in self._store._table(type(entity)):
            raise EntityNotFoundError(type(entity).__name__, entity.id)
        self.staged[key] = copy.deepcopy(entity)
        return entity

    def find(
        self, entity_type: Type[T], predicate: Optional[Predicate] = None, **filters: Any
    ) -> List[T]:
        merged: Dict[str, Any] = {
            entity.id: entity for entity in self._store.find(entity_type)
        }
        for (staged_type, entity_id), entity in self.staged.items():
            if staged_type is entity_type:
                merged[entity_id] = copy.deepcopy(entity)
        return [e for e in merged.values() if matches(e, predicate, filters)]

    @contextmanager
    def transaction(self) -> Iterator["Transaction"]:
        # Nested transactions join the outer one.
        yield self
