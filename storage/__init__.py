"""
Entity persistence: the repository contract and its implementations.
"""

from .base import Repository
from .memory import InMemoryStore
from .sqlite_store import SqliteStore

__all__ = ["Repository", "InMemoryStore", "SqliteStore"]
