import logging
from typing import Optional

from storage.base import Repository


class BaseAgent:
    """Base class for all agents."""

    def __init__(self, name: str, store: Optional[Repository], role: str):
        """Initialize the agent.

        Args:
            name: The name of the agent.
            store: Entity repository the agent reads and writes (can be None for testing).
            role: The role of the agent.
        """
        self.name = name
        self.store = store
        self.role = role
        self.logger = logging.getLogger(name)

    def log(self, message):
        self.logger.info(f"[{self.role}] {message}")

    def _save(self, entity, is_new: bool = False):
        """Persist an entity if a store is attached."""
        if self.store is None:
            return entity
        return self.store.add(entity) if is_new else self.store.update(entity)
