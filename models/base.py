"""
Shared helpers for entity records: ids, timestamps and the transition guard.
"""

import logging
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, ClassVar, FrozenSet, Iterable, Optional, Type

from core.errors import IllegalTransitionError

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def new_id(prefix: str) -> str:
    """Generate an entity identifier, e.g. ``job_3f9c0a1b2d4e``."""
    return f"{prefix}_{uuid.uuid4().hex[:12]}"


def parse_datetime(value: Any) -> Optional[datetime]:
    """Parse an ISO-8601 string (or pass through a datetime).

    Naive values are assumed to be UTC.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_datetime(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


class StatefulEntity:
    """Mixin for dataclass entities whose ``status`` follows a transition table.

    After construction ``status`` can only change through ``_transition``;
    direct assignment raises ``AttributeError``.
    """

    STATUS_ENUM: ClassVar[Type[Enum]]
    TERMINAL_STATES: ClassVar[FrozenSet[Enum]] = frozenset()
    ENTITY_PREFIX: ClassVar[str] = "entity"

    _sealed = False

    def __setattr__(self, name: str, value: Any) -> None:
        if name == "status" and self._sealed:
            raise AttributeError(
                f"{type(self).__name__}.status can only change through a transition"
            )
        super().__setattr__(name, value)

    def _seal(self) -> None:
        """Coerce ``status`` into the enumeration and lock it. Call from __post_init__."""
        object.__setattr__(self, "status", self.STATUS_ENUM(self.status))
        object.__setattr__(self, "_sealed", True)

    @property
    def is_terminal(self) -> bool:
        return self.status in self.TERMINAL_STATES

    def _transition(
        self,
        name: str,
        sources: Iterable[Enum],
        target: Enum,
        leaves_terminal: bool = False,
        **changes: Any,
    ) -> bool:
        """Move to ``target`` if the current status is in ``sources``.

        Terminal states are dropped from ``sources`` unless ``leaves_terminal``
        is set. ``changes`` are applied only when the transition succeeds.
        """
        allowed = frozenset(sources)
        if not leaves_terminal:
            allowed -= self.TERMINAL_STATES
        if self.status not in allowed:
            logger.debug(
                f"[{type(self).__name__}] Rejected {name} from '{self.status.value}' "
                f"(id={getattr(self, 'id', None)})"
            )
            return False

        for field_name, value in changes.items():
            setattr(self, field_name, value)
        object.__setattr__(self, "status", target)
        if hasattr(self, "updated_at"):
            self.updated_at = utcnow()
        return True


def ensure_transition(ok: bool, entity: StatefulEntity, transition: str) -> None:
    """Raise IllegalTransitionError when a transition returned False."""
    if not ok:
        raise IllegalTransitionError(
            type(entity).__name__,
            getattr(entity, "id", None),
            transition,
            entity.status.value,
        )
