"""
Error taxonomy shared by agents, governance and the orchestrator.
"""

from typing import Optional


class AgentError(Exception):
    """Base class for all errors raised by the agent core."""

    @property
    def kind(self) -> str:
        """Short error category used in cycle reports."""
        return type(self).__name__


class ProviderError(AgentError):
    """Search, generation or mail transport/auth failure (timeouts included)."""

    def __init__(
        self, message: str, provider: str = "unknown", status_code: Optional[int] = None
    ):
        super().__init__(message)
        self.provider = provider
        self.status_code = status_code

    def __str__(self) -> str:
        base = super().__str__()
        if self.status_code is not None:
            return f"[{self.provider}] {base} (HTTP {self.status_code})"
        return f"[{self.provider}] {base}"


class ValidationError(AgentError):
    """Malformed or unparsable AI-generated structured output."""


class CadenceError(AgentError):
    """A follow-up was requested outside the allowed cadence."""


class UnknownRecipientError(AgentError):
    """No company address is known for an outbound message."""


class IllegalTransitionError(AgentError):
    """An entity transition was attempted from a non-source state."""

    def __init__(self, entity: str, entity_id: Optional[str], transition: str, status: str):
        super().__init__(
            f"{entity} {entity_id or '<unsaved>'}: cannot {transition} from '{status}'"
        )
        self.entity = entity
        self.entity_id = entity_id
        self.transition = transition
        self.status = status


class GovernanceError(AgentError):
    """Invalid instruction proposal or review."""


class EntityNotFoundError(AgentError):
    """Lookup of an entity by identifier failed."""

    def __init__(self, entity: str, entity_id: str):
        super().__init__(f"{entity} not found: {entity_id}")
        self.entity = entity
        self.entity_id = entity_id
