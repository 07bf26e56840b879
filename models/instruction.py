"""
Agent instructions and the proposals that change them.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from models.base import StatefulEntity, format_datetime, new_id, parse_datetime, utcnow


class AgentType(Enum):
    """Agents whose behavior is governed by an instruction."""

    SEARCH = "search"
    DRAFT = "draft"
    COMMUNICATION = "communication"
    SCHEDULING = "scheduling"
    CONTROLLER = "controller"


@dataclass
class AgentInstruction:
    """Live instruction text and configuration for one agent of one user.

    The text changes only through ``apply_approved_change``; activation is
    toggled directly.
    """

    user_id: str
    agent_type: AgentType
    instructions: str
    configuration: Dict[str, Any] = field(default_factory=dict)
    is_active: bool = True
    id: str = field(default_factory=lambda: new_id("instr"))
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    def __post_init__(self):
        self.agent_type = AgentType(self.agent_type)

    def activate(self) -> bool:
        if self.is_active:
            return False
        self.is_active = True
        self.updated_at = utcnow()
        return True

    def deactivate(self) -> bool:
        if not self.is_active:
            return False
        self.is_active = False
        self.updated_at = utcnow()
        return True

    def update_configuration(self, config: Dict[str, Any]) -> bool:
        self.configuration = {**self.configuration, **config}
        self.updated_at = utcnow()
        return True

    def apply_approved_change(self, change: "ProposedInstructionChange") -> bool:
        """Overwrite the live text with an approved proposal for this instruction."""
        if change.status != ChangeStatus.APPROVED or change.agent_instruction_id != self.id:
            return False
        self.instructions = change.proposed_instructions
        self.updated_at = utcnow()
        return True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "agent_type": self.agent_type.value,
            "instructions": self.instructions,
            "configuration": dict(self.configuration),
            "is_active": self.is_active,
            "created_at": format_datetime(self.created_at),
            "updated_at": format_datetime(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AgentInstruction":
        return cls(
            id=data["id"],
            user_id=data["user_id"],
            agent_type=data["agent_type"],
            instructions=data.get("instructions") or "",
            configuration=dict(data.get("configuration") or {}),
            is_active=data.get("is_active", True),
            created_at=parse_datetime(data.get("created_at")) or utcnow(),
            updated_at=parse_datetime(data.get("updated_at")) or utcnow(),
        )


class ChangeStatus(Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


@dataclass
class ProposedInstructionChange(StatefulEntity):
    """A pending edit to an AgentInstruction awaiting human review."""

    STATUS_ENUM = ChangeStatus
    TERMINAL_STATES = frozenset({ChangeStatus.APPROVED, ChangeStatus.REJECTED})

    user_id: str
    agent_instruction_id: str
    agent_type: AgentType
    current_instructions: str
    proposed_instructions: str
    reason: str
    metrics: Dict[str, Any] = field(default_factory=dict)
    proposed_by: str = "human"
    status: ChangeStatus = ChangeStatus.PENDING
    feedback: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    id: str = field(default_factory=lambda: new_id("change"))
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    def __post_init__(self):
        self.agent_type = AgentType(self.agent_type)
        self._seal()

    def approve(self, feedback: Optional[str] = None, at: Optional[datetime] = None) -> bool:
        return self._transition(
            "approve",
            {ChangeStatus.PENDING},
            ChangeStatus.APPROVED,
            feedback=feedback,
            reviewed_at=at or utcnow(),
        )

    def reject(self, feedback: str, at: Optional[datetime] = None) -> bool:
        if not feedback or not feedback.strip():
            return False
        return self._transition(
            "reject",
            {ChangeStatus.PENDING},
            ChangeStatus.REJECTED,
            feedback=feedback,
            reviewed_at=at or utcnow(),
        )

    @property
    def is_pending(self) -> bool:
        return self.status == ChangeStatus.PENDING

    @property
    def is_reviewed(self) -> bool:
        return self.reviewed_at is not None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "agent_instruction_id": self.agent_instruction_id,
            "agent_type": self.agent_type.value,
            "current_instructions": self.current_instructions,
            "proposed_instructions": self.proposed_instructions,
            "reason": self.reason,
            "metrics": dict(self.metrics),
            "proposed_by": self.proposed_by,
            "status": self.status.value,
            "feedback": self.feedback,
            "reviewed_at": format_datetime(self.reviewed_at),
            "created_at": format_datetime(self.created_at),
            "updated_at": format_datetime(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProposedInstructionChange":
        return cls(
            id=data["id"],
            user_id=data["user_id"],
            agent_instruction_id=data["agent_instruction_id"],
            agent_type=data["agent_type"],
            current_instructions=data.get("current_instructions") or "",
            proposed_instructions=data["proposed_instructions"],
            reason=data.get("reason") or "",
            metrics=dict(data.get("metrics") or {}),
            proposed_by=data.get("proposed_by", "human"),
            status=data.get("status", ChangeStatus.PENDING.value),
            feedback=data.get("feedback"),
            reviewed_at=parse_datetime(data.get("reviewed_at")),
            created_at=parse_datetime(data.get("created_at")) or utcnow(),
            updated_at=parse_datetime(data.get("updated_at")) or utcnow(),
        )
