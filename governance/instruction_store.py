"""
Instruction Store - live operating instructions per user and agent type.
"""

import logging
from typing import Any, Dict, List, Optional

from models import AgentInstruction, AgentType
from storage.base import Repository
from utils.audit_logger import AuditLogger

logger = logging.getLogger(__name__)

DEFAULT_INSTRUCTIONS: Dict[AgentType, str] = {
    AgentType.SEARCH: (
        "Use the provided job criteria for matching\n"
        "Prioritize jobs posted within the last 14 days\n"
        "Match at least 70% of required skills\n"
        "Keep salary within the specified bounds"
    ),
    AgentType.DRAFT: (
        "Analyze the job description for key requirements\n"
        "Match experience from the resume\n"
        "Highlight 3 relevant achievements\n"
        "Maintain a professional tone"
    ),
    AgentType.COMMUNICATION: (
        "Monitor for employer responses\n"
        "Keep follow-ups short and courteous\n"
        "Reference the position and application date"
    ),
    AgentType.SCHEDULING: (
        "Accept interview times within working hours\n"
        "Default to video interviews when the format is not stated"
    ),
    AgentType.CONTROLLER: (
        "Monitor agent performance\n"
        "Analyze success metrics\n"
        "Propose conservative instruction updates"
    ),
}


class InstructionStore:
    """Reads and toggles AgentInstruction records, one active per agent type."""

    def __init__(self, store: Repository, audit_logger: Optional[AuditLogger] = None):
        self.store = store
        self.audit_logger = audit_logger

    def get_active(self, user_id: str, agent_type: AgentType) -> Optional[AgentInstruction]:
        """Get the active instruction of one agent type, or None."""
        active = self.store.find(
            AgentInstruction, user_id=user_id, agent_type=AgentType(agent_type), is_active=True
        )
        return active[-1] if active else None

    def active_instructions(self, user_id: str) -> List[AgentInstruction]:
        return self.store.find(AgentInstruction, user_id=user_id, is_active=True)

    def create(
        self,
        user_id: str,
        agent_type: AgentType,
        instructions: str,
        configuration: Optional[Dict[str, Any]] = None,
    ) -> AgentInstruction:
        """Create a new active instruction, deactivating the previous one.

        Args:
            user_id: Owner
            agent_type: Agent governed by the instruction
            instructions: Instruction text
            configuration: Optional agent configuration map

        Returns:
            The stored instruction
        """
        instruction = AgentInstruction(
            user_id=user_id,
            agent_type=AgentType(agent_type),
            instructions=instructions,
            configuration=dict(configuration or {}),
        )
        with self.store.transaction() as tx:
            self._deactivate_others(tx, instruction)
            tx.add(instruction)

        logger.info(
            f"[InstructionStore] Created {instruction.agent_type.value} instruction "
            f"{instruction.id} for {user_id}"
        )
        if self.audit_logger:
            self.audit_logger.log_governance(
                "instruction_created",
                user_id,
                instruction_id=instruction.id,
                agent_type=instruction.agent_type.value,
            )
        return instruction

    def activate(self, instruction_id: str) -> bool:
        """Make an instruction the active one for its agent type."""
        with self.store.transaction() as tx:
            instruction = tx.get(AgentInstruction, instruction_id)
            if not instruction.activate():
                return False
            self._deactivate_others(tx, instruction)
            tx.update(instruction)
        logger.info(f"[InstructionStore] Activated {instruction_id}")
        return True

    def deactivate(self, instruction_id: str) -> bool:
        with self.store.transaction() as tx:
            instruction = tx.get(AgentInstruction, instruction_id)
            if not instruction.deactivate():
                return False
            tx.update(instruction)
        logger.info(f"[InstructionStore] Deactivated {instruction_id}")
        return True

    def update_configuration(self, instruction_id: str, config: Dict[str, Any]) -> AgentInstruction:
        with self.store.transaction() as tx:
            instruction = tx.get(AgentInstruction, instruction_id)
            instruction.update_configuration(config)
            tx.update(instruction)
        return instruction

    def seed_defaults(self, user_id: str) -> List[AgentInstruction]:
        """Create default instructions for every agent type that has none active."""
        created = []
        for agent_type, text in DEFAULT_INSTRUCTIONS.items():
            if self.get_active(user_id, agent_type) is None:
                created.append(self.create(user_id, agent_type, text))
        if created:
            logger.info(f"[InstructionStore] Seeded {len(created)} default instruction(s) for {user_id}")
        return created

    def get(self, instruction_id: str) -> AgentInstruction:
        return self.store.get(AgentInstruction, instruction_id)

    def text_for(self, user_id: str, agent_type: AgentType) -> str:
        """Active instruction text, or the default when none is stored."""
        instruction = self.get_active(user_id, agent_type)
        if instruction is None:
            return DEFAULT_INSTRUCTIONS[AgentType(agent_type)]
        return instruction.instructions

    @staticmethod
    def _deactivate_others(tx: Repository, instruction: AgentInstruction):
        for other in tx.find(
            AgentInstruction,
            user_id=instruction.user_id,
            agent_type=instruction.agent_type,
            is_active=True,
        ):
            if other.id != instruction.id and other.deactivate():
                tx.update(other)
