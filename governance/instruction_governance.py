"""
Instruction Governance - the proposal/approval path for changing live instructions.
"""

import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from core.errors import EntityNotFoundError, GovernanceError
from models import AgentInstruction, ProposedInstructionChange
from models.base import utcnow
from storage.base import Repository
from utils.audit_logger import AuditLogger

logger = logging.getLogger(__name__)


class InstructionGovernance:
    """Creates proposals and applies human review decisions.

    Approval writes the change and the instruction in one store transaction,
    so readers see both updates or neither. Reviewing a change that is no
    longer pending is a no-op returning False.
    """

    def __init__(
        self,
        store: Repository,
        audit_logger: Optional[AuditLogger] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.audit_logger = audit_logger
        self.clock = clock

    def propose_change(
        self,
        instruction: AgentInstruction,
        proposed_text: str,
        reason: str,
        metrics: Optional[Dict[str, Any]] = None,
        proposed_by: str = "human",
    ) -> ProposedInstructionChange:
        """Record a pending proposal against an instruction.

        Args:
            instruction: Instruction to change (its current text is snapshotted)
            proposed_text: Replacement instruction text
            reason: Why the change is proposed
            metrics: Outcome metrics that motivated the proposal
            proposed_by: "human" or "controller"

        Returns:
            The stored pending proposal

        Raises:
            GovernanceError: if the proposed text is blank or unchanged
        """
        text = (proposed_text or "").strip()
        if not text:
            raise GovernanceError("Proposed instructions are empty")
        if text == instruction.instructions.strip():
            raise GovernanceError("Proposed instructions are identical to the current ones")

        change = ProposedInstructionChange(
            user_id=instruction.user_id,
            agent_instruction_id=instruction.id,
            agent_type=instruction.agent_type,
            current_instructions=instruction.instructions,
            proposed_instructions=text,
            reason=reason or "",
            metrics=dict(metrics or {}),
            proposed_by=proposed_by,
            created_at=self.clock(),
        )
        self.store.add(change)

        logger.info(
            f"[InstructionGovernance] {proposed_by} proposed change {change.id} "
            f"for {instruction.agent_type.value} instruction {instruction.id}"
        )
        self._audit("proposed", change)
        return change

    def approve(self, change_id: str, feedback: Optional[str] = None) -> bool:
        """Approve a pending change and apply it to the live instruction.

        Args:
            change_id: Proposal identifier
            feedback: Optional reviewer comment

        Returns:
            True if the change was pending and is now applied
        """
        try:
            with self.store.transaction() as tx:
                change = tx.get(ProposedInstructionChange, change_id)
                if not change.approve(feedback=feedback, at=self.clock()):
                    logger.info(
                        f"[InstructionGovernance] Change {change_id} is "
                        f"{change.status.value}, not approving"
                    )
                    return False

                instruction = tx.get(AgentInstruction, change.agent_instruction_id)
                instruction.apply_approved_change(change)
                tx.update(change)
                tx.update(instruction)
        except EntityNotFoundError as e:
            logger.warning(f"[InstructionGovernance] Cannot approve {change_id}: {e}")
            return False

        logger.info(
            f"[InstructionGovernance] Approved {change_id}; instruction {instruction.id} updated"
        )
        self._audit("approved", change)
        return True

    def reject(self, change_id: str, feedback: str) -> bool:
        """Reject a pending change; the instruction is left untouched.

        Args:
            change_id: Proposal identifier
            feedback: Required reviewer comment

        Returns:
            True if the change was pending and is now rejected
        """
        try:
            with self.store.transaction() as tx:
                change = tx.get(ProposedInstructionChange, change_id)
                if not change.reject(feedback, at=self.clock()):
                    logger.info(
                        f"[InstructionGovernance] Not rejecting {change_id} "
                        f"(status={change.status.value}, feedback={'yes' if feedback else 'no'})"
                    )
                    return False
                tx.update(change)
        except EntityNotFoundError as e:
            logger.warning(f"[InstructionGovernance] Cannot reject {change_id}: {e}")
            return False

        logger.info(f"[InstructionGovernance] Rejected {change_id}")
        self._audit("rejected", change)
        return True

    def pending_changes(self, user_id: Optional[str] = None) -> List[ProposedInstructionChange]:
        return sorted(self.store.pending_changes(user_id), key=lambda c: c.created_at)

    def history(self, instruction_id: str) -> List[ProposedInstructionChange]:
        """All proposals ever made against one instruction, oldest first."""
        return sorted(
            self.store.find(ProposedInstructionChange, agent_instruction_id=instruction_id),
            key=lambda c: c.created_at,
        )

    def _audit(self, event: str, change: ProposedInstructionChange):
        if self.audit_logger:
            self.audit_logger.log_governance(
                event,
                change.user_id,
                change_id=change.id,
                instruction_id=change.agent_instruction_id,
                agent_type=change.agent_type.value,
                proposed_by=change.proposed_by,
                feedback=change.feedback,
                metadata={"reason": change.reason, "metrics": change.metrics},
            )
