"""
Instruction storage and the human-review workflow that changes it.
"""

from .instruction_store import DEFAULT_INSTRUCTIONS, InstructionStore
from .instruction_governance import InstructionGovernance

__all__ = ["DEFAULT_INSTRUCTIONS", "InstructionStore", "InstructionGovernance"]
