"""
Agent modules for the autonomous job-search assistant.
"""

from .search_agent import SearchAgent
from .draft_agent import DraftAgent
from .communication_agent import CommunicationAgent
from .scheduling_agent import SchedulingAgent
from .orchestrator_agent import OrchestratorAgent

__all__ = [
    "SearchAgent",
    "DraftAgent",
    "CommunicationAgent",
    "SchedulingAgent",
    "OrchestratorAgent",
]
