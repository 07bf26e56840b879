"""
Entity records and their lifecycle state machines.
"""

from .base import ensure_transition, new_id, utcnow
from .job import Job, JobCriteria, JobStatus, JobType
from .application import Application, ApplicationMetadata, ApplicationStatus
from .communication import (
    Communication,
    CommunicationStatus,
    CommunicationType,
    Direction,
    EmailClassification,
    EmailType,
    FollowUpMetadata,
    IncomingEmailMetadata,
    SubmissionMetadata,
)
from .interview import Interview, InterviewStatus, InterviewType
from .instruction import AgentInstruction, AgentType, ChangeStatus, ProposedInstructionChange
from .profile import Education, Resume, UserProfile

__all__ = [
    "ensure_transition",
    "new_id",
    "utcnow",
    "Job",
    "JobCriteria",
    "JobStatus",
    "JobType",
    "Application",
    "ApplicationMetadata",
    "ApplicationStatus",
    "Communication",
    "CommunicationStatus",
    "CommunicationType",
    "Direction",
    "EmailClassification",
    "EmailType",
    "FollowUpMetadata",
    "IncomingEmailMetadata",
    "SubmissionMetadata",
    "Interview",
    "InterviewStatus",
    "InterviewType",
    "AgentInstruction",
    "AgentType",
    "ChangeStatus",
    "ProposedInstructionChange",
    "Education",
    "Resume",
    "UserProfile",
]
