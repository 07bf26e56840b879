"""
Scheduling Agent: turns interview invitations into Interview records.
"""

import logging
from datetime import datetime
from typing import List, Optional

from agents.base_agent import BaseAgent
from core.config import Config
from core.errors import ValidationError
from models import Communication, Interview, InterviewType, Job
from storage.base import Repository

logger = logging.getLogger(__name__)


class SchedulingAgent(BaseAgent):
    """Agent that books interviews on the user's calendar."""

    def __init__(self, store: Optional[Repository] = None, config: Optional[Config] = None):
        super().__init__(name="SchedulingAgent", store=store, role="scheduling")
        scheduling_config = config.get_scheduling_config() if config else {}
        self.default_duration = scheduling_config.get("default_duration_minutes", 60)
        self.default_type = InterviewType.parse(
            scheduling_config.get("default_interview_type"), InterviewType.VIDEO
        )

    def schedule_interview(
        self,
        job: Job,
        when: datetime,
        duration_minutes: Optional[int] = None,
        interview_type: Optional[str] = None,
        location: Optional[str] = None,
        communication_id: Optional[str] = None,
        notes: str = "",
    ) -> Interview:
        """Create an interview in ``scheduled`` status.

        Args:
            job: Job the interview is for
            when: Interview start time
            duration_minutes: Length; the configured default when omitted
            interview_type: Interview format; the configured default when omitted
            location: Address or meeting link
            communication_id: The invitation this came from
            notes: Free-text notes

        Returns:
            The stored Interview
        """
        if when is None:
            raise ValidationError(f"No interview time for job {job.id}")

        interview = Interview(
            user_id=job.user_id,
            job_id=job.id,
            scheduled_at=when,
            type=InterviewType.parse(interview_type, self.default_type),
            duration_minutes=duration_minutes or self.default_duration,
            location=location,
            notes=notes,
            communication_id=communication_id,
        )

        conflicts = self.find_conflicts(interview)
        if conflicts:
            logger.warning(
                f"[SchedulingAgent] Interview for {job.title} at {when.isoformat()} overlaps "
                f"{', '.join(c.id for c in conflicts)}"
            )

        self._save(interview, is_new=True)
        self.log(
            f"Scheduled {interview.type.value} interview for {job.title} at {job.company} "
            f"on {when.isoformat()} ({interview.formatted_duration})"
        )
        return interview

    def schedule_from_communication(self, job: Job, communication: Communication) -> Interview:
        """Schedule an interview from a classified invitation email.

        Raises:
            ValidationError: if the invitation carries no interview time
        """
        classification = communication.classification
        if classification is None or classification.interview_datetime is None:
            raise ValidationError(f"Invitation {communication.id} has no interview time")

        return self.schedule_interview(
            job,
            classification.interview_datetime,
            duration_minutes=classification.interview_duration_minutes,
            interview_type=classification.interview_type,
            location=classification.interview_location,
            communication_id=communication.id,
            notes=classification.suggested_next_step or "",
        )

    def find_conflicts(self, interview: Interview) -> List[Interview]:
        """Active interviews of the same user that overlap the given one."""
        if self.store is None:
            return []
        return [
            other
            for other in self.store.interviews_for_user(interview.user_id)
            if other.id != interview.id and other.is_active and other.overlaps(interview)
        ]
