"""
Persistence contract used by agents, governance and the orchestrator.
"""

from abc import ABC, abstractmethod
from typing import Any, Callable, ContextManager, List, Optional, Type, TypeVar

from core.errors import EntityNotFoundError
from models import (
    AgentInstruction,
    Application,
    ApplicationStatus,
    ChangeStatus,
    Communication,
    Direction,
    Interview,
    Job,
    JobCriteria,
    ProposedInstructionChange,
    Resume,
    UserProfile,
)

T = TypeVar("T")

Predicate = Callable[[Any], bool]


def matches(entity: Any, predicate: Optional[Predicate], filters: dict) -> bool:
    """Attribute-equality filters plus an optional predicate."""
    for name, expected in filters.items():
        if getattr(entity, name, None) != expected:
            return False
    return predicate(entity) if predicate else True


class Repository(ABC):
    """Create/read/update for every entity type, keyed by identifier.

    Implementations hand out copies, so a caller's mutation is invisible to
    other readers until ``update`` (or the enclosing transaction) commits.
    Each ``add``/``update`` is atomic per entity.
    """

    @abstractmethod
    def add(self, entity: T) -> T:
        """Persist a new entity."""

    @abstractmethod
    def get(self, entity_type: Type[T], entity_id: str) -> T:
        """Fetch an entity by id. Raises EntityNotFoundError."""

    @abstractmethod
    def update(self, entity: T) -> T:
        """Replace the stored copy of an existing entity."""

    @abstractmethod
    def find(
        self, entity_type: Type[T], predicate: Optional[Predicate] = None, **filters: Any
    ) -> List[T]:
        """List entities matching attribute filters, in insertion order."""

    @abstractmethod
    def transaction(self) -> ContextManager["Repository"]:
        """Group writes so they become visible together or not at all."""

    # Query helpers shared by all implementations

    def get_or_none(self, entity_type: Type[T], entity_id: Optional[str]) -> Optional[T]:
        if not entity_id:
            return None
        try:
            return self.get(entity_type, entity_id)
        except EntityNotFoundError:
            return None

    def get_profile(self, user_id: str) -> UserProfile:
        return self.get(UserProfile, user_id)

    def get_resume(self, user_id: str) -> Optional[Resume]:
        profile = self.get_or_none(UserProfile, user_id)
        if profile and profile.resume_id:
            return self.get_or_none(Resume, profile.resume_id)
        resumes = self.find(Resume, user_id=user_id)
        return resumes[-1] if resumes else None

    def active_criteria(self, user_id: str) -> Optional[JobCriteria]:
        criteria = self.find(JobCriteria, user_id=user_id, is_active=True)
        return criteria[-1] if criteria else None

    def job_by_link(self, user_id: str, job_link: str) -> Optional[Job]:
        jobs = self.find(Job, user_id=user_id, job_link=job_link)
        return jobs[0] if jobs else None

    def communications_for_application(self, application_id: str) -> List[Communication]:
        return sorted(
            self.find(Communication, application_id=application_id),
            key=lambda c: c.occurred_at,
        )

    def latest_incoming_for(
        self, application_id: Optional[str] = None, job_id: Optional[str] = None
    ) -> Optional[Communication]:
        filters = {"direction": Direction.INCOMING}
        if application_id:
            filters["application_id"] = application_id
        elif job_id:
            filters["job_id"] = job_id
        else:
            return None
        incoming = sorted(self.find(Communication, **filters), key=lambda c: c.occurred_at)
        return incoming[-1] if incoming else None

    def latest_application_for_job(self, job_id: str) -> Optional[Application]:
        applications = sorted(
            self.find(Application, job_id=job_id), key=lambda a: a.created_at
        )
        return applications[-1] if applications else None

    def applications_in_flight(self, user_id: str) -> List[Application]:
        return self.find(
            Application,
            lambda a: a.status in (ApplicationStatus.SUBMITTED, ApplicationStatus.UNDER_REVIEW),
            user_id=user_id,
        )

    def interviews_for_user(self, user_id: str) -> List[Interview]:
        return self.find(Interview, user_id=user_id)

    def pending_changes(self, user_id: Optional[str] = None) -> List[ProposedInstructionChange]:
        filters = {"status": ChangeStatus.PENDING}
        if user_id:
            filters["user_id"] = user_id
        return self.find(ProposedInstructionChange, **filters)

    def instructions_for_user(self, user_id: str) -> List[AgentInstruction]:
        return self.find(AgentInstruction, user_id=user_id)
