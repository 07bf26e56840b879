"""
Job postings and the search criteria that produce them.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from models.base import StatefulEntity, format_datetime, new_id, parse_datetime, utcnow


class JobStatus(Enum):
    """Job status enumeration."""

    NEW = "new"
    APPLIED = "applied"
    INTERVIEWING = "interviewing"
    OFFERED = "offered"
    REJECTED = "rejected"
    ACCEPTED = "accepted"
    DECLINED = "declined"


class JobType:
    """Known job types (free text is tolerated)."""

    FULL_TIME = "full-time"
    PART_TIME = "part-time"
    CONTRACT = "contract"
    FREELANCE = "freelance"
    INTERNSHIP = "internship"


@dataclass(frozen=True)
class JobCriteria:
    """A user's search criteria. Immutable for the duration of a cycle."""

    user_id: str
    title: Optional[str] = None
    keywords: Tuple[str, ...] = ()
    location: Optional[str] = None
    min_salary: Optional[float] = None
    job_type: Optional[str] = None
    required_skills: Tuple[str, ...] = ()
    preferred_skills: Tuple[str, ...] = ()
    additional_requirements: Optional[str] = None
    is_active: bool = True
    id: str = field(default_factory=lambda: new_id("criteria"))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "title": self.title,
            "keywords": list(self.keywords),
            "location": self.location,
            "min_salary": self.min_salary,
            "job_type": self.job_type,
            "required_skills": list(self.required_skills),
            "preferred_skills": list(self.preferred_skills),
            "additional_requirements": self.additional_requirements,
            "is_active": self.is_active,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "JobCriteria":
        return cls(
            id=data.get("id") or new_id("criteria"),
            user_id=data["user_id"],
            title=data.get("title"),
            keywords=tuple(data.get("keywords") or ()),
            location=data.get("location"),
            min_salary=data.get("min_salary"),
            job_type=data.get("job_type"),
            required_skills=tuple(data.get("required_skills") or ()),
            preferred_skills=tuple(data.get("preferred_skills") or ()),
            additional_requirements=data.get("additional_requirements"),
            is_active=data.get("is_active", True),
        )


@dataclass
class Job(StatefulEntity):
    """A discovered job posting."""

    STATUS_ENUM = JobStatus
    TERMINAL_STATES = frozenset(
        {JobStatus.REJECTED, JobStatus.ACCEPTED, JobStatus.DECLINED}
    )

    user_id: str
    title: str
    company: str
    job_link: str
    location: Optional[str] = None
    description: str = ""
    salary_min: Optional[float] = None
    salary_max: Optional[float] = None
    job_type: Optional[str] = None
    required_skills: List[str] = field(default_factory=list)
    preferred_skills: List[str] = field(default_factory=list)
    contact_email: Optional[str] = None
    status: JobStatus = JobStatus.NEW
    id: str = field(default_factory=lambda: new_id("job"))
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    def __post_init__(self):
        self._seal()

    # Transitions
    def mark_applied(self) -> bool:
        return self._transition("mark_applied", {JobStatus.NEW}, JobStatus.APPLIED)

    def mark_interviewing(self) -> bool:
        return self._transition(
            "mark_interviewing",
            {JobStatus.NEW, JobStatus.APPLIED},
            JobStatus.INTERVIEWING,
        )

    def mark_offered(self) -> bool:
        return self._transition(
            "mark_offered", {JobStatus.INTERVIEWING}, JobStatus.OFFERED
        )

    def accept(self) -> bool:
        return self._transition("accept", {JobStatus.OFFERED}, JobStatus.ACCEPTED)

    def decline(self) -> bool:
        return self._transition(
            "decline",
            {JobStatus.NEW, JobStatus.APPLIED, JobStatus.INTERVIEWING, JobStatus.OFFERED},
            JobStatus.DECLINED,
        )

    def reject(self) -> bool:
        return self._transition(
            "reject",
            {JobStatus.APPLIED, JobStatus.INTERVIEWING, JobStatus.OFFERED},
            JobStatus.REJECTED,
        )

    # Accessors
    @property
    def is_active(self) -> bool:
        return self.status not in (JobStatus.REJECTED, JobStatus.DECLINED)

    @property
    def skills(self) -> List[str]:
        """Required then preferred skills, duplicates removed."""
        seen = set()
        merged = []
        for skill in self.required_skills + self.preferred_skills:
            if skill.lower() not in seen:
                seen.add(skill.lower())
                merged.append(skill)
        return merged

    @property
    def salary_range(self) -> str:
        if not self.salary_min and not self.salary_max:
            return "Not specified"
        if not self.salary_max:
            return f"${self.salary_min:,.0f}+"
        if not self.salary_min or self.salary_min == self.salary_max:
            return f"${self.salary_max:,.0f}"
        return f"${self.salary_min:,.0f} - ${self.salary_max:,.0f}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "title": self.title,
            "company": self.company,
            "job_link": self.job_link,
            "location": self.location,
            "description": self.description,
            "salary_min": self.salary_min,
            "salary_max": self.salary_max,
            "job_type": self.job_type,
            "required_skills": list(self.required_skills),
            "preferred_skills": list(self.preferred_skills),
            "contact_email": self.contact_email,
            "status": self.status.value,
            "created_at": format_datetime(self.created_at),
            "updated_at": format_datetime(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Job":
        return cls(
            id=data["id"],
            user_id=data["user_id"],
            title=data["title"],
            company=data["company"],
            job_link=data["job_link"],
            location=data.get("location"),
            description=data.get("description") or "",
            salary_min=data.get("salary_min"),
            salary_max=data.get("salary_max"),
            job_type=data.get("job_type"),
            required_skills=list(data.get("required_skills") or []),
            preferred_skills=list(data.get("preferred_skills") or []),
            contact_email=data.get("contact_email"),
            status=data.get("status", JobStatus.NEW.value),
            created_at=parse_datetime(data.get("created_at")) or utcnow(),
            updated_at=parse_datetime(data.get("updated_at")) or utcnow(),
        )
