"""
Drafted and submitted job applications.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from models.base import StatefulEntity, format_datetime, new_id, parse_datetime, utcnow


class ApplicationStatus(Enum):
    """Application status enumeration."""

    DRAFT = "draft"
    SUBMITTED = "submitted"
    UNDER_REVIEW = "under_review"
    REJECTED = "rejected"
    ACCEPTED = "accepted"
    WITHDRAWN = "withdrawn"


@dataclass
class ApplicationMetadata:
    """Generation and follow-up bookkeeping for an application."""

    SCHEMA_VERSION = 1

    generated_at: Optional[datetime] = None
    instruction_snapshot: str = ""
    submission_channel: Optional[str] = None
    follow_up_count: int = 0
    version: int = SCHEMA_VERSION

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": self.version,
            "generated_at": format_datetime(self.generated_at),
            "instruction_snapshot": self.instruction_snapshot,
            "submission_channel": self.submission_channel,
            "follow_up_count": self.follow_up_count,
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "ApplicationMetadata":
        data = data or {}
        return cls(
            version=data.get("version", cls.SCHEMA_VERSION),
            generated_at=parse_datetime(data.get("generated_at")),
            instruction_snapshot=data.get("instruction_snapshot") or "",
            submission_channel=data.get("submission_channel"),
            follow_up_count=int(data.get("follow_up_count") or 0),
        )


_IN_FLIGHT = {ApplicationStatus.SUBMITTED, ApplicationStatus.UNDER_REVIEW}


@dataclass
class Application(StatefulEntity):
    """An application for one job, created in ``draft`` by the DraftAgent."""

    STATUS_ENUM = ApplicationStatus
    TERMINAL_STATES = frozenset(
        {
            ApplicationStatus.REJECTED,
            ApplicationStatus.ACCEPTED,
            ApplicationStatus.WITHDRAWN,
        }
    )

    user_id: str
    job_id: str
    resume_id: Optional[str] = None
    cover_letter: str = ""
    status: ApplicationStatus = ApplicationStatus.DRAFT
    submitted_at: Optional[datetime] = None
    metadata: ApplicationMetadata = field(default_factory=ApplicationMetadata)
    id: str = field(default_factory=lambda: new_id("app"))
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    def __post_init__(self):
        self._seal()

    # Transitions
    def submit(self, channel: str = "email", at: Optional[datetime] = None) -> bool:
        if not self._transition(
            "submit",
            {ApplicationStatus.DRAFT},
            ApplicationStatus.SUBMITTED,
            submitted_at=at or utcnow(),
        ):
            return False
        self.metadata.submission_channel = channel
        return True

    def mark_under_review(self) -> bool:
        return self._transition(
            "mark_under_review",
            {ApplicationStatus.SUBMITTED},
            ApplicationStatus.UNDER_REVIEW,
        )

    def reject(self) -> bool:
        return self._transition("reject", _IN_FLIGHT, ApplicationStatus.REJECTED)

    def accept(self) -> bool:
        return self._transition("accept", _IN_FLIGHT, ApplicationStatus.ACCEPTED)

    def withdraw(self) -> bool:
        """Withdraw from any state except ``withdrawn``, including after a decision."""
        return self._transition(
            "withdraw",
            set(ApplicationStatus) - {ApplicationStatus.WITHDRAWN},
            ApplicationStatus.WITHDRAWN,
            leaves_terminal=True,
        )

    def record_follow_up(self) -> bool:
        """Count one outgoing follow-up. Only while the application is in flight."""
        if self.status not in _IN_FLIGHT:
            return False
        self.metadata.follow_up_count += 1
        self.updated_at = utcnow()
        return True

    # Accessors
    @property
    def follow_up_count(self) -> int:
        return self.metadata.follow_up_count

    @property
    def is_active(self) -> bool:
        return self.status not in (ApplicationStatus.REJECTED, ApplicationStatus.WITHDRAWN)

    @property
    def is_submitted(self) -> bool:
        return self.submitted_at is not None

    def days_since_submission(self, now: Optional[datetime] = None) -> Optional[int]:
        if self.submitted_at is None:
            return None
        return ((now or utcnow()) - self.submitted_at).days

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "job_id": self.job_id,
            "resume_id": self.resume_id,
            "cover_letter": self.cover_letter,
            "status": self.status.value,
            "submitted_at": format_datetime(self.submitted_at),
            "metadata": self.metadata.to_dict(),
            "created_at": format_datetime(self.created_at),
            "updated_at": format_datetime(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Application":
        return cls(
            id=data["id"],
            user_id=data["user_id"],
            job_id=data["job_id"],
            resume_id=data.get("resume_id"),
            cover_letter=data.get("cover_letter") or "",
            status=data.get("status", ApplicationStatus.DRAFT.value),
            submitted_at=parse_datetime(data.get("submitted_at")),
            metadata=ApplicationMetadata.from_dict(data.get("metadata")),
            created_at=parse_datetime(data.get("created_at")) or utcnow(),
            updated_at=parse_datetime(data.get("updated_at")) or utcnow(),
        )
