"""
Scheduled interviews.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Dict, Optional

from models.base import StatefulEntity, format_datetime, new_id, parse_datetime, utcnow

DEFAULT_DURATION_MINUTES = 60


class InterviewType(Enum):
    PHONE = "phone"
    VIDEO = "video"
    ONSITE = "onsite"
    TECHNICAL = "technical"
    BEHAVIORAL = "behavioral"

    @classmethod
    def parse(cls, value: Any, default: "InterviewType") -> "InterviewType":
        if value is None:
            return default
        normalized = str(value).strip().lower().replace("-", "_").replace(" ", "_")
        aliases = {"on_site": "onsite", "in_person": "onsite", "phone_screen": "phone"}
        try:
            return cls(aliases.get(normalized, normalized))
        except ValueError:
            return default


class InterviewStatus(Enum):
    """Interview status enumeration."""

    SCHEDULED = "scheduled"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    RESCHEDULED = "rescheduled"
    NO_SHOW = "no_show"


_OPEN = {
    InterviewStatus.SCHEDULED,
    InterviewStatus.CONFIRMED,
    InterviewStatus.RESCHEDULED,
}


@dataclass
class Interview(StatefulEntity):
    STATUS_ENUM = InterviewStatus
    TERMINAL_STATES = frozenset({InterviewStatus.COMPLETED, InterviewStatus.CANCELLED})

    user_id: str
    job_id: str
    scheduled_at: datetime
    type: InterviewType = InterviewType.VIDEO
    duration_minutes: int = DEFAULT_DURATION_MINUTES
    location: Optional[str] = None
    notes: str = ""
    communication_id: Optional[str] = None
    status: InterviewStatus = InterviewStatus.SCHEDULED
    id: str = field(default_factory=lambda: new_id("interview"))
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    def __post_init__(self):
        self.type = InterviewType(self.type)
        self._seal()

    # Transitions
    def confirm(self) -> bool:
        return self._transition(
            "confirm", {InterviewStatus.SCHEDULED}, InterviewStatus.CONFIRMED
        )

    def complete(self) -> bool:
        return self._transition(
            "complete", _OPEN | {InterviewStatus.NO_SHOW}, InterviewStatus.COMPLETED
        )

    def cancel(self) -> bool:
        return self._transition(
            "cancel", _OPEN | {InterviewStatus.NO_SHOW}, InterviewStatus.CANCELLED
        )

    def reschedule(self, when: datetime, duration_minutes: Optional[int] = None) -> bool:
        changes: Dict[str, Any] = {"scheduled_at": when}
        if duration_minutes:
            changes["duration_minutes"] = duration_minutes
        return self._transition(
            "reschedule",
            _OPEN | {InterviewStatus.NO_SHOW},
            InterviewStatus.RESCHEDULED,
            **changes,
        )

    def mark_no_show(self) -> bool:
        return self._transition("mark_no_show", _OPEN, InterviewStatus.NO_SHOW)

    # Accessors
    @property
    def end_time(self) -> datetime:
        return self.scheduled_at + timedelta(minutes=self.duration_minutes)

    @property
    def is_active(self) -> bool:
        return self.status in _OPEN

    def is_upcoming(self, now: Optional[datetime] = None) -> bool:
        return self.scheduled_at > (now or utcnow()) and self.is_active

    def overlaps(self, other: "Interview") -> bool:
        return self.scheduled_at < other.end_time and other.scheduled_at < self.end_time

    @property
    def formatted_duration(self) -> str:
        hours, minutes = divmod(self.duration_minutes, 60)
        if hours:
            return f"{hours}h {minutes}m" if minutes else f"{hours}h"
        return f"{minutes}m"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "job_id": self.job_id,
            "scheduled_at": format_datetime(self.scheduled_at),
            "type": self.type.value,
            "duration_minutes": self.duration_minutes,
            "location": self.location,
            "notes": self.notes,
            "communication_id": self.communication_id,
            "status": self.status.value,
            "created_at": format_datetime(self.created_at),
            "updated_at": format_datetime(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Interview":
        return cls(
            id=data["id"],
            user_id=data["user_id"],
            job_id=data["job_id"],
            scheduled_at=parse_datetime(data["scheduled_at"]),
            type=data.get("type", InterviewType.VIDEO.value),
            duration_minutes=int(data.get("duration_minutes") or DEFAULT_DURATION_MINUTES),
            location=data.get("location"),
            notes=data.get("notes") or "",
            communication_id=data.get("communication_id"),
            status=data.get("status", InterviewStatus.SCHEDULED.value),
            created_at=parse_datetime(data.get("created_at")) or utcnow(),
            updated_at=parse_datetime(data.get("updated_at")) or utcnow(),
        )
