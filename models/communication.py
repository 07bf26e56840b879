"""
Inbound and outbound correspondence tied to jobs and applications.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional, Union

from models.base import StatefulEntity, format_datetime, new_id, parse_datetime, utcnow


class CommunicationType(Enum):
    EMAIL = "email"
    PHONE = "phone"
    VIDEO = "video"
    IN_PERSON = "in_person"
    OTHER = "other"


class Direction(Enum):
    INCOMING = "incoming"
    OUTGOING = "outgoing"


class CommunicationStatus(Enum):
    """Communication status enumeration."""

    DRAFT = "draft"
    SCHEDULED = "scheduled"
    SENT = "sent"
    DELIVERED = "delivered"
    READ = "read"
    FAILED = "failed"


class EmailType(Enum):
    """Classification categories for inbound email."""

    INTERVIEW_INVITATION = "interview_invitation"
    APPLICATION_RECEIVED = "application_received"
    REJECTION = "rejection"
    OFFER = "offer"
    FOLLOW_UP_NEEDED = "follow_up_needed"
    OTHER = "other"

    @classmethod
    def parse(cls, value: Any) -> "EmailType":
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.OTHER


@dataclass
class EmailClassification:
    """Structured verdict produced for one inbound email."""

    is_job_related: bool
    email_type: EmailType = EmailType.OTHER
    company_name: Optional[str] = None
    position_title: Optional[str] = None
    urgency_level: int = 1
    suggested_next_step: Optional[str] = None
    interview_datetime: Optional[datetime] = None
    interview_duration_minutes: Optional[int] = None
    interview_type: Optional[str] = None
    interview_location: Optional[str] = None

    @property
    def is_interview_invitation(self) -> bool:
        return self.is_job_related and self.email_type == EmailType.INTERVIEW_INVITATION

    def to_dict(self) -> Dict[str, Any]:
        return {
            "is_job_related": self.is_job_related,
            "email_type": self.email_type.value,
            "company_name": self.company_name,
            "position_title": self.position_title,
            "urgency_level": self.urgency_level,
            "suggested_next_step": self.suggested_next_step,
            "interview_datetime": format_datetime(self.interview_datetime),
            "interview_duration_minutes": self.interview_duration_minutes,
            "interview_type": self.interview_type,
            "interview_location": self.interview_location,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EmailClassification":
        return cls(
            is_job_related=bool(data.get("is_job_related")),
            email_type=EmailType.parse(data.get("email_type")),
            company_name=data.get("company_name"),
            position_title=data.get("position_title"),
            urgency_level=int(data.get("urgency_level") or 1),
            suggested_next_step=data.get("suggested_next_step"),
            interview_datetime=parse_datetime(data.get("interview_datetime")),
            interview_duration_minutes=data.get("interview_duration_minutes"),
            interview_type=data.get("interview_type"),
            interview_location=data.get("interview_location"),
        )


@dataclass
class IncomingEmailMetadata:
    KIND = "incoming_email"

    sender: str
    subject: str = ""
    provider_message_id: Optional[str] = None
    classification: Optional[EmailClassification] = None
    version: int = 1


@dataclass
class FollowUpMetadata:
    KIND = "follow_up"

    recipient: str
    subject: str = ""
    follow_up_number: int = 1
    previous_communication_at: Optional[datetime] = None
    version: int = 1


@dataclass
class SubmissionMetadata:
    KIND = "submission"

    recipient: str
    subject: str = ""
    version: int = 1


CommunicationMetadata = Union[IncomingEmailMetadata, FollowUpMetadata, SubmissionMetadata]


def metadata_to_dict(metadata: Optional[CommunicationMetadata]) -> Optional[Dict[str, Any]]:
    if metadata is None:
        return None
    data: Dict[str, Any] = {"kind": metadata.KIND, "version": metadata.version}
    if isinstance(metadata, IncomingEmailMetadata):
        data.update(
            sender=metadata.sender,
            subject=metadata.subject,
            provider_message_id=metadata.provider_message_id,
            classification=(
                metadata.classification.to_dict() if metadata.classification else None
            ),
        )
    elif isinstance(metadata, FollowUpMetadata):
        data.update(
            recipient=metadata.recipient,
            subject=metadata.subject,
            follow_up_number=metadata.follow_up_number,
            previous_communication_at=format_datetime(metadata.previous_communication_at),
        )
    else:
        data.update(recipient=metadata.recipient, subject=metadata.subject)
    return data


def metadata_from_dict(data: Optional[Dict[str, Any]]) -> Optional[CommunicationMetadata]:
    if not data:
        return None
    kind = data.get("kind")
    version = data.get("version", 1)
    if kind == IncomingEmailMetadata.KIND:
        classification = data.get("classification")
        return IncomingEmailMetadata(
            sender=data.get("sender", ""),
            subject=data.get("subject", ""),
            provider_message_id=data.get("provider_message_id"),
            classification=(
                EmailClassification.from_dict(classification) if classification else None
            ),
            version=version,
        )
    if kind == FollowUpMetadata.KIND:
        return FollowUpMetadata(
            recipient=data.get("recipient", ""),
            subject=data.get("subject", ""),
            follow_up_number=int(data.get("follow_up_number") or 1),
            previous_communication_at=parse_datetime(data.get("previous_communication_at")),
            version=version,
        )
    if kind == SubmissionMetadata.KIND:
        return SubmissionMetadata(
            recipient=data.get("recipient", ""),
            subject=data.get("subject", ""),
            version=version,
        )
    raise ValueError(f"Unknown communication metadata kind: {kind!r}")


@dataclass
class Communication(StatefulEntity):
    """One message exchanged with a company."""

    STATUS_ENUM = CommunicationStatus

    user_id: str
    direction: Direction
    job_id: Optional[str] = None
    application_id: Optional[str] = None
    type: CommunicationType = CommunicationType.EMAIL
    status: CommunicationStatus = CommunicationStatus.DRAFT
    content: str = ""
    sent_at: Optional[datetime] = None
    metadata: Optional[CommunicationMetadata] = None
    id: str = field(default_factory=lambda: new_id("comm"))
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    def __post_init__(self):
        self.direction = Direction(self.direction)
        self.type = CommunicationType(self.type)
        self._seal()

    # Transitions
    def send(self, at: Optional[datetime] = None) -> bool:
        return self._transition(
            "send",
            {CommunicationStatus.DRAFT, CommunicationStatus.SCHEDULED},
            CommunicationStatus.SENT,
            sent_at=at or utcnow(),
        )

    def schedule(self, when: datetime) -> bool:
        return self._transition(
            "schedule",
            {CommunicationStatus.DRAFT},
            CommunicationStatus.SCHEDULED,
            sent_at=when,
        )

    def mark_delivered(self) -> bool:
        return self._transition(
            "mark_delivered", {CommunicationStatus.SENT}, CommunicationStatus.DELIVERED
        )

    def mark_as_read(self) -> bool:
        if self.direction != Direction.INCOMING:
            return False
        sources = set(CommunicationStatus) - {CommunicationStatus.READ}
        return self._transition("mark_as_read", sources, CommunicationStatus.READ)

    def mark_failed(self) -> bool:
        return self._transition(
            "mark_failed",
            {CommunicationStatus.DRAFT, CommunicationStatus.SCHEDULED},
            CommunicationStatus.FAILED,
        )

    # Accessors
    @property
    def is_incoming(self) -> bool:
        return self.direction == Direction.INCOMING

    @property
    def is_outgoing(self) -> bool:
        return self.direction == Direction.OUTGOING

    @property
    def is_follow_up(self) -> bool:
        return isinstance(self.metadata, FollowUpMetadata)

    @property
    def is_sent(self) -> bool:
        return self.status in (
            CommunicationStatus.SENT,
            CommunicationStatus.DELIVERED,
            CommunicationStatus.READ,
        )

    @property
    def occurred_at(self) -> datetime:
        """When the message was sent or received; creation time as a fallback."""
        return self.sent_at or self.created_at

    @property
    def classification(self) -> Optional[EmailClassification]:
        if isinstance(self.metadata, IncomingEmailMetadata):
            return self.metadata.classification
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "direction": self.direction.value,
            "job_id": self.job_id,
            "application_id": self.application_id,
            "type": self.type.value,
            "status": self.status.value,
            "content": self.content,
            "sent_at": format_datetime(self.sent_at),
            "metadata": metadata_to_dict(self.metadata),
            "created_at": format_datetime(self.created_at),
            "updated_at": format_datetime(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Communication":
        return cls(
            id=data["id"],
            user_id=data["user_id"],
            direction=data["direction"],
            job_id=data.get("job_id"),
            application_id=data.get("application_id"),
            type=data.get("type", CommunicationType.EMAIL.value),
            status=data.get("status", CommunicationStatus.DRAFT.value),
            content=data.get("content") or "",
            sent_at=parse_datetime(data.get("sent_at")),
            metadata=metadata_from_dict(data.get("metadata")),
            created_at=parse_datetime(data.get("created_at")) or utcnow(),
            updated_at=parse_datetime(data.get("updated_at")) or utcnow(),
        )
