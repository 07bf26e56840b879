"""
User profile and parsed resume data consumed by the agents.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from models.base import new_id


@dataclass
class Education:
    degree: str
    field_of_study: str = ""
    school: str = ""
    year: Optional[int] = None

    def describe(self) -> str:
        text = self.degree
        if self.field_of_study:
            text += f" in {self.field_of_study}"
        if self.school:
            text += f" from {self.school}"
        if self.year:
            text += f" ({self.year})"
        return text


@dataclass
class Resume:
    """Already-parsed resume data. Parsing documents is out of scope."""

    user_id: str
    skills: List[str] = field(default_factory=list)
    experience_years: Optional[int] = None
    education: List[Education] = field(default_factory=list)
    summary: str = ""
    id: str = field(default_factory=lambda: new_id("resume"))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "skills": list(self.skills),
            "experience_years": self.experience_years,
            "education": [
                {
                    "degree": e.degree,
                    "field": e.field_of_study,
                    "school": e.school,
                    "year": e.year,
                }
                for e in self.education
            ],
            "summary": self.summary,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Resume":
        return cls(
            id=data.get("id") or new_id("resume"),
            user_id=data["user_id"],
            skills=list(data.get("skills") or []),
            experience_years=data.get("experience_years"),
            education=[
                Education(
                    degree=entry["degree"],
                    field_of_study=entry.get("field") or "",
                    school=entry.get("school") or "",
                    year=entry.get("year"),
                )
                for entry in data.get("education") or []
            ],
            summary=data.get("summary") or "",
        )


@dataclass
class UserProfile:
    user_id: str
    email: str = ""
    name: str = ""
    auto_send_applications: bool = False
    resume_id: Optional[str] = None

    @property
    def id(self) -> str:
        """Profiles are keyed by user id."""
        return self.user_id

    def to_dict(self) -> Dict[str, Any]:
        return {
            "user_id": self.user_id,
            "email": self.email,
            "name": self.name,
            "auto_send_applications": self.auto_send_applications,
            "resume_id": self.resume_id,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "UserProfile":
        return cls(
            user_id=data["user_id"],
            email=data.get("email") or "",
            name=data.get("name") or "",
            auto_send_applications=bool(data.get("auto_send_applications", False)),
            resume_id=data.get("resume_id"),
        )
