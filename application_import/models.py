"""
Typed domain record produced by an import.

``Application`` is the only shape that leaves the pipeline; everything before
it works on raw string rows.
"""
from datetime import date, datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator


class ApplicationStatus(str, Enum):
    PENDING = "Pending"
    APPLIED = "Applied"
    INTERVIEWING = "Interviewing"
    OFFERED = "Offered"
    REJECTED = "Rejected"
    ACCEPTED = "Accepted"
    WITHDRAWN = "Withdrawn"


class JobType(str, Enum):
    FULL_TIME = "Full-time"
    PART_TIME = "Part-time"
    INTERNSHIP = "Internship"
    CONTRACT = "Contract"
    FREELANCE = "Freelance"


class Priority(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"


DATE_FIELDS = (
    "applied_date",
    "response_date",
    "interview_date",
    "offer_date",
    "rejection_date",
    "follow_up_date",
)


class Application(BaseModel):
    """A single, validated job application."""

    id: str
    company: str
    position: str = ""
    location: Optional[str] = None
    type: JobType = JobType.FULL_TIME
    salary: Optional[str] = None
    status: ApplicationStatus = ApplicationStatus.PENDING
    applied_date: Optional[str] = None
    response_date: Optional[str] = None
    interview_date: Optional[str] = None
    offer_date: Optional[str] = None
    rejection_date: Optional[str] = None
    follow_up_date: Optional[str] = None
    notes: Optional[str] = None
    job_description: Optional[str] = None
    requirements: List[str] = Field(default_factory=list)
    contact_person: Optional[str] = None
    contact_email: Optional[str] = None
    contact_phone: Optional[str] = None
    website: Optional[str] = None
    company_website: Optional[str] = None
    job_url: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    priority: Priority = Priority.MEDIUM
    ai_match_score: Optional[float] = Field(default=None, ge=0, le=100)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("company")
    @classmethod
    def company_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("company must not be empty")
        return value

    @field_validator(*DATE_FIELDS)
    @classmethod
    def calendar_date(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        try:
            parsed = date.fromisoformat(value)
        except ValueError as exc:
            raise ValueError(f"'{value}' is not a YYYY-MM-DD date") from exc
        if parsed.isoformat() != value:
            raise ValueError(f"'{value}' is not a YYYY-MM-DD date")
        return value
