"""
Field vocabulary shared by detection, validation and conversion.

Keys are the ``Application`` attribute names.
"""
from application_import.models import DATE_FIELDS

APPLICATION_FIELDS = (
    "company",
    "position",
    "location",
    "status",
    "applied_date",
    "response_date",
    "interview_date",
    "offer_date",
    "rejection_date",
    "follow_up_date",
    "notes",
    "job_description",
    "requirements",
    "contact_email",
    "contact_person",
    "contact_phone",
    "job_url",
    "company_website",
    "website",
    "tags",
    "salary",
    "type",
    "priority",
    "ai_match_score",
)

REQUIRED_FIELDS = ("company",)
URL_FIELDS = ("job_url", "website", "company_website")
LIST_FIELDS = ("tags", "requirements")
FREE_TEXT_FIELDS = ("notes", "job_description")
ENUM_FIELDS = ("status", "type", "priority")

__all__ = [
    "APPLICATION_FIELDS",
    "DATE_FIELDS",
    "REQUIRED_FIELDS",
    "URL_FIELDS",
    "LIST_FIELDS",
    "FREE_TEXT_FIELDS",
    "ENUM_FIELDS",
]
