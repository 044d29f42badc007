"""
Conversion between cleaned rows and ``Application`` records.
"""

import uuid
import logging
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import ValidationError

from application_import.core.exceptions import RecordConversionError
from application_import.models import Application
from application_import.utils.date import normalize_date
from .fields import APPLICATION_FIELDS, DATE_FIELDS, LIST_FIELDS
from .normalizers import (
    collapse_whitespace,
    generate_default_position,
    normalize_job_type,
    normalize_priority,
    normalize_status,
    split_list,
)
from .processors.csv_processor import SOURCE_RECORD_KEY

logger = logging.getLogger(__name__)

ID_PREFIX = "imported-"

_OPTIONAL_TEXT_FIELDS = (
    "location",
    "salary",
    "notes",
    "job_description",
    "contact_person",
    "contact_email",
    "contact_phone",
    "website",
    "company_website",
    "job_url",
)


def _cell(row: Dict[str, Any], mapping: Dict[str, str], field: str) -> Optional[str]:
    column = mapping.get(field)
    if column is None:
        return None
    value = row.get(column)
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _parse_score(value: Optional[str]) -> Optional[float]:
    if value is None:
        return None
    try:
        score = float(value.replace("%", "").strip())
    except ValueError:
        return None
    return min(100.0, max(0.0, score))


def convert_row_to_application(
    row: Dict[str, Any],
    mapping: Dict[str, str],
    *,
    today: Optional[date] = None,
    now: Optional[datetime] = None,
) -> Application:
    """
    Build an ``Application`` from one row.

    Unparseable dates become None; a missing applied date becomes ``today``.
    Tags and requirements are split on ``;``, ``,`` or ``|``. A missing
    position is replaced with a placeholder derived from the tags.

    Raises:
        RecordConversionError: if the row has no company or the record
            fails model validation
    """
    row_number = row.get(SOURCE_RECORD_KEY)
    company = _cell(row, mapping, "company")
    if company is None:
        raise RecordConversionError(row_number, "Company name is required")

    today = today or date.today()
    now = now or datetime.now(timezone.utc)

    values: Dict[str, Any] = {
        "id": f"{ID_PREFIX}{uuid.uuid4()}",
        "company": collapse_whitespace(company),
        "created_at": now,
        "updated_at": now,
    }

    for field in DATE_FIELDS:
        raw = _cell(row, mapping, field)
        values[field] = normalize_date(raw, log_context=field) if raw else None
    if values["applied_date"] is None:
        values["applied_date"] = today.isoformat()

    for field in LIST_FIELDS:
        values[field] = split_list(_cell(row, mapping, field))

    for field in _OPTIONAL_TEXT_FIELDS:
        values[field] = _cell(row, mapping, field)

    position = _cell(row, mapping, "position")
    values["position"] = collapse_whitespace(position) if position else generate_default_position(values["tags"])

    status = _cell(row, mapping, "status")
    if status is not None:
        values["status"] = normalize_status(status)[0]
    job_type = _cell(row, mapping, "type")
    if job_type is not None:
        values["type"] = normalize_job_type(job_type)[0]
    priority = _cell(row, mapping, "priority")
    if priority is not None:
        values["priority"] = normalize_priority(priority)[0]

    values["ai_match_score"] = _parse_score(_cell(row, mapping, "ai_match_score"))

    try:
        return Application(**values)
    except ValidationError as exc:
        raise RecordConversionError(row_number, f"Invalid record: {exc.errors()[0]['msg']}") from exc


def application_to_row(application: Application, mapping: Dict[str, str]) -> Dict[str, Any]:
    """
    Render a stored application as a row keyed like the incoming file.

    Mapped fields use their source column name; the rest use the field name.
    """
    row: Dict[str, Any] = {}
    for field in APPLICATION_FIELDS:
        value = getattr(application, field)
        if value is None:
            continue
        if isinstance(value, list):
            if not value:
                continue
            value = "; ".join(value)
        elif isinstance(value, Enum):
            value = value.value
        elif not isinstance(value, str):
            value = str(value)
        row[mapping.get(field, field)] = value
    return row
