"""
Row validation and cleaning.

``validate_rows`` walks the parsed rows once, in order, and returns the
issues it found together with cleaned copies of the rows that may be
imported. Bad data is reported, never raised, and the caller's rows are
never modified.
"""

import re
import logging
from datetime import date
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from application_import.models import ApplicationStatus
from application_import.schemas import Severity, ValidationIssue, ValidationResult, ValidationSummary
from application_import.utils.date import normalize_date
from .fields import DATE_FIELDS, FREE_TEXT_FIELDS, LIST_FIELDS, URL_FIELDS
from .mojibake import repair_mojibake
from .normalizers import (
    collapse_whitespace,
    generate_default_position,
    normalize_email,
    normalize_job_type,
    normalize_location,
    normalize_phone,
    normalize_priority,
    normalize_salary,
    normalize_status,
    normalize_url,
)
from .processors.csv_processor import SOURCE_RECORD_KEY

logger = logging.getLogger(__name__)

DUPLICATE_COLUMN = "Duplicate"

_INLINE_WHITESPACE = re.compile(r"[ \t]+")

# Dates that must not precede the applied date
_CHRONOLOGY_CHECKS = (
    ("response_date", "Response date"),
    ("interview_date", "Interview date"),
    ("offer_date", "Offer date"),
    ("rejection_date", "Rejection date"),
)

# Status values that imply a specific date field
_STATUS_DATE_CHECKS = (
    (ApplicationStatus.INTERVIEWING, "interview_date", "Interview date"),
    (ApplicationStatus.OFFERED, "offer_date", "Offer date"),
    (ApplicationStatus.REJECTED, "rejection_date", "Rejection date"),
)

_LABELS = {
    "type": "Job type",
    "priority": "Priority",
    "status": "Status",
}


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _preprocess(row: Dict[str, Any]) -> Dict[str, Any]:
    cleaned = {}
    for key, value in row.items():
        if isinstance(value, str):
            value = repair_mojibake(value.strip())
        cleaned[key] = value
    return cleaned


class _RowContext:
    """Collects issues for one row against its cleaned copy."""

    def __init__(self, row_number: int, cleaned: Dict[str, Any], mapping: Dict[str, str]):
        self.row_number = row_number
        self.cleaned = cleaned
        self.mapping = mapping
        self.errors: List[ValidationIssue] = []
        self.warnings: List[ValidationIssue] = []

    def column(self, field: str) -> Optional[str]:
        return self.mapping.get(field)

    def value(self, field: str) -> Any:
        column = self.column(field)
        if column is None:
            return None
        value = self.cleaned.get(column)
        return None if _is_blank(value) else value

    def set(self, field: str, value: Any) -> None:
        self.cleaned[self.mapping[field]] = value

    def error(self, column: str, message: str, suggested_fix: Optional[str] = None) -> None:
        self.errors.append(
            ValidationIssue(row=self.row_number, column=column, message=message,
                            severity=Severity.ERROR, suggested_fix=suggested_fix)
        )

    def warn(self, column: str, message: str, suggested_fix: Optional[str] = None) -> None:
        self.warnings.append(
            ValidationIssue(row=self.row_number, column=column, message=message,
                            severity=Severity.WARNING, suggested_fix=suggested_fix)
        )


def _check_required(ctx: _RowContext) -> None:
    if ctx.value("company") is None:
        ctx.error(ctx.column("company") or "company", "Company name is required",
                  "Add the company name or remove this row")

    position_column = ctx.column("position")
    if position_column is not None and ctx.value("position") is None:
        placeholder = generate_default_position(ctx.value("tags"))
        ctx.set("position", placeholder)
        ctx.warn(position_column, f"Missing position, using placeholder '{placeholder}'",
                 "Enter the actual job title")


def _apply_normalizer(
    ctx: _RowContext,
    field: str,
    normalizer: Callable[[Any], Tuple[Any, bool]],
    invalid_message: str,
    suggested_fix: Optional[str] = None,
    keep_default: bool = False,
) -> None:
    """
    Run one ``(value, recognized)`` normalizer against a mapped field.

    An unrecognized value is left as-is and warned about, unless
    ``keep_default`` is set (enumerations), in which case the normalizer's
    default replaces it.
    """
    raw = ctx.value(field)
    if raw is None:
        return
    column = ctx.column(field)
    normalized, recognized = normalizer(raw)
    value = normalized.value if isinstance(normalized, Enum) else normalized

    if not recognized:
        if keep_default:
            ctx.set(field, value)
            ctx.warn(column, f"{invalid_message}: '{raw}', using '{value}'", suggested_fix)
        else:
            ctx.warn(column, f"{invalid_message}: '{raw}'", suggested_fix)
        return

    if value != raw:
        ctx.set(field, value)
        ctx.warn(column, f"{_LABELS.get(field, field.replace('_', ' ').capitalize())} normalized from '{raw}' to '{value}'")


def _normalize_dates(ctx: _RowContext) -> None:
    for field in DATE_FIELDS:
        raw = ctx.value(field)
        if raw is None:
            continue
        column = ctx.column(field)
        normalized = normalize_date(raw, log_context=field)
        if normalized is None:
            ctx.warn(column, f"Invalid date format: '{raw}'", "Use YYYY-MM-DD")
        elif normalized != raw:
            ctx.set(field, normalized)
            ctx.warn(column, f"Date normalized from '{raw}' to '{normalized}'")


def _check_score(ctx: _RowContext) -> None:
    raw = ctx.value("ai_match_score")
    if raw is None:
        return
    try:
        score = float(str(raw).replace("%", "").strip())
    except ValueError:
        ctx.warn(ctx.column("ai_match_score"), f"Match score is not a number: '{raw}'")
        return
    if not 0 <= score <= 100:
        ctx.warn(ctx.column("ai_match_score"), f"Match score {score:g} is outside 0-100 and will be clamped")


def _normalize_text(ctx: _RowContext) -> None:
    # Whitespace-only rewrites are silent, like trimming
    handled = set(DATE_FIELDS) | set(URL_FIELDS) | {
        "contact_email", "contact_phone", "status", "type", "priority", "salary", "location", "ai_match_score",
    }
    for field, column in ctx.mapping.items():
        if field in handled or field in LIST_FIELDS:
            continue
        value = ctx.cleaned.get(column)
        if not isinstance(value, str):
            continue
        if field in FREE_TEXT_FIELDS:
            ctx.cleaned[column] = _INLINE_WHITESPACE.sub(" ", value).strip()
        else:
            ctx.cleaned[column] = collapse_whitespace(value)


def _normalize_values(ctx: _RowContext) -> None:
    _normalize_dates(ctx)
    _apply_normalizer(ctx, "contact_email", normalize_email, "Invalid email format",
                      "Use a format like name@company.com")
    for field in URL_FIELDS:
        _apply_normalizer(ctx, field, normalize_url, "Invalid URL", "Use a full address like https://company.com")
    _apply_normalizer(ctx, "status", normalize_status, "Unrecognized status",
                      "Use Pending, Applied, Interviewing, Offered, Rejected, Accepted or Withdrawn",
                      keep_default=True)
    _apply_normalizer(ctx, "type", normalize_job_type, "Unrecognized job type", keep_default=True)
    _apply_normalizer(ctx, "priority", normalize_priority, "Unrecognized priority", keep_default=True)
    _apply_normalizer(ctx, "salary", normalize_salary, "Salary has no amount")
    _apply_normalizer(ctx, "location", normalize_location, "Invalid location")
    _apply_normalizer(ctx, "contact_phone", normalize_phone, "Invalid phone number")
    _check_score(ctx)
    _normalize_text(ctx)


def _check_business_rules(ctx: _RowContext) -> None:
    applied = _valid_date(ctx.value("applied_date"))
    if applied is not None:
        for field, label in _CHRONOLOGY_CHECKS:
            other = _valid_date(ctx.value(field))
            if other is not None and other < applied:
                ctx.warn(ctx.column(field), f"{label} ({other}) is before applied date ({applied})",
                         "Check the dates")

    status_value = ctx.value("status")
    if status_value is None:
        return
    status, recognized = normalize_status(status_value)
    if not recognized:
        return
    for expected_status, field, label in _STATUS_DATE_CHECKS:
        if status == expected_status and _valid_date(ctx.value(field)) is None:
            ctx.warn(ctx.column("status"), f"Status is {status.value} but no {label.lower()} is set",
                     f"Add the {label.lower()}")


def _valid_date(value: Any) -> Optional[str]:
    # Only values already in YYYY-MM-DD form take part in comparisons
    if value is None:
        return None
    text = str(value)
    try:
        return text if date.fromisoformat(text).isoformat() == text else None
    except ValueError:
        return None


def _duplicate_key(ctx: _RowContext) -> Optional[str]:
    company = ctx.value("company")
    if company is None:
        return None
    position = ctx.value("position") or ""
    return f"{str(company).lower()}|{str(position).lower()}"


def validate_rows(rows: Sequence[Dict[str, Any]], mapping: Dict[str, str]) -> ValidationResult:
    """
    Validate and clean parsed rows against a field mapping.

    Args:
        rows: Parsed rows keyed by source column; ``_source_record_number``
            is used for issue row numbers when present
        mapping: Field -> source column

    Returns:
        ValidationResult with errors, warnings and the cleaned rows that have
        no errors, in input order
    """
    result = ValidationResult()
    seen: Dict[str, int] = {}

    for index, row in enumerate(rows):
        row_number = row.get(SOURCE_RECORD_KEY) or index + 1
        ctx = _RowContext(row_number, _preprocess(row), mapping)

        _check_required(ctx)
        _normalize_values(ctx)

        key = _duplicate_key(ctx)
        if key is not None:
            if key in seen:
                ctx.warn(DUPLICATE_COLUMN, f"Possible duplicate of row {seen[key]}",
                         "Remove the duplicate or merge the rows")
            else:
                seen[key] = row_number

        _check_business_rules(ctx)

        result.errors.extend(ctx.errors)
        result.warnings.extend(ctx.warnings)
        if not ctx.errors:
            result.cleaned_rows.append(ctx.cleaned)

    logger.info(
        f"Validated {len(rows)} rows: {len(result.errors)} errors, "
        f"{len(result.warnings)} warnings, {len(result.cleaned_rows)} rows kept"
    )
    return result


def generate_validation_summary(
    errors: Sequence[ValidationIssue], warnings: Sequence[ValidationIssue]
) -> ValidationSummary:
    """Summary sentence and next steps for a validation pass."""
    error_count = len(errors)
    warning_count = len(warnings)
    duplicate_count = sum(1 for issue in warnings if issue.column == DUPLICATE_COLUMN)

    if error_count:
        summary = f"Found {error_count} critical errors that must be fixed before importing"
        if warning_count:
            summary += f" and {warning_count} warnings"
    elif warning_count:
        summary = f"Found {warning_count} warnings. Data can be imported with automatic corrections"
    else:
        summary = "Data validation passed successfully"

    recommendations: List[str] = []
    if error_count:
        recommendations.append(f"Fix {error_count} critical errors before importing")
        recommendations.append("Rows with errors will be skipped if you force the import")
    if warning_count:
        recommendations.append("Review auto-corrections and proceed with import")
    if duplicate_count:
        recommendations.append(f"{duplicate_count} possible duplicates detected: review before proceeding")
    if not error_count and not warning_count:
        recommendations.append("Data is ready to import")

    return ValidationSummary(
        can_proceed=error_count == 0,
        total_issues=error_count + warning_count,
        critical_errors=error_count,
        warnings=warning_count,
        summary=summary,
        recommendations=recommendations,
    )
