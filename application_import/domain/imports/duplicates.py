"""
Duplicate detection across incoming rows and previously stored applications.

Rows and stored records are first reduced to ``DuplicateCandidate`` values;
scoring and grouping only ever see those. Grouping is single linkage from
each unprocessed row, which makes detection O(n^2) in the number of
candidates. That is fine for the hundreds to low thousands of rows a
tracker export contains, but very large uploads should pass a
CancellationToken so the caller can abort the pass.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

from application_import.core.cancellation import CancellationToken
from application_import.core.config import settings
from application_import.models import Application, ApplicationStatus
from application_import.schemas import (
    DuplicateGroup,
    DuplicateMember,
    DuplicateResolution,
    DuplicateSummary,
    ResolutionAction,
    ResolutionSummary,
    SuggestedResolution,
)
from application_import.utils.date import days_between, normalize_date
from application_import.utils.similarity import enhanced_string_similarity
from .fields import DATE_FIELDS, FREE_TEXT_FIELDS, LIST_FIELDS
from .normalizers import normalize_status, split_list
from .processors.csv_processor import SOURCE_RECORD_KEY
from .records import application_to_row

logger = logging.getLogger(__name__)

COMPANY_WEIGHT = 0.35
POSITION_WEIGHT = 0.30
LOCATION_WEIGHT = 0.10
URL_WEIGHT = 0.15
EMAIL_WEIGHT = 0.10
DATE_WEIGHT = 0.10

COMPANY_REASON_MIN = 0.8
POSITION_REASON_MIN = 0.7
LOCATION_REASON_MIN = 0.8

ROW_REF_PREFIX = "row:"
EXISTING_REF_PREFIX = "existing:"

STATUS_PRIORITY = {
    ApplicationStatus.PENDING: 1,
    ApplicationStatus.APPLIED: 2,
    ApplicationStatus.WITHDRAWN: 2,
    ApplicationStatus.INTERVIEWING: 3,
    ApplicationStatus.REJECTED: 3,
    ApplicationStatus.OFFERED: 4,
    ApplicationStatus.ACCEPTED: 5,
}


@dataclass
class DuplicateCandidate:
    """The comparable part of one row or stored application."""
    ref: str
    index: int
    company: Optional[str] = None
    position: Optional[str] = None
    location: Optional[str] = None
    job_url: Optional[str] = None
    contact_email: Optional[str] = None
    applied_date: Optional[str] = None  # YYYY-MM-DD
    is_existing: bool = False
    data: Dict[str, Any] = field(default_factory=dict)


@dataclass
class SimilarityResult:
    score: float
    reasons: List[str] = field(default_factory=list)


def row_ref(row: Dict[str, Any], index: int) -> str:
    return f"{ROW_REF_PREFIX}{row.get(SOURCE_RECORD_KEY) or index + 1}"


def existing_ref(application: Application) -> str:
    return f"{EXISTING_REF_PREFIX}{application.id}"


def _text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def candidate_from_row(row: Dict[str, Any], mapping: Dict[str, str], index: int) -> DuplicateCandidate:
    def value(field_name: str) -> Optional[str]:
        column = mapping.get(field_name)
        return _text(row.get(column)) if column else None

    applied = value("applied_date")
    return DuplicateCandidate(
        ref=row_ref(row, index),
        index=index,
        company=value("company"),
        position=value("position"),
        location=value("location"),
        job_url=value("job_url"),
        contact_email=value("contact_email"),
        applied_date=normalize_date(applied, log_context="duplicates") if applied else None,
        data=dict(row),
    )


def candidate_from_application(application: Application, mapping: Dict[str, str], index: int) -> DuplicateCandidate:
    return DuplicateCandidate(
        ref=existing_ref(application),
        index=index,
        company=_text(application.company),
        position=_text(application.position),
        location=_text(application.location),
        job_url=_text(application.job_url),
        contact_email=_text(application.contact_email),
        applied_date=application.applied_date,
        is_existing=True,
        data=application_to_row(application, mapping),
    )


def calculate_similarity(first: DuplicateCandidate, second: DuplicateCandidate) -> SimilarityResult:
    """
    Weighted similarity of two candidates in [0, 1].

    Only signals present on both sides count toward the total weight, so a
    missing value neither helps nor hurts. The result is symmetric.
    """
    weighted = 0.0
    total_weight = 0.0
    reasons: List[str] = []

    def add_text(a: Optional[str], b: Optional[str], weight: float, minimum: float, label: str) -> None:
        nonlocal weighted, total_weight
        if not a or not b:
            return
        similarity = enhanced_string_similarity(a, b)
        weighted += similarity * weight
        total_weight += weight
        if similarity >= 1.0:
            reasons.append(f"Identical {label}")
        elif similarity >= minimum:
            reasons.append(f"Similar {label} ({round(similarity * 100)}%)")

    add_text(first.company, second.company, COMPANY_WEIGHT, COMPANY_REASON_MIN, "company name")
    add_text(first.position, second.position, POSITION_WEIGHT, POSITION_REASON_MIN, "position")
    add_text(first.location, second.location, LOCATION_WEIGHT, LOCATION_REASON_MIN, "location")

    if first.job_url and second.job_url:
        total_weight += URL_WEIGHT
        if first.job_url == second.job_url:
            weighted += URL_WEIGHT
            reasons.append("Same job URL")

    if first.contact_email and second.contact_email:
        total_weight += EMAIL_WEIGHT
        if first.contact_email.lower() == second.contact_email.lower():
            weighted += EMAIL_WEIGHT
            reasons.append("Same contact email")

    if first.applied_date and second.applied_date:
        days = days_between(first.applied_date, second.applied_date)
        if days is not None:
            window = settings.duplicate_date_window_days
            credit = max(0.0, 1 - days / window)
            total_weight += DATE_WEIGHT
            weighted += credit * DATE_WEIGHT
            if days == 0:
                reasons.append("Applied on the same date")
            elif credit > 0:
                reasons.append(f"Applied within {days} day{'s' if days != 1 else ''}")

    score = weighted / total_weight if total_weight else 0.0
    return SimilarityResult(score=min(1.0, max(0.0, score)), reasons=reasons)


def suggest_resolution(
    confidence: float,
    similarity_threshold: Optional[float] = None,
    high_confidence_threshold: Optional[float] = None,
) -> SuggestedResolution:
    threshold = settings.duplicate_similarity_threshold if similarity_threshold is None else similarity_threshold
    high = settings.duplicate_high_confidence_threshold if high_confidence_threshold is None else high_confidence_threshold
    if confidence >= high:
        return SuggestedResolution.MERGE
    if confidence >= threshold:
        return SuggestedResolution.SKIP_DUPLICATES
    return SuggestedResolution.KEEP_ALL


def _member(candidate: DuplicateCandidate) -> DuplicateMember:
    return DuplicateMember(ref=candidate.ref, index=candidate.index, data=candidate.data, is_existing=candidate.is_existing)


def detect_duplicates(
    rows: Sequence[Dict[str, Any]],
    mapping: Dict[str, str],
    existing_records: Optional[Sequence[Application]] = None,
    *,
    similarity_threshold: Optional[float] = None,
    high_confidence_threshold: Optional[float] = None,
    cancel_token: Optional[CancellationToken] = None,
) -> List[DuplicateGroup]:
    """
    Group incoming rows (and stored applications) that look like the same application.

    Each unprocessed candidate, in order, collects every later unprocessed
    candidate scoring at least the threshold against it. Stored records are
    never compared with each other. Groups of one are dropped.

    Raises:
        ImportCancelledError: if ``cancel_token`` is cancelled mid-pass
    """
    threshold = settings.duplicate_similarity_threshold if similarity_threshold is None else similarity_threshold
    candidates = [candidate_from_row(row, mapping, index) for index, row in enumerate(rows)]
    candidates.extend(
        candidate_from_application(application, mapping, index)
        for index, application in enumerate(existing_records or [])
    )

    processed = set()
    groups: List[DuplicateGroup] = []
    for i, seed in enumerate(candidates):
        if cancel_token is not None:
            cancel_token.raise_if_cancelled("duplicate detection")
        if i in processed:
            continue

        member_ids = [i]
        best = SimilarityResult(score=0.0)
        for j in range(i + 1, len(candidates)):
            other = candidates[j]
            if j in processed or (seed.is_existing and other.is_existing):
                continue
            result = calculate_similarity(seed, other)
            if result.score >= threshold:
                member_ids.append(j)
                processed.add(j)
                if result.score > best.score:
                    best = result

        if len(member_ids) < 2:
            continue
        processed.add(i)

        confidence = round(best.score, 4)
        groups.append(
            DuplicateGroup(
                id=f"group-{len(groups) + 1}",
                members=[_member(candidates[k]) for k in member_ids],
                confidence=confidence,
                match_reasons=best.reasons,
                suggested_resolution=suggest_resolution(confidence, threshold, high_confidence_threshold),
            )
        )

    logger.info(f"Duplicate detection found {len(groups)} groups among {len(candidates)} candidates")
    return groups


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _later_date(values: List[Any]) -> Any:
    dated = [(normalize_date(value, log_context="merge"), value) for value in values]
    parsed = [item for item in dated if item[0] is not None]
    if not parsed:
        return values[0]
    return max(parsed, key=lambda item: item[0])[0]


def _most_advanced_status(values: List[Any]) -> Any:
    best_value = values[0]
    best_rank = 0
    for value in values:
        status, recognized = normalize_status(value)
        rank = STATUS_PRIORITY[status] if recognized else 0
        if rank > best_rank:
            best_rank = rank
            best_value = status.value
    return best_value


def generate_merge_preview(members: Sequence[DuplicateMember], mapping: Dict[str, str]) -> Dict[str, Any]:
    """
    Combine the members of a group into one row keyed like the first member.

    For each mapped field: non-empty beats empty, the later date wins for
    dates, the more advanced status wins, the longer text wins for free
    text, and tags/requirements are merged without case-insensitive repeats.
    Other fields keep the first non-empty value.
    """
    if not members:
        return {}
    merged = dict(members[0].data)

    for field_name, column in mapping.items():
        values = [member.data.get(column) for member in members if not _is_blank(member.data.get(column))]
        if not values:
            continue
        if field_name in DATE_FIELDS:
            merged[column] = _later_date(values)
        elif field_name == "status":
            merged[column] = _most_advanced_status(values)
        elif field_name in FREE_TEXT_FIELDS:
            merged[column] = max(values, key=lambda value: len(str(value)))
        elif field_name in LIST_FIELDS:
            items: List[str] = []
            for value in values:
                items.extend(split_list(value))
            merged[column] = "; ".join(split_list(items))
        else:
            merged[column] = values[0]

    return merged


def _overwrite(row: Dict[str, Any], merged_data: Dict[str, Any]) -> Dict[str, Any]:
    updated = dict(merged_data)
    updated[SOURCE_RECORD_KEY] = row[SOURCE_RECORD_KEY]
    return updated


def apply_resolutions(
    rows: Sequence[Dict[str, Any]],
    resolutions: Sequence[DuplicateResolution],
    existing_records: Optional[Sequence[Application]] = None,
) -> Tuple[List[Dict[str, Any]], ResolutionSummary]:
    """
    Apply the reviewer's duplicate decisions to a copy of the rows.

    ``merge`` and ``update`` overwrite the primary with ``merged_data``;
    ``skip`` and ``merge`` drop the secondary row (``skip`` without a
    secondary drops the primary). A primary that refers to a stored record
    cannot be overwritten here, so its merged data is returned in
    ``existing_updates`` for the persistence layer.

    Unknown or already-removed refs are counted as ignored, which makes
    re-applying the same resolutions to the output a no-op.
    """
    result = []
    for index, row in enumerate(rows):
        copy = dict(row)
        copy.setdefault(SOURCE_RECORD_KEY, index + 1)
        result.append(copy)

    positions = {row_ref(row, index): index for index, row in enumerate(result)}
    known_existing = None
    if existing_records is not None:
        known_existing = {existing_ref(application) for application in existing_records}
    removed = set()
    summary = ResolutionSummary()

    def row_index(ref: Optional[str]) -> Optional[int]:
        index = positions.get(ref) if ref else None
        return None if index is None or index in removed else index

    def is_existing(ref: Optional[str]) -> bool:
        if not ref or not ref.startswith(EXISTING_REF_PREFIX):
            return False
        return known_existing is None or ref in known_existing

    for resolution in resolutions:
        primary = row_index(resolution.primary_ref)
        secondary = row_index(resolution.secondary_ref)
        primary_existing = is_existing(resolution.primary_ref)
        action = resolution.action

        if primary is None and not primary_existing:
            summary.ignored += 1
            continue

        if action in (ResolutionAction.MERGE, ResolutionAction.UPDATE):
            if resolution.merged_data is None:
                summary.ignored += 1
                continue
            if primary_existing:
                existing_id = resolution.primary_ref[len(EXISTING_REF_PREFIX):]
                summary.existing_updates[existing_id] = dict(resolution.merged_data)
            else:
                result[primary] = _overwrite(result[primary], resolution.merged_data)
            if action == ResolutionAction.MERGE:
                if secondary is not None and secondary != primary:
                    removed.add(secondary)
                summary.merged += 1
            else:
                summary.updated += 1

        elif action == ResolutionAction.SKIP:
            target = secondary if resolution.secondary_ref else primary
            if target is None:
                summary.ignored += 1
                continue
            removed.add(target)
            summary.skipped += 1

        else:
            summary.kept += 1

    for index in sorted(removed, reverse=True):
        del result[index]

    logger.info(
        f"Applied {len(resolutions)} duplicate resolutions: {summary.merged} merged, {summary.skipped} skipped, "
        f"{summary.updated} updated, {summary.kept} kept, {summary.ignored} ignored"
    )
    return result, summary


def generate_duplicate_summary(
    groups: Sequence[DuplicateGroup],
    similarity_threshold: Optional[float] = None,
    high_confidence_threshold: Optional[float] = None,
) -> DuplicateSummary:
    threshold = settings.duplicate_similarity_threshold if similarity_threshold is None else similarity_threshold
    high = settings.duplicate_high_confidence_threshold if high_confidence_threshold is None else high_confidence_threshold

    summary = DuplicateSummary(total_duplicates=sum(len(group.members) - 1 for group in groups))
    for group in groups:
        if group.confidence >= high:
            summary.high_confidence_groups += 1
        elif group.confidence >= threshold:
            summary.medium_confidence_groups += 1
        else:
            summary.low_confidence_groups += 1

    if summary.high_confidence_groups:
        summary.recommended_actions.append(f"Merge {summary.high_confidence_groups} high-confidence duplicate groups")
    if summary.medium_confidence_groups:
        summary.recommended_actions.append(f"Review {summary.medium_confidence_groups} likely duplicate groups before importing")
    if summary.low_confidence_groups:
        summary.recommended_actions.append(
            f"{summary.low_confidence_groups} low-confidence groups can be kept as separate applications"
        )
    if not groups:
        summary.recommended_actions.append("No duplicates found")
    return summary
