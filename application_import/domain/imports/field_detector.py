"""
Column semantics detection: which CSV column holds which application field.

Detection runs in two stages. First the header row is compared against the
built-in templates; a strong match is adopted outright and a moderate match
contributes its confident fields. Remaining fields are then scored against
remaining columns with keyword, fuzzy, pattern and (optionally) content
signals. Fields are processed in ``FIELD_RULES`` order, so earlier fields
win ties and each column is assigned to at most one field.
"""

import re
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Pattern, Sequence, Tuple

from application_import.core.config import settings
from application_import.schemas import ColumnDetectionResult, CSVTemplate
from application_import.utils.date import is_date_like
from application_import.utils.similarity import jaro_winkler
from .fields import DATE_FIELDS, URL_FIELDS
from .normalizers import (
    EMAIL_PATTERN,
    PHONE_PATTERN,
    SALARY_CONTENT_PATTERN,
    URL_CONTENT_PATTERN,
    looks_like_status,
    turkish_lower,
)
from .templates import detect_template, generate_mapping_from_template, get_template, list_templates

logger = logging.getLogger(__name__)

EXACT_KEYWORD_WEIGHT = 0.9
PARTIAL_KEYWORD_WEIGHT = 0.6
FUZZY_WEIGHT = 0.4
FUZZY_MIN_SIMILARITY = 0.7
PATTERN_WEIGHT = 0.3
CONTENT_WEIGHT = 0.2
TEMPLATE_BLEND = 0.7  # Share of template confidence when blending with content
SUGGESTION_MIN_SCORE = 0.2
SHORT_KEYWORD_LENGTH = 3


@dataclass(frozen=True)
class FieldRule:
    field: str
    weight: float
    keywords: Tuple[str, ...]
    patterns: Tuple[Pattern, ...] = ()
    required: bool = False


def _rule(field: str, weight: float, keywords: Sequence[str], patterns: Sequence[str] = (), required: bool = False) -> FieldRule:
    return FieldRule(
        field=field,
        weight=weight,
        keywords=tuple(keywords),
        patterns=tuple(re.compile(pattern, re.IGNORECASE) for pattern in patterns),
        required=required,
    )


FIELD_RULES: List[FieldRule] = [
    _rule(
        "company", 1.0,
        ["company", "şirket", "firma", "employer", "organization", "company name", "şirket adı",
         "firma adı", "employer name", "corp", "corporation", "business", "enterprise", "inc", "ltd", "llc"],
        [r"company", r"firm", r"corp", r"\binc\b", r"\bltd\b"],
        required=True,
    ),
    _rule(
        "position", 0.9,
        ["position", "pozisyon", "job title", "role", "title", "job", "iş", "meslek",
         "position title", "job role", "designation", "post"],
        [r"position", r"title", r"role", r"\bjob\b"],
    ),
    _rule(
        "location", 0.8,
        ["location", "lokasyon", "place", "city", "country", "şehir", "ülke", "yer",
         "address", "where", "office", "region"],
        [r"location", r"city", r"country", r"address", r"where"],
    ),
    _rule(
        "status", 0.7,
        ["status", "durum", "state", "application status", "başvuru durumu",
         "current status", "stage", "phase", "progress"],
        [r"status", r"state", r"stage", r"progress"],
    ),
    _rule(
        "applied_date", 0.8,
        ["applied date", "başvuru tarihi", "date applied", "application date", "applied",
         "tarih", "submit date", "submission date", "apply date", "e-posta tarihi"],
        [r"applied.*date", r"date.*applied", r"application.*date", r"submit.*date"],
    ),
    _rule(
        "response_date", 0.6,
        ["response date", "cevap tarihi", "reply date", "response", "cevap",
         "reply received", "feedback date", "answer date"],
        [r"response.*date", r"reply.*date", r"feedback.*date"],
    ),
    _rule(
        "interview_date", 0.6,
        ["interview date", "mülakat tarihi", "interview", "mülakat", "meeting date",
         "call date", "screening date"],
        [r"interview.*date", r"meeting.*date", r"call.*date"],
    ),
    _rule(
        "offer_date", 0.6,
        ["offer date", "teklif tarihi", "offer received", "date offered"],
        [r"offer.*date", r"date.*offer"],
    ),
    _rule(
        "rejection_date", 0.6,
        ["rejection date", "red tarihi", "rejected date", "date rejected"],
        [r"reject.*date", r"date.*reject"],
    ),
    _rule(
        "follow_up_date", 0.5,
        ["follow up date", "follow-up date", "follow up", "takip tarihi", "reminder date", "next step date"],
        [r"follow.?up", r"reminder"],
    ),
    _rule(
        "notes", 0.5,
        ["notes", "notlar", "comments", "açıklama", "yorum", "remarks", "memo",
         "details", "info", "information"],
        [r"notes", r"comments", r"remarks", r"details"],
    ),
    _rule(
        "job_description", 0.5,
        ["job description", "description", "iş tanımı", "job summary", "responsibilities", "duties"],
        [r"description", r"summary", r"responsibilit"],
    ),
    _rule(
        "requirements", 0.5,
        ["requirements", "gereksinimler", "qualifications", "required skills", "must have"],
        [r"requirement", r"qualification"],
    ),
    _rule(
        "contact_email", 0.7,
        ["contact email", "email", "e-mail", "e-posta", "iletişim", "iletişim bilgisi",
         "email address", "mail", "recruiter email", "hr email"],
        [r"e-?mail", r"mail", r"contact.*email", r"@"],
    ),
    _rule(
        "contact_person", 0.6,
        ["contact person", "contact", "person", "name", "kişi", "iletişim kişisi",
         "recruiter", "hr", "hiring manager", "contact name"],
        [r"contact.*person", r"recruiter", r"\bhr\b", r"manager", r"name"],
    ),
    _rule(
        "contact_phone", 0.5,
        ["contact phone", "phone", "telefon", "phone number", "mobile", "tel"],
        [r"phone", r"telefon", r"mobile", r"\btel\b"],
    ),
    _rule(
        "job_url", 0.5,
        ["job url", "job link", "posting url", "posting link", "listing url", "application link", "ilan linki"],
        [r"job.*(url|link)", r"posting", r"listing"],
    ),
    _rule(
        "company_website", 0.5,
        ["company website", "company site", "corporate website", "company url", "şirket web sitesi"],
        [r"company.*(website|site|url)"],
    ),
    _rule(
        "website", 0.5,
        ["website", "web site", "url", "link", "site", "web address", "homepage", "web", "portal"],
        [r"website", r"url", r"link", r"http", r"www"],
    ),
    _rule(
        "tags", 0.6,
        ["tags", "etiketler", "sector", "sektör", "category", "kategori", "skills",
         "yetenekler", "technologies", "keywords", "labels", "industry"],
        [r"tags", r"skills", r"tech", r"category", r"keywords", r"sector|sekt"],
    ),
    _rule(
        "salary", 0.7,
        ["salary", "maaş", "wage", "compensation", "pay", "ücret", "payment",
         "remuneration", "income", "earnings", "package"],
        [r"salary", r"wage", r"\bpay", r"compensation", r"\$", r"€", r"£"],
    ),
    _rule(
        "type", 0.6,
        ["type", "tip", "job type", "employment type", "iş türü", "çalışma türü",
         "work type", "contract type", "employment"],
        [r"type", r"employment", r"contract", r"full.*time", r"part.*time"],
    ),
    _rule(
        "priority", 0.5,
        ["priority", "öncelik", "importance", "urgent", "acil", "level", "rank", "preference"],
        [r"priority", r"importance", r"urgent", r"level", r"rank"],
    ),
]

FIELD_RULES_BY_NAME: Dict[str, FieldRule] = {rule.field: rule for rule in FIELD_RULES}


def _keyword_in_column(keyword: str, column: str) -> bool:
    # Short keywords ("hr", "iş", "tip") only count as whole words
    if len(keyword) <= SHORT_KEYWORD_LENGTH:
        return re.search(rf"(?<!\w){re.escape(keyword)}(?!\w)", column) is not None
    return keyword in column


def _partial_keyword_hits(column: str, keywords: Sequence[str]) -> int:
    hits = 0
    for keyword in keywords:
        if _keyword_in_column(keyword, column):
            hits += 1
        elif len(column) > SHORT_KEYWORD_LENGTH and column in keyword:
            hits += 1
    return hits


def _column_values(column: str, sample_rows: Sequence[Dict[str, Any]], limit: int) -> List[str]:
    values = []
    for row in sample_rows:
        value = row.get(column)
        if value is None or not str(value).strip():
            continue
        values.append(str(value).strip())
        if len(values) >= limit:
            break
    return values


def _hit_rate(values: Sequence[str], predicate) -> float:
    return sum(1 for value in values if predicate(value)) / len(values)


def analyze_column_content(column: str, sample_rows: Sequence[Dict[str, Any]], field: str) -> float:
    """
    Score how well a column's first non-empty values look like ``field``.

    Returns a hit rate in [0, 1] for typed fields (email, date, salary, URL,
    phone, status); other fields get a variety-times-length heuristic.
    """
    values = _column_values(column, sample_rows, settings.content_sample_size)
    if not values:
        return 0.0

    if field == "contact_email":
        return _hit_rate(values, lambda value: EMAIL_PATTERN.match(value) is not None)
    if field in DATE_FIELDS:
        return _hit_rate(values, is_date_like)
    if field == "salary":
        return _hit_rate(values, lambda value: SALARY_CONTENT_PATTERN.search(value) is not None)
    if field in URL_FIELDS:
        return _hit_rate(values, lambda value: URL_CONTENT_PATTERN.search(value) is not None)
    if field == "contact_phone":
        return _hit_rate(values, lambda value: PHONE_PATTERN.match(value) is not None)
    if field == "status":
        return _hit_rate(values, looks_like_status)

    average_length = sum(len(value) for value in values) / len(values)
    unique_values = len({value.lower() for value in values})
    if average_length > 2 and unique_values > 1:
        return min(1.0, (unique_values / len(values)) * (average_length / 20))
    return 0.0


def score_column(column: str, rule: FieldRule, sample_rows: Optional[Sequence[Dict[str, Any]]] = None) -> float:
    """
    Combined score in [0, 1] for assigning ``column`` to ``rule.field``.

    Signals, each scaled by the field weight: exact keyword (0.9), share of
    keywords found as substrings (0.6), best Jaro-Winkler similarity above
    0.7 (0.4), share of regex patterns matching (0.3) and, with samples, the
    content score (0.2).
    """
    column_lower = turkish_lower(column).strip()
    if not column_lower:
        return 0.0
    score = 0.0

    if column_lower in rule.keywords:
        score += EXACT_KEYWORD_WEIGHT * rule.weight

    partial_hits = _partial_keyword_hits(column_lower, rule.keywords)
    if partial_hits:
        score += PARTIAL_KEYWORD_WEIGHT * partial_hits / len(rule.keywords) * rule.weight

    best_fuzzy = max(jaro_winkler(column_lower, keyword) for keyword in rule.keywords)
    if best_fuzzy > FUZZY_MIN_SIMILARITY:
        score += FUZZY_WEIGHT * best_fuzzy * rule.weight

    if rule.patterns:
        pattern_hits = sum(1 for pattern in rule.patterns if pattern.search(column))
        if pattern_hits:
            score += PATTERN_WEIGHT * pattern_hits / len(rule.patterns) * rule.weight

    if sample_rows:
        score += analyze_column_content(column, sample_rows, rule.field) * CONTENT_WEIGHT * rule.weight

    return min(1.0, max(0.0, score))


def _unmapped_columns_suggestion(headers: Sequence[str], mapping: Dict[str, str]) -> Optional[str]:
    mapped = set(mapping.values())
    unmapped = [header for header in headers if header not in mapped]
    if not unmapped:
        return None
    preview = ", ".join(unmapped[:3])
    more = "..." if len(unmapped) > 3 else ""
    return f"{len(unmapped)} columns were not mapped: {preview}{more}"


def _required_field_suggestions(mapping: Dict[str, str]) -> List[str]:
    return [
        f'Required field "{rule.field}" could not be auto-detected. Please map manually.'
        for rule in FIELD_RULES
        if rule.required and rule.field not in mapping
    ]


def _low_confidence_suggestion(field: str, column: str) -> str:
    return f'Low confidence for {field} mapping. Please verify "{column}" is correct.'


def _assign_by_heuristics(
    headers: Sequence[str],
    mapping: Dict[str, str],
    confidence: Dict[str, float],
    suggestions: List[str],
    sample_rows: Optional[Sequence[Dict[str, Any]]],
    min_score: float,
) -> None:
    """Fill unmapped fields from unconsumed columns in rule priority order (updates in place)."""
    for rule in FIELD_RULES:
        if rule.field in mapping:
            continue
        consumed = set(mapping.values())

        best_column = None
        best_score = 0.0
        for column in headers:
            if column in consumed:
                continue
            score = score_column(column, rule, sample_rows)
            if score > best_score and score > min_score:
                best_score = score
                best_column = column

        if best_column is not None:
            mapping[rule.field] = best_column
            confidence[rule.field] = round(best_score, 4)
            if best_score < settings.field_low_confidence:
                suggestions.append(_low_confidence_suggestion(rule.field, best_column))


def detect_columns(
    headers: Sequence[str],
    sample_rows: Optional[Sequence[Dict[str, Any]]] = None,
    *,
    templates: Optional[Sequence[CSVTemplate]] = None,
    min_score: Optional[float] = None,
) -> ColumnDetectionResult:
    """
    Detect the field mapping for a header row.

    Args:
        headers: Column names in file order
        sample_rows: Optional parsed rows used for content scoring
        templates: Templates to try (defaults to the built-in set)
        min_score: Minimum heuristic score for an assignment (defaults to settings)

    Returns:
        ColumnDetectionResult with one confidence per mapped field
    """
    headers = [header for header in headers if header is not None]
    min_score = settings.field_min_score if min_score is None else min_score
    match = detect_template(headers, templates)
    template = None
    if match.template_id:
        template = next((t for t in (templates or list_templates()) if t.id == match.template_id), None)

    mapping: Dict[str, str] = {}
    confidence: Dict[str, float] = {}
    suggestions: List[str] = []

    if template is not None and match.confidence > settings.template_adopt_threshold:
        adopted = generate_mapping_from_template(template.id, headers, template=template)
        mapping.update(adopted.mapping)
        confidence.update(adopted.confidence)
        suggestions.append(f"Detected {template.name} format with {round(match.confidence * 100)}% confidence")
        for field, column in adopted.mapping.items():
            if adopted.confidence[field] < settings.template_field_review_confidence:
                suggestions.append(_low_confidence_suggestion(field, column))
        logger.info(f"Adopted template '{template.id}' for {len(mapping)} fields")

        # Columns the template does not name still go through the heuristics
        _assign_by_heuristics(headers, mapping, confidence, suggestions, sample_rows, min_score)
        suggestions.extend(_required_field_suggestions(mapping))
        unmapped = _unmapped_columns_suggestion(headers, mapping)
        if unmapped:
            suggestions.append(unmapped)
        return ColumnDetectionResult(detected_mapping=mapping, confidence=confidence, suggestions=suggestions, template_id=template.id)

    template_used = False
    if template is not None and match.confidence > settings.template_partial_threshold:
        partial = generate_mapping_from_template(template.id, headers, template=template)
        for field, column in partial.mapping.items():
            field_confidence = partial.confidence.get(field, 0.0)
            if field_confidence > settings.template_field_min_confidence:
                mapping[field] = column
                confidence[field] = field_confidence
        template_used = True
        suggestions.append(f"Partially matched {template.name} format. Please review mappings.")

    _assign_by_heuristics(headers, mapping, confidence, suggestions, sample_rows, min_score)

    suggestions.extend(_required_field_suggestions(mapping))
    unmapped = _unmapped_columns_suggestion(headers, mapping)
    if unmapped:
        suggestions.append(unmapped)

    if not template_used:
        names = ", ".join(t.name for t in list_templates()[:3])
        suggestions.append(f"Consider using a template: {names}")

    logger.info(f"Detected {len(mapping)} field mappings from {len(headers)} columns")
    return ColumnDetectionResult(
        detected_mapping=mapping,
        confidence=confidence,
        suggestions=suggestions,
        template_id=template.id if template_used else None,
    )


def detect_columns_with_template(
    headers: Sequence[str],
    template_id: str,
    sample_rows: Optional[Sequence[Dict[str, Any]]] = None,
) -> ColumnDetectionResult:
    """
    Map headers through a caller-chosen template.

    With sample rows, each confidence becomes 0.7 x template confidence +
    0.3 x content score. An unknown template yields an empty mapping and an
    explanatory suggestion.
    """
    template = get_template(template_id)
    if template is None:
        logger.warning(f"Requested unknown template '{template_id}'")
        return ColumnDetectionResult(suggestions=[f"Template not found: {template_id}"])

    result = generate_mapping_from_template(template_id, headers)
    confidence = dict(result.confidence)
    if sample_rows:
        for field, column in result.mapping.items():
            if field not in FIELD_RULES_BY_NAME:
                continue
            content_score = analyze_column_content(column, sample_rows, field)
            confidence[field] = round(
                min(1.0, confidence.get(field, 0.0) * TEMPLATE_BLEND + content_score * (1 - TEMPLATE_BLEND)), 4
            )

    suggestions = [f"Using {template.name} template"]
    suggestions.extend(_required_field_suggestions(result.mapping))
    return ColumnDetectionResult(
        detected_mapping=result.mapping,
        confidence=confidence,
        suggestions=suggestions,
        template_id=template.id,
    )


def suggest_fields_for_column(column: str, limit: int = 3) -> List[Tuple[str, float]]:
    """Best candidate fields for one column, for manual mapping screens."""
    scored = [(rule.field, round(score_column(column, rule), 4)) for rule in FIELD_RULES]
    scored = [item for item in scored if item[1] > SUGGESTION_MIN_SCORE]
    scored.sort(key=lambda item: item[1], reverse=True)
    return scored[:limit]
