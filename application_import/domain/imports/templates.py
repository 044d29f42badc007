"""
Built-in CSV templates for known export formats.

A template is a fixed header -> field skeleton for one export format (a job
board, a localized tracker, or the full "all fields" layout). Templates are
used two ways: ``detect_template`` scores how well a header row matches each
template, and ``generate_mapping_from_template`` maps a header row through a
chosen template.
"""

import csv
import random
import uuid
import logging
from datetime import date, timedelta
from io import StringIO
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from application_import.schemas import (
    CSVTemplate,
    TemplateFieldMapping,
    TemplateMappingResult,
    TemplateMatch,
    TemplateSource,
)
from .fields import APPLICATION_FIELDS
from .mojibake import repair_mojibake
from .normalizers import collapse_whitespace, fold_turkish, turkish_lower

logger = logging.getLogger(__name__)

EXACT_MATCH_CONFIDENCE = 1.0
PARTIAL_MATCH_CONFIDENCE = 0.7
VARIATION_MATCH_CONFIDENCE = 0.5
TURKISH_MATCH_CONFIDENCE = 0.9
REQUIRED_FIELD_WEIGHT = 2.0
OPTIONAL_FIELD_WEIGHT = 1.0


def _template(
    template_id: str,
    name: str,
    description: str,
    source: TemplateSource,
    mappings: Sequence[Tuple],
    samples: Sequence[Sequence[str]],
) -> CSVTemplate:
    field_mappings = [
        TemplateFieldMapping(
            csv_header=entry[0],
            field=entry[1],
            required=entry[2],
            confidence=entry[3] if len(entry) > 3 else 1.0,
        )
        for entry in mappings
    ]
    headers = [mapping.csv_header for mapping in field_mappings]
    sample_data = [dict(zip(headers, row)) for row in samples]
    return CSVTemplate(
        id=template_id,
        name=name,
        description=description,
        source=source,
        field_mappings=field_mappings,
        sample_data=sample_data,
    )


BUILTIN_TEMPLATES: Dict[str, CSVTemplate] = {
    template.id: template
    for template in [
        _template(
            "linkedin",
            "LinkedIn Export",
            "Standard format for LinkedIn job application exports",
            TemplateSource.LINKEDIN,
            [
                ("Company", "company", True),
                ("Position", "position", True),
                ("Location", "location", False),
                ("Applied Date", "applied_date", False),
                ("Status", "status", False),
                ("Notes", "notes", False),
            ],
            [
                ["Google", "Software Engineer", "Mountain View, CA", "2024-01-15", "Applied", "Applied via LinkedIn"],
                ["Microsoft", "Product Manager", "Seattle, WA", "2024-01-20", "Interviewing", "Phone screen completed"],
                ["Apple", "iOS Developer", "Cupertino, CA", "2024-01-25", "Pending", "Waiting for response"],
            ],
        ),
        _template(
            "indeed",
            "Indeed Format",
            "Format compatible with Indeed job applications",
            TemplateSource.INDEED,
            [
                ("Company Name", "company", True),
                ("Job Title", "position", True),
                ("Location", "location", False),
                ("Date Applied", "applied_date", False),
                ("Application Status", "status", False),
                ("Salary", "salary", False),
                ("Job Type", "type", False),
            ],
            [
                ["Apple", "iOS Developer", "Cupertino, CA", "2024-01-15", "Applied", "$120,000", "Full-time"],
                ["Netflix", "Data Scientist", "Los Gatos, CA", "2024-01-20", "Pending", "$140,000", "Full-time"],
                ["Tesla", "Software Engineer", "Palo Alto, CA", "2024-01-25", "Interviewing", "$110,000", "Full-time"],
            ],
        ),
        _template(
            "glassdoor",
            "Glassdoor Format",
            "Format for Glassdoor job applications with salary estimates",
            TemplateSource.GLASSDOOR,
            [
                ("Employer", "company", True),
                ("Job Title", "position", True),
                ("Location", "location", False),
                ("Date Applied", "applied_date", False),
                ("Status", "status", False),
                ("Salary Estimate", "salary", False),
            ],
            [
                ["Tesla", "Software Engineer", "Palo Alto, CA", "2024-01-15", "Applied", "$110,000-130,000"],
                ["Spotify", "Backend Engineer", "Stockholm, Sweden", "2024-01-20", "Interviewing", "45,000 SEK/month"],
                ["Airbnb", "Product Designer", "San Francisco, CA", "2024-01-25", "Pending", "$130,000-150,000"],
            ],
        ),
        _template(
            "custom",
            "Complete Template",
            "Comprehensive template with all available fields",
            TemplateSource.CUSTOM,
            [
                ("Company", "company", True),
                ("Position", "position", True),
                ("Location", "location", False),
                ("Type", "type", False),
                ("Salary", "salary", False),
                ("Status", "status", False),
                ("Applied Date", "applied_date", False),
                ("Response Date", "response_date", False),
                ("Interview Date", "interview_date", False),
                ("Offer Date", "offer_date", False),
                ("Rejection Date", "rejection_date", False),
                ("Notes", "notes", False),
                ("Job Description", "job_description", False),
                ("Requirements", "requirements", False),
                ("Contact Person", "contact_person", False),
                ("Contact Email", "contact_email", False),
                ("Contact Phone", "contact_phone", False),
                ("Website", "website", False),
                ("Job URL", "job_url", False),
                ("Company Website", "company_website", False),
                ("Tags", "tags", False),
                ("Priority", "priority", False),
                ("Follow Up Date", "follow_up_date", False),
            ],
            [
                [
                    "Spotify", "Software Engineer Intern", "Stockholm, Sweden", "Internship", "15,000 SEK/month",
                    "Applied", "2024-01-15", "", "", "", "", "Applied through LinkedIn", "", "", "Sarah Johnson",
                    "careers@spotify.com", "", "https://spotify.com/careers", "", "", "Backend;Music;Sweden", "High", "",
                ],
                [
                    "Klarna", "Data Scientist", "Stockholm, Sweden", "Full-time", "45,000 SEK/month",
                    "Pending", "2024-01-20", "", "", "", "", "Waiting for response", "", "", "Marcus Andersson",
                    "careers@klarna.com", "", "https://klarna.com/careers", "", "", "Data Science;Fintech;Sweden",
                    "Medium", "",
                ],
            ],
        ),
        _template(
            "minimal",
            "Minimal Template",
            "Simple template with only essential fields",
            TemplateSource.CUSTOM,
            [
                ("Company", "company", True),
                ("Position", "position", True),
                ("Status", "status", False),
                ("Applied Date", "applied_date", False),
            ],
            [
                ["Google", "Software Engineer", "Applied", "2024-01-15"],
                ["Microsoft", "Product Manager", "Interviewing", "2024-01-20"],
                ["Apple", "iOS Developer", "Pending", "2024-01-25"],
            ],
        ),
        _template(
            "european",
            "European Format",
            "Template optimized for European job markets",
            TemplateSource.CUSTOM,
            [
                ("Company", "company", True),
                ("Position", "position", True),
                ("Location", "location", False),
                ("Salary (Annual)", "salary", False),
                ("Contract Type", "type", False),
                ("Application Status", "status", False),
                ("Application Date", "applied_date", False),
                ("Notes", "notes", False),
            ],
            [
                ["Spotify", "Backend Developer", "Stockholm, Sweden", "550,000 SEK", "Permanent", "Applied", "2024-01-15", "Applied via company website"],
                ["SAP", "Software Engineer", "Berlin, Germany", "€75,000", "Permanent", "Interviewing", "2024-01-20", "Technical interview scheduled"],
                ["ASML", "Hardware Engineer", "Eindhoven, Netherlands", "€68,000", "Permanent", "Pending", "2024-01-25", "Waiting for response"],
            ],
        ),
        _template(
            "erasmus_turkish",
            "Erasmus Staj Takip (Türkçe)",
            "Türkçe Erasmus staj başvuru takip listesi formatı",
            TemplateSource.CUSTOM,
            [
                ("Şirket Adı", "company", True),
                ("Ülke", "location", False),
                ("Sektör", "tags", False),
                ("E-posta Tarihi", "applied_date", False),
                ("Cevap Tarihi", "response_date", False),
                ("Durum", "status", False),
                ("İletişim Bilgisi", "contact_email", False),
                ("Notlar", "notes", False),
                ("Pozisyon", "position", False, 0.8),
            ],
            [
                ["Spotify", "İsveç", "Technology/Music", "2024-01-15", "", "Başvuru Planlanıyor", "careers@spotify.com", "Müzik teknolojisi alanında staj", "Stajyer"],
                ["Klarna", "İsveç", "Fintech", "2024-01-20", "2024-01-25", "Cevap Bekleniyor", "internships@klarna.com", "Fintech sektöründe deneyim", "Yazılım Geliştirici Stajyeri"],
                ["Ericsson", "İsveç", "Telecommunications", "2024-01-18", "", "Başvuru Yapıldı", "career@ericsson.com", "Telekomünikasyon mühendisliği", "Mühendislik Stajyeri"],
            ],
        ),
    ]
}

# Extra spellings accepted for the Turkish template, compared after ASCII folding.
TURKISH_HEADER_ALIASES: Dict[str, List[str]] = {
    "şirket adı": ["sirket", "company", "firma"],
    "ülke": ["ulke", "country", "location"],
    "sektör": ["sektor", "sector", "industry"],
    "e-posta tarihi": ["eposta", "e-posta", "email date", "tarih"],
    "cevap tarihi": ["cevap", "response", "yanit"],
    "durum": ["durum", "status", "state"],
    "iletişim bilgisi": ["iletisim", "contact"],
    "notlar": ["notlar", "notes", "aciklama"],
    "pozisyon": ["pozisyon", "position", "rol"],
}

# Used when neither the template header nor a substring of it is present.
FIELD_VARIATIONS: Dict[str, List[str]] = {
    "company": ["employer", "organization", "firm", "business", "corp"],
    "position": ["job title", "role", "title", "position title"],
    "location": ["city", "place", "address", "office"],
    "type": ["job type", "employment type", "contract", "work type"],
    "salary": ["pay", "wage", "compensation", "income", "remuneration"],
    "status": ["state", "stage", "progress", "application status"],
    "applied_date": ["date applied", "application date", "apply date", "submitted"],
    "response_date": ["response", "reply date", "heard back"],
    "interview_date": ["interview", "meeting date", "call date"],
    "notes": ["comments", "remarks", "memo"],
    "contact_person": ["contact", "recruiter", "hiring manager"],
    "contact_email": ["email", "contact email", "recruiter email"],
    "website": ["url", "link", "site", "web"],
    "tags": ["keywords", "categories", "labels"],
}


def normalize_header(header: Any) -> str:
    """
    Normalize a header for template comparison.

    Repairs mojibake, lower-cases (treating the Turkish dotted capital I as
    a plain "i"), and collapses whitespace.

    Examples:
        "  Company Name " -> "company name"
        "Åžirket AdÄ±" -> "şirket adı"
        "İletişim Bilgisi" -> "iletişim bilgisi"
    """
    return collapse_whitespace(turkish_lower(repair_mojibake(str(header or ""))))


def _contains_either(header: str, expected: str) -> bool:
    if not header or not expected:
        return False
    return expected in header or header in expected


def _turkish_alias_match(normalized_headers: Iterable[str], expected_header: str) -> bool:
    aliases = TURKISH_HEADER_ALIASES.get(normalize_header(expected_header), [])
    for header in normalized_headers:
        folded = fold_turkish(header)
        if any(alias in folded for alias in aliases):
            return True
    return False


def list_templates() -> List[CSVTemplate]:
    return list(BUILTIN_TEMPLATES.values())


def get_template(template_id: str) -> Optional[CSVTemplate]:
    return BUILTIN_TEMPLATES.get(template_id)


def templates_by_source(source: TemplateSource) -> List[CSVTemplate]:
    return [template for template in BUILTIN_TEMPLATES.values() if template.source == TemplateSource(source)]


def score_template(template: CSVTemplate, headers: Sequence[str]) -> TemplateMatch:
    """
    Score one template against a header row.

    Required fields weigh twice as much as optional ones. A field earns its
    full weight for an exact normalized header match, 70% for a substring
    match, and (Turkish template only) 90% for a known alias. Each field's
    credit is capped at its weight, so the score stays in [0, 1].
    """
    normalized_headers = [normalize_header(header) for header in headers]
    total_weight = 0.0
    matched_weight = 0.0
    matched_fields: List[str] = []

    for mapping in template.field_mappings:
        weight = REQUIRED_FIELD_WEIGHT if mapping.required else OPTIONAL_FIELD_WEIGHT
        total_weight += weight
        expected = normalize_header(mapping.csv_header)

        credit = 0.0
        if expected in normalized_headers:
            credit = EXACT_MATCH_CONFIDENCE
        elif any(_contains_either(header, expected) for header in normalized_headers):
            credit = PARTIAL_MATCH_CONFIDENCE
        if template.id == "erasmus_turkish" and credit < TURKISH_MATCH_CONFIDENCE:
            if _turkish_alias_match(normalized_headers, mapping.csv_header):
                credit = TURKISH_MATCH_CONFIDENCE

        if credit > 0:
            matched_fields.append(mapping.field)
            matched_weight += weight * credit

    confidence = matched_weight / total_weight if total_weight else 0.0
    return TemplateMatch(template_id=template.id, confidence=round(min(1.0, confidence), 4), matched_fields=matched_fields)


def detect_template(headers: Sequence[str], templates: Optional[Iterable[CSVTemplate]] = None) -> TemplateMatch:
    """
    Find the template that best matches a header row.

    Returns a match with ``template_id=None`` and zero confidence when no
    template matches any header. Ties keep the earlier template.
    """
    best = TemplateMatch()
    for template in templates if templates is not None else BUILTIN_TEMPLATES.values():
        match = score_template(template, headers)
        if match.confidence > best.confidence:
            best = match

    if best.template_id:
        logger.debug(f"Best template match: {best.template_id} ({best.confidence:.2f})")
    return best


def generate_mapping_from_template(
    template_id: str,
    headers: Sequence[str],
    template: Optional[CSVTemplate] = None,
) -> TemplateMappingResult:
    """
    Map a header row through a template.

    Matching runs in three passes over the template fields, in template
    order: exact normalized header (1.0), then substring either way (0.7),
    then a known variation of the field name (0.5). A field keeps its first
    match and a header is used for at most one field. The template's own
    per-field confidence scales the result.

    An unknown template id yields a result with ``error`` set.
    """
    template = template or get_template(template_id)
    if template is None:
        return TemplateMappingResult(template_id=template_id, unmapped_headers=list(headers), error=f"Template not found: {template_id}")

    normalized = [normalize_header(header) for header in headers]
    available = list(range(len(headers)))
    mapping: Dict[str, str] = {}
    confidence: Dict[str, float] = {}

    def _take(predicate) -> Optional[int]:
        for index in available:
            if predicate(normalized[index]):
                return index
        return None

    def _exact(field_mapping: TemplateFieldMapping) -> Optional[int]:
        expected = normalize_header(field_mapping.csv_header)
        return _take(lambda header: header == expected)

    def _partial(field_mapping: TemplateFieldMapping) -> Optional[int]:
        expected = normalize_header(field_mapping.csv_header)
        return _take(lambda header: _contains_either(header, expected))

    def _variation(field_mapping: TemplateFieldMapping) -> Optional[int]:
        for variation in FIELD_VARIATIONS.get(field_mapping.field, []):
            match_index = _take(lambda header, v=variation: _contains_either(header, v))
            if match_index is not None:
                return match_index
        return None

    passes = (
        (_exact, EXACT_MATCH_CONFIDENCE),
        (_partial, PARTIAL_MATCH_CONFIDENCE),
        (_variation, VARIATION_MATCH_CONFIDENCE),
    )
    for finder, match_confidence in passes:
        for field_mapping in template.field_mappings:
            if field_mapping.field in mapping:
                continue
            match_index = finder(field_mapping)
            if match_index is not None:
                available.remove(match_index)
                mapping[field_mapping.field] = headers[match_index]
                confidence[field_mapping.field] = round(match_confidence * field_mapping.confidence, 4)

    missing_fields = [m.field for m in template.field_mappings if m.required and m.field not in mapping]

    return TemplateMappingResult(
        template_id=template.id,
        mapping=mapping,
        confidence=confidence,
        unmapped_headers=[headers[index] for index in available],
        missing_fields=missing_fields,
    )


def generate_template_csv(template_id: str, include_examples: bool = True) -> str:
    """
    Render a template as CSV text: the header row, plus its sample rows.

    Raises:
        KeyError: if the template does not exist
    """
    template = get_template(template_id)
    if template is None:
        raise KeyError(f"Template not found: {template_id}")

    buffer = StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(template.headers)
    if include_examples:
        for sample in template.sample_data:
            writer.writerow([sample.get(header, "") for header in template.headers])
    return buffer.getvalue()


def create_custom_template(
    name: str,
    description: str,
    mapping: Dict[str, str],
    sample_data: Optional[List[Dict[str, str]]] = None,
) -> CSVTemplate:
    """Build a template from a confirmed field -> header mapping."""
    field_mappings = [
        TemplateFieldMapping(csv_header=header, field=field, required=field in ("company", "position"))
        for field, header in mapping.items()
    ]
    return CSVTemplate(
        id=f"custom-{uuid.uuid4().hex[:12]}",
        name=name,
        description=description,
        source=TemplateSource.CUSTOM,
        field_mappings=field_mappings,
        sample_data=sample_data or [],
    )


def validate_template(template: Dict[str, Any]) -> Tuple[bool, List[str]]:
    """
    Check a template definition before it is saved.

    Accepts a plain dict (e.g. user-submitted JSON) so that incomplete
    definitions can be reported field by field.
    """
    errors: List[str] = []
    for key, label in (("id", "ID"), ("name", "name"), ("description", "description"), ("source", "source")):
        if not template.get(key):
            errors.append(f"Template {label} is required")

    source = template.get("source")
    if source and source not in {item.value for item in TemplateSource}:
        errors.append(f"Unknown template source: {source}")

    field_mappings = template.get("field_mappings") or []
    if not field_mappings:
        errors.append("Template must have at least one field mapping")

    fields = [entry.get("field") for entry in field_mappings]
    headers = [normalize_header(entry.get("csv_header")) for entry in field_mappings]
    if "company" not in fields:
        errors.append("Template must include company field mapping")
    for field in fields:
        if field not in APPLICATION_FIELDS:
            errors.append(f"Unknown application field: {field}")
    if len(set(headers)) != len(headers):
        errors.append("Template headers must be unique")

    return len(errors) == 0, errors


SAMPLE_COMPANIES = [
    "Google", "Microsoft", "Apple", "Amazon", "Meta", "Netflix", "Tesla",
    "Spotify", "Airbnb", "Uber", "LinkedIn", "Adobe", "Salesforce",
]
SAMPLE_POSITIONS = [
    "Software Engineer", "Product Manager", "Data Scientist", "UX Designer",
    "DevOps Engineer", "Frontend Developer", "Backend Developer", "Machine Learning Engineer",
]
SAMPLE_LOCATIONS = [
    "San Francisco, CA", "Seattle, WA", "New York, NY", "Austin, TX",
    "Stockholm, Sweden", "London, UK", "Berlin, Germany", "Amsterdam, Netherlands",
]
SAMPLE_STATUSES = ["Applied", "Pending", "Interviewing", "Offered", "Rejected"]


def generate_sample_data(
    template_id: str,
    count: int = 10,
    seed: Optional[int] = None,
    today: Optional[date] = None,
) -> List[Dict[str, str]]:
    """
    Produce plausible rows in a template's layout, for demos and tests.

    The same seed and ``today`` always give the same rows.

    Raises:
        KeyError: if the template does not exist
    """
    template = get_template(template_id)
    if template is None:
        raise KeyError(f"Template not found: {template_id}")

    rng = random.Random(seed)
    today = today or date.today()
    rows: List[Dict[str, str]] = []

    for _ in range(count):
        row: Dict[str, str] = {}
        for mapping in template.field_mappings:
            field = mapping.field
            if field == "company":
                value = rng.choice(SAMPLE_COMPANIES)
            elif field == "position":
                value = rng.choice(SAMPLE_POSITIONS)
            elif field == "location":
                value = rng.choice(SAMPLE_LOCATIONS)
            elif field == "status":
                value = rng.choice(SAMPLE_STATUSES)
            elif field == "applied_date":
                value = (today - timedelta(days=rng.randint(0, 29))).isoformat()
            elif field == "salary":
                value = f"${rng.randint(80, 179)}k"
            elif field == "type":
                value = "Part-time" if rng.random() > 0.8 else "Full-time"
            else:
                value = f"Sample {field}"
            row[mapping.csv_header] = value
        rows.append(row)

    return rows
