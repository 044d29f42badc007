"""
Value normalizers for application fields.

Each normalizer returns ``(value, recognized)``. ``recognized`` is False when
the input could not be interpreted; the returned value is then either the
field default (enumerations) or the input left as-is (free text). Every
normalizer is idempotent: feeding its output back in returns the same value
and ``recognized=True``.
"""

import re
from typing import Any, Iterable, List, Optional, Pattern, Sequence, Tuple
from urllib.parse import urlparse

from application_import.models import ApplicationStatus, JobType, Priority

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
URL_CONTENT_PATTERN = re.compile(r"(https?://|www\.|\.com\b|\.org\b|\.net\b)", re.IGNORECASE)
SALARY_CONTENT_PATTERN = re.compile(r"[\d,.]+\s*(k|K|\$|€|£|SEK|USD|EUR|GBP|TL|TRY)|[$€£]\s*[\d,.]+")
PHONE_PATTERN = re.compile(r"^\+?[\d\s\-.()]{7,20}$")

_WHITESPACE = re.compile(r"\s+")
_SCHEME = re.compile(r"^[a-z][a-z0-9+.\-]*://", re.IGNORECASE)
_LIST_SEPARATORS = re.compile(r"[;,|]")
_TURKISH_FOLD = str.maketrans("çğıöşüâî", "cgiosuai")


def collapse_whitespace(value: Any) -> str:
    if value is None:
        return ""
    return _WHITESPACE.sub(" ", str(value)).strip()


def turkish_lower(text: str) -> str:
    """Lower-case text so that "İ" becomes a plain "i"."""
    return text.replace("İ", "i").lower().replace("\u0307", "")


def fold_turkish(text: str) -> str:
    """Lower-case and strip Turkish diacritics: "Başvuru Yapıldı" -> "basvuru yapildi"."""
    return turkish_lower(text).translate(_TURKISH_FOLD)


def _first_match(text: str, rules: Sequence[Tuple[Pattern, Any]]) -> Optional[Any]:
    for pattern, result in rules:
        if pattern.search(text):
            return result
    return None


# Status
# Rules run against the Turkish-folded, lower-cased value. Order matters:
# "kabul ettim" (I accepted) must win over "kabul" (accepted = offered), and a
# stage keyword wins over waiting words ("offer pending" is Offered).
_STATUS_RULES: List[Tuple[Pattern, ApplicationStatus]] = [
    (re.compile(r"basvuru planlaniyor|planlanan|planned|to apply|not applied"), ApplicationStatus.PENDING),
    (re.compile(r"geri cektim|iptal|withdr[ae]w|cancell?ed"), ApplicationStatus.WITHDRAWN),
    (re.compile(r"reddedildi|\bred\b|reject|declined|not selected|unsuccessful"), ApplicationStatus.REJECTED),
    (re.compile(r"kabul ettim|onayladim|accept|hired"), ApplicationStatus.ACCEPTED),
    (re.compile(r"kabul edildi|teklif|offer"), ApplicationStatus.OFFERED),
    (re.compile(r"mulakat|gorusme|interview|screen|assessment"), ApplicationStatus.INTERVIEWING),
    (re.compile(r"basvuru yapildi|basvuruldu|basvurdum|basvuru|applied|submitted|sent|apply"), ApplicationStatus.APPLIED),
    (re.compile(r"cevap bekleniyor|beklemede|bekleniyor|waiting|awaiting|pending|on hold"), ApplicationStatus.PENDING),
]

STATUS_VOCABULARY = (
    "pending", "applied", "interview", "rejected", "accepted", "offered", "withdrawn",
    "basvuru", "mulakat", "gorusme", "teklif", "reddedildi", "bekleniyor", "kabul",
)


def normalize_status(value: Any) -> Tuple[ApplicationStatus, bool]:
    """
    Map free-text status (English or Turkish) to an ApplicationStatus.

    Examples:
        "interview scheduled" -> Interviewing
        "Başvuru Yapıldı" -> Applied
        "Cevap Bekleniyor" -> Pending
        "???" -> (Pending, False)
    """
    text = collapse_whitespace(value)
    for status in ApplicationStatus:
        if text.lower() == status.value.lower():
            return status, True
    matched = _first_match(fold_turkish(text), _STATUS_RULES)
    if matched is None:
        return ApplicationStatus.PENDING, False
    return matched, True


def looks_like_status(value: Any) -> bool:
    folded = fold_turkish(collapse_whitespace(value))
    return any(keyword in folded for keyword in STATUS_VOCABULARY)


# Job type
_JOB_TYPE_RULES: List[Tuple[Pattern, JobType]] = [
    (re.compile(r"part|yari zaman"), JobType.PART_TIME),
    (re.compile(r"intern|staj|trainee|werkstudent"), JobType.INTERNSHIP),
    (re.compile(r"freelance|self.?employed|serbest"), JobType.FREELANCE),
    (re.compile(r"contract|temporary|temp\b|fixed.?term|sozlesmeli|gecici"), JobType.CONTRACT),
    (re.compile(r"full|permanent|tam zaman|kadrolu|regular"), JobType.FULL_TIME),
]


def normalize_job_type(value: Any) -> Tuple[JobType, bool]:
    text = collapse_whitespace(value)
    for job_type in JobType:
        if text.lower() == job_type.value.lower():
            return job_type, True
    matched = _first_match(fold_turkish(text), _JOB_TYPE_RULES)
    if matched is None:
        return JobType.FULL_TIME, False
    return matched, True


# Priority
_PRIORITY_RULES: List[Tuple[Pattern, Priority]] = [
    (re.compile(r"high|urgent|yuksek|acil|important|\b[1]\b"), Priority.HIGH),
    (re.compile(r"low|dusuk|\b[3]\b"), Priority.LOW),
    (re.compile(r"medium|normal|orta|mid\b|\b[2]\b"), Priority.MEDIUM),
]


def normalize_priority(value: Any) -> Tuple[Priority, bool]:
    text = collapse_whitespace(value)
    for priority in Priority:
        if text.lower() == priority.value.lower():
            return priority, True
    matched = _first_match(fold_turkish(text), _PRIORITY_RULES)
    if matched is None:
        return Priority.MEDIUM, False
    return matched, True


# Contact details
def normalize_email(value: Any) -> Tuple[str, bool]:
    """
    Trim, drop a ``mailto:`` prefix and inner whitespace, lower-case.

    Examples:
        " Careers@Spotify.COM " -> ("careers@spotify.com", True)
        "mailto:hr@klarna.com" -> ("hr@klarna.com", True)
        "invalid-email" -> ("invalid-email", False)
    """
    text = collapse_whitespace(value)
    if text.lower().startswith("mailto:"):
        text = text[len("mailto:"):]
    text = _WHITESPACE.sub("", text).lower()
    return text, bool(EMAIL_PATTERN.match(text))


def normalize_url(value: Any) -> Tuple[str, bool]:
    """
    Prepend ``https://`` when no scheme is present and check the result parses.

    Examples:
        "spotify.com/careers" -> ("https://spotify.com/careers", True)
        "not a url" -> ("not a url", False)
    """
    text = collapse_whitespace(value)
    if not text or " " in text:
        return text, False
    candidate = text if _SCHEME.match(text) else f"https://{text}"
    parsed = urlparse(candidate)
    host = parsed.hostname or ""
    valid = parsed.scheme.lower() in ("http", "https") and ("." in host or host == "localhost")
    return (candidate, True) if valid else (text, False)


def normalize_phone(value: Any) -> Tuple[str, bool]:
    text = collapse_whitespace(value)
    return text, bool(PHONE_PATTERN.match(text))


# Salary
_CURRENCY_GAP = re.compile(r"([$€£])\s+(?=\d)")
_THOUSANDS_SUFFIX = re.compile(r"(\d)\s*k\b", re.IGNORECASE)


def normalize_salary(value: Any) -> Tuple[str, bool]:
    """
    Tidy a salary string without converting currencies.

    Examples:
        "$ 120,000" -> ("$120,000", True)
        "120k" -> ("120K", True)
        "45000 SEK/month" -> ("45000 SEK/month", True)
        "competitive" -> ("competitive", False)
    """
    text = collapse_whitespace(value)
    text = _CURRENCY_GAP.sub(r"\1", text)
    text = _THOUSANDS_SUFFIX.sub(r"\1K", text)
    return text, any(ch.isdigit() for ch in text)


# Location
COUNTRY_ALIASES = {
    "isvec": "Sweden", "sweden": "Sweden", "sverige": "Sweden",
    "norvec": "Norway", "norway": "Norway", "norge": "Norway",
    "danimarka": "Denmark", "denmark": "Denmark", "danmark": "Denmark",
    "finlandiya": "Finland", "finland": "Finland", "suomi": "Finland",
    "almanya": "Germany", "germany": "Germany", "deutschland": "Germany",
    "fransa": "France", "france": "France",
    "hollanda": "Netherlands", "netherlands": "Netherlands", "nederland": "Netherlands",
    "the netherlands": "Netherlands",
    "ingiltere": "United Kingdom", "uk": "United Kingdom", "england": "United Kingdom",
    "united kingdom": "United Kingdom", "great britain": "United Kingdom",
    "ispanya": "Spain", "spain": "Spain", "espana": "Spain",
    "italya": "Italy", "italy": "Italy", "italia": "Italy",
    "turkiye": "Turkey", "turkey": "Turkey",
}


def normalize_location(value: Any) -> Tuple[str, bool]:
    """
    Collapse whitespace and standardize country names in each comma part.

    Examples:
        "Stockholm,  İsveç" -> ("Stockholm, Sweden", True)
        "Berlin, Deutschland" -> ("Berlin, Germany", True)
    """
    text = collapse_whitespace(value)
    if not text:
        return text, False
    parts = [part.strip() for part in text.split(",")]
    standardized = [COUNTRY_ALIASES.get(fold_turkish(part), part) for part in parts]
    return ", ".join(part for part in standardized if part), True


# Lists
def split_list(value: Any) -> List[str]:
    """
    Split a tag/requirement cell on ``;``, ``,`` or ``|``.

    Empty items are dropped and duplicates removed case-insensitively,
    keeping the first spelling.
    """
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        items: Iterable[str] = (str(item) for item in value)
    else:
        items = _LIST_SEPARATORS.split(str(value))
    result: List[str] = []
    seen = set()
    for item in items:
        cleaned = collapse_whitespace(item)
        if cleaned and cleaned.lower() not in seen:
            seen.add(cleaned.lower())
            result.append(cleaned)
    return result


# Missing positions
_DEFAULT_POSITIONS: List[Tuple[Pattern, str]] = [
    (re.compile(r"fintech|finance|banking|bank"), "Finance Intern"),
    (re.compile(r"gaming|game"), "Game Developer Intern"),
    (re.compile(r"security|cyber"), "Security Intern"),
    (re.compile(r"tech|software|\bit\b|yazilim|teknoloji"), "Software Developer Intern"),
    (re.compile(r"music|media|muzik"), "Media Intern"),
    (re.compile(r"telecom|telekom"), "Engineering Intern"),
    (re.compile(r"automotive|engineering|otomotiv|muhendislik"), "Engineering Intern"),
    (re.compile(r"retail|design|tasarim"), "Design Intern"),
    (re.compile(r"energy|enerji"), "Energy Intern"),
    (re.compile(r"maritime|logistics|shipping|lojistik|denizcilik"), "Logistics Intern"),
    (re.compile(r"pharma|medical|health|saglik|ilac"), "Medical Intern"),
]
DEFAULT_POSITION = "Intern"


def generate_default_position(sector: Any) -> str:
    """
    Placeholder title for rows with no position, derived from sector/tags.

    Examples:
        "Technology/Music" -> "Software Developer Intern"
        "Fintech" -> "Finance Intern"
        None -> "Intern"
    """
    text = fold_turkish(collapse_whitespace(" ".join(sector) if isinstance(sector, (list, tuple)) else sector))
    if not text:
        return DEFAULT_POSITION
    return _first_match(text, _DEFAULT_POSITIONS) or DEFAULT_POSITION
