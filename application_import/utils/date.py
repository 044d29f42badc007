"""
Date parsing utilities for spreadsheet date cells.

Every accepted input is normalized to a calendar date string
(``YYYY-MM-DD``). Numeric formats are handled explicitly so the result never
depends on the clock or locale; pandas is only consulted for dates written
with month names.
"""

import pandas as pd
from typing import Any, Optional, Tuple
import re
from datetime import date
import logging

from application_import.core.config import settings

logger = logging.getLogger(__name__)

FAILED_SAMPLE_LIMIT = 5
SUPPRESSION_NOTICE_EVERY = 100

_failure_stats: dict = {}

_ISO_DATE = re.compile(r'^(\d{4})[-/.](\d{1,2})[-/.](\d{1,2})$')
_ISO_TIMESTAMP = re.compile(r'^(\d{4})-(\d{2})-(\d{2})[T ]\d{2}:\d{2}')
_SLASH_DATE = re.compile(r'^(\d{1,2})[/-](\d{1,2})[/-](\d{2}|\d{4})$')
_DOT_DATE = re.compile(r'^(\d{1,2})\.(\d{1,2})\.(\d{2}|\d{4})$')
_TEXTUAL_DATE = re.compile(r'[A-Za-z]{3,}.*\b\d{4}\b|\b\d{4}\b.*[A-Za-z]{3,}')


def _record_parse_failure(value: Any, context: Optional[str]) -> None:
    """
    Collect failure stats and emit limited logs (sampled debug lines + periodic summaries).
    """
    key = context or "default"
    stats = _failure_stats.setdefault(key, {"count": 0, "samples": []})
    stats["count"] += 1
    count = stats["count"]

    if len(stats["samples"]) < FAILED_SAMPLE_LIMIT:
        stats["samples"].append(value)
        logger.debug("Unrecognized date%s value '%s'", f" ({key})" if context else "", value)
        return

    if count == FAILED_SAMPLE_LIMIT + 1 or count % SUPPRESSION_NOTICE_EVERY == 0:
        logger.info(
            "Suppressed additional date parse messages after %d failures%s; sample values=%s",
            count,
            f" ({key})" if context else "",
            stats["samples"],
        )


def _expand_year(year_text: str) -> int:
    year = int(year_text)
    if len(year_text) == 2:
        # Same pivot as strptime's %y
        return 2000 + year if year <= 68 else 1900 + year
    return year


def _safe_date(year: int, month: int, day: int) -> Optional[date]:
    try:
        return date(year, month, day)
    except ValueError:
        return None


def _dayfirst_order(first: int, second: int) -> Tuple[bool, bool]:
    """Return (preferred dayfirst, alternate dayfirst) for an ambiguous numeric date."""
    if first > 12 and second <= 31:
        preferred = True
    elif second > 12 and first <= 12:
        preferred = False
    else:
        preferred = settings.date_default_dayfirst
    return preferred, not preferred


def _parse_numeric(value: str) -> Optional[date]:
    match = _ISO_DATE.match(value)
    if match:
        return _safe_date(int(match.group(1)), int(match.group(2)), int(match.group(3)))

    match = _ISO_TIMESTAMP.match(value)
    if match:
        return _safe_date(int(match.group(1)), int(match.group(2)), int(match.group(3)))

    match = _DOT_DATE.match(value)
    if match:
        return _safe_date(_expand_year(match.group(3)), int(match.group(2)), int(match.group(1)))

    match = _SLASH_DATE.match(value)
    if match:
        first, second = int(match.group(1)), int(match.group(2))
        year = _expand_year(match.group(3))
        for dayfirst in _dayfirst_order(first, second):
            day, month = (first, second) if dayfirst else (second, first)
            parsed = _safe_date(year, month, day)
            if parsed is not None:
                return parsed
        return None

    return None


def _parse_textual(value: str) -> Optional[date]:
    if not _TEXTUAL_DATE.search(value):
        return None
    try:
        parsed = pd.to_datetime(value, errors="raise", dayfirst=settings.date_default_dayfirst)
    except (ValueError, TypeError, OverflowError):
        return None
    if pd.isna(parsed):
        return None
    return parsed.date()


def normalize_date(value: Any, *, log_context: Optional[str] = None) -> Optional[str]:
    """
    Normalize a date cell to ``YYYY-MM-DD``.

    Supports formats:
    - ISO: "2024-01-15", "2024/01/15", "2024-01-15T10:30:00Z"
    - MM/DD/YYYY and DD/MM/YYYY: "01/15/2024", "15/01/2024"
    - DD.MM.YYYY: "15.01.2024"
    - Two-digit years: "01/15/24", "15.01.24"
    - Month names: "Jan 15, 2024", "15 January 2024"

    Slash dates are month-first unless the first part cannot be a month or
    ``settings.date_default_dayfirst`` is enabled.

    Args:
        value: Raw cell value
        log_context: Optional label used when logging unparseable values

    Returns:
        The normalized date string, or None if the value is empty or unparseable
    """
    if value is None:
        return None
    if isinstance(value, date):
        return value.isoformat()[:10]
    text = str(value).strip()
    if not text:
        return None

    parsed = _parse_numeric(text)
    if parsed is None:
        parsed = _parse_textual(text)

    if parsed is None:
        _record_parse_failure(text, log_context)
        return None
    return parsed.isoformat()


def is_date_like(value: Any) -> bool:
    """True when ``normalize_date`` would accept the value."""
    if value is None or not str(value).strip():
        return False
    text = str(value).strip()
    return (_parse_numeric(text) or _parse_textual(text)) is not None


def days_between(first: str, second: str) -> Optional[int]:
    """Absolute day distance between two normalized dates."""
    try:
        return abs((date.fromisoformat(first) - date.fromisoformat(second)).days)
    except (TypeError, ValueError):
        return None
