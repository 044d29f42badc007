"""
Character encoding detection for uploaded spreadsheets.

Only a fixed set of encodings is considered: UTF-8, the Turkish code pages
(Windows-1254, ISO-8859-9), Windows-1252 and ISO-8859-1. Each candidate
decodes the head of the file strictly and is scored with simple density
heuristics; the best score wins and ties go to the earlier entry of
``ENCODING_PRIORITY``.
"""

import re
import logging
from typing import Callable, Dict, List, Optional, Tuple

from application_import.core.config import settings
from application_import.schemas import EncodingCandidate
from .mojibake import repair_mojibake

logger = logging.getLogger(__name__)

UTF8 = "utf-8"
WINDOWS_1254 = "windows-1254"
ISO_8859_9 = "iso-8859-9"
WINDOWS_1252 = "windows-1252"
ISO_8859_1 = "iso-8859-1"

ENCODING_PRIORITY: List[str] = [UTF8, WINDOWS_1254, ISO_8859_9, WINDOWS_1252, ISO_8859_1]

UTF8_BOM = b"\xef\xbb\xbf"
SAMPLE_PREVIEW_CHARS = 200
ISO_8859_9_FACTOR = 0.8

_EXTENDED_LATIN = re.compile(r"[\u00a0-\u00ff]")
_EUROPEAN_LETTERS = re.compile(r"[àáâãäåæçèéêëìíîïñòóôõöøùúûüýß]", re.IGNORECASE)
_SMART_PUNCTUATION = re.compile(r"[‘’“”–—…]")
_TURKISH_LETTERS = re.compile(r"[çğıöşüÇĞİÖŞÜ]")
_TURKISH_WORDS = re.compile(
    r"\b(şirket|adı|ülke|sektör|durum|tarih|bilgi|notlar|başvuru|cevap|iletişim|pozisyon|mülakat)\b",
    re.IGNORECASE,
)
_EUROPEAN_WORDS = re.compile(
    r"\b(straße|größe|bewerbung|gehalt|företag|ansökan|lön|søknad|stilling|société|entreprise|"
    r"salaire|candidature|empresa|solicitud|ciudad|città|società)\b",
    re.IGNORECASE,
)
_UTF8_SEQUENCE = re.compile(rb"[\xc2-\xdf][\x80-\xbf]|[\xe0-\xef][\x80-\xbf]{2}|[\xf0-\xf4][\x80-\xbf]{3}")
_DELIMITERS = (",", ";", "\t", "|")


def looks_like_csv(text: str) -> bool:
    """
    True when the first lines share a delimiter with a consistent count.

    Quoted sections are ignored when counting, so embedded commas do not
    break the pattern.
    """
    lines = [line for line in text.splitlines() if line.strip()][:5]
    if not lines:
        return False
    # The last line of a truncated sample is usually cut mid-row
    if len(lines) > 2:
        lines = lines[:-1]
    unquoted = [re.sub(r'"[^"]*"', "", line) for line in lines]
    for delimiter in _DELIMITERS:
        counts = {line.count(delimiter) for line in unquoted}
        if len(counts) == 1 and counts.pop() > 0:
            return True
    return False


def _density(pattern: "re.Pattern", text: str) -> float:
    if not text:
        return 0.0
    return len(pattern.findall(text)) / len(text)


def _utf8_penalty(sample: bytes) -> float:
    """Up to 0.5 off a single-byte reading when the high bytes form UTF-8 sequences."""
    high_bytes = sum(1 for byte in sample if byte >= 0x80)
    if not high_bytes:
        return 0.0
    covered = sum(len(match.group()) for match in _UTF8_SEQUENCE.finditer(sample))
    return 0.5 * min(1.0, covered / high_bytes)


def _score_utf8(sample: bytes, text: str) -> float:
    confidence = 0.3
    if sample.startswith(UTF8_BOM):
        confidence += 0.5

    high_bytes = sum(1 for byte in sample if byte >= 0x80)
    if high_bytes:
        # Strict decode succeeded, so every high byte belongs to a valid sequence
        multibyte_chars = sum(1 for ch in text if ord(ch) >= 0x80)
        continuation = sum(1 for byte in sample if 0x80 <= byte <= 0xBF)
        lead = high_bytes - continuation
        valid_fraction = min(1.0, multibyte_chars / lead) if lead else 0.0
        confidence += 0.5 * valid_fraction

    if looks_like_csv(text):
        confidence += 0.1
    return min(1.0, confidence)


def _score_iso_8859_1(sample: bytes, text: str) -> float:
    confidence = 0.2
    confidence += min(0.4, _density(_EXTENDED_LATIN, text) * 2)
    confidence += min(0.3, _density(_EUROPEAN_LETTERS, text) * 5)
    confidence += min(0.2, len(_EUROPEAN_WORDS.findall(text)) / 20)
    if looks_like_csv(text):
        confidence += 0.1
    confidence -= _utf8_penalty(sample)
    return min(1.0, max(0.0, confidence))


def _score_windows_1252(sample: bytes, text: str) -> float:
    confidence = 0.2
    typographic_bytes = sum(1 for byte in sample if 0x80 <= byte <= 0x9F)
    if sample:
        confidence += min(0.4, typographic_bytes / len(sample) * 10)
    confidence += min(0.2, _density(_SMART_PUNCTUATION, text) * 5)
    confidence += min(0.2, len(_EUROPEAN_WORDS.findall(text)) / 20)
    if looks_like_csv(text):
        confidence += 0.1
    confidence -= _utf8_penalty(sample)
    return min(1.0, max(0.0, confidence))


def _score_turkish(sample: bytes, text: str) -> float:
    confidence = 0.1
    confidence += min(0.6, _density(_TURKISH_LETTERS, text) * 10)
    confidence += min(0.4, len(_TURKISH_WORDS.findall(text)) / 20)
    if looks_like_csv(text):
        confidence += 0.1
    confidence -= _utf8_penalty(sample)
    return min(1.0, max(0.0, confidence))


def _score_iso_8859_9(sample: bytes, text: str) -> float:
    return _score_turkish(sample, text) * ISO_8859_9_FACTOR


_SCORERS: Dict[str, Callable[[bytes, str], float]] = {
    UTF8: _score_utf8,
    WINDOWS_1254: _score_turkish,
    ISO_8859_9: _score_iso_8859_9,
    WINDOWS_1252: _score_windows_1252,
    ISO_8859_1: _score_iso_8859_1,
}


def _trim_partial_utf8(sample: bytes) -> bytes:
    """Drop a multi-byte sequence cut off by the sample boundary."""
    for back in range(1, min(4, len(sample)) + 1):
        byte = sample[-back]
        if byte < 0x80:
            return sample
        if byte >= 0xC0:
            expected = 2 if byte < 0xE0 else 3 if byte < 0xF0 else 4
            return sample[:-back] if expected > back else sample
    return sample


def score_encodings(sample: bytes) -> List[EncodingCandidate]:
    """
    Score every candidate encoding against the head of a file.

    Returns candidates ordered best first: by confidence, then by
    ``ENCODING_PRIORITY``. A candidate whose strict decode fails scores 0.
    """
    head = sample[: settings.encoding_sample_bytes]
    candidates: List[Tuple[float, int, EncodingCandidate]] = []

    for priority, encoding in enumerate(ENCODING_PRIORITY):
        data = _trim_partial_utf8(head) if encoding == UTF8 and len(sample) > len(head) else head
        try:
            text = data.decode(encoding)
        except UnicodeDecodeError:
            confidence, preview = 0.0, ""
        else:
            confidence = round(_SCORERS[encoding](data, text), 4)
            preview = text.lstrip("\ufeff")[:SAMPLE_PREVIEW_CHARS]
        candidates.append(
            (confidence, priority, EncodingCandidate(encoding=encoding, confidence=confidence, sample=preview))
        )

    candidates.sort(key=lambda item: (-item[0], item[1]))
    return [candidate for _, _, candidate in candidates]


def detect_encoding(sample: bytes) -> EncodingCandidate:
    """
    Pick the most plausible encoding for a byte sample.

    Never raises. When every candidate scores below the configured floor the
    result is UTF-8 with the configured default confidence.
    """
    if not sample:
        return EncodingCandidate(encoding=UTF8, confidence=settings.encoding_default_confidence, sample="")

    ranked = score_encodings(sample)
    best = ranked[0]
    logger.debug(
        "Encoding scores: %s",
        ", ".join(f"{candidate.encoding}={candidate.confidence:.2f}" for candidate in ranked),
    )

    if best.confidence < settings.encoding_confidence_floor:
        logger.info(
            "No encoding reached confidence %.2f (best %s=%.2f); defaulting to UTF-8",
            settings.encoding_confidence_floor,
            best.encoding,
            best.confidence,
        )
        preview = sample[: settings.encoding_sample_bytes].decode(UTF8, errors="replace")
        return EncodingCandidate(
            encoding=UTF8,
            confidence=settings.encoding_default_confidence,
            sample=preview[:SAMPLE_PREVIEW_CHARS],
        )

    logger.info(f"Detected encoding {best.encoding} with confidence {best.confidence:.2f}")
    return best


def decode_bytes(data: bytes, encoding: Optional[str] = None, *, repair: bool = True) -> str:
    """
    Decode a whole file, falling back through the candidate encodings.

    The requested encoding is tried first, then the others in priority order,
    and finally a lossy UTF-8 decode with replacement characters. A UTF-8 BOM
    is dropped. Known mojibake sequences are repaired afterwards.
    """
    attempts: List[str] = []
    for name in [encoding or UTF8] + ENCODING_PRIORITY:
        if name.lower() not in attempts:
            attempts.append(name.lower())

    text = None
    for name in attempts:
        try:
            text = data.decode(name)
        except (UnicodeDecodeError, LookupError) as exc:
            logger.debug(f"Decoding as {name} failed: {exc}")
            continue
        if name != (encoding or UTF8).lower():
            logger.warning(f"Decoded file as {name} after {encoding} failed")
        break

    if text is None:
        logger.warning("All candidate encodings failed; decoding as UTF-8 with replacement characters")
        text = data.decode(UTF8, errors="replace")

    if text.startswith("\ufeff"):
        text = text[1:]
    return repair_mojibake(text) if repair else text


def detect_and_decode(data: bytes) -> Tuple[EncodingCandidate, str]:
    """Convenience wrapper: detect on the head of ``data`` and decode all of it."""
    candidate = detect_encoding(data)
    return candidate, decode_bytes(data, candidate.encoding)
