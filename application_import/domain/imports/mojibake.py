"""
Repair of mojibake: UTF-8 text that was decoded with a single-byte code page.

The repair is a plain ordered substitution table. Patterns are applied
longest first, so a pattern that contains another is always replaced before
the shorter one can break it apart.
"""
from typing import List, Tuple
import logging

logger = logging.getLogger(__name__)


# Whole words where the misdecoding also dropped a letter (the lost "ğ"),
# so a per-character repair alone would produce a wrong word.
_WORD_REPAIRS: List[Tuple[str, str]] = [
    ("Ã§alÄ±ÅŸma", "çalışma"),
    ("Ã§alÄ±ÅŸmak", "çalışmak"),
    ("Ã§alÄ±ÅŸan", "çalışan"),
    ("Ã§alÄ±ÅŸtÄ±", "çalıştı"),
    ("Ã¶Ä±renci", "öğrenci"),
    ("Ã¶Ä±rencisi", "öğrencisi"),
    ("Ã¶Ä±renmek", "öğrenmek"),
    ("Ã¶Ä±rendi", "öğrendi"),
    ("Ã¶Ä±retim", "öğretim"),
    ("Ã¶Ä±retmen", "öğretmen"),
    ("Ã¶Ä±retici", "öğretici"),
    ("Ã¼niversite", "üniversite"),
    ("baÅŸvuru", "başvuru"),
    ("Ä°sveÃ§", "İsveç"),
    ("NorveÃ§", "Norveç"),
]

# UTF-8 punctuation read through Windows-1252, including text that went
# through the round trip twice.
_PUNCTUATION_REPAIRS: List[Tuple[str, str]] = [
    ("Ã¢â‚¬â„¢", "’"),
    ("Ã¢â‚¬Ëœ", "‘"),
    ("Ã¢â‚¬Å“", "“"),
    ("Ã¢â‚¬â€œ", "–"),
    ("Ã¢â‚¬â€\u009d", "—"),
    ("â€™", "’"),
    ("â€˜", "‘"),
    ("â€œ", "“"),
    ("â€\u009d", "”"),
    ("â€“", "–"),
    ("â€”", "—"),
    ("â€¦", "…"),
    ("â€¢", "•"),
    ("â‚¬", "€"),
    # Same sequences read through ISO-8859-1
    ("â\u0080\u0099", "’"),
    ("â\u0080\u0098", "‘"),
    ("â\u0080\u009c", "“"),
    ("â\u0080\u009d", "”"),
    ("â\u0080\u0093", "–"),
    ("â\u0080\u0094", "—"),
]

_LETTER_REPAIRS: List[Tuple[str, str]] = [
    # Turkish
    ("Ä°", "İ"),
    ("Ä±", "ı"),
    ("ÄŸ", "ğ"),
    ("Äž", "Ğ"),
    ("ÅŸ", "ş"),
    ("Åž", "Ş"),
    ("Ã§", "ç"),
    ("Ã‡", "Ç"),
    ("Ã¶", "ö"),
    ("Ã–", "Ö"),
    ("Ã¼", "ü"),
    ("Ãœ", "Ü"),
    # Turkish, ISO-8859-1 reading (C1 control characters)
    ("Ä\u009f", "ğ"),
    ("Ä\u009e", "Ğ"),
    ("Å\u009f", "ş"),
    ("Å\u009e", "Ş"),
    ("Ã\u0087", "Ç"),
    ("Ã\u0096", "Ö"),
    ("Ã\u009c", "Ü"),
    # Western European
    ("Ã¤", "ä"),
    ("Ã„", "Ä"),
    ("Ã¥", "å"),
    ("Ã…", "Å"),
    ("Ã¦", "æ"),
    ("Ã†", "Æ"),
    ("Ã¸", "ø"),
    ("Ã˜", "Ø"),
    ("Ã©", "é"),
    ("Ã‰", "É"),
    ("Ã¨", "è"),
    ("Ãª", "ê"),
    ("Ã«", "ë"),
    ("Ã¡", "á"),
    ("Ã¢", "â"),
    ("Ã\u00ad", "í"),
    ("Ã³", "ó"),
    ("Ã´", "ô"),
    ("Ãº", "ú"),
    ("Ã±", "ñ"),
    ("ÃŸ", "ß"),
]

MOJIBAKE_REPAIRS: List[Tuple[str, str]] = sorted(
    _WORD_REPAIRS + _PUNCTUATION_REPAIRS + _LETTER_REPAIRS,
    key=lambda pair: len(pair[0]),
    reverse=True,
)

# Every broken pattern starts with one of these characters.
_MARKERS = frozenset(broken[0] for broken, _ in MOJIBAKE_REPAIRS)


def has_mojibake(text: str) -> bool:
    if not text or not any(ch in _MARKERS for ch in text):
        return False
    return any(broken in text for broken, _ in MOJIBAKE_REPAIRS)


def repair_mojibake(text: str) -> str:
    """
    Replace known mojibake sequences with the characters they stand for.

    Examples:
        "Ã§alÄ±ÅŸma" -> "çalışma"
        "Itâ€™s" -> "It’s"

    Text without any broken sequence is returned unchanged.
    """
    if not text or not any(ch in _MARKERS for ch in text):
        return text

    repaired = text
    for broken, fixed in MOJIBAKE_REPAIRS:
        if broken in repaired:
            repaired = repaired.replace(broken, fixed)

    if repaired != text:
        logger.debug("Repaired mojibake in value of length %d", len(text))
    return repaired
