"""
Tests for mojibake repair.
"""

import pytest

from application_import.domain.imports.mojibake import MOJIBAKE_REPAIRS, has_mojibake, repair_mojibake


@pytest.mark.parametrize("broken,expected", [
    ("Ã§alÄ±ÅŸma", "çalışma"),
    ("Ã§alÄ±ÅŸmak", "çalışmak"),
    ("Ã¶Ä±renci", "öğrenci"),
    ("Ã¼niversite", "üniversite"),
    ("baÅŸvuru", "başvuru"),
    ("Stockholm, Ä°sveÃ§", "Stockholm, İsveç"),
    ("Åžirket AdÄ±", "Şirket Adı"),
    ("Itâ€™s", "It’s"),
    ("CafÃ©", "Café"),
    ("MÃ¼nchen", "München"),
])
def test_repair_known_sequences(broken, expected):
    assert repair_mojibake(broken) == expected


def test_clean_text_is_unchanged():
    for text in ["Spotify", "çalışma", "Stockholm, Sweden", "", "Búsqueda"]:
        assert repair_mojibake(text) == text
        assert not has_mojibake(text)


def test_repair_is_idempotent():
    once = repair_mojibake("Ã§alÄ±ÅŸma ve Ã¶Ä±renci")
    assert repair_mojibake(once) == once


def test_has_mojibake_detects_broken_text():
    assert has_mojibake("Ã§alÄ±ÅŸma")
    assert has_mojibake("Itâ€™s")


class TestRepairTableOrder:
    """The table must apply longer patterns before the patterns they contain."""

    def test_sorted_longest_first(self):
        lengths = [len(broken) for broken, _ in MOJIBAKE_REPAIRS]
        assert lengths == sorted(lengths, reverse=True)

    def test_containing_pattern_comes_first(self):
        positions = {broken: index for index, (broken, _) in enumerate(MOJIBAKE_REPAIRS)}
        for outer in positions:
            for inner in positions:
                if inner != outer and inner in outer:
                    assert positions[outer] < positions[inner], (outer, inner)

    def test_word_repair_wins_over_letter_repairs(self):
        # Letter-by-letter repair of this word would lose the "ğ"
        assert repair_mojibake("Ã¶Ä±retmen") == "öğretmen"

    def test_double_encoded_punctuation_repaired_whole(self):
        assert repair_mojibake("Ã¢â‚¬â„¢") == "’"
