"""
Tests for encoding detection and tolerant decoding.
"""

import random

import pytest

from application_import.core.config import settings
from application_import.domain.imports.encoding import (
    ENCODING_PRIORITY,
    decode_bytes,
    detect_and_decode,
    detect_encoding,
    looks_like_csv,
    score_encodings,
)


TURKISH_CSV = "Şirket Adı,Pozisyon\nTürk Telekom,Yazılım Mühendisi\n"


class TestDetectEncoding:
    """Test detect_encoding on typical exports."""

    def test_ascii_defaults_to_utf8(self):
        result = detect_encoding(b"Company,Position\nSpotify,Engineer\n")
        assert result.encoding == "utf-8"
        assert result.confidence == pytest.approx(0.4)

    def test_utf8_turkish(self):
        result = detect_encoding(TURKISH_CSV.encode("utf-8"))
        assert result.encoding == "utf-8"
        assert result.confidence >= 0.8

    def test_windows_1254_turkish(self):
        result = detect_encoding(TURKISH_CSV.encode("windows-1254"))
        assert result.encoding == "windows-1254"

    def test_windows_1252_smart_punctuation(self):
        sample = "Company,Note\nCafé,Smart – quote\n".encode("windows-1252")
        result = detect_encoding(sample)
        assert result.encoding == "windows-1252"

    def test_utf8_bom_is_strong_signal(self):
        result = detect_encoding(b"\xef\xbb\xbfCompany\nSpotify\n")
        assert result.encoding == "utf-8"
        assert result.confidence == 1.0

    def test_empty_sample(self):
        result = detect_encoding(b"")
        assert result.encoding == "utf-8"
        assert result.confidence == settings.encoding_default_confidence

    @pytest.mark.parametrize("seed", [0, 1, 2, 3, 4])
    def test_garbage_never_raises_and_respects_floor(self, seed):
        rng = random.Random(seed)
        garbage = bytes(rng.randrange(256) for _ in range(2048))
        result = detect_encoding(garbage)
        assert result.encoding in ENCODING_PRIORITY
        assert result.confidence >= settings.encoding_confidence_floor


class TestScoreEncodings:
    """Test the ranked candidate list."""

    def test_all_candidates_scored_in_range(self):
        candidates = score_encodings(TURKISH_CSV.encode("utf-8"))
        assert {c.encoding for c in candidates} == set(ENCODING_PRIORITY)
        assert all(0.0 <= c.confidence <= 1.0 for c in candidates)

    def test_sorted_best_first(self):
        candidates = score_encodings(TURKISH_CSV.encode("windows-1254"))
        confidences = [c.confidence for c in candidates]
        assert confidences == sorted(confidences, reverse=True)

    def test_strict_decode_failure_scores_zero(self):
        candidates = {c.encoding: c for c in score_encodings(TURKISH_CSV.encode("windows-1254"))}
        assert candidates["utf-8"].confidence == 0.0

    def test_plain_ascii_ranks_utf8_first(self):
        candidates = score_encodings(b"plain")
        assert candidates[0].encoding == "utf-8"


class TestDecodeBytes:
    """Test decoding with fallbacks and repair."""

    def test_strips_bom(self):
        assert decode_bytes(b"\xef\xbb\xbfCompany") == "Company"

    def test_falls_back_when_declared_encoding_fails(self):
        assert decode_bytes("Müller".encode("latin-1"), "utf-8") == "Müller"

    def test_repairs_mojibake_after_decoding(self):
        data = "Company,Notes\nAcme,Ã§alÄ±ÅŸma\n".encode("utf-8")
        assert "çalışma" in decode_bytes(data)

    def test_repair_can_be_disabled(self):
        data = "Ã§alÄ±ÅŸma".encode("utf-8")
        assert decode_bytes(data, repair=False) == "Ã§alÄ±ÅŸma"

    def test_garbage_returns_text(self):
        data = bytes(range(256))
        assert isinstance(decode_bytes(data, "utf-8"), str)

    def test_detect_and_decode(self):
        candidate, text = detect_and_decode(TURKISH_CSV.encode("windows-1254"))
        assert candidate.encoding == "windows-1254"
        assert text == TURKISH_CSV


@pytest.mark.parametrize("text,expected", [
    ("a,b\n1,2\n3,4\n", True),
    ('a,b\n"x, y",2\n3,4\n', True),
    ("a;b;c\n1;2;3\n", True),
    ("just a sentence\nanother one\n", False),
    ("", False),
])
def test_looks_like_csv(text, expected):
    assert looks_like_csv(text) is expected
