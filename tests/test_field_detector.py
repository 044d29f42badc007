"""
Tests for column semantics detection.
"""

import pytest

from application_import.domain.imports.field_detector import (
    FIELD_RULES,
    FIELD_RULES_BY_NAME,
    _keyword_in_column,
    analyze_column_content,
    detect_columns,
    detect_columns_with_template,
    score_column,
    suggest_fields_for_column,
)


REQUIRED_COMPANY = 'Required field "company" could not be auto-detected. Please map manually.'


def test_company_rule_comes_first():
    assert FIELD_RULES[0].field == "company"
    assert FIELD_RULES[0].required
    assert [rule.field for rule in FIELD_RULES if rule.required] == ["company"]


class TestTemplateStage:
    """Test template adoption before heuristics run."""

    def test_strong_match_adopts_template(self):
        result = detect_columns(["Company", "Position", "Status", "Applied Date"])
        assert result.template_id == "minimal"
        assert result.detected_mapping == {
            "company": "Company",
            "position": "Position",
            "status": "Status",
            "applied_date": "Applied Date",
        }
        assert set(result.confidence.values()) == {1.0}
        assert result.suggestions[0] == "Detected Minimal Template format with 100% confidence"

    def test_adopted_template_leaves_other_columns_to_heuristics(self):
        result = detect_columns(["Company", "Position", "Location", "Applied Date", "Status", "Comments"])
        assert result.template_id == "minimal"
        assert result.detected_mapping["location"] == "Location"
        assert result.confidence["company"] == 1.0
        assert not any(s.endswith("columns were not mapped: Location") for s in result.suggestions)

    def test_adopted_substring_match_flagged_for_review(self):
        result = detect_columns(["Company", "Position", "Status", "Applied Date Time"])
        assert result.template_id == "minimal"
        assert result.detected_mapping["applied_date"] == "Applied Date Time"
        assert result.confidence["applied_date"] == 0.7
        assert 'Low confidence for applied_date mapping. Please verify "Applied Date Time" is correct.' in result.suggestions

    def test_moderate_match_keeps_confident_fields(self):
        result = detect_columns(["Company Name", "Job Title", "Location"])
        assert result.template_id == "indeed"
        assert result.detected_mapping == {"company": "Company Name", "position": "Job Title", "location": "Location"}
        assert result.confidence == {"company": 1.0, "position": 1.0, "location": 1.0}
        assert any(s.startswith("Partially matched Indeed Format") for s in result.suggestions)
        assert not any(s.startswith("Consider using a template") for s in result.suggestions)

    def test_turkish_export(self):
        headers = [
            "Şirket Adı", "Ülke", "Sektör", "E-posta Tarihi", "Cevap Tarihi",
            "Durum", "İletişim Bilgisi", "Notlar", "Pozisyon",
        ]
        result = detect_columns(headers)
        assert result.template_id == "erasmus_turkish"
        assert result.detected_mapping["company"] == "Şirket Adı"
        assert result.detected_mapping["status"] == "Durum"
        assert result.confidence["position"] == 0.8


class TestHeuristicStage:
    """Test keyword, fuzzy and pattern scoring when no template fits."""

    def test_synonym_headers(self):
        result = detect_columns(["Employer Name", "Role", "Contact Email"])
        assert result.template_id is None
        assert result.detected_mapping["company"] == "Employer Name"
        assert result.detected_mapping["position"] == "Role"
        assert result.detected_mapping["contact_email"] == "Contact Email"
        assert set(result.confidence) == set(result.detected_mapping)
        assert all(0.0 <= value <= 1.0 for value in result.confidence.values())
        assert result.suggestions[-1] == "Consider using a template: LinkedIn Export, Indeed Format, Glassdoor Format"

    def test_each_column_used_once(self):
        result = detect_columns(["Employer Name", "Role", "Contact Email", "Company Website", "Notes"])
        columns = list(result.detected_mapping.values())
        assert len(columns) == len(set(columns))

    def test_missing_company_is_suggested(self):
        result = detect_columns(["Xyzzy", "Qwvx"])
        assert "company" not in result.detected_mapping
        assert REQUIRED_COMPANY in result.suggestions

    def test_unmapped_columns_reported(self):
        result = detect_columns(["Employer Name", "Xyzzy"])
        assert "1 columns were not mapped: Xyzzy" in result.suggestions

    def test_empty_headers(self):
        result = detect_columns([])
        assert result.detected_mapping == {}
        assert REQUIRED_COMPANY in result.suggestions


class TestScoreColumn:
    """Test the per-column scoring signals."""

    def test_exact_keyword_beats_other_fields(self):
        company = FIELD_RULES_BY_NAME["company"]
        notes = FIELD_RULES_BY_NAME["notes"]
        assert score_column("Company", company) > score_column("Company", notes)

    def test_score_is_bounded(self):
        for rule in FIELD_RULES:
            assert 0.0 <= score_column("Contact Email Address", rule) <= 1.0

    def test_blank_column_scores_zero(self):
        assert score_column("   ", FIELD_RULES_BY_NAME["company"]) == 0.0

    def test_content_adds_to_score(self):
        rule = FIELD_RULES_BY_NAME["contact_email"]
        rows = [{"Reach": "hr@spotify.com"}, {"Reach": "jobs@klarna.com"}]
        assert score_column("Reach", rule, rows) > score_column("Reach", rule)


@pytest.mark.parametrize("keyword,column,expected", [
    ("hr", "hr email", True),
    ("hr", "three", False),
    ("tip", "multiple", False),
    ("tip", "iş tip", True),
    ("company", "company name", True),
])
def test_short_keywords_match_whole_words(keyword, column, expected):
    assert _keyword_in_column(keyword, column) is expected


class TestAnalyzeColumnContent:
    """Test content hit rates by field kind."""

    def test_email_hit_rate(self):
        rows = [{"E": "a@b.com"}, {"E": "nope"}, {"E": ""}]
        assert analyze_column_content("E", rows, "contact_email") == 0.5

    def test_date_hit_rate(self):
        rows = [{"D": "2024-01-15"}, {"D": "Jan 20, 2024"}, {"D": "soon"}, {"D": "15.01.2024"}]
        assert analyze_column_content("D", rows, "applied_date") == 0.75

    def test_status_hit_rate(self):
        rows = [{"S": "Applied"}, {"S": "Mülakat"}]
        assert analyze_column_content("S", rows, "status") == 1.0

    def test_no_values(self):
        assert analyze_column_content("E", [{"E": None}], "contact_email") == 0.0

    def test_free_text_variety(self):
        rows = [{"N": "Applied through LinkedIn"}, {"N": "Waiting for response"}]
        assert analyze_column_content("N", rows, "notes") == 1.0
        assert analyze_column_content("N", [{"N": "x"}, {"N": "x"}], "notes") == 0.0


class TestDetectWithTemplate:
    """Test mapping through a caller-chosen template."""

    def test_template_confidences(self):
        result = detect_columns_with_template(["Şirket Adı", "Pozisyon"], "erasmus_turkish")
        assert result.template_id == "erasmus_turkish"
        assert result.confidence == {"company": 1.0, "position": 0.8}
        assert result.suggestions[0] == "Using Erasmus Staj Takip (Türkçe) template"

    def test_content_blending(self):
        rows = [
            {"Company": "Spotify", "Contact Email": "careers@spotify.com"},
            {"Company": "Klarna", "Contact Email": "careers@klarna.com"},
        ]
        result = detect_columns_with_template(["Company", "Contact Email"], "custom", rows)
        assert result.confidence["contact_email"] == 1.0
        assert result.confidence["company"] < 1.0

    def test_unknown_template(self):
        result = detect_columns_with_template(["Company"], "nope")
        assert result.detected_mapping == {}
        assert result.template_id is None
        assert result.suggestions == ["Template not found: nope"]


def test_suggest_fields_for_column():
    suggestions = suggest_fields_for_column("Email")
    assert suggestions[0] == ("contact_email", 1.0)
    assert len(suggestions) <= 3
    scores = [score for _, score in suggestions]
    assert scores == sorted(scores, reverse=True)
