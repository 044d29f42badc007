"""
Tests for row validation, cleaning and the validation summary.
"""

import copy

import pytest

from application_import.schemas import Severity, ValidationIssue
from application_import.domain.imports.validator import (
    DUPLICATE_COLUMN,
    generate_validation_summary,
    validate_rows,
)


def messages(issues):
    return [issue.message for issue in issues]


class TestRequiredFields:
    """Test company and position handling."""

    def test_valid_row_passes_untouched(self, make_row, full_mapping):
        result = validate_rows([make_row()], full_mapping)
        assert result.errors == []
        assert result.warnings == []
        assert result.cleaned_rows[0]["Company"] == "Spotify"

    @pytest.mark.parametrize("company", [None, "", "   "])
    def test_missing_company_is_an_error(self, make_row, full_mapping, company):
        result = validate_rows([make_row(company=company)], full_mapping)
        assert len(result.errors) == 1
        error = result.errors[0]
        assert error.message == "Company name is required"
        assert error.column == "Company"
        assert error.severity == Severity.ERROR
        assert error.row == 1
        assert result.cleaned_rows == []

    def test_unmapped_company_is_an_error(self, make_row):
        result = validate_rows([make_row()], {"position": "Position"})
        assert messages(result.errors) == ["Company name is required"]
        assert result.errors[0].column == "company"

    def test_missing_position_gets_placeholder(self, make_row, full_mapping):
        result = validate_rows([make_row(position=None, tags="Fintech")], full_mapping)
        assert result.errors == []
        assert messages(result.warnings) == ["Missing position, using placeholder 'Finance Intern'"]
        assert result.cleaned_rows[0]["Position"] == "Finance Intern"

    def test_unmapped_position_is_not_reported(self, make_row):
        result = validate_rows([make_row()], {"company": "Company"})
        assert result.errors == []
        assert result.warnings == []


class TestValueNormalization:
    """Test per-field cleaning and the warnings it produces."""

    def test_invalid_email_is_a_single_warning(self, make_row, full_mapping):
        result = validate_rows([make_row(email="invalid-email")], full_mapping)
        assert result.errors == []
        assert messages(result.warnings) == ["Invalid email format: 'invalid-email'"]
        assert result.warnings[0].column == "Email"
        assert result.cleaned_rows[0]["Email"] == "invalid-email"

    def test_date_is_normalized(self, make_row, full_mapping):
        result = validate_rows([make_row(applied_date="01/15/2024")], full_mapping)
        assert messages(result.warnings) == ["Date normalized from '01/15/2024' to '2024-01-15'"]
        assert result.cleaned_rows[0]["Applied Date"] == "2024-01-15"

    def test_invalid_date_is_kept_and_warned(self, make_row, full_mapping):
        result = validate_rows([make_row(applied_date="someday")], full_mapping)
        assert messages(result.warnings) == ["Invalid date format: 'someday'"]
        assert result.warnings[0].suggested_fix == "Use YYYY-MM-DD"
        assert result.cleaned_rows[0]["Applied Date"] == "someday"

    def test_turkish_status_is_mapped(self, make_row, full_mapping):
        result = validate_rows([make_row(status="Başvuru Yapıldı")], full_mapping)
        assert messages(result.warnings) == ["Status normalized from 'Başvuru Yapıldı' to 'Applied'"]
        assert result.cleaned_rows[0]["Status"] == "Applied"

    def test_unrecognized_status_uses_default(self, make_row, full_mapping):
        result = validate_rows([make_row(status="???")], full_mapping)
        assert messages(result.warnings) == ["Unrecognized status: '???', using 'Pending'"]
        assert result.cleaned_rows[0]["Status"] == "Pending"

    def test_mojibake_repaired_silently(self, make_row, full_mapping):
        result = validate_rows([make_row(notes="Ã§alÄ±ÅŸma")], full_mapping)
        assert result.warnings == []
        assert result.cleaned_rows[0]["Notes"] == "çalışma"

    def test_free_text_keeps_newlines(self, make_row, full_mapping):
        result = validate_rows([make_row(notes="  Line one\n  Line   two ")], full_mapping)
        assert result.warnings == []
        assert result.cleaned_rows[0]["Notes"] == "Line one\n Line two"

    def test_match_score_range(self, make_row):
        mapping = {"company": "Company", "ai_match_score": "Score"}
        result = validate_rows([make_row(Score="150"), make_row(2, Company="Klarna", Score="abc")], mapping)
        assert messages(result.warnings) == [
            "Match score 150 is outside 0-100 and will be clamped",
            "Match score is not a number: 'abc'",
        ]

    def test_input_rows_not_modified(self, make_row, full_mapping):
        rows = [make_row(email=" Careers@Spotify.COM ", notes="Ã§alÄ±ÅŸma")]
        original = copy.deepcopy(rows)
        validate_rows(rows, full_mapping)
        assert rows == original

    def test_second_pass_is_clean(self, make_row, full_mapping):
        row = make_row(
            applied_date="01/15/2024",
            email=" Careers@Spotify.COM ",
            location="Stockholm,  İsveç",
            salary="$ 120,000",
            job_url="spotify.com/careers",
            status="applied",
        )
        first = validate_rows([row], full_mapping)
        assert len(first.warnings) == 6
        cleaned = first.cleaned_rows[0]
        assert cleaned["Applied Date"] == "2024-01-15"
        assert cleaned["Email"] == "careers@spotify.com"
        assert cleaned["Location"] == "Stockholm, Sweden"
        assert cleaned["Salary"] == "$120,000"
        assert cleaned["Job URL"] == "https://spotify.com/careers"
        assert cleaned["Status"] == "Applied"

        second = validate_rows(first.cleaned_rows, full_mapping)
        assert second.warnings == []
        assert second.cleaned_rows == first.cleaned_rows


class TestBusinessRules:
    """Test cross-field checks."""

    def test_interview_before_applied(self, make_row, full_mapping):
        row = make_row(status="Interviewing", interview_date="2024-01-10")
        result = validate_rows([row], full_mapping)
        assert messages(result.warnings) == ["Interview date (2024-01-10) is before applied date (2024-01-15)"]
        assert result.warnings[0].column == "Interview Date"

    def test_interviewing_without_date(self, make_row, full_mapping):
        result = validate_rows([make_row(status="Interviewing")], full_mapping)
        assert messages(result.warnings) == ["Status is Interviewing but no interview date is set"]

    def test_possible_duplicate_within_file(self, make_row, full_mapping):
        rows = [
            make_row(1),
            make_row(2, company="Klarna"),
            make_row(3, company="SPOTIFY", position="backend engineer"),
        ]
        result = validate_rows(rows, full_mapping)
        assert messages(result.warnings) == ["Possible duplicate of row 1"]
        duplicate = result.warnings[0]
        assert duplicate.column == DUPLICATE_COLUMN
        assert duplicate.row == 3
        assert len(result.cleaned_rows) == 3


def test_row_numbers_fall_back_to_position(make_row, full_mapping):
    rows = [make_row(), make_row(company=None)]
    for row in rows:
        del row["_source_record_number"]
    result = validate_rows(rows, full_mapping)
    assert result.errors[0].row == 2


def test_issues_keep_row_order(make_row, full_mapping):
    rows = [make_row(5, email="bad"), make_row(9, company="Klarna", email="worse")]
    result = validate_rows(rows, full_mapping)
    assert [issue.row for issue in result.warnings] == [5, 9]


def _issue(severity, column="Company", row=1):
    return ValidationIssue(row=row, column=column, message="x", severity=severity)


class TestValidationSummary:
    """Test summary text and recommendations."""

    def test_clean(self):
        summary = generate_validation_summary([], [])
        assert summary.can_proceed
        assert summary.total_issues == 0
        assert summary.summary == "Data validation passed successfully"
        assert summary.recommendations == ["Data is ready to import"]

    def test_warnings_only(self):
        summary = generate_validation_summary([], [_issue(Severity.WARNING)] * 3)
        assert summary.can_proceed
        assert summary.summary == "Found 3 warnings. Data can be imported with automatic corrections"
        assert summary.recommendations == ["Review auto-corrections and proceed with import"]

    def test_errors_block(self):
        errors = [_issue(Severity.ERROR), _issue(Severity.ERROR, row=2)]
        warnings = [_issue(Severity.WARNING, column=DUPLICATE_COLUMN, row=3)]
        summary = generate_validation_summary(errors, warnings)
        assert not summary.can_proceed
        assert summary.critical_errors == 2
        assert summary.total_issues == 3
        assert summary.summary == "Found 2 critical errors that must be fixed before importing and 1 warnings"
        assert "Fix 2 critical errors before importing" in summary.recommendations
        assert "1 possible duplicates detected: review before proceeding" in summary.recommendations
