"""
Tests for CSV parsing into header-keyed rows.
"""

import pytest

from application_import.core.exceptions import CSVParseError, EmptyFileError
from application_import.domain.imports.processors.csv_processor import (
    SOURCE_RECORD_KEY,
    detect_delimiter,
    extract_raw_csv_rows,
    normalize_csv_text,
    parse_csv_text,
    strip_source_metadata,
)


def test_parse_basic_rows():
    parsed = parse_csv_text("Company,Position\nSpotify,Engineer\nKlarna,Analyst\n")

    assert parsed.columns == ["Company", "Position"]
    assert parsed.row_count == 2
    assert strip_source_metadata(parsed.rows[0]) == {"Company": "Spotify", "Position": "Engineer"}
    assert [row[SOURCE_RECORD_KEY] for row in parsed.rows] == [1, 2]


def test_values_stay_strings():
    parsed = parse_csv_text("Company,Zip,Score\nAcme,01234,85.0\n")
    row = parsed.rows[0]
    assert row["Zip"] == "01234"
    assert row["Score"] == "85.0"


def test_headers_are_trimmed():
    parsed = parse_csv_text(" Company ,  Position\nSpotify,Engineer\n")
    assert parsed.columns == ["Company", "Position"]


def test_empty_cells_become_none():
    parsed = parse_csv_text("Company,Position,Notes\nSpotify,,  \n")
    row = parsed.rows[0]
    assert row["Position"] is None
    assert row["Notes"] is None


def test_blank_rows_dropped_but_numbering_kept():
    parsed = parse_csv_text("Company,Position\nSpotify,Engineer\n,\nKlarna,Analyst\n")
    assert [row["Company"] for row in parsed.rows] == ["Spotify", "Klarna"]
    assert [row[SOURCE_RECORD_KEY] for row in parsed.rows] == [1, 3]


def test_quoted_fields_with_delimiters():
    parsed = parse_csv_text('Company,Notes\n"Acme, Inc","Said ""hi"""\n')
    assert parsed.rows[0]["Company"] == "Acme, Inc"
    assert parsed.rows[0]["Notes"] == 'Said "hi"'


def test_semicolon_delimiter_detected():
    parsed = parse_csv_text("Company;Position\nSpotify;Engineer\n")
    assert parsed.delimiter == ";"
    assert parsed.rows[0]["Position"] == "Engineer"


def test_long_rows_truncated_to_header_width():
    parsed = parse_csv_text("A,B\n4,5\n1,2,3\n")
    assert [strip_source_metadata(row) for row in parsed.rows] == [
        {"A": "4", "B": "5"},
        {"A": "1", "B": "2"},
    ]
    assert parsed.truncated_rows == 1


def test_bom_is_ignored():
    parsed = parse_csv_text("\ufeffCompany,Position\nSpotify,Engineer\n")
    assert parsed.columns[0] == "Company"


@pytest.mark.parametrize("text", [
    "",
    "   \n",
    "Company,Position\n",
    "Company,Position\n,\n , \n",
])
def test_empty_input_raises(text):
    with pytest.raises(EmptyFileError) as exc_info:
        parse_csv_text(text)
    assert exc_info.value.kind == "empty_file"


@pytest.mark.parametrize("header,expected", [
    ("a,b,c", ","),
    ("a;b;c", ";"),
    ("a\tb\tc", "\t"),
    ("a|b|c", "|"),
    ('"x;y",b,c', ","),
    ("single", ","),
])
def test_detect_delimiter(header, expected):
    assert detect_delimiter(header + "\n1,2,3\n") == expected


def test_extract_raw_rows_preview():
    text = "Company,Position\nSpotify,Engineer\nKlarna,Analyst\nVolvo,Designer\n"
    rows = extract_raw_csv_rows(text, num_rows=2)
    assert rows == [["Company", "Position"], ["Spotify", "Engineer"]]


def test_strip_source_metadata_copies():
    row = {"Company": "Spotify", SOURCE_RECORD_KEY: 4}
    stripped = strip_source_metadata(row)
    assert stripped == {"Company": "Spotify"}
    assert SOURCE_RECORD_KEY in row


@pytest.mark.parametrize("text", [
    "Company,Position\rSpotify,Engineer\rKlarna,Analyst\r",
    "Company,Position\r\nSpotify,Engineer\r\nKlarna,Analyst\r\n",
])
def test_carriage_return_line_endings(text):
    parsed = parse_csv_text(text)
    assert parsed.columns == ["Company", "Position"]
    assert [row["Company"] for row in parsed.rows] == ["Spotify", "Klarna"]


def test_quoted_newlines_kept():
    parsed = parse_csv_text('Company,Notes\rAcme,"line one\rline two"\r')
    assert parsed.rows[0]["Notes"] == "line one\nline two"


def test_normalize_csv_text():
    assert normalize_csv_text("\ufeffa,b\r\n1,\x002\r3,4") == "a,b\n1,2\n3,4"


@pytest.mark.parametrize("text", [
    'Company,Notes\nGoogle,"unterminated\nApple,x\n',
    'Company,Notes\nGoogle,"closed"trailing\n',
])
def test_malformed_quoting_raises(text):
    with pytest.raises(CSVParseError) as exc_info:
        parse_csv_text(text)
    assert exc_info.value.kind == "unparseable"
    assert exc_info.value.message.startswith("Could not parse CSV file: ")


def test_extract_raw_rows_with_carriage_returns():
    rows = extract_raw_csv_rows("Company,Position\rSpotify,Engineer\r")
    assert rows == [["Company", "Position"], ["Spotify", "Engineer"]]
