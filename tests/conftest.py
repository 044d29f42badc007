"""
Pytest configuration and fixtures for the application import tests.

Provides CSV builders and the mappings used across test modules, and keeps
the conversion loop from sleeping between batches.
"""

from typing import Dict, List, Sequence

import pytest

from application_import.core.config import settings


def build_csv(headers: Sequence[str], rows: Sequence[Sequence[str]], delimiter: str = ",") -> str:
    """Render rows as CSV text; cells are quoted only when they contain the delimiter."""
    def cell(value: str) -> str:
        if delimiter in value or '"' in value:
            return '"' + value.replace('"', '""') + '"'
        return value

    lines = [delimiter.join(cell(h) for h in headers)]
    lines.extend(delimiter.join(cell(v) for v in row) for row in rows)
    return "\n".join(lines) + "\n"


@pytest.fixture(autouse=True)
def no_batch_yield(monkeypatch):
    """Skip the cooperative sleep between conversion batches."""
    monkeypatch.setattr(settings, "import_batch_yield_seconds", 0.0)
    yield


@pytest.fixture
def make_csv():
    """Factory returning encoded CSV bytes."""
    def _make(headers: Sequence[str], rows: Sequence[Sequence[str]], delimiter: str = ",",
              encoding: str = "utf-8") -> bytes:
        return build_csv(headers, rows, delimiter).encode(encoding)

    return _make


@pytest.fixture
def minimal_csv_bytes() -> bytes:
    """Three rows in the minimal template layout."""
    text = build_csv(
        ["Company", "Position", "Status", "Applied Date"],
        [
            ["Google", "Software Engineer", "Applied", "2024-01-15"],
            ["Microsoft", "Product Manager", "Pending", "2024-01-20"],
            ["Apple", "iOS Developer", "Applied", "2024-01-25"],
        ],
    )
    return text.encode("utf-8")


@pytest.fixture
def full_mapping() -> Dict[str, str]:
    return {
        "company": "Company",
        "position": "Position",
        "location": "Location",
        "status": "Status",
        "applied_date": "Applied Date",
        "interview_date": "Interview Date",
        "contact_email": "Email",
        "job_url": "Job URL",
        "salary": "Salary",
        "tags": "Tags",
        "notes": "Notes",
    }


@pytest.fixture
def make_row():
    """Factory for rows keyed like ``full_mapping``."""
    def _make(number: int = 1, **values: str) -> Dict[str, object]:
        row: Dict[str, object] = {
            "Company": "Spotify",
            "Position": "Backend Engineer",
            "Location": "Stockholm, Sweden",
            "Status": "Applied",
            "Applied Date": "2024-01-15",
            "Interview Date": None,
            "Email": "careers@spotify.com",
            "Job URL": None,
            "Salary": None,
            "Tags": None,
            "Notes": None,
            "_source_record_number": number,
        }
        aliases = {
            "company": "Company", "position": "Position", "location": "Location", "status": "Status",
            "applied_date": "Applied Date", "interview_date": "Interview Date", "email": "Email",
            "job_url": "Job URL", "salary": "Salary", "tags": "Tags", "notes": "Notes",
        }
        for key, value in values.items():
            row[aliases.get(key, key)] = value
        return row

    return _make


@pytest.fixture
def rows_from():
    """Turn plain dicts into parsed-style rows with source record numbers."""
    def _rows(*records: Dict[str, object]) -> List[Dict[str, object]]:
        return [dict(record, _source_record_number=index) for index, record in enumerate(records, start=1)]

    return _rows
