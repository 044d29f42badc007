import pandas as pd
from typing import List, Dict, Any, Optional
from dataclasses import dataclass, field
from io import StringIO
import csv
import re
import logging

from application_import.core.exceptions import CSVParseError, EmptyFileError

logger = logging.getLogger(__name__)

SOURCE_RECORD_KEY = "_source_record_number"
CANDIDATE_DELIMITERS = (",", ";", "\t", "|")


@dataclass
class ParsedCSV:
    """Header row plus data rows keyed by header; every cell is a string or None."""
    columns: List[str]
    rows: List[Dict[str, Any]] = field(default_factory=list)
    delimiter: str = ","
    truncated_rows: int = 0

    @property
    def row_count(self) -> int:
        return len(self.rows)


def normalize_csv_text(text: str) -> str:
    """Strip a BOM and NUL characters and convert CRLF or bare CR line endings to LF."""
    body = text.lstrip("\ufeff")
    nul_count = body.count("\x00")
    if nul_count:
        logger.warning(f"Dropping {nul_count} NUL characters from CSV text")
        body = body.replace("\x00", "")
    return body.replace("\r\n", "\n").replace("\r", "\n")


def detect_delimiter(text: str) -> str:
    """
    Pick the delimiter used in the header row.

    Quoted text is ignored; the candidate with the most occurrences wins and
    a comma is assumed when none appears.
    """
    header_line = next((line for line in text.splitlines() if line.strip()), "")
    unquoted = re.sub(r'"[^"]*"', "", header_line)
    counts = {delimiter: unquoted.count(delimiter) for delimiter in CANDIDATE_DELIMITERS}
    best = max(CANDIDATE_DELIMITERS, key=lambda delimiter: counts[delimiter])
    return best if counts[best] > 0 else ","


def extract_raw_csv_rows(text: str, num_rows: int = 20, delimiter: Optional[str] = None) -> List[List[str]]:
    """
    Extract raw CSV rows without making any assumptions about headers.

    Returns the first N rows as lists of strings, preserving the exact
    structure of the file. Used for previews before a mapping is chosen.

    Args:
        text: Decoded CSV text
        num_rows: Number of rows to extract (default 20)
        delimiter: Field delimiter; detected from the header row when omitted

    Returns:
        List of rows, where each row is a list of string values
    """
    text = normalize_csv_text(text)
    reader = csv.reader(StringIO(text), delimiter=delimiter or detect_delimiter(text))

    raw_rows = []
    for i, row in enumerate(reader):
        if i >= num_rows:
            break
        raw_rows.append(row)

    logger.info(f"Extracted {len(raw_rows)} raw CSV rows for preview")
    return raw_rows


def _clean_cell(value: Any) -> Optional[str]:
    if value is None or (not isinstance(value, str) and pd.isna(value)):
        return None
    text = str(value)
    return text if text.strip() else None


def _scan_records(body: str, delimiter: str) -> int:
    """Walk every record with strict quoting and return the header width."""
    header_width = 0
    try:
        for index, record in enumerate(csv.reader(StringIO(body), delimiter=delimiter, strict=True)):
            if index == 0:
                header_width = len(record)
    except csv.Error as exc:
        logger.error(f"Malformed CSV text: {exc}")
        raise CSVParseError(str(exc)) from exc
    return header_width


def parse_csv_text(text: str, delimiter: Optional[str] = None) -> ParsedCSV:
    """
    Parse decoded CSV text into header-keyed rows.

    - Line endings are normalized first, so files saved with bare CR parse too
    - Every cell is read as a string; empty cells become None
    - Header names are trimmed
    - Rows with no non-blank cell are dropped
    - Each row gets ``_source_record_number``: its 1-based data row number in the file
    - Rows with more fields than the header are truncated to the header width

    Raises:
        EmptyFileError: if there is no header row or no data row survives
        CSVParseError: if the quoting is malformed, e.g. a quoted field never closes
    """
    body = normalize_csv_text(text or "")
    if not body.strip():
        raise EmptyFileError()

    delimiter = delimiter or detect_delimiter(body)
    header_width = _scan_records(body, delimiter)
    truncated: List[int] = []

    def _truncate(bad_line: List[str]) -> List[str]:
        truncated.append(len(bad_line))
        return bad_line[:header_width]

    try:
        df = pd.read_csv(
            StringIO(body),
            sep=delimiter,
            dtype=str,
            keep_default_na=False,
            skip_blank_lines=True,
            engine="python",
            on_bad_lines=_truncate,
        )
    except pd.errors.EmptyDataError as exc:
        raise EmptyFileError() from exc
    except pd.errors.ParserError as exc:
        logger.error(f"pandas could not parse CSV text: {exc}")
        raise CSVParseError(str(exc)) from exc

    columns = [str(column).strip() for column in df.columns]
    df.columns = columns

    rows: List[Dict[str, Any]] = []
    for position, record in enumerate(df.to_dict("records"), start=1):
        row = {column: _clean_cell(value) for column, value in record.items()}
        if all(value is None for value in row.values()):
            continue
        row[SOURCE_RECORD_KEY] = position
        rows.append(row)

    if truncated:
        logger.warning(f"Truncated {len(truncated)} rows that had more fields than the header")

    if not rows:
        raise EmptyFileError()

    logger.info(f"Parsed CSV with {len(rows)} rows, columns: {columns}")
    return ParsedCSV(columns=columns, rows=rows, delimiter=delimiter, truncated_rows=len(truncated))


def strip_source_metadata(row: Dict[str, Any]) -> Dict[str, Any]:
    """Return a copy of a parsed row without reserved keys."""
    return {key: value for key, value in row.items() if key != SOURCE_RECORD_KEY}
