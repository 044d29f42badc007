"""
Exception types raised inside the import pipeline.

The orchestrator turns these into ``ImportFailure`` values, so callers of
``run_import`` branch on ``failure.kind`` rather than catching them.
"""
from typing import Optional


class ImportEngineError(Exception):
    """Base class for import pipeline errors."""

    kind = "error"


class EmptyFileError(ImportEngineError):
    """Raised when a file has no header or no non-blank data rows."""

    kind = "empty_file"

    def __init__(self, message: Optional[str] = None):
        self.message = message or "No valid data found in CSV file"
        super().__init__(self.message)


class CSVParseError(ImportEngineError):
    """Raised when the text cannot be split into CSV records, e.g. an unterminated quote."""

    kind = "unparseable"

    def __init__(self, detail: str, message: Optional[str] = None):
        self.detail = detail
        self.message = message or f"Could not parse CSV file: {detail}"
        super().__init__(self.message)


class RecordConversionError(ImportEngineError):
    """Raised when a single row cannot be turned into an Application."""

    kind = "conversion_failed"

    def __init__(self, row_number: Optional[int], reason: str, message: Optional[str] = None):
        self.row_number = row_number
        self.reason = reason
        if message is None:
            location = f"Row {row_number}" if row_number is not None else "Row"
            message = f"{location}: {reason}"
        self.message = message
        super().__init__(self.message)


class ImportCancelledError(ImportEngineError):
    """Raised when a CancellationToken is triggered mid-run."""

    kind = "cancelled"

    def __init__(self, stage: str, message: Optional[str] = None):
        self.stage = stage
        self.message = message or f"Import cancelled during {stage}"
        super().__init__(self.message)
