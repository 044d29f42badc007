"""
Import orchestration.

This module ties the pipeline stages together: encoding detection,
decoding, CSV parsing, column detection, validation, duplicate detection
and conversion into ``Application`` records. ``run_import`` is the single
entry point for a whole file; the stage functions are public so a review UI
can stop after ``prepare_import``/``review_import`` and resume with the
caller's mapping and duplicate decisions.
"""

from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple
from dataclasses import dataclass
from datetime import date
import time
import logging

from application_import.core.cancellation import CancellationToken
from application_import.core.config import settings
from application_import.core.exceptions import (
    CSVParseError,
    EmptyFileError,
    ImportCancelledError,
    RecordConversionError,
)
from application_import.models import Application
from application_import.schemas import (
    ColumnDetectionResult,
    DuplicateGroup,
    DuplicateSummary,
    EncodingCandidate,
    ImportFailure,
    ImportFailureKind,
    ImportOptions,
    ImportProgress,
    ImportResult,
    ImportStage,
    ImportSummary,
    ValidationResult,
    ValidationSummary,
)
from .duplicates import apply_resolutions, detect_duplicates, generate_duplicate_summary
from .encoding import decode_bytes, detect_encoding
from .field_detector import detect_columns, detect_columns_with_template
from .processors.csv_processor import parse_csv_text
from .records import convert_row_to_application
from .validator import generate_validation_summary, validate_rows

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[ImportProgress], None]

CONVERSION_PROGRESS_START = 80
CONVERSION_PROGRESS_SPAN = 15


@dataclass
class PreparedImport:
    encoding: EncodingCandidate
    text: str
    columns: List[str]
    rows: List[Dict[str, Any]]
    detection: ColumnDetectionResult
    delimiter: str = ","
    truncated_rows: int = 0


@dataclass
class ImportReview:
    validation: ValidationResult
    validation_summary: ValidationSummary
    duplicate_groups: List[DuplicateGroup]
    duplicate_summary: Optional[DuplicateSummary] = None


def _report(
    callback: Optional[ProgressCallback],
    stage: ImportStage,
    progress: int,
    message: str,
    current_row: Optional[int] = None,
    total_rows: Optional[int] = None,
) -> None:
    if callback is None:
        return
    update = ImportProgress(
        stage=stage, progress=progress, message=message, current_row=current_row, total_rows=total_rows
    )
    try:
        callback(update)
    except Exception as exc:
        # Callback failures never abort the import
        logger.warning(f"Progress callback raised {type(exc).__name__}: {exc}")


def prepare_import(
    file_content: bytes,
    *,
    progress_callback: Optional[ProgressCallback] = None,
    template_id: Optional[str] = None,
) -> PreparedImport:
    """
    Decode, parse and detect the column mapping for a file.

    Raises:
        EmptyFileError: if the file has no header or no data rows
        CSVParseError: if the decoded text is not well-formed CSV
    """
    _report(progress_callback, ImportStage.UPLOADING, 10, "Detecting file encoding")
    encoding = detect_encoding(file_content[: settings.encoding_sample_bytes])

    _report(progress_callback, ImportStage.PARSING, 20, f"Decoding file as {encoding.encoding}")
    text = decode_bytes(file_content, encoding.encoding)

    _report(progress_callback, ImportStage.PARSING, 40, "Parsing CSV rows")
    parsed = parse_csv_text(text)

    _report(
        progress_callback, ImportStage.PARSING, 60, "Detecting column mapping", total_rows=parsed.row_count
    )
    sample_rows = parsed.rows[: settings.content_sample_size]
    if template_id:
        detection = detect_columns_with_template(parsed.columns, template_id, sample_rows)
    else:
        detection = detect_columns(parsed.columns, sample_rows)

    logger.info(
        f"Prepared import: {parsed.row_count} rows, {len(parsed.columns)} columns, "
        f"{len(detection.detected_mapping)} mapped fields, encoding {encoding.encoding}"
    )
    return PreparedImport(
        encoding=encoding,
        text=text,
        columns=parsed.columns,
        rows=parsed.rows,
        detection=detection,
        delimiter=parsed.delimiter,
        truncated_rows=parsed.truncated_rows,
    )


def review_import(
    rows: Sequence[Dict[str, Any]],
    mapping: Dict[str, str],
    *,
    existing_records: Optional[Sequence[Application]] = None,
    check_duplicates: bool = True,
    cancel_token: Optional[CancellationToken] = None,
    progress_callback: Optional[ProgressCallback] = None,
) -> ImportReview:
    """
    Validate rows and look for duplicates among the rows that survive validation.

    Raises:
        ImportCancelledError: if ``cancel_token`` is cancelled during duplicate detection
    """
    _report(progress_callback, ImportStage.VALIDATING, 70, "Validating rows", total_rows=len(rows))
    validation = validate_rows(rows, mapping)
    validation_summary = generate_validation_summary(validation.errors, validation.warnings)

    groups: List[DuplicateGroup] = []
    duplicate_summary = None
    if check_duplicates:
        _report(progress_callback, ImportStage.VALIDATING, 75, "Checking for duplicates")
        groups = detect_duplicates(
            validation.cleaned_rows, mapping, existing_records, cancel_token=cancel_token
        )
        duplicate_summary = generate_duplicate_summary(groups)

    return ImportReview(
        validation=validation,
        validation_summary=validation_summary,
        duplicate_groups=groups,
        duplicate_summary=duplicate_summary,
    )


def convert_rows(
    rows: Sequence[Dict[str, Any]],
    mapping: Dict[str, str],
    *,
    progress_callback: Optional[ProgressCallback] = None,
    cancel_token: Optional[CancellationToken] = None,
    batch_size: Optional[int] = None,
    today: Optional[date] = None,
) -> Tuple[List[Application], ImportSummary]:
    """
    Convert rows to applications in batches.

    Between batches the loop sleeps for ``settings.import_batch_yield_seconds``
    so a host event loop or other threads get a turn. Rows that fail
    conversion are logged and counted as skipped.

    Raises:
        ImportCancelledError: if ``cancel_token`` is cancelled between batches
    """
    batch_size = max(1, batch_size or settings.import_batch_size)
    total = len(rows)
    records: List[Application] = []
    skipped = 0

    for start in range(0, total, batch_size):
        if cancel_token is not None:
            cancel_token.raise_if_cancelled("conversion")
        if start:
            time.sleep(settings.import_batch_yield_seconds)

        for row in rows[start:start + batch_size]:
            try:
                records.append(convert_row_to_application(row, mapping, today=today))
            except RecordConversionError as exc:
                logger.warning(f"Skipping row during conversion: {exc.message}")
                skipped += 1

        done = min(start + batch_size, total)
        _report(
            progress_callback,
            ImportStage.IMPORTING,
            CONVERSION_PROGRESS_START + int(CONVERSION_PROGRESS_SPAN * done / total),
            f"Converted {done} of {total} rows",
            current_row=done,
            total_rows=total,
        )

    summary = ImportSummary(total_rows=total, successful_imports=len(records), skipped_rows=skipped)
    logger.info(f"Converted {len(records)} of {total} rows ({skipped} skipped)")
    return records, summary


def _failure(result: ImportResult, kind: ImportFailureKind, message: str) -> ImportResult:
    result.success = False
    result.failure = ImportFailure(kind=kind, message=message)
    logger.warning(f"Import failed ({kind.value}): {message}")
    return result


def run_import(
    file_content: bytes,
    options: Optional[ImportOptions] = None,
    *,
    progress_callback: Optional[ProgressCallback] = None,
    cancel_token: Optional[CancellationToken] = None,
) -> ImportResult:
    """
    Import a whole CSV file.

    The pipeline is:
    1. Encoding detection and decoding
    2. Parsing
    3. Column detection (or ``options.mapping_override``)
    4. Validation and duplicate detection (unless skipped)
    5. Duplicate resolutions chosen by the caller
    6. Batched conversion into ``Application`` records

    Validation errors stop the import with ``validation_blocked`` unless
    ``force_import`` is set, in which case only the rows without errors are
    imported. ``skip_validation`` converts the parsed rows directly.

    Returns:
        ImportResult; failures are reported through ``result.failure``
        rather than raised
    """
    options = options or ImportOptions()
    result = ImportResult(success=False)

    try:
        prepared = prepare_import(
            file_content, progress_callback=progress_callback, template_id=options.template_id
        )
        result.encoding = prepared.encoding
        result.columns = prepared.columns
        result.detection = prepared.detection
        mapping = dict(options.mapping_override) if options.mapping_override else dict(prepared.detection.detected_mapping)
        result.mapping = mapping
        result.summary.total_rows = len(prepared.rows)

        if cancel_token is not None:
            cancel_token.raise_if_cancelled("parsing")

        rows: List[Dict[str, Any]] = prepared.rows
        warnings_count = 0
        if options.skip_validation:
            logger.info("Validation skipped at caller's request")
            if options.detect_duplicates:
                result.duplicate_groups = detect_duplicates(
                    rows, mapping, options.existing_records, cancel_token=cancel_token
                )
                result.duplicate_summary = generate_duplicate_summary(result.duplicate_groups)
        else:
            review = review_import(
                rows,
                mapping,
                existing_records=options.existing_records,
                check_duplicates=options.detect_duplicates,
                cancel_token=cancel_token,
                progress_callback=progress_callback,
            )
            result.validation = review.validation
            result.validation_summary = review.validation_summary
            result.duplicate_groups = review.duplicate_groups
            result.duplicate_summary = review.duplicate_summary
            warnings_count = len(review.validation.warnings)

            if review.validation.errors and not options.force_import:
                result.summary.skipped_rows = len(rows)
                result.summary.duplicates_found = _count_duplicates(result.duplicate_groups)
                result.summary.suggestions = list(review.validation_summary.recommendations)
                return _failure(result, ImportFailureKind.VALIDATION_BLOCKED, review.validation_summary.summary)
            rows = review.validation.cleaned_rows

        resolutions_applied = 0
        if options.duplicate_resolutions:
            rows, resolution_summary = apply_resolutions(
                rows, options.duplicate_resolutions, options.existing_records
            )
            result.resolution_summary = resolution_summary
            resolutions_applied = (
                resolution_summary.merged + resolution_summary.skipped
                + resolution_summary.updated + resolution_summary.kept
            )

        records, conversion_summary = convert_rows(
            rows, mapping, progress_callback=progress_callback, cancel_token=cancel_token
        )
    except EmptyFileError as exc:
        return _failure(result, ImportFailureKind.EMPTY_FILE, exc.message)
    except CSVParseError as exc:
        return _failure(result, ImportFailureKind.UNPARSEABLE, exc.message)
    except ImportCancelledError as exc:
        return _failure(result, ImportFailureKind.CANCELLED, exc.message)

    result.records = records
    result.summary = ImportSummary(
        total_rows=len(prepared.rows),
        successful_imports=conversion_summary.successful_imports,
        skipped_rows=len(prepared.rows) - conversion_summary.successful_imports,
        duplicates_found=_count_duplicates(result.duplicate_groups),
        issues_resolved=warnings_count + resolutions_applied,
        suggestions=_collect_suggestions(result),
    )
    result.success = True

    _report(
        progress_callback,
        ImportStage.COMPLETE,
        100,
        f"Imported {len(records)} applications",
        current_row=len(prepared.rows),
        total_rows=len(prepared.rows),
    )
    logger.info(
        f"Import complete: {result.summary.successful_imports} imported, "
        f"{result.summary.skipped_rows} skipped, {result.summary.duplicates_found} duplicates"
    )
    return result


def _count_duplicates(groups: Sequence[DuplicateGroup]) -> int:
    return sum(len(group.members) - 1 for group in groups)


def _collect_suggestions(result: ImportResult) -> List[str]:
    suggestions: List[str] = []
    if result.detection is not None:
        suggestions.extend(result.detection.suggestions)
    if result.validation_summary is not None and result.validation_summary.warnings:
        suggestions.append(result.validation_summary.summary)
    if result.duplicate_summary is not None and result.duplicate_groups:
        suggestions.extend(result.duplicate_summary.recommended_actions)
    return suggestions
