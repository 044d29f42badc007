from typing import Dict, Any, Optional, List
from pydantic import BaseModel, Field
from enum import Enum

from .models import Application


class Severity(str, Enum):
    ERROR = "error"
    WARNING = "warning"


class TemplateSource(str, Enum):
    LINKEDIN = "linkedin"
    INDEED = "indeed"
    GLASSDOOR = "glassdoor"
    CUSTOM = "custom"


class SuggestedResolution(str, Enum):
    MERGE = "merge"
    SKIP_DUPLICATES = "skip_duplicates"
    KEEP_ALL = "keep_all"


class ResolutionAction(str, Enum):
    MERGE = "merge"
    SKIP = "skip"
    UPDATE = "update"
    KEEP_BOTH = "keep_both"


class ImportStage(str, Enum):
    UPLOADING = "uploading"
    PARSING = "parsing"
    VALIDATING = "validating"
    IMPORTING = "importing"
    COMPLETE = "complete"


class ImportFailureKind(str, Enum):
    EMPTY_FILE = "empty_file"
    UNPARSEABLE = "unparseable"
    VALIDATION_BLOCKED = "validation_blocked"
    CANCELLED = "cancelled"


# Encoding
class EncodingCandidate(BaseModel):
    encoding: str
    confidence: float = Field(ge=0.0, le=1.0)
    sample: str = ""  # Short decoded preview


# Column detection
class ColumnDetectionResult(BaseModel):
    """Field -> source column, with a per-field confidence for every mapped field."""
    detected_mapping: Dict[str, str] = Field(default_factory=dict)
    confidence: Dict[str, float] = Field(default_factory=dict)
    suggestions: List[str] = Field(default_factory=list)
    template_id: Optional[str] = None


class TemplateFieldMapping(BaseModel):
    csv_header: str
    field: str
    required: bool = False
    confidence: float = Field(default=1.0, ge=0.0, le=1.0)


class CSVTemplate(BaseModel):
    id: str
    name: str
    description: str
    source: TemplateSource
    version: int = 1
    field_mappings: List[TemplateFieldMapping]
    sample_data: List[Dict[str, str]] = Field(default_factory=list)  # Rows keyed by csv_header

    @property
    def headers(self) -> List[str]:
        return [mapping.csv_header for mapping in self.field_mappings]


class TemplateMatch(BaseModel):
    template_id: Optional[str] = None
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    matched_fields: List[str] = Field(default_factory=list)


class TemplateMappingResult(BaseModel):
    template_id: str
    mapping: Dict[str, str] = Field(default_factory=dict)
    confidence: Dict[str, float] = Field(default_factory=dict)
    unmapped_headers: List[str] = Field(default_factory=list)
    missing_fields: List[str] = Field(default_factory=list)
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


# Validation
class ValidationIssue(BaseModel):
    row: int  # 1-based data row number
    column: str
    message: str
    severity: Severity
    suggested_fix: Optional[str] = None


class ValidationResult(BaseModel):
    errors: List[ValidationIssue] = Field(default_factory=list)
    warnings: List[ValidationIssue] = Field(default_factory=list)
    cleaned_rows: List[Dict[str, Any]] = Field(default_factory=list)


class ValidationSummary(BaseModel):
    can_proceed: bool
    total_issues: int
    critical_errors: int
    warnings: int
    summary: str
    recommendations: List[str] = Field(default_factory=list)


# Duplicates
class DuplicateMember(BaseModel):
    ref: str  # "row:<n>" for incoming rows, "existing:<id>" for stored records
    index: int  # Position in the incoming row list or the existing list
    data: Dict[str, Any]
    is_existing: bool = False


class DuplicateGroup(BaseModel):
    id: str
    members: List[DuplicateMember]
    confidence: float = Field(ge=0.0, le=1.0)
    match_reasons: List[str] = Field(default_factory=list)
    suggested_resolution: SuggestedResolution


class DuplicateResolution(BaseModel):
    action: ResolutionAction
    primary_ref: str
    secondary_ref: Optional[str] = None
    merged_data: Optional[Dict[str, Any]] = None


class ResolutionSummary(BaseModel):
    merged: int = 0
    skipped: int = 0
    updated: int = 0
    kept: int = 0
    ignored: int = 0  # Resolutions whose refs were unknown or already applied
    existing_updates: Dict[str, Dict[str, Any]] = Field(default_factory=dict)


class DuplicateSummary(BaseModel):
    total_duplicates: int = 0
    high_confidence_groups: int = 0
    medium_confidence_groups: int = 0
    low_confidence_groups: int = 0
    recommended_actions: List[str] = Field(default_factory=list)


# Orchestration
class ImportProgress(BaseModel):
    stage: ImportStage
    progress: int = Field(ge=0, le=100)
    message: str
    current_row: Optional[int] = None
    total_rows: Optional[int] = None


class ImportSummary(BaseModel):
    total_rows: int = 0
    successful_imports: int = 0
    skipped_rows: int = 0
    duplicates_found: int = 0
    issues_resolved: int = 0
    suggestions: List[str] = Field(default_factory=list)


class ImportOptions(BaseModel):
    template_id: Optional[str] = None
    mapping_override: Optional[Dict[str, str]] = None  # Replaces detection entirely
    skip_validation: bool = False
    force_import: bool = False  # Import surviving rows even when errors were reported
    detect_duplicates: bool = True
    existing_records: List[Application] = Field(default_factory=list)
    duplicate_resolutions: List[DuplicateResolution] = Field(default_factory=list)


class ImportFailure(BaseModel):
    kind: ImportFailureKind
    message: str


class ImportResult(BaseModel):
    success: bool
    failure: Optional[ImportFailure] = None
    encoding: Optional[EncodingCandidate] = None
    columns: List[str] = Field(default_factory=list)
    detection: Optional[ColumnDetectionResult] = None
    mapping: Dict[str, str] = Field(default_factory=dict)
    validation: Optional[ValidationResult] = None
    validation_summary: Optional[ValidationSummary] = None
    duplicate_groups: List[DuplicateGroup] = Field(default_factory=list)
    duplicate_summary: Optional[DuplicateSummary] = None
    resolution_summary: Optional[ResolutionSummary] = None
    records: List[Application] = Field(default_factory=list)
    summary: ImportSummary = Field(default_factory=ImportSummary)
