"""
Strategy draft Pydantic schemas.

Handles validation and serialization of the rules that make up a strategy
draft, the issues raised against them and the finalized strategy handed to
persistence.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator


class RuleCategory(str, Enum):
    """Grouping of a rule within the strategy draft."""

    SETUP = "setup"
    ENTRY = "entry"
    EXIT = "exit"
    RISK = "risk"
    TIMEFRAME = "timeframe"
    FILTERS = "filters"


class RuleSource(str, Enum):
    """Who produced a rule value."""

    USER = "user"
    DEFAULT = "default"
    INFERRED = "inferred"


class Severity(str, Enum):
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


class DraftState(str, Enum):
    """
    Lifecycle state of a strategy draft.

    EMPTY -> PARTIAL -> COMPLETE_WITH_WARNINGS -> READY, with BLOCKED
    reachable from any non-empty state while errors exist.
    """

    EMPTY = "EMPTY"
    PARTIAL = "PARTIAL"
    COMPLETE_WITH_WARNINGS = "COMPLETE_WITH_WARNINGS"
    READY = "READY"
    BLOCKED = "BLOCKED"


class StrategyRule(BaseModel):
    """
    One labelled fact of a strategy draft.

    Attributes:
        category: Rule grouping (setup, entry, exit, risk, timeframe, filters)
        label: Field label, unique within a draft
        value: Display value, e.g. "8 ticks below range low"
        is_defaulted: True when the value came from a safe default
        source: user, default or inferred
        explanation: Why a default was chosen, shown next to defaulted values
    """

    model_config = ConfigDict(frozen=True)

    category: RuleCategory
    label: str = Field(..., min_length=1, max_length=120)
    value: str = Field(..., max_length=2000)
    is_defaulted: bool = False
    source: RuleSource = RuleSource.USER
    explanation: Optional[str] = None

    @field_validator('label')
    @classmethod
    def validate_label(cls, v: str) -> str:
        """Strip surrounding whitespace and reject blank labels."""
        v = v.strip()
        if not v:
            raise ValueError('label must not be blank')
        return v

    @field_validator('value')
    @classmethod
    def validate_value(cls, v: str) -> str:
        """Strip surrounding whitespace."""
        return v.strip()


class ValidationIssue(BaseModel):
    """
    A missing field, error or warning raised against a draft.

    Attributes:
        field: Field id or label the issue refers to
        severity: error, warning or info
        message: Human-readable description
        suggestion: Optional remedy shown to the user
        category: Rule category the field belongs to
    """

    field: str
    severity: Severity
    message: str
    suggestion: Optional[str] = None
    category: Optional[RuleCategory] = None


class ValidationResult(BaseModel):
    """
    Outcome of validating a strategy draft.

    Attributes:
        completion_score: 0-100; reaches 100 only with every required field and no errors
        required_missing: Required fields not yet satisfied, in schema order
        recommended_missing: Recommended fields not yet satisfied
        errors: Blocking issues
        warnings: Non-blocking issues
        is_complete: All required fields present and no errors
        fields_complete: All required fields present, regardless of errors
        pattern: Canonical pattern id the draft was checked against
        editable_defaults: Labels of defaulted rules the user must be able to edit
        state: Lifecycle state derived from the above
    """

    completion_score: int = Field(..., ge=0, le=100)
    required_missing: List[ValidationIssue] = Field(default_factory=list)
    recommended_missing: List[ValidationIssue] = Field(default_factory=list)
    errors: List[ValidationIssue] = Field(default_factory=list)
    warnings: List[ValidationIssue] = Field(default_factory=list)
    is_complete: bool = False
    fields_complete: bool = False
    pattern: Optional[str] = None
    editable_defaults: List[str] = Field(default_factory=list)
    state: DraftState = DraftState.EMPTY


class FinalizedStrategy(BaseModel):
    """
    A validated strategy ready for persistence.

    Attributes:
        name: User-facing strategy name
        pattern: Canonical pattern id
        instrument: Instrument value as entered
        parsed_rules: The full rule list
        fields: Canonical field id -> value for every matched field
    """

    name: str = Field(..., min_length=1, max_length=100)
    pattern: str
    instrument: str
    parsed_rules: List[StrategyRule]
    fields: Dict[str, str] = Field(default_factory=dict)

    def canonical_document(self) -> Dict[str, Any]:
        """Build the opaque JSON document stored by the persistence layer."""
        return {
            "pattern": self.pattern,
            "instrument": self.instrument,
            "fields": dict(self.fields),
            "rules": [rule.model_dump(mode="json") for rule in self.parsed_rules],
        }


class FinalizationResult(BaseModel):
    """
    Outcome of a finalization attempt.

    Attributes:
        strategy: The finalized strategy, or None when blocked
        validation: Validation result the decision was based on
        blocked_reasons: Why finalization was refused
    """

    strategy: Optional[FinalizedStrategy] = None
    validation: ValidationResult
    blocked_reasons: List[str] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.strategy is not None


class SavedStrategyResponse(BaseModel):
    """
    Persisted strategy record.

    Attributes:
        id: Unique record identifier (UUID)
        name: Strategy name
        pattern: Canonical pattern id
        instrument: Instrument value
        document: Canonical JSON document
        version: Registry version the document was validated against
        created_at: Record creation timestamp
        updated_at: Record last update timestamp
    """

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    pattern: str
    instrument: str
    document: dict
    version: str
    created_at: datetime
    updated_at: datetime
