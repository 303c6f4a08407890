"""
PURPOSE: Pydantic schemas for strategy drafts, validation results and saved strategies.
"""

from .strategy import (
    DraftState,
    FinalizationResult,
    FinalizedStrategy,
    RuleCategory,
    RuleSource,
    SavedStrategyResponse,
    Severity,
    StrategyRule,
    ValidationIssue,
    ValidationResult,
)

__all__ = [
    "DraftState",
    "FinalizationResult",
    "FinalizedStrategy",
    "RuleCategory",
    "RuleSource",
    "SavedStrategyResponse",
    "Severity",
    "StrategyRule",
    "ValidationIssue",
    "ValidationResult",
]
