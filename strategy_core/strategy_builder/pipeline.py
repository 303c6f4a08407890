"""
PURPOSE: Validate strategy drafts and gate finalization.

validate_strategy combines the completeness check for the draft's pattern
with the risk/structure checks into one ValidationResult and derives the
draft's lifecycle state. It is a pure function of its inputs, so calling it
twice on the same rules gives the same result.

Lifecycle:
    EMPTY -> PARTIAL -> COMPLETE_WITH_WARNINGS -> READY
    BLOCKED whenever errors exist; a blocked draft is never finalized.

CALLED BY:
    - strategy_builder/draft.py (StrategySession.validate / finalize)
    - api/routes_strategy_builder.py (validate and save endpoints)
"""

from typing import List, Optional, Sequence, Union

from strategy_core.risk.risk_models import RiskContext
from strategy_core.risk.risk_validator import RiskThresholds, RiskValidator
from strategy_core.schemas.strategy import (
    DraftState,
    FinalizationResult,
    FinalizedStrategy,
    Severity,
    StrategyRule,
    ValidationResult,
)
from strategy_core.strategy_builder.aliases import match_fields
from strategy_core.strategy_builder.completeness import assess_completeness, completion_score, to_issues
from strategy_core.strategy_builder.patterns import UNSUPPORTED, CanonicalPattern, detect_pattern
from strategy_core.utils.logger import get_logger

logger = get_logger("strategy_builder.pipeline")

PatternLike = Union[CanonicalPattern, str, None]


def coerce_pattern(pattern: PatternLike) -> Optional[CanonicalPattern]:
    """Resolve a pattern argument to a CanonicalPattern, None when unsupported or absent."""
    if pattern is None or isinstance(pattern, CanonicalPattern):
        return pattern
    detected = detect_pattern(pattern)
    return None if detected == UNSUPPORTED else CanonicalPattern(detected)


def draft_state(rules: Sequence[StrategyRule], result: ValidationResult) -> DraftState:
    """
    PURPOSE: Derive the lifecycle state of a draft from its validation result.

    Args:
        rules: Current draft rules.
        result: Validation result for those rules.

    Returns:
        DraftState: EMPTY, BLOCKED, PARTIAL, COMPLETE_WITH_WARNINGS or READY.
    """
    if not rules:
        return DraftState.EMPTY
    if result.errors:
        return DraftState.BLOCKED
    if result.required_missing:
        return DraftState.PARTIAL
    if result.warnings:
        return DraftState.COMPLETE_WITH_WARNINGS
    return DraftState.READY


def validate_strategy(
    rules: Sequence[StrategyRule],
    pattern: PatternLike = None,
    context: Optional[RiskContext] = None,
    thresholds: Optional[RiskThresholds] = None,
) -> ValidationResult:
    """
    PURPOSE: Score and validate a rule set.

    Required and recommended fields come from the pattern's schema (core
    fields only when no pattern is known). Errors and warnings come from
    the risk validator. is_complete requires every required field and no
    errors; the score only reaches 100 under the same condition.

    CALLED BY: StrategySession.validate, finalize_strategy, POST /validate

    Args:
        rules: Current draft rules (never mutated).
        pattern: Canonical pattern or identifier.
        context: Optional user-entered numeric risk context.
        thresholds: Optional risk thresholds, defaults to settings.

    Returns:
        ValidationResult: Score, missing fields, errors, warnings and state.
    """
    canonical = coerce_pattern(pattern)
    rules = list(rules)

    report = assess_completeness(canonical, rules)
    risk = RiskValidator(thresholds).validate(rules, context)

    fields_complete = report.fields_complete
    result = ValidationResult(
        completion_score=completion_score(report.satisfied_required, report.total_required, bool(risk.errors)),
        required_missing=to_issues(report.required_missing, Severity.ERROR),
        recommended_missing=to_issues(report.recommended_missing, Severity.WARNING),
        errors=risk.errors,
        warnings=risk.warnings,
        is_complete=fields_complete and not risk.errors,
        fields_complete=fields_complete,
        pattern=canonical.value if canonical else None,
        editable_defaults=report.defaulted_labels,
    )
    result.state = draft_state(rules, result)

    logger.debug(
        "strategy_validated",
        pattern=result.pattern,
        score=result.completion_score,
        required_missing=[issue.field for issue in result.required_missing],
        errors=len(result.errors),
        warnings=len(result.warnings),
        state=result.state.value,
    )
    return result


def can_finalize(result: ValidationResult) -> bool:
    """True when the draft is complete and nothing blocks it."""
    return result.is_complete and not result.errors


def finalize_strategy(
    name: str,
    pattern: PatternLike,
    rules: Sequence[StrategyRule],
    context: Optional[RiskContext] = None,
    confirm_defaults: bool = False,
    thresholds: Optional[RiskThresholds] = None,
) -> FinalizationResult:
    """
    PURPOSE: Produce a FinalizedStrategy, or the reasons it cannot be produced.

    Finalization requires a supported pattern, every required field, zero
    errors and, when defaults were applied, the user's confirmation that
    they reviewed the defaulted values.

    CALLED BY: StrategySession.finalize, POST /save

    Args:
        name: Strategy name.
        pattern: Canonical pattern or identifier.
        rules: Draft rules.
        context: Optional user-entered numeric risk context.
        confirm_defaults: The user reviewed the defaulted values.
        thresholds: Optional risk thresholds.

    Returns:
        FinalizationResult: strategy or blocked_reasons.
    """
    canonical = coerce_pattern(pattern)
    result = validate_strategy(rules, canonical, context, thresholds)

    reasons: List[str] = []
    if canonical is None:
        reasons.append(f"Pattern '{pattern}' is not supported.")
    for issue in result.required_missing:
        reasons.append(issue.message)
    for issue in result.errors:
        reasons.append(issue.message)
    if result.editable_defaults and not confirm_defaults:
        reasons.append("Review and confirm defaulted values: " + ", ".join(result.editable_defaults))

    if reasons:
        logger.info("strategy_finalization_blocked", pattern=result.pattern, reasons=reasons)
        return FinalizationResult(strategy=None, validation=result, blocked_reasons=reasons)

    matched = match_fields(list(rules), canonical)
    strategy = FinalizedStrategy(
        name=name,
        pattern=canonical.value,
        instrument=matched["instrument"].value,
        parsed_rules=list(rules),
        fields={field_id: rule.value for field_id, rule in matched.items()},
    )
    logger.info("strategy_finalized", name=name, pattern=strategy.pattern, instrument=strategy.instrument)
    return FinalizationResult(strategy=strategy, validation=result)
