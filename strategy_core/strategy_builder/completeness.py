"""
PURPOSE: Completeness scoring and safe defaulting for strategy drafts.

For a canonical pattern, checks which schema fields the current rules
satisfy, scores the draft, fills gaps that have safe professional defaults
and decides whether the first assistant turn should ask questions instead
of defaulting. Fields with direct dollar-risk consequences (entry, stop
loss) and the instrument are never defaulted.

CALLED BY:
    - strategy_builder/pipeline.py (validate_strategy)
    - strategy_builder/draft.py (first-turn planning)
    - api/routes_strategy_builder.py (defaults endpoint)
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from strategy_core.config.settings import settings
from strategy_core.schemas.strategy import RuleSource, Severity, StrategyRule, ValidationIssue
from strategy_core.strategy_builder.aliases import match_fields
from strategy_core.strategy_builder.patterns import (
    FIELD_DISPLAY,
    CanonicalPattern,
    FieldDescriptor,
    get_field_schema,
)
from strategy_core.utils.logger import get_logger

logger = get_logger("strategy_builder.completeness")


@dataclass
class CompletenessReport:
    """
    Which schema fields a rule set satisfies.

    Attributes:
        pattern: Pattern the schema was taken from (None for core only)
        satisfied_required: Number of required fields present
        total_required: Number of required fields in the schema
        required_missing: Missing required descriptors, schema order
        recommended_missing: Missing recommended descriptors, schema order
        matched: field id -> satisfying rule
        defaulted_labels: Labels of defaulted rules
        present_ratio: Present fields / all expected fields
    """

    pattern: Optional[CanonicalPattern]
    satisfied_required: int
    total_required: int
    required_missing: List[FieldDescriptor] = field(default_factory=list)
    recommended_missing: List[FieldDescriptor] = field(default_factory=list)
    matched: Dict[str, StrategyRule] = field(default_factory=dict)
    defaulted_labels: List[str] = field(default_factory=list)
    present_ratio: float = 0.0

    @property
    def fields_complete(self) -> bool:
        return not self.required_missing


@dataclass
class MissingFieldPrompt:
    """A structured question for one missing field."""

    field: str
    label: str
    title: str
    description: str
    options: List[Dict[str, str]] = field(default_factory=list)

    def to_dict(self) -> Dict:
        return {
            "field": self.field,
            "label": self.label,
            "title": self.title,
            "description": self.description,
            "options": list(self.options),
        }


@dataclass
class DefaultingResult:
    rules: List[StrategyRule]
    applied: List[StrategyRule] = field(default_factory=list)


@dataclass
class FirstTurnPlan:
    """
    What the first assistant turn should do with the current rules.

    Attributes:
        vague: True when too little was specified to default safely
        rules: Rules after defaulting (unchanged when vague)
        applied_defaults: Defaulted rules that were added
        prompts: Questions to ask, at most max_questions when vague
        present_ratio: Share of expected fields present before defaulting
    """

    vague: bool
    rules: List[StrategyRule]
    applied_defaults: List[StrategyRule] = field(default_factory=list)
    prompts: List[MissingFieldPrompt] = field(default_factory=list)
    present_ratio: float = 0.0

    def to_dict(self) -> Dict:
        return {
            "vague": self.vague,
            "rules": [rule.model_dump(mode="json") for rule in self.rules],
            "applied_defaults": [rule.model_dump(mode="json") for rule in self.applied_defaults],
            "prompts": [prompt.to_dict() for prompt in self.prompts],
            "present_ratio": round(self.present_ratio, 4),
        }


def assess_completeness(pattern: Optional[CanonicalPattern], rules: Sequence[StrategyRule]) -> CompletenessReport:
    """
    PURPOSE: Check a rule set against a pattern's field schema.

    Args:
        pattern: Canonical pattern, or None to check core fields only.
        rules: Current draft rules.

    Returns:
        CompletenessReport: Satisfied and missing fields.
    """
    schema = get_field_schema(pattern)
    matched = match_fields(rules, descriptors=schema)

    required = [d for d in schema if d.required]
    required_missing = [d for d in required if d.field not in matched]
    recommended_missing = [d for d in schema if not d.required and d.field not in matched]

    return CompletenessReport(
        pattern=pattern,
        satisfied_required=len(required) - len(required_missing),
        total_required=len(required),
        required_missing=required_missing,
        recommended_missing=recommended_missing,
        matched=matched,
        defaulted_labels=[rule.label for rule in rules if rule.is_defaulted],
        present_ratio=len(matched) / len(schema) if schema else 0.0,
    )


def completion_score(satisfied: int, total: int, has_errors: bool = False) -> int:
    """
    PURPOSE: Percentage of required fields satisfied.

    round(100 * satisfied / total), clamped to [0, 100]. While blocking
    errors exist the score stops at 99 so that 100 always means "every
    required field present and nothing blocking".

    Args:
        satisfied: Required fields present.
        total: Required fields in the schema.
        has_errors: Whether blocking errors exist.

    Returns:
        int: Completion score.
    """
    if total <= 0:
        return 0 if has_errors else 100
    score = int(round(100.0 * satisfied / total))
    score = max(0, min(100, score))
    if has_errors and score == 100:
        return 99
    return score


def to_issues(descriptors: Sequence[FieldDescriptor], severity: Severity) -> List[ValidationIssue]:
    """Convert missing-field descriptors to validation issues."""
    issues = []
    for descriptor in descriptors:
        display = FIELD_DISPLAY.get(descriptor.field)
        kind = "Required" if descriptor.required else "Recommended"
        suggestion = None
        if descriptor.defaultable and descriptor.default_value:
            suggestion = f"Default: {descriptor.default_value}. {descriptor.default_explanation or ''}".strip()
        elif display is not None:
            suggestion = display.title
        issues.append(ValidationIssue(
            field=descriptor.field,
            severity=severity,
            message=f"{kind} field missing: {descriptor.label}",
            suggestion=suggestion,
            category=descriptor.category,
        ))
    return issues


def default_rule(descriptor: FieldDescriptor) -> StrategyRule:
    """Build the defaulted rule for a defaultable field."""
    if not descriptor.defaultable or descriptor.default_value is None:
        raise ValueError(f"Field {descriptor.field} has no safe default")
    return StrategyRule(
        category=descriptor.category,
        label=descriptor.label,
        value=descriptor.default_value,
        is_defaulted=True,
        source=RuleSource.DEFAULT,
        explanation=descriptor.default_explanation,
    )


def apply_safe_defaults(pattern: Optional[CanonicalPattern], rules: Sequence[StrategyRule]) -> DefaultingResult:
    """
    PURPOSE: Fill missing fields that carry a safe default.

    Required and recommended fields are both filled when defaultable.
    Must-prompt fields (instrument, entry criteria, stop loss) are left
    missing. Existing rules are never overwritten.

    Args:
        pattern: Canonical pattern.
        rules: Current draft rules (not mutated).

    Returns:
        DefaultingResult: New rule list and the rules that were added.
    """
    report = assess_completeness(pattern, rules)
    applied = [
        default_rule(d)
        for d in report.required_missing + report.recommended_missing
        if d.defaultable and d.default_value is not None
    ]
    if applied:
        logger.info(
            "safe_defaults_applied",
            pattern=pattern.value if pattern else None,
            fields=[rule.label for rule in applied],
        )
    return DefaultingResult(rules=list(rules) + applied, applied=applied)


def missing_field_prompts(descriptors: Sequence[FieldDescriptor]) -> List[MissingFieldPrompt]:
    """Build structured prompts for the given fields from the display table."""
    prompts = []
    for descriptor in descriptors:
        display = FIELD_DISPLAY.get(descriptor.field)
        if display is None:
            logger.error("field_display_missing", field=descriptor.field)
            title, description, options = f"What is your {descriptor.label.lower()}?", "", []
        else:
            title = display.title
            description = display.description
            options = [
                {"value": opt.value, "label": opt.label, "description": opt.description}
                for opt in display.options
            ]
        prompts.append(MissingFieldPrompt(
            field=descriptor.field,
            label=descriptor.label,
            title=title,
            description=description,
            options=options,
        ))
    return prompts


def is_vague_input(report: CompletenessReport, threshold: Optional[float] = None) -> bool:
    """True when fewer than `threshold` of the expected fields are present."""
    threshold = settings.VAGUE_INPUT_THRESHOLD if threshold is None else threshold
    return report.present_ratio < threshold


def plan_first_turn(
    pattern: Optional[CanonicalPattern],
    rules: Sequence[StrategyRule],
    threshold: Optional[float] = None,
    max_questions: Optional[int] = None,
) -> FirstTurnPlan:
    """
    PURPOSE: Decide between asking questions and applying safe defaults.

    Very vague input (present fields below the threshold) gets a short
    multi-question clarification and no defaults. Otherwise safe defaults
    are applied and only must-prompt fields are asked for.

    CALLED BY: StrategySession.plan_first_turn, POST /defaults

    Args:
        pattern: Canonical pattern.
        rules: Rules extracted after the first assistant turn.
        threshold: Vague-input threshold, defaults to settings.
        max_questions: Question cap for vague input, defaults to settings.

    Returns:
        FirstTurnPlan: Defaulted rules or questions.
    """
    max_questions = settings.MAX_CLARIFYING_QUESTIONS if max_questions is None else max_questions
    report = assess_completeness(pattern, rules)

    if is_vague_input(report, threshold):
        # Must-prompt fields first, then the rest of the required fields.
        ordered = [d for d in report.required_missing if d.must_prompt]
        ordered += [d for d in report.required_missing if not d.must_prompt]
        prompts = missing_field_prompts(ordered[:max_questions])
        logger.info(
            "first_turn_vague_input",
            present_ratio=round(report.present_ratio, 3),
            questions=[p.field for p in prompts],
        )
        return FirstTurnPlan(vague=True, rules=list(rules), prompts=prompts, present_ratio=report.present_ratio)

    defaulted = apply_safe_defaults(pattern, rules)
    must_prompt = [d for d in report.required_missing if d.must_prompt]
    return FirstTurnPlan(
        vague=False,
        rules=defaulted.rules,
        applied_defaults=defaulted.applied,
        prompts=missing_field_prompts(must_prompt),
        present_ratio=report.present_ratio,
    )
