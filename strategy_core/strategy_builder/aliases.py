"""
PURPOSE: Decide whether a rule label satisfies a schema field.

Rule labels are written by an LLM or a user, so "Stop", "Stop-Loss" and
"Protective stop" must all satisfy the stop_loss field. All label-to-field
matching in the package goes through label_matches so the heuristic lives
in one place and can be tested exhaustively.

CALLED BY:
    - strategy_builder/completeness.py
    - risk/risk_validator.py
    - strategy_builder/pipeline.py
"""

from typing import Dict, Iterable, Optional, Sequence

from strategy_core.schemas.strategy import StrategyRule
from strategy_core.strategy_builder.patterns import CanonicalPattern, FieldDescriptor, get_field_schema
from strategy_core.utils.parsing import normalize_label

# Shorter labels only match an alias that contains them when they are at
# least this long, so "R" or "SL" never match half the schema.
MIN_REVERSE_MATCH_LENGTH = 3


def label_matches(label: str, descriptor: FieldDescriptor) -> bool:
    """
    PURPOSE: Case-insensitive, bidirectional substring match of a label
    against a field's aliases.

    A label matches when an alias occurs inside it ("Initial Stop Loss"
    contains "stop loss") or when it occurs inside an alias ("Entry" is in
    "entry criteria"). Labels containing one of the field's exclusion
    words never match ("Stop Time" is not a stop loss).

    Args:
        label: Rule label as written.
        descriptor: Field to test against.

    Returns:
        bool: True when the label satisfies the field.
    """
    normalized = normalize_label(label or "")
    if not normalized:
        return False

    if any(word in normalized for word in descriptor.excludes):
        return False

    for alias in descriptor.aliases:
        candidate = normalize_label(alias)
        if candidate in normalized:
            return True
        if len(normalized) >= MIN_REVERSE_MATCH_LENGTH and normalized in candidate:
            return True
    return False


def find_matching_rule(rules: Sequence[StrategyRule], descriptor: FieldDescriptor) -> Optional[StrategyRule]:
    """Return the latest rule satisfying the field, or None."""
    for rule in reversed(rules):
        if label_matches(rule.label, descriptor):
            return rule
    return None


def match_fields(
    rules: Sequence[StrategyRule],
    pattern: Optional[CanonicalPattern] = None,
    descriptors: Optional[Iterable[FieldDescriptor]] = None,
) -> Dict[str, StrategyRule]:
    """
    PURPOSE: Map each satisfied field id of a schema to its rule.

    Args:
        rules: Current draft rules.
        pattern: Pattern whose schema is checked (core fields when None).
        descriptors: Explicit descriptors to check instead of the schema.

    Returns:
        Dict[str, StrategyRule]: field id -> matching rule, schema order.
    """
    schema = tuple(descriptors) if descriptors is not None else get_field_schema(pattern)
    matched: Dict[str, StrategyRule] = {}
    for descriptor in schema:
        rule = find_matching_rule(rules, descriptor)
        if rule is not None:
            matched[descriptor.field] = rule
    return matched
