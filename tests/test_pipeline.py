"""
PURPOSE: Unit tests for draft validation and finalization gating.

Tests cover:
- Score, missing fields, errors and warnings combined into one result
- Lifecycle states derived from the result
- Idempotent validation
- Finalization blocked by missing fields, errors, unsupported patterns and unconfirmed defaults
"""

import pytest

from strategy_core.risk.risk_models import RiskContext
from strategy_core.schemas.strategy import DraftState, RuleCategory
from strategy_core.strategy_builder.completeness import default_rule
from strategy_core.strategy_builder.patterns import CanonicalPattern, get_field
from strategy_core.strategy_builder.pipeline import (
    can_finalize,
    coerce_pattern,
    finalize_strategy,
    validate_strategy,
)

from conftest import make_rule


ORB = CanonicalPattern.OPENING_RANGE_BREAKOUT


def _replace(rules, label, value, category=RuleCategory.RISK):
    return [make_rule(label, value, category) if rule.label == label else rule for rule in rules]


class TestCoercePattern:
    """Test pattern argument resolution."""

    def test_coerce(self):
        """Test enum, identifier, unsupported and absent patterns."""
        assert coerce_pattern(ORB) is ORB
        assert coerce_pattern("orb") is ORB
        assert coerce_pattern("macd_histogram") is None
        assert coerce_pattern(None) is None


class TestValidateStrategy:
    """Test combined validation."""

    def test_complete_es_orb(self, orb_rules):
        """Test a complete ES ORB at 1% of $50,000 is ready with 5 contracts."""
        result = validate_strategy(orb_rules, ORB)
        assert result.completion_score == 100
        assert result.is_complete
        assert result.fields_complete
        assert result.errors == []
        assert result.warnings == []
        assert result.required_missing == []
        assert result.pattern == "opening_range_breakout"
        assert result.state is DraftState.READY

    def test_dollar_risk_sizing_not_blocked(self, orb_rules):
        """Test "1% risk per trade ($500)" sizes from the $500 and does not block."""
        rules = _replace(orb_rules, "Position Sizing", "1% risk per trade ($500)")
        result = validate_strategy(rules, ORB)
        assert result.errors == []
        assert result.is_complete
        assert result.completion_score == 100
        assert result.state is not DraftState.BLOCKED

    def test_excessive_risk_blocks(self, orb_rules):
        """Test 6% risk on a $10,000 account keeps fields complete but blocks."""
        rules = _replace(orb_rules, "Position Sizing", "6% risk per trade")
        result = validate_strategy(rules, ORB, RiskContext(account_size=10000))
        assert result.fields_complete
        assert not result.is_complete
        assert result.completion_score == 99
        assert any("6% risk per trade" in issue.message for issue in result.errors)
        assert result.state is DraftState.BLOCKED

    def test_first_message_without_stop(self, ema_rules):
        """Test instrument plus direction scores 17 and is blocked by the missing stop."""
        result = validate_strategy(ema_rules, CanonicalPattern.EMA_PULLBACK)
        assert result.completion_score == 17
        assert [issue.field for issue in result.required_missing] == [
            "entry_criteria", "stop_loss", "profit_target", "position_sizing", "ema_period",
        ]
        assert "Stop-loss is required." in [issue.message for issue in result.errors]
        assert result.state is DraftState.BLOCKED

    def test_partial(self, orb_rules):
        """Test a draft missing a required field but free of errors is partial."""
        rules = [rule for rule in orb_rules if rule.label != "Profit Target"]
        result = validate_strategy(rules, ORB)
        assert result.completion_score == 83
        assert result.state is DraftState.PARTIAL
        assert not result.is_complete

    def test_complete_with_warnings(self, orb_rules):
        """Test warnings alone do not block."""
        rules = _replace(orb_rules, "Position Sizing", "3% of $50,000")
        result = validate_strategy(rules, ORB)
        assert result.is_complete
        assert result.completion_score == 100
        assert result.state is DraftState.COMPLETE_WITH_WARNINGS

    def test_empty(self):
        """Test an empty draft."""
        result = validate_strategy([], ORB)
        assert result.completion_score == 0
        assert result.state is DraftState.EMPTY

    def test_no_pattern_checks_core_fields(self, orb_rules):
        """Test core fields are checked when no pattern is known."""
        result = validate_strategy(orb_rules[:5])
        assert result.pattern is None
        assert result.completion_score == 100

    def test_recommended_are_warnings(self, orb_rules):
        """Test missing recommended fields are listed but never block."""
        result = validate_strategy(orb_rules, ORB)
        assert [issue.field for issue in result.recommended_missing] == [
            "direction", "session", "timeframe", "entry_on",
        ]
        assert all(issue.severity.value == "warning" for issue in result.recommended_missing)

    def test_idempotent(self, orb_rules):
        """Test validating the same rules twice gives the same result."""
        first = validate_strategy(orb_rules, ORB)
        second = validate_strategy(orb_rules, ORB)
        assert first.model_dump() == second.model_dump()

    def test_editable_defaults(self, orb_rules):
        """Test defaulted rules are reported as editable."""
        rules = orb_rules + [default_rule(get_field("session"))]
        result = validate_strategy(rules, ORB)
        assert result.editable_defaults == ["Session"]


class TestFinalizeStrategy:
    """Test finalization gating."""

    def test_finalize_complete(self, orb_rules):
        """Test a ready draft finalizes into a canonical document."""
        outcome = finalize_strategy("ES ORB", ORB, orb_rules)
        assert outcome.ok
        strategy = outcome.strategy
        assert strategy.instrument == "ES"
        assert strategy.pattern == "opening_range_breakout"
        assert strategy.fields["range_period"] == "15 minutes"
        assert strategy.fields["stop_loss"] == "8 ticks below the range low"
        document = strategy.canonical_document()
        assert document["instrument"] == "ES"
        assert len(document["rules"]) == len(orb_rules)

    def test_blocked_by_errors(self, orb_rules):
        """Test errors block finalization and are listed."""
        rules = _replace(orb_rules, "Position Sizing", "6% risk per trade")
        outcome = finalize_strategy("Too hot", ORB, rules, context=RiskContext(account_size=10000))
        assert not outcome.ok
        assert outcome.strategy is None
        assert any("extremely aggressive" in reason for reason in outcome.blocked_reasons)
        assert not can_finalize(outcome.validation)

    def test_blocked_by_missing_fields(self, ema_rules):
        """Test missing required fields block finalization."""
        outcome = finalize_strategy("Half done", CanonicalPattern.EMA_PULLBACK, ema_rules)
        assert "Required field missing: Stop Loss" in outcome.blocked_reasons

    def test_blocked_by_unsupported_pattern(self, orb_rules):
        """Test an unsupported pattern never finalizes."""
        outcome = finalize_strategy("MACD", "macd_histogram", orb_rules)
        assert not outcome.ok
        assert "Pattern 'macd_histogram' is not supported." in outcome.blocked_reasons

    @pytest.mark.parametrize("confirm,expected_ok", [(False, False), (True, True)])
    def test_defaults_need_confirmation(self, orb_rules, confirm, expected_ok):
        """Test defaulted values must be confirmed before saving."""
        rules = orb_rules + [default_rule(get_field("direction"))]
        outcome = finalize_strategy("ES ORB", ORB, rules, confirm_defaults=confirm)
        assert outcome.ok is expected_ok
        if not expected_ok:
            assert outcome.blocked_reasons == ["Review and confirm defaulted values: Direction"]

    def test_can_finalize(self, orb_rules):
        """Test can_finalize mirrors is_complete."""
        assert can_finalize(validate_strategy(orb_rules, ORB))
        assert not can_finalize(validate_strategy(orb_rules[:2], ORB))
