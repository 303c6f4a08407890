"""
PURPOSE: Integration tests for Pydantic schemas.

Tests validation of strategy draft models:
- Rule label/value normalization and immutability
- Validation result bounds
- Finalized strategy documents
- Risk context constraints and ORM-backed responses
"""

import pytest
from datetime import datetime, timezone
from types import SimpleNamespace
from uuid import uuid4
from pydantic import ValidationError

from strategy_core.risk.risk_models import RiskContext
from strategy_core.schemas.strategy import (
    DraftState,
    FinalizationResult,
    FinalizedStrategy,
    RuleCategory,
    RuleSource,
    SavedStrategyResponse,
    StrategyRule,
    ValidationResult,
)

from conftest import make_rule


class TestStrategyRuleSchema:
    """Test StrategyRule Pydantic schema."""

    def test_rule_valid(self):
        """Test creating a valid rule with defaults."""
        rule = make_rule("Stop Loss", "8 ticks", RuleCategory.RISK)
        assert rule.category is RuleCategory.RISK
        assert rule.source is RuleSource.USER
        assert rule.is_defaulted is False
        assert rule.explanation is None

    def test_rule_strips_whitespace(self):
        """Test label and value are stripped."""
        rule = make_rule("  Instrument ", " ES  ")
        assert rule.label == "Instrument"
        assert rule.value == "ES"

    def test_rule_blank_label(self):
        """Test a blank label is rejected."""
        with pytest.raises(ValidationError):
            make_rule("   ", "ES")

    def test_rule_label_too_long(self):
        """Test labels longer than 120 characters are rejected."""
        with pytest.raises(ValidationError):
            make_rule("x" * 121, "ES")

    def test_rule_invalid_category(self):
        """Test unknown categories are rejected."""
        with pytest.raises(ValidationError):
            StrategyRule(category="strategy", label="Instrument", value="ES")

    def test_rule_is_frozen(self):
        """Test rules cannot be mutated after creation."""
        rule = make_rule("Instrument", "ES")
        with pytest.raises(ValidationError):
            rule.value = "NQ"


class TestValidationResultSchema:
    """Test ValidationResult bounds and defaults."""

    def test_defaults(self):
        """Test an empty result."""
        result = ValidationResult(completion_score=0)
        assert result.state is DraftState.EMPTY
        assert result.errors == []
        assert result.is_complete is False

    @pytest.mark.parametrize("score", [-1, 101])
    def test_score_bounds(self, score):
        """Test the score stays within 0-100."""
        with pytest.raises(ValidationError):
            ValidationResult(completion_score=score)


class TestFinalizedStrategySchema:
    """Test finalized strategies and finalization results."""

    def test_canonical_document(self):
        """Test the stored document holds pattern, instrument, fields and rules."""
        rules = [make_rule("Instrument", "ES"), make_rule("Stop Loss", "8 ticks", RuleCategory.RISK)]
        strategy = FinalizedStrategy(
            name="ES ORB",
            pattern="opening_range_breakout",
            instrument="ES",
            parsed_rules=rules,
            fields={"instrument": "ES", "stop_loss": "8 ticks"},
        )
        document = strategy.canonical_document()
        assert document["pattern"] == "opening_range_breakout"
        assert document["fields"]["stop_loss"] == "8 ticks"
        assert document["rules"][1] == {
            "category": "risk",
            "label": "Stop Loss",
            "value": "8 ticks",
            "is_defaulted": False,
            "source": "user",
            "explanation": None,
        }

    def test_name_required(self):
        """Test an empty name is rejected."""
        with pytest.raises(ValidationError):
            FinalizedStrategy(name="", pattern="breakout", instrument="ES", parsed_rules=[])

    def test_finalization_ok(self):
        """Test ok follows the presence of a strategy."""
        blocked = FinalizationResult(validation=ValidationResult(completion_score=0), blocked_reasons=["x"])
        assert not blocked.ok


class TestRiskContextSchema:
    """Test RiskContext constraints."""

    def test_all_optional(self):
        """Test an empty context is valid."""
        assert RiskContext().account_size is None

    @pytest.mark.parametrize("field,value", [
        ("account_size", 0),
        ("risk_percent", 150),
        ("drawdown_limit", -5),
        ("contracts", -1),
    ])
    def test_invalid_values(self, field, value):
        """Test non-positive money and out-of-range percentages are rejected."""
        with pytest.raises(ValidationError):
            RiskContext(**{field: value})


class TestSavedStrategyResponseSchema:
    """Test SavedStrategyResponse ORM compatibility."""

    def test_from_attributes(self):
        """Test building a response from an ORM-like object."""
        now = datetime.now(timezone.utc)
        record = SimpleNamespace(
            id=uuid4(),
            name="ES ORB",
            pattern="opening_range_breakout",
            instrument="ES",
            document={"pattern": "opening_range_breakout"},
            version="2026.1",
            created_at=now,
            updated_at=now,
        )
        response = SavedStrategyResponse.model_validate(record)
        assert response.name == "ES ORB"
        assert response.document["pattern"] == "opening_range_breakout"
