"""
PURPOSE: Unit tests for builder prompt text and validation summaries.

Tests cover:
- System prompt rendering with markers and validation context
- Field questions
- Default announcements
- Next-action hints and one-line summaries
"""

from strategy_core.strategy_builder.completeness import default_rule
from strategy_core.strategy_builder.extractor import STRATEGY_MARKERS
from strategy_core.strategy_builder.patterns import CanonicalPattern, get_field
from strategy_core.strategy_builder.pipeline import validate_strategy
from strategy_core.strategy_builder.prompts import (
    announce_defaults,
    build_system_prompt,
    next_action_suggestion,
    question_for,
    validation_context_for_prompt,
    validation_summary,
)

from conftest import make_rule


ORB = CanonicalPattern.OPENING_RANGE_BREAKOUT
EMA = CanonicalPattern.EMA_PULLBACK


class TestSystemPrompt:
    """Test system prompt rendering."""

    def test_default_markers(self):
        """Test the prompt names the patterns, markers and question cap."""
        prompt = build_system_prompt()
        assert "Opening Range Breakout, EMA Pullback, Breakout" in prompt
        assert "[ANIMATION_START]" in prompt
        assert "[ANIMATION_END]" in prompt
        assert "at most 3" in prompt
        assert '{"type": "breakout_range"' in prompt
        assert "CURRENT DRAFT" not in prompt

    def test_alternate_markers(self):
        """Test the marker pair is configurable."""
        prompt = build_system_prompt(markers=STRATEGY_MARKERS, max_questions=2)
        assert "[STRATEGY_START]" in prompt
        assert "at most 2" in prompt

    def test_validation_context(self, ema_rules):
        """Test the latest validation is appended to the prompt."""
        result = validate_strategy(ema_rules, EMA)
        prompt = build_system_prompt(result)
        assert "CURRENT DRAFT: 17% complete, state BLOCKED." in prompt
        assert "- Stop-loss is required." in prompt


class TestValidationContext:
    """Test the per-turn validation block."""

    def test_missing_fields_listed(self, ema_rules):
        """Test missing required fields are listed by label."""
        text = validation_context_for_prompt(validate_strategy(ema_rules, EMA))
        assert "Pattern: EMA Pullback." in text
        assert "Still needed: Entry Criteria, Stop Loss, Profit Target, Position Sizing, EMA Period." in text

    def test_defaults_listed(self, orb_rules):
        """Test defaulted labels are listed as editable."""
        rules = orb_rules + [default_rule(get_field("session"))]
        text = validation_context_for_prompt(validate_strategy(rules, ORB))
        assert "Defaulted, editable: Session." in text


class TestQuestionsAndDefaults:
    """Test field questions and default announcements."""

    def test_question_templates(self):
        """Test templated and generic questions."""
        assert question_for(get_field("stop_loss")).startswith("Where does your stop loss go")
        assert question_for(get_field("entry_on", ORB)) == "What is your entry on?"

    def test_announce_nothing(self):
        """Test no announcement without defaults."""
        assert announce_defaults([]) == ""

    def test_announce_defaults(self):
        """Test each default is listed with its explanation."""
        text = announce_defaults([default_rule(get_field("profit_target"))])
        lines = text.splitlines()
        assert lines[0].startswith("I filled in a few standard values.")
        assert lines[1].startswith("- Profit Target: 2R (1:2 risk:reward) (")


class TestNextAction:
    """Test next-action hints."""

    def test_empty(self):
        """Test an empty draft asks for a description."""
        assert next_action_suggestion(validate_strategy([], ORB)).startswith("Describe your setup")

    def test_error_first(self, ema_rules):
        """Test errors are addressed before missing fields."""
        assert next_action_suggestion(validate_strategy(ema_rules, EMA)) == "Fix this first: Stop-loss is required."

    def test_missing_field(self, orb_rules):
        """Test the first missing field is named."""
        rules = [rule for rule in orb_rules if rule.label != "Profit Target"]
        assert next_action_suggestion(validate_strategy(rules, ORB)) == "Next, add the profit target."

    def test_defaults_to_review(self, orb_rules):
        """Test defaulted values are reviewed before saving."""
        rules = orb_rules + [default_rule(get_field("session"))]
        assert next_action_suggestion(validate_strategy(rules, ORB)) == (
            "Review the defaulted values, then save your strategy."
        )

    def test_warnings_to_review(self, orb_rules):
        """Test warnings are reviewed before saving."""
        rules = orb_rules + [make_rule("Profit Target", "1:1")]
        assert next_action_suggestion(validate_strategy(rules, ORB)) == (
            "Review the warnings, then save your strategy."
        )

    def test_ready(self, orb_rules):
        """Test a ready draft."""
        assert next_action_suggestion(validate_strategy(orb_rules, ORB)) == "Your strategy is ready to save."


class TestValidationSummary:
    """Test one-line summaries."""

    def test_ready(self, orb_rules):
        """Test a ready draft summary."""
        assert validation_summary(validate_strategy(orb_rules, ORB)) == "100% complete. Ready to save."

    def test_blocked(self, ema_rules):
        """Test counts are pluralized."""
        assert validation_summary(validate_strategy(ema_rules, EMA)) == (
            "17% complete. 5 required fields missing. 1 error."
        )
