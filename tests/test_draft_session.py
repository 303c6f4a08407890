"""
PURPOSE: Unit tests for strategy drafts and builder conversation sessions.

Tests cover:
- Unique labels with last-write-wins in arrival order
- Folding assistant blocks into the draft
- Pattern selection and unsupported identifiers
- User edits surviving later turns
- Rebuilding the draft when an earlier message is edited
- First-turn defaults and finalization from a session
"""

import json

import pytest

from strategy_core.schemas.strategy import DraftState, RuleCategory, RuleSource
from strategy_core.strategy_builder.draft import ASSISTANT, USER, StrategyDraft, StrategySession
from strategy_core.strategy_builder.extractor import StreamState
from strategy_core.strategy_builder.patterns import CanonicalPattern

from conftest import make_rule, tagged_reply


ORB = CanonicalPattern.OPENING_RANGE_BREAKOUT


@pytest.fixture
def orb_session(breakout_payload):
    """Session after one user turn and one assistant turn about an ES ORB."""
    session = StrategySession()
    session.add_user_message("ORB on ES, 8 tick stop")
    session.add_assistant_message(tagged_reply(breakout_payload, "Nice, an ORB on ES."))
    return session


class TestStrategyDraft:
    """Test the rule container."""

    def test_last_write_wins_in_place(self):
        """Test a relabelled duplicate replaces the value and keeps its position."""
        draft = StrategyDraft([
            make_rule("Stop Loss", "8 ticks", RuleCategory.RISK),
            make_rule("Instrument", "ES"),
        ])
        previous = draft.apply(make_rule("stop-loss", "10 ticks", RuleCategory.RISK))
        assert previous.value == "8 ticks"
        assert [rule.value for rule in draft.rules] == ["10 ticks", "ES"]
        assert len(draft) == 2

    def test_get_and_remove(self):
        """Test lookups use the normalized label."""
        draft = StrategyDraft([make_rule("Range Period", "15 minutes")])
        assert draft.get("range_period").value == "15 minutes"
        assert draft.remove("RANGE PERIOD").value == "15 minutes"
        assert draft.get("Range Period") is None
        assert list(draft) == []


class TestConversationTurns:
    """Test user and assistant turns."""

    def test_user_message_sets_instrument_and_pattern(self):
        """Test a named instrument and pattern keyword seed the draft."""
        session = StrategySession()
        assessment = session.add_user_message("ORB on ES, 8 tick stop")
        assert assessment.pattern is ORB
        assert session.pattern is ORB
        assert session.draft.get("Instrument").value == "ES"
        assert session.draft.get("Instrument").source is RuleSource.USER
        assert session.draft.get("Pattern").value == "Opening Range Breakout"

    def test_assistant_block_applied(self, orb_session, breakout_payload):
        """Test the assistant block becomes inferred rules and the running config."""
        assert orb_session.config == breakout_payload
        assert orb_session.draft.get("Stop Loss").value == "8 ticks below the range low"
        assert orb_session.draft.get("Stop Loss").source is RuleSource.INFERRED
        assert orb_session.draft.get("Range Period").value == "15 minutes"
        assert [m.role for m in orb_session.messages] == [USER, ASSISTANT]

    def test_display_text_has_no_block(self, breakout_payload):
        """Test the returned display text is stripped of the block."""
        session = StrategySession()
        display = session.add_assistant_message(tagged_reply(breakout_payload, "Here you go."))
        assert display == "Here you go."

    def test_invalid_block_ignored(self):
        """Test a malformed block leaves the draft untouched."""
        session = StrategySession()
        display = session.add_assistant_message("Working on it [ANIMATION_START]{oops[ANIMATION_END]")
        assert display == "Working on it"
        assert session.rules == []
        assert session.config is None

    def test_block_type_sets_pattern(self, breakout_payload):
        """Test the block type decides the pattern when the user chose none."""
        session = StrategySession()
        breakout_payload["type"] = "ema_pullback"
        session.add_assistant_message(tagged_reply(breakout_payload))
        assert session.pattern is CanonicalPattern.EMA_PULLBACK

    def test_incremental_merge(self, orb_session, breakout_payload):
        """Test later blocks merge into the running config."""
        update = dict(breakout_payload, context={"timeframe": "5m"})
        orb_session.add_assistant_message(tagged_reply(update))
        assert orb_session.config["context"] == {"instrument": "ES", "session": "NY", "timeframe": "5m"}
        assert orb_session.draft.get("Timeframe").value == "5m"

    def test_preview_stream(self, orb_session, breakout_payload):
        """Test stream previews use the session markers."""
        full = tagged_reply(breakout_payload, "Updating.")
        preview = orb_session.preview_stream(full[:-5])
        assert preview.state is StreamState.PARTIAL_BLOCK
        assert preview.clean_text == "Updating."


class TestPatternSelection:
    """Test explicit pattern choice."""

    def test_unsupported_leaves_draft(self):
        """Test an unsupported choice returns alternatives and changes nothing."""
        session = StrategySession()
        resolution = session.select_pattern("vwap_bounce")
        assert not resolution.supported
        assert resolution.alternatives
        assert session.pattern is None
        assert session.rules == []

    def test_selection_wins_over_block_type(self, breakout_payload):
        """Test a selected pattern is not overridden by a block type."""
        session = StrategySession()
        session.select_pattern("breakout")
        breakout_payload["type"] = "ema_pullback"
        session.add_assistant_message(tagged_reply(breakout_payload))
        assert session.pattern is CanonicalPattern.BREAKOUT


class TestUserEdits:
    """Test direct edits and history rebuilds."""

    def test_edit_survives_later_turn(self, orb_session, breakout_payload, user_rule):
        """Test a user edit stays unless the assistant restates that field."""
        orb_session.apply_user_edit(user_rule("Position Sizing", "1% risk per trade", RuleCategory.RISK))
        orb_session.add_user_message("Looks good")
        orb_session.add_assistant_message(tagged_reply(breakout_payload, "Great."))
        assert orb_session.draft.get("Position Sizing").value == "1% risk per trade"

    def test_edit_message_rebuilds(self, orb_session):
        """Test editing the first message discards every later rule."""
        rules = orb_session.edit_message(0, "EMA pullback on NQ")
        labels = [rule.label for rule in rules]
        assert orb_session.pattern is CanonicalPattern.EMA_PULLBACK
        assert orb_session.draft.get("Instrument").value == "NQ"
        assert "Range Period" not in labels
        assert "Stop Loss" not in labels
        assert orb_session.config is None
        assert len(orb_session.messages) == 1

    def test_edit_message_keeps_earlier_turns(self, orb_session, breakout_payload):
        """Test editing a later message keeps rules from earlier turns."""
        orb_session.add_user_message("Make it NQ")
        orb_session.add_assistant_message(tagged_reply(breakout_payload, "Done."))
        orb_session.edit_message(2, "Keep it on ES")
        assert len(orb_session.messages) == 3
        assert orb_session.draft.get("Range Period").value == "15 minutes"
        assert orb_session.draft.get("Instrument").value == "ES"

    def test_user_edits_replayed(self, orb_session, user_rule):
        """Test edits made before the edited message are replayed, later ones dropped."""
        orb_session.apply_user_edit(user_rule("Position Sizing", "1% risk per trade", RuleCategory.RISK))
        orb_session.add_user_message("Also trade the London session")
        orb_session.edit_message(2, "Only the NY session")
        assert orb_session.draft.get("Position Sizing").value == "1% risk per trade"

        orb_session.edit_message(0, "ORB on ES")
        assert orb_session.draft.get("Position Sizing") is None

    def test_edit_message_bad_index(self, orb_session):
        """Test an out-of-range index raises IndexError."""
        with pytest.raises(IndexError):
            orb_session.edit_message(5, "nope")


class TestSessionValidation:
    """Test validation, defaults and finalization from a session."""

    def test_validate_after_turn(self, orb_session):
        """Test the draft after one turn lacks only position sizing."""
        result = orb_session.validate()
        assert result.pattern == "opening_range_breakout"
        assert result.completion_score == 83
        assert [issue.field for issue in result.required_missing] == ["position_sizing"]
        assert result.state is DraftState.PARTIAL

    def test_plan_first_turn_applies_defaults(self, orb_session):
        """Test first-turn defaults are written into the draft."""
        plan = orb_session.plan_first_turn()
        assert not plan.vague
        assert [rule.label for rule in plan.applied_defaults] == ["Position Sizing", "Entry On"]
        assert orb_session.draft.get("Position Sizing").is_defaulted
        result = orb_session.validate()
        assert result.is_complete
        assert result.editable_defaults == ["Position Sizing", "Entry On"]

    def test_finalize_requires_confirmation(self, orb_session):
        """Test a defaulted draft only finalizes after confirmation."""
        orb_session.plan_first_turn()
        blocked = orb_session.finalize("ES ORB")
        assert not blocked.ok
        saved = orb_session.finalize("ES ORB", confirm_defaults=True)
        assert saved.ok
        assert saved.strategy.instrument == "ES"
        assert json.dumps(saved.strategy.canonical_document())
