"""
PURPOSE: Unit tests for mapping structured LLM output onto draft rules.

Tests cover:
- Tagged-block payloads to rules
- Structured parse output to rules
- Empty values dropped, inferred source set
"""

from strategy_core.schemas.strategy import RuleSource
from strategy_core.strategy_builder.rule_mapper import rules_from_parsed_rules, rules_from_payload


def _by_label(rules):
    return {rule.label: rule.value for rule in rules}


class TestRulesFromPayload:
    """Test tagged-block payload mapping."""

    def test_orb_payload(self, breakout_payload):
        """Test an ORB payload maps onto the ORB field labels."""
        rules = rules_from_payload(breakout_payload)
        assert [rule.label for rule in rules] == [
            "Pattern", "Direction", "Entry Trigger", "Stop Loss",
            "Profit Target", "Instrument", "Session", "Range Period",
        ]
        values = _by_label(rules)
        assert values["Pattern"] == "Opening Range Breakout"
        assert values["Direction"] == "Long only"
        assert values["Profit Target"] == "2R target (1:2 R:R)"
        assert values["Range Period"] == "15 minutes"
        assert all(rule.source is RuleSource.INFERRED for rule in rules)

    def test_ema_indicators(self, breakout_payload):
        """Test EMA and RSI indicators map to pattern fields."""
        payload = dict(
            breakout_payload,
            type="ema_pullback",
            indicators={"ema": {"period": 20.0}, "rsi": {"show": True, "level": 50}},
        )
        values = _by_label(rules_from_payload(payload))
        assert values["Pattern"] == "EMA Pullback"
        assert values["EMA Period"] == "20"
        assert values["RSI Filter"] == "RSI 50"
        assert "Range Period" not in values

    def test_unsupported_type(self, breakout_payload):
        """Test unknown block types keep a readable pattern value."""
        payload = dict(breakout_payload, type="vwap_bounce")
        assert _by_label(rules_from_payload(payload))["Pattern"] == "Vwap Bounce"

    def test_risk_reward_without_label(self, breakout_payload):
        """Test a bare risk:reward becomes the profit target."""
        payload = dict(breakout_payload, target={"riskReward": 1.5})
        assert _by_label(rules_from_payload(payload))["Profit Target"] == "1:1.5 R:R"

    def test_blank_values_dropped(self, breakout_payload):
        """Test blank labels in the payload produce no rules."""
        payload = dict(breakout_payload, entry={"type": "range_break", "label": "   "}, context={})
        labels = [rule.label for rule in rules_from_payload(payload)]
        assert "Entry Trigger" not in labels
        assert "Instrument" not in labels

    def test_empty_payload(self):
        """Test an empty payload maps to nothing."""
        assert rules_from_payload({}) == []


class TestRulesFromParsedRules:
    """Test structured parse output mapping."""

    def test_full_parse(self):
        """Test every section of a structured parse maps to a rule."""
        parsed = {
            "direction": "both",
            "strategy_type": "ema_pullback",
            "entry_conditions": [
                {"indicator": "EMA", "period": 20, "condition": "touches"},
                {"direction": "above"},
            ],
            "exit_conditions": [
                {"type": "stop_loss", "value": 8, "unit": "ticks"},
                {"type": "risk_reward", "value": 2},
            ],
            "filters": [
                {"type": "indicator", "indicator": "RSI", "condition": ">", "value": 50},
                {"type": "time_window", "start": "09:30", "end": "11:00"},
            ],
            "position_sizing": {"method": "risk_percent", "value": 1, "max_contracts": 3},
            "time_restrictions": {"trading_hours": {"start": "09:30", "end": "16:00"}, "session": "NY"},
        }
        values = _by_label(rules_from_parsed_rules(parsed, strategy_name="NQ Pullback", instrument="nq"))
        assert values == {
            "Strategy": "NQ Pullback",
            "Instrument": "NQ",
            "Direction": "Long and Short",
            "Pattern": "ema_pullback",
            "Entry Trigger": "EMA (20) touches",
            "Entry Condition 2": "Break above",
            "Stop Loss": "8 ticks",
            "Risk:Reward": "1:2 R:R",
            "RSI Filter": "> 50",
            "Time Filter": "09:30 - 11:00",
            "Position Sizing": "1% risk per trade",
            "Contract Limit": "3",
            "Trading Hours": "09:30 - 16:00",
            "Session": "NY",
        }

    def test_fixed_contracts(self):
        """Test fixed-contract sizing."""
        parsed = {"direction": "short", "position_sizing": {"method": "fixed_contracts", "value": 2}}
        values = _by_label(rules_from_parsed_rules(parsed))
        assert values == {"Direction": "Short only", "Position Sizing": "2 contracts"}

    def test_empty(self):
        """Test empty parse output."""
        assert rules_from_parsed_rules({}) == []
