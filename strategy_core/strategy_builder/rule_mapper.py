"""
PURPOSE: Turn structured LLM output into labelled strategy rules.

Two shapes are mapped:
    - the tagged block payload embedded in assistant prose
    - the structured parse output (entry/exit conditions, filters, sizing)

Mapped rules are marked source=inferred: the user did not type them and
can edit them before finalizing.

CALLED BY: strategy_builder/draft.py
"""

from typing import Any, Dict, List, Optional

from strategy_core.schemas.strategy import RuleCategory, RuleSource, StrategyRule
from strategy_core.strategy_builder.patterns import (
    UNSUPPORTED,
    CanonicalPattern,
    pattern_display_name,
    pattern_from_block_type,
)


def _rule(category: RuleCategory, label: str, value: Any) -> Optional[StrategyRule]:
    text = "" if value is None else str(value).strip()
    if not text:
        return None
    return StrategyRule(category=category, label=label, value=text, source=RuleSource.INFERRED)


def _number(value: Any) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def rules_from_payload(payload: Dict[str, Any]) -> List[StrategyRule]:
    """
    PURPOSE: Map a validated tagged-block payload onto draft rules.

    Args:
        payload: Parsed block, e.g. {"type": "breakout_range", "direction": "long", ...}

    Returns:
        List[StrategyRule]: Rules in a stable order (pattern, direction,
        entry, stop, target, context, indicators).
    """
    payload = payload or {}
    candidates: List[Optional[StrategyRule]] = []

    block_type = payload.get("type")
    pattern = pattern_from_block_type(block_type)
    if pattern != UNSUPPORTED:
        candidates.append(_rule(RuleCategory.SETUP, "Pattern", pattern_display_name(pattern)))
    elif block_type:
        candidates.append(_rule(RuleCategory.SETUP, "Pattern", str(block_type).replace("_", " ").title()))

    direction = payload.get("direction")
    if direction in ("long", "short"):
        candidates.append(_rule(RuleCategory.SETUP, "Direction", f"{direction.capitalize()} only"))

    entry = payload.get("entry") or {}
    candidates.append(_rule(RuleCategory.ENTRY, "Entry Trigger", entry.get("label")))

    stop = payload.get("stopLoss") or {}
    candidates.append(_rule(RuleCategory.RISK, "Stop Loss", stop.get("label")))

    target = payload.get("target") or {}
    risk_reward = target.get("riskReward")
    target_label = target.get("label")
    if target_label and risk_reward:
        candidates.append(_rule(RuleCategory.EXIT, "Profit Target", f"{target_label} (1:{_number(risk_reward)} R:R)"))
    elif target_label:
        candidates.append(_rule(RuleCategory.EXIT, "Profit Target", target_label))
    elif risk_reward:
        candidates.append(_rule(RuleCategory.EXIT, "Profit Target", f"1:{_number(risk_reward)} R:R"))

    context = payload.get("context") or {}
    candidates.append(_rule(RuleCategory.SETUP, "Instrument", context.get("instrument")))
    candidates.append(_rule(RuleCategory.TIMEFRAME, "Session", context.get("session")))
    candidates.append(_rule(RuleCategory.TIMEFRAME, "Timeframe", context.get("timeframe")))

    price_action = payload.get("priceAction") or {}
    consolidation = price_action.get("consolidationTime")
    if pattern == CanonicalPattern.OPENING_RANGE_BREAKOUT and consolidation:
        candidates.append(_rule(RuleCategory.SETUP, "Range Period", f"{_number(consolidation)} minutes"))

    indicators = payload.get("indicators") or {}
    ema = indicators.get("ema") or {}
    if isinstance(ema, dict) and ema.get("period"):
        candidates.append(_rule(RuleCategory.SETUP, "EMA Period", _number(ema["period"])))
    rsi = indicators.get("rsi") or {}
    if isinstance(rsi, dict) and rsi.get("show") and rsi.get("level") is not None:
        candidates.append(_rule(RuleCategory.FILTERS, "RSI Filter", f"RSI {_number(rsi['level'])}"))

    return [rule for rule in candidates if rule is not None]


def rules_from_parsed_rules(
    parsed_rules: Dict[str, Any],
    strategy_name: Optional[str] = None,
    instrument: Optional[str] = None,
) -> List[StrategyRule]:
    """
    PURPOSE: Map structured parse output onto draft rules.

    Args:
        parsed_rules: Dict with entry_conditions, exit_conditions, filters,
            position_sizing, time_restrictions, direction, strategy_type.
        strategy_name: Optional strategy name.
        instrument: Optional instrument symbol.

    Returns:
        List[StrategyRule]: Mapped rules.
    """
    parsed_rules = parsed_rules or {}
    candidates: List[Optional[StrategyRule]] = []

    if strategy_name:
        candidates.append(_rule(RuleCategory.SETUP, "Strategy", strategy_name))
    if instrument:
        candidates.append(_rule(RuleCategory.SETUP, "Instrument", instrument.upper()))

    direction = parsed_rules.get("direction")
    if direction == "both":
        candidates.append(_rule(RuleCategory.SETUP, "Direction", "Long and Short"))
    elif direction:
        candidates.append(_rule(RuleCategory.SETUP, "Direction", f"{str(direction).capitalize()} only"))

    if parsed_rules.get("strategy_type"):
        candidates.append(_rule(RuleCategory.SETUP, "Pattern", parsed_rules["strategy_type"]))

    for index, entry in enumerate(parsed_rules.get("entry_conditions") or []):
        value = ""
        if entry.get("indicator") and entry.get("condition"):
            period = f" ({entry['period']})" if entry.get("period") else ""
            value = f"{entry['indicator']}{period} {entry['condition']} {entry.get('value', '')}".strip()
        elif entry.get("direction"):
            value = f"Break {entry['direction']}"
        label = "Entry Trigger" if index == 0 else f"Entry Condition {index + 1}"
        candidates.append(_rule(RuleCategory.ENTRY, label, value))

    for exit_condition in parsed_rules.get("exit_conditions") or []:
        kind = exit_condition.get("type")
        unit = f" {exit_condition['unit']}" if exit_condition.get("unit") else ""
        value = f"{_number(exit_condition.get('value', ''))}{unit}"
        if kind == "stop_loss":
            candidates.append(_rule(RuleCategory.RISK, "Stop Loss", value))
        elif kind in ("take_profit", "target"):
            candidates.append(_rule(RuleCategory.EXIT, "Target", value))
        elif kind == "risk_reward":
            rr = exit_condition.get("value")
            candidates.append(_rule(RuleCategory.EXIT, "Risk:Reward", f"1:{_number(rr)} R:R" if rr else None))

    for item in parsed_rules.get("filters") or []:
        if item.get("type") == "indicator" and item.get("indicator"):
            value = f"{item.get('condition') or ''} {item.get('value', '')}".strip()
            candidates.append(_rule(RuleCategory.FILTERS, f"{item['indicator']} Filter", value))
        elif item.get("type") == "time_window":
            candidates.append(_rule(RuleCategory.FILTERS, "Time Filter", f"{item.get('start')} - {item.get('end')}"))

    sizing = parsed_rules.get("position_sizing") or {}
    if sizing.get("method") in ("risk_percent", "percentage") and sizing.get("value") is not None:
        candidates.append(_rule(RuleCategory.RISK, "Position Sizing", f"{_number(sizing['value'])}% risk per trade"))
    elif sizing.get("method") in ("fixed", "fixed_contracts") and sizing.get("value") is not None:
        candidates.append(_rule(RuleCategory.RISK, "Position Sizing", f"{_number(sizing['value'])} contracts"))
    if sizing.get("max_contracts"):
        candidates.append(_rule(RuleCategory.RISK, "Contract Limit", _number(sizing["max_contracts"])))

    restrictions = parsed_rules.get("time_restrictions") or {}
    hours = restrictions.get("trading_hours") or {}
    if hours.get("start") and hours.get("end"):
        candidates.append(_rule(RuleCategory.TIMEFRAME, "Trading Hours", f"{hours['start']} - {hours['end']}"))
    if restrictions.get("session"):
        candidates.append(_rule(RuleCategory.TIMEFRAME, "Session", restrictions["session"]))

    return [rule for rule in candidates if rule is not None]
