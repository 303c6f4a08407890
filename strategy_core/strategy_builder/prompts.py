"""
PURPOSE: Prompt text for the strategy-builder conversation.

Holds the system prompt that tells the LLM how to embed the tagged block,
the per-field question templates, and the short summaries fed back into
the next turn (what is missing, what was defaulted, what to do next).

CALLED BY:
    - strategy_builder/nl_parser.py (system prompt per turn)
    - api/routes_strategy_builder.py (validation summaries)
"""

from typing import List, Optional, Sequence

from strategy_core.schemas.strategy import DraftState, StrategyRule, ValidationResult
from strategy_core.strategy_builder.extractor import ANIMATION_MARKERS, BlockMarkers
from strategy_core.strategy_builder.patterns import CanonicalPattern, FieldDescriptor, pattern_display_name


STRATEGY_BUILDER_SYSTEM = """You are a futures trading strategy assistant. You help retail traders turn
a trading idea into a complete, rule-based strategy.

Supported patterns: {patterns}.
If the trader describes anything else, say it is not supported yet and offer
the closest supported pattern.

Every strategy needs: instrument, entry criteria, stop loss, profit target and
position sizing. Never invent the instrument, the entry or the stop loss; ask
for them. Keep questions short and ask at most {max_questions} at a time.

Whenever the setup changes, append exactly one JSON block after your prose:

{start}
{{"type": "breakout_range" | "ema_pullback" | "breakout",
 "direction": "long" | "short",
 "entry": {{"type": "...", "label": "..."}},
 "stopLoss": {{"placement": "...", "label": "..."}},
 "target": {{"riskReward": 2, "label": "..."}},
 "display": {{"chartType": "candlestick"}},
 "context": {{"instrument": "ES", "session": "NY", "timeframe": "5m"}}}}
{end}

Always include type, direction, entry, stopLoss and display. Other keys may be
left out when unchanged; earlier values are kept. Never show the JSON
outside the markers.
"""

# Question wording per field id. Unlisted fields get a generic question
# built from their label.
QUESTION_TEMPLATES = {
    "instrument": "Which futures contract do you trade (ES, NQ, MES, MNQ, CL, GC...)?",
    "entry_criteria": "What exactly triggers your entry?",
    "stop_loss": "Where does your stop loss go, and how far is it in ticks or points?",
    "profit_target": "Where do you take profit? A fixed R multiple or a level?",
    "position_sizing": "How much do you risk per trade, as a percent of the account or in contracts?",
    "direction": "Do you trade long, short or both directions?",
    "session": "Which session do you trade?",
    "timeframe": "Which chart timeframe do you use?",
    "range_period": "How long is your opening range (e.g. 5, 15 or 30 minutes)?",
    "ema_period": "Which EMA period defines the pullback?",
    "lookback_period": "How many bars back define the level you trade the break of?",
}


def build_system_prompt(
    validation: Optional[ValidationResult] = None,
    markers: BlockMarkers = ANIMATION_MARKERS,
    max_questions: int = 3,
) -> str:
    """
    PURPOSE: Render the system prompt for one assistant turn.

    Args:
        validation: Latest validation of the draft, appended as context.
        markers: Delimiter pair the LLM must use.
        max_questions: Question cap per turn.

    Returns:
        str: System prompt.
    """
    prompt = STRATEGY_BUILDER_SYSTEM.format(
        patterns=", ".join(pattern_display_name(p) for p in CanonicalPattern),
        max_questions=max_questions,
        start=markers.start,
        end=markers.end,
    )
    if validation is not None:
        prompt += "\n" + validation_context_for_prompt(validation)
    return prompt


def question_for(descriptor: FieldDescriptor) -> str:
    return QUESTION_TEMPLATES.get(descriptor.field, f"What is your {descriptor.label.lower()}?")


def validation_context_for_prompt(result: ValidationResult) -> str:
    """
    PURPOSE: Summarize the draft's validation state for the next LLM turn.

    Args:
        result: Latest validation result.

    Returns:
        str: Plain-text block listing score, gaps, errors and warnings.
    """
    lines = [f"CURRENT DRAFT: {result.completion_score}% complete, state {result.state.value}."]
    if result.pattern:
        lines.append(f"Pattern: {pattern_display_name(result.pattern)}.")
    if result.required_missing:
        lines.append("Still needed: " + ", ".join(issue.message.split(": ", 1)[-1] for issue in result.required_missing) + ".")
    if result.errors:
        lines.append("Blocking problems (explain and ask the trader to fix):")
        lines.extend(f"- {issue.message}" for issue in result.errors)
    if result.warnings:
        lines.append("Warnings (mention briefly):")
        lines.extend(f"- {issue.message}" for issue in result.warnings)
    if result.editable_defaults:
        lines.append("Defaulted, editable: " + ", ".join(result.editable_defaults) + ".")
    return "\n".join(lines)


def announce_defaults(applied: Sequence[StrategyRule]) -> str:
    """Tell the trader which values were defaulted and that they can change them."""
    if not applied:
        return ""
    lines = ["I filled in a few standard values. Change any of them if they don't fit your plan:"]
    for rule in applied:
        line = f"- {rule.label}: {rule.value}"
        if rule.explanation:
            line += f" ({rule.explanation})"
        lines.append(line)
    return "\n".join(lines)


def next_action_suggestion(result: ValidationResult) -> str:
    """One-line hint for what the trader should do next."""
    if result.state is DraftState.EMPTY:
        return "Describe your setup: instrument, entry, stop and target."
    if result.errors:
        return f"Fix this first: {result.errors[0].message}"
    if result.required_missing:
        return f"Next, add the {result.required_missing[0].message.split(': ', 1)[-1].lower()}."
    if result.editable_defaults:
        return "Review the defaulted values, then save your strategy."
    if result.warnings:
        return "Review the warnings, then save your strategy."
    return "Your strategy is ready to save."


def validation_summary(result: ValidationResult) -> str:
    """
    PURPOSE: Short human-readable verdict on a draft.

    Args:
        result: Validation result.

    Returns:
        str: e.g. "80% complete. 1 required field missing. 1 warning."
    """
    parts: List[str] = [f"{result.completion_score}% complete."]
    if result.required_missing:
        count = len(result.required_missing)
        parts.append(f"{count} required field{'s' if count != 1 else ''} missing.")
    if result.errors:
        count = len(result.errors)
        parts.append(f"{count} error{'s' if count != 1 else ''}.")
    if result.warnings:
        count = len(result.warnings)
        parts.append(f"{count} warning{'s' if count != 1 else ''}.")
    if result.is_complete and not result.warnings:
        parts.append("Ready to save.")
    return " ".join(parts)


STRUCTURED_PARSE_SYSTEM = """Convert the trader's strategy description into JSON with these keys:
strategy_type, direction ("long" | "short" | "both"),
entry_conditions: [{"indicator", "period", "condition", "value"} or {"direction"}],
exit_conditions: [{"type": "stop_loss" | "take_profit" | "risk_reward", "value", "unit"}],
filters: [{"type": "indicator", "indicator", "condition", "value"} or {"type": "time_window", "start", "end"}],
position_sizing: {"method": "risk_percent" | "fixed_contracts", "value", "max_contracts"},
time_restrictions: {"trading_hours": {"start", "end"}, "session"}.
Leave out anything the trader did not say. Respond with the JSON object only."""
