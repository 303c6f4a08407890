"""
PURPOSE: Read a trader's first message for how much of a strategy it already states.

Scans free text for the six things a futures strategy needs (instrument,
pattern, stop, target, sizing, session), scores the message and picks how
many questions the first reply should ask. This runs before any LLM turn,
so it only uses trading-terminology regexes.

CALLED BY:
    - strategy_builder/draft.py (StrategySession.add_user_message)
    - strategy_builder/prompts.py (prompt context)
"""

import re
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple

from strategy_core.risk.instruments import resolve_instrument
from strategy_core.schemas.strategy import RuleCategory, RuleSource, StrategyRule
from strategy_core.strategy_builder.patterns import CanonicalPattern

COMPONENTS: Tuple[str, ...] = ("instrument", "pattern", "stop", "target", "sizing", "session")


class ExpertiseLevel(str, Enum):
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"


# (keyword, regex, canonical pattern when one applies), checked in order
_PATTERN_KEYWORDS: Tuple[Tuple[str, "re.Pattern[str]", Optional[CanonicalPattern]], ...] = (
    ("orb", re.compile(r"\b(orb|open(?:ing)?\s?range(?:\s?breakout)?|range\s?break)\b", re.I),
     CanonicalPattern.OPENING_RANGE_BREAKOUT),
    ("ema_pullback", re.compile(r"\b(ema|exponential\s?moving|\d+\s?ema)\b.*\b(pull\s?back|retrace|bounce)", re.I),
     CanonicalPattern.EMA_PULLBACK),
    ("pullback", re.compile(r"\b(pull\s?back|retrace(?:ment)?|bounce)\b", re.I), CanonicalPattern.EMA_PULLBACK),
    ("breakout", re.compile(r"\b(break\s?out|break\s?(?:above|below)|level\s?break)\b", re.I), CanonicalPattern.BREAKOUT),
    ("ema", re.compile(r"\b(ema|exponential\s?moving|\d+\s?ema)\b", re.I), CanonicalPattern.EMA_PULLBACK),
    ("momentum", re.compile(r"\b(momentum|momo|thrust|impulse)\b", re.I), None),
    ("vwap", re.compile(r"\b(vwap|volume\s?weighted)\b", re.I), None),
    ("sma", re.compile(r"\b(sma|simple\s?moving|moving\s?average)\b", re.I), None),
    ("rsi", re.compile(r"\b(rsi|relative\s?strength)\b", re.I), None),
    ("macd", re.compile(r"\bmacd\b", re.I), None),
    ("scalp", re.compile(r"\b(scalp(?:ing)?|quick\s?trade)\b", re.I), None),
    ("swing", re.compile(r"\b(swing\s?trad\w*|multi-?day)\b", re.I), None),
)

_STOP_TICKS_RE = re.compile(r"\b(\d+)\s?(?:tick|pt|point)s?\s?(?:stop|sl)\b|\b(?:stop|sl)\s?(?:at|of|:)?\s?(\d+)\s?(?:tick|pt|point)s?\b", re.I)
_STOP_ATR_RE = re.compile(r"\b(\d+(?:\.\d+)?)\s?x?\s?(?:atr|average\s?true\s?range)\b", re.I)
_STOP_STRUCTURE_RE = re.compile(r"\bstop\b[^.]*\b(below|above|under|beyond)\b[^.]*\b(low|high|structure|level|range)\b", re.I)

_TARGET_RISK_REWARD_RE = re.compile(r"\b1\s?:\s?(\d+(?:\.\d+)?)\b")
_TARGET_REWARD_RISK_RE = re.compile(r"\b(\d+(?:\.\d+)?)\s?:\s?1\b")
_TARGET_R_MULTIPLE_RE = re.compile(r"\b(\d+(?:\.\d+)?)\s?R\b")
_TARGET_EXPLICIT_RE = re.compile(r"\b(target|tp|take\s?profit)\s?(at|of|:)?\s?(\d+)", re.I)
_TARGET_MULTIPLE_RE = re.compile(r"\b(\d+(?:\.\d+)?)\s?x\s?(range|extension|move)\b", re.I)

_SIZING_PERCENT_RE = re.compile(r"(\d+(?:\.\d+)?)\s?%\s?(?:risk|per\s?trade|of\s?(?:the\s)?account)?", re.I)
_SIZING_RISK_RE = re.compile(r"\brisk(?:ing)?\s?(\d+(?:\.\d+)?)\s?%", re.I)
_SIZING_CONTRACTS_RE = re.compile(r"\b(?:max(?:imum)?\s?)?(\d+)\s?(?:micro\s)?(?:contract|lot)s?\b", re.I)

_SESSION_RES: Tuple[Tuple[str, "re.Pattern[str]"], ...] = (
    ("NY session", re.compile(r"\b(ny|new\s?york|us)\s?(session|hours|market|open)\b|\bnew\s?york\b", re.I)),
    ("London session", re.compile(r"\b(london|european)\s?(session|hours|open)?\b", re.I)),
    ("Asia session", re.compile(r"\b(asia|asian|tokyo)\s?(session|hours)?\b", re.I)),
    ("specific hours", re.compile(r"\b\d{1,2}(?::\d{2})?\s?(?:am|pm)?\s?(?:-|to)\s?\d{1,2}(?::\d{2})?\s?(?:am|pm)\b", re.I)),
    ("market open", re.compile(r"\b(9:30|930|market\s?open|the\s?open|first\s?hour|last\s?hour|morning)\b", re.I)),
)

_VAGUE_INTENT_RE = re.compile(r"\b(want|start|learn|new|begin|how\s+do\s+i|teach|help\s+me)\b", re.I)


@dataclass
class DetectedComponent:
    detected: bool
    value: Optional[str] = None


@dataclass
class MessageCompleteness:
    """
    How much of a strategy a single message states.

    Attributes:
        percentage: Detected components / 6
        components: component name -> detection
        detected: Names of detected components
        missing: Names of missing components
        pattern: Canonical pattern named in the message, if any
        expertise_level: Inferred trader experience
        question_count: Questions the first reply should ask (0-3)
    """

    percentage: float
    components: Dict[str, DetectedComponent]
    detected: List[str] = field(default_factory=list)
    missing: List[str] = field(default_factory=list)
    pattern: Optional[CanonicalPattern] = None
    expertise_level: ExpertiseLevel = ExpertiseLevel.BEGINNER
    question_count: int = 3

    def to_dict(self) -> Dict:
        data = asdict(self)
        data["pattern"] = self.pattern.value if self.pattern else None
        data["expertise_level"] = self.expertise_level.value
        return data


def detect_instrument(message: str) -> DetectedComponent:
    symbol = resolve_instrument(message)
    return DetectedComponent(detected=symbol is not None, value=symbol)


def detect_pattern_keyword(message: str) -> Tuple[DetectedComponent, Optional[CanonicalPattern]]:
    """Return the first pattern keyword found and its canonical pattern, if any."""
    for keyword, regex, pattern in _PATTERN_KEYWORDS:
        if regex.search(message):
            return DetectedComponent(detected=True, value=keyword), pattern
    return DetectedComponent(detected=False), None


def detect_stop(message: str) -> DetectedComponent:
    match = _STOP_TICKS_RE.search(message)
    if match:
        return DetectedComponent(detected=True, value=f"{match.group(1) or match.group(2)} ticks")
    match = _STOP_ATR_RE.search(message)
    if match:
        return DetectedComponent(detected=True, value=f"{match.group(1)} ATR")
    if _STOP_STRUCTURE_RE.search(message):
        return DetectedComponent(detected=True, value="structure-based")
    return DetectedComponent(detected=False)


def detect_target(message: str) -> DetectedComponent:
    match = _TARGET_RISK_REWARD_RE.search(message) or _TARGET_REWARD_RISK_RE.search(message)
    if match:
        return DetectedComponent(detected=True, value=f"1:{match.group(1)} R:R")
    match = _TARGET_R_MULTIPLE_RE.search(message)
    if match:
        return DetectedComponent(detected=True, value=f"{match.group(1)}R")
    match = _TARGET_MULTIPLE_RE.search(message)
    if match:
        return DetectedComponent(detected=True, value=f"{match.group(1)}x {match.group(2).lower()}")
    if _TARGET_EXPLICIT_RE.search(message):
        return DetectedComponent(detected=True, value="fixed target")
    return DetectedComponent(detected=False)


def detect_sizing(message: str) -> DetectedComponent:
    match = _SIZING_RISK_RE.search(message) or _SIZING_PERCENT_RE.search(message)
    if match:
        return DetectedComponent(detected=True, value=f"{match.group(1)}% risk per trade")
    match = _SIZING_CONTRACTS_RE.search(message)
    if match:
        return DetectedComponent(detected=True, value=f"{match.group(1)} contracts")
    return DetectedComponent(detected=False)


def detect_session(message: str) -> DetectedComponent:
    for value, regex in _SESSION_RES:
        if regex.search(message):
            return DetectedComponent(detected=True, value=value)
    return DetectedComponent(detected=False)


def _expertise(result: MessageCompleteness, message: str) -> Tuple[ExpertiseLevel, int]:
    if _VAGUE_INTENT_RE.search(message) and not result.detected:
        return ExpertiseLevel.BEGINNER, 3
    if result.percentage >= 0.7:
        return ExpertiseLevel.ADVANCED, 0
    if result.percentage >= 0.5:
        return ExpertiseLevel.INTERMEDIATE, 1
    if result.percentage >= 0.3:
        return ExpertiseLevel.INTERMEDIATE, 2
    if result.components["pattern"].detected or result.components["instrument"].detected:
        return ExpertiseLevel.INTERMEDIATE, 2
    return ExpertiseLevel.BEGINNER, 3


def assess_message(message: str) -> MessageCompleteness:
    """
    PURPOSE: Score a user message by the strategy components it states.

    Args:
        message: The user's message, e.g. "ORB on ES, 8 tick stop, 1:2, 1% risk".

    Returns:
        MessageCompleteness: Components, percentage and question count.
    """
    message = message or ""
    pattern_component, pattern = detect_pattern_keyword(message)
    components = {
        "instrument": detect_instrument(message),
        "pattern": pattern_component,
        "stop": detect_stop(message),
        "target": detect_target(message),
        "sizing": detect_sizing(message),
        "session": detect_session(message),
    }
    detected = [name for name in COMPONENTS if components[name].detected]
    result = MessageCompleteness(
        percentage=len(detected) / len(COMPONENTS),
        components=components,
        detected=detected,
        missing=[name for name in COMPONENTS if not components[name].detected],
        pattern=pattern,
    )
    result.expertise_level, result.question_count = _expertise(result, message)
    return result


def instrument_rule_from_message(message: str) -> Optional[StrategyRule]:
    """Build an Instrument rule straight from a user message, if one is named."""
    symbol = resolve_instrument(message)
    if symbol is None:
        return None
    return StrategyRule(
        category=RuleCategory.SETUP,
        label="Instrument",
        value=symbol,
        source=RuleSource.USER,
    )
