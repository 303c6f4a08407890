"""
PURPOSE: Canonical pattern registry: the closed set of supported setups and
the field schema each one requires.

Every strategy is resolved to exactly one of three canonical patterns. Each
pattern owns an ordered field schema made of the core fields shared by all
patterns plus its own pattern-specific fields. Each field declares whether
it is required, whether it may be defaulted (and why), the label aliases
that satisfy it and the display metadata a UI needs to prompt for it.

The registry is built once at import time and exposed read-only.

CALLED BY:
    - strategy_builder/completeness.py (required/recommended field checks)
    - strategy_builder/pipeline.py (validation and finalization)
    - api/routes_strategy_builder.py (pattern endpoint)
"""

import re
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional, Tuple, Union

from strategy_core.schemas.strategy import RuleCategory
from strategy_core.utils.logger import get_logger

logger = get_logger("strategy_builder.patterns")

REGISTRY_VERSION = "2026.1"
UNSUPPORTED = "unsupported"


class CanonicalPattern(str, Enum):
    OPENING_RANGE_BREAKOUT = "opening_range_breakout"
    EMA_PULLBACK = "ema_pullback"
    BREAKOUT = "breakout"


@dataclass(frozen=True)
class FieldDescriptor:
    """
    One field of a pattern schema.

    Attributes:
        field: Stable field id, e.g. "stop_loss"
        label: Canonical rule label, e.g. "Stop Loss"
        category: Rule category used when the field is defaulted
        required: Counts towards completion when True
        defaultable: May be auto-populated with default_value
        default_value: Value written when defaulted
        default_explanation: Shown next to the defaulted value
        aliases: Labels that satisfy this field
        excludes: Label words that never satisfy this field
        options: Enumerated choices offered when prompting
    """

    field: str
    label: str
    category: RuleCategory
    required: bool
    defaultable: bool = False
    default_value: Optional[str] = None
    default_explanation: Optional[str] = None
    aliases: Tuple[str, ...] = ()
    excludes: Tuple[str, ...] = ()
    options: Tuple[str, ...] = ()

    @property
    def must_prompt(self) -> bool:
        """Required fields without a safe default must be asked for."""
        return self.required and not self.defaultable


@dataclass(frozen=True)
class FieldOption:
    value: str
    label: str
    description: str = ""


@dataclass(frozen=True)
class FieldDisplay:
    """Prompt metadata for one field id."""

    title: str
    description: str
    options: Tuple[FieldOption, ...] = ()


@dataclass(frozen=True)
class PatternAlternative:
    pattern: CanonicalPattern
    display_name: str
    reason: str

    def to_dict(self) -> Dict[str, str]:
        return {"pattern": self.pattern.value, "display_name": self.display_name, "reason": self.reason}


@dataclass(frozen=True)
class PatternResolution:
    """
    Outcome of resolving a pattern identifier.

    Unsupported identifiers carry at least one supported alternative and a
    waitlist key so the request can be recorded.
    """

    identifier: str
    pattern: Optional[CanonicalPattern]
    alternatives: Tuple[PatternAlternative, ...] = ()
    waitlist_key: Optional[str] = None

    @property
    def supported(self) -> bool:
        return self.pattern is not None

    def to_dict(self) -> Dict:
        return {
            "identifier": self.identifier,
            "pattern": self.pattern.value if self.pattern else UNSUPPORTED,
            "supported": self.supported,
            "alternatives": [alt.to_dict() for alt in self.alternatives],
            "waitlist_key": self.waitlist_key,
        }


# ════════════════════════════════════════════════════════════════
# Field schemas
# ════════════════════════════════════════════════════════════════

CORE_FIELDS: Tuple[FieldDescriptor, ...] = (
    FieldDescriptor(
        field="instrument",
        label="Instrument",
        category=RuleCategory.SETUP,
        required=True,
        aliases=("Instrument", "Symbol", "Ticker", "Market", "Futures Contract", "Contract Symbol"),
        excludes=("hours", "session", "open"),
        options=("ES", "NQ", "YM", "RTY", "CL", "GC"),
    ),
    FieldDescriptor(
        field="entry_criteria",
        label="Entry Criteria",
        category=RuleCategory.ENTRY,
        required=True,
        aliases=(
            "Entry Criteria", "Entry Trigger", "Entry Condition", "Entry Rule",
            "Entry Signal", "Entry Setup", "Trigger",
        ),
    ),
    FieldDescriptor(
        field="stop_loss",
        label="Stop Loss",
        category=RuleCategory.RISK,
        required=True,
        aliases=("Stop Loss", "Stoploss", "Stop", "Protective Stop", "Initial Stop"),
        excludes=("time",),
    ),
    FieldDescriptor(
        field="profit_target",
        label="Profit Target",
        category=RuleCategory.EXIT,
        required=True,
        defaultable=True,
        default_value="2R (1:2 risk:reward)",
        default_explanation="2:1 reward-to-risk is the minimum for positive expectancy at a 40% win rate.",
        aliases=("Profit Target", "Target", "Take Profit", "Risk:Reward", "Risk Reward", "R:R", "Reward", "Exit Target"),
        options=("1.5R", "2R", "3R"),
    ),
    FieldDescriptor(
        field="position_sizing",
        label="Position Sizing",
        category=RuleCategory.RISK,
        required=True,
        defaultable=True,
        default_value="1% risk per trade",
        default_explanation="1% risk per trade is the professional standard.",
        aliases=("Position Sizing", "Position Size", "Risk Per Trade", "Contracts", "Quantity", "Sizing"),
        excludes=("account",),
        options=("0.5% risk per trade", "1% risk per trade", "2% risk per trade"),
    ),
    FieldDescriptor(
        field="direction",
        label="Direction",
        category=RuleCategory.SETUP,
        required=False,
        defaultable=True,
        default_value="Long and Short",
        default_explanation="Trading both directions captures the move either way until you choose a bias.",
        aliases=("Direction", "Trade Side", "Bias", "Long/Short"),
        options=("Long only", "Short only", "Long and Short"),
    ),
    FieldDescriptor(
        field="session",
        label="Session",
        category=RuleCategory.TIMEFRAME,
        required=False,
        defaultable=True,
        default_value="NY Session (9:30 AM - 4:00 PM ET)",
        default_explanation="The NY session has the highest volume and tightest spreads for index futures.",
        aliases=("Session", "Trading Session", "Trading Hours", "Time Window", "Market Hours"),
        options=("NY Session", "London Session", "Asia Session"),
    ),
    FieldDescriptor(
        field="timeframe",
        label="Timeframe",
        category=RuleCategory.TIMEFRAME,
        required=False,
        aliases=("Timeframe", "Time Frame", "Chart Timeframe", "Chart Interval", "Bar Interval"),
        options=("1 minute", "5 minutes", "15 minutes", "1 hour"),
    ),
)

PATTERN_FIELDS: Mapping[CanonicalPattern, Tuple[FieldDescriptor, ...]] = MappingProxyType({
    CanonicalPattern.OPENING_RANGE_BREAKOUT: (
        FieldDescriptor(
            field="range_period",
            label="Range Period",
            category=RuleCategory.SETUP,
            required=True,
            defaultable=True,
            default_value="15 minutes",
            default_explanation="The first 15 minutes is the most widely traded opening range.",
            aliases=("Range Period", "Opening Range Period", "OR Period", "Range Duration"),
            options=("5 minutes", "10 minutes", "15 minutes", "30 minutes", "60 minutes"),
        ),
        FieldDescriptor(
            field="entry_on",
            label="Entry On",
            category=RuleCategory.ENTRY,
            required=False,
            defaultable=True,
            default_value="Both (high and low)",
            default_explanation="Taking the break of either side of the range until you pick one.",
            aliases=("Entry On", "Breakout Side", "Entry Side", "Range Side"),
            options=("Range high", "Range low", "Both (high and low)"),
        ),
    ),
    CanonicalPattern.EMA_PULLBACK: (
        FieldDescriptor(
            field="ema_period",
            label="EMA Period",
            category=RuleCategory.SETUP,
            required=True,
            defaultable=True,
            default_value="20",
            default_explanation="The 20 EMA is the standard pullback reference for intraday trends.",
            aliases=("EMA Period", "EMA Length", "Moving Average Period", "MA Period", "Moving Average"),
            options=("9", "20", "50", "100", "200"),
        ),
        FieldDescriptor(
            field="pullback_confirmation",
            label="Pullback Confirmation",
            category=RuleCategory.ENTRY,
            required=False,
            defaultable=True,
            default_value="Bounce",
            default_explanation="Waiting for a bounce shows buyers defended the EMA before you enter.",
            aliases=("Pullback Confirmation", "Entry Confirmation", "Confirmation Type"),
            options=("Touch", "Bounce", "Close beyond EMA"),
        ),
        FieldDescriptor(
            field="rsi_filter",
            label="RSI Filter",
            category=RuleCategory.FILTERS,
            required=False,
            defaultable=True,
            default_value="Off",
            default_explanation="No extra filter keeps the setup simple until you add one.",
            aliases=("RSI Filter", "RSI", "RSI Threshold"),
            options=("Off", "RSI > 50 for longs", "RSI < 50 for shorts"),
        ),
    ),
    CanonicalPattern.BREAKOUT: (
        FieldDescriptor(
            field="lookback_period",
            label="Lookback Period",
            category=RuleCategory.SETUP,
            required=True,
            defaultable=True,
            default_value="20 bars",
            default_explanation="A 20-bar lookback marks the levels most traders are watching.",
            aliases=("Lookback Period", "Lookback", "Lookback Bars", "N Bars"),
            options=("10 bars", "20 bars", "50 bars", "100 bars"),
        ),
        FieldDescriptor(
            field="level_type",
            label="Level Type",
            category=RuleCategory.SETUP,
            required=False,
            defaultable=True,
            default_value="Support and Resistance",
            default_explanation="Trading breaks of both levels until you pick one side.",
            aliases=("Level Type", "Breakout Level", "Key Level"),
            options=("Resistance", "Support", "Support and Resistance"),
        ),
        FieldDescriptor(
            field="confirmation",
            label="Confirmation",
            category=RuleCategory.ENTRY,
            required=False,
            defaultable=True,
            default_value="Candle close beyond the level",
            default_explanation="A close beyond the level filters out wicks that reverse.",
            aliases=("Confirmation", "Breakout Confirmation", "Confirm Type"),
            options=("Close", "Retest", "Volume surge"),
        ),
    ),
})

PATTERN_DISPLAY_NAMES: Mapping[CanonicalPattern, str] = MappingProxyType({
    CanonicalPattern.OPENING_RANGE_BREAKOUT: "Opening Range Breakout",
    CanonicalPattern.EMA_PULLBACK: "EMA Pullback",
    CanonicalPattern.BREAKOUT: "Breakout",
})

PATTERN_DESCRIPTIONS: Mapping[CanonicalPattern, str] = MappingProxyType({
    CanonicalPattern.OPENING_RANGE_BREAKOUT: "Trades the break of the first minutes' high or low after the open.",
    CanonicalPattern.EMA_PULLBACK: "Joins an existing trend when price pulls back to a moving average.",
    CanonicalPattern.BREAKOUT: "Trades the break of a recent high or low level with confirmation.",
})

# Identifiers accepted besides the canonical ids.
PATTERN_ALIASES: Mapping[str, CanonicalPattern] = MappingProxyType({
    "orb": CanonicalPattern.OPENING_RANGE_BREAKOUT,
})

# Tagged-block "type" values that map onto a canonical pattern.
BLOCK_TYPE_PATTERNS: Mapping[str, CanonicalPattern] = MappingProxyType({
    "breakout_range": CanonicalPattern.OPENING_RANGE_BREAKOUT,
    "ema_pullback": CanonicalPattern.EMA_PULLBACK,
    "breakout": CanonicalPattern.BREAKOUT,
})


# ════════════════════════════════════════════════════════════════
# Display metadata
# ════════════════════════════════════════════════════════════════

FIELD_DISPLAY: Mapping[str, FieldDisplay] = MappingProxyType({
    "instrument": FieldDisplay(
        title="What instrument?",
        description="Which futures contract will you trade?",
        options=(
            FieldOption("ES", "ES", "E-mini S&P 500"),
            FieldOption("NQ", "NQ", "E-mini Nasdaq-100"),
            FieldOption("YM", "YM", "E-mini Dow"),
            FieldOption("RTY", "RTY", "E-mini Russell 2000"),
            FieldOption("CL", "CL", "Crude Oil"),
            FieldOption("GC", "GC", "Gold"),
        ),
    ),
    "entry_criteria": FieldDisplay(
        title="What triggers your entry?",
        description="Describe the exact event that gets you into the trade.",
    ),
    "stop_loss": FieldDisplay(
        title="Where is your stop loss?",
        description="Every strategy needs a defined exit when the trade goes against you.",
        options=(
            FieldOption("structure", "Beyond structure", "Below the range low or swing low"),
            FieldOption("ticks", "Fixed ticks", "A fixed distance in ticks"),
            FieldOption("atr", "ATR multiple", "A multiple of the average true range"),
        ),
    ),
    "profit_target": FieldDisplay(
        title="Where do you take profit?",
        description="Target as a reward-to-risk multiple.",
        options=(
            FieldOption("1.5R", "1.5R", "1.5 times the risk"),
            FieldOption("2R", "2R", "Twice the risk"),
            FieldOption("3R", "3R", "Three times the risk"),
        ),
    ),
    "position_sizing": FieldDisplay(
        title="How much do you risk per trade?",
        description="Percent of the account put at risk on each trade.",
        options=(
            FieldOption("0.5% risk per trade", "0.5%", "Conservative"),
            FieldOption("1% risk per trade", "1%", "Professional standard"),
            FieldOption("2% risk per trade", "2%", "Aggressive"),
        ),
    ),
    "direction": FieldDisplay(
        title="Which direction?",
        description="Trade longs, shorts or both.",
        options=(
            FieldOption("Long only", "Long only"),
            FieldOption("Short only", "Short only"),
            FieldOption("Long and Short", "Both"),
        ),
    ),
    "session": FieldDisplay(
        title="Which session?",
        description="When is the strategy allowed to trade?",
        options=(
            FieldOption("NY Session", "New York", "9:30 AM - 4:00 PM ET"),
            FieldOption("London Session", "London", "3:00 AM - 11:30 AM ET"),
            FieldOption("Asia Session", "Asia", "7:00 PM - 4:00 AM ET"),
        ),
    ),
    "timeframe": FieldDisplay(
        title="Which chart timeframe?",
        description="The bar interval your signals are read from.",
        options=(
            FieldOption("1 minute", "1m"),
            FieldOption("5 minutes", "5m"),
            FieldOption("15 minutes", "15m"),
            FieldOption("1 hour", "1h"),
        ),
    ),
    "range_period": FieldDisplay(
        title="How long is the opening range?",
        description="Minutes after the open used to mark the range high and low.",
        options=(
            FieldOption("5 minutes", "5 min", "Fast, more signals"),
            FieldOption("10 minutes", "10 min"),
            FieldOption("15 minutes", "15 min", "Most popular"),
            FieldOption("30 minutes", "30 min"),
            FieldOption("60 minutes", "60 min", "Fewer, cleaner signals"),
        ),
    ),
    "entry_on": FieldDisplay(
        title="Which side of the range?",
        description="Enter on the break of the high, the low or both.",
        options=(
            FieldOption("Range high", "High"),
            FieldOption("Range low", "Low"),
            FieldOption("Both (high and low)", "Both"),
        ),
    ),
    "ema_period": FieldDisplay(
        title="Which EMA period?",
        description="The moving average price pulls back to.",
        options=(
            FieldOption("9", "9 EMA", "Very fast"),
            FieldOption("20", "20 EMA", "Most popular"),
            FieldOption("50", "50 EMA"),
            FieldOption("100", "100 EMA"),
            FieldOption("200", "200 EMA", "Long-term trend"),
        ),
    ),
    "pullback_confirmation": FieldDisplay(
        title="How is the pullback confirmed?",
        description="What price has to do at the EMA before you enter.",
        options=(
            FieldOption("Touch", "Touch"),
            FieldOption("Bounce", "Bounce"),
            FieldOption("Close beyond EMA", "Close"),
        ),
    ),
    "rsi_filter": FieldDisplay(
        title="Filter with RSI?",
        description="Optional momentum filter on entries.",
        options=(
            FieldOption("Off", "Off"),
            FieldOption("RSI > 50 for longs", "RSI > 50"),
            FieldOption("RSI < 50 for shorts", "RSI < 50"),
        ),
    ),
    "lookback_period": FieldDisplay(
        title="How many bars back?",
        description="Bars used to find the breakout level.",
        options=(
            FieldOption("10 bars", "10"),
            FieldOption("20 bars", "20", "Most popular"),
            FieldOption("50 bars", "50"),
            FieldOption("100 bars", "100"),
        ),
    ),
    "level_type": FieldDisplay(
        title="Which level?",
        description="Break of resistance, support or both.",
        options=(
            FieldOption("Resistance", "Resistance"),
            FieldOption("Support", "Support"),
            FieldOption("Support and Resistance", "Both"),
        ),
    ),
    "confirmation": FieldDisplay(
        title="How is the breakout confirmed?",
        description="What price has to do beyond the level before you enter.",
        options=(
            FieldOption("Close", "Candle close"),
            FieldOption("Retest", "Retest of the level"),
            FieldOption("Volume surge", "Volume surge"),
        ),
    ),
})


# ════════════════════════════════════════════════════════════════
# Similarity table for unsupported identifiers
# ════════════════════════════════════════════════════════════════

_ORB = CanonicalPattern.OPENING_RANGE_BREAKOUT
_EMA = CanonicalPattern.EMA_PULLBACK
_BRK = CanonicalPattern.BREAKOUT

_SIMILARITY: Mapping[str, Mapping[CanonicalPattern, int]] = MappingProxyType({
    "vwap": {_EMA: 2, _BRK: 1},
    "macd": {_EMA: 2, _BRK: 1},
    "histogram": {_EMA: 1},
    "momentum": {_BRK: 2, _ORB: 1},
    "reversal": {_EMA: 2},
    "reversion": {_EMA: 2},
    "mean": {_EMA: 1},
    "range": {_ORB: 2, _BRK: 1},
    "opening": {_ORB: 2},
    "open": {_ORB: 2},
    "gap": {_ORB: 2, _BRK: 1},
    "pullback": {_EMA: 2},
    "retracement": {_EMA: 2},
    "fib": {_EMA: 2},
    "fibonacci": {_EMA: 2},
    "trend": {_EMA: 2, _BRK: 1},
    "sma": {_EMA: 2},
    "ema": {_EMA: 2},
    "ma": {_EMA: 2},
    "moving": {_EMA: 1},
    "average": {_EMA: 1},
    "cross": {_EMA: 2},
    "crossover": {_EMA: 2},
    "rsi": {_EMA: 1},
    "stochastic": {_EMA: 1},
    "scalp": {_ORB: 1, _BRK: 1},
    "squeeze": {_BRK: 2, _ORB: 1},
    "bollinger": {_BRK: 2, _EMA: 1},
    "consolidation": {_BRK: 2, _ORB: 1},
    "flag": {_BRK: 2},
    "triangle": {_BRK: 2},
    "channel": {_BRK: 2},
    "donchian": {_BRK: 2},
    "support": {_BRK: 2},
    "resistance": {_BRK: 2},
    "level": {_BRK: 1},
    "swing": {_EMA: 1, _BRK: 1},
    "order": {_BRK: 1},
    "block": {_BRK: 1},
    "liquidity": {_BRK: 1},
    "sweep": {_BRK: 1},
})

# Tie-break and fallback order.
_FALLBACK_ORDER: Tuple[CanonicalPattern, ...] = (_BRK, _EMA, _ORB)


# ════════════════════════════════════════════════════════════════
# Lookups
# ════════════════════════════════════════════════════════════════


def _normalize_identifier(identifier: str) -> str:
    text = (identifier or "").strip().lower()
    text = re.sub(r"[\s\-]+", "_", text)
    return re.sub(r"_+", "_", text).strip("_")


def get_field_schema(pattern: Optional[CanonicalPattern]) -> Tuple[FieldDescriptor, ...]:
    """
    PURPOSE: Return the ordered field schema for a pattern.

    Core fields come first, then the pattern's own fields. A None pattern
    (not yet detected) yields the core fields only.
    """
    if pattern is None:
        return CORE_FIELDS
    return CORE_FIELDS + PATTERN_FIELDS[CanonicalPattern(pattern)]


def required_fields(pattern: Optional[CanonicalPattern]) -> Tuple[FieldDescriptor, ...]:
    return tuple(d for d in get_field_schema(pattern) if d.required)


def recommended_fields(pattern: Optional[CanonicalPattern]) -> Tuple[FieldDescriptor, ...]:
    return tuple(d for d in get_field_schema(pattern) if not d.required)


def get_field(field_id: str, pattern: Optional[CanonicalPattern] = None) -> Optional[FieldDescriptor]:
    """Look up a descriptor by field id within a pattern's schema."""
    for descriptor in get_field_schema(pattern):
        if descriptor.field == field_id:
            return descriptor
    return None


def pattern_display_name(pattern: Union[CanonicalPattern, str]) -> str:
    try:
        return PATTERN_DISPLAY_NAMES[CanonicalPattern(pattern)]
    except ValueError:
        return str(pattern).replace("_", " ").title()


def detect_pattern(signal: Optional[str]) -> Union[CanonicalPattern, str]:
    """
    PURPOSE: Validate a pattern identifier against the closed set.

    Case, surrounding whitespace, spaces and hyphens are ignored; "orb" is
    accepted for the opening range breakout.

    Args:
        signal: Pattern identifier, e.g. "EMA Pullback" or "orb".

    Returns:
        CanonicalPattern, or the string "unsupported".
    """
    normalized = _normalize_identifier(signal or "")
    if not normalized:
        return UNSUPPORTED
    try:
        return CanonicalPattern(normalized)
    except ValueError:
        pass
    return PATTERN_ALIASES.get(normalized, UNSUPPORTED)


def pattern_from_block_type(block_type: Optional[str]) -> Union[CanonicalPattern, str]:
    """Map a tagged-block "type" value onto a canonical pattern."""
    normalized = _normalize_identifier(block_type or "")
    if normalized in BLOCK_TYPE_PATTERNS:
        return BLOCK_TYPE_PATTERNS[normalized]
    return detect_pattern(normalized)


def suggest_alternatives(identifier: str, limit: int = 2) -> List[PatternAlternative]:
    """
    PURPOSE: Rank supported patterns by closeness to an unsupported identifier.

    Scores come from a static keyword table over the identifier's tokens.
    Patterns with no score still fill the list in fallback order, so the
    result is never empty for limit >= 1.

    Args:
        identifier: Unsupported pattern id, e.g. "macd_histogram".
        limit: Maximum number of alternatives.

    Returns:
        List[PatternAlternative]: Drawn only from the supported set.
    """
    tokens = [t for t in re.split(r"[^a-z0-9]+", (identifier or "").lower()) if t]
    scores: Dict[CanonicalPattern, int] = {p: 0 for p in _FALLBACK_ORDER}
    for token in tokens:
        for pattern, weight in _SIMILARITY.get(token, {}).items():
            scores[pattern] += weight

    ranked = sorted(_FALLBACK_ORDER, key=lambda p: (-scores[p], _FALLBACK_ORDER.index(p)))
    return [
        PatternAlternative(
            pattern=p,
            display_name=PATTERN_DISPLAY_NAMES[p],
            reason=PATTERN_DESCRIPTIONS[p],
        )
        for p in ranked[:max(1, limit)]
    ]


def resolve_pattern(identifier: Optional[str]) -> PatternResolution:
    """
    PURPOSE: Resolve an identifier to a supported pattern or a routed
    "unsupported" outcome with alternatives and a waitlist key.

    CALLED BY: StrategySession.select_pattern, POST /pattern
    """
    detected = detect_pattern(identifier)
    if detected != UNSUPPORTED:
        return PatternResolution(identifier=identifier or "", pattern=CanonicalPattern(detected))

    waitlist_key = _normalize_identifier(identifier or "") or UNSUPPORTED
    alternatives = tuple(suggest_alternatives(identifier or ""))
    logger.info(
        "pattern_unsupported",
        identifier=identifier,
        waitlist_key=waitlist_key,
        alternatives=[alt.pattern.value for alt in alternatives],
    )
    return PatternResolution(
        identifier=identifier or "",
        pattern=None,
        alternatives=alternatives,
        waitlist_key=waitlist_key,
    )


def missing_display_metadata() -> List[str]:
    """Field ids present in any schema but absent from FIELD_DISPLAY."""
    missing = []
    for pattern in CanonicalPattern:
        for descriptor in get_field_schema(pattern):
            if descriptor.field not in FIELD_DISPLAY and descriptor.field not in missing:
                missing.append(descriptor.field)
    return missing
