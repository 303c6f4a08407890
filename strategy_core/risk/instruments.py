"""
PURPOSE: Static futures contract specifications and typical volatility.

Point value, tick size and tick value drive every dollar-risk calculation;
the typical ATR table (in ticks, for a 5-minute chart) gives a reference for
judging stop widths. Full-size and micro contracts reference each other so
oversized positions can be pointed at the other variant.

CALLED BY:
    - risk/position_sizer.py
    - risk/risk_validator.py
    - strategy_builder/intent.py (instrument detection)
"""

import re
from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping, Optional


@dataclass(frozen=True)
class ContractSpec:
    """
    Contract economics for one futures symbol.

    Attributes:
        symbol: Exchange symbol, e.g. "ES"
        name: Human-readable name
        point_value: Dollars per full point
        tick_size: Minimum price increment in points
        tick_value: Dollars per tick
        related: Symbol of the micro (or full-size) counterpart
        is_micro: True for micro contracts
    """

    symbol: str
    name: str
    point_value: float
    tick_size: float
    tick_value: float
    related: str
    is_micro: bool = False

    @property
    def ticks_per_point(self) -> float:
        return 1.0 / self.tick_size


@dataclass(frozen=True)
class TypicalAtr:
    """Typical ATR range in ticks on a 5-minute chart."""

    low: int
    average: int
    high: int


CONTRACT_SPECS: Mapping[str, ContractSpec] = MappingProxyType({
    "ES": ContractSpec("ES", "E-mini S&P 500", 50.0, 0.25, 12.50, related="MES"),
    "MES": ContractSpec("MES", "Micro E-mini S&P 500", 5.0, 0.25, 1.25, related="ES", is_micro=True),
    "NQ": ContractSpec("NQ", "E-mini Nasdaq-100", 20.0, 0.25, 5.00, related="MNQ"),
    "MNQ": ContractSpec("MNQ", "Micro E-mini Nasdaq-100", 2.0, 0.25, 0.50, related="NQ", is_micro=True),
    "YM": ContractSpec("YM", "E-mini Dow", 5.0, 1.0, 5.00, related="MYM"),
    "MYM": ContractSpec("MYM", "Micro E-mini Dow", 0.5, 1.0, 0.50, related="YM", is_micro=True),
    "RTY": ContractSpec("RTY", "E-mini Russell 2000", 50.0, 0.10, 5.00, related="M2K"),
    "M2K": ContractSpec("M2K", "Micro E-mini Russell 2000", 5.0, 0.10, 0.50, related="RTY", is_micro=True),
    "CL": ContractSpec("CL", "Crude Oil", 1000.0, 0.01, 10.00, related="MCL"),
    "MCL": ContractSpec("MCL", "Micro Crude Oil", 100.0, 0.01, 1.00, related="CL", is_micro=True),
    "GC": ContractSpec("GC", "Gold", 100.0, 0.10, 10.00, related="MGC"),
    "MGC": ContractSpec("MGC", "Micro Gold", 10.0, 0.10, 1.00, related="GC", is_micro=True),
})

TYPICAL_ATR_TICKS: Mapping[str, TypicalAtr] = MappingProxyType({
    "ES": TypicalAtr(8, 10, 12),
    "MES": TypicalAtr(8, 10, 12),
    "NQ": TypicalAtr(12, 15, 18),
    "MNQ": TypicalAtr(12, 15, 18),
    "YM": TypicalAtr(80, 100, 120),
    "MYM": TypicalAtr(80, 100, 120),
    "RTY": TypicalAtr(8, 10, 13),
    "M2K": TypicalAtr(8, 10, 13),
    "CL": TypicalAtr(60, 80, 100),
    "MCL": TypicalAtr(60, 80, 100),
    "GC": TypicalAtr(40, 50, 70),
    "MGC": TypicalAtr(40, 50, 70),
})

# Longer symbols first so "MES" wins over "ES".
_SYMBOL_RE = re.compile(
    r"\b(" + "|".join(sorted(CONTRACT_SPECS, key=len, reverse=True)) + r")\b",
    re.IGNORECASE,
)

# (pattern, symbol) checked in order; micro phrasing before full-size.
_NAME_PATTERNS = (
    (re.compile(r"micro\s+(?:e-?mini\s+)?(?:s&p|sp|spx|s and p)", re.IGNORECASE), "MES"),
    (re.compile(r"micro\s+(?:e-?mini\s+)?(?:nasdaq|nas100)", re.IGNORECASE), "MNQ"),
    (re.compile(r"micro\s+(?:e-?mini\s+)?dow", re.IGNORECASE), "MYM"),
    (re.compile(r"micro\s+(?:e-?mini\s+)?russell", re.IGNORECASE), "M2K"),
    (re.compile(r"micro\s+(?:crude|oil)", re.IGNORECASE), "MCL"),
    (re.compile(r"micro\s+gold", re.IGNORECASE), "MGC"),
    (re.compile(r"s&p|\bspx\b|\bspy\b|s and p", re.IGNORECASE), "ES"),
    (re.compile(r"nasdaq|\bnas100\b|\bqqq\b", re.IGNORECASE), "NQ"),
    (re.compile(r"\bdow\b", re.IGNORECASE), "YM"),
    (re.compile(r"russell", re.IGNORECASE), "RTY"),
    (re.compile(r"crude|\boil\b", re.IGNORECASE), "CL"),
    (re.compile(r"\bgold\b", re.IGNORECASE), "GC"),
)


def get_contract_spec(symbol: Optional[str]) -> Optional[ContractSpec]:
    """Look up a contract by exact symbol (case-insensitive)."""
    if not symbol:
        return None
    return CONTRACT_SPECS.get(symbol.strip().upper())


def resolve_instrument(text: Optional[str]) -> Optional[str]:
    """
    PURPOSE: Find the futures symbol mentioned in free text.

    Explicit symbols ("MNQ", "es") win over names ("micro nasdaq", "gold").

    Args:
        text: e.g. "ES (E-mini S&P 500)" or "trading micro nasdaq".

    Returns:
        Optional[str]: Upper-case symbol, or None when nothing matches.
    """
    if not text:
        return None
    match = _SYMBOL_RE.search(text)
    if match:
        return match.group(1).upper()
    for pattern, symbol in _NAME_PATTERNS:
        if pattern.search(text):
            return symbol
    return None


def related_contract(symbol: str) -> Optional[str]:
    """Return the micro counterpart of a full-size contract, or vice versa."""
    spec = get_contract_spec(symbol)
    return spec.related if spec else None


def is_micro_contract(symbol: str) -> bool:
    spec = get_contract_spec(symbol)
    return bool(spec and spec.is_micro)


def typical_atr_ticks(symbol: str) -> Optional[TypicalAtr]:
    if not symbol:
        return None
    return TYPICAL_ATR_TICKS.get(symbol.strip().upper())
