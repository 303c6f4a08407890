"""
PURPOSE: Parse trading quantities out of free-text rule values.

Rule values are display strings written by the LLM or the user, e.g.
"1% risk per trade", "8 ticks below the range low", "$50,000" or
"1:2 R:R". These helpers pull out the numbers the risk validator needs and
return None when a value carries no usable quantity.
"""

import re
from typing import Optional, Tuple


_NUMBER = r"(\d+(?:,\d{3})*(?:\.\d+)?|\.\d+)"

_PERCENT_RE = re.compile(_NUMBER + r"\s*%")
_MONEY_RE = re.compile(r"\$\s*" + _NUMBER + r"\s*([kKmM])?\b")
_BARE_MONEY_RE = re.compile(r"(?<![\w.])" + _NUMBER + r"\s*([kKmM])?(?![\w%])")
_TICKS_RE = re.compile(_NUMBER + r"\s*(?:-\s*)?(ticks?)\b", re.IGNORECASE)
_POINTS_RE = re.compile(_NUMBER + r"\s*(?:-\s*)?(points?|pts?)\b", re.IGNORECASE)
_RATIO_RE = re.compile(r"(?<![\d:.])(\d+(?:\.\d+)?)\s*:\s*(\d+(?:\.\d+)?)(?![\d:])")
_R_MULTIPLE_RE = re.compile(r"(?<![\w.])(\d+(?:\.\d+)?)\s*R\b")
_CONTRACTS_RE = re.compile(r"(?<![\w.])(\d+)\s*(?:micro\s+|mini\s+)?(contracts?|lots?|cars?)\b", re.IGNORECASE)
_ATR_RE = re.compile(r"(\d+(?:\.\d+)?)\s*(?:x|×)?\s*(?:the\s+)?ATR\b", re.IGNORECASE)
_ATR_TRAILING_RE = re.compile(r"ATR\s*(?:x|×|\*)\s*(\d+(?:\.\d+)?)", re.IGNORECASE)
_CLOCK_RE = re.compile(r"\b\d{1,2}:\d{2}\b")

_SUFFIX_MULTIPLIERS = {"k": 1_000.0, "m": 1_000_000.0}


def _to_float(raw: str) -> float:
    return float(raw.replace(",", ""))


def normalize_label(label: str) -> str:
    """
    PURPOSE: Normalize a rule label for identity comparisons.

    Lowercases, turns hyphens and underscores into spaces, drops other
    punctuation except ':' and '/', and collapses whitespace.

    Args:
        label: Raw rule label, e.g. "Stop-Loss".

    Returns:
        str: Normalized label, e.g. "stop loss".
    """
    lowered = label.lower().replace("-", " ").replace("_", " ")
    cleaned = re.sub(r"[^\w\s:/]", "", lowered)
    return re.sub(r"\s+", " ", cleaned).strip()


def parse_percent(value: str) -> Optional[float]:
    """
    PURPOSE: Extract the first percentage from a value.

    Args:
        value: e.g. "1% risk per trade" or "Risk 0.5 % of account".

    Returns:
        Optional[float]: 1.0 for "1%", None when no percentage is present.
    """
    match = _PERCENT_RE.search(value or "")
    if not match:
        return None
    return _to_float(match.group(1))


def parse_money(value: str) -> Optional[float]:
    """
    PURPOSE: Extract a dollar amount, honouring k/m suffixes.

    A "$" prefixed amount wins; otherwise a bare number (optionally with a
    k/m suffix) is accepted when the value carries no percentage.

    Args:
        value: e.g. "$50,000", "50k", "$2.5k daily".

    Returns:
        Optional[float]: Amount in dollars, or None.
    """
    text = value or ""
    match = _MONEY_RE.search(text)
    if not match:
        if _PERCENT_RE.search(text):
            return None
        match = _BARE_MONEY_RE.search(text)
        if not match:
            return None
    amount = _to_float(match.group(1))
    suffix = (match.group(2) or "").lower()
    return amount * _SUFFIX_MULTIPLIERS.get(suffix, 1.0)


def parse_stop_distance(value: str) -> Optional[Tuple[float, str]]:
    """
    PURPOSE: Extract a stop distance and its unit.

    Args:
        value: e.g. "8 ticks below the range low" or "2 points".

    Returns:
        Optional[Tuple[float, str]]: (distance, "ticks" | "points"), or None
        when the stop is structural only (e.g. "below the swing low").
    """
    text = value or ""
    match = _TICKS_RE.search(text)
    if match:
        return _to_float(match.group(1)), "ticks"
    match = _POINTS_RE.search(text)
    if match:
        return _to_float(match.group(1)), "points"
    return None


def parse_risk_reward(value: str) -> Optional[float]:
    """
    PURPOSE: Extract a reward-to-risk multiple.

    "1:2" and "2:1" both read as 2R because traders write the shorthand
    either way round; other pairs are read as risk:reward. Clock times
    such as "9:30" are skipped. "2R" is accepted as well.

    Args:
        value: e.g. "1:2 R:R", "2:1 reward to risk", "Target 3R".

    Returns:
        Optional[float]: Reward per unit of risk, or None.
    """
    text = value or ""
    for match in _RATIO_RE.finditer(text):
        if _CLOCK_RE.fullmatch(match.group(0).replace(" ", "")):
            continue
        first = float(match.group(1))
        second = float(match.group(2))
        if first <= 0 or second <= 0:
            continue
        if first == 1:
            return second
        if second == 1:
            return first
        return second / first

    match = _R_MULTIPLE_RE.search(text)
    if match:
        return float(match.group(1))
    return None


def parse_contracts(value: str) -> Optional[int]:
    """
    PURPOSE: Extract a fixed contract count, e.g. "2 contracts" or "3 micro contracts".

    Returns:
        Optional[int]: Contract count, or None when sizing is not fixed.
    """
    match = _CONTRACTS_RE.search(value or "")
    if not match:
        return None
    return int(match.group(1))


def parse_atr_multiple(value: str) -> Optional[float]:
    """
    PURPOSE: Extract an ATR multiple, e.g. "1.5x ATR", "2 ATR" or "ATR x 3".

    Returns:
        Optional[float]: The multiple, or None when ATR is not mentioned.
    """
    text = value or ""
    match = _ATR_RE.search(text)
    if match:
        return float(match.group(1))
    match = _ATR_TRAILING_RE.search(text)
    if match:
        return float(match.group(1))
    return None
