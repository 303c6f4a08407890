"""
PURPOSE: Locate, parse and strip delimiter-bounded JSON blocks in LLM output.

The assistant embeds a machine-readable block inside its prose:

    Here is your setup.
    [ANIMATION_START]
    {"type": "breakout_range", "direction": "long", ...}
    [ANIMATION_END]

This module pulls that block out, validates it at the boundary into a
tagged outcome, hides partially streamed blocks from the user and merges
incremental payload updates. Nothing here raises: malformed input yields
None or a typed failure that is logged with its error kind.

CALLED BY:
    - strategy_builder/draft.py (assistant turns and stream previews)
    - api/routes_strategy_builder.py (extract endpoint)
"""

import copy
import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Literal, NamedTuple, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from strategy_core.utils.logger import get_logger

logger = get_logger("strategy_builder.extractor")


class BlockMarkers(NamedTuple):
    start: str
    end: str


ANIMATION_MARKERS = BlockMarkers("[ANIMATION_START]", "[ANIMATION_END]")
STRATEGY_MARKERS = BlockMarkers("[STRATEGY_START]", "[STRATEGY_END]")

# Sub-objects merged key by key; every other key is replaced wholesale.
DEEP_MERGE_KEYS = ("priceAction", "indicators", "display", "context")


class ErrorKind(str, Enum):
    PARSE_ERROR = "parse_error"
    INVALID_STRUCTURE = "invalid_structure"


class StreamState(Enum):
    """Where a streaming buffer stands relative to the tagged block."""

    NO_BLOCK = "no_block"
    PARTIAL_BLOCK = "partial_block"
    COMPLETE_BLOCK = "complete_block"


# ════════════════════════════════════════════════════════════════
# Payload schema
# ════════════════════════════════════════════════════════════════


class _PayloadPart(BaseModel):
    model_config = ConfigDict(extra="allow")


class EntrySpec(_PayloadPart):
    type: str = Field(..., min_length=1)
    label: str = Field(..., min_length=1)


class StopLossSpec(_PayloadPart):
    placement: str = Field(..., min_length=1)
    label: str = Field(..., min_length=1)


class TargetSpec(_PayloadPart):
    label: Optional[str] = None
    riskReward: Optional[float] = None


class DisplaySpec(_PayloadPart):
    chartType: str = Field(..., min_length=1)


class ParsedStrategyPayload(_PayloadPart):
    """
    Typed view of a tagged block.

    Unknown keys are kept so a payload validated here round-trips
    unchanged through merge_config.
    """

    type: str = Field(..., min_length=1)
    direction: Literal["long", "short"]
    entry: EntrySpec
    stopLoss: StopLossSpec
    display: DisplaySpec
    target: Optional[TargetSpec] = None
    priceAction: Optional[Dict[str, Any]] = None
    indicators: Optional[Dict[str, Any]] = None
    context: Optional[Dict[str, Any]] = None


# ════════════════════════════════════════════════════════════════
# Tagged outcomes
# ════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class NoBlock:
    """No start/end delimiter pair was found."""


@dataclass(frozen=True)
class BlockOk:
    payload: Dict[str, Any]

    @property
    def model(self) -> ParsedStrategyPayload:
        return ParsedStrategyPayload.model_validate(self.payload)


@dataclass(frozen=True)
class BlockParseError:
    detail: str
    kind: ErrorKind = ErrorKind.PARSE_ERROR


@dataclass(frozen=True)
class BlockStructureError:
    fields: Tuple[str, ...]
    kind: ErrorKind = ErrorKind.INVALID_STRUCTURE


BlockOutcome = Union[NoBlock, BlockOk, BlockParseError, BlockStructureError]


@dataclass
class StreamExtraction:
    """Result of inspecting a (possibly partial) streaming buffer."""

    config: Optional[Dict[str, Any]]
    clean_text: str
    extracted_successfully: bool
    state: StreamState
    error_kind: Optional[ErrorKind] = None
    missing_fields: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "config": self.config,
            "clean_text": self.clean_text,
            "extracted_successfully": self.extracted_successfully,
            "state": self.state.value,
            "error_kind": self.error_kind.value if self.error_kind else None,
            "missing_fields": list(self.missing_fields),
        }


# ════════════════════════════════════════════════════════════════
# Block location
# ════════════════════════════════════════════════════════════════


def _locate(text: str, markers: BlockMarkers) -> Tuple[int, int]:
    """Return (start index, end index) of the first pair, -1 where absent."""
    start = text.find(markers.start)
    if start == -1:
        return -1, -1
    end = text.find(markers.end, start + len(markers.start))
    return start, end


def has_complete_block(buffer: str, markers: BlockMarkers = ANIMATION_MARKERS) -> bool:
    """
    PURPOSE: True when a start marker is followed by an end marker.

    Args:
        buffer: Full or partial assistant text.
        markers: Delimiter pair to look for.

    Returns:
        bool: Whether a complete block is present.
    """
    start, end = _locate(buffer or "", markers)
    return start != -1 and end != -1


def classify_buffer(buffer: str, markers: BlockMarkers = ANIMATION_MARKERS) -> StreamState:
    """Classify a streaming buffer as NO_BLOCK, PARTIAL_BLOCK or COMPLETE_BLOCK."""
    start, end = _locate(buffer or "", markers)
    if start == -1:
        return StreamState.NO_BLOCK
    if end == -1:
        return StreamState.PARTIAL_BLOCK
    return StreamState.COMPLETE_BLOCK


def error_kind_for(error: Exception) -> ErrorKind:
    """Map a parsing exception onto its error kind."""
    if isinstance(error, json.JSONDecodeError):
        return ErrorKind.PARSE_ERROR
    return ErrorKind.INVALID_STRUCTURE


def _missing_fields(error: ValidationError) -> Tuple[str, ...]:
    fields = []
    for item in error.errors():
        path = ".".join(str(part) for part in item.get("loc", ()))
        if path and path not in fields:
            fields.append(path)
    return tuple(fields)


def parse_block(text: str, markers: BlockMarkers = ANIMATION_MARKERS) -> BlockOutcome:
    """
    PURPOSE: Parse the first tagged block into a tagged outcome.

    The JSON between the markers must decode to an object carrying the
    required fields (type, direction long|short, entry.type, entry.label,
    stopLoss.placement, stopLoss.label, display.chartType).

    Args:
        text: Complete assistant text.
        markers: Delimiter pair to look for.

    Returns:
        BlockOutcome: NoBlock, BlockOk(payload), BlockParseError or
        BlockStructureError(fields).
    """
    start, end = _locate(text or "", markers)
    if start == -1 or end == -1:
        return NoBlock()

    raw = text[start + len(markers.start):end].strip()
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as e:
        return BlockParseError(detail=str(e), kind=error_kind_for(e))

    if not isinstance(payload, dict):
        return BlockStructureError(fields=("<root>",))

    try:
        ParsedStrategyPayload.model_validate(payload)
    except ValidationError as e:
        return BlockStructureError(fields=_missing_fields(e), kind=error_kind_for(e))

    return BlockOk(payload=payload)


def extract_block(text: str, markers: BlockMarkers = ANIMATION_MARKERS) -> Optional[Dict[str, Any]]:
    """
    PURPOSE: Return the validated payload of the first tagged block, or None.

    Failures are logged with their error kind and never raised.

    Args:
        text: Complete assistant text.
        markers: Delimiter pair to look for.

    Returns:
        Optional[Dict[str, Any]]: The decoded JSON object.
    """
    outcome = parse_block(text, markers)
    if isinstance(outcome, BlockOk):
        return outcome.payload
    if isinstance(outcome, BlockParseError):
        logger.warning("tagged_block_parse_failed", error_kind=outcome.kind.value, detail=outcome.detail)
    elif isinstance(outcome, BlockStructureError):
        logger.warning(
            "tagged_block_parse_failed",
            error_kind=outcome.kind.value,
            missing_fields=list(outcome.fields),
        )
    return None


def strip_block(text: str, markers: BlockMarkers = ANIMATION_MARKERS) -> str:
    """
    PURPOSE: Remove the first tagged block (markers included) and trim.

    Text without a complete block is returned unchanged.
    """
    text = text or ""
    start, end = _locate(text, markers)
    if start == -1 or end == -1:
        return text
    return (text[:start] + text[end + len(markers.end):]).strip()


def try_extract_from_stream(buffer: str, markers: BlockMarkers = ANIMATION_MARKERS) -> StreamExtraction:
    """
    PURPOSE: Inspect a streaming buffer without ever showing raw JSON.

    - NO_BLOCK: the buffer is shown unchanged.
    - PARTIAL_BLOCK: everything from the start marker onward is hidden.
    - COMPLETE_BLOCK: the block is parsed and stripped from the display text.

    CALLED BY: StrategySession.preview_stream, POST /extract

    Args:
        buffer: Accumulated assistant text so far.
        markers: Delimiter pair to look for.

    Returns:
        StreamExtraction: config, clean_text, extracted_successfully and state.
    """
    buffer = buffer or ""
    state = classify_buffer(buffer, markers)

    if state is StreamState.NO_BLOCK:
        return StreamExtraction(config=None, clean_text=buffer, extracted_successfully=False, state=state)

    if state is StreamState.PARTIAL_BLOCK:
        start = buffer.find(markers.start)
        return StreamExtraction(
            config=None,
            clean_text=buffer[:start].rstrip(),
            extracted_successfully=False,
            state=state,
        )

    outcome = parse_block(buffer, markers)
    clean_text = strip_block(buffer, markers)
    if isinstance(outcome, BlockOk):
        return StreamExtraction(
            config=outcome.payload,
            clean_text=clean_text,
            extracted_successfully=True,
            state=state,
        )

    if isinstance(outcome, BlockStructureError):
        logger.warning(
            "stream_block_invalid",
            error_kind=outcome.kind.value,
            missing_fields=list(outcome.fields),
        )
        return StreamExtraction(
            config=None,
            clean_text=clean_text,
            extracted_successfully=False,
            state=state,
            error_kind=outcome.kind,
            missing_fields=list(outcome.fields),
        )

    kind = outcome.kind if isinstance(outcome, BlockParseError) else ErrorKind.PARSE_ERROR
    logger.warning("stream_block_invalid", error_kind=kind.value)
    return StreamExtraction(
        config=None,
        clean_text=clean_text,
        extracted_successfully=False,
        state=state,
        error_kind=kind,
    )


def merge_config(existing: Optional[Dict[str, Any]], partial: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """
    PURPOSE: Merge an incremental payload update into the current payload.

    Scalars from `partial` win. priceAction, indicators, display and
    context are merged key by key. entry, stopLoss and target are replaced
    wholesale when `partial` carries them. Neither input is mutated.

    Args:
        existing: Current payload (may be None on the first turn).
        partial: Update emitted by the latest assistant turn.

    Returns:
        Dict[str, Any]: A new merged payload.
    """
    merged: Dict[str, Any] = copy.deepcopy(existing) if existing else {}
    if not partial:
        return merged

    for key, value in partial.items():
        if key in DEEP_MERGE_KEYS and isinstance(value, dict):
            base = merged.get(key)
            combined = dict(base) if isinstance(base, dict) else {}
            combined.update(copy.deepcopy(value))
            merged[key] = combined
        else:
            merged[key] = copy.deepcopy(value)

    return merged
