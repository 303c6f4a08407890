"""
PURPOSE: Unit tests for tagged-block extraction, stream previews and payload merging.

Tests cover:
- Locating and parsing blocks into tagged outcomes
- Malformed JSON and missing required fields
- Hiding partially streamed blocks
- Deep/shallow merge rules of incremental payloads
"""

import copy
import json

import pytest

from strategy_core.strategy_builder.extractor import (
    ANIMATION_MARKERS,
    STRATEGY_MARKERS,
    BlockOk,
    BlockParseError,
    BlockStructureError,
    ErrorKind,
    NoBlock,
    StreamState,
    classify_buffer,
    extract_block,
    has_complete_block,
    merge_config,
    parse_block,
    strip_block,
    try_extract_from_stream,
)

from conftest import tagged_reply


class TestParseBlock:
    """Test parsing of complete assistant texts."""

    def test_valid_block(self, breakout_payload):
        """Test a valid block yields BlockOk with the decoded payload."""
        outcome = parse_block(tagged_reply(breakout_payload))
        assert isinstance(outcome, BlockOk)
        assert outcome.payload == breakout_payload
        assert outcome.model.direction == "long"

    def test_no_markers(self):
        """Test text without markers yields NoBlock."""
        assert isinstance(parse_block("Just prose, no block."), NoBlock)

    def test_start_without_end(self, breakout_payload):
        """Test an unterminated block yields NoBlock."""
        text = "Setup:\n[ANIMATION_START]\n" + json.dumps(breakout_payload)
        assert isinstance(parse_block(text), NoBlock)

    def test_end_before_start_is_ignored(self, breakout_payload):
        """Test an end marker only counts after the start marker."""
        text = "[ANIMATION_END] oops [ANIMATION_START]" + json.dumps(breakout_payload)
        assert isinstance(parse_block(text), NoBlock)

    def test_malformed_json(self):
        """Test malformed JSON is a parse error, not an exception."""
        outcome = parse_block("x [ANIMATION_START]{not json[ANIMATION_END]")
        assert isinstance(outcome, BlockParseError)
        assert outcome.kind is ErrorKind.PARSE_ERROR

    def test_missing_direction(self, breakout_payload):
        """Test a payload without direction is a structure error naming the field."""
        del breakout_payload["direction"]
        outcome = parse_block(tagged_reply(breakout_payload))
        assert isinstance(outcome, BlockStructureError)
        assert outcome.kind is ErrorKind.INVALID_STRUCTURE
        assert "direction" in outcome.fields

    def test_invalid_direction(self, breakout_payload):
        """Test direction must be long or short."""
        breakout_payload["direction"] = "sideways"
        assert isinstance(parse_block(tagged_reply(breakout_payload)), BlockStructureError)

    def test_missing_nested_field(self, breakout_payload):
        """Test a missing stopLoss.label is reported with its path."""
        del breakout_payload["stopLoss"]["label"]
        outcome = parse_block(tagged_reply(breakout_payload))
        assert isinstance(outcome, BlockStructureError)
        assert "stopLoss.label" in outcome.fields

    def test_non_object_json(self):
        """Test a JSON array is a structure error."""
        outcome = parse_block("[ANIMATION_START][1, 2][ANIMATION_END]")
        assert isinstance(outcome, BlockStructureError)

    def test_extra_keys_kept(self, breakout_payload):
        """Test unknown keys survive validation."""
        breakout_payload["customNote"] = "keep me"
        outcome = parse_block(tagged_reply(breakout_payload))
        assert isinstance(outcome, BlockOk)
        assert outcome.payload["customNote"] == "keep me"

    def test_strategy_markers(self, breakout_payload):
        """Test the alternate marker pair."""
        text = f"[STRATEGY_START]{json.dumps(breakout_payload)}[STRATEGY_END]"
        assert isinstance(parse_block(text, STRATEGY_MARKERS), BlockOk)
        assert isinstance(parse_block(text, ANIMATION_MARKERS), NoBlock)


class TestExtractAndStrip:
    """Test convenience extraction and block removal."""

    def test_extract_returns_payload(self, breakout_payload):
        """Test extract_block returns the payload dict."""
        assert extract_block(tagged_reply(breakout_payload)) == breakout_payload

    def test_extract_returns_none_on_failure(self):
        """Test extract_block swallows parse failures into None."""
        assert extract_block("[ANIMATION_START]{bad[ANIMATION_END]") is None
        assert extract_block("") is None

    def test_strip_block(self, breakout_payload):
        """Test the block and markers are removed and the text trimmed."""
        text = tagged_reply(breakout_payload, "Here is your setup.") + "\n\nAnything else?"
        stripped = strip_block(text)
        assert "[ANIMATION_START]" not in stripped
        assert "breakout_range" not in stripped
        assert stripped.startswith("Here is your setup.")
        assert stripped.endswith("Anything else?")

    def test_strip_without_block(self):
        """Test text without a block is unchanged."""
        assert strip_block("plain text ") == "plain text "


class TestStreaming:
    """Test stream classification and display-safe previews."""

    def test_classify(self, breakout_payload):
        """Test the three stream states."""
        full = tagged_reply(breakout_payload)
        assert classify_buffer("Hello") is StreamState.NO_BLOCK
        assert classify_buffer(full[: full.index("{") + 5]) is StreamState.PARTIAL_BLOCK
        assert classify_buffer(full) is StreamState.COMPLETE_BLOCK
        assert has_complete_block(full)
        assert not has_complete_block(full[:-3])

    def test_partial_block_hidden(self, breakout_payload):
        """Test a partial block never leaks JSON to the display text."""
        full = tagged_reply(breakout_payload, "Setting it up now.")
        start = full.index("[ANIMATION_START]") + len("[ANIMATION_START]")
        for cut in range(start, len(full)):
            preview = try_extract_from_stream(full[:cut])
            assert "{" not in preview.clean_text
            assert "[" not in preview.clean_text
            assert preview.clean_text.startswith("Setting it up now.")

    def test_prefix_before_marker_shown(self):
        """Test prose before any marker is shown as is."""
        preview = try_extract_from_stream("Setting it up")
        assert preview.state is StreamState.NO_BLOCK
        assert preview.clean_text == "Setting it up"
        assert preview.config is None

    @pytest.mark.parametrize("text", [
        "Support sits at [",
        "Levels: [A",
        "Building it [ANIMATION_S",
        "Range [STRATEGY_START] only",
        "",
    ])
    def test_text_without_start_marker_unchanged(self, text):
        """Test text holding no start marker is returned exactly as given."""
        preview = try_extract_from_stream(text)
        assert preview.state is StreamState.NO_BLOCK
        assert preview.clean_text == text

    def test_complete_block_extracted(self, breakout_payload):
        """Test a complete block is parsed and stripped."""
        preview = try_extract_from_stream(tagged_reply(breakout_payload, "Done."))
        assert preview.extracted_successfully
        assert preview.config == breakout_payload
        assert preview.clean_text == "Done."

    def test_complete_invalid_block(self, breakout_payload):
        """Test an invalid complete block reports its error kind and missing fields."""
        del breakout_payload["entry"]
        preview = try_extract_from_stream(tagged_reply(breakout_payload, "Done."))
        assert not preview.extracted_successfully
        assert preview.error_kind is ErrorKind.INVALID_STRUCTURE
        assert "entry" in preview.missing_fields
        assert preview.clean_text == "Done."

    def test_to_dict(self):
        """Test the serialized preview uses plain values."""
        data = try_extract_from_stream("Hi").to_dict()
        assert data["state"] == "no_block"
        assert data["error_kind"] is None


class TestMergeConfig:
    """Test incremental payload merging."""

    def test_first_turn(self, breakout_payload):
        """Test merging into None returns a copy of the update."""
        merged = merge_config(None, breakout_payload)
        assert merged == breakout_payload
        assert merged is not breakout_payload

    def test_deep_merge_keys(self):
        """Test priceAction, indicators, display and context merge key by key."""
        existing = {
            "indicators": {"ema": {"period": 20}},
            "display": {"chartType": "candlestick", "showVolume": True},
            "context": {"instrument": "ES"},
        }
        partial = {
            "indicators": {"rsi": {"show": True, "level": 50}},
            "display": {"chartType": "line"},
            "context": {"session": "NY"},
        }
        merged = merge_config(existing, partial)
        assert merged["indicators"] == {"ema": {"period": 20}, "rsi": {"show": True, "level": 50}}
        assert merged["display"] == {"chartType": "line", "showVolume": True}
        assert merged["context"] == {"instrument": "ES", "session": "NY"}

    def test_other_keys_replaced(self):
        """Test entry, stopLoss and target are replaced wholesale."""
        existing = {"stopLoss": {"placement": "range_low", "label": "8 ticks", "offset": 2}}
        merged = merge_config(existing, {"stopLoss": {"placement": "atr", "label": "1.5x ATR"}})
        assert merged["stopLoss"] == {"placement": "atr", "label": "1.5x ATR"}

    def test_inputs_not_mutated(self, breakout_payload):
        """Test neither input is mutated."""
        existing = copy.deepcopy(breakout_payload)
        partial = {"context": {"timeframe": "5m"}, "direction": "short"}
        snapshot_existing = copy.deepcopy(existing)
        snapshot_partial = copy.deepcopy(partial)
        merged = merge_config(existing, partial)
        merged["context"]["instrument"] = "NQ"
        assert existing == snapshot_existing
        assert partial == snapshot_partial

    def test_empty_partial(self, breakout_payload):
        """Test an empty update returns a copy of the existing payload."""
        assert merge_config(breakout_payload, None) == breakout_payload
