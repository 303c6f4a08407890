"""
PURPOSE: Strategy draft state for one builder conversation.

StrategyDraft is the ordered rule list of a draft. Labels are unique:
applying a rule whose normalized label already exists replaces the old
value in place, so the latest write wins and arrival order is kept.

StrategySession ties a conversation to its draft. Assistant turns are run
through the tagged-block extractor and merged into the running payload;
user turns can name the instrument directly. Editing an earlier message
truncates the history after it and rebuilds the draft from scratch so no
rule derived from a discarded turn survives.

CALLED BY:
    - strategy_builder/nl_parser.py (StrategyTurnParser)
"""

from dataclasses import dataclass
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple

from strategy_core.risk.risk_models import RiskContext
from strategy_core.schemas.strategy import (
    FinalizationResult,
    RuleCategory,
    RuleSource,
    StrategyRule,
    ValidationResult,
)
from strategy_core.strategy_builder.completeness import FirstTurnPlan, plan_first_turn
from strategy_core.strategy_builder.extractor import (
    ANIMATION_MARKERS,
    BlockMarkers,
    StreamExtraction,
    extract_block,
    merge_config,
    strip_block,
    try_extract_from_stream,
)
from strategy_core.strategy_builder.intent import MessageCompleteness, assess_message, instrument_rule_from_message
from strategy_core.strategy_builder.patterns import (
    UNSUPPORTED,
    CanonicalPattern,
    PatternResolution,
    pattern_display_name,
    pattern_from_block_type,
    resolve_pattern,
)
from strategy_core.strategy_builder.pipeline import finalize_strategy, validate_strategy
from strategy_core.strategy_builder.rule_mapper import rules_from_payload
from strategy_core.utils.logger import get_logger
from strategy_core.utils.parsing import normalize_label

logger = get_logger("strategy_builder.draft")

USER = "user"
ASSISTANT = "assistant"


class StrategyDraft:
    """Ordered rules keyed by normalized label."""

    def __init__(self, rules: Optional[Iterable[StrategyRule]] = None):
        self._rules: Dict[str, StrategyRule] = {}
        if rules:
            self.apply_many(rules)

    def apply(self, rule: StrategyRule) -> Optional[StrategyRule]:
        """
        Add or replace a rule.

        Returns:
            Optional[StrategyRule]: The rule that was replaced, if any.
        """
        key = normalize_label(rule.label)
        previous = self._rules.get(key)
        # Reassigning an existing key keeps its insertion position.
        self._rules[key] = rule
        return previous

    def apply_many(self, rules: Iterable[StrategyRule]) -> None:
        for rule in rules:
            self.apply(rule)

    def get(self, label: str) -> Optional[StrategyRule]:
        return self._rules.get(normalize_label(label))

    def remove(self, label: str) -> Optional[StrategyRule]:
        return self._rules.pop(normalize_label(label), None)

    def clear(self) -> None:
        self._rules.clear()

    @property
    def rules(self) -> List[StrategyRule]:
        return list(self._rules.values())

    def __len__(self) -> int:
        return len(self._rules)

    def __iter__(self) -> Iterator[StrategyRule]:
        return iter(list(self._rules.values()))


@dataclass(frozen=True)
class ChatMessage:
    role: str
    content: str


class StrategySession:
    """
    PURPOSE: One strategy-builder conversation and its draft.

    Attributes:
        messages: Conversation history, oldest first
        config: Running tagged-block payload merged across assistant turns
        pattern: Canonical pattern of the draft, once known
        draft: Current rules
        context: User-entered numeric risk context
    """

    def __init__(
        self,
        context: Optional[RiskContext] = None,
        markers: BlockMarkers = ANIMATION_MARKERS,
    ):
        self.markers = markers
        self.context = context
        self.messages: List[ChatMessage] = []
        self.config: Optional[Dict[str, Any]] = None
        self.pattern: Optional[CanonicalPattern] = None
        self.draft = StrategyDraft()
        self._selected: Optional[CanonicalPattern] = None
        # (number of messages when the edit was made, edited rule)
        self._user_edits: List[Tuple[int, StrategyRule]] = []

    @property
    def rules(self) -> List[StrategyRule]:
        return self.draft.rules

    # ════════════════════════════════════════════════════════════════
    # Conversation turns
    # ════════════════════════════════════════════════════════════════

    def add_user_message(self, text: str) -> MessageCompleteness:
        """
        PURPOSE: Record a user turn.

        A named instrument becomes a user-sourced Instrument rule and a
        supported pattern keyword sets the draft pattern when none is known.

        Args:
            text: The user's message.

        Returns:
            MessageCompleteness: How much of a strategy the message states.
        """
        self.messages.append(ChatMessage(role=USER, content=text))
        return self._ingest_user(text)

    def add_assistant_message(self, text: str) -> str:
        """
        PURPOSE: Record an assistant turn and fold its tagged block into the draft.

        Only the rules carried by this turn's block are applied, so a value
        the user edited is replaced only when the assistant restates it.

        Args:
            text: Complete assistant text, block included.

        Returns:
            str: The text with the block removed, for display.
        """
        self.messages.append(ChatMessage(role=ASSISTANT, content=text))
        return self._ingest_assistant(text)

    def preview_stream(self, buffer: str) -> StreamExtraction:
        """Display-safe view of a partially streamed assistant turn."""
        return try_extract_from_stream(buffer, self.markers)

    def select_pattern(self, identifier: str) -> PatternResolution:
        """
        PURPOSE: Set the draft pattern from a user choice.

        Unsupported identifiers leave the draft untouched and return
        alternatives plus a waitlist key.

        Args:
            identifier: Pattern identifier, e.g. "orb" or "vwap_bounce".

        Returns:
            PatternResolution: Canonical pattern or alternatives.
        """
        resolution = resolve_pattern(identifier)
        if resolution.supported:
            self._selected = CanonicalPattern(resolution.pattern)
            self._set_pattern(self._selected, RuleSource.USER)
        return resolution

    def apply_user_edit(self, rule: StrategyRule) -> Optional[StrategyRule]:
        """Apply a rule the user edited directly; survives rebuilds that keep its turn."""
        self._user_edits.append((len(self.messages), rule))
        return self.draft.apply(rule)

    def edit_message(self, index: int, text: str) -> List[StrategyRule]:
        """
        PURPOSE: Replace an earlier message and rebuild the draft.

        History after `index` is discarded. The draft, the merged payload
        and the inferred pattern are rebuilt by replaying the remaining
        turns, together with direct user edits made before the discarded
        turns.

        Args:
            index: Position of the message in `messages`.
            text: Replacement content.

        Returns:
            List[StrategyRule]: The rebuilt rules.

        Raises:
            IndexError: If no message exists at `index`.
        """
        if index < 0 or index >= len(self.messages):
            raise IndexError(f"No message at index {index}")

        kept = self.messages[:index] + [ChatMessage(role=self.messages[index].role, content=text)]
        edits = [(position, rule) for position, rule in self._user_edits if position <= index]
        logger.info(
            "draft_rebuild_started",
            index=index,
            discarded_messages=len(self.messages) - len(kept),
            kept_edits=len(edits),
        )

        self.messages = []
        self.config = None
        self.pattern = None
        self.draft = StrategyDraft()
        self._user_edits = []
        if self._selected is not None:
            self._set_pattern(self._selected, RuleSource.USER)

        for message in kept:
            self._replay_edits(edits, len(self.messages))
            self.messages.append(message)
            if message.role == USER:
                self._ingest_user(message.content)
            else:
                self._ingest_assistant(message.content)
        self._replay_edits(edits, len(self.messages))

        return self.draft.rules

    # ════════════════════════════════════════════════════════════════
    # Validation and finalization
    # ════════════════════════════════════════════════════════════════

    def validate(self, context: Optional[RiskContext] = None) -> ValidationResult:
        return validate_strategy(self.draft.rules, self.pattern, context or self.context)

    def plan_first_turn(self) -> FirstTurnPlan:
        """Ask questions for vague input, otherwise apply safe defaults to the draft."""
        plan = plan_first_turn(self.pattern, self.draft.rules)
        for rule in plan.applied_defaults:
            self.draft.apply(rule)
        return plan

    def finalize(
        self,
        name: str,
        confirm_defaults: bool = False,
        context: Optional[RiskContext] = None,
    ) -> FinalizationResult:
        return finalize_strategy(
            name,
            self.pattern,
            self.draft.rules,
            context=context or self.context,
            confirm_defaults=confirm_defaults,
        )

    # ════════════════════════════════════════════════════════════════
    # Internals
    # ════════════════════════════════════════════════════════════════

    def _ingest_user(self, text: str) -> MessageCompleteness:
        assessment = assess_message(text)
        instrument = instrument_rule_from_message(text)
        if instrument is not None:
            self.draft.apply(instrument)
        if self.pattern is None and assessment.pattern is not None:
            self._set_pattern(assessment.pattern, RuleSource.USER)
        return assessment

    def _ingest_assistant(self, text: str) -> str:
        payload = extract_block(text, self.markers)
        if payload is None:
            return strip_block(text, self.markers)

        self.config = merge_config(self.config, payload)
        if self._selected is None:
            detected = pattern_from_block_type(self.config.get("type"))
            if detected != UNSUPPORTED:
                self.pattern = CanonicalPattern(detected)

        rules = rules_from_payload(payload)
        self.draft.apply_many(rules)
        logger.debug(
            "assistant_block_applied",
            pattern=self.pattern.value if self.pattern else None,
            labels=[rule.label for rule in rules],
        )
        return strip_block(text, self.markers)

    def _set_pattern(self, pattern: CanonicalPattern, source: RuleSource) -> None:
        self.pattern = pattern
        self.draft.apply(StrategyRule(
            category=RuleCategory.SETUP,
            label="Pattern",
            value=pattern_display_name(pattern),
            source=source,
        ))

    def _replay_edits(self, edits: List[Tuple[int, StrategyRule]], position: int) -> None:
        for edit_position, rule in edits:
            if edit_position == position:
                self.apply_user_edit(rule)
