"""
PURPOSE: Run strategy-builder conversation turns against an LLM.

The LLM is an opaque collaborator: anything with an async
generate(system_prompt, messages) -> str method. Each turn calls it
exactly once; there are no retries here. Whatever comes back is fed to the
session, which extracts the tagged block and updates the draft.

Examples:
    "ORB on ES, 8 tick stop below the range, 2R target, 1% risk"
    "Short NQ when it pulls back to the 20 EMA in the NY session"

CALLED BY:
    - api/routes_strategy_builder.py (turn endpoint)
"""

import json
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol

from strategy_core.config.settings import settings
from strategy_core.schemas.strategy import StrategyRule, ValidationResult
from strategy_core.strategy_builder.draft import StrategySession
from strategy_core.strategy_builder.prompts import STRUCTURED_PARSE_SYSTEM, build_system_prompt
from strategy_core.strategy_builder.rule_mapper import rules_from_parsed_rules
from strategy_core.utils.logger import get_logger

logger = get_logger("strategy_builder.nl_parser")

_CODE_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


class LLMClient(Protocol):
    async def generate(self, system_prompt: str, messages: List[Dict[str, str]]) -> str:
        ...


@dataclass
class TurnResult:
    """
    Outcome of one conversation turn.

    Attributes:
        display_text: Assistant text with the tagged block removed
        config: Running payload after the turn
        rules: Draft rules after the turn
        validation: Validation of the draft after the turn
        error: LLM failure description, None on success
    """

    display_text: str = ""
    config: Optional[Dict[str, Any]] = None
    rules: List[StrategyRule] = field(default_factory=list)
    validation: Optional[ValidationResult] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def _parse_json_object(text: str) -> Optional[Dict[str, Any]]:
    """Decode a JSON object from an LLM response, tolerating code fences."""
    cleaned = _CODE_FENCE_RE.sub("", (text or "").strip())
    try:
        parsed = json.loads(cleaned)
    except json.JSONDecodeError:
        return None
    return parsed if isinstance(parsed, dict) else None


class StrategyTurnParser:
    """
    PURPOSE: Drives one LLM call per user turn and keeps the session in sync.

    CALLED BY: api/routes_strategy_builder.py
    """

    def __init__(self, llm: LLMClient, max_questions: Optional[int] = None) -> None:
        self._llm = llm
        self._max_questions = settings.MAX_CLARIFYING_QUESTIONS if max_questions is None else max_questions

    async def run_turn(self, session: StrategySession, user_message: str) -> TurnResult:
        """
        Send a user message and fold the assistant reply into the session.

        Args:
            session: Conversation to extend.
            user_message: e.g. "ORB on ES with an 8 tick stop"

        Returns:
            TurnResult: Display text, rules and validation, or an error.
            LLM failures never raise; the user turn stays recorded.
        """
        session.add_user_message(user_message)
        system_prompt = build_system_prompt(session.validate(), session.markers, self._max_questions)
        messages = [{"role": m.role, "content": m.content} for m in session.messages]

        logger.info("strategy_turn_start", input_length=len(user_message), history=len(messages))

        try:
            response = await self._llm.generate(system_prompt, messages)
        except Exception as e:
            logger.error("strategy_turn_llm_failed", error=str(e))
            return self._error_result(session, f"LLM call failed: {e}")

        if not response or not response.strip():
            logger.error("strategy_turn_llm_empty")
            return self._error_result(session, "LLM returned an empty response")

        display_text = session.add_assistant_message(response)
        validation = session.validate()

        logger.info(
            "strategy_turn_complete",
            pattern=validation.pattern,
            score=validation.completion_score,
            state=validation.state.value,
        )
        return TurnResult(
            display_text=display_text,
            config=session.config,
            rules=session.rules,
            validation=validation,
        )

    async def parse_description(
        self,
        session: StrategySession,
        description: str,
        strategy_name: Optional[str] = None,
    ) -> TurnResult:
        """
        Ask the LLM for a structured parse of a description and apply it.

        Args:
            session: Conversation whose draft receives the rules.
            description: Free-text strategy description.
            strategy_name: Optional name recorded as a rule.

        Returns:
            TurnResult: Rules and validation after applying the parse.
        """
        logger.info("structured_parse_start", input_length=len(description))

        try:
            response = await self._llm.generate(
                STRUCTURED_PARSE_SYSTEM,
                [{"role": "user", "content": description}],
            )
        except Exception as e:
            logger.error("structured_parse_llm_failed", error=str(e))
            return self._error_result(session, f"LLM call failed: {e}")

        parsed = _parse_json_object(response)
        if parsed is None:
            logger.warning("structured_parse_json_failed", response_preview=str(response)[:120])
            return self._error_result(session, "LLM response was not a JSON object")

        instrument = session.draft.get("Instrument")
        rules = rules_from_parsed_rules(
            parsed,
            strategy_name=strategy_name,
            instrument=None if instrument is not None else parsed.get("instrument"),
        )
        session.draft.apply_many(rules)
        validation = session.validate()

        logger.info("structured_parse_complete", rules=len(rules), score=validation.completion_score)
        return TurnResult(config=session.config, rules=session.rules, validation=validation)

    @staticmethod
    def _error_result(session: StrategySession, error: str) -> TurnResult:
        return TurnResult(
            config=session.config,
            rules=session.rules,
            validation=session.validate(),
            error=error,
        )
