"""
PURPOSE: Strategy Builder API routes.

Exposes the draft pipeline over HTTP: tagged-block extraction, pattern
resolution, validation, first-turn defaulting, LLM conversation turns and
saving finalized strategies.

CALLED BY:
    - Frontend strategy-builder page
    - External integrations via API
"""

import uuid
from typing import Any, Dict, List, Literal, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from strategy_core.core.rate_limit import READ_LIMIT, WRITE_LIMIT, limiter
from strategy_core.db.engine import get_db
from strategy_core.risk.risk_models import RiskContext
from strategy_core.schemas.strategy import SavedStrategyResponse, StrategyRule
from strategy_core.services.strategy_service import StrategyService
from strategy_core.strategy_builder.completeness import plan_first_turn
from strategy_core.strategy_builder.draft import StrategySession
from strategy_core.strategy_builder.extractor import ANIMATION_MARKERS, STRATEGY_MARKERS, try_extract_from_stream
from strategy_core.strategy_builder.nl_parser import StrategyTurnParser
from strategy_core.strategy_builder.patterns import resolve_pattern
from strategy_core.strategy_builder.pipeline import coerce_pattern, finalize_strategy, validate_strategy
from strategy_core.strategy_builder.prompts import announce_defaults, next_action_suggestion, validation_summary
from strategy_core.utils.logger import get_logger

logger = get_logger("api.strategy_builder")

router = APIRouter(prefix="/strategy-builder", tags=["strategy-builder"])

_MARKERS = {"animation": ANIMATION_MARKERS, "strategy": STRATEGY_MARKERS}

# In-process conversation store, least recently used first
_sessions: Dict[str, StrategySession] = {}
_MAX_SESSIONS = 100


def _store_session(session_id: str, session: StrategySession) -> None:
    """Keep a session as most recently used, evicting the least recent past the cap."""
    _sessions.pop(session_id, None)
    _sessions[session_id] = session
    while len(_sessions) > _MAX_SESSIONS:
        del _sessions[next(iter(_sessions))]


def _get_turn_parser(request: Request) -> StrategyTurnParser:
    """Resolve the turn parser from the LLM client attached to the app."""
    llm = getattr(request.app.state, "llm", None)
    if llm is None:
        raise HTTPException(
            status_code=503,
            detail="LLM is not configured. Attach a client to app.state.llm.",
        )
    return StrategyTurnParser(llm)


def _raise_route_error(action: str, error: Exception) -> None:
    """Raise a consistent 500 response for strategy builder route failures."""
    logger.error(
        "strategy_builder_route_failed",
        action=action,
        error=str(error),
        exception_type=type(error).__name__,
    )
    raise HTTPException(status_code=500, detail=f"Failed to {action}")


# ════════════════════════════════════════════════════════════════
# Request / Response Models
# ════════════════════════════════════════════════════════════════


class ExtractRequest(BaseModel):
    text: str = Field(..., max_length=20000, description="Assistant text, possibly partial")
    markers: Literal["animation", "strategy"] = Field(default="animation", description="Delimiter pair")


class PatternRequest(BaseModel):
    identifier: str = Field(..., min_length=1, max_length=100, description="Pattern identifier, e.g. 'orb'")


class ValidateRequest(BaseModel):
    pattern: Optional[str] = Field(default=None, description="Canonical pattern id")
    rules: List[StrategyRule] = Field(default_factory=list)
    context: Optional[RiskContext] = None


class DefaultsRequest(BaseModel):
    pattern: Optional[str] = Field(default=None, description="Canonical pattern id")
    rules: List[StrategyRule] = Field(default_factory=list)


class SaveRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    pattern: str = Field(..., min_length=1, description="Canonical pattern id")
    rules: List[StrategyRule]
    context: Optional[RiskContext] = None
    confirm_defaults: bool = Field(default=False, description="User reviewed the defaulted values")


class TurnRequest(BaseModel):
    message: str = Field(..., min_length=1, max_length=4000)
    session_id: Optional[str] = Field(default=None, description="Omit to start a new conversation")
    context: Optional[RiskContext] = None


# ════════════════════════════════════════════════════════════════
# POST /api/strategy-builder/extract
# ════════════════════════════════════════════════════════════════


@router.post("/extract")
@limiter.limit(WRITE_LIMIT)
async def extract_block(request: Request, body: ExtractRequest) -> Dict[str, Any]:
    """
    PURPOSE: Extract the tagged block from (possibly streaming) assistant text.

    Returns:
        dict: {config, clean_text, extracted_successfully, state, error_kind, missing_fields}
    """
    try:
        return try_extract_from_stream(body.text, _MARKERS[body.markers]).to_dict()
    except Exception as e:
        _raise_route_error("extract block", e)


# ════════════════════════════════════════════════════════════════
# POST /api/strategy-builder/pattern
# ════════════════════════════════════════════════════════════════


@router.post("/pattern")
@limiter.limit(WRITE_LIMIT)
async def resolve_pattern_route(request: Request, body: PatternRequest) -> Dict[str, Any]:
    """
    PURPOSE: Resolve a pattern identifier, with alternatives when unsupported.
    """
    try:
        return resolve_pattern(body.identifier).to_dict()
    except Exception as e:
        _raise_route_error("resolve pattern", e)


# ════════════════════════════════════════════════════════════════
# POST /api/strategy-builder/validate
# ════════════════════════════════════════════════════════════════


@router.post("/validate")
@limiter.limit(WRITE_LIMIT)
async def validate_draft(request: Request, body: ValidateRequest) -> Dict[str, Any]:
    """
    PURPOSE: Validate a draft's rules against its pattern and risk context.

    Returns:
        dict: ValidationResult fields plus summary and next_action.
    """
    try:
        result = validate_strategy(body.rules, body.pattern, body.context)
        return {
            **result.model_dump(mode="json"),
            "summary": validation_summary(result),
            "next_action": next_action_suggestion(result),
        }
    except Exception as e:
        _raise_route_error("validate strategy", e)


# ════════════════════════════════════════════════════════════════
# POST /api/strategy-builder/defaults
# ════════════════════════════════════════════════════════════════


@router.post("/defaults")
@limiter.limit(WRITE_LIMIT)
async def apply_defaults(request: Request, body: DefaultsRequest) -> Dict[str, Any]:
    """
    PURPOSE: Plan the first assistant turn: safe defaults, or questions for vague input.

    Returns:
        dict: FirstTurnPlan fields plus an announcement of applied defaults.
    """
    try:
        plan = plan_first_turn(coerce_pattern(body.pattern), body.rules)
        return {**plan.to_dict(), "announcement": announce_defaults(plan.applied_defaults)}
    except Exception as e:
        _raise_route_error("apply defaults", e)


# ════════════════════════════════════════════════════════════════
# POST /api/strategy-builder/turn
# ════════════════════════════════════════════════════════════════


@router.post("/turn")
@limiter.limit(WRITE_LIMIT)
async def run_turn(request: Request, body: TurnRequest) -> Dict[str, Any]:
    """
    PURPOSE: Run one conversation turn through the configured LLM.

    Returns:
        dict: {session_id, display_text, config, rules, validation}
    """
    parser = _get_turn_parser(request)

    session_id = body.session_id or str(uuid.uuid4())
    session = _sessions.get(session_id)
    if session is None:
        if body.session_id:
            raise HTTPException(status_code=404, detail=f"Session {body.session_id} not found")
        session = StrategySession(context=body.context)
    elif body.context is not None:
        session.context = body.context

    try:
        result = await parser.run_turn(session, body.message)
        _store_session(session_id, session)
    except Exception as e:
        _raise_route_error("run strategy turn", e)

    if not result.ok:
        raise HTTPException(status_code=502, detail=result.error)

    return {
        "session_id": session_id,
        "display_text": result.display_text,
        "config": result.config,
        "rules": [rule.model_dump(mode="json") for rule in result.rules],
        "validation": result.validation.model_dump(mode="json"),
    }


# ════════════════════════════════════════════════════════════════
# POST /api/strategy-builder/save
# ════════════════════════════════════════════════════════════════


@router.post("/save", status_code=status.HTTP_201_CREATED, response_model=SavedStrategyResponse)
@limiter.limit(WRITE_LIMIT)
async def save_strategy(
    request: Request,
    body: SaveRequest,
    db: AsyncSession = Depends(get_db),
) -> SavedStrategyResponse:
    """
    PURPOSE: Finalize and persist a strategy.

    Drafts that are incomplete, carry errors or have unconfirmed defaults
    are refused with 422 and the reasons.
    """
    outcome = finalize_strategy(body.name, body.pattern, body.rules, body.context, body.confirm_defaults)
    if not outcome.ok:
        raise HTTPException(
            status_code=422,
            detail={
                "blocked_reasons": outcome.blocked_reasons,
                "validation": outcome.validation.model_dump(mode="json"),
            },
        )

    try:
        return await StrategyService.save_strategy(db, outcome.strategy)
    except Exception as e:
        _raise_route_error("save strategy", e)


# ════════════════════════════════════════════════════════════════
# GET /api/strategy-builder/strategies
# ════════════════════════════════════════════════════════════════


@router.get("/strategies", response_model=List[SavedStrategyResponse])
@limiter.limit(READ_LIMIT)
async def list_strategies(
    request: Request,
    pattern: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
) -> List[SavedStrategyResponse]:
    """
    PURPOSE: List saved strategies, newest first.
    """
    try:
        return await StrategyService.list_strategies(db, pattern=pattern)
    except Exception as e:
        _raise_route_error("list strategies", e)


@router.get("/strategies/{strategy_id}", response_model=SavedStrategyResponse)
@limiter.limit(READ_LIMIT)
async def get_strategy(
    request: Request,
    strategy_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> SavedStrategyResponse:
    """
    PURPOSE: Fetch one saved strategy.
    """
    try:
        strategy = await StrategyService.get_strategy(db, strategy_id)
    except Exception as e:
        _raise_route_error("retrieve strategy", e)

    if strategy is None:
        raise HTTPException(status_code=404, detail=f"Strategy {strategy_id} not found")
    return strategy
