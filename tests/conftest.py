"""
PURPOSE: Pytest fixtures for strategy service tests.

Provides shared test data and mock objects including:
- Async SQLite session for persistence testing
- Test configuration settings
- Sample rule sets for each canonical pattern
- Mock LLM collaborator that replays canned replies
"""

import json
from typing import List
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from strategy_core.schemas.strategy import RuleCategory, RuleSource, StrategyRule


def make_rule(label: str, value: str, category: RuleCategory = RuleCategory.SETUP, **kwargs) -> StrategyRule:
    """Build a StrategyRule with sensible test defaults."""
    return StrategyRule(category=category, label=label, value=value, **kwargs)


def tagged_reply(payload: dict, prose: str = "Here is your setup.") -> str:
    """Render an assistant reply with an embedded tagged block."""
    return f"{prose}\n[ANIMATION_START]\n{json.dumps(payload)}\n[ANIMATION_END]"


@pytest_asyncio.fixture
async def async_session():
    """
    PURPOSE: In-memory SQLite async session for testing.

    Creates a fresh async SQLite database for each test with all tables created.
    Automatically cleaned up after test completion.

    Returns:
        AsyncSession: SQLAlchemy async session connected to in-memory SQLite.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
    )

    # Import models to ensure tables are registered
    from strategy_core.db.base import Base
    import strategy_core.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async_session_local = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with async_session_local() as session:
        yield session

    await engine.dispose()


@pytest.fixture
def test_settings():
    """
    PURPOSE: Settings override with test values.

    Returns:
        Settings: Configuration object with test values.
    """
    from strategy_core.config.settings import Settings

    return Settings(
        DATABASE_URL="sqlite+aiosqlite:///:memory:",
        DEBUG=True,
        LOG_LEVEL="DEBUG",
        RISK_PERCENT_WARNING=1.5,
        RISK_PERCENT_ERROR=3.0,
        RATE_LIMIT_ENABLED=False,
    )


@pytest.fixture
def orb_rules() -> List[StrategyRule]:
    """
    PURPOSE: Complete opening range breakout on ES.

    $50,000 account, 1% risk, 8 tick stop: $500 risk, $100 per contract, 5 contracts.
    """
    return [
        make_rule("Instrument", "ES"),
        make_rule("Entry Trigger", "Break above the opening range high", RuleCategory.ENTRY),
        make_rule("Stop Loss", "8 ticks below the range low", RuleCategory.RISK),
        make_rule("Profit Target", "2R (1:2 R:R)", RuleCategory.EXIT),
        make_rule("Position Sizing", "1% of $50,000", RuleCategory.RISK),
        make_rule("Range Period", "15 minutes"),
    ]


@pytest.fixture
def ema_rules() -> List[StrategyRule]:
    """Instrument and direction only, as stated in a first message."""
    return [
        make_rule("Instrument", "NQ"),
        make_rule("Direction", "Long only"),
    ]


@pytest.fixture
def breakout_payload() -> dict:
    """A valid tagged-block payload for an opening range breakout."""
    return {
        "type": "breakout_range",
        "direction": "long",
        "entry": {"type": "range_break", "label": "Break above the opening range high"},
        "stopLoss": {"placement": "range_low", "label": "8 ticks below the range low"},
        "target": {"riskReward": 2, "label": "2R target"},
        "display": {"chartType": "candlestick"},
        "priceAction": {"consolidationTime": 15},
        "context": {"instrument": "ES", "session": "NY"},
    }


@pytest.fixture
def mock_llm(breakout_payload):
    """
    PURPOSE: Mock LLM collaborator replying with a tagged block.

    Returns:
        AsyncMock: Object whose generate() coroutine returns a canned reply.
    """
    llm = AsyncMock()
    llm.generate = AsyncMock(return_value=tagged_reply(breakout_payload, "Nice, an ORB on ES."))
    return llm


@pytest.fixture
def user_rule():
    """Factory for user-edited rules."""
    def _make(label: str, value: str, category: RuleCategory = RuleCategory.SETUP) -> StrategyRule:
        return StrategyRule(category=category, label=label, value=value, source=RuleSource.USER)
    return _make
