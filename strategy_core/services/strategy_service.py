"""
Strategy persistence service.

PURPOSE: Store finalized strategies as canonical JSON documents and read
them back.

CALLED BY: api/routes_strategy_builder.py (save and strategy endpoints)
"""

from typing import Optional
from uuid import UUID

from sqlalchemy import desc, select
from sqlalchemy.ext.asyncio import AsyncSession

from strategy_core.models.strategy import SavedStrategy
from strategy_core.schemas.strategy import FinalizedStrategy, SavedStrategyResponse
from strategy_core.strategy_builder.patterns import REGISTRY_VERSION
from strategy_core.utils.logger import get_logger


logger = get_logger("services.strategy")


class StrategyService:
    """
    Service for saved strategies.

    PURPOSE: Persist finalized strategies and retrieve them by id or as a list.
    Only strategies that passed finalization reach this service.

    CALLED BY: API routes for strategy-builder endpoints
    """

    @staticmethod
    async def save_strategy(
        db: AsyncSession,
        strategy: FinalizedStrategy
    ) -> SavedStrategyResponse:
        """
        Persist a finalized strategy.

        CALLED BY: POST /api/strategy-builder/save endpoint

        Args:
            db: Async database session
            strategy: Finalized strategy

        Returns:
            SavedStrategyResponse: Stored record
        """
        logger.info("save_strategy_started", name=strategy.name, pattern=strategy.pattern)

        try:
            record = SavedStrategy(
                name=strategy.name,
                pattern=strategy.pattern,
                instrument=strategy.instrument,
                document=strategy.canonical_document(),
                version=REGISTRY_VERSION,
            )
            db.add(record)
            await db.commit()
            await db.refresh(record)

            logger.info("strategy_saved", strategy_id=str(record.id), pattern=record.pattern)
            return SavedStrategyResponse.model_validate(record)

        except Exception as e:
            await db.rollback()
            logger.error("save_strategy_error", error=str(e), name=strategy.name)
            raise

    @staticmethod
    async def get_strategy(
        db: AsyncSession,
        strategy_id: UUID
    ) -> Optional[SavedStrategyResponse]:
        """
        Retrieve a saved strategy by id.

        CALLED BY: GET /api/strategy-builder/strategies/{strategy_id} endpoint

        Args:
            db: Async database session
            strategy_id: Record id

        Returns:
            SavedStrategyResponse if found, None otherwise
        """
        logger.info("get_strategy_started", strategy_id=str(strategy_id))

        try:
            stmt = select(SavedStrategy).where(SavedStrategy.id == strategy_id)
            result = await db.execute(stmt)
            record = result.scalar_one_or_none()

            if not record:
                logger.info("strategy_not_found", strategy_id=str(strategy_id))
                return None

            return SavedStrategyResponse.model_validate(record)

        except Exception as e:
            logger.error("get_strategy_error", error=str(e), strategy_id=str(strategy_id))
            raise

    @staticmethod
    async def list_strategies(
        db: AsyncSession,
        pattern: Optional[str] = None,
        limit: int = 50
    ) -> list[SavedStrategyResponse]:
        """
        List saved strategies, newest first.

        CALLED BY: GET /api/strategy-builder/strategies endpoint

        Args:
            db: Async database session
            pattern: Optional canonical pattern filter
            limit: Maximum number of records

        Returns:
            list[SavedStrategyResponse]: Saved strategies
        """
        logger.info("list_strategies_started", pattern=pattern, limit=limit)

        try:
            stmt = select(SavedStrategy)
            if pattern:
                stmt = stmt.where(SavedStrategy.pattern == pattern)
            stmt = stmt.order_by(desc(SavedStrategy.created_at)).limit(limit)
            result = await db.execute(stmt)
            records = result.scalars().all()

            logger.info("strategies_listed", count=len(records))
            return [SavedStrategyResponse.model_validate(r) for r in records]

        except Exception as e:
            logger.error("list_strategies_error", error=str(e))
            raise
