"""
Business logic layer for the strategy service.

PURPOSE: Services sit between API routes and database models. They are
stateless and receive the database session per call.

CALLED BY: API routes in strategy_core.api

Services:
    - StrategyService: Saving, retrieving and listing finalized strategies
"""

from strategy_core.services.strategy_service import StrategyService

__all__ = [
    "StrategyService",
]
