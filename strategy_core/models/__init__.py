"""Database models for the strategy service.

Import all models here so Base.metadata knows every table before create_all.
"""

from strategy_core.models.strategy import SavedStrategy

__all__ = [
    "SavedStrategy",
]
