"""
PURPOSE: Risk and structure validation for futures strategy drafts.

Provides contract specifications, position sizing and the validator that
turns a draft's rules and risk context into blocking errors and warnings.

Exports:
    - RiskValidator: Runs every risk/structure check against a draft
    - RiskThresholds: Configurable limits used by the validator
    - PositionSizer: Contract count and drawdown arithmetic
    - RiskContext: User-entered numeric risk context
    - RiskProfile: Numbers derived from rules and context
    - RiskReport: Errors, warnings and profile of one validation
"""

from strategy_core.risk.position_sizer import PositionSizer
from strategy_core.risk.risk_models import RiskContext, RiskProfile, RiskReport
from strategy_core.risk.risk_validator import RiskThresholds, RiskValidator

__all__ = [
    "RiskValidator",
    "RiskThresholds",
    "PositionSizer",
    "RiskContext",
    "RiskProfile",
    "RiskReport",
]
