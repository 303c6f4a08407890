"""
PURPOSE: Pydantic models for risk validation inputs and derived numbers.

RiskContext carries the numeric context a user entered alongside the
conversation (account size, limits); RiskProfile holds the numbers the
validator derived from rules and context; RiskReport bundles the issues
raised against them.
"""

from typing import List, Optional

from pydantic import BaseModel, Field

from strategy_core.schemas.strategy import ValidationIssue


class RiskContext(BaseModel):
    """
    PURPOSE: User-entered numeric context for risk validation.

    Every field is optional; values given here override numbers parsed from
    the rule text.

    Attributes:
        account_size: Account balance in dollars.
        risk_percent: Risk per trade as a percentage of the account.
        drawdown_limit: Maximum drawdown in dollars (e.g. a prop firm trailing limit).
        daily_loss_limit: Maximum daily loss in dollars.
        instrument: Futures symbol, overrides the Instrument rule.
        stop_loss_ticks: Stop distance in ticks.
        atr_ticks: Current ATR in ticks, used to judge the stop width.
        atr_multiple: Stop width as a multiple of ATR.
        contracts: Fixed contract count.
    """

    account_size: Optional[float] = Field(default=None, gt=0, description="Account balance in dollars")
    risk_percent: Optional[float] = Field(default=None, gt=0, le=100, description="Risk per trade in percent")
    drawdown_limit: Optional[float] = Field(default=None, gt=0, description="Maximum drawdown in dollars")
    daily_loss_limit: Optional[float] = Field(default=None, gt=0, description="Maximum daily loss in dollars")
    instrument: Optional[str] = Field(default=None, description="Futures symbol, e.g. ES or MNQ")
    stop_loss_ticks: Optional[float] = Field(default=None, gt=0, description="Stop distance in ticks")
    atr_ticks: Optional[float] = Field(default=None, gt=0, description="Current ATR in ticks")
    atr_multiple: Optional[float] = Field(default=None, gt=0, description="Stop width as a multiple of ATR")
    contracts: Optional[int] = Field(default=None, ge=0, description="Fixed contract count")


class RiskProfile(BaseModel):
    """
    PURPOSE: Numbers derived from rules and context.

    Attributes:
        symbol: Resolved futures symbol.
        account_size: Account balance in dollars.
        risk_percent: Risk per trade in percent.
        risk_amount: Dollar risk per trade.
        stop_loss_ticks: Stop distance in ticks.
        risk_per_contract: Dollar risk of one contract.
        contracts: Whole contracts within the risk budget (or fixed count).
        contracts_fixed: True when the contract count came from the user.
        drawdown_limit: Maximum drawdown in dollars.
        daily_loss_limit: Maximum daily loss in dollars.
        trades_until_drawdown: Consecutive full losses before the drawdown limit.
        risk_reward: Reward per unit of risk.
        atr_multiple: Stop width as a multiple of ATR.
    """

    symbol: Optional[str] = None
    account_size: Optional[float] = None
    risk_percent: Optional[float] = None
    risk_amount: Optional[float] = None
    stop_loss_ticks: Optional[float] = None
    risk_per_contract: Optional[float] = None
    contracts: Optional[int] = None
    contracts_fixed: bool = False
    drawdown_limit: Optional[float] = None
    daily_loss_limit: Optional[float] = None
    trades_until_drawdown: Optional[int] = None
    risk_reward: Optional[float] = None
    atr_multiple: Optional[float] = None


class RiskReport(BaseModel):
    """
    PURPOSE: Result of validating a rule set for risk and structure.

    Attributes:
        errors: Blocking issues.
        warnings: Non-blocking issues.
        profile: The derived numbers the checks ran against.
    """

    errors: List[ValidationIssue] = Field(default_factory=list)
    warnings: List[ValidationIssue] = Field(default_factory=list)
    profile: RiskProfile = Field(default_factory=RiskProfile)
