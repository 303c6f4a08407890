"""
PURPOSE: Futures position sizing from account risk and stop distance.

Calculates how many whole contracts fit a dollar risk budget given the stop
distance in ticks and the contract's tick value, and how many consecutive
full losses an account can absorb before hitting its drawdown limit.
Contract counts are always floored: a fractional contract cannot be traded
and rounding up would exceed the risk budget.
"""

import math
from typing import Optional

from strategy_core.risk.instruments import ContractSpec, get_contract_spec
from strategy_core.utils.logger import get_logger

logger = get_logger("risk.position_sizer")


class PositionSizer:
    """
    PURPOSE: Calculate contract counts and dollar risk for futures trades.

    Uses the formula: contracts = floor(risk_amount / (stop_ticks * tick_value))

    CALLED BY: RiskValidator.derive_profile
    """

    def risk_amount(self, account_size: float, risk_pct: float) -> float:
        """
        PURPOSE: Dollar risk for one trade.

        Args:
            account_size: Account balance in dollars.
            risk_pct: Risk percentage of the account (e.g., 1.0 for 1%).

        Returns:
            float: account_size * risk_pct / 100.

        Raises:
            ValueError: If account_size or risk_pct are invalid.
        """
        if account_size <= 0:
            logger.error("risk_amount_invalid_account", account_size=account_size)
            raise ValueError(f"Account size must be positive, got {account_size}")

        if risk_pct <= 0 or risk_pct > 100:
            logger.error("risk_amount_invalid_risk", risk_pct=risk_pct)
            raise ValueError(f"Risk percentage must be 0-100, got {risk_pct}")

        return account_size * risk_pct / 100.0

    def risk_per_contract(self, symbol: str, stop_ticks: float) -> float:
        """
        PURPOSE: Dollar loss of one contract stopped out after stop_ticks.

        Args:
            symbol: Futures symbol (e.g., "ES", "MNQ").
            stop_ticks: Stop distance in ticks.

        Returns:
            float: stop_ticks * tick_value.

        Raises:
            ValueError: If the symbol is unknown or stop_ticks is not positive.
        """
        spec = self._spec(symbol)
        if stop_ticks <= 0:
            logger.error("risk_per_contract_invalid_stop", stop_ticks=stop_ticks)
            raise ValueError(f"Stop distance must be positive, got {stop_ticks}")
        return stop_ticks * spec.tick_value

    def calculate_contracts(self, risk_amount: float, stop_ticks: float, symbol: str) -> int:
        """
        PURPOSE: Whole contracts affordable within the risk budget.

        Formula:
          contracts = floor(risk_amount / (stop_ticks * tick_value))

        CALLED BY: RiskValidator.derive_profile

        Args:
            risk_amount: Dollar risk budget for the trade.
            stop_ticks: Stop distance in ticks.
            symbol: Futures symbol.

        Returns:
            int: Contract count, 0 when one contract already exceeds the budget.

        Raises:
            ValueError: If any input is invalid.
        """
        if risk_amount < 0:
            logger.error("calculate_contracts_invalid_risk", risk_amount=risk_amount)
            raise ValueError(f"Risk amount must not be negative, got {risk_amount}")

        per_contract = self.risk_per_contract(symbol, stop_ticks)
        # Small epsilon so 500 / 100.0 computed as 4.999... still floors to 5.
        contracts = math.floor(risk_amount / per_contract + 1e-9)

        logger.debug(
            "contracts_calculated",
            symbol=symbol,
            risk_amount=risk_amount,
            stop_ticks=stop_ticks,
            risk_per_contract=per_contract,
            contracts=contracts,
        )
        return int(contracts)

    def trades_until_drawdown(self, drawdown_limit: float, risk_amount: float) -> Optional[int]:
        """
        PURPOSE: Consecutive full losses before the drawdown limit is hit.

        Args:
            drawdown_limit: Maximum allowed drawdown in dollars.
            risk_amount: Dollar risk per trade.

        Returns:
            Optional[int]: floor(drawdown_limit / risk_amount), or None when
            risk_amount is zero.
        """
        if risk_amount <= 0:
            return None
        if drawdown_limit < 0:
            raise ValueError(f"Drawdown limit must not be negative, got {drawdown_limit}")
        return int(math.floor(drawdown_limit / risk_amount + 1e-9))

    def points_to_ticks(self, symbol: str, points: float) -> float:
        """Convert a distance in points to ticks for the symbol."""
        return points * self._spec(symbol).ticks_per_point

    @staticmethod
    def _spec(symbol: str) -> ContractSpec:
        spec = get_contract_spec(symbol)
        if spec is None:
            logger.warning("position_sizer_unknown_symbol", symbol=symbol)
            raise ValueError(f"Unknown futures symbol: {symbol}")
        return spec
