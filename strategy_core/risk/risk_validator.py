"""
PURPOSE: Risk and structure checks over a strategy rule set.

Derives dollar risk, contract count, reward-to-risk and drawdown headroom
from the rule text (plus any user-entered numeric context) and raises
errors for violations that must block finalization and warnings for
choices a trader should reconsider.

The validator is pure: it never mutates rules, and errors raised by the
underlying calculators are turned into missing numbers instead of
escaping.

CALLED BY: strategy_builder/pipeline.py (validate_strategy)
"""

import re
from dataclasses import dataclass
from typing import List, Optional, Sequence

from strategy_core.config.settings import Settings, settings
from strategy_core.risk.instruments import get_contract_spec, resolve_instrument
from strategy_core.risk.position_sizer import PositionSizer
from strategy_core.risk.risk_models import RiskContext, RiskProfile, RiskReport
from strategy_core.schemas.strategy import RuleCategory, Severity, StrategyRule, ValidationIssue
from strategy_core.strategy_builder.aliases import find_matching_rule
from strategy_core.strategy_builder.patterns import FieldDescriptor, get_field
from strategy_core.utils.logger import get_logger
from strategy_core.utils.parsing import (
    parse_atr_multiple,
    parse_contracts,
    parse_money,
    parse_percent,
    parse_risk_reward,
    parse_stop_distance,
)

logger = get_logger("risk.risk_validator")


# Context fields that are not part of any pattern schema but are read from
# rules when the user states them in conversation.
ACCOUNT_SIZE_FIELD = FieldDescriptor(
    field="account_size",
    label="Account Size",
    category=RuleCategory.RISK,
    required=False,
    aliases=("Account Size", "Account Balance", "Account", "Capital"),
)
DRAWDOWN_FIELD = FieldDescriptor(
    field="drawdown_limit",
    label="Drawdown Limit",
    category=RuleCategory.RISK,
    required=False,
    aliases=("Drawdown Limit", "Max Drawdown", "Trailing Drawdown", "Drawdown"),
    excludes=("daily",),
)
DAILY_LOSS_FIELD = FieldDescriptor(
    field="daily_loss_limit",
    label="Daily Loss Limit",
    category=RuleCategory.RISK,
    required=False,
    aliases=("Daily Loss Limit", "Max Daily Loss", "Daily Loss", "Daily Drawdown"),
)

_INDECISIVE_RE = re.compile(r"\b(decide|figure out|see what|depends|maybe)\b", re.IGNORECASE)
_SUBJECTIVE_RE = re.compile(r"\b(good|strong|weak|feel|looks|seems|probably)\b", re.IGNORECASE)
# "1% of $50,000" names the account; "1% risk ($500)" names the dollar risk.
_PERCENT_OF_ACCOUNT_RE = re.compile(r"%\s*of\s*(?:my\s+|the\s+|an?\s+)?\$", re.IGNORECASE)


@dataclass(frozen=True)
class RiskThresholds:
    """Validator thresholds; see Settings for the defaults."""

    risk_percent_warning: float = 2.0
    risk_percent_error: float = 5.0
    min_risk_reward: float = 1.5
    max_contracts_warning: int = 100
    trades_until_drawdown_error: int = 3
    trades_until_drawdown_warning: int = 5
    atr_multiple_wide: float = 3.5
    atr_multiple_tight: float = 1.0

    @classmethod
    def from_settings(cls, config: Optional[Settings] = None) -> "RiskThresholds":
        config = config or settings
        return cls(
            risk_percent_warning=config.RISK_PERCENT_WARNING,
            risk_percent_error=config.RISK_PERCENT_ERROR,
            min_risk_reward=config.MIN_RISK_REWARD,
            max_contracts_warning=config.MAX_CONTRACTS_WARNING,
            trades_until_drawdown_error=config.TRADES_UNTIL_DRAWDOWN_ERROR,
            trades_until_drawdown_warning=config.TRADES_UNTIL_DRAWDOWN_WARNING,
            atr_multiple_wide=config.ATR_MULTIPLE_WIDE,
            atr_multiple_tight=config.ATR_MULTIPLE_TIGHT,
        )


def _issue(
    field: str,
    severity: Severity,
    message: str,
    suggestion: Optional[str] = None,
    category: Optional[RuleCategory] = RuleCategory.RISK,
) -> ValidationIssue:
    return ValidationIssue(field=field, severity=severity, message=message, suggestion=suggestion, category=category)


def _fmt(value: float) -> str:
    return f"{value:g}"


class RiskValidator:
    """
    PURPOSE: Run the risk and structure checks for a rule set.

    CALLED BY: validate_strategy

    Attributes:
        _thresholds: Limits the checks compare against.
        _sizer: Contract and dollar-risk calculator.
    """

    def __init__(self, thresholds: Optional[RiskThresholds] = None) -> None:
        self._thresholds = thresholds or RiskThresholds.from_settings()
        self._sizer = PositionSizer()
        self._stop_field = get_field("stop_loss")
        self._target_field = get_field("profit_target")
        self._sizing_field = get_field("position_sizing")
        self._instrument_field = get_field("instrument")
        self._entry_field = get_field("entry_criteria")

    # ------------------------------------------------------------------ #
    #  Derivation
    # ------------------------------------------------------------------ #

    def derive_profile(self, rules: Sequence[StrategyRule], context: Optional[RiskContext] = None) -> RiskProfile:
        """
        PURPOSE: Derive the numbers the checks run against.

        Context values override numbers parsed from rule text. Anything that
        cannot be determined stays None and its checks are skipped.

        Args:
            rules: Current draft rules.
            context: Optional user-entered numeric context.

        Returns:
            RiskProfile: Derived numbers.
        """
        context = context or RiskContext()
        profile = RiskProfile()

        instrument_rule = find_matching_rule(rules, self._instrument_field)
        stop_rule = find_matching_rule(rules, self._stop_field)
        target_rule = find_matching_rule(rules, self._target_field)
        sizing_rule = find_matching_rule(rules, self._sizing_field)
        account_rule = find_matching_rule(rules, ACCOUNT_SIZE_FIELD)
        drawdown_rule = find_matching_rule(rules, DRAWDOWN_FIELD)
        daily_rule = find_matching_rule(rules, DAILY_LOSS_FIELD)

        symbol = resolve_instrument(context.instrument) if context.instrument else None
        if symbol is None and instrument_rule is not None:
            symbol = resolve_instrument(instrument_rule.value) or resolve_instrument(instrument_rule.label)
        profile.symbol = symbol if get_contract_spec(symbol) else None

        profile.account_size = context.account_size or (parse_money(account_rule.value) if account_rule else None)
        profile.drawdown_limit = context.drawdown_limit or (parse_money(drawdown_rule.value) if drawdown_rule else None)
        profile.daily_loss_limit = context.daily_loss_limit or (parse_money(daily_rule.value) if daily_rule else None)

        sizing_value = sizing_rule.value if sizing_rule else ""
        profile.risk_percent = context.risk_percent or parse_percent(sizing_value)
        fixed_contracts = context.contracts if context.contracts is not None else parse_contracts(sizing_value)
        dollar_risk = None
        if "$" in sizing_value:
            if profile.risk_percent is not None and _PERCENT_OF_ACCOUNT_RE.search(sizing_value):
                if profile.account_size is None:
                    profile.account_size = parse_money(sizing_value)
            else:
                dollar_risk = parse_money(sizing_value)

        profile.stop_loss_ticks = context.stop_loss_ticks or self._stop_ticks(stop_rule, profile.symbol)
        if profile.symbol and profile.stop_loss_ticks:
            profile.risk_per_contract = self._sizer.risk_per_contract(profile.symbol, profile.stop_loss_ticks)

        if profile.account_size and profile.risk_percent:
            try:
                profile.risk_amount = self._sizer.risk_amount(profile.account_size, profile.risk_percent)
            except ValueError:
                profile.risk_amount = None
        elif dollar_risk:
            profile.risk_amount = dollar_risk
        elif fixed_contracts is not None and profile.risk_per_contract:
            profile.risk_amount = fixed_contracts * profile.risk_per_contract

        if fixed_contracts is not None:
            profile.contracts = fixed_contracts
            profile.contracts_fixed = True
        elif profile.risk_amount is not None and profile.risk_per_contract:
            profile.contracts = self._sizer.calculate_contracts(
                profile.risk_amount, profile.stop_loss_ticks, profile.symbol
            )

        if profile.drawdown_limit and profile.risk_amount:
            profile.trades_until_drawdown = self._sizer.trades_until_drawdown(
                profile.drawdown_limit, profile.risk_amount
            )

        if target_rule is not None:
            profile.risk_reward = parse_risk_reward(target_rule.value) or parse_risk_reward(target_rule.label)

        profile.atr_multiple = context.atr_multiple
        if profile.atr_multiple is None and stop_rule is not None:
            profile.atr_multiple = parse_atr_multiple(stop_rule.value)
        if profile.atr_multiple is None and context.atr_ticks and profile.stop_loss_ticks:
            profile.atr_multiple = round(profile.stop_loss_ticks / context.atr_ticks, 2)

        return profile

    def _stop_ticks(self, stop_rule: Optional[StrategyRule], symbol: Optional[str]) -> Optional[float]:
        if stop_rule is None:
            return None
        distance = parse_stop_distance(stop_rule.value)
        if distance is None:
            return None
        amount, unit = distance
        if unit == "ticks":
            return amount
        if symbol is None:
            return None
        return self._sizer.points_to_ticks(symbol, amount)

    # ------------------------------------------------------------------ #
    #  Checks
    # ------------------------------------------------------------------ #

    def validate(self, rules: Sequence[StrategyRule], context: Optional[RiskContext] = None) -> RiskReport:
        """
        PURPOSE: Run every risk and structure check.

        CALLED BY: validate_strategy

        Args:
            rules: Current draft rules (never mutated).
            context: Optional user-entered numeric context.

        Returns:
            RiskReport: errors, warnings and the derived profile.
        """
        t = self._thresholds
        errors: List[ValidationIssue] = []
        warnings: List[ValidationIssue] = []

        try:
            profile = self.derive_profile(rules, context)
        except ValueError as e:
            logger.warning("risk_profile_derivation_failed", error=str(e))
            profile = RiskProfile()

        if find_matching_rule(rules, self._stop_field) is None:
            errors.append(_issue(
                "stop_loss", Severity.ERROR, "Stop-loss is required.",
                suggestion="Define where you exit when the trade is wrong, e.g. 8 ticks below the range low.",
            ))

        if profile.risk_amount is not None and profile.drawdown_limit is not None:
            if profile.risk_amount > profile.drawdown_limit:
                errors.append(_issue(
                    "position_sizing", Severity.ERROR, "Single trade risk exceeds drawdown limit.",
                    suggestion=f"Risk per trade is ${profile.risk_amount:,.2f} against a "
                               f"${profile.drawdown_limit:,.2f} drawdown limit.",
                ))

        if profile.risk_amount is not None and profile.daily_loss_limit is not None:
            if profile.risk_amount > profile.daily_loss_limit:
                errors.append(_issue(
                    "position_sizing", Severity.ERROR, "Single trade risk exceeds daily loss limit.",
                    suggestion=f"Keep risk per trade under ${profile.daily_loss_limit:,.2f}.",
                ))

        if profile.risk_percent is not None:
            pct = profile.risk_percent
            if pct > t.risk_percent_error:
                errors.append(_issue(
                    "position_sizing", Severity.ERROR,
                    f"{_fmt(pct)}% risk per trade is extremely aggressive (>{_fmt(t.risk_percent_error)}%).",
                    suggestion="Professional traders risk 0.5-2% per trade.",
                ))
            elif pct > t.risk_percent_warning:
                warnings.append(_issue(
                    "position_sizing", Severity.WARNING,
                    f"{_fmt(pct)}% risk per trade is aggressive.",
                    suggestion=f"Most professionals risk {_fmt(t.risk_percent_warning)}% or less per trade.",
                ))

        if profile.risk_reward is not None and profile.risk_reward < t.min_risk_reward:
            warnings.append(_issue(
                "profit_target", Severity.WARNING,
                f"Risk:reward of 1:{_fmt(round(profile.risk_reward, 2))} is below 1:{_fmt(t.min_risk_reward)}.",
                suggestion="A lower reward needs a high win rate to stay profitable.",
                category=RuleCategory.EXIT,
            ))

        if profile.contracts is not None:
            if profile.contracts == 0:
                errors.append(_issue(
                    "position_sizing", Severity.ERROR, "Position size resolves to zero contracts.",
                    suggestion=self._zero_contract_suggestion(profile),
                ))
            elif profile.contracts > t.max_contracts_warning:
                warnings.append(_issue(
                    "position_sizing", Severity.WARNING,
                    f"{profile.contracts} contracts is a very large position.",
                    suggestion=self._large_position_suggestion(profile),
                ))

        if profile.trades_until_drawdown is not None:
            n = profile.trades_until_drawdown
            if n <= t.trades_until_drawdown_error:
                errors.append(_issue(
                    "position_sizing", Severity.ERROR,
                    f"Only {n} losses until the drawdown limit is hit.",
                    suggestion="Reduce risk per trade so a normal losing streak cannot end the account.",
                ))
            elif n <= t.trades_until_drawdown_warning:
                warnings.append(_issue(
                    "position_sizing", Severity.WARNING,
                    f"Only {n} losses until the drawdown limit is hit.",
                    suggestion="Consider reducing risk per trade.",
                ))

        if profile.atr_multiple is not None:
            multiple = profile.atr_multiple
            if multiple > t.atr_multiple_wide:
                warnings.append(_issue(
                    "stop_loss", Severity.WARNING,
                    f"Stop at {_fmt(multiple)}x ATR is wider than typical (>{_fmt(t.atr_multiple_wide)}x).",
                    suggestion="Wide stops shrink position size; check the stop is tied to structure.",
                ))
            elif multiple < t.atr_multiple_tight:
                warnings.append(_issue(
                    "stop_loss", Severity.WARNING,
                    f"Stop at {_fmt(multiple)}x ATR is inside normal noise (<{_fmt(t.atr_multiple_tight)}x).",
                    suggestion="Tight stops get hit by ordinary volatility.",
                ))

        if profile.contracts_fixed and profile.account_size is None and profile.risk_percent is None:
            warnings.append(_issue(
                "position_sizing", Severity.WARNING,
                "Fixed contract sizing without account context.",
                suggestion="Add your account size so risk per trade can be checked.",
            ))

        entry_rule = find_matching_rule(rules, self._entry_field)
        if entry_rule is not None:
            if _INDECISIVE_RE.search(entry_rule.value):
                errors.append(_issue(
                    "entry_criteria", Severity.ERROR, "Entry criteria is not specific enough.",
                    suggestion="Professional strategies have clearly defined, non-discretionary entry rules.",
                    category=RuleCategory.ENTRY,
                ))
            elif _SUBJECTIVE_RE.search(entry_rule.value):
                warnings.append(_issue(
                    "entry_criteria", Severity.WARNING, "Entry criteria contains subjective terms.",
                    suggestion='Use measurable conditions, e.g. "price breaks above X" instead of "looks strong".',
                    category=RuleCategory.ENTRY,
                ))

        logger.debug(
            "risk_validation_complete",
            errors=len(errors),
            warnings=len(warnings),
            symbol=profile.symbol,
            contracts=profile.contracts,
        )
        return RiskReport(errors=errors, warnings=warnings, profile=profile)

    @staticmethod
    def _zero_contract_suggestion(profile: RiskProfile) -> str:
        spec = get_contract_spec(profile.symbol)
        if spec is None or profile.risk_per_contract is None:
            return "Increase risk per trade or tighten the stop."
        if not spec.is_micro:
            return (
                f"One {spec.symbol} contract risks ${profile.risk_per_contract:,.2f} with this stop. "
                f"Trade {spec.related} (micro) instead."
            )
        return (
            f"One {spec.symbol} contract risks ${profile.risk_per_contract:,.2f} with this stop. "
            "Increase risk per trade or tighten the stop."
        )

    @staticmethod
    def _large_position_suggestion(profile: RiskProfile) -> str:
        spec = get_contract_spec(profile.symbol)
        if spec is not None and spec.is_micro:
            return f"Trade {spec.related} (full-size) instead; one {spec.related} equals 10 {spec.symbol}."
        return "Check the stop distance and risk amount; a position this size needs deep liquidity."
