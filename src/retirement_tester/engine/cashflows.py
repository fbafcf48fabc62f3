from dataclasses import dataclass
from typing import Optional

from ..config import ConfigurationError, SimConfig, WithdrawalConfig


@dataclass(frozen=True)
class Cashflow:
    """One year's flows. Positive net = contribution, negative = withdrawal."""
    contribution: float
    withdrawal: float
    supplemental_income: float = 0.0

    @property
    def net(self) -> float:
        return self.contribution - self.withdrawal


class WithdrawalPolicy:
    """Gross retirement withdrawal for one year.

    `reference_balance` is the balance at the start of the first retired year;
    `inflation_factor` is cumulative since the first simulated year.
    """
    name = ""

    def __init__(self, cfg: WithdrawalConfig):
        self.cfg = cfg
        self.initial = float(cfg.annual_withdrawal)

    def start(self):
        """Fresh per-path state; stateless policies return None."""
        return None

    def base_rate(self, reference_balance: float) -> float:
        if reference_balance <= 0:
            return 0.0
        return self.initial / reference_balance

    def amount(self, start_balance, reference_balance, inflation_factor, state) -> float:
        raise NotImplementedError


class FixedWithdrawal(WithdrawalPolicy):
    name = "fixed"

    def amount(self, start_balance, reference_balance, inflation_factor, state):
        return self.initial * inflation_factor


class PercentageWithdrawal(WithdrawalPolicy):
    name = "percentage"

    def amount(self, start_balance, reference_balance, inflation_factor, state):
        if start_balance <= 0:
            return 0.0
        return start_balance * self.base_rate(reference_balance)


class _Baseline:
    __slots__ = ("value",)

    def __init__(self, value: float):
        self.value = value


class GuardrailsWithdrawal(WithdrawalPolicy):
    """Guyton-Klinger style guardrails around the initial withdrawal rate."""
    name = "guardrails"

    def start(self):
        return _Baseline(self.initial)

    def amount(self, start_balance, reference_balance, inflation_factor, state):
        expected = state.value * inflation_factor
        initial_rate = self.base_rate(reference_balance)
        current_rate = expected / start_balance if start_balance > 0 else float("inf")
        cfg = self.cfg
        if current_rate > initial_rate * (1.0 + cfg.upper_guardrail):
            withdrawal = expected * (1.0 - cfg.guardrail_adjustment)
        elif current_rate < initial_rate * (1.0 - cfg.lower_guardrail):
            withdrawal = expected * (1.0 + cfg.guardrail_adjustment)
        else:
            return expected
        # adjusted amount becomes the new baseline, in first-year dollars
        state.value = withdrawal / inflation_factor
        return withdrawal


class DynamicWithdrawal(WithdrawalPolicy):
    name = "dynamic"

    def amount(self, start_balance, reference_balance, inflation_factor, state):
        if start_balance <= 0 or reference_balance <= 0:
            return 0.0
        ratio = min(2.0, start_balance / reference_balance)
        return start_balance * self.base_rate(reference_balance) * (0.8 + 0.4 * ratio)


class FloorCeilingWithdrawal(WithdrawalPolicy):
    name = "floor-ceiling"

    def amount(self, start_balance, reference_balance, inflation_factor, state):
        target = self.initial * inflation_factor
        floor = self.cfg.floor if self.cfg.floor is not None else target * 0.8
        ceiling = self.cfg.ceiling if self.cfg.ceiling is not None else target * 1.2
        pct = max(start_balance, 0.0) * self.base_rate(reference_balance)
        return max(floor, min(ceiling, pct))


POLICIES = {
    cls.name: cls
    for cls in (FixedWithdrawal, PercentageWithdrawal, GuardrailsWithdrawal,
                DynamicWithdrawal, FloorCeilingWithdrawal)
}


def build_policy(cfg: WithdrawalConfig) -> WithdrawalPolicy:
    try:
        return POLICIES[cfg.strategy](cfg)
    except KeyError:
        raise ConfigurationError(
            f"Unknown withdrawal strategy {cfg.strategy!r}; expected one of {sorted(POLICIES)}"
        ) from None


@dataclass
class PathCashflowState:
    """Mutable cashflow bookkeeping owned by a single path."""
    policy_state: object = None
    reference_balance: Optional[float] = None


class CashflowResolver:
    def __init__(self, config: SimConfig):
        self.config = config
        self.policy = build_policy(config.withdrawal)
        w = config.withdrawal
        self.tax_gross_up = 1.0 + w.effective_tax_rate if w.tax_treatment == "pre-tax" else 1.0

    def new_state(self) -> PathCashflowState:
        return PathCashflowState(policy_state=self.policy.start())

    def contribution(self, year: int) -> float:
        cfg = self.config
        amt = float(cfg.annual_contribution)
        if cfg.contribution_growth:
            amt *= (1.0 + cfg.contribution_growth) ** year
        return amt

    def supplemental(self, year: int, inflation_factor: float) -> float:
        total = 0.0
        for s in self.config.supplemental_income:
            if s.is_active(year):
                total += s.amount * inflation_factor if s.real else s.amount
        return max(total, 0.0)

    def resolve(self, year: int, age: int, start_balance: float, inflation_factor: float,
                state: PathCashflowState) -> Cashflow:
        cfg = self.config
        contribution = 0.0
        withdrawal = 0.0
        supplemental = 0.0

        if age >= cfg.retirement_age:
            if state.reference_balance is None:
                state.reference_balance = start_balance
            factor = 1.0 if cfg.inflation_model == "fixed" else inflation_factor
            gross = self.policy.amount(start_balance, state.reference_balance, factor, state.policy_state)
            gross *= self.tax_gross_up
            supplemental = self.supplemental(year, inflation_factor)
            withdrawal = max(0.0, gross - supplemental)
        else:
            contribution = self.contribution(year)

        for g in cfg.goals:
            if not g.is_active(year):
                continue
            amt = g.amount_for(year, inflation_factor)
            if g.kind == "expense":
                withdrawal += amt
            else:
                contribution += amt

        return Cashflow(contribution, withdrawal, supplemental)
