from dataclasses import dataclass, field
from typing import Optional

from ..analytics.metrics import max_drawdown, mwrr_irr, realized_volatility, twrr_annualized
from ..config import SimConfig
from .allocation import AllocationScheduler
from .cashflows import CashflowResolver
from .ledger import YearlyLedger

ACCUMULATION, TRANSITION, EARLY_RETIREMENT, TRADITIONAL_RETIREMENT, LATE_RETIREMENT = range(5)


@dataclass(frozen=True)
class SimulationRun:
    run_id: int
    success: bool
    final_balance: float
    peak_balance: float
    min_balance: float
    ledger: YearlyLedger = field(repr=False, hash=False)
    lowest_balance_year: Optional[int] = None   # year index; None if no year ended below the start
    terminal_wealth_ratio: float = 0.0          # final / starting balance
    annualized_return: float = 0.0
    volatility: float = 0.0
    depleted_year: Optional[int] = None     # year index of depletion
    years_simulated: int = 0                # before any back-fill
    start_year: Optional[int] = None        # first historical year, sequence runs only
    total_withdrawals: float = 0.0
    max_drawdown: float = 0.0
    money_weighted_return: float = field(default=float("nan"), compare=False)

    def first_returns(self, years: int = 5):
        return self.ledger.column("blended_return")[:years]


class PathSimulator:
    """Advances one portfolio path through the horizon, one year at a time."""

    def __init__(self, config: SimConfig, sampler, scheduler: AllocationScheduler = None):
        self.config = config
        self.sampler = sampler
        self.scheduler = scheduler or AllocationScheduler(config.allocation, config.glide_path)
        self.resolver = CashflowResolver(config)
        self.weights = self.scheduler.schedule(config.horizon_years)
        self._weights = [tuple(row) for row in self.weights.tolist()]
        self.drift = config.rebalancing == "none"

    def life_stage(self, age: int) -> int:
        cfg = self.config
        stages = cfg.life_stages
        if age >= cfg.retirement_age:
            if age - cfg.retirement_age < stages.early_retirement_years:
                return EARLY_RETIREMENT
            if age < stages.late_retirement_age:
                return TRADITIONAL_RETIREMENT
            return LATE_RETIREMENT
        if cfg.retirement_age - age <= stages.transition_years:
            return TRANSITION
        return ACCUMULATION

    def run(self, rng, run_id: int = 0, sampler=None) -> SimulationRun:
        cfg = self.config
        sampler = sampler or self.sampler
        horizon = cfg.horizon_years
        constant_inflation = cfg.market.inflation_rate
        use_constant = cfg.inflation_model == "constant"

        ledger = YearlyLedger(horizon)
        cf_state = self.resolver.new_state()
        balance = float(cfg.starting_balance)
        buckets = [balance * w for w in self._weights[0]]
        factor = 1.0
        peak = low = balance
        low_year = None
        total_withdrawals = 0.0
        depleted_year = None
        returns, nets, path = [], [], [balance]

        for year in range(horizon):
            age = cfg.current_age + year
            target = self._weights[year]

            # 1) weights: reset to target, or let the buckets drift
            if self.drift and balance > 0:
                w = tuple(b / balance for b in buckets)
            else:
                w = target
                buckets = [balance * x for x in w]

            # 2) returns ("other" is half stocks, half bonds)
            d = sampler.draw(rng, year)
            asset = (d.stocks, d.bonds, d.cash, 0.5 * (d.stocks + d.bonds))
            blended = w[0] * asset[0] + w[1] * asset[1] + w[2] * asset[2] + w[3] * asset[3]

            # 3) inflation
            inflation = constant_inflation if use_constant else d.inflation
            factor *= 1.0 + inflation

            # 4) cashflow at year end
            cf = self.resolver.resolve(year, age, balance, factor, cf_state)
            net = cf.net
            end = balance * (1.0 + blended) + net

            # 5) spread the cashflow pro rata over the grown buckets
            if end <= 0:
                end = 0.0
                buckets = [0.0, 0.0, 0.0, 0.0]
            else:
                grown = [b * (1.0 + r) for b, r in zip(buckets, asset)]
                gross = sum(grown)
                if gross > 0:
                    buckets = [g * (end / gross) for g in grown]
                else:
                    buckets = [end * x for x in target]

            ledger.append(
                (year, age, balance, blended, cf.contribution, cf.withdrawal, cf.supplemental_income,
                 net, inflation, factor, end, *buckets, *w),
                self.life_stage(age),
                end > 0,
            )
            total_withdrawals += cf.withdrawal
            returns.append(blended)
            nets.append(net)
            path.append(end)
            peak = max(peak, end)
            if end < low:
                low, low_year = end, year
            balance = end
            if end <= 0:
                depleted_year = year
                break

        years_simulated = len(ledger)

        # back-fill so every run spans the full horizon
        for year in range(years_simulated, horizon):
            factor *= 1.0 + constant_inflation
            age = cfg.current_age + year
            ledger.append(
                (year, age, 0.0, 0.0, 0.0, 0.0, 0.0, 0.0, constant_inflation, factor, 0.0,
                 0.0, 0.0, 0.0, 0.0, *self._weights[year]),
                self.life_stage(age),
                False,
            )

        return SimulationRun(
            run_id=int(run_id),
            success=depleted_year is None,
            final_balance=balance,
            peak_balance=peak,
            min_balance=low,
            lowest_balance_year=low_year,
            terminal_wealth_ratio=balance / cfg.starting_balance if cfg.starting_balance > 0 else 0.0,
            ledger=ledger.seal(),
            annualized_return=twrr_annualized(returns),
            volatility=realized_volatility(returns),
            depleted_year=depleted_year,
            years_simulated=years_simulated,
            start_year=getattr(sampler, "start_year", None),
            total_withdrawals=total_withdrawals,
            max_drawdown=max_drawdown(path),
            money_weighted_return=mwrr_irr(cfg.starting_balance, nets, balance),
        )
