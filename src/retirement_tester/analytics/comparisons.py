"""Sweeps over a base configuration: withdrawal rates, horizons, strategies,
named scenarios and a simple sensitivity analysis.

Each variant is a `dataclasses.replace` of the base config run through the
batch runner and summarized with the usual percentile/success metrics.
"""
import logging
from dataclasses import dataclass, fields, is_dataclass, replace
from typing import Dict, Optional, Sequence, Tuple

import numpy as np

from ..config import Allocation, SimConfig
from ..engine.batch import run_batch
from .aggregate import success_rate
from .metrics import percentile

logger = logging.getLogger(__name__)

DEFAULT_RATES = (0.03, 0.035, 0.04, 0.045, 0.05)
DEFAULT_HORIZONS = (30, 40, 50)
DEFAULT_STOCK_ALLOCATIONS = (40, 50, 60, 70, 80)
SAFE_SUCCESS_RATE = 95.0
STRATEGIES = ("fixed", "percentage", "guardrails", "dynamic", "floor-ceiling")


@dataclass(frozen=True)
class RateOutcome:
    rate: float
    success_rate: float
    successful_runs: int
    total_runs: int
    average_final: float      # successful runs only
    p10: float
    p25: float
    p50: float
    p75: float
    p90: float


@dataclass(frozen=True)
class HorizonOutcome:
    years: int
    success_rates: Tuple[Tuple[float, float], ...]   # (rate, success rate)
    recommended_rate: float


@dataclass(frozen=True)
class StrategyOutcome:
    strategy: str
    success_rate: float
    average_withdrawal: float
    withdrawal_std: float
    median_final: float


@dataclass(frozen=True)
class ScenarioOutcome:
    name: str
    success_rate: float
    average_final: float      # successful runs only
    median_final: float
    worst_case_years: int     # earliest depletion, or the horizon if none failed


@dataclass(frozen=True)
class SensitivityResult:
    variable: str
    base_value: float
    tested_values: Tuple[float, ...]
    success_rates: Tuple[float, ...]
    median_outcomes: Tuple[float, ...]


def _run(config: SimConfig, count: Optional[int] = None, workers: Optional[int] = None):
    # historical sequences have an implicit run count
    if config.method == "historical_sequence":
        count = None
    return run_batch(config, count=count, workers=workers)


def with_rate(config: SimConfig, rate: float) -> SimConfig:
    return replace(config, withdrawal=replace(config.withdrawal, annual_withdrawal=config.starting_balance * rate))


def _average_successful_final(runs) -> float:
    ok = [r.final_balance for r in runs if r.success]
    return float(np.mean(ok)) if ok else 0.0


def withdrawal_rate_comparison(config: SimConfig, rates: Sequence[float] = DEFAULT_RATES,
                               count: int = None, workers: int = None):
    out = []
    for rate in rates:
        runs = _run(with_rate(config, rate), count, workers)
        finals = [r.final_balance for r in runs]
        out.append(RateOutcome(
            rate=rate,
            success_rate=success_rate(runs),
            successful_runs=sum(1 for r in runs if r.success),
            total_runs=len(runs),
            average_final=_average_successful_final(runs),
            p10=percentile(finals, 10),
            p25=percentile(finals, 25),
            p50=percentile(finals, 50),
            p75=percentile(finals, 75),
            p90=percentile(finals, 90),
        ))
        logger.debug("rate %.2f%%: %.1f%% success", rate * 100, out[-1].success_rate)
    return out


def _recommended(pairs, rates) -> float:
    safe = [rate for rate, sr in pairs if sr >= SAFE_SUCCESS_RATE]
    return max(safe) if safe else min(rates)


def max_safe_withdrawal_rate(config: SimConfig, rates: Sequence[float] = DEFAULT_RATES,
                             count: int = None, workers: int = None) -> float:
    """Highest tested rate with at least 95% success; the lowest tested rate otherwise."""
    outcomes = withdrawal_rate_comparison(config, rates, count, workers)
    return _recommended([(o.rate, o.success_rate) for o in outcomes], rates)


def time_horizon_comparison(config: SimConfig, horizons: Sequence[int] = DEFAULT_HORIZONS,
                            rates: Sequence[float] = DEFAULT_RATES, count: int = None, workers: int = None):
    out = []
    for years in horizons:
        base = replace(config, horizon_years=int(years))
        pairs = tuple(
            (rate, success_rate(_run(with_rate(base, rate), count, workers))) for rate in rates
        )
        out.append(HorizonOutcome(int(years), pairs, _recommended(pairs, rates)))
    return out


def _retired_withdrawals(run, retirement_age: int):
    led = run.ledger
    n = run.years_simulated
    ages = led.column("age")[:n]
    return led.column("withdrawal")[:n][ages >= retirement_age]


def strategy_comparison(config: SimConfig, strategies: Sequence[str] = STRATEGIES,
                        count: int = None, workers: int = None):
    out = []
    for name in strategies:
        cfg = replace(config, withdrawal=replace(config.withdrawal, strategy=name))
        runs = _run(cfg, count, workers)
        drawn = np.concatenate([_retired_withdrawals(r, cfg.retirement_age) for r in runs])
        out.append(StrategyOutcome(
            strategy=name,
            success_rate=success_rate(runs),
            average_withdrawal=float(drawn.mean()) if drawn.size else 0.0,
            withdrawal_std=float(drawn.std()) if drawn.size else 0.0,
            median_final=percentile([r.final_balance for r in runs], 50),
        ))
    return out


def apply_changes(config, changes: Dict):
    """replace() that recurses into nested dataclass fields given as dicts."""
    names = {f.name for f in fields(config)}
    updates = {}
    for key, value in changes.items():
        if key not in names:
            raise TypeError(f"{type(config).__name__} has no field {key!r}")
        current = getattr(config, key)
        if isinstance(value, dict) and is_dataclass(current):
            value = apply_changes(current, value)
        updates[key] = value
    return replace(config, **updates)


def compare_scenarios(config: SimConfig, scenarios: Dict[str, Dict], count: int = None, workers: int = None):
    """scenarios: name -> field changes (nested dataclass fields as dicts)."""
    out = []
    for name, changes in scenarios.items():
        cfg = apply_changes(config, changes)
        runs = _run(cfg, count, workers)
        depleted = [r.depleted_year + 1 for r in runs if r.depleted_year is not None]
        out.append(ScenarioOutcome(
            name=name,
            success_rate=success_rate(runs),
            average_final=_average_successful_final(runs),
            median_final=percentile([r.final_balance for r in runs], 50),
            worst_case_years=min(depleted) if depleted else cfg.horizon_years,
        ))
    return out


def sensitivity_analysis(config: SimConfig, rates: Sequence[float] = DEFAULT_RATES,
                         stock_allocations: Sequence[float] = DEFAULT_STOCK_ALLOCATIONS,
                         count: int = 500, workers: int = None):
    """Success rate and median outcome as the withdrawal rate and the stock share vary."""
    def sweep(configs):
        rates_, medians = [], []
        for cfg in configs:
            runs = _run(cfg, count, workers)
            rates_.append(success_rate(runs))
            medians.append(percentile([r.final_balance for r in runs], 50))
        return tuple(rates_), tuple(medians)

    base_rate = config.withdrawal.annual_withdrawal / config.starting_balance if config.starting_balance else 0.0
    sr, med = sweep(with_rate(config, rate) for rate in rates)
    results = [SensitivityResult("withdrawal_rate", base_rate, tuple(rates), sr, med)]

    cash = config.allocation.cash
    # glide path dropped so the swept mix is the one simulated
    mixes = (
        replace(config, glide_path=None,
                allocation=Allocation(stocks=float(s), bonds=100.0 - float(s) - cash, cash=cash))
        for s in stock_allocations
    )
    sr, med = sweep(mixes)
    results.append(SensitivityResult("stock_allocation", config.allocation.stocks,
                                     tuple(float(s) for s in stock_allocations), sr, med))
    return results
