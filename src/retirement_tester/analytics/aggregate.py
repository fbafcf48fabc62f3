import logging
from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np
import pandas as pd

from .metrics import compounded, pearson, percentile

logger = logging.getLogger(__name__)

BAND_PERCENTILES = (10, 25, 50, 75, 90)
EARLY_YEARS = 5
SEQUENCE_YEARS = 10
HIGH_RISK_CORRELATION = 0.3
RANKED_RUNS = 5


@dataclass(frozen=True)
class YearlyBand:
    year: int
    age: int
    p10: float
    p25: float
    p50: float
    p75: float
    p90: float


@dataclass(frozen=True)
class EarlyReturnsGroup:
    label: str               # "above-average" / "below-average" first-five returns
    runs: int
    success_rate: float
    average_final: float


@dataclass(frozen=True)
class StartingPoint:
    run_id: int
    start_year: Optional[int]       # None for Monte Carlo runs
    final_balance: float
    lowest_balance: float
    depleted_year: Optional[int]


@dataclass(frozen=True)
class SequenceRisk:
    first_five_correlation: float
    worst_first_five: float
    best_first_five: float
    yearly_correlations: Tuple[float, ...]    # index 0 = year 1
    high_risk_years: Tuple[int, ...]          # 1-based year numbers
    impact_score: float
    early_returns: Tuple[EarlyReturnsGroup, EarlyReturnsGroup]


@dataclass(frozen=True)
class AggregateResult:
    total_runs: int
    successful_runs: int
    success_rate: float                       # 0..100
    p5: float
    p10: float
    p25: float
    p50: float
    p75: float
    p90: float
    p95: float
    mean_final: float
    median_final: float
    std_final: float
    yearly_bands: Tuple[YearlyBand, ...]
    sequence_risk: SequenceRisk
    average_years_before_failure: Optional[float]
    worst_run_id: int
    best_run_id: int
    median_run_id: int
    median_max_drawdown: float
    best_starting_years: Tuple[StartingPoint, ...] = ()
    worst_starting_years: Tuple[StartingPoint, ...] = ()

    @property
    def failed_runs(self) -> int:
        return self.total_runs - self.successful_runs

    def bands_frame(self) -> pd.DataFrame:
        return pd.DataFrame([b.__dict__ for b in self.yearly_bands]).set_index("year")


def success_rate(runs) -> float:
    if not runs:
        return 0.0
    return 100.0 * sum(1 for r in runs if r.success) / len(runs)


def yearly_bands(runs, start_age: int = 0):
    """Percentile bands of end-of-year balance across runs.

    Back-filled years of depleted runs count as zero balances.
    """
    horizon = max(len(r.ledger) for r in runs)
    bands = []
    for year in range(horizon):
        ends = [r.ledger.column("end_balance")[year] for r in runs if len(r.ledger) > year]
        p10, p25, p50, p75, p90 = (percentile(ends, p) for p in BAND_PERCENTILES)
        bands.append(YearlyBand(year, start_age + year, p10, p25, p50, p75, p90))
    return tuple(bands)


def _starting_point(run) -> StartingPoint:
    return StartingPoint(run.run_id, run.start_year, run.final_balance, run.min_balance, run.depleted_year)


def ranked_starts(runs, n: int = RANKED_RUNS):
    """The `n` best and `n` worst runs by final balance.

    Among depleted runs the earliest depletion ranks worst.
    """
    best = sorted(runs, key=lambda r: (-r.final_balance, r.run_id))[:n]
    worst = sorted(runs, key=lambda r: (r.final_balance, r.years_simulated, r.run_id))[:n]
    return tuple(map(_starting_point, best)), tuple(map(_starting_point, worst))


def _early_group(label, runs):
    if not runs:
        return EarlyReturnsGroup(label, 0, 0.0, 0.0)
    finals = [r.final_balance for r in runs]
    return EarlyReturnsGroup(label, len(runs), success_rate(runs), float(np.mean(finals)))


def sequence_risk(runs) -> SequenceRisk:
    success = np.array([1.0 if r.success else 0.0 for r in runs])
    first_five = np.array([compounded(r.first_returns(EARLY_YEARS)) for r in runs])
    corr = pearson(first_five, success)

    horizon = min(len(r.ledger) for r in runs)
    yearly = []
    for year in range(min(SEQUENCE_YEARS, horizon)):
        rets = [r.ledger.column("blended_return")[year] for r in runs]
        yearly.append(pearson(rets, success))
    high = tuple(i + 1 for i, c in enumerate(yearly) if c > HIGH_RISK_CORRELATION)

    # split on the mean first-five return of each run vs the cohort average
    means = np.array([float(np.mean(r.first_returns(EARLY_YEARS))) for r in runs])
    cutoff = means.mean()
    good = [r for r, m in zip(runs, means) if m >= cutoff]
    poor = [r for r, m in zip(runs, means) if m < cutoff]

    return SequenceRisk(
        first_five_correlation=corr,
        worst_first_five=float(first_five.min()),
        best_first_five=float(first_five.max()),
        yearly_correlations=tuple(yearly),
        high_risk_years=high,
        impact_score=min(100.0, abs(corr) * 100.0),
        early_returns=(_early_group("above-average", good), _early_group("below-average", poor)),
    )


def aggregate(runs, start_age: int = 0) -> AggregateResult:
    """Summarize a batch of runs; the result does not depend on run order."""
    if not runs:
        raise ValueError("Cannot aggregate an empty batch of runs")
    runs = sorted(runs, key=lambda r: r.run_id)
    finals = np.array([r.final_balance for r in runs], dtype=float)

    failed = [r for r in runs if not r.success]
    avg_fail = None
    if failed:
        avg_fail = float(np.mean([r.years_simulated for r in failed]))

    # stable argsort: ties resolve by run id
    order = np.argsort(finals, kind="stable")
    p50 = percentile(finals, 50)
    best, worst = ranked_starts(runs)
    median_idx = int(np.argmin(np.abs(finals - p50)))

    result = AggregateResult(
        total_runs=len(runs),
        successful_runs=len(runs) - len(failed),
        success_rate=success_rate(runs),
        p5=percentile(finals, 5),
        p10=percentile(finals, 10),
        p25=percentile(finals, 25),
        p50=p50,
        p75=percentile(finals, 75),
        p90=percentile(finals, 90),
        p95=percentile(finals, 95),
        mean_final=float(finals.mean()),
        median_final=float(np.median(finals)),
        std_final=float(finals.std()),
        yearly_bands=yearly_bands(runs, start_age),
        sequence_risk=sequence_risk(runs),
        average_years_before_failure=avg_fail,
        worst_run_id=runs[int(order[0])].run_id,
        best_run_id=runs[int(order[-1])].run_id,
        median_run_id=runs[median_idx].run_id,
        median_max_drawdown=float(np.median([r.max_drawdown for r in runs])),
        best_starting_years=best,
        worst_starting_years=worst,
    )
    logger.debug("Aggregated %d runs: %.1f%% success", result.total_runs, result.success_rate)
    return result
