import logging
from dataclasses import replace

import numpy as np

from retirement_tester.analytics.comparisons import max_safe_withdrawal_rate, withdrawal_rate_comparison
from retirement_tester.analytics.metrics import cagr
from retirement_tester.config import Allocation, SamplerConfig, SimConfig, WithdrawalConfig
from retirement_tester.engine.batch import simulate


def main():
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    # 1) Configs: $1M, 60/40, $40k/yr inflation-adjusted for 30 years
    base = SimConfig(
        horizon_years=30,
        n_sims=2_000,
        starting_balance=1_000_000,
        allocation=Allocation.from_label("60-40"),
        withdrawal=WithdrawalConfig(strategy="fixed", annual_withdrawal=40_000),
        sampler=SamplerConfig(model="historical", mode="block_years", block_years=5, seed=42),
    )

    # 2) Monte Carlo over bootstrapped history
    runs, mc = simulate(base)

    # 3) Every 30-year window of actual history
    _, hist = simulate(replace(base, method="historical_sequence", inflation_model="constant"))

    def pct(x): return f"{x:.1f}%"
    print(f"=== Monte Carlo Summary ({mc.total_runs} sims) ===")
    print(f"Success rate: {pct(mc.success_rate)}")
    print(f"End balance (nominal) median: ${mc.p50:,.0f}")
    print("Percentiles (10/50/90) - End Balance:", [f"${v:,.0f}" for v in (mc.p10, mc.p50, mc.p90)])
    cagr_vals = [cagr(base.starting_balance, r.final_balance, base.horizon_years) for r in runs]
    print(f"CAGR median: {np.nanmedian(cagr_vals):.2%}")
    print(f"TWRR median: {np.median([r.annualized_return for r in runs]):.2%}")
    print(f"Max Drawdown median: {mc.median_max_drawdown:.1%}")
    seq = mc.sequence_risk
    print(f"Sequence risk impact: {seq.impact_score:.0f}/100 (first-five correlation {seq.first_five_correlation:+.2f})")

    print(f"\n=== Historical windows ({hist.total_runs}) ===")
    print(f"Success rate: {pct(hist.success_rate)}, median end balance ${hist.p50:,.0f}")

    print("\n=== Withdrawal rates (historical windows) ===")
    seq_cfg = replace(base, method="historical_sequence")
    for o in withdrawal_rate_comparison(seq_cfg):
        print(f"{o.rate:.1%}: {pct(o.success_rate)} success, median ${o.p50:,.0f}")
    print(f"Max safe withdrawal rate: {max_safe_withdrawal_rate(seq_cfg):.1%}")


if __name__ == "__main__":
    main()
