import pickle

import numpy as np
import pytest

from retirement_tester.config import Allocation, LifeStageConfig, SamplerConfig, WithdrawalConfig
from retirement_tester.engine.ledger import YearlyLedger
from retirement_tester.engine.simulator import PathSimulator
from retirement_tester.sampling.models import build_sampler


def _forecasted_sim(config):
    return PathSimulator(config, build_sampler(config.sampler, config.market))


def test_fixed_withdrawal_with_zero_returns(make_config, market):
    cfg = make_config(
        horizon_years=10,
        market=market(inflation_rate=0.03),
        withdrawal=WithdrawalConfig(strategy="fixed", annual_withdrawal=40_000),
    )
    run = _forecasted_sim(cfg).run(np.random.default_rng(0))
    led = run.ledger
    assert run.success
    for y, s in enumerate(led):
        # inflation is applied before the first withdrawal
        assert s.withdrawal == pytest.approx(40_000 * 1.03 ** (y + 1))
        assert s.blended_return == 0.0
        assert s.end_balance == pytest.approx(s.start_balance - s.withdrawal)
        assert s.inflation_factor == pytest.approx(1.03 ** (y + 1))
    expected_final = 1_000_000 - sum(40_000 * 1.03 ** n for n in range(1, 11))
    assert run.final_balance == pytest.approx(expected_final)
    assert run.total_withdrawals == pytest.approx(1_000_000 - expected_final)
    assert run.annualized_return == 0.0
    assert run.volatility == 0.0


def test_depletion_back_fills_full_horizon(make_config, market):
    cfg = make_config(
        horizon_years=8,
        starting_balance=50_000,
        market=market(inflation_rate=0.02),
        withdrawal=WithdrawalConfig(strategy="fixed", annual_withdrawal=100_000),
    )
    run = _forecasted_sim(cfg).run(np.random.default_rng(0))
    assert not run.success
    assert run.final_balance == 0.0
    assert run.depleted_year == 0
    assert run.years_simulated == 1
    assert len(run.ledger) == 8
    assert run.ledger.column("end_balance").tolist() == [0.0] * 8
    assert not run.ledger.survived.any()
    assert run.ledger.column("withdrawal")[1:].tolist() == [0.0] * 7
    assert run.ledger.column("inflation_factor").tolist() == pytest.approx([1.02 ** (y + 1) for y in range(8)])
    assert run.min_balance == 0.0
    assert run.max_drawdown == pytest.approx(-1.0)


def test_depletion_mid_path(make_config, run_path):
    cfg = make_config(horizon_years=6, starting_balance=100_000,
                      withdrawal=WithdrawalConfig(annual_withdrawal=30_000))
    run = run_path(cfg, [0.0] * 6)
    # 100k -> 70k -> 40k -> 10k -> depleted in year 3
    assert run.depleted_year == 3
    assert run.years_simulated == 4
    assert run.ledger.column("end_balance").tolist() == pytest.approx([70_000, 40_000, 10_000, 0, 0, 0])
    assert run.ledger.survived.tolist() == [True, True, True, False, False, False]
    assert run.peak_balance == 100_000


def test_yearly_transition(make_config, run_path):
    cfg = make_config(horizon_years=3, withdrawal=WithdrawalConfig(annual_withdrawal=50_000))
    run = run_path(cfg, [0.10, -0.20, 0.05])
    ends = run.ledger.column("end_balance").tolist()
    b0 = 1_000_000 * 1.10 - 50_000
    b1 = b0 * 0.80 - 50_000
    b2 = b1 * 1.05 - 50_000
    assert ends == pytest.approx([b0, b1, b2])
    assert run.annualized_return == pytest.approx((1.1 * 0.8 * 1.05) ** (1 / 3) - 1)
    assert run.volatility == pytest.approx(np.std([0.10, -0.20, 0.05]))
    assert run.peak_balance == pytest.approx(b0)


def test_other_bucket_is_half_stocks_half_bonds(make_config, market):
    cfg = make_config(
        horizon_years=1,
        allocation=Allocation(0, 0, 0, 100),
        market=market(stocks=(0.10, 0.0), bonds=(0.02, 0.0)),
        withdrawal=WithdrawalConfig(annual_withdrawal=0),
    )
    run = _forecasted_sim(cfg).run(np.random.default_rng(0))
    assert run.ledger[0].blended_return == pytest.approx(0.06)


def test_annual_rebalancing_vs_drift(make_config, market):
    base = dict(
        horizon_years=2,
        allocation=Allocation(50, 50),
        market=market(stocks=(0.10, 0.0), bonds=(0.0, 0.0)),
        withdrawal=WithdrawalConfig(annual_withdrawal=0),
    )
    rebalanced = _forecasted_sim(make_config(rebalancing="annually", **base)).run(np.random.default_rng(0))
    drifted = _forecasted_sim(make_config(rebalancing="none", **base)).run(np.random.default_rng(0))
    assert rebalanced.final_balance == pytest.approx(1_000_000 * 1.05 * 1.05)
    assert drifted.final_balance == pytest.approx(550_000 * 1.1 + 500_000)
    assert drifted.ledger[1].weights == pytest.approx((550 / 1050, 500 / 1050, 0.0, 0.0))
    assert rebalanced.ledger[1].weights == pytest.approx((0.5, 0.5, 0.0, 0.0))
    assert drifted.ledger[0].sub_balances == pytest.approx((550_000, 500_000, 0.0, 0.0))


def test_cashflow_spread_pro_rata(make_config, run_path):
    cfg = make_config(horizon_years=1, allocation=Allocation(60, 30, 10),
                      withdrawal=WithdrawalConfig(annual_withdrawal=100_000))
    s = run_path(cfg, [0.0]).ledger[0]
    assert s.sub_balances == pytest.approx((540_000, 270_000, 90_000, 0.0))
    assert sum(s.sub_balances) == pytest.approx(s.end_balance)


def test_life_stages(make_config, run_path):
    cfg = make_config(
        horizon_years=20,
        current_age=55,
        retirement_age=65,
        annual_contribution=10_000,
        life_stages=LifeStageConfig(transition_years=5, early_retirement_years=5, late_retirement_age=72),
        withdrawal=WithdrawalConfig(annual_withdrawal=0),
    )
    run = run_path(cfg, [0.0] * 20)
    stages = dict(zip(range(55, 75), run.ledger.life_stages))
    assert stages[55] == stages[59] == "accumulation"
    assert stages[60] == stages[64] == "transition"
    assert stages[65] == stages[69] == "early-retirement"
    assert stages[70] == stages[71] == "traditional-retirement"
    assert stages[72] == stages[74] == "late-retirement"
    # ten years of contributions, nothing withdrawn
    assert run.final_balance == pytest.approx(1_100_000)


def test_sealed_ledger_is_read_only(make_config, run_path):
    run = run_path(make_config(horizon_years=3), [0.0] * 3)
    assert run.ledger.sealed
    with pytest.raises(ValueError):
        run.ledger.column("end_balance")[0] = 1.0
    with pytest.raises(RuntimeError):
        run.ledger.append((3,) + (0.0,) * 18, 0, True)


def test_ledger_ordering_and_capacity():
    led = YearlyLedger(2)
    led.append((0,) + (0.0,) * 18, 0, True)
    with pytest.raises(ValueError):
        led.append((5,) + (0.0,) * 18, 0, True)
    led.append((1,) + (0.0,) * 18, 0, True)
    with pytest.raises(IndexError):
        led.append((2,) + (0.0,) * 18, 0, True)


def test_ledger_survives_pickling(make_config, run_path):
    run = run_path(make_config(horizon_years=4), [0.01] * 4)
    copy = pickle.loads(pickle.dumps(run))
    assert copy == run
    with pytest.raises(ValueError):
        copy.ledger.column("end_balance")[0] = 1.0


def test_ledger_frame(make_config, run_path):
    run = run_path(make_config(horizon_years=5, current_age=60, retirement_age=62), [0.02] * 5)
    df = run.ledger.to_frame()
    assert list(df.index) == [0, 1, 2, 3, 4]
    assert df["age"].tolist() == [60, 61, 62, 63, 64]
    assert df["life_stage"].iloc[0] == "transition"
    assert df["survived"].all()
    assert df["end_balance"].iloc[-1] == pytest.approx(run.final_balance)


def test_same_generator_seed_same_path(make_config):
    cfg = make_config(sampler=SamplerConfig(model="historical", seed=1))
    sim = PathSimulator(cfg, build_sampler(cfg.sampler, cfg.market))
    a = sim.run(np.random.default_rng(123), run_id=4)
    b = sim.run(np.random.default_rng(123), run_id=4)
    c = sim.run(np.random.default_rng(321), run_id=4)
    assert a == b
    assert a.ledger != c.ledger


def test_money_weighted_return_without_flows(make_config, run_path):
    run = run_path(make_config(horizon_years=3, withdrawal=WithdrawalConfig(annual_withdrawal=0)), [0.05] * 3)
    assert run.money_weighted_return == pytest.approx(0.05)


def test_lowest_balance_year_and_terminal_wealth(make_config, run_path):
    cfg = make_config(horizon_years=6, starting_balance=100_000,
                      withdrawal=WithdrawalConfig(annual_withdrawal=30_000))
    depleted = run_path(cfg, [0.0] * 6)
    assert depleted.lowest_balance_year == 3
    assert depleted.terminal_wealth_ratio == 0.0

    grown = run_path(make_config(horizon_years=3, withdrawal=WithdrawalConfig(annual_withdrawal=0)), [0.05] * 3)
    assert grown.lowest_balance_year is None
    assert grown.min_balance == 1_000_000
    assert grown.terminal_wealth_ratio == pytest.approx(1.05 ** 3)

    dip = run_path(cfg, [0.0, -0.1, 1.0, 1.0, 1.0, 1.0])
    assert dip.lowest_balance_year == 1
    assert dip.min_balance == pytest.approx(70_000 * 0.9 - 30_000)


def test_runs_are_hashable(make_config, run_path):
    cfg = make_config(horizon_years=4)
    a = run_path(cfg, [0.01] * 4)
    b = pickle.loads(pickle.dumps(a))
    assert hash(a) == hash(b)
    assert len({a, b}) == 1


def test_ledger_frame_real_dollars(make_config, market, run_path):
    cfg = make_config(horizon_years=4, market=market(inflation_rate=0.02),
                      withdrawal=WithdrawalConfig(annual_withdrawal=50_000))
    df = run_path(cfg, [0.0] * 4).ledger.to_frame()
    assert df["real_withdrawal"].tolist() == pytest.approx([50_000] * 4)
    deflators = [1.02 ** (y + 1) for y in range(4)]
    assert df["real_end_balance"].tolist() == pytest.approx(
        [e / f for e, f in zip(df["end_balance"], deflators)]
    )
