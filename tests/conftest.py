import pytest

from retirement_tester.config import (
    AssetAssumptions,
    MarketAssumptions,
    SamplerConfig,
    SimConfig,
    WithdrawalConfig,
)
from retirement_tester.engine.simulator import PathSimulator
from retirement_tester.sampling.bootstrap import ReturnSampler
from retirement_tester.sampling.draws import ReturnDraw


class ScriptedSampler(ReturnSampler):
    """Same preset return for every asset class in a given year."""

    def __init__(self, returns, inflation=0.0):
        self.returns = list(returns)
        self.inflation = inflation

    def draw(self, rng, year):
        r = self.returns[year]
        return ReturnDraw(r, r, r, self.inflation)


def flat_market(inflation_rate=0.03, stocks=(0.0, 0.0), bonds=(0.0, 0.0)):
    """Deterministic statistical market: zero volatility everywhere."""
    return MarketAssumptions(
        stocks=AssetAssumptions(*stocks),
        bonds=AssetAssumptions(*bonds),
        cash=AssetAssumptions(0.0, 0.0),
        inflation_rate=inflation_rate,
        inflation_volatility=0.0,
    )


def _make_config(**overrides):
    params = dict(
        horizon_years=10,
        n_sims=10,
        starting_balance=1_000_000.0,
        inflation_model="constant",
        market=flat_market(inflation_rate=0.0),
        sampler=SamplerConfig(model="forecasted", seed=7),
        withdrawal=WithdrawalConfig(strategy="fixed", annual_withdrawal=50_000),
    )
    params.update(overrides)
    return SimConfig(**params)


@pytest.fixture
def make_config():
    return _make_config


@pytest.fixture
def market():
    return flat_market


@pytest.fixture
def run_path():
    def _run(config, returns, run_id=0, inflation=0.0):
        sim = PathSimulator(config, ScriptedSampler(returns, inflation))
        return sim.run(None, run_id)
    return _run


@pytest.fixture
def scripted():
    return ScriptedSampler
