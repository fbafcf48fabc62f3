import logging

from ..config import PRESET_RETURNS, ConfigurationError, MarketAssumptions, SamplerConfig
from ..data.historical import load_history
from .bootstrap import HistoricalSampler, ReturnSampler
from .draws import ReturnDraw, correlated_pair, lognormal, normal, student_t

logger = logging.getLogger(__name__)


class _StatisticalSampler(ReturnSampler):
    def __init__(self, market: MarketAssumptions):
        self.market = market

    def _cash_and_inflation(self, rng):
        # independent of the stock/bond model
        m = self.market
        cash = normal(rng, m.cash.expected_return, m.cash.volatility)
        infl = normal(rng, m.inflation_rate, m.inflation_volatility)
        return cash, infl


class CorrelatedNormalSampler(_StatisticalSampler):
    """Forecasted/statistical model: bivariate normal stock/bond returns."""

    def draw(self, rng, year: int) -> ReturnDraw:
        m = self.market
        z_s, z_b = correlated_pair(rng, m.stock_bond_correlation)
        stocks = m.stocks.expected_return + m.stocks.volatility * z_s
        bonds = m.bonds.expected_return + m.bonds.volatility * z_b
        cash, infl = self._cash_and_inflation(rng)
        return ReturnDraw(stocks, bonds, cash, infl)


class NormalSampler(_StatisticalSampler):
    def _one(self, rng, mean, std):
        return normal(rng, mean, std)

    def draw(self, rng, year: int) -> ReturnDraw:
        m = self.market
        stocks = self._one(rng, m.stocks.expected_return, m.stocks.volatility)
        bonds = self._one(rng, m.bonds.expected_return, m.bonds.volatility)
        cash, infl = self._cash_and_inflation(rng)
        return ReturnDraw(stocks, bonds, cash, infl)


class LogNormalSampler(NormalSampler):
    def _one(self, rng, mean, std):
        return lognormal(rng, mean, std)


class StudentTSampler(NormalSampler):
    def __init__(self, market: MarketAssumptions, dof: float):
        super().__init__(market)
        self.dof = float(dof)

    def _one(self, rng, mean, std):
        return student_t(rng, mean, std, self.dof)


class PresetSampler(_StatisticalSampler):
    """One normal return for the whole portfolio, from the preset table.

    Every asset class gets the same draw, so the blended return is the
    portfolio return whatever the weights.
    """

    def __init__(self, market: MarketAssumptions, label: str):
        super().__init__(market)
        self.label = label
        self.mean, self.std = PRESET_RETURNS[label]

    def draw(self, rng, year: int) -> ReturnDraw:
        r = normal(rng, self.mean, self.std)
        infl = normal(rng, self.market.inflation_rate, self.market.inflation_volatility)
        return ReturnDraw(r, r, r, infl)


def _parameterized(cfg: SamplerConfig, market: MarketAssumptions) -> ReturnSampler:
    if cfg.distribution == "lognormal":
        return LogNormalSampler(market)
    if cfg.distribution == "t":
        return StudentTSampler(market, cfg.dof)
    if cfg.distribution != "normal":
        logger.warning("Unknown distribution %r, using normal returns", cfg.distribution)
    return NormalSampler(market)


def build_sampler(cfg: SamplerConfig, market: MarketAssumptions, history=None, allocation=None) -> ReturnSampler:
    """Pick the return model once per configuration.

    The preset model needs the preset `allocation`. Unknown model tags fall
    back to historical sampling.
    """
    if cfg.model == "preset":
        label = allocation.label() if allocation is not None else None
        if label is None:
            raise ConfigurationError(f"The preset return model needs a preset allocation; got {allocation}")
        return PresetSampler(market, label)
    if cfg.model in ("forecasted", "statistical"):
        return CorrelatedNormalSampler(market)
    if cfg.model == "parameterized":
        return _parameterized(cfg, market)
    if cfg.model != "historical":
        logger.warning("Unknown return model %r, falling back to historical sampling", cfg.model)
    return HistoricalSampler(load_history() if history is None else history, cfg)
