from dataclasses import dataclass, field
from typing import Literal, Optional, Tuple

ALLOCATION_TOLERANCE = 1e-6
DEFAULT_DEGREES_OF_FREEDOM = 5.0

# portfolio-level (mean, stdev) of annual returns for each stock-bond preset
PRESET_RETURNS = {
    "100-0": (0.10, 0.18),
    "75-25": (0.085, 0.14),
    "60-40": (0.075, 0.11),
    "50-50": (0.07, 0.10),
    "25-75": (0.055, 0.07),
    "0-100": (0.04, 0.05),
}
ALLOCATION_PRESETS = tuple(PRESET_RETURNS)
SAMPLING_MODES = ("single_year", "block_years")


class ConfigurationError(ValueError):
    """Raised when a simulation is configured in a way the engine cannot run."""


@dataclass(frozen=True)
class Allocation:
    stocks: float           # percent, 0..100
    bonds: float
    cash: float = 0.0
    other: float = 0.0      # REITs, commodities... modelled as 50/50 stocks/bonds

    def __post_init__(self):
        parts = (self.stocks, self.bonds, self.cash, self.other)
        if any(p < 0 for p in parts):
            raise ConfigurationError(f"Allocation weights must be non-negative: {self}")
        if abs(self.total() - 100.0) > ALLOCATION_TOLERANCE:
            raise ConfigurationError(f"Allocation totals {self.total():.4f}% - should be 100%")

    def total(self) -> float:
        return self.stocks + self.bonds + self.cash + self.other

    def weights(self):
        """Fractions in (stocks, bonds, cash, other) order."""
        return (self.stocks / 100.0, self.bonds / 100.0, self.cash / 100.0, self.other / 100.0)

    @classmethod
    def from_label(cls, label: str) -> "Allocation":
        """Build a stock/bond mix from a preset label such as '60-40'."""
        if label not in ALLOCATION_PRESETS:
            raise ConfigurationError(f"Unknown allocation preset {label!r}; expected one of {ALLOCATION_PRESETS}")
        stocks, bonds = (float(x) for x in label.split("-"))
        return cls(stocks=stocks, bonds=bonds)

    def label(self) -> Optional[str]:
        """The preset label for this mix, or None if it is not a preset."""
        if self.cash or self.other:
            return None
        label = f"{self.stocks:g}-{self.bonds:g}"
        return label if label in PRESET_RETURNS else None


@dataclass(frozen=True)
class GlidePath:
    start_year: int
    end_year: int
    start_allocation: Allocation
    end_allocation: Allocation
    enabled: bool = True

    def __post_init__(self):
        if self.start_year > self.end_year:
            raise ConfigurationError(
                f"Glide path start_year ({self.start_year}) is after end_year ({self.end_year})"
            )


@dataclass(frozen=True)
class CashflowGoal:
    name: str
    kind: Literal["income", "expense", "one-time"]
    amount: float            # annual amount, or the single payment for one-time goals
    start_year: int          # simulation year index, 0 = first simulated year
    end_year: Optional[int] = None   # inclusive; None = through the horizon
    real: bool = False       # True => indexed by cumulative inflation
    growth_rate: float = 0.0

    def __post_init__(self):
        if self.kind not in ("income", "expense", "one-time"):
            raise ConfigurationError(f"Unknown cashflow kind {self.kind!r} for goal {self.name!r}")
        if self.end_year is not None and self.end_year < self.start_year:
            raise ConfigurationError(f"Goal {self.name!r} ends before it starts")

    def is_active(self, year: int) -> bool:
        if self.kind == "one-time":
            return year == self.start_year
        return year >= self.start_year and (self.end_year is None or year <= self.end_year)

    def amount_for(self, year: int, inflation_factor: float) -> float:
        amt = float(self.amount)
        if self.real:
            amt *= inflation_factor
        if self.growth_rate:
            amt *= (1.0 + self.growth_rate) ** (year - self.start_year)
        return amt


@dataclass(frozen=True)
class SupplementalIncome:
    name: str
    amount: float            # annual, offsets withdrawals only
    start_year: int = 0
    end_year: Optional[int] = None
    real: bool = False

    def is_active(self, year: int) -> bool:
        return year >= self.start_year and (self.end_year is None or year <= self.end_year)


@dataclass(frozen=True)
class AssetAssumptions:
    expected_return: float   # annual, decimal
    volatility: float

    def __post_init__(self):
        if self.volatility < 0:
            raise ConfigurationError(f"Volatility cannot be negative: {self.volatility}")


@dataclass(frozen=True)
class MarketAssumptions:
    stocks: AssetAssumptions = field(default_factory=lambda: AssetAssumptions(0.07, 0.18))
    bonds: AssetAssumptions = field(default_factory=lambda: AssetAssumptions(0.025, 0.06))
    cash: AssetAssumptions = field(default_factory=lambda: AssetAssumptions(0.005, 0.02))
    stock_bond_correlation: float = 0.0
    inflation_rate: float = 0.025
    inflation_volatility: float = 0.01

    def __post_init__(self):
        if not -1.0 <= self.stock_bond_correlation <= 1.0:
            raise ConfigurationError(
                f"Stock/bond correlation must be within [-1, 1]: {self.stock_bond_correlation}"
            )
        if self.inflation_volatility < 0:
            raise ConfigurationError(f"Inflation volatility cannot be negative: {self.inflation_volatility}")


@dataclass(frozen=True)
class SamplerConfig:
    model: Literal["historical", "forecasted", "statistical", "parameterized", "preset"] = "historical"
    mode: Literal["single_year", "block_years"] = "single_year"   # historical model only
    block_years: int = 5
    distribution: Literal["normal", "lognormal", "t"] = "normal"  # parameterized model only
    degrees_of_freedom: Optional[float] = None                    # None => DEFAULT_DEGREES_OF_FREEDOM
    seed: Optional[int] = 42

    def __post_init__(self):
        if self.mode not in SAMPLING_MODES:
            raise ConfigurationError(f"Unknown sampling mode {self.mode!r}; expected one of {SAMPLING_MODES}")
        if self.block_years < 1:
            raise ConfigurationError(f"block_years must be at least 1: {self.block_years}")
        if self.degrees_of_freedom is not None and self.degrees_of_freedom <= 0:
            raise ConfigurationError(f"degrees_of_freedom must be positive: {self.degrees_of_freedom}")

    @property
    def dof(self) -> float:
        if self.degrees_of_freedom is None:
            return DEFAULT_DEGREES_OF_FREEDOM
        return float(self.degrees_of_freedom)


@dataclass(frozen=True)
class WithdrawalConfig:
    strategy: Literal["fixed", "percentage", "guardrails", "dynamic", "floor-ceiling"] = "fixed"
    annual_withdrawal: float = 0.0     # initial withdrawal, in first-year dollars
    upper_guardrail: float = 0.2
    lower_guardrail: float = 0.2
    guardrail_adjustment: float = 0.1
    floor: Optional[float] = None      # floor-ceiling overrides (nominal)
    ceiling: Optional[float] = None
    tax_treatment: Literal["pre-tax", "post-tax", "mixed"] = "post-tax"
    effective_tax_rate: float = 0.0

    def __post_init__(self):
        if self.annual_withdrawal < 0:
            raise ConfigurationError(f"annual_withdrawal cannot be negative: {self.annual_withdrawal}")
        for name in ("upper_guardrail", "lower_guardrail", "guardrail_adjustment", "effective_tax_rate"):
            if getattr(self, name) < 0:
                raise ConfigurationError(f"{name} cannot be negative: {getattr(self, name)}")
        if self.floor is not None and self.ceiling is not None and self.floor > self.ceiling:
            raise ConfigurationError(f"Withdrawal floor {self.floor} exceeds ceiling {self.ceiling}")


@dataclass(frozen=True)
class LifeStageConfig:
    transition_years: int = 5          # years before retirement tagged 'transition'
    early_retirement_years: int = 5    # years after retirement tagged 'early-retirement'
    late_retirement_age: int = 70


@dataclass(frozen=True)
class SimConfig:
    horizon_years: int
    n_sims: int = 10_000
    starting_balance: float = 1_000_000.0
    method: Literal["monte_carlo", "historical_sequence"] = "monte_carlo"
    current_age: int = 65
    retirement_age: int = 65
    allocation: Allocation = field(default_factory=lambda: Allocation(stocks=60.0, bonds=40.0))
    glide_path: Optional[GlidePath] = None
    annual_contribution: float = 0.0
    contribution_growth: float = 0.0
    withdrawal: WithdrawalConfig = field(default_factory=WithdrawalConfig)
    goals: Tuple[CashflowGoal, ...] = ()
    supplemental_income: Tuple[SupplementalIncome, ...] = ()
    sampler: SamplerConfig = field(default_factory=SamplerConfig)
    market: MarketAssumptions = field(default_factory=MarketAssumptions)
    inflation_model: Literal["sampled", "constant", "fixed"] = "sampled"
    rebalancing: Literal["monthly", "quarterly", "annually", "none"] = "annually"
    life_stages: LifeStageConfig = field(default_factory=LifeStageConfig)
    workers: int = 1

    def __post_init__(self):
        if self.horizon_years < 1:
            raise ConfigurationError(f"horizon_years must be at least 1: {self.horizon_years}")
        if self.n_sims < 1:
            raise ConfigurationError(f"n_sims must be at least 1: {self.n_sims}")
        if self.workers < 1:
            raise ConfigurationError(f"workers must be at least 1: {self.workers}")
        if self.starting_balance < 0:
            raise ConfigurationError(f"starting_balance cannot be negative: {self.starting_balance}")
        if self.current_age < 0 or self.retirement_age < self.current_age:
            raise ConfigurationError(
                f"Retirement age ({self.retirement_age}) cannot be less than current age ({self.current_age})"
            )
        if self.method not in ("monte_carlo", "historical_sequence"):
            raise ConfigurationError(f"Unknown simulation method {self.method!r}")
        if self.inflation_model not in ("sampled", "constant", "fixed"):
            raise ConfigurationError(f"Unknown inflation model {self.inflation_model!r}")
        if self.rebalancing not in ("monthly", "quarterly", "annually", "none"):
            raise ConfigurationError(f"Unknown rebalancing frequency {self.rebalancing!r}")
        if self.sampler.model == "parameterized" and self.sampler.distribution == "lognormal":
            for name in ("stocks", "bonds"):
                mean = getattr(self.market, name).expected_return
                if 1.0 + mean <= 0:
                    raise ConfigurationError(
                        f"Log-normal returns need a positive gross mean; {name} expected return is {mean}"
                    )
        if self.sampler.model == "preset" and self.allocation.label() is None:
            raise ConfigurationError(
                f"The preset return model needs one of {ALLOCATION_PRESETS}; got {self.allocation}"
            )
