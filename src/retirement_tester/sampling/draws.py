import math
from typing import NamedTuple


class ReturnDraw(NamedTuple):
    """One period of asset-class returns plus inflation, all decimal rates."""
    stocks: float
    bonds: float
    cash: float
    inflation: float


def standard_normal(rng) -> float:
    """Box-Muller draw: sqrt(-2 ln u1) * cos(2 pi u2)."""
    u1 = 1.0 - rng.random()     # (0, 1], keeps log finite
    u2 = rng.random()
    return math.sqrt(-2.0 * math.log(u1)) * math.cos(2.0 * math.pi * u2)


def normal(rng, mean: float, std: float) -> float:
    return mean + std * standard_normal(rng)


def correlated_pair(rng, corr: float):
    """Two standard normals with correlation `corr`."""
    z1 = standard_normal(rng)
    z2 = standard_normal(rng)
    return z1, corr * z1 + math.sqrt(1.0 - corr * corr) * z2


def lognormal(rng, mean: float, std: float) -> float:
    """Simple return whose gross value (1 + r) is log-normal with the given arithmetic mean/std."""
    gross = 1.0 + mean
    sigma = math.sqrt(math.log(1.0 + (std * std) / (gross * gross)))
    mu = math.log(gross) - sigma * sigma / 2.0
    return math.exp(mu + sigma * standard_normal(rng)) - 1.0


def chi_square_like(rng) -> float:
    # -2 ln|2u - 1|; redraw at the endpoints where the log or the ratio blows up
    while True:
        v = abs(2.0 * rng.random() - 1.0)
        if 0.0 < v < 1.0:
            return -2.0 * math.log(v)


def student_t(rng, mean: float, std: float, dof: float) -> float:
    z = standard_normal(rng)
    t = z / math.sqrt(chi_square_like(rng) / dof)
    return mean + std * t
