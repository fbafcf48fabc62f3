import numpy as np

from ..config import Allocation, GlidePath


def _lerp(a: float, b: float, t: float) -> float:
    return a + (b - a) * t


class AllocationScheduler:
    """Target asset mix per simulation year, following an optional glide path."""

    def __init__(self, allocation: Allocation, glide_path: GlidePath = None):
        self.allocation = allocation
        self.glide_path = glide_path

    def resolve(self, year: int) -> Allocation:
        gp = self.glide_path
        if gp is None or not gp.enabled:
            return self.allocation
        if year < gp.start_year:
            return gp.start_allocation
        if year >= gp.end_year:
            return gp.end_allocation
        progress = (year - gp.start_year) / (gp.end_year - gp.start_year)
        a, b = gp.start_allocation, gp.end_allocation
        return Allocation(
            stocks=_lerp(a.stocks, b.stocks, progress),
            bonds=_lerp(a.bonds, b.bonds, progress),
            cash=_lerp(a.cash, b.cash, progress),
            other=_lerp(a.other, b.other, progress),
        )

    def schedule(self, horizon_years: int):
        """(horizon_years, 4) array of weight fractions: stocks, bonds, cash, other."""
        w = np.zeros((horizon_years, 4), dtype=float)
        for year in range(horizon_years):
            w[year] = self.resolve(year).weights()
        w.flags.writeable = False
        return w
