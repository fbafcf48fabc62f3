import numpy as np
import pandas as pd

from ..config import ConfigurationError, SamplerConfig
from ..data.historical import COLUMNS
from .draws import ReturnDraw


class ReturnSampler:
    """Produces one ReturnDraw per simulated year.

    Implementations must take all randomness from the `rng` argument so that a
    path seeded with its own generator is reproducible wherever it runs.
    """

    def draw(self, rng, year: int) -> ReturnDraw:
        raise NotImplementedError


class HistoricalSampler(ReturnSampler):
    def __init__(self, history: pd.DataFrame, cfg: SamplerConfig):
        missing = [c for c in COLUMNS if c not in history.columns]
        if missing:
            raise ConfigurationError(f"History is missing columns: {missing}")
        self.rows = history[list(COLUMNS)].to_numpy(dtype=float)
        self.n = self.rows.shape[0]
        self.block = int(cfg.block_years) if cfg.mode == "block_years" else 1
        if self.block > self.n:
            raise ConfigurationError(
                f"block_years ({self.block}) exceeds the {self.n} years of history"
            )

    def index(self, rng) -> int:
        if self.block > 1:
            # block bootstrap: random block start, then one year inside the block
            start = int(rng.integers(0, self.n - self.block + 1))
            return start + int(rng.integers(0, self.block))
        return int(rng.integers(0, self.n))

    def row(self, idx: int) -> ReturnDraw:
        s, b, c, i = self.rows[idx]
        return ReturnDraw(float(s), float(b), float(c), float(i))

    def draw(self, rng, year: int) -> ReturnDraw:
        return self.row(self.index(rng))


class HistoricalSequence(ReturnSampler):
    """Replays history in order from a fixed starting offset; ignores the generator."""

    def __init__(self, history: pd.DataFrame, offset: int):
        self.rows = history[list(COLUMNS)].to_numpy(dtype=float)
        self.offset = int(offset)
        self.start_year = int(history.index[self.offset])

    def draw(self, rng, year: int) -> ReturnDraw:
        s, b, c, i = self.rows[self.offset + year]
        return ReturnDraw(float(s), float(b), float(c), float(i))


def sequence_offsets(history: pd.DataFrame, horizon_years: int):
    """Every starting offset with a full horizon of history after it."""
    n = len(history)
    if horizon_years > n:
        raise ConfigurationError(
            f"Historical sequences need {horizon_years} years but only {n} are available"
        )
    return np.arange(0, n - horizon_years + 1)
