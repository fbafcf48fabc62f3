from dataclasses import dataclass
from typing import Tuple

import numpy as np
import pandas as pd

LIFE_STAGES = (
    "accumulation",
    "transition",
    "early-retirement",
    "traditional-retirement",
    "late-retirement",
)

FIELDS = (
    "year",
    "age",
    "start_balance",
    "blended_return",
    "contribution",
    "withdrawal",
    "supplemental_income",
    "net_cashflow",
    "inflation",
    "inflation_factor",
    "end_balance",
    "stocks_balance",
    "bonds_balance",
    "cash_balance",
    "other_balance",
    "stocks_weight",
    "bonds_weight",
    "cash_weight",
    "other_weight",
)
_IDX = {name: i for i, name in enumerate(FIELDS)}


@dataclass(frozen=True)
class YearlyState:
    year: int
    age: int
    start_balance: float
    blended_return: float
    contribution: float
    withdrawal: float
    supplemental_income: float
    net_cashflow: float
    inflation: float
    inflation_factor: float
    end_balance: float
    sub_balances: Tuple[float, float, float, float]   # stocks, bonds, cash, other
    weights: Tuple[float, float, float, float]        # fractions, same order
    life_stage: str
    survived: bool


class YearlyLedger:
    """Fixed-capacity per-path record of yearly states.

    Rows live in one preallocated float array and are appended strictly in
    year order. `seal()` makes the arrays read-only once the path is done.
    """

    def __init__(self, capacity: int):
        self.capacity = int(capacity)
        self._data = np.zeros((self.capacity, len(FIELDS)), dtype=float)
        self._stage = np.zeros(self.capacity, dtype=np.int8)
        self._survived = np.zeros(self.capacity, dtype=bool)
        self._n = 0
        self.sealed = False

    def append(self, row, stage: int, survived: bool):
        if self.sealed:
            raise RuntimeError("Ledger is sealed")
        if self._n >= self.capacity:
            raise IndexError(f"Ledger is full ({self.capacity} years)")
        if self._n and row[0] != self._data[self._n - 1, 0] + 1:
            raise ValueError(f"Years must be appended in order; got {row[0]} after {self._data[self._n - 1, 0]}")
        self._data[self._n] = row
        self._stage[self._n] = stage
        self._survived[self._n] = survived
        self._n += 1

    def seal(self):
        for arr in (self._data, self._stage, self._survived):
            arr.flags.writeable = False
        self.sealed = True
        return self

    def __setstate__(self, state):
        # arrays come back writeable after pickling across processes
        self.__dict__.update(state)
        if self.sealed:
            self.seal()

    def __len__(self):
        return self._n

    def __getitem__(self, i: int) -> YearlyState:
        if i < 0:
            i += self._n
        if not 0 <= i < self._n:
            raise IndexError(i)
        r = self._data[i]
        return YearlyState(
            year=int(r[0]),
            age=int(r[1]),
            start_balance=float(r[2]),
            blended_return=float(r[3]),
            contribution=float(r[4]),
            withdrawal=float(r[5]),
            supplemental_income=float(r[6]),
            net_cashflow=float(r[7]),
            inflation=float(r[8]),
            inflation_factor=float(r[9]),
            end_balance=float(r[10]),
            sub_balances=tuple(float(x) for x in r[11:15]),
            weights=tuple(float(x) for x in r[15:19]),
            life_stage=LIFE_STAGES[self._stage[i]],
            survived=bool(self._survived[i]),
        )

    def __iter__(self):
        for i in range(self._n):
            yield self[i]

    def __eq__(self, other):
        if not isinstance(other, YearlyLedger):
            return NotImplemented
        n = self._n
        return (
            n == other._n
            and np.array_equal(self._data[:n], other._data[:n])
            and np.array_equal(self._stage[:n], other._stage[:n])
            and np.array_equal(self._survived[:n], other._survived[:n])
        )

    __hash__ = None

    def column(self, name: str):
        return self._data[: self._n, _IDX[name]]

    @property
    def survived(self):
        return self._survived[: self._n]

    @property
    def life_stages(self):
        return [LIFE_STAGES[s] for s in self._stage[: self._n]]

    def to_frame(self) -> pd.DataFrame:
        df = pd.DataFrame(self._data[: self._n], columns=FIELDS)
        df["year"] = df["year"].astype(int)
        df["age"] = df["age"].astype(int)
        # today's dollars
        df["real_end_balance"] = df["end_balance"] / df["inflation_factor"]
        df["real_withdrawal"] = df["withdrawal"] / df["inflation_factor"]
        df["life_stage"] = self.life_stages
        df["survived"] = self.survived.copy()
        return df.set_index("year")
