import numpy as np
import numpy_financial as npf


def percentile(values, p: float) -> float:
    """Linear interpolation at index p/100 * (n - 1) of the sorted values."""
    x = np.asarray(values, dtype=float)
    if x.size == 0:
        raise ValueError("percentile of an empty sequence")
    return float(np.percentile(x, p))


def pearson(x, y) -> float:
    """Population Pearson correlation; 0 when either side is constant."""
    x = np.asarray(x, dtype=float)
    y = np.asarray(y, dtype=float)
    if x.size == 0 or x.size != y.size:
        return 0.0
    dx = x - x.mean()
    dy = y - y.mean()
    denom = np.sqrt((dx * dx).sum() * (dy * dy).sum())
    if denom == 0:
        return 0.0
    return float((dx * dy).sum() / denom)


def twrr_annualized(returns) -> float:
    r = np.asarray(returns, dtype=float)
    if r.size == 0:
        return 0.0
    g = np.prod(1.0 + r)
    if g <= 0:
        return -1.0
    return float(g ** (1 / r.size) - 1.0)


def realized_volatility(returns) -> float:
    r = np.asarray(returns, dtype=float)
    if r.size == 0:
        return 0.0
    return float(r.std())


def compounded(returns) -> float:
    return float(np.prod(1.0 + np.asarray(returns, dtype=float)) - 1.0)


def cagr(start: float, end: float, years: float) -> float:
    if start <= 0 or years <= 0:
        return float("nan")
    return float((end / start) ** (1 / years) - 1.0)


def max_drawdown(balances) -> float:
    """Largest peak-to-trough fall as a negative fraction (0 if none)."""
    x = np.asarray(balances, dtype=float)
    if x.size == 0:
        return 0.0
    peak = np.maximum.accumulate(x)
    dd = (x - peak) / np.maximum(peak, 1e-12)
    return float(dd.min())


def mwrr_irr(start_balance: float, net_cashflows, end_balance: float) -> float:
    """Money-weighted (internal) rate of return from the investor's side.

    net_cashflows are end-of-year portfolio flows, positive = contribution.
    """
    flows = [-float(start_balance)] + [-float(c) for c in net_cashflows]
    if len(flows) < 2:
        return float("nan")
    flows[-1] += float(end_balance)
    try:
        return float(npf.irr(flows))
    except (ValueError, np.linalg.LinAlgError):
        return float("nan")
