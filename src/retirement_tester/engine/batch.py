import logging
from concurrent.futures import ProcessPoolExecutor, as_completed

import numpy as np

from ..analytics.aggregate import aggregate
from ..config import ConfigurationError, SimConfig
from ..data.historical import load_history
from ..sampling.bootstrap import HistoricalSequence, sequence_offsets
from ..sampling.models import build_sampler
from .simulator import PathSimulator

logger = logging.getLogger(__name__)


def _run_monte_carlo(config: SimConfig, history, tasks):
    """tasks: (run_id, SeedSequence) pairs. Each run owns its generator."""
    sim = PathSimulator(config, build_sampler(config.sampler, config.market, history, config.allocation))
    return [sim.run(np.random.default_rng(seq), run_id) for run_id, seq in tasks]


def _run_sequences(config: SimConfig, history, tasks):
    """tasks: (run_id, offset) pairs into the historical series."""
    sim = PathSimulator(config, sampler=None)
    return [
        sim.run(None, run_id, sampler=HistoricalSequence(history, offset))
        for run_id, offset in tasks
    ]


def _chunks(tasks, n):
    size, extra = divmod(len(tasks), n)
    out, i = [], 0
    for k in range(n):
        step = size + (1 if k < extra else 0)
        if step:
            out.append(tasks[i:i + step])
        i += step
    return out


def run_batch(config: SimConfig, count: int = None, history=None, workers: int = None):
    """Run every path for `config` and return them ordered by run id.

    monte_carlo: `count` runs (default config.n_sims), generators spawned from
    SeedSequence(config.sampler.seed).
    historical_sequence: one run per starting year with a full horizon of
    history after it; `count` is ignored.
    """
    workers = config.workers if workers is None else int(workers)
    if workers < 1:
        raise ConfigurationError(f"workers must be at least 1: {workers}")

    if config.method == "historical_sequence":
        history = load_history() if history is None else history
        if count is not None:
            logger.warning("count=%s ignored for historical sequences", count)
        offsets = sequence_offsets(history, config.horizon_years)
        tasks = [(int(o), int(o)) for o in offsets]
        fn = _run_sequences
    else:
        count = config.n_sims if count is None else int(count)
        if count < 1:
            raise ConfigurationError(f"count must be at least 1: {count}")
        seeds = np.random.SeedSequence(config.sampler.seed).spawn(count)
        tasks = list(enumerate(seeds))
        fn = _run_monte_carlo

    logger.debug("Running %d %s paths over %d years with %d worker(s)",
                 len(tasks), config.method, config.horizon_years, workers)

    if workers <= 1 or len(tasks) < 2:
        runs = fn(config, history, tasks)
    else:
        runs = []
        with ProcessPoolExecutor(max_workers=workers) as ex:
            futs = [ex.submit(fn, config, history, chunk) for chunk in _chunks(tasks, workers)]
            for fut in as_completed(futs):
                runs.extend(fut.result())
                logger.debug("%d/%d paths done", len(runs), len(tasks))

    runs.sort(key=lambda r: r.run_id)
    return runs


def simulate(config: SimConfig, count: int = None, history=None, workers: int = None):
    """run_batch + aggregate in one call; returns (runs, AggregateResult)."""
    runs = run_batch(config, count=count, history=history, workers=workers)
    result = aggregate(runs, start_age=config.current_age)
    logger.info("%s: %.1f%% success over %d runs, median final %.0f",
                config.method, result.success_rate, result.total_runs, result.p50)
    return runs, result
