"""
epinet/driver.py

Driver utilities to run Simulation instances to completion

Functions:
- run_single_simulation(params, seed = None, max_steps = None)
    -> generates a network, steps it until a terminal state (or max_steps), and returns the Simulation

- run_variants(base_params, variants, base_seed = None, parallel = False, max_workers = None)
    -> runs one simulation per variant, returns a list of result dicts with summary and timeseries DataFrames
"""
import concurrent.futures
import logging
import os
import traceback
from copy import deepcopy
from typing import Any, Dict, List, Mapping, Optional

import pandas as pd

from epinet.params import DefaultSimulationParams, SimulationParams
from epinet.simulation import Simulation
from epinet.analysis import epi_outcomes

logger = logging.getLogger(__name__)


def run_single_simulation(
    params: Optional[Mapping[str, Any]] = None,
    seed: Optional[int] = None,
    max_steps: Optional[int] = None
) -> Simulation:
    """
    Instantiates a Simulation from params (merged onto DefaultSimulationParams), runs it, and returns it for analysis
    """
    if isinstance(params, SimulationParams):
        sim_params = params
    else:
        params_copy = deepcopy(dict(DefaultSimulationParams))
        params_copy.update(params or {})
        sim_params = SimulationParams.from_dict(params_copy)

    sim = Simulation.generate(sim_params, seed = seed)
    sim.run(max_steps = max_steps)
    return sim


def run_variants(
    base_params: Mapping[str, Any],
    variants: List[Dict],
    base_seed: Optional[int] = None,
    parallel: bool = False,
    max_workers: Optional[int] = None,
    max_steps: Optional[int] = None
) -> List[Dict]:
    """
        Run a list of model variants. Each variant is a dict with keys:
        - 'name' - string name of the variant
        - 'param_overrides' - dict of parameters to change and new values

        Variant v_ind is seeded with base_seed + v_ind * 1000, so sequential and parallel runs are identical.

        Returns a list of dicts, one per variant in input order, with keys 'variant_index', 'variant_name',
        'seed', 'summary' (epi_outcomes DataFrame) and 'timeseries' (daily stats DataFrame);
        a failed variant carries 'error' and 'traceback' instead of the DataFrames.
        If parallel = True, variants are dispatched to a ProcessPoolExecutor
    """
    jobs = []
    for v_ind, variant in enumerate(variants):
        params_tmp = deepcopy(dict(base_params))
        params_tmp.update(variant.get("param_overrides") or {})
        seed = (int(base_seed) + int(v_ind) * 1000) if base_seed is not None else None
        jobs.append((v_ind, variant.get("name", f"variant_{v_ind}"), params_tmp, seed, max_steps))

    if not parallel:
        return [_run_variant_job(*job) for job in jobs]

    if max_workers is None:
        cpu_count = os.cpu_count() or 1
        max_workers = max(1, min(len(jobs), cpu_count))

    results = []
    with concurrent.futures.ProcessPoolExecutor(max_workers = max_workers) as exe:
        futures = {exe.submit(_run_variant_job, *job): job[0] for job in jobs}
        for fut in concurrent.futures.as_completed(futures):
            results.append(fut.result())

    return sorted(results, key = lambda r: r["variant_index"])


def _run_variant_job(
    v_ind: int,
    name: str,
    params: Dict[str, Any],
    seed: Optional[int],
    max_steps: Optional[int]
) -> Dict[str, Any]:
    """
    Run one variant; exceptions are recorded in the result so one bad variant does not stop the batch
    """
    try:
        sim = run_single_simulation(params, seed = seed, max_steps = max_steps)
        summary = epi_outcomes(sim.history, sim.params)
        summary.insert(0, "variant_name", name)
        timeseries = sim.history.to_dataframe()
        timeseries.insert(0, "variant_name", name)
        logger.info("Variant %s finished on day %d (%s)", name, sim.day, sim.terminal_state.value)
        return {
            "variant_index": int(v_ind),
            "variant_name": name,
            "seed": seed,
            "summary": summary,
            "timeseries": timeseries,
        }
    except Exception as exc:
        logger.warning("Variant %s failed: %s", name, exc)
        return {
            "variant_index": int(v_ind),
            "variant_name": name,
            "seed": seed,
            "error": str(exc),
            "traceback": traceback.format_exc(),
        }


def combine_summaries(variant_results: List[Dict]) -> pd.DataFrame:
    """
    Stack the summary rows of every successful variant into one DataFrame
    """
    frames = [r["summary"] for r in variant_results if r.get("summary") is not None]
    if not frames:
        return pd.DataFrame()
    return pd.concat(frames, ignore_index = True)
