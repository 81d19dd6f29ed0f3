from typing import Dict, Optional

import numpy as np
import pandas as pd

from epinet.params import SimulationParams
from epinet.graph.network import Graph, Status
from epinet.engine.state import DailyStats
from epinet.engine.engine import population_mortality_rate
from epinet.history.history import HistoryStore


def population_distribution(stats: DailyStats) -> Dict[str, int]:
    """
    Percent of the population in each compartment, rounded to whole percents
    """
    total = stats.total
    if total == 0:
        return {s.label: 0 for s in Status}
    counts = stats.as_dict()
    return {s.label: int(round(counts[s.label] / total * 100)) for s in Status}


def percent_change(ts: pd.DataFrame, column: str, window: int = 7) -> float:
    """
    Percent change of a daily count over the last window days (or since day 1 for shorter histories).
    A rise from zero counts as 100, no history or no change from zero as 0
    """
    if len(ts) < 2:
        return 0.0
    current = ts[column].iloc[-1]
    previous = ts[column].iloc[-(window + 1)] if len(ts) > window else ts[column].iloc[0]
    if previous == 0:
        return 100.0 if current > 0 else 0.0
    return float((current - previous) / previous * 100)


def epi_outcomes(history: HistoryStore, params: Optional[SimulationParams] = None) -> pd.DataFrame:
    """
    Calculates epidemic outcomes over the recorded history (up to the head) as a one-row DataFrame with columns:
    - population_size
    - total_cases (everyone who left Susceptible by the last day)
    - attack_rate
    - peak_infectious, day_of_peak_infectious
    - peak_exposed
    - total_deaths, case_fatality
    - recovered_percent (at the last day)
    - active_cases (exposed + infectious at the last day)
    - infectious_change_7d, recovered_change_7d, deceased_change_7d (percent_change over the last week)
    - epidemic_duration (days simulated)
    - terminal_state
    - population_mortality_rate (if params given)
    """
    if len(history) == 0:
        raise ValueError("History is empty; generate a network before computing outcomes")

    ts = history.to_dataframe()
    last = history.head.stats
    N = last.total

    total_cases = N - last.susceptible
    peak_row = int(ts["infectious"].to_numpy().argmax())

    case_fatality = last.deceased / total_cases if total_cases > 0 else np.nan

    out = {
        "population_size": N,
        "total_cases": total_cases,
        "attack_rate": total_cases / N if N > 0 else np.nan,
        "peak_infectious": int(ts["infectious"].iloc[peak_row]),
        "day_of_peak_infectious": int(ts["day"].iloc[peak_row]),
        "peak_exposed": int(ts["exposed"].max()),
        "total_deaths": last.deceased,
        "case_fatality": case_fatality,
        "recovered_percent": last.recovered / N * 100 if N > 0 else np.nan,
        "active_cases": last.active_cases,
        "infectious_change_7d": percent_change(ts, "infectious"),
        "recovered_change_7d": percent_change(ts, "recovered"),
        "deceased_change_7d": percent_change(ts, "deceased"),
        "epidemic_duration": int(ts["day"].iloc[-1] - ts["day"].iloc[0]),
        "terminal_state": history.head.terminal_state.value,
        "population_mortality_rate": population_mortality_rate(params) if params is not None else np.nan,
    }
    return pd.DataFrame([out])


def degree_summary(graph: Graph) -> Dict[str, object]:
    """
    Degree statistics of a contact network. Returns dict with keys
    'n_nodes', 'n_edges', 'min_degree', 'mean_degree', 'max_degree' and 'histogram'
    (pd.Series of node counts indexed by degree)
    """
    degree = np.asarray(graph.degree)
    hist = pd.Series(np.bincount(degree), name = "n_nodes")
    hist.index.name = "degree"
    return {
        "n_nodes": graph.N,
        "n_edges": graph.n_edges,
        "min_degree": int(degree.min()) if degree.size else 0,
        "mean_degree": float(degree.mean()) if degree.size else 0.0,
        "max_degree": int(degree.max()) if degree.size else 0,
        "histogram": hist[hist > 0],
    }
