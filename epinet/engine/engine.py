"""
engine.py

Contains:
- step(), which advances a contact network by one day of the SEIRD state machine
- EpidemicEngine, which owns a Graph, its ContactIndex and the RNG, and records each day in a HistoryStore
- helpers computing the per-tick transmission, mortality and cohort draws

Per-tick draw order (fixed, so a seeded run is reproducible):
distancing cohort, per-edge transmission rolls, per-node outcome rolls, incubation rolls, waning rolls
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import List, Optional
import logging
import math
import warnings

import numpy as np

from epinet.errors import SimulationTerminatedError
from epinet.params import SimulationParams
from epinet.graph.network import Graph, Edge, Status
from epinet.graph.contact_index import ContactIndex
from epinet.graph.generator import INITIAL_DAY
from epinet.engine.state import DailyStats, TerminalState, StepResult
from epinet.history.history import HistoryStore, Snapshot, NO_TRANSMISSION

logger = logging.getLogger(__name__)

YEAR_LIMIT_DAYS = 365
#daily R -> S probability
WANING_PROBABILITY = 0.01
TRANSMISSION_DIVISOR = 5 #base prob = r0 / (infectious_period * 5)
VACCINATED_TRANSMISSION_FACTOR = 0.2
VACCINE_MORTALITY_REDUCTION = 0.8
#PMR is kept strictly below 1 so the daily death probability stays finite
MAX_PMR = 1.0 - 1e-9


def clamp01(x: float) -> float:
    if not math.isfinite(x):
        return 0.0 if x != math.inf else 1.0
    return min(max(x, 0.0), 1.0)


def transmission_probability(params: SimulationParams) -> float:
    denom = params.infectious_period * TRANSMISSION_DIVISOR
    #a non-positive period means infection within the day
    if denom <= 0:
        return 1.0 if params.r0 > 0 else 0.0
    return clamp01(params.r0 / denom)


def incubation_probability(params: SimulationParams) -> float:
    """
    Daily E -> I probability, 1 / incubation period
    """
    if params.incubation_period <= 0:
        return 1.0
    return clamp01(1.0 / params.incubation_period)


def population_mortality_rate(params: SimulationParams) -> float:
    """
    PMR = (1 - 1/(R0 * (1 - social distancing))) * infectious mortality rate * (1 - vaccination rate * 0.8),
    clamped to [0, 1]
    """
    r0_factor = params.r0 * (1.0 - params.social_distancing)
    base_rate = 1.0 - 1.0 / r0_factor if r0_factor > 0 else 0.0
    vaccination_effect = 1.0 - params.vaccination_rate * VACCINE_MORTALITY_REDUCTION
    return clamp01(base_rate * params.infectious_mortality_rate * vaccination_effect)


def daily_death_probability(params: SimulationParams) -> float:
    """
    Daily death probability for an infectious node, calibrated so that deaths / (deaths + recoveries) matches PMR
    """
    pmr = min(population_mortality_rate(params), MAX_PMR)
    return clamp01(pmr * params.recovery_rate / (1.0 - pmr))


def draw_distancing_cohort(N: int, social_distancing: float, rng: np.random.Generator) -> np.ndarray:
    """
    Fresh random subset of floor(N * social_distancing) nodes, as a boolean mask
    """
    cohort = np.zeros(N, dtype = bool)
    k = min(int(math.floor(N * social_distancing)), N)
    if k > 0:
        cohort[rng.choice(N, size = k, replace = False)] = True
    return cohort


def terminal_state_for(stats: DailyStats) -> TerminalState:
    if stats.exposed == 0 and stats.infectious == 0 and (stats.recovered > 0 or stats.deceased > 0):
        return TerminalState.NATURAL_EXTINCTION
    if stats.day - INITIAL_DAY >= YEAR_LIMIT_DAYS:
        return TerminalState.YEAR_LIMIT
    return TerminalState.NONE


@dataclass
class DayTransitions:
    """
    Next-day statuses and the edge updates decided during one tick, applied together in commit_transitions()
    """
    next_status: np.ndarray
    transmissions: List[Edge] = field(default_factory = list)
    deaths: List[int] = field(default_factory = list)


def determine_transitions(
    graph: Graph,
    contact_index: ContactIndex,
    params: SimulationParams,
    rng: np.random.Generator
) -> DayTransitions:
    """
    Decide every transition for the coming day from the current (previous-day) statuses only.
    Nothing on the graph is modified here.
    """
    prev = graph.status
    N = graph.N
    next_status = prev.copy()
    transitions = DayTransitions(next_status = next_status)

    S = Status.SUSCEPTIBLE
    E = Status.EXPOSED
    I = Status.INFECTIOUS  # noqa: E741
    sd = params.social_distancing
    vax_rate = params.vaccination_rate

    #1 intervention cohort
    cohort = draw_distancing_cohort(N, sd, rng)

    #2 S -> E over active edges
    base_prob = transmission_probability(params)
    infectious_indices = np.flatnonzero(prev == I)
    for src in infectious_indices:
        src = int(src)
        for tgt in contact_index.neighbors(src):
            #already claimed this tick by an earlier infectious neighbor
            if prev[tgt] != S or next_status[tgt] == E:
                continue
            edge = contact_index.edge(src, tgt)
            if not edge.active:
                continue

            prob = base_prob
            if cohort[src] or cohort[tgt]:
                prob *= (1.0 - sd)
            if rng.random() < vax_rate:
                prob *= VACCINATED_TRANSMISSION_FACTOR

            if rng.random() < clamp01(prob):
                next_status[tgt] = E
                transitions.transmissions.append(edge)

    #3 I -> D or I -> R, death rolled first
    death_prob = daily_death_probability(params)
    recovery_prob = clamp01(params.recovery_rate)
    for src in infectious_indices:
        src = int(src)
        if rng.random() < death_prob:
            next_status[src] = Status.DECEASED
            transitions.deaths.append(src)
        elif rng.random() < recovery_prob:
            next_status[src] = Status.RECOVERED

    #4 E -> I
    exposed = np.flatnonzero(prev == E)
    if exposed.size > 0:
        draws = rng.random(exposed.shape[0])
        to_infectious = exposed[draws < incubation_probability(params)]
        next_status[to_infectious] = I

    #5 R -> S with waning immunity
    recovered = np.flatnonzero(prev == Status.RECOVERED)
    if recovered.size > 0:
        draws = rng.random(recovered.shape[0])
        to_susceptible = recovered[draws < WANING_PROBABILITY]
        next_status[to_susceptible] = S

    return transitions


def commit_transitions(graph: Graph, contact_index: ContactIndex, transitions: DayTransitions, new_day: int):
    """
    Apply a tick's decided transitions to the graph in one go
    """
    changed = transitions.next_status != graph.status
    graph.status[:] = transitions.next_status
    graph.status_day[changed] = new_day

    for edge in transitions.transmissions:
        edge.last_transmission_day = new_day
    for node in transitions.deaths:
        contact_index.deactivate_node(node)


def step(
    graph: Graph,
    contact_index: ContactIndex,
    previous_stats: DailyStats,
    params: SimulationParams,
    rng: np.random.Generator
) -> StepResult:
    """
    Advance the network by exactly one day

    Args:
        graph (Graph): network holding the previous day's statuses, updated in place
        contact_index (ContactIndex): index built from graph
        previous_stats (DailyStats): stats of the previous day, giving the current day number
        params (SimulationParams): parameters the network was generated with
        rng (np.random.Generator): the run's single random source

    Returns:
        StepResult: the updated graph, the new day's DailyStats and the terminal state reached (if any)
    """
    previous_terminal = terminal_state_for(previous_stats)
    if previous_terminal.is_terminal:
        raise SimulationTerminatedError(
            f"Simulation already ended on day {previous_stats.day} ({previous_terminal.value}); regenerate the network"
        )

    new_day = previous_stats.day + 1
    transitions = determine_transitions(graph, contact_index, params, rng)
    commit_transitions(graph, contact_index, transitions, new_day)

    stats = DailyStats.from_status(graph.status, new_day)
    logger.debug(
        "Day %d: S=%d E=%d I=%d R=%d D=%d (%d transmissions, %d deaths)",
        new_day, stats.susceptible, stats.exposed, stats.infectious, stats.recovered, stats.deceased,
        len(transitions.transmissions), len(transitions.deaths)
    )
    return StepResult(graph = graph, stats = stats, terminal_state = terminal_state_for(stats))


#-----Engine-------
class EpidemicEngine:
    def __init__(
        self,
        graph: Graph,
        contact_index: ContactIndex,
        params: SimulationParams,
        *,
        rng: Optional[np.random.Generator] = None,
        seed: Optional[int] = None,
        history: Optional[HistoryStore] = None):
        """
        Take ownership of a generated network and record its initial state

        kwargs:
        - rng: optional np.random.Generator for randomness
        - seed: optional int seed if rng is None
        - history: optional HistoryStore; a new one is created if not provided
        """
        #same check generate_network makes, before the engine owns anything
        self.params = params.validate()
        self.graph = graph
        self.contact_index = contact_index

        #choose RNG: explicit rng > seed arg > fresh entropy
        if rng is not None:
            self.rng = rng
        elif seed is not None:
            self.rng = np.random.default_rng(int(seed))
        else:
            self.rng = np.random.default_rng()

        if params.mask_usage > 0:
            warnings.warn("mask_usage is accepted but does not affect any transition probability")

        self.stats = DailyStats.from_status(graph.status, INITIAL_DAY)
        self.terminal_state = TerminalState.NONE

        self.history = history if history is not None else HistoryStore()
        if len(self.history) == 0:
            self.history.append(self.snapshot())

    @property
    def day(self) -> int:
        return self.stats.day

    @property
    def N(self) -> int:
        return self.graph.N

    @property
    def population_mortality_rate(self) -> float:
        return population_mortality_rate(self.params)

    def snapshot(self) -> Snapshot:
        return Snapshot.capture(self.graph, self.stats, self.terminal_state)

    def step(self) -> Snapshot:
        """
        Advance one day, record the resulting Snapshot (discarding any snapshots after the history cursor) and return it
        """
        #keep engine state aligned with a cursor moved without the engine
        current = self.history.current
        if current is not None and current.day != self.day:
            self.restore(current)

        if self.terminal_state.is_terminal:
            raise SimulationTerminatedError(
                f"Simulation already ended on day {self.day} ({self.terminal_state.value}); regenerate the network"
            )

        result = step(self.graph, self.contact_index, self.stats, self.params, self.rng)
        self.stats = result.stats
        self.terminal_state = result.terminal_state

        snap = self.snapshot()
        self.history.append(snap)

        if self.terminal_state.is_terminal:
            logger.info("Simulation reached %s on day %d", self.terminal_state.value, self.day)
        return snap

    def restore(self, snapshot: Snapshot):
        """
        Set graph statuses, edge flags, day and terminal state from a recorded snapshot (no recomputation)
        """
        if snapshot.status.shape[0] != self.graph.N or snapshot.edge_active.shape[0] != self.graph.n_edges:
            raise ValueError("Snapshot does not belong to this network")

        self.graph.status[:] = snapshot.status
        self.graph.status_day[:] = snapshot.status_day
        for e, active, last_day in zip(self.graph.edges, snapshot.edge_active, snapshot.edge_last_transmission):
            e.active = bool(active)
            e.last_transmission_day = None if last_day == NO_TRANSMISSION else int(last_day)

        self.stats = snapshot.stats
        self.terminal_state = snapshot.terminal_state

    def step_back(self) -> Snapshot:
        return self.history.step_back(self)

    def step_forward(self) -> Snapshot:
        return self.history.step_forward(self)
