"""
simulation.py

Simulation ties one generated network to its engine and history:
generate -> ContactIndex -> EpidemicEngine -> HistoryStore (initial day 1 snapshot recorded on creation)
"""

from __future__ import annotations
from typing import Any, Mapping, Optional, Union
import logging

import numpy as np

from epinet.params import SimulationParams
from epinet.graph.generator import generate_network
from epinet.graph.contact_index import ContactIndex
from epinet.graph.network import Graph
from epinet.engine.engine import EpidemicEngine
from epinet.engine.state import DailyStats, TerminalState
from epinet.history.history import HistoryStore, Snapshot

logger = logging.getLogger(__name__)


class Simulation:
    def __init__(self, engine: EpidemicEngine, seed: Optional[int] = None):
        self.engine = engine
        self.seed = seed

    @classmethod
    def generate(
        cls,
        params: Union[SimulationParams, Mapping[str, Any], None] = None,
        *,
        seed: Optional[int] = None,
        rng: Optional[np.random.Generator] = None) -> "Simulation":
        """
        Generate a network and wrap it in a fresh engine and history

        kwargs:
        - seed: optional int seed if rng is None
        - rng: optional np.random.Generator used for generation and every later step
        """
        if params is None:
            params = SimulationParams()
        elif not isinstance(params, SimulationParams):
            params = SimulationParams.from_dict(params)

        #one generator for the whole lifecycle, so a seed reproduces the network and the run
        if rng is None:
            rng = np.random.default_rng(None if seed is None else int(seed))

        graph = generate_network(params, rng)
        contact_index = ContactIndex(graph)
        engine = EpidemicEngine(graph, contact_index, params, rng = rng, history = HistoryStore())
        return cls(engine, seed = seed)

    def regenerate(self, params: Union[SimulationParams, Mapping[str, Any], None] = None, *, seed: Optional[int] = None) -> "Simulation":
        """
        Discard the network, engine and history and start a new lifecycle in place
        """
        params = self.params if params is None else params
        fresh = Simulation.generate(params, seed = seed)
        logger.info("Regenerated network; discarded %d recorded day(s)", len(self.history))
        self.engine = fresh.engine
        self.seed = seed
        return self

    @property
    def params(self) -> SimulationParams:
        return self.engine.params

    @property
    def graph(self) -> Graph:
        return self.engine.graph

    @property
    def contact_index(self) -> ContactIndex:
        return self.engine.contact_index

    @property
    def history(self) -> HistoryStore:
        return self.engine.history

    @property
    def day(self) -> int:
        return self.engine.day

    @property
    def stats(self) -> DailyStats:
        return self.engine.stats

    @property
    def terminal_state(self) -> TerminalState:
        return self.engine.terminal_state

    @property
    def population_mortality_rate(self) -> float:
        return self.engine.population_mortality_rate

    def step(self) -> Snapshot:
        return self.engine.step()

    def step_back(self) -> Snapshot:
        return self.engine.step_back()

    def step_forward(self) -> Snapshot:
        return self.engine.step_forward()

    def run(self, max_steps: Optional[int] = None) -> TerminalState:
        """
        Step until a terminal state is reached, or max_steps days have been added

        Returns: the terminal state after the last step (TerminalState.NONE if max_steps ran out first)
        """
        n = 0
        while not self.terminal_state.is_terminal:
            if max_steps is not None and n >= max_steps:
                break
            self.step()
            n += 1
        return self.terminal_state
