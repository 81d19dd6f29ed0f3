#generator.py
#Builds a Barabasi-Albert contact network, called by Simulation.generate() before any engine is created

from typing import List, Optional
import logging

import numpy as np

from epinet.errors import DegenerateSamplingError
from epinet.params import SimulationParams, SEED_CLIQUE_SIZE
from epinet.graph.network import Graph, Edge, Status
from epinet.graph.sampler import WeightedSampler

logger = logging.getLogger(__name__)

EDGES_PER_NODE = 2
#rejection draws allowed per new node before giving up
MAX_ATTEMPTS_PER_NODE = 1000
INITIAL_DAY = 1


def generate_network(params: SimulationParams, rng: Optional[np.random.Generator] = None) -> Graph:
    """
    Builds a Barabasi-Albert graph of params.population_size nodes

    Args:
        params (SimulationParams): validated before anything is generated
        rng (Optional[np.random.Generator], optional): RNG object, created if not provided

    Returns:
        Graph: all edges active with created_day 1; nodes 0..initial_infected-1 Infectious, others Susceptible
    """
    params.validate()
    if rng is None:
        rng = np.random.default_rng()

    N = int(params.population_size)
    m0 = SEED_CLIQUE_SIZE
    m = EDGES_PER_NODE

    degree = np.zeros(N, dtype = np.int32)
    edges: List[Edge] = []
    sampler = WeightedSampler(N)

    #seed clique
    for i in range(m0):
        degree[i] = m0 - 1
        sampler.update(i, m0 - 1)
        for j in range(i):
            edges.append(Edge(source = j, target = i, created_day = INITIAL_DAY))

    #grow by preferential attachment
    for i in range(m0, N):
        targets = choose_targets(sampler, i, m, rng)
        for t in targets:
            edges.append(Edge(source = min(i, t), target = max(i, t), created_day = INITIAL_DAY))
            degree[i] += 1
            degree[t] += 1
            sampler.update(i, 1)
            sampler.update(t, 1)

    #lowest ids start infectious, a reproducible convention rather than an epidemiological one
    status = np.full(N, Status.SUSCEPTIBLE, dtype = np.int8)
    status[:params.initial_infected] = Status.INFECTIOUS
    status_day = np.full(N, INITIAL_DAY, dtype = np.int32)

    logger.info(
        "Generated Barabasi-Albert network: %d nodes, %d edges, max degree %d",
        N, len(edges), int(degree.max())
    )
    return Graph(status = status, status_day = status_day, degree = degree, edges = edges)


def choose_targets(
    sampler: WeightedSampler,
    node: int,
    m: int,
    rng: np.random.Generator,
    max_attempts: int = MAX_ATTEMPTS_PER_NODE
) -> List[int]:
    """
    Draw m distinct degree-weighted targets for node, rejecting node itself and repeats.
    Targets are returned in the order they were drawn.
    """
    total = sampler.total()
    if total <= 0:
        raise DegenerateSamplingError(f"No weighted targets available for node {node}")

    targets: List[int] = []
    attempts = 0
    while len(targets) < m:
        if attempts >= max_attempts:
            raise DegenerateSamplingError(
                f"Found {len(targets)} of {m} distinct targets for node {node} after {max_attempts} draws"
            )
        attempts += 1
        t = sampler.sample(rng.random() * total)
        if t != node and t not in targets:
            targets.append(t)
    return targets
