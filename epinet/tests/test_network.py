# tests/test_network.py
import numpy as np
import networkx as nx
import pytest

from epinet.errors import ConfigurationError
from epinet.params import SimulationParams, DefaultSimulationParams
from epinet.graph.generator import generate_network, EDGES_PER_NODE
from epinet.graph.contact_index import ContactIndex
from epinet.graph.network import Graph, Edge, Status


##################
# Fixtures
##################

@pytest.fixture
def params():
    params = dict(DefaultSimulationParams)
    params.update({
        "population_size": 200,
        "initial_infected": 10,
    })
    return SimulationParams.from_dict(params)


@pytest.fixture
def graph(params):
    return generate_network(params, np.random.default_rng(42))


##################
# Generator
##################

def test_graph_invariants(graph, params):
    N = params.population_size
    assert graph.N == N
    #3 clique edges + 2 per grown node
    assert graph.n_edges == 3 + EDGES_PER_NODE * (N - 3)
    assert int(graph.degree.sum()) == 2 * graph.n_edges

    keys = [(e.source, e.target) for e in graph.edges]
    assert all(src < tgt for src, tgt in keys)
    assert len(set(keys)) == len(keys)

    counted = np.zeros(N, dtype = int)
    for src, tgt in keys:
        counted[src] += 1
        counted[tgt] += 1
    assert np.array_equal(counted, graph.degree)


def test_generated_edges_start_active(graph):
    for e in graph.edges:
        assert e.active
        assert e.created_day == 1
        assert e.last_transmission_day is None


def test_initial_status_seeding(graph, params):
    k = params.initial_infected
    assert (graph.status[:k] == Status.INFECTIOUS).all()
    assert (graph.status[k:] == Status.SUSCEPTIBLE).all()
    assert (graph.status_day == 1).all()
    assert graph.node(0).status is Status.INFECTIOUS
    assert graph.node(k).status is Status.SUSCEPTIBLE


def test_generation_is_deterministic(params):
    g1 = generate_network(params, np.random.default_rng(7))
    g2 = generate_network(params, np.random.default_rng(7))
    g3 = generate_network(params, np.random.default_rng(8))
    assert [e.key for e in g1.edges] == [e.key for e in g2.edges]
    assert [e.key for e in g1.edges] != [e.key for e in g3.edges]


def test_degree_distribution_is_heavy_tailed():
    params = SimulationParams(population_size = 500, initial_infected = 5)
    hits = 0
    for seed in range(10):
        g = generate_network(params, np.random.default_rng(seed))
        if g.degree.max() > 5 * g.degree.mean():
            hits += 1
    assert hits >= 8


def test_every_grown_node_has_at_least_m_edges(graph):
    assert graph.degree.min() >= EDGES_PER_NODE


@pytest.mark.parametrize("overrides", [
    {"population_size": 2, "initial_infected": 1},
    {"population_size": 100, "initial_infected": 100},
    {"population_size": 100, "initial_infected": 0},
    {"population_size": 5000},
    {"r0": 20.0},
    {"recovery_rate": 0.0},
    {"social_distancing": 1.5},
    {"infectious_mortality_rate": 0.5},
])
def test_invalid_params_raise_before_generation(overrides):
    params = SimulationParams.from_dict(overrides)
    rng = np.random.default_rng(0)
    state_before = rng.bit_generator.state
    with pytest.raises(ConfigurationError):
        generate_network(params, rng)
    #no random draws were made
    assert rng.bit_generator.state == state_before


##################
# ContactIndex
##################

def test_contact_index_neighbors_and_edge_identity(graph):
    index = ContactIndex(graph)
    for i in range(graph.N):
        assert index.degree(i) == graph.degree[i]
    e = graph.edges[5]
    assert index.edge(e.source, e.target) is e
    assert index.edge(e.target, e.source) is e
    assert index.has_edge(e.target, e.source)
    assert e.target in index.neighbors(e.source)
    assert e.source in index.neighbors(e.target)
    assert not index.has_edge(0, 0)


def test_contact_index_deactivate_node(graph):
    index = ContactIndex(graph)
    hub = int(np.argmax(graph.degree))
    n_edges = graph.n_edges
    assert index.deactivate_node(hub) == graph.degree[hub]
    #edges are kept, only disabled
    assert graph.n_edges == n_edges
    assert all(not e.active for e in index.edges_of(hub))
    assert index.deactivate_node(hub) == 0

    full = index.adjacency_matrix()
    active = index.adjacency_matrix(active_only = True)
    assert full.sum() == 2 * n_edges
    assert active[hub].sum() == 0
    assert active.sum() == 2 * (n_edges - graph.degree[hub])


def test_adjacency_matrix_symmetric(graph):
    adj = ContactIndex(graph).adjacency_matrix()
    assert adj.shape == (graph.N, graph.N)
    assert (adj != adj.T).nnz == 0
    assert adj.diagonal().sum() == 0
    assert np.array_equal(np.asarray(adj.sum(axis = 1)).ravel(), graph.degree)


def test_contact_index_rejects_bad_graphs():
    status = np.zeros(3, dtype = np.int8)
    day = np.ones(3, dtype = np.int32)
    degree = np.array([2, 1, 1], dtype = np.int32)
    dup = Graph(status, day, degree, edges = [Edge(0, 1), Edge(0, 1)])
    with pytest.raises(ValueError):
        ContactIndex(dup)
    loop = Graph(status, day, degree, edges = [Edge(1, 1)])
    with pytest.raises(ValueError):
        ContactIndex(loop)


##################
# networkx export
##################

def test_to_networkx(graph):
    g = graph.to_networkx()
    assert isinstance(g, nx.Graph)
    assert g.number_of_nodes() == graph.N
    #duplicates would collapse in nx.Graph
    assert g.number_of_edges() == graph.n_edges
    assert nx.number_of_selfloops(g) == 0
    assert sum(d for _, d in g.degree()) == 2 * graph.n_edges
    assert g.nodes[0]["status"] == "infectious"
    assert nx.is_connected(g)
