# tests/test_history.py
import random

import numpy as np
import pandas as pd
import pytest

from epinet.params import SimulationParams, DefaultSimulationParams
from epinet.engine.state import DailyStats, TerminalState
from epinet.history.history import HistoryStore, Snapshot
from epinet.simulation import Simulation


@pytest.fixture
def sim():
    params = dict(DefaultSimulationParams)
    params.update({
        "population_size": 150,
        "initial_infected": 10,
        "recovery_rate": 0.05,
    })
    s = Simulation.generate(params, seed = 314)
    s.run(max_steps = 20)
    return s


def _rng_state(sim):
    return sim.engine.rng.bit_generator.state


def test_initial_snapshot_recorded():
    s = Simulation.generate(SimulationParams(), seed = 1)
    assert len(s.history) == 1
    assert s.history.cursor == 0
    assert s.history.at_head
    assert s.history.current.day == 1


def test_snapshots_are_immutable_copies(sim):
    first = sim.history[0]
    with pytest.raises(ValueError):
        first.status[0] = 3
    with pytest.raises(ValueError):
        first.edge_active[0] = False
    #later steps mutate the engine's graph, never a recorded day
    assert not np.shares_memory(first.status, sim.graph.status)
    assert (first.status[:10] == 2).all()


def test_days_strictly_increasing(sim):
    days = sim.history.days
    assert days == list(range(1, len(days) + 1))
    assert all(b > a for a, b in zip(days, days[1:]))


def test_round_trip_reproduces_identical_snapshots(sim):
    originals = list(sim.history)
    original_bytes = [s.to_bytes() for s in originals]
    k = 10
    rng_state = _rng_state(sim)

    for n in range(1, k + 1):
        snap = sim.step_back()
        assert snap is originals[-1 - n]
        assert sim.day == snap.day
        assert np.array_equal(sim.graph.status, snap.status)

    for n in range(k):
        snap = sim.step_forward()
        expected = originals[-k + n]
        assert snap is expected
        assert snap.to_bytes() == original_bytes[-k + n]
        assert np.array_equal(sim.graph.status, snap.status)
        assert [e.active for e in sim.graph.edges] == snap.edge_active.tolist()

    #replay made no random draws, so nothing was recomputed
    assert _rng_state(sim) == rng_state
    assert sim.history.at_head
    assert [s.to_bytes() for s in sim.history] == original_bytes


def test_step_forward_at_head_steps_engine(sim):
    n = len(sim.history)
    head_day = sim.day
    snap = sim.step_forward()
    assert len(sim.history) == n + 1
    assert snap.day == head_day + 1
    assert sim.history.head is snap


def test_step_from_past_truncates_future(sim):
    assert len(sim.history) == 21
    for _ in range(3):
        sim.step_back()
    assert sim.day == 18
    assert not sim.history.at_head

    snap = sim.step()
    assert snap.day == 19
    assert len(sim.history) == 19
    assert sim.history.days == list(range(1, 20))
    assert sim.history.at_head
    assert sim.history.head is snap


def test_cursor_consistent_after_random_moves(sim):
    moves = random.Random(0)
    for _ in range(60):
        if moves.random() < 0.5 and sim.history.cursor > 0:
            sim.step_back()
        elif not sim.terminal_state.is_terminal or not sim.history.at_head:
            sim.step_forward()
        days = sim.history.days
        assert all(b > a for a, b in zip(days, days[1:]))
        assert sim.history.current.day == sim.day
        assert np.array_equal(sim.history.current.status, sim.graph.status)
        assert sim.stats.total == sim.params.population_size


def test_step_back_at_start_raises():
    s = Simulation.generate(SimulationParams(), seed = 2)
    with pytest.raises(IndexError):
        s.step_back()


def test_step_back_without_engine_is_resynced_on_step(sim):
    history = sim.history
    snap = history.step_back()
    #engine still holds the head state until it is asked to step
    new = sim.step()
    assert new.day == snap.day + 1
    assert history.days == list(range(1, new.day + 1))


def test_append_rejects_non_increasing_day(sim):
    store = HistoryStore()
    store.append(sim.history[3])
    with pytest.raises(ValueError):
        store.append(sim.history[2])
    with pytest.raises(ValueError):
        store.append(sim.history[3])


def test_snapshot_for_day(sim):
    assert sim.history.snapshot_for_day(5) is sim.history[4]
    with pytest.raises(KeyError):
        sim.history.snapshot_for_day(500)


def test_to_dataframe(sim):
    df = sim.history.to_dataframe()
    assert isinstance(df, pd.DataFrame)
    assert list(df.columns) == ["day", "susceptible", "exposed", "infectious", "recovered", "deceased", "terminal_state"]
    assert len(df) == len(sim.history)
    totals = df[["susceptible", "exposed", "infectious", "recovered", "deceased"]].sum(axis = 1)
    assert (totals == sim.params.population_size).all()
    assert df["day"].is_monotonic_increasing


def test_snapshot_capture_of_untouched_graph():
    s = Simulation.generate(SimulationParams(), seed = 3)
    snap = Snapshot.capture(s.graph, DailyStats.from_status(s.graph.status, 1))
    assert snap.terminal_state is TerminalState.NONE
    assert snap.edge_active.all()
    assert (snap.edge_last_transmission == -1).all()
    assert snap.to_bytes() == s.history[0].to_bytes()


def test_regenerate_discards_history(sim):
    old_graph = sim.graph
    sim.regenerate(seed = 11)
    assert sim.graph is not old_graph
    assert len(sim.history) == 1
    assert sim.day == 1
    assert sim.terminal_state is TerminalState.NONE
    assert sim.params.population_size == 150
