from __future__ import annotations
from dataclasses import dataclass
from typing import List, Optional
import logging

import numpy as np
import pandas as pd

from epinet.graph.network import Graph
from epinet.engine.state import DailyStats, TerminalState

logger = logging.getLogger(__name__)

#edge_last_transmission value for an edge that never carried a transmission
NO_TRANSMISSION = -1


def _frozen(arr: np.ndarray) -> np.ndarray:
    arr = np.array(arr, copy = True)
    arr.flags.writeable = False
    return arr


@dataclass(frozen = True, eq = False)
class Snapshot:
    """
    Immutable record of one simulated day. Stores:
    - day
    - status, status_day (per node, aligned with node ids)
    - edge_active, edge_last_transmission (per edge, aligned with Graph.edges)
    - stats and terminal_state
    Arrays are read-only deep copies, so later engine steps never alter a recorded day.
    """
    day: int
    status: np.ndarray
    status_day: np.ndarray
    edge_active: np.ndarray
    edge_last_transmission: np.ndarray
    stats: DailyStats
    terminal_state: TerminalState = TerminalState.NONE

    @classmethod
    def capture(cls, graph: Graph, stats: DailyStats, terminal_state: TerminalState = TerminalState.NONE) -> "Snapshot":
        n_edges = graph.n_edges
        edge_active = np.fromiter((e.active for e in graph.edges), dtype = np.bool_, count = n_edges)
        edge_last = np.fromiter(
            (NO_TRANSMISSION if e.last_transmission_day is None else e.last_transmission_day for e in graph.edges),
            dtype = np.int32, count = n_edges
        )
        return cls(
            day = int(stats.day),
            status = _frozen(graph.status),
            status_day = _frozen(graph.status_day),
            edge_active = _frozen(edge_active),
            edge_last_transmission = _frozen(edge_last),
            stats = stats,
            terminal_state = terminal_state
        )

    def to_bytes(self) -> bytes:
        """
        Byte encoding of the recorded vectors, for exact comparisons between snapshots
        """
        return b"".join([
            np.int64(self.day).tobytes(),
            self.status.tobytes(),
            self.status_day.tobytes(),
            self.edge_active.tobytes(),
            self.edge_last_transmission.tobytes(),
        ])


class HistoryStore:
    """
    Append-only, truncatable sequence of Snapshots with a movable cursor. Methods:
    - append(snapshot) discards snapshots after the cursor, then appends and moves the cursor to the new head
    - step_back(engine) moves the cursor back one day and restores the engine from that snapshot
    - step_forward(engine) replays the next stored snapshot, or asks the engine for a new day at the head
    - to_dataframe() -> pandas DF of daily stats up to the head
    """
    def __init__(self):
        self._snapshots: List[Snapshot] = []
        self.cursor = -1

    def __len__(self) -> int:
        return len(self._snapshots)

    def __getitem__(self, index: int) -> Snapshot:
        return self._snapshots[index]

    def __iter__(self):
        return iter(self._snapshots)

    @property
    def current(self) -> Optional[Snapshot]:
        if self.cursor < 0:
            return None
        return self._snapshots[self.cursor]

    @property
    def head(self) -> Optional[Snapshot]:
        return self._snapshots[-1] if self._snapshots else None

    @property
    def at_head(self) -> bool:
        return self.cursor == len(self._snapshots) - 1

    @property
    def days(self) -> List[int]:
        return [s.day for s in self._snapshots]

    def append(self, snapshot: Snapshot):
        #committing from the past discards the old future
        if not self.at_head:
            n_dropped = len(self._snapshots) - (self.cursor + 1)
            del self._snapshots[self.cursor + 1:]
            logger.debug("Truncated %d snapshot(s) after day %d", n_dropped, self._snapshots[-1].day)

        head = self.head
        if head is not None and snapshot.day <= head.day:
            raise ValueError(f"Snapshot day {snapshot.day} does not follow head day {head.day}")

        self._snapshots.append(snapshot)
        self.cursor = len(self._snapshots) - 1

    def step_back(self, engine = None) -> Snapshot:
        """
        Move the cursor to the previous snapshot and, if an engine is given, restore it from that snapshot
        """
        if self.cursor <= 0:
            raise IndexError("Already at the first recorded day")
        self.cursor -= 1
        snap = self._snapshots[self.cursor]
        if engine is not None:
            engine.restore(snap)
        return snap

    def step_forward(self, engine) -> Snapshot:
        """
        Replay the snapshot after the cursor, or call engine.step() when the cursor is at the head
        """
        if self.at_head:
            return engine.step()
        self.cursor += 1
        snap = self._snapshots[self.cursor]
        engine.restore(snap)
        return snap

    def snapshot_for_day(self, day: int) -> Snapshot:
        #days are strictly increasing
        days = self.days
        pos = int(np.searchsorted(days, day))
        if pos >= len(days) or days[pos] != day:
            raise KeyError(f"No snapshot recorded for day {day}")
        return self._snapshots[pos]

    def to_dataframe(self) -> pd.DataFrame:
        """
        Daily stats for every recorded day, one row per day
        """
        cols = ["day", "susceptible", "exposed", "infectious", "recovered", "deceased", "terminal_state"]
        rows = []
        for s in self._snapshots:
            row = s.stats.as_dict()
            row["terminal_state"] = s.terminal_state.value
            rows.append(row)
        return pd.DataFrame(rows, columns = cols)
