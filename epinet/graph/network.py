"""
network.py

Contains:
- Status, the integer-coded SEIRD compartments used in every status vector
- Node, a read-only view of one individual
- Edge, one persistent contact relationship
- Graph, node status vectors plus the edge list
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import IntEnum
from typing import List, Optional, Iterator

import numpy as np
import networkx as nx


class Status(IntEnum):
    SUSCEPTIBLE = 0
    EXPOSED = 1
    INFECTIOUS = 2
    RECOVERED = 3
    DECEASED = 4

    @property
    def label(self) -> str:
        return self.name.lower()


N_STATUSES = len(Status)


@dataclass(frozen = True)
class Node:
    id: int
    status: Status
    day: int #tick of last status change
    degree: int


@dataclass
class Edge:
    """
    Unordered contact between source < target. Deactivated (never removed) when an endpoint dies.
    """
    source: int
    target: int
    created_day: int = 1
    active: bool = True
    last_transmission_day: Optional[int] = None

    @property
    def key(self):
        return (self.source, self.target)

    def other(self, node: int) -> int:
        return self.target if node == self.source else self.source


@dataclass
class Graph:
    """
    Node data is stored column-wise: status[i], status_day[i] and degree[i] describe node i.
    """
    status: np.ndarray #int8 Status codes
    status_day: np.ndarray
    degree: np.ndarray
    edges: List[Edge] = field(default_factory = list)

    @property
    def N(self) -> int:
        return int(self.status.shape[0])

    @property
    def n_edges(self) -> int:
        return len(self.edges)

    def node(self, i: int) -> Node:
        return Node(
            id = int(i),
            status = Status(int(self.status[i])),
            day = int(self.status_day[i]),
            degree = int(self.degree[i])
        )

    def nodes(self) -> Iterator[Node]:
        for i in range(self.N):
            yield self.node(i)

    def count(self, status: Status) -> int:
        return int(np.count_nonzero(self.status == status))

    def to_networkx(self) -> nx.Graph:
        """
        Export the current node and edge state as a networkx Graph for external consumers (e.g. a renderer)
        """
        g = nx.Graph()
        for i in range(self.N):
            g.add_node(
                i,
                status = Status(int(self.status[i])).label,
                day = int(self.status_day[i])
            )
        for e in self.edges:
            g.add_edge(
                e.source, e.target,
                created_day = e.created_day,
                active = e.active,
                last_transmission_day = e.last_transmission_day
            )
        return g
