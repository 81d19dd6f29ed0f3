#contact_index.py
#Neighbor lookups for the epidemic engine, built once per generated network

from typing import Dict, List, Tuple

import numpy as np
from scipy.sparse import csr_matrix

from epinet.graph.network import Graph, Edge


class ContactIndex:
    """
    Adjacency lists (O(deg) neighbor iteration) and an edge map keyed by (min id, max id)
    holding the one shared Edge record per contact pair
    """
    def __init__(self, graph: Graph):
        self.graph = graph
        self.N = graph.N
        self.neighbor_map: List[List[int]] = [[] for _ in range(self.N)]
        self.edge_map: Dict[Tuple[int, int], Edge] = {}

        for e in graph.edges:
            src, tgt = e.source, e.target
            if src == tgt:
                raise ValueError(f"Self-loop on node {src}")
            key = _edge_key(src, tgt)
            if key in self.edge_map:
                raise ValueError(f"Duplicate edge {key}")
            self.edge_map[key] = e
            #symmetrize here, since edges are stored once as source < target
            self.neighbor_map[src].append(tgt)
            self.neighbor_map[tgt].append(src)

    def neighbors(self, i: int) -> List[int]:
        return self.neighbor_map[i]

    def degree(self, i: int) -> int:
        return len(self.neighbor_map[i])

    def edge(self, i: int, j: int) -> Edge:
        return self.edge_map[_edge_key(i, j)]

    def has_edge(self, i: int, j: int) -> bool:
        return _edge_key(i, j) in self.edge_map

    def edges_of(self, i: int) -> List[Edge]:
        return [self.edge(i, j) for j in self.neighbor_map[i]]

    def deactivate_node(self, i: int) -> int:
        """
        Deactivate every edge touching i. Edges are kept, only future transmission through them is disabled.

        Returns: number of edges that were active before the call
        """
        n_deactivated = 0
        for e in self.edges_of(i):
            if e.active:
                e.active = False
                n_deactivated += 1
        return n_deactivated

    def adjacency_matrix(self, active_only: bool = False) -> csr_matrix:
        """
        Symmetric unit-weight adjacency matrix of the contact network
        """
        edges = [e for e in self.graph.edges if e.active or not active_only]
        src = np.fromiter((e.source for e in edges), dtype = np.int32, count = len(edges))
        tgt = np.fromiter((e.target for e in edges), dtype = np.int32, count = len(edges))
        dat = np.ones(2 * len(edges), dtype = np.float32)

        row = np.concatenate([src, tgt])
        col = np.concatenate([tgt, src])
        return csr_matrix((dat, (row, col)), shape = (self.N, self.N))


def _edge_key(i: int, j: int) -> Tuple[int, int]:
    i = int(i)
    j = int(j)
    return (i, j) if i < j else (j, i)
