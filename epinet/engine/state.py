#state.py
#Per-tick outputs of the epidemic engine

from dataclasses import dataclass
from enum import Enum
from typing import Dict

import numpy as np

from epinet.graph.network import Graph, Status, N_STATUSES


class TerminalState(Enum):
    NONE = "none"
    NATURAL_EXTINCTION = "natural_extinction"
    YEAR_LIMIT = "year_limit"

    @property
    def is_terminal(self) -> bool:
        return self is not TerminalState.NONE


@dataclass(frozen = True)
class DailyStats:
    day: int
    susceptible: int
    exposed: int
    infectious: int
    recovered: int
    deceased: int

    @classmethod
    def from_status(cls, status: np.ndarray, day: int) -> "DailyStats":
        counts = np.bincount(status.astype(np.int64), minlength = N_STATUSES)
        return cls(
            day = int(day),
            susceptible = int(counts[Status.SUSCEPTIBLE]),
            exposed = int(counts[Status.EXPOSED]),
            infectious = int(counts[Status.INFECTIOUS]),
            recovered = int(counts[Status.RECOVERED]),
            deceased = int(counts[Status.DECEASED]),
        )

    @property
    def total(self) -> int:
        return self.susceptible + self.exposed + self.infectious + self.recovered + self.deceased

    @property
    def active_cases(self) -> int:
        return self.exposed + self.infectious

    def as_dict(self) -> Dict[str, int]:
        return {
            "day": self.day,
            "susceptible": self.susceptible,
            "exposed": self.exposed,
            "infectious": self.infectious,
            "recovered": self.recovered,
            "deceased": self.deceased,
        }


@dataclass(frozen = True)
class StepResult:
    graph: Graph
    stats: DailyStats
    terminal_state: TerminalState
