"""
params.py

Contains:
- SimulationParamsDict, the dict form of the simulation settings
- DefaultSimulationParams, the dashboard defaults callers copy and update
- PARAM_RANGES, the documented range of every parameter
- SimulationParams, the immutable parameter set used for one generated network
"""

from __future__ import annotations
import math
from dataclasses import dataclass, fields, replace
from typing import TypedDict, Dict, Any, Tuple, Mapping

from epinet.errors import ConfigurationError

#Barabasi-Albert seed clique size, smallest network that can be generated
SEED_CLIQUE_SIZE = 3


class SimulationParamsDict(TypedDict):
    # Population Params
    population_size: int
    initial_infected: int

    # Epi Params
    r0: float
    incubation_period: float #days
    infectious_period: float #days
    recovery_rate: float #daily probability

    # Intervention Params
    social_distancing: float #fraction of population distancing each day
    vaccination_rate: float
    mask_usage: float #accepted, not applied to any transition
    mobility_factor: float #accepted, not applied to any transition
    infectious_mortality_rate: float


DefaultSimulationParams: SimulationParamsDict = {
    #Population Parameters
    "population_size": 200,
    "initial_infected": 10,

    #Epidemic Parameters
    "r0": 2.5,
    "incubation_period": 5,
    "infectious_period": 10,
    "recovery_rate": 0.05,

    #Intervention Parameters
    "social_distancing": 0.0,
    "vaccination_rate": 0.0,
    "mask_usage": 0.0,
    "mobility_factor": 0.7,
    "infectious_mortality_rate": 0.005,
}

#(min, max) for each parameter; initial_infected max depends on population_size
PARAM_RANGES: Dict[str, Tuple[float, float]] = {
    "population_size": (100, 2500),
    "initial_infected": (1, 1250),
    "r0": (0.1, 10.0),
    "incubation_period": (1, 30),
    "infectious_period": (1, 30),
    "recovery_rate": (0.01, 0.5),
    "social_distancing": (0.0, 1.0),
    "vaccination_rate": (0.0, 1.0),
    "mask_usage": (0.0, 1.0),
    "mobility_factor": (0.0, 1.0),
    "infectious_mortality_rate": (0.0, 0.1),
}

#dashboard (camelCase) names -> parameter names
_CAMEL_CASE_KEYS = {
    "populationSize": "population_size",
    "initialInfected": "initial_infected",
    "r0": "r0",
    "incubationPeriod": "incubation_period",
    "infectiousPeriod": "infectious_period",
    "recoveryRate": "recovery_rate",
    "socialDistancing": "social_distancing",
    "vaccinationRate": "vaccination_rate",
    "maskUsage": "mask_usage",
    "mobilityFactor": "mobility_factor",
    "infectiousMortalityRate": "infectious_mortality_rate",
}

_INT_KEYS = ("population_size", "initial_infected")


@dataclass(frozen = True)
class SimulationParams:
    """
    Immutable parameter set for one generated network. A new network must be generated to change them.
    """
    population_size: int = DefaultSimulationParams["population_size"]
    initial_infected: int = DefaultSimulationParams["initial_infected"]
    r0: float = DefaultSimulationParams["r0"]
    incubation_period: float = DefaultSimulationParams["incubation_period"]
    infectious_period: float = DefaultSimulationParams["infectious_period"]
    recovery_rate: float = DefaultSimulationParams["recovery_rate"]
    social_distancing: float = DefaultSimulationParams["social_distancing"]
    vaccination_rate: float = DefaultSimulationParams["vaccination_rate"]
    mask_usage: float = DefaultSimulationParams["mask_usage"]
    mobility_factor: float = DefaultSimulationParams["mobility_factor"]
    infectious_mortality_rate: float = DefaultSimulationParams["infectious_mortality_rate"]

    @classmethod
    def from_dict(cls, params: Mapping[str, Any]) -> "SimulationParams":
        """Build parameters from a (partial) dict merged onto DefaultSimulationParams

        Args:
            params (Mapping[str, Any]): snake_case keys, or the dashboard's camelCase keys
                with interventions optionally nested under 'advanced'

        Returns:
            SimulationParams: the merged parameters (not yet validated)
        """
        merged: Dict[str, Any] = dict(DefaultSimulationParams)
        flat = dict(params)
        advanced = flat.pop("advanced", None) or {}
        flat.update(advanced)

        for key, val in flat.items():
            name = _CAMEL_CASE_KEYS.get(key, key)
            if name not in merged:
                raise ConfigurationError(f"Unknown simulation parameter '{key}'")
            merged[name] = val

        for key in _INT_KEYS:
            val = merged[key]
            if isinstance(val, float) and not val.is_integer():
                raise ConfigurationError(f"{key} must be an integer; got {val}")
            merged[key] = int(val)
        return cls(**merged)

    def to_dict(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}

    def validate(self) -> "SimulationParams":
        """
        Raise ConfigurationError if any parameter is outside its documented range,
        or the population cannot hold the seed clique and the initial infections
        """
        for key in PARAM_RANGES:
            val = getattr(self, key)
            if val is None or not math.isfinite(float(val)):
                raise ConfigurationError(f"{key} must be a finite number; got {val}")

        N = self.population_size
        if N < SEED_CLIQUE_SIZE:
            raise ConfigurationError(f"population_size must be at least the seed clique size {SEED_CLIQUE_SIZE}; got {N}")
        if self.initial_infected >= N:
            raise ConfigurationError(f"initial_infected ({self.initial_infected}) must be smaller than population_size ({N})")

        for key, (lo, hi) in PARAM_RANGES.items():
            if key == "initial_infected":
                hi = N // 2
            val = getattr(self, key)
            if not (lo <= val <= hi):
                raise ConfigurationError(f"{key} must be in [{lo}, {hi}]; got {val}")
        return self

    def clamped(self) -> "SimulationParams":
        """
        Return a copy with every parameter clamped into its documented range
        """
        updates = {}
        for key, (lo, hi) in PARAM_RANGES.items():
            val = getattr(self, key)
            if key == "initial_infected":
                hi = max(1, updates.get("population_size", self.population_size) // 2)
            val = min(max(val, lo), hi)
            updates[key] = int(val) if key in _INT_KEYS else float(val)
        return replace(self, **updates)
