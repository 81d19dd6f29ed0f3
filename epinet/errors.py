#errors.py
#Exception types raised by the network generator and epidemic engine


class EpinetError(Exception):
    """
    Base class for errors raised by epinet
    """


class ConfigurationError(EpinetError, ValueError):
    """
    Simulation parameters are invalid, reported before any generation occurs
    """


class DegenerateSamplingError(EpinetError, RuntimeError):
    """
    Preferential attachment could not find enough distinct targets within the attempt cap
    """


class SimulationTerminatedError(EpinetError, RuntimeError):
    """
    step() was called after the run reached natural extinction or the year limit
    """
