"""
Exception types raised by the solvers and operators.
"""


class ConfigurationError(ValueError):
    """Invalid solver or operator setup (non-square matrix, bad sweep count, ...)."""


class DimensionError(ValueError):
    """Vector or operator sizes do not match."""


class SolverStateError(RuntimeError):
    """An iteration method was called out of order."""
