"""
Exception types raised by the simulation core.

Only configuration errors are fatal. Numerical degeneracies and genome
constraint violations are recovered where they happen and never surface
as exceptions; snapshot failures are reported to the caller who may keep
running a freshly generated universe.
"""

from __future__ import annotations


class MatrixSimError(Exception):
    """Base class for all matrixsim errors."""


class ConfigError(MatrixSimError, ValueError):
    """Raised when a ``SimConfig`` holds an invalid value.

    Attributes:
        field: Name of the offending configuration field.
    """

    def __init__(self, field: str, message: str):
        super().__init__(f"{field}: {message}")
        self.field = field


class SnapshotError(MatrixSimError):
    """Raised when a snapshot blob cannot be decoded or is incompatible."""
