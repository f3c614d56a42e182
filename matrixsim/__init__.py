"""
matrixsim multi-scale universe simulation package.

This package contains a deterministic, seed-driven simulation of a
universe across particle, stellar, planetary and biological scales. A
single ``SimConfig`` seed reproduces the same particles, regions, stars,
planets and genomes on every run, and the universe is reborn when its
entropy reaches the configured maximum.

The major subpackages are:

``matrixsim.core``     Engine components: configuration, seeded RNG
                       streams, particle storage, gravity solvers,
                       cosmology, the universe clock, the lazy region
                       manager, snapshots and the tick loop.
``matrixsim.domains``  Procedural generation rules for stars, planets,
                       biospheres, genomes and the cross-cycle soul
                       ledger.

Please see the individual modules for further documentation.
"""

from .core.config import SimConfig
from .core.engine import ObserverInput, Simulation
from .core.logs import setup_logging

__all__ = [
    "core",
    "domains",
    "SimConfig",
    "Simulation",
    "ObserverInput",
    "setup_logging",
]
