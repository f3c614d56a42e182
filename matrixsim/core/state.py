"""
The single explicit value holding one universe.

``UniverseState`` owns the clock, the particle fabric, the region grid,
the per-cycle lineage registry, the cross-cycle soul ledger and the
configuration they were built from. Subsystems receive it as an argument
instead of reaching for globals; the ``Simulation`` owns exactly one.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict

import numpy as np

from .clock import UniverseClock
from .config import SimConfig
from .fabric import ParticleFabric, spawn_big_bang
from .region import Region, create_regions
from .rng import derive_seed
from .types import GridCoord
from ..domains.life.soul import LineageRegistry, SoulLedger


def big_bang_stream(config: SimConfig, cycle: int) -> np.random.Generator:
    return np.random.default_rng(derive_seed(config.seed, "big_bang", cycle))


@dataclass
class UniverseState:
    config: SimConfig
    clock: UniverseClock
    fabric: ParticleFabric
    regions: Dict[GridCoord, Region]
    ledger: SoulLedger = field(default_factory=SoulLedger)
    lineages: LineageRegistry = field(default_factory=LineageRegistry)
    time_scale: float = 1.0
    paused: bool = False
    #: Simulated time accumulated since the last gravity solve (Gyr)
    gravity_dt: float = 0.0
    ticks_since_gravity: int = 0

    @classmethod
    def create(cls, config: SimConfig) -> "UniverseState":
        """Validate ``config`` and build a fresh universe at the Big Bang."""
        config.validate()
        clock = UniverseClock()
        return cls(
            config=config,
            clock=clock,
            fabric=spawn_big_bang(config, big_bang_stream(config, clock.cycle)),
            regions=create_regions(config.seed, clock.cycle, clock.age, config.dark_matter_fraction),
        )
