"""
The tick loop.

``Simulation`` owns one ``UniverseState`` plus the services that act on
it (gravity solver, region manager). Each call to ``tick`` runs, in this
fixed order:

1. Cosmological integration: advance the clock by ``timestep *
   time_scale`` and expand particle positions with the phase's Hubble
   value.
2. Gravity, throttled by ``gravity_interval(time_scale)``, with the dt
   accumulated since the last solve.
3. Every ``entropy_interval`` ticks, entropy and kinetic temperature are
   recomputed and entropy-driven phase transitions applied.
4. Every ``compaction_interval`` ticks, dead particles are compacted.
5. If the universe collapsed, rebirth.
6. Every ``lod_interval`` ticks, region levels of detail are re-evaluated
   for the current observer.
7. Finished background generation is published.

Entropy and LOD decisions therefore always see the post-solve particles
and the post-integration age.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from . import cosmology
from .config import SimConfig
from .errors import SnapshotError
from .fabric import spawn_big_bang
from .gravity import GravitySolver, HybridGravitySolver, gravity_interval
from .regions import ObserverInput, RegionManager
from .snapshot import load_state, save_state
from .state import UniverseState, big_bang_stream
from .thermodynamics import entropy_and_temperature
from .types import UniversePhase

logger = logging.getLogger(__name__)

__all__ = ["ObserverInput", "Simulation", "TickReport"]


@dataclass
class TickReport:
    """What happened during one tick."""

    tick: int
    age: float
    phase: UniversePhase
    phase_changed: bool = False
    gravity_solved: bool = False
    entropy_updated: bool = False
    compacted: int = 0
    reborn: bool = False
    lod_changes: int = 0
    published: int = 0


class Simulation:
    """Drives one universe through time.

    Args:
        config: Simulation options. Validated before any state is built.
        solver: Gravity executor; defaults to the hybrid solver built
            from ``config``.
        state: An existing state to adopt instead of a fresh universe.
    """

    def __init__(self, config: Optional[SimConfig] = None, solver: Optional[GravitySolver] = None,
                 state: Optional[UniverseState] = None):
        if state is None:
            config = config or SimConfig()
            config.validate()
            state = UniverseState.create(config)
        self.state = state
        self.solver = solver or HybridGravitySolver.from_config(state.config)
        self.regions = RegionManager(state.config)
        self.observer = ObserverInput()
        logger.info("Simulation ready: seed %d, %d particles, cycle %d",
                    state.config.seed, len(state.fabric), state.clock.cycle)

    # ------------------------------------------------------------------
    # Controls

    @property
    def config(self) -> SimConfig:
        return self.state.config

    @property
    def clock(self):
        return self.state.clock

    @property
    def time_scale(self) -> float:
        return self.state.time_scale

    @time_scale.setter
    def time_scale(self, value: float) -> None:
        if not value > 0.0:
            raise ValueError(f"time_scale must be positive, got {value!r}")
        self.state.time_scale = float(value)

    @property
    def paused(self) -> bool:
        return self.state.paused

    @paused.setter
    def paused(self, value: bool) -> None:
        self.state.paused = bool(value)

    @property
    def local_particles(self):
        """Particle population of the observer's region, refreshed on LOD evaluation."""
        return self.regions.local_particles

    # ------------------------------------------------------------------
    # Tick loop

    def tick(self, observer: Optional[ObserverInput] = None) -> TickReport:
        """Advance the universe by one tick."""
        state = self.state
        clock = state.clock
        config = state.config
        if observer is not None:
            self.observer = observer
        if state.paused:
            return TickReport(tick=clock.tick, age=clock.age, phase=clock.phase,
                              published=self.regions.poll(state))

        dt = config.timestep * state.time_scale
        clock.tick += 1
        report = TickReport(tick=clock.tick, age=0.0, phase=clock.phase)

        report.phase_changed = clock.advance(dt)
        cosmology.apply_expansion(state.fabric.position, clock.hubble, dt)

        state.gravity_dt += dt
        state.ticks_since_gravity += 1
        if state.ticks_since_gravity >= gravity_interval(state.time_scale):
            self.solver.step(state.fabric, state.gravity_dt)
            state.gravity_dt = 0.0
            state.ticks_since_gravity = 0
            report.gravity_solved = True

        if clock.tick % config.entropy_interval == 0:
            entropy, kinetic = entropy_and_temperature(state.fabric)
            clock.kinetic_temperature = kinetic
            report.phase_changed |= clock.apply_entropy(entropy, config.max_entropy)
            report.entropy_updated = True

        if clock.tick % config.compaction_interval == 0:
            report.compacted = state.fabric.compact()

        if clock.collapsed:
            self.rebirth()
            report.reborn = True

        if clock.tick % config.lod_interval == 0:
            report.lod_changes = self.regions.evaluate(state, self.observer, background=True)

        report.published = self.regions.poll(state)
        report.age = clock.age
        report.phase = clock.phase
        return report

    def run(self, ticks: int, observer: Optional[ObserverInput] = None) -> TickReport:
        report = None
        for _ in range(ticks):
            report = self.tick(observer)
        return report

    def bootstrap(self, observer: Optional[ObserverInput] = None,
                  timeout: Optional[float] = None) -> int:
        """Generate the observer's neighbourhood on the worker pool and wait for it.

        Returns the number of regions published.
        """
        if observer is not None:
            self.observer = observer
        self.regions.evaluate(self.state, self.observer, background=True)
        return self.regions.drain(self.state, timeout=timeout)

    # ------------------------------------------------------------------
    # Rebirth

    def rebirth(self) -> None:
        """Collapse into the next cycle.

        The soul ledger is updated before anything else is reset, so no
        lineage recorded in the dying cycle is lost even if generation
        was in flight.
        """
        state = self.state
        clock = state.clock
        contributions = state.lineages.contributions()
        merged = state.ledger.merge_all(contributions)
        logger.info("Universe collapsed at age %.3f Gyr (cycle %d): %d lineages entered the soul ledger",
                    clock.age, clock.cycle, merged)

        clock.reset_for_rebirth()
        self.regions.reset_for_rebirth(state)
        state.fabric.replace_with(spawn_big_bang(state.config, big_bang_stream(state.config, clock.cycle)))
        state.lineages.clear()
        state.gravity_dt = 0.0
        state.ticks_since_gravity = 0
        logger.info("Rebirth: cycle %d begins with %d soul records", clock.cycle, len(state.ledger))

    # ------------------------------------------------------------------
    # Persistence

    def snapshot(self) -> bytes:
        """Serialise the current state. Call between ticks."""
        return save_state(self.state)

    def restore(self, blob: bytes) -> None:
        """Replace the current state with a snapshot.

        The gravity solver is kept and takes its config-derived settings
        from the snapshot. Raises ``SnapshotError`` and leaves the running
        universe untouched if the blob cannot be loaded.
        """
        state = load_state(blob)
        self.regions.shutdown()
        self.state = state
        self.solver.reconfigure(state.config)
        self.regions = RegionManager(state.config)
        logger.info("Restored snapshot: cycle %d, age %.3f Gyr", state.clock.cycle, state.clock.age)

    @classmethod
    def from_snapshot(cls, blob: bytes, config: Optional[SimConfig] = None) -> "Simulation":
        """Load a simulation, falling back to a fresh universe if the blob is unusable."""
        try:
            state = load_state(blob)
        except SnapshotError as exc:
            logger.warning("Snapshot could not be loaded (%s); starting a fresh universe", exc)
            return cls(config)
        return cls(state=state)

    def close(self) -> None:
        self.regions.shutdown()

    def __enter__(self) -> "Simulation":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
