"""
The universe clock and the cosmological integrator that advances it.

``UniverseClock`` is a plain dataclass so it can be compared and
snapshotted directly. It is mutated only through ``advance`` (age-driven
quantities), ``apply_entropy`` (entropy-driven phases) and
``reset_for_rebirth``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from . import cosmology
from .types import UniversePhase

logger = logging.getLogger(__name__)


@dataclass
class UniverseClock:
    """Global time state of one universe.

    Attributes:
        age: Universe age in Gyr.
        phase: Current cosmic phase.
        scale_factor: a(t), 1 at the present reference age.
        hubble: Expansion rate of the current phase.
        temperature: Cosmic background temperature in K.
        entropy: Last computed entropy proxy.
        kinetic_temperature: Mean particle kinetic energy at the last entropy pass.
        cycle: Universe cycle number, starting at 1.
        tick: Ticks elapsed in the current cycle.
    """

    age: float = 0.0
    phase: UniversePhase = UniversePhase.BIG_BANG
    scale_factor: float = 0.0
    hubble: float = cosmology.HUBBLE_BY_PHASE[UniversePhase.BIG_BANG]
    temperature: float = cosmology.QUARK_GLUON_PLASMA_TEMPERATURE
    entropy: float = 0.0
    kinetic_temperature: float = 0.0
    cycle: int = 1
    tick: int = 0

    def advance(self, dt: float) -> bool:
        """Advance age by ``dt`` Gyr and recompute derived quantities.

        Returns True if the phase changed.
        """
        self.age += dt
        self.scale_factor = cosmology.scale_factor(self.age)
        self.temperature = cosmology.temperature_for_scale(self.scale_factor)
        changed = self._advance_age_phase()
        self.hubble = cosmology.hubble_parameter(self.phase)
        return changed

    def _advance_age_phase(self) -> bool:
        # Entropy-driven phases are terminal for the age schedule.
        if self.phase >= UniversePhase.HEAT_DEATH:
            return False
        target = cosmology.phase_for_age(self.age)
        if target > self.phase:
            self._transition(target)
            return True
        return False

    def apply_entropy(self, entropy: float, max_entropy: float) -> bool:
        """Record a new entropy value and apply entropy-driven transitions.

        Returns True if the phase changed.
        """
        self.entropy = entropy
        if entropy >= max_entropy * cosmology.COLLAPSE_ENTROPY_FRACTION:
            target = UniversePhase.COLLAPSE
        elif entropy >= max_entropy * cosmology.HEAT_DEATH_ENTROPY_FRACTION:
            target = UniversePhase.HEAT_DEATH
        else:
            return False
        if target <= self.phase:
            return False
        self._transition(target)
        self.hubble = cosmology.hubble_parameter(self.phase)
        return True

    def _transition(self, target: UniversePhase) -> None:
        logger.info("Universe phase transition: %s -> %s (age: %.6f Gyr, cycle %d)",
                    self.phase.label, target.label, self.age, self.cycle)
        self.phase = target

    @property
    def collapsed(self) -> bool:
        return self.phase == UniversePhase.COLLAPSE

    def reset_for_rebirth(self) -> None:
        """Return to the Big Bang in place and start the next cycle."""
        self.age = 0.0
        self.phase = UniversePhase.BIG_BANG
        self.scale_factor = 0.0
        self.hubble = cosmology.hubble_parameter(UniversePhase.BIG_BANG)
        self.temperature = cosmology.QUARK_GLUON_PLASMA_TEMPERATURE
        self.entropy = 0.0
        self.kinetic_temperature = 0.0
        self.cycle += 1
        self.tick = 0
