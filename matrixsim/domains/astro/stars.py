"""
Star generation rules.

Stellar masses are drawn from an inverse power law that favours low-mass
stars; luminosity and surface temperature are deterministic functions of
mass, and the spectral class is always recomputed from temperature rather
than stored next to it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple

import numpy as np

from ...core.types import Vec3

#: Solar effective temperature (K)
SUN_TEMPERATURE = 5778.0

MIN_STAR_MASS = 0.08
MAX_STAR_MASS = 100.0

#: Upper bound (exclusive) on the number of planets drawn per star
MAX_PLANETS_PER_STAR = 12

#: Half-range of the random star velocity components (km/s scale)
STAR_VELOCITY_RANGE = 100.0


class SpectralClass(Enum):
    """Seven ordered spectral buckets, hottest first."""

    O = "O"
    B = "B"
    A = "A"
    F = "F"
    G = "G"
    K = "K"
    M = "M"

    @classmethod
    def from_temperature(cls, temperature: float) -> "SpectralClass":
        for lower_bound, spectral in _SPECTRAL_THRESHOLDS:
            if temperature > lower_bound:
                return spectral
        return cls.M

    @property
    def color(self) -> Tuple[float, float, float, float]:
        return _SPECTRAL_COLORS[self]


_SPECTRAL_THRESHOLDS = (
    (30000.0, SpectralClass.O),
    (10000.0, SpectralClass.B),
    (7500.0, SpectralClass.A),
    (6000.0, SpectralClass.F),
    (5200.0, SpectralClass.G),
    (3700.0, SpectralClass.K),
)

_SPECTRAL_COLORS = {
    SpectralClass.O: (0.6, 0.7, 1.0, 1.0),
    SpectralClass.B: (0.7, 0.8, 1.0, 1.0),
    SpectralClass.A: (0.9, 0.9, 1.0, 1.0),
    SpectralClass.F: (1.0, 1.0, 0.9, 1.0),
    SpectralClass.G: (1.0, 1.0, 0.7, 1.0),
    SpectralClass.K: (1.0, 0.8, 0.5, 1.0),
    SpectralClass.M: (1.0, 0.5, 0.3, 1.0),
}


@dataclass
class Star:
    """A generated star. ``planets`` stays ``None`` until the planetary level."""

    index: int
    position: Vec3
    velocity: Vec3
    mass: float
    luminosity: float
    surface_temperature: float
    age: float
    planet_count: int
    planets: Optional[List["Planet"]] = field(default=None)

    @property
    def spectral_class(self) -> SpectralClass:
        return SpectralClass.from_temperature(self.surface_temperature)


def draw_stellar_mass(u: float) -> float:
    """Inverse power-law initial mass function (Kroupa-like tail)."""
    return min(MIN_STAR_MASS + (1.0 - u) ** (-1.0 / 1.3) * 0.3, MAX_STAR_MASS)


def luminosity_for_mass(mass: float) -> float:
    """Main-sequence luminosity in solar units, L = M^3.5."""
    return mass ** 3.5


def temperature_for_mass(mass: float) -> float:
    luminosity = luminosity_for_mass(mass)
    return SUN_TEMPERATURE * (luminosity / (mass * mass)) ** 0.25


def generate_star(index: int, center: Vec3, size: float, age_gyr: float,
                  rng: np.random.Generator) -> Star:
    """Draw one star from its own stream. Planets are left unexpanded."""
    half = size / 2.0
    position = tuple(float(c + rng.uniform(-half, half)) for c in center)
    velocity = tuple(float(v) for v in rng.uniform(-STAR_VELOCITY_RANGE, STAR_VELOCITY_RANGE, 3))
    mass = draw_stellar_mass(float(rng.random()))
    star_age = float(rng.uniform(0.0, max(age_gyr, 0.1)))
    planet_count = int(rng.integers(0, MAX_PLANETS_PER_STAR))
    return Star(
        index=index,
        position=position,
        velocity=velocity,
        mass=mass,
        luminosity=luminosity_for_mass(mass),
        surface_temperature=temperature_for_mass(mass),
        age=star_age,
        planet_count=planet_count,
    )
