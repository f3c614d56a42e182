"""
Planet generation rules.

Orbits are spaced geometrically with a small seeded jitter, periods follow
Kepler's third law, and surface temperature depends only on the host's
luminosity and the orbital radius. Type and atmosphere are threshold
rules on mass and temperature with a few seeded coin flips; every coin
flip consumes the planet's own stream.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Optional

import numpy as np

#: Planet temperature at 1 AU from a 1 Lsun star (K)
EQUILIBRIUM_TEMPERATURE_1AU = 278.0

#: Habitable temperature band (K), exclusive at both ends
HABITABLE_MIN_TEMP = 200.0
HABITABLE_MAX_TEMP = 400.0

# Mass thresholds (Earth masses)
GAS_GIANT_MIN_MASS = 100.0
ICE_GIANT_MIN_MASS = 15.0
ICE_GIANT_MAX_TEMP = 150.0
OCEAN_MIN_MASS = 0.5
OCEAN_MAX_MASS = 10.0
OCEAN_PROBABILITY = 0.3
ATMOSPHERE_MIN_MASS = 0.3
ATMOSPHERE_MAX_TEMP = 2000.0

# Temperature thresholds (K)
LAVA_MIN_TEMP = 500.0
FROZEN_MAX_TEMP = 200.0
WATER_MIN_TEMP = 240.0
WATER_MAX_TEMP = 400.0
THICK_CO2_MIN_TEMP = 400.0

OXYGEN_ATMOSPHERE_PROBABILITY = 0.3
EXOTIC_ATMOSPHERE_PROBABILITY = 0.1


class PlanetType(Enum):
    ROCKY = "rocky"
    OCEAN = "ocean"
    FROZEN = "frozen"
    LAVA = "lava"
    GAS_GIANT = "gas_giant"
    ICE_GIANT = "ice_giant"


class AtmosphereType(Enum):
    NONE = "none"
    THIN_CO2 = "thin_co2"
    THICK_CO2 = "thick_co2"
    NITROGEN_OXYGEN = "nitrogen_oxygen"
    HYDROGEN = "hydrogen"
    METHANE = "methane"
    EXOTIC = "exotic"

    @property
    def present(self) -> bool:
        return self is not AtmosphereType.NONE

    @property
    def transparent(self) -> bool:
        """Whether starlight reaches the surface."""
        return self not in (AtmosphereType.HYDROGEN, AtmosphereType.METHANE, AtmosphereType.EXOTIC)

    @property
    def supports_flight(self) -> bool:
        return self not in (AtmosphereType.NONE, AtmosphereType.THIN_CO2)


@dataclass
class Planet:
    index: int
    orbital_radius: float
    orbital_period: float
    orbital_angle: float
    mass: float
    radius: float
    surface_temperature: float
    has_water: bool
    planet_type: PlanetType
    atmosphere: AtmosphereType
    life: Optional["Biosphere"] = None

    @property
    def habitable(self) -> bool:
        return is_habitable(self.surface_temperature, self.has_water, self.atmosphere)

    @property
    def has_life(self) -> bool:
        return self.life is not None


def orbital_radius(orbit_index: int, jitter: float) -> float:
    """Titius-Bode-like spacing in AU."""
    return max(0.2 * 1.5 ** orbit_index + jitter, 0.05)


def orbital_period(radius_au: float) -> float:
    """Kepler's third law in AU and years: P^2 = a^3."""
    return radius_au ** 1.5


def surface_temperature(luminosity: float, radius_au: float) -> float:
    r = max(radius_au, 0.01)
    return EQUILIBRIUM_TEMPERATURE_1AU * luminosity ** 0.25 / math.sqrt(r)


def radius_for_mass(mass: float) -> float:
    """Piecewise mass-radius relation: rocky, sub-Neptune, gas giant."""
    if mass < 2.0:
        return mass ** 0.27
    if mass < GAS_GIANT_MIN_MASS:
        return 2.0 * mass ** 0.06
    return 11.0 * mass ** -0.04


def is_habitable(surface_temp: float, has_water: bool, atmosphere: AtmosphereType) -> bool:
    return HABITABLE_MIN_TEMP < surface_temp < HABITABLE_MAX_TEMP and has_water and atmosphere.present


def has_atmosphere(mass: float, surface_temp: float) -> bool:
    return mass > ATMOSPHERE_MIN_MASS and surface_temp < ATMOSPHERE_MAX_TEMP


def has_liquid_water(atmosphere_present: bool, surface_temp: float) -> bool:
    return atmosphere_present and WATER_MIN_TEMP <= surface_temp <= WATER_MAX_TEMP


def classify_planet(mass: float, surface_temp: float, has_water: bool,
                    rng: np.random.Generator) -> PlanetType:
    """Assign a planet type.

    Rules are applied in order; only water-bearing worlds between
    ``OCEAN_MIN_MASS`` and ``OCEAN_MAX_MASS`` flip a coin for being an
    ocean world, so heavier temperate worlds are always rocky.
    """
    if mass > GAS_GIANT_MIN_MASS:
        return PlanetType.GAS_GIANT
    if mass > ICE_GIANT_MIN_MASS and surface_temp < ICE_GIANT_MAX_TEMP:
        return PlanetType.ICE_GIANT
    if surface_temp > LAVA_MIN_TEMP:
        return PlanetType.LAVA
    if surface_temp < FROZEN_MAX_TEMP:
        return PlanetType.FROZEN
    if has_water and OCEAN_MIN_MASS < mass < OCEAN_MAX_MASS and rng.random() < OCEAN_PROBABILITY:
        return PlanetType.OCEAN
    return PlanetType.ROCKY


def choose_atmosphere(mass: float, surface_temp: float, has_water: bool,
                      rng: np.random.Generator) -> AtmosphereType:
    if not has_atmosphere(mass, surface_temp):
        return AtmosphereType.NONE
    if mass > GAS_GIANT_MIN_MASS:
        return AtmosphereType.HYDROGEN
    if has_water:
        if rng.random() < OXYGEN_ATMOSPHERE_PROBABILITY:
            return AtmosphereType.NITROGEN_OXYGEN
        return AtmosphereType.THIN_CO2
    if surface_temp > THICK_CO2_MIN_TEMP:
        return AtmosphereType.THICK_CO2
    if rng.random() < EXOTIC_ATMOSPHERE_PROBABILITY:
        return AtmosphereType.EXOTIC
    return AtmosphereType.METHANE


def generate_planet(index: int, luminosity: float, rng: np.random.Generator) -> Planet:
    """Draw one planet from its own stream. Life is decided separately."""
    radius_au = orbital_radius(index, float(rng.uniform(-0.1, 0.1)))
    angle = float(rng.uniform(0.0, 2.0 * math.pi))
    mass = 10.0 ** float(rng.uniform(-1.0, 3.5))
    temp = surface_temperature(luminosity, radius_au)

    atmosphere_present = has_atmosphere(mass, temp)
    water = has_liquid_water(atmosphere_present, temp)
    atmosphere = choose_atmosphere(mass, temp, water, rng)
    planet_type = classify_planet(mass, temp, water, rng)

    return Planet(
        index=index,
        orbital_radius=radius_au,
        orbital_period=orbital_period(radius_au),
        orbital_angle=angle,
        mass=mass,
        radius=radius_for_mass(mass),
        surface_temperature=temp,
        has_water=water,
        planet_type=planet_type,
        atmosphere=atmosphere,
    )
