"""
Cosmological model: expansion, background temperature, phases and star
formation history.

All functions here are pure functions of the universe age or phase. The
model is a deliberately simplified Lambda-CDM: matter-dominated growth of
the scale factor up to the present reference age, exponential dark-energy
expansion afterwards, and a Hubble parameter that is a fixed constant per
cosmic phase rather than being derived from da/dt.
"""

from __future__ import annotations

import math
from typing import Tuple

import numpy as np

from .types import UniversePhase

#: Age at which the scale factor equals one (Gyr)
PRESENT_AGE = 13.8

#: CMB temperature at the present reference age (K)
CMB_TEMPERATURE = 2.725

#: Temperature reported while the scale factor is below ``PLASMA_SCALE_FACTOR``
QUARK_GLUON_PLASMA_TEMPERATURE = 1e12

PLASMA_SCALE_FACTOR = 1e-10

#: Dark-energy e-folding rate beyond the present age (per Gyr)
DARK_ENERGY_RATE = 0.07

#: Scale applied to hubble * dt when expanding particle positions
EXPANSION_SCALE = 0.001

#: Largest dark-energy exponent evaluated; a(t) saturates near 1e304 beyond it
MAX_EXPANSION_EXPONENT = 700.0

#: Expanded coordinates are clipped to this magnitude so squared distances stay finite
MAX_COORDINATE = 1e150

HUBBLE_BY_PHASE = {
    UniversePhase.BIG_BANG: 100.0,
    UniversePhase.INFLATION: 1000.0,
    UniversePhase.NUCLEAR_ERA: 50.0,
    UniversePhase.ATOMIC_ERA: 20.0,
    UniversePhase.COSMIC_DAWN: 10.0,
    UniversePhase.STELLAR_ERA: 5.0,
    UniversePhase.BIOLOGICAL_ERA: 3.0,
    UniversePhase.CIVILIZATION_ERA: 2.0,
    UniversePhase.HEAT_DEATH: 1.0,
    UniversePhase.COLLAPSE: -10.0,
}

#: Minimum age (Gyr) at which each age-driven phase begins
PHASE_MIN_AGE = {
    UniversePhase.BIG_BANG: 0.0,
    UniversePhase.INFLATION: 1e-6,
    UniversePhase.NUCLEAR_ERA: 1e-5,
    UniversePhase.ATOMIC_ERA: 4e-4,
    UniversePhase.COSMIC_DAWN: 0.4,
    UniversePhase.STELLAR_ERA: 1.0,
    UniversePhase.BIOLOGICAL_ERA: 10.0,
    UniversePhase.CIVILIZATION_ERA: 13.0,
}

#: Fractions of ``max_entropy`` that trigger the entropy-driven phases
HEAT_DEATH_ENTROPY_FRACTION = 0.9
COLLAPSE_ENTROPY_FRACTION = 1.0

# Star formation history (Madau & Dickinson, simplified)
STAR_FORMATION_ONSET = 0.4
STAR_FORMATION_PEAK_AGE = 3.3
STAR_FORMATION_PEAK_RATE = 0.15
STAR_FORMATION_RISE_EXPONENT = 2.5
STAR_FORMATION_DECAY = 0.12

#: Years per Gyr, used to turn the per-year rate into a count
YEARS_PER_GYR = 1e9

# Chemical evolution: primordial mix and metal enrichment
PRIMORDIAL_HYDROGEN = 0.75
PRIMORDIAL_HELIUM = 0.25
SOLAR_METALLICITY = 0.02
ENRICHMENT_SPAN = 13.0


def scale_factor(age_gyr: float) -> float:
    """Return a(t), equal to 1 at ``PRESENT_AGE``."""
    if age_gyr <= 0.0:
        return 0.0
    if age_gyr < PRESENT_AGE:
        return (age_gyr / PRESENT_AGE) ** (2.0 / 3.0)
    return math.exp(min((age_gyr - PRESENT_AGE) * DARK_ENERGY_RATE, MAX_EXPANSION_EXPONENT))


def temperature_for_scale(a: float) -> float:
    """CMB temperature for a scale factor, with the plasma-era floor."""
    if a < PLASMA_SCALE_FACTOR:
        return QUARK_GLUON_PLASMA_TEMPERATURE
    if math.isinf(a):
        return 0.0
    return CMB_TEMPERATURE / a


def cosmic_temperature(age_gyr: float) -> float:
    return temperature_for_scale(scale_factor(age_gyr))


def hubble_parameter(phase: UniversePhase) -> float:
    return HUBBLE_BY_PHASE[UniversePhase(phase)]


def phase_for_age(age_gyr: float) -> UniversePhase:
    """Return the latest age-driven phase whose minimum age has been reached."""
    phase = UniversePhase.BIG_BANG
    for candidate, min_age in PHASE_MIN_AGE.items():
        if age_gyr >= min_age:
            phase = candidate
    return phase


def apply_expansion(position: np.ndarray, hubble: float, dt: float) -> None:
    """Expand positions in place: ``x += x * hubble * dt * 0.001``."""
    position *= 1.0 + hubble * dt * EXPANSION_SCALE
    np.clip(position, -MAX_COORDINATE, MAX_COORDINATE, out=position)


# ----------------------------------------------------------------------
# Star formation and chemistry


def star_formation_rate(age_gyr: float) -> float:
    """Star formation rate density in solar masses per year per Mpc^3."""
    if age_gyr < STAR_FORMATION_ONSET:
        return 0.0
    if age_gyr < STAR_FORMATION_PEAK_AGE:
        return STAR_FORMATION_PEAK_RATE * (age_gyr / STAR_FORMATION_PEAK_AGE) ** STAR_FORMATION_RISE_EXPONENT
    return STAR_FORMATION_PEAK_RATE * math.exp(-STAR_FORMATION_DECAY * (age_gyr - STAR_FORMATION_PEAK_AGE))


def cumulative_star_formation(age_gyr: float) -> float:
    """Integral of ``star_formation_rate`` from 0 to ``age_gyr`` (Msun/yr/Mpc^3 * Gyr).

    Closed form of the two branches so that the result is exact and
    independent of any integration step.
    """
    if age_gyr <= STAR_FORMATION_ONSET:
        return 0.0
    k = STAR_FORMATION_RISE_EXPONENT + 1.0
    rise_end = min(age_gyr, STAR_FORMATION_PEAK_AGE)
    total = STAR_FORMATION_PEAK_RATE * STAR_FORMATION_PEAK_AGE / k * (
        (rise_end / STAR_FORMATION_PEAK_AGE) ** k - (STAR_FORMATION_ONSET / STAR_FORMATION_PEAK_AGE) ** k
    )
    if age_gyr > STAR_FORMATION_PEAK_AGE:
        total += STAR_FORMATION_PEAK_RATE / STAR_FORMATION_DECAY * (
            1.0 - math.exp(-STAR_FORMATION_DECAY * (age_gyr - STAR_FORMATION_PEAK_AGE))
        )
    return total


def estimate_stars(density_ratio: float, volume_mpc3: float, age_gyr: float) -> int:
    """Expected number of stars formed in a volume up to ``age_gyr``.

    Assumes an average stellar mass of one solar mass.
    """
    n = cumulative_star_formation(age_gyr) * YEARS_PER_GYR * density_ratio * volume_mpc3
    return max(int(n), 0)


def chemical_composition(age_gyr: float) -> Tuple[float, float, float]:
    """Return (hydrogen, helium, metals) mass fractions, summing to 1."""
    if age_gyr < STAR_FORMATION_ONSET:
        metals = 0.0
    else:
        metals = SOLAR_METALLICITY * min((age_gyr - STAR_FORMATION_ONSET) / ENRICHMENT_SPAN, 1.0)
    hydrogen = PRIMORDIAL_HYDROGEN - metals * 0.6
    helium = PRIMORDIAL_HELIUM - metals * 0.4
    return (hydrogen, helium, metals)
