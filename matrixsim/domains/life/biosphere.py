"""
Life emergence and biosphere complexity.

Life can only appear on a planet once the universe is older than
``LIFE_ONSET_AGE``. The emergence probability is the product of a base
rate, a Gaussian temperature suitability peaked at Earth's mean surface
temperature, a planet-type multiplier and a saturating factor in the time
since life became possible. The product is clamped to the configured
probability band and drawn once against the planet's life stream.

Complexity then advances through ``COMPLEXITY_STAGES`` in order. Each
stage needs a minimum time since emergence and passes a probability gate;
progression stops at the first stage that fails. The planet-type ceiling
is applied afterwards as a hard clamp.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import NamedTuple, Optional

import numpy as np

from ...core.types import clamp
from ..astro.planets import HABITABLE_MAX_TEMP, HABITABLE_MIN_TEMP, Planet, PlanetType
from .genome import Genome

#: Universe age before which no planet can host life (Gyr)
LIFE_ONSET_AGE = 1.0

#: Base emergence rate before modifiers
BASE_LIFE_RATE = 0.1

#: Earth's mean surface temperature, where suitability peaks (K)
OPTIMAL_LIFE_TEMP = 288.0

#: Width term of the temperature suitability Gaussian (K^2)
TEMPERATURE_TOLERANCE = 800.0

#: Saturation rate of the time factor (per Gyr)
EMERGENCE_RATE = 0.3

#: Emergence probability for worlds without liquid water
DRY_WORLD_PROBABILITY = 1e-6

#: Complexity at which a species can build technology
TECHNOLOGY_COMPLEXITY = 7.0

#: Cognition a species needs to build technology
TECHNOLOGY_COGNITION = 0.8

LIFE_TYPE_MULTIPLIER = {
    PlanetType.ROCKY: 1.0,
    PlanetType.OCEAN: 0.5,
    PlanetType.FROZEN: 0.01,
}
OTHER_TYPE_MULTIPLIER = 0.001

COMPLEXITY_CEILING = {
    PlanetType.OCEAN: 6.0,
    PlanetType.FROZEN: 2.0,
}
DEFAULT_COMPLEXITY_CEILING = 10.0


class Stage(NamedTuple):
    """One evolutionary stage.

    Complexity within the stage is ``base + min((life_age - min_age) * rate, span)``.
    """

    name: str
    min_age: float
    probability: float
    base: float
    rate: float
    span: float


COMPLEXITY_STAGES = (
    Stage("prokaryotes", 0.0, 1.0, 0.0, 2.0, 1.0),
    Stage("diversification", 0.5, 1.0, 1.0, 1.0 / 1.5, 1.0),
    Stage("eukaryotes", 2.0, 0.2, 2.0, 1.0, 1.0),
    Stage("multicellular", 3.0, 0.1, 3.0, 1.0, 2.0),
    Stage("complex_body_plans", 3.5, 0.05, 5.0, 1.0 / 1.5, 2.0),
    Stage("intelligence", 4.5, 0.01, 7.0, 0.5, 3.0),
)


@dataclass
class Biosphere:
    """Life on one planet, summarised by its dominant species."""

    genome: Genome
    complexity: float
    stage: str
    species_count: int
    biomass: float
    has_technology: bool
    mutation_rate: float
    lineage_id: str
    life_age: float

    @property
    def civilization(self) -> bool:
        return self.has_technology


def complexity_ceiling(planet_type: PlanetType) -> float:
    return COMPLEXITY_CEILING.get(planet_type, DEFAULT_COMPLEXITY_CEILING)


def life_probability(planet: Planet, life_age: float, p_min: float, p_max: float) -> float:
    """Emergence probability for ``planet`` after ``life_age`` Gyr of opportunity."""
    if not planet.has_water:
        return DRY_WORLD_PROBABILITY
    dt = planet.surface_temperature - OPTIMAL_LIFE_TEMP
    suitability = math.exp(-dt * dt / TEMPERATURE_TOLERANCE)
    multiplier = LIFE_TYPE_MULTIPLIER.get(planet.planet_type, OTHER_TYPE_MULTIPLIER)
    time_factor = 1.0 - math.exp(-EMERGENCE_RATE * max(life_age, 0.0))
    return clamp(BASE_LIFE_RATE * suitability * multiplier * time_factor, p_min, p_max)


def life_possible(planet: Planet) -> bool:
    """Preconditions for drawing life at all: habitable temperatures and an atmosphere.

    Water is folded into the probability instead.
    """
    return planet.atmosphere.present and HABITABLE_MIN_TEMP < planet.surface_temperature < HABITABLE_MAX_TEMP


def evolve_complexity(life_age: float, planet_type: PlanetType, rng: np.random.Generator):
    """Run the stage sequence and return ``(complexity, stage_name)``."""
    complexity = 0.0
    reached = COMPLEXITY_STAGES[0].name
    for stage in COMPLEXITY_STAGES:
        if life_age < stage.min_age:
            break
        if stage.probability < 1.0 and rng.random() >= stage.probability:
            break
        complexity = stage.base + min((life_age - stage.min_age) * stage.rate, stage.span)
        reached = stage.name
    return min(complexity, complexity_ceiling(planet_type)), reached


def species_estimate(complexity: float, rng: np.random.Generator) -> int:
    return max(1, int(10.0 ** (1.0 + complexity * 0.6) * rng.uniform(0.5, 1.5)))


def biomass_estimate(complexity: float, planet_mass: float, rng: np.random.Generator) -> float:
    """Total biomass in units of Earth's biosphere."""
    return float(planet_mass * (0.01 + complexity / 10.0) * rng.uniform(0.1, 2.0))


def has_technology(genome: Genome, complexity: float) -> bool:
    return genome.cognition > TECHNOLOGY_COGNITION and complexity >= TECHNOLOGY_COMPLEXITY


def draw_emergence(planet: Planet, universe_age: float, p_min: float, p_max: float,
                   rng: np.random.Generator) -> Optional[float]:
    """Decide whether life emerged on ``planet``.

    Returns:
        The time since emergence became possible (Gyr) if life is
        present, otherwise None.
    """
    life_age = universe_age - LIFE_ONSET_AGE
    if life_age <= 0.0 or not life_possible(planet):
        return None
    if rng.random() >= life_probability(planet, life_age, p_min, p_max):
        return None
    return life_age
