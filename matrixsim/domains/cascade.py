"""
Procedural generation cascade: region -> stars -> planets -> life -> genome.

``generate_detail`` is a pure function of an immutable region summary,
the generation parameters and a read-only snapshot of the soul ledger.
Every entity draws from its own stream, derived from the region seed
(which already encodes the global seed, the universe cycle and the grid
coordinate) plus the entity's indices:

    ("galactic",)           coarse mass points
    ("star", i)             star i
    ("planet", i, j)        planet j of star i
    ("life", i, j)          emergence, complexity and biosphere scalars
    ("genome", i, j)        genome synthesis and repair

Star i is therefore the same star whether it is generated alone, with
999 siblings, at the stellar level or at the biosphere level, and
regenerating a region in any order or on any thread gives bit-identical
output.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional

import numpy as np

from ..core import cosmology
from ..core.config import SimConfig
from ..core.region import REGION_SIZE, REGION_VOLUME, RegionDetail, RegionSummary
from ..core.rng import SeedFabric
from ..core.types import LodLevel
from .astro.planets import Planet, generate_planet
from .astro.stars import Star, generate_star
from .life.biosphere import (
    Biosphere,
    biomass_estimate,
    draw_emergence,
    evolve_complexity,
    has_technology,
    species_estimate,
)
from .life.genome import Habitat, synthesize_genome
from .life.soul import SoulRecord, lineage_id

logger = logging.getLogger(__name__)

#: Total galactic mass of a region of average density (10^10 Msun)
GALACTIC_MASS_PER_DENSITY = 1e4


@dataclass(frozen=True)
class CascadeParams:
    """Generation options taken from the configuration."""

    max_stars_per_region: int = 1000
    galactic_mass_points: int = 100
    life_probability_min: float = 1e-7
    life_probability_max: float = 0.15

    @classmethod
    def from_config(cls, config: SimConfig) -> "CascadeParams":
        return cls(
            max_stars_per_region=config.max_stars_per_region,
            galactic_mass_points=config.galactic_mass_points,
            life_probability_min=config.life_probability_min,
            life_probability_max=config.life_probability_max,
        )


def generated_star_count(summary: RegionSummary, params: CascadeParams) -> int:
    estimate = cosmology.estimate_stars(summary.density, REGION_VOLUME, summary.stats_age)
    return min(estimate, params.max_stars_per_region)


def generate_mass_points(summary: RegionSummary, params: CascadeParams, streams: SeedFabric):
    rng = streams.stream("galactic")
    n = params.galactic_mass_points
    half = REGION_SIZE / 2.0
    offsets = rng.uniform(-half, half, (n, 3)) + np.asarray(summary.center)
    weights = rng.uniform(0.5, 1.5, n)
    masses = weights / weights.sum() * summary.density * GALACTIC_MASS_PER_DENSITY
    return tuple(
        (float(p[0]), float(p[1]), float(p[2]), float(m)) for p, m in zip(offsets, masses)
    )


def generate_stars(summary: RegionSummary, params: CascadeParams, streams: SeedFabric) -> List[Star]:
    return [
        generate_star(i, summary.center, REGION_SIZE, summary.stats_age, streams.stream("star", i))
        for i in range(generated_star_count(summary, params))
    ]


def generate_planets(star: Star, streams: SeedFabric) -> List[Planet]:
    return [
        generate_planet(j, star.luminosity, streams.stream("planet", star.index, j))
        for j in range(star.planet_count)
    ]


def generate_life(summary: RegionSummary, star: Star, planet: Planet, params: CascadeParams,
                  streams: SeedFabric, ledger: Mapping[str, SoulRecord]) -> Optional[Biosphere]:
    """Decide emergence on ``planet`` and, if life is present, build its biosphere."""
    rng = streams.stream("life", star.index, planet.index)
    life_age = draw_emergence(planet, summary.stats_age, params.life_probability_min,
                              params.life_probability_max, rng)
    if life_age is None:
        return None
    complexity, stage = evolve_complexity(life_age, planet.planet_type, rng)
    lid = lineage_id(summary.coord, star.index, planet.index)
    habitat = Habitat(
        planet_type=planet.planet_type,
        surface_temperature=planet.surface_temperature,
        atmosphere=planet.atmosphere,
        complexity=complexity,
    )
    soul = ledger.get(lid)
    genome = synthesize_genome(
        streams.stream("genome", star.index, planet.index),
        habitat,
        prior=soul.traits if soul is not None else None,
        stability=soul.stability if soul is not None else None,
    )
    return Biosphere(
        genome=genome,
        complexity=complexity,
        stage=stage,
        species_count=species_estimate(complexity, rng),
        biomass=biomass_estimate(complexity, planet.mass, rng),
        has_technology=has_technology(genome, complexity),
        mutation_rate=float(10.0 ** rng.uniform(-9.0, -6.0)),
        lineage_id=lid,
        life_age=life_age,
    )


def generate_detail(summary: RegionSummary, lod: LodLevel, params: CascadeParams,
                    ledger: Optional[Mapping[str, SoulRecord]] = None) -> Optional[RegionDetail]:
    """Generate everything ``lod`` requires for the summarised region.

    Args:
        summary: Immutable region scalars, including the stats age.
        lod: Target level of detail.
        params: Generation options.
        ledger: Read-only soul records keyed by lineage id, used to bias
            genome synthesis. Only read at the biosphere level.

    Returns:
        The region detail, or None for the statistical level.
    """
    lod = LodLevel(lod)
    if lod <= LodLevel.STATISTICAL:
        return None
    ledger = ledger or {}
    streams = SeedFabric(summary.seed)

    stars = None
    if lod >= LodLevel.STELLAR:
        stars = generate_stars(summary, params, streams)
        if lod >= LodLevel.PLANETARY:
            for star in stars:
                star.planets = generate_planets(star, streams)
                if lod >= LodLevel.BIOSPHERE:
                    for planet in star.planets:
                        planet.life = generate_life(summary, star, planet, params, streams, ledger)

    detail = RegionDetail(
        lod=lod,
        stats_age=summary.stats_age,
        mass_points=generate_mass_points(summary, params, streams),
        stars=stars,
    )
    logger.debug("Generated region %s at %s: %d stars", summary.coord, lod.name,
                 len(stars) if stars is not None else 0)
    return detail


def biospheres(detail: Optional[RegionDetail]) -> Dict[str, Biosphere]:
    """Map lineage id to biosphere for every living planet in ``detail``."""
    if detail is None:
        return {}
    return {p.life.lineage_id: p.life for _, p in detail.planets() if p.life is not None}
