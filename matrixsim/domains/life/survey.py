"""
Monte Carlo survey of life across universes.

``survey_universes`` builds the region grid of several universes with
consecutive seeds and, at each sampled age, expands the densest regions
of each one to the biosphere level. Every biosphere found is recorded as
a ``Sighting`` with its host star and planet. No particles are spawned
and no clock runs, so a survey is cheap compared to a simulation, and it
is as deterministic as the cascade itself.

``summarize`` folds the per-universe results into a census: how many
universes developed life or civilizations, the substrate breakdown, and
a diverse selection of the most remarkable life forms ranked by
``Sighting.uniqueness_score``.
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field, replace
from typing import Dict, Iterable, List, Optional, Sequence, Tuple, Union

from ...core.config import SimConfig
from ...core.region import create_regions
from ...core.types import GridCoord, LodLevel
from ..astro.planets import PlanetType
from ..astro.stars import SpectralClass
from ..cascade import CascadeParams, generate_detail
from .biosphere import Biosphere
from .genome import BodyStructure, Substrate

logger = logging.getLogger(__name__)

#: Universe ages (Gyr) sampled when none are given
SURVEY_AGES = (8.0, 10.0, 13.8, 18.0, 25.0, 30.0)

#: Densest regions expanded per universe and age
SAMPLE_REGIONS = 20

#: Size of the diverse selection made by ``select_remarkable``
REMARKABLE_COUNT = 12


@dataclass(frozen=True)
class Sighting:
    """One biosphere found by a survey, with where and when it was found."""

    seed: int
    age: float
    coord: GridCoord
    star_index: int
    planet_index: int
    spectral_class: SpectralClass
    planet_type: PlanetType
    biosphere: Biosphere

    @property
    def uniqueness_score(self) -> float:
        """How remarkable this life form is.

        Favours complexity, exotic chemistry, large bodies, rich senses,
        minds, collectives, technology and multicellular body plans.
        """
        g = self.biosphere.genome
        score = max(g.size_log + 3.0, 0.0) * 3.0
        score += len(g.sense_list()) * 3.0
        score += g.cognition * 40.0 + g.collective * 10.0
        score += self.biosphere.complexity * 5.0
        if g.substrate >= Substrate.HYDROCARBON:
            score += 15.0
        if g.structure >= BodyStructure.RADIAL:
            score += 10.0
        if self.biosphere.has_technology:
            score += 50.0
        return score


@dataclass
class SurveyResult:
    seed: int
    ages: Tuple[float, ...]
    regions: List[GridCoord] = field(default_factory=list)
    stars: int = 0
    planets: int = 0
    habitable_planets: int = 0
    sightings: List[Sighting] = field(default_factory=list)

    @property
    def biospheres(self) -> List[Biosphere]:
        return [s.biosphere for s in self.sightings]

    @property
    def has_life(self) -> bool:
        return bool(self.sightings)

    @property
    def civilizations(self) -> int:
        return sum(1 for s in self.sightings if s.biosphere.has_technology)

    @property
    def max_complexity(self) -> float:
        return max((s.biosphere.complexity for s in self.sightings), default=0.0)

    def substrate_counts(self) -> Dict[Substrate, int]:
        return dict(Counter(s.biosphere.genome.substrate for s in self.sightings))


@dataclass
class SurveySummary:
    universes: int = 0
    universes_with_life: int = 0
    universes_with_civilizations: int = 0
    life_planets: int = 0
    civilizations: int = 0
    substrate_counts: Dict[Substrate, int] = field(default_factory=dict)
    remarkable: List[Sighting] = field(default_factory=list)


def _as_ages(ages: Union[float, Sequence[float]]) -> Tuple[float, ...]:
    if isinstance(ages, (int, float)):
        return (float(ages),)
    return tuple(float(a) for a in ages)


def survey_universe(config: SimConfig, ages: Union[float, Sequence[float]] = SURVEY_AGES,
                    sample_regions: int = SAMPLE_REGIONS) -> SurveyResult:
    """Expand the ``sample_regions`` densest regions of one universe at each age."""
    config.validate()
    if sample_regions < 1:
        raise ValueError(f"sample_regions must be at least 1, got {sample_regions}")
    params = CascadeParams.from_config(config)
    result = SurveyResult(seed=config.seed, ages=_as_ages(ages))
    for age in result.ages:
        regions = create_regions(config.seed, 1, age, config.dark_matter_fraction)
        densest = sorted(regions.values(), key=lambda r: (r.density, r.coord), reverse=True)[:sample_regions]
        if not result.regions:
            result.regions = [r.coord for r in densest]
        for region in densest:
            detail = generate_detail(region.summary(), LodLevel.BIOSPHERE, params)
            for star, planet in detail.planets():
                result.planets += 1
                result.habitable_planets += int(planet.habitable)
                if planet.life is not None:
                    result.sightings.append(Sighting(
                        seed=config.seed, age=age, coord=region.coord,
                        star_index=star.index, planet_index=planet.index,
                        spectral_class=star.spectral_class, planet_type=planet.planet_type,
                        biosphere=planet.life,
                    ))
            result.stars += len(detail.stars)
    return result


def survey_universes(n: int, base_seed: int, ages: Union[float, Sequence[float]] = SURVEY_AGES,
                     config: Optional[SimConfig] = None,
                     sample_regions: int = SAMPLE_REGIONS) -> List[SurveyResult]:
    """Survey ``n`` universes seeded ``base_seed``, ``base_seed + 1``, ...

    Args:
        n: Number of universes.
        base_seed: Seed of the first universe.
        ages: Universe age, or ages, (Gyr) at which regions are expanded.
        config: Template for the generation options; only its seed is
            replaced.
        sample_regions: Densest regions expanded per universe and age.

    Returns:
        One result per universe, in seed order.
    """
    if n < 0:
        raise ValueError(f"n must be non-negative, got {n}")
    template = config or SimConfig()
    results = []
    for i in range(n):
        result = survey_universe(replace(template, seed=base_seed + i), ages, sample_regions)
        logger.info("Survey seed %d: %d stars, %d planets, %d with life, %d civilizations",
                    result.seed, result.stars, result.planets, len(result.sightings),
                    result.civilizations)
        results.append(result)
    return results


def select_remarkable(sightings: Iterable[Sighting], limit: int = REMARKABLE_COUNT) -> List[Sighting]:
    """Pick the highest scoring sightings, at most one per (substrate, structure) pair."""
    ranked = sorted(sightings, key=lambda s: (-s.uniqueness_score, s.seed, s.age, s.biosphere.lineage_id))
    selected = []
    seen = set()
    for sighting in ranked:
        genome = sighting.biosphere.genome
        key = (genome.substrate, genome.structure)
        if key in seen:
            continue
        seen.add(key)
        selected.append(sighting)
        if len(selected) >= limit:
            break
    return selected


def summarize(results: Sequence[SurveyResult], limit: int = REMARKABLE_COUNT) -> SurveySummary:
    summary = SurveySummary(universes=len(results))
    substrates: Counter = Counter()
    for result in results:
        summary.universes_with_life += int(result.has_life)
        summary.universes_with_civilizations += int(result.civilizations > 0)
        summary.life_planets += len(result.sightings)
        summary.civilizations += result.civilizations
        substrates.update(result.substrate_counts())
    summary.substrate_counts = dict(substrates)
    summary.remarkable = select_remarkable((s for r in results for s in r.sightings), limit)
    logger.info("Survey of %d universes: %d with life, %d with civilizations",
                summary.universes, summary.universes_with_life, summary.universes_with_civilizations)
    return summary
