"""
Region data model.

The universe is partitioned into a fixed 8 x 8 x 8 grid of cubic regions,
100 Mpc on a side and centred on the origin. Every region always carries
a scalar summary (density, temperature, composition, dark-matter
fraction, star and planet estimates). Generated sub-entities live in an
optional ``RegionDetail`` whose content is a pure function of the
region's seed and the age at which its statistics were computed, so it
can be dropped on demotion and regenerated identically later.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from typing import Dict, Iterator, List, Optional, Tuple

import numpy as np

from . import cosmology
from .rng import derive_seed
from .types import GridCoord, LodLevel, Vec3, clamp

#: Regions per axis
GRID_SIZE = 8

#: Side of a region cube (Mpc)
REGION_SIZE = 100.0

REGION_VOLUME = REGION_SIZE ** 3

#: Lower corner of the grid; the grid spans [-400, 400) on every axis
GRID_ORIGIN = -GRID_SIZE * REGION_SIZE / 2.0

DENSITY_SIGMA = 0.5
DENSITY_MIN = 0.3
DENSITY_MAX = 3.0

#: Mean number of planets per star used for the statistical estimate
MEAN_PLANETS_PER_STAR = 5.5


def region_center(coord: GridCoord) -> Vec3:
    return tuple(c * REGION_SIZE + GRID_ORIGIN + REGION_SIZE / 2.0 for c in coord)


def coord_for_position(position: Vec3) -> Optional[GridCoord]:
    """Grid coordinate containing ``position``, or None outside the grid."""
    coord = tuple(int(math.floor((p - GRID_ORIGIN) / REGION_SIZE)) for p in position)
    if all(0 <= c < GRID_SIZE for c in coord):
        return coord
    return None


def grid_coords() -> Iterator[GridCoord]:
    for x in range(GRID_SIZE):
        for y in range(GRID_SIZE):
            for z in range(GRID_SIZE):
                yield (x, y, z)


def region_seed(base_seed: int, cycle: int, coord: GridCoord) -> int:
    return derive_seed(base_seed, "region", cycle, *coord)


def sample_density(seed: int) -> float:
    """Seeded log-normal density ratio around the cosmic mean."""
    rng = np.random.default_rng(seed)
    return clamp(math.exp(DENSITY_SIGMA * float(rng.standard_normal())), DENSITY_MIN, DENSITY_MAX)


@dataclass(frozen=True)
class RegionSummary:
    """Immutable scalar view of a region, the only input to generation."""

    coord: GridCoord
    seed: int
    cycle: int
    stats_age: float
    density: float
    temperature: float
    composition: Tuple[float, float, float]
    dark_matter_fraction: float
    star_count: int

    @property
    def center(self) -> Vec3:
        return region_center(self.coord)


@dataclass
class RegionDetail:
    """Generated sub-entities of a region.

    ``mass_points`` holds (x, y, z, mass) tuples from the galactic level;
    ``stars`` is populated from the stellar level upward. Each star's
    planets are expanded from the planetary level, and planets carry a
    biosphere only at the biosphere level.
    """

    lod: LodLevel
    stats_age: float
    mass_points: Tuple[Tuple[float, float, float, float], ...] = ()
    stars: Optional[List["Star"]] = None

    def truncated(self, lod: LodLevel) -> Optional["RegionDetail"]:
        """Return a copy holding only what ``lod`` requires."""
        if lod <= LodLevel.STATISTICAL:
            return None
        if lod >= self.lod:
            return self
        stars = None
        if lod >= LodLevel.STELLAR and self.stars is not None:
            stars = [_truncate_star(s, lod) for s in self.stars]
        return RegionDetail(lod=lod, stats_age=self.stats_age, mass_points=self.mass_points, stars=stars)

    def planets(self) -> Iterator[Tuple["Star", "Planet"]]:
        for star in self.stars or ():
            for planet in star.planets or ():
                yield star, planet


def _truncate_star(star, lod: LodLevel):
    if lod < LodLevel.PLANETARY or star.planets is None:
        return replace(star, planets=None)
    if lod < LodLevel.BIOSPHERE:
        return replace(star, planets=[replace(p, life=None) for p in star.planets])
    return star


@dataclass
class Region:
    """One grid cell of the universe.

    The scalar fields are the statistical summary and survive demotion;
    ``detail`` is discarded above the current level of detail.
    """

    coord: GridCoord
    seed: int
    cycle: int = 1
    lod: LodLevel = LodLevel.STATISTICAL
    density: float = 1.0
    temperature: float = cosmology.QUARK_GLUON_PLASMA_TEMPERATURE
    composition: Tuple[float, float, float] = (cosmology.PRIMORDIAL_HYDROGEN, cosmology.PRIMORDIAL_HELIUM, 0.0)
    dark_matter_fraction: float = 0.27
    star_count: int = 0
    planet_estimate: int = 0
    has_life: bool = False
    stats_age: float = 0.0
    detail: Optional[RegionDetail] = None

    @classmethod
    def create(cls, base_seed: int, cycle: int, coord: GridCoord, age: float,
               dark_matter_fraction: float) -> "Region":
        seed = region_seed(base_seed, cycle, coord)
        region = cls(coord=coord, seed=seed, cycle=cycle, density=sample_density(seed),
                     dark_matter_fraction=dark_matter_fraction)
        region.refresh_stats(age)
        return region

    @property
    def center(self) -> Vec3:
        return region_center(self.coord)

    def refresh_stats(self, age: float) -> None:
        """Recompute the age-dependent scalars; density stays fixed."""
        self.stats_age = age
        self.composition = cosmology.chemical_composition(age)
        self.temperature = cosmology.cosmic_temperature(age)
        self.star_count = cosmology.estimate_stars(self.density, REGION_VOLUME, age)
        self.planet_estimate = int(self.star_count * MEAN_PLANETS_PER_STAR)

    def summary(self) -> RegionSummary:
        return RegionSummary(
            coord=self.coord,
            seed=self.seed,
            cycle=self.cycle,
            stats_age=self.stats_age,
            density=self.density,
            temperature=self.temperature,
            composition=self.composition,
            dark_matter_fraction=self.dark_matter_fraction,
            star_count=self.star_count,
        )

    def publish(self, detail: Optional[RegionDetail]) -> None:
        """Swap in new detail and its level of detail together."""
        self.detail = detail
        self.lod = detail.lod if detail is not None else LodLevel.STATISTICAL
        if detail is not None and any(p.life is not None for _, p in detail.planets()):
            self.has_life = True

    def reset(self, base_seed: int, cycle: int, dark_matter_fraction: float) -> None:
        """Return to a fresh statistical region for a new universe cycle."""
        self.cycle = cycle
        self.seed = region_seed(base_seed, cycle, self.coord)
        self.density = sample_density(self.seed)
        self.dark_matter_fraction = dark_matter_fraction
        self.has_life = False
        self.publish(None)
        self.refresh_stats(0.0)


def create_regions(base_seed: int, cycle: int, age: float,
                   dark_matter_fraction: float) -> Dict[GridCoord, Region]:
    return {
        coord: Region.create(base_seed, cycle, coord, age, dark_matter_fraction)
        for coord in grid_coords()
    }


@dataclass
class RegionTotals:
    regions: int = 0
    stars_estimated: int = 0
    planets_estimated: int = 0
    stars_generated: int = 0
    planets_generated: int = 0
    regions_with_life: int = 0
    by_lod: Dict[str, int] = field(default_factory=dict)
