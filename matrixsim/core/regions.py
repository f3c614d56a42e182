"""
Lazy region and level-of-detail manager.

The manager decides which level of detail each region needs for the
current observer and makes the region's ``RegionDetail`` match it:

* Promotion generates the detail with the pure cascade, either inline or
  on a background worker. Background results are published on the
  simulation thread by ``poll``; the region's detail and level are
  swapped together so partial generation is never visible.
* Demotion truncates the detail in place of regenerating it. The scalar
  summary is always kept.
* When the universe has aged by more than the configured threshold since
  a region's statistics were computed, the statistics are refreshed and
  any existing detail is regenerated at the same level.

Pending background work is keyed by region. Each entry remembers the
target level, the stats age it was generated for and the manager epoch
at submission. Rebirth and snapshot restore bump the epoch, so results
belonging to an earlier universe are never published. Abandoned
requests simply leave the region as it was and can be resubmitted.

The manager owns no universe data: it reads and writes the regions,
soul ledger and lineage registry of the ``UniverseState`` it is given.
"""

from __future__ import annotations

import logging
import math
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from typing import Dict, List, NamedTuple, Optional

from .config import SimConfig
from .fabric import ParticleFabric, spawn_region_particles
from .region import REGION_SIZE, Region, RegionDetail, RegionTotals, coord_for_position
from .types import GridCoord, LodLevel, Vec3
from ..domains.cascade import CascadeParams, generate_detail
from ..domains.life.soul import condition_tags

logger = logging.getLogger(__name__)

#: Observer within this distance of a region centre sees individual stars
STELLAR_DISTANCE = REGION_SIZE / 2.0

#: Observer within this distance sees galactic mass points
GALACTIC_DISTANCE = REGION_SIZE * 2.0


@dataclass(frozen=True)
class ObserverInput:
    """Externally driven observer position and the detail it asks for."""

    position: Vec3 = (0.0, 0.0, 0.0)
    lod_hint: LodLevel = LodLevel.STATISTICAL


class PendingGeneration(NamedTuple):
    lod: LodLevel
    stats_age: float
    epoch: int
    future: Future


class LifeEntry(NamedTuple):
    """One entry of the discovered-life catalogue."""

    lineage_id: str
    coord: GridCoord
    star_index: int
    planet_index: int
    description: str
    complexity: float
    has_technology: bool


def distance_lod(region_center: Vec3, position: Vec3) -> LodLevel:
    d = math.dist(region_center, position)
    if d < STELLAR_DISTANCE:
        return LodLevel.STELLAR
    if d < GALACTIC_DISTANCE:
        return LodLevel.GALACTIC
    return LodLevel.STATISTICAL


class RegionManager:
    """Keeps every region's generated detail at the level the observer needs."""

    def __init__(self, config: SimConfig):
        self.config = config
        self.params = CascadeParams.from_config(config)
        self.epoch = 0
        self._pending: Dict[GridCoord, PendingGeneration] = {}
        self._executor: Optional[ThreadPoolExecutor] = None
        #: Particle population of the region holding the observer, derived from its summary
        self.local_particles: Optional[ParticleFabric] = None
        self._local_key: Optional[tuple] = None

    # ------------------------------------------------------------------
    # Level selection

    def target_lod(self, region: Region, observer: ObserverInput) -> LodLevel:
        lod = distance_lod(region.center, observer.position)
        if coord_for_position(observer.position) == region.coord:
            lod = max(lod, LodLevel(observer.lod_hint))
        return lod

    def evaluate(self, state, observer: ObserverInput, background: bool = True) -> int:
        """Bring every region to the level ``observer`` needs.

        Returns the number of regions whose detail was changed or
        scheduled.
        """
        age = state.clock.age
        threshold = self.config.region_stats_age_threshold
        changes = 0
        for region in state.regions.values():
            if abs(age - region.stats_age) > threshold:
                # Existing detail is now stale and gets regenerated by request().
                region.refresh_stats(age)
            if self.request(state, region, self.target_lod(region, observer), background):
                changes += 1
        self.load_local_particles(state, observer)
        return changes

    def load_local_particles(self, state, observer: ObserverInput) -> Optional[ParticleFabric]:
        """Make ``local_particles`` the population of the region containing ``observer``.

        The population is regenerated only when the observer changes
        region or that region's statistics are refreshed. Outside the
        grid there is no local population.
        """
        coord = coord_for_position(observer.position)
        if coord is None:
            self.local_particles = None
            self._local_key = None
            return None
        region = state.regions[coord]
        key = (coord, region.seed, region.stats_age)
        if key != self._local_key:
            self.local_particles = spawn_region_particles(region.summary(), region.stats_age)
            self._local_key = key
            logger.info("Loaded %d particles for region %s", len(self.local_particles), coord)
        return self.local_particles

    def request(self, state, region: Region, lod: LodLevel, background: bool = False) -> bool:
        """Move ``region`` toward ``lod``.

        Demotion is applied at once. Promotion runs inline, or is
        submitted to a worker when ``background`` is set and the target is
        at least the stellar level. Returns True if anything changed or
        was scheduled.
        """
        lod = LodLevel(lod)
        pending = self._pending.get(region.coord)
        if pending is not None:
            if pending.lod == lod and pending.stats_age == region.stats_age:
                return False
            self._abandon(region.coord)

        current = region.detail
        up_to_date = current is not None and current.stats_age == region.stats_age
        if lod == region.lod and (up_to_date or lod == LodLevel.STATISTICAL):
            return False
        if lod < region.lod and up_to_date:
            region.publish(current.truncated(lod))
            logger.debug("Region %s demoted to %s", region.coord, lod.name)
            return True

        summary = region.summary()
        if background and lod >= LodLevel.STELLAR:
            future = self._submit(summary, lod, state.ledger.snapshot())
            self._pending[region.coord] = PendingGeneration(lod, region.stats_age, self.epoch, future)
            logger.debug("Region %s: %s generation submitted (epoch %d)", region.coord, lod.name, self.epoch)
            return True
        detail = generate_detail(summary, lod, self.params, state.ledger.snapshot())
        self._publish(state, region, detail)
        return True

    def promote(self, state, coord: GridCoord, lod: LodLevel) -> Region:
        """Generate ``coord`` at ``lod`` on the calling thread."""
        region = state.regions[coord]
        self.request(state, region, lod, background=False)
        return region

    # ------------------------------------------------------------------
    # Background generation

    def _submit(self, summary, lod: LodLevel, ledger) -> Future:
        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=self.config.background_workers,
                                                thread_name_prefix="matrixsim-gen")
        return self._executor.submit(generate_detail, summary, lod, self.params, ledger)

    def _abandon(self, coord: GridCoord) -> None:
        pending = self._pending.pop(coord, None)
        if pending is not None:
            pending.future.cancel()
            logger.debug("Region %s: abandoned %s generation", coord, pending.lod.name)

    @property
    def pending(self) -> int:
        return len(self._pending)

    def poll(self, state) -> int:
        """Publish every finished background generation. Returns the count published."""
        published = 0
        for coord, pending in list(self._pending.items()):
            if not pending.future.done():
                continue
            del self._pending[coord]
            region = state.regions[coord]
            if pending.future.cancelled() or pending.epoch != self.epoch:
                continue
            if pending.stats_age != region.stats_age:
                logger.debug("Region %s: dropping generation for stale stats", coord)
                continue
            exc = pending.future.exception()
            if exc is not None:
                logger.error("Region %s generation failed", coord, exc_info=exc)
                continue
            self._publish(state, region, pending.future.result())
            published += 1
        return published

    def drain(self, state, timeout: Optional[float] = None) -> int:
        """Wait for all pending generation, then publish it."""
        futures = [p.future for p in self._pending.values()]
        if futures:
            wait(futures, timeout=timeout)
        return self.poll(state)

    def cancel_all(self) -> None:
        """Drop all pending work and start a new epoch."""
        for pending in self._pending.values():
            pending.future.cancel()
        if self._pending:
            logger.debug("Cancelled %d pending region generations", len(self._pending))
        self._pending.clear()
        self.epoch += 1

    def shutdown(self) -> None:
        self.cancel_all()
        if self._executor is not None:
            self._executor.shutdown(wait=True, cancel_futures=True)
            self._executor = None

    # ------------------------------------------------------------------
    # Publication and rebirth

    def _publish(self, state, region: Region, detail: Optional[RegionDetail]) -> None:
        region.publish(detail)
        if detail is None:
            return
        stars = len(detail.stars) if detail.stars is not None else 0
        logger.info("Region %s loaded at %s: %d stars", region.coord, detail.lod.name, stars)
        for _, planet in detail.planets():
            life = planet.life
            if life is not None:
                state.lineages.observe(life.lineage_id, life.genome, life.life_age,
                                       condition_tags(planet, life.life_age))

    def reset_for_rebirth(self, state) -> None:
        self.cancel_all()
        self.local_particles = None
        self._local_key = None
        for region in state.regions.values():
            region.reset(self.config.seed, state.clock.cycle, self.config.dark_matter_fraction)

    # ------------------------------------------------------------------
    # Queries

    @staticmethod
    def densest_region(state) -> Region:
        return max(state.regions.values(), key=lambda r: (r.density, r.coord))

    @staticmethod
    def totals(state) -> RegionTotals:
        totals = RegionTotals(regions=len(state.regions))
        for region in state.regions.values():
            totals.stars_estimated += region.star_count
            totals.planets_estimated += region.planet_estimate
            totals.regions_with_life += int(region.has_life)
            totals.by_lod[region.lod.name] = totals.by_lod.get(region.lod.name, 0) + 1
            detail = region.detail
            if detail is not None and detail.stars is not None:
                totals.stars_generated += len(detail.stars)
                totals.planets_generated += sum(1 for _ in detail.planets())
        return totals

    @staticmethod
    def life_catalogue(state) -> List[LifeEntry]:
        entries = []
        for coord, region in state.regions.items():
            if region.detail is None:
                continue
            for star, planet in region.detail.planets():
                life = planet.life
                if life is not None:
                    entries.append(LifeEntry(life.lineage_id, coord, star.index, planet.index,
                                             life.genome.short_desc(), life.complexity,
                                             life.has_technology))
        return entries

    @classmethod
    def civilization_count(cls, state) -> int:
        return sum(1 for entry in cls.life_catalogue(state) if entry.has_technology)

