"""
Lineages, souls and the cross-cycle soul ledger.

A lineage is identified by its ancestry slot (region coordinate, star
index, planet index), which is stable across universe cycles. While a
cycle runs, the ``LineageRegistry`` records every genome generated for a
lineage. At collapse each lineage with a nonzero lifespan is condensed
into a ``SoulRecord``:

    lifespan    the longest time the lineage was observed alive (Gyr)
    stability   per axis, (transitions - mutations + 1) / (transitions + 2)
    conditions  tags for the extreme environments it lived through
    traits      its last observed genome

Records are merged into the ``SoulLedger``, the only state that survives
rebirth. Merging sums lifespans, averages stability over the number of
merged cycles, unions the condition tags and keeps the newest traits.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Dict, Iterable, List, Optional, Tuple

from ...core.types import GridCoord
from ..astro.planets import AtmosphereType, Planet, PlanetType
from .genome import AXES, Genome

logger = logging.getLogger(__name__)

HOT_CONDITION_TEMP = 350.0
COLD_CONDITION_TEMP = 230.0
HIGH_GRAVITY_MASS = 5.0
ANCIENT_LIFESPAN = 4.0


def lineage_id(coord: GridCoord, star_index: int, planet_index: int) -> str:
    x, y, z = coord
    return f"r{x}{y}{z}/s{star_index}/p{planet_index}"


def condition_tags(planet: Planet, lifespan: float) -> Tuple[str, ...]:
    """Extreme conditions a lineage on ``planet`` has survived, sorted."""
    tags = set()
    if planet.surface_temperature > HOT_CONDITION_TEMP:
        tags.add("hot")
    if planet.surface_temperature < COLD_CONDITION_TEMP:
        tags.add("cold")
    if planet.planet_type is PlanetType.OCEAN:
        tags.add("ocean")
    if planet.atmosphere is not AtmosphereType.NITROGEN_OXYGEN:
        tags.add("no_oxygen")
    if planet.atmosphere is AtmosphereType.THIN_CO2:
        tags.add("thin_atmosphere")
    if planet.mass > HIGH_GRAVITY_MASS:
        tags.add("high_gravity")
    if lifespan > ANCIENT_LIFESPAN:
        tags.add("ancient")
    return tuple(sorted(tags))


# ----------------------------------------------------------------------
# Per-cycle registry


@dataclass
class LineageHistory:
    """Everything observed for one lineage during the current cycle."""

    lineage_id: str
    genomes: List[Genome] = field(default_factory=list)
    lifespan: float = 0.0
    conditions: Tuple[str, ...] = ()
    mutations: List[int] = field(default_factory=lambda: [0] * len(AXES))

    @property
    def transitions(self) -> int:
        return max(len(self.genomes) - 1, 0)

    def stability(self) -> Tuple[float, ...]:
        t = self.transitions
        return tuple((t - m + 1) / (t + 2) for m in self.mutations)


@dataclass
class LineageRegistry:
    """Lineages observed in the current cycle, keyed by lineage id."""

    histories: Dict[str, LineageHistory] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.histories)

    def __contains__(self, key: str) -> bool:
        return key in self.histories

    def get(self, key: str) -> Optional[LineageHistory]:
        return self.histories.get(key)

    def observe(self, key: str, genome: Genome, lifespan: float, conditions: Iterable[str]) -> bool:
        """Record a genome generated for lineage ``key``.

        Regenerating identical detail (same genome and lifespan) is not a
        new generation and is ignored. Returns True if the observation was
        recorded.
        """
        history = self.histories.get(key)
        if history is None:
            history = self.histories[key] = LineageHistory(key)
        elif history.genomes and history.genomes[-1] == genome and history.lifespan == lifespan:
            return False
        if history.genomes:
            previous = history.genomes[-1]
            for i, name in enumerate(AXES):
                if getattr(previous, name) != getattr(genome, name):
                    history.mutations[i] += 1
        history.genomes.append(genome)
        history.lifespan = max(history.lifespan, lifespan)
        history.conditions = tuple(sorted(set(history.conditions) | set(conditions)))
        return True

    def contributions(self) -> List["SoulRecord"]:
        """Soul contributions of every lineage with a nonzero lifespan."""
        return [
            SoulRecord(
                lineage_id=h.lineage_id,
                lifespan=h.lifespan,
                stability=h.stability(),
                conditions=h.conditions,
                traits=h.genomes[-1],
                cycles=1,
            )
            for h in self.histories.values()
            if h.lifespan > 0.0 and h.genomes
        ]

    def clear(self) -> None:
        self.histories.clear()


# ----------------------------------------------------------------------
# Cross-cycle ledger


@dataclass(frozen=True)
class SoulRecord:
    lineage_id: str
    lifespan: float
    stability: Tuple[float, ...]
    conditions: Tuple[str, ...]
    traits: Genome
    cycles: int = 1

    def merged_with(self, newer: "SoulRecord") -> "SoulRecord":
        """Fold a newer contribution into this record."""
        total = self.cycles + newer.cycles
        stability = tuple(
            (old * self.cycles + new * newer.cycles) / total
            for old, new in zip(self.stability, newer.stability)
        )
        return replace(
            self,
            lifespan=self.lifespan + newer.lifespan,
            stability=stability,
            conditions=tuple(sorted(set(self.conditions) | set(newer.conditions))),
            traits=newer.traits,
            cycles=total,
        )


@dataclass
class SoulLedger:
    """Merge-only store of soul records keyed by lineage id."""

    records: Dict[str, SoulRecord] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.records)

    def __contains__(self, key: str) -> bool:
        return key in self.records

    def get(self, key: str) -> Optional[SoulRecord]:
        return self.records.get(key)

    def merge(self, contribution: SoulRecord) -> SoulRecord:
        current = self.records.get(contribution.lineage_id)
        merged = contribution if current is None else current.merged_with(contribution)
        self.records[contribution.lineage_id] = merged
        return merged

    def merge_all(self, contributions: Iterable[SoulRecord]) -> int:
        count = 0
        for contribution in contributions:
            self.merge(contribution)
            count += 1
        logger.debug("Merged %d soul contributions, ledger holds %d records", count, len(self.records))
        return count

    def snapshot(self) -> Dict[str, SoulRecord]:
        """Read-only view for background generation.

        Records are frozen, so a shallow copy of the mapping is enough.
        """
        return dict(self.records)
