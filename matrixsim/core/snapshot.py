"""
Snapshot persistence for ``UniverseState``.

A snapshot is an opaque ``bytes`` blob: zlib-compressed JSON carrying a
format tag and version next to the encoded state. Particle columns are
stored as base64 of their raw little-endian bytes, so floats round-trip
bit for bit; every other float goes through JSON's shortest repr, which
is exact as well. Enumerations are stored by value and tuples are
rebuilt on load, so ``load_state(save_state(s)) == s`` holds for every
reachable state.

Anything wrong with a blob (bad compression, malformed JSON, wrong tag,
unsupported version, missing fields, invalid configuration) raises
``SnapshotError``.
"""

from __future__ import annotations

import base64
import json
import zlib
from typing import Any, Dict, List, Optional

import numpy as np

from .clock import UniverseClock
from .config import SimConfig
from .errors import SnapshotError
from .fabric import ParticleFabric
from .region import Region, RegionDetail
from .state import UniverseState
from .types import LodLevel, UniversePhase
from ..domains.astro.planets import AtmosphereType, Planet, PlanetType
from ..domains.astro.stars import Star
from ..domains.life.biosphere import Biosphere
from ..domains.life.genome import Genome
from ..domains.life.soul import LineageHistory, LineageRegistry, SoulLedger, SoulRecord

FORMAT_TAG = "matrixsim-snapshot"
FORMAT_VERSION = 1

#: zlib level; snapshots are written between ticks, so favour size
COMPRESSION_LEVEL = 6

_FABRIC_COLUMNS = ("position", "velocity", "mass", "kind", "temperature", "alive")


def save_state(state: UniverseState) -> bytes:
    """Serialise ``state`` into an opaque blob."""
    document = {
        "format": FORMAT_TAG,
        "version": FORMAT_VERSION,
        "state": _encode_state(state),
    }
    raw = json.dumps(document, separators=(",", ":"), allow_nan=True).encode("utf-8")
    return zlib.compress(raw, COMPRESSION_LEVEL)


def load_state(blob: bytes) -> UniverseState:
    """Rebuild a ``UniverseState`` from a blob written by ``save_state``."""
    try:
        document = json.loads(zlib.decompress(blob).decode("utf-8"))
    except (zlib.error, UnicodeDecodeError, ValueError, TypeError) as exc:
        raise SnapshotError(f"snapshot is not readable: {exc}") from exc
    if not isinstance(document, dict) or document.get("format") != FORMAT_TAG:
        raise SnapshotError("not a matrixsim snapshot")
    version = document.get("version")
    if version != FORMAT_VERSION:
        raise SnapshotError(f"unsupported snapshot version {version!r} (expected {FORMAT_VERSION})")
    try:
        return _decode_state(document["state"])
    except SnapshotError:
        raise
    except (KeyError, IndexError, TypeError, ValueError, AttributeError) as exc:
        raise SnapshotError(f"snapshot is malformed: {exc!r}") from exc


# ----------------------------------------------------------------------
# Encoding


def _encode_array(array: np.ndarray) -> Dict[str, Any]:
    array = np.ascontiguousarray(array)
    return {
        "dtype": array.dtype.str,
        "shape": list(array.shape),
        "data": base64.b64encode(array.tobytes()).decode("ascii"),
    }


def _encode_state(state: UniverseState) -> Dict[str, Any]:
    clock = state.clock
    return {
        "config": state.config.to_dict(),
        "clock": {
            "age": clock.age,
            "phase": int(clock.phase),
            "scale_factor": clock.scale_factor,
            "hubble": clock.hubble,
            "temperature": clock.temperature,
            "entropy": clock.entropy,
            "kinetic_temperature": clock.kinetic_temperature,
            "cycle": clock.cycle,
            "tick": clock.tick,
        },
        "fabric": {name: _encode_array(getattr(state.fabric, name)) for name in _FABRIC_COLUMNS},
        "regions": [_encode_region(r) for r in state.regions.values()],
        "ledger": [_encode_soul(r) for r in state.ledger.records.values()],
        "lineages": [_encode_history(h) for h in state.lineages.histories.values()],
        "time_scale": state.time_scale,
        "paused": state.paused,
        "gravity_dt": state.gravity_dt,
        "ticks_since_gravity": state.ticks_since_gravity,
    }


def _encode_region(region: Region) -> Dict[str, Any]:
    detail = region.detail
    return {
        "coord": list(region.coord),
        "seed": region.seed,
        "cycle": region.cycle,
        "lod": int(region.lod),
        "density": region.density,
        "temperature": region.temperature,
        "composition": list(region.composition),
        "dark_matter_fraction": region.dark_matter_fraction,
        "star_count": region.star_count,
        "planet_estimate": region.planet_estimate,
        "has_life": region.has_life,
        "stats_age": region.stats_age,
        "detail": None if detail is None else {
            "lod": int(detail.lod),
            "stats_age": detail.stats_age,
            "mass_points": [list(p) for p in detail.mass_points],
            "stars": None if detail.stars is None else [_encode_star(s) for s in detail.stars],
        },
    }


def _encode_star(star: Star) -> Dict[str, Any]:
    return {
        "index": star.index,
        "position": list(star.position),
        "velocity": list(star.velocity),
        "mass": star.mass,
        "luminosity": star.luminosity,
        "surface_temperature": star.surface_temperature,
        "age": star.age,
        "planet_count": star.planet_count,
        "planets": None if star.planets is None else [_encode_planet(p) for p in star.planets],
    }


def _encode_planet(planet: Planet) -> Dict[str, Any]:
    life = planet.life
    return {
        "index": planet.index,
        "orbital_radius": planet.orbital_radius,
        "orbital_period": planet.orbital_period,
        "orbital_angle": planet.orbital_angle,
        "mass": planet.mass,
        "radius": planet.radius,
        "surface_temperature": planet.surface_temperature,
        "has_water": planet.has_water,
        "planet_type": planet.planet_type.value,
        "atmosphere": planet.atmosphere.value,
        "life": None if life is None else {
            "genome": list(life.genome.traits()),
            "complexity": life.complexity,
            "stage": life.stage,
            "species_count": life.species_count,
            "biomass": life.biomass,
            "has_technology": life.has_technology,
            "mutation_rate": life.mutation_rate,
            "lineage_id": life.lineage_id,
            "life_age": life.life_age,
        },
    }


def _encode_soul(record: SoulRecord) -> Dict[str, Any]:
    return {
        "lineage_id": record.lineage_id,
        "lifespan": record.lifespan,
        "stability": list(record.stability),
        "conditions": list(record.conditions),
        "traits": list(record.traits.traits()),
        "cycles": record.cycles,
    }


def _encode_history(history: LineageHistory) -> Dict[str, Any]:
    return {
        "lineage_id": history.lineage_id,
        "genomes": [list(g.traits()) for g in history.genomes],
        "lifespan": history.lifespan,
        "conditions": list(history.conditions),
        "mutations": list(history.mutations),
    }


# ----------------------------------------------------------------------
# Decoding


def _decode_array(data: Dict[str, Any]) -> np.ndarray:
    raw = base64.b64decode(data["data"], validate=True)
    return np.frombuffer(raw, dtype=np.dtype(data["dtype"])).reshape(data["shape"]).copy()


def _decode_state(data: Dict[str, Any]) -> UniverseState:
    config = SimConfig.from_dict(data["config"])
    config.validate()

    c = data["clock"]
    clock = UniverseClock(
        age=c["age"],
        phase=UniversePhase(c["phase"]),
        scale_factor=c["scale_factor"],
        hubble=c["hubble"],
        temperature=c["temperature"],
        entropy=c["entropy"],
        kinetic_temperature=c["kinetic_temperature"],
        cycle=c["cycle"],
        tick=c["tick"],
    )

    columns = {name: _decode_array(data["fabric"][name]) for name in _FABRIC_COLUMNS}
    n = len(columns["mass"])
    if any(len(col) != n for col in columns.values()):
        raise SnapshotError("particle columns have mismatched lengths")
    fabric = ParticleFabric(**columns)

    regions = {}
    for entry in data["regions"]:
        region = _decode_region(entry)
        regions[region.coord] = region

    ledger = SoulLedger()
    for entry in data["ledger"]:
        record = _decode_soul(entry)
        ledger.records[record.lineage_id] = record

    lineages = LineageRegistry()
    for entry in data["lineages"]:
        history = _decode_history(entry)
        lineages.histories[history.lineage_id] = history

    return UniverseState(
        config=config,
        clock=clock,
        fabric=fabric,
        regions=regions,
        ledger=ledger,
        lineages=lineages,
        time_scale=data["time_scale"],
        paused=data["paused"],
        gravity_dt=data["gravity_dt"],
        ticks_since_gravity=data["ticks_since_gravity"],
    )


def _decode_region(data: Dict[str, Any]) -> Region:
    detail = data["detail"]
    return Region(
        coord=tuple(data["coord"]),
        seed=data["seed"],
        cycle=data["cycle"],
        lod=LodLevel(data["lod"]),
        density=data["density"],
        temperature=data["temperature"],
        composition=tuple(data["composition"]),
        dark_matter_fraction=data["dark_matter_fraction"],
        star_count=data["star_count"],
        planet_estimate=data["planet_estimate"],
        has_life=data["has_life"],
        stats_age=data["stats_age"],
        detail=None if detail is None else RegionDetail(
            lod=LodLevel(detail["lod"]),
            stats_age=detail["stats_age"],
            mass_points=tuple(tuple(p) for p in detail["mass_points"]),
            stars=_optional_list(detail["stars"], _decode_star),
        ),
    )


def _optional_list(items: Optional[List[Any]], decode) -> Optional[List[Any]]:
    return None if items is None else [decode(item) for item in items]


def _decode_star(data: Dict[str, Any]) -> Star:
    return Star(
        index=data["index"],
        position=tuple(data["position"]),
        velocity=tuple(data["velocity"]),
        mass=data["mass"],
        luminosity=data["luminosity"],
        surface_temperature=data["surface_temperature"],
        age=data["age"],
        planet_count=data["planet_count"],
        planets=_optional_list(data["planets"], _decode_planet),
    )


def _decode_planet(data: Dict[str, Any]) -> Planet:
    life = data["life"]
    return Planet(
        index=data["index"],
        orbital_radius=data["orbital_radius"],
        orbital_period=data["orbital_period"],
        orbital_angle=data["orbital_angle"],
        mass=data["mass"],
        radius=data["radius"],
        surface_temperature=data["surface_temperature"],
        has_water=data["has_water"],
        planet_type=PlanetType(data["planet_type"]),
        atmosphere=AtmosphereType(data["atmosphere"]),
        life=None if life is None else Biosphere(
            genome=Genome.from_traits(life["genome"]),
            complexity=life["complexity"],
            stage=life["stage"],
            species_count=life["species_count"],
            biomass=life["biomass"],
            has_technology=life["has_technology"],
            mutation_rate=life["mutation_rate"],
            lineage_id=life["lineage_id"],
            life_age=life["life_age"],
        ),
    )


def _decode_soul(data: Dict[str, Any]) -> SoulRecord:
    return SoulRecord(
        lineage_id=data["lineage_id"],
        lifespan=data["lifespan"],
        stability=tuple(data["stability"]),
        conditions=tuple(data["conditions"]),
        traits=Genome.from_traits(data["traits"]),
        cycles=data["cycles"],
    )


def _decode_history(data: Dict[str, Any]) -> LineageHistory:
    return LineageHistory(
        lineage_id=data["lineage_id"],
        genomes=[Genome.from_traits(g) for g in data["genomes"]],
        lifespan=data["lifespan"],
        conditions=tuple(data["conditions"]),
        mutations=list(data["mutations"]),
    )
