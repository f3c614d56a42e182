"""
Genome synthesis for the dominant species of a biosphere.

A genome is ten independent trait axes. Synthesis happens in two passes:

1. Draw. Each axis is drawn from its legal domain for the biosphere's
   complexity. Where the soul ledger holds a record for the lineage, an
   axis keeps its previous value with probability equal to its recorded
   stability instead of being drawn.
2. Repair. Axes are visited in ``REPAIR_PRIORITY`` order and checked
   against environmental and cross-axis constraints. An invalid axis is
   re-drawn up to ``MAX_REPAIR_ATTEMPTS`` times from the same stream; if
   it is still invalid, it falls back to the nearest valid value.

Because the priority order is fixed and every draw comes from the
planet's genome stream, repairs are reproducible.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, fields
from enum import IntEnum, IntFlag
from typing import Callable, Dict, List, NamedTuple, Optional, Sequence, Tuple

import numpy as np

from ...core.types import clamp
from ..astro.planets import AtmosphereType, PlanetType

logger = logging.getLogger(__name__)

#: Re-draws attempted per invalid axis before falling back
MAX_REPAIR_ATTEMPTS = 4

#: Cognition above this needs at least a bilateral body plan
TOOL_USE_THRESHOLD = 0.6

#: Cognition above this needs at least a radial nervous system
NERVOUS_SYSTEM_THRESHOLD = 0.2

#: Temperature above which carbon chemistry gives way to sulfur and silicon (K)
HOT_SUBSTRATE_TEMP = 350.0

#: Temperature below which only hydrocarbon solvents stay liquid (K)
CRYOGENIC_SUBSTRATE_TEMP = 100.0


class Substrate(IntEnum):
    CARBON_WATER = 0
    AMMONIA = 1
    HYDROCARBON = 2
    SILICON = 3
    SULFUR = 4
    CRYSTALLINE = 5


class BodyStructure(IntEnum):
    SINGLE_CELL = 0
    COLONIAL = 1
    SIMPLE_TISSUE = 2
    RADIAL = 3
    BILATERAL = 4
    SEGMENTED = 5
    MODULAR = 6
    DISTRIBUTED = 7


class Sense(IntFlag):
    CHEMO = 1
    THERMO = 2
    MECHANO = 4
    PHOTO = 8
    PROPRIO = 16
    ELECTRO = 32
    MAGNETO = 64


class EnergySource(IntEnum):
    CHEMOSYNTHESIS = 0
    PHOTOSYNTHESIS = 1
    THERMOSYNTHESIS = 2
    PREDATION = 3
    RADIOSYNTHESIS = 4
    PARASITISM = 5
    DETRITIVORE = 6
    OMNIVORE = 7


class Propagation(IntEnum):
    FISSION = 0
    BUDDING = 1
    SPORES = 2
    FRAGMENTATION = 3
    SEXUAL = 4
    HIVE_QUEEN = 5


class Motility(IntEnum):
    SESSILE = 0
    DRIFTING = 1
    CILIA = 2
    SWIMMING = 3
    CRAWLING = 4
    WALKING = 5
    BURROWING = 6
    FLYING = 7


class Interface(IntEnum):
    NONE = 0
    CHEMICAL_SIGNALS = 1
    TOUCH = 2
    SOUND = 3
    VISUAL_DISPLAY = 4
    ELECTRIC = 5
    SYMBOLIC_LANGUAGE = 6


@dataclass(frozen=True)
class Genome:
    """Immutable trait vector of a species."""

    substrate: Substrate
    structure: BodyStructure
    senses: int
    size_log: float
    energy_source: EnergySource
    cognition: float
    collective: float
    propagation: Propagation
    motility: Motility
    interface: Interface

    def traits(self) -> Tuple:
        """Return the axes as plain numbers in field order."""
        return tuple(
            float(v) if isinstance(v, float) else int(v)
            for v in (getattr(self, name) for name in AXES)
        )

    @classmethod
    def from_traits(cls, values: Sequence) -> "Genome":
        if len(values) != len(AXES):
            raise ValueError(f"expected {len(AXES)} trait values, got {len(values)}")
        return cls(**{name: _AXIS_TYPES[name](v) for name, v in zip(AXES, values)})

    def has_sense(self, sense: Sense) -> bool:
        return bool(self.senses & sense)

    def sense_list(self) -> List[str]:
        return [s.name.lower() for s in Sense if self.senses & s]

    @property
    def size_metres(self) -> float:
        return 10.0 ** self.size_log

    @property
    def tool_user(self) -> bool:
        return self.cognition > TOOL_USE_THRESHOLD

    def short_desc(self) -> str:
        return f"{_label(self.structure)} {_label(self.energy_source)} ({_label(self.substrate)})"

    def describe(self) -> str:
        """Multi-line human readable summary."""
        senses = ", ".join(self.sense_list()) or "none"
        return "\n".join([
            f"Substrate:   {_label(self.substrate)}",
            f"Body:        {_label(self.structure)}, ~{self.size_metres:.3g} m",
            f"Energy:      {_label(self.energy_source)}",
            f"Senses:      {senses}",
            f"Cognition:   {self.cognition:.2f}",
            f"Collective:  {self.collective:.2f}",
            f"Propagation: {_label(self.propagation)}",
            f"Motility:    {_label(self.motility)}",
            f"Interface:   {_label(self.interface)}",
        ])


def _label(member: IntEnum) -> str:
    return member.name.lower().replace("_", " ")


AXES = tuple(f.name for f in fields(Genome))

_AXIS_TYPES = {
    "substrate": Substrate,
    "structure": BodyStructure,
    "senses": int,
    "size_log": float,
    "energy_source": EnergySource,
    "cognition": float,
    "collective": float,
    "propagation": Propagation,
    "motility": Motility,
    "interface": Interface,
}

REPAIR_PRIORITY = (
    "substrate", "structure", "size_log", "energy_source", "cognition",
    "collective", "senses", "propagation", "motility", "interface",
)


@dataclass(frozen=True)
class Habitat:
    """Environment a genome must be valid for."""

    planet_type: PlanetType
    surface_temperature: float
    atmosphere: AtmosphereType
    complexity: float


# ----------------------------------------------------------------------
# Legal domains by complexity


def _by_complexity(complexity: float, table):
    for upper, value in table:
        if complexity < upper:
            return value
    return table[-1][1]


_INF = float("inf")

_STRUCTURES = (
    (1.0, (BodyStructure.SINGLE_CELL,)),
    (2.0, (BodyStructure.SINGLE_CELL, BodyStructure.COLONIAL)),
    (3.0, (BodyStructure.SINGLE_CELL, BodyStructure.COLONIAL, BodyStructure.SIMPLE_TISSUE)),
    (5.0, (BodyStructure.SIMPLE_TISSUE, BodyStructure.RADIAL, BodyStructure.BILATERAL)),
    (_INF, (BodyStructure.RADIAL, BodyStructure.BILATERAL, BodyStructure.SEGMENTED,
            BodyStructure.MODULAR, BodyStructure.DISTRIBUTED)),
)

_SIZE_RANGES = (
    (1.0, (-6.0, -4.0)),
    (2.0, (-5.0, -3.0)),
    (3.0, (-4.0, -2.0)),
    (5.0, (-3.0, 0.0)),
    (7.0, (-2.0, 1.0)),
    (_INF, (-1.0, 1.5)),
)

_ENERGY = (
    (1.5, (EnergySource.CHEMOSYNTHESIS, EnergySource.PHOTOSYNTHESIS, EnergySource.THERMOSYNTHESIS)),
    (3.0, (EnergySource.CHEMOSYNTHESIS, EnergySource.PHOTOSYNTHESIS, EnergySource.THERMOSYNTHESIS,
           EnergySource.RADIOSYNTHESIS, EnergySource.DETRITIVORE)),
    (_INF, (EnergySource.PHOTOSYNTHESIS, EnergySource.PREDATION, EnergySource.PARASITISM,
            EnergySource.DETRITIVORE, EnergySource.OMNIVORE)),
)

_COGNITION_RANGES = (
    (2.0, (0.0, 0.05)),
    (3.0, (0.0, 0.1)),
    (5.0, (0.1, 0.3)),
    (7.0, (0.2, 0.6)),
    (_INF, (0.5, 0.95)),
)

_COLLECTIVE_RANGES = (
    (1.0, (0.0, 0.0)),
    (3.0, (0.0, 0.3)),
    (5.0, (0.0, 0.6)),
    (_INF, (0.1, 1.0)),
)

# Senses unlocked as complexity passes each threshold
_SENSE_UNLOCKS = (
    (0.5, Sense.THERMO),
    (1.0, Sense.MECHANO),
    (2.0, Sense.PHOTO),
    (3.0, Sense.PROPRIO),
    (4.0, Sense.ELECTRO),
    (4.0, Sense.MAGNETO),
)

#: Chance that an unlocked optional sense is present
SENSE_PROBABILITY = 0.6

_PROPAGATION = (
    (1.0, (Propagation.FISSION,)),
    (2.0, (Propagation.FISSION, Propagation.BUDDING, Propagation.SPORES)),
    (3.0, (Propagation.BUDDING, Propagation.SPORES, Propagation.FRAGMENTATION)),
    (_INF, (Propagation.SPORES, Propagation.FRAGMENTATION, Propagation.SEXUAL, Propagation.HIVE_QUEEN)),
)

_MOTILITY = (
    (1.0, (Motility.SESSILE, Motility.DRIFTING)),
    (3.0, (Motility.SESSILE, Motility.DRIFTING, Motility.CILIA, Motility.SWIMMING)),
    (5.0, (Motility.SESSILE, Motility.CILIA, Motility.SWIMMING, Motility.CRAWLING, Motility.BURROWING)),
    (_INF, (Motility.SWIMMING, Motility.CRAWLING, Motility.WALKING, Motility.BURROWING, Motility.FLYING)),
)

_INTERFACE = (
    (1.0, (Interface.NONE, Interface.CHEMICAL_SIGNALS)),
    (3.0, (Interface.NONE, Interface.CHEMICAL_SIGNALS, Interface.TOUCH)),
    (5.0, (Interface.CHEMICAL_SIGNALS, Interface.TOUCH, Interface.SOUND, Interface.VISUAL_DISPLAY)),
    (_INF, (Interface.TOUCH, Interface.SOUND, Interface.VISUAL_DISPLAY, Interface.ELECTRIC,
            Interface.SYMBOLIC_LANGUAGE)),
)

# Surface-bound locomotion is meaningless inside a giant's envelope
_GIANT_MOTILITY = (Motility.SESSILE, Motility.DRIFTING, Motility.CILIA, Motility.SWIMMING, Motility.FLYING)


def allowed_substrates(habitat: Habitat) -> Tuple[Substrate, ...]:
    t = habitat.surface_temperature
    kind = habitat.planet_type
    if kind is PlanetType.LAVA:
        return (Substrate.SILICON, Substrate.SULFUR, Substrate.CRYSTALLINE)
    if kind is PlanetType.FROZEN:
        if t < CRYOGENIC_SUBSTRATE_TEMP:
            return (Substrate.HYDROCARBON,)
        return (Substrate.AMMONIA, Substrate.HYDROCARBON)
    if kind is PlanetType.ICE_GIANT:
        return (Substrate.AMMONIA, Substrate.HYDROCARBON)
    if kind is PlanetType.GAS_GIANT:
        return (Substrate.CARBON_WATER, Substrate.AMMONIA)
    if t > HOT_SUBSTRATE_TEMP:
        return (Substrate.SILICON, Substrate.SULFUR)
    return (Substrate.CARBON_WATER, Substrate.SULFUR)


def allowed_senses(habitat: Habitat) -> int:
    mask = int(Sense.CHEMO)
    for threshold, sense in _SENSE_UNLOCKS:
        if habitat.complexity > threshold:
            mask |= int(sense)
    if not habitat.atmosphere.transparent:
        mask &= ~int(Sense.PHOTO)
    return mask


def cognition_cap(structure: BodyStructure) -> float:
    if structure < BodyStructure.RADIAL:
        return NERVOUS_SYSTEM_THRESHOLD
    if structure < BodyStructure.BILATERAL:
        return TOOL_USE_THRESHOLD
    return 1.0


def _nearest(value, candidates: Sequence, default):
    if not candidates:
        return default
    return min(candidates, key=lambda c: (abs(int(c) - int(value)), int(c)))


# ----------------------------------------------------------------------
# Per-axis rules: draw, check, fallback


class AxisRule(NamedTuple):
    draw: Callable[[np.random.Generator, Habitat], object]
    valid: Callable[[object, Dict[str, object], Habitat], bool]
    fallback: Callable[[object, Dict[str, object], Habitat], object]


def _choice(rng: np.random.Generator, options: Sequence):
    return options[int(rng.integers(0, len(options)))]


def _uniform(rng: np.random.Generator, bounds: Tuple[float, float]) -> float:
    lo, hi = bounds
    return float(rng.uniform(lo, hi)) if hi > lo else float(lo)


def _in_range(value: float, bounds: Tuple[float, float]) -> bool:
    return bounds[0] <= value <= bounds[1]


def _draw_senses(rng: np.random.Generator, habitat: Habitat) -> int:
    # Opacity is left to the repair pass.
    senses = int(Sense.CHEMO)
    for threshold, sense in _SENSE_UNLOCKS:
        if habitat.complexity > threshold and rng.random() < SENSE_PROBABILITY:
            senses |= int(sense)
    return senses


def _energy_ok(value, g, h: Habitat) -> bool:
    if value not in _by_complexity(h.complexity, _ENERGY):
        return False
    return value != EnergySource.PHOTOSYNTHESIS or h.atmosphere.transparent


def _energy_fix(value, g, h: Habitat):
    options = [e for e in _by_complexity(h.complexity, _ENERGY) if _energy_ok(e, g, h)]
    return _nearest(value, options, EnergySource.CHEMOSYNTHESIS)


def _cognition_ok(value, g, h: Habitat) -> bool:
    return _in_range(value, _by_complexity(h.complexity, _COGNITION_RANGES)) and value <= cognition_cap(g["structure"])


def _cognition_fix(value, g, h: Habitat) -> float:
    lo, hi = _by_complexity(h.complexity, _COGNITION_RANGES)
    return min(clamp(value, lo, hi), cognition_cap(g["structure"]))


def _motility_ok(value, g, h: Habitat) -> bool:
    if value not in _by_complexity(h.complexity, _MOTILITY):
        return False
    if h.planet_type in (PlanetType.GAS_GIANT, PlanetType.ICE_GIANT) and value not in _GIANT_MOTILITY:
        return False
    if h.planet_type is PlanetType.OCEAN and value == Motility.WALKING:
        return False
    if value == Motility.FLYING:
        return h.atmosphere.supports_flight and h.planet_type is not PlanetType.OCEAN
    return True


def _motility_fix(value, g, h: Habitat):
    options = [m for m in _by_complexity(h.complexity, _MOTILITY) if _motility_ok(m, g, h)]
    return _nearest(value, options, Motility.DRIFTING)


def _interface_ok(value, g, h: Habitat) -> bool:
    if value not in _by_complexity(h.complexity, _INTERFACE):
        return False
    if value == Interface.SYMBOLIC_LANGUAGE:
        return g["cognition"] >= TOOL_USE_THRESHOLD
    if value == Interface.VISUAL_DISPLAY:
        return bool(g["senses"] & Sense.PHOTO)
    if value == Interface.ELECTRIC:
        return bool(g["senses"] & Sense.ELECTRO)
    if value == Interface.SOUND:
        return h.atmosphere.present or h.planet_type is PlanetType.OCEAN
    return True


def _interface_fix(value, g, h: Habitat):
    options = [i for i in _by_complexity(h.complexity, _INTERFACE) if _interface_ok(i, g, h)]
    return _nearest(value, options, Interface.CHEMICAL_SIGNALS)


RULES: Dict[str, AxisRule] = {
    "substrate": AxisRule(
        draw=lambda rng, h: _choice(rng, list(Substrate)),
        valid=lambda v, g, h: v in allowed_substrates(h),
        fallback=lambda v, g, h: _nearest(v, allowed_substrates(h), Substrate.CARBON_WATER),
    ),
    "structure": AxisRule(
        draw=lambda rng, h: _choice(rng, _by_complexity(h.complexity, _STRUCTURES)),
        valid=lambda v, g, h: v in _by_complexity(h.complexity, _STRUCTURES),
        fallback=lambda v, g, h: _nearest(v, _by_complexity(h.complexity, _STRUCTURES), BodyStructure.SINGLE_CELL),
    ),
    "size_log": AxisRule(
        draw=lambda rng, h: _uniform(rng, _by_complexity(h.complexity, _SIZE_RANGES)),
        valid=lambda v, g, h: _in_range(v, _by_complexity(h.complexity, _SIZE_RANGES)),
        fallback=lambda v, g, h: clamp(v, *_by_complexity(h.complexity, _SIZE_RANGES)),
    ),
    "energy_source": AxisRule(
        draw=lambda rng, h: _choice(rng, _by_complexity(h.complexity, _ENERGY)),
        valid=_energy_ok,
        fallback=_energy_fix,
    ),
    "cognition": AxisRule(
        draw=lambda rng, h: _uniform(rng, _by_complexity(h.complexity, _COGNITION_RANGES)),
        valid=_cognition_ok,
        fallback=_cognition_fix,
    ),
    "collective": AxisRule(
        draw=lambda rng, h: _uniform(rng, _by_complexity(h.complexity, _COLLECTIVE_RANGES)),
        valid=lambda v, g, h: _in_range(v, _by_complexity(h.complexity, _COLLECTIVE_RANGES)),
        fallback=lambda v, g, h: clamp(v, *_by_complexity(h.complexity, _COLLECTIVE_RANGES)),
    ),
    "senses": AxisRule(
        draw=_draw_senses,
        valid=lambda v, g, h: bool(v & Sense.CHEMO) and not v & ~allowed_senses(h),
        fallback=lambda v, g, h: (v & allowed_senses(h)) | int(Sense.CHEMO),
    ),
    "propagation": AxisRule(
        draw=lambda rng, h: _choice(rng, _by_complexity(h.complexity, _PROPAGATION)),
        valid=lambda v, g, h: v in _by_complexity(h.complexity, _PROPAGATION),
        fallback=lambda v, g, h: _nearest(v, _by_complexity(h.complexity, _PROPAGATION), Propagation.FISSION),
    ),
    "motility": AxisRule(
        draw=lambda rng, h: _choice(rng, _by_complexity(h.complexity, _MOTILITY)),
        valid=_motility_ok,
        fallback=_motility_fix,
    ),
    "interface": AxisRule(
        draw=lambda rng, h: _choice(rng, _by_complexity(h.complexity, _INTERFACE)),
        valid=_interface_ok,
        fallback=_interface_fix,
    ),
}


# ----------------------------------------------------------------------
# Synthesis


def synthesize_genome(rng: np.random.Generator, habitat: Habitat,
                      prior: Optional[Genome] = None,
                      stability: Optional[Sequence[float]] = None) -> Genome:
    """Draw and repair a genome for ``habitat``.

    Args:
        rng: The planet's genome stream.
        habitat: Environment and complexity of the biosphere.
        prior: Traits recorded for the lineage in an earlier cycle.
        stability: Per-axis probability of keeping the prior value,
            in ``AXES`` order.

    Returns:
        A genome satisfying every axis rule for ``habitat``.
    """
    values: Dict[str, object] = {}
    for i, name in enumerate(AXES):
        if prior is not None and stability is not None and rng.random() < stability[i]:
            values[name] = getattr(prior, name)
        else:
            values[name] = RULES[name].draw(rng, habitat)

    for name in REPAIR_PRIORITY:
        values[name] = _repair_axis(name, values, habitat, rng)

    return Genome(**{name: _AXIS_TYPES[name](values[name]) for name in AXES})


def _repair_axis(name: str, values: Dict[str, object], habitat: Habitat,
                 rng: np.random.Generator):
    rule = RULES[name]
    original = values[name]
    if rule.valid(original, values, habitat):
        return original
    for _ in range(MAX_REPAIR_ATTEMPTS):
        candidate = rule.draw(rng, habitat)
        if rule.valid(candidate, values, habitat):
            return candidate
    fixed = rule.fallback(original, values, habitat)
    logger.debug("Genome axis %s fell back from %r to %r", name, original, fixed)
    return fixed


def violations(genome: Genome, habitat: Habitat) -> List[str]:
    """Names of the axes of ``genome`` that break a rule for ``habitat``."""
    values = {name: getattr(genome, name) for name in AXES}
    return [name for name in REPAIR_PRIORITY if not RULES[name].valid(values[name], values, habitat)]
