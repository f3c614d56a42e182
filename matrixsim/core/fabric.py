"""
Fabric subsystem holds the particle population as dense numpy columns.

The ``ParticleFabric`` stores position, velocity, mass, kind, temperature
and an alive flag for every particle, one array per quantity, so that the
gravity solver and thermodynamics can work on whole columns at once. Dead
particles are only flagged; ``compact`` removes them in bulk. The fabric
does not implement dynamics by itself.

It can also export and import the packed buffer layout consumed by GPU
compute backends (position+mass, velocity+aux, kind, flags, temperature,
padding) so an external executor can operate on the same data.
"""

from __future__ import annotations

import logging
from typing import Iterable, Sequence

import numpy as np

from .config import SimConfig
from .region import REGION_SIZE
from .rng import SeedFabric
from .types import ParticleKind

logger = logging.getLogger(__name__)

#: Temperature assigned to freshly spawned Big Bang particles (K)
BIG_BANG_TEMPERATURE = 1e10

#: Half-width of the cube around the origin that holds the initial singularity (Mpc)
SINGULARITY_HALF_WIDTH = 0.01

#: Lower bound on any particle mass, so massless kinds still gravitate weakly
MIN_PARTICLE_MASS = 0.001

#: Baryonic kinds drawn with equal weight at the Big Bang
BIG_BANG_BARYONIC_KINDS = (
    ParticleKind.UP_QUARK,
    ParticleKind.DOWN_QUARK,
    ParticleKind.ELECTRON,
    ParticleKind.PHOTON,
)

#: Dark matter leaves the singularity slower than baryonic matter
DARK_MATTER_VELOCITY_FACTOR = 0.8

#: Bit 0 of the packed flags word marks an alive particle
FLAG_ALIVE = 1

PACKED_PARTICLE_DTYPE = np.dtype([
    ("position", "<f4", (4,)),
    ("velocity", "<f4", (4,)),
    ("kind", "<u4"),
    ("flags", "<u4"),
    ("temperature", "<f4"),
    ("_pad", "<f4"),
])


class ParticleFabric:
    """Column storage for the particle population."""

    def __init__(self, position: np.ndarray, velocity: np.ndarray, mass: np.ndarray,
                 kind: np.ndarray, temperature: np.ndarray, alive: np.ndarray | None = None):
        n = len(mass)
        self.position = np.asarray(position, dtype=np.float64).reshape(n, 3)
        self.velocity = np.asarray(velocity, dtype=np.float64).reshape(n, 3)
        self.mass = np.asarray(mass, dtype=np.float64)
        self.kind = np.asarray(kind, dtype=np.int32)
        self.temperature = np.asarray(temperature, dtype=np.float64)
        self.alive = np.ones(n, dtype=bool) if alive is None else np.asarray(alive, dtype=bool)

    @classmethod
    def empty(cls) -> "ParticleFabric":
        return cls(np.zeros((0, 3)), np.zeros((0, 3)), np.zeros(0), np.zeros(0, dtype=np.int32), np.zeros(0))

    def __len__(self) -> int:
        return len(self.mass)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ParticleFabric):
            return NotImplemented
        return (
            np.array_equal(self.position, other.position)
            and np.array_equal(self.velocity, other.velocity)
            and np.array_equal(self.mass, other.mass)
            and np.array_equal(self.kind, other.kind)
            and np.array_equal(self.temperature, other.temperature)
            and np.array_equal(self.alive, other.alive)
        )

    def copy(self) -> "ParticleFabric":
        return ParticleFabric(self.position.copy(), self.velocity.copy(), self.mass.copy(),
                              self.kind.copy(), self.temperature.copy(), self.alive.copy())

    # ------------------------------------------------------------------
    # Population queries

    @property
    def alive_count(self) -> int:
        return int(np.count_nonzero(self.alive))

    def alive_indices(self) -> np.ndarray:
        return np.flatnonzero(self.alive)

    def count_kind(self, kind: ParticleKind) -> int:
        return int(np.count_nonzero(self.alive & (self.kind == int(kind))))

    def total_mass(self) -> float:
        return float(self.mass[self.alive].sum())

    def total_momentum(self) -> np.ndarray:
        """Return the summed momentum vector of all alive particles."""
        alive = self.alive
        return (self.mass[alive, None] * self.velocity[alive]).sum(axis=0)

    # ------------------------------------------------------------------
    # Lifecycle

    def kill(self, indices: Iterable[int]) -> None:
        self.alive[np.asarray(list(indices), dtype=np.int64)] = False

    def compact(self) -> int:
        """Drop dead particles from every column. Returns how many were removed."""
        before = len(self)
        keep = self.alive
        if keep.all():
            return 0
        self.position = self.position[keep]
        self.velocity = self.velocity[keep]
        self.mass = self.mass[keep]
        self.kind = self.kind[keep]
        self.temperature = self.temperature[keep]
        self.alive = self.alive[keep]
        removed = before - len(self)
        logger.info("Compacted particles: %d -> %d (removed %d)", before, len(self), removed)
        return removed

    def replace_with(self, other: "ParticleFabric") -> None:
        """Swap in another population while keeping this object's identity."""
        self.position = other.position
        self.velocity = other.velocity
        self.mass = other.mass
        self.kind = other.kind
        self.temperature = other.temperature
        self.alive = other.alive

    # ------------------------------------------------------------------
    # Packed buffer layout

    def to_packed(self) -> np.ndarray:
        """Export the population in the packed GPU particle layout."""
        packed = np.zeros(len(self), dtype=PACKED_PARTICLE_DTYPE)
        packed["position"][:, :3] = self.position
        packed["position"][:, 3] = self.mass
        packed["velocity"][:, :3] = self.velocity
        packed["kind"] = self.kind
        packed["flags"] = np.where(self.alive, FLAG_ALIVE, 0)
        packed["temperature"] = self.temperature
        return packed

    @classmethod
    def from_packed(cls, packed: np.ndarray) -> "ParticleFabric":
        return cls(
            packed["position"][:, :3].astype(np.float64),
            packed["velocity"][:, :3].astype(np.float64),
            packed["position"][:, 3].astype(np.float64),
            packed["kind"].astype(np.int32),
            packed["temperature"].astype(np.float64),
            (packed["flags"] & FLAG_ALIVE) != 0,
        )


def random_directions(rng: np.random.Generator, count: int) -> np.ndarray:
    """Return ``count`` unit vectors uniformly distributed on the sphere."""
    theta = rng.uniform(0.0, 2.0 * np.pi, count)
    phi = np.arccos(rng.uniform(-1.0, 1.0, count))
    return np.column_stack((np.sin(phi) * np.cos(theta), np.sin(phi) * np.sin(theta), np.cos(phi)))


def kinds_from_choices(choices: Sequence[ParticleKind], picks: np.ndarray) -> np.ndarray:
    table = np.array([int(k) for k in choices], dtype=np.int32)
    return table[picks]


_REST_MASS_TABLE = np.zeros(max(int(k) for k in ParticleKind) + 1)
for _kind in ParticleKind:
    _REST_MASS_TABLE[int(_kind)] = _kind.rest_mass


def rest_masses(kinds: np.ndarray) -> np.ndarray:
    return _REST_MASS_TABLE[np.asarray(kinds, dtype=np.int64)]


def spawn_big_bang(config: SimConfig, rng: np.random.Generator) -> ParticleFabric:
    """Create the initial particle population at the singularity.

    Exactly ``int(particle_count * dark_matter_fraction)`` particles are
    dark matter; the remainder are drawn with equal weight from the
    baryonic kinds in ``BIG_BANG_BARYONIC_KINDS``. Every particle starts
    within ``SINGULARITY_HALF_WIDTH`` of the origin and flies outward in a
    random direction.
    """
    n = config.particle_count
    n_dark = int(n * config.dark_matter_fraction)
    n_baryonic = n - n_dark

    baryon_kinds = kinds_from_choices(BIG_BANG_BARYONIC_KINDS,
                                      rng.integers(0, len(BIG_BANG_BARYONIC_KINDS), n_baryonic))
    kinds = np.concatenate((baryon_kinds, np.full(n_dark, int(ParticleKind.DARK_MATTER), dtype=np.int32)))

    position = rng.uniform(-SINGULARITY_HALF_WIDTH, SINGULARITY_HALF_WIDTH, (n, 3))
    max_speed = np.concatenate((
        np.full(n_baryonic, config.big_bang_velocity),
        np.full(n_dark, config.big_bang_velocity * DARK_MATTER_VELOCITY_FACTOR),
    ))
    speed = rng.uniform(0.0, 1.0, n) * (max_speed - 0.1) + 0.1
    velocity = random_directions(rng, n) * speed[:, None]

    mass = np.maximum(rest_masses(kinds) * rng.uniform(0.5, 1.5, n), MIN_PARTICLE_MASS)
    temperature = np.full(n, BIG_BANG_TEMPERATURE)
    fabric = ParticleFabric(position, velocity, mass, kinds, temperature)
    logger.info("Spawned Big Bang population: %d particles (%d dark matter)", n, n_dark)
    return fabric


# ----------------------------------------------------------------------
# Region populations

#: Particles per unit of density ratio when a region is loaded
REGION_PARTICLES_PER_DENSITY = 5000.0
MIN_REGION_PARTICLES = 500
MAX_REGION_PARTICLES = 10_000

#: Cap on the dark-matter share of a region population
MAX_REGION_DARK_FRACTION = 0.9

#: Half-width of the scatter cube, as a fraction of the region side
REGION_SCATTER_FRACTION = 0.4

#: Dark matter starts at this fraction of the baryonic temperature
DARK_MATTER_COLD_FACTOR = 0.1

#: (age upper bound in Gyr, baryonic kinds present before it)
ERA_KINDS = (
    (1e-4, (ParticleKind.UP_QUARK, ParticleKind.DOWN_QUARK, ParticleKind.ELECTRON,
            ParticleKind.PHOTON, ParticleKind.GLUON)),
    (1e-3, (ParticleKind.PROTON, ParticleKind.NEUTRON, ParticleKind.ELECTRON, ParticleKind.PHOTON)),
    (1.0, (ParticleKind.HYDROGEN, ParticleKind.HELIUM, ParticleKind.PHOTON)),
    (float("inf"), (ParticleKind.HYDROGEN, ParticleKind.HELIUM, ParticleKind.CARBON,
                    ParticleKind.NITROGEN, ParticleKind.OXYGEN, ParticleKind.IRON)),
)


def era_kinds(age: float) -> Sequence[ParticleKind]:
    """Baryonic particle kinds present at ``age``."""
    for limit, kinds in ERA_KINDS:
        if age < limit:
            return kinds
    return ERA_KINDS[-1][1]


def era_max_speed(age: float) -> float:
    if age < 1e-3:
        return 5.0
    if age < 1.0:
        return 2.0
    return 0.5


def era_temperature(age: float) -> float:
    if age < 1e-4:
        return 1e10
    if age < 1e-3:
        return 1e8
    if age < 1.0:
        return 1e4
    # Approaches the CMB temperature
    return 2.7 * (1.0 + 1.0 / (age + 0.1))


def region_particle_count(density: float) -> int:
    count = density * REGION_PARTICLES_PER_DENSITY
    return int(min(max(count, MIN_REGION_PARTICLES), MAX_REGION_PARTICLES))


def spawn_region_particles(summary, age: float) -> ParticleFabric:
    """Create the particle population of a loaded region.

    The population is a pure function of the region's seed and ``age``.
    Its size scales with density, its baryonic kinds, speeds and
    temperature follow the cosmic era, and its dark matter (at most
    ``MAX_REGION_DARK_FRACTION`` of it) moves slower and starts cold.
    Particles are scattered within the central 80% of the region.
    """
    rng = SeedFabric(summary.seed).stream("particles")
    n = region_particle_count(summary.density)
    n_dark = int(n * min(summary.dark_matter_fraction, MAX_REGION_DARK_FRACTION))
    n_baryonic = n - n_dark

    choices = era_kinds(age)
    baryon_kinds = kinds_from_choices(choices, rng.integers(0, len(choices), n_baryonic))
    kinds = np.concatenate((baryon_kinds, np.full(n_dark, int(ParticleKind.DARK_MATTER), dtype=np.int32)))

    half = REGION_SIZE * REGION_SCATTER_FRACTION
    position = np.asarray(summary.center) + rng.uniform(-half, half, (n, 3))
    max_speed = era_max_speed(age)
    limit = np.concatenate((np.full(n_baryonic, max_speed),
                            np.full(n_dark, max_speed * DARK_MATTER_VELOCITY_FACTOR)))
    speed = rng.uniform(0.0, 1.0, n) * (limit - 0.01) + 0.01
    velocity = random_directions(rng, n) * speed[:, None]

    mass = np.maximum(rest_masses(kinds) * rng.uniform(0.5, 1.5, n), MIN_PARTICLE_MASS)
    temperature = np.full(n, era_temperature(age))
    temperature[n_baryonic:] *= DARK_MATTER_COLD_FACTOR
    return ParticleFabric(position, velocity, mass, kinds, temperature)
