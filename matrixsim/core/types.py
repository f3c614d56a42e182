"""
Common types shared across the engine.

The particle kinds, universe phases and region detail levels are closed
sets, so they are modelled as ``IntEnum`` values: the gravity solver can
keep kinds in a dense integer column and phases/levels compare with the
ordinary ordering operators.
"""

from __future__ import annotations

from enum import IntEnum
from typing import Tuple

Vec3 = Tuple[float, float, float]
GridCoord = Tuple[int, int, int]


def clamp(value: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, value))


class ParticleKind(IntEnum):
    """Particle species. Values match the packed GPU buffer layout."""

    UP_QUARK = 0
    DOWN_QUARK = 1
    ELECTRON = 2
    NEUTRINO = 3
    PHOTON = 4
    GLUON = 5
    PROTON = 10
    NEUTRON = 11
    HYDROGEN = 20
    HELIUM = 21
    CARBON = 22
    NITROGEN = 23
    OXYGEN = 24
    IRON = 25
    DARK_MATTER = 100

    @property
    def rest_mass(self) -> float:
        return _REST_MASS[self]

    @property
    def color(self) -> Tuple[float, float, float, float]:
        return _KIND_COLOR[self]


_REST_MASS = {
    ParticleKind.UP_QUARK: 0.003,
    ParticleKind.DOWN_QUARK: 0.003,
    ParticleKind.ELECTRON: 0.0005,
    ParticleKind.NEUTRINO: 0.0,
    ParticleKind.PHOTON: 0.0,
    ParticleKind.GLUON: 0.0,
    ParticleKind.PROTON: 1.0,
    ParticleKind.NEUTRON: 1.0,
    ParticleKind.HYDROGEN: 1.0,
    ParticleKind.HELIUM: 4.0,
    ParticleKind.CARBON: 12.0,
    ParticleKind.NITROGEN: 14.0,
    ParticleKind.OXYGEN: 16.0,
    ParticleKind.IRON: 56.0,
    ParticleKind.DARK_MATTER: 10.0,
}

_KIND_COLOR = {
    ParticleKind.UP_QUARK: (1.0, 0.2, 0.2, 1.0),
    ParticleKind.DOWN_QUARK: (0.2, 0.2, 1.0, 1.0),
    ParticleKind.ELECTRON: (0.2, 1.0, 1.0, 1.0),
    ParticleKind.NEUTRINO: (0.5, 0.5, 0.5, 0.3),
    ParticleKind.PHOTON: (1.0, 1.0, 0.8, 0.8),
    ParticleKind.GLUON: (0.0, 1.0, 0.0, 0.5),
    ParticleKind.PROTON: (1.0, 0.5, 0.2, 1.0),
    ParticleKind.NEUTRON: (0.6, 0.6, 0.6, 1.0),
    ParticleKind.HYDROGEN: (1.0, 1.0, 1.0, 1.0),
    ParticleKind.HELIUM: (1.0, 1.0, 0.3, 1.0),
    ParticleKind.CARBON: (0.3, 0.3, 0.3, 1.0),
    ParticleKind.NITROGEN: (0.3, 0.3, 1.0, 1.0),
    ParticleKind.OXYGEN: (0.2, 0.6, 1.0, 1.0),
    ParticleKind.IRON: (0.7, 0.4, 0.2, 1.0),
    ParticleKind.DARK_MATTER: (0.1, 0.0, 0.2, 0.15),
}


class UniversePhase(IntEnum):
    """Cosmic phases in the order the universe passes through them."""

    BIG_BANG = 0
    INFLATION = 1
    NUCLEAR_ERA = 2
    ATOMIC_ERA = 3
    COSMIC_DAWN = 4
    STELLAR_ERA = 5
    BIOLOGICAL_ERA = 6
    CIVILIZATION_ERA = 7
    HEAT_DEATH = 8
    COLLAPSE = 9

    @property
    def label(self) -> str:
        return self.name.replace("_", " ").title()


class LodLevel(IntEnum):
    """Region level of detail, ordered from cheapest to richest."""

    STATISTICAL = 0
    GALACTIC = 1
    STELLAR = 2
    PLANETARY = 3
    BIOSPHERE = 4
