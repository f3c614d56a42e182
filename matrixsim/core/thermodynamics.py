"""
Thermodynamic bookkeeping over the particle population.

The entropy reported here is a proxy for disorder, not literal
thermodynamic entropy: the per-axis variances of the alive particles'
velocities are summed into a total dispersion and

    entropy = max(ln(dispersion), 0) * alive_count

The logarithm is floored at zero, so a population with dispersion below
one (or exactly zero) contributes no entropy, and an empty or fully dead
population has entropy zero. The value is monotonic in the dispersion for
a fixed population size.
"""

from __future__ import annotations

import math
from typing import Tuple

import numpy as np

from .fabric import ParticleFabric


def velocity_dispersion(fabric: ParticleFabric) -> float:
    """Sum of the per-axis velocity variances over alive particles."""
    alive = fabric.alive
    if not alive.any():
        return 0.0
    return float(fabric.velocity[alive].var(axis=0).sum())


def compute_entropy(fabric: ParticleFabric) -> float:
    n = fabric.alive_count
    if n == 0:
        return 0.0
    dispersion = velocity_dispersion(fabric)
    if not dispersion > 0.0 or not math.isfinite(dispersion):
        return 0.0
    return max(math.log(dispersion), 0.0) * n


def mean_kinetic_temperature(fabric: ParticleFabric) -> float:
    """Average kinetic energy per alive particle, in simulation units."""
    alive = fabric.alive
    n = int(np.count_nonzero(alive))
    if n == 0:
        return 0.0
    v2 = np.einsum("ij,ij->i", fabric.velocity[alive], fabric.velocity[alive])
    return float((0.5 * fabric.mass[alive] * v2).sum() / n)


def entropy_and_temperature(fabric: ParticleFabric) -> Tuple[float, float]:
    return compute_entropy(fabric), mean_kinetic_temperature(fabric)
