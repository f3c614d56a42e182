"""
Gravity solvers for the particle population.

Two interchangeable executors share one contract: given the
``ParticleFabric`` and a timestep, update the velocity and position of
every alive particle.

``HybridGravitySolver``
    Near-field: every pair in which one body is among the K nearest alive
    neighbours of the other (found with a k-d tree rebuilt on every call)
    contributes exact softened attraction to both bodies. Far-field: the
    alive bounding box is split into a fixed grid, and every body is pulled
    by each other occupied cell whose centre of mass lies beyond
    ``max_cell_width / theta``, treated as a point mass. The reaction is
    shared by the members of the pulling cell. Near-field pairs already
    seen through a distant cell are removed from the far field. This is a
    coarse multipole approximation, not a Barnes-Hut octree, but it keeps
    action and reaction equal.

``DirectSummationSolver``
    Brute-force O(n^2) pairwise summation, the CPU rendition of the GPU
    compute backend. Substitutable for the hybrid solver without changing
    any other component.

Both integrate with Euler-Cromer (velocity first, then position with the
new velocity), damp velocities and cool temperatures multiplicatively.
Acceleration magnitudes are clamped and speeds are capped at the speed
of light, so no particle ever receives a non-finite position or velocity.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

import numpy as np
from scipy.spatial import cKDTree

from .config import SimConfig
from .fabric import ParticleFabric

logger = logging.getLogger(__name__)

#: Gravitational constant in simulation units (Mpc, 10^10 Msun, Gyr)
G = 1.0

#: Speed of light in Mpc/Gyr; no particle may move faster
SPEED_OF_LIGHT = 3000.0

#: Multiplicative velocity damping per unit dt
DEFAULT_DAMPING = 0.002

#: Multiplicative temperature cooling per unit dt
DEFAULT_COOLING = 0.01

#: Smallest bounding-box side used when laying out the far-field grid
MIN_GRID_SPAN = 1.0

#: Elements per (rows, n, 3) temporary in the all-pairs kernels, about 32 MB of float64
BLOCK_ELEMENTS = 1 << 22

#: Neighbour pairs processed per vectorised block
PAIR_CHUNK = 1 << 18


def clamp_magnitude(vectors: np.ndarray, limit: float) -> np.ndarray:
    """Return ``vectors`` with non-finite entries zeroed and norms capped at ``limit``."""
    vectors = np.nan_to_num(vectors, nan=0.0, posinf=limit, neginf=-limit)
    norms = np.sqrt(np.einsum("ij,ij->i", vectors, vectors))
    over = norms > limit
    if over.any():
        vectors[over] *= (limit / norms[over])[:, None]
    return vectors


def chunk_size(n: int) -> int:
    """Rows per block so that an (rows, n, 3) temporary stays within ``BLOCK_ELEMENTS``."""
    return max(1, BLOCK_ELEMENTS // (3 * max(n, 1)))


def scatter_add(target: np.ndarray, index: np.ndarray, values: np.ndarray) -> None:
    """``target[index] += values`` with repeated indices accumulated."""
    for axis in range(target.shape[1]):
        target[:, axis] += np.bincount(index, weights=values[:, axis], minlength=len(target))


def gravity_interval(time_scale: float) -> int:
    """Ticks between gravity solves for a given time-scale multiplier."""
    if time_scale >= 1_000_000.0:
        return 120
    if time_scale >= 10_000.0:
        return 30
    if time_scale >= 100.0:
        return 5
    return 3


class GravitySolver(ABC):
    """Shared integration step; subclasses supply the accelerations."""

    def __init__(self, gravity_scale: float = 1.0, softening: float = 0.01,
                 acceleration_limit: float = 1e6, damping: float = DEFAULT_DAMPING,
                 cooling: float = DEFAULT_COOLING):
        self.gravity_scale = gravity_scale
        self.softening = softening
        self.acceleration_limit = acceleration_limit
        self.damping = damping
        self.cooling = cooling
        self.invocations = 0

    @classmethod
    def from_config(cls, config: SimConfig) -> "GravitySolver":
        return cls(
            gravity_scale=config.gravity_scale,
            softening=config.softening,
            acceleration_limit=config.acceleration_limit,
        )

    def reconfigure(self, config: SimConfig) -> None:
        """Adopt the config-derived settings of ``config``, keeping damping and cooling."""
        self.gravity_scale = config.gravity_scale
        self.softening = config.softening
        self.acceleration_limit = config.acceleration_limit

    @property
    def strength(self) -> float:
        return G * self.gravity_scale

    @abstractmethod
    def accelerations(self, position: np.ndarray, mass: np.ndarray) -> np.ndarray:
        """Return an (n, 3) array of accelerations for the given bodies."""

    def step(self, fabric: ParticleFabric, dt: float) -> None:
        """Advance every alive particle by ``dt``.

        ``dt`` may be the sum of several ticks when the caller throttles
        the solver.
        """
        idx = fabric.alive_indices()
        if idx.size == 0 or dt <= 0.0:
            return
        self.invocations += 1
        pos = fabric.position[idx]
        vel = fabric.velocity[idx]

        acc = clamp_magnitude(self.accelerations(pos, fabric.mass[idx]), self.acceleration_limit)
        new_vel = clamp_magnitude(vel + acc * dt, SPEED_OF_LIGHT)
        new_pos = pos + new_vel * dt
        new_vel *= max(0.0, 1.0 - dt * self.damping)

        finite = np.isfinite(new_pos).all(axis=1) & np.isfinite(new_vel).all(axis=1)
        if not finite.all():
            logger.warning("Discarding non-finite update for %d particles", int((~finite).sum()))
        fabric.position[idx[finite]] = new_pos[finite]
        fabric.velocity[idx[finite]] = new_vel[finite]
        fabric.temperature[idx] *= max(0.0, 1.0 - dt * self.cooling)
        logger.debug("%s step: %d particles, dt=%.6g", type(self).__name__, idx.size, dt)


class HybridGravitySolver(GravitySolver):
    """Near-field k-nearest direct sum plus far-field grid of centres of mass.

    Every force is applied as an action-reaction pair, so the solver
    conserves total momentum up to rounding when damping is off.
    """

    def __init__(self, gravity_scale: float = 1.0, softening: float = 0.01,
                 acceleration_limit: float = 1e6, near_field_k: int = 32,
                 grid_resolution: int = 16, theta: float = 0.5,
                 far_field_softening: float = 0.5, **kwargs):
        super().__init__(gravity_scale, softening, acceleration_limit, **kwargs)
        self.near_field_k = near_field_k
        self.grid_resolution = grid_resolution
        self.theta = theta
        self.far_field_softening = far_field_softening

    @classmethod
    def from_config(cls, config: SimConfig) -> "HybridGravitySolver":
        return cls(
            gravity_scale=config.gravity_scale,
            softening=config.softening,
            acceleration_limit=config.acceleration_limit,
            near_field_k=config.near_field_k,
            grid_resolution=config.far_field_grid_resolution,
            theta=config.far_field_theta,
            far_field_softening=config.far_field_softening,
        )

    def reconfigure(self, config: SimConfig) -> None:
        super().reconfigure(config)
        self.near_field_k = config.near_field_k
        self.grid_resolution = config.far_field_grid_resolution
        self.theta = config.far_field_theta
        self.far_field_softening = config.far_field_softening

    def accelerations(self, position: np.ndarray, mass: np.ndarray) -> np.ndarray:
        n = len(position)
        acc = np.zeros((n, 3))
        if n < 2:
            return acc
        k = min(self.near_field_k, n - 1)
        pairs = self.near_pairs(self.nearest_neighbours(position, k))
        acc += self.near_field(position, mass, pairs)
        # The near field already sees every other body; nothing is left far away.
        if k < n - 1:
            acc += self.far_field(position, mass, pairs)
        return acc

    @staticmethod
    def nearest_neighbours(position: np.ndarray, k: int) -> np.ndarray:
        """Return an (n, k) index array of each body's k nearest other bodies."""
        n = len(position)
        tree = cKDTree(position)
        _, found = tree.query(position, k=k + 1)
        found = np.asarray(found).reshape(n, k + 1)
        drop = found == np.arange(n)[:, None]
        # Coincident points can push a body out of its own result list; drop the farthest instead.
        missing_self = ~drop.any(axis=1)
        drop[missing_self, -1] = True
        return found[~drop].reshape(n, k)

    @staticmethod
    def near_pairs(neighbours: np.ndarray) -> np.ndarray:
        """Return the sorted unique (i, j) pairs, i < j, linked in either neighbour list."""
        n, k = neighbours.shape
        i = np.repeat(np.arange(n), k)
        j = neighbours.ravel()
        pairs = np.column_stack([np.minimum(i, j), np.maximum(i, j)])
        return np.unique(pairs, axis=0)

    def near_field(self, position: np.ndarray, mass: np.ndarray, pairs: np.ndarray) -> np.ndarray:
        acc = np.zeros_like(position)
        soft2 = self.softening * self.softening
        for start in range(0, len(pairs), PAIR_CHUNK):
            i, j = pairs[start:start + PAIR_CHUNK].T
            d = position[j] - position[i]
            r2 = np.einsum("ij,ij->i", d, d) + soft2
            g = self.strength * d / (r2 * np.sqrt(r2))[:, None]
            scatter_add(acc, i, mass[j, None] * g)
            scatter_add(acc, j, -mass[i, None] * g)
        return acc

    def far_field(self, position: np.ndarray, mass: np.ndarray, pairs: np.ndarray) -> np.ndarray:
        """Pull of distant grid cells, with the reaction shared by each cell's members.

        A body is attracted by every other cell whose centre of mass lies
        beyond the near-field radius; the equal and opposite force is
        spread over that cell's members in proportion to their mass.
        Near-field pairs already counted through such a cell are taken
        back out so that no pair is counted twice.
        """
        centres, cell_mass, cell_width, cell = self.grid_centres_of_mass(position, mass)
        near_radius2 = (cell_width / self.theta) ** 2
        soft2 = self.far_field_softening * self.far_field_softening
        m = len(cell_mass)
        acc = np.zeros_like(position)
        cell_acc = np.zeros((m, 3))
        for start in range(0, len(position), chunk_size(m)):
            block = slice(start, start + chunk_size(m))
            d = centres[None, :, :] - position[block, None, :]
            dist2 = np.einsum("ijk,ijk->ij", d, d)
            r2 = dist2 + soft2
            with np.errstate(divide="ignore", invalid="ignore"):
                h = np.where(dist2 > near_radius2, self.strength / (r2 * np.sqrt(r2)), 0.0)
            own = cell[block]
            h[np.arange(len(own)), own] = 0.0
            acc[block] = np.einsum("ij,ijk->ik", h * cell_mass, d)
            cell_acc -= np.einsum("ij,ijk->jk", h * mass[block, None], d)

        # Remove near-field pairs from the cell each partner was seen through.
        i, j = pairs.T
        for body, partner in ((i, j), (j, i)):
            target = cell[partner]
            d = centres[target] - position[body]
            dist2 = np.einsum("ij,ij->i", d, d)
            counted = (dist2 > near_radius2) & (target != cell[body])
            if not counted.any():
                continue
            body, partner, target, d = body[counted], partner[counted], target[counted], d[counted]
            r2 = dist2[counted] + soft2
            g = self.strength * d / (r2 * np.sqrt(r2))[:, None]
            scatter_add(acc, body, -mass[partner, None] * g)
            members = np.where(cell_mass[target] > 0.0, cell_mass[target], 1.0)
            share = (mass[body] * mass[partner] / members)[:, None] * g
            scatter_add(cell_acc, target, share)
        return acc + cell_acc[cell]

    def grid_centres_of_mass(self, position: np.ndarray, mass: np.ndarray):
        """Bin bodies into the far-field grid.

        Returns the centres of mass and total masses of the occupied
        cells, the widest cell side, and each body's index into the
        occupied cells.
        """
        res = self.grid_resolution
        lo = position.min(axis=0)
        span = np.maximum(position.max(axis=0) - lo, MIN_GRID_SPAN)
        cells = np.clip(((position - lo) / span * res).astype(np.int64), 0, res - 1)
        flat = (cells[:, 0] * res + cells[:, 1]) * res + cells[:, 2]
        _, cell = np.unique(flat, return_inverse=True)
        cell = cell.ravel()
        cell_mass = np.bincount(cell, weights=mass)
        weighted = np.column_stack([
            np.bincount(cell, weights=mass * position[:, axis]) for axis in range(3)
        ])
        # Massless cells sit at their members' mean position.
        empty = cell_mass <= 0.0
        centres = np.empty_like(weighted)
        centres[~empty] = weighted[~empty] / cell_mass[~empty, None]
        if empty.any():
            counts = np.bincount(cell)
            mean = np.column_stack([np.bincount(cell, weights=position[:, axis]) for axis in range(3)])
            centres[empty] = mean[empty] / counts[empty, None]
        return centres, cell_mass, float((span / res).max()), cell


class DirectSummationSolver(GravitySolver):
    """All-pairs softened gravity with the same step semantics."""

    def accelerations(self, position: np.ndarray, mass: np.ndarray) -> np.ndarray:
        n = len(position)
        acc = np.zeros_like(position)
        soft2 = self.softening * self.softening
        for start in range(0, n, chunk_size(n)):
            block = slice(start, start + chunk_size(n))
            d = position[None, :, :] - position[block, None, :]
            r2 = np.einsum("ijk,ijk->ij", d, d) + soft2
            f = self.strength * mass[None, :] / (r2 * np.sqrt(r2))
            # Self-pairs have d == 0 and contribute nothing.
            acc[block] = np.einsum("ij,ijk->ik", f, d)
        return acc
