"""
Simulation configuration definitions.

This module defines the configuration dataclass used to parameterise a
universe run. Every field has an explicit default so that test runs can
be created without supplying values for every option. ``validate`` is
called by the engine before any simulation state is created, so an
invalid configuration never produces a half-built universe.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict

from .errors import ConfigError

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass
class SimConfig:
    """Top level configuration for universe runs.

    Units follow the simulation convention: distances in Mpc, masses in
    units of 10^10 solar masses, time in Gyr, so that G is 1.
    """

    # Big Bang population
    particle_count: int = 100_000
    seed: int = 42
    big_bang_velocity: float = 5.0
    dark_matter_fraction: float = 0.27

    # Gravity
    gravity_scale: float = 1.0
    softening: float = 0.01
    near_field_k: int = 32
    far_field_grid_resolution: int = 16
    far_field_theta: float = 0.5
    far_field_softening: float = 0.5
    acceleration_limit: float = 1e6

    # Time and thermodynamics
    timestep: float = 0.001
    max_entropy: float = 1_000_000.0
    entropy_interval: int = 30
    compaction_interval: int = 100

    # Regions and procedural generation
    lod_interval: int = 5
    region_stats_age_threshold: float = 2.0
    max_stars_per_region: int = 1000
    galactic_mass_points: int = 100
    life_probability_min: float = 1e-7
    life_probability_max: float = 0.15
    background_workers: int = 2

    log_level: str = "INFO"

    # Free-form options for experiments, carried through snapshots
    extras: dict = field(default_factory=dict)

    def validate(self) -> None:
        """Raise ``ConfigError`` for the first invalid field found."""
        if isinstance(self.seed, bool) or not isinstance(self.seed, int):
            raise ConfigError("seed", f"must be an integer, got {self.seed!r}")
        for name in ("particle_count", "near_field_k", "far_field_grid_resolution",
                     "entropy_interval", "compaction_interval", "lod_interval",
                     "max_stars_per_region", "galactic_mass_points", "background_workers"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
                raise ConfigError(name, f"must be a positive integer, got {value!r}")
        for name in ("big_bang_velocity", "gravity_scale", "softening", "far_field_theta",
                     "far_field_softening", "acceleration_limit", "timestep",
                     "max_entropy", "region_stats_age_threshold"):
            value = getattr(self, name)
            if not isinstance(value, (int, float)) or not value > 0 or value == float("inf"):
                raise ConfigError(name, f"must be a positive finite number, got {value!r}")
        for name in ("dark_matter_fraction", "life_probability_min", "life_probability_max"):
            value = getattr(self, name)
            if not isinstance(value, (int, float)) or not 0.0 <= value <= 1.0:
                raise ConfigError(name, f"must lie in [0, 1], got {value!r}")
        if self.life_probability_min > self.life_probability_max:
            raise ConfigError("life_probability_min", "must not exceed life_probability_max")
        if str(self.log_level).upper() not in _LOG_LEVELS:
            raise ConfigError("log_level", f"unknown level {self.log_level!r}")
        if not isinstance(self.extras, dict):
            raise ConfigError("extras", "must be a dict")

    @property
    def logging_level(self) -> int:
        return getattr(logging, str(self.log_level).upper())

    def to_dict(self) -> dict:
        """Return a dict representation of the configuration.

        Useful for serialisation or interfacing with dynamic
        configuration loaders.
        """
        data = self.__dict__.copy()
        data["extras"] = dict(self.extras)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SimConfig":
        """Build a configuration from a mapping, rejecting unknown keys."""
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigError(unknown[0], "unknown configuration option")
        return cls(**data)


def load_config(path: str | Path) -> SimConfig:
    """Read a JSON configuration file and return a validated config."""
    try:
        data = json.loads(Path(path).read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ConfigError("file", f"{path} is not valid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError("file", f"{path} must contain a JSON object")
    config = SimConfig.from_dict(data)
    config.validate()
    return config
