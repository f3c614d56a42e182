"""
Tests for the core.config module.

Covers validation of every option family, dict round-tripping and JSON
loading.
"""

import unittest
import sys
import os
import json
import tempfile
import shutil

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from matrixsim.core.config import SimConfig, load_config
from matrixsim.core.errors import ConfigError, MatrixSimError


class TestSimConfigValidation(unittest.TestCase):
    """Tests for SimConfig.validate."""

    def test_defaults_are_valid(self):
        SimConfig().validate()

    def test_documented_defaults(self):
        cfg = SimConfig()
        self.assertEqual(cfg.particle_count, 100_000)
        self.assertEqual(cfg.seed, 42)
        self.assertEqual(cfg.near_field_k, 32)
        self.assertEqual(cfg.far_field_grid_resolution, 16)
        self.assertEqual(cfg.softening, 0.01)
        self.assertEqual(cfg.dark_matter_fraction, 0.27)

    def test_negative_particle_count(self):
        with self.assertRaises(ConfigError) as ctx:
            SimConfig(particle_count=-5).validate()
        self.assertEqual(ctx.exception.field, "particle_count")

    def test_zero_particle_count(self):
        with self.assertRaises(ConfigError):
            SimConfig(particle_count=0).validate()

    def test_fraction_outside_unit_interval(self):
        with self.assertRaises(ConfigError) as ctx:
            SimConfig(dark_matter_fraction=1.5).validate()
        self.assertEqual(ctx.exception.field, "dark_matter_fraction")
        with self.assertRaises(ConfigError):
            SimConfig(dark_matter_fraction=-0.1).validate()

    def test_fraction_bounds_inclusive(self):
        SimConfig(dark_matter_fraction=0.0).validate()
        SimConfig(dark_matter_fraction=1.0).validate()

    def test_any_integer_seed(self):
        SimConfig(seed=-7).validate()
        SimConfig(seed=2 ** 70).validate()

    def test_non_integer_seed(self):
        with self.assertRaises(ConfigError):
            SimConfig(seed=1.5).validate()

    def test_non_positive_timestep(self):
        with self.assertRaises(ConfigError):
            SimConfig(timestep=0.0).validate()

    def test_life_band_order(self):
        with self.assertRaises(ConfigError):
            SimConfig(life_probability_min=0.5, life_probability_max=0.1).validate()

    def test_unknown_log_level(self):
        with self.assertRaises(ConfigError):
            SimConfig(log_level="LOUD").validate()

    def test_config_error_hierarchy(self):
        err = ConfigError("seed", "bad")
        self.assertIsInstance(err, ValueError)
        self.assertIsInstance(err, MatrixSimError)
        self.assertIn("seed", str(err))


class TestSimConfigSerialisation(unittest.TestCase):
    """Tests for to_dict, from_dict and load_config."""

    def setUp(self):
        self.test_dir = tempfile.mkdtemp()

    def tearDown(self):
        shutil.rmtree(self.test_dir)

    def test_dict_round_trip(self):
        cfg = SimConfig(particle_count=500, seed=7, extras={"note": "x"})
        self.assertEqual(SimConfig.from_dict(cfg.to_dict()), cfg)

    def test_to_dict_copies_extras(self):
        cfg = SimConfig(extras={"a": 1})
        data = cfg.to_dict()
        data["extras"]["a"] = 2
        self.assertEqual(cfg.extras["a"], 1)

    def test_unknown_key_rejected(self):
        with self.assertRaises(ConfigError) as ctx:
            SimConfig.from_dict({"particle_count": 10, "warp_drive": True})
        self.assertEqual(ctx.exception.field, "warp_drive")

    def test_load_config(self):
        path = os.path.join(self.test_dir, "sim.json")
        with open(path, "w") as f:
            json.dump({"particle_count": 1000, "seed": 3}, f)
        cfg = load_config(path)
        self.assertEqual(cfg.particle_count, 1000)
        self.assertEqual(cfg.seed, 3)

    def test_load_config_invalid_value(self):
        path = os.path.join(self.test_dir, "bad.json")
        with open(path, "w") as f:
            json.dump({"dark_matter_fraction": 2.0}, f)
        with self.assertRaises(ConfigError):
            load_config(path)

    def test_load_config_not_json(self):
        path = os.path.join(self.test_dir, "broken.json")
        with open(path, "w") as f:
            f.write("{not json")
        with self.assertRaises(ConfigError):
            load_config(path)

    def test_logging_level(self):
        import logging
        self.assertEqual(SimConfig(log_level="debug").logging_level, logging.DEBUG)


if __name__ == "__main__":
    unittest.main()
