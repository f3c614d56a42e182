"""
Tests for the domains.astro package: stars and planets.
"""

import unittest
import sys
import os
import math

import numpy as np

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from matrixsim.domains.astro.planets import (
    AtmosphereType,
    Planet,
    PlanetType,
    classify_planet,
    choose_atmosphere,
    generate_planet,
    has_liquid_water,
    is_habitable,
    orbital_period,
    orbital_radius,
    radius_for_mass,
    surface_temperature,
)
from matrixsim.domains.astro.stars import (
    MAX_STAR_MASS,
    MIN_STAR_MASS,
    SpectralClass,
    draw_stellar_mass,
    generate_star,
    luminosity_for_mass,
    temperature_for_mass,
)


class TestSpectralClass(unittest.TestCase):
    """Tests for SpectralClass.from_temperature."""

    def test_buckets(self):
        cases = [
            (40000.0, SpectralClass.O),
            (20000.0, SpectralClass.B),
            (8000.0, SpectralClass.A),
            (6500.0, SpectralClass.F),
            (5778.0, SpectralClass.G),
            (4000.0, SpectralClass.K),
            (3000.0, SpectralClass.M),
        ]
        for temperature, expected in cases:
            self.assertEqual(SpectralClass.from_temperature(temperature), expected)

    def test_thresholds_are_strict(self):
        self.assertEqual(SpectralClass.from_temperature(30000.0), SpectralClass.B)
        self.assertEqual(SpectralClass.from_temperature(3700.0), SpectralClass.M)

    def test_every_class_has_a_colour(self):
        for spectral in SpectralClass:
            self.assertEqual(len(spectral.color), 4)


class TestStars(unittest.TestCase):
    """Tests for the stellar relations and generate_star."""

    def test_mass_bounds(self):
        self.assertAlmostEqual(draw_stellar_mass(0.0), MIN_STAR_MASS + 0.3)
        self.assertEqual(draw_stellar_mass(1.0 - 1e-15), MAX_STAR_MASS)
        for u in np.linspace(0.0, 0.999, 50):
            self.assertGreaterEqual(draw_stellar_mass(u), MIN_STAR_MASS)

    def test_solar_relations(self):
        self.assertAlmostEqual(luminosity_for_mass(1.0), 1.0)
        self.assertAlmostEqual(temperature_for_mass(1.0), 5778.0)
        self.assertGreater(temperature_for_mass(10.0), temperature_for_mass(1.0))

    def test_generate_star(self):
        star = generate_star(3, (100.0, 0.0, -50.0), 100.0, 5.0, np.random.default_rng(11))
        self.assertEqual(star.index, 3)
        self.assertTrue(all(abs(p - c) <= 50.0 for p, c in zip(star.position, (100.0, 0.0, -50.0))))
        self.assertTrue(all(abs(v) <= 100.0 for v in star.velocity))
        self.assertTrue(0 <= star.planet_count < 12)
        self.assertTrue(0.0 <= star.age <= 5.0)
        self.assertIsNone(star.planets)
        self.assertEqual(star.spectral_class, SpectralClass.from_temperature(star.surface_temperature))

    def test_generate_star_deterministic(self):
        a = generate_star(0, (0.0, 0.0, 0.0), 100.0, 3.0, np.random.default_rng(5))
        b = generate_star(0, (0.0, 0.0, 0.0), 100.0, 3.0, np.random.default_rng(5))
        self.assertEqual(a, b)


class TestPlanetRules(unittest.TestCase):
    """Tests for the planet classification rules."""

    def setUp(self):
        self.rng = np.random.default_rng(0)

    def test_temperate_super_earth(self):
        planet_type = classify_planet(50.0, 250.0, True, self.rng)
        self.assertEqual(planet_type, PlanetType.ROCKY)
        self.assertTrue(is_habitable(250.0, True, AtmosphereType.THIN_CO2))

    def test_type_thresholds(self):
        self.assertEqual(classify_planet(500.0, 250.0, False, self.rng), PlanetType.GAS_GIANT)
        self.assertEqual(classify_planet(20.0, 100.0, False, self.rng), PlanetType.ICE_GIANT)
        self.assertEqual(classify_planet(1.0, 600.0, False, self.rng), PlanetType.LAVA)
        self.assertEqual(classify_planet(1.0, 150.0, False, self.rng), PlanetType.FROZEN)
        self.assertEqual(classify_planet(1.0, 300.0, False, self.rng), PlanetType.ROCKY)

    def test_ocean_worlds_need_water(self):
        types = {classify_planet(2.0, 300.0, True, np.random.default_rng(s)) for s in range(60)}
        self.assertEqual(types, {PlanetType.OCEAN, PlanetType.ROCKY})

    def test_habitability(self):
        self.assertFalse(is_habitable(200.0, True, AtmosphereType.NITROGEN_OXYGEN))
        self.assertFalse(is_habitable(300.0, False, AtmosphereType.NITROGEN_OXYGEN))
        self.assertFalse(is_habitable(300.0, True, AtmosphereType.NONE))
        self.assertTrue(is_habitable(399.0, True, AtmosphereType.METHANE))

    def test_liquid_water(self):
        self.assertTrue(has_liquid_water(True, 240.0))
        self.assertTrue(has_liquid_water(True, 400.0))
        self.assertFalse(has_liquid_water(False, 300.0))
        self.assertFalse(has_liquid_water(True, 239.0))

    def test_atmospheres(self):
        self.assertEqual(choose_atmosphere(0.1, 300.0, False, self.rng), AtmosphereType.NONE)
        self.assertEqual(choose_atmosphere(5.0, 2500.0, False, self.rng), AtmosphereType.NONE)
        self.assertEqual(choose_atmosphere(200.0, 300.0, False, self.rng), AtmosphereType.HYDROGEN)
        self.assertEqual(choose_atmosphere(5.0, 800.0, False, self.rng), AtmosphereType.THICK_CO2)
        wet = {choose_atmosphere(5.0, 300.0, True, np.random.default_rng(s)) for s in range(60)}
        self.assertEqual(wet, {AtmosphereType.NITROGEN_OXYGEN, AtmosphereType.THIN_CO2})

    def test_atmosphere_properties(self):
        self.assertFalse(AtmosphereType.NONE.present)
        self.assertFalse(AtmosphereType.METHANE.transparent)
        self.assertTrue(AtmosphereType.THICK_CO2.transparent)
        self.assertFalse(AtmosphereType.THIN_CO2.supports_flight)
        self.assertTrue(AtmosphereType.NITROGEN_OXYGEN.supports_flight)


class TestPlanetPhysics(unittest.TestCase):
    """Tests for orbits, temperature and size."""

    def test_orbits(self):
        self.assertAlmostEqual(orbital_radius(0, 0.0), 0.2)
        self.assertAlmostEqual(orbital_radius(2, 0.0), 0.45)
        self.assertEqual(orbital_radius(0, -0.5), 0.05)
        self.assertAlmostEqual(orbital_period(1.0), 1.0)
        self.assertAlmostEqual(orbital_period(4.0), 8.0)

    def test_temperature(self):
        self.assertAlmostEqual(surface_temperature(1.0, 1.0), 278.0)
        self.assertAlmostEqual(surface_temperature(16.0, 4.0), 278.0)
        self.assertTrue(math.isfinite(surface_temperature(1.0, 0.0)))

    def test_radius(self):
        self.assertAlmostEqual(radius_for_mass(1.0), 1.0)
        self.assertAlmostEqual(radius_for_mass(2.0), 2.0 * 2.0 ** 0.06)
        self.assertGreater(radius_for_mass(318.0), 8.0)

    def test_generate_planet(self):
        planet = generate_planet(2, 1.0, np.random.default_rng(3))
        self.assertIsInstance(planet, Planet)
        self.assertEqual(planet.index, 2)
        self.assertTrue(0.1 <= planet.mass <= 10 ** 3.5)
        self.assertTrue(0.0 <= planet.orbital_angle < 2.0 * math.pi)
        self.assertFalse(planet.has_life)
        if planet.has_water:
            self.assertTrue(planet.atmosphere.present)

    def test_generate_planet_deterministic(self):
        a = generate_planet(1, 2.0, np.random.default_rng(9))
        b = generate_planet(1, 2.0, np.random.default_rng(9))
        self.assertEqual(a, b)


if __name__ == "__main__":
    unittest.main()
