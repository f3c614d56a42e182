"""
Tests for the domains.life package.

Covers genome synthesis and repair, emergence and complexity rules,
lineage bookkeeping, the soul ledger and the Monte Carlo survey.
"""

import unittest
import sys
import os

import numpy as np

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from matrixsim.core.config import SimConfig
from matrixsim.domains.astro.planets import AtmosphereType, Planet, PlanetType
from matrixsim.domains.life.biosphere import (
    COMPLEXITY_STAGES,
    DRY_WORLD_PROBABILITY,
    complexity_ceiling,
    draw_emergence,
    evolve_complexity,
    life_possible,
    life_probability,
)
from matrixsim.domains.life.genome import (
    AXES,
    BodyStructure,
    Genome,
    Habitat,
    Interface,
    Motility,
    Sense,
    Substrate,
    allowed_senses,
    cognition_cap,
    synthesize_genome,
    violations,
)
from matrixsim.domains.life.soul import (
    LineageRegistry,
    SoulLedger,
    SoulRecord,
    condition_tags,
    lineage_id,
)
from matrixsim.core.region import create_regions
from matrixsim.domains.astro.stars import SpectralClass
from matrixsim.domains.life.biosphere import Biosphere
from matrixsim.domains.life.genome import EnergySource, Propagation
from matrixsim.domains.life.survey import (
    Sighting,
    SurveyResult,
    select_remarkable,
    summarize,
    survey_universe,
    survey_universes,
)


def make_planet(temperature=288.0, planet_type=PlanetType.ROCKY, water=True,
                atmosphere=AtmosphereType.NITROGEN_OXYGEN, mass=1.0):
    return Planet(
        index=0,
        orbital_radius=1.0,
        orbital_period=1.0,
        orbital_angle=0.0,
        mass=mass,
        radius=1.0,
        surface_temperature=temperature,
        has_water=water,
        planet_type=planet_type,
        atmosphere=atmosphere,
    )


HABITATS = [
    Habitat(PlanetType.ROCKY, 288.0, AtmosphereType.NITROGEN_OXYGEN, c)
    for c in (0.2, 0.8, 1.6, 2.5, 4.0, 6.0, 9.0)
] + [
    Habitat(PlanetType.OCEAN, 300.0, AtmosphereType.THIN_CO2, 5.5),
    Habitat(PlanetType.FROZEN, 90.0, AtmosphereType.METHANE, 1.8),
    Habitat(PlanetType.FROZEN, 180.0, AtmosphereType.EXOTIC, 2.0),
    Habitat(PlanetType.LAVA, 700.0, AtmosphereType.THICK_CO2, 8.0),
    Habitat(PlanetType.GAS_GIANT, 300.0, AtmosphereType.HYDROGEN, 7.5),
    Habitat(PlanetType.ICE_GIANT, 120.0, AtmosphereType.NONE, 3.2),
]


class TestGenomeSynthesis(unittest.TestCase):
    """Tests for synthesize_genome and its repair pass."""

    def test_constraints_hold(self):
        for habitat in HABITATS:
            for seed in range(40):
                genome = synthesize_genome(np.random.default_rng(seed), habitat)
                self.assertEqual(violations(genome, habitat), [], msg=f"{habitat} seed {seed}")

    def test_deterministic(self):
        habitat = HABITATS[5]
        a = synthesize_genome(np.random.default_rng(3), habitat)
        b = synthesize_genome(np.random.default_rng(3), habitat)
        self.assertEqual(a, b)

    def test_cross_axis_rules(self):
        for seed in range(100):
            genome = synthesize_genome(np.random.default_rng(seed), HABITATS[6])
            self.assertLessEqual(genome.cognition, cognition_cap(genome.structure))
            if genome.interface == Interface.SYMBOLIC_LANGUAGE:
                self.assertTrue(genome.tool_user)
            if genome.interface == Interface.VISUAL_DISPLAY:
                self.assertTrue(genome.has_sense(Sense.PHOTO))
            self.assertTrue(genome.has_sense(Sense.CHEMO))

    def test_opaque_atmosphere_blocks_light(self):
        habitat = HABITATS[11]
        self.assertFalse(allowed_senses(habitat) & Sense.PHOTO)
        for seed in range(30):
            genome = synthesize_genome(np.random.default_rng(seed), habitat)
            self.assertFalse(genome.has_sense(Sense.PHOTO))
            self.assertIn(genome.motility, (Motility.SESSILE, Motility.DRIFTING, Motility.CILIA,
                                            Motility.SWIMMING, Motility.FLYING))

    def test_cryogenic_substrate(self):
        genome = synthesize_genome(np.random.default_rng(0), HABITATS[8])
        self.assertEqual(genome.substrate, Substrate.HYDROCARBON)

    def test_stable_prior_is_kept(self):
        for habitat in HABITATS:
            prior = synthesize_genome(np.random.default_rng(1), habitat)
            reborn = synthesize_genome(np.random.default_rng(2), habitat, prior=prior,
                                       stability=[1.0] * len(AXES))
            self.assertEqual(reborn, prior)

    def test_invalid_prior_is_repaired(self):
        habitat = HABITATS[0]
        prior = synthesize_genome(np.random.default_rng(1), HABITATS[6])
        reborn = synthesize_genome(np.random.default_rng(2), habitat, prior=prior,
                                   stability=[1.0] * len(AXES))
        self.assertEqual(violations(reborn, habitat), [])

    def test_traits_round_trip(self):
        genome = synthesize_genome(np.random.default_rng(4), HABITATS[6])
        traits = genome.traits()
        self.assertEqual(len(traits), len(AXES))
        self.assertEqual(Genome.from_traits(traits), genome)
        with self.assertRaises(ValueError):
            Genome.from_traits(traits[:-1])

    def test_describe(self):
        genome = synthesize_genome(np.random.default_rng(4), HABITATS[6])
        text = genome.describe()
        self.assertIn("Substrate:", text)
        self.assertEqual(len(text.splitlines()), 9)
        self.assertIn("(", genome.short_desc())

    def test_cognition_cap(self):
        self.assertEqual(cognition_cap(BodyStructure.SINGLE_CELL), 0.2)
        self.assertEqual(cognition_cap(BodyStructure.RADIAL), 0.6)
        self.assertEqual(cognition_cap(BodyStructure.BILATERAL), 1.0)


class TestEmergence(unittest.TestCase):
    """Tests for life emergence and complexity progression."""

    def test_ceilings(self):
        self.assertEqual(complexity_ceiling(PlanetType.FROZEN), 2.0)
        self.assertEqual(complexity_ceiling(PlanetType.OCEAN), 6.0)
        self.assertEqual(complexity_ceiling(PlanetType.ROCKY), 10.0)
        for seed in range(50):
            frozen, _ = evolve_complexity(12.0, PlanetType.FROZEN, np.random.default_rng(seed))
            ocean, _ = evolve_complexity(12.0, PlanetType.OCEAN, np.random.default_rng(seed))
            self.assertLessEqual(frozen, 2.0)
            self.assertLessEqual(ocean, 6.0)

    def test_early_stages_are_certain(self):
        complexity, stage = evolve_complexity(0.2, PlanetType.ROCKY, np.random.default_rng(0))
        self.assertAlmostEqual(complexity, 0.4)
        self.assertEqual(stage, "prokaryotes")
        complexity, stage = evolve_complexity(1.0, PlanetType.ROCKY, np.random.default_rng(0))
        self.assertAlmostEqual(complexity, 1.0 + 0.5 / 1.5)
        self.assertEqual(stage, "diversification")

    def test_complexity_never_exceeds_ten(self):
        top = COMPLEXITY_STAGES[-1]
        self.assertEqual(top.base + top.span, 10.0)
        for seed in range(50):
            complexity, _ = evolve_complexity(20.0, PlanetType.ROCKY, np.random.default_rng(seed))
            self.assertLessEqual(complexity, 10.0)

    def test_probability_clamped(self):
        planet = make_planet()
        p = life_probability(planet, 50.0, 1e-7, 0.15)
        self.assertAlmostEqual(p, 0.1, places=5)
        self.assertEqual(life_probability(planet, 50.0, 1e-7, 0.05), 0.05)
        self.assertEqual(life_probability(planet, 0.0, 1e-7, 0.15), 1e-7)

    def test_dry_worlds(self):
        self.assertEqual(life_probability(make_planet(water=False), 5.0, 1e-7, 0.15), DRY_WORLD_PROBABILITY)

    def test_preconditions(self):
        self.assertTrue(life_possible(make_planet()))
        self.assertFalse(life_possible(make_planet(atmosphere=AtmosphereType.NONE)))
        self.assertFalse(life_possible(make_planet(temperature=400.0)))
        self.assertFalse(life_possible(make_planet(temperature=200.0)))

    def test_no_life_before_onset(self):
        for seed in range(20):
            self.assertIsNone(draw_emergence(make_planet(), 1.0, 1.0, 1.0, np.random.default_rng(seed)))

    def test_certain_emergence(self):
        life_age = draw_emergence(make_planet(), 5.0, 1.0, 1.0, np.random.default_rng(0))
        self.assertEqual(life_age, 4.0)


class TestLineages(unittest.TestCase):
    """Tests for lineage ids, condition tags and the per-cycle registry."""

    def setUp(self):
        self.a = synthesize_genome(np.random.default_rng(1), HABITATS[5])
        self.b = Genome.from_traits(
            tuple(v if name != "collective" else (v + 0.01 if v < 0.5 else v - 0.01)
                  for name, v in zip(AXES, self.a.traits()))
        )

    def test_lineage_id(self):
        self.assertEqual(lineage_id((1, 2, 3), 4, 5), "r123/s4/p5")

    def test_condition_tags(self):
        planet = make_planet(temperature=360.0, planet_type=PlanetType.OCEAN, mass=6.0)
        self.assertEqual(condition_tags(planet, 5.0), ("ancient", "high_gravity", "hot", "ocean"))
        thin = make_planet(temperature=220.0, atmosphere=AtmosphereType.THIN_CO2)
        self.assertEqual(condition_tags(thin, 1.0), ("cold", "no_oxygen", "thin_atmosphere"))

    def test_stability(self):
        registry = LineageRegistry()
        self.assertTrue(registry.observe("x", self.a, 1.0, ["hot"]))
        self.assertTrue(registry.observe("x", self.b, 2.0, ["cold"]))
        self.assertTrue(registry.observe("x", self.b, 3.0, []))
        history = registry.get("x")
        self.assertEqual(history.transitions, 2)
        self.assertEqual(history.lifespan, 3.0)
        self.assertEqual(history.conditions, ("cold", "hot"))
        stability = history.stability()
        collective = AXES.index("collective")
        self.assertAlmostEqual(stability[collective], 0.5)
        for i, value in enumerate(stability):
            if i != collective:
                self.assertAlmostEqual(value, 0.75)

    def test_identical_observation_ignored(self):
        registry = LineageRegistry()
        registry.observe("x", self.a, 1.0, [])
        self.assertFalse(registry.observe("x", self.a, 1.0, []))
        self.assertEqual(registry.get("x").transitions, 0)
        self.assertEqual(registry.get("x").stability(), tuple([0.5] * len(AXES)))

    def test_contributions(self):
        registry = LineageRegistry()
        registry.observe("x", self.a, 2.0, ["hot"])
        registry.observe("y", self.a, 0.0, [])
        records = registry.contributions()
        self.assertEqual([r.lineage_id for r in records], ["x"])
        self.assertEqual(records[0].traits, self.a)
        self.assertEqual(records[0].cycles, 1)
        registry.clear()
        self.assertEqual(len(registry), 0)
        self.assertNotIn("x", registry)


class TestSoulLedger(unittest.TestCase):
    """Tests for SoulRecord merging and the ledger."""

    def setUp(self):
        self.genome = synthesize_genome(np.random.default_rng(1), HABITATS[0])
        self.newer = synthesize_genome(np.random.default_rng(2), HABITATS[0])

    def record(self, lifespan, stability, conditions, traits):
        return SoulRecord("r000/s0/p0", lifespan, tuple([stability] * len(AXES)), conditions, traits)

    def test_merge(self):
        ledger = SoulLedger()
        ledger.merge(self.record(1.0, 0.5, ("hot",), self.genome))
        merged = ledger.merge(self.record(2.0, 1.0, ("ocean",), self.newer))
        self.assertEqual(len(ledger), 1)
        self.assertEqual(merged.lifespan, 3.0)
        self.assertEqual(merged.cycles, 2)
        self.assertEqual(merged.conditions, ("hot", "ocean"))
        self.assertEqual(merged.traits, self.newer)
        for value in merged.stability:
            self.assertAlmostEqual(value, 0.75)

    def test_stability_weighted_by_cycles(self):
        ledger = SoulLedger()
        for _ in range(3):
            ledger.merge(self.record(1.0, 0.0, (), self.genome))
        merged = ledger.merge(self.record(1.0, 1.0, (), self.genome))
        for value in merged.stability:
            self.assertAlmostEqual(value, 0.25)

    def test_snapshot_is_a_copy(self):
        ledger = SoulLedger()
        ledger.merge(self.record(1.0, 0.5, (), self.genome))
        view = ledger.snapshot()
        view.clear()
        self.assertIn("r000/s0/p0", ledger)

    def test_merge_all(self):
        ledger = SoulLedger()
        count = ledger.merge_all([self.record(1.0, 0.5, (), self.genome)] * 2)
        self.assertEqual(count, 2)
        self.assertEqual(ledger.get("r000/s0/p0").cycles, 2)


class TestSurvey(unittest.TestCase):
    """Tests for the Monte Carlo life survey."""

    def test_deterministic(self):
        config = SimConfig(max_stars_per_region=15, life_probability_max=0.5)
        first = survey_universes(2, 7, (8.0, 13.8), config, sample_regions=2)
        second = survey_universes(2, 7, (8.0, 13.8), config, sample_regions=2)
        self.assertEqual([r.seed for r in first], [7, 8])
        self.assertEqual(first, second)

    def test_counts(self):
        result = survey_universes(1, 3, 8.0, SimConfig(max_stars_per_region=20), sample_regions=3)[0]
        self.assertEqual(result.ages, (8.0,))
        self.assertEqual(result.stars, 60)
        self.assertGreaterEqual(result.planets, result.habitable_planets)
        self.assertGreaterEqual(len(result.biospheres), result.civilizations)
        for sighting in result.sightings:
            self.assertIn(sighting.coord, result.regions)

    def test_densest_regions_sampled(self):
        result = survey_universe(SimConfig(seed=5, max_stars_per_region=10), ages=(8.0, 13.8), sample_regions=4)
        self.assertEqual(result.ages, (8.0, 13.8))
        self.assertEqual(result.stars, 2 * 4 * 10)
        regions = create_regions(5, 1, 8.0, 0.27)
        expected = sorted(regions, key=lambda c: (regions[c].density, c), reverse=True)[:4]
        self.assertEqual(result.regions, expected)

    def test_invalid_arguments(self):
        with self.assertRaises(ValueError):
            survey_universes(-1, 0, 5.0)
        with self.assertRaises(ValueError):
            survey_universe(SimConfig(), 5.0, sample_regions=0)


def make_sighting(substrate=Substrate.CARBON_WATER, structure=BodyStructure.SINGLE_CELL, senses=0,
                  size_log=-3.0, cognition=0.0, collective=0.0, complexity=0.0, technology=False,
                  seed=1, lineage="r000/s0/p0"):
    genome = Genome(substrate=substrate, structure=structure, senses=senses, size_log=size_log,
                    energy_source=EnergySource.CHEMOSYNTHESIS, cognition=cognition, collective=collective,
                    propagation=Propagation.FISSION, motility=Motility.SESSILE, interface=Interface.NONE)
    life = Biosphere(genome=genome, complexity=complexity, stage="prokaryotes", species_count=10,
                     biomass=1.0, has_technology=technology, mutation_rate=1e-8, lineage_id=lineage,
                     life_age=1.0)
    return Sighting(seed=seed, age=8.0, coord=(0, 0, 0), star_index=0, planet_index=0,
                    spectral_class=SpectralClass.G, planet_type=PlanetType.ROCKY, biosphere=life)


class TestRemarkableLife(unittest.TestCase):
    """Tests for uniqueness ranking, diverse selection and the census."""

    def test_uniqueness_score(self):
        self.assertEqual(make_sighting().uniqueness_score, 0.0)
        rich = make_sighting(substrate=Substrate.SILICON, structure=BodyStructure.BILATERAL,
                             senses=int(Sense.CHEMO | Sense.PHOTO), size_log=0.0, cognition=0.5,
                             collective=0.2, complexity=4.0, technology=True)
        self.assertAlmostEqual(rich.uniqueness_score, 9.0 + 6.0 + 20.0 + 2.0 + 20.0 + 15.0 + 10.0 + 50.0)

    def test_one_per_substrate_and_structure(self):
        best = make_sighting(cognition=0.9, lineage="a")
        twin = make_sighting(cognition=0.5, lineage="b")
        other = make_sighting(structure=BodyStructure.COLONIAL, lineage="c")
        self.assertEqual(select_remarkable([other, twin, best]), [best, other])
        self.assertEqual(select_remarkable([other, twin, best], limit=1), [best])

    def test_summarize(self):
        alive = SurveyResult(seed=1, ages=(8.0,), sightings=[
            make_sighting(technology=True, lineage="a"),
            make_sighting(substrate=Substrate.SILICON, lineage="b"),
            make_sighting(lineage="c"),
        ])
        barren = SurveyResult(seed=2, ages=(8.0,))
        summary = summarize([alive, barren])
        self.assertEqual(summary.universes, 2)
        self.assertEqual(summary.universes_with_life, 1)
        self.assertEqual(summary.universes_with_civilizations, 1)
        self.assertEqual(summary.life_planets, 3)
        self.assertEqual(summary.civilizations, 1)
        self.assertEqual(summary.substrate_counts, {Substrate.CARBON_WATER: 2, Substrate.SILICON: 1})
        self.assertEqual(len(summary.remarkable), 2)
        self.assertTrue(summary.remarkable[0].biosphere.has_technology)

if __name__ == "__main__":
    unittest.main()
