import math
import unittest
from unittest import mock
import numpy as np
from celestial_body import CelestialBody, CelestialBodyType
from config import config, GRAVITATIONAL_CONSTANT, SECONDS_PER_DAY
from mass_body import MassBody
from orbital_mechanics import OrbitalMechanics
from physics_engine import PhysicsEngine, SemiImplicitEulerIntegrator, LeapfrogIntegrator, create_integrator
from physics_utils import PhysicsError
from vector3d import Vector3d

SUN_MASS = 1.98855e30
EARTH_MASS = 5.97e24
AU = 1.496e11

class CountingBody(MassBody):
    """MassBody that records how the engine drives its hooks."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.state_updates = []
        self.trajectory_updates = 0

    def update_state(self, time_delta):
        self.state_updates.append(time_delta)

    def update_trajectory(self):
        self.trajectory_updates += 1

class NaNForceBody(MassBody):

    def get_additional_force(self):
        return Vector3d(math.nan, 0.0, 0.0)

def two_body_system(eccentricity=0.0, planet_mass=1e20, integrator=None, max_step=3600.0):
    """Star at rest at the origin and a planet at periapsis, both initialized and registered."""
    engine = PhysicsEngine(max_simulation_time_step=max_step, integrator=integrator)
    star = CelestialBody("Star", SUN_MASS, body_type=CelestialBodyType.STAR)
    planet = CelestialBody("Planet", planet_mass, has_orbit=True, orbit_radius=AU,
                           orbital_eccentricity=eccentricity, parent=star)
    OrbitalMechanics().place_at_periapsis(planet)
    for body in (star, planet):
        body.initialize()
        engine.add_body(body)
    return engine, star, planet

class TestAddBodyAndReset(unittest.TestCase):

    def test_add_and_lookup(self):
        engine = PhysicsEngine()
        body = MassBody("A", 1.0)
        engine.add_body(body)
        self.assertIs(engine.get_body("A"), body)
        self.assertIsNone(engine.get_body("B"))
        self.assertEqual(engine.bodies, (body,))

    def test_rejects_non_finite_state(self):
        engine = PhysicsEngine()
        for kwargs in ({"position": Vector3d(math.nan, 0.0, 0.0)},
                       {"velocity": Vector3d(0.0, math.inf, 0.0)},
                       {"acceleration": Vector3d(0.0, 0.0, -math.inf)}):
            with self.assertRaises(PhysicsError):
                engine.add_body(MassBody("Bad", 1.0, **kwargs))
        self.assertEqual(len(engine.bodies), 0)

    def test_rejects_non_positive_mass(self):
        engine = PhysicsEngine()
        for mass in (0.0, -5.0, math.nan):
            with self.assertRaises(PhysicsError):
                engine.add_body(MassBody("Bad", mass))

    def test_rejects_duplicate_name(self):
        engine = PhysicsEngine()
        engine.add_body(MassBody("A", 1.0))
        with self.assertRaises(PhysicsError):
            engine.add_body(MassBody("A", 2.0))

    def test_parent_must_be_registered_first(self):
        engine = PhysicsEngine()
        star = CelestialBody("Star", SUN_MASS, body_type=CelestialBodyType.STAR)
        planet = CelestialBody("Planet", EARTH_MASS, position=Vector3d(AU, 0.0, 0.0), parent=star)
        with self.assertRaises(PhysicsError):
            engine.add_body(planet)
        self.assertEqual(engine.bodies, ())

        engine.add_body(star)
        engine.add_body(planet)
        self.assertEqual(engine.bodies, (star, planet))

    def test_parent_from_another_engine_is_rejected(self):
        other = PhysicsEngine()
        star = CelestialBody("Star", SUN_MASS, body_type=CelestialBodyType.STAR)
        other.add_body(star)

        engine = PhysicsEngine()
        # Same name, different object
        engine.add_body(CelestialBody("Star", SUN_MASS, body_type=CelestialBodyType.STAR))
        with self.assertRaises(PhysicsError):
            engine.add_body(CelestialBody("Planet", EARTH_MASS, position=Vector3d(AU, 0.0, 0.0), parent=star))

    def test_reset(self):
        engine, _, _ = two_body_system()
        engine.simulate(7200.0)
        engine.reset()
        self.assertEqual(engine.bodies, ())
        self.assertEqual(engine.simulation_time, 0.0)
        engine.add_body(MassBody("Star", 1.0))

    def test_max_step_validation(self):
        with self.assertRaises(PhysicsError):
            PhysicsEngine(max_simulation_time_step=0.0)
        engine = PhysicsEngine()
        self.assertEqual(engine.max_simulation_time_step, 3600.0)
        with self.assertRaises(PhysicsError):
            engine.max_simulation_time_step = -1.0
        with self.assertRaises(PhysicsError):
            engine.max_simulation_time_step = math.inf

class TestSubStepping(unittest.TestCase):

    def test_splits_interval_into_full_steps_and_remainder(self):
        engine = PhysicsEngine(max_simulation_time_step=3600.0)
        body = CountingBody("A", 1.0)
        engine.add_body(body)
        engine.simulate(9000.0)
        self.assertEqual(body.state_updates, [3600.0, 3600.0, 1800.0])
        self.assertEqual(engine.simulation_time, 9000.0)

    def test_exact_multiple_has_no_remainder_step(self):
        engine = PhysicsEngine(max_simulation_time_step=3600.0)
        body = CountingBody("A", 1.0)
        engine.add_body(body)
        engine.simulate(SECONDS_PER_DAY)
        self.assertEqual(len(body.state_updates), 24)

    def test_short_interval_is_single_step(self):
        engine = PhysicsEngine(max_simulation_time_step=3600.0)
        body = CountingBody("A", 1.0)
        engine.add_body(body)
        engine.simulate(1.0 / 60.0)
        self.assertEqual(body.state_updates, [1.0 / 60.0])

    def test_trajectory_updated_once_per_simulate_call(self):
        engine = PhysicsEngine(max_simulation_time_step=3600.0)
        bodies = [CountingBody("A", 1.0), CountingBody("B", 1.0, position=Vector3d(1e9, 0.0, 0.0))]
        for body in bodies:
            engine.add_body(body)
        engine.simulate(10 * 3600.0)
        engine.simulate(5.0)
        self.assertEqual([b.trajectory_updates for b in bodies], [2, 2])

    def test_non_positive_interval_is_noop(self):
        engine = PhysicsEngine()
        body = CountingBody("A", 1.0)
        engine.add_body(body)
        engine.simulate(0.0)
        engine.simulate(-100.0)
        self.assertEqual(body.state_updates, [])
        self.assertEqual(body.trajectory_updates, 0)
        self.assertEqual(engine.simulation_time, 0.0)

    def test_non_finite_interval_raises(self):
        engine = PhysicsEngine()
        with self.assertRaises(PhysicsError):
            engine.simulate(math.inf)
        with self.assertRaises(PhysicsError):
            engine.simulate(math.nan)

    def test_trail_reflects_final_state(self):
        engine, star, planet = two_body_system()
        engine.simulate(5 * SECONDS_PER_DAY + 123.0)
        last = planet.trajectory_tracker.get_trajectory_data()[-1]
        self.assertEqual(last.position, planet.position)
        self.assertEqual(last.parent_position, star.position)

    def test_step_size_does_not_change_sub_step_results(self):
        # 7200 s in one call or two calls of 3600 s gives identical states
        engine1, _, planet1 = two_body_system()
        engine2, _, planet2 = two_body_system()
        engine1.simulate(7200.0)
        engine2.simulate(3600.0)
        engine2.simulate(3600.0)
        self.assertEqual(planet1.position, planet2.position)
        self.assertEqual(planet1.velocity, planet2.velocity)

class TestForces(unittest.TestCase):

    def test_newtons_third_law_by_construction(self):
        engine = PhysicsEngine()
        a = MassBody("A", 3.3e23, position=Vector3d(5.79e10, 1.3e9, -2.0e8))
        b = MassBody("B", 1.9e27, position=Vector3d(-7.7e11, 4.0e10, 1.1e10))
        self.assertEqual(engine.compute_pairwise_force(a, b), -engine.compute_pairwise_force(b, a))

    def test_pair_force_magnitude_and_direction(self):
        engine = PhysicsEngine()
        a = MassBody("A", 2.0e30)
        b = MassBody("B", 6.0e24, position=Vector3d(0.0, 1.5e11, 0.0))
        force = engine.compute_pairwise_force(b, a)
        expected = GRAVITATIONAL_CONSTANT * 2.0e30 * 6.0e24 / 1.5e11 ** 2
        self.assertAlmostEqual(force.length() / expected, 1.0, places=12)
        self.assertLess(force.y, 0.0)

    def test_accumulated_forces_cancel(self):
        engine = PhysicsEngine()
        rng = np.random.default_rng(42)
        for i in range(6):
            engine.add_body(MassBody(f"B{i}", float(rng.uniform(1e22, 1e30)),
                                     position=Vector3d.from_array(rng.uniform(-1e12, 1e12, 3))))
        engine.compute_gravitational_forces()
        total = Vector3d.ZERO
        scale = 0.0
        for body in engine.bodies:
            total = total + body.total_gravitational_force
            scale += body.total_gravitational_force.length()
        self.assertLess(total.length(), 1e-12 * scale)

    def test_two_body_forces_are_exact_negations(self):
        engine, star, planet = two_body_system(planet_mass=EARTH_MASS)
        engine.compute_gravitational_forces()
        self.assertEqual(star.total_gravitational_force, -planet.total_gravitational_force)

    def test_coincident_bodies_contribute_zero(self):
        engine = PhysicsEngine()
        a = MassBody("A", 1e24, position=Vector3d(1.0, 2.0, 3.0))
        b = MassBody("B", 1e24, position=Vector3d(1.0, 2.0, 3.0))
        self.assertEqual(engine.compute_pairwise_force(a, b), Vector3d.ZERO)
        engine.add_body(a)
        engine.add_body(b)
        engine.simulate(3600.0)
        self.assertTrue(a.position.is_finite())
        self.assertEqual(a.acceleration, Vector3d.ZERO)

    def test_additional_force_is_applied(self):
        class Thruster(MassBody):
            def get_additional_force(self):
                return Vector3d(10.0, 0.0, 0.0)

        engine = PhysicsEngine()
        probe = Thruster("Probe", 2.0)
        engine.add_body(probe)
        engine.simulate(1.0)
        self.assertEqual(probe.acceleration, Vector3d(5.0, 0.0, 0.0))
        # Semi-implicit Euler: velocity first, then position with the new velocity
        self.assertEqual(probe.velocity, Vector3d(5.0, 0.0, 0.0))
        self.assertEqual(probe.position, Vector3d(5.0, 0.0, 0.0))

class TestConservation(unittest.TestCase):

    def three_body_engine(self, integrator=None):
        engine = PhysicsEngine(integrator=integrator)
        engine.add_body(MassBody("Sun", SUN_MASS, velocity=Vector3d(0.0, -12.0, 0.0)))
        engine.add_body(MassBody("Earth", EARTH_MASS, position=Vector3d(AU, 0.0, 0.0),
                                 velocity=Vector3d(0.0, 29.8e3, 0.0)))
        engine.add_body(MassBody("Jupiter", 1.898e27, position=Vector3d(0.0, 7.785e11, 1e10),
                                 velocity=Vector3d(-13.1e3, 0.0, 0.0)))
        return engine

    def test_momentum_conserved(self):
        for integrator in (SemiImplicitEulerIntegrator(), LeapfrogIntegrator()):
            engine = self.three_body_engine(integrator)
            initial = engine.total_momentum()
            scale = sum(body.momentum.length() for body in engine.bodies)
            for _ in range(20):
                engine.simulate(50 * 3600.0)
            drift = (engine.total_momentum() - initial).length()
            self.assertLess(drift, 1e-10 * scale, msg=integrator.name)

    def test_energy_drift_is_small(self):
        engine = self.three_body_engine()
        initial = engine.total_energy()
        engine.simulate(365 * SECONDS_PER_DAY)
        self.assertLess(abs((engine.total_energy() - initial) / initial), 1e-3)

    def test_total_energy_two_bodies(self):
        engine = PhysicsEngine()
        engine.add_body(MassBody("A", 2.0, velocity=Vector3d(3.0, 0.0, 0.0)))
        engine.add_body(MassBody("B", 4.0, position=Vector3d(0.0, 8.0, 0.0)))
        expected = 0.5 * 2.0 * 9.0 - GRAVITATIONAL_CONSTANT * 2.0 * 4.0 / 8.0
        self.assertAlmostEqual(engine.total_energy(), expected)

    def test_center_of_mass(self):
        engine = PhysicsEngine()
        self.assertEqual(engine.center_of_mass(), Vector3d.ZERO)
        engine.add_body(MassBody("A", 1.0, position=Vector3d(0.0, 0.0, 0.0)))
        engine.add_body(MassBody("B", 3.0, position=Vector3d(4.0, 8.0, 0.0)))
        self.assertEqual(engine.center_of_mass(), Vector3d(3.0, 6.0, 0.0))

class TestOrbits(unittest.TestCase):

    def assert_returns_after_one_period(self, max_step, integrator=None):
        engine, star, planet = two_body_system(integrator=integrator, max_step=max_step)
        initial = planet.position - star.position
        period = OrbitalMechanics.orbital_period(AU, GRAVITATIONAL_CONSTANT * (SUN_MASS + planet.mass))
        engine.simulate(period)
        error = ((planet.position - star.position) - initial).length()
        self.assertLess(error, 1e-3 * initial.length(), msg=f"max_step={max_step}")

    def test_circular_orbit_is_periodic(self):
        for max_step in (3600.0, 6 * 3600.0):
            self.assert_returns_after_one_period(max_step)

    def test_circular_orbit_is_periodic_with_leapfrog(self):
        self.assert_returns_after_one_period(3600.0, LeapfrogIntegrator())

    def test_earth_year(self):
        engine, sun, earth = two_body_system(eccentricity=0.017, planet_mass=EARTH_MASS)

        def angle():
            relative = earth.position - sun.position
            return math.atan2(relative.y, relative.x)

        step = 6 * 3600.0
        swept = 0.0
        previous_angle = angle()
        previous_time = 0.0
        period = None
        while engine.simulation_time < 400 * SECONDS_PER_DAY:
            engine.simulate(step)
            current = angle()
            delta = (current - previous_angle + math.pi) % (2 * math.pi) - math.pi
            if swept + delta >= 2 * math.pi:
                period = previous_time + step * (2 * math.pi - swept) / delta
                break
            swept += delta
            previous_angle = current
            previous_time = engine.simulation_time

        self.assertIsNotNone(period)
        period_days = period / SECONDS_PER_DAY
        self.assertLess(abs(period_days - 365.25) / 365.25, 0.01)

    def test_angular_trail_stays_within_window(self):
        engine, star, planet = two_body_system()
        tracker = planet.trajectory_tracker
        for _ in range(200):
            engine.simulate(SECONDS_PER_DAY)
            data = tracker.get_trajectory_data()
            self.assertLessEqual(tracker.compute_angle(data[0], data[-1]), tracker.max_angle + 1e-9)
        # Just under one degree per day, so roughly every other day is kept
        self.assertGreater(len(tracker), 40)
        self.assertLess(len(tracker), 50)

class TestNonFinitePolicy(unittest.TestCase):

    def test_strict_raises(self):
        engine = PhysicsEngine()
        engine.add_body(NaNForceBody("Broken", 1.0))
        with mock.patch.object(config.Debug, "STRICT_INVARIANTS", True):
            with self.assertRaises(PhysicsError) as ctx:
                engine.simulate(10.0)
        self.assertIn("Broken", str(ctx.exception))

    def test_lenient_rolls_back_and_continues(self):
        engine = PhysicsEngine()
        broken = NaNForceBody("Broken", 1.0, position=Vector3d(1.0, 2.0, 3.0), velocity=Vector3d(4.0, 0.0, 0.0))
        healthy = MassBody("Healthy", 1.0, position=Vector3d(1e6, 0.0, 0.0))
        engine.add_body(broken)
        engine.add_body(healthy)
        with mock.patch.object(config.Debug, "STRICT_INVARIANTS", False):
            with self.assertLogs(level="ERROR"):
                engine.simulate(10.0)
        self.assertEqual(broken.position, Vector3d(1.0, 2.0, 3.0))
        self.assertEqual(broken.velocity, Vector3d(4.0, 0.0, 0.0))
        self.assertEqual(broken.acceleration, Vector3d.ZERO)
        self.assertTrue(healthy.position.is_finite())
        self.assertEqual(engine.simulation_time, 10.0)

class TestSpeedPolicy(unittest.TestCase):

    def test_slow_speed_keeps_base_step(self):
        engine = PhysicsEngine()
        self.assertEqual(engine.set_simulation_speed(SECONDS_PER_DAY, 3600.0, 100), 3600.0)

    def test_fast_speed_scales_step(self):
        engine = PhysicsEngine()
        step = engine.set_simulation_speed(100 * SECONDS_PER_DAY, 3600.0, 100)
        self.assertEqual(step, SECONDS_PER_DAY)
        self.assertEqual(engine.max_simulation_time_step, SECONDS_PER_DAY)

    def test_zero_iterations_disables_scaling(self):
        engine = PhysicsEngine()
        self.assertEqual(engine.set_simulation_speed(5 * SECONDS_PER_DAY, 3600.0, 0), 3600.0)

    def test_defaults_from_config(self):
        engine = PhysicsEngine()
        step = engine.set_simulation_speed(7 * SECONDS_PER_DAY)
        self.assertAlmostEqual(step, 7 * SECONDS_PER_DAY / config.Physics.MAX_SUBSTEPS_PER_CALL)

class TestIntegratorSelection(unittest.TestCase):

    def test_default_integrator(self):
        self.assertIsInstance(PhysicsEngine().integrator, SemiImplicitEulerIntegrator)

    def test_create_by_name(self):
        self.assertIsInstance(create_integrator("leapfrog"), LeapfrogIntegrator)
        with self.assertRaises(PhysicsError):
            create_integrator("runge_kutta")

    def test_debug_logging(self):
        engine = PhysicsEngine()
        with mock.patch.object(config.Debug, "PHYSICS_ENGINE", True):
            with self.assertLogs(level="DEBUG"):
                engine.add_body(MassBody("A", 1.0))
                engine.simulate(1.0)

if __name__ == '__main__':
    unittest.main(argv=['first-arg-is-ignored'], exit=False)
