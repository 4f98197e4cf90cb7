import unittest
from unittest import mock
from config import config, ConfigurationError, SimulationConfig

class TestSimulationConfig(unittest.TestCase):

    def test_default_configuration_is_valid(self):
        SimulationConfig()
        config.validate()

    def test_invalid_settings_raise(self):
        invalid = [
            (config.Physics, "MAX_SIMULATION_TIME_STEP", 0.0),
            (config.Physics, "MAX_SUBSTEPS_PER_CALL", -1),
            (config.Physics, "INTEGRATION_METHOD", "verlet"),
            (config.Trajectory, "MAX_ANGLE_DEG", 360.0),
            (config.Trajectory, "MIN_ANGLE_INCREMENT_DEG", 120.0),
            (config.Trajectory, "MAX_ENTRIES", 0),
            (config.KeplerSolver, "TOLERANCE_RAD", 0.0),
            (config.KeplerSolver, "HIGH_ECCENTRICITY_THRESHOLD", 1.0),
            (config.Simulation, "SPEED_INTERVALS", [0, 100, 10]),
            (config.Simulation, "DEFAULT_FPS", 0),
            (config.Monitoring, "ENERGY_CHECK_INTERVAL_FRAMES", 0),
        ]
        for section, attribute, value in invalid:
            with self.subTest(attribute=attribute):
                with mock.patch.object(section, attribute, value):
                    with self.assertRaises(ConfigurationError):
                        config.validate()

    def test_zero_substeps_disables_scaling_and_is_valid(self):
        with mock.patch.object(config.Physics, "MAX_SUBSTEPS_PER_CALL", 0):
            config.validate()

if __name__ == '__main__':
    unittest.main(argv=['first-arg-is-ignored'], exit=False)
