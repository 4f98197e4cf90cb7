# config.py
import logging
import math

# Configure basic logging
logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(module)s - %(message)s')

# Fundamental Physical Constants (SI units)
ASTRONOMICAL_UNIT = 149_597_870_700.0  # [m]
GRAVITATIONAL_CONSTANT = 6.6743015e-11  # [m^3 kg^-1 s^-2], CODATA 2022 recommended value
SECONDS_PER_DAY = 24 * 60 * 60
SECONDS_PER_HOUR = 60 * 60

# Reference bodies; masses and sizes of other bodies are often quoted relative to these.
MASS_OF_SUN = 1_988_550e24  # [kg]
DIAMETER_OF_SUN = 1_392_700_000.0  # [m]
MASS_OF_EARTH = 5.97e24  # [kg]
DIAMETER_OF_EARTH = 12_756_000.0  # [m]


class ConfigurationError(Exception):
    """Custom exception for simulation configuration errors.

    Raised by `SimulationConfig.validate()` and by scenario construction when
    settings or entity tables are invalid, inconsistent, or missing, which
    would prevent the simulation from running correctly.

    Attributes:
        message (str): A human-readable explanation of the configuration error.
                       This is the first argument passed to the exception constructor.
    """
    pass


class SimulationConfig:
    """Centralized, hierarchical configuration for the star-system simulation core.

    Parameters are grouped into nested static classes (`SimulationConfig.Physics`,
    `SimulationConfig.Trajectory`, `SimulationConfig.KeplerSolver`, ...). An
    instance named `config` is created at the end of this module, making it
    globally available via `from config import config`.

    The constructor invokes `validate()`, which checks every section for valid
    ranges and logical consistency and raises `ConfigurationError` when it finds
    a problem, so faulty settings surface at import time rather than deep inside
    the integrator.

    Example Usage:
        >>> from config import config
        >>> print(f"Max sub-step (s): {config.Physics.MAX_SIMULATION_TIME_STEP}")
        >>> print(f"Trail window (deg): {config.Trajectory.MAX_ANGLE_DEG}")
    """

    # --- Physics Configuration ---
    class Physics:
        """Configuration for the N-body physics engine.

        Attributes:
            MAX_SIMULATION_TIME_STEP (float): Upper bound, in simulation seconds, of a
                                              single integration sub-step. `simulate()`
                                              splits longer intervals into sub-steps.
            MAX_SUBSTEPS_PER_CALL (int): Default number of sub-steps the speed policy
                                         aims for when the simulation speed exceeds
                                         `MAX_SIMULATION_TIME_STEP` per real second.
                                         0 disables dynamic scaling.
            INTEGRATION_METHOD (str): Default integrator. Supported: "semi_implicit_euler",
                                      "leapfrog".
        """
        MAX_SIMULATION_TIME_STEP = 3600.0
        MAX_SUBSTEPS_PER_CALL = 100
        INTEGRATION_METHOD = "semi_implicit_euler"

    # --- Trajectory Tracking Configuration ---
    class Trajectory:
        """Configuration for the trail trackers attached to celestial bodies.

        Attributes:
            MIN_ANGLE_INCREMENT_DEG (float): Angular trackers ignore updates that sweep
                                             less than this angle since the last stored entry.
            MAX_ANGLE_DEG (float): Angular trackers keep entries within this angle of the
                                   newest entry (90 = roughly a quarter of an orbit).
            MIN_DISTANCE_INCREMENT_M (float): Linear trackers ignore updates closer than this
                                              to the last stored position.
            MAX_ENTRIES (int): Linear trackers keep at most this many entries.
        """
        MIN_ANGLE_INCREMENT_DEG = 1.0
        MAX_ANGLE_DEG = 90.0
        MIN_DISTANCE_INCREMENT_M = 1_000.0
        MAX_ENTRIES = 500

    # --- Kepler Solver Configuration ---
    class KeplerSolver:
        """Configuration for the Newton-Raphson eccentric anomaly solver.

        Attributes:
            TOLERANCE_RAD (float): Absolute convergence tolerance on E, in radians
                                   (1e-6 degrees).
            MAX_ITERATIONS (int): Iteration cap; the best estimate is returned when hit.
            HIGH_ECCENTRICITY_THRESHOLD (float): Above this eccentricity the iteration
                                                 starts from pi instead of M + e*sin(M).
        """
        TOLERANCE_RAD = math.radians(1e-6)
        MAX_ITERATIONS = 100
        HIGH_ECCENTRICITY_THRESHOLD = 0.8

    # --- Simulation Speed Configuration ---
    class Simulation:
        """Configuration of the simulation speed presets used by the driver.

        Attributes:
            SPEED_INTERVALS (List[int]): Simulation seconds per real second offered by the
                                         speed control, from paused to 100 days/s.
            DEFAULT_SPEED (float): Speed used when neither the user nor the scenario picks one.
            DEFAULT_FPS (int): Frame rate assumed by the headless driver.
        """
        SPEED_INTERVALS = [0, 1, 10, 60, 600, 3600, 6 * 3600, 24 * 3600, 7 * 24 * 3600,
                           30 * 24 * 3600, 100 * 24 * 3600]
        DEFAULT_SPEED = 24 * 3600.0
        DEFAULT_FPS = 60

    # --- Monitoring Configuration ---
    class Monitoring:
        """Configuration for system resource and conservation monitoring.

        Attributes:
            MEMORY_USAGE_WARN_MB (int): Memory usage threshold in Megabytes. If exceeded,
                                        a warning is logged.
            MEMORY_CHECK_INTERVAL_FRAMES (int): Frequency (in driver frames) at which
                                                memory usage is checked.
            ENERGY_CHECK_INTERVAL_FRAMES (int): Frequency (in driver frames) at which the
                                                relative energy drift is logged.
        """
        MEMORY_USAGE_WARN_MB = 2048
        MEMORY_CHECK_INTERVAL_FRAMES = 500
        ENERGY_CHECK_INTERVAL_FRAMES = 600

    # --- Debug Configuration ---
    class Debug:
        """Configuration for debugging features and logging verbosity.

        Attributes:
            STRICT_INVARIANTS (bool): If True, non-finite body state raises `PhysicsError`.
                                      If False, the offending body is rolled back to its
                                      pre-step state and an error is logged instead.
            ORBITAL_MECHANICS (bool): Toggle for verbose logging from orbital placement.
            KEPLER_SOLVER (bool): Toggle for verbose logging from Kepler's equation solver.
            PHYSICS_ENGINE (bool): Toggle for per-step logging from the physics engine.
            TRAJECTORY_TRACKING (bool): Toggle for logging of tracker pruning.
            LOG_BODY_NAMES (List[str]): Bodies whose positions the driver logs periodically.
            LOG_BODY_INTERVAL_FRAMES (int): Frequency (driver frames) of those position logs.
        """
        STRICT_INVARIANTS = True
        ORBITAL_MECHANICS = False
        KEPLER_SOLVER = False
        PHYSICS_ENGINE = False
        TRAJECTORY_TRACKING = False
        LOG_BODY_NAMES = ["Sun", "Earth", "Moon"]
        LOG_BODY_INTERVAL_FRAMES = 600

    def __init__(self):
        """Initializes the `SimulationConfig` instance and validates it.

        Raises:
            ConfigurationError: If `self.validate()` detects any issues with the
                                configuration values.
        """
        self.validate()

    def validate(self):
        """Performs validation of all simulation configuration settings.

        -   **Physics**: `MAX_SIMULATION_TIME_STEP` positive, `MAX_SUBSTEPS_PER_CALL`
            non-negative, `INTEGRATION_METHOD` one of the supported names.
        -   **Trajectory**: increments non-negative, `MAX_ANGLE_DEG` in (0, 360),
            `MAX_ENTRIES` positive.
        -   **KeplerSolver**: positive tolerance and iteration cap, threshold in [0, 1).
        -   **Simulation**: speed intervals non-negative and ascending, positive FPS.
        -   **Monitoring**: positive intervals and threshold.

        Raises:
            ConfigurationError: If any configuration setting is found to be invalid.
        """
        # Physics validation
        if self.Physics.MAX_SIMULATION_TIME_STEP <= 0:
            raise ConfigurationError("Physics.MAX_SIMULATION_TIME_STEP must be positive.")
        if self.Physics.MAX_SUBSTEPS_PER_CALL < 0:
            raise ConfigurationError("Physics.MAX_SUBSTEPS_PER_CALL must be non-negative (0 disables scaling).")
        if self.Physics.INTEGRATION_METHOD not in ("semi_implicit_euler", "leapfrog"):
            raise ConfigurationError(
                f"Physics.INTEGRATION_METHOD '{self.Physics.INTEGRATION_METHOD}' is not supported. "
                "Expected 'semi_implicit_euler' or 'leapfrog'."
            )

        # Trajectory validation
        if self.Trajectory.MIN_ANGLE_INCREMENT_DEG < 0:
            raise ConfigurationError("Trajectory.MIN_ANGLE_INCREMENT_DEG must be non-negative.")
        if not (0 < self.Trajectory.MAX_ANGLE_DEG < 360):
            raise ConfigurationError(
                f"Trajectory.MAX_ANGLE_DEG ({self.Trajectory.MAX_ANGLE_DEG}) must be within (0, 360)."
            )
        if self.Trajectory.MIN_ANGLE_INCREMENT_DEG >= self.Trajectory.MAX_ANGLE_DEG:
            raise ConfigurationError(
                f"Trajectory.MIN_ANGLE_INCREMENT_DEG ({self.Trajectory.MIN_ANGLE_INCREMENT_DEG}) "
                f"must be smaller than MAX_ANGLE_DEG ({self.Trajectory.MAX_ANGLE_DEG})."
            )
        if self.Trajectory.MIN_DISTANCE_INCREMENT_M < 0:
            raise ConfigurationError("Trajectory.MIN_DISTANCE_INCREMENT_M must be non-negative.")
        if self.Trajectory.MAX_ENTRIES <= 0:
            raise ConfigurationError("Trajectory.MAX_ENTRIES must be positive.")

        # Kepler solver validation
        if self.KeplerSolver.TOLERANCE_RAD <= 0:
            raise ConfigurationError("KeplerSolver.TOLERANCE_RAD must be positive.")
        if self.KeplerSolver.MAX_ITERATIONS <= 0:
            raise ConfigurationError("KeplerSolver.MAX_ITERATIONS must be positive.")
        if not (0.0 <= self.KeplerSolver.HIGH_ECCENTRICITY_THRESHOLD < 1.0):
            raise ConfigurationError("KeplerSolver.HIGH_ECCENTRICITY_THRESHOLD must be within [0, 1).")

        # Simulation speed validation
        intervals = self.Simulation.SPEED_INTERVALS
        if not intervals or any(v < 0 for v in intervals):
            raise ConfigurationError("Simulation.SPEED_INTERVALS must be a non-empty list of non-negative values.")
        if any(b < a for a, b in zip(intervals, intervals[1:])):
            raise ConfigurationError(f"Simulation.SPEED_INTERVALS must be in ascending order: {intervals}")
        if self.Simulation.DEFAULT_SPEED < 0:
            raise ConfigurationError("Simulation.DEFAULT_SPEED must be non-negative.")
        if self.Simulation.DEFAULT_FPS <= 0:
            raise ConfigurationError("Simulation.DEFAULT_FPS must be positive.")

        # Monitoring
        if self.Monitoring.MEMORY_USAGE_WARN_MB <= 0:
            raise ConfigurationError("Monitoring.MEMORY_USAGE_WARN_MB must be positive.")
        if self.Monitoring.MEMORY_CHECK_INTERVAL_FRAMES <= 0 or self.Monitoring.ENERGY_CHECK_INTERVAL_FRAMES <= 0:
            raise ConfigurationError("Monitoring check intervals must be positive.")
        if self.Debug.LOG_BODY_INTERVAL_FRAMES <= 0:
            raise ConfigurationError("Debug.LOG_BODY_INTERVAL_FRAMES must be positive.")

        logging.debug("Configuration validated successfully.")


# --- Instantiate the configuration ---
# This makes the config object available for import and runs validation.
# e.g., from config import config
try:
    config = SimulationConfig()
except ConfigurationError as e:
    logging.error(f"FATAL CONFIGURATION ERROR: {e}", exc_info=True)
    raise
