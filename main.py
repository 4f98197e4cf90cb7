# main.py
import argparse
import cProfile
import logging
import os
import sys
from datetime import datetime
from typing import Dict, Optional

import psutil  # For memory monitoring

from config import config, ConfigurationError, SECONDS_PER_DAY
from physics_engine import PhysicsEngine, create_integrator
from physics_utils import PhysicsError, safe_divide
from scenarios import SCENARIOS, get_scenario, speed_intervals_for


class SpaceSimulation:
    """Headless driver that plays the role of the renderer's per-frame tick.

    It owns a `PhysicsEngine`, populates it from a scenario and advances it
    by `speed` simulated seconds per real second, the way the interactive
    application does once per rendered frame. Body positions, the relative
    drift of the total energy and the process memory (via `psutil`) are
    logged periodically.

    Attributes:
        engine (PhysicsEngine): The physics engine populated by the scenario.
        scenario (Scenario): The active scenario.
        speed (float): Simulated seconds per real second.
        frame_count (int): Number of ticks executed so far.
        initial_energy (float): Total energy right after setup, the drift reference.
        process (psutil.Process): Current process, used for memory monitoring.
    """

    def __init__(self, scenario_name: str = "solar-system", speed: float = None,
                 integration_method: str = None, date: Optional[datetime] = None):
        """Creates the engine and sets up the scenario.

        Args:
            scenario_name: Key in `scenarios.SCENARIOS`.
            speed: Simulated seconds per real second. Defaults to
                `config.Simulation.DEFAULT_SPEED`.
            integration_method: "semi_implicit_euler" or "leapfrog". Defaults to
                `config.Physics.INTEGRATION_METHOD`.
            date: Start date, only used by the "solar-system-at-date" scenario.

        Raises:
            ConfigurationError: For an unknown scenario or an invalid scenario table.
            PhysicsError: For an unknown integration method or invalid initial state.
        """
        kwargs = {}
        if scenario_name == "solar-system-at-date":
            kwargs["date"] = date
        elif date is not None:
            logging.warning(f"--date is only used by the 'solar-system-at-date' scenario; ignoring it for '{scenario_name}'.")

        self.scenario = get_scenario(scenario_name, **kwargs)
        self.engine = PhysicsEngine(integrator=create_integrator(integration_method))
        self.scenario.setup(self.engine)

        self.speed = 0.0
        self.set_speed(config.Simulation.DEFAULT_SPEED if speed is None else speed)

        self.frame_count = 0
        self.initial_energy = self.engine.total_energy()
        self.process = psutil.Process(os.getpid())
        logging.info(f"SpaceSimulation initialized: scenario='{self.scenario.name}', "
                     f"bodies={len(self.engine.bodies)}, speed={self.speed:.0f} s/s, "
                     f"max step={self.engine.max_simulation_time_step:.1f} s")

    def set_speed(self, speed: float):
        """Sets the simulation speed and rescales the engine's sub-step for it."""
        if speed < 0:
            raise ConfigurationError(f"Simulation speed must be non-negative, got {speed}.")
        self.speed = float(speed)

        settings = self.scenario.simulation_step_settings()
        if settings is None:
            base_step, max_iterations = config.Physics.MAX_SIMULATION_TIME_STEP, config.Physics.MAX_SUBSTEPS_PER_CALL
        else:
            base_step, max_iterations = settings
        self.engine.set_simulation_speed(self.speed, base_step, max_iterations)

        intervals = speed_intervals_for(self.scenario)
        if self.speed > intervals[-1]:
            logging.warning(f"Speed {self.speed:.0f} s/s exceeds the fastest preset ({intervals[-1]} s/s) "
                            f"for '{self.scenario.name}'.")

    def tick(self, real_seconds: float):
        """Advances the simulation for `real_seconds` of wall-clock time."""
        self.engine.simulate(real_seconds * self.speed)
        self.frame_count += 1

    def relative_energy_drift(self) -> float:
        return safe_divide(self.engine.total_energy() - self.initial_energy, abs(self.initial_energy))

    def _log_periodic(self):
        if self.frame_count % config.Debug.LOG_BODY_INTERVAL_FRAMES == 0:
            for name in config.Debug.LOG_BODY_NAMES:
                body = self.engine.get_body(name)
                if body is not None:
                    logging.info(f"Frame {self.frame_count}: {name} position={body.position}, "
                                 f"|v|={body.velocity.length():.3f} m/s")

        if self.frame_count % config.Monitoring.ENERGY_CHECK_INTERVAL_FRAMES == 0:
            logging.info(f"Frame {self.frame_count}: t={self.engine.simulation_time / SECONDS_PER_DAY:.2f} d, "
                         f"relative energy drift={self.relative_energy_drift():.3e}")

        if self.frame_count % config.Monitoring.MEMORY_CHECK_INTERVAL_FRAMES == 0:
            try:
                memory_mb = self.process.memory_info().rss / (1024 * 1024)
                if memory_mb > config.Monitoring.MEMORY_USAGE_WARN_MB:
                    logging.warning(f"High memory usage: {memory_mb:.2f} MB at frame {self.frame_count}")
                else:
                    logging.debug(f"Memory usage: {memory_mb:.2f} MB at frame {self.frame_count}")
            except psutil.Error as e_psutil:
                logging.error(f"Could not retrieve memory usage: {e_psutil}", exc_info=True)

    def run(self, frames: int, fps: int = None) -> Dict[str, float]:
        """Runs `frames` ticks of `1 / fps` real seconds each and returns `summary()`."""
        if fps is None:
            fps = config.Simulation.DEFAULT_FPS
        if fps <= 0:
            raise ConfigurationError(f"fps must be positive, got {fps}.")
        frame_time = 1.0 / fps

        logging.info(f"Running {frames} frames at {fps} fps "
                     f"({frames * frame_time * self.speed / SECONDS_PER_DAY:.2f} simulated days).")
        for _ in range(frames):
            self.tick(frame_time)
            self._log_periodic()

        summary = self.summary()
        logging.info(f"Run finished: {summary}")
        return summary

    def summary(self) -> Dict[str, float]:
        trail_points = sum(len(body.trajectory_tracker) for body in self.engine.bodies
                           if getattr(body, "trajectory_tracker", None) is not None)
        return {
            "frames": self.frame_count,
            "simulation_time_days": self.engine.simulation_time / SECONDS_PER_DAY,
            "bodies": len(self.engine.bodies),
            "relative_energy_drift": self.relative_energy_drift(),
            "trail_points": trail_points,
        }


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Run the star-system N-body simulation headless.")
    parser.add_argument("--scenario", choices=sorted(SCENARIOS), default="solar-system",
                        help="Scenario to simulate.")
    parser.add_argument("--speed", type=float, default=None,
                        help=f"Simulated seconds per real second (default {config.Simulation.DEFAULT_SPEED:.0f}).")
    parser.add_argument("--frames", type=int, default=600, help="Number of frames to simulate.")
    parser.add_argument("--fps", type=int, default=config.Simulation.DEFAULT_FPS, help="Frames per real second.")
    parser.add_argument("--integrator", choices=["semi_implicit_euler", "leapfrog"], default=None,
                        help="Integration scheme (default from config).")
    parser.add_argument("--date", type=datetime.fromisoformat, default=None,
                        help="ISO start date for the 'solar-system-at-date' scenario, e.g. 2024-03-20T12:00.")
    parser.add_argument(
        "--profile",
        action="store_true",
        help="Enable profiling for the simulation. Statistics will be saved to 'simulation_profile.prof'."
    )
    return parser


def main(argv=None) -> int:
    """Command-line entry point.

    Parses arguments, optionally enables `cProfile`, builds a `SpaceSimulation`
    and runs it. Configuration and physics errors are logged as critical and
    turned into a non-zero exit code; the profile is dumped in any case.

    Returns:
        int: Process exit code.
    """
    args = build_parser().parse_args(argv)

    profiler = None
    if args.profile:
        profiler = cProfile.Profile()
        profiler.enable()
        logging.info("cProfile profiling enabled. Output will be saved to simulation_profile.prof upon completion.")

    try:
        simulation = SpaceSimulation(args.scenario, speed=args.speed,
                                     integration_method=args.integrator, date=args.date)
        simulation.run(args.frames, args.fps)
        return 0
    except ConfigurationError as e_config:
        logging.critical(f"Simulation could not run due to a ConfigurationError: {e_config}", exc_info=True)
        return 2
    except PhysicsError as e_physics:
        logging.critical(f"Simulation stopped due to a PhysicsError: {e_physics}", exc_info=True)
        return 1
    finally:
        if profiler:
            profiler.disable()
            stats_file = "simulation_profile.prof"
            try:
                profiler.dump_stats(stats_file)
                logging.info(f"Profiling data successfully saved to {stats_file}")
            except OSError as e_profile_dump:
                logging.error(f"Failed to save profiling data to {stats_file}: {e_profile_dump}", exc_info=True)
        logging.info("Simulation terminated.")


if __name__ == "__main__":
    sys.exit(main())
