# celestial_body.py
import logging
import math
import weakref
from enum import Enum
from typing import Optional

from config import config, SECONDS_PER_HOUR
from mass_body import MassBody
from physics_utils import PhysicsError, safe_divide, wrap_degrees
from trajectory_tracker import AngularTrajectoryTracker, LinearTrajectoryTracker, TrajectoryTracker
from vector3d import Vector3d


class CelestialBodyType(Enum):
    STAR = "star"
    PLANET = "planet"
    MOON = "moon"


class CelestialBody(MassBody):
    """A star, planet or moon: a `MassBody` with size, spin, orbital elements and a trail.

    Orbital elements describe the orbit around `parent` and are consumed by
    `OrbitalMechanics.place_at_periapsis`; angles are in degrees, `orbit_radius`
    is the semi-major axis in metres. `parent` is held through a weak reference
    so a body never keeps its parent alive on its own.

    Call `initialize()` exactly once after `parent` is assigned and the body
    has its initial position and velocity.
    """

    def __init__(self, name: str, mass: float,
                 position: Vector3d = Vector3d.ZERO,
                 velocity: Vector3d = Vector3d.ZERO,
                 body_type: CelestialBodyType = CelestialBodyType.PLANET,
                 radius: float = 0.0,
                 rotation_speed: float = 0.0,
                 rotation: float = 0.0,
                 axial_tilt: float = 0.0,
                 has_orbit: bool = False,
                 orbit_radius: float = 0.0,
                 orbital_eccentricity: float = 0.0,
                 orbital_inclination: float = 0.0,
                 longitude_of_ascending_node: float = 0.0,
                 argument_of_periapsis: float = 0.0,
                 parent: Optional["CelestialBody"] = None,
                 max_trail_angle: Optional[float] = None):
        super().__init__(name, mass, position, velocity)
        self.body_type = body_type
        self.radius = float(radius)
        self.rotation_speed = float(rotation_speed)
        self.rotation = wrap_degrees(float(rotation))
        self.axial_tilt = float(axial_tilt)
        self.has_orbit = has_orbit
        self.orbit_radius = float(orbit_radius)
        self.orbital_eccentricity = float(orbital_eccentricity)
        self.orbital_inclination = float(orbital_inclination)
        self.longitude_of_ascending_node = float(longitude_of_ascending_node)
        self.argument_of_periapsis = float(argument_of_periapsis)
        self.max_trail_angle = max_trail_angle
        self.trajectory_tracker: Optional[TrajectoryTracker] = None

        self._parent_ref = None
        self.parent = parent

    @property
    def parent(self) -> Optional["CelestialBody"]:
        return self._parent_ref() if self._parent_ref is not None else None

    @parent.setter
    def parent(self, value: Optional["CelestialBody"]):
        if value is None:
            self._parent_ref = None
            return
        ancestor = value
        while ancestor is not None:
            if ancestor is self:
                raise PhysicsError(f"Assigning parent '{value.name}' to '{self.name}' would create a cycle.")
            ancestor = ancestor.parent
        self._parent_ref = weakref.ref(value)

    @staticmethod
    def rotation_speed_from_period(period_hours: float) -> float:
        """Axial rotation speed in deg/s for a sidereal period in hours.

        Negative periods give negative (retrograde) speeds; a zero period means no spin.
        """
        return safe_divide(360.0, period_hours * SECONDS_PER_HOUR)

    def initialize(self):
        """Attaches a trajectory tracker and seeds it with the current state.

        Bodies orbiting a parent get an angle-sampled trail, everything else a
        distance-sampled one.

        Raises:
            PhysicsError: If the body was already initialized.
        """
        if self.trajectory_tracker is not None:
            raise PhysicsError(f"CelestialBody '{self.name}' is already initialized.")

        if self.parent is not None and self.has_orbit:
            self.trajectory_tracker = AngularTrajectoryTracker(max_angle=self.max_trail_angle)
        else:
            self.trajectory_tracker = LinearTrajectoryTracker()
        self.trajectory_tracker.update_position(self)

        if config.Debug.ORBITAL_MECHANICS:
            logging.info(f"Initialized {self.body_type.value} '{self.name}' with "
                         f"{type(self.trajectory_tracker).__name__} at {self.position}.")

    def update_trajectory(self):
        super().update_trajectory()
        if self.trajectory_tracker is not None:
            self.trajectory_tracker.update_position(self)

    def update_state(self, time_delta: float):
        super().update_state(time_delta)
        new_rotation = wrap_degrees(self.rotation + self.rotation_speed * time_delta)
        if not math.isfinite(new_rotation):
            if config.Debug.STRICT_INVARIANTS:
                raise PhysicsError(f"Non-finite rotation for '{self.name}' "
                                   f"(rotation_speed={self.rotation_speed}, dt={time_delta}).")
            logging.error(f"Non-finite rotation for '{self.name}', keeping {self.rotation:.3f} deg.")
            return
        self.rotation = new_rotation
