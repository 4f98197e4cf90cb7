# orbital_mechanics.py
import logging
import math
from typing import Tuple

import numpy as np

from config import config, GRAVITATIONAL_CONSTANT
from physics_utils import PhysicsError, safe_divide
from vector3d import Vector3d


class OrbitalMechanics:
    """Two-body orbit helpers: Kepler's equation and element to state-vector conversion.

    All angular orbital elements are given in degrees except the mean and
    eccentric anomalies, which are radians. Distances are metres, masses
    kilograms and gravitational parameters (mu = G*M) m^3/s^2.
    """

    def __init__(self, gravitational_constant: float = GRAVITATIONAL_CONSTANT):
        self.gravitational_constant = gravitational_constant

    def solve_eccentric_anomaly(self, M_rad: float, e: float,
                                tolerance: float = None, max_iterations: int = None) -> float:
        """
        Solves Kepler's Equation M = E - e * sin(E) for the eccentric anomaly E.

        Newton-Raphson written as E_next = (M - e*(E*cos(E) - sin(E))) / (1 - e*cos(E)),
        which is E - f(E)/f'(E) with the M - E terms cancelled. M is reduced to
        [0, 2*pi) first and the whole revolutions are added back to E, so any
        finite M (including negative ones, before periapsis) converges. The
        iteration starts at M + e*sin(M), or at pi for high eccentricities where
        that guess can overshoot.

        Args:
            M_rad: Mean anomaly in radians.
            e: Eccentricity (0 <= e < 1).
            tolerance: Convergence threshold on |E_next - E| in radians.
                       Defaults to config.KeplerSolver.TOLERANCE_RAD.
            max_iterations: Iteration cap. Defaults to config.KeplerSolver.MAX_ITERATIONS.

        Returns:
            Eccentric anomaly E in radians. If the cap is reached a warning is
            logged and the last estimate is returned.

        Raises:
            PhysicsError: If eccentricity is outside [0, 1) or M is not finite.
        """
        if tolerance is None:
            tolerance = config.KeplerSolver.TOLERANCE_RAD
        if max_iterations is None:
            max_iterations = config.KeplerSolver.MAX_ITERATIONS

        if not (0.0 <= e < 1.0):
            raise PhysicsError(f"Eccentricity e={e} is out of bounds [0, 1) for Kepler's equation solver.")
        if not math.isfinite(M_rad):
            raise PhysicsError(f"Mean anomaly M={M_rad} is not finite.")

        two_pi = 2.0 * math.pi
        revolutions = math.floor(M_rad / two_pi)
        M_rad = M_rad - revolutions * two_pi

        if e > config.KeplerSolver.HIGH_ECCENTRICITY_THRESHOLD:
            E_rad = math.pi
        else:
            E_rad = M_rad + e * math.sin(M_rad)

        for iteration in range(max_iterations):
            cos_E = math.cos(E_rad)
            E_next = (M_rad - e * (E_rad * cos_E - math.sin(E_rad))) / (1.0 - e * cos_E)
            if abs(E_next - E_rad) < tolerance:
                if config.Debug.KEPLER_SOLVER:
                    logging.debug(f"Kepler solver converged in {iteration + 1} iterations: "
                                  f"M={M_rad:.9f}, e={e:.6f}, E={E_next:.9f}")
                return E_next + revolutions * two_pi
            E_rad = E_next

        logging.warning(f"Kepler's equation solver did not converge after {max_iterations} iterations "
                        f"for M={M_rad}, e={e}. Returning last estimate E={E_rad}.")
        return E_rad + revolutions * two_pi

    @staticmethod
    def true_anomaly_from_eccentric(E_rad: float, e: float) -> float:
        """True anomaly in radians for eccentric anomaly E."""
        return math.atan2(math.sqrt(1.0 - e * e) * math.sin(E_rad), math.cos(E_rad) - e)

    @staticmethod
    def rotation_matrix(longitude_of_ascending_node_deg: float, inclination_deg: float,
                        argument_of_periapsis_deg: float) -> np.ndarray:
        """3-1-3 rotation Rz(Omega) @ Rx(i) @ Rz(omega) from the orbital plane to world space.

        Columns 0 and 1 are the world directions of the periapsis (major axis)
        and of the in-plane direction 90 degrees ahead of it (minor axis).
        """
        omega_big = math.radians(longitude_of_ascending_node_deg)
        inc = math.radians(inclination_deg)
        omega_small = math.radians(argument_of_periapsis_deg)

        cos_O, sin_O = math.cos(omega_big), math.sin(omega_big)
        cos_i, sin_i = math.cos(inc), math.sin(inc)
        cos_w, sin_w = math.cos(omega_small), math.sin(omega_small)

        rz_node = np.array([[cos_O, -sin_O, 0.0],
                            [sin_O, cos_O, 0.0],
                            [0.0, 0.0, 1.0]])
        rx_inc = np.array([[1.0, 0.0, 0.0],
                           [0.0, cos_i, -sin_i],
                           [0.0, sin_i, cos_i]])
        rz_peri = np.array([[cos_w, -sin_w, 0.0],
                            [sin_w, cos_w, 0.0],
                            [0.0, 0.0, 1.0]])
        return rz_node @ rx_inc @ rz_peri

    def orbit_axes(self, longitude_of_ascending_node_deg: float, inclination_deg: float,
                   argument_of_periapsis_deg: float) -> Tuple[Vector3d, Vector3d]:
        """Unit (major, minor) semi-axis directions of the orbit in world space."""
        R = self.rotation_matrix(longitude_of_ascending_node_deg, inclination_deg, argument_of_periapsis_deg)
        return Vector3d.from_array(R[:, 0]), Vector3d.from_array(R[:, 1])

    @staticmethod
    def vis_viva_speed(mu: float, distance: float, semi_major_axis: float) -> float:
        """Orbital speed from the vis-viva equation v^2 = mu * (2/r - 1/a)."""
        speed_squared = mu * (2.0 / distance - 1.0 / semi_major_axis)
        if speed_squared < 0.0:
            raise PhysicsError(f"Vis-viva gives negative v^2 for r={distance}, a={semi_major_axis}.")
        return math.sqrt(speed_squared)

    @staticmethod
    def orbital_period(semi_major_axis: float, mu: float) -> float:
        """Keplerian period in seconds, 2*pi*sqrt(a^3/mu); 0 when mu is zero."""
        return 2.0 * math.pi * math.sqrt(safe_divide(semi_major_axis ** 3, mu))

    @staticmethod
    def _validate_elements(semi_major_axis: float, eccentricity: float, parent_mass: float):
        if not (math.isfinite(semi_major_axis) and semi_major_axis > 0.0):
            raise PhysicsError(f"Semi-major axis must be positive and finite, got {semi_major_axis}.")
        if not (0.0 <= eccentricity < 1.0):
            raise PhysicsError(f"Eccentricity e={eccentricity} is out of bounds [0, 1) for an elliptic orbit.")
        if not (math.isfinite(parent_mass) and parent_mass > 0.0):
            raise PhysicsError(f"Parent mass must be positive and finite, got {parent_mass}.")

    def periapsis_state(self, semi_major_axis: float, eccentricity: float, inclination_deg: float,
                        longitude_of_ascending_node_deg: float, argument_of_periapsis_deg: float,
                        parent_mass: float,
                        parent_position: Vector3d = Vector3d.ZERO,
                        parent_velocity: Vector3d = Vector3d.ZERO) -> Tuple[Vector3d, Vector3d]:
        """
        World-space position and velocity of a body at the periapsis of its orbit.

        At periapsis the velocity is perpendicular to the radius vector, so the
        speed from vis-viva is applied along the minor-axis direction. The parent's
        current position and velocity are added, so the parent may itself be moving.

        Returns:
            Tuple[Vector3d, Vector3d]: (position, velocity).

        Raises:
            PhysicsError: For a non-positive semi-major axis or parent mass, or e outside [0, 1).
        """
        self._validate_elements(semi_major_axis, eccentricity, parent_mass)

        major_axis, minor_axis = self.orbit_axes(longitude_of_ascending_node_deg, inclination_deg,
                                                 argument_of_periapsis_deg)
        periapsis_distance = semi_major_axis * (1.0 - eccentricity)
        mu = self.gravitational_constant * parent_mass
        periapsis_speed = self.vis_viva_speed(mu, periapsis_distance, semi_major_axis)

        position = parent_position + major_axis * periapsis_distance
        velocity = minor_axis * periapsis_speed + parent_velocity

        if config.Debug.ORBITAL_MECHANICS:
            logging.info(f"Periapsis placement: r_p={periapsis_distance:.6e} m, v_p={periapsis_speed:.6e} m/s, "
                         f"major={major_axis}, minor={minor_axis}")
        return position, velocity

    def place_at_periapsis(self, body, parent=None):
        """Sets `body.position` and `body.velocity` from its orbital elements around `parent`.

        `parent` defaults to `body.parent`. Nothing is mutated if the elements are invalid.

        Raises:
            PhysicsError: If there is no parent or the elements are invalid.
        """
        if parent is None:
            parent = body.parent
        if parent is None:
            raise PhysicsError(f"Cannot place '{body.name}' on an orbit without a parent body.")

        position, velocity = self.periapsis_state(
            body.orbit_radius, body.orbital_eccentricity, body.orbital_inclination,
            body.longitude_of_ascending_node, body.argument_of_periapsis,
            parent.mass, parent.position, parent.velocity)
        body.position = position
        body.velocity = velocity

    def state_from_elements(self, semi_major_axis: float, eccentricity: float, inclination_deg: float,
                            longitude_of_ascending_node_deg: float, argument_of_periapsis_deg: float,
                            mean_anomaly_rad: float, mu: float) -> Tuple[Vector3d, Vector3d]:
        """
        Position and velocity relative to the parent for an arbitrary mean anomaly.

        The perifocal state is computed from the eccentric anomaly
        (x = a(cos E - e), y = a*sqrt(1 - e^2)*sin E) and rotated into world space.

        Args:
            semi_major_axis: Semi-major axis in metres.
            eccentricity: Eccentricity (0 <= e < 1).
            inclination_deg, longitude_of_ascending_node_deg, argument_of_periapsis_deg:
                Orientation angles in degrees.
            mean_anomaly_rad: Mean anomaly in radians.
            mu: Gravitational parameter G*M of the parent in m^3/s^2.

        Returns:
            Tuple[Vector3d, Vector3d]: (position, velocity) relative to the parent.
        """
        if not (semi_major_axis > 0.0 and mu > 0.0):
            raise PhysicsError(f"Need a > 0 and mu > 0, got a={semi_major_axis}, mu={mu}.")

        E_rad = self.solve_eccentric_anomaly(mean_anomaly_rad, eccentricity)
        cos_E, sin_E = math.cos(E_rad), math.sin(E_rad)
        sqrt_one_minus_e2 = math.sqrt(1.0 - eccentricity ** 2)

        x_orb = semi_major_axis * (cos_E - eccentricity)
        y_orb = semi_major_axis * sqrt_one_minus_e2 * sin_E
        r = semi_major_axis * (1.0 - eccentricity * cos_E)

        vx_orb = -math.sqrt(mu * semi_major_axis) / r * sin_E
        vy_orb = math.sqrt(mu * semi_major_axis) * sqrt_one_minus_e2 / r * cos_E

        R = self.rotation_matrix(longitude_of_ascending_node_deg, inclination_deg, argument_of_periapsis_deg)
        position = R @ np.array([x_orb, y_orb, 0.0])
        velocity = R @ np.array([vx_orb, vy_orb, 0.0])
        return Vector3d.from_array(position), Vector3d.from_array(velocity)
