# almanac.py
import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Tuple, Union

import numpy as np

from config import config, ASTRONOMICAL_UNIT
from orbital_mechanics import OrbitalMechanics
from physics_utils import PhysicsError, wrap_degrees
from vector3d import Vector3d

# Time-varying heliocentric orbital elements (Paul Schlyter, "How to compute planetary positions").
# Each row is (value at d = 0, rate per day) for N, i, w [deg], a [AU], e, M [deg].
# Earth uses the Sun's geocentric elements with w shifted by 180 degrees.
ORBITAL_ELEMENTS: Dict[str, np.ndarray] = {
    "Mercury": np.array([[48.3313, 3.24587e-5], [7.0047, 5.00e-8], [29.1241, 1.01444e-5],
                         [0.387098, 0.0], [0.205635, 5.59e-10], [168.6562, 4.0923344368]]),
    "Venus": np.array([[76.6799, 2.46590e-5], [3.3946, 2.75e-8], [54.8910, 1.38374e-5],
                       [0.723330, 0.0], [0.006773, -1.302e-9], [48.0052, 1.6021302244]]),
    "Earth": np.array([[0.0, 0.0], [0.0, 0.0], [282.9404 + 180.0, 4.70935e-5],
                       [1.000000, 0.0], [0.016709, -1.151e-9], [356.0470, 0.9856002585]]),
    "Mars": np.array([[49.5574, 2.11081e-5], [1.8497, -1.78e-8], [286.5016, 2.92961e-5],
                      [1.523688, 0.0], [0.093405, 2.516e-9], [18.6021, 0.5240207766]]),
    "Jupiter": np.array([[100.4542, 2.76854e-5], [1.3030, -1.557e-7], [273.8777, 1.64505e-5],
                         [5.20256, 0.0], [0.048498, 4.469e-9], [19.8950, 0.0830853001]]),
    "Saturn": np.array([[113.6634, 2.38980e-5], [2.4886, -1.081e-7], [339.3939, 2.97661e-5],
                        [9.55475, 0.0], [0.055546, -9.499e-9], [316.9670, 0.0334442282]]),
    "Uranus": np.array([[74.0005, 1.3978e-5], [0.7733, 1.9e-8], [96.6612, 3.0565e-5],
                        [19.18171, -1.55e-8], [0.047318, 7.45e-9], [142.5905, 0.011725806]]),
    "Neptune": np.array([[131.7806, 3.0173e-5], [1.7700, -2.55e-7], [272.8461, -6.027e-6],
                         [30.05826, 3.313e-8], [0.008606, 2.15e-9], [260.2471, 0.005995147]]),
}

PLANET_NAMES = tuple(ORBITAL_ELEMENTS)


def _sin_deg(x):
    return math.sin(math.radians(x))


def _cos_deg(x):
    return math.cos(math.radians(x))


def _trunc_div(a: int, b: int) -> int:
    # The day-number formula relies on integer division rounding toward zero
    return int(a / b)


def day_number(when: datetime) -> float:
    """
    Days since 2000 Jan 0.0 UT (i.e. 1999-12-31 00:00 UTC), including the fraction of the day.

    Naive datetimes are taken to be UTC; aware ones are converted.
    Valid for the Gregorian years 1900-2100.
    """
    if when.tzinfo is not None:
        when = when.astimezone(timezone.utc)
    y, m, D = when.year, when.month, when.day
    d = (367 * y
         - _trunc_div(7 * (y + _trunc_div(m + 9, 12)), 4)
         - _trunc_div(3 * (_trunc_div(y + _trunc_div(m - 9, 7), 100) + 1), 4)
         + _trunc_div(275 * m, 9)
         + D
         - 730515)
    fraction = (when.hour * 3600 + when.minute * 60 + when.second + when.microsecond / 1e6) / 86400.0
    return d + fraction


@dataclass
class PlanetEphemeris:
    """Elements and heliocentric ecliptic coordinates of one planet for the current day number.

    Angles are degrees, `semi_major_axis` and the rectangular coordinates are AU.
    """
    name: str
    longitude_of_ascending_node: float = math.nan
    inclination: float = math.nan
    argument_of_perihelion: float = math.nan
    semi_major_axis: float = math.nan
    eccentricity: float = math.nan
    mean_anomaly: float = math.nan

    ecliptic_x: float = 0.0
    ecliptic_y: float = 0.0
    ecliptic_z: float = 0.0
    ecliptic_lon: float = 0.0
    ecliptic_lat: float = 0.0
    ecliptic_distance: float = 0.0
    perturbed: bool = field(default=False)

    def set_spherical(self, lon: float, lat: float, distance: float):
        """Stores spherical coordinates and the rectangular ones derived from them."""
        self.ecliptic_lon = wrap_degrees(lon)
        self.ecliptic_lat = lat
        self.ecliptic_distance = distance
        self.ecliptic_x = distance * _cos_deg(lat) * _cos_deg(lon)
        self.ecliptic_y = distance * _cos_deg(lat) * _sin_deg(lon)
        self.ecliptic_z = distance * _sin_deg(lat)


class SolarSystemAlmanac:
    """
    Low-precision planetary ephemeris for seeding the Solar System with realistic positions.

    Call `update()` with a datetime or a day number, then read `planets[name]`,
    `heliocentric_position(name)` or `state_vectors(name, mu)`. Positions are
    good to roughly an arc-minute for the inner planets between 1900 and 2100,
    well below anything visible in the simulation.
    """

    def __init__(self, orbital_mechanics: OrbitalMechanics = None):
        self.orbital_mechanics = orbital_mechanics or OrbitalMechanics()
        self.day_number = math.nan
        self.planets: Dict[str, PlanetEphemeris] = {name: PlanetEphemeris(name) for name in PLANET_NAMES}

    def update(self, when: Union[datetime, float], apply_perturbations: bool = True):
        """Recomputes all planets for a datetime or a day number (see `day_number`)."""
        d = day_number(when) if isinstance(when, datetime) else float(when)
        if not math.isfinite(d):
            raise PhysicsError(f"Day number must be finite, got {d}.")
        self.day_number = d

        for name, coefficients in ORBITAL_ELEMENTS.items():
            planet = self.planets[name]
            self._update_orbital_elements(planet, coefficients, d)
            self._update_ecliptic_coordinates(planet)

        # Need the mean anomalies of all three planets, so applied after the main pass
        if apply_perturbations:
            self._apply_perturbations()

        if config.Debug.ORBITAL_MECHANICS:
            for planet in self.planets.values():
                logging.info(f"Almanac d={d:.4f} {planet.name}: lon={planet.ecliptic_lon:.4f} "
                             f"lat={planet.ecliptic_lat:.4f} r={planet.ecliptic_distance:.6f} AU")

    @staticmethod
    def _update_orbital_elements(planet: PlanetEphemeris, coefficients: np.ndarray, d: float):
        N, i, w, a, e, M = coefficients[:, 0] + coefficients[:, 1] * d
        planet.longitude_of_ascending_node = wrap_degrees(float(N))
        planet.inclination = float(i)
        planet.argument_of_perihelion = wrap_degrees(float(w))
        planet.semi_major_axis = float(a)
        planet.eccentricity = float(e)
        planet.mean_anomaly = wrap_degrees(float(M))
        planet.perturbed = False

    def _update_ecliptic_coordinates(self, planet: PlanetEphemeris):
        a = planet.semi_major_axis
        e = planet.eccentricity
        N = planet.longitude_of_ascending_node
        i = planet.inclination
        w = planet.argument_of_perihelion

        E = math.degrees(self.orbital_mechanics.solve_eccentric_anomaly(math.radians(planet.mean_anomaly), e))

        # Position in the orbital plane, then true anomaly and distance
        x = a * (_cos_deg(E) - e)
        y = a * math.sqrt(1.0 - e * e) * _sin_deg(E)
        r = math.hypot(x, y)
        v = math.degrees(math.atan2(y, x))

        xeclip = r * (_cos_deg(N) * _cos_deg(v + w) - _sin_deg(N) * _sin_deg(v + w) * _cos_deg(i))
        yeclip = r * (_sin_deg(N) * _cos_deg(v + w) + _cos_deg(N) * _sin_deg(v + w) * _cos_deg(i))
        zeclip = r * _sin_deg(v + w) * _sin_deg(i)

        planet.ecliptic_x = xeclip
        planet.ecliptic_y = yeclip
        planet.ecliptic_z = zeclip
        planet.ecliptic_lon = wrap_degrees(math.degrees(math.atan2(yeclip, xeclip)))
        planet.ecliptic_lat = math.degrees(math.atan2(zeclip, math.hypot(xeclip, yeclip)))
        planet.ecliptic_distance = math.sqrt(xeclip * xeclip + yeclip * yeclip + zeclip * zeclip)

    def _apply_perturbations(self):
        """Adds the largest mutual Jupiter-Saturn-Uranus perturbation terms (degrees)."""
        jupiter, saturn, uranus = self.planets["Jupiter"], self.planets["Saturn"], self.planets["Uranus"]
        Mj, Ms, Mu = jupiter.mean_anomaly, saturn.mean_anomaly, uranus.mean_anomaly

        jupiter_lon = (-0.332 * _sin_deg(2 * Mj - 5 * Ms - 67.6)
                       - 0.056 * _sin_deg(2 * Mj - 2 * Ms + 21)
                       + 0.042 * _sin_deg(3 * Mj - 5 * Ms + 21)
                       - 0.036 * _sin_deg(Mj - 2 * Ms)
                       + 0.022 * _cos_deg(Mj - Ms)
                       + 0.023 * _sin_deg(2 * Mj - 3 * Ms + 52)
                       - 0.016 * _sin_deg(Mj - 5 * Ms - 69))

        saturn_lon = (0.812 * _sin_deg(2 * Mj - 5 * Ms - 67.6)
                      - 0.229 * _cos_deg(2 * Mj - 4 * Ms - 2)
                      + 0.119 * _sin_deg(Mj - 2 * Ms - 3)
                      + 0.046 * _sin_deg(2 * Mj - 6 * Ms - 69)
                      + 0.014 * _sin_deg(Mj - 3 * Ms + 32))
        saturn_lat = (-0.020 * _cos_deg(2 * Mj - 4 * Ms - 2)
                      + 0.018 * _sin_deg(2 * Mj - 6 * Ms - 49))

        uranus_lon = (0.040 * _sin_deg(Ms - 2 * Mu + 6)
                      + 0.035 * _sin_deg(Ms - 3 * Mu + 33)
                      - 0.015 * _sin_deg(Mj - Mu + 20))

        for planet, d_lon, d_lat in ((jupiter, jupiter_lon, 0.0),
                                     (saturn, saturn_lon, saturn_lat),
                                     (uranus, uranus_lon, 0.0)):
            planet.set_spherical(planet.ecliptic_lon + d_lon, planet.ecliptic_lat + d_lat,
                                 planet.ecliptic_distance)
            planet.perturbed = True

    def _require(self, name: str) -> PlanetEphemeris:
        if math.isnan(self.day_number):
            raise PhysicsError("SolarSystemAlmanac.update() must be called before reading positions.")
        try:
            return self.planets[name]
        except KeyError:
            raise PhysicsError(f"Almanac has no planet named '{name}'. "
                               f"Available: {', '.join(PLANET_NAMES)}") from None

    def heliocentric_position(self, name: str) -> Vector3d:
        """Heliocentric ecliptic position in metres (perturbations included when applied)."""
        planet = self._require(name)
        return Vector3d(planet.ecliptic_x, planet.ecliptic_y, planet.ecliptic_z) * ASTRONOMICAL_UNIT

    def state_vectors(self, name: str, mu: float) -> Tuple[Vector3d, Vector3d]:
        """Unperturbed Keplerian (position, velocity) relative to the Sun, in m and m/s.

        Args:
            name: Planet name.
            mu: Gravitational parameter of the central body, m^3/s^2.
        """
        planet = self._require(name)
        return self.orbital_mechanics.state_from_elements(
            planet.semi_major_axis * ASTRONOMICAL_UNIT, planet.eccentricity, planet.inclination,
            planet.longitude_of_ascending_node, planet.argument_of_perihelion,
            math.radians(planet.mean_anomaly), mu)
