# scenarios.py
import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple

from almanac import SolarSystemAlmanac
from celestial_body import CelestialBody, CelestialBodyType
from config import (config, ConfigurationError, ASTRONOMICAL_UNIT, SECONDS_PER_DAY,
                    MASS_OF_SUN, DIAMETER_OF_SUN, MASS_OF_EARTH, DIAMETER_OF_EARTH)
from orbital_mechanics import OrbitalMechanics
from physics_engine import PhysicsEngine
from vector3d import Vector3d


@dataclass
class Entity:
    """Initial conditions of one body in a star-system table.

    SI units: kg, metres; angles in degrees; `rotation_period` in hours
    (negative for retrograde spin). `distance_from_parent` is used as the
    semi-major axis of the orbit around the parent.
    """
    name: str
    body_type: CelestialBodyType
    mass: float
    diameter: float
    distance_from_parent: float = 0.0
    orbital_eccentricity: float = 0.0
    orbital_inclination: float = 0.0
    longitude_of_ascending_node: float = 0.0
    argument_of_periapsis: float = 0.0
    axial_tilt: float = 0.0
    rotation_period: float = 0.0
    moons: List["Entity"] = field(default_factory=list)

    def __post_init__(self):
        if not (math.isfinite(self.mass) and self.mass > 0):
            raise ConfigurationError(f"Entity '{self.name}': mass must be positive, got {self.mass}.")
        if self.diameter < 0:
            raise ConfigurationError(f"Entity '{self.name}': diameter must be non-negative, got {self.diameter}.")
        if not (0.0 <= self.orbital_eccentricity < 1.0):
            raise ConfigurationError(
                f"Entity '{self.name}': eccentricity {self.orbital_eccentricity} is outside [0, 1).")
        if self.body_type != CelestialBodyType.STAR and self.distance_from_parent <= 0:
            raise ConfigurationError(
                f"Entity '{self.name}': orbiting bodies need a positive distance from their parent.")


class Scenario:
    """Base class for anything that can populate a `PhysicsEngine` with bodies."""
    name = "Unnamed"

    def setup(self, engine: PhysicsEngine):
        raise NotImplementedError

    def default_view(self) -> Optional[str]:
        """Name of the body the view should be centred on, if any."""
        return None

    def simulation_speed_intervals(self) -> Optional[List[int]]:
        """Scenario-specific speed presets (simulated seconds per real second), or None for the defaults."""
        return None

    def simulation_step_settings(self) -> Optional[Tuple[float, int]]:
        """(max sub-step in seconds, max iterations for dynamic scaling; 0 disables), or None for the defaults."""
        return None


class BaseStarSystemScenario(Scenario):
    """
    A single host star with planets, and optionally moons, on Keplerian orbits.

    The first entity must be the host star. Every other entity orbits it and
    every moon orbits its planet; all start at periapsis.

    Raises:
        ConfigurationError: If the first entity is not a star, or a later entity is.
    """

    def __init__(self, name: str, entities: List[Entity], orbital_mechanics: OrbitalMechanics = None):
        if entities and entities[0].body_type != CelestialBodyType.STAR:
            raise ConfigurationError(
                f"Scenario '{name}': the first entity must be the host star, "
                f"got '{entities[0].name}' of type {entities[0].body_type.value}.")
        for entity in entities[1:]:
            if entity.body_type == CelestialBodyType.STAR:
                raise ConfigurationError(f"Scenario '{name}': only one host star is supported, "
                                         f"found extra star '{entity.name}'.")
        self.name = name
        self.entities = entities
        self.orbital_mechanics = orbital_mechanics or OrbitalMechanics()

    def _create_body(self, entity: Entity, parent: Optional[CelestialBody]) -> CelestialBody:
        return CelestialBody(
            name=entity.name,
            mass=entity.mass,
            body_type=entity.body_type,
            radius=entity.diameter / 2.0,
            rotation_speed=CelestialBody.rotation_speed_from_period(entity.rotation_period),
            axial_tilt=entity.axial_tilt,
            has_orbit=True,
            orbit_radius=entity.distance_from_parent,
            orbital_eccentricity=entity.orbital_eccentricity,
            orbital_inclination=entity.orbital_inclination,
            longitude_of_ascending_node=entity.longitude_of_ascending_node,
            argument_of_periapsis=entity.argument_of_periapsis,
            parent=parent,
        )

    def place_body(self, body: CelestialBody, entity: Entity):
        """Sets the initial state of a non-star body; places it at periapsis by default."""
        self.orbital_mechanics.place_at_periapsis(body, body.parent)

    def _register(self, engine: PhysicsEngine, body: CelestialBody):
        body.initialize()
        engine.add_body(body)

    def setup(self, engine: PhysicsEngine):
        host_star = None
        for entity in self.entities:
            body = self._create_body(entity, host_star)
            if entity.body_type == CelestialBodyType.STAR:
                host_star = body
            else:
                self.place_body(body, entity)
            self._register(engine, body)

            for moon_entity in entity.moons:
                moon = self._create_body(moon_entity, body)
                self.place_body(moon, moon_entity)
                self._register(engine, moon)

        logging.info(f"Scenario '{self.name}' set up with {len(engine.bodies)} bodies.")

    def default_view(self) -> Optional[str]:
        return self.entities[0].name if self.entities else None


SOLAR_SYSTEM_ENTITIES = [
    Entity("Sun", CelestialBodyType.STAR, mass=1_988_550e24, diameter=1_392_700e3,
           axial_tilt=7.25, rotation_period=27 * 24),
    Entity("Mercury", CelestialBodyType.PLANET, mass=0.330e24, diameter=4_879e3, distance_from_parent=57.9e9,
           orbital_eccentricity=0.206, orbital_inclination=7.0, axial_tilt=0.034, rotation_period=1407.6),
    Entity("Venus", CelestialBodyType.PLANET, mass=4.87e24, diameter=12_104e3, distance_from_parent=108.2e9,
           orbital_eccentricity=0.007, orbital_inclination=3.4, axial_tilt=177.4, rotation_period=-5832.5),
    Entity("Earth", CelestialBodyType.PLANET, mass=5.97e24, diameter=12_756e3, distance_from_parent=149.6e9,
           orbital_eccentricity=0.017, orbital_inclination=0.0, axial_tilt=23.4, rotation_period=23.9,
           moons=[
               Entity("Moon", CelestialBodyType.MOON, mass=0.073e24, diameter=3_475e3,
                      distance_from_parent=0.384e9, orbital_eccentricity=0.055, orbital_inclination=5.1,
                      axial_tilt=6.7, rotation_period=655.7),
           ]),
    Entity("Mars", CelestialBodyType.PLANET, mass=0.642e24, diameter=6_792e3, distance_from_parent=228.0e9,
           orbital_eccentricity=0.094, orbital_inclination=1.8, axial_tilt=25.2, rotation_period=24.6),
    Entity("Jupiter", CelestialBodyType.PLANET, mass=1898e24, diameter=142_984e3, distance_from_parent=778.5e9,
           orbital_eccentricity=0.049, orbital_inclination=1.3, axial_tilt=3.1, rotation_period=9.9),
    Entity("Saturn", CelestialBodyType.PLANET, mass=568e24, diameter=120_536e3, distance_from_parent=1432.0e9,
           orbital_eccentricity=0.052, orbital_inclination=2.5, axial_tilt=26.7, rotation_period=10.7),
    Entity("Uranus", CelestialBodyType.PLANET, mass=86.8e24, diameter=51_118e3, distance_from_parent=2867.0e9,
           orbital_eccentricity=0.047, orbital_inclination=0.8, axial_tilt=97.8, rotation_period=-17.2),
    Entity("Neptune", CelestialBodyType.PLANET, mass=102e24, diameter=49_528e3, distance_from_parent=4515.0e9,
           orbital_eccentricity=0.010, orbital_inclination=1.8, axial_tilt=28.3, rotation_period=16.1),
    Entity("Pluto", CelestialBodyType.PLANET, mass=0.0130e24, diameter=2_376e3, distance_from_parent=5906.4e9,
           orbital_eccentricity=0.244, orbital_inclination=17.2, axial_tilt=119.5, rotation_period=-153.3),
]


class SolarSystem(BaseStarSystemScenario):
    """The Sun, the eight planets, the Moon and Pluto (NASA planetary fact sheet values)."""

    def __init__(self, orbital_mechanics: OrbitalMechanics = None):
        super().__init__("Solar system", SOLAR_SYSTEM_ENTITIES, orbital_mechanics)


class SolarSystemAtDate(BaseStarSystemScenario):
    """
    The Solar System with the planets where they were (or will be) at a given date.

    Planets covered by `SolarSystemAlmanac` start from their ephemeris state
    vectors; Pluto and the Moon fall back to periapsis placement.
    """

    def __init__(self, date: datetime = None, orbital_mechanics: OrbitalMechanics = None):
        super().__init__("Solar system at date", SOLAR_SYSTEM_ENTITIES, orbital_mechanics)
        self.date = date or datetime.now(timezone.utc)
        self.almanac = SolarSystemAlmanac(self.orbital_mechanics)
        self.almanac.update(self.date)

    def place_body(self, body: CelestialBody, entity: Entity):
        parent = body.parent
        if entity.body_type == CelestialBodyType.PLANET and entity.name in self.almanac.planets:
            mu = self.orbital_mechanics.gravitational_constant * parent.mass
            position, velocity = self.almanac.state_vectors(entity.name, mu)
            body.position = parent.position + position
            body.velocity = parent.velocity + velocity
            # Keep the stored elements consistent with the state vectors
            ephemeris = self.almanac.planets[entity.name]
            body.orbit_radius = ephemeris.semi_major_axis * ASTRONOMICAL_UNIT
            body.orbital_eccentricity = ephemeris.eccentricity
            body.orbital_inclination = ephemeris.inclination
            body.longitude_of_ascending_node = ephemeris.longitude_of_ascending_node
            body.argument_of_periapsis = ephemeris.argument_of_perihelion
            return
        super().place_body(body, entity)


def _trappist_planet(name: str, mass_earths: float, diameter_earths: float, distance_au: float) -> Entity:
    return Entity(name, CelestialBodyType.PLANET, mass=mass_earths * MASS_OF_EARTH,
                  diameter=diameter_earths * DIAMETER_OF_EARTH, distance_from_parent=distance_au * ASTRONOMICAL_UNIT)


TRAPPIST_1_ENTITIES = [
    Entity("TRAPPIST-1", CelestialBodyType.STAR, mass=0.0898 * MASS_OF_SUN, diameter=0.1192 * DIAMETER_OF_SUN,
           rotation_period=3.295),
    _trappist_planet("TRAPPIST-1b", 1.374, 1.116, 0.01154),
    _trappist_planet("TRAPPIST-1c", 1.308, 1.097, 0.01580),
    _trappist_planet("TRAPPIST-1d", 0.388, 0.788, 0.02227),
    _trappist_planet("TRAPPIST-1e", 0.692, 0.920, 0.02925),
    _trappist_planet("TRAPPIST-1f", 1.039, 1.045, 0.03849),
    _trappist_planet("TRAPPIST-1g", 1.321, 1.129, 0.04683),
    _trappist_planet("TRAPPIST-1h", 0.326, 0.755, 0.06189),
]


class Trappist1System(BaseStarSystemScenario):
    """TRAPPIST-1 and its seven known planets on circular orbits."""

    def __init__(self, orbital_mechanics: OrbitalMechanics = None):
        super().__init__("TRAPPIST-1", TRAPPIST_1_ENTITIES, orbital_mechanics)

    def simulation_speed_intervals(self) -> Optional[List[int]]:
        # Planets orbit in days, so stop at 5 days per second
        return [0, 10, 100, 600, 3600, 6 * 3600, SECONDS_PER_DAY, 2 * SECONDS_PER_DAY,
                3 * SECONDS_PER_DAY, 4 * SECONDS_PER_DAY, 5 * SECONDS_PER_DAY]

    def simulation_step_settings(self) -> Optional[Tuple[float, int]]:
        # One hour is already small against the top speed, so no dynamic scaling
        return 3600.0, 0


class BinaryStarsWithPlanets(Scenario):
    """Two Sun-like stars in mutual orbit and an initially resting Earth-mass planet."""
    name = "Binary stars"

    def setup(self, engine: PhysicsEngine):
        bodies = [
            CelestialBody("Star #1", MASS_OF_SUN,
                          position=Vector3d(0.0, 0.0, -0.5 * ASTRONOMICAL_UNIT),
                          velocity=Vector3d(0.0, 20e3, 0.0),
                          body_type=CelestialBodyType.STAR, radius=DIAMETER_OF_SUN / 2.0),
            CelestialBody("Star #2", MASS_OF_SUN,
                          position=Vector3d(0.0, 0.0, 0.5 * ASTRONOMICAL_UNIT),
                          velocity=Vector3d(0.0, -20e3, 0.0),
                          body_type=CelestialBodyType.STAR, radius=DIAMETER_OF_SUN / 2.0),
            CelestialBody("Planet #1", MASS_OF_EARTH,
                          position=Vector3d(0.0, 0.1 * ASTRONOMICAL_UNIT, -0.1 * ASTRONOMICAL_UNIT),
                          body_type=CelestialBodyType.PLANET, radius=DIAMETER_OF_EARTH / 2.0),
        ]
        for body in bodies:
            body.initialize()
            engine.add_body(body)
        logging.info(f"Scenario '{self.name}' set up with {len(engine.bodies)} bodies.")


class EmptySpace(Scenario):
    name = "Empty space"

    def setup(self, engine: PhysicsEngine):
        pass


SCENARIOS: Dict[str, type] = {
    "solar-system": SolarSystem,
    "solar-system-at-date": SolarSystemAtDate,
    "trappist-1": Trappist1System,
    "binary-stars": BinaryStarsWithPlanets,
    "empty": EmptySpace,
}


def get_scenario(name: str, **kwargs) -> Scenario:
    """Instantiates a registered scenario by key (see `SCENARIOS`).

    Raises:
        ConfigurationError: For an unknown key.
    """
    try:
        scenario_class = SCENARIOS[name]
    except KeyError:
        raise ConfigurationError(f"Unknown scenario '{name}'. Available: {', '.join(SCENARIOS)}") from None
    return scenario_class(**kwargs)


def speed_intervals_for(scenario: Scenario) -> List[int]:
    return scenario.simulation_speed_intervals() or list(config.Simulation.SPEED_INTERVALS)
