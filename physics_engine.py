# physics_engine.py
import logging
import math
from typing import Dict, List, Optional, Tuple

from config import config, GRAVITATIONAL_CONSTANT
from mass_body import MassBody
from physics_utils import PhysicsError
from vector3d import Vector3d


class SemiImplicitEulerIntegrator:
    """Symplectic (semi-implicit) Euler: velocity is updated first, then position with the new velocity.

    One force evaluation per sub-step. Energy oscillates with a small
    systematic drift over long runs, which is acceptable for visualization.
    """
    name = "semi_implicit_euler"

    def step(self, engine: "PhysicsEngine", dt: float):
        engine.compute_gravitational_forces()
        for body in engine.bodies:
            body.update_state(dt)
            body.acceleration = engine.compute_acceleration(body)
            body.velocity = body.velocity + body.acceleration * dt
            body.position = body.position + body.velocity * dt


class LeapfrogIntegrator:
    """Kick-drift-kick leapfrog. Second order and time-reversible, at two force evaluations per sub-step.

    Produces different numbers from `SemiImplicitEulerIntegrator`; use it when
    long-run energy behaviour matters more than matching reference runs.
    """
    name = "leapfrog"

    def step(self, engine: "PhysicsEngine", dt: float):
        half_dt = 0.5 * dt
        engine.compute_gravitational_forces()
        for body in engine.bodies:
            body.update_state(dt)
            body.acceleration = engine.compute_acceleration(body)
            body.velocity = body.velocity + body.acceleration * half_dt
            body.position = body.position + body.velocity * dt

        engine.compute_gravitational_forces()
        for body in engine.bodies:
            body.acceleration = engine.compute_acceleration(body)
            body.velocity = body.velocity + body.acceleration * half_dt


INTEGRATORS = {
    SemiImplicitEulerIntegrator.name: SemiImplicitEulerIntegrator,
    LeapfrogIntegrator.name: LeapfrogIntegrator,
}


def create_integrator(method: str = None):
    """Instantiates an integrator by name, defaulting to config.Physics.INTEGRATION_METHOD."""
    method = method or config.Physics.INTEGRATION_METHOD
    try:
        return INTEGRATORS[method]()
    except KeyError:
        raise PhysicsError(f"Unknown integration method '{method}'. "
                           f"Available: {', '.join(sorted(INTEGRATORS))}") from None


class PhysicsEngine:
    """
    N-body Newtonian gravity integrator with fixed-size sub-stepping.

    Bodies interact pairwise (O(n^2) per sub-step, meant for tens of bodies).
    `simulate()` splits each requested interval into sub-steps no longer than
    `max_simulation_time_step` and updates every body's trajectory once the
    whole interval has been integrated.

    The engine is single-threaded and `simulate()` is not reentrant; readers
    must not mutate body state.

    Attributes:
        simulation_time (float): Simulated seconds since start or the last `reset()`.
        integrator: Strategy object with a `step(engine, dt)` method.
        gravitational_constant (float): G in m^3 kg^-1 s^-2.
    """

    def __init__(self, max_simulation_time_step: float = None, integrator=None,
                 gravitational_constant: float = GRAVITATIONAL_CONSTANT):
        self.simulation_time = 0.0
        self.max_simulation_time_step = (config.Physics.MAX_SIMULATION_TIME_STEP
                                         if max_simulation_time_step is None else max_simulation_time_step)
        self.integrator = integrator if integrator is not None else create_integrator()
        self.gravitational_constant = gravitational_constant
        self._bodies: List[MassBody] = []
        self._bodies_by_name: Dict[str, MassBody] = {}

    @property
    def max_simulation_time_step(self) -> float:
        return self._max_simulation_time_step

    @max_simulation_time_step.setter
    def max_simulation_time_step(self, value: float):
        if not (math.isfinite(value) and value > 0):
            raise PhysicsError(f"max_simulation_time_step must be positive and finite, got {value}.")
        self._max_simulation_time_step = float(value)

    @property
    def bodies(self) -> Tuple[MassBody, ...]:
        return tuple(self._bodies)

    def get_body(self, name: str) -> Optional[MassBody]:
        return self._bodies_by_name.get(name)

    def add_body(self, body: MassBody):
        """
        Registers a body. Registration order fixes the force summation order.

        Raises:
            PhysicsError: If the state is not finite, the mass is not positive,
                          a body with the same name is already registered, or the body's
                          parent has not been registered in this engine first.
        """
        for quantity in ("position", "velocity", "acceleration"):
            if not getattr(body, quantity).is_finite():
                raise PhysicsError(f"Cannot add '{body.name}': {quantity} {getattr(body, quantity)} is not finite.")
        if not (math.isfinite(body.mass) and body.mass > 0):
            raise PhysicsError(f"Cannot add '{body.name}': mass must be positive and finite, got {body.mass}.")
        if body.name in self._bodies_by_name:
            raise PhysicsError(f"A body named '{body.name}' is already registered.")
        parent = getattr(body, "parent", None)
        if parent is not None and not any(registered is parent for registered in self._bodies):
            raise PhysicsError(f"Cannot add '{body.name}': its parent '{parent.name}' is not registered in this engine.")

        self._bodies.append(body)
        self._bodies_by_name[body.name] = body
        if config.Debug.PHYSICS_ENGINE:
            logging.info(f"Added body '{body.name}' ({len(self._bodies)} total).")

    def reset(self):
        """Removes all bodies and rewinds the clock to zero."""
        self._bodies.clear()
        self._bodies_by_name.clear()
        self.simulation_time = 0.0

    def set_simulation_speed(self, speed: float, base_step: float = None, max_iterations: int = None) -> float:
        """
        Adapts the sub-step to the simulation speed (simulated seconds per real second).

        With `max_iterations` N > 0 and a speed above `base_step * N`, the step
        grows to `speed / N` so that about N sub-steps cover one real second.
        Otherwise the step is `base_step`. N = 0 disables scaling.

        Returns:
            float: The new `max_simulation_time_step`.
        """
        if base_step is None:
            base_step = config.Physics.MAX_SIMULATION_TIME_STEP
        if max_iterations is None:
            max_iterations = config.Physics.MAX_SUBSTEPS_PER_CALL

        if max_iterations > 0 and speed > base_step * max_iterations:
            self.max_simulation_time_step = speed / max_iterations
        else:
            self.max_simulation_time_step = base_step
        return self.max_simulation_time_step

    def compute_pairwise_force(self, body1: MassBody, body2: MassBody) -> Vector3d:
        """Gravitational force on body1 exerted by body2, in newtons.

        Antisymmetric in its arguments to the last bit. Coincident bodies give zero.
        """
        displacement = body2.position - body1.position
        distance_squared = displacement.length_squared()
        if distance_squared == 0.0:
            return Vector3d.ZERO
        distance = math.sqrt(distance_squared)
        magnitude = self.gravitational_constant * (body1.mass * body2.mass) / distance_squared
        return displacement * (magnitude / distance)

    def compute_gravitational_forces(self):
        """Fills every body's `total_gravitational_force` from all pairwise interactions."""
        for body in self._bodies:
            body.total_gravitational_force = Vector3d.ZERO

        count = len(self._bodies)
        for i in range(count):
            body1 = self._bodies[i]
            for j in range(i + 1, count):
                body2 = self._bodies[j]
                force = self.compute_pairwise_force(body1, body2)
                body1.total_gravitational_force = body1.total_gravitational_force + force
                body2.total_gravitational_force = body2.total_gravitational_force - force

    def compute_acceleration(self, body: MassBody) -> Vector3d:
        if body.mass <= 0:
            raise PhysicsError(f"Body '{body.name}' has non-positive mass {body.mass}.")
        return (body.total_gravitational_force + body.get_additional_force()) / body.mass

    def simulate(self, time_delta: float):
        """
        Advances the simulation by `time_delta` seconds.

        The interval is covered by whole sub-steps of `max_simulation_time_step`
        plus one shorter remainder sub-step when needed. Trajectories are updated
        once afterwards. A non-positive `time_delta` does nothing.

        Raises:
            PhysicsError: If `time_delta` is not finite, or, with
                          config.Debug.STRICT_INVARIANTS, if a body's state becomes non-finite.
        """
        if not math.isfinite(time_delta):
            raise PhysicsError(f"time_delta must be finite, got {time_delta}.")
        if time_delta <= 0:
            return

        step = self._max_simulation_time_step
        full_steps = int(time_delta // step)
        remainder = time_delta - full_steps * step

        for _ in range(full_steps):
            self.run_simulation_step(step)
        if remainder > 0.0:
            self.run_simulation_step(remainder)

        # After all sub-steps, so a child's entry pairs with its parent's final position
        for body in self._bodies:
            body.update_trajectory()

        if config.Debug.PHYSICS_ENGINE:
            logging.debug(f"Simulated {time_delta:.3f} s in {full_steps} + {1 if remainder > 0 else 0} "
                          f"sub-steps; t={self.simulation_time:.1f} s")

    def run_simulation_step(self, time_delta: float):
        """One integration sub-step of `time_delta` seconds for all bodies."""
        snapshot = [(body.position, body.velocity) for body in self._bodies]

        self.integrator.step(self, time_delta)
        self._check_finite_state(snapshot)

        self.simulation_time += time_delta

    def _check_finite_state(self, snapshot):
        for body, (previous_position, previous_velocity) in zip(self._bodies, snapshot):
            for quantity in ("acceleration", "velocity", "position"):
                value = getattr(body, quantity)
                if value.is_finite():
                    continue
                message = (f"Non-finite {quantity} {value} for body '{body.name}' "
                           f"at t={self.simulation_time:.1f} s.")
                if config.Debug.STRICT_INVARIANTS:
                    raise PhysicsError(message)
                logging.error(f"{message} Restoring its previous state.")
                body.position = previous_position
                body.velocity = previous_velocity
                body.acceleration = Vector3d.ZERO
                break

    def total_momentum(self) -> Vector3d:
        momentum = Vector3d.ZERO
        for body in self._bodies:
            momentum = momentum + body.momentum
        return momentum

    def total_energy(self) -> float:
        """
        Total mechanical energy (kinetic + pairwise potential) of the system in joules.

        Coincident pairs are skipped in the potential term.
        """
        kinetic = sum(body.kinetic_energy for body in self._bodies)
        potential = 0.0
        count = len(self._bodies)
        for i in range(count):
            body1 = self._bodies[i]
            for j in range(i + 1, count):
                body2 = self._bodies[j]
                distance = body1.position.distance_to(body2.position)
                if distance > 0.0:
                    potential -= self.gravitational_constant * body1.mass * body2.mass / distance
        return kinetic + potential

    def center_of_mass(self) -> Vector3d:
        total_mass = sum(body.mass for body in self._bodies)
        if total_mass == 0:
            return Vector3d.ZERO
        weighted = Vector3d.ZERO
        for body in self._bodies:
            weighted = weighted + body.position * body.mass
        return weighted / total_mass
