# mass_body.py
from vector3d import Vector3d


class MassBody:
    """State of a gravitating point mass plus the per-step lifecycle hooks.

    The owning `PhysicsEngine` mutates `position`, `velocity`, `acceleration`
    and `total_gravitational_force` every sub-step. Subclasses customise
    behaviour by overriding `initialize`, `update_trajectory`, `update_state`
    and `get_additional_force`.
    """

    def __init__(self, name: str, mass: float,
                 position: Vector3d = Vector3d.ZERO,
                 velocity: Vector3d = Vector3d.ZERO,
                 acceleration: Vector3d = Vector3d.ZERO):
        self._name = name
        self.mass = float(mass)
        self.position = position
        self.velocity = velocity
        self.acceleration = acceleration
        # Scratch accumulator, zeroed at the start of every sub-step
        self.total_gravitational_force = Vector3d.ZERO

    @property
    def name(self) -> str:
        return self._name

    @property
    def momentum(self) -> Vector3d:
        return self.velocity * self.mass

    @property
    def kinetic_energy(self) -> float:
        return 0.5 * self.mass * self.velocity.length_squared()

    def initialize(self):
        """Called once after construction and parent assignment, before the first step."""
        pass

    def update_trajectory(self):
        """Called after integration so the body can record its new state."""
        pass

    def update_state(self, time_delta: float):
        """Called once per sub-step before acceleration is finalised."""
        pass

    def get_additional_force(self) -> Vector3d:
        """Non-gravitational force in newtons applied on top of gravity."""
        return Vector3d.ZERO

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self._name!r}, mass={self.mass:.4g})"
