# trajectory_tracker.py
import logging
from collections import deque
from dataclasses import dataclass
from typing import Optional, Tuple

from config import config
from physics_utils import angle_between_deg, normalize_vector
from vector3d import Vector3d


@dataclass(frozen=True)
class TrajectoryEntry:
    """A recorded body position with its parent's position at the same instant."""
    position: Vector3d
    parent_position: Vector3d

    @property
    def relative_position(self) -> Vector3d:
        return self.position - self.parent_position


def _parent_position(body) -> Vector3d:
    parent = getattr(body, "parent", None)
    return parent.position if parent is not None else Vector3d.ZERO


class TrajectoryTracker:
    """Bounded FIFO of `TrajectoryEntry`, oldest first.

    Subclasses decide in `update_position` whether a new sample is worth
    keeping and which old samples to drop.
    """

    def __init__(self):
        self._entries = deque()

    def __len__(self) -> int:
        return len(self._entries)

    def get_trajectory_data(self) -> Tuple[TrajectoryEntry, ...]:
        """Returns a read-only snapshot of the stored entries, oldest first."""
        return tuple(self._entries)

    @property
    def last_entry(self) -> Optional[TrajectoryEntry]:
        return self._entries[-1] if self._entries else None

    def clear(self):
        self._entries.clear()

    def update_position(self, body):
        raise NotImplementedError


class AngularTrajectoryTracker(TrajectoryTracker):
    """Keeps an evenly spaced trail covering a bounded angle of a parent orbit.

    Samples closer than `minimum_angle_increment` degrees (measured around the
    parent) to the previously stored sample are skipped, and the oldest samples
    are dropped once the trail spans more than `max_angle` degrees. The number
    of stored entries therefore adapts to the orbit rather than to the tick rate.
    """

    def __init__(self, minimum_angle_increment: float = None, max_angle: float = None):
        super().__init__()
        self.minimum_angle_increment = (config.Trajectory.MIN_ANGLE_INCREMENT_DEG
                                        if minimum_angle_increment is None else float(minimum_angle_increment))
        self.max_angle = config.Trajectory.MAX_ANGLE_DEG if max_angle is None else float(max_angle)
        self.revolution_axis: Optional[Vector3d] = None

    @staticmethod
    def compute_revolution_axis(body) -> Vector3d:
        """Orbital plane normal inferred from the body's position and velocity relative to its parent.

        Uses velocity relative to the parent rather than the body's absolute velocity,
        so moons of moving planets get their own orbital plane.

        Falls back to world up (0, 1, 0) for bodies without a parent or when
        position and velocity are parallel or zero.
        """
        parent = getattr(body, "parent", None)
        if parent is None:
            return Vector3d.UNIT_Y
        radial = normalize_vector(body.position - parent.position)
        direction = normalize_vector(body.velocity - parent.velocity)
        axis = radial.cross(direction)
        if axis.length_squared() < 1e-24:
            return Vector3d.UNIT_Y
        return axis

    def compute_angle(self, entry1: TrajectoryEntry, entry2: TrajectoryEntry) -> float:
        """Signed angle in degrees [0, 360) swept from entry1 to entry2 around the revolution axis.

        Returns 0 when either entry coincides with its parent.
        """
        v1 = normalize_vector(entry1.relative_position)
        v2 = normalize_vector(entry2.relative_position)
        if v1.length_squared() == 0.0 or v2.length_squared() == 0.0:
            return 0.0

        angle = angle_between_deg(v1, v2)
        axis = self.revolution_axis if self.revolution_axis is not None else Vector3d.UNIT_Y
        if v1.cross(v2).dot(axis) < 0:
            angle = 360.0 - angle
        return angle

    def update_position(self, body):
        if self.revolution_axis is None:
            self.revolution_axis = self.compute_revolution_axis(body)

        entry = TrajectoryEntry(body.position, _parent_position(body))

        last = self.last_entry
        if last is not None and self.compute_angle(last, entry) < self.minimum_angle_increment:
            return

        self._entries.append(entry)

        while len(self._entries) > 1 and self.compute_angle(self._entries[0], entry) > self.max_angle:
            dropped = self._entries.popleft()
            if config.Debug.TRAJECTORY_TRACKING:
                logging.debug(f"Angular tracker dropped entry at {dropped.position}, {len(self._entries)} remain.")


class LinearTrajectoryTracker(TrajectoryTracker):
    """Distance-sampled trail capped at `max_entries`, for bodies without a stable parent orbit."""

    def __init__(self, minimum_distance_increment: float = None, max_entries: int = None):
        super().__init__()
        self.minimum_distance_increment = (config.Trajectory.MIN_DISTANCE_INCREMENT_M
                                           if minimum_distance_increment is None
                                           else float(minimum_distance_increment))
        self.max_entries = config.Trajectory.MAX_ENTRIES if max_entries is None else int(max_entries)
        if self.max_entries <= 0:
            raise ValueError(f"max_entries must be positive, got {self.max_entries}.")

    def update_position(self, body):
        last = self.last_entry
        if last is not None:
            distance = last.position.distance_to(body.position)
            if distance == 0.0 or distance < self.minimum_distance_increment:
                return

        self._entries.append(TrajectoryEntry(body.position, _parent_position(body)))

        while len(self._entries) > self.max_entries:
            self._entries.popleft()
        if config.Debug.TRAJECTORY_TRACKING and len(self._entries) == self.max_entries:
            logging.debug(f"Linear tracker at capacity ({self.max_entries} entries).")
