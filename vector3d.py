# vector3d.py
import math
from dataclasses import dataclass
from typing import ClassVar, Union

import numpy as np


@dataclass(frozen=True)
class Vector3d:
    """Immutable double-precision 3D vector.

    Python floats are IEEE-754 doubles, which is what metre-scale positions up
    to ~1e13 m need. Component-wise `*` and `/` are supported between vectors,
    and scalar `*` (on either side) and `/` against numbers.
    """
    x: float = 0.0
    y: float = 0.0
    z: float = 0.0

    ZERO: ClassVar["Vector3d"]
    ONE: ClassVar["Vector3d"]
    UNIT_X: ClassVar["Vector3d"]
    UNIT_Y: ClassVar["Vector3d"]
    UNIT_Z: ClassVar["Vector3d"]

    def __add__(self, other: "Vector3d") -> "Vector3d":
        return Vector3d(self.x + other.x, self.y + other.y, self.z + other.z)

    def __sub__(self, other: "Vector3d") -> "Vector3d":
        return Vector3d(self.x - other.x, self.y - other.y, self.z - other.z)

    def __neg__(self) -> "Vector3d":
        return Vector3d(-self.x, -self.y, -self.z)

    def __mul__(self, other: Union["Vector3d", float]) -> "Vector3d":
        if isinstance(other, Vector3d):
            return Vector3d(self.x * other.x, self.y * other.y, self.z * other.z)
        return Vector3d(self.x * other, self.y * other, self.z * other)

    __rmul__ = __mul__

    def __truediv__(self, other: Union["Vector3d", float]) -> "Vector3d":
        if isinstance(other, Vector3d):
            return Vector3d(self.x / other.x, self.y / other.y, self.z / other.z)
        return Vector3d(self.x / other, self.y / other, self.z / other)

    def dot(self, other: "Vector3d") -> float:
        return self.x * other.x + self.y * other.y + self.z * other.z

    def cross(self, other: "Vector3d") -> "Vector3d":
        return Vector3d(
            self.y * other.z - self.z * other.y,
            self.z * other.x - self.x * other.z,
            self.x * other.y - self.y * other.x,
        )

    def length_squared(self) -> float:
        return self.x * self.x + self.y * self.y + self.z * self.z

    def length(self) -> float:
        return math.sqrt(self.length_squared())

    def normalize(self) -> "Vector3d":
        """Returns the unit vector in this direction.

        Raises:
            ZeroDivisionError: For the zero vector. Use
                `physics_utils.normalize_vector` where a zero result is acceptable.
        """
        length = self.length()
        if length == 0.0:
            raise ZeroDivisionError("Cannot normalize a zero-length Vector3d.")
        return Vector3d(self.x / length, self.y / length, self.z / length)

    def distance_to(self, other: "Vector3d") -> float:
        return (self - other).length()

    def is_finite(self) -> bool:
        return math.isfinite(self.x) and math.isfinite(self.y) and math.isfinite(self.z)

    def to_array(self) -> np.ndarray:
        return np.array([self.x, self.y, self.z], dtype=np.float64)

    @classmethod
    def from_array(cls, array) -> "Vector3d":
        """Builds a vector from any 3-element sequence or numpy array."""
        values = np.asarray(array, dtype=np.float64).reshape(-1)
        if values.shape[0] != 3:
            raise ValueError(f"Expected 3 components, got {values.shape[0]}.")
        return cls(float(values[0]), float(values[1]), float(values[2]))

    def __iter__(self):
        yield self.x
        yield self.y
        yield self.z

    def __repr__(self) -> str:
        return f"Vector3d({self.x:.6g}, {self.y:.6g}, {self.z:.6g})"


Vector3d.ZERO = Vector3d(0.0, 0.0, 0.0)
Vector3d.ONE = Vector3d(1.0, 1.0, 1.0)
Vector3d.UNIT_X = Vector3d(1.0, 0.0, 0.0)
Vector3d.UNIT_Y = Vector3d(0.0, 1.0, 0.0)
Vector3d.UNIT_Z = Vector3d(0.0, 0.0, 1.0)
