# physics_utils.py
import math

from vector3d import Vector3d


class PhysicsError(Exception):
    """Custom exception for physics-related errors, including numerical issues.

    Raised for invariant violations (non-finite state, non-positive mass,
    duplicate body names, parent cycles) and for physically invalid input such
    as orbital elements outside the elliptic range.
    """
    pass


def safe_divide(numerator, denominator, epsilon=1e-12, default_on_zero_denom=0.0):
    """
    Safely divides two numbers, handling potential division by zero.

    Args:
        numerator (float): The number to be divided.
        denominator (float): The number to divide by.
        epsilon (float): Threshold below which the denominator is considered zero.
        default_on_zero_denom (float): Value to return if denominator is effectively zero.

    Returns:
        float: The result of the division, or default_on_zero_denom if denominator is near zero.
    """
    if abs(denominator) < epsilon:
        return default_on_zero_denom
    return numerator / denominator


def normalize_vector(vector: Vector3d, epsilon=1e-12) -> Vector3d:
    """
    Normalizes a vector to unit length.

    Unlike `Vector3d.normalize()`, a (near) zero-length input is not an error:
    the zero vector is returned so callers can detect the degenerate case.

    Args:
        vector (Vector3d): The vector to normalize.
        epsilon (float): Threshold below which the vector's magnitude is considered zero.

    Returns:
        Vector3d: The normalized vector, or `Vector3d.ZERO` if its magnitude is close to zero.
    """
    length = vector.length()
    if length < epsilon:
        return Vector3d.ZERO
    return vector / length


def wrap_degrees(angle_deg: float) -> float:
    """Wraps an angle into [0, 360). Negative angles wrap from the top, e.g. -1 -> 359."""
    wrapped = angle_deg % 360.0
    # -1e-14 % 360 rounds to 360.0
    if wrapped >= 360.0:
        wrapped -= 360.0
    return wrapped


def clamp(value: float, low: float, high: float) -> float:
    """Clamp value to the inclusive range [low, high]."""
    return max(low, min(high, value))


def angle_between_deg(vector1: Vector3d, vector2: Vector3d) -> float:
    """Unsigned angle between two unit vectors in degrees, in [0, 180].

    The dot product is clamped so rounding just outside [-1, 1] cannot raise
    a math domain error in acos.
    """
    return math.degrees(math.acos(clamp(vector1.dot(vector2), -1.0, 1.0)))
