"""Quaternion math for bone orientations.

All quaternions are numpy arrays in [w, x, y, z] order. Source data that
arrives as (x, y, z, w) is converted at the edge with ``quat_from_xyzw``.
"""

from typing import Sequence

import numpy as np

# Below this norm a quaternion carries no usable rotation
DEGENERATE_EPSILON = 1e-8


def quat_identity() -> np.ndarray:
    """Return identity quaternion [w, x, y, z]."""
    return np.array([1.0, 0.0, 0.0, 0.0], dtype=np.float64)


def quat_from_xyzw(x: float, y: float, z: float, w: float) -> np.ndarray:
    """Build a [w, x, y, z] quaternion from scalar-last components."""
    return np.array([w, x, y, z], dtype=np.float64)


def quat_to_xyzw(q: np.ndarray) -> tuple:
    """Return (x, y, z, w) for a [w, x, y, z] quaternion."""
    return (float(q[1]), float(q[2]), float(q[3]), float(q[0]))


def is_degenerate(q: Sequence[float]) -> bool:
    """
    True when a quaternion carries no orientation.

    Covers the all-zero sentinel the Kinect runtime uses for "not computed",
    any non-finite component, and anything too short to normalize.
    """
    q = np.asarray(q, dtype=np.float64)
    if q.shape != (4,) or not np.all(np.isfinite(q)):
        return True
    return float(np.dot(q, q)) < DEGENERATE_EPSILON * DEGENERATE_EPSILON


def quat_normalize(q: np.ndarray) -> np.ndarray:
    """
    Normalize to unit length.

    Raises:
        ValueError: If the quaternion is degenerate.
    """
    q = np.asarray(q, dtype=np.float64)
    if is_degenerate(q):
        raise ValueError(f"Cannot normalize degenerate quaternion {q}")
    return q / np.linalg.norm(q)


def quat_multiply(q1: np.ndarray, q2: np.ndarray) -> np.ndarray:
    """Multiply two quaternions: q1 * q2 (apply q2 first, then q1)."""
    w1, x1, y1, z1 = q1
    w2, x2, y2, z2 = q2
    return np.array([
        w1*w2 - x1*x2 - y1*y2 - z1*z2,
        w1*x2 + x1*w2 + y1*z2 - z1*y2,
        w1*y2 - x1*z2 + y1*w2 + z1*x2,
        w1*z2 + x1*y2 - y1*x2 + z1*w2
    ], dtype=np.float64)


def quat_conjugate(q: np.ndarray) -> np.ndarray:
    """Return conjugate (inverse for unit quaternion)."""
    return np.array([q[0], -q[1], -q[2], -q[3]], dtype=np.float64)


def quat_inverse(q: np.ndarray) -> np.ndarray:
    """Return the multiplicative inverse, valid for non-unit quaternions too."""
    norm_sq = float(np.dot(q, q))
    if norm_sq < DEGENERATE_EPSILON * DEGENERATE_EPSILON:
        raise ValueError(f"Cannot invert degenerate quaternion {q}")
    return quat_conjugate(q) / norm_sq


def quat_dot(q1: np.ndarray, q2: np.ndarray) -> float:
    return float(np.dot(q1, q2))


def quat_angle(q1: np.ndarray, q2: np.ndarray) -> float:
    """
    Rotation angle (radians, 0..pi) separating two unit quaternions.

    Uses |dot| so that q and -q, which encode the same rotation, are 0 apart.
    """
    d = abs(quat_dot(q1, q2))
    return 2.0 * float(np.arccos(min(1.0, max(-1.0, d))))


def quat_slerp(q1: np.ndarray, q2: np.ndarray, t: float) -> np.ndarray:
    """Spherical linear interpolation between quaternions."""
    q1 = np.asarray(q1, dtype=np.float64)
    q2 = np.asarray(q2, dtype=np.float64)
    dot = np.dot(q1, q2)

    # Ensure shortest path
    if dot < 0:
        q2 = -q2
        dot = -dot

    if dot > 0.9995:
        # Linear interpolation for close quaternions
        result = q1 + t * (q2 - q1)
        return result / np.linalg.norm(result)

    theta_0 = np.arccos(min(1.0, dot))
    theta = theta_0 * t

    q2_perp = q2 - q1 * dot
    q2_perp = q2_perp / np.linalg.norm(q2_perp)

    result = q1 * np.cos(theta) + q2_perp * np.sin(theta)
    return result / np.linalg.norm(result)


def quat_from_axis_angle(axis: Sequence[float], angle: float) -> np.ndarray:
    """Create quaternion from axis and angle (radians)."""
    axis = np.asarray(axis, dtype=np.float64)
    n = np.linalg.norm(axis)
    if n < DEGENERATE_EPSILON:
        raise ValueError("Rotation axis must be non-zero")
    axis = axis / n
    half = angle * 0.5
    s = np.sin(half)
    return np.array([np.cos(half), axis[0]*s, axis[1]*s, axis[2]*s], dtype=np.float64)


def quat_from_euler_deg(x: float, y: float, z: float) -> np.ndarray:
    """
    Quaternion from intrinsic XYZ Euler angles in degrees.

    Equivalent to rotating about X, then the new Y, then the new Z,
    i.e. ``qx * qy * qz``.
    """
    qx = quat_from_axis_angle((1.0, 0.0, 0.0), np.radians(x))
    qy = quat_from_axis_angle((0.0, 1.0, 0.0), np.radians(y))
    qz = quat_from_axis_angle((0.0, 0.0, 1.0), np.radians(z))
    return quat_multiply(quat_multiply(qx, qy), qz)


def quat_from_two_vectors(v_from: Sequence[float], v_to: Sequence[float]) -> np.ndarray:
    """
    Create quaternion that rotates v_from to v_to.
    Returns [w, x, y, z] format.
    """
    v_from = np.asarray(v_from, dtype=np.float64)
    v_to = np.asarray(v_to, dtype=np.float64)
    n_from = np.linalg.norm(v_from)
    n_to = np.linalg.norm(v_to)
    if n_from < DEGENERATE_EPSILON or n_to < DEGENERATE_EPSILON:
        raise ValueError("Cannot build a rotation from a zero-length vector")
    v_from = v_from / n_from
    v_to = v_to / n_to

    dot = np.dot(v_from, v_to)

    # Vectors are nearly parallel
    if dot > 0.99999:
        return quat_identity()

    # Vectors are nearly opposite
    if dot < -0.99999:
        ortho = np.array([1.0, 0.0, 0.0])
        if abs(v_from[0]) > 0.9:
            ortho = np.array([0.0, 1.0, 0.0])
        axis = np.cross(v_from, ortho)
        axis = axis / np.linalg.norm(axis)
        return np.array([0.0, axis[0], axis[1], axis[2]], dtype=np.float64)

    axis = np.cross(v_from, v_to)
    s = np.sqrt((1 + dot) * 2)
    invs = 1.0 / s

    return np.array([
        s * 0.5,
        axis[0] * invs,
        axis[1] * invs,
        axis[2] * invs
    ], dtype=np.float64)


def quat_rotate_vector(q: np.ndarray, v: Sequence[float]) -> np.ndarray:
    """Rotate vector v by quaternion q."""
    qv = np.array([0.0, v[0], v[1], v[2]], dtype=np.float64)
    rotated = quat_multiply(quat_multiply(q, qv), quat_conjugate(q))
    return rotated[1:4]
