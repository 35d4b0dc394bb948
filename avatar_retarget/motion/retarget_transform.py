"""
Retarget transform - resolved source orientation to candidate world orientation.

Composition, with ``*`` the quaternion product (right factor applied first)::

    PRE_MULTIPLY_GLOBAL_THEN_RAW:  world = G * raw * C [* M]
    RAW_THEN_CORRECTION:           world =     raw * C [* M]

G is the global calibration (floor tilt * axis remap), C the binding's
correction and M the optional mirror (180 deg about Y).
"""

from typing import Dict

import numpy as np

from avatar_retarget.core.quaternion import (
    quat_from_axis_angle,
    quat_from_two_vectors,
    quat_identity,
    quat_multiply,
    quat_normalize,
)
from .bindings import CompositionOrder, JointBindingTable, RetargetSettings

UP = np.array([0.0, 1.0, 0.0])

# Kinect is Y-up; Z-up rigs need -90 deg about X
AXIS_REMAP_QUAT = quat_from_axis_angle((1.0, 0.0, 0.0), -np.pi / 2)
MIRROR_QUAT = quat_from_axis_angle((0.0, 1.0, 0.0), np.pi)


def floor_tilt_from_plane(plane) -> np.ndarray:
    """
    Rotation that levels the sensor's view of the floor.

    Args:
        plane: Kinect floorClipPlane (x, y, z, w); xyz is the floor normal
               in camera space

    Returns:
        Quaternion taking the floor normal onto +Y
    """
    return quat_from_two_vectors(np.asarray(plane[:3], dtype=np.float64), UP)


def global_calibration(settings: RetargetSettings) -> np.ndarray:
    """Floor tilt followed by axis remap, identity when neither is set."""
    g = quat_identity()
    if settings.floor_clip_plane is not None:
        g = quat_multiply(g, floor_tilt_from_plane(settings.floor_clip_plane))
    if settings.axis_remap:
        g = quat_multiply(g, AXIS_REMAP_QUAT)
    return quat_normalize(g)


class RetargetTransform:
    """Composes resolved orientations with static corrections."""

    def __init__(self, bindings: JointBindingTable, settings: RetargetSettings):
        self.bindings = bindings
        self.settings = settings
        self.order = settings.composition_order
        # Validated in RetargetSettings: RAW_THEN_CORRECTION never has a global term
        self.global_term = (
            global_calibration(settings)
            if self.order is CompositionOrder.PRE_MULTIPLY_GLOBAL_THEN_RAW
            else None
        )
        self._corrections = {b.bone_id: b.correction_quat for b in bindings}

    def compose(self, bone_id: str, resolved: np.ndarray) -> np.ndarray:
        """Candidate world orientation for one bone."""
        q = resolved
        if self.global_term is not None:
            q = quat_multiply(self.global_term, q)
        q = quat_multiply(q, self._corrections[bone_id])
        if self.settings.mirror:
            q = quat_multiply(q, MIRROR_QUAT)
        return quat_normalize(q)

    def transform(self, resolved: Dict[str, np.ndarray]) -> Dict[str, np.ndarray]:
        return {bone_id: self.compose(bone_id, q) for bone_id, q in resolved.items()}
