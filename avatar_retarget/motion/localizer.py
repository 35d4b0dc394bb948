"""World -> parent-relative local orientation"""

import numpy as np

from avatar_retarget.core.quaternion import quat_inverse, quat_multiply, quat_normalize
from .bone_graph import BonePoseSink


class Localizer:
    """
    Converts a bone's target world orientation to a local one.

    The parent's world orientation is read live from the sink, so parents
    must be written before their children within a tick.
    """

    def __init__(self, sink: BonePoseSink):
        self.sink = sink

    def localize(self, bone_id: str, world: np.ndarray) -> np.ndarray:
        parent_id = self.sink.get_parent(bone_id)
        if parent_id is None:
            return quat_normalize(world)
        # local = inverse(parent_world) * world
        parent_world = self.sink.get_world_orientation(parent_id)
        return quat_normalize(quat_multiply(quat_inverse(parent_world), world))
