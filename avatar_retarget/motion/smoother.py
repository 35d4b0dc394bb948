"""
Temporal smoothing of local bone orientations and the final sink write.

A fixed slerp factor per tick (exponential decay toward the target). It is
not time-normalised and assumes a roughly steady render rate.
"""

from typing import Optional

import numpy as np

from avatar_retarget.core.quaternion import quat_normalize, quat_slerp
from .bone_graph import BonePoseSink
from .retarget_state import RetargetState


class Smoother:
    """Blends each bone's previous local orientation toward its target."""

    def __init__(self, sink: BonePoseSink, blend_factor: float = 0.4):
        if not 0.0 < blend_factor <= 1.0:
            raise ValueError(f"blend_factor must be in (0, 1], got {blend_factor}")
        self.sink = sink
        self.blend_factor = blend_factor

    def blend(self, previous: np.ndarray, target: np.ndarray) -> np.ndarray:
        return quat_normalize(quat_slerp(previous, target, self.blend_factor))

    def apply(
        self,
        bone_id: str,
        target_local: np.ndarray,
        state: Optional[RetargetState] = None,
    ) -> np.ndarray:
        """
        Smooth toward ``target_local`` and write the result to the sink.

        The starting point is the last local this engine wrote for the bone,
        or the bone's current local on its first update. Starting from the
        engine's own value keeps pose overrides out of the filter.

        Returns:
            The local orientation written
        """
        if state is not None and state.last_local is not None:
            previous = state.last_local
        else:
            previous = self.sink.get_local_orientation(bone_id)

        new_local = self.blend(previous, target_local)
        self.sink.set_local_orientation(bone_id, new_local)
        if state is not None:
            state.last_local = new_local.copy()
        return new_local
