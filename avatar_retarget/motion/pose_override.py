"""Manual per-bone orientation overrides (tuning panel hook)"""

from typing import Dict, Optional, Sequence

import numpy as np

from avatar_retarget.core.quaternion import quat_from_euler_deg, quat_normalize
from .bone_graph import BonePoseSink


class PoseOverrides:
    """
    Bone id -> fixed local orientation, written after smoothing.

    Overrides replace what the sink shows for a bone without touching the
    engine's retarget state, so removing one resumes retargeting where the
    filter left off.
    """

    def __init__(self, sink: BonePoseSink):
        self.sink = sink
        self._overrides: Dict[str, np.ndarray] = {}

    def set(self, bone_id: str, orientation: Sequence[float]) -> None:
        """
        Raises:
            KeyError: If the bone is not in the rig
            ValueError: If the orientation is degenerate
        """
        if not self.sink.has_bone(bone_id):
            raise KeyError(f"Unknown bone: {bone_id}")
        self._overrides[bone_id] = quat_normalize(np.asarray(orientation, dtype=np.float64))

    def set_euler_deg(self, bone_id: str, x: float, y: float, z: float) -> None:
        self.set(bone_id, quat_from_euler_deg(x, y, z))

    def clear(self, bone_id: Optional[str] = None) -> None:
        if bone_id is None:
            self._overrides.clear()
        else:
            self._overrides.pop(bone_id, None)

    def get(self, bone_id: str) -> Optional[np.ndarray]:
        q = self._overrides.get(bone_id)
        return None if q is None else q.copy()

    def apply(self, bone_id: str) -> bool:
        """Write the override for ``bone_id`` if one is set."""
        q = self._overrides.get(bone_id)
        if q is None:
            return False
        self.sink.set_local_orientation(bone_id, q)
        return True

    @property
    def bone_ids(self):
        return list(self._overrides)

    def __contains__(self, bone_id: str) -> bool:
        return bone_id in self._overrides

    def __len__(self) -> int:
        return len(self._overrides)
