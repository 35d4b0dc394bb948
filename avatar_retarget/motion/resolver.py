"""
Resolver - pick the effective source orientation for every binding.

The Kinect runtime reports (0, 0, 0, 0) for joints whose orientation it did
not compute, typically the leaves (hands, feet). Such a joint borrows the
orientation of its configured fallback joint. Bindings whose joint is absent
from the frame, or that still have no usable orientation, are skipped for the
tick and their bones keep their pose.
"""

from typing import Dict, Optional, Tuple

import numpy as np

from avatar_retarget.core import get_logger
from avatar_retarget.core.kinect_skeleton import SkeletonFrame, TrackingState
from avatar_retarget.core.quaternion import is_degenerate, quat_normalize
from .bindings import JointBindingTable, JointBoneBinding


class Resolver:
    """Maps a skeleton frame to bone id -> resolved source orientation."""

    def __init__(self, bindings: JointBindingTable, ignore_untracked: bool = False):
        self.logger = get_logger("motion.resolver")
        self.bindings = bindings
        self.ignore_untracked = ignore_untracked

    def _usable_orientation(self, frame: SkeletonFrame, index: Optional[int]) -> Optional[np.ndarray]:
        if index is None:
            return None
        joint = frame.get(index)
        if joint is None:
            return None
        if self.ignore_untracked and joint.tracking_state == TrackingState.NOT_TRACKED:
            return None
        if is_degenerate(joint.orientation):
            return None
        return quat_normalize(joint.orientation)

    def resolve_binding(
        self, frame: SkeletonFrame, binding: JointBoneBinding
    ) -> Tuple[Optional[np.ndarray], bool]:
        """
        Resolve one binding.

        The fallback joint only stands in for a primary joint that is in the
        frame but unusable. A primary joint absent from the frame skips the
        binding.

        Returns:
            (orientation or None, whether the fallback joint was used)
        """
        if binding.joint_index not in frame:
            return None, False

        orientation = self._usable_orientation(frame, binding.joint_index)
        if orientation is not None:
            return orientation, False

        orientation = self._usable_orientation(frame, binding.fallback_joint_index)
        return orientation, orientation is not None

    def resolve(self, frame: SkeletonFrame) -> Dict[str, np.ndarray]:
        """
        Resolve all bindings for a frame.

        Returns:
            bone id -> unit quaternion, only for bindings that resolved
        """
        resolved: Dict[str, np.ndarray] = {}
        for binding in self.bindings:
            orientation, used_fallback = self.resolve_binding(frame, binding)
            if orientation is None:
                self.logger.debug(
                    f"No orientation for joint {binding.joint_index} -> {binding.bone_id}, skipped"
                )
                continue
            if used_fallback:
                self.logger.debug(
                    f"Joint {binding.joint_index} -> {binding.bone_id} "
                    f"using fallback joint {binding.fallback_joint_index}"
                )
            resolved[binding.bone_id] = orientation
        return resolved
