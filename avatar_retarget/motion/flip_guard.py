"""
Flip guard - damp near-180 degree jumps in a bone's world orientation.

Depth trackers occasionally report a joint orientation rotated by almost half
a turn for a single frame. Such a jump is treated as tracker noise: the
candidate is pulled halfway back toward the previous orientation instead of
being accepted. A quaternion and its negation are the same rotation and are
never considered a flip.
"""

from dataclasses import dataclass

import numpy as np

from avatar_retarget.core import get_logger
from avatar_retarget.core.quaternion import quat_angle, quat_normalize, quat_slerp
from .retarget_state import RetargetState


@dataclass
class GuardResult:
    orientation: np.ndarray
    angle: float = 0.0       # radians from the prior, before damping
    damped: bool = False


class FlipGuard:
    """Per-bone NoPrior -> HasPrior filter on candidate world orientations."""

    def __init__(self, threshold: float = 0.9, damping: float = 0.5):
        """
        Args:
            threshold: Flip threshold as a fraction of pi
            damping: Slerp factor from candidate toward prior on a flip
        """
        self.logger = get_logger("motion.flip_guard")
        self.threshold_angle = threshold * np.pi
        self.damping = damping
        self.flip_count = 0

    def guard(self, bone_id: str, candidate: np.ndarray, state: RetargetState) -> GuardResult:
        """
        Filter one candidate and record it as the bone's new prior.

        Args:
            bone_id: Bone being updated (for logging)
            candidate: Unit quaternion from the retarget transform
            state: The bone's engine state, updated in place
        """
        candidate = quat_normalize(candidate)

        if not state.has_prior:
            state.last_world = candidate.copy()
            return GuardResult(orientation=candidate)

        prior = state.last_world
        angle = quat_angle(prior, candidate)
        result = GuardResult(orientation=candidate, angle=angle)

        if angle > self.threshold_angle:
            result.orientation = quat_normalize(quat_slerp(candidate, prior, self.damping))
            result.damped = True
            self.flip_count += 1
            self.logger.debug(
                f"Flip on {bone_id}: {np.degrees(angle):.1f} deg, damped by {self.damping:.2f}"
            )

        state.last_world = result.orientation.copy()
        return result
