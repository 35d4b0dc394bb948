"""Kinect v2 skeleton, Mixamo bone hierarchy and the mapping between them.

This module defines the 25 Kinect body joints, the Mixamo bones an avatar
rig exposes, and the default joint -> bone correspondence used for
orientation retargeting.
"""

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Dict, Iterator, Optional
import numpy as np


class KinectJoint(IntEnum):
    """Kinect v2 body joint indices."""
    SPINE_BASE = 0
    SPINE_MID = 1
    NECK = 2
    HEAD = 3
    SHOULDER_LEFT = 4
    ELBOW_LEFT = 5
    WRIST_LEFT = 6
    HAND_LEFT = 7
    SHOULDER_RIGHT = 8
    ELBOW_RIGHT = 9
    WRIST_RIGHT = 10
    HAND_RIGHT = 11
    HIP_LEFT = 12
    KNEE_LEFT = 13
    ANKLE_LEFT = 14
    FOOT_LEFT = 15
    HIP_RIGHT = 16
    KNEE_RIGHT = 17
    ANKLE_RIGHT = 18
    FOOT_RIGHT = 19
    SPINE_SHOULDER = 20
    HAND_TIP_LEFT = 21
    THUMB_LEFT = 22
    HAND_TIP_RIGHT = 23
    THUMB_RIGHT = 24


class TrackingState(IntEnum):
    """Per-joint tracking confidence, same values as the Kinect runtime."""
    NOT_TRACKED = 0
    INFERRED = 1
    TRACKED = 2


class MixamoBone(IntEnum):
    """Mixamo bones driven by body tracking (fingers excluded)."""
    # Root and Spine
    HIPS = 0
    SPINE = 1
    SPINE1 = 2
    SPINE2 = 3

    # Head and Neck
    NECK = 4
    HEAD = 5

    # Left Arm
    LEFT_SHOULDER = 6
    LEFT_ARM = 7
    LEFT_FOREARM = 8
    LEFT_HAND = 9

    # Right Arm
    RIGHT_SHOULDER = 10
    RIGHT_ARM = 11
    RIGHT_FOREARM = 12
    RIGHT_HAND = 13

    # Left Leg
    LEFT_UP_LEG = 14
    LEFT_LEG = 15
    LEFT_FOOT = 16
    LEFT_TOE_BASE = 17

    # Right Leg
    RIGHT_UP_LEG = 18
    RIGHT_LEG = 19
    RIGHT_FOOT = 20
    RIGHT_TOE_BASE = 21


# Prefix of the elf avatar export; Mixamo's own FBX files use "mixamorig:"
DEFAULT_BONE_PREFIX = "mixamorig6"

# Bone names without the rig prefix
MIXAMO_BONE_SUFFIXES = {
    MixamoBone.HIPS: "Hips",
    MixamoBone.SPINE: "Spine",
    MixamoBone.SPINE1: "Spine1",
    MixamoBone.SPINE2: "Spine2",
    MixamoBone.NECK: "Neck",
    MixamoBone.HEAD: "Head",
    MixamoBone.LEFT_SHOULDER: "LeftShoulder",
    MixamoBone.LEFT_ARM: "LeftArm",
    MixamoBone.LEFT_FOREARM: "LeftForeArm",
    MixamoBone.LEFT_HAND: "LeftHand",
    MixamoBone.RIGHT_SHOULDER: "RightShoulder",
    MixamoBone.RIGHT_ARM: "RightArm",
    MixamoBone.RIGHT_FOREARM: "RightForeArm",
    MixamoBone.RIGHT_HAND: "RightHand",
    MixamoBone.LEFT_UP_LEG: "LeftUpLeg",
    MixamoBone.LEFT_LEG: "LeftLeg",
    MixamoBone.LEFT_FOOT: "LeftFoot",
    MixamoBone.LEFT_TOE_BASE: "LeftToeBase",
    MixamoBone.RIGHT_UP_LEG: "RightUpLeg",
    MixamoBone.RIGHT_LEG: "RightLeg",
    MixamoBone.RIGHT_FOOT: "RightFoot",
    MixamoBone.RIGHT_TOE_BASE: "RightToeBase",
}


# Bone parent relationships (child -> parent)
MIXAMO_BONE_PARENTS = {
    MixamoBone.SPINE: MixamoBone.HIPS,
    MixamoBone.SPINE1: MixamoBone.SPINE,
    MixamoBone.SPINE2: MixamoBone.SPINE1,
    MixamoBone.NECK: MixamoBone.SPINE2,
    MixamoBone.HEAD: MixamoBone.NECK,
    MixamoBone.LEFT_SHOULDER: MixamoBone.SPINE2,
    MixamoBone.LEFT_ARM: MixamoBone.LEFT_SHOULDER,
    MixamoBone.LEFT_FOREARM: MixamoBone.LEFT_ARM,
    MixamoBone.LEFT_HAND: MixamoBone.LEFT_FOREARM,
    MixamoBone.RIGHT_SHOULDER: MixamoBone.SPINE2,
    MixamoBone.RIGHT_ARM: MixamoBone.RIGHT_SHOULDER,
    MixamoBone.RIGHT_FOREARM: MixamoBone.RIGHT_ARM,
    MixamoBone.RIGHT_HAND: MixamoBone.RIGHT_FOREARM,
    MixamoBone.LEFT_UP_LEG: MixamoBone.HIPS,
    MixamoBone.LEFT_LEG: MixamoBone.LEFT_UP_LEG,
    MixamoBone.LEFT_FOOT: MixamoBone.LEFT_LEG,
    MixamoBone.LEFT_TOE_BASE: MixamoBone.LEFT_FOOT,
    MixamoBone.RIGHT_UP_LEG: MixamoBone.HIPS,
    MixamoBone.RIGHT_LEG: MixamoBone.RIGHT_UP_LEG,
    MixamoBone.RIGHT_FOOT: MixamoBone.RIGHT_LEG,
    MixamoBone.RIGHT_TOE_BASE: MixamoBone.RIGHT_FOOT,
}


# Joint whose absolute orientation drives each bone.
# SpineShoulder drives Spine1; Spine2 follows its parent.
KINECT_TO_MIXAMO = {
    KinectJoint.SPINE_BASE: MixamoBone.HIPS,
    KinectJoint.SPINE_MID: MixamoBone.SPINE,
    KinectJoint.SPINE_SHOULDER: MixamoBone.SPINE1,
    KinectJoint.NECK: MixamoBone.NECK,
    KinectJoint.HEAD: MixamoBone.HEAD,
    KinectJoint.SHOULDER_LEFT: MixamoBone.LEFT_SHOULDER,
    KinectJoint.ELBOW_LEFT: MixamoBone.LEFT_ARM,
    KinectJoint.WRIST_LEFT: MixamoBone.LEFT_FOREARM,
    KinectJoint.HAND_LEFT: MixamoBone.LEFT_HAND,
    KinectJoint.SHOULDER_RIGHT: MixamoBone.RIGHT_SHOULDER,
    KinectJoint.ELBOW_RIGHT: MixamoBone.RIGHT_ARM,
    KinectJoint.WRIST_RIGHT: MixamoBone.RIGHT_FOREARM,
    KinectJoint.HAND_RIGHT: MixamoBone.RIGHT_HAND,
    KinectJoint.HIP_LEFT: MixamoBone.LEFT_UP_LEG,
    KinectJoint.KNEE_LEFT: MixamoBone.LEFT_LEG,
    KinectJoint.ANKLE_LEFT: MixamoBone.LEFT_FOOT,
    KinectJoint.FOOT_LEFT: MixamoBone.LEFT_TOE_BASE,
    KinectJoint.HIP_RIGHT: MixamoBone.RIGHT_UP_LEG,
    KinectJoint.KNEE_RIGHT: MixamoBone.RIGHT_LEG,
    KinectJoint.ANKLE_RIGHT: MixamoBone.RIGHT_FOOT,
    KinectJoint.FOOT_RIGHT: MixamoBone.RIGHT_TOE_BASE,
}


# Leaf joints report a zero orientation; borrow the nearest ancestor's
KINECT_LEAF_FALLBACK = {
    KinectJoint.HAND_LEFT: KinectJoint.WRIST_LEFT,
    KinectJoint.HAND_RIGHT: KinectJoint.WRIST_RIGHT,
    KinectJoint.HAND_TIP_LEFT: KinectJoint.WRIST_LEFT,
    KinectJoint.THUMB_LEFT: KinectJoint.WRIST_LEFT,
    KinectJoint.HAND_TIP_RIGHT: KinectJoint.WRIST_RIGHT,
    KinectJoint.THUMB_RIGHT: KinectJoint.WRIST_RIGHT,
    KinectJoint.FOOT_LEFT: KinectJoint.ANKLE_LEFT,
    KinectJoint.FOOT_RIGHT: KinectJoint.ANKLE_RIGHT,
}


def mixamo_bone_name(bone: MixamoBone, prefix: str = DEFAULT_BONE_PREFIX) -> str:
    """Full rig bone name, e.g. ``mixamorig6LeftArm``."""
    return f"{prefix}{MIXAMO_BONE_SUFFIXES[bone]}"


def mixamo_parent_names(prefix: str = DEFAULT_BONE_PREFIX) -> Dict[str, Optional[str]]:
    """Bone name -> parent bone name (None for the root) for the whole rig."""
    parents: Dict[str, Optional[str]] = {}
    for bone in MixamoBone:
        parent = MIXAMO_BONE_PARENTS.get(bone)
        parents[mixamo_bone_name(bone, prefix)] = (
            mixamo_bone_name(parent, prefix) if parent is not None else None
        )
    return parents


@dataclass
class Joint:
    """A tracked joint as delivered by the frame source."""
    index: int
    position: np.ndarray      # (3,) camera space, meters
    orientation: np.ndarray   # (4,) quaternion (w, x, y, z), may be all zero
    tracking_state: TrackingState = TrackingState.TRACKED

    def __post_init__(self):
        self.position = np.asarray(self.position, dtype=np.float64)
        self.orientation = np.asarray(self.orientation, dtype=np.float64)
        self.tracking_state = TrackingState(self.tracking_state)


@dataclass
class SkeletonFrame:
    """One body frame: joint index -> joint, plus a sequence id."""
    joints: Dict[int, Joint] = field(default_factory=dict)
    sequence: int = 0
    timestamp: float = 0.0

    def get(self, index: int) -> Optional[Joint]:
        return self.joints.get(int(index))

    def __contains__(self, index: int) -> bool:
        return int(index) in self.joints

    def __iter__(self) -> Iterator[Joint]:
        return iter(self.joints[i] for i in sorted(self.joints))

    def __len__(self) -> int:
        return len(self.joints)

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "sequence": self.sequence,
            "timestamp": self.timestamp,
            "joints": {
                index: {
                    "position": joint.position.tolist(),
                    "orientation": joint.orientation.tolist(),
                    "tracking_state": int(joint.tracking_state),
                }
                for index, joint in sorted(self.joints.items())
            }
        }
