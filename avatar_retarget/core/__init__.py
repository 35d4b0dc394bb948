"""Core systems - config, logging, timing, quaternions, skeleton definitions"""

from .config import Config
from .logging import setup_logging, get_logger, set_component_level
from .timing import TickTimer, TickClock
from .quaternion import (
    quat_identity,
    quat_from_xyzw,
    quat_to_xyzw,
    is_degenerate,
    quat_normalize,
    quat_multiply,
    quat_conjugate,
    quat_inverse,
    quat_dot,
    quat_angle,
    quat_slerp,
    quat_from_axis_angle,
    quat_from_euler_deg,
    quat_from_two_vectors,
    quat_rotate_vector,
)
from .kinect_skeleton import (
    KinectJoint,
    TrackingState,
    MixamoBone,
    DEFAULT_BONE_PREFIX,
    MIXAMO_BONE_SUFFIXES,
    MIXAMO_BONE_PARENTS,
    KINECT_TO_MIXAMO,
    KINECT_LEAF_FALLBACK,
    mixamo_bone_name,
    mixamo_parent_names,
    Joint,
    SkeletonFrame,
)

__all__ = [
    "Config", "setup_logging", "get_logger", "set_component_level", "TickTimer", "TickClock",
    # Quaternions
    "quat_identity", "quat_from_xyzw", "quat_to_xyzw", "is_degenerate",
    "quat_normalize", "quat_multiply", "quat_conjugate", "quat_inverse",
    "quat_dot", "quat_angle", "quat_slerp", "quat_from_axis_angle",
    "quat_from_euler_deg", "quat_from_two_vectors", "quat_rotate_vector",
    # Skeleton
    "KinectJoint", "TrackingState", "MixamoBone",
    "DEFAULT_BONE_PREFIX", "MIXAMO_BONE_SUFFIXES", "MIXAMO_BONE_PARENTS",
    "KINECT_TO_MIXAMO", "KINECT_LEAF_FALLBACK",
    "mixamo_bone_name", "mixamo_parent_names",
    "Joint", "SkeletonFrame",
]
