"""Retargeting pipeline: bindings, rig, ingest, per-tick stages and engine"""

from .bindings import CompositionOrder, RetargetSettings, JointBoneBinding, JointBindingTable
from .bone_graph import Bone, BoneGraph, BonePoseSink, RigHierarchyError, build_mixamo_rig
from .frame_ingest import FrameIngest, decode_kinect_body_frame, extract_floor_clip_plane
from .retarget_state import RetargetState, RetargetStateStore
from .resolver import Resolver
from .retarget_transform import RetargetTransform, global_calibration, floor_tilt_from_plane
from .flip_guard import FlipGuard, GuardResult
from .localizer import Localizer
from .smoother import Smoother
from .pose_override import PoseOverrides
from .retarget_engine import RetargetEngine, TickReport, MissingBindingError

__all__ = [
    "CompositionOrder", "RetargetSettings", "JointBoneBinding", "JointBindingTable",
    "Bone", "BoneGraph", "BonePoseSink", "RigHierarchyError", "build_mixamo_rig",
    "FrameIngest", "decode_kinect_body_frame", "extract_floor_clip_plane",
    "RetargetState", "RetargetStateStore",
    "Resolver",
    "RetargetTransform", "global_calibration", "floor_tilt_from_plane",
    "FlipGuard", "GuardResult",
    "Localizer",
    "Smoother",
    "PoseOverrides",
    "RetargetEngine", "TickReport", "MissingBindingError",
]
