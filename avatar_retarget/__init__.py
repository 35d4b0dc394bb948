"""
Real-time Kinect skeleton to avatar rig retargeting.

Example usage:
    from avatar_retarget import RetargetEngine, build_mixamo_rig, decode_kinect_body_frame

    rig = build_mixamo_rig()
    engine = RetargetEngine(rig)

    engine.submit(decode_kinect_body_frame(payload))   # frame source
    report = engine.tick()                             # render loop
"""

from .motion import (
    CompositionOrder,
    RetargetSettings,
    JointBoneBinding,
    JointBindingTable,
    BoneGraph,
    BonePoseSink,
    build_mixamo_rig,
    FrameIngest,
    decode_kinect_body_frame,
    RetargetEngine,
    TickReport,
    MissingBindingError,
    RigHierarchyError,
)

__version__ = "0.1.0"
__all__ = [
    "CompositionOrder",
    "RetargetSettings",
    "JointBoneBinding",
    "JointBindingTable",
    "BoneGraph",
    "BonePoseSink",
    "build_mixamo_rig",
    "FrameIngest",
    "decode_kinect_body_frame",
    "RetargetEngine",
    "TickReport",
    "MissingBindingError",
    "RigHierarchyError",
]
