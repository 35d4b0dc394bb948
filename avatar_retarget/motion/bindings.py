"""
Joint -> bone binding table and construction-time retarget settings.

Both are fixed once the engine is built. A binding names the Kinect joint
whose absolute orientation drives a rig bone, the static correction applied
to it, and an optional fallback joint for leaf joints that carry no
orientation of their own.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, Iterator, List, Optional, Sequence, Tuple, Union

import numpy as np

from avatar_retarget.core.kinect_skeleton import (
    DEFAULT_BONE_PREFIX,
    KINECT_LEAF_FALLBACK,
    KINECT_TO_MIXAMO,
    KinectJoint,
    MixamoBone,
    mixamo_bone_name,
)
from avatar_retarget.core.quaternion import (
    is_degenerate,
    quat_from_euler_deg,
    quat_identity,
    quat_normalize,
)


# =============================================================================
# SETTINGS
# =============================================================================

class CompositionOrder(Enum):
    """How a bone's candidate world orientation is assembled.

    PRE_MULTIPLY_GLOBAL_THEN_RAW: global calibration * raw * correction
    RAW_THEN_CORRECTION:          raw * correction (no global term)
    """
    PRE_MULTIPLY_GLOBAL_THEN_RAW = "pre_multiply_global_then_raw"
    RAW_THEN_CORRECTION = "raw_then_correction"

    @classmethod
    def parse(cls, value: Union[str, "CompositionOrder"]) -> "CompositionOrder":
        if isinstance(value, cls):
            return value
        key = str(value).strip().lower()
        for member in cls:
            if key in (member.value, member.name.lower()):
                return member
        raise ValueError(
            f"Unknown composition order: {value}. "
            f"Supported: {[m.value for m in cls]}"
        )


@dataclass(frozen=True)
class RetargetSettings:
    """Construction-time engine configuration."""
    composition_order: CompositionOrder = CompositionOrder.PRE_MULTIPLY_GLOBAL_THEN_RAW
    axis_remap: bool = False          # -90 deg about X, for Z-up rigs
    mirror: bool = False              # 180 deg about Y after correction
    floor_clip_plane: Optional[Tuple[float, float, float, float]] = None  # Kinect (x, y, z, w)
    blend_factor: float = 0.4         # Smoother slerp factor per tick
    flip_threshold: float = 0.9       # Fraction of pi above which a change is a flip
    flip_damping: float = 0.5         # Slerp factor from candidate toward prior on a flip
    ignore_untracked: bool = False    # Treat NOT_TRACKED joints as missing
    tick_budget_ms: float = 16.0

    def __post_init__(self):
        object.__setattr__(
            self, "composition_order", CompositionOrder.parse(self.composition_order)
        )
        if not 0.0 < self.blend_factor <= 1.0:
            raise ValueError(f"blend_factor must be in (0, 1], got {self.blend_factor}")
        if not 0.0 < self.flip_threshold <= 1.0:
            raise ValueError(f"flip_threshold must be in (0, 1], got {self.flip_threshold}")
        if not 0.0 <= self.flip_damping <= 1.0:
            raise ValueError(f"flip_damping must be in [0, 1], got {self.flip_damping}")
        if self.tick_budget_ms < 0:
            raise ValueError("tick_budget_ms must not be negative")

        if self.floor_clip_plane is not None:
            plane = tuple(float(v) for v in self.floor_clip_plane)
            if len(plane) != 4 or not np.all(np.isfinite(plane)):
                raise ValueError(f"floor_clip_plane must be 4 finite numbers, got {self.floor_clip_plane}")
            if np.linalg.norm(plane[:3]) < 1e-8:
                raise ValueError("floor_clip_plane normal must be non-zero")
            object.__setattr__(self, "floor_clip_plane", plane)

        if self.composition_order is CompositionOrder.RAW_THEN_CORRECTION and self.has_global_term:
            raise ValueError(
                "axis_remap and floor_clip_plane require composition_order "
                f"'{CompositionOrder.PRE_MULTIPLY_GLOBAL_THEN_RAW.value}'"
            )

    @property
    def has_global_term(self) -> bool:
        return self.axis_remap or self.floor_clip_plane is not None

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "RetargetSettings":
        """Build from the ``retarget`` config section; unknown keys are rejected."""
        data = dict(data or {})
        known = set(cls.__dataclass_fields__)
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"Unknown retarget settings: {sorted(unknown)}")
        return cls(**data)


# =============================================================================
# BINDINGS
# =============================================================================

@dataclass(frozen=True)
class JointBoneBinding:
    """One source joint driving one target bone."""
    joint_index: int
    bone_id: str
    correction: Tuple[float, float, float, float] = (1.0, 0.0, 0.0, 0.0)  # (w, x, y, z)
    fallback_joint_index: Optional[int] = None

    def __post_init__(self):
        object.__setattr__(self, "joint_index", int(self.joint_index))
        if self.fallback_joint_index is not None:
            object.__setattr__(self, "fallback_joint_index", int(self.fallback_joint_index))
            if self.fallback_joint_index == self.joint_index:
                raise ValueError(f"Joint {self.joint_index} cannot fall back to itself")
        if is_degenerate(self.correction):
            raise ValueError(f"Correction for {self.bone_id} is degenerate: {self.correction}")
        corrected = quat_normalize(np.asarray(self.correction, dtype=np.float64))
        object.__setattr__(self, "correction", tuple(float(v) for v in corrected))

    @property
    def correction_quat(self) -> np.ndarray:
        return np.array(self.correction, dtype=np.float64)


class JointBindingTable:
    """Immutable set of joint -> bone bindings, at most one per bone."""

    def __init__(self, bindings: Iterable[JointBoneBinding]):
        self._bindings: Tuple[JointBoneBinding, ...] = tuple(bindings)
        self._by_bone: Dict[str, JointBoneBinding] = {}
        for binding in self._bindings:
            if binding.bone_id in self._by_bone:
                raise ValueError(f"Bone {binding.bone_id} is bound more than once")
            self._by_bone[binding.bone_id] = binding

    def __iter__(self) -> Iterator[JointBoneBinding]:
        return iter(self._bindings)

    def __len__(self) -> int:
        return len(self._bindings)

    def __contains__(self, bone_id: str) -> bool:
        return bone_id in self._by_bone

    @property
    def bone_ids(self) -> List[str]:
        return [b.bone_id for b in self._bindings]

    def for_bone(self, bone_id: str) -> Optional[JointBoneBinding]:
        return self._by_bone.get(bone_id)

    @classmethod
    def default(
        cls,
        prefix: str = DEFAULT_BONE_PREFIX,
        corrections: Optional[Dict[str, Sequence[float]]] = None,
    ) -> "JointBindingTable":
        """
        Kinect v2 -> Mixamo table.

        Args:
            prefix: Rig bone name prefix
            corrections: Optional bone name -> (w, x, y, z) correction
        """
        corrections = corrections or {}
        bindings = []
        for joint, bone in KINECT_TO_MIXAMO.items():
            name = mixamo_bone_name(bone, prefix)
            fallback = KINECT_LEAF_FALLBACK.get(joint)
            bindings.append(JointBoneBinding(
                joint_index=int(joint),
                bone_id=name,
                correction=tuple(corrections.get(name, quat_identity())),
                fallback_joint_index=int(fallback) if fallback is not None else None,
            ))
        return cls(bindings)

    @classmethod
    def from_config(
        cls,
        entries: Optional[List[dict]],
        prefix: str = DEFAULT_BONE_PREFIX,
    ) -> "JointBindingTable":
        """
        Build from the ``bindings`` config section.

        Each entry::

            joint: ELBOW_LEFT            # KinectJoint name or index
            bone: LEFT_ARM               # MixamoBone name (prefixed) or literal bone id
            correction: [w, x, y, z]     # optional
            correction_euler_deg: [x, y, z]  # optional, intrinsic XYZ
            fallback: WRIST_LEFT         # optional

        An empty or missing section yields the default table.
        """
        if not entries:
            return cls.default(prefix)

        bindings = []
        for entry in entries:
            if "joint" not in entry or "bone" not in entry:
                raise ValueError(f"Binding entry needs 'joint' and 'bone': {entry}")
            if "correction" in entry and "correction_euler_deg" in entry:
                raise ValueError(f"Give either correction or correction_euler_deg, not both: {entry}")

            if "correction_euler_deg" in entry:
                x, y, z = entry["correction_euler_deg"]
                correction = tuple(quat_from_euler_deg(x, y, z))
            else:
                correction = tuple(entry.get("correction", (1.0, 0.0, 0.0, 0.0)))

            fallback = entry.get("fallback")
            bindings.append(JointBoneBinding(
                joint_index=_parse_joint(entry["joint"]),
                bone_id=_parse_bone(entry["bone"], prefix),
                correction=correction,
                fallback_joint_index=_parse_joint(fallback) if fallback is not None else None,
            ))
        return cls(bindings)


def _parse_joint(value: Union[int, str]) -> int:
    if isinstance(value, str) and not value.isdigit():
        try:
            return int(KinectJoint[value.strip().upper()])
        except KeyError:
            raise ValueError(f"Unknown Kinect joint: {value}") from None
    return int(value)


def _parse_bone(value: str, prefix: str) -> str:
    try:
        return mixamo_bone_name(MixamoBone[str(value).strip().upper()], prefix)
    except KeyError:
        return str(value)
