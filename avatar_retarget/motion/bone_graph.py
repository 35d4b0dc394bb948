"""
Target rig hierarchy and the bone sink contract.

The engine only ever talks to a rig through ``BonePoseSink``: it reads a
bone's parent and world orientation and writes its local orientation. The
renderer's own scene graph can implement that contract directly;
``BoneGraph`` is the in-memory implementation used headless and in tests.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

import numpy as np

from avatar_retarget.core.kinect_skeleton import DEFAULT_BONE_PREFIX, mixamo_parent_names
from avatar_retarget.core.quaternion import quat_identity, quat_multiply, quat_normalize


class RigHierarchyError(ValueError):
    """The rig is not a tree: unknown parent, duplicate bone or cycle."""


class BonePoseSink(ABC):
    """Rig-side contract the retargeting engine drives."""

    @abstractmethod
    def has_bone(self, bone_id: str) -> bool:
        ...

    @abstractmethod
    def bone_ids(self) -> List[str]:
        """All bone ids, parents listed before their children."""

    @abstractmethod
    def get_parent(self, bone_id: str) -> Optional[str]:
        ...

    @abstractmethod
    def get_world_orientation(self, bone_id: str) -> np.ndarray:
        ...

    @abstractmethod
    def get_local_orientation(self, bone_id: str) -> np.ndarray:
        ...

    @abstractmethod
    def set_local_orientation(self, bone_id: str, orientation: np.ndarray) -> None:
        """Apply a local orientation; world orientations below it must follow."""


@dataclass
class Bone:
    """A rig bone with its current local and cached world orientation."""
    id: str
    parent_id: Optional[str] = None
    local_orientation: np.ndarray = field(default_factory=quat_identity)
    world_orientation: np.ndarray = field(default_factory=quat_identity)
    children: List[str] = field(default_factory=list)


class BoneGraph(BonePoseSink):
    """
    In-memory bone tree.

    World orientations are cached and refreshed for the whole subtree each
    time a local orientation is written, so a child read straight after its
    parent's update sees the new parent pose.
    """

    def __init__(
        self,
        parents: Mapping[str, Optional[str]],
        rest_orientations: Optional[Mapping[str, Sequence[float]]] = None,
    ):
        """
        Args:
            parents: Bone id -> parent bone id (None for roots)
            rest_orientations: Optional bone id -> initial local (w, x, y, z)

        Raises:
            RigHierarchyError: If the hierarchy is not a forest of trees
        """
        rest_orientations = rest_orientations or {}
        self._bones: Dict[str, Bone] = {}

        for bone_id, parent_id in parents.items():
            if parent_id is not None and parent_id not in parents:
                raise RigHierarchyError(f"Bone {bone_id} has unknown parent {parent_id}")
            if parent_id == bone_id:
                raise RigHierarchyError(f"Bone {bone_id} is its own parent")
            local = rest_orientations.get(bone_id)
            self._bones[bone_id] = Bone(
                id=bone_id,
                parent_id=parent_id,
                local_orientation=quat_normalize(np.asarray(local, dtype=np.float64))
                if local is not None else quat_identity(),
            )

        unknown = set(rest_orientations) - set(self._bones)
        if unknown:
            raise RigHierarchyError(f"Rest orientations for unknown bones: {sorted(unknown)}")

        for bone in self._bones.values():
            if bone.parent_id is not None:
                self._bones[bone.parent_id].children.append(bone.id)

        self._order = self._topological_order()
        for bone_id in self._order:
            self._update_world(self._bones[bone_id])

    @classmethod
    def from_bones(cls, bones: Iterable[Bone]) -> "BoneGraph":
        bones = list(bones)
        seen = set()
        for bone in bones:
            if bone.id in seen:
                raise RigHierarchyError(f"Duplicate bone id {bone.id}")
            seen.add(bone.id)
        return cls(
            {b.id: b.parent_id for b in bones},
            {b.id: b.local_orientation for b in bones},
        )

    def _topological_order(self) -> List[str]:
        order: List[str] = []
        stack = [b.id for b in self._bones.values() if b.parent_id is None]
        while stack:
            bone_id = stack.pop()
            order.append(bone_id)
            # Reversed so siblings come out in declaration order
            stack.extend(reversed(self._bones[bone_id].children))
        if len(order) != len(self._bones):
            cyclic = sorted(set(self._bones) - set(order))
            raise RigHierarchyError(f"Bones unreachable from a root (cycle): {cyclic}")
        return order

    def _update_world(self, bone: Bone) -> None:
        if bone.parent_id is None:
            bone.world_orientation = bone.local_orientation.copy()
        else:
            parent_world = self._bones[bone.parent_id].world_orientation
            bone.world_orientation = quat_normalize(
                quat_multiply(parent_world, bone.local_orientation)
            )

    def _refresh_subtree(self, bone_id: str) -> None:
        stack = [bone_id]
        while stack:
            bone = self._bones[stack.pop()]
            self._update_world(bone)
            stack.extend(bone.children)

    def _bone(self, bone_id: str) -> Bone:
        try:
            return self._bones[bone_id]
        except KeyError:
            raise KeyError(f"Unknown bone: {bone_id}") from None

    # BonePoseSink

    def has_bone(self, bone_id: str) -> bool:
        return bone_id in self._bones

    def bone_ids(self) -> List[str]:
        return list(self._order)

    def get_parent(self, bone_id: str) -> Optional[str]:
        return self._bone(bone_id).parent_id

    def get_world_orientation(self, bone_id: str) -> np.ndarray:
        return self._bone(bone_id).world_orientation.copy()

    def get_local_orientation(self, bone_id: str) -> np.ndarray:
        return self._bone(bone_id).local_orientation.copy()

    def set_local_orientation(self, bone_id: str, orientation: np.ndarray) -> None:
        bone = self._bone(bone_id)
        bone.local_orientation = quat_normalize(orientation)
        self._refresh_subtree(bone_id)

    def get_children(self, bone_id: str) -> List[str]:
        return list(self._bone(bone_id).children)

    def __len__(self) -> int:
        return len(self._bones)

    def __contains__(self, bone_id: str) -> bool:
        return bone_id in self._bones


def build_mixamo_rig(
    prefix: str = DEFAULT_BONE_PREFIX,
    rest_orientations: Optional[Mapping[str, Sequence[float]]] = None,
) -> BoneGraph:
    """Body part of a Mixamo rig (22 bones, rooted at Hips)."""
    return BoneGraph(mixamo_parent_names(prefix), rest_orientations)
