"""Per-bone temporal state owned by the retargeting engine"""

from dataclasses import dataclass
from typing import Dict, Iterator, Optional

import numpy as np


@dataclass
class RetargetState:
    """Last guarded world and last smoothed local orientation of one bone."""
    last_world: Optional[np.ndarray] = None
    last_local: Optional[np.ndarray] = None

    @property
    def has_prior(self) -> bool:
        return self.last_world is not None

    def copy(self) -> "RetargetState":
        return RetargetState(
            last_world=None if self.last_world is None else self.last_world.copy(),
            last_local=None if self.last_local is None else self.last_local.copy(),
        )


class RetargetStateStore:
    """Bone id -> RetargetState, entries created on first successful resolution."""

    def __init__(self):
        self._states: Dict[str, RetargetState] = {}

    def get_or_create(self, bone_id: str) -> RetargetState:
        state = self._states.get(bone_id)
        if state is None:
            state = self._states[bone_id] = RetargetState()
        return state

    def get(self, bone_id: str) -> Optional[RetargetState]:
        return self._states.get(bone_id)

    def clear(self) -> None:
        self._states.clear()

    def __contains__(self, bone_id: str) -> bool:
        return bone_id in self._states

    def __iter__(self) -> Iterator[str]:
        return iter(self._states)

    def __len__(self) -> int:
        return len(self._states)
