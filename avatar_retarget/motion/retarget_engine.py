"""
Retarget engine - per-tick orchestration of the orientation pipeline.

Per tick, driven by the host render loop:

    FrameIngest -> Resolver -> RetargetTransform -> FlipGuard
                -> Localizer -> Smoother -> sink write -> overrides

The first three stages only depend on the frame and engine state. The last
stages read parent world orientations from the rig, so they run bone by bone
in root-to-leaf rig order. Problems with single joints or bones are logged
and skipped; a tick always completes with whatever it could update.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

import numpy as np

from avatar_retarget.core import get_logger, Config, TickTimer
from avatar_retarget.core.kinect_skeleton import DEFAULT_BONE_PREFIX, SkeletonFrame
from .bindings import JointBindingTable, RetargetSettings
from .bone_graph import BonePoseSink, build_mixamo_rig
from .flip_guard import FlipGuard
from .frame_ingest import FrameIngest
from .localizer import Localizer
from .pose_override import PoseOverrides
from .resolver import Resolver
from .retarget_state import RetargetState, RetargetStateStore
from .retarget_transform import RetargetTransform
from .smoother import Smoother


class MissingBindingError(KeyError):
    """A binding names a bone the target rig does not have."""


@dataclass
class TickReport:
    """What one tick did."""
    sequence: Optional[int] = None
    updated: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    damped: List[str] = field(default_factory=list)
    overridden: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)
    elapsed: float = 0.0
    over_budget: bool = False

    @property
    def had_frame(self) -> bool:
        return self.sequence is not None


class RetargetEngine:
    """
    Drives a target rig from tracked joint orientations.

    Example usage:
        rig = build_mixamo_rig()
        engine = RetargetEngine(rig)

        # frame source thread
        engine.submit(frame)

        # render loop
        report = engine.tick()
    """

    def __init__(
        self,
        rig: BonePoseSink,
        bindings: Optional[JointBindingTable] = None,
        settings: Optional[RetargetSettings] = None,
        ingest: Optional[FrameIngest] = None,
    ):
        """
        Args:
            rig: Target rig (sink contract)
            bindings: Joint -> bone table, default Kinect -> Mixamo
            settings: Composition order, calibration, filter constants
            ingest: Frame register shared with the frame source

        Raises:
            MissingBindingError: If a bound bone is not in the rig
        """
        self.logger = get_logger("motion.engine")
        self.rig = rig
        self.bindings = bindings if bindings is not None else JointBindingTable.default()
        self.settings = settings or RetargetSettings()
        self.ingest = ingest or FrameIngest()

        missing = [bone_id for bone_id in self.bindings.bone_ids if not rig.has_bone(bone_id)]
        if missing:
            raise MissingBindingError(f"Bound bones missing from rig: {missing}")

        self.resolver = Resolver(self.bindings, ignore_untracked=self.settings.ignore_untracked)
        self.transform = RetargetTransform(self.bindings, self.settings)
        self.flip_guard = FlipGuard(self.settings.flip_threshold, self.settings.flip_damping)
        self.localizer = Localizer(rig)
        self.smoother = Smoother(rig, self.settings.blend_factor)
        self.overrides = PoseOverrides(rig)
        self.states = RetargetStateStore()
        self.timer = TickTimer(self.settings.tick_budget_ms)

        # Parents before children; the localizer depends on it
        self._order: List[str] = rig.bone_ids()
        self._ticking = False
        self.tick_count = 0
        self.frames_processed = 0

        self.logger.info(
            f"Engine ready: {len(self.bindings)} bindings on {len(self._order)} bones, "
            f"order={self.settings.composition_order.value}, "
            f"blend={self.settings.blend_factor}, mirror={self.settings.mirror}, "
            f"axis_remap={self.settings.axis_remap}"
        )

    @classmethod
    def from_config(cls, config: Config, rig: Optional[BonePoseSink] = None) -> "RetargetEngine":
        """Build settings, bindings and (if not given) a Mixamo rig from config."""
        prefix = config.get("rig.bone_prefix", DEFAULT_BONE_PREFIX)
        settings = RetargetSettings.from_dict(config.retarget)
        bindings = JointBindingTable.from_config(config.bindings, prefix)
        if rig is None:
            rig = build_mixamo_rig(prefix)
        return cls(rig, bindings, settings)

    # Frame source side

    def submit(self, frame: SkeletonFrame) -> None:
        """Offer a frame; safe to call from the frame source's thread."""
        self.ingest.push(frame)

    # Manual overrides

    def set_override(self, bone_id: str, orientation: Sequence[float]) -> None:
        self.overrides.set(bone_id, orientation)

    def clear_override(self, bone_id: Optional[str] = None) -> None:
        self.overrides.clear(bone_id)

    # Tick

    def tick(self, frame: Optional[SkeletonFrame] = None) -> TickReport:
        """
        Run one retargeting pass.

        Args:
            frame: Frame to process; by default the latest submitted one.
                   With no new frame the rig keeps its pose.

        Raises:
            RuntimeError: If called while a tick is already running
        """
        if self._ticking:
            raise RuntimeError("RetargetEngine.tick() is not re-entrant")
        self._ticking = True
        self.timer.start()
        report = TickReport()
        try:
            if frame is None:
                frame = self.ingest.take()

            guarded: Dict[str, np.ndarray] = {}
            if frame is not None:
                report.sequence = frame.sequence
                guarded = self._guarded_world_orientations(frame, report)
                self.frames_processed += 1

            for bone_id in self._order:
                if bone_id in guarded:
                    self._update_bone(bone_id, guarded[bone_id], report)
                if self.overrides.apply(bone_id):
                    report.overridden.append(bone_id)
        finally:
            report.elapsed = self.timer.stop()
            report.over_budget = self.timer.last_over_budget
            self.tick_count += 1
            self._ticking = False

        if report.over_budget:
            self.logger.warning(
                f"Tick {self.tick_count} took {report.elapsed * 1000:.2f} ms "
                f"(budget {self.settings.tick_budget_ms:.1f} ms)"
            )
        return report

    def _guarded_world_orientations(
        self, frame: SkeletonFrame, report: TickReport
    ) -> Dict[str, np.ndarray]:
        resolved = self.resolver.resolve(frame)
        report.skipped = [b for b in self.bindings.bone_ids if b not in resolved]

        guarded: Dict[str, np.ndarray] = {}
        for bone_id, orientation in resolved.items():
            try:
                candidate = self.transform.compose(bone_id, orientation)
                result = self.flip_guard.guard(bone_id, candidate, self.states.get_or_create(bone_id))
            except (ValueError, ArithmeticError) as e:
                self.logger.warning(f"Skipping {bone_id}: {e}")
                report.failed.append(bone_id)
                continue
            if result.damped:
                report.damped.append(bone_id)
            guarded[bone_id] = result.orientation
        return guarded

    def _update_bone(self, bone_id: str, world: np.ndarray, report: TickReport) -> None:
        try:
            local = self.localizer.localize(bone_id, world)
            self.smoother.apply(bone_id, local, self.states.get(bone_id))
        except (ValueError, ArithmeticError) as e:
            self.logger.warning(f"Skipping {bone_id}: {e}")
            report.failed.append(bone_id)
            return
        report.updated.append(bone_id)

    # Diagnostics

    def state(self, bone_id: str) -> Optional[RetargetState]:
        """Copy of a bone's retarget state, None before its first resolution."""
        state = self.states.get(bone_id)
        return None if state is None else state.copy()

    def reset(self) -> None:
        """Forget flip priors and smoothing history. Pausing does not need this."""
        self.states.clear()
        self.logger.info("Retarget state reset")

    @property
    def stats(self) -> dict:
        return {
            "ticks": self.tick_count,
            "frames_processed": self.frames_processed,
            "frames_dropped": self.ingest.dropped_count,
            "flips_damped": self.flip_guard.flip_count,
            "over_budget_ticks": self.timer.over_budget_count,
            "avg_tick_ms": self.timer.average_tick_time * 1000.0,
        }
