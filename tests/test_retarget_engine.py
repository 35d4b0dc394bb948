import sys
import os
import unittest
import numpy as np

script_dir = os.path.dirname(os.path.abspath(__file__))
project_root = os.path.dirname(script_dir)
sys.path.insert(0, project_root)

from avatar_retarget.core.kinect_skeleton import (
    KINECT_TO_MIXAMO,
    Joint,
    KinectJoint,
    MixamoBone,
    SkeletonFrame,
    mixamo_bone_name,
    mixamo_parent_names,
)
from avatar_retarget.core.quaternion import (
    quat_angle,
    quat_from_axis_angle,
    quat_identity,
    quat_multiply,
    quat_normalize,
)
from avatar_retarget.motion.bindings import RetargetSettings
from avatar_retarget.motion.bone_graph import BoneGraph, build_mixamo_rig
from avatar_retarget.motion.retarget_engine import MissingBindingError, RetargetEngine

HEAD = mixamo_bone_name(MixamoBone.HEAD)
LEFT_ARM = mixamo_bone_name(MixamoBone.LEFT_ARM)
LEAF_JOINTS = (
    KinectJoint.HAND_LEFT, KinectJoint.HAND_RIGHT,
    KinectJoint.FOOT_LEFT, KinectJoint.FOOT_RIGHT,
    KinectJoint.HAND_TIP_LEFT, KinectJoint.THUMB_LEFT,
    KinectJoint.HAND_TIP_RIGHT, KinectJoint.THUMB_RIGHT,
)


def make_frame(orientations, sequence=0):
    return SkeletonFrame(
        joints={
            int(index): Joint(int(index), (0.0, 0.0, 0.0), q)
            for index, q in orientations.items()
        },
        sequence=sequence,
    )


def random_body_frame(seed=0, sequence=0):
    """Full 25-joint frame with Kinect-style zero orientations on the leaves."""
    rng = np.random.default_rng(seed)
    orientations = {}
    for joint in KinectJoint:
        if joint in LEAF_JOINTS:
            orientations[joint] = np.zeros(4)
        else:
            orientations[joint] = quat_normalize(rng.normal(size=4))
    return make_frame(orientations, sequence)


class TestRetargetEngine(unittest.TestCase):
    def test_missing_bone_is_fatal(self):
        parents = mixamo_parent_names()
        del parents[HEAD]
        with self.assertRaises(MissingBindingError):
            RetargetEngine(BoneGraph(parents))
        self.assertTrue(issubclass(MissingBindingError, KeyError))

    def test_head_converges_others_untouched(self):
        rest = {HEAD: quat_from_axis_angle((0, 0, 1), np.pi / 2)}
        rig = build_mixamo_rig(rest_orientations=rest)
        before = {b: rig.get_local_orientation(b) for b in rig.bone_ids()}
        engine = RetargetEngine(rig)

        frame = make_frame({KinectJoint.HEAD: quat_identity()})
        for sequence in range(40):
            frame.sequence = sequence
            engine.tick(frame)

        self.assertLess(quat_angle(rig.get_local_orientation(HEAD), quat_identity()), 1e-5)
        for bone_id, local in before.items():
            if bone_id != HEAD:
                np.testing.assert_allclose(rig.get_local_orientation(bone_id), local)

    def test_full_blend_matches_candidates(self):
        rig = build_mixamo_rig()
        engine = RetargetEngine(rig, settings=RetargetSettings(blend_factor=1.0))
        frame = random_body_frame(seed=3)
        report = engine.tick(frame)

        self.assertEqual(sorted(report.updated), sorted(engine.bindings.bone_ids))
        for binding in engine.bindings:
            joint = frame.get(binding.joint_index)
            if not np.any(joint.orientation):
                joint = frame.get(binding.fallback_joint_index)
            expected = quat_normalize(joint.orientation)
            world = rig.get_world_orientation(binding.bone_id)
            self.assertLess(quat_angle(world, expected), 1e-5, binding.bone_id)

    def test_hierarchy_consistent_and_unit(self):
        rig = build_mixamo_rig()
        engine = RetargetEngine(rig)
        for sequence in range(5):
            engine.tick(random_body_frame(seed=sequence, sequence=sequence))

        for bone_id in rig.bone_ids():
            local = rig.get_local_orientation(bone_id)
            world = rig.get_world_orientation(bone_id)
            self.assertAlmostEqual(np.linalg.norm(local), 1.0, places=9)
            self.assertAlmostEqual(np.linalg.norm(world), 1.0, places=9)
            parent_id = rig.get_parent(bone_id)
            if parent_id is not None:
                composed = quat_multiply(rig.get_world_orientation(parent_id), local)
                self.assertLess(quat_angle(composed, world), 1e-5)

        for bone_id in engine.bindings.bone_ids:
            state = engine.state(bone_id)
            self.assertAlmostEqual(np.linalg.norm(state.last_world), 1.0, places=9)

    def test_flip_damped(self):
        rig = build_mixamo_rig()
        engine = RetargetEngine(rig, settings=RetargetSettings(blend_factor=1.0))
        engine.tick(make_frame({KinectJoint.HEAD: quat_identity()}, sequence=0))
        flipped = quat_from_axis_angle((0, 1, 0), np.radians(170))
        report = engine.tick(make_frame({KinectJoint.HEAD: flipped}, sequence=1))

        self.assertEqual(report.damped, [HEAD])
        world = engine.state(HEAD).last_world
        self.assertAlmostEqual(np.degrees(quat_angle(quat_identity(), world)), 85.0, places=4)
        self.assertEqual(engine.stats["flips_damped"], 1)

    def test_negated_frame_not_a_flip(self):
        rig = build_mixamo_rig()
        engine = RetargetEngine(rig)
        q = quat_from_axis_angle((0, 1, 0), 0.6)
        engine.tick(make_frame({KinectJoint.HEAD: q}))
        report = engine.tick(make_frame({KinectJoint.HEAD: -q}, sequence=1))
        self.assertEqual(report.damped, [])

    def test_no_frame_holds_pose(self):
        rig = build_mixamo_rig()
        engine = RetargetEngine(rig)
        engine.tick(random_body_frame())
        before = {b: rig.get_local_orientation(b) for b in rig.bone_ids()}

        report = engine.tick()
        self.assertFalse(report.had_frame)
        self.assertEqual(report.updated, [])
        for bone_id, local in before.items():
            np.testing.assert_allclose(rig.get_local_orientation(bone_id), local)

    def test_submit_latest_frame_wins(self):
        rig = build_mixamo_rig()
        engine = RetargetEngine(rig)
        engine.submit(random_body_frame(seed=1, sequence=1))
        engine.submit(random_body_frame(seed=2, sequence=2))
        report = engine.tick()
        self.assertEqual(report.sequence, 2)
        self.assertEqual(engine.stats["frames_dropped"], 1)
        self.assertFalse(engine.tick().had_frame)

    def test_unresolved_bones_skipped(self):
        rig = build_mixamo_rig()
        engine = RetargetEngine(rig)
        frame = make_frame({
            KinectJoint.HEAD: quat_identity(),
            KinectJoint.NECK: [np.nan, 0.0, 0.0, 1.0],
        })
        report = engine.tick(frame)
        self.assertEqual(report.updated, [HEAD])
        self.assertIn(mixamo_bone_name(MixamoBone.NECK), report.skipped)
        self.assertIsNone(engine.state(mixamo_bone_name(MixamoBone.NECK)))

    def test_absent_primary_joint_holds_pose(self):
        rig = build_mixamo_rig()
        engine = RetargetEngine(rig)
        hand = mixamo_bone_name(MixamoBone.LEFT_HAND)
        before = rig.get_local_orientation(hand)

        frame = make_frame({KinectJoint.WRIST_LEFT: quat_from_axis_angle((0, 1, 0), 0.5)})
        report = engine.tick(frame)

        self.assertIn(hand, report.skipped)
        self.assertNotIn(hand, report.updated)
        self.assertIn(mixamo_bone_name(MixamoBone.LEFT_FOREARM), report.updated)
        self.assertIsNone(engine.state(hand))
        np.testing.assert_allclose(rig.get_local_orientation(hand), before)

    def test_override_applied_after_smoothing(self):
        rig = build_mixamo_rig()
        engine = RetargetEngine(rig)
        pose = quat_from_axis_angle((0, 0, 1), np.pi / 2)
        engine.set_override(LEFT_ARM, pose)

        report = engine.tick(random_body_frame())
        self.assertIn(LEFT_ARM, report.overridden)
        self.assertLess(quat_angle(rig.get_local_orientation(LEFT_ARM), pose), 1e-6)
        retargeted = engine.state(LEFT_ARM).last_local
        self.assertGreater(quat_angle(retargeted, pose), 1e-3)

        engine.clear_override(LEFT_ARM)
        report = engine.tick()
        self.assertEqual(report.overridden, [])

    def test_override_applied_without_frame(self):
        rig = build_mixamo_rig()
        engine = RetargetEngine(rig)
        pose = quat_from_axis_angle((1, 0, 0), 0.3)
        engine.set_override(HEAD, pose)
        report = engine.tick()
        self.assertEqual(report.overridden, [HEAD])
        self.assertLess(quat_angle(rig.get_local_orientation(HEAD), pose), 1e-6)

    def test_reset_forgets_priors(self):
        rig = build_mixamo_rig()
        engine = RetargetEngine(rig)
        engine.tick(make_frame({KinectJoint.HEAD: quat_identity()}))
        self.assertIsNotNone(engine.state(HEAD))
        engine.reset()
        self.assertIsNone(engine.state(HEAD))

    def test_state_is_a_copy(self):
        rig = build_mixamo_rig()
        engine = RetargetEngine(rig)
        engine.tick(make_frame({KinectJoint.HEAD: quat_identity()}))
        engine.state(HEAD).last_world[:] = 0.0
        np.testing.assert_allclose(engine.state(HEAD).last_world, quat_identity())

    def test_tick_not_reentrant(self):
        class ReentrantRig(BoneGraph):
            engine = None

            def set_local_orientation(self, bone_id, orientation):
                super().set_local_orientation(bone_id, orientation)
                self.engine.tick()

        rig = ReentrantRig(mixamo_parent_names())
        engine = RetargetEngine(rig)
        rig.engine = engine
        with self.assertRaises(RuntimeError):
            engine.tick(make_frame({KinectJoint.HEAD: quat_identity()}))
        # Guard released after the failed tick
        rig.engine = None
        report = engine.tick()
        self.assertFalse(report.had_frame)

    def test_default_bindings_cover_mapping(self):
        engine = RetargetEngine(build_mixamo_rig())
        expected = {mixamo_bone_name(bone) for bone in KINECT_TO_MIXAMO.values()}
        self.assertEqual(set(engine.bindings.bone_ids), expected)


if __name__ == "__main__":
    unittest.main()
