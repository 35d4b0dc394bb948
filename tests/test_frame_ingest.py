import sys
import os
import threading
import unittest
import numpy as np

script_dir = os.path.dirname(os.path.abspath(__file__))
project_root = os.path.dirname(script_dir)
sys.path.insert(0, project_root)

from avatar_retarget.core.kinect_skeleton import Joint, KinectJoint, SkeletonFrame, TrackingState
from avatar_retarget.motion.frame_ingest import (
    FrameIngest,
    decode_kinect_body_frame,
    extract_floor_clip_plane,
)


def kinect_joint(x=0.0, y=0.0, z=0.0, w=1.0, state=2):
    return {
        "orientationX": x, "orientationY": y, "orientationZ": z, "orientationW": w,
        "cameraX": 0.1, "cameraY": 0.2, "cameraZ": 2.0,
        "trackingState": state,
    }


class TestFrameIngest(unittest.TestCase):
    def test_empty(self):
        ingest = FrameIngest()
        self.assertFalse(ingest.has_frame)
        self.assertIsNone(ingest.take())

    def test_latest_value_wins(self):
        ingest = FrameIngest()
        for sequence in range(3):
            ingest.push(SkeletonFrame(sequence=sequence))
        self.assertEqual(ingest.peek().sequence, 2)
        self.assertEqual(ingest.take().sequence, 2)
        self.assertIsNone(ingest.take())
        self.assertEqual(ingest.received_count, 3)
        self.assertEqual(ingest.dropped_count, 2)
        self.assertEqual(ingest.consumed_count, 1)

    def test_consumed_frame_not_counted_as_dropped(self):
        ingest = FrameIngest()
        ingest.push(SkeletonFrame(sequence=0))
        ingest.take()
        ingest.push(SkeletonFrame(sequence=1))
        self.assertEqual(ingest.dropped_count, 0)

    def test_concurrent_push(self):
        ingest = FrameIngest()

        def producer(offset):
            for i in range(200):
                ingest.push(SkeletonFrame(sequence=offset + i))

        threads = [threading.Thread(target=producer, args=(n * 1000,)) for n in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        self.assertEqual(ingest.received_count, 800)
        self.assertEqual(ingest.dropped_count, 799)
        self.assertIsNotNone(ingest.take())

    def test_reset(self):
        ingest = FrameIngest()
        ingest.push(SkeletonFrame())
        ingest.reset()
        self.assertFalse(ingest.has_frame)
        self.assertEqual(ingest.received_count, 0)


class TestDecodeKinectBodyFrame(unittest.TestCase):
    def test_replay_event(self):
        payload = {
            "data": {
                "bodies": [
                    {"tracked": False},
                    {"tracked": True, "joints": [kinect_joint(0.0, 0.0, 0.0, 1.0), None]},
                ]
            }
        }
        frame = decode_kinect_body_frame(payload, sequence=7, timestamp=1.5)
        self.assertEqual(frame.sequence, 7)
        self.assertEqual(frame.timestamp, 1.5)
        self.assertEqual(len(frame), 1)
        joint = frame.get(KinectJoint.SPINE_BASE)
        np.testing.assert_allclose(joint.orientation, [1.0, 0.0, 0.0, 0.0])
        np.testing.assert_allclose(joint.position, [0.1, 0.2, 2.0])
        self.assertEqual(joint.tracking_state, TrackingState.TRACKED)

    def test_xyzw_to_wxyz(self):
        frame = decode_kinect_body_frame([kinect_joint(0.1, 0.2, 0.3, 0.9)])
        np.testing.assert_allclose(frame.get(0).orientation, [0.9, 0.1, 0.2, 0.3])

    def test_zero_orientation_kept(self):
        frame = decode_kinect_body_frame({"bodies": [
            {"tracked": True, "joints": [kinect_joint(0, 0, 0, 0)]},
        ]})
        np.testing.assert_allclose(frame.get(0).orientation, np.zeros(4))

    def test_invalid_tracking_state(self):
        frame = decode_kinect_body_frame([kinect_joint(state=9)])
        self.assertEqual(frame.get(0).tracking_state, TrackingState.NOT_TRACKED)

    def test_malformed_joint_skipped(self):
        bad = kinect_joint()
        bad["orientationW"] = "not a number"
        frame = decode_kinect_body_frame([kinect_joint(), bad])
        self.assertIn(0, frame)
        self.assertNotIn(1, frame)

    def test_no_tracked_body(self):
        self.assertIsNone(decode_kinect_body_frame({"bodies": [{"tracked": False}]}))
        self.assertIsNone(decode_kinect_body_frame({"bodies": []}))
        self.assertIsNone(decode_kinect_body_frame("nonsense"))

    def test_floor_clip_plane(self):
        self.assertEqual(
            extract_floor_clip_plane({"data": {"floorClipPlane": {"x": 0, "y": 1, "z": 0.1, "w": 0.8}}}),
            (0.0, 1.0, 0.1, 0.8),
        )
        self.assertEqual(extract_floor_clip_plane({"floorClipPlane": [0, 1, 0, 1]}), (0.0, 1.0, 0.0, 1.0))
        self.assertIsNone(extract_floor_clip_plane({"bodies": []}))


class TestSkeletonFrame(unittest.TestCase):
    def test_to_dict(self):
        frame = SkeletonFrame(
            joints={3: Joint(3, (0, 1, 2), (1, 0, 0, 0), TrackingState.INFERRED)},
            sequence=4,
        )
        data = frame.to_dict()
        self.assertEqual(data["sequence"], 4)
        self.assertEqual(data["joints"][3]["tracking_state"], 1)
        self.assertEqual(data["joints"][3]["orientation"], [1.0, 0.0, 0.0, 0.0])


if __name__ == "__main__":
    unittest.main()
