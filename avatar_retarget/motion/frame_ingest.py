"""
Frame ingest - latest-value-wins hand-off from the frame source to the tick.

The source may push from any thread at any rate. Only the newest complete
frame is kept; a frame replaced before a tick consumed it is dropped, so lag
never accumulates when the source outpaces the render loop.

Also decodes Kinect v2 body-frame JSON into ``SkeletonFrame``.
"""

import threading
import time
from typing import Any, Optional, Sequence, Tuple

from avatar_retarget.core import get_logger
from avatar_retarget.core.kinect_skeleton import Joint, SkeletonFrame, TrackingState
from avatar_retarget.core.quaternion import quat_from_xyzw


class FrameIngest:
    """Single-slot, thread-safe register holding the latest skeleton frame."""

    def __init__(self):
        self.logger = get_logger("motion.ingest")
        self._lock = threading.Lock()
        self._latest: Optional[SkeletonFrame] = None
        self.received_count = 0
        self.dropped_count = 0
        self.consumed_count = 0

    def push(self, frame: SkeletonFrame) -> None:
        """Offer a new frame, replacing any frame not yet consumed."""
        with self._lock:
            if self._latest is not None:
                self.dropped_count += 1
            self._latest = frame
            self.received_count += 1

    def take(self) -> Optional[SkeletonFrame]:
        """
        Return the latest frame and empty the slot.

        Returns:
            The newest frame, or None if nothing arrived since the last take
        """
        with self._lock:
            frame = self._latest
            self._latest = None
            if frame is not None:
                self.consumed_count += 1
            return frame

    def peek(self) -> Optional[SkeletonFrame]:
        with self._lock:
            return self._latest

    @property
    def has_frame(self) -> bool:
        with self._lock:
            return self._latest is not None

    def reset(self) -> None:
        with self._lock:
            self._latest = None
            self.received_count = 0
            self.dropped_count = 0
            self.consumed_count = 0


# =============================================================================
# KINECT JSON DECODING
# =============================================================================

def _body_list(payload: Any) -> Optional[list]:
    """Find the bodies list in the replay event, a body frame, or a bare joint list."""
    if isinstance(payload, list):
        return [{"tracked": True, "joints": payload}]
    if not isinstance(payload, dict):
        return None
    if "data" in payload:
        return _body_list(payload["data"])
    bodies = payload.get("bodies")
    if isinstance(bodies, list):
        return bodies
    if isinstance(payload.get("joints"), list):
        return [payload]
    return None


def _decode_joint(index: int, raw: dict) -> Joint:
    orientation = quat_from_xyzw(
        float(raw.get("orientationX", 0.0)),
        float(raw.get("orientationY", 0.0)),
        float(raw.get("orientationZ", 0.0)),
        float(raw.get("orientationW", 0.0)),
    )
    position = (
        float(raw.get("cameraX", 0.0)),
        float(raw.get("cameraY", 0.0)),
        float(raw.get("cameraZ", 0.0)),
    )
    try:
        state = TrackingState(int(raw.get("trackingState", TrackingState.TRACKED)))
    except ValueError:
        state = TrackingState.NOT_TRACKED
    return Joint(index=index, position=position, orientation=orientation, tracking_state=state)


def decode_kinect_body_frame(
    payload: Any,
    sequence: int = 0,
    timestamp: Optional[float] = None,
) -> Optional[SkeletonFrame]:
    """
    Decode a Kinect v2 body frame into a SkeletonFrame.

    Accepts the replay server's ``file-data`` event (``{"data": {"bodies": ...}}``),
    a raw body frame (``{"bodies": [...]}``), a single body, or a bare list of
    25 joint dicts. The first tracked body is used. Joint entries that are
    null or malformed are left out of the frame.

    Args:
        payload: Parsed JSON
        sequence: Sequence id to stamp on the frame
        timestamp: Frame time, defaults to now

    Returns:
        SkeletonFrame, or None if no tracked body is present
    """
    bodies = _body_list(payload)
    if not bodies:
        return None

    body = next(
        (b for b in bodies if isinstance(b, dict) and b.get("tracked") and b.get("joints")),
        None,
    )
    if body is None:
        return None

    logger = get_logger("motion.ingest")
    joints = {}
    for index, raw in enumerate(body["joints"]):
        if not isinstance(raw, dict):
            continue
        try:
            joints[index] = _decode_joint(index, raw)
        except (TypeError, ValueError) as e:
            logger.debug(f"Skipping malformed joint {index}: {e}")

    return SkeletonFrame(
        joints=joints,
        sequence=sequence,
        timestamp=time.time() if timestamp is None else timestamp,
    )


def extract_floor_clip_plane(payload: Any) -> Optional[Tuple[float, float, float, float]]:
    """Kinect ``floorClipPlane`` (x, y, z, w) from a body frame, if present."""
    if isinstance(payload, dict) and "data" in payload:
        payload = payload["data"]
    if not isinstance(payload, dict):
        return None
    plane = payload.get("floorClipPlane")
    if isinstance(plane, dict):
        try:
            return tuple(float(plane[k]) for k in ("x", "y", "z", "w"))
        except (KeyError, TypeError, ValueError):
            return None
    if isinstance(plane, Sequence) and len(plane) == 4:
        return tuple(float(v) for v in plane)
    return None
