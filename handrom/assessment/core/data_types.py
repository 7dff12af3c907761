"""
Data Types Module for HANDROM.

Fixed-shape records passed between the calculators, the session
tracker and the scorers. Every record here is immutable; a new one is
built for each frame or transition.

Author: HANDROM Team
Version: 1.0.0
"""

from dataclasses import dataclass, field, replace
from typing import Dict, Mapping, Optional, Tuple

import numpy as np

from handrom.helpers.enums import Finger, Handedness

LANDMARK_SCHEMA_VERSION = 1
HAND_LANDMARK_COUNT = 21


@dataclass(frozen=True)
class Point3D:
    """
    A single tracker landmark.

    Attributes:
        x: X coordinate (normalized 0-1 image space).
        y: Y coordinate (normalized 0-1 image space).
        z: Depth relative to the wrist (hand) or hips (pose).
        visibility: Tracker visibility score (0-1), None for hand landmarks.
    """
    x: float
    y: float
    z: float
    visibility: Optional[float] = None

    def to_array(self) -> np.ndarray:
        """Convert to numpy array [x, y, z]."""
        return np.array([self.x, self.y, self.z], dtype=np.float64)


@dataclass(frozen=True)
class LandmarkFrame:
    """
    One tracker sample.

    Attributes:
        timestamp: Seconds since recording start.
        hand_landmarks: 21 hand points, tracker index order.
        pose_landmarks: Pose points with visibility, tracker index order.
        handedness: Side reported by the tracker for this frame.
        confidence: Hand detection confidence (0-1).
        schema_version: Layout version of this record.
    """
    timestamp: float
    hand_landmarks: Tuple[Point3D, ...] = ()
    pose_landmarks: Tuple[Point3D, ...] = ()
    handedness: Handedness = Handedness.UNKNOWN
    confidence: float = 0.0
    schema_version: int = LANDMARK_SCHEMA_VERSION

    def has_hand(self) -> bool:
        return len(self.hand_landmarks) == HAND_LANDMARK_COUNT

    def hand_point(self, index: int) -> Optional[Point3D]:
        if index >= len(self.hand_landmarks):
            return None
        return self.hand_landmarks[index]

    def pose_point(self, index: int, min_visibility: float = 0.0) -> Optional[Point3D]:
        """
        Get a pose landmark if it is present and visible enough.

        Args:
            index: Pose landmark index.
            min_visibility: Visibility floor; points without a score pass.

        Returns:
            The point, or None when missing or below the floor.
        """
        if index >= len(self.pose_landmarks):
            return None
        point = self.pose_landmarks[index]
        if point.visibility is not None and point.visibility < min_visibility:
            return None
        return point


@dataclass(frozen=True)
class JointAngles:
    """Flexion angles of one finger in degrees. All zero means no data."""
    mcp_angle: float = 0.0
    pip_angle: float = 0.0
    dip_angle: float = 0.0
    total_active_rom: float = 0.0

    def is_empty(self) -> bool:
        return not (self.mcp_angle or self.pip_angle or self.dip_angle)

    def maximum(self, other: 'JointAngles') -> 'JointAngles':
        return JointAngles(
            mcp_angle=max(self.mcp_angle, other.mcp_angle),
            pip_angle=max(self.pip_angle, other.pip_angle),
            dip_angle=max(self.dip_angle, other.dip_angle),
            total_active_rom=max(self.total_active_rom, other.total_active_rom),
        )


@dataclass(frozen=True)
class WristAngles:
    flexion_angle: float = 0.0
    extension_angle: float = 0.0

    def maximum(self, other: 'WristAngles') -> 'WristAngles':
        return WristAngles(
            flexion_angle=max(self.flexion_angle, other.flexion_angle),
            extension_angle=max(self.extension_angle, other.extension_angle),
        )


@dataclass(frozen=True)
class DeviationAngles:
    radial_deviation: float = 0.0
    ulnar_deviation: float = 0.0

    def maximum(self, other: 'DeviationAngles') -> 'DeviationAngles':
        return DeviationAngles(
            radial_deviation=max(self.radial_deviation, other.radial_deviation),
            ulnar_deviation=max(self.ulnar_deviation, other.ulnar_deviation),
        )


@dataclass(frozen=True)
class FrameMeasurement:
    """
    Everything derived from a single frame.

    Attributes:
        timestamp: Timestamp of the frame this measurement is attached to.
        fingers: Joint angles per finger measured in this frame.
        wrist: Wrist flexion/extension, None when pose data was unusable.
        deviation: Radial/ulnar deviation, None when pose data was unusable.
        kapandji_checkpoint: Highest opposition target touched (0 = none).
        interpolated: True when replayed from an earlier good frame.
        source_timestamp: Timestamp of the good frame that was replayed.
    """
    timestamp: float
    fingers: Mapping[Finger, JointAngles] = field(default_factory=dict)
    wrist: Optional[WristAngles] = None
    deviation: Optional[DeviationAngles] = None
    kapandji_checkpoint: int = 0
    interpolated: bool = False
    source_timestamp: Optional[float] = None

    def replay(self, timestamp: float) -> 'FrameMeasurement':
        """Reuse these angles for a later, unusable frame."""
        source = self.source_timestamp if self.interpolated else self.timestamp
        return replace(self, timestamp=timestamp, interpolated=True, source_timestamp=source)


class HandLandmarkIndex:
    """
    Hand landmark indices of the 21-point tracker model.
    """
    WRIST = 0
    THUMB_CMC = 1
    THUMB_MCP = 2
    THUMB_IP = 3
    THUMB_TIP = 4
    INDEX_MCP = 5
    INDEX_PIP = 6
    INDEX_DIP = 7
    INDEX_TIP = 8
    MIDDLE_MCP = 9
    MIDDLE_PIP = 10
    MIDDLE_DIP = 11
    MIDDLE_TIP = 12
    RING_MCP = 13
    RING_PIP = 14
    RING_DIP = 15
    RING_TIP = 16
    PINKY_MCP = 17
    PINKY_PIP = 18
    PINKY_DIP = 19
    PINKY_TIP = 20


class PoseLandmarkIndex:
    """
    Upper body indices of the 33-point pose model used for wrist angles.
    """
    LEFT_SHOULDER = 11
    RIGHT_SHOULDER = 12
    LEFT_ELBOW = 13
    RIGHT_ELBOW = 14
    LEFT_WRIST = 15
    RIGHT_WRIST = 16

    # (shoulder, elbow, wrist) per side
    ARM = {
        Handedness.LEFT: (LEFT_SHOULDER, LEFT_ELBOW, LEFT_WRIST),
        Handedness.RIGHT: (RIGHT_SHOULDER, RIGHT_ELBOW, RIGHT_WRIST),
    }


# Landmark triplets (proximal, joint, distal) per finger joint.
FINGER_JOINT_TRIPLETS: Dict[Finger, Dict[str, Tuple[int, int, int]]] = {
    Finger.THUMB: {
        'MCP': (1, 2, 3),
        'IP': (2, 3, 4),
    },
    Finger.INDEX: {
        'MCP': (0, 5, 6),
        'PIP': (5, 6, 7),
        'DIP': (6, 7, 8),
    },
    Finger.MIDDLE: {
        'MCP': (0, 9, 10),
        'PIP': (9, 10, 11),
        'DIP': (10, 11, 12),
    },
    Finger.RING: {
        'MCP': (0, 13, 14),
        'PIP': (13, 14, 15),
        'DIP': (14, 15, 16),
    },
    Finger.PINKY: {
        'MCP': (0, 17, 18),
        'PIP': (17, 18, 19),
        'DIP': (18, 19, 20),
    },
}
