"""
Core Module for HANDROM Assessment.

Contains geometry, per-frame angle calculators and the session state machine.
"""

from .data_types import (
    Point3D, LandmarkFrame, JointAngles, WristAngles, DeviationAngles,
    FrameMeasurement, HandLandmarkIndex, PoseLandmarkIndex, FINGER_JOINT_TRIPLETS
)
from .geometry import (
    subtract, dot, cross, magnitude, normalize, angle_between, joint_angle,
    project_onto_plane, distance, midpoint
)
from .kinematics import calculate_finger_angles, calculate_all_fingers
from .wrist import calculate_wrist_flexion, calculate_wrist_deviation
from .opposition import KAPANDJI_TARGETS, detect_checkpoint, reached_levels
from .tracker import (
    SessionPhase, SessionState, SessionResult, SessionTracker, TrackerConfig, GapFillPolicy,
    start_countdown, begin_recording, advance, stop, finalize
)

__all__ = [
    # Data types
    'Point3D', 'LandmarkFrame', 'JointAngles', 'WristAngles', 'DeviationAngles',
    'FrameMeasurement', 'HandLandmarkIndex', 'PoseLandmarkIndex', 'FINGER_JOINT_TRIPLETS',

    # Geometry
    'subtract', 'dot', 'cross', 'magnitude', 'normalize', 'angle_between', 'joint_angle',
    'project_onto_plane', 'distance', 'midpoint',

    # Calculators
    'calculate_finger_angles', 'calculate_all_fingers',
    'calculate_wrist_flexion', 'calculate_wrist_deviation',
    'KAPANDJI_TARGETS', 'detect_checkpoint', 'reached_levels',

    # Tracker
    'SessionPhase', 'SessionState', 'SessionResult', 'SessionTracker', 'TrackerConfig', 'GapFillPolicy',
    'start_countdown', 'begin_recording', 'advance', 'stop', 'finalize',
]
