import logging
from typing import Dict, Optional, Sequence, Tuple

import numpy as np
import pytest

from handrom.assessment.core.data_types import LandmarkFrame, Point3D
from handrom.assessment.core.tracker import TrackerConfig
from handrom.helpers.enums import Finger, Handedness

WRIST = np.array([0.5, 0.5, 0.0])
SEGMENT = 0.07

# MCP root offsets from the wrist; the index sits on +x.
MCP_OFFSETS = {
    Finger.INDEX: (0.06, 0.3),
    Finger.MIDDLE: (0.0, 0.3),
    Finger.RING: (-0.06, 0.3),
    Finger.PINKY: (-0.11, 0.3),
}
FINGER_BASE_INDEX = {Finger.INDEX: 5, Finger.MIDDLE: 9, Finger.RING: 13, Finger.PINKY: 17}


def rotate(v: np.ndarray, axis: np.ndarray, degrees: float) -> np.ndarray:
    theta = np.radians(degrees)
    axis = axis / np.linalg.norm(axis)
    return (v * np.cos(theta)
            + np.cross(axis, v) * np.sin(theta)
            + axis * np.dot(axis, v) * (1 - np.cos(theta)))


def _chain(base: np.ndarray, direction: np.ndarray, flexion: Sequence[float]) -> list:
    """Three segments from base; each joint bends by its flexion toward -z."""
    d = direction / np.linalg.norm(direction)
    axis = np.cross(d, np.array([0.0, 0.0, 1.0]))
    points = []
    current = base
    for angle in flexion:
        d = rotate(d, axis, angle)
        current = current + SEGMENT * d
        points.append(current)
    return points


def hand_points(
    flexion: Optional[Dict[Finger, Tuple[float, float, float]]] = None,
    rotation: float = 0.0,
) -> list:
    """
    21 hand landmarks.

    Args:
        flexion: Per-finger (MCP, PIP, DIP) flexion; thumb uses (MCP, IP, 0).
        rotation: In-plane rotation of the whole hand about the wrist, degrees.
    """
    flexion = flexion or {}
    points = [None] * 21
    points[0] = WRIST.copy()

    for finger, base_index in FINGER_BASE_INDEX.items():
        dx, dy = MCP_OFFSETS[finger]
        mcp = WRIST + np.array([dx, dy, 0.0])
        points[base_index] = mcp
        chain = _chain(mcp, mcp - WRIST, flexion.get(finger, (0.0, 0.0, 0.0)))
        for offset, p in enumerate(chain, start=1):
            points[base_index + offset] = p

    cmc = WRIST + np.array([0.08, 0.05, 0.0])
    points[1] = cmc
    thumb_mcp, thumb_ip = flexion.get(Finger.THUMB, (0.0, 0.0, 0.0))[:2]
    d = np.array([0.06, 0.07, 0.0])
    points[2] = cmc + d
    axis = np.cross(d / np.linalg.norm(d), np.array([0.0, 0.0, 1.0]))
    d2 = rotate(d, axis, thumb_mcp)
    points[3] = points[2] + d2
    d3 = rotate(d2, axis, thumb_ip)
    points[4] = points[3] + d3

    if rotation:
        z = np.array([0.0, 0.0, 1.0])
        points = [WRIST + rotate(p - WRIST, z, rotation) for p in points]
    return points


def pose_points(elbow_visibility: float = 0.95, side: Handedness = Handedness.RIGHT) -> list:
    """33 pose landmarks with the elbow straight below the hand wrist."""
    points = [Point3D(0.0, 0.0, 0.0, visibility=0.9) for _ in range(33)]
    elbow_index = 14 if side is Handedness.RIGHT else 13
    shoulder_index = 12 if side is Handedness.RIGHT else 11
    points[elbow_index] = Point3D(0.5, 0.2, 0.0, visibility=elbow_visibility)
    points[shoulder_index] = Point3D(0.5, -0.1, 0.0, visibility=0.95)
    return points


def make_frame(
    timestamp: float = 0.0,
    flexion: Optional[Dict[Finger, Tuple[float, float, float]]] = None,
    rotation: float = 0.0,
    handedness: Handedness = Handedness.RIGHT,
    confidence: float = 0.95,
    with_hand: bool = True,
    with_pose: bool = True,
    elbow_visibility: float = 0.95,
    overrides: Optional[Dict[int, Sequence[float]]] = None,
) -> LandmarkFrame:
    hand = []
    if with_hand:
        pts = hand_points(flexion, rotation)
        for index, value in (overrides or {}).items():
            pts[index] = np.asarray(value, dtype=float)
        hand = tuple(Point3D(float(p[0]), float(p[1]), float(p[2])) for p in pts)
    pose = tuple(pose_points(elbow_visibility, handedness)) if with_pose else ()
    return LandmarkFrame(
        timestamp=timestamp,
        hand_landmarks=tuple(hand),
        pose_landmarks=pose,
        handedness=handedness,
        confidence=confidence,
    )


@pytest.fixture(autouse=True)
def propagate_package_logs(monkeypatch):
    """logging.ini detaches the package logger from root; caplog listens on root."""
    monkeypatch.setattr(logging.getLogger("handrom"), "propagate", True)


@pytest.fixture
def short_config():
    """One second at 10 fps: 10 expected frames."""
    return TrackerConfig(
        session_duration=1.0,
        target_fps=10,
        min_confidence=0.7,
        capture_rate_threshold=0.8,
        default_handedness=Handedness.LEFT,
    )


class FakeTimer:
    def __init__(self, interval, callback):
        self.interval = interval
        self.callback = callback
        self.started = False
        self.cancelled = False

    def start(self):
        self.started = True

    def cancel(self):
        self.cancelled = True

    def fire(self):
        if not self.cancelled:
            self.callback()


class FakeClock:
    def __init__(self, now: float = 100.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def fake_timers():
    timers = []

    def factory(interval, callback):
        timer = FakeTimer(interval, callback)
        timers.append(timer)
        return timer

    factory.timers = timers
    return factory


@pytest.fixture
def fake_clock():
    return FakeClock()
