"""
Wrist/Forearm Module for HANDROM.

Fuses pose landmarks (elbow) with hand landmarks (wrist, MCP roots) to
measure wrist flexion/extension and radial/ulnar deviation against the
forearm axis.

Sign conventions:
    - Flexion/extension: z of forearm x hand, mirrored for the left side.
      Positive is flexion.
    - Deviation: the hand is projected onto the plane spanned by the
      forearm axis and the radio-ulnar axis (pinky MCP -> index MCP).
      Positive alignment with that axis is radial.

Author: HANDROM Team
Version: 1.0.0
"""

import logging
from typing import Optional, Tuple

from handrom.core.config import settings
from handrom.helpers.enums import Handedness

from .data_types import (
    DeviationAngles, HandLandmarkIndex, LandmarkFrame, PoseLandmarkIndex, WristAngles
)
from .geometry import EPSILON, angle_between, cross, dot, magnitude, normalize, project_onto_plane, subtract

logger = logging.getLogger(__name__)


def resolve_side(handedness: Optional[Handedness]) -> Handedness:
    """Map UNKNOWN/None onto the configured default side."""
    if handedness in (Handedness.LEFT, Handedness.RIGHT):
        return handedness
    return Handedness(settings.DEFAULT_HANDEDNESS)


def split_signed(value: float, neutral_zone: float) -> Tuple[float, float]:
    """
    Split a signed angle into a (positive, negative) magnitude pair.

    Values inside the neutral zone collapse to (0, 0).
    """
    if abs(value) < neutral_zone:
        return 0.0, 0.0
    if value > 0:
        return value, 0.0
    return 0.0, -value


def _forearm_and_hand(frame: LandmarkFrame, side: Handedness, min_visibility: float):
    if not frame.has_hand():
        return None

    _, elbow_index, _ = PoseLandmarkIndex.ARM[side]
    elbow = frame.pose_point(elbow_index, min_visibility)
    if elbow is None:
        logger.debug(f"Elbow {elbow_index} missing or not visible at t={frame.timestamp:.3f}")
        return None

    hand_wrist = frame.hand_point(HandLandmarkIndex.WRIST)
    middle_mcp = frame.hand_point(HandLandmarkIndex.MIDDLE_MCP)

    forearm = subtract(hand_wrist, elbow)
    hand = subtract(middle_mcp, hand_wrist)
    return forearm, hand


def calculate_wrist_flexion(
    frame: LandmarkFrame,
    handedness: Optional[Handedness] = None,
    neutral_zone: Optional[float] = None,
    min_visibility: Optional[float] = None,
) -> Optional[WristAngles]:
    """
    Wrist flexion/extension for one frame.

    Args:
        frame: Frame with hand and pose landmarks
        handedness: Side to measure, defaults to the frame's own handedness
        neutral_zone: Dead band in degrees
        min_visibility: Pose visibility floor

    Returns:
        WristAngles, or None when pose data cannot be used
    """
    neutral_zone = settings.NEUTRAL_ZONE_DEGREES if neutral_zone is None else neutral_zone
    min_visibility = settings.MIN_POSE_VISIBILITY if min_visibility is None else min_visibility
    side = resolve_side(handedness or frame.handedness)

    vectors = _forearm_and_hand(frame, side, min_visibility)
    if vectors is None:
        return None
    forearm, hand = vectors

    angle = angle_between(forearm, hand)
    signed = angle if cross(forearm, hand)[2] >= 0 else -angle
    if side is Handedness.LEFT:
        signed = -signed

    flexion, extension = split_signed(signed, neutral_zone)
    return WristAngles(flexion_angle=flexion, extension_angle=extension)


def calculate_wrist_deviation(
    frame: LandmarkFrame,
    handedness: Optional[Handedness] = None,
    neutral_zone: Optional[float] = None,
    min_visibility: Optional[float] = None,
) -> Optional[DeviationAngles]:
    """
    Radial/ulnar deviation for one frame.

    Returns None when pose data cannot be used.
    """
    neutral_zone = settings.NEUTRAL_ZONE_DEGREES if neutral_zone is None else neutral_zone
    min_visibility = settings.MIN_POSE_VISIBILITY if min_visibility is None else min_visibility
    side = resolve_side(handedness or frame.handedness)

    vectors = _forearm_and_hand(frame, side, min_visibility)
    if vectors is None:
        return None
    forearm, hand = vectors

    axis = normalize(forearm)
    radial_axis = subtract(
        frame.hand_point(HandLandmarkIndex.INDEX_MCP),
        frame.hand_point(HandLandmarkIndex.PINKY_MCP),
    )
    radial_perp = project_onto_plane(radial_axis, axis)
    if magnitude(axis) < EPSILON or magnitude(radial_perp) < EPSILON:
        logger.debug(f"Degenerate forearm/radial axis at t={frame.timestamp:.3f}")
        return DeviationAngles()

    radial_unit = normalize(radial_perp)
    in_plane = dot(hand, axis) * axis + dot(hand, radial_unit) * radial_unit

    angle = angle_between(axis, in_plane)
    direction = dot(cross(axis, hand), cross(axis, radial_axis))
    signed = angle if direction >= 0 else -angle

    radial, ulnar = split_signed(signed, neutral_zone)
    return DeviationAngles(radial_deviation=radial, ulnar_deviation=ulnar)
