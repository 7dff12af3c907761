"""
Kinematics Module for HANDROM.

Finger joint flexion and total active motion from a single hand frame.
"""

import logging
from typing import Dict, Iterable, Optional, Tuple

from handrom.core.config import ANATOMICAL_JOINT_LIMITS
from handrom.helpers.enums import Finger

from .data_types import FINGER_JOINT_TRIPLETS, JointAngles, LandmarkFrame
from .geometry import joint_angle

logger = logging.getLogger(__name__)

LONG_FINGERS = (Finger.INDEX, Finger.MIDDLE, Finger.RING, Finger.PINKY)


def calculate_flexion(frame: LandmarkFrame, triplet: Tuple[int, int, int], limit: Optional[float] = None) -> float:
    """
    Flexion at the middle landmark of a triplet.

    Args:
        frame: Landmark frame with a full hand
        triplet: (proximal, joint, distal) hand landmark indices
        limit: Anatomical ceiling in degrees, None for no ceiling

    Returns:
        Flexion in degrees, 0 for a straight joint
    """
    points = [frame.hand_point(i) for i in triplet]
    if any(p is None for p in points):
        return 0.0

    interior = joint_angle(*points)
    flexion = max(0.0, 180.0 - interior)

    if limit is not None and flexion > limit:
        logger.debug(f"Joint {triplet} flexion {flexion:.1f} clamped to {limit:.1f}")
        flexion = limit
    return flexion


def calculate_finger_angles(frame: LandmarkFrame, finger: Finger) -> JointAngles:
    """
    MCP/PIP/DIP flexion and TAM for one finger.

    The thumb reports MCP and IP in the mcp/pip slots; its dip slot is 0.
    A frame without a full hand returns all zeros, meaning no data.
    """
    if not frame.has_hand():
        logger.debug(f"No hand landmarks at t={frame.timestamp:.3f}, {finger.value} skipped")
        return JointAngles()

    triplets = FINGER_JOINT_TRIPLETS[finger]
    if finger is Finger.THUMB:
        mcp = calculate_flexion(frame, triplets['MCP'], ANATOMICAL_JOINT_LIMITS['THUMB_MCP'])
        pip = calculate_flexion(frame, triplets['IP'], ANATOMICAL_JOINT_LIMITS['THUMB_IP'])
        dip = 0.0
    else:
        mcp = calculate_flexion(frame, triplets['MCP'], ANATOMICAL_JOINT_LIMITS['MCP'])
        pip = calculate_flexion(frame, triplets['PIP'], ANATOMICAL_JOINT_LIMITS['PIP'])
        dip = calculate_flexion(frame, triplets['DIP'], ANATOMICAL_JOINT_LIMITS['DIP'])

    return JointAngles(
        mcp_angle=mcp,
        pip_angle=pip,
        dip_angle=dip,
        total_active_rom=mcp + pip + dip,
    )


def calculate_all_fingers(frame: LandmarkFrame, fingers: Iterable[Finger] = LONG_FINGERS) -> Dict[Finger, JointAngles]:
    return {finger: calculate_finger_angles(frame, finger) for finger in fingers}
