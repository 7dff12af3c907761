"""
Thumb opposition (Kapandji) checkpoint detection.

Each of the ten Kapandji levels is an anatomical target on the hand.
A level is reached in a frame when the thumb tip is within the contact
threshold of that target. Levels are ordinal; the frame reports the
highest one touched.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

import numpy as np
from scipy.spatial.distance import cdist

from handrom.core.config import settings

from .data_types import HandLandmarkIndex as H
from .data_types import LandmarkFrame
from .geometry import midpoint

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class KapandjiTarget:
    level: int
    name: str
    landmarks: Tuple[int, ...]


KAPANDJI_TARGETS: Tuple[KapandjiTarget, ...] = (
    KapandjiTarget(1, 'Index Proximal Phalanx', (H.INDEX_PIP,)),
    KapandjiTarget(2, 'Index Middle Phalanx', (H.INDEX_DIP,)),
    KapandjiTarget(3, 'Index Finger Tip', (H.INDEX_TIP,)),
    KapandjiTarget(4, 'Middle Finger Tip', (H.MIDDLE_TIP,)),
    KapandjiTarget(5, 'Ring Finger Tip', (H.RING_TIP,)),
    KapandjiTarget(6, 'Little Finger Tip', (H.PINKY_TIP,)),
    KapandjiTarget(7, 'Little DIP Joint Crease', (H.PINKY_DIP,)),
    KapandjiTarget(8, 'Little PIP Joint Crease', (H.PINKY_PIP,)),
    KapandjiTarget(9, 'Little MCP Joint Crease', (H.PINKY_MCP,)),
    KapandjiTarget(10, 'Distal Palmar Crease', (H.WRIST, H.MIDDLE_MCP, H.RING_MCP, H.PINKY_MCP)),
)

KAPANDJI_LEVEL_NAMES: Dict[int, str] = {t.level: t.name for t in KAPANDJI_TARGETS}


def target_positions(frame: LandmarkFrame) -> np.ndarray:
    """Positions of the ten targets, shape (10, 3), ordered by level."""
    return np.array([
        midpoint(frame.hand_point(i) for i in target.landmarks)
        for target in KAPANDJI_TARGETS
    ])


def _threshold_vector(thresholds: Optional[Dict[int, float]]) -> np.ndarray:
    default = settings.KAPANDJI_CONTACT_THRESHOLD
    overrides = thresholds or {}
    return np.array([overrides.get(t.level, default) for t in KAPANDJI_TARGETS])


def reached_levels(frame: LandmarkFrame, thresholds: Optional[Dict[int, float]] = None) -> List[int]:
    """
    All levels whose target the thumb tip touches in this frame.

    Args:
        frame: Landmark frame with a full hand
        thresholds: Optional per-level contact distance overrides

    Returns:
        Sorted list of levels (empty when no hand or no contact)
    """
    if not frame.has_hand():
        return []

    thumb_tip = frame.hand_point(H.THUMB_TIP).to_array()
    distances = cdist(thumb_tip[np.newaxis, :], target_positions(frame))[0]
    contact = distances <= _threshold_vector(thresholds)

    return [t.level for t, hit in zip(KAPANDJI_TARGETS, contact) if hit]


def detect_checkpoint(frame: LandmarkFrame, thresholds: Optional[Dict[int, float]] = None) -> int:
    """Highest Kapandji level touched in this frame, 0 for none."""
    levels = reached_levels(frame, thresholds)
    if levels:
        logger.debug(f"Thumb contact at t={frame.timestamp:.3f}: levels {levels}")
    return max(levels, default=0)
