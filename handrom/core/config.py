import os
from typing import Dict, List, Tuple

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings

BASE_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), '../../'))
load_dotenv(os.path.join(BASE_DIR, '.env'))


class Settings(BaseSettings):
    PROJECT_NAME: str = os.getenv('PROJECT_NAME', 'HANDROM')
    LOGGING_CONFIG_FILE: str = os.path.join(BASE_DIR, 'logging.ini')
    SESSION_LOG_DIR: str = os.getenv('SESSION_LOG_DIR', os.path.join(BASE_DIR, 'data', 'logs'))

    # Session timing
    COUNTDOWN_SECONDS: float = Field(
        default=float(os.getenv('COUNTDOWN_SECONDS', '3')),
        description='Lead time before recording so the patient can settle the hand.',
    )
    SESSION_DURATION_SECONDS: float = Field(
        default=float(os.getenv('SESSION_DURATION_SECONDS', '15')),
        description='Fixed recording window; the session hard-stops on this wall-clock deadline.',
    )
    TARGET_FPS: int = Field(
        default=int(os.getenv('TARGET_FPS', '30')),
        description='Nominal tracker frame rate used to compute the expected frame count.',
    )

    # Capture quality
    CAPTURE_RATE_THRESHOLD: float = Field(
        default=float(os.getenv('CAPTURE_RATE_THRESHOLD', '0.8')),
        description='Captured/expected ratio below which a non-fatal quality warning is attached.',
    )
    MIN_HAND_CONFIDENCE: float = Field(
        default=float(os.getenv('MIN_HAND_CONFIDENCE', '0.7')),
        description='Tracker hand confidence below which a frame is treated as missing.',
    )
    MIN_POSE_VISIBILITY: float = Field(
        default=float(os.getenv('MIN_POSE_VISIBILITY', '0.5')),
        description='Pose landmark visibility floor for elbow and shoulder in wrist measurements.',
    )
    MAX_GAP_SECONDS: float = Field(
        default=float(os.getenv('MAX_GAP_SECONDS', '0')),
        description='Longest gap bridged by interpolation; 0 means unlimited.',
    )

    # Geometry
    NEUTRAL_ZONE_DEGREES: float = Field(
        default=float(os.getenv('NEUTRAL_ZONE_DEGREES', '3')),
        description='Dead band around zero suppressing detector jitter on wrist channels at rest.',
    )
    KAPANDJI_CONTACT_THRESHOLD: float = Field(
        default=float(os.getenv('KAPANDJI_CONTACT_THRESHOLD', '0.055')),
        description='Normalised thumb-tip to target distance counted as contact.',
    )

    DEFAULT_HANDEDNESS: str = Field(
        default=os.getenv('DEFAULT_HANDEDNESS', 'LEFT'),
        description='Side locked when the tracker cannot determine handedness at session start.',
    )
    STRICT_TRANSITIONS: bool = Field(
        default=os.getenv('STRICT_TRANSITIONS', 'false').lower() == 'true',
        description='Raise on invalid session transitions instead of ignoring them (debug mode).',
    )

    @property
    def frames_expected(self) -> int:
        return int(round(self.SESSION_DURATION_SECONDS * self.TARGET_FPS))

    def threshold_table(self) -> List[Tuple[str, object, str]]:
        """Enumerate every tunable threshold as (name, value, rationale)."""
        rows = []
        for name, info in type(self).model_fields.items():
            if info.description:
                rows.append((name, getattr(self, name), info.description))
        return rows


# Normal total active motion per finger, degrees (low, high).
NORMAL_TAM_RANGES: Dict[str, Tuple[float, float]] = {
    'INDEX': (240.0, 280.0),
    'MIDDLE': (240.0, 280.0),
    'RING': (240.0, 280.0),
    'PINKY': (220.0, 260.0),
}

# Anatomical ceilings for flexion, degrees.
ANATOMICAL_JOINT_LIMITS: Dict[str, float] = {
    'MCP': 95.0,
    'PIP': 115.0,
    'DIP': 90.0,
    'THUMB_MCP': 60.0,
    'THUMB_IP': 80.0,
}

# Reference wrist ROM, degrees (normal, moderate, limited).
WRIST_FLEXION_NORMS = (80.0, 60.0, 30.0)
WRIST_EXTENSION_NORMS = (70.0, 50.0, 20.0)
WRIST_TOTAL_NORMS = (150.0, 110.0, 50.0)

# Deviation interpretation bounds, degrees (radial, ulnar, total).
DEVIATION_NORMAL_BOUNDS = (18.0, 25.0, 45.0)
DEVIATION_MODERATE_BOUNDS = (12.0, 18.0, 30.0)

# Percentage of normal TAM -> level, checked top down.
TAM_LEVELS = (
    (90.0, 'Excellent'),
    (75.0, 'Good'),
    (60.0, 'Fair'),
    (40.0, 'Limited'),
    (0.0, 'Severely Limited'),
)

# Kapandji level -> interpretation, checked top down.
KAPANDJI_LEVELS = (
    (9, 'Excellent'),
    (7, 'Good'),
    (5, 'Fair'),
    (3, 'Poor'),
    (0, 'Severe Limitation'),
)

# Questionnaire length and allowed unanswered items.
DASH_ITEMS = {'DASH': (30, 3), 'QUICK_DASH': (11, 1)}

# DASH / QuickDASH score -> disability severity, upper bounds inclusive.
DASH_SEVERITY_LEVELS = (
    (15.0, 'Minimal'),
    (30.0, 'Mild'),
    (50.0, 'Moderate'),
    (70.0, 'Severe'),
    (100.0, 'Extreme'),
)


settings = Settings()
