"""
Session record schema for HANDROM.

The flat, camelCase record the host application stores, exports and
charts. It is produced from a finalized SessionResult and must keep its
shape stable.
"""

from typing import Optional

from pydantic import ConfigDict, Field

from handrom.assessment.core.tracker import SessionResult
from handrom.helpers.enums import AssessmentKind, Finger, Handedness
from handrom.schemas.sche_base import CamelSchemaBase

LONG_FINGERS = (Finger.INDEX, Finger.MIDDLE, Finger.RING, Finger.PINKY)


def _deg(value: float) -> float:
    return round(float(value), 1)


class SessionRecord(CamelSchemaBase):
    hand_type: Handedness = Field(..., description="Locked side for the session")
    assessment_kind: Optional[AssessmentKind] = Field(default=None, description="Assessment recorded")

    max_mcp_angle: float = Field(default=0.0, ge=0, le=180, description="Largest MCP flexion over the long fingers")
    max_pip_angle: float = Field(default=0.0, ge=0, le=180, description="Largest PIP flexion over the long fingers")
    max_dip_angle: float = Field(default=0.0, ge=0, le=180, description="Largest DIP flexion over the long fingers")
    total_active_rom: float = Field(default=0.0, ge=0, description="Largest per-finger TAM")
    index_finger_rom: float = Field(default=0.0, ge=0)
    middle_finger_rom: float = Field(default=0.0, ge=0)
    ring_finger_rom: float = Field(default=0.0, ge=0)
    pinky_finger_rom: float = Field(default=0.0, ge=0)
    thumb_rom: float = Field(default=0.0, ge=0)

    wrist_flexion_angle: float = Field(default=0.0, ge=0, le=180)
    wrist_extension_angle: float = Field(default=0.0, ge=0, le=180)
    max_radial_deviation: float = Field(default=0.0, ge=0, le=180)
    max_ulnar_deviation: float = Field(default=0.0, ge=0, le=180)

    kapandji_score: int = Field(default=0, ge=0, le=10)
    dash_score: Optional[float] = Field(default=None, ge=0, le=100)
    quick_dash_score: Optional[float] = Field(default=None, ge=0, le=100)

    captured_frame_count: int = Field(default=0, ge=0)
    interpolated_frame_count: int = Field(default=0, ge=0)
    frames_expected: int = Field(default=0, ge=0)
    capture_rate: float = Field(default=0.0, ge=0)
    quality_warning: Optional[str] = None

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "handType": "RIGHT",
                "assessmentKind": "TAM",
                "maxMcpAngle": 85.2,
                "maxPipAngle": 100.4,
                "maxDipAngle": 70.1,
                "totalActiveRom": 255.7,
                "indexFingerRom": 250.3,
                "middleFingerRom": 255.7,
                "ringFingerRom": 244.0,
                "pinkyFingerRom": 231.9,
                "thumbRom": 0.0,
                "wristFlexionAngle": 0.0,
                "wristExtensionAngle": 0.0,
                "maxRadialDeviation": 0.0,
                "maxUlnarDeviation": 0.0,
                "kapandjiScore": 0,
                "dashScore": None,
                "quickDashScore": None,
                "capturedFrameCount": 441,
                "interpolatedFrameCount": 12,
                "framesExpected": 450,
                "captureRate": 0.98,
                "qualityWarning": None
            }
        }
    )

    @classmethod
    def from_result(
        cls,
        result: SessionResult,
        dash_score: Optional[float] = None,
        quick_dash_score: Optional[float] = None,
    ) -> 'SessionRecord':
        joints = result.joint_angles
        long_fingers = [joints[f] for f in LONG_FINGERS if f in joints]

        def finger_rom(finger: Finger) -> float:
            return _deg(joints[finger].total_active_rom) if finger in joints else 0.0

        return cls(
            hand_type=result.locked_handedness,
            assessment_kind=result.kind,
            max_mcp_angle=_deg(max((a.mcp_angle for a in long_fingers), default=0.0)),
            max_pip_angle=_deg(max((a.pip_angle for a in long_fingers), default=0.0)),
            max_dip_angle=_deg(max((a.dip_angle for a in long_fingers), default=0.0)),
            total_active_rom=_deg(max((a.total_active_rom for a in long_fingers), default=0.0)),
            index_finger_rom=finger_rom(Finger.INDEX),
            middle_finger_rom=finger_rom(Finger.MIDDLE),
            ring_finger_rom=finger_rom(Finger.RING),
            pinky_finger_rom=finger_rom(Finger.PINKY),
            thumb_rom=finger_rom(Finger.THUMB),
            wrist_flexion_angle=_deg(result.wrist_angles.flexion_angle),
            wrist_extension_angle=_deg(result.wrist_angles.extension_angle),
            max_radial_deviation=_deg(result.deviation_angles.radial_deviation),
            max_ulnar_deviation=_deg(result.deviation_angles.ulnar_deviation),
            kapandji_score=result.kapandji_checkpoint,
            dash_score=dash_score,
            quick_dash_score=quick_dash_score,
            captured_frame_count=result.captured_frame_count,
            interpolated_frame_count=result.interpolated_frame_count,
            frames_expected=result.frames_expected,
            capture_rate=round(result.capture_rate, 4),
            quality_warning=result.quality_warning,
        )
