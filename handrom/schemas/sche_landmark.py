"""
Landmark frame schemas for HANDROM.

Boundary validation for frames coming from an external hand/pose
tracker. Payloads are checked here and converted into the immutable
LandmarkFrame the assessment core works with.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from handrom.assessment.core.data_types import (
    HAND_LANDMARK_COUNT, LANDMARK_SCHEMA_VERSION, LandmarkFrame, Point3D
)
from handrom.helpers.enums import Handedness
from handrom.helpers.exception_handler import MalformedFrameError
from handrom.schemas.sche_base import CamelSchemaBase


class LandmarkPointSchema(BaseModel):
    """A single landmark as sent by the tracker."""

    x: float = Field(..., description="Normalized x coordinate")
    y: float = Field(..., description="Normalized y coordinate")
    z: float = Field(default=0.0, description="Relative depth")
    visibility: Optional[float] = Field(default=None, ge=0.0, le=1.0, description="Pose landmark visibility")

    model_config = ConfigDict(allow_inf_nan=False)

    def to_point(self) -> Point3D:
        return Point3D(x=self.x, y=self.y, z=self.z, visibility=self.visibility)


class LandmarkFrameSchema(CamelSchemaBase):
    """One tracker frame, versioned."""

    schema_version: int = Field(default=LANDMARK_SCHEMA_VERSION, description="Frame layout version")
    timestamp: float = Field(..., description="Seconds since recording start")
    hand_landmarks: List[LandmarkPointSchema] = Field(
        default_factory=list, description="21 hand landmarks, or empty when no hand was found"
    )
    pose_landmarks: List[LandmarkPointSchema] = Field(default_factory=list, description="Pose landmarks")
    handedness: Handedness = Field(default=Handedness.UNKNOWN, description="Side reported by the tracker")
    confidence: float = Field(default=0.0, ge=0.0, le=1.0, description="Hand detection confidence")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "schemaVersion": 1,
                "timestamp": 0.033,
                "handLandmarks": [{"x": 0.5, "y": 0.6, "z": 0.0}],
                "poseLandmarks": [{"x": 0.4, "y": 0.5, "z": -0.1, "visibility": 0.98}],
                "handedness": "RIGHT",
                "confidence": 0.93
            }
        }
    )

    @field_validator('schema_version')
    @classmethod
    def check_version(cls, value: int) -> int:
        if value != LANDMARK_SCHEMA_VERSION:
            raise ValueError(f"unsupported frame schema version {value}")
        return value

    @field_validator('handedness', mode='before')
    @classmethod
    def normalize_handedness(cls, value: Any) -> Any:
        if value is None:
            return Handedness.UNKNOWN
        if isinstance(value, str):
            return value.upper()
        return value

    @field_validator('hand_landmarks')
    @classmethod
    def check_hand_size(cls, value: List[LandmarkPointSchema]) -> List[LandmarkPointSchema]:
        if value and len(value) != HAND_LANDMARK_COUNT:
            raise ValueError(f"expected {HAND_LANDMARK_COUNT} hand landmarks, got {len(value)}")
        return value

    def to_frame(self) -> LandmarkFrame:
        return LandmarkFrame(
            timestamp=self.timestamp,
            hand_landmarks=tuple(p.to_point() for p in self.hand_landmarks),
            pose_landmarks=tuple(p.to_point() for p in self.pose_landmarks),
            handedness=self.handedness,
            confidence=self.confidence,
            schema_version=self.schema_version,
        )

    @classmethod
    def from_frame(cls, frame: LandmarkFrame) -> 'LandmarkFrameSchema':
        def points(seq):
            return [LandmarkPointSchema(x=p.x, y=p.y, z=p.z, visibility=p.visibility) for p in seq]

        return cls(
            schema_version=frame.schema_version,
            timestamp=frame.timestamp,
            hand_landmarks=points(frame.hand_landmarks),
            pose_landmarks=points(frame.pose_landmarks),
            handedness=frame.handedness,
            confidence=frame.confidence,
        )


def parse_frame(payload: Dict[str, Any]) -> LandmarkFrame:
    """
    Validate a JSON-compatible payload and convert it to a LandmarkFrame.

    Raises:
        MalformedFrameError: The payload does not describe a valid frame.
    """
    try:
        return LandmarkFrameSchema.model_validate(payload).to_frame()
    except ValidationError as e:
        raise MalformedFrameError(f"Invalid landmark frame: {e.error_count()} error(s): {e.errors()[0]['msg']}")
