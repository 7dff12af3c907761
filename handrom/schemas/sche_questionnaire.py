from typing import Dict, Optional

from pydantic import ConfigDict, Field

from handrom.assessment.modules.scoring import DashResult
from handrom.helpers.enums import QuestionnaireKind
from handrom.schemas.sche_base import CamelSchemaBase


class DashAnswersRequest(CamelSchemaBase):
    """Questionnaire answers as collected by the host application."""

    questionnaire: QuestionnaireKind = Field(default=QuestionnaireKind.DASH, description="DASH or QUICK_DASH")
    responses: Dict[int, Optional[int]] = Field(
        ..., description="Question number (1-based) -> answer 1..5, null when unanswered"
    )

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "questionnaire": "QUICK_DASH",
                "responses": {"1": 2, "2": 3, "3": 1, "4": None, "5": 2, "6": 2,
                              "7": 1, "8": 3, "9": 2, "10": 1, "11": 2}
            }
        }
    )


class DashScoreResponse(CamelSchemaBase):
    questionnaire: QuestionnaireKind
    score: Optional[float] = Field(default=None, description="0-100, null when unscoreable")
    interpretation: Optional[str] = Field(default=None, description="Minimal, Mild, Moderate, Severe or Extreme")
    answered: int
    missing: int
    scoreable: bool

    @classmethod
    def from_result(cls, result: DashResult) -> 'DashScoreResponse':
        return cls(
            questionnaire=result.questionnaire,
            score=result.score,
            interpretation=result.interpretation,
            answered=result.answered,
            missing=result.missing,
            scoreable=result.scoreable,
        )
