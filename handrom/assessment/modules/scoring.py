"""
Clinical Scoring Module for HANDROM.

Stateless conversion of session maxima and questionnaire answers into
standardized clinical scores:
1. TAM: per-finger total active motion against normal ranges
2. Kapandji: highest thumb opposition level reached (0-10)
3. DASH / QuickDASH: upper-limb disability index (0-100, lower is better)
4. Wrist flexion/extension and radial/ulnar deviation interpretation

DASH formula:
    score = ((sum of responses - n) x 25) / n, n = answered items

Author: HANDROM Team
Version: 1.0.0
"""

import logging
import math
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, List, Mapping, Optional, Tuple, Union

from handrom.core.config import (
    DASH_ITEMS, DASH_SEVERITY_LEVELS, DEVIATION_MODERATE_BOUNDS, DEVIATION_NORMAL_BOUNDS, KAPANDJI_LEVELS,
    NORMAL_TAM_RANGES, TAM_LEVELS, WRIST_EXTENSION_NORMS, WRIST_FLEXION_NORMS, WRIST_TOTAL_NORMS,
)
from handrom.helpers.enums import Finger, QuestionnaireKind, RangeFlag
from handrom.helpers.exception_handler import ScoringInputError

from ..core.data_types import DeviationAngles, WristAngles
from ..core.opposition import KAPANDJI_LEVEL_NAMES

logger = logging.getLogger(__name__)


def _band(value: float, bands) -> str:
    for floor, label in bands:
        if value >= floor:
            return label
    return bands[-1][1]


@dataclass(frozen=True)
class FingerTamScore:
    """
    TAM classification for one finger.

    Attributes:
        finger: Finger scored.
        rom: Total active motion in degrees.
        normal_range: (low, high) normal TAM in degrees.
        percentage: rom / high x 100, clamped to 0-100.
        range_flag: BELOW / WITHIN / ABOVE the normal range.
        level: Excellent, Good, Fair, Limited or Severely Limited.
    """
    finger: Finger
    rom: float
    normal_range: Tuple[float, float]
    percentage: int
    range_flag: RangeFlag
    level: str

    def to_dict(self) -> dict:
        return {
            "finger": self.finger.value,
            "rom": round(self.rom, 1),
            "normal_range": list(self.normal_range),
            "percentage": self.percentage,
            "range_flag": self.range_flag.value,
            "level": self.level,
        }


@dataclass(frozen=True)
class TamResult:
    per_finger: Dict[Finger, FingerTamScore]
    overall_level: str
    overall_score: int
    average_percentage: float

    @property
    def out_of_range(self) -> List[Finger]:
        return [f for f, s in self.per_finger.items() if s.range_flag is not RangeFlag.WITHIN]

    def to_dict(self) -> dict:
        return {
            "per_finger": {f.value: s.to_dict() for f, s in self.per_finger.items()},
            "overall_level": self.overall_level,
            "overall_score": self.overall_score,
            "average_percentage": round(self.average_percentage, 1),
        }


@dataclass(frozen=True)
class KapandjiResult:
    level: int
    interpretation: str
    target_name: Optional[str] = None
    reached_targets: Tuple[str, ...] = ()

    def to_dict(self) -> dict:
        return {
            "level": self.level,
            "interpretation": self.interpretation,
            "target_name": self.target_name,
            "reached_targets": list(self.reached_targets),
        }


@dataclass(frozen=True)
class DashResult:
    """
    DASH / QuickDASH outcome.

    A None score means the questionnaire is unscoreable and no number
    should be shown; interpretation is None then as well.
    """
    questionnaire: QuestionnaireKind
    score: Optional[float]
    answered: int
    missing: int
    interpretation: Optional[str] = None

    @property
    def scoreable(self) -> bool:
        return self.score is not None

    def to_dict(self) -> dict:
        return {
            "questionnaire": self.questionnaire.value,
            "score": self.score,
            "interpretation": self.interpretation,
            "answered": self.answered,
            "missing": self.missing,
            "scoreable": self.scoreable,
        }


@dataclass(frozen=True)
class WristInterpretation:
    flexion_level: str
    extension_level: str
    total_arc: float
    total_level: str

    def to_dict(self) -> dict:
        return {
            "flexion_level": self.flexion_level,
            "extension_level": self.extension_level,
            "total_arc": round(self.total_arc, 1),
            "total_level": self.total_level,
        }


@dataclass(frozen=True)
class DeviationInterpretation:
    total_arc: float
    level: str
    notes: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "total_arc": round(self.total_arc, 1),
            "level": self.level,
            "notes": list(self.notes),
        }


# ==================== TAM ====================

def _as_finger(key: Union[Finger, str]) -> Finger:
    try:
        return key if isinstance(key, Finger) else Finger(str(key).upper())
    except ValueError:
        raise ScoringInputError(f"Unknown finger '{key}'")


def score_tam(per_finger_rom: Mapping[Union[Finger, str], float]) -> TamResult:
    """
    Classify per-finger TAM against normal ranges.

    Values outside the normal range are flagged, not rejected.

    Args:
        per_finger_rom: Total active motion in degrees, keyed by finger

    Returns:
        TamResult with per-finger classification and an overall level

    Raises:
        ScoringInputError: Empty input, a finger without a normal range,
            or a negative / non-finite value.
    """
    if not per_finger_rom:
        raise ScoringInputError("TAM scoring needs at least one finger")

    scores: Dict[Finger, FingerTamScore] = {}
    for key, rom in per_finger_rom.items():
        finger = _as_finger(key)
        if finger.value not in NORMAL_TAM_RANGES:
            raise ScoringInputError(f"No normal TAM range for {finger.value}")
        if rom is None or not math.isfinite(rom) or rom < 0:
            raise ScoringInputError(f"Invalid TAM value for {finger.value}: {rom}")

        low, high = NORMAL_TAM_RANGES[finger.value]
        percentage = min(100, max(0, round(rom / high * 100)))
        if rom < low:
            flag = RangeFlag.BELOW
        elif rom > high:
            flag = RangeFlag.ABOVE
        else:
            flag = RangeFlag.WITHIN

        scores[finger] = FingerTamScore(
            finger=finger,
            rom=float(rom),
            normal_range=(low, high),
            percentage=percentage,
            range_flag=flag,
            level=_band(percentage, TAM_LEVELS),
        )

    average_percentage = sum(s.percentage for s in scores.values()) / len(scores)
    average_rom = sum(s.rom for s in scores.values()) / len(scores)

    result = TamResult(
        per_finger=scores,
        overall_level=_band(average_percentage, TAM_LEVELS),
        overall_score=round(average_rom),
        average_percentage=average_percentage,
    )
    logger.info(f"TAM scored: {result.overall_level} ({result.overall_score} deg average)")
    return result


# ==================== Kapandji ====================

def score_kapandji(max_checkpoint: int) -> KapandjiResult:
    """Interpret the highest opposition level reached in a session."""
    if isinstance(max_checkpoint, bool) or not isinstance(max_checkpoint, int):
        raise ScoringInputError(f"Kapandji level must be an integer, got {max_checkpoint!r}")
    if not 0 <= max_checkpoint <= 10:
        raise ScoringInputError(f"Kapandji level must be within 0..10, got {max_checkpoint}")

    return KapandjiResult(
        level=max_checkpoint,
        interpretation=_band(max_checkpoint, KAPANDJI_LEVELS),
        target_name=KAPANDJI_LEVEL_NAMES.get(max_checkpoint),
        reached_targets=tuple(KAPANDJI_LEVEL_NAMES[level] for level in range(1, max_checkpoint + 1)),
    )


# ==================== DASH ====================

def score_dash(
    responses: Mapping[Union[int, str], Optional[int]],
    questionnaire: QuestionnaireKind = QuestionnaireKind.DASH,
) -> DashResult:
    """
    Score a DASH or QuickDASH questionnaire.

    Args:
        responses: Question id (1-based) -> answer 1..5. None or 0 means
            unanswered; ids absent from the mapping are unanswered too.
        questionnaire: DASH (30 items) or QUICK_DASH (11 items)

    Returns:
        DashResult; score is None when too many items are unanswered

    Raises:
        ScoringInputError: Unknown question id or answer outside 1..5.
    """
    item_count, max_missing = DASH_ITEMS[questionnaire.value]

    answers: List[int] = []
    for question_id, value in responses.items():
        try:
            index = int(question_id)
        except (TypeError, ValueError):
            raise ScoringInputError(f"Invalid question id {question_id!r}")
        if not 1 <= index <= item_count:
            raise ScoringInputError(f"Question {index} is not part of {questionnaire.value}")

        if value is None or value == 0:
            continue
        if isinstance(value, bool) or not isinstance(value, int) or not 1 <= value <= 5:
            raise ScoringInputError(f"Answer to question {index} must be 1..5, got {value!r}")
        answers.append(value)

    answered = len(answers)
    missing = item_count - answered

    if missing > max_missing or answered == 0:
        logger.warning(
            f"{questionnaire.value} unscoreable: {missing} of {item_count} items unanswered"
        )
        return DashResult(questionnaire=questionnaire, score=None, answered=answered, missing=missing)

    # exact quotient, halves rounded up
    raw = Decimal((sum(answers) - answered) * 25) / Decimal(answered)
    score = float(raw.quantize(Decimal('0.1'), rounding=ROUND_HALF_UP))
    return DashResult(
        questionnaire=questionnaire,
        score=score,
        answered=answered,
        missing=missing,
        interpretation=interpret_dash(score),
    )


def interpret_dash(score: float) -> str:
    """Disability severity for a DASH / QuickDASH score (upper bounds inclusive)."""
    for ceiling, label in DASH_SEVERITY_LEVELS:
        if score <= ceiling:
            return label
    return DASH_SEVERITY_LEVELS[-1][1]


# ==================== Wrist ====================

def _norm_level(value: float, norms: Tuple[float, float, float]) -> str:
    normal, moderate, limited = norms
    if value >= normal:
        return "Normal"
    if value >= moderate:
        return "Mild Limitation"
    if value >= limited:
        return "Moderate Limitation"
    return "Severe Limitation"


def interpret_wrist(angles: WristAngles) -> WristInterpretation:
    total = angles.flexion_angle + angles.extension_angle
    return WristInterpretation(
        flexion_level=_norm_level(angles.flexion_angle, WRIST_FLEXION_NORMS),
        extension_level=_norm_level(angles.extension_angle, WRIST_EXTENSION_NORMS),
        total_arc=total,
        total_level=_norm_level(total, WRIST_TOTAL_NORMS),
    )


def interpret_deviation(angles: DeviationAngles) -> DeviationInterpretation:
    radial = angles.radial_deviation
    ulnar = angles.ulnar_deviation
    total = radial + ulnar

    def meets(bounds):
        return radial >= bounds[0] and ulnar >= bounds[1] and total >= bounds[2]

    if meets(DEVIATION_NORMAL_BOUNDS):
        level = "Normal"
    elif meets(DEVIATION_MODERATE_BOUNDS):
        level = "Moderate"
    else:
        level = "Limited"

    notes = []
    if radial < DEVIATION_MODERATE_BOUNDS[0]:
        notes.append("Radial deviation restricted")
    if ulnar < DEVIATION_MODERATE_BOUNDS[1]:
        notes.append("Ulnar deviation restricted")

    return DeviationInterpretation(total_arc=total, level=level, notes=notes)
