import enum


class Handedness(enum.Enum):
    LEFT = 'LEFT'
    RIGHT = 'RIGHT'
    UNKNOWN = 'UNKNOWN'

class Finger(enum.Enum):
    THUMB = 'THUMB'
    INDEX = 'INDEX'
    MIDDLE = 'MIDDLE'
    RING = 'RING'
    PINKY = 'PINKY'

class AssessmentKind(enum.Enum):
    TAM = 'TAM'
    KAPANDJI = 'KAPANDJI'
    WRIST_FLEXION = 'WRIST_FLEXION'
    WRIST_DEVIATION = 'WRIST_DEVIATION'

class QuestionnaireKind(enum.Enum):
    DASH = 'DASH'
    QUICK_DASH = 'QUICK_DASH'

class RangeFlag(enum.Enum):
    BELOW = 'BELOW'
    WITHIN = 'WITHIN'
    ABOVE = 'ABOVE'

class GapFillStrategy(enum.Enum):
    HOLD_LAST = 'HOLD_LAST'
    NONE = 'NONE'
