# Assessment Package
# Hand ROM measurement and clinical scoring for HANDROM

from .core import SessionTracker, SessionResult, LandmarkFrame
from .modules import score_tam, score_kapandji, score_dash
from .utils import SessionLogger

__all__ = [
    'SessionTracker',
    'SessionResult',
    'LandmarkFrame',
    'score_tam',
    'score_kapandji',
    'score_dash',
    'SessionLogger'
]
