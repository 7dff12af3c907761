"""
Modules Package for HANDROM Assessment.

Contains clinical scoring on top of finalized session results.
"""

from .scoring import (
    score_tam, score_kapandji, score_dash, interpret_dash, interpret_wrist, interpret_deviation,
    TamResult, FingerTamScore, KapandjiResult, DashResult
)

__all__ = [
    'score_tam', 'score_kapandji', 'score_dash', 'interpret_dash', 'interpret_wrist', 'interpret_deviation',
    'TamResult', 'FingerTamScore', 'KapandjiResult', 'DashResult',
]
