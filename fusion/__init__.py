"""
Score fusion module.

Combines the posture and expression scores into one coached score:
- Fixed weights (0.7 posture, 0.3 expression by default)
- Inputs and output clamped to 0-100
"""

from .score_fusion import (
    CompositeResult,
    compose_final_score,
    compose_result
)

__all__ = [
    'CompositeResult',
    'compose_final_score',
    'compose_result',
]
