"""
Classification Module for the Payment Reconciliation Engine.
"""

from .policy import (
    MatchStatus,
    MatchThreshold,
    ClassificationPolicy,
    resolve_threshold,
    confidence_band,
)

__all__ = [
    "MatchStatus",
    "MatchThreshold",
    "ClassificationPolicy",
    "resolve_threshold",
    "confidence_band",
]
