"""
Classification Policy for scored payments.
Applies the operator-selected confidence threshold to a candidate's confidence.
"""

from enum import Enum
from typing import Union

from ..config.matching_config import CONFIDENCE_BANDS, THRESHOLD_PRESETS


class MatchStatus(Enum):
    """Ledger partition a payment belongs to."""
    PENDING = "pending"
    RECONCILED = "reconciled"
    FLAGGED = "flagged"


class MatchThreshold(Enum):
    """Threshold presets offered to operators."""
    HIGH = THRESHOLD_PRESETS["high"]
    MEDIUM = THRESHOLD_PRESETS["medium"]
    LOW = THRESHOLD_PRESETS["low"]


ThresholdLike = Union[MatchThreshold, int, str]


def resolve_threshold(threshold: ThresholdLike) -> int:
    """
    Turn a preset, preset name or integer into a threshold value.

    Raises:
        ValueError: If the value is not a preset or an integer in 1-100
    """
    if isinstance(threshold, MatchThreshold):
        return threshold.value
    if isinstance(threshold, bool):
        raise ValueError(f"Invalid threshold: {threshold}")

    if isinstance(threshold, str):
        key = threshold.strip().lower()
        if key in THRESHOLD_PRESETS:
            return THRESHOLD_PRESETS[key]
        try:
            threshold = int(key)
        except ValueError:
            raise ValueError(f"Unknown threshold preset: {threshold}")

    if not isinstance(threshold, int):
        raise ValueError(f"Invalid threshold: {threshold!r}")
    if not 1 <= threshold <= 100:
        raise ValueError(f"Threshold must be between 1 and 100, got {threshold}")
    return threshold


class ClassificationPolicy:
    """Single-comparison policy: confidence >= threshold reconciles, otherwise flags."""

    def __init__(self, threshold: ThresholdLike = MatchThreshold.MEDIUM):
        self.threshold = resolve_threshold(threshold)

    def classify(self, confidence: int) -> MatchStatus:
        if confidence >= self.threshold:
            return MatchStatus.RECONCILED
        return MatchStatus.FLAGGED

    def reclassify(self, confidence: int, threshold: ThresholdLike) -> MatchStatus:
        """Classify a stored confidence under another threshold without re-scoring."""
        return ClassificationPolicy(threshold).classify(confidence)

    def __repr__(self) -> str:
        return f"ClassificationPolicy(threshold={self.threshold})"


def confidence_band(confidence: int) -> str:
    """Display band for a confidence value (high, medium, low, very_low)."""
    for band in CONFIDENCE_BANDS:
        if confidence >= band["min"]:
            return band["band"]
    return CONFIDENCE_BANDS[-1]["band"]
