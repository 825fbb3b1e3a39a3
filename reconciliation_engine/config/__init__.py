"""
Configuration module for the Payment Reconciliation Engine.

This module contains the configuration dictionaries for matching and classification.
"""

from .matching_config import (
    MATCHING_CONFIG,
    THRESHOLD_PRESETS,
    DEFAULT_THRESHOLD,
    CONFIDENCE_BANDS,
    MANUAL_OVERRIDE_CONFIDENCE,
    MANUAL_OVERRIDE_REASON,
)

__all__ = [
    "MATCHING_CONFIG",
    "THRESHOLD_PRESETS",
    "DEFAULT_THRESHOLD",
    "CONFIDENCE_BANDS",
    "MANUAL_OVERRIDE_CONFIDENCE",
    "MANUAL_OVERRIDE_REASON",
]
