"""
Matching configuration for payment reconciliation.
Contains rule confidences, amount tolerance, threshold presets and display bands.
"""

from decimal import Decimal

# Matching Configuration
# Rules are evaluated per account holder in the order listed under "rule_order";
# the first rule that fires for a holder decides that holder's confidence.
MATCHING_CONFIG = {
    # Confidence awarded by each rule (0-100)
    "rule_confidence": {
        "name_and_amount": 95,
        "name_only": 85,
        "unit_and_amount": 90,
        "amount_only": 75,
    },

    "rule_order": [
        "name_and_amount",
        "name_only",
        "unit_and_amount",
        "amount_only",
    ],

    # Amounts "match" when |payment - expected| is strictly below this value
    "amount_tolerance": Decimal("1.00"),

    # Literal unit patterns looked up in the payment reference only.
    # "{unit}" is replaced by the lower-cased unit label.
    "unit_patterns": ["unit {unit}", "unit{unit}"],

    # Closest-amount fallback when no rule fires for any holder:
    # confidence = base - min(diff / expected * 100, max_penalty)
    "fallback": {
        "base_confidence": 60,
        "max_penalty": 40,
    },

    # Confidence used when the directory is empty
    "no_match_confidence": 0,
}

# Operator-selectable thresholds (per batch run)
THRESHOLD_PRESETS = {
    "high": 90,
    "medium": 70,
    "low": 50,
}

DEFAULT_THRESHOLD = THRESHOLD_PRESETS["medium"]

# Confidence bands used by review queues and dashboards (min confidence, inclusive)
CONFIDENCE_BANDS = [
    {"min": 90, "band": "high"},
    {"min": 70, "band": "medium"},
    {"min": 40, "band": "low"},
    {"min": 0, "band": "very_low"},
]

MANUAL_OVERRIDE_CONFIDENCE = 100
MANUAL_OVERRIDE_REASON = "manually assigned"
