"""
Matching Module for the Payment Reconciliation Engine.

Scores payments against the account-holder directory through:
- Text matching (holder name, literal unit patterns)
- Amount tolerance checks
- Closest-amount fallback
"""

from .match_scorer import MatchScorer, MatchCandidate, MatchRule, RULE_REASONS
from .text_matching import (
    normalize_text,
    contains_name,
    contains_unit_pattern,
    amount_within_tolerance,
)

__all__ = [
    # Scorer
    "MatchScorer",
    "MatchCandidate",
    "MatchRule",
    "RULE_REASONS",
    # Text matching utilities
    "normalize_text",
    "contains_name",
    "contains_unit_pattern",
    "amount_within_tolerance",
]
