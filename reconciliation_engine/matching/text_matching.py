"""
Text and amount matching helpers for the Match Scorer.
"""

from decimal import Decimal
from typing import List, Optional


def normalize_text(text: Optional[str]) -> str:
    """
    Normalize text for matching.

    Args:
        text: Raw text to normalize

    Returns:
        Lower-cased, stripped text ("" for None)
    """
    if not text:
        return ""
    return text.lower().strip()


def contains_name(name: str, *texts: str) -> bool:
    """
    Check whether a holder name appears (case-insensitive substring) in any text.

    An empty name never matches, so a blank directory entry cannot act as a
    wildcard. Empty texts are treated as non-matching.
    """
    needle = normalize_text(name)
    if not needle:
        return False

    for text in texts:
        haystack = normalize_text(text)
        if haystack and needle in haystack:
            return True
    return False


def contains_unit_pattern(reference: str, unit: str, patterns: List[str]) -> bool:
    """
    Check whether the reference contains a literal unit pattern.

    Example:
        >>> contains_unit_pattern("Rent unit 101 June", "101", ["unit {unit}", "unit{unit}"])
        True
        >>> contains_unit_pattern("APT101/1200", "101", ["unit {unit}", "unit{unit}"])
        False
    """
    label = normalize_text(unit)
    haystack = normalize_text(reference)
    if not label or not haystack:
        return False

    return any(pattern.format(unit=label) in haystack for pattern in patterns)


def amount_within_tolerance(amount: Decimal, expected: Decimal, tolerance: Decimal) -> bool:
    """Amounts match when their absolute difference is strictly below the tolerance."""
    return abs(amount - expected) < tolerance
