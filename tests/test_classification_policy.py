"""
Tests for threshold resolution and classification.
"""

import random
import unittest

from reconciliation_engine.classification.policy import (
    ClassificationPolicy,
    MatchStatus,
    MatchThreshold,
    confidence_band,
    resolve_threshold,
)


class TestResolveThreshold(unittest.TestCase):
    """Test the accepted threshold forms."""

    def test_presets(self):
        self.assertEqual(resolve_threshold(MatchThreshold.HIGH), 90)
        self.assertEqual(resolve_threshold(MatchThreshold.MEDIUM), 70)
        self.assertEqual(resolve_threshold(MatchThreshold.LOW), 50)

    def test_preset_names(self):
        self.assertEqual(resolve_threshold("high"), 90)
        self.assertEqual(resolve_threshold(" Medium "), 70)

    def test_integers_and_numeric_strings(self):
        self.assertEqual(resolve_threshold(1), 1)
        self.assertEqual(resolve_threshold(100), 100)
        self.assertEqual(resolve_threshold("85"), 85)

    def test_out_of_range_rejected(self):
        for value in (0, -1, 101, "0", "250"):
            with self.assertRaises(ValueError, msg=f"threshold={value}"):
                resolve_threshold(value)

    def test_garbage_rejected(self):
        for value in ("strict", True, None, 70.5):
            with self.assertRaises(ValueError, msg=f"threshold={value}"):
                resolve_threshold(value)


class TestClassificationPolicy(unittest.TestCase):
    """Test the single-comparison classification rule."""

    def test_default_is_medium(self):
        self.assertEqual(ClassificationPolicy().threshold, 70)

    def test_boundary_is_inclusive(self):
        policy = ClassificationPolicy(70)
        self.assertEqual(policy.classify(70), MatchStatus.RECONCILED)
        self.assertEqual(policy.classify(69), MatchStatus.FLAGGED)

    def test_zero_confidence_never_reconciles(self):
        for threshold in (1, 50, 100):
            self.assertEqual(ClassificationPolicy(threshold).classify(0), MatchStatus.FLAGGED)

    def test_reclassify_uses_new_threshold(self):
        policy = ClassificationPolicy(MatchThreshold.LOW)
        self.assertEqual(policy.classify(75), MatchStatus.RECONCILED)
        self.assertEqual(policy.reclassify(75, "high"), MatchStatus.FLAGGED)

    def test_monotonic_in_threshold(self):
        rng = random.Random(1234)
        for _ in range(500):
            confidence = rng.randint(0, 100)
            low, high = sorted((rng.randint(1, 100), rng.randint(1, 100)))

            # reconciled at a higher threshold implies reconciled at a lower one
            if ClassificationPolicy(high).classify(confidence) == MatchStatus.RECONCILED:
                self.assertEqual(
                    ClassificationPolicy(low).classify(confidence), MatchStatus.RECONCILED
                )
            expected = MatchStatus.RECONCILED if confidence >= low else MatchStatus.FLAGGED
            self.assertEqual(ClassificationPolicy(low).classify(confidence), expected)


class TestConfidenceBand(unittest.TestCase):

    def test_bands(self):
        self.assertEqual(confidence_band(95), "high")
        self.assertEqual(confidence_band(75), "medium")
        self.assertEqual(confidence_band(50), "low")
        self.assertEqual(confidence_band(0), "very_low")


if __name__ == "__main__":
    unittest.main()
