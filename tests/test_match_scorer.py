"""
Tests for the match scorer rule cascade and closest-amount fallback.
"""

import random
import unittest
from datetime import date
from decimal import Decimal

from reconciliation_engine.classification.policy import ClassificationPolicy, MatchStatus
from reconciliation_engine.matching.match_scorer import MatchRule, MatchScorer
from reconciliation_engine.matching.text_matching import (
    amount_within_tolerance,
    contains_name,
    contains_unit_pattern,
)
from reconciliation_engine.records.payment_records import (
    AccountHolder,
    PaymentChannel,
    PaymentRecord,
)


def make_payment(amount, reference="", description="", payment_id="p1"):
    return PaymentRecord(
        payment_id=payment_id,
        reference=reference,
        amount=Decimal(str(amount)),
        payment_date=date(2023, 6, 1),
        channel=PaymentChannel.BANK_TRANSFER,
        description=description,
    )


def make_holder(holder_id, name, unit, expected):
    return AccountHolder(holder_id, name, unit, Decimal(str(expected)))


class TestRuleCascade(unittest.TestCase):
    """Test each rule of the cascade fires with its confidence."""

    def setUp(self):
        self.scorer = MatchScorer()
        self.john = make_holder("t1", "John Smith", "101", 1200)

    def test_name_and_amount(self):
        payment = make_payment(1200, reference="Rent John Smith June")
        candidate = self.scorer.score(payment, [self.john])

        self.assertEqual(candidate.confidence, 95)
        self.assertEqual(candidate.rule, MatchRule.NAME_AND_AMOUNT)
        self.assertEqual(candidate.account_holder_id, "t1")

    def test_name_in_description_counts(self):
        payment = make_payment(1200, reference="RT-1", description="from JOHN SMITH")
        self.assertEqual(self.scorer.score(payment, [self.john]).confidence, 95)

    def test_name_only(self):
        payment = make_payment(900, reference="john smith partial")
        candidate = self.scorer.score(payment, [self.john])

        self.assertEqual(candidate.confidence, 85)
        self.assertEqual(candidate.rule, MatchRule.NAME_ONLY)

    def test_unit_and_amount(self):
        payment = make_payment(1200, reference="Rent Unit 101 June")
        candidate = self.scorer.score(payment, [self.john])

        self.assertEqual(candidate.confidence, 90)
        self.assertEqual(candidate.rule, MatchRule.UNIT_AND_AMOUNT)

    def test_unit_without_space(self):
        payment = make_payment(1200, reference="unit101")
        self.assertEqual(self.scorer.score(payment, [self.john]).confidence, 90)

    def test_unit_in_description_only_does_not_count(self):
        payment = make_payment(1200, reference="RT-9", description="unit 101")
        self.assertEqual(self.scorer.score(payment, [self.john]).confidence, 75)

    def test_amount_only(self):
        payment = make_payment("1199.50", reference="RT-9")
        candidate = self.scorer.score(payment, [self.john])

        self.assertEqual(candidate.confidence, 75)
        self.assertEqual(candidate.rule, MatchRule.AMOUNT_ONLY)

    def test_amount_tolerance_is_strict(self):
        payment = make_payment("1201.00", reference="RT-9")
        candidate = self.scorer.score(payment, [self.john])
        self.assertEqual(candidate.rule, MatchRule.CLOSEST_AMOUNT)


class TestWorkedScenarios(unittest.TestCase):
    """Test the documented reconciliation scenarios."""

    def setUp(self):
        self.scorer = MatchScorer()
        self.holders = [
            make_holder("t1", "John Smith", "101", 1200),
            make_holder("t2", "Alice Wong", "202", 1500),
        ]

    def test_reference_code_with_exact_amount(self):
        payment = make_payment(1200, reference="RT-1200-JS",
                               description="Bank transfer ref: RT-1200-JS")
        candidate = self.scorer.score(payment, self.holders)

        self.assertEqual(candidate.account_holder_id, "t1")
        self.assertEqual(candidate.confidence, 75)

        self.assertEqual(ClassificationPolicy(70).classify(candidate.confidence),
                         MatchStatus.RECONCILED)
        self.assertEqual(ClassificationPolicy(50).classify(candidate.confidence),
                         MatchStatus.RECONCILED)
        self.assertEqual(ClassificationPolicy(90).classify(candidate.confidence),
                         MatchStatus.FLAGGED)

    def test_check_with_apartment_code(self):
        payment = make_payment(1200, reference="Check #1055",
                               description="Check #1055 - APT101/1200")
        candidate = self.scorer.score(payment, self.holders)

        self.assertEqual(candidate.account_holder_id, "t1")
        self.assertEqual(candidate.rule, MatchRule.AMOUNT_ONLY)
        self.assertEqual(candidate.confidence, 75)

    def test_name_with_overpayment(self):
        payment = make_payment(1550, reference="Alice Wong rent + late fee")
        candidate = self.scorer.score(payment, self.holders)

        self.assertEqual(candidate.account_holder_id, "t2")
        self.assertEqual(candidate.confidence, 85)

        self.assertEqual(ClassificationPolicy(70).classify(candidate.confidence),
                         MatchStatus.RECONCILED)
        self.assertEqual(ClassificationPolicy(50).classify(candidate.confidence),
                         MatchStatus.RECONCILED)
        self.assertEqual(ClassificationPolicy(90).classify(candidate.confidence),
                         MatchStatus.FLAGGED)


class TestClosestAmountFallback(unittest.TestCase):
    """Test the fallback confidence formula."""

    def setUp(self):
        self.scorer = MatchScorer()
        self.holders = [make_holder("t1", "Jane Doe", "7", 1000)]

    def _confidence(self, amount):
        candidate = self.scorer.score(make_payment(amount, reference="RT-X"), self.holders)
        self.assertEqual(candidate.rule, MatchRule.CLOSEST_AMOUNT)
        self.assertEqual(candidate.account_holder_id, "t1")
        return candidate.confidence

    def test_ten_percent_difference(self):
        self.assertEqual(self._confidence(1100), 50)

    def test_twenty_five_percent_difference(self):
        self.assertEqual(self._confidence(1250), 35)

    def test_penalty_is_capped(self):
        self.assertEqual(self._confidence(5000), 20)

    def test_rounds_half_up(self):
        self.assertEqual(self._confidence(1005), 60)

    def test_reason_mentions_difference(self):
        candidate = self.scorer.score(make_payment(1100, reference="RT-X"), self.holders)
        self.assertIn("100.00 difference", candidate.reason)

    def test_zero_expected_amount_takes_full_penalty(self):
        holders = [make_holder("t9", "Zero", "0", 0)]
        candidate = self.scorer.score(make_payment(50, reference="RT-X"), holders)
        self.assertEqual(candidate.confidence, 20)

    def test_closest_holder_chosen(self):
        holders = [
            make_holder("a", "A Person", "1", 500),
            make_holder("b", "B Person", "2", 1000),
        ]
        candidate = self.scorer.score(make_payment(950, reference="RT-X"), holders)
        self.assertEqual(candidate.account_holder_id, "b")


class TestSelectionAndEdgeCases(unittest.TestCase):
    """Test holder selection, ties and degenerate inputs."""

    def setUp(self):
        self.scorer = MatchScorer()

    def test_empty_directory(self):
        candidate = self.scorer.score(make_payment(100, reference="x"), [])

        self.assertIsNone(candidate.account_holder_id)
        self.assertEqual(candidate.confidence, 0)
        self.assertEqual(candidate.rule, MatchRule.NO_MATCH)
        self.assertEqual(self.scorer.rank_candidates(make_payment(100), []), [])

    def test_ties_keep_directory_order(self):
        holders = [
            make_holder("first", "Ann Lee", "1", 800),
            make_holder("second", "Bob Ray", "2", 800),
        ]
        candidate = self.scorer.score(make_payment(800, reference="RT"), holders)
        self.assertEqual(candidate.account_holder_id, "first")

        reversed_candidate = self.scorer.score(
            make_payment(800, reference="RT"), list(reversed(holders))
        )
        self.assertEqual(reversed_candidate.account_holder_id, "second")

    def test_highest_confidence_wins_over_directory_order(self):
        holders = [
            make_holder("amount", "Ann Lee", "1", 800),
            make_holder("named", "Bob Ray", "2", 800),
        ]
        candidate = self.scorer.score(make_payment(800, reference="from Bob Ray"), holders)

        self.assertEqual(candidate.account_holder_id, "named")
        self.assertEqual(candidate.confidence, 95)

    def test_rank_candidates_sorted(self):
        holders = [
            make_holder("amount", "Ann Lee", "1", 800),
            make_holder("named", "Bob Ray", "2", 300),
            make_holder("none", "Cy Ho", "3", 50),
        ]
        ranked = self.scorer.rank_candidates(
            make_payment(800, reference="Bob Ray"), holders
        )
        self.assertEqual([c.account_holder_id for c in ranked], ["named", "amount"])
        self.assertEqual([c.confidence for c in ranked], [85, 75])

    def test_empty_reference_and_description(self):
        holders = [make_holder("t1", "John Smith", "101", 1200)]
        candidate = self.scorer.score(make_payment(1200), holders)
        self.assertEqual(candidate.confidence, 75)

    def test_empty_holder_name_never_matches(self):
        holders = [make_holder("blank", "", "", 10)]
        candidate = self.scorer.score(make_payment(500, reference="anything"), holders)
        self.assertEqual(candidate.rule, MatchRule.CLOSEST_AMOUNT)

    def test_confidence_always_in_range(self):
        holders = [make_holder("t1", "Jane Doe", "7", "0.01")]
        for amount in ("0.01", "1", "1000000"):
            candidate = self.scorer.score(make_payment(amount, reference="RT"), holders)
            self.assertGreaterEqual(candidate.confidence, 0)
            self.assertLessEqual(candidate.confidence, 100)

    def test_scoring_is_deterministic(self):
        holders = [
            make_holder("t1", "John Smith", "101", 1200),
            make_holder("t2", "Alice Wong", "202", 1500),
        ]
        payment = make_payment(1300, reference="RT")
        first = self.scorer.score(payment, holders)
        for _ in range(5):
            self.assertEqual(self.scorer.score(payment, holders), first)

    def test_config_override_merges_sections(self):
        scorer = MatchScorer({"rule_confidence": {"amount_only": 72}})
        holders = [make_holder("t1", "John Smith", "101", 1200)]

        self.assertEqual(scorer.score(make_payment(1200, reference="RT"), holders).confidence, 72)
        self.assertEqual(
            scorer.score(make_payment(1200, reference="John Smith"), holders).confidence, 95
        )


class TestRandomizedNameAndAmount(unittest.TestCase):
    """Name in the reference plus an amount within 1.00 always scores 95 for that holder."""

    def test_name_and_amount_property(self):
        rng = random.Random(2023)
        names = ["John Smith", "Alice Wong", "Maria Garcia", "Tom Baker", "Priya Nair"]
        scorer = MatchScorer()

        for _ in range(300):
            holders = [
                make_holder(f"t{i}", name, str(100 + i), rng.randint(300, 3000))
                for i, name in enumerate(names)
            ]
            target = rng.choice(holders)
            offset = Decimal(rng.randint(-99, 99)) / 100
            name = rng.choice([target.name, target.name.upper(), target.name.lower()])
            reference = f"{rng.choice(['Rent', 'TRF', ''])} {name} {rng.randint(1, 12)}/2023"

            payment = make_payment(target.expected_amount + offset, reference=reference)
            candidate = scorer.score(payment, holders)

            self.assertEqual(candidate.account_holder_id, target.account_holder_id,
                             msg=f"reference={reference!r} offset={offset}")
            self.assertEqual(candidate.confidence, 95)
            self.assertEqual(candidate.rule, MatchRule.NAME_AND_AMOUNT)


class TestTextMatching(unittest.TestCase):
    """Test the literal matching helpers."""

    def test_contains_name_case_insensitive(self):
        self.assertTrue(contains_name("John Smith", "RENT JOHN SMITH"))
        self.assertFalse(contains_name("John Smith", "J. Smith"))
        self.assertFalse(contains_name("", "anything"))
        self.assertFalse(contains_name("John", "", None))

    def test_unit_patterns_are_literal(self):
        patterns = ["unit {unit}", "unit{unit}"]
        self.assertTrue(contains_unit_pattern("Unit 4B rent", "4B", patterns))
        self.assertFalse(contains_unit_pattern("apt 4B", "4B", patterns))
        self.assertFalse(contains_unit_pattern("unit ", "", patterns))

    def test_amount_tolerance(self):
        tolerance = Decimal("1.00")
        self.assertTrue(amount_within_tolerance(Decimal("100.99"), Decimal("100"), tolerance))
        self.assertFalse(amount_within_tolerance(Decimal("101.00"), Decimal("100"), tolerance))


if __name__ == "__main__":
    unittest.main()
