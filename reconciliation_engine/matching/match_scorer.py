"""
Match Scorer for incoming payments.
Ranks account holders for a payment using an ordered rule cascade with an
amount-based fallback.
"""

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import Dict, List, Optional, Sequence

from ..config.matching_config import MATCHING_CONFIG
from ..records.payment_records import AccountHolder, PaymentRecord
from .text_matching import amount_within_tolerance, contains_name, contains_unit_pattern


class MatchRule(Enum):
    """Rule that produced a candidate."""
    NAME_AND_AMOUNT = "name_and_amount"
    NAME_ONLY = "name_only"
    UNIT_AND_AMOUNT = "unit_and_amount"
    AMOUNT_ONLY = "amount_only"
    CLOSEST_AMOUNT = "closest_amount"
    NO_MATCH = "no_match"


RULE_REASONS = {
    MatchRule.NAME_AND_AMOUNT: (
        "Strong match: account holder name found in payment reference "
        "and amount matches expected amount"
    ),
    MatchRule.NAME_ONLY: (
        "Medium match: account holder name found in payment reference "
        "but amount differs from expected amount"
    ),
    MatchRule.UNIT_AND_AMOUNT: (
        "Strong match: unit number found in payment reference "
        "and amount matches expected amount"
    ),
    MatchRule.AMOUNT_ONLY: (
        "Potential match: payment amount matches account holder's expected amount"
    ),
    MatchRule.NO_MATCH: "No matching account holder found",
}


@dataclass(frozen=True)
class MatchCandidate:
    """A scored account holder for one payment."""
    account_holder_id: Optional[str]
    confidence: int
    reason: str
    rule: MatchRule

    def to_dict(self) -> Dict:
        return {
            "account_holder_id": self.account_holder_id,
            "confidence": self.confidence,
            "reason": self.reason,
            "rule": self.rule.value,
        }


class MatchScorer:
    """
    Stateless payment-to-account-holder scorer.

    Every holder is evaluated independently against the rule cascade; the
    first rule that fires decides that holder's confidence. When no rule
    fires for any holder, the holder with the closest expected amount is
    returned with a reduced confidence.
    """

    def __init__(self, config: Optional[Dict] = None):
        """Initialize the scorer with matching configuration."""
        merged = dict(MATCHING_CONFIG)
        for key, value in (config or {}).items():
            if isinstance(value, dict) and isinstance(merged.get(key), dict):
                section = dict(merged[key])
                section.update(value)
                merged[key] = section
            else:
                merged[key] = value

        self.config = merged
        self.rule_confidence = merged["rule_confidence"]
        self.rule_order = [MatchRule(rule) for rule in merged["rule_order"]]
        self.tolerance = Decimal(str(merged["amount_tolerance"]))
        self.unit_patterns = list(merged["unit_patterns"])
        self.fallback = merged["fallback"]

    def score(
        self,
        payment: PaymentRecord,
        account_holders: Sequence[AccountHolder]
    ) -> MatchCandidate:
        """
        Return the single best candidate for a payment.

        Ties are broken by directory order (first-seen holder wins). With an
        empty directory the result has no holder and confidence 0.
        """
        candidates = self.rank_candidates(payment, account_holders)
        if candidates:
            return candidates[0]

        return MatchCandidate(
            account_holder_id=None,
            confidence=int(self.config["no_match_confidence"]),
            reason=RULE_REASONS[MatchRule.NO_MATCH],
            rule=MatchRule.NO_MATCH,
        )

    def rank_candidates(
        self,
        payment: PaymentRecord,
        account_holders: Sequence[AccountHolder]
    ) -> List[MatchCandidate]:
        """
        Rank account holders for a payment.

        Args:
            payment: Payment to score
            account_holders: Ordered directory snapshot

        Returns:
            Candidates sorted by confidence (highest first, directory order on
            ties). Holders that fire no rule are omitted; if none fires, the
            list holds only the closest-amount fallback candidate.
        """
        candidates = []
        for holder in account_holders:
            candidate = self._evaluate_holder(payment, holder)
            if candidate is not None:
                candidates.append(candidate)

        if not candidates:
            fallback = self._closest_amount_candidate(payment, account_holders)
            return [fallback] if fallback else []

        # sort is stable, so equal confidences keep directory order
        candidates.sort(key=lambda c: c.confidence, reverse=True)
        return candidates

    def _evaluate_holder(
        self,
        payment: PaymentRecord,
        holder: AccountHolder
    ) -> Optional[MatchCandidate]:
        """Apply the rule cascade to one holder; first satisfied rule wins."""
        name_found = contains_name(holder.name, payment.reference, payment.description)
        amount_matches = amount_within_tolerance(
            payment.amount, holder.expected_amount, self.tolerance
        )

        for rule in self.rule_order:
            if rule == MatchRule.NAME_AND_AMOUNT:
                fired = name_found and amount_matches
            elif rule == MatchRule.NAME_ONLY:
                fired = name_found
            elif rule == MatchRule.UNIT_AND_AMOUNT:
                fired = amount_matches and contains_unit_pattern(
                    payment.reference, holder.unit, self.unit_patterns
                )
            elif rule == MatchRule.AMOUNT_ONLY:
                fired = amount_matches
            else:
                fired = False

            if fired:
                return MatchCandidate(
                    account_holder_id=holder.account_holder_id,
                    confidence=int(self.rule_confidence[rule.value]),
                    reason=RULE_REASONS[rule],
                    rule=rule,
                )

        return None

    def _closest_amount_candidate(
        self,
        payment: PaymentRecord,
        account_holders: Sequence[AccountHolder]
    ) -> Optional[MatchCandidate]:
        """Fallback: holder whose expected amount is numerically closest."""
        closest = None
        closest_diff = None
        for holder in account_holders:
            diff = abs(payment.amount - holder.expected_amount)
            # strict comparison keeps the first-seen holder on ties
            if closest_diff is None or diff < closest_diff:
                closest = holder
                closest_diff = diff

        if closest is None:
            return None

        return MatchCandidate(
            account_holder_id=closest.account_holder_id,
            confidence=self.fallback_confidence(closest_diff, closest.expected_amount),
            reason=(
                f"Low confidence match: closest account holder by payment amount "
                f"({closest_diff:.2f} difference)"
            ),
            rule=MatchRule.CLOSEST_AMOUNT,
        )

    def fallback_confidence(self, amount_diff: Decimal, expected_amount: Decimal) -> int:
        """
        Confidence for the closest-amount fallback.

        confidence = base - min(diff / expected * 100, max_penalty), rounded
        half-up. A zero expected amount takes the full penalty.
        """
        base = Decimal(str(self.fallback["base_confidence"]))
        max_penalty = Decimal(str(self.fallback["max_penalty"]))

        if expected_amount > 0:
            penalty = min(amount_diff / expected_amount * 100, max_penalty)
        else:
            penalty = max_penalty

        confidence = (base - penalty).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
        return max(0, min(100, int(confidence)))
