"""
Manual Override for flagged payments.
Lets an operator assign a flagged payment to a specific account holder.
"""

import logging
from typing import Sequence

from ..ledger.reconciliation_ledger import MatchResult, ReconciliationLedger
from ..records.payment_records import AccountHolder

logger = logging.getLogger(__name__)


class UnknownAccountHolderError(ValueError):
    """Raised when an override targets a holder missing from the directory."""
    pass


class ManualOverride:
    """Operator-driven flagged -> reconciled transition."""

    def __init__(self, ledger: ReconciliationLedger):
        self.ledger = ledger

    def manually_assign(
        self,
        payment_id: str,
        account_holder_id: str,
        account_holders: Sequence[AccountHolder]
    ) -> MatchResult:
        """
        Assign a flagged payment to an account holder.

        Args:
            payment_id: Flagged payment to reassign
            account_holder_id: Target holder
            account_holders: Current directory snapshot

        Returns:
            MatchResult with confidence 100 and source manual

        Raises:
            UnknownAccountHolderError: If the holder is not in the directory
            InvalidTransitionError: If the payment is not flagged
            PaymentInFlightError: If the payment is mid-classification
        """
        if not any(h.account_holder_id == account_holder_id for h in account_holders):
            raise UnknownAccountHolderError(f"Unknown account holder: {account_holder_id}")

        result = self.ledger.apply_manual_override(payment_id, account_holder_id)
        logger.info(
            f"Payment {payment_id} manually reconciled to account holder {account_holder_id}"
        )
        return result
