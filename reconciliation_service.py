"""
Reconciliation Service.

Operator-facing facade over the reconciliation engine: submit payments,
run a batch at a chosen threshold, manually assign flagged payments and
read aggregate counts and the audit trail.

Usage:
    from reconciliation_service import ReconciliationEngine

    engine = ReconciliationEngine(account_holders=[...])
    engine.submit_payments([...])
    result = engine.run_batch(threshold="medium")
    engine.manually_assign("p-17", "t2")
"""

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from reconciliation_batch_processor import (
    BatchProcessor,
    BatchResult,
    CancellationToken,
    ProcessingError,
)
from reconciliation_engine.classification.policy import MatchStatus, MatchThreshold, ThresholdLike
from reconciliation_engine.ledger.reconciliation_ledger import (
    ClassificationEvent,
    DuplicatePaymentError,
    LedgerSummary,
    MatchResult,
    ReconciliationLedger,
)
from reconciliation_engine.matching.match_scorer import MatchScorer
from reconciliation_engine.override.manual_override import ManualOverride
from reconciliation_engine.records.payment_records import (
    AccountHolder,
    InvalidRecordError,
    PaymentRecord,
    build_directory,
)

logger = logging.getLogger(__name__)


@dataclass
class SubmissionReport:
    """Outcome of submitting a set of raw payments."""
    accepted: List[str] = field(default_factory=list)
    rejected: List[ProcessingError] = field(default_factory=list)

    def to_dict(self) -> Dict:
        return {
            "accepted": list(self.accepted),
            "rejected": [e.to_dict() for e in self.rejected],
        }


class ReconciliationEngine:
    """Payment reconciliation engine with a single ledger and directory snapshot."""

    def __init__(
        self,
        account_holders: Iterable[Any] = (),
        max_workers: int = 1,
        ledger: Optional[ReconciliationLedger] = None,
        scorer: Optional[MatchScorer] = None
    ):
        self.ledger = ledger or ReconciliationLedger()
        self.processor = BatchProcessor(scorer=scorer, max_workers=max_workers)
        self.manual_override = ManualOverride(self.ledger)

        self._directory_lock = threading.Lock()
        self._account_holders = build_directory(account_holders)

    @property
    def account_holders(self) -> Tuple[AccountHolder, ...]:
        with self._directory_lock:
            return self._account_holders

    def set_account_holders(self, holders: Iterable[Any]) -> Tuple[AccountHolder, ...]:
        """Replace the directory snapshot used by subsequent runs and overrides."""
        directory = build_directory(holders)
        with self._directory_lock:
            self._account_holders = directory
        logger.info(f"Account-holder directory updated: {len(directory)} holders")
        return directory

    def submit_payments(self, items: Iterable[Any]) -> SubmissionReport:
        """
        Validate and submit payments; invalid or duplicate items are reported, not dropped.

        Args:
            items: PaymentRecord objects or raw dictionaries

        Returns:
            SubmissionReport listing accepted ids and rejected items
        """
        report = SubmissionReport()

        for index, item in enumerate(items or []):
            label = self._item_label(item, index)
            try:
                payment = item if isinstance(item, PaymentRecord) else PaymentRecord.from_dict(item)
                self.ledger.submit(payment)
                report.accepted.append(payment.payment_id)

            except InvalidRecordError as e:
                report.rejected.append(ProcessingError(
                    payment_id=label,
                    error_type="INVALID_RECORD",
                    error_message=str(e)
                ))
                logger.warning(f"Rejected payment {label}: {e}")

            except DuplicatePaymentError as e:
                report.rejected.append(ProcessingError(
                    payment_id=label,
                    error_type="DUPLICATE_PAYMENT",
                    error_message=str(e)
                ))
                logger.warning(f"Rejected payment {label}: {e}")

        if report.accepted or report.rejected:
            logger.info(
                f"Submitted {len(report.accepted)} payments, rejected {len(report.rejected)}"
            )
        return report

    def run_batch(
        self,
        threshold: ThresholdLike = MatchThreshold.MEDIUM,
        payments: Optional[Iterable[Any]] = None,
        progress_callback: Optional[Callable[[int, int, str], None]] = None,
        outcome_callback: Optional[Callable[[MatchResult], None]] = None,
        cancel_token: Optional[CancellationToken] = None
    ) -> BatchResult:
        """
        Run one reconciliation batch over the pending partition.

        Args:
            threshold: Preset, preset name or integer 1-100
            payments: Optional payments to submit before the run
            progress_callback: Optional callback(current, total, message)
            outcome_callback: Optional callback receiving each MatchResult
            cancel_token: Optional cooperative cancellation token

        Returns:
            BatchResult; submission rejects appear in its errors
        """
        report = self.submit_payments(payments) if payments is not None else SubmissionReport()

        result = self.processor.process_batch(
            self.ledger,
            self.account_holders,
            threshold=threshold,
            progress_callback=progress_callback,
            outcome_callback=outcome_callback,
            cancel_token=cancel_token,
        )

        for error in report.rejected:
            result.add_error(error)
        return result

    def manually_assign(self, payment_id: str, account_holder_id: str) -> MatchResult:
        """Reassign a flagged payment to an account holder (confidence 100, source manual)."""
        return self.manual_override.manually_assign(
            payment_id, account_holder_id, self.account_holders
        )

    def summary(self) -> LedgerSummary:
        return self.ledger.summary()

    def events(self) -> Tuple[ClassificationEvent, ...]:
        return self.ledger.events()

    def results(self, status: Optional[MatchStatus] = None) -> List[MatchResult]:
        """Classified results, optionally limited to one partition."""
        if status == MatchStatus.RECONCILED:
            return self.ledger.reconciled_results()
        if status == MatchStatus.FLAGGED:
            return self.ledger.flagged_results()
        if status == MatchStatus.PENDING:
            return []
        return self.ledger.reconciled_results() + self.ledger.flagged_results()

    def pending_payments(self) -> List[PaymentRecord]:
        return self.ledger.pending_payments()

    @staticmethod
    def _item_label(item: Any, index: int) -> str:
        if isinstance(item, PaymentRecord):
            return item.payment_id
        if isinstance(item, dict):
            value = item.get("payment_id", item.get("id"))
            if value is not None and str(value).strip():
                return str(value)
        return f"item[{index}]"
