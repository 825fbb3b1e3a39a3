"""
Reconciliation Batch Processor for pending payments.
Drives the pending partition through the Match Scorer, Classification Policy
and Ledger, sequentially or on a thread pool, with cooperative cancellation.
"""

import logging
import threading
import traceback
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, Iterable, List, Optional, Sequence

from reconciliation_engine.classification.policy import (
    ClassificationPolicy,
    MatchStatus,
    MatchThreshold,
    ThresholdLike,
)
from reconciliation_engine.ledger.reconciliation_ledger import (
    ClassificationEvent,
    ConcurrentClassificationError,
    InvalidTransitionError,
    MatchResult,
    ReconciliationLedger,
)
from reconciliation_engine.matching.match_scorer import MatchScorer
from reconciliation_engine.records.payment_records import AccountHolder

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


class CancellationToken:
    """Cooperative cancellation flag shared between a caller and a batch run."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


@dataclass
class ProcessingError:
    """Details of a payment that could not be processed or submitted."""
    payment_id: str
    error_type: str
    error_message: str
    timestamp: str = field(default_factory=lambda: datetime.now().isoformat())

    def to_dict(self) -> Dict:
        return {
            "payment_id": self.payment_id,
            "error_type": self.error_type,
            "error_message": self.error_message,
            "timestamp": self.timestamp,
        }


@dataclass
class BatchStats:
    """Statistics for one batch run."""
    total_payments: int = 0
    processed: int = 0
    reconciled: int = 0
    flagged: int = 0
    failed: int = 0
    skipped: int = 0

    # Timing
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None

    @property
    def processing_time(self) -> float:
        """Calculate total processing time in seconds."""
        if self.start_time and self.end_time:
            return (self.end_time - self.start_time).total_seconds()
        return 0.0

    @property
    def success_rate(self) -> float:
        """Share of processed payments reconciled automatically, as a percentage."""
        if self.processed == 0:
            return 0.0
        return (self.reconciled / self.processed) * 100

    def to_dict(self) -> Dict:
        return {
            "total_payments": self.total_payments,
            "processed": self.processed,
            "reconciled": self.reconciled,
            "flagged": self.flagged,
            "failed": self.failed,
            "skipped": self.skipped,
            "processing_time": round(self.processing_time, 3),
            "success_rate": round(self.success_rate, 1),
        }


@dataclass
class BatchResult:
    """Complete result of a batch run."""
    stats: BatchStats
    threshold: int
    results: List[MatchResult] = field(default_factory=list)
    errors: List[ProcessingError] = field(default_factory=list)
    skipped_payment_ids: List[str] = field(default_factory=list)
    error_summary: Dict[str, int] = field(default_factory=dict)
    cancelled: bool = False

    def add_error(self, error: ProcessingError) -> None:
        self.errors.append(error)
        self.error_summary[error.error_type] = self.error_summary.get(error.error_type, 0) + 1

    def to_dict(self) -> Dict:
        return {
            "threshold": self.threshold,
            "cancelled": self.cancelled,
            "stats": self.stats.to_dict(),
            "results": [r.to_dict() for r in self.results],
            "errors": [e.to_dict() for e in self.errors],
            "skipped_payment_ids": list(self.skipped_payment_ids),
            "error_summary": dict(self.error_summary),
        }


@dataclass
class _ItemOutcome:
    payment_id: str
    result: Optional[MatchResult] = None
    error: Optional[ProcessingError] = None
    skipped: bool = False


class BatchProcessor:
    """Batch processor for pending payments."""

    def __init__(
        self,
        scorer: Optional[MatchScorer] = None,
        max_workers: int = 1
    ):
        """
        Initialize the batch processor.

        Args:
            scorer: Match scorer to use (default configuration if omitted)
            max_workers: 1 processes payments sequentially; more uses a thread pool
        """
        if max_workers < 1:
            raise ValueError(f"max_workers must be at least 1, got {max_workers}")

        self.scorer = scorer or MatchScorer()
        self.max_workers = max_workers

        logger.info(f"Initialized batch processor: max_workers={max_workers}")

    def process_batch(
        self,
        ledger: ReconciliationLedger,
        account_holders: Sequence[AccountHolder],
        threshold: ThresholdLike = MatchThreshold.MEDIUM,
        progress_callback: Optional[Callable[[int, int, str], None]] = None,
        outcome_callback: Optional[Callable[[MatchResult], None]] = None,
        cancel_token: Optional[CancellationToken] = None
    ) -> BatchResult:
        """
        Classify every payment that is pending when the run starts.

        Args:
            ledger: Ledger holding the pending partition
            account_holders: Directory snapshot (frozen for the run)
            threshold: Confidence threshold for this run
            progress_callback: Optional callback(current, total, message)
            outcome_callback: Optional callback receiving each MatchResult
            cancel_token: Optional token; once cancelled no new payment starts

        Returns:
            BatchResult with per-payment outcomes and aggregate counts
        """
        policy = ClassificationPolicy(threshold)
        directory = tuple(account_holders)
        pending_ids = [p.payment_id for p in ledger.pending_payments()]

        stats = BatchStats(
            total_payments=len(pending_ids),
            start_time=datetime.now()
        )
        batch = BatchResult(stats=stats, threshold=policy.threshold)

        if not pending_ids:
            stats.end_time = datetime.now()
            logger.info("No pending payments; batch is a no-op")
            return batch

        logger.info(
            f"Starting reconciliation of {len(pending_ids)} payments "
            f"(threshold={policy.threshold}, directory={len(directory)} holders)"
        )

        completed = 0
        for outcome in self._run(ledger, pending_ids, directory, policy, cancel_token):
            self._record_outcome(batch, outcome)
            if outcome.skipped:
                continue

            completed += 1
            if outcome.result is not None and outcome_callback:
                self._notify(outcome_callback, outcome.result)
            if progress_callback:
                self._notify(
                    progress_callback, completed, len(pending_ids),
                    self._progress_message(outcome)
                )

        stats.end_time = datetime.now()
        batch.cancelled = bool(cancel_token and cancel_token.cancelled)

        logger.info(
            f"Reconciliation complete: {stats.reconciled} reconciled, {stats.flagged} flagged, "
            f"{stats.failed} failed, {stats.skipped} skipped of {stats.total_payments} "
            f"(success rate: {stats.success_rate:.0f}%, time: {stats.processing_time:.2f}s)"
        )
        if batch.cancelled:
            logger.warning(
                f"Batch cancelled; {stats.skipped} payments left pending for a later run"
            )

        return batch

    def _run(
        self,
        ledger: ReconciliationLedger,
        pending_ids: List[str],
        directory: Sequence[AccountHolder],
        policy: ClassificationPolicy,
        cancel_token: Optional[CancellationToken]
    ) -> Iterable[_ItemOutcome]:
        """Yield one outcome per payment, sequentially or from the pool."""
        if self.max_workers == 1:
            for payment_id in pending_ids:
                yield self._process_single_payment(
                    ledger, payment_id, directory, policy, cancel_token
                )
            return

        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            futures = [
                executor.submit(
                    self._process_single_payment,
                    ledger, payment_id, directory, policy, cancel_token
                )
                for payment_id in pending_ids
            ]
            for future in as_completed(futures):
                yield future.result()

    def _process_single_payment(
        self,
        ledger: ReconciliationLedger,
        payment_id: str,
        directory: Sequence[AccountHolder],
        policy: ClassificationPolicy,
        cancel_token: Optional[CancellationToken]
    ) -> _ItemOutcome:
        """Claim, score and classify one payment."""
        if cancel_token and cancel_token.cancelled:
            return _ItemOutcome(payment_id=payment_id, skipped=True)

        try:
            with ledger.claim(payment_id) as payment:
                candidate = self.scorer.score(payment, directory)
                result = ledger.apply_automatic_result(payment_id, candidate, policy)

            logger.debug(
                f"Payment {payment_id}: {result.status.value} "
                f"(confidence={result.confidence}, holder={result.account_holder_id})"
            )
            return _ItemOutcome(payment_id=payment_id, result=result)

        except ConcurrentClassificationError as e:
            logger.warning(f"Concurrent classification rejected for {payment_id}: {e}")
            return _ItemOutcome(
                payment_id=payment_id,
                error=ProcessingError(
                    payment_id=payment_id,
                    error_type="CONCURRENT_CLASSIFICATION",
                    error_message=str(e)
                )
            )

        except InvalidTransitionError as e:
            logger.warning(f"Payment {payment_id} no longer pending: {e}")
            return _ItemOutcome(
                payment_id=payment_id,
                error=ProcessingError(
                    payment_id=payment_id,
                    error_type="INVALID_TRANSITION",
                    error_message=str(e)
                )
            )

        except Exception as e:
            logger.error(f"Processing error for payment {payment_id}: {traceback.format_exc()}")
            return _ItemOutcome(
                payment_id=payment_id,
                error=ProcessingError(
                    payment_id=payment_id,
                    error_type="PROCESSING_ERROR",
                    error_message=f"{type(e).__name__}: {str(e)}"
                )
            )

    def _record_outcome(self, batch: BatchResult, outcome: _ItemOutcome) -> None:
        stats = batch.stats

        if outcome.skipped:
            stats.skipped += 1
            batch.skipped_payment_ids.append(outcome.payment_id)
            return

        stats.processed += 1
        if outcome.error is not None:
            stats.failed += 1
            batch.add_error(outcome.error)
            return

        batch.results.append(outcome.result)
        if outcome.result.status == MatchStatus.RECONCILED:
            stats.reconciled += 1
        else:
            stats.flagged += 1

    def _notify(self, callback: Callable, *args) -> None:
        """Invoke a caller callback; a failing callback never aborts the batch."""
        try:
            callback(*args)
        except Exception:
            logger.error(f"Batch callback {callback!r} failed: {traceback.format_exc()}")

    def _progress_message(self, outcome: _ItemOutcome) -> str:
        if outcome.result is not None:
            return f"{outcome.payment_id}: {outcome.result.status.value}"
        return f"{outcome.payment_id}: {outcome.error.error_type}"

    def results_to_dataframe(self, results: List[MatchResult]):
        """
        Convert match results to a pandas DataFrame.

        Args:
            results: List of MatchResult objects

        Returns:
            pandas DataFrame
        """
        import pandas as pd

        rows = []
        for result in results:
            rows.append({
                "Payment ID": result.payment_id,
                "Status": result.status.value,
                "Confidence": result.confidence,
                "Account Holder ID": result.account_holder_id or "",
                "Reason": result.reason,
                "Source": result.source.value,
            })

        return pd.DataFrame(
            rows,
            columns=["Payment ID", "Status", "Confidence", "Account Holder ID", "Reason", "Source"]
        )

    def events_to_dataframe(self, events: Iterable[ClassificationEvent]):
        """
        Convert the classification event stream to a pandas DataFrame.

        Args:
            events: ClassificationEvent objects in log order

        Returns:
            pandas DataFrame
        """
        import pandas as pd

        rows = []
        for event in events:
            rows.append({
                "Event ID": event.event_id,
                "Payment ID": event.payment_id,
                "Prior Status": event.prior_status.value,
                "New Status": event.new_status.value,
                "Confidence": event.confidence,
                "Source": event.source.value,
                "Account Holder ID": event.account_holder_id or "",
                "Reason": event.reason,
                "Timestamp": event.timestamp,
            })

        return pd.DataFrame(
            rows,
            columns=[
                "Event ID", "Payment ID", "Prior Status", "New Status", "Confidence",
                "Source", "Account Holder ID", "Reason", "Timestamp",
            ]
        )

    def errors_to_dataframe(self, errors: List[ProcessingError]):
        """
        Convert processing errors to a pandas DataFrame.

        Args:
            errors: List of ProcessingError objects

        Returns:
            pandas DataFrame
        """
        import pandas as pd

        rows = []
        for error in errors:
            row = {
                "Payment ID": error.payment_id,
                "Error Type": error.error_type,
                "Error Message": error.error_message,
                "Timestamp": error.timestamp,
            }
            rows.append(row)

        return pd.DataFrame(rows, columns=["Payment ID", "Error Type", "Error Message", "Timestamp"])
