"""
Reconciliation Ledger.

Owns the three payment partitions (pending, reconciled, flagged) and the
append-only log of classification events. Partition membership changes only
through the transition operations below, and every transition appends exactly
one ClassificationEvent inside the same critical section.

Valid transitions:
    pending  -> reconciled   (automatic)
    pending  -> flagged      (automatic)
    flagged  -> reconciled   (manual override, terminal)
"""

import logging
import threading
import uuid
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import Callable, Dict, Iterable, Iterator, List, Optional, Tuple

from ..classification.policy import ClassificationPolicy, MatchStatus, confidence_band
from ..config.matching_config import MANUAL_OVERRIDE_CONFIDENCE, MANUAL_OVERRIDE_REASON
from ..matching.match_scorer import MatchCandidate
from ..records.payment_records import PaymentRecord

logger = logging.getLogger(__name__)


class LedgerError(Exception):
    """Base class for ledger failures."""
    pass


class DuplicatePaymentError(LedgerError):
    """Raised when a payment id is submitted twice."""
    pass


class UnknownPaymentError(LedgerError):
    """Raised when a payment id was never submitted."""
    pass


class InvalidTransitionError(LedgerError):
    """Raised when a transition is not allowed from the payment's current status."""

    def __init__(self, payment_id: str, current: MatchStatus, attempted: str):
        self.payment_id = payment_id
        self.current = current
        self.attempted = attempted
        super().__init__(
            f"Invalid transition for payment {payment_id}: "
            f"cannot apply {attempted} from '{current.value}'"
        )


class ConcurrentClassificationError(LedgerError):
    """Raised when a payment is already being classified by another worker."""
    pass


class PaymentInFlightError(ConcurrentClassificationError):
    """Raised when a manual override targets a payment that is mid-classification."""
    pass


class EventSource(Enum):
    """Origin of a classification decision."""
    AUTOMATIC = "automatic"
    MANUAL = "manual"


@dataclass(frozen=True)
class MatchResult:
    """Classification outcome attached to a payment."""
    payment_id: str
    status: MatchStatus
    confidence: int
    account_holder_id: Optional[str]
    reason: str
    source: EventSource

    def to_dict(self) -> Dict:
        return {
            "payment_id": self.payment_id,
            "status": self.status.value,
            "confidence": self.confidence,
            "confidence_band": confidence_band(self.confidence),
            "account_holder_id": self.account_holder_id,
            "reason": self.reason,
            "source": self.source.value,
        }


@dataclass(frozen=True)
class ClassificationEvent:
    """One entry of the append-only audit trail."""
    event_id: str
    payment_id: str
    prior_status: MatchStatus
    new_status: MatchStatus
    confidence: int
    source: EventSource
    timestamp: datetime
    account_holder_id: Optional[str] = None
    reason: str = ""

    def to_dict(self) -> Dict:
        return {
            "event_id": self.event_id,
            "payment_id": self.payment_id,
            "prior_status": self.prior_status.value,
            "new_status": self.new_status.value,
            "confidence": self.confidence,
            "source": self.source.value,
            "timestamp": self.timestamp.isoformat(),
            "account_holder_id": self.account_holder_id,
            "reason": self.reason,
        }


@dataclass(frozen=True)
class LedgerSummary:
    """Aggregate counts derived from the ledger partitions."""
    unprocessed: int
    reconciled: int
    flagged: int
    total_submitted: int

    @property
    def reconciliation_rate(self) -> int:
        """Reconciled share of everything submitted, as a rounded percentage."""
        if self.total_submitted == 0:
            return 0
        rate = Decimal(self.reconciled) * 100 / Decimal(self.total_submitted)
        return int(rate.quantize(Decimal("1"), rounding=ROUND_HALF_UP))

    def to_dict(self) -> Dict:
        return {
            "unprocessed": self.unprocessed,
            "reconciled": self.reconciled,
            "flagged": self.flagged,
            "total_submitted": self.total_submitted,
            "reconciliation_rate": self.reconciliation_rate,
        }


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ReconciliationLedger:
    """Thread-safe owner of payment state and classification history."""

    def __init__(self, clock: Optional[Callable[[], datetime]] = None):
        self._lock = threading.RLock()
        self._clock = clock or _utc_now

        # insertion-ordered; keys are payment ids
        self._payments: Dict[str, PaymentRecord] = {}
        self._pending: Dict[str, PaymentRecord] = {}
        self._reconciled: Dict[str, MatchResult] = {}
        self._flagged: Dict[str, MatchResult] = {}

        self._events: List[ClassificationEvent] = []
        self._in_flight = set()

    # ==================== SUBMISSION ====================

    def submit(self, payment: PaymentRecord) -> None:
        """
        Add a payment to the pending partition.

        Raises:
            DuplicatePaymentError: If the id exists in any partition
        """
        if not isinstance(payment, PaymentRecord):
            raise TypeError(f"Expected PaymentRecord, got {type(payment).__name__}")

        with self._lock:
            if payment.payment_id in self._payments:
                raise DuplicatePaymentError(
                    f"Payment {payment.payment_id} has already been submitted"
                )
            self._payments[payment.payment_id] = payment
            self._pending[payment.payment_id] = payment

        logger.debug(f"Submitted payment {payment.payment_id}")

    # ==================== TRANSITIONS ====================

    @contextmanager
    def claim(self, payment_id: str) -> Iterator[PaymentRecord]:
        """
        Mark a pending payment as in-flight for the duration of the block.

        Raises:
            UnknownPaymentError: If the id was never submitted
            InvalidTransitionError: If the payment is no longer pending
            ConcurrentClassificationError: If another worker holds the claim
        """
        with self._lock:
            status = self._status_locked(payment_id)
            if payment_id in self._in_flight:
                raise ConcurrentClassificationError(
                    f"Payment {payment_id} is already being classified"
                )
            if status != MatchStatus.PENDING:
                raise InvalidTransitionError(payment_id, status, "automatic classification")
            self._in_flight.add(payment_id)
            payment = self._payments[payment_id]

        try:
            yield payment
        finally:
            with self._lock:
                self._in_flight.discard(payment_id)

    def apply_automatic_result(
        self,
        payment_id: str,
        candidate: MatchCandidate,
        policy: ClassificationPolicy
    ) -> MatchResult:
        """
        Record an automatic classification for a pending payment.

        The policy decides between reconciled and flagged from the candidate's
        confidence.

        Raises:
            UnknownPaymentError: If the id was never submitted
            InvalidTransitionError: If the payment is not pending
        """
        new_status = policy.classify(candidate.confidence)

        with self._lock:
            status = self._status_locked(payment_id)
            if status != MatchStatus.PENDING:
                raise InvalidTransitionError(payment_id, status, "automatic classification")

            result = MatchResult(
                payment_id=payment_id,
                status=new_status,
                confidence=candidate.confidence,
                account_holder_id=candidate.account_holder_id,
                reason=candidate.reason,
                source=EventSource.AUTOMATIC,
            )
            self._transition_locked(result, prior_status=MatchStatus.PENDING)

        return result

    def apply_manual_override(self, payment_id: str, account_holder_id: str) -> MatchResult:
        """
        Assign a flagged payment to an account holder by hand.

        Raises:
            UnknownPaymentError: If the id was never submitted
            PaymentInFlightError: If the payment is mid-classification
            InvalidTransitionError: If the payment is not flagged
        """
        with self._lock:
            status = self._status_locked(payment_id)
            if payment_id in self._in_flight:
                raise PaymentInFlightError(
                    f"Payment {payment_id} is being classified; retry the override later"
                )
            if status != MatchStatus.FLAGGED:
                raise InvalidTransitionError(payment_id, status, "manual override")

            result = MatchResult(
                payment_id=payment_id,
                status=MatchStatus.RECONCILED,
                confidence=MANUAL_OVERRIDE_CONFIDENCE,
                account_holder_id=account_holder_id,
                reason=MANUAL_OVERRIDE_REASON,
                source=EventSource.MANUAL,
            )
            self._transition_locked(result, prior_status=MatchStatus.FLAGGED)

        return result

    def _transition_locked(self, result: MatchResult, prior_status: MatchStatus) -> None:
        """Move the payment and append its event. Caller holds the lock."""
        event = ClassificationEvent(
            event_id=uuid.uuid4().hex,
            payment_id=result.payment_id,
            prior_status=prior_status,
            new_status=result.status,
            confidence=result.confidence,
            source=result.source,
            timestamp=self._clock(),
            account_holder_id=result.account_holder_id,
            reason=result.reason,
        )

        self._partition_locked(prior_status).pop(result.payment_id)
        self._partition_locked(result.status)[result.payment_id] = result
        self._events.append(event)

    # ==================== VIEWS ====================

    def status_of(self, payment_id: str) -> MatchStatus:
        with self._lock:
            return self._status_locked(payment_id)

    def get_payment(self, payment_id: str) -> PaymentRecord:
        with self._lock:
            self._status_locked(payment_id)
            return self._payments[payment_id]

    def get_result(self, payment_id: str) -> Optional[MatchResult]:
        """Latest MatchResult for a payment, or None while it is pending."""
        with self._lock:
            status = self._status_locked(payment_id)
            if status == MatchStatus.PENDING:
                return None
            return self._partition_locked(status)[payment_id]

    def is_in_flight(self, payment_id: str) -> bool:
        with self._lock:
            return payment_id in self._in_flight

    def pending_payments(self) -> List[PaymentRecord]:
        """Snapshot of the pending partition in submission order."""
        with self._lock:
            return list(self._pending.values())

    def reconciled_results(self) -> List[MatchResult]:
        with self._lock:
            return list(self._reconciled.values())

    def flagged_results(self) -> List[MatchResult]:
        with self._lock:
            return list(self._flagged.values())

    def events(self) -> Tuple[ClassificationEvent, ...]:
        with self._lock:
            return tuple(self._events)

    def summary(self) -> LedgerSummary:
        with self._lock:
            return LedgerSummary(
                unprocessed=len(self._pending),
                reconciled=len(self._reconciled),
                flagged=len(self._flagged),
                total_submitted=len(self._payments),
            )

    def __len__(self) -> int:
        with self._lock:
            return len(self._payments)

    def __contains__(self, payment_id: object) -> bool:
        with self._lock:
            return payment_id in self._payments

    # ==================== INTERNALS ====================

    def _status_locked(self, payment_id: str) -> MatchStatus:
        if payment_id in self._pending:
            return MatchStatus.PENDING
        if payment_id in self._reconciled:
            return MatchStatus.RECONCILED
        if payment_id in self._flagged:
            return MatchStatus.FLAGGED
        raise UnknownPaymentError(f"Unknown payment: {payment_id}")

    def _partition_locked(self, status: MatchStatus) -> Dict:
        if status == MatchStatus.PENDING:
            return self._pending
        if status == MatchStatus.RECONCILED:
            return self._reconciled
        return self._flagged


def replay_events(events: Iterable[ClassificationEvent]) -> Dict[str, MatchStatus]:
    """
    Rebuild the final status of every classified payment from an event stream.

    Raises:
        InvalidTransitionError: If an event's prior status does not match the
            status reached by the events before it
    """
    statuses: Dict[str, MatchStatus] = {}
    for event in events:
        current = statuses.get(event.payment_id, MatchStatus.PENDING)
        if current != event.prior_status:
            raise InvalidTransitionError(
                event.payment_id, current, f"replay of event {event.event_id}"
            )
        statuses[event.payment_id] = event.new_status
    return statuses
