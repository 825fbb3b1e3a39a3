"""
Ledger Module for the Payment Reconciliation Engine.

Holds payment partitions, the classification state machine and the audit trail.
"""

from .reconciliation_ledger import (
    LedgerError,
    DuplicatePaymentError,
    UnknownPaymentError,
    InvalidTransitionError,
    ConcurrentClassificationError,
    PaymentInFlightError,
    EventSource,
    MatchResult,
    ClassificationEvent,
    LedgerSummary,
    ReconciliationLedger,
    replay_events,
)

__all__ = [
    # Errors
    "LedgerError",
    "DuplicatePaymentError",
    "UnknownPaymentError",
    "InvalidTransitionError",
    "ConcurrentClassificationError",
    "PaymentInFlightError",
    # Records
    "EventSource",
    "MatchResult",
    "ClassificationEvent",
    "LedgerSummary",
    # Ledger
    "ReconciliationLedger",
    "replay_events",
]
