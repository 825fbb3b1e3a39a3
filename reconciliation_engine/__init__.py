"""
Payment Reconciliation Engine.

Assigns incoming, unlabeled payments to account holders (tenants) with a
calibrated confidence and routes low-confidence matches to human review.

Main Components:
    - records: Payment and account-holder records with boundary validation
    - config: Matching configuration and threshold presets
    - matching: Rule-cascade Match Scorer
    - classification: Threshold-based Classification Policy
    - ledger: Reconciliation Ledger state machine and audit trail
    - override: Manual Override for flagged payments
"""

from .records.payment_records import (
    InvalidRecordError,
    PaymentChannel,
    PaymentRecord,
    AccountHolder,
    build_directory,
)

from .config.matching_config import (
    MATCHING_CONFIG,
    THRESHOLD_PRESETS,
    DEFAULT_THRESHOLD,
)

from .matching.match_scorer import (
    MatchScorer,
    MatchCandidate,
    MatchRule,
)

from .classification.policy import (
    MatchStatus,
    MatchThreshold,
    ClassificationPolicy,
    confidence_band,
)

from .ledger.reconciliation_ledger import (
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

from .override.manual_override import (
    ManualOverride,
    UnknownAccountHolderError,
)


__version__ = "1.0.0"
__all__ = [
    # Records
    "InvalidRecordError",
    "PaymentChannel",
    "PaymentRecord",
    "AccountHolder",
    "build_directory",
    # Configuration
    "MATCHING_CONFIG",
    "THRESHOLD_PRESETS",
    "DEFAULT_THRESHOLD",
    # Matching
    "MatchScorer",
    "MatchCandidate",
    "MatchRule",
    # Classification
    "MatchStatus",
    "MatchThreshold",
    "ClassificationPolicy",
    "confidence_band",
    # Ledger
    "LedgerError",
    "DuplicatePaymentError",
    "UnknownPaymentError",
    "InvalidTransitionError",
    "ConcurrentClassificationError",
    "PaymentInFlightError",
    "EventSource",
    "MatchResult",
    "ClassificationEvent",
    "LedgerSummary",
    "ReconciliationLedger",
    "replay_events",
    # Manual override
    "ManualOverride",
    "UnknownAccountHolderError",
]
