"""
Records Module for the Payment Reconciliation Engine.

Payment and account-holder value types plus boundary validation.
"""

from .payment_records import (
    InvalidRecordError,
    PaymentChannel,
    PaymentRecord,
    AccountHolder,
    parse_channel,
    build_directory,
)

__all__ = [
    "InvalidRecordError",
    "PaymentChannel",
    "PaymentRecord",
    "AccountHolder",
    "parse_channel",
    "build_directory",
]
