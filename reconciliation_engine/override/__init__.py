"""
Manual Override Module for the Payment Reconciliation Engine.
"""

from .manual_override import ManualOverride, UnknownAccountHolderError

__all__ = [
    "ManualOverride",
    "UnknownAccountHolderError",
]
