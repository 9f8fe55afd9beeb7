"""
Error Taxonomy for the Ledger Core

DESIGN DECISION: Every rejection has a type the caller can act on:
- ValidationError: bad input, the caller can correct it and retry
- ReferentialError: a wallet/statement/category is missing (fatal, propagate)
- PaymentRejectedError: an expected business-rule rejection (recoverable)

Non-fatal advice (e.g. "below minimum payment") is NOT an exception.
It is a PolicyWarning value attached to a successful result.
"""

from typing import Optional


class LedgerError(Exception):
    """Base exception for ledger operations."""
    pass


class ValidationError(LedgerError):
    """
    Input is invalid but caller-correctable.

    Carries the offending field when one can be named.
    """

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class ReferentialError(LedgerError):
    """A referenced record does not exist."""

    def __init__(self, collection: str, record_id: str):
        super().__init__(f"{collection} record not found: {record_id}")
        self.collection = collection
        self.record_id = record_id


class PaymentRejectedError(LedgerError):
    """A payment broke a business rule and was not applied."""
    pass


class InsufficientFundsError(PaymentRejectedError):
    """Funding wallet balance is below the requested amount."""
    pass


class InsufficientCreditError(PaymentRejectedError):
    """Funding credit card has less available credit than requested."""
    pass
