"""Balance ledger, transaction service and reconciliation."""

from household_ledger.ledger.balance import BalanceLedger, to_cents, transfer_credit_amount
from household_ledger.ledger.reconciliation import ReconciliationService
from household_ledger.ledger.transactions import TransactionService

__all__ = [
    "BalanceLedger",
    "ReconciliationService",
    "TransactionService",
    "to_cents",
    "transfer_credit_amount",
]
