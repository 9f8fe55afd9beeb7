"""Credit card payment processing."""

from household_ledger.payments.categories import category_id_for, find_or_create_category
from household_ledger.payments.processor import PaymentProcessor

__all__ = [
    "PaymentProcessor",
    "category_id_for",
    "find_or_create_category",
]
