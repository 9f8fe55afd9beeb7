"""
Household Ledger - Financial Core

Wallet balances, transactions, credit card statements, payments and
due-date alerts for a household-management application.

DESIGN PRINCIPLES:
1. A balance is always explainable by its transaction history
2. Validate first, mutate second; multi-step writes are all-or-nothing
3. No silent corrections: drift is reported, repairs are explicit
4. Every money-moving action is auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Household Ledger Team"
