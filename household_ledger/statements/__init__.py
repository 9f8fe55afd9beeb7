"""Credit card statement periods and lifecycle."""

from household_ledger.statements.period import calculate_period, closing_date, next_period
from household_ledger.statements.manager import StatementManager

__all__ = [
    "StatementManager",
    "calculate_period",
    "closing_date",
    "next_period",
]
