from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable

ZERO = Decimal("0")
CENT = Decimal("0.01")


@dataclass(frozen=True)
class LedgerEntry:
    amount: Decimal
    type: str


@dataclass(frozen=True)
class Summary:
    income: Decimal
    expense: Decimal
    balance: Decimal
    total_transactions: int

    def to_dict(self) -> dict:
        return {
            "income": float(self.income),
            "expense": float(self.expense),
            "balance": float(self.balance),
            "totalTransactions": self.total_transactions,
        }


def summarize(entries: Iterable[LedgerEntry]) -> Summary:
    """Totals income and expense entries.

    Each amount is rounded to cents before it is added, so the totals equal
    the sum of the stored amounts. An empty input yields an all-zero summary.
    """
    income = ZERO
    expense = ZERO
    count = 0
    for entry in entries:
        count += 1
        entry_type = entry.type.strip().lower()
        if entry_type == "income":
            income += _round(entry.amount)
        elif entry_type == "expense":
            expense += _round(entry.amount)

    income = _round(income)
    expense = _round(expense)
    return Summary(
        income=income,
        expense=expense,
        balance=_round(income - expense),
        total_transactions=count,
    )


def _round(amount: Decimal | float | int | str) -> Decimal:
    if not isinstance(amount, Decimal):
        amount = Decimal(str(amount))
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)
