from __future__ import annotations
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import ClassVar, List, Literal

from dateutil.relativedelta import relativedelta, MO


TransactionKind = Literal["expense"]


def week_start_for(day: date) -> date:
    """Monday of the week containing day"""
    return day + relativedelta(weekday=MO(-1))


@dataclass
class Transaction:
    description: str
    amount: Decimal
    t_date: date = field(default_factory=date.today)

    kind: ClassVar[TransactionKind]

    def __str__(self):
        return f"{self.description}: £{self.amount:.2f}"


@dataclass
class Expense(Transaction):
    kind: ClassVar[TransactionKind] = "expense"


TRANSACTION_KINDS: dict[str, type[Transaction]] = {
    Expense.kind: Expense,
}


@dataclass
class Budget:
    weekly_budget: Decimal
    expenses: List[Expense] = field(default_factory=list)
    week_start: date = field(default_factory=lambda: week_start_for(date.today()))
