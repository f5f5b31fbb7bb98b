from datetime import date
from dateutil.relativedelta import relativedelta
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Optional

from planner.errors import InvalidAmountError
from planner.models import Budget, Expense, week_start_for


CENT = Decimal("0.01")
# largest amount whose pence survive a trip through a JSON float
MAX_AMOUNT = Decimal("1000000000000")


def to_money(amount) -> Decimal:
    """Round to whole pence; rejects non-numbers and anything above MAX_AMOUNT"""
    try:
        value = Decimal(amount)
    except (InvalidOperation, TypeError, ValueError):
        raise InvalidAmountError(f"Not a valid amount: {amount!r}")

    if not value.is_finite():
        raise InvalidAmountError(f"Not a valid amount: {amount!r}")
    if abs(value) > MAX_AMOUNT:
        raise InvalidAmountError(f"Amount must not exceed {MAX_AMOUNT}.")
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def validate_amount(amount) -> Decimal:
    value = to_money(amount)
    if value <= 0:
        raise InvalidAmountError("Amount must be positive.")
    return value


def parse_amount(text: str) -> Decimal:
    """Parse a user-typed amount such as '12.50' or '£12.50'"""
    cleaned = (text or "").strip().lstrip("£").strip()
    if not cleaned:
        raise InvalidAmountError("No amount given")
    return validate_amount(cleaned)


def add_expense(
        budget: Budget,
        description: str,
        amount,
        t_date: Optional[date] = None,
) -> Expense:
    value = validate_amount(amount)
    expense = Expense(
        description=description,
        amount=value,
        t_date=t_date or date.today()
    )
    budget.expenses.append(expense)
    return expense


def total_expenses(budget: Budget) -> Decimal:
    return sum((e.amount for e in budget.expenses), Decimal("0"))


def remaining_budget(budget: Budget) -> Decimal:
    return budget.weekly_budget - total_expenses(budget)


def week_bounds(day: date) -> tuple[date, date]:
    start = week_start_for(day)
    return start, start + relativedelta(days=+6)


def budget_summary(budget: Budget, today: Optional[date] = None):
    today = today or date.today()
    start, end = week_bounds(budget.week_start)

    total = total_expenses(budget)
    remaining = remaining_budget(budget)

    # days left counts today and is zero once the week is over
    days_left = max((end - max(today, start)).days + 1, 0)
    daily_allowance = remaining / days_left if days_left else None

    return {
        "weekly_budget": budget.weekly_budget,
        "expenses": [
            {
                "description": e.description,
                "amount": e.amount,
                "t_date": e.t_date.isoformat()
            } for e in budget.expenses
        ],
        "totals": {
            "expenses": total,
            "remaining": remaining
        },
        "week": {
            "start": start.isoformat(),
            "end": end.isoformat(),
            "days_left": days_left,
            "daily_allowance": daily_allowance
        }
    }
