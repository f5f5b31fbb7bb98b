import json
import logging
import os
import stat
import tempfile
from datetime import date
from decimal import Decimal
from pathlib import Path
from typing import Optional

from planner.errors import BudgetLoadError, BudgetSaveError, InvalidAmountError
from planner.logic import to_money, validate_amount
from planner.models import Budget, TRANSACTION_KINDS, week_start_for


DATA_FILE = Path("budget_data.json")
FORMAT_VERSION = "1.0"

logger = logging.getLogger(__name__)


class EnhancedJSONEncoder(json.JSONEncoder):
    def default(self, obj):
        if isinstance(obj, date):
            return obj.isoformat()
        if isinstance(obj, Decimal):
            return float(obj)
        return super().default(obj)


def budget_to_dict(budget: Budget) -> dict:
    return {
        "version": FORMAT_VERSION,
        "weekly_budget": budget.weekly_budget,
        "week_start": budget.week_start,
        "expenses": [
            {
                "kind": e.kind,
                "description": e.description,
                "amount": e.amount,
                "t_date": e.t_date
            } for e in budget.expenses
        ]
    }


def budget_from_dict(data) -> Budget:
    if not isinstance(data, dict):
        raise BudgetLoadError("Budget data must be a JSON object")
    if "weekly_budget" not in data:
        raise BudgetLoadError("Missing field 'weekly_budget'")

    weekly = data["weekly_budget"]
    if isinstance(weekly, bool) or not isinstance(weekly, (int, Decimal)):
        raise BudgetLoadError(f"Invalid weekly budget: {weekly!r}")
    try:
        weekly = to_money(weekly)
    except InvalidAmountError as e:
        raise BudgetLoadError(f"Invalid weekly budget: {e}")

    week_start = _parse_date(data.get("week_start"), "week_start") or week_start_for(date.today())
    budget = Budget(weekly_budget=weekly, week_start=week_start)

    raw_expenses = data.get("expenses", [])
    if not isinstance(raw_expenses, list):
        raise BudgetLoadError("Field 'expenses' must be a list")

    for i, e_data in enumerate(raw_expenses):
        if not isinstance(e_data, dict):
            raise BudgetLoadError(f"Expense #{i + 1} must be a JSON object")

        kind = e_data.get("kind", "expense")
        if not isinstance(kind, str):
            raise BudgetLoadError(f"Expense #{i + 1} has a non-text kind {kind!r}")
        cls = TRANSACTION_KINDS.get(kind)
        if cls is None:
            raise BudgetLoadError(f"Expense #{i + 1} has unknown kind {kind!r}")

        try:
            description = e_data["description"]
            amount = e_data["amount"]
        except KeyError as e:
            raise BudgetLoadError(f"Expense #{i + 1} is missing field {e}")

        if not isinstance(description, str):
            raise BudgetLoadError(f"Expense #{i + 1} has a non-text description")
        if isinstance(amount, bool) or not isinstance(amount, (int, Decimal)):
            raise BudgetLoadError(f"Expense #{i + 1} has invalid amount {amount!r}")
        try:
            amount = validate_amount(amount)
        except InvalidAmountError as e:
            raise BudgetLoadError(f"Expense #{i + 1}: {e}")

        budget.expenses.append(cls(
            description=description,
            amount=amount,
            t_date=_parse_date(e_data.get("t_date"), "t_date") or week_start
        ))

    return budget


def _parse_date(value, field_name: str) -> Optional[date]:
    if value is None:
        return None
    try:
        return date.fromisoformat(value)
    except (TypeError, ValueError):
        raise BudgetLoadError(f"Field '{field_name}' must be a YYYY-MM-DD date, got {value!r}")


def _file_mode(path: Path) -> int:
    """Mode for the new file: keep the old file's, else what umask allows"""
    if path.exists():
        return stat.S_IMODE(path.stat().st_mode)
    umask = os.umask(0)
    os.umask(umask)
    return 0o666 & ~umask


def save_budget(budget: Budget, path: Optional[Path] = None) -> Path:
    """Write the budget as indented JSON, replacing the file atomically"""
    path = Path(path) if path else DATA_FILE
    json_str = json.dumps(budget_to_dict(budget), cls=EnhancedJSONEncoder, indent=2)

    tmp_name = None
    try:
        fd, tmp_name = tempfile.mkstemp(
            dir=path.parent,
            prefix=f".{path.name}.",
            suffix=".tmp"
        )
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(json_str)
        os.chmod(tmp_name, _file_mode(path))
        os.replace(tmp_name, path)
    except OSError as e:
        if tmp_name and os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise BudgetSaveError(f"Could not save budget to {path}: {e}") from e

    logger.debug("Saved %d expenses to %s", len(budget.expenses), path)
    return path


def load_budget(path: Optional[Path] = None) -> Optional[Budget]:
    """Read the budget file; None means there is nothing saved yet"""
    path = Path(path) if path else DATA_FILE
    if not path.exists():
        logger.debug("No budget file at %s", path)
        return None

    try:
        data = json.loads(path.read_text(encoding="utf-8"), parse_float=Decimal)
    except OSError as e:
        raise BudgetLoadError(f"Could not read {path}: {e}") from e
    except ValueError as e:
        logger.warning("Malformed budget file %s: %s", path, e)
        raise BudgetLoadError(f"{path} is not valid JSON: {e}") from e

    try:
        budget = budget_from_dict(data)
    except BudgetLoadError as e:
        logger.warning("Malformed budget file %s: %s", path, e)
        raise

    logger.debug("Loaded %d expenses from %s", len(budget.expenses), path)
    return budget
