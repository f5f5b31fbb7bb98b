import logging
import sys
from pathlib import Path
from typing import Optional

from planner.cli import BudgetPlannerCLI, read_positive_amount
from planner.errors import BudgetLoadError
from planner.models import Budget
from planner.storage import load_budget


def setup_logging(level=logging.WARNING):
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )


def initialize_budget() -> Budget:
    weekly = read_positive_amount("Enter your weekly budget: ")
    return Budget(weekly_budget=weekly)


def startup_budget(path: Optional[Path] = None) -> Optional[Budget]:
    """Load the saved budget, falling back to a fresh one.

    Returns None when the saved file is unreadable and the user declines
    to start over, so the file is left as it is.
    """
    try:
        budget = load_budget(path)
    except BudgetLoadError as e:
        print(f"Error loading saved budget: {e}")
        answer = input("Start a fresh budget? (y/n) ").strip().lower()
        if answer not in ("y", "yes"):
            print("Leaving the saved file untouched. Goodbye!")
            return None
        return initialize_budget()

    if budget is None:
        return initialize_budget()

    print(f"✓ Loaded {len(budget.expenses)} expenses")
    return budget


def main(path: Optional[Path] = None) -> int:
    setup_logging()
    try:
        budget = startup_budget(path)
    except EOFError:
        print("\nNo input. Goodbye!")
        return 1
    if budget is None:
        return 1

    BudgetPlannerCLI(budget, path).cmdloop()
    return 0


if __name__ == "__main__":
    sys.exit(main())
