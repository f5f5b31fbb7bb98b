class BudgetError(Exception):
    """Base class for budget planner failures."""


class InvalidAmountError(BudgetError, ValueError):
    """Raised when a monetary amount is not a positive number."""


class BudgetSaveError(BudgetError, OSError):
    """Raised when the budget file cannot be written."""


class BudgetLoadError(BudgetError, ValueError):
    """Raised when the budget file exists but cannot be read back."""
