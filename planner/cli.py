import cmd
from decimal import Decimal
from pathlib import Path
from typing import Optional

from planner.errors import BudgetSaveError, InvalidAmountError
from planner.logic import add_expense, budget_summary, parse_amount
from planner.models import Budget
from planner.storage import save_budget


CURRENCY = "£"
OPTIONS = ("1", "2", "3")

MENU = """
Budget Planner Options:
1. Add Expense
2. View Budget Summary
3. Save and Exit"""


def money(amount: Decimal) -> str:
    return f"{CURRENCY}{amount:.2f}"


def read_positive_amount(prompt: str) -> Decimal:
    """Keep asking until the user types a number greater than zero"""
    text = input(prompt)
    while True:
        try:
            return parse_amount(text)
        except InvalidAmountError:
            text = input("Invalid input. Enter a positive decimal value: ")


def render_summary(summary: dict) -> str:
    week = summary["week"]
    lines = [
        f"\n{' Week ' + week['start'] + ' to ' + week['end'] + ' ':-^50}",
        f"Weekly Budget: {money(summary['weekly_budget'])}",
        "Expenses:"
    ]

    if summary["expenses"]:
        for e in summary["expenses"]:
            lines.append(f"  {e['t_date']}  {e['description']}: {money(e['amount'])}")
    else:
        lines.append("  (none recorded)")

    remaining = summary["totals"]["remaining"]
    lines.append(f"Total Expenses: {money(summary['totals']['expenses'])}")
    lines.append(f"Remaining Budget: {money(remaining)}")

    if remaining < 0:
        lines.append(f"\nNote: Over budget by {money(-remaining)}")
    elif week["daily_allowance"] is not None:
        lines.append(f"\nDays left: {week['days_left']} ({money(week['daily_allowance'])} per day)")
    else:
        lines.append("\nNote: This budget week has ended")

    return "\n".join(lines)


class BudgetPlannerCLI(cmd.Cmd):
    prompt = "Select an option: "

    def __init__(self, budget: Budget, data_path: Optional[Path] = None):
        super().__init__()
        self.budget = budget
        self.data_path = data_path

    # ===== LOOP HOOKS =====
    def preloop(self):
        print(MENU)

    def postcmd(self, stop, line):
        if not stop:
            print(MENU)
        return stop

    def cmdloop(self, intro=None):
        """Run the menu until option 3 or end of input"""
        self.preloop()
        stop = False
        while not stop:
            try:
                line = input(self.prompt)
            except EOFError:
                print("\nExiting without saving.")
                break
            line = self.precmd(line)
            stop = self.onecmd(line)
            stop = self.postcmd(stop, line)
        self.postloop()

    def onecmd(self, line):
        # only a bare option number is accepted, so "help", "EOF" or "3 now" are rejected
        if line.strip() not in OPTIONS:
            self.default(line)
            return False
        try:
            return super().onecmd(line)
        except Exception as e:
            print(f"Error: {e}")
            return False

    def default(self, line):
        print("Invalid option. Try again.")

    # ===== MENU OPTIONS =====
    def do_1(self, arg):
        """Add Expense"""
        description = input("Enter expense description: ")
        amount = read_positive_amount("Enter expense amount: ")
        add_expense(self.budget, description, amount)
        print("Expense added successfully.")

    def do_2(self, arg):
        """View Budget Summary"""
        print(render_summary(budget_summary(self.budget)))

    def do_3(self, arg):
        """Save and Exit"""
        try:
            path = save_budget(self.budget, self.data_path)
        except BudgetSaveError as e:
            print(f"Error: {e}")
            print("Budget was NOT saved. Choose 3 to try again.")
            return False

        print(f"✓ Saved {len(self.budget.expenses)} expenses to '{path}'")
        print("Budget saved. Goodbye!")
        return True
