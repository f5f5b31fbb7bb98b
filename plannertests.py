import unittest
import io
import json
import os
import tempfile
from datetime import date
from decimal import Decimal
from pathlib import Path
from unittest.mock import patch

from planner.errors import (
    BudgetError, InvalidAmountError, BudgetSaveError, BudgetLoadError
)
from planner.models import (
    Transaction, Expense, Budget, TRANSACTION_KINDS, week_start_for
)
from planner.logic import (
    add_expense, total_expenses, remaining_budget, budget_summary,
    week_bounds, parse_amount, MAX_AMOUNT
)
from planner.storage import (
    save_budget, load_budget, budget_to_dict, budget_from_dict, DATA_FILE
)
from planner.cli import BudgetPlannerCLI, read_positive_amount, render_summary, money
from planner.main import main, startup_budget


def run_session(budget, inputs, data_path=None):
    """Drive the shell with scripted input and return what it printed"""
    with patch("builtins.input", side_effect=inputs), \
            patch("sys.stdout", new_callable=io.StringIO) as out:
        BudgetPlannerCLI(budget, data_path).cmdloop()
    return out.getvalue()


class TestBudgetModel(unittest.TestCase):
    def setUp(self):
        self.budget = Budget(Decimal("100.00"))

    def test_expense_creation(self):
        """Test Expense dataclass"""
        exp = Expense("Groceries", Decimal("42.50"), date(2026, 10, 19))
        self.assertEqual(exp.description, "Groceries")
        self.assertEqual(exp.amount, Decimal("42.50"))
        self.assertEqual(exp.t_date, date(2026, 10, 19))
        self.assertEqual(exp.kind, "expense")
        self.assertIsInstance(exp, Transaction)
        self.assertEqual(str(exp), "Groceries: £42.50")

    def test_expense_kind_registry(self):
        self.assertIs(TRANSACTION_KINDS["expense"], Expense)

    def test_budget_defaults(self):
        """Fresh budget starts empty in the current week"""
        self.assertEqual(self.budget.expenses, [])
        self.assertEqual(self.budget.week_start, week_start_for(date.today()))
        self.assertEqual(self.budget.week_start.weekday(), 0)

    def test_weekly_budget_is_mutable(self):
        self.budget.weekly_budget = Decimal("80")
        add_expense(self.budget, "Lunch", Decimal("10"))
        self.assertEqual(remaining_budget(self.budget), Decimal("70"))

    def test_scenario_groceries_and_bus_pass(self):
        add_expense(self.budget, "Groceries", Decimal("42.50"))
        add_expense(self.budget, "Bus pass", Decimal("15.00"))

        self.assertEqual(total_expenses(self.budget), Decimal("57.50"))
        self.assertEqual(remaining_budget(self.budget), Decimal("42.50"))

        # Bad amount leaves the list alone
        with self.assertRaises(InvalidAmountError):
            add_expense(self.budget, "Bad", Decimal("-5"))
        self.assertEqual(len(self.budget.expenses), 2)

    def test_total_is_sum_in_call_order(self):
        amounts = ["0.10", "0.20", "3.33", "1000", "7.07"]
        for i, a in enumerate(amounts):
            add_expense(self.budget, f"item {i}", Decimal(a))

        self.assertEqual(total_expenses(self.budget), sum(Decimal(a) for a in amounts))
        self.assertEqual(
            [e.description for e in self.budget.expenses],
            [f"item {i}" for i in range(len(amounts))]
        )

    def test_empty_budget_totals(self):
        self.assertEqual(total_expenses(self.budget), Decimal("0"))
        self.assertEqual(remaining_budget(self.budget), Decimal("100.00"))

    def test_zero_and_negative_amounts_rejected(self):
        for bad in (Decimal("0"), Decimal("-5"), Decimal("-0.01"), 0, -5):
            with self.assertRaises(InvalidAmountError):
                add_expense(self.budget, "Bad", bad)
        self.assertEqual(self.budget.expenses, [])

    def test_invalid_amount_is_value_error(self):
        """Callers catching ValueError also see bad amounts"""
        with self.assertRaises(ValueError):
            add_expense(self.budget, "Bad", Decimal("0"))

    def test_non_finite_amounts_rejected(self):
        for bad in (Decimal("NaN"), Decimal("Infinity"), "abc", None):
            with self.assertRaises(InvalidAmountError):
                add_expense(self.budget, "Bad", bad)
        self.assertEqual(self.budget.expenses, [])

    def test_remaining_goes_negative(self):
        add_expense(self.budget, "Rent share", Decimal("90"))
        add_expense(self.budget, "Concert", Decimal("35.25"))
        self.assertEqual(remaining_budget(self.budget), Decimal("-25.25"))
        self.assertEqual(
            remaining_budget(self.budget),
            self.budget.weekly_budget - total_expenses(self.budget)
        )

    def test_add_expense_returns_expense_with_date(self):
        exp = add_expense(self.budget, "Coffee", Decimal("3.25"), date(2026, 10, 20))
        self.assertIs(self.budget.expenses[-1], exp)
        self.assertEqual(exp.t_date, date(2026, 10, 20))

        exp = add_expense(self.budget, "Tea", Decimal("2"))
        self.assertEqual(exp.t_date, date.today())

    def test_empty_description_allowed(self):
        add_expense(self.budget, "", Decimal("1"))
        self.assertEqual(self.budget.expenses[0].description, "")


class TestWeekAndSummary(unittest.TestCase):
    def test_week_bounds(self):
        # 2026-10-21 is a Wednesday
        self.assertEqual(week_bounds(date(2026, 10, 21)), (date(2026, 10, 19), date(2026, 10, 25)))
        # Monday and Sunday map to the same week
        self.assertEqual(week_bounds(date(2026, 10, 19))[0], date(2026, 10, 19))
        self.assertEqual(week_bounds(date(2026, 10, 25))[0], date(2026, 10, 19))
        # Across a month boundary
        self.assertEqual(week_bounds(date(2026, 11, 1)), (date(2026, 10, 26), date(2026, 11, 1)))

    def test_summary_structure(self):
        budget = Budget(Decimal("100.00"), week_start=date(2026, 10, 19))
        add_expense(budget, "Groceries", Decimal("42.50"), date(2026, 10, 19))
        add_expense(budget, "Bus pass", Decimal("15.00"), date(2026, 10, 20))

        result = budget_summary(budget, today=date(2026, 10, 21))

        self.assertEqual(result["weekly_budget"], Decimal("100.00"))
        self.assertEqual(
            [(e["description"], e["amount"]) for e in result["expenses"]],
            [("Groceries", Decimal("42.50")), ("Bus pass", Decimal("15.00"))]
        )
        self.assertEqual(result["expenses"][1]["t_date"], "2026-10-20")
        self.assertEqual(result["totals"]["expenses"], Decimal("57.50"))
        self.assertEqual(result["totals"]["remaining"], Decimal("42.50"))

        self.assertEqual(result["week"]["start"], "2026-10-19")
        self.assertEqual(result["week"]["end"], "2026-10-25")
        # Wednesday through Sunday
        self.assertEqual(result["week"]["days_left"], 5)
        self.assertEqual(result["week"]["daily_allowance"], Decimal("8.5"))

    def test_summary_after_week_ends(self):
        budget = Budget(Decimal("50"), week_start=date(2026, 10, 19))
        result = budget_summary(budget, today=date(2026, 11, 2))
        self.assertEqual(result["week"]["days_left"], 0)
        self.assertIsNone(result["week"]["daily_allowance"])

    def test_summary_before_week_starts(self):
        budget = Budget(Decimal("70"), week_start=date(2026, 10, 26))
        result = budget_summary(budget, today=date(2026, 10, 21))
        self.assertEqual(result["week"]["days_left"], 7)
        self.assertEqual(result["week"]["daily_allowance"], Decimal("10"))

    def test_summary_does_not_mutate(self):
        budget = Budget(Decimal("10"))
        add_expense(budget, "Snack", Decimal("2"))
        budget_summary(budget)
        budget_summary(budget)
        self.assertEqual(len(budget.expenses), 1)

    def test_render_summary(self):
        budget = Budget(Decimal("100"), week_start=date(2026, 10, 19))
        add_expense(budget, "Groceries", Decimal("42.5"), date(2026, 10, 19))
        text = render_summary(budget_summary(budget, today=date(2026, 10, 25)))

        self.assertIn("Weekly Budget: £100.00", text)
        self.assertIn("Groceries: £42.50", text)
        self.assertIn("Total Expenses: £42.50", text)
        self.assertIn("Remaining Budget: £57.50", text)
        self.assertIn("Days left: 1 (£57.50 per day)", text)

    def test_render_summary_overspent(self):
        budget = Budget(Decimal("10"), week_start=date(2026, 10, 19))
        add_expense(budget, "Dinner", Decimal("25"))
        text = render_summary(budget_summary(budget, today=date(2026, 10, 19)))
        self.assertIn("Over budget by £15.00", text)

    def test_render_summary_no_expenses(self):
        text = render_summary(budget_summary(Budget(Decimal("10"))))
        self.assertIn("(none recorded)", text)


class TestParseAmount(unittest.TestCase):
    def test_valid_inputs(self):
        self.assertEqual(parse_amount("12.50"), Decimal("12.50"))
        self.assertEqual(parse_amount("  7 "), Decimal("7"))
        self.assertEqual(parse_amount("£3.25"), Decimal("3.25"))
        self.assertEqual(parse_amount("0.01"), Decimal("0.01"))

    def test_invalid_inputs(self):
        for text in ("", "   ", "abc", "0", "-1", "-0.5", "nan", "inf", "1,000", "£", None,
                     "0.004", "1e-400", "1e400", "1000000000000.01"):
            with self.assertRaises(InvalidAmountError, msg=repr(text)):
                parse_amount(text)

    def test_rounds_to_pence(self):
        self.assertEqual(parse_amount("3.333"), Decimal("3.33"))
        self.assertEqual(parse_amount("0.005"), Decimal("0.01"))
        self.assertEqual(parse_amount("1e3"), Decimal("1000.00"))
        self.assertEqual(parse_amount(str(MAX_AMOUNT)), MAX_AMOUNT)

    def test_displayed_amount_can_be_typed_back(self):
        self.assertEqual(money(Decimal("1234567.5")), "£1234567.50")
        self.assertEqual(parse_amount(money(Decimal("1234567.5"))), Decimal("1234567.50"))

    def test_read_positive_amount_reprompts(self):
        with patch("builtins.input", side_effect=["abc", "-5", "0", "12.5"]) as fake_input, \
                patch("sys.stdout", new_callable=io.StringIO):
            value = read_positive_amount("Enter expense amount: ")

        self.assertEqual(value, Decimal("12.5"))
        self.assertEqual(fake_input.call_count, 4)
        self.assertEqual(fake_input.call_args_list[0].args[0], "Enter expense amount: ")
        self.assertEqual(
            fake_input.call_args_list[1].args[0],
            "Invalid input. Enter a positive decimal value: "
        )


class TestStorage(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.path = Path(self.tmp.name) / "budget_data.json"

    def tearDown(self):
        self.tmp.cleanup()

    def test_default_path(self):
        self.assertEqual(DATA_FILE, Path("budget_data.json"))

    def test_load_missing_file(self):
        self.assertIsNone(load_budget(self.path))

    def test_coffee_round_trip(self):
        budget = Budget(Decimal("50.00"))
        add_expense(budget, "Coffee", Decimal("3.25"))

        save_budget(budget, self.path)
        loaded = load_budget(self.path)

        self.assertEqual(loaded.weekly_budget, Decimal("50.00"))
        self.assertEqual(len(loaded.expenses), 1)
        self.assertEqual(loaded.expenses[0].description, "Coffee")
        self.assertEqual(loaded.expenses[0].amount, Decimal("3.25"))
        self.assertIsInstance(loaded.expenses[0], Expense)

    def test_round_trip_preserves_order_and_dates(self):
        budget = Budget(Decimal("120"), week_start=date(2026, 10, 19))
        add_expense(budget, "Groceries", Decimal("42.50"), date(2026, 10, 19))
        add_expense(budget, "Bus pass", Decimal("15.00"), date(2026, 10, 20))
        add_expense(budget, "Cinema", Decimal("9.99"), date(2026, 10, 22))

        save_budget(budget, self.path)
        loaded = load_budget(self.path)

        self.assertEqual(loaded, budget)
        self.assertEqual(total_expenses(loaded), Decimal("67.49"))

    def test_round_trip_empty_budget(self):
        budget = Budget(Decimal("75.5"))
        save_budget(budget, self.path)
        loaded = load_budget(self.path)
        self.assertEqual(loaded.weekly_budget, Decimal("75.5"))
        self.assertEqual(loaded.expenses, [])

    def test_file_is_indented_json(self):
        budget = Budget(Decimal("50"), week_start=date(2026, 10, 19))
        add_expense(budget, "Coffee", Decimal("3.25"), date(2026, 10, 19))
        save_budget(budget, self.path)

        text = self.path.read_text()
        self.assertIn("\n  ", text)

        data = json.loads(text)
        self.assertEqual(data["weekly_budget"], 50)
        self.assertEqual(data["week_start"], "2026-10-19")
        self.assertEqual(data["expenses"], [
            {"kind": "expense", "description": "Coffee", "amount": 3.25, "t_date": "2026-10-19"}
        ])

    def test_save_overwrites(self):
        self.path.write_text("old content")
        save_budget(Budget(Decimal("10")), self.path)
        self.assertEqual(load_budget(self.path).weekly_budget, Decimal("10"))
        # No temp files left behind
        self.assertEqual(os.listdir(self.tmp.name), ["budget_data.json"])

    def test_save_failure_raises(self):
        bad_path = Path(self.tmp.name) / "missing_dir" / "budget_data.json"
        with self.assertRaises(BudgetSaveError) as ctx:
            save_budget(Budget(Decimal("10")), bad_path)
        self.assertIsInstance(ctx.exception, OSError)
        self.assertIsInstance(ctx.exception, BudgetError)

    def test_load_minimal_file(self):
        """Files with only the core fields still load"""
        self.path.write_text(json.dumps({
            "weekly_budget": 100,
            "expenses": [{"description": "Groceries", "amount": 42.5}]
        }))
        loaded = load_budget(self.path)
        self.assertEqual(loaded.weekly_budget, Decimal("100"))
        self.assertEqual(loaded.expenses[0].amount, Decimal("42.5"))
        self.assertEqual(loaded.expenses[0].t_date, loaded.week_start)

    def test_load_malformed_json(self):
        self.path.write_text("{not json")
        with self.assertRaises(BudgetLoadError):
            load_budget(self.path)

    def test_load_bad_structures(self):
        bad_payloads = [
            [],
            {"expenses": []},
            {"weekly_budget": "lots", "expenses": []},
            {"weekly_budget": True, "expenses": []},
            {"weekly_budget": 10, "expenses": {}},
            {"weekly_budget": 10, "expenses": ["Coffee"]},
            {"weekly_budget": 10, "expenses": [{"description": "Coffee"}]},
            {"weekly_budget": 10, "expenses": [{"amount": 3}]},
            {"weekly_budget": 10, "expenses": [{"description": "Coffee", "amount": -3}]},
            {"weekly_budget": 10, "expenses": [{"description": "Coffee", "amount": "3"}]},
            {"weekly_budget": 10, "expenses": [{"description": 5, "amount": 3}]},
            {"weekly_budget": 10, "expenses": [{"kind": "income", "description": "Pay", "amount": 3}]},
            {"weekly_budget": 10, "week_start": "last monday", "expenses": []},
            {"weekly_budget": 10, "expenses": [{"description": "Coffee", "amount": 3, "t_date": 20261019}]},
            {"weekly_budget": 10, "expenses": [{"kind": [], "description": "a", "amount": 1}]},
            {"weekly_budget": 10, "expenses": [{"kind": {"name": "expense"}, "description": "a", "amount": 1}]},
        ]
        for payload in bad_payloads:
            self.path.write_text(json.dumps(payload))
            with self.assertRaises(BudgetLoadError, msg=repr(payload)):
                load_budget(self.path)

    def test_round_trip_odd_amounts(self):
        budget = Budget(parse_amount("1e3"))
        for text in ("12.345", "0.01", "999999999999.99", "1000000000000", "0.005"):
            add_expense(budget, text, parse_amount(text))

        save_budget(budget, self.path)
        loaded = load_budget(self.path)

        self.assertEqual(loaded, budget)
        self.assertEqual(
            [e.amount for e in loaded.expenses],
            [Decimal("12.35"), Decimal("0.01"), Decimal("999999999999.99"),
             Decimal("1000000000000"), Decimal("0.01")]
        )

    def test_load_out_of_range_numbers(self):
        for text in (
                '{"weekly_budget": 1e400, "expenses": []}',
                '{"weekly_budget": 10, "expenses": [{"description": "a", "amount": 1e-400}]}',
                '{"weekly_budget": 10, "expenses": [{"description": "a", "amount": 1e400}]}',
        ):
            self.path.write_text(text)
            with self.assertRaises(BudgetLoadError, msg=text):
                load_budget(self.path)

    @unittest.skipIf(os.name == "nt", "POSIX file modes")
    def test_save_keeps_file_mode(self):
        self.path.write_text("{}")
        os.chmod(self.path, 0o644)
        save_budget(Budget(Decimal("10")), self.path)
        self.assertEqual(self.path.stat().st_mode & 0o777, 0o644)

    @unittest.skipIf(os.name == "nt", "POSIX file modes")
    def test_new_file_follows_umask(self):
        umask = os.umask(0o022)
        try:
            save_budget(Budget(Decimal("10")), self.path)
        finally:
            os.umask(umask)
        self.assertEqual(self.path.stat().st_mode & 0o777, 0o644)

    def test_dict_round_trip(self):
        budget = Budget(Decimal("20"), week_start=date(2026, 10, 19))
        add_expense(budget, "Snack", Decimal("1.5"), date(2026, 10, 19))
        self.assertEqual(budget_from_dict(budget_to_dict(budget)), budget)


class TestShell(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.path = Path(self.tmp.name) / "budget_data.json"
        self.budget = Budget(Decimal("100.00"))

    def tearDown(self):
        self.tmp.cleanup()

    def test_menu_and_save_exit(self):
        output = run_session(self.budget, ["3"], self.path)
        self.assertIn("1. Add Expense", output)
        self.assertIn("2. View Budget Summary", output)
        self.assertIn("3. Save and Exit", output)
        self.assertIn("Budget saved. Goodbye!", output)
        self.assertTrue(self.path.exists())

    def test_add_expense_then_save(self):
        output = run_session(
            self.budget,
            ["1", "Groceries", "42.50", "1", "Bus pass", "nope", "15", "3"],
            self.path
        )
        self.assertEqual(output.count("Expense added successfully."), 2)

        loaded = load_budget(self.path)
        self.assertEqual(
            [(e.description, e.amount) for e in loaded.expenses],
            [("Groceries", Decimal("42.50")), ("Bus pass", Decimal("15"))]
        )

    def test_view_summary(self):
        add_expense(self.budget, "Groceries", Decimal("42.50"))
        output = run_session(self.budget, ["2", "3"], self.path)
        self.assertIn("Total Expenses: £42.50", output)
        self.assertIn("Remaining Budget: £57.50", output)

    def test_invalid_options(self):
        output = run_session(self.budget, ["4", "", "help", "add", "3"], self.path)
        self.assertEqual(output.count("Invalid option. Try again."), 4)
        self.assertEqual(self.budget.expenses, [])

    def test_options_with_extra_text_are_invalid(self):
        output = run_session(self.budget, ["3 please", "1 x", "2 now", "EOF", EOFError], self.path)
        self.assertEqual(output.count("Invalid option. Try again."), 4)
        self.assertNotIn("Goodbye!", output)
        self.assertNotIn("Remaining Budget", output)
        self.assertFalse(self.path.exists())

    def test_typed_eof_is_invalid(self):
        output = run_session(self.budget, ["EOF", "3"], self.path)
        self.assertIn("Invalid option. Try again.", output)
        self.assertNotIn("Exiting without saving.", output)
        self.assertIn("Budget saved. Goodbye!", output)
        self.assertTrue(self.path.exists())

    def test_errors_in_commands_do_not_end_loop(self):
        with patch("planner.cli.add_expense", side_effect=InvalidAmountError("Amount must be positive.")):
            output = run_session(self.budget, ["1", "Bad", "5", "3"], self.path)
        self.assertIn("Error: Amount must be positive.", output)
        self.assertIn("Budget saved. Goodbye!", output)

    def test_save_failure_keeps_loop_running(self):
        bad_path = Path(self.tmp.name) / "missing_dir" / "budget_data.json"
        with patch("builtins.input", side_effect=["3", "2", EOFError]), \
                patch("sys.stdout", new_callable=io.StringIO) as out:
            BudgetPlannerCLI(self.budget, bad_path).cmdloop()
        output = out.getvalue()

        self.assertIn("Budget was NOT saved", output)
        self.assertIn("Remaining Budget", output)
        self.assertNotIn("Goodbye!", output)

    def test_eof_exits_without_saving(self):
        with patch("builtins.input", side_effect=EOFError), \
                patch("sys.stdout", new_callable=io.StringIO) as out:
            BudgetPlannerCLI(self.budget, self.path).cmdloop()
        self.assertIn("Exiting without saving.", out.getvalue())
        self.assertFalse(self.path.exists())


class TestStartup(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.path = Path(self.tmp.name) / "budget_data.json"

    def tearDown(self):
        self.tmp.cleanup()

    def run_main(self, inputs):
        with patch("builtins.input", side_effect=inputs), \
                patch("sys.stdout", new_callable=io.StringIO) as out:
            code = main(self.path)
        return code, out.getvalue()

    def test_fresh_budget_prompt(self):
        code, output = self.run_main(["-1", "abc", "100", "3"])
        self.assertEqual(code, 0)
        self.assertIn("Budget saved. Goodbye!", output)
        self.assertEqual(load_budget(self.path).weekly_budget, Decimal("100"))

    def test_resumes_saved_budget(self):
        budget = Budget(Decimal("50.00"))
        add_expense(budget, "Coffee", Decimal("3.25"))
        save_budget(budget, self.path)

        code, output = self.run_main(["1", "Tea", "2.00", "3"])
        self.assertEqual(code, 0)
        self.assertIn("Loaded 1 expenses", output)

        loaded = load_budget(self.path)
        self.assertEqual([e.description for e in loaded.expenses], ["Coffee", "Tea"])
        self.assertEqual(remaining_budget(loaded), Decimal("44.75"))

    def test_corrupt_file_start_fresh(self):
        self.path.write_text("{broken")
        with patch("sys.stdout", new_callable=io.StringIO) as out, \
                patch("builtins.input", side_effect=["y", "80"]):
            budget = startup_budget(self.path)

        self.assertIn("Error loading saved budget", out.getvalue())
        self.assertEqual(budget.weekly_budget, Decimal("80"))
        self.assertEqual(budget.expenses, [])
        # File is only replaced on save
        self.assertEqual(self.path.read_text(), "{broken")

    def test_corrupt_file_declined(self):
        self.path.write_text("{broken")
        code, output = self.run_main(["n"])
        self.assertEqual(code, 1)
        self.assertIn("Leaving the saved file untouched", output)
        self.assertEqual(self.path.read_text(), "{broken")

    def test_no_input_at_startup(self):
        code, output = self.run_main(EOFError)
        self.assertEqual(code, 1)
        self.assertFalse(self.path.exists())


if __name__ == "__main__":
    unittest.main()
