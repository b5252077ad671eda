"""
Tests for EMI calculation, rate resolution and amount/tenure coercion.
Run from project root: python -m pytest tests/test_loan_terms.py -v
"""
import unittest

from services.errors import ValidationFailed
from services.loan_terms import MAX_TENURE_MONTHS, calculate_emi, resolve_annual_rate, resolve_loan_terms


class TestCalculateEmi(unittest.TestCase):
    def test_twelve_percent_one_year(self):
        """100000 at 12% over 12 months -> 8885."""
        self.assertEqual(calculate_emi(100_000, 12, 12), 8885)

    def test_zero_rate_is_zero(self):
        self.assertEqual(calculate_emi(100_000, 0, 12), 0)
        self.assertEqual(calculate_emi(5_000, 0.0, 1), 0)

    def test_deterministic_and_non_negative(self):
        for principal, rate, months in [(1, 0.5, 1), (50_000, 10.5, 24), (2_500_000, 8.75, 240), (999.99, 36, 6)]:
            first = calculate_emi(principal, rate, months)
            self.assertEqual(first, calculate_emi(principal, rate, months))
            self.assertGreaterEqual(first, 0)
            self.assertIsInstance(first, int)

    def test_single_month_repays_principal_plus_interest(self):
        """n=1: EMI = P * (1 + r)."""
        self.assertEqual(calculate_emi(120_000, 12, 1), 121_200)


class TestResolveAnnualRate(unittest.TestCase):
    def test_default_wins(self):
        self.assertEqual(resolve_annual_rate({"min": 9, "max": 15, "default": 12}), 12)

    def test_falls_back_to_min(self):
        self.assertEqual(resolve_annual_rate({"min": 9, "max": 15, "default": None}), 9)

    def test_falls_back_to_zero(self):
        self.assertEqual(resolve_annual_rate({}), 0)
        self.assertEqual(resolve_annual_rate(None), 0)

    def test_zero_default_is_not_skipped(self):
        self.assertEqual(resolve_annual_rate({"min": 9, "default": 0}), 0)


class TestResolveLoanTerms(unittest.TestCase):
    def test_legacy_aliases(self):
        terms = resolve_loan_terms({"principal": 100_000, "tenure_months": 12}, {"default": 12})
        self.assertEqual(
            terms.as_dict(),
            {"loan_amount": 100_000, "loan_tenure": 12, "interest_rate": 12, "emi": 8885},
        )

    def test_canonical_name_wins(self):
        terms = resolve_loan_terms(
            {"loan_amount": 50_000, "principal": 100_000, "loan_tenure": 6, "tenure_months": 12},
            {"default": 12},
        )
        self.assertEqual(terms.loan_amount, 50_000)
        self.assertEqual(terms.loan_tenure, 6)

    def test_numeric_strings_accepted(self):
        terms = resolve_loan_terms({"loan_amount": " 250000 ", "loan_tenure": "24"}, {"default": 10})
        self.assertEqual(terms.loan_amount, 250_000)
        self.assertEqual(terms.loan_tenure, 24)

    def test_missing_amount_names_loan_amount(self):
        with self.assertRaises(ValidationFailed) as ctx:
            resolve_loan_terms({"loan_tenure": 12}, {"default": 12})
        self.assertIn("loan amount", ctx.exception.message.lower())
        self.assertEqual(ctx.exception.field, "loanAmount")

    def test_empty_string_amount_is_missing(self):
        with self.assertRaises(ValidationFailed) as ctx:
            resolve_loan_terms({"loan_amount": "", "loan_tenure": 12}, {"default": 12})
        self.assertIn("Loan amount is required", ctx.exception.message)

    def test_negative_amount(self):
        with self.assertRaises(ValidationFailed) as ctx:
            resolve_loan_terms({"loan_amount": -5, "loan_tenure": 12}, {"default": 12})
        self.assertIn("greater than 0", ctx.exception.message)
        self.assertIn("-5", ctx.exception.message)

    def test_non_numeric_amount(self):
        with self.assertRaises(ValidationFailed) as ctx:
            resolve_loan_terms({"loan_amount": "lots", "loan_tenure": 12}, {"default": 12})
        self.assertIn("valid number", ctx.exception.message)

    def test_infinite_amount_rejected(self):
        with self.assertRaises(ValidationFailed):
            resolve_loan_terms({"loan_amount": "inf", "loan_tenure": 12}, {"default": 12})

    def test_amount_checked_before_tenure(self):
        with self.assertRaises(ValidationFailed) as ctx:
            resolve_loan_terms({"loan_amount": 0, "loan_tenure": "abc"}, {"default": 12})
        self.assertEqual(ctx.exception.field, "loanAmount")

    def test_missing_tenure(self):
        with self.assertRaises(ValidationFailed) as ctx:
            resolve_loan_terms({"loan_amount": 1000}, {"default": 12})
        self.assertIn("Loan tenure is required", ctx.exception.message)

    def test_zero_tenure(self):
        with self.assertRaises(ValidationFailed) as ctx:
            resolve_loan_terms({"loan_amount": 1000, "loan_tenure": 0}, {"default": 12})
        self.assertIn("greater than 0 months", ctx.exception.message)

    def test_fractional_tenure(self):
        with self.assertRaises(ValidationFailed) as ctx:
            resolve_loan_terms({"loan_amount": 1000, "loan_tenure": 12.5}, {"default": 12})
        self.assertIn("whole number", ctx.exception.message)

    def test_tenure_above_cap(self):
        for raw in (100_000, "1e20", MAX_TENURE_MONTHS + 1):
            with self.assertRaises(ValidationFailed) as ctx:
                resolve_loan_terms({"loan_amount": 100_000, "loan_tenure": raw}, {"default": 12})
            self.assertEqual(ctx.exception.field, "loanTenure")
            self.assertIn(f"at most {MAX_TENURE_MONTHS} months", ctx.exception.message)

    def test_longest_tenure_computes(self):
        terms = resolve_loan_terms({"loan_amount": 5_000_000, "loan_tenure": MAX_TENURE_MONTHS}, {"default": 36})
        self.assertGreater(terms.emi, 0)

    def test_amount_beyond_float_range(self):
        with self.assertRaises(ValidationFailed) as ctx:
            resolve_loan_terms({"loan_amount": 10 ** 400, "loan_tenure": 12}, {"default": 12})
        self.assertEqual(ctx.exception.field, "loanAmount")
        self.assertIn("valid number", ctx.exception.message)

    def test_zero_rate_product(self):
        terms = resolve_loan_terms({"loan_amount": 30_000, "loan_tenure": 6}, {"min": 0, "max": 0, "default": 0})
        self.assertEqual(terms.interest_rate, 0)
        self.assertEqual(terms.emi, 0)

    def test_purpose_kept_when_present(self):
        terms = resolve_loan_terms(
            {"loan_amount": 1000, "loan_tenure": 3, "purpose": "  Wedding "}, {"default": 12}
        )
        self.assertEqual(terms.as_dict()["purpose"], "Wedding")


if __name__ == "__main__":
    unittest.main()
