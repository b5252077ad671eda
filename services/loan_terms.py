"""
Loan amount/tenure coercion, rate resolution and EMI computation.
All functions here are pure.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Mapping, Optional

from services.errors import ValidationFailed
from utils.numbers import coerce_number, is_blank, plain_number

# Canonical key first; legacy alias second. snake_case because sections are normalized on intake.
AMOUNT_KEYS = ("loan_amount", "principal")
TENURE_KEYS = ("loan_tenure", "tenure_months")
# 50 years; longer terms are not offered and overflow the annuity formula
MAX_TENURE_MONTHS = 600


@dataclass(frozen=True)
class LoanTerms:
    loan_amount: float
    loan_tenure: int
    interest_rate: float
    emi: int
    purpose: Optional[str] = None

    def as_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "loan_amount": plain_number(self.loan_amount),
            "loan_tenure": self.loan_tenure,
            "interest_rate": plain_number(self.interest_rate),
            "emi": self.emi,
        }
        if self.purpose:
            out["purpose"] = self.purpose
        return out


def _round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


def calculate_emi(principal: float, annual_rate: float, tenure_months: int) -> int:
    """
    Monthly installment of an amortizing loan, rounded to the nearest unit.
    A zero rate yields 0: flat products are not amortized by this formula.
    """
    r = annual_rate / 100 / 12
    if r <= 0:
        return 0
    growth = (1 + r) ** tenure_months
    return _round_half_up(principal * r * growth / (growth - 1))


def resolve_annual_rate(interest_rate: Optional[Mapping[str, Any]]) -> float:
    """Product default rate, else its minimum rate, else zero. A stored 0 is a real rate."""
    band = interest_rate or {}
    for key in ("default", "min"):
        value = band.get(key)
        if value is not None:
            number = coerce_number(value)
            if number is not None:
                return number
    return 0.0


def _pick(details: Mapping[str, Any], keys: tuple[str, ...]) -> Any:
    for key in keys:
        value = details.get(key)
        if value is not None:
            return value
    return None


def coerce_loan_amount(raw: Any) -> float:
    if is_blank(raw):
        raise ValidationFailed("Loan amount is required. Please enter a valid loan amount.", field="loanAmount")
    amount = coerce_number(raw)
    if amount is None:
        raise ValidationFailed(f"Loan amount must be a valid number. Received: {raw}", field="loanAmount")
    if amount <= 0:
        raise ValidationFailed(
            f"Loan amount must be greater than 0. Received: {plain_number(amount)}", field="loanAmount"
        )
    return amount


def coerce_loan_tenure(raw: Any) -> int:
    if is_blank(raw):
        raise ValidationFailed(
            "Loan tenure is required. Please enter a valid loan tenure in months.", field="loanTenure"
        )
    tenure = coerce_number(raw)
    if tenure is None:
        raise ValidationFailed(f"Loan tenure must be a valid number. Received: {raw}", field="loanTenure")
    if tenure <= 0:
        raise ValidationFailed(
            f"Loan tenure must be greater than 0 months. Received: {plain_number(tenure)}", field="loanTenure"
        )
    if not tenure.is_integer():
        raise ValidationFailed(
            f"Loan tenure must be a whole number of months. Received: {tenure}", field="loanTenure"
        )
    if tenure > MAX_TENURE_MONTHS:
        raise ValidationFailed(
            f"Loan tenure must be at most {MAX_TENURE_MONTHS} months. Received: {plain_number(tenure)}",
            field="loanTenure",
        )
    return int(tenure)


def resolve_loan_terms(details: Mapping[str, Any], interest_rate: Optional[Mapping[str, Any]]) -> LoanTerms:
    """
    Validate amount then tenure (either naming convention), resolve the product rate
    and compute the EMI. Raises ValidationFailed naming the offending field.
    """
    amount = coerce_loan_amount(_pick(details, AMOUNT_KEYS))
    tenure = coerce_loan_tenure(_pick(details, TENURE_KEYS))
    rate = resolve_annual_rate(interest_rate)
    purpose = details.get("purpose")
    purpose = purpose.strip() if isinstance(purpose, str) and purpose.strip() else None
    try:
        emi = calculate_emi(amount, rate, tenure)
    except OverflowError:
        raise ValidationFailed(
            f"Loan amount is too large to compute an installment. Received: {plain_number(amount)}",
            field="loanAmount",
        )
    return LoanTerms(
        loan_amount=amount,
        loan_tenure=tenure,
        interest_rate=rate,
        emi=emi,
        purpose=purpose,
    )
