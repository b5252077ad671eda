"""
Business validation for a normalized submission.

Rules run in a fixed order and the first failure is raised as ValidationFailed
with a message naming the field, so the form can point the applicant at it:

1. loan reference is well formed and names an active product
2. loanDetails present, readable and non-empty
3. loan amount present, numeric, finite, > 0
4. loan tenure present, numeric, finite, > 0
5. employment type present and not blank
6. monthly income present, numeric, finite, > 0

After that the remaining sections are checked for readability, dynamic fields
are typed against their definitions and the assembled record is validated as
a whole.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Optional

from pydantic import ValidationError

from models import LoanProduct
from schemas.application import ApplicationRecord
from schemas.dynamic_fields import FormFieldSchema
from services.documents import classify_uploads
from services.dynamic_fields import plain_dynamic_fields, resolve_dynamic_fields
from services.errors import LoanNotFound, ValidationFailed
from services.loan_terms import LoanTerms, resolve_loan_terms
from services.normalizer import ApplicationDraft, Malformed, SectionResult
from utils.case import to_camel_key
from utils.numbers import coerce_number, is_blank, plain_number

_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]{1,64}$")

EMPLOYMENT_TEXT_FIELDS = ("company_name", "designation", "business_type")
EMPLOYMENT_NUMBER_FIELDS = ("work_experience", "business_age")

SECTION_LABELS = {
    "personal_info": "Personal information",
    "address": "Address",
    "employment_info": "Employment information",
    "loan_details": "Loan details",
    "dynamic_fields": "Dynamic fields",
}


@dataclass
class ValidatedSubmission:
    loan_terms: LoanTerms
    record: ApplicationRecord

    def sections(self) -> dict[str, Any]:
        """Storable sections, snake_case keys, JSON-safe values."""
        dumped = self.record.model_dump(mode="json", by_alias=False, exclude_none=True)
        return {
            "personal_info": dumped["personal_info"],
            "address": dumped.get("address"),
            "employment_info": dumped["employment_info"],
            "loan_details": self.loan_terms.as_dict(),
            "documents": dumped["documents"],
            "dynamic_fields": self.record.dynamic_fields,
        }


def _malformed(section: str) -> ValidationFailed:
    label = SECTION_LABELS[section]
    return ValidationFailed(
        f"{label} could not be read. Please send {to_camel_key(section)} as a JSON object.",
        field=to_camel_key(section),
    )


def _section_dict(result: SectionResult, section: str) -> Optional[dict[str, Any]]:
    """Parsed dict (or None when absent); raises for text that was not valid JSON."""
    if isinstance(result, Malformed):
        raise _malformed(section)
    value = result.value
    if value is None:
        return None
    if not isinstance(value, dict):
        raise _malformed(section)
    return value


def _drop_blank(value: Any) -> Any:
    if isinstance(value, dict):
        out = {}
        for k, v in value.items():
            cleaned = _drop_blank(v)
            if is_blank(cleaned) or cleaned == {}:
                continue
            out[k] = cleaned
        return out
    if isinstance(value, str):
        return value.strip()
    return value


def check_loan_reference(loan_id: Optional[str]) -> str:
    if not loan_id or not _ID_PATTERN.match(loan_id):
        raise ValidationFailed("Valid loanId required", field="loanId")
    return loan_id


def check_loan_product(loan: Optional[LoanProduct]) -> LoanProduct:
    if loan is None:
        raise LoanNotFound()
    if not loan.is_active:
        raise ValidationFailed("This loan product is not accepting applications", field="loanId")
    return loan


def validate_loan_details(result: SectionResult, interest_rate: Optional[dict[str, Any]]) -> LoanTerms:
    if isinstance(result, Malformed):
        raise _malformed("loan_details")
    details = result.value
    if not isinstance(details, dict) or not details:
        raise ValidationFailed(
            "Loan details are required. Please provide loan amount and tenure.", field="loanDetails"
        )
    return resolve_loan_terms(details, interest_rate)


def validate_employment(result: SectionResult) -> dict[str, Any]:
    """Employment type and income are required; free-text optionals are trimmed and dropped when empty."""
    info = _section_dict(result, "employment_info") or {}

    employment_type = info.get("employment_type")
    if not isinstance(employment_type, str) or not employment_type.strip():
        raise ValidationFailed(
            "Employment type is required. Please select your employment type.", field="employmentType"
        )

    monthly_income = coerce_number(info.get("monthly_income"))
    if monthly_income is None or monthly_income <= 0:
        raise ValidationFailed(
            "Monthly income is required and must be a valid positive number.", field="monthlyIncome"
        )

    out: dict[str, Any] = {
        "employment_type": employment_type.strip(),
        "monthly_income": plain_number(monthly_income),
    }
    for key in EMPLOYMENT_TEXT_FIELDS:
        value = info.get(key)
        if isinstance(value, str) and value.strip():
            out[key] = value.strip()
    for key in EMPLOYMENT_NUMBER_FIELDS:
        number = coerce_number(info.get(key))
        if number is not None:
            out[key] = plain_number(number)
    return out


def _location(loc: tuple) -> str:
    return ".".join(to_camel_key(p) if isinstance(p, str) else str(p) for p in loc)


def validate_record(data: dict[str, Any]) -> ApplicationRecord:
    """Schema check of the assembled record; errors name each offending field."""
    try:
        return ApplicationRecord.model_validate(data)
    except ValidationError as e:
        errors: dict[str, str] = {}
        for err in e.errors():
            errors.setdefault(_location(err["loc"]), err["msg"])
        if "loanDetails.loanAmount" in errors:
            raise ValidationFailed(
                f"Loan amount validation failed: {errors['loanDetails.loanAmount']}",
                field="loanDetails.loanAmount",
                errors=errors,
            ) from e
        message = ", ".join(f"{k}: {v}" for k, v in errors.items())
        raise ValidationFailed(f"Validation failed: {message}", errors=errors) from e


def validate_submission(
    draft: ApplicationDraft,
    loan: LoanProduct,
    definitions: list[FormFieldSchema],
    url_prefix: str = "/uploads",
) -> ValidatedSubmission:
    """Rules 2-6, then section readability, dynamic fields and the record schema."""
    loan_terms = validate_loan_details(draft.loan_details, loan.interest_rate)
    employment_info = validate_employment(draft.employment_info)

    personal_info = _section_dict(draft.personal_info, "personal_info")
    address = _section_dict(draft.address, "address")
    submitted_fields = _section_dict(draft.dynamic_fields, "dynamic_fields")

    classified = classify_uploads(draft.files, submitted_fields, url_prefix=url_prefix)
    dynamic_fields = plain_dynamic_fields(resolve_dynamic_fields(definitions, classified.dynamic_fields))

    record = validate_record({
        "loan_id": loan.id,
        "loan_type": loan.type,
        "personal_info": _drop_blank(personal_info or {}),
        "address": _drop_blank(address) if address else None,
        "employment_info": employment_info,
        "loan_details": loan_terms.as_dict(),
        "documents": classified.documents,
        "dynamic_fields": dynamic_fields,
    })
    return ValidatedSubmission(loan_terms=loan_terms, record=record)
