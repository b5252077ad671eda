"""
Turns a raw submission body into an ApplicationDraft.

Multipart forms can only carry text, so clients send the structured sections
(personalInfo, address, ...) as JSON strings. Each section is decoded here; a
section that fails to decode is kept as a `Malformed` result holding the raw
text instead of failing the request, so the validator can say exactly which
section was unreadable.
"""
from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Optional, Union

from schemas.documents import UploadedFile
from utils.case import dict_keys_to_snake

SECTION_KEYS = ("personalInfo", "address", "employmentInfo", "loanDetails", "dynamicFields")
# Sections whose keys are fixed schema names; dynamicFields keys are admin-defined
SNAKE_CASE_SECTIONS = ("personalInfo", "address", "employmentInfo", "loanDetails")


@dataclass(frozen=True)
class Parsed:
    value: Any


@dataclass(frozen=True)
class Malformed:
    raw: str
    error: str


SectionResult = Union[Parsed, Malformed]


@dataclass
class ApplicationDraft:
    loan_id: Optional[str]
    personal_info: SectionResult
    address: SectionResult
    employment_info: SectionResult
    loan_details: SectionResult
    dynamic_fields: SectionResult
    files: list[UploadedFile] = field(default_factory=list)


def parse_section(value: Any) -> SectionResult:
    """Decode one section. Text is parsed as JSON; anything else passes through."""
    if not isinstance(value, str):
        return Parsed(value)
    if not value.strip():
        return Parsed(None)
    try:
        return Parsed(json.loads(value))
    except ValueError as e:
        return Malformed(raw=value, error=str(e))


def _snake_section(result: SectionResult) -> SectionResult:
    if isinstance(result, Parsed) and isinstance(result.value, dict):
        return Parsed(dict_keys_to_snake(result.value))
    return result


def _loan_reference(body: dict[str, Any]) -> Optional[str]:
    for key in ("loanId", "loanProductId", "loan_id"):
        value = body.get(key)
        if value is None:
            continue
        text = str(value).strip()
        if text:
            return text
    return None


def normalize_submission(body: dict[str, Any], files: Optional[list[UploadedFile]] = None) -> ApplicationDraft:
    """
    Build a draft from a raw key/value body (form fields or JSON).
    Never raises: unreadable sections become `Malformed`.
    """
    sections: dict[str, SectionResult] = {}
    for key in SECTION_KEYS:
        result = parse_section(body.get(key))
        if key in SNAKE_CASE_SECTIONS:
            result = _snake_section(result)
        sections[key] = result

    return ApplicationDraft(
        loan_id=_loan_reference(body),
        personal_info=sections["personalInfo"],
        address=sections["address"],
        employment_info=sections["employmentInfo"],
        loan_details=sections["loanDetails"],
        dynamic_fields=sections["dynamicFields"],
        files=list(files or []),
    )
