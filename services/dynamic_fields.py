"""
Resolves submitted dynamic field values against the active admin definitions
of a loan and its category.
"""
from __future__ import annotations

from datetime import date
from typing import Any, Iterable, Optional

from schemas.documents import FileRef
from schemas.dynamic_fields import (
    CheckboxValue,
    ChoiceValue,
    DateValue,
    DynamicValue,
    FileListValue,
    FormFieldSchema,
    NumberValue,
    TextValue,
    UnknownValue,
)
from services.errors import ValidationFailed
from utils.numbers import coerce_number, is_blank

TEXT_TYPES = ("Text", "Email", "Phone", "Textarea")
CHOICE_TYPES = ("Select", "Radio")
_TRUE = ("true", "on", "yes", "1")
_FALSE = ("false", "off", "no", "0")


def merge_definitions(
    loan_fields: Iterable[FormFieldSchema], category_fields: Iterable[FormFieldSchema]
) -> list[FormFieldSchema]:
    """Active definitions ordered by section then order; a loan field shadows a category field of the same name."""
    by_name: dict[str, FormFieldSchema] = {}
    for f in category_fields:
        if f.is_active:
            by_name[f.name] = f
    for f in loan_fields:
        if f.is_active:
            by_name[f.name] = f
    return sorted(by_name.values(), key=lambda f: (f.section, f.order))


def _is_file_list(value: Any) -> bool:
    return isinstance(value, list) and bool(value) and all(isinstance(v, dict) and "url" in v for v in value)


def _fail(definition: FormFieldSchema, message: str) -> ValidationFailed:
    return ValidationFailed(message, field=f"dynamicFields.{definition.name}")


def _resolve_one(definition: FormFieldSchema, value: Any) -> Optional[DynamicValue]:
    label = definition.display_name

    if definition.type == "File":
        if value is None or value == [] or is_blank(value):
            if definition.required:
                raise _fail(definition, f"{label} is required. Please upload a file.")
            return None
        if not _is_file_list(value):
            raise _fail(definition, f"{label} expects uploaded files, not a typed value.")
        return FileListValue(files=[FileRef(name=str(v.get("name") or ""), url=str(v["url"])) for v in value])

    if _is_file_list(value):
        raise _fail(definition, f"{label} does not accept file uploads.")

    if is_blank(value) or value == []:
        if definition.required:
            raise _fail(definition, f"{label} is required.")
        return None

    if definition.type == "Number":
        number = coerce_number(value)
        if number is None:
            raise _fail(definition, f"{label} must be a valid number. Received: {value}")
        return NumberValue(value=number)

    if definition.type == "Date":
        try:
            return DateValue(value=date.fromisoformat(str(value).strip()[:10]))
        except ValueError:
            raise _fail(definition, f"{label} must be a valid date (YYYY-MM-DD). Received: {value}")

    if definition.type in CHOICE_TYPES:
        choice = str(value).strip()
        if definition.options and choice not in definition.options:
            raise _fail(definition, f"{label} must be one of: {', '.join(definition.options)}")
        return ChoiceValue(value=choice)

    if definition.type == "Checkbox":
        if isinstance(value, bool):
            return CheckboxValue(value=value)
        if isinstance(value, list):
            picked = [str(v).strip() for v in value]
            unknown = [v for v in picked if definition.options and v not in definition.options]
            if unknown:
                raise _fail(definition, f"{label} must be one of: {', '.join(definition.options)}")
            return CheckboxValue(value=picked)
        flag = str(value).strip().lower()
        if flag in _TRUE:
            return CheckboxValue(value=True)
        if flag in _FALSE:
            return CheckboxValue(value=False)
        raise _fail(definition, f"{label} must be checked or unchecked. Received: {value}")

    text = str(value).strip()
    if definition.type == "Email" and "@" not in text:
        raise _fail(definition, f"{label} must be a valid email address.")
    return TextValue(value=text)


def resolve_dynamic_fields(
    definitions: list[FormFieldSchema], submitted: Optional[dict[str, Any]]
) -> dict[str, DynamicValue]:
    """
    Type every submitted value by its definition. Defined fields come first in
    definition order, followed by undefined names kept as UnknownValue.
    Raises ValidationFailed for the first field that is missing or mistyped.
    """
    submitted = submitted or {}
    resolved: dict[str, DynamicValue] = {}
    defined = set()
    for definition in definitions:
        defined.add(definition.name)
        value = _resolve_one(definition, submitted.get(definition.name))
        if value is not None:
            resolved[definition.name] = value
    for name, value in submitted.items():
        if name not in defined:
            resolved[name] = UnknownValue(value=value)
    return resolved


def plain_dynamic_fields(resolved: dict[str, DynamicValue]) -> dict[str, Any]:
    return {name: value.plain() for name, value in resolved.items()}
