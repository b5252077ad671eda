"""
Typed values for admin-defined form fields.

Each submitted dynamic value is resolved against its field definition into one
variant of `DynamicValue`, tagged by `kind`, so scalar answers and uploaded
file lists can never be confused under the same field name.
"""
from __future__ import annotations

from datetime import date
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, Field

from schemas.documents import FileRef

FieldTypeLiteral = Literal[
    "Text", "Number", "Email", "Phone", "Date", "Textarea", "Select", "Checkbox", "Radio", "File"
]


class FormFieldSchema(BaseModel):
    id: str
    loan_id: Optional[str] = Field(None, alias="loanId")
    category_id: Optional[str] = Field(None, alias="categoryId")
    name: str
    label: Optional[str] = None
    type: FieldTypeLiteral = "Text"
    required: bool = False
    placeholder: Optional[str] = None
    options: Optional[list[str]] = None
    width: str = "full"
    order: int = 0
    section: Literal["employment", "loanDetails", "documents"] = "employment"
    is_active: bool = Field(True, alias="isActive")

    model_config = {"populate_by_name": True, "from_attributes": True}

    @property
    def display_name(self) -> str:
        return self.label or self.name


class _Value(BaseModel):
    def plain(self) -> Any:
        return getattr(self, "value")


class TextValue(_Value):
    kind: Literal["text"] = "text"
    value: str


class NumberValue(_Value):
    kind: Literal["number"] = "number"
    value: float

    def plain(self) -> Any:
        return int(self.value) if self.value.is_integer() else self.value


class DateValue(_Value):
    kind: Literal["date"] = "date"
    value: date

    def plain(self) -> Any:
        return self.value.isoformat()


class ChoiceValue(_Value):
    kind: Literal["choice"] = "choice"
    value: str


class CheckboxValue(_Value):
    kind: Literal["checkbox"] = "checkbox"
    value: Union[bool, list[str]]


class FileListValue(_Value):
    kind: Literal["files"] = "files"
    files: list[FileRef]

    def plain(self) -> Any:
        return [f.model_dump() for f in self.files]


class UnknownValue(_Value):
    """Value submitted for a name with no active definition; kept as sent."""

    kind: Literal["unknown"] = "unknown"
    value: Any = None


DynamicValue = Annotated[
    Union[TextValue, NumberValue, DateValue, ChoiceValue, CheckboxValue, FileListValue, UnknownValue],
    Field(discriminator="kind"),
]
