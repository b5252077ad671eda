from schemas.actor import Actor
from schemas.application import (
    AddressLineSchema,
    AddressSchema,
    AdminNoteSchema,
    ApplicationRecord,
    ApplicationUpdate,
    EmploymentInfoSchema,
    LoanDetailsSchema,
    NoteCreate,
    PersonalInfoSchema,
    RejectRequest,
)
from schemas.documents import DocumentSchema, FileRef, UploadedFile
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

__all__ = [
    "Actor",
    "AddressLineSchema",
    "AddressSchema",
    "AdminNoteSchema",
    "ApplicationRecord",
    "ApplicationUpdate",
    "EmploymentInfoSchema",
    "LoanDetailsSchema",
    "NoteCreate",
    "PersonalInfoSchema",
    "RejectRequest",
    "DocumentSchema",
    "FileRef",
    "UploadedFile",
    "CheckboxValue",
    "ChoiceValue",
    "DateValue",
    "DynamicValue",
    "FileListValue",
    "FormFieldSchema",
    "NumberValue",
    "TextValue",
    "UnknownValue",
]
