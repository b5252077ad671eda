from __future__ import annotations

from datetime import date, datetime
from typing import Any, Literal, Optional, Union

from pydantic import BaseModel, Field

from schemas.documents import DocumentSchema

ApplicationStatusLiteral = Literal[
    "Draft", "Submitted", "Under Review", "Documents Pending", "Approved", "Rejected"
]


class PersonalInfoSchema(BaseModel):
    full_name: str = Field(..., alias="fullName", min_length=1)
    email: str = Field(..., min_length=1)
    phone: str = Field(..., min_length=1)
    date_of_birth: Optional[date] = Field(None, alias="dateOfBirth")
    gender: Optional[str] = None
    pan: Optional[str] = None
    aadhar: Optional[str] = None
    marital_status: Optional[str] = Field(None, alias="maritalStatus")
    number_of_dependents: Optional[int] = Field(None, alias="numberOfDependents", ge=0)

    model_config = {"populate_by_name": True, "str_strip_whitespace": True, "coerce_numbers_to_str": True}


class AddressLineSchema(BaseModel):
    street: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    pincode: Optional[str] = None
    country: str = "India"

    model_config = {"populate_by_name": True, "coerce_numbers_to_str": True}


class AddressSchema(BaseModel):
    current: Optional[AddressLineSchema] = None
    permanent: Optional[AddressLineSchema] = None

    model_config = {"populate_by_name": True}


class EmploymentInfoSchema(BaseModel):
    employment_type: str = Field(..., alias="employmentType", min_length=1)
    monthly_income: Union[int, float] = Field(..., alias="monthlyIncome", gt=0)
    company_name: Optional[str] = Field(None, alias="companyName")
    designation: Optional[str] = None
    work_experience: Optional[Union[int, float]] = Field(None, alias="workExperience", ge=0)
    business_type: Optional[str] = Field(None, alias="businessType")
    business_age: Optional[Union[int, float]] = Field(None, alias="businessAge", ge=0)

    model_config = {"populate_by_name": True}


class LoanDetailsSchema(BaseModel):
    loan_amount: Union[int, float] = Field(..., alias="loanAmount", gt=0)
    loan_tenure: int = Field(..., alias="loanTenure", gt=0)
    interest_rate: Union[int, float] = Field(..., alias="interestRate", ge=0)
    emi: int = Field(..., ge=0)
    purpose: Optional[str] = None

    model_config = {"populate_by_name": True}


class AdminNoteSchema(BaseModel):
    note: str
    added_by: str = Field(..., alias="addedBy")
    added_at: datetime = Field(..., alias="addedAt")

    model_config = {"populate_by_name": True}


class ApplicationRecord(BaseModel):
    """Canonical application content checked right before it is written."""

    loan_id: str = Field(..., alias="loanId")
    loan_type: str = Field(..., alias="loanType", min_length=1)
    personal_info: PersonalInfoSchema = Field(..., alias="personalInfo")
    address: Optional[AddressSchema] = None
    employment_info: EmploymentInfoSchema = Field(..., alias="employmentInfo")
    loan_details: LoanDetailsSchema = Field(..., alias="loanDetails")
    documents: list[DocumentSchema] = Field(default_factory=list)
    dynamic_fields: dict[str, Any] = Field(default_factory=dict, alias="dynamicFields")

    model_config = {"populate_by_name": True}


class ApplicationUpdate(BaseModel):
    personal_info: Optional[dict[str, Any]] = Field(None, alias="personalInfo")
    address: Optional[dict[str, Any]] = None
    employment_info: Optional[dict[str, Any]] = Field(None, alias="employmentInfo")
    loan_details: Optional[dict[str, Any]] = Field(None, alias="loanDetails")
    dynamic_fields: Optional[dict[str, Any]] = Field(None, alias="dynamicFields")
    status: Optional[ApplicationStatusLiteral] = None

    model_config = {"populate_by_name": True}


class RejectRequest(BaseModel):
    rejection_reason: Optional[str] = Field(None, alias="rejectionReason")

    model_config = {"populate_by_name": True}


class NoteCreate(BaseModel):
    note: str = Field(..., min_length=1)
