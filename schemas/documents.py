from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

DocumentStatusLiteral = Literal["Pending", "Verified", "Rejected"]


class UploadedFile(BaseModel):
    """One stored upload as reported by the upload store; bytes never reach the core."""

    field_name: str
    original_filename: str
    stored_filename: str


class FileRef(BaseModel):
    name: str
    url: str


class DocumentSchema(BaseModel):
    type: str
    name: str
    url: str
    uploaded_at: datetime = Field(..., alias="uploadedAt")
    status: DocumentStatusLiteral = "Pending"

    model_config = {"populate_by_name": True}
