"""
Sorts an upload batch into document slots.

Fixed slots come from the standard form inputs; `dynamicFiles_<name>` inputs
belong to admin-defined File fields and are mirrored into dynamicFields so the
field's answer is the list of files uploaded for it.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional

from schemas.documents import UploadedFile

DYNAMIC_FILE_PREFIX = "dynamicFiles_"
SELFIE_FIELD = "selfie"

# Field name -> document type, in output order
FIXED_SLOTS: tuple[tuple[str, str], ...] = (
    ("idProof", "ID"),
    ("addressProof", "Address"),
    ("incomeProof", "Income"),
    ("bankStatement", "Bank Statement"),
    ("otherDocuments", "Other"),
)


@dataclass
class ClassifiedUploads:
    documents: list[dict[str, Any]]
    dynamic_fields: dict[str, Any]


def file_url(stored_filename: str, url_prefix: str = "/uploads") -> str:
    return f"{url_prefix.rstrip('/')}/{stored_filename}"


def dynamic_document_type(field_name: str) -> str:
    return f"Dynamic: {field_name}"


def _document(doc_type: str, upload: UploadedFile, url_prefix: str, uploaded_at: datetime) -> dict[str, Any]:
    return {
        "type": doc_type,
        "name": upload.original_filename,
        "url": file_url(upload.stored_filename, url_prefix),
        "uploaded_at": uploaded_at.isoformat(),
        "status": "Pending",
    }


def classify_uploads(
    files: list[UploadedFile],
    dynamic_fields: Optional[dict[str, Any]] = None,
    url_prefix: str = "/uploads",
    uploaded_at: Optional[datetime] = None,
) -> ClassifiedUploads:
    """
    Build one document per uploaded file (one for the selfie) and return the
    dynamic field map with file references written in. The input map is not modified.
    Uploads under unrecognised field names are ignored.
    """
    uploaded_at = uploaded_at or datetime.now(timezone.utc)
    fixed_groups: dict[str, list[UploadedFile]] = {}
    # dicts keep insertion order, which is first-encounter order of each dynamic name
    dynamic_groups: dict[str, list[UploadedFile]] = {}

    for upload in files:
        if upload.field_name.startswith(DYNAMIC_FILE_PREFIX):
            name = upload.field_name[len(DYNAMIC_FILE_PREFIX):]
            dynamic_groups.setdefault(name, []).append(upload)
        else:
            fixed_groups.setdefault(upload.field_name, []).append(upload)

    documents: list[dict[str, Any]] = []
    for field_name, doc_type in FIXED_SLOTS:
        for upload in fixed_groups.get(field_name, []):
            documents.append(_document(doc_type, upload, url_prefix, uploaded_at))

    selfies = fixed_groups.get(SELFIE_FIELD)
    if selfies:
        documents.append(_document("Selfie", selfies[0], url_prefix, uploaded_at))

    fields = dict(dynamic_fields or {})
    for name, uploads in dynamic_groups.items():
        for upload in uploads:
            documents.append(_document(dynamic_document_type(name), upload, url_prefix, uploaded_at))
        fields[name] = [
            {"name": u.original_filename, "url": file_url(u.stored_filename, url_prefix)}
            for u in uploads
        ]

    return ClassifiedUploads(documents=documents, dynamic_fields=fields)
