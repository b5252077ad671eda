from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.datastructures import UploadFile

from api.deps import get_current_actor, get_notifier, get_upload_store
from database import get_db
from models import Application
from schemas.actor import Actor
from schemas.application import ApplicationStatusLiteral, ApplicationUpdate, NoteCreate, RejectRequest
from schemas.documents import UploadedFile
from services import lifecycle
from services.errors import ValidationFailed
from services.normalizer import normalize_submission
from services.notifications import EmailDispatcher
from services.storage import LocalUploadStore
from utils.case import dict_keys_to_camel

router = APIRouter(prefix="/api/applications", tags=["applications"])


def _iso(value) -> Optional[str]:
    return value.isoformat() if value else None


def _app_to_response(app: Application) -> dict[str, Any]:
    """Serialize application to dict with camelCase for frontend. Dynamic field names are returned as defined."""
    data = {
        "id": app.id,
        "application_number": app.application_number,
        "user_id": app.user_id,
        "loan_id": app.loan_id,
        "loan_type": app.loan_type,
        "status": app.status,
        "personal_info": app.personal_info or {},
        "address": app.address or None,
        "employment_info": app.employment_info or {},
        "loan_details": app.loan_details or {},
        "documents": app.documents or [],
        "dynamic_fields": dict(app.dynamic_fields or {}),
        "admin_notes": app.admin_notes or [],
        "rejection_reason": app.rejection_reason,
        "approved_at": _iso(app.approved_at),
        "approved_by": app.approved_by,
        "rejected_at": _iso(app.rejected_at),
        "submitted_at": _iso(app.submitted_at),
        "created_at": _iso(app.created_at),
        "updated_at": _iso(app.updated_at),
    }
    return dict_keys_to_camel(data, preserve=("dynamic_fields",))


async def _read_submission(request: Request, store: LocalUploadStore) -> tuple[dict[str, Any], list[UploadedFile]]:
    """JSON bodies carry no files; multipart bodies have their files stored first."""
    content_type = request.headers.get("content-type", "")
    if content_type.startswith("application/json"):
        try:
            body = await request.json()
        except ValueError:
            raise ValidationFailed("Request body is not valid JSON")
        if not isinstance(body, dict):
            raise ValidationFailed("Request body must be a JSON object")
        return body, []

    form = await request.form()
    body: dict[str, Any] = {}
    files: list[UploadedFile] = []
    for key, value in form.multi_items():
        if isinstance(value, UploadFile):
            if value.filename:
                files.append(await store.save(key, value))
        else:
            body[key] = value
    return body, files


@router.post("", status_code=201)
async def create_application(
    request: Request,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
    notifier: EmailDispatcher = Depends(get_notifier),
    store: LocalUploadStore = Depends(get_upload_store),
):
    body, files = await _read_submission(request, store)
    draft = normalize_submission(body, files)
    app = await lifecycle.submit_application(db, actor, draft, notifier)
    return {
        "success": True,
        "message": "Application submitted successfully",
        "data": _app_to_response(app),
    }


@router.get("")
async def list_applications(
    status: Optional[ApplicationStatusLiteral] = Query(None),
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    apps = await lifecycle.list_applications(db, actor, status=status)
    return {"success": True, "count": len(apps), "data": [_app_to_response(a) for a in apps]}


@router.get("/{application_id}")
async def get_application(
    application_id: str,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    app = await lifecycle.get_application(db, application_id)
    lifecycle.ensure_can_view(actor, app)
    return {"success": True, "data": _app_to_response(app)}


@router.put("/{application_id}")
async def update_application(
    application_id: str,
    body: ApplicationUpdate,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
    notifier: EmailDispatcher = Depends(get_notifier),
):
    app = await lifecycle.update_application(db, actor, application_id, body, notifier)
    return {"success": True, "message": "Application updated", "data": _app_to_response(app)}


@router.post("/{application_id}/approve")
async def approve_application(
    application_id: str,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
    notifier: EmailDispatcher = Depends(get_notifier),
):
    app = await lifecycle.approve_application(db, actor, application_id, notifier)
    return {"success": True, "message": "Application approved successfully", "data": _app_to_response(app)}


@router.post("/{application_id}/reject")
async def reject_application(
    application_id: str,
    body: Optional[RejectRequest] = Body(None),
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
    notifier: EmailDispatcher = Depends(get_notifier),
):
    reason = body.rejection_reason if body else None
    app = await lifecycle.reject_application(db, actor, application_id, notifier, reason=reason)
    return {"success": True, "message": "Application rejected", "data": _app_to_response(app)}


@router.post("/{application_id}/notes")
async def add_note(
    application_id: str,
    body: NoteCreate,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    app = await lifecycle.add_admin_note(db, actor, application_id, body.note)
    return {"success": True, "message": "Note added", "data": _app_to_response(app)}
