"""
Application lifecycle: creation on submission, admin decisions, updates and notes.

Draft -> Submitted -> Under Review -> Documents Pending -> Approved | Rejected

The application number is assigned the first time an application leaves
Draft and is never changed afterwards.
"""
from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from models import Application, FormFieldDefinition, LoanProduct
from models.application import ApplicationStatus
from schemas.actor import Actor
from schemas.application import ApplicationUpdate
from schemas.dynamic_fields import FormFieldSchema
from services.dynamic_fields import merge_definitions, plain_dynamic_fields, resolve_dynamic_fields
from services.errors import ApplicationNotFound, NotAuthorized, NotificationFailed, ValidationFailed
from services.loan_terms import AMOUNT_KEYS, TENURE_KEYS
from services.normalizer import ApplicationDraft, Parsed
from services.notifications import EmailDispatcher, approval_email, rejection_email, submission_email
from services.numbering import assign_application_number
from services.validator import (
    check_loan_product,
    check_loan_reference,
    validate_employment,
    validate_loan_details,
    validate_record,
    validate_submission,
)
from utils.case import dict_keys_to_snake

logger = logging.getLogger(__name__)

# Statuses an update may move to; the decisions have their own operations
ADMIN_UPDATE_STATUSES = (
    ApplicationStatus.DRAFT,
    ApplicationStatus.SUBMITTED,
    ApplicationStatus.UNDER_REVIEW,
    ApplicationStatus.DOCUMENTS_PENDING,
)
OWNER_UPDATE_STATUSES = (ApplicationStatus.DRAFT, ApplicationStatus.SUBMITTED)


def _now() -> datetime:
    return datetime.now(timezone.utc)


async def get_loan(session: AsyncSession, loan_id: str) -> Optional[LoanProduct]:
    result = await session.execute(select(LoanProduct).where(LoanProduct.id == loan_id))
    return result.scalar_one_or_none()


async def load_field_definitions(session: AsyncSession, loan: LoanProduct) -> list[FormFieldSchema]:
    """Active dynamic fields of the loan and of its category, loan fields winning on name clashes."""
    owner = FormFieldDefinition.loan_id == loan.id
    if loan.category_id:
        owner = or_(owner, FormFieldDefinition.category_id == loan.category_id)
    result = await session.execute(
        select(FormFieldDefinition)
        .where(owner, FormFieldDefinition.is_active.is_(True))
        .order_by(FormFieldDefinition.order, FormFieldDefinition.created_at)
    )
    fields = [FormFieldSchema.model_validate(f) for f in result.scalars().all()]
    return merge_definitions(
        [f for f in fields if f.loan_id == loan.id],
        [f for f in fields if f.loan_id is None],
    )


async def get_application(session: AsyncSession, application_id: str) -> Application:
    result = await session.execute(select(Application).where(Application.id == application_id))
    application = result.scalar_one_or_none()
    if not application:
        raise ApplicationNotFound()
    return application


def ensure_can_view(actor: Actor, application: Application) -> None:
    if not actor.is_admin and application.user_id != actor.id:
        raise NotAuthorized("Not authorized to view this application")


def _require_admin(actor: Actor) -> None:
    if not actor.is_admin:
        raise NotAuthorized("Not authorized")


def _recipient(application: Application) -> Optional[str]:
    return (application.personal_info or {}).get("email")


async def _enter_status(session: AsyncSession, application: Application, status: str) -> None:
    """Set the status; leaving Draft for the first time assigns the application number."""
    if status != ApplicationStatus.DRAFT and not application.application_number:
        await assign_application_number(
            session,
            application,
            prefix=settings.application_number_prefix,
            width=settings.application_number_width,
        )
        application.submitted_at = application.submitted_at or _now()
    application.status = status
    application.updated_at = _now()


async def _confirm_submission(application: Application, notifier: EmailDispatcher) -> None:
    """Send the submission email for a committed application; strict mode turns a failure into NotificationFailed."""
    content = submission_email(application)
    result = await notifier.send_email(_recipient(application), content.subject, content.html, content.text)
    if not result.success:
        logger.warning(
            "Confirmation email for %s failed: %s", application.application_number, result.error
        )
        if settings.strict_submission_notifications:
            raise NotificationFailed(
                f"Application {application.application_number} was saved but the confirmation "
                f"email could not be sent: {result.error}",
                application_number=application.application_number,
            )


async def list_applications(session: AsyncSession, actor: Actor, status: Optional[str] = None) -> list[Application]:
    query = select(Application)
    if not actor.is_admin:
        query = query.where(Application.user_id == actor.id)
    if status:
        query = query.where(Application.status == status)
    result = await session.execute(query.order_by(Application.created_at.desc(), Application.id.desc()))
    return list(result.scalars().all())


async def submit_application(
    session: AsyncSession,
    actor: Actor,
    draft: ApplicationDraft,
    notifier: EmailDispatcher,
) -> Application:
    """
    Validate the draft, store the application as Submitted and send the confirmation email.
    Nothing is written when validation fails. The application is committed before the
    email goes out; with strict submission notifications a failed email raises
    NotificationFailed carrying the saved application number.
    """
    loan = check_loan_product(await get_loan(session, check_loan_reference(draft.loan_id)))
    definitions = await load_field_definitions(session, loan)
    try:
        validated = validate_submission(draft, loan, definitions, url_prefix=settings.upload_url_prefix)
    except ValidationFailed as e:
        logger.info("Rejected submission for loan %s: %s", loan.id, e.message)
        raise
    sections = validated.sections()

    application = Application(
        id=f"app-{uuid.uuid4().hex[:12]}",
        user_id=actor.id,
        loan_id=loan.id,
        loan_type=loan.type,
        status=ApplicationStatus.DRAFT,
        personal_info=sections["personal_info"],
        address=sections["address"],
        employment_info=sections["employment_info"],
        loan_details=sections["loan_details"],
        documents=sections["documents"],
        dynamic_fields=sections["dynamic_fields"],
        admin_notes=[],
        created_at=_now(),
    )
    await _enter_status(session, application, ApplicationStatus.SUBMITTED)
    session.add(application)
    await session.flush()
    await session.commit()
    logger.info(
        "Application %s (%s) submitted by %s for loan %s",
        application.application_number, application.id, actor.id, loan.id,
    )

    await _confirm_submission(application, notifier)
    return application


async def approve_application(
    session: AsyncSession, actor: Actor, application_id: str, notifier: EmailDispatcher
) -> Application:
    _require_admin(actor)
    application = await get_application(session, application_id)
    if settings.guard_terminal_transitions and application.status == ApplicationStatus.APPROVED:
        logger.info("Application %s already approved; nothing to do", application.id)
        return application

    await _enter_status(session, application, ApplicationStatus.APPROVED)
    application.approved_at = _now()
    application.approved_by = actor.id
    await session.commit()
    logger.info("Application %s approved by %s", application.application_number, actor.id)

    content = approval_email(application)
    result = await notifier.send_email(_recipient(application), content.subject, content.html, content.text)
    if not result.success:
        logger.warning("Approval email for %s failed: %s", application.application_number, result.error)
    return application


async def reject_application(
    session: AsyncSession,
    actor: Actor,
    application_id: str,
    notifier: EmailDispatcher,
    reason: Optional[str] = None,
) -> Application:
    _require_admin(actor)
    application = await get_application(session, application_id)
    if settings.guard_terminal_transitions and application.status == ApplicationStatus.REJECTED:
        logger.info("Application %s already rejected; nothing to do", application.id)
        return application

    await _enter_status(session, application, ApplicationStatus.REJECTED)
    application.rejected_at = _now()
    application.rejection_reason = (reason or "").strip() or settings.default_rejection_reason
    await session.commit()
    logger.info("Application %s rejected by %s", application.application_number, actor.id)

    content = rejection_email(application)
    result = await notifier.send_email(_recipient(application), content.subject, content.html, content.text)
    if not result.success:
        logger.warning("Rejection email for %s failed: %s", application.application_number, result.error)
    return application


def _merged_loan_details(current: dict[str, Any], changes: dict[str, Any]) -> dict[str, Any]:
    """Changed values win; an amount or tenure not mentioned in the change keeps its stored value."""
    details = dict_keys_to_snake(changes)
    for keys in (AMOUNT_KEYS, TENURE_KEYS):
        if not any(details.get(k) is not None for k in keys):
            details[keys[0]] = current.get(keys[0])
    if "purpose" not in details and current.get("purpose"):
        details["purpose"] = current["purpose"]
    return details


async def update_application(
    session: AsyncSession,
    actor: Actor,
    application_id: str,
    body: ApplicationUpdate,
    notifier: EmailDispatcher,
) -> Application:
    """
    Owners may edit their own Draft applications; admins may edit any application.
    Sections are merged into the stored ones and the whole record is re-validated
    before anything is written. A Draft that leaves Draft here is committed and
    gets the same confirmation email as a direct submission.
    """
    application = await get_application(session, application_id)
    is_owner = application.user_id == actor.id
    if not actor.is_admin and (not is_owner or application.status != ApplicationStatus.DRAFT):
        raise NotAuthorized("Not authorized to update this application")

    personal_info = dict(application.personal_info or {})
    address = dict(application.address or {}) or None
    employment_info = dict(application.employment_info or {})
    loan_details = dict(application.loan_details or {})
    dynamic_fields = dict(application.dynamic_fields or {})

    if body.personal_info is not None:
        personal_info.update(dict_keys_to_snake(body.personal_info))
    if body.address is not None:
        address = {**(address or {}), **dict_keys_to_snake(body.address)}
    if body.employment_info is not None:
        employment_info = validate_employment(
            Parsed({**employment_info, **dict_keys_to_snake(body.employment_info)})
        )

    loan = None
    if body.loan_details is not None or body.dynamic_fields is not None:
        loan = await get_loan(session, application.loan_id)
        if loan is None:
            raise ValidationFailed("The loan product for this application no longer exists", field="loanId")
    if body.loan_details is not None:
        terms = validate_loan_details(
            Parsed(_merged_loan_details(loan_details, body.loan_details)), loan.interest_rate
        )
        loan_details = terms.as_dict()
    if body.dynamic_fields is not None:
        definitions = await load_field_definitions(session, loan)
        dynamic_fields = plain_dynamic_fields(
            resolve_dynamic_fields(definitions, {**dynamic_fields, **body.dynamic_fields})
        )

    record = validate_record({
        "loan_id": application.loan_id,
        "loan_type": application.loan_type,
        "personal_info": personal_info,
        "address": address,
        "employment_info": employment_info,
        "loan_details": loan_details,
        "documents": application.documents or [],
        "dynamic_fields": dynamic_fields,
    })
    dumped = record.model_dump(mode="json", by_alias=False, exclude_none=True)
    application.personal_info = dumped["personal_info"]
    application.address = dumped.get("address")
    application.employment_info = dumped["employment_info"]
    application.loan_details = loan_details
    application.dynamic_fields = dynamic_fields

    was_draft = application.status == ApplicationStatus.DRAFT
    if body.status is not None and body.status != application.status:
        allowed = ADMIN_UPDATE_STATUSES if actor.is_admin else OWNER_UPDATE_STATUSES
        if body.status not in allowed:
            if body.status in ApplicationStatus.TERMINAL:
                raise ValidationFailed("Use the approve or reject action to decide an application", field="status")
            raise NotAuthorized("Not authorized to change the status of this application")
        await _enter_status(session, application, body.status)
    application.updated_at = _now()
    if was_draft and application.status != ApplicationStatus.DRAFT:
        await session.commit()
        logger.info("Application %s (%s) submitted by %s", application.application_number, application.id, actor.id)
        await _confirm_submission(application, notifier)
        return application
    await session.flush()
    logger.info("Application %s updated by %s", application.id, actor.id)
    return application


async def add_admin_note(session: AsyncSession, actor: Actor, application_id: str, note: str) -> Application:
    _require_admin(actor)
    application = await get_application(session, application_id)
    application.admin_notes = [
        *(application.admin_notes or []),
        {"note": note.strip(), "added_by": actor.id, "added_at": _now().isoformat()},
    ]
    application.updated_at = _now()
    await session.flush()
    return application
