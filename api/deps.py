from typing import Optional

from fastapi import Header, Request

from schemas.actor import Actor
from services.errors import NotAuthenticated, NotAuthorized
from services.notifications import EmailDispatcher
from services.storage import LocalUploadStore


async def get_current_actor(
    x_user_id: Optional[str] = Header(None),
    x_user_role: Optional[str] = Header(None),
    x_user_email: Optional[str] = Header(None),
) -> Actor:
    """Identity forwarded by the authenticating gateway."""
    if not x_user_id or not x_user_id.strip():
        raise NotAuthenticated("Not authorized, no token")
    role = (x_user_role or "user").strip().lower()
    if role not in ("user", "admin"):
        raise NotAuthorized(f"Unknown role: {x_user_role}")
    return Actor(id=x_user_id.strip(), role=role, email=x_user_email)


def get_notifier(request: Request) -> EmailDispatcher:
    return request.app.state.notifier


def get_upload_store(request: Request) -> LocalUploadStore:
    return request.app.state.upload_store
