from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import get_current_actor
from database import get_db
from schemas.actor import Actor
from services import lifecycle
from services.errors import LoanNotFound

router = APIRouter(prefix="/api/form-fields", tags=["form-fields"])


@router.get("/loan/{loan_id}")
async def list_loan_form_fields(
    loan_id: str,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    """Active dynamic fields the application form should render for this loan."""
    loan = await lifecycle.get_loan(db, loan_id)
    if not loan:
        raise LoanNotFound()
    fields = await lifecycle.load_field_definitions(db, loan)
    return {"success": True, "count": len(fields), "data": [f.model_dump(by_alias=True) for f in fields]}
