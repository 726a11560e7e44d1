from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.acl import PERM_VIEW_STAFF_PROGRESS
from app.auth import get_current_user, restaurant_id_of
from app.database import get_session
from app.engine import TrainingEngine, get_engine
from app.models import User
from app.schemas import AttemptDetailRead

router = APIRouter(prefix="/attempts", tags=["attempts"])


@router.get("/{attempt_id}", response_model=AttemptDetailRead)
async def read_attempt(
    attempt_id: int,
    db: AsyncSession = Depends(get_session),
    engine: TrainingEngine = Depends(get_engine),
    current_user: User = Depends(get_current_user),
):
    """Question-by-question review of one attempt.

    Staff members only see their own attempts; anyone who can view staff
    progress sees every attempt in their restaurant.
    """
    restaurant_id = restaurant_id_of(current_user)
    perms = {p.name for p in current_user.permissions}
    staff_id = None if PERM_VIEW_STAFF_PROGRESS in perms else current_user.id
    return await engine.attempt_detail(db, attempt_id, restaurant_id, staff_id)
