"""Routes for managing staff members and reading their training records.

Managers work with staff in their own restaurant through ``/staff/{id}``.
Staff members read their own records through the ``/staff/me`` routes.
"""

import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from app.acl import PERM_MANAGE_STAFF, PERM_TAKE_QUIZZES, PERM_VIEW_STAFF_PROGRESS
from app.auth import require_permissions, restaurant_id_of
from app.crud import (
    create_user,
    get_staff_for_restaurant,
    get_staff_member,
    get_staff_role,
    get_user_by_email,
    save_user,
)
from app.database import get_session
from app.engine import TrainingEngine, get_engine
from app.models import User
from app.schemas import (
    AttemptSummaryRead,
    CategoryPerformanceRead,
    StaffAssignment,
    StaffCreate,
    StaffProgressRead,
    StaffRankingRead,
    StaffRead,
    StaffSummaryRead,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/staff", tags=["staff"])


async def _ensure_role(db: AsyncSession, role_id: int | None, restaurant_id: int):
    if role_id is not None and not await get_staff_role(db, role_id, restaurant_id):
        raise HTTPException(status_code=404, detail="Staff role not found")


@router.post("/", response_model=StaffRead)
async def create_staff(
    data: StaffCreate,
    db: AsyncSession = Depends(get_session),
    current_user: User = Depends(require_permissions(PERM_MANAGE_STAFF)),
):
    restaurant_id = restaurant_id_of(current_user)
    if await get_user_by_email(db, data.email):
        raise HTTPException(status_code=400, detail="Email already registered")
    await _ensure_role(db, data.assigned_role_id, restaurant_id)
    staff = User(
        name=data.name,
        email=data.email,
        password_hash=data.password,
        role="staff",
        restaurant_id=restaurant_id,
        assigned_role_id=data.assigned_role_id,
    )
    staff = await create_user(db, staff)
    logger.info("Staff %s added to restaurant %s", staff.id, restaurant_id)
    return staff


@router.get("/", response_model=List[StaffRead])
async def list_staff(
    db: AsyncSession = Depends(get_session),
    current_user: User = Depends(require_permissions(PERM_MANAGE_STAFF)),
):
    return await get_staff_for_restaurant(db, restaurant_id_of(current_user))


@router.get("/rollup", response_model=List[StaffSummaryRead])
async def restaurant_rollup(
    db: AsyncSession = Depends(get_session),
    engine: TrainingEngine = Depends(get_engine),
    current_user: User = Depends(require_permissions(PERM_VIEW_STAFF_PROGRESS)),
):
    """Training summary for every staff member of the caller's restaurant."""
    return await engine.get_restaurant_rollup(db, restaurant_id_of(current_user))


# -- the authenticated staff member's own records --------------------------


@router.get("/me/progress", response_model=StaffProgressRead)
async def my_progress(
    db: AsyncSession = Depends(get_session),
    engine: TrainingEngine = Depends(get_engine),
    current_user: User = Depends(require_permissions(PERM_TAKE_QUIZZES)),
):
    return await engine.get_staff_progress(
        db, current_user.id, restaurant_id_of(current_user)
    )


@router.get("/me/attempts", response_model=List[AttemptSummaryRead])
async def my_attempts(
    db: AsyncSession = Depends(get_session),
    engine: TrainingEngine = Depends(get_engine),
    current_user: User = Depends(require_permissions(PERM_TAKE_QUIZZES)),
):
    return await engine.attempt_history(
        db, current_user.id, restaurant_id_of(current_user)
    )


@router.get("/me/ranking", response_model=StaffRankingRead)
async def my_ranking(
    db: AsyncSession = Depends(get_session),
    engine: TrainingEngine = Depends(get_engine),
    current_user: User = Depends(require_permissions(PERM_TAKE_QUIZZES)),
):
    return await engine.staff_ranking(
        db, current_user.id, restaurant_id_of(current_user)
    )


@router.get("/me/categories", response_model=List[CategoryPerformanceRead])
async def my_categories(
    db: AsyncSession = Depends(get_session),
    engine: TrainingEngine = Depends(get_engine),
    current_user: User = Depends(require_permissions(PERM_TAKE_QUIZZES)),
):
    return await engine.knowledge_category_breakdown(
        db, current_user.id, restaurant_id_of(current_user)
    )


# -- manager views of one staff member ---------------------------------------


@router.get("/{staff_id}", response_model=StaffRead)
async def get_staff(
    staff_id: int,
    db: AsyncSession = Depends(get_session),
    current_user: User = Depends(require_permissions(PERM_MANAGE_STAFF)),
):
    staff = await get_staff_member(db, staff_id, restaurant_id_of(current_user))
    if not staff:
        raise HTTPException(status_code=404, detail="Staff member not found")
    return staff


@router.put("/{staff_id}/role", response_model=StaffRead)
async def update_staff_role(
    staff_id: int,
    data: StaffAssignment,
    db: AsyncSession = Depends(get_session),
    current_user: User = Depends(require_permissions(PERM_MANAGE_STAFF)),
):
    restaurant_id = restaurant_id_of(current_user)
    staff = await get_staff_member(db, staff_id, restaurant_id)
    if not staff:
        raise HTTPException(status_code=404, detail="Staff member not found")
    await _ensure_role(db, data.assigned_role_id, restaurant_id)
    staff.assigned_role_id = data.assigned_role_id
    return await save_user(db, staff)


@router.delete("/{staff_id}")
async def delete_staff(
    staff_id: int,
    db: AsyncSession = Depends(get_session),
    engine: TrainingEngine = Depends(get_engine),
    current_user: User = Depends(require_permissions(PERM_MANAGE_STAFF)),
):
    await engine.delete_staff(db, staff_id, restaurant_id_of(current_user))
    return {"message": "Staff member deleted"}


@router.get("/{staff_id}/progress", response_model=StaffProgressRead)
async def staff_progress(
    staff_id: int,
    db: AsyncSession = Depends(get_session),
    engine: TrainingEngine = Depends(get_engine),
    current_user: User = Depends(require_permissions(PERM_VIEW_STAFF_PROGRESS)),
):
    return await engine.get_staff_progress(db, staff_id, restaurant_id_of(current_user))


@router.get("/{staff_id}/attempts", response_model=List[AttemptSummaryRead])
async def staff_attempts(
    staff_id: int,
    db: AsyncSession = Depends(get_session),
    engine: TrainingEngine = Depends(get_engine),
    current_user: User = Depends(require_permissions(PERM_VIEW_STAFF_PROGRESS)),
):
    return await engine.attempt_history(db, staff_id, restaurant_id_of(current_user))


@router.get("/{staff_id}/ranking", response_model=StaffRankingRead)
async def staff_ranking(
    staff_id: int,
    db: AsyncSession = Depends(get_session),
    engine: TrainingEngine = Depends(get_engine),
    current_user: User = Depends(require_permissions(PERM_VIEW_STAFF_PROGRESS)),
):
    return await engine.staff_ranking(db, staff_id, restaurant_id_of(current_user))


@router.get("/{staff_id}/categories", response_model=List[CategoryPerformanceRead])
async def staff_categories(
    staff_id: int,
    db: AsyncSession = Depends(get_session),
    engine: TrainingEngine = Depends(get_engine),
    current_user: User = Depends(require_permissions(PERM_VIEW_STAFF_PROGRESS)),
):
    return await engine.knowledge_category_breakdown(
        db, staff_id, restaurant_id_of(current_user)
    )
