"""Staff roles used to target quizzes at servers, bartenders and so on."""

from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.acl import PERM_MANAGE_STAFF
from app.auth import require_permissions, restaurant_id_of
from app.crud import create_staff_role, get_staff_roles
from app.database import get_session
from app.models import StaffRole, User
from app.schemas import StaffRoleCreate, StaffRoleRead

router = APIRouter(prefix="/roles", tags=["roles"])


@router.post("/", response_model=StaffRoleRead)
async def add_role(
    data: StaffRoleCreate,
    db: AsyncSession = Depends(get_session),
    current_user: User = Depends(require_permissions(PERM_MANAGE_STAFF)),
):
    role = StaffRole(
        restaurant_id=restaurant_id_of(current_user),
        name=data.name,
        description=data.description,
    )
    return await create_staff_role(db, role)


@router.get("/", response_model=List[StaffRoleRead])
async def list_roles(
    db: AsyncSession = Depends(get_session),
    current_user: User = Depends(require_permissions(PERM_MANAGE_STAFF)),
):
    return await get_staff_roles(db, restaurant_id_of(current_user))
