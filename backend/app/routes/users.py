from fastapi import APIRouter, Depends
from app.schemas import UserMeResponse
from app.models import User
from app.auth import get_current_user

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/me", response_model=UserMeResponse)
async def read_current_user(current_user: User = Depends(get_current_user)):
    """Return details for the authenticated user."""
    return UserMeResponse(
        id=current_user.id,
        name=current_user.name,
        email=current_user.email,
        role=current_user.role,
        restaurant_id=current_user.restaurant_id,
        assigned_role_id=current_user.assigned_role_id,
        permissions=[p.name for p in current_user.permissions],
    )
