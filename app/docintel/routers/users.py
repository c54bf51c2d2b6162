"""
Router for the current user.
"""

from fastapi import APIRouter, Depends

from ..dependencies import get_current_user
from ..models import UserResponse
from ..models_db import User

router = APIRouter(prefix="/api/auth", tags=["users"])


@router.get("/user", response_model=UserResponse)
async def get_user(user: User = Depends(get_current_user)) -> UserResponse:
    return UserResponse(
        id=user.id,
        email=user.email,
        first_name=user.first_name,
        last_name=user.last_name,
        profile_image_url=user.profile_image_url,
        role=user.role,
        created_at=user.created_at.isoformat(),
    )
