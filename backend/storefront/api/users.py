"""User profile endpoints."""

from fastapi import APIRouter, Depends

from storefront.api.auth import get_current_admin
from storefront.models.user import User
from storefront.schemas.user import UserResponse

router = APIRouter(prefix="/user", tags=["users"])


@router.get("/get-authenticated-user", response_model=UserResponse)
async def get_authenticated_user(
    current_user: User = Depends(get_current_admin),
) -> UserResponse:
    """Get the authenticated administrator's account."""
    return UserResponse.model_validate(current_user)
