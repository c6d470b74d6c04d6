"""Registration and activation endpoints."""

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core import get_db
from storefront.schemas.auth import MessageResponse
from storefront.schemas.user import ActivationRequest, RegistrationRequest
from storefront.services.auth import (
    EmailAlreadyRegisteredError,
    IdentityStoreError,
    InvalidActivationTokenError,
)
from storefront.services.registration import RegistrationService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["registration"])


def get_registration_service(db: AsyncSession = Depends(get_db)) -> RegistrationService:
    """Dependency to get registration service."""
    return RegistrationService(db)


@router.post("/registration", response_model=MessageResponse)
async def register(
    request: RegistrationRequest,
    service: RegistrationService = Depends(get_registration_service),
) -> MessageResponse:
    """Create an unverified account and send its activation link."""
    try:
        await service.register(
            name=request.name,
            email=request.email,
            password=request.password,
        )
    except EmailAlreadyRegisteredError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_CONTENT,
            detail=str(e),
        ) from e
    except IdentityStoreError as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Service temporarily unavailable",
        ) from e

    return MessageResponse(
        message="Registration is success! Please check your mail to activate your user."
    )


@router.post("/activation", response_model=MessageResponse)
async def activate(
    request: ActivationRequest,
    service: RegistrationService = Depends(get_registration_service),
) -> MessageResponse:
    """Verify an account using the token from its activation link."""
    try:
        await service.activate(request.token)
    except InvalidActivationTokenError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    except IdentityStoreError as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Service temporarily unavailable",
        ) from e

    return MessageResponse(message="User activated successfully!")
