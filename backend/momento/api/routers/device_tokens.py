"""
Device token registration endpoints
"""
from fastapi import APIRouter, Depends, status

from momento.api.dependencies.auth import CurrentUser, get_current_user
from momento.api.dependencies.services import get_token_service
from momento.db.schemas.device_token import DeviceTokenCreate, DeviceTokenDeactivate, DeviceTokenResponse
from momento.services.device_token_service import DeviceTokenService

router = APIRouter()


@router.post("", response_model=DeviceTokenResponse, status_code=status.HTTP_201_CREATED)
async def register_device_token(
    request: DeviceTokenCreate,
    current_user: CurrentUser = Depends(get_current_user),
    token_service: DeviceTokenService = Depends(get_token_service)
):
    """Register (or reactivate) a push token for the current user"""
    return await token_service.save_token(current_user.id, request.token, request.device_type)


@router.post("/deactivate")
async def deactivate_device_token(
    request: DeviceTokenDeactivate,
    current_user: CurrentUser = Depends(get_current_user),
    token_service: DeviceTokenService = Depends(get_token_service)
):
    """Stop delivering to a token, e.g. on sign-out"""
    await token_service.deactivate_token(request.token)
    return {"message": "Device token deactivated"}
