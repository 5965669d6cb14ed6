"""
Guest device endpoints, identified by the X-Device-ID header
"""
from fastapi import APIRouter, Depends

from momento.api.dependencies.auth import get_device_id
from momento.api.dependencies.pagination import get_feed_params
from momento.api.dependencies.services import get_dispatcher
from momento.core.exceptions import InvalidTokenFormatError, NotFoundError
from momento.db.schemas.device_token import GuestDeviceCreate, GuestDeviceResponse
from momento.db.schemas.notification import FeedParams, NotificationPage, NotificationRecord
from momento.services.notification_dispatcher import NotificationDispatcher

router = APIRouter()


@router.post("/devices", response_model=GuestDeviceResponse)
async def register_guest_device(
    request: GuestDeviceCreate,
    device_id: str = Depends(get_device_id),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher)
):
    """Register a guest device or update its push token and timezone"""
    if request.firebase_token and not dispatcher.validator.is_well_formed(request.firebase_token):
        raise InvalidTokenFormatError()

    device = await dispatcher.guest_device_service.find_or_create(
        device_id,
        firebase_token=request.firebase_token,
        timezone=request.timezone
    )
    return GuestDeviceResponse(
        device_id=device.device_id,
        timezone=device.timezone,
        is_active=device.is_active,
        has_push_token=bool(device.firebase_token),
        created_at=device.created_at
    )


@router.get("/notifications", response_model=NotificationPage)
async def get_guest_notifications(
    params: FeedParams = Depends(get_feed_params),
    device_id: str = Depends(get_device_id),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher)
):
    return await dispatcher.get_guest_notifications(
        device_id,
        page=params.page,
        limit=params.limit,
        status=params.status
    )


@router.put("/notifications/read-all")
async def mark_all_guest_notifications_as_read(
    device_id: str = Depends(get_device_id),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher)
):
    updated = await dispatcher.mark_all_guest_notifications_as_read(device_id)
    return {"updated": updated}


@router.put("/notifications/{notification_id}/read", response_model=NotificationRecord)
async def mark_guest_notification_as_read(
    notification_id: str,
    device_id: str = Depends(get_device_id),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher)
):
    record = await dispatcher.mark_guest_notification_as_read(device_id, notification_id)
    if record is None:
        raise NotFoundError("Notification")
    return record
