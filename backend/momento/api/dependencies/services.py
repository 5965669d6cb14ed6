"""
Service dependencies resolved from application state
"""
from fastapi import Depends, Request

from momento.services.device_token_service import DeviceTokenService
from momento.services.guest_device_service import GuestDeviceService
from momento.services.notification_dispatcher import NotificationDispatcher


def get_dispatcher(request: Request) -> NotificationDispatcher:
    """Dispatcher built by the application lifespan"""
    dispatcher = getattr(request.app.state, "dispatcher", None)
    if dispatcher is None:
        raise RuntimeError("Notification dispatcher not initialized")
    return dispatcher


def get_token_service(
    dispatcher: NotificationDispatcher = Depends(get_dispatcher)
) -> DeviceTokenService:
    return dispatcher.token_service


def get_guest_device_service(
    dispatcher: NotificationDispatcher = Depends(get_dispatcher)
) -> GuestDeviceService:
    return dispatcher.guest_device_service
