"""
Notification feed and admin send endpoints
"""
from fastapi import APIRouter, Depends, status

from momento.api.dependencies.auth import CurrentUser, get_current_admin_user, get_current_user
from momento.api.dependencies.pagination import get_feed_params
from momento.api.dependencies.services import get_dispatcher
from momento.core.exceptions import NotFoundError
from momento.db.schemas.notification import (
    BroadcastNotificationRequest,
    DispatchResult,
    FeedParams,
    NotificationPage,
    NotificationRecord,
    QueuedTaskResponse,
    SendUserNotificationRequest,
    SendUsersNotificationRequest,
    TopicNotificationRequest,
)
from momento.services.notification_dispatcher import NotificationDispatcher
from momento.tasks.notification_tasks import broadcast_notification

router = APIRouter()


@router.get("", response_model=NotificationPage)
async def get_notifications(
    params: FeedParams = Depends(get_feed_params),
    current_user: CurrentUser = Depends(get_current_user),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher)
):
    """Current user's notification feed, newest first"""
    return await dispatcher.get_user_notifications(
        current_user.id,
        page=params.page,
        limit=params.limit,
        status=params.status
    )


@router.put("/read-all")
async def mark_all_as_read(
    current_user: CurrentUser = Depends(get_current_user),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher)
):
    """Mark every unread notification as read"""
    updated = await dispatcher.mark_all_as_read(current_user.id)
    return {"updated": updated}


@router.put("/{notification_id}/read", response_model=NotificationRecord)
async def mark_as_read(
    notification_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher)
):
    """Mark one notification as read"""
    record = await dispatcher.mark_as_read(current_user.id, notification_id)
    if record is None:
        raise NotFoundError("Notification")
    return record


@router.post("/send", response_model=DispatchResult)
async def send_to_user(
    request: SendUserNotificationRequest,
    admin: CurrentUser = Depends(get_current_admin_user),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher)
):
    """Send to every active device of one user (admin only)"""
    return await dispatcher.send_notification_to_user(request.user_id, request.notification)


@router.post("/send-many", response_model=DispatchResult)
async def send_to_users(
    request: SendUsersNotificationRequest,
    admin: CurrentUser = Depends(get_current_admin_user),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher)
):
    """Send to several users at once (admin only)"""
    return await dispatcher.send_notification_to_users(request.user_ids, request.notification)


@router.post("/broadcast", response_model=QueuedTaskResponse, status_code=status.HTTP_202_ACCEPTED)
async def broadcast(
    request: BroadcastNotificationRequest,
    admin: CurrentUser = Depends(get_current_admin_user)
):
    """Queue a broadcast to every active device (admin only)"""
    task = broadcast_notification.delay(
        title=request.notification.title,
        body=request.notification.body,
        data=request.notification.data
    )
    return QueuedTaskResponse(task_id=task.id)


@router.post("/topic", response_model=DispatchResult)
async def send_to_topic(
    request: TopicNotificationRequest,
    admin: CurrentUser = Depends(get_current_admin_user),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher)
):
    """Send to a topic (admin only)"""
    return await dispatcher.send_topic_notification(request.topic, request.notification)
