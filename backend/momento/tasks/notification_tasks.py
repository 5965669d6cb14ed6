"""
Notification background tasks
"""
import asyncio
import logging

from momento.core.celery_app import celery_app
from momento.db.schemas.notification import NotificationPayload
from momento.services.factory import dispatcher_scope
from momento.utils.logger import log_context

logger = logging.getLogger(__name__)


def _payload(title: str, body: str, data: dict = None) -> NotificationPayload:
    return NotificationPayload(title=title, body=body, data=data or {})


@celery_app.task(bind=True, name="send_user_notification")
def send_user_notification(self, user_id: str, title: str, body: str, data: dict = None) -> dict:
    """
    Send push notification to every active device of a user

    Args:
        user_id: User ID
        title: Notification title
        body: Notification body
        data: Additional data payload

    Returns:
        DispatchResult as a dict
    """
    async def _send():
        async with dispatcher_scope() as dispatcher:
            return await dispatcher.send_notification_to_user(user_id, _payload(title, body, data))

    with log_context(task_id=self.request.id):
        result = asyncio.run(_send())
    return result.model_dump()


@celery_app.task(bind=True, name="send_bulk_notification")
def send_bulk_notification(self, user_ids: list[str], title: str, body: str, data: dict = None) -> dict:
    """
    Send push notification to multiple users

    Args:
        user_ids: List of user IDs
        title: Notification title
        body: Notification body
        data: Additional data payload
    """
    async def _send():
        async with dispatcher_scope() as dispatcher:
            return await dispatcher.send_notification_to_users(user_ids, _payload(title, body, data))

    with log_context(task_id=self.request.id):
        result = asyncio.run(_send())
    return result.model_dump()


@celery_app.task(bind=True, name="send_topic_notification")
def send_topic_notification(self, topic: str, title: str, body: str, data: dict = None) -> dict:
    """
    Send push notification to a topic

    Args:
        topic: Topic name
        title: Notification title
        body: Notification body
        data: Additional data payload
    """
    async def _send():
        async with dispatcher_scope() as dispatcher:
            return await dispatcher.send_topic_notification(topic, _payload(title, body, data))

    with log_context(task_id=self.request.id):
        result = asyncio.run(_send())
    return result.model_dump()


@celery_app.task(bind=True, name="broadcast_notification")
def broadcast_notification(self, title: str, body: str, data: dict = None) -> dict:
    """
    Send push notification to every active device
    """
    async def _send():
        async with dispatcher_scope() as dispatcher:
            return await dispatcher.broadcast_notification(_payload(title, body, data))

    with log_context(task_id=self.request.id):
        result = asyncio.run(_send())

    logger.info(f"Broadcast finished: {result.success_count} delivered, {result.failure_count} failed")
    return result.model_dump()
