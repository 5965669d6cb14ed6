"""
Notification payload, feed record and dispatch result schemas
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from momento.db.models.enums import NotificationStatus


class NotificationPayload(BaseModel):
    """
    Push notification content.

    ``data`` values are stringified because FCM only accepts string maps.
    """
    title: str = Field(..., min_length=1, max_length=255)
    body: str = Field(..., min_length=1)
    data: Dict[str, str] = Field(default_factory=dict)

    @field_validator("data", mode="before")
    @classmethod
    def stringify_data(cls, value: Any) -> Dict[str, str]:
        if value is None:
            return {}
        return {str(k): str(v) for k, v in dict(value).items()}

    def with_data(self, extra: Optional[Dict[str, Any]]) -> "NotificationPayload":
        """Copy of this payload with ``extra`` merged into data"""
        if not extra:
            return self
        return NotificationPayload(title=self.title, body=self.body, data={**self.data, **extra})


class DispatchResult(BaseModel):
    """
    Outcome of one dispatch call. Build through ``ok`` or ``failure``.
    """
    success: bool
    message_id: Optional[str] = None
    message_ids: List[str] = Field(default_factory=list)
    success_count: int = 0
    failure_count: int = 0
    error: Optional[str] = None

    @classmethod
    def ok(
        cls,
        message_id: Optional[str] = None,
        message_ids: Optional[List[str]] = None,
        success_count: Optional[int] = None,
        failure_count: int = 0,
    ) -> "DispatchResult":
        ids = list(message_ids) if message_ids is not None else ([message_id] if message_id else [])
        return cls(
            success=True,
            message_id=message_id or (ids[0] if ids else None),
            message_ids=ids,
            success_count=success_count if success_count is not None else len(ids),
            failure_count=failure_count,
        )

    @classmethod
    def failure(
        cls,
        error: str,
        success_count: int = 0,
        failure_count: int = 0,
        message_ids: Optional[List[str]] = None,
    ) -> "DispatchResult":
        if not error:
            raise ValueError("A failed dispatch needs an error message")
        return cls(
            success=False,
            message_ids=list(message_ids or []),
            success_count=success_count,
            failure_count=failure_count,
            error=error,
        )


class NotificationRecord(BaseModel):
    """
    Feed entry as stored in the document store (camelCase on the wire)
    """
    model_config = ConfigDict(populate_by_name=True)

    id: str
    title: Optional[str] = None
    body: Optional[str] = None
    content: Optional[str] = None
    data: Dict[str, str] = Field(default_factory=dict)
    status: NotificationStatus = NotificationStatus.UNREAD
    type: str = "push"
    event_id: Optional[str] = Field(None, alias="eventId")
    created_at: Optional[datetime] = Field(None, alias="createdAt")
    expires_at: Optional[datetime] = Field(None, alias="expiresAt")
    read_at: Optional[datetime] = Field(None, alias="readAt")

    @classmethod
    def from_document(cls, document_id: str, document: Dict[str, Any]) -> "NotificationRecord":
        return cls.model_validate({**document, "id": document_id})


class NotificationPage(BaseModel):
    """
    One page of a recipient's feed, newest first
    """
    notifications: List[NotificationRecord]
    count: int
    page: int
    limit: int


class SendUserNotificationRequest(BaseModel):
    user_id: str
    notification: NotificationPayload


class SendUsersNotificationRequest(BaseModel):
    user_ids: List[str] = Field(..., min_length=1)
    notification: NotificationPayload


class BroadcastNotificationRequest(BaseModel):
    notification: NotificationPayload


class TopicNotificationRequest(BaseModel):
    topic: str = Field(..., min_length=1, max_length=900)
    notification: NotificationPayload


class QueuedTaskResponse(BaseModel):
    task_id: str
    status: str = "queued"


class FeedParams(BaseModel):
    """
    Feed listing query parameters
    """
    page: int = Field(1, ge=1, description="Page number (1-indexed)")
    limit: int = Field(20, ge=1, le=100, description="Items per page")
    status: Optional[NotificationStatus] = Field(None, description="Only records with this status")
