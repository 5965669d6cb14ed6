"""
Notification feed persistence in Firestore.

Feeds live under ``users/{userId}/notifications`` for signed-in users and
``guest_devices/{deviceId}/notifications`` for guests.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, Optional, Tuple
import logging

from google.cloud import firestore
from google.cloud.firestore_v1.base_query import FieldFilter

from momento.core.config import settings
from momento.core.exceptions import NotFoundError, UnauthorizedAccessError
from momento.core.firebase import DocumentStore
from momento.core.retry import retry_with_backoff
from momento.db.models.enums import NotificationStatus
from momento.db.schemas.notification import NotificationPage, NotificationPayload, NotificationRecord

logger = logging.getLogger(__name__)

# Firestore rejects batches with more than 500 writes
MAX_BATCH_WRITES = 500

EVENTS_COLLECTION = "events"


@dataclass(frozen=True)
class FeedOwner:
    """Recipient whose feed a record belongs to"""
    collection: str
    owner_id: str

    @classmethod
    def user(cls, user_id: str) -> "FeedOwner":
        return cls("users", user_id)

    @classmethod
    def guest(cls, device_id: str) -> "FeedOwner":
        return cls("guest_devices", device_id)

    @property
    def path(self) -> Tuple[str, str, str]:
        return (self.collection, self.owner_id, "notifications")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class NotificationStore:
    """
    Feed records: write on dispatch, list and mark as read
    """

    def __init__(
        self,
        document_store: Optional[DocumentStore],
        expiration_days: int = 30,
        retry_attempts: int = 3,
        retry_delay: float = 0.3,
    ):
        self.document_store = document_store
        self.expiration_days = expiration_days
        self.retry_attempts = retry_attempts
        self.retry_delay = retry_delay

    @classmethod
    def from_settings(cls, document_store: Optional[DocumentStore]) -> "NotificationStore":
        return cls(
            document_store,
            expiration_days=settings.NOTIFICATION_EXPIRATION_DAYS,
            retry_attempts=settings.FIREBASE_RETRY_ATTEMPTS,
            retry_delay=settings.FIREBASE_RETRY_DELAY,
        )

    @property
    def is_available(self) -> bool:
        return self.document_store is not None

    @property
    def store(self) -> DocumentStore:
        if self.document_store is None:
            raise RuntimeError("Notification store not initialized")
        return self.document_store

    def _feed(self, owner: FeedOwner):
        return self.store.collection(*owner.path)

    def _new_record(
        self,
        payload: NotificationPayload,
        notification_type: str = "push"
    ) -> Dict[str, Any]:
        created_at = _utcnow()
        return {
            "title": payload.title,
            "body": payload.body,
            "data": dict(payload.data),
            "status": NotificationStatus.UNREAD.value,
            "type": notification_type,
            "createdAt": created_at,
            "expiresAt": created_at + timedelta(days=self.expiration_days),
        }

    def new_notification_id(self, owner: FeedOwner) -> str:
        """Reserve a document id in ``owner``'s feed without writing"""
        return self._feed(owner).document().id

    async def store_notification(
        self,
        owner: FeedOwner,
        payload: NotificationPayload,
        notification_id: Optional[str] = None
    ) -> str:
        """
        Write one unread feed record

        Args:
            owner: Feed the record belongs to
            payload: Notification content as it was pushed
            notification_id: Previously reserved id, generated when omitted

        Returns:
            The record id
        """
        feed = self._feed(owner)
        ref = feed.document(notification_id) if notification_id else feed.document()
        await ref.set(self._new_record(payload))
        logger.debug(f"Stored notification {ref.id} for {owner.collection}/{owner.owner_id}")
        return ref.id

    async def store_notifications(
        self,
        entries: Iterable[Tuple[FeedOwner, NotificationPayload, Optional[str]]]
    ) -> int:
        """
        Write many feed records with batched commits

        Returns:
            Number of records written
        """
        written = 0
        batch = None
        pending = 0

        for owner, payload, notification_id in entries:
            if batch is None:
                batch = self.store.batch()
            feed = self._feed(owner)
            ref = feed.document(notification_id) if notification_id else feed.document()
            batch.set(ref, self._new_record(payload))
            pending += 1

            if pending == MAX_BATCH_WRITES:
                await batch.commit()
                written += pending
                batch, pending = None, 0

        if pending:
            await batch.commit()
            written += pending

        logger.debug(f"Stored {written} notification(s)")
        return written

    async def list_notifications(
        self,
        owner: FeedOwner,
        page: int = 1,
        limit: int = 20,
        status: Optional[NotificationStatus] = None
    ) -> NotificationPage:
        """
        One page of ``owner``'s feed, newest first, optionally filtered by status
        """
        page = max(page, 1)
        limit = max(limit, 1)

        query = self._feed(owner)
        if status is not None:
            query = query.where(filter=FieldFilter("status", "==", NotificationStatus(status).value))

        aggregate = await query.count().get()
        total = int(aggregate[0][0].value) if aggregate else 0

        docs = await (
            query.order_by("createdAt", direction=firestore.Query.DESCENDING)
            .offset((page - 1) * limit)
            .limit(limit)
            .get()
        )

        return NotificationPage(
            notifications=[NotificationRecord.from_document(doc.id, doc.to_dict()) for doc in docs],
            count=total,
            page=page,
            limit=limit,
        )

    async def mark_as_read(self, owner: FeedOwner, notification_id: str) -> Optional[NotificationRecord]:
        """
        Mark one record as read.

        Returns None when the record does not exist. An already read record
        is returned unchanged.
        """
        ref = self._feed(owner).document(notification_id)
        snapshot = await ref.get()
        if not snapshot.exists:
            return None

        document = snapshot.to_dict()
        if document.get("status") != NotificationStatus.READ.value:
            changes = {"status": NotificationStatus.READ.value, "readAt": _utcnow()}
            await ref.update(changes)
            document.update(changes)

        return NotificationRecord.from_document(snapshot.id, document)

    async def mark_all_as_read(self, owner: FeedOwner) -> int:
        """
        Mark every unread record in ``owner``'s feed as read

        Returns:
            Number of records updated; nothing is written when it is 0
        """
        unread = await self._feed(owner).where(
            filter=FieldFilter("status", "==", NotificationStatus.UNREAD.value)
        ).get()

        if not unread:
            return 0

        read_at = _utcnow()
        for start in range(0, len(unread), MAX_BATCH_WRITES):
            batch = self.store.batch()
            for doc in unread[start:start + MAX_BATCH_WRITES]:
                batch.update(doc.reference, {"status": NotificationStatus.READ.value, "readAt": read_at})
            await batch.commit()

        logger.info(f"Marked {len(unread)} notification(s) read for {owner.collection}/{owner.owner_id}")
        return len(unread)

    async def update_event_with_notification(
        self,
        event_id: str,
        user_id: str,
        changes: Dict[str, Any]
    ) -> str:
        """
        Update an event and record an ``event_update`` notification in one transaction

        The transaction is retried with linear backoff; a missing event or an
        event owned by someone else fails immediately.

        Args:
            event_id: Event document id
            user_id: Caller, who must own the event
            changes: Fields to write on the event

        Returns:
            Id of the created notification record

        Raises:
            NotFoundError: Event does not exist
            UnauthorizedAccessError: Event belongs to another user
        """
        store = self.store

        async def _update(transaction) -> str:
            event_ref = store.document(EVENTS_COLLECTION, event_id)
            snapshot = await event_ref.get(transaction=transaction)
            if not snapshot.exists:
                raise NotFoundError("Event")

            event = snapshot.to_dict()
            if event.get("userId") != user_id:
                raise UnauthorizedAccessError("Unauthorized access to event")

            now = _utcnow()
            transaction.update(event_ref, {**changes, "updatedAt": now})

            name = changes.get("name", event.get("name"))
            notification_ref = store.collection(*FeedOwner.user(user_id).path).document()
            transaction.create(notification_ref, {
                "content": f"Event updated: {name}",
                "eventId": event_id,
                "status": NotificationStatus.UNREAD.value,
                "type": "event_update",
                "createdAt": now,
                "expiresAt": now + timedelta(days=self.expiration_days),
            })
            return notification_ref.id

        notification_id = await retry_with_backoff(
            lambda: store.run_transaction(_update),
            max_attempts=self.retry_attempts,
            delay=self.retry_delay,
            non_retryable=(NotFoundError, UnauthorizedAccessError),
            operation=f"update event {event_id}",
        )
        logger.info(f"Event {event_id} updated with notification {notification_id}")
        return notification_id
