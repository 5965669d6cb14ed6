"""
Push notification dispatch: recipient resolution, batching, rate limiting,
dead token cleanup and feed records
"""
import logging
import re
from typing import Any, Dict, List, Optional, Sequence, Tuple

from pydantic import ValidationError

from momento.core.exceptions import RateLimitError
from momento.core.sentry import capture_exception
from momento.db.models.enums import NotificationStatus
from momento.db.schemas.notification import (
    DispatchResult,
    NotificationPage,
    NotificationPayload,
    NotificationRecord,
)
from momento.services.device_token_service import DeviceTokenService
from momento.services.guest_device_service import GuestDeviceService
from momento.services.notification_store import FeedOwner, NotificationStore
from momento.services.push_transport import PushProviderError, PushTransport, SendResponse
from momento.services.rate_limiter import RateLimiter
from momento.services.token_validation import TokenValidator, mask_token

logger = logging.getLogger(__name__)

TOPIC_PATTERN = re.compile(r"^[A-Za-z0-9_.-]+$")

# Rate limit keys
SEND_KEY = "fcm_send"
TOPIC_SEND_KEY = "fcm_topic_send"
MULTICAST_KEY = "fcm_multicast"

# Failure messages
TRANSPORT_NOT_INITIALIZED = "transport not initialized"
INVALID_TOKEN_FORMAT = "invalid token format"
TOKEN_DEACTIVATED = "token deactivated"
NO_ACTIVE_TOKENS = "no active tokens"
NO_ACTIVE_TOKEN = "no active token"
NO_VALID_TOKEN_FORMATS = "no valid token formats"
NO_USER_IDS = "no user ids provided"
INVALID_TOPIC_FORMAT = "invalid topic format"
NO_VALID_FCM_TOKENS = "no valid FCM tokens found"
FIREBASE_NOT_INITIALIZED = "Firebase app not initialized"
NO_VALID_FCM_TOKEN_FORMATS = "no valid FCM token formats found"
ALL_DELIVERIES_FAILED = "all deliveries failed"
INVALID_NOTIFICATION = "invalid notification"


def _payload_error(error: ValidationError) -> str:
    """Failure message naming the first field that failed validation"""
    first = error.errors()[0]
    field = ".".join(str(part) for part in first["loc"])
    return f"{INVALID_NOTIFICATION}: {field}: {first['msg']}"


class NotificationDispatcher:
    """
    Sends push notifications to devices, users, guests and topics.

    Every send operation returns a DispatchResult. Expected failures (no
    recipients, malformed tokens, provider rejections) are reported in the
    result and never raised.

    Feed records are written once the push has reached the provider. The feed
    write and the token database are separate stores with no shared
    transaction, so a crash between push and feed write leaves a delivered
    push without a record.
    """

    def __init__(
        self,
        token_service: DeviceTokenService,
        guest_device_service: GuestDeviceService,
        notification_store: NotificationStore,
        rate_limiter: RateLimiter,
        validator: TokenValidator,
        transport: Optional[PushTransport] = None,
        batch_size: int = 500,
    ):
        required = {
            "token_service": token_service,
            "guest_device_service": guest_device_service,
            "notification_store": notification_store,
            "rate_limiter": rate_limiter,
            "validator": validator,
        }
        missing = [name for name, value in required.items() if value is None]
        if missing:
            raise ValueError(f"NotificationDispatcher missing collaborators: {', '.join(missing)}")
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")

        self.token_service = token_service
        self.guest_device_service = guest_device_service
        self.notification_store = notification_store
        self.rate_limiter = rate_limiter
        self.validator = validator
        self.transport = transport
        self.batch_size = batch_size

    @property
    def transport_ready(self) -> bool:
        return self.transport is not None

    async def send_notification(
        self,
        token: str,
        notification: NotificationPayload,
        data: Optional[Dict[str, Any]] = None
    ) -> DispatchResult:
        """
        Send to one registration token

        A token the provider reports as invalid or unregistered is deactivated
        for every owner and the result carries "token deactivated".
        """
        result, _ = await self._send_to_token(token, notification.with_data(data))
        return result

    async def _send_to_token(self, token: str, payload: NotificationPayload) -> Tuple[DispatchResult, bool]:
        """
        Returns:
            The result and whether the push was handed to the provider
        """
        if self.transport is None:
            return DispatchResult.failure(TRANSPORT_NOT_INITIALIZED), False

        if not self.validator.is_well_formed(token):
            logger.warning(f"Refusing to send to malformed token {mask_token(token)}")
            return DispatchResult.failure(INVALID_TOKEN_FORMAT), False

        attempted = False
        try:
            await self.rate_limiter.apply_rate_limit(SEND_KEY)
            attempted = True
            message_id = await self.transport.send_to_token(token, payload)
        except RateLimitError as e:
            return DispatchResult.failure(e.detail), attempted
        except PushProviderError as e:
            if e.is_invalid_token:
                await self._deactivate(token)
                return DispatchResult.failure(TOKEN_DEACTIVATED), attempted
            logger.error(f"Push to {mask_token(token)} failed: {e.code} {e.message}")
            return DispatchResult.failure(e.message or e.code), attempted
        except Exception as e:
            logger.error(f"Unexpected error sending to {mask_token(token)}: {e}", exc_info=True)
            capture_exception(e, {"push": {"operation": "send_notification"}})
            return DispatchResult.failure(str(e) or type(e).__name__), attempted

        logger.info(f"Sent notification {message_id} to {mask_token(token)}")
        return DispatchResult.ok(message_id=message_id), attempted

    async def send_topic_notification(
        self,
        topic: str,
        notification: NotificationPayload,
        data: Optional[Dict[str, Any]] = None
    ) -> DispatchResult:
        if not topic or not TOPIC_PATTERN.match(topic):
            return DispatchResult.failure(INVALID_TOPIC_FORMAT)

        if self.transport is None:
            return DispatchResult.failure(TRANSPORT_NOT_INITIALIZED)

        payload = notification.with_data(data)

        try:
            await self.rate_limiter.apply_rate_limit(TOPIC_SEND_KEY)
            message_id = await self.transport.send_to_topic(topic, payload)
        except RateLimitError as e:
            return DispatchResult.failure(e.detail)
        except PushProviderError as e:
            logger.error(f"Push to topic {topic} failed: {e.code} {e.message}")
            return DispatchResult.failure(e.message or e.code)
        except Exception as e:
            logger.error(f"Unexpected error sending to topic {topic}: {e}", exc_info=True)
            capture_exception(e, {"push": {"operation": "send_topic_notification", "topic": topic}})
            return DispatchResult.failure(str(e) or type(e).__name__)

        logger.info(f"Sent notification {message_id} to topic {topic}")
        return DispatchResult.ok(message_id=message_id)

    async def send_notification_to_user(
        self,
        user_id: str,
        notification: NotificationPayload,
        data: Optional[Dict[str, Any]] = None
    ) -> DispatchResult:
        """
        Send to every active device of one user and record it in their feed
        """
        rows = await self.token_service.get_active_tokens_for_user(user_id)
        if not rows:
            logger.info(f"User {user_id} has no active tokens")
            return DispatchResult.failure(NO_ACTIVE_TOKENS)

        tokens = [row.token for row in rows if self.validator.is_well_formed(row.token)]
        if not tokens:
            return DispatchResult.failure(NO_VALID_TOKEN_FORMATS)

        owner = FeedOwner.user(user_id)
        notification_id = self._reserve_notification_id(owner)

        payload = notification.with_data(data)
        if notification_id:
            payload = payload.with_data({"notificationId": notification_id})

        result, attempted = await self._multicast(tokens, payload)

        if attempted:
            await self._record(owner, payload, notification_id)

        return result

    async def send_notification_to_users(
        self,
        user_ids: Sequence[str],
        notification: NotificationPayload,
        data: Optional[Dict[str, Any]] = None
    ) -> DispatchResult:
        """
        Send to every active device of several users with one token lookup

        Each requested user gets one feed record.
        """
        if not user_ids:
            return DispatchResult.failure(NO_USER_IDS)

        unique_ids = list(dict.fromkeys(user_ids))
        rows = await self.token_service.get_active_tokens_for_users(unique_ids)
        if not rows:
            return DispatchResult.failure(NO_ACTIVE_TOKENS)

        tokens = [row.token for row in rows if self.validator.is_well_formed(row.token)]
        if not tokens:
            return DispatchResult.failure(NO_VALID_TOKEN_FORMATS)

        payload = notification.with_data(data)
        result, attempted = await self._multicast(tokens, payload)

        if attempted:
            await self._record_many([(FeedOwner.user(user_id), payload) for user_id in unique_ids])

        logger.info(
            f"Sent notification to {len(unique_ids)} user(s): "
            f"{result.success_count} delivered, {result.failure_count} failed"
        )
        return result

    async def broadcast_notification(
        self,
        notification: NotificationPayload,
        data: Optional[Dict[str, Any]] = None
    ) -> DispatchResult:
        """
        Send to every active device; each distinct owner gets one feed record
        """
        rows = await self.token_service.get_all_active_tokens()
        if not rows:
            return DispatchResult.failure(NO_ACTIVE_TOKENS)

        valid_rows = [row for row in rows if self.validator.is_well_formed(row.token)]
        if not valid_rows:
            return DispatchResult.failure(NO_VALID_TOKEN_FORMATS)

        payload = notification.with_data(data)
        result, attempted = await self._multicast([row.token for row in valid_rows], payload)

        if attempted:
            owners = dict.fromkeys(row.user_id for row in valid_rows)
            await self._record_many([(FeedOwner.user(user_id), payload) for user_id in owners])

        logger.info(
            f"Broadcast to {len(valid_rows)} device(s): "
            f"{result.success_count} delivered, {result.failure_count} failed"
        )
        return result

    async def send_notification_to_batch(
        self,
        tokens: Sequence[str],
        title: str,
        body: str,
        data: Optional[Dict[str, Any]] = None
    ) -> DispatchResult:
        """Multicast to raw registration tokens, no feed record"""
        try:
            payload = NotificationPayload(title=title, body=body, data=data or {})
        except ValidationError as e:
            return DispatchResult.failure(_payload_error(e), failure_count=len(tokens))
        return await self._send_multicast(list(tokens), payload)

    async def send_notification_to_device(
        self,
        device_id: str,
        title: str,
        body: str,
        data: Optional[Dict[str, Any]] = None
    ) -> DispatchResult:
        """
        Send to a guest device and record it in the guest feed
        """
        try:
            payload = NotificationPayload(title=title, body=body, data=data or {})
        except ValidationError as e:
            return DispatchResult.failure(_payload_error(e))

        device = await self.guest_device_service.get_active_device(device_id)
        if device is None or not device.firebase_token:
            logger.info(f"Guest device {device_id} has no active token")
            return DispatchResult.failure(NO_ACTIVE_TOKEN)

        owner = FeedOwner.guest(device_id)
        notification_id = self._reserve_notification_id(owner)

        extra = {"isGuest": "true"}
        if notification_id:
            extra["notificationId"] = notification_id
        payload = payload.with_data(extra)

        result, attempted = await self._send_to_token(device.firebase_token, payload)

        if attempted:
            await self._record(owner, payload, notification_id)

        return result

    async def _send_multicast(self, tokens: List[str], payload: NotificationPayload) -> DispatchResult:
        """
        Multicast ``payload`` in provider-sized chunks

        Counts are the provider's own. Dead tokens from every chunk that was
        sent are deactivated, including when a later chunk fails outright.
        """
        result, _ = await self._multicast(tokens, payload)
        return result

    async def _multicast(self, tokens: List[str], payload: NotificationPayload) -> Tuple[DispatchResult, bool]:
        """
        Returns:
            The result and whether at least one chunk was handed to the provider
        """
        if not tokens:
            return DispatchResult.failure(NO_VALID_FCM_TOKENS), False

        if self.transport is None:
            return DispatchResult.failure(FIREBASE_NOT_INITIALIZED, failure_count=len(tokens)), False

        valid = list(dict.fromkeys(token for token in tokens if self.validator.is_well_formed(token)))
        if not valid:
            return DispatchResult.failure(NO_VALID_FCM_TOKEN_FORMATS, failure_count=len(tokens)), False

        if len(valid) < len(tokens):
            logger.debug(f"Dropped {len(tokens) - len(valid)} malformed or duplicate token(s)")

        chunks = [valid[i:i + self.batch_size] for i in range(0, len(valid), self.batch_size)]
        pairs: List[Tuple[str, SendResponse]] = []
        message_ids: List[str] = []
        success_count = 0
        failure_count = 0
        attempted = False

        for index, chunk in enumerate(chunks):
            try:
                await self.rate_limiter.apply_rate_limit(MULTICAST_KEY)
                attempted = True
                response = await self.transport.send_multicast(chunk, payload)
            except Exception as e:
                untried = sum(len(c) for c in chunks[index:])
                logger.error(f"Multicast chunk {index + 1}/{len(chunks)} failed, {untried} token(s) not sent: {e}")
                if not isinstance(e, (PushProviderError, RateLimitError)):
                    capture_exception(e, {"push": {"operation": "send_multicast", "chunk": index}})
                await self._handle_invalid_tokens(pairs)
                return DispatchResult.failure(
                    str(e) or type(e).__name__,
                    success_count=success_count,
                    failure_count=failure_count + untried,
                    message_ids=message_ids,
                ), attempted

            chunk_pairs = list(zip(chunk, response.responses))
            pairs.extend(chunk_pairs)
            success_count += response.success_count
            failure_count += response.failure_count
            message_ids.extend(r.message_id for _, r in chunk_pairs if r.success and r.message_id)

        await self._handle_invalid_tokens(pairs)

        if success_count == 0:
            return DispatchResult.failure(ALL_DELIVERIES_FAILED, failure_count=failure_count), attempted

        return DispatchResult.ok(
            message_ids=message_ids,
            success_count=success_count,
            failure_count=failure_count,
        ), attempted

    async def _handle_invalid_tokens(self, pairs: Sequence[Tuple[str, SendResponse]]) -> List[str]:
        """
        Deactivate tokens the provider reported as invalid or unregistered

        Returns:
            The tokens that were deactivated
        """
        dead = [
            token for token, response in pairs
            if not response.success and response.error is not None and response.error.is_invalid_token
        ]

        deactivated = []
        for token in dead:
            if await self._deactivate(token):
                deactivated.append(token)

        if deactivated:
            logger.info(f"Deactivated {len(deactivated)} invalid token(s)")
        return deactivated

    async def _deactivate(self, token: str) -> bool:
        try:
            await self.token_service.deactivate_token(token)
            return True
        except Exception as e:
            logger.error(f"Failed to deactivate token {mask_token(token)}: {e}")
            return False

    def _reserve_notification_id(self, owner: FeedOwner) -> Optional[str]:
        if not self.notification_store.is_available:
            return None
        try:
            return self.notification_store.new_notification_id(owner)
        except Exception as e:
            logger.warning(f"Could not reserve notification id for {owner.owner_id}: {e}")
            return None

    async def _record(self, owner: FeedOwner, payload: NotificationPayload, notification_id: Optional[str]) -> None:
        if not self.notification_store.is_available:
            logger.debug("Notification store not initialized, skipping feed record")
            return
        try:
            await self.notification_store.store_notification(owner, payload, notification_id)
        except Exception as e:
            logger.error(f"Failed to store notification for {owner.collection}/{owner.owner_id}: {e}")
            capture_exception(e, {"feed": {"owner": owner.owner_id}})

    async def _record_many(self, entries: List[Tuple[FeedOwner, NotificationPayload]]) -> None:
        if not self.notification_store.is_available or not entries:
            return
        try:
            await self.notification_store.store_notifications(
                (owner, payload, None) for owner, payload in entries
            )
        except Exception as e:
            logger.error(f"Failed to store {len(entries)} notification(s): {e}")
            capture_exception(e, {"feed": {"owners": len(entries)}})

    async def get_user_notifications(
        self,
        user_id: str,
        page: int = 1,
        limit: int = 20,
        status: Optional[NotificationStatus] = None
    ) -> NotificationPage:
        return await self.notification_store.list_notifications(FeedOwner.user(user_id), page, limit, status)

    async def get_guest_notifications(
        self,
        device_id: str,
        page: int = 1,
        limit: int = 20,
        status: Optional[NotificationStatus] = None
    ) -> NotificationPage:
        return await self.notification_store.list_notifications(FeedOwner.guest(device_id), page, limit, status)

    async def mark_as_read(self, user_id: str, notification_id: str) -> Optional[NotificationRecord]:
        return await self.notification_store.mark_as_read(FeedOwner.user(user_id), notification_id)

    async def mark_guest_notification_as_read(
        self,
        device_id: str,
        notification_id: str
    ) -> Optional[NotificationRecord]:
        return await self.notification_store.mark_as_read(FeedOwner.guest(device_id), notification_id)

    async def mark_all_as_read(self, user_id: str) -> int:
        return await self.notification_store.mark_all_as_read(FeedOwner.user(user_id))

    async def mark_all_guest_notifications_as_read(self, device_id: str) -> int:
        return await self.notification_store.mark_all_as_read(FeedOwner.guest(device_id))

    async def notify_event_updated(self, event_id: str, user_id: str, changes: Dict[str, Any]) -> str:
        """
        Update an event and add an ``event_update`` record to its owner's feed

        Raises:
            NotFoundError: Event does not exist
            UnauthorizedAccessError: Event belongs to another user
        """
        return await self.notification_store.update_event_with_notification(event_id, user_id, changes)
