"""
Push delivery port and its Firebase Cloud Messaging binding
"""
import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import timedelta
from typing import List, Optional, Sequence

import firebase_admin
from firebase_admin import exceptions as firebase_exceptions
from firebase_admin import messaging

from momento.db.schemas.notification import NotificationPayload

INVALID_REGISTRATION_TOKEN = "messaging/invalid-registration-token"
TOKEN_NOT_REGISTERED = "messaging/registration-token-not-registered"
UNKNOWN_ERROR = "messaging/unknown-error"

DEAD_TOKEN_CODES = frozenset({INVALID_REGISTRATION_TOKEN, TOKEN_NOT_REGISTERED})


class PushProviderError(Exception):
    """Provider rejected a send; ``code`` tells dead tokens from other failures"""

    def __init__(self, code: str, message: str):
        super().__init__(message)
        self.code = code
        self.message = message

    @property
    def is_invalid_token(self) -> bool:
        return self.code in DEAD_TOKEN_CODES

    def __repr__(self):
        return f"PushProviderError(code={self.code!r}, message={self.message!r})"


@dataclass
class SendResponse:
    """Provider answer for one token of a multicast"""
    success: bool
    message_id: Optional[str] = None
    error: Optional[PushProviderError] = None


@dataclass
class MulticastResponse:
    """Provider answer for a multicast; ``responses`` is in token order"""
    responses: List[SendResponse] = field(default_factory=list)
    success_count: int = 0
    failure_count: int = 0


class PushTransport(ABC):
    """Push delivery port"""

    @abstractmethod
    async def send_to_token(self, token: str, payload: NotificationPayload) -> str:
        """Send to one device; returns the provider message id"""

    @abstractmethod
    async def send_multicast(self, tokens: Sequence[str], payload: NotificationPayload) -> MulticastResponse:
        """Send one payload to many devices in one provider call"""

    @abstractmethod
    async def send_to_topic(self, topic: str, payload: NotificationPayload) -> str:
        """Send to every device subscribed to ``topic``"""


def to_provider_error(error: Exception) -> PushProviderError:
    """
    Map a firebase-admin exception onto a PushProviderError code
    """
    if isinstance(error, PushProviderError):
        return error

    if isinstance(error, messaging.UnregisteredError):
        return PushProviderError(TOKEN_NOT_REGISTERED, str(error))

    if isinstance(error, messaging.SenderIdMismatchError):
        return PushProviderError(INVALID_REGISTRATION_TOKEN, str(error))

    if isinstance(error, firebase_exceptions.InvalidArgumentError) and "registration token" in str(error).lower():
        return PushProviderError(INVALID_REGISTRATION_TOKEN, str(error))

    if isinstance(error, firebase_exceptions.FirebaseError):
        return PushProviderError(f"messaging/{str(error.code).lower().replace('_', '-')}", str(error))

    return PushProviderError(UNKNOWN_ERROR, str(error) or type(error).__name__)


class FirebasePushTransport(PushTransport):
    """
    FCM delivery through firebase-admin.

    The SDK is synchronous, so calls run in a worker thread.
    """

    def __init__(self, app: firebase_admin.App, ttl_seconds: int = 3600):
        self.app = app
        self.ttl = timedelta(seconds=ttl_seconds)

    def _android_config(self) -> messaging.AndroidConfig:
        return messaging.AndroidConfig(
            priority="high",
            ttl=self.ttl,
            notification=messaging.AndroidNotification(sound="default", channel_id="default"),
        )

    @staticmethod
    def _apns_config() -> messaging.APNSConfig:
        return messaging.APNSConfig(
            payload=messaging.APNSPayload(aps=messaging.Aps(sound="default", badge=1))
        )

    @staticmethod
    def _notification(payload: NotificationPayload) -> messaging.Notification:
        return messaging.Notification(title=payload.title, body=payload.body)

    async def _send(self, message: messaging.Message) -> str:
        try:
            return await asyncio.to_thread(messaging.send, message, app=self.app)
        except Exception as e:
            raise to_provider_error(e) from e

    async def send_to_token(self, token: str, payload: NotificationPayload) -> str:
        message = messaging.Message(
            token=token,
            notification=self._notification(payload),
            data=payload.data,
            android=self._android_config(),
            apns=self._apns_config(),
        )
        return await self._send(message)

    async def send_to_topic(self, topic: str, payload: NotificationPayload) -> str:
        message = messaging.Message(
            topic=topic,
            notification=self._notification(payload),
            data=payload.data,
            android=self._android_config(),
            apns=self._apns_config(),
        )
        return await self._send(message)

    async def send_multicast(self, tokens: Sequence[str], payload: NotificationPayload) -> MulticastResponse:
        message = messaging.MulticastMessage(
            tokens=list(tokens),
            notification=self._notification(payload),
            data=payload.data,
            android=self._android_config(),
            apns=self._apns_config(),
        )
        try:
            batch = await asyncio.to_thread(messaging.send_each_for_multicast, message, app=self.app)
        except Exception as e:
            raise to_provider_error(e) from e

        return MulticastResponse(
            responses=[
                SendResponse(
                    success=resp.success,
                    message_id=resp.message_id,
                    error=None if resp.success or resp.exception is None else to_provider_error(resp.exception),
                )
                for resp in batch.responses
            ],
            success_count=batch.success_count,
            failure_count=batch.failure_count,
        )
