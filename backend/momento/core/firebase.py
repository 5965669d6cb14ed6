"""
Firebase app lifecycle and the Firestore document store
"""
import json
import logging
from typing import Any, Awaitable, Callable, Optional, TypeVar

import firebase_admin
from firebase_admin import credentials
from google.cloud.firestore import AsyncClient
from google.cloud.firestore_v1.async_transaction import AsyncTransaction, async_transactional

from momento.core.config import settings

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _load_credentials() -> Optional[credentials.Certificate]:
    """
    Build service account credentials from FIREBASE_CONFIG or FIREBASE_CREDENTIALS_PATH
    """
    if settings.FIREBASE_CONFIG:
        config = json.loads(settings.FIREBASE_CONFIG)
        # Escaped newlines survive most .env loaders
        if "private_key" in config:
            config["private_key"] = config["private_key"].replace("\\n", "\n")
        return credentials.Certificate(config)

    if settings.FIREBASE_CREDENTIALS_PATH:
        return credentials.Certificate(settings.FIREBASE_CREDENTIALS_PATH)

    return None


def init_firebase() -> Optional[firebase_admin.App]:
    """
    Initialize (or reuse) the default Firebase app.

    Returns:
        The Firebase app, or None when Firebase is disabled or misconfigured.
        Callers treat None as "push transport not initialized".
    """
    if not settings.FIREBASE_ENABLED:
        logger.info("Firebase disabled, push delivery will report not initialized")
        return None

    try:
        return firebase_admin.get_app()
    except ValueError:
        pass

    try:
        cred = _load_credentials()
        if cred is None:
            logger.warning("Firebase enabled but no credentials configured")
            return None

        options = {"projectId": settings.FIREBASE_PROJECT_ID} if settings.FIREBASE_PROJECT_ID else None
        app = firebase_admin.initialize_app(cred, options)
        logger.info("Firebase initialized successfully for notifications")
        return app
    except Exception as e:
        logger.error(f"Failed to initialize Firebase: {e}", exc_info=True)
        return None


def close_firebase(app: Optional[firebase_admin.App]) -> None:
    """
    Tear down the Firebase app created by init_firebase
    """
    if app is not None:
        firebase_admin.delete_app(app)
        logger.info("Firebase app closed")


class DocumentStore:
    """
    Thin wrapper around the Firestore AsyncClient.

    Exposes path-segment addressing, batches and single-attempt transactions.
    Transactions are never retried here; callers wrap them in retry_with_backoff.
    """

    def __init__(self, client: AsyncClient):
        self.client = client

    def collection(self, *path: str):
        return self.client.collection(*path)

    def document(self, *path: str):
        return self.client.document(*path)

    def batch(self):
        return self.client.batch()

    async def run_transaction(self, fn: Callable[[AsyncTransaction], Awaitable[T]]) -> T:
        """
        Run ``fn(transaction)`` inside one Firestore transaction attempt
        """
        transaction = self.client.transaction(max_attempts=1)

        @async_transactional
        async def _run(txn: AsyncTransaction) -> Any:
            return await fn(txn)

        return await _run(transaction)


def create_document_store(app: Optional[firebase_admin.App]) -> Optional[DocumentStore]:
    """
    Create a Firestore document store bound to ``app``'s credentials.

    Each call builds a new client, so a store never outlives the event loop
    it was created on.
    """
    if app is None:
        return None
    client = AsyncClient(project=app.project_id, credentials=app.credential.get_credential())
    return DocumentStore(client)
