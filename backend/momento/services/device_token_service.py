"""
Device token store: which push tokens each user owns and whether they still work
"""
from typing import List, Sequence, Union
import logging

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from momento.core.exceptions import InvalidTokenFormatError
from momento.db.models.device_token import DeviceToken
from momento.db.models.enums import DeviceType
from momento.db.utils.device_token_crud import device_token_crud
from momento.services.token_validation import TokenValidator, mask_token

logger = logging.getLogger(__name__)


class DeviceTokenService:
    """
    Service for device token persistence.

    Each call runs in its own session; storage errors propagate to the caller.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        validator: TokenValidator,
    ):
        self.session_factory = session_factory
        self.validator = validator

    async def save_token(
        self,
        user_id: str,
        token: str,
        device_type: Union[DeviceType, str]
    ) -> DeviceToken:
        """
        Register ``token`` for ``user_id``, reactivating an existing row

        Args:
            user_id: Owner of the token
            token: Provider-issued registration token
            device_type: ios, android or web

        Returns:
            The active DeviceToken row

        Raises:
            InvalidTokenFormatError: If the token fails format validation
        """
        if not self.validator.is_well_formed(token):
            raise InvalidTokenFormatError()

        device_type = DeviceType(device_type)

        async with self.session_factory() as db:
            device_token = await device_token_crud.get_by_owner_and_token(db, user_id, token)

            if device_token is None:
                device_token = await device_token_crud.create(
                    db,
                    user_id=user_id,
                    token=token,
                    device_type=device_type,
                    is_active=True,
                )
                logger.info(f"Registered {device_type} token {mask_token(token)} for user {user_id}")
            else:
                device_token = await device_token_crud.update(
                    db,
                    device_token,
                    {"is_active": True, "device_type": device_type},
                )
                logger.debug(f"Reactivated token {mask_token(token)} for user {user_id}")

            await db.commit()
            return device_token

    async def deactivate_token(self, token: str) -> None:
        """
        Deactivate ``token`` for every owner. Deactivating twice is a no-op.
        """
        async with self.session_factory() as db:
            matched = await device_token_crud.deactivate_by_token(db, token)
            await db.commit()

        logger.info(f"Deactivated token {mask_token(token)} ({matched} row(s))")

    async def get_active_tokens_for_user(self, user_id: str) -> List[DeviceToken]:
        async with self.session_factory() as db:
            return await device_token_crud.get_active_by_owner(db, user_id)

    async def get_all_active_tokens(self) -> List[DeviceToken]:
        async with self.session_factory() as db:
            return await device_token_crud.get_all_active(db)

    async def get_active_tokens_for_users(self, user_ids: Sequence[str]) -> List[DeviceToken]:
        """
        Active tokens for a set of users in a single query.

        An empty ``user_ids`` returns [] without touching the database.
        """
        if not user_ids:
            return []

        async with self.session_factory() as db:
            return await device_token_crud.get_active_by_owners(db, user_ids)
