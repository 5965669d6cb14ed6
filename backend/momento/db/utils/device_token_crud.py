"""
Device token CRUD operations
"""
from typing import List, Optional, Sequence
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, func
from pydantic import BaseModel

from momento.db.models.device_token import DeviceToken
from momento.db.utils.crud import CRUDBase


class CRUDDeviceToken(CRUDBase[DeviceToken, BaseModel]):
    """
    CRUD operations for DeviceToken model
    """

    async def get_by_owner_and_token(
        self,
        db: AsyncSession,
        user_id: str,
        token: str
    ) -> Optional[DeviceToken]:
        """
        Get the row for (owner, token), matching the token case-insensitively
        """
        result = await db.execute(
            select(DeviceToken)
            .where(
                DeviceToken.user_id == user_id,
                func.lower(DeviceToken.token) == token.lower()
            )
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def get_active_by_owner(
        self,
        db: AsyncSession,
        user_id: str
    ) -> List[DeviceToken]:
        result = await db.execute(
            select(DeviceToken).where(
                DeviceToken.user_id == user_id,
                DeviceToken.is_active.is_(True)
            )
        )
        return list(result.scalars().all())

    async def get_active_by_owners(
        self,
        db: AsyncSession,
        user_ids: Sequence[str]
    ) -> List[DeviceToken]:
        result = await db.execute(
            select(DeviceToken).where(
                DeviceToken.user_id.in_(list(user_ids)),
                DeviceToken.is_active.is_(True)
            )
        )
        return list(result.scalars().all())

    async def get_all_active(
        self,
        db: AsyncSession
    ) -> List[DeviceToken]:
        result = await db.execute(
            select(DeviceToken).where(DeviceToken.is_active.is_(True))
        )
        return list(result.scalars().all())

    async def deactivate_by_token(
        self,
        db: AsyncSession,
        token: str
    ) -> int:
        """
        Deactivate every row carrying ``token``, whoever owns it

        Returns:
            Number of rows matched
        """
        result = await db.execute(
            update(DeviceToken)
            .where(DeviceToken.token == token)
            .values(is_active=False)
        )
        return result.rowcount or 0


device_token_crud = CRUDDeviceToken(DeviceToken)
