"""
Guest device CRUD operations
"""
from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from momento.db.models.guest_device import GuestDevice
from momento.db.schemas.device_token import GuestDeviceUpdate
from momento.db.utils.crud import CRUDBase


class CRUDGuestDevice(CRUDBase[GuestDevice, GuestDeviceUpdate]):
    """
    CRUD operations for GuestDevice model
    """

    async def get_by_device_id(
        self,
        db: AsyncSession,
        device_id: str
    ) -> Optional[GuestDevice]:
        result = await db.execute(
            select(GuestDevice).where(GuestDevice.device_id == device_id)
        )
        return result.scalar_one_or_none()

    async def get_active_by_device_id(
        self,
        db: AsyncSession,
        device_id: str
    ) -> Optional[GuestDevice]:
        result = await db.execute(
            select(GuestDevice).where(
                GuestDevice.device_id == device_id,
                GuestDevice.is_active.is_(True)
            )
        )
        return result.scalar_one_or_none()


guest_device_crud = CRUDGuestDevice(GuestDevice)
