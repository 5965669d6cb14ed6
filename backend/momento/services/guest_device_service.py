"""
Guest device registry
"""
from typing import Optional
import logging

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from momento.db.models.guest_device import GuestDevice
from momento.db.utils.guest_device_crud import guest_device_crud
from momento.services.token_validation import mask_token

logger = logging.getLogger(__name__)


class GuestDeviceService:
    """Tracks unauthenticated devices and their push tokens"""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def find_or_create(
        self,
        device_id: str,
        firebase_token: Optional[str] = None,
        timezone: Optional[str] = None
    ) -> GuestDevice:
        """
        Find a guest device by ``device_id``, creating it on first contact.

        A provided token or timezone that differs from the stored one is
        written in place.
        """
        async with self.session_factory() as db:
            device = await guest_device_crud.get_by_device_id(db, device_id)

            if device is None:
                device = await guest_device_crud.create(
                    db,
                    device_id=device_id,
                    firebase_token=firebase_token,
                    timezone=timezone,
                    is_active=True,
                )
                logger.info(f"Created guest device {device_id}")
            else:
                changes = {}
                if firebase_token and device.firebase_token != firebase_token:
                    changes["firebase_token"] = firebase_token
                if timezone and device.timezone != timezone:
                    changes["timezone"] = timezone

                if changes:
                    device = await guest_device_crud.update(db, device, changes)
                    if "firebase_token" in changes:
                        logger.info(f"Updated guest device {device_id} token to {mask_token(firebase_token)}")
                    else:
                        logger.info(f"Updated guest device {device_id}")

            await db.commit()
            return device

    async def get_active_device(self, device_id: str) -> Optional[GuestDevice]:
        async with self.session_factory() as db:
            return await guest_device_crud.get_active_by_device_id(db, device_id)
