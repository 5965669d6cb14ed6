"""
Device push token model
"""
import uuid
from sqlalchemy import Column, String, Boolean, DateTime, Enum, UniqueConstraint
from sqlalchemy.sql import func

from momento.core.async_database import Base
from momento.db.models.enums import DeviceType


class DeviceToken(Base):
    """
    Push registration token owned by a user.

    Rows are deactivated, never deleted, once the provider reports them dead.
    The owning users table belongs to the auth service, so user_id is a plain
    indexed reference.
    """
    __tablename__ = "device_tokens"
    __table_args__ = (
        UniqueConstraint("user_id", "token", name="uq_device_tokens_user_token"),
    )

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), index=True, nullable=False)
    token = Column(String(512), index=True, nullable=False)
    device_type = Column(Enum(DeviceType), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<DeviceToken(id={self.id}, user_id={self.user_id}, device_type={self.device_type}, is_active={self.is_active})>"
