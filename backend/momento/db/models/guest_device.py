"""
Guest (unauthenticated) device model
"""
import uuid
from sqlalchemy import Column, String, Boolean, DateTime
from sqlalchemy.sql import func

from momento.core.async_database import Base


class GuestDevice(Base):
    """
    Device tracked before its owner signs in
    """
    __tablename__ = "guest_devices"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    device_id = Column(String(255), unique=True, index=True, nullable=False)  # client fingerprint
    firebase_token = Column(String(512), nullable=True)
    timezone = Column(String(64), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<GuestDevice(id={self.id}, device_id={self.device_id}, is_active={self.is_active})>"
