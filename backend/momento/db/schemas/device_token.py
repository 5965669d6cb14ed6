"""
Device token and guest device schemas
"""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from momento.db.models.enums import DeviceType


class DeviceTokenCreate(BaseModel):
    token: str = Field(..., min_length=1, max_length=512)
    device_type: DeviceType


class DeviceTokenDeactivate(BaseModel):
    token: str = Field(..., min_length=1, max_length=512)


class DeviceTokenResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    device_type: DeviceType
    is_active: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class GuestDeviceCreate(BaseModel):
    firebase_token: Optional[str] = Field(None, max_length=512)
    timezone: Optional[str] = Field(None, max_length=64)


class GuestDeviceUpdate(BaseModel):
    firebase_token: Optional[str] = None
    timezone: Optional[str] = None
    is_active: Optional[bool] = None


class GuestDeviceResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    device_id: str
    timezone: Optional[str] = None
    is_active: bool
    has_push_token: bool = False
    created_at: Optional[datetime] = None
