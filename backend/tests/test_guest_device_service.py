"""
Tests for the guest device registry
"""
import pytest

from fakes import make_token


class TestFindOrCreate:

    @pytest.mark.asyncio
    async def test_creates_on_first_contact(self, guest_device_service):
        """Should create an active device the first time it is seen"""
        device = await guest_device_service.find_or_create("device-1", make_token("g"), "Europe/Paris")

        assert device.device_id == "device-1"
        assert device.firebase_token == make_token("g")
        assert device.timezone == "Europe/Paris"
        assert device.is_active is True

    @pytest.mark.asyncio
    async def test_updates_token_and_timezone_in_place(self, guest_device_service):
        """Should keep one row and overwrite changed fields"""
        first = await guest_device_service.find_or_create("device-1", make_token("old"), "UTC")
        second = await guest_device_service.find_or_create("device-1", make_token("new"), "Asia/Tokyo")

        assert second.id == first.id
        assert second.firebase_token == make_token("new")
        assert second.timezone == "Asia/Tokyo"

    @pytest.mark.asyncio
    async def test_missing_fields_leave_stored_values(self, guest_device_service):
        """Should not clear the token when the caller omits it"""
        await guest_device_service.find_or_create("device-1", make_token("g"), "UTC")
        device = await guest_device_service.find_or_create("device-1")

        assert device.firebase_token == make_token("g")
        assert device.timezone == "UTC"


class TestGetActiveDevice:

    @pytest.mark.asyncio
    async def test_returns_none_for_unknown_device(self, guest_device_service):
        assert await guest_device_service.get_active_device("nope") is None

    @pytest.mark.asyncio
    async def test_returns_registered_device(self, guest_device_service):
        await guest_device_service.find_or_create("device-1", make_token("g"))
        device = await guest_device_service.get_active_device("device-1")

        assert device is not None
        assert device.device_id == "device-1"
