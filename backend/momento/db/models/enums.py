"""
Database enums
"""
import enum


class UserRole(str, enum.Enum):
    """
    User role enumeration, as carried in the access token ``role`` claim
    """
    USER = "user"
    ADMIN = "admin"
    SUPERADMIN = "superadmin"

    def __str__(self):
        return self.value


class DeviceType(str, enum.Enum):
    """
    Platform a push token was issued for
    """
    IOS = "ios"
    ANDROID = "android"
    WEB = "web"

    def __str__(self):
        return self.value


class NotificationStatus(str, enum.Enum):
    """
    Read state of a feed entry
    """
    UNREAD = "unread"
    READ = "read"

    def __str__(self):
        return self.value
