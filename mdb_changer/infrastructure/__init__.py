"""
Infrastructure layer - External dependencies and implementations.

Contains:
- Redis event broadcasting
- Configuration
"""

from .redis_broadcaster import RedisEventBroadcaster
from .settings import (
    InventorySettings,
    MDBSettings,
    RedisSettings,
    SerialPortSettings,
    ServiceSettings,
    Settings,
    get_settings,
)


__all__ = [
    # Events
    "RedisEventBroadcaster",
    # Settings
    "InventorySettings",
    "MDBSettings",
    "RedisSettings",
    "SerialPortSettings",
    "ServiceSettings",
    "Settings",
    "get_settings",
]
