"""
Configuration module for the MDB coin changer.

This module provides centralized constants for the serial bridge,
Redis, WebSocket, logging and the coin tubes.
"""

from typing import Final


# =============================================================================
# Redis Configuration
# =============================================================================

REDIS_HOST: Final[str] = "localhost"
REDIS_PORT: Final[int] = 6379


# =============================================================================
# External Services Configuration
# =============================================================================

LOKI_URL: Final[str] = "http://localhost:3100/loki/api/v1/push"
LOKI_ENABLED: Final[bool] = False
WS_URL: Final[str] = "ws://localhost:8005/ws"


# =============================================================================
# Logging Configuration
# =============================================================================

LOG_FILE: Final[str] = "logs/mdb_changer.log"


# =============================================================================
# Serial Bridge Configuration
# =============================================================================

MDB_BRIDGE_PORT: Final[str] = "/dev/ttyACM0"
MDB_BRIDGE_BAUDRATE: Final[int] = 115200


# =============================================================================
# Coin Tube Configuration
# =============================================================================

TUBE_CAPACITY: Final[int] = 50
SECURITY_STOCK: Final[int] = 0

# Used when the setup response cannot be parsed (coin type -> cents)
FALLBACK_COIN_MAP: Final[dict[int, int]] = {
    1: 5,
    2: 10,
    3: 20,
    4: 50,
    5: 100,
}
