"""
Application settings.

Groups configuration per concern in frozen dataclasses, with
defaults taken from the configs module.
"""

from dataclasses import dataclass, field

from mdb_changer.configs import (
    MDB_BRIDGE_BAUDRATE,
    MDB_BRIDGE_PORT,
    REDIS_HOST,
    REDIS_PORT,
    SECURITY_STOCK,
    TUBE_CAPACITY,
    WS_URL,
)
from mdb_changer.core.value_objects import CoinEventType


# =============================================================================
# Configuration Classes
# =============================================================================


@dataclass(frozen=True)
class RedisSettings:
    """Redis connection settings."""

    host: str = REDIS_HOST
    port: int = REDIS_PORT
    decode_responses: bool = True


@dataclass(frozen=True)
class SerialPortSettings:
    """Serial bridge port configuration."""

    port: str = MDB_BRIDGE_PORT
    baudrate: int = MDB_BRIDGE_BAUDRATE
    bytesize: int = 8
    stopbits: int = 1
    parity: str = "N"


def default_event_nibbles() -> dict[int, CoinEventType]:
    """High nibble of the first poll byte -> event kind."""
    return {
        0x5: CoinEventType.ACCEPTED,
        0x9: CoinEventType.DISPENSED,
        0x4: CoinEventType.CASHBOX,
        0x7: CoinEventType.RETURNED,
    }


@dataclass(frozen=True)
class MDBSettings:
    """
    Timing and dialect settings of the coin changer engine.

    All durations are in seconds.
    """

    default_timeout: float = 0.5
    handshake_timeout: float = 0.2
    setup_timeout: float = 0.5
    poll_timeout: float = 0.6
    dispense_timeout: float = 0.8
    reset_delay: float = 0.05
    empty_poll_delay: float = 0.15
    poll_interval: float = 0.25
    error_backoff: float = 0.5
    inter_dispense_delay: float = 0.15
    max_poll_failures: int = 10
    event_nibbles: dict[int, CoinEventType] = field(default_factory=default_event_nibbles)


@dataclass(frozen=True)
class InventorySettings:
    """Coin tube settings."""

    tube_capacity: int = TUBE_CAPACITY
    security_stock: int = SECURITY_STOCK
    use_fallback_coin_map: bool = True


@dataclass(frozen=True)
class ServiceSettings:
    """Command and event channels."""

    command_channel: str = "mdb_changer_commands"
    event_channel: str = "mdb_changer_events"
    websocket_url: str = WS_URL
    forward_to_websocket: bool = False

    @property
    def response_channel(self) -> str:
        """Get response channel name."""
        return f"{self.command_channel}_response"


# =============================================================================
# Main Settings
# =============================================================================


@dataclass
class Settings:
    """
    Main application settings.

    Aggregates all configuration sections.
    """

    redis: RedisSettings = field(default_factory=RedisSettings)
    serial: SerialPortSettings = field(default_factory=SerialPortSettings)
    mdb: MDBSettings = field(default_factory=MDBSettings)
    inventory: InventorySettings = field(default_factory=InventorySettings)
    services: ServiceSettings = field(default_factory=ServiceSettings)


# =============================================================================
# Settings Singleton
# =============================================================================


_settings: Settings | None = None


def get_settings() -> Settings:
    """
    Get application settings singleton.

    Returns:
        Settings instance.
    """
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
