"""
Core module - Foundation layer with no external dependencies.

Contains:
- Exceptions
- Interfaces (Protocols)
- Value Objects
"""

from .exceptions import (
    CashSystemError,
    DeviceError,
    DeviceConnectionError,
    DeviceNotInitializedError,
    SetupParseError,
    TubeRefreshError,
    CoinOperationError,
    InvalidCoinTypeError,
    InvalidQuantityError,
    DeviceFatalError,
    PaymentError,
    PaymentInProgressError,
    InvalidAmountError,
)
from .interfaces import (
    LineTransport,
    CoinDispenser,
)
from .value_objects import (
    AmountState,
    AmountStatus,
    CoinEvent,
    CoinEventType,
    DispensePlan,
    DispensingResult,
    TubeStatus,
    TubeSummary,
)


__all__ = [
    # Exceptions
    "CashSystemError",
    "DeviceError",
    "DeviceConnectionError",
    "DeviceNotInitializedError",
    "SetupParseError",
    "TubeRefreshError",
    "CoinOperationError",
    "InvalidCoinTypeError",
    "InvalidQuantityError",
    "DeviceFatalError",
    "PaymentError",
    "PaymentInProgressError",
    "InvalidAmountError",
    # Interfaces
    "LineTransport",
    "CoinDispenser",
    # Value Objects
    "AmountState",
    "AmountStatus",
    "CoinEvent",
    "CoinEventType",
    "DispensePlan",
    "DispensingResult",
    "TubeStatus",
    "TubeSummary",
]
