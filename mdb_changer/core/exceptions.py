"""
Custom exceptions for the MDB coin changer.

Provides a hierarchy of typed exceptions for better error handling
and more informative error messages.
"""

from datetime import datetime, timezone
from typing import Any, Optional


class CashSystemError(Exception):
    """Base exception for all coin changer errors."""

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        """
        Initialize the exception.

        Args:
            message: Human-readable error message.
            code: Optional error code for programmatic handling.
            details: Optional additional error details.
        """
        super().__init__(message)
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        self.timestamp = datetime.now(timezone.utc)

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        return {
            "error": self.code,
            "message": self.message,
            "details": self.details,
            "timestamp": self.timestamp.isoformat(),
        }


# =============================================================================
# Device Errors
# =============================================================================


class DeviceError(CashSystemError):
    """Base exception for device-related errors."""

    def __init__(
        self,
        message: str,
        device_name: Optional[str] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, **kwargs)
        self.device_name = device_name
        if device_name:
            self.details["device"] = device_name


class DeviceConnectionError(DeviceError):
    """Error opening or writing to the serial bridge."""

    pass


class DeviceNotInitializedError(DeviceError):
    """Operation attempted before the device was initialized."""

    pass


class SetupParseError(DeviceError):
    """Setup response missing, short or unusable."""

    def __init__(
        self,
        message: str,
        raw: bytes | str | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, **kwargs)
        if raw is not None:
            self.details["raw"] = raw.hex(" ").upper() if isinstance(raw, bytes) else raw


class TubeRefreshError(DeviceError):
    """Tube status response missing or malformed."""

    def __init__(
        self,
        message: str,
        raw: bytes | str | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, **kwargs)
        if raw is not None:
            self.details["raw"] = raw.hex(" ").upper() if isinstance(raw, bytes) else raw


class CoinOperationError(DeviceError):
    """Invalid coin type, invalid quantity or not enough dispensable coins."""

    def __init__(
        self,
        message: str,
        coin_type: Optional[int] = None,
        requested: Optional[int] = None,
        available: Optional[int] = None,
        count: Optional[int] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, **kwargs)
        for key, value in (
            ("coin_type", coin_type),
            ("requested", requested),
            ("available", available),
            ("count", count),
        ):
            if value is not None:
                self.details[key] = value


class InvalidCoinTypeError(CoinOperationError):
    """Coin type maps to a raw type outside 0-15."""

    pass


class InvalidQuantityError(CoinOperationError):
    """Dispense quantity below one."""

    pass


class DeviceFatalError(DeviceError):
    """Poll loop exceeded its consecutive-failure threshold."""

    def __init__(
        self,
        message: str,
        failures: int = 0,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, **kwargs)
        self.details["failures"] = failures


# =============================================================================
# Payment Errors
# =============================================================================


class PaymentError(CashSystemError):
    """Base exception for amount request errors."""

    pass


class PaymentInProgressError(PaymentError):
    """An amount request is already active."""

    pass


class InvalidAmountError(PaymentError):
    """Invalid amount."""

    pass
