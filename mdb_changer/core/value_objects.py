"""
Value Objects for the MDB coin changer.

Immutable objects that represent values in the domain.
Value objects are compared by value, not by identity.
"""

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Iterator, Optional


# =============================================================================
# Enums
# =============================================================================


class CoinEventType(Enum):
    """Kind of coin event decoded from one poll payload."""

    NONE = auto()
    ACCEPTED = auto()
    DISPENSED = auto()
    CASHBOX = auto()
    RETURNED = auto()


class TubeStatus(Enum):
    """Fill status of a coin tube."""

    EMPTY = "Empty"
    OK = "OK"
    FULL = "Full"


class AmountStatus(Enum):
    """Status of an amount request."""

    IDLE = "idle"
    ACTIVE = "active"
    SUCCESS = "success"
    CANCELLED = "cancelled"


# eventType field of published coin notifications
NOTIFICATION_NAMES: dict[CoinEventType, str] = {
    CoinEventType.ACCEPTED: "coin",
    CoinEventType.DISPENSED: "dispense",
    CoinEventType.CASHBOX: "cashbox",
    CoinEventType.RETURNED: "returned",
}


# =============================================================================
# Coin Value Objects
# =============================================================================


@dataclass(frozen=True)
class CoinEvent:
    """
    A classified poll event.

    Attributes:
        type: Event kind.
        coin_type: 1-based coin type (0 for NONE).
        value: Coin value from the coin map (0 for NONE).
    """

    type: CoinEventType = CoinEventType.NONE
    coin_type: int = 0
    value: int = 0

    @classmethod
    def none(cls) -> "CoinEvent":
        """Create an event meaning nothing actionable happened."""
        return cls()

    @property
    def is_none(self) -> bool:
        """Check if there is no actionable event."""
        return self.type is CoinEventType.NONE

    @property
    def notification_name(self) -> Optional[str]:
        """Get the eventType used in published notifications."""
        return NOTIFICATION_NAMES.get(self.type)

    def describe(self) -> str:
        """Human-readable description for logs and device status."""
        if self.type is CoinEventType.ACCEPTED:
            return f"Accepted coin {self.coin_type} ({self.value})"
        if self.type is CoinEventType.DISPENSED:
            return f"Dispensed coin {self.coin_type}"
        if self.type is CoinEventType.CASHBOX:
            return f"Cashbox coin {self.coin_type} ({self.value})"
        if self.type is CoinEventType.RETURNED:
            return f"Returned coin {self.coin_type}"
        return "No event"


@dataclass(frozen=True)
class TubeSummary:
    """Read-only projection of one tube for status reporting."""

    coin_type: int
    value: int
    count: int
    capacity: int
    dispensable: int
    fullness_percent: int
    status: TubeStatus

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "coinType": self.coin_type,
            "value": self.value,
            "count": self.count,
            "capacity": self.capacity,
            "dispensable": self.dispensable,
            "fullnessPercent": self.fullness_percent,
            "status": self.status.value,
        }


# =============================================================================
# Dispense Plan
# =============================================================================


@dataclass(frozen=True)
class DispensePlan:
    """
    Ordered coin type -> quantity selection summing to an amount.

    Entries are kept in descending coin value order, which is also
    the order in which they are dispensed.

    Attributes:
        amount: Target amount the plan pays out.
        entries: (coin_type, value, quantity) triples.
    """

    amount: int
    entries: tuple[tuple[int, int, int], ...] = field(default_factory=tuple)

    def __iter__(self) -> Iterator[tuple[int, int, int]]:
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self.entries)

    @property
    def total(self) -> int:
        """Sum of value * quantity over all entries."""
        return sum(value * quantity for _, value, quantity in self.entries)

    def as_mapping(self) -> dict[int, int]:
        """Get coin type -> quantity, preserving dispense order."""
        return {coin_type: quantity for coin_type, _, quantity in self.entries}

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "amount": self.amount,
            "coins": [
                {"coinType": coin_type, "value": value, "quantity": quantity}
                for coin_type, value, quantity in self.entries
            ],
        }


@dataclass(frozen=True)
class DispensingResult:
    """
    Result of a change dispensing operation.

    Attributes:
        success: Whether dispensing succeeded.
        requested_amount: Amount requested to dispense.
        dispensed_amount: Amount sent to the changer.
        plan: The executed plan, if one was found.
        message: Human-readable message.
    """

    success: bool
    requested_amount: int = 0
    dispensed_amount: int = 0
    plan: Optional[DispensePlan] = None
    message: str = ""

    @property
    def remaining_amount(self) -> int:
        """Amount that could not be dispensed."""
        return max(0, self.requested_amount - self.dispensed_amount)

    @classmethod
    def full_dispense(cls, plan: DispensePlan) -> "DispensingResult":
        """Create a successful full dispense result."""
        return cls(
            success=True,
            requested_amount=plan.amount,
            dispensed_amount=plan.total,
            plan=plan,
            message=f"Dispensed {plan.total}",
        )

    @classmethod
    def partial_dispense(
        cls,
        plan: DispensePlan,
        dispensed: int,
        reason: str,
    ) -> "DispensingResult":
        """Create a result for a plan that stopped part way."""
        return cls(
            success=False,
            requested_amount=plan.amount,
            dispensed_amount=dispensed,
            plan=plan,
            message=f"Dispensed {dispensed} of {plan.amount}: {reason}",
        )

    @classmethod
    def failed(cls, amount: int, message: str) -> "DispensingResult":
        """Create a failed result."""
        return cls(success=False, requested_amount=amount, message=message)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        result = {
            "success": self.success,
            "requested_amount": self.requested_amount,
            "dispensed_amount": self.dispensed_amount,
            "remaining_amount": self.remaining_amount,
            "message": self.message,
        }
        if self.plan is not None:
            result["plan"] = self.plan.to_dict()
        return result


# =============================================================================
# Amount Request Snapshot
# =============================================================================


@dataclass(frozen=True)
class AmountState:
    """Snapshot of the amount request, as published to observers."""

    status: AmountStatus
    requested: int = 0
    inserted: int = 0

    @property
    def remaining(self) -> int:
        """Amount still to collect."""
        return max(0, self.requested - self.inserted)

    def to_dict(self) -> dict[str, Any]:
        """Convert to the amount_state notification shape."""
        return {
            "type": "amount_state",
            "status": self.status.value,
            "requested": self.requested,
            "inserted": self.inserted,
            "remaining": self.remaining,
        }
