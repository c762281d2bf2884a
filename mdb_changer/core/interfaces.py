"""
Interfaces (Protocols) for the MDB coin changer.

Defines contracts for the line transport and coin dispensers
using Python's Protocol for structural subtyping (duck typing with type hints).
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable


# =============================================================================
# Transport Interface
# =============================================================================


@runtime_checkable
class LineTransport(Protocol):
    """
    Protocol for the line-oriented serial bridge.

    Only one request/response exchange may be outstanding at a time;
    implementations serialize callers of request().
    """

    async def open(self) -> None:
        """Open the underlying channel."""
        ...

    async def close(self) -> None:
        """Close the underlying channel."""
        ...

    async def write_line(self, line: str) -> None:
        """Write one command line."""
        ...

    async def read_line(self, timeout: float) -> str:
        """
        Read one response line.

        Args:
            timeout: Read timeout in seconds.

        Returns:
            The stripped line, or an empty string on timeout or I/O error.
        """
        ...

    async def request(self, line: str, timeout: float) -> str:
        """Write a command and read its response as one exchange."""
        ...


# =============================================================================
# Dispenser Interface
# =============================================================================


@runtime_checkable
class CoinDispenser(Protocol):
    """Protocol for devices the change planner can pay out through."""

    def dispensable_tubes(self) -> list[tuple[int, int, int]]:
        """
        Get (coin_type, value, dispensable) for every known tube.
        """
        ...

    async def dispense(self, coin_type: int, quantity: int) -> list[str]:
        """
        Dispense coins of one type.

        Returns:
            The raw acknowledgement lines, one per command sent.
        """
        ...

