"""
Coin Service - Application service for coin changer operations.

Wraps the coin changer engine with dictionary results for the API:
domain errors are caught here and turned into error responses.
"""

from typing import Any

from mdb_changer.core.exceptions import CashSystemError
from mdb_changer.domain.coin_changer import CoinChanger
from mdb_changer.loggers import logger


def error_response(error: CashSystemError) -> dict[str, Any]:
    """Build a failed response from a domain error."""
    return {
        "success": False,
        "message": error.message,
        "error": error.to_dict(),
    }


class CoinService:
    """
    Application service for the coin changer.

    Handles initialization, polling control, dispensing and tube status.
    """

    def __init__(self, changer: CoinChanger) -> None:
        """
        Initialize the coin service.

        Args:
            changer: The coin changer engine.
        """
        self._changer = changer

    @property
    def changer(self) -> CoinChanger:
        return self._changer

    async def init_device(self) -> dict[str, Any]:
        """
        Initialize the coin changer.

        Returns:
            Dictionary with success status and the coin map.
        """
        try:
            await self._changer.initialize()
        except CashSystemError as e:
            logger.error(f"Coin changer initialization failed: {e.message}")
            return error_response(e)

        return {
            "success": True,
            "message": "Coin changer initialized",
            "data": {"coin_map": self._changer.status()["coin_map"]},
        }

    async def start_polling(self) -> dict[str, Any]:
        """Start polling and coin acceptance."""
        try:
            await self._changer.start_polling()
        except CashSystemError as e:
            logger.error(f"Cannot start polling: {e.message}")
            return error_response(e)
        return {"success": True, "message": "Polling started"}

    async def stop_polling(self) -> dict[str, Any]:
        """Stop polling and inhibit coin acceptance."""
        try:
            await self._changer.stop_polling()
        except CashSystemError as e:
            logger.error(f"Cannot stop polling: {e.message}")
            return error_response(e)
        return {"success": True, "message": "Polling stopped"}

    async def dispense(self, coin_type: int, quantity: int) -> dict[str, Any]:
        """
        Dispense coins of one type.

        Args:
            coin_type: 1-based coin type.
            quantity: Number of coins.

        Returns:
            Dictionary with success status and acknowledgements.
        """
        try:
            acks = await self._changer.dispense(int(coin_type), int(quantity))
        except CashSystemError as e:
            logger.error(f"Dispense failed: {e.message}")
            return error_response(e)

        tube = self._changer.inventory.get(int(coin_type))
        return {
            "success": True,
            "message": f"Dispensed {quantity} x coin {coin_type}",
            "data": {
                "acks": acks,
                "count": tube.count if tube else 0,
                "dispensable": tube.dispensable if tube else 0,
            },
        }

    async def tube_summary(self) -> dict[str, Any]:
        """Get tube summaries ordered by coin type."""
        tubes = [tube.to_dict() for tube in self._changer.tube_summary()]
        return {
            "success": True,
            "message": f"{len(tubes)} tubes",
            "data": {"tubes": tubes},
        }

    async def reset_tubes(self) -> dict[str, Any]:
        """Zero all tube counts."""
        self._changer.reset_tubes()
        return {"success": True, "message": "Tube counts reset"}

    async def device_status(self) -> dict[str, Any]:
        """Get the device status projection."""
        return {
            "success": True,
            "message": self._changer.last_event,
            "data": self._changer.status(),
        }

    async def shutdown(self) -> None:
        """Stop polling and close the transport."""
        try:
            await self._changer.shutdown()
        except CashSystemError as e:
            logger.error(f"Error during coin changer shutdown: {e.message}")
