"""
Amount Service - Application service for amount requests and refunds.

Handles the amount request flow and exact-change payouts.
"""

from typing import Any

from mdb_changer.application.coin_service import error_response
from mdb_changer.core.exceptions import CashSystemError, InvalidAmountError
from mdb_changer.domain.amount_request import AmountRequestStateMachine
from mdb_changer.domain.change_planner import ChangeDispenser
from mdb_changer.loggers import logger


def whole_amount(amount: Any) -> int:
    """
    Convert a command amount to whole currency units.

    Raises:
        InvalidAmountError: If the amount is fractional or not a number.
    """
    if isinstance(amount, bool) or (isinstance(amount, float) and not amount.is_integer()):
        raise InvalidAmountError(f"Amount must be a whole number: {amount}")
    try:
        return int(amount)
    except (TypeError, ValueError):
        raise InvalidAmountError(f"Amount must be a whole number: {amount!r}") from None


class AmountService:
    """
    Application service for amount requests.

    Coordinates the amount request state machine and the change dispenser.
    """

    def __init__(
        self,
        state_machine: AmountRequestStateMachine,
        change: ChangeDispenser,
    ) -> None:
        """
        Initialize the amount service.

        Args:
            state_machine: Amount request state machine.
            change: Change dispenser for refunds.
        """
        self._state_machine = state_machine
        self._change = change

    @property
    def state_machine(self) -> AmountRequestStateMachine:
        return self._state_machine

    async def start_amount_request(self, amount: int) -> dict[str, Any]:
        """
        Start collecting an amount.

        Args:
            amount: Amount to collect.

        Returns:
            Dictionary with success status and the request state.
        """
        try:
            state = await self._state_machine.start(whole_amount(amount))
        except CashSystemError as e:
            logger.error(f"Cannot start amount request: {e.message}")
            return error_response(e)

        return {
            "success": True,
            "message": f"Collecting {state.requested}",
            "data": state.to_dict(),
        }

    async def cancel_amount_request(self) -> dict[str, Any]:
        """Cancel the amount request, returning what was inserted."""
        state = await self._state_machine.cancel()
        return {
            "success": True,
            "message": f"Amount request {state.status.value}",
            "data": state.to_dict(),
        }

    async def amount_state(self) -> dict[str, Any]:
        """Get the current amount request state."""
        state = self._state_machine.state
        return {
            "success": True,
            "message": state.status.value,
            "data": state.to_dict(),
        }

    async def refund(self, amount: int) -> dict[str, Any]:
        """
        Pay out an exact amount.

        Returns:
            Dictionary with success status and the executed plan.
        """
        try:
            amount = whole_amount(amount)
        except InvalidAmountError as e:
            return error_response(e)

        result = await self._change.refund(amount)
        if not result.success:
            logger.warning(f"Refund of {amount} failed: {result.message}")
        return {
            "success": result.success,
            "message": result.message,
            "data": result.to_dict(),
        }

    async def plan_change(self, amount: int) -> dict[str, Any]:
        """
        Plan a payout without dispensing.

        Returns:
            Dictionary with success status and the plan.
        """
        try:
            amount = whole_amount(amount)
        except InvalidAmountError as e:
            return error_response(e)
        if amount <= 0:
            return {"success": False, "message": f"Invalid amount: {amount}"}

        plan = self._change.plan(amount)
        if plan is None:
            return {"success": False, "message": f"No coin combination for {amount}"}
        return {
            "success": True,
            "message": f"Plan for {amount}",
            "data": plan.to_dict(),
        }
