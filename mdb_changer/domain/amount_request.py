"""
Amount Request State Machine - Collects a requested amount in coins.

Idle -> Active -> Success | Cancelled. Overpayment and cancelled
collections are paid back through the change dispenser on a best-effort
basis; a failed payout is logged and never blocks the transition.
"""

from __future__ import annotations

import asyncio
from typing import Any, Optional

from mdb_changer.core.exceptions import InvalidAmountError, PaymentInProgressError
from mdb_changer.core.value_objects import AmountState, AmountStatus, CoinEventType
from mdb_changer.domain.change_planner import ChangeDispenser
from mdb_changer.event_system import EventPublisher, EventType
from mdb_changer.loggers import logger


# eventType of published coin notifications -> effect on the request
_CREDIT_EVENTS = {"coin": CoinEventType.ACCEPTED, "cashbox": CoinEventType.CASHBOX}
_DEBIT_EVENTS = {"dispense": CoinEventType.DISPENSED}


class AmountRequestStateMachine:
    """
    State machine for an amount request.

    Success and Cancelled zero the amounts right after they are
    published, so a finished request behaves like Idle.
    """

    def __init__(
        self,
        change: ChangeDispenser,
        publisher: Optional[EventPublisher] = None,
    ) -> None:
        """
        Initialize the state machine.

        Args:
            change: Change dispenser used for refunds.
            publisher: Publisher for amount_state notifications.
        """
        self._change = change
        self._publisher = publisher
        self._status = AmountStatus.IDLE
        self._requested = 0
        self._inserted = 0
        self._lock = asyncio.Lock()

    @property
    def status(self) -> AmountStatus:
        return self._status

    @property
    def is_active(self) -> bool:
        return self._status is AmountStatus.ACTIVE

    @property
    def state(self) -> AmountState:
        """Get a snapshot of the request."""
        return AmountState(self._status, self._requested, self._inserted)

    async def _publish(self, state: AmountState) -> None:
        if self._publisher is None:
            return
        data = state.to_dict()
        data.pop("type")
        try:
            await self._publisher.publish(EventType.AMOUNT_STATE, **data)
        except Exception as e:
            logger.error(f"Failed to publish amount state: {e}")

    def _zero(self) -> None:
        self._requested = 0
        self._inserted = 0

    async def start(self, amount: int) -> AmountState:
        """
        Start collecting an amount.

        Raises:
            PaymentInProgressError: If a request is already active.
            InvalidAmountError: If amount is not positive.
        """
        async with self._lock:
            if self.is_active:
                raise PaymentInProgressError("Amount request already in progress")
            if amount <= 0:
                raise InvalidAmountError(f"Invalid amount: {amount}")

            self._requested = amount
            self._inserted = 0
            self._status = AmountStatus.ACTIVE
            logger.info(f"Amount request started: {amount}")

            state = self.state
            await self._publish(state)
            return state

    async def apply_coin(self, kind: CoinEventType, value: int) -> Optional[AmountState]:
        """
        Apply a coin event to the active request.

        Accepted and Cashbox coins credit the request, Dispensed coins
        debit it. Other events and events while not active are ignored.

        Returns:
            The published state, or None if the event was ignored.
        """
        async with self._lock:
            if not self.is_active:
                return None

            if kind in (CoinEventType.ACCEPTED, CoinEventType.CASHBOX):
                self._inserted += value
            elif kind is CoinEventType.DISPENSED:
                self._inserted = max(0, self._inserted - value)
            else:
                return None

            return await self._evaluate()

    async def _evaluate(self) -> AmountState:
        if self._inserted < self._requested:
            state = self.state
            await self._publish(state)
            return state

        overpay = self._inserted - self._requested
        if overpay > 0:
            logger.info(f"Overpaid by {overpay}, returning change")
            result = await self._change.refund(overpay)
            if not result.success:
                logger.warning(f"Change for overpayment not fully returned: {result.message}")
            self._inserted -= result.dispensed_amount

        self._status = AmountStatus.SUCCESS
        logger.info(f"Amount request completed: {self._inserted} of {self._requested}")
        state = self.state
        await self._publish(state)
        self._zero()
        return state

    async def handle_event(self, event: dict[str, Any]) -> None:
        """
        Event system handler for published coin events.

        Args:
            event: Event dictionary with eventType and value.
        """
        name = event.get("eventType")
        kind = _CREDIT_EVENTS.get(name) or _DEBIT_EVENTS.get(name)
        if kind is None:
            return
        await self.apply_coin(kind, int(event.get("value", 0)))

    async def cancel(self) -> AmountState:
        """
        Cancel the request, paying back everything inserted.

        Returns:
            The published state (Idle if nothing was active).
        """
        async with self._lock:
            if not self.is_active:
                self._zero()
                self._status = AmountStatus.IDLE
                state = self.state
                await self._publish(state)
                return state

            inserted = self._inserted
            if inserted > 0:
                logger.info(f"Cancelling amount request, returning {inserted}")
                result = await self._change.refund(inserted)
                if not result.success:
                    logger.warning(f"Refund on cancel not fully returned: {result.message}")
            else:
                logger.info("Cancelling amount request")

            self._zero()
            self._status = AmountStatus.CANCELLED
            state = self.state
            await self._publish(state)
            return state
