"""
Change-Making Planner.

Finds a selection of coins summing exactly to an amount under the
per-tube dispensable limits, and pays it out through a coin dispenser.
"""

from __future__ import annotations

import asyncio
from functools import reduce
from itertools import accumulate
from math import gcd
from typing import Iterable, Optional

from mdb_changer.core.exceptions import CashSystemError
from mdb_changer.core.interfaces import CoinDispenser
from mdb_changer.core.value_objects import DispensePlan, DispensingResult
from mdb_changer.loggers import logger


Tube = tuple[int, int, int]  # (coin_type, value, dispensable)


def _greedy(amount: int, tubes: list[Tube]) -> tuple[list[tuple[int, int, int]], int]:
    entries = []
    remaining = amount
    for coin_type, value, dispensable in tubes:
        use = min(dispensable, remaining // value)
        if use > 0:
            entries.append((coin_type, value, use))
            remaining -= use * value
    return entries, remaining


def _search(
    remaining: int,
    tubes: list[Tube],
    index: int,
    chosen: list[tuple[int, int, int]],
    reach: list[int],
    dead: set[tuple[int, int]],
) -> Optional[list[tuple[int, int, int]]]:
    if remaining == 0:
        return list(chosen)
    # reach[i]: most the tubes from i on can pay
    if index >= len(tubes) or remaining > reach[index] or (index, remaining) in dead:
        return None

    coin_type, value, dispensable = tubes[index]
    for use in range(min(dispensable, remaining // value), -1, -1):
        if use:
            chosen.append((coin_type, value, use))
        found = _search(remaining - use * value, tubes, index + 1, chosen, reach, dead)
        if use:
            chosen.pop()
        if found is not None:
            return found
    dead.add((index, remaining))
    return None


def plan_change(amount: int, tubes: Iterable[Tube]) -> Optional[DispensePlan]:
    """
    Plan an exact payout.

    Greedy over tubes sorted by descending value first; when greedy
    leaves a remainder, a bounded search over the same order finds an
    exact combination if one exists. The search drops branches the
    remaining tubes cannot pay and remembers remainders already shown
    impossible, so an infeasible amount fails fast.

    Args:
        amount: Amount to pay out.
        tubes: (coin_type, value, dispensable) per tube.

    Returns:
        Plan with entries in descending value order, or None if no
        exact combination exists.

    Raises:
        ValueError: If amount is negative.
    """
    if amount < 0:
        raise ValueError(f"Amount cannot be negative: {amount}")

    available = sorted(
        (t for t in tubes if t[1] > 0 and t[2] > 0),
        key=lambda t: t[1],
        reverse=True,
    )
    if not available:
        return None

    entries, remaining = _greedy(amount, available)
    if remaining == 0:
        return DispensePlan(amount=amount, entries=tuple(entries))

    if amount % reduce(gcd, (t[1] for t in available)):
        return None

    reach = list(accumulate((t[1] * t[2] for t in reversed(available))))[::-1]
    logger.debug(f"Greedy left {remaining} of {amount}, searching combinations")
    found = _search(amount, available, 0, [], reach, set())
    if found is None:
        return None
    return DispensePlan(amount=amount, entries=tuple(found))


class ChangeDispenser:
    """
    Plans and pays out change through a coin dispenser.

    One payout runs at a time. Denominations are dispensed in descending
    value order with a short delay between commands.
    """

    def __init__(self, dispenser: CoinDispenser, inter_delay: float = 0.15) -> None:
        """
        Initialize the change dispenser.

        Args:
            dispenser: Device paying out coins.
            inter_delay: Delay between dispense commands in seconds.
        """
        self._dispenser = dispenser
        self._inter_delay = inter_delay
        self._lock = asyncio.Lock()

    def plan(self, amount: int) -> Optional[DispensePlan]:
        """Plan a payout against the current dispensable levels."""
        return plan_change(amount, self._dispenser.dispensable_tubes())

    async def refund(self, amount: int) -> DispensingResult:
        """
        Pay out an exact amount.

        Args:
            amount: Amount to pay out.

        Returns:
            Result with the executed plan; partial if a dispense failed.
        """
        if amount <= 0:
            return DispensingResult.failed(amount, f"Invalid refund amount: {amount}")

        async with self._lock:
            plan = self.plan(amount)
            if plan is None:
                logger.warning(f"No coin combination for {amount}")
                return DispensingResult.failed(amount, f"No coin combination for {amount}")

            logger.info(
                f"Refunding {amount}: "
                + ", ".join(f"{q} x {v}" for _, v, q in plan)
            )

            dispensed = 0
            for i, (coin_type, value, quantity) in enumerate(plan):
                if i > 0:
                    await asyncio.sleep(self._inter_delay)
                try:
                    await self._dispenser.dispense(coin_type, quantity)
                except CashSystemError as e:
                    dispensed += value * e.details.get("dispensed", 0)
                    logger.error(f"Refund stopped at coin {coin_type}: {e.message}")
                    return DispensingResult.partial_dispense(plan, dispensed, e.message)
                dispensed += value * quantity

            return DispensingResult.full_dispense(plan)
