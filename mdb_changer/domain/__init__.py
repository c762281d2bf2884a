"""
Domain layer - Coin changer business logic.

Contains:
- Tube inventory model
- Coin changer engine (poll loop, dispense executor)
- Change-making planner
- Amount request state machine
"""

from .tube_inventory import (
    TubeInventory,
    TubeState,
)
from .coin_changer import CoinChanger
from .change_planner import (
    ChangeDispenser,
    plan_change,
)
from .amount_request import AmountRequestStateMachine


__all__ = [
    # Inventory
    "TubeInventory",
    "TubeState",
    # Engine
    "CoinChanger",
    # Change
    "ChangeDispenser",
    "plan_change",
    # Amount Request
    "AmountRequestStateMachine",
]
