"""
Application layer - Application services and use cases.

Contains:
- Coin service
- Amount service
- API facade
- Command handlers
"""

from .coin_service import CoinService
from .amount_service import AmountService
from .api_facade import CoinChangerFacade
from .command_handler import CommandHandler, CommandResponse


__all__ = [
    "CoinService",
    "AmountService",
    "CoinChangerFacade",
    "CommandHandler",
    "CommandResponse",
]
