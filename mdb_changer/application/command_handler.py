"""
Command Handler - Routes JSON commands to facade methods.

A command is {"command": <name>, "command_id": <id>, "data": {...}};
the answer echoes the id with the facade's success, message, data and
error fields.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional

from mdb_changer.loggers import logger


CommandHandlerFunc = Callable[..., Awaitable[dict[str, Any]]]

# (command, facade method, required arguments, description)
COMMAND_TABLE: tuple[tuple[str, str, tuple[str, ...], str], ...] = (
    ("init_device", "init_device", (), "Initialize the coin changer"),
    ("start_polling", "start_polling", (), "Start polling and coin acceptance"),
    ("stop_polling", "stop_polling", (), "Stop polling and inhibit coin acceptance"),
    ("device_status", "device_status", (), "Get coin changer status"),
    ("dispense", "dispense", ("coin_type", "quantity"), "Dispense coins of one type"),
    ("tube_summary", "tube_summary", (), "Get tube levels"),
    ("reset_tubes", "reset_tubes", (), "Zero all tube counts"),
    ("start_amount_request", "start_amount_request", ("amount",), "Start collecting an amount"),
    ("cancel_amount_request", "cancel_amount_request", (), "Cancel the amount request and return inserted coins"),
    ("amount_state", "amount_state", (), "Get the amount request state"),
    ("refund", "refund", ("amount",), "Pay out an exact amount"),
    ("plan_change", "plan_change", ("amount",), "Plan a payout without dispensing"),
)


@dataclass
class CommandResponse:
    """
    Answer to one command.

    Attributes:
        command_id: Id echoed from the command.
        success: Whether the command succeeded.
        message: Human-readable message.
        data: Result data of the operation.
        error: Domain error details of a failed operation.
    """

    command_id: Optional[int] = None
    success: bool = False
    message: Optional[str] = None
    data: Any = None
    error: Optional[dict[str, Any]] = None

    def to_dict(self) -> dict[str, Any]:
        result = {
            "command_id": self.command_id,
            "success": self.success,
            "message": self.message,
            "data": self.data,
        }
        if self.error is not None:
            result["error"] = self.error
        return result


@dataclass
class CommandDefinition:
    """A routable command and the arguments it needs."""

    name: str
    handler: CommandHandlerFunc
    required_args: tuple[str, ...] = field(default_factory=tuple)
    description: str = ""

    def missing_args(self, data: dict[str, Any]) -> list[str]:
        return [arg for arg in self.required_args if data.get(arg) is None]


class CommandHandler:
    """
    Routes commands to the coin changer facade.

    Facade results are dictionaries and are copied into the response;
    any exception escaping the facade becomes a failed response.
    """

    def __init__(self, api: Any) -> None:
        """
        Initialize the command handler.

        Args:
            api: The CoinChangerFacade instance.
        """
        self._api = api
        self._commands: dict[str, CommandDefinition] = {}
        for name, method, required_args, description in COMMAND_TABLE:
            self.register(name, getattr(api, method), required_args, description)

    def register(
        self,
        command_name: str,
        handler: CommandHandlerFunc,
        required_args: tuple[str, ...] = (),
        description: str = "",
    ) -> None:
        """Register (or replace) a command."""
        self._commands[command_name] = CommandDefinition(
            name=command_name,
            handler=handler,
            required_args=tuple(required_args),
            description=description,
        )

    def get_available_commands(self) -> list[dict[str, Any]]:
        """Describe the registered commands."""
        return [
            {
                "name": definition.name,
                "required_args": list(definition.required_args),
                "description": definition.description,
            }
            for definition in self._commands.values()
        ]

    async def execute(self, command_data: dict[str, Any]) -> dict[str, Any]:
        """
        Execute one command.

        Args:
            command_data: Dictionary with 'command', 'command_id' and 'data'.

        Returns:
            The response dictionary.
        """
        command = command_data.get("command")
        response = CommandResponse(command_id=command_data.get("command_id"))
        data = command_data.get("data") or {}

        definition = self._commands.get(command)
        if definition is None:
            logger.warning(f"Unknown command: {command}")
            response.message = f"Unknown command: {command}"
            return response.to_dict()

        missing = definition.missing_args(data)
        if missing:
            response.message = f"Missing required arguments: {missing}"
            return response.to_dict()

        try:
            result = await definition.handler(**{arg: data[arg] for arg in definition.required_args})
        except Exception as e:
            logger.error(f"Error executing command '{command}': {e}")
            response.message = f"Error: {e}"
            return response.to_dict()

        response.success = bool(result.get("success", False))
        response.message = result.get("message")
        response.data = result.get("data")
        response.error = result.get("error")
        return response.to_dict()


async def coin_changer_commands(command_data: dict[str, Any], api: Any) -> dict[str, Any]:
    """
    Execute a command received on the Redis command channel.

    Args:
        command_data: Dictionary containing command name, ID, and data.
        api: The CoinChangerFacade instance.

    Returns:
        Response dictionary.
    """
    return await CommandHandler(api).execute(command_data)
