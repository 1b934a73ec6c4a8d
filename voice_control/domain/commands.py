"""
Base command handler.

A command handler maps one validated tool invocation onto a store mutation
and returns the outbound client events (if any) that should follow it. It
never touches the transport: the dispatcher sends whatever is returned.
"""

from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional

from voice_control.config.logging_config import get_logger
from voice_control.utils.error_handling import UnknownTool

logger = get_logger(__name__)

ClientEvent = Dict[str, Any]
Command = Callable[[Dict[str, Any], Optional[str]], List[ClientEvent]]


def narration(instructions: str) -> ClientEvent:
    """Build a ``response.create`` event asking the model to say something."""
    return {
        "type": "response.create",
        "response": {"instructions": instructions},
    }


def function_call_output(call_id: str, output: str) -> ClientEvent:
    """Build a ``conversation.item.create`` event returning a function result."""
    return {
        "type": "conversation.item.create",
        "item": {
            "type": "function_call_output",
            "call_id": call_id,
            "output": output,
        },
    }


class CommandHandler(ABC):
    """
    Maps tool names to command methods.

    Subclasses fill the command table in ``_setup_commands``; each command
    receives the validated arguments and the function call id.
    """

    def __init__(self):
        self.commands: Dict[str, Command] = {}
        self._setup_commands()

    @abstractmethod
    def _setup_commands(self) -> None:
        """Populate ``self.commands``."""

    def handle(
        self,
        name: str,
        arguments: Dict[str, Any],
        call_id: Optional[str] = None
    ) -> List[ClientEvent]:
        """
        Apply one tool invocation.

        Args:
            name: Tool name
            arguments: Arguments already checked against the tool schema
            call_id: Function call id from the model, if any

        Returns:
            List of client events to send back to the model

        Raises:
            UnknownTool: If no command is registered under ``name``
            MalformedFunctionCall: If arguments are semantically invalid
        """
        command = self.commands.get(name)
        if command is None:
            raise UnknownTool(f"No command registered for tool '{name}'", details={"tool": name})

        logger.info(f"Applying {name} with {arguments}")
        return command(arguments, call_id)
