"""
Realtime API event handler.

This module routes server events arriving on the data channel. Only two
kinds matter here: ``session.created``, which triggers the one-time tool
configuration of the session, and ``response.done``, whose function-call
outputs are applied to the domain through the command handler. Model
``error`` events are logged; everything else is ignored.
"""

import json
from typing import Any, Dict, List, Optional

from voice_control.config.logging_config import get_logger
from voice_control.domain.commands import CommandHandler
from voice_control.domain.tools import ToolRegistry
from voice_control.events.event_interface import Event, EventBus, EventType, Subscription, event_bus
from voice_control.utils.error_handling import AppError, MalformedFunctionCall

logger = get_logger(__name__)


class RealtimeEventHandler:
    """
    Dispatcher between the transport session and the domain.

    ``tools_configured`` records whether the tool registry was sent in the
    current session, so duplicate ``session.created`` events never resend
    it. The flag is cleared when the session ends.
    """

    def __init__(
        self,
        session: Any,
        registry: ToolRegistry,
        command_handler: CommandHandler,
        bus: Optional[EventBus] = None,
    ):
        """
        Initialize the event handler.

        Args:
            session: Transport session used to send client events
            registry: Tools announced to the model
            command_handler: Applies function calls to the domain
            bus: Event bus for notifications
        """
        self.session = session
        self.registry = registry
        self.command_handler = command_handler
        self.bus = bus or event_bus

        self.tools_configured = False
        self._subscriptions: List[Subscription] = []
        self._setup_event_handlers()

        logger.debug("RealtimeEventHandler initialized")

    def _setup_event_handlers(self) -> None:
        self.event_handlers = {
            "session.created": self.handle_session_created,
            "response.done": self.handle_response_done,
            "error": self.handle_error,
        }

    def attach(self) -> None:
        """Start receiving server events and session-end notifications."""
        if self._subscriptions:
            return
        self._subscriptions = [
            self.session.add_listener(self.handle_event),
            self.bus.on(EventType.SESSION_ENDED, self._on_session_ended),
        ]

    def detach(self) -> None:
        for subscription in self._subscriptions:
            subscription.cancel()
        self._subscriptions = []

    def reset(self) -> None:
        """Forget per-session state."""
        self.tools_configured = False

    def _on_session_ended(self, event: Event) -> None:
        logger.debug("Session ended, resetting tool configuration")
        self.reset()

    async def handle_event(self, event: Dict[str, Any]) -> None:
        """
        Process one server event.

        Args:
            event: Decoded server event with a ``type`` field
        """
        event_type = event.get("type", "")
        handler = self.event_handlers.get(event_type)

        if handler is None:
            logger.debug(f"Ignoring server event: {event_type}")
            return

        logger.debug(f"Processing event: {event_type}")
        try:
            await handler(event)
        except Exception as e:
            logger.error(f"Error handling event {event_type}: {str(e)}", exc_info=True)
            self.bus.emit(
                EventType.ERROR,
                {"error": {"message": f"Error handling event {event_type}: {str(e)}", "type": "event_handler_error"}}
            )

    # Server event handlers

    async def handle_session_created(self, event: Dict[str, Any]) -> None:
        session_id = (event.get("session") or {}).get("id")

        if self.tools_configured:
            logger.debug(f"Duplicate session.created ({session_id}); tools already configured")
            return

        logger.info(f"Session created: {session_id}")
        self.bus.emit(EventType.SESSION_CREATED, {"session_id": session_id})

        if self.session.send(self.registry.session_update()):
            self.tools_configured = True
            logger.info(f"Configured {len(self.registry)} tools: {', '.join(self.registry.names())}")
            self.bus.emit(EventType.TOOLS_CONFIGURED, {"tools": list(self.registry.names())})
        else:
            logger.warning("Tool configuration could not be sent; waiting for another session.created")

    async def handle_response_done(self, event: Dict[str, Any]) -> None:
        response = event.get("response") or {}
        outputs = response.get("output") or []

        calls = [item for item in outputs if isinstance(item, dict) and item.get("type") == "function_call"]
        if not calls:
            return

        logger.debug(f"Response {response.get('id')} carries {len(calls)} function call(s)")
        for call in calls:
            self._execute_function_call(call)

    async def handle_error(self, event: Dict[str, Any]) -> None:
        error = event.get("error") or {}
        logger.warning(f"Realtime API error ({error.get('type', 'unknown')}): {error.get('message', 'no message')}")
        self.bus.emit(EventType.ERROR, {"error": error})

    # Function calls

    def _execute_function_call(self, call: Dict[str, Any]) -> None:
        name = call.get("name", "")
        call_id = call.get("call_id")

        try:
            arguments = self._parse_arguments(name, call.get("arguments", "{}"))
            arguments = self.registry.validate_arguments(name, arguments)
            outbound = self.command_handler.handle(name, arguments, call_id)
        except AppError as e:
            # Only this call is skipped; the rest of the batch still runs
            e.log(include_traceback=False)
            self.bus.emit(
                EventType.FUNCTION_CALL_FAILED,
                {"name": name, "call_id": call_id, "error": e.to_dict()}
            )
            return

        for client_event in outbound:
            self.session.send(client_event)

        self.bus.emit(
            EventType.FUNCTION_CALL_EXECUTED,
            {"name": name, "call_id": call_id, "arguments": arguments}
        )

    @staticmethod
    def _parse_arguments(name: str, raw: Any) -> Any:
        if isinstance(raw, dict):
            return raw
        if not isinstance(raw, str):
            raise MalformedFunctionCall(
                f"Arguments for '{name}' are not a JSON string",
                details={"tool": name, "received": type(raw).__name__}
            )
        try:
            return json.loads(raw) if raw.strip() else {}
        except json.JSONDecodeError as e:
            raise MalformedFunctionCall(
                f"Could not parse arguments for '{name}'",
                details={"tool": name},
                cause=e
            ) from e
