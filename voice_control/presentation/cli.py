"""
Command-line interface for the Voice Control Assistant.

This module renders the domain collection and the session state in the
terminal and turns slash commands into application callbacks.
"""

import asyncio
import os
import sys
import threading
from datetime import datetime
from typing import Callable, Dict, List, Optional, Tuple

from voice_control.config.logging_config import get_logger
from voice_control.events.event_interface import Event, EventBus, EventType, Subscription, event_bus

logger = get_logger(__name__)

BASE_COMMANDS = {
    "start": "Start a voice session",
    "stop": "End the voice session",
    "list": "Show the collection",
    "status": "Show the session state",
    "help": "Display this help message",
    "quit": "Exit the application",
}


class CliInterface:
    """
    Terminal front end.

    Re-renders the collection whenever the domain store changes and
    prints session lifecycle updates. Lines read from stdin are parsed as
    ``/command args`` and dispatched to the callbacks given to
    ``run_input_loop``.
    """

    def __init__(
        self,
        title: str,
        render: Callable[[], List[str]],
        command_help: Optional[Dict[str, str]] = None,
        show_timestamps: bool = False,
        color_output: bool = True,
        bus: Optional[EventBus] = None,
    ):
        """
        Initialize the CLI interface.

        Args:
            title: Heading shown in the header
            render: Returns the collection as text lines
            command_help: Descriptions of domain-specific commands
            show_timestamps: Whether to prefix status lines with the time
            color_output: Whether to use colored output
            bus: Event bus to listen on
        """
        self.title = title
        self.render = render
        self.command_help = dict(BASE_COMMANDS)
        self.command_help.update(command_help or {})
        self.show_timestamps = show_timestamps
        self.color_output = color_output and self._supports_color()
        self.bus = bus or event_bus

        self.shutdown_event = asyncio.Event()
        self._init_terminal_colors()

        self._subscriptions: List[Subscription] = []
        self._register_event_handlers()

    def _init_terminal_colors(self) -> None:
        """Initialize terminal color codes based on terminal capabilities."""
        if self.color_output:
            self.RESET = "\033[0m"
            self.BOLD = "\033[1m"
            self.RED = "\033[31m"
            self.GREEN = "\033[32m"
            self.YELLOW = "\033[33m"
            self.BLUE = "\033[34m"
            self.CYAN = "\033[36m"
            self.GRAY = "\033[90m"
        else:
            self.RESET = ""
            self.BOLD = ""
            self.RED = ""
            self.GREEN = ""
            self.YELLOW = ""
            self.BLUE = ""
            self.CYAN = ""
            self.GRAY = ""

    def _register_event_handlers(self) -> None:
        self._subscriptions = [
            self.bus.on(EventType.COLLECTION_CHANGED, self._handle_collection_changed),
            self.bus.on(EventType.SESSION_STATE_CHANGED, self._handle_state_changed),
            self.bus.on(EventType.FUNCTION_CALL_EXECUTED, self._handle_function_call),
            self.bus.on(EventType.FUNCTION_CALL_FAILED, self._handle_function_call_failed),
            self.bus.on(EventType.CHANNEL_ERROR, self._handle_error),
            self.bus.on(EventType.ERROR, self._handle_error),
        ]

    def _cleanup_event_handlers(self) -> None:
        for subscription in self._subscriptions:
            subscription.cancel()
        self._subscriptions = []

    # Event handlers

    def _handle_collection_changed(self, event: Event) -> None:
        self.display_collection()

    def _handle_state_changed(self, event: Event) -> None:
        state = event.data.get("state")
        if state == "active":
            self._print_status(f"{self.GREEN}Voice assistant is active and listening...{self.RESET}")
        elif state == "connecting":
            self._print_status(f"{self.YELLOW}Connecting...{self.RESET}")
        elif state == "idle":
            self._print_status(f"{self.GRAY}Call ended. Type /start to begin a new call.{self.RESET}")

    def _handle_function_call(self, event: Event) -> None:
        name = event.data.get("name")
        arguments = event.data.get("arguments") or {}
        args = ", ".join(f"{k}={v!r}" for k, v in arguments.items())
        self._print_status(f"{self.CYAN}Assistant called {name}({args}){self.RESET}")

    def _handle_function_call_failed(self, event: Event) -> None:
        name = event.data.get("name")
        message = (event.data.get("error") or {}).get("message", "unknown error")
        self._print_status(f"{self.YELLOW}Skipped {name}: {message}{self.RESET}")

    def _handle_error(self, event: Event) -> None:
        error = event.data.get("error") or {}
        message = error.get("message", "Unknown error")
        self._print_status(f"{self.BOLD}{self.RED}Error: {self.RESET}{message}")

    # Output

    def display_header(self, version: str = "0.1.0") -> None:
        width = max(len(self.title), 30) + 4
        self._print_safe(f"\n{self.BOLD}{self.CYAN}{'=' * width}{self.RESET}")
        self._print_safe(f"{self.BOLD}{self.CYAN}  {self.title}{self.RESET}")
        self._print_safe(f"{self.GRAY}  Version: {version}{self.RESET}")
        self._print_safe(f"{self.BOLD}{self.CYAN}{'=' * width}{self.RESET}")
        self._print_safe(f"{self.GRAY}Type /start to begin a call, /help for all commands{self.RESET}\n")

    def display_help(self) -> None:
        self._print_safe(f"\n{self.BOLD}Available Commands:{self.RESET}")
        for command, description in self.command_help.items():
            self._print_safe(f"  {self.BOLD}/{command}{self.RESET} - {description}")
        self._print_safe("")

    def display_collection(self) -> None:
        lines = self.render()
        self._print_safe("")
        self._print_safe(f"{self.BOLD}{lines[0]}{self.RESET}")
        for line in lines[1:-1]:
            self._print_safe(line)
        if len(lines) > 1:
            self._print_safe(f"{self.BOLD}{lines[-1]}{self.RESET}")

    def display_message(self, message: str) -> None:
        self._print_safe(message)

    def _print_status(self, message: str) -> None:
        self._print_safe(f"{self._format_timestamp()}{message}")

    def _format_timestamp(self) -> str:
        if not self.show_timestamps:
            return ""
        return f"{self.GRAY}[{datetime.now().strftime('%H:%M:%S')}]{self.RESET} "

    def _supports_color(self) -> bool:
        if os.environ.get("NO_COLOR"):
            return False
        if sys.platform == "win32":
            return "ANSICON" in os.environ or "WT_SESSION" in os.environ
        return hasattr(sys.stdout, "isatty") and sys.stdout.isatty()

    def _print_safe(self, *args, **kwargs) -> None:
        try:
            print(*args, **kwargs)
        except (OSError, ValueError) as e:
            logger.debug(f"Failed to print to stdout: {str(e)}")

    # Input

    def parse_command(self, text: str) -> Tuple[bool, Optional[str], Optional[str]]:
        """
        Parse user input for commands.

        Args:
            text: User input text

        Returns:
            Tuple of (is_command, command, args)
        """
        if not text:
            return False, None, None

        text = text.strip()
        if not text.startswith('/'):
            return False, None, None

        parts = text.split(' ', 1)
        command = parts[0][1:].lower()
        args = parts[1].strip() if len(parts) > 1 and parts[1].strip() else None

        return True, command, args

    def process_command(
        self,
        command: str,
        args: Optional[str] = None,
        command_callbacks: Optional[Dict[str, Callable]] = None
    ) -> bool:
        """
        Process a command from the user.

        Args:
            command: Command name (without the leading /)
            args: Command arguments
            command_callbacks: Dictionary of command callbacks

        Returns:
            True if application should continue, False if it should exit
        """
        if command == "help":
            self.display_help()
            return True

        if command == "list":
            self.display_collection()
            return True

        if command in ["quit", "exit", "bye"]:
            self._print_safe("Exiting application...")
            self.bus.emit(EventType.SHUTDOWN, {"reason": "user_command", "command": command})
            return False

        if command_callbacks and command in command_callbacks:
            try:
                command_callbacks[command](args)
            except (ValueError, TypeError) as e:
                self._print_safe(f"{self.RED}Invalid arguments for /{command}: {str(e)}{self.RESET}")
            except Exception as e:
                logger.error(f"Error executing command '{command}': {str(e)}", exc_info=True)
                self._print_safe(f"{self.RED}Error executing command: {str(e)}{self.RESET}")
            return True

        self._print_safe(f"{self.YELLOW}Unknown command: /{command}{self.RESET}")
        self._print_safe(f"Type {self.BOLD}/help{self.RESET} for a list of commands")
        return True

    async def run_input_loop(self, command_callbacks: Optional[Dict[str, Callable]] = None) -> None:
        """
        Read commands from stdin until quit, EOF or ``shutdown_event``.

        Args:
            command_callbacks: Dictionary of command callbacks
        """
        lines: asyncio.Queue = asyncio.Queue()
        loop = asyncio.get_running_loop()

        def read_stdin() -> None:
            # Daemon thread: a blocked input() must not keep the process alive
            while True:
                try:
                    line = input()
                except (EOFError, OSError):
                    loop.call_soon_threadsafe(lines.put_nowait, None)
                    return
                loop.call_soon_threadsafe(lines.put_nowait, line)

        threading.Thread(target=read_stdin, name="stdin-reader", daemon=True).start()

        try:
            while not self.shutdown_event.is_set():
                line = await lines.get()
                if line is None:
                    logger.info("Received EOF, shutting down")
                    self.bus.emit(EventType.SHUTDOWN, {"reason": "eof"})
                    break

                is_command, command, args = self.parse_command(line)
                if not is_command:
                    if line.strip():
                        self._print_safe(f"{self.GRAY}Speak to the assistant, or type /help for commands{self.RESET}")
                    continue

                if not self.process_command(command, args, command_callbacks):
                    break
        finally:
            self._cleanup_event_handlers()
