"""
Main application for the Voice Control Assistant.

This module wires the domain module, the realtime transport session, the
event dispatcher and the terminal UI together, and provides the command
line entry point.
"""

import argparse
import asyncio
import functools
import signal
import threading
from typing import Callable, Dict, List, Optional

from dotenv import load_dotenv

from voice_control.config import settings
from voice_control.config.logging_config import LoggingManager, get_logger
from voice_control.domain.modules import DomainModule, create_domain_module
from voice_control.events.event_interface import Event, EventBus, EventType, Subscription, event_bus
from voice_control.presentation.cli import CliInterface
from voice_control.services.api_client import RealtimeApiClient
from voice_control.services.audio_service import MicrophoneTrack, RemoteAudioPlayer, TrackPlayer, list_audio_devices
from voice_control.services.realtime_event_handler import RealtimeEventHandler
from voice_control.services.realtime_session import RealtimeSession
from voice_control.utils.async_helpers import TaskManager
from voice_control.utils.error_handling import AppError, NegotiationError

logger = get_logger(__name__)

PLAYLIST_COMMANDS = {
    "play": "Play a track by id, or resume the current one (/play [id])",
    "pause": "Pause playback",
    "remove": "Remove a track (/remove <id>)",
}

CART_COMMANDS = {
    "remove": "Remove an item (/remove <id>)",
    "qty": "Set an item's quantity (/qty <id> <n>)",
    "clear": "Empty the cart",
}


class Application:
    """
    Main application class for the Voice Control Assistant.

    The domain store lives as long as the application; voice sessions are
    started and stopped on demand without touching it.
    """

    def __init__(
        self,
        variant: Optional[str] = None,
        autostart: bool = False,
        input_device: Optional[int] = None,
        output_device: Optional[int] = None,
        select_devices: bool = False,
        debug_mode: Optional[bool] = None,
        log_level: Optional[str] = None,
        bus: Optional[EventBus] = None,
        session: Optional[RealtimeSession] = None,
        track_player: Optional[TrackPlayer] = None,
    ):
        """
        Initialize the application.

        Args:
            variant: Domain to control ("playlist" or "cart"); defaults to settings
            autostart: Whether to start a voice session immediately
            input_device: Optional audio input device index
            output_device: Optional audio output device index
            select_devices: Whether to prompt for device selection
            debug_mode: Whether to enable debug mode
            log_level: Logging level to reconfigure with; debug mode forces DEBUG
            bus: Event bus shared by all components
            session: Pre-built transport session (used by tests)
            track_player: Pre-built playlist track player (used by tests)
        """
        if debug_mode is not None:
            settings.debug_mode = debug_mode

        if settings.debug_mode:
            log_level = "DEBUG"
        if log_level:
            LoggingManager.setup_logging(log_level)

        self.bus = bus or event_bus
        self.autostart = autostart

        if select_devices:
            input_device, output_device = self._select_audio_devices()

        self.domain: DomainModule = create_domain_module(variant or settings.variant, self.bus)

        self.session = session or RealtimeSession(
            api_client=RealtimeApiClient(),
            bus=self.bus,
            microphone_factory=functools.partial(MicrophoneTrack, device_index=input_device),
            player_factory=functools.partial(RemoteAudioPlayer, device_index=output_device),
        )

        self.dispatcher = RealtimeEventHandler(
            self.session,
            self.domain.registry,
            self.domain.handler,
            bus=self.bus,
        )
        self.dispatcher.attach()

        self.cli = CliInterface(
            title=self.domain.title,
            render=self.domain.render,
            command_help=PLAYLIST_COMMANDS if self.domain.name == "playlist" else CART_COMMANDS,
            show_timestamps=settings.debug_mode,
            bus=self.bus,
        )

        self.task_manager = TaskManager("application")
        self.shutdown_event = asyncio.Event()
        self._subscriptions: List[Subscription] = [
            self.bus.on(EventType.SHUTDOWN, self._handle_shutdown_event),
        ]

        self.track_player: Optional[TrackPlayer] = None
        if self.domain.name == "playlist" and settings.audio.playback_enabled:
            self.track_player = track_player or TrackPlayer(device_index=output_device, bus=self.bus)
            self._subscriptions.append(self.track_player.attach(self.domain.store))

        logger.info(f"Application initialized for {self.domain.name}")

    # Session control

    async def start_session(self) -> bool:
        """
        Start a voice session.

        Returns:
            bool: True if negotiation completed
        """
        try:
            await self.session.start()
        except NegotiationError:
            # already logged by the session
            self.cli.display_message("Could not start the call. Type /start to try again.")
            return False
        return True

    async def stop_session(self) -> None:
        await self.session.stop()

    async def run(self) -> None:
        """Run the terminal UI until shutdown is requested."""
        self.cli.display_header(settings.app_version)
        self.cli.display_collection()
        self._register_signal_handlers()

        if self.autostart:
            self.task_manager.create_task(self.start_session(), "autostart")

        input_task = self.task_manager.create_task(
            self.cli.run_input_loop(self._get_command_handlers()),
            "cli_input_loop"
        )
        shutdown_task = asyncio.create_task(self.shutdown_event.wait())

        await asyncio.wait({input_task, shutdown_task}, return_when=asyncio.FIRST_COMPLETED)
        shutdown_task.cancel()

        await self.stop()

    async def stop(self) -> None:
        """Stop the session and release background tasks."""
        logger.info("Stopping application")
        try:
            await self.session.stop()
        except Exception as e:
            AppError("Error during application shutdown", cause=e).log()
        finally:
            self.dispatcher.detach()
            for subscription in self._subscriptions:
                subscription.cancel()
            self._subscriptions = []
            if self.track_player is not None:
                await self.track_player.close()
            await self.task_manager.cancel_all()
            logger.info("Application stopped")

    def shutdown(self) -> None:
        """Request application shutdown."""
        logger.info("Shutdown requested")
        self.cli.shutdown_event.set()
        self.shutdown_event.set()

    # Commands

    def _get_command_handlers(self) -> Dict[str, Callable]:
        handlers: Dict[str, Callable] = {
            "start": lambda _: self.task_manager.create_task(self.start_session(), "start_session"),
            "stop": lambda _: self.task_manager.create_task(self.stop_session(), "stop_session"),
            "status": lambda _: self.cli.display_message(f"Session: {self.session.state.value}"),
        }

        store = self.domain.store
        if self.domain.name == "playlist":
            handlers.update({
                "play": lambda args: store.play(args),
                "pause": lambda _: store.pause(),
                "remove": lambda args: store.remove(_require(args, "/remove <id>")),
            })
        else:
            handlers.update({
                "remove": lambda args: store.remove(_require(args, "/remove <id>")),
                "qty": self._set_quantity,
                "clear": lambda _: store.clear(),
            })
        return handlers

    def _set_quantity(self, args: Optional[str]) -> None:
        parts = _require(args, "/qty <id> <n>").split()
        if len(parts) != 2:
            raise ValueError("usage: /qty <id> <n>")
        item_id, quantity = parts[0], int(parts[1])
        if self.domain.store.update_quantity(item_id, quantity) is None:
            self.cli.display_message(f"No item with id {item_id}")

    def _handle_shutdown_event(self, event: Event) -> None:
        logger.info(f"Shutdown event received: {event.data.get('reason', 'unknown')}")
        self.shutdown()

    # Setup helpers

    def _select_audio_devices(self) -> tuple:
        """
        Prompt user to select audio devices.

        Returns:
            Tuple of (input_device_index, output_device_index)
        """
        devices = list_audio_devices()

        print("\nAvailable Audio Devices:")
        print("------------------------")

        input_devices = [d for d in devices if (d.get("maxInputChannels") or 0) > 0]
        output_devices = [d for d in devices if (d.get("maxOutputChannels") or 0) > 0]
        for device in input_devices:
            print(f"Input  {device['index']}: {device['name']}")
        for device in output_devices:
            print(f"Output {device['index']}: {device['name']}")

        input_device_index = _prompt_device("\nSelect input device # (press Enter for default): ", input_devices)
        output_device_index = _prompt_device("Select output device # (press Enter for default): ", output_devices)
        return input_device_index, output_device_index

    def _register_signal_handlers(self) -> None:
        """Register OS signal handlers for graceful shutdown."""
        if threading.current_thread() is not threading.main_thread():
            return

        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, self._signal_handler)
                logger.debug(f"Registered signal handler for {sig}")
            except NotImplementedError:
                # Windows does not support add_signal_handler
                signal.signal(sig, lambda s, f: loop.call_soon_threadsafe(self._signal_handler))

    def _signal_handler(self) -> None:
        logger.info("Received shutdown signal")
        self.shutdown()


def _require(args: Optional[str], usage: str) -> str:
    if not args:
        raise ValueError(f"usage: {usage}")
    return args


def _prompt_device(prompt: str, devices: list) -> Optional[int]:
    if not devices:
        return None
    try:
        choice = input(prompt)
        if not choice.strip():
            return None
        index = int(choice)
    except ValueError:
        print("Invalid input, using default device.")
        return None
    if any(d["index"] == index for d in devices):
        return index
    print("Invalid selection, using default device.")
    return None


def parse_arguments(argv: Optional[list] = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(description="Voice Control Assistant")

    parser.add_argument(
        "--variant",
        choices=["playlist", "cart"],
        default=settings.variant,
        help="Which UI the assistant controls"
    )

    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default=settings.logging.level,
        help="Set logging level"
    )

    parser.add_argument(
        "--autostart",
        action="store_true",
        help="Start a voice session immediately"
    )

    parser.add_argument(
        "--select-devices",
        action="store_true",
        help="Prompt for audio device selection"
    )

    parser.add_argument(
        "--no-playback",
        action="store_true",
        help="Do not play the assistant's voice or playlist tracks"
    )

    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug mode"
    )

    return parser.parse_args(argv)


async def run_application(args: argparse.Namespace) -> int:
    """
    Build and run the application.

    Returns:
        int: Exit code (0 for success, non-zero for error)
    """
    try:
        app = Application(
            variant=args.variant,
            autostart=args.autostart,
            select_devices=args.select_devices,
            debug_mode=args.debug,
            log_level=args.log_level,
        )
        await app.run()
        return 0
    except AppError as e:
        e.log()
        return 1


def main(argv: Optional[list] = None) -> int:
    """
    Main entry point for the application.

    Returns:
        int: Exit code (0 for success, non-zero for error)
    """
    load_dotenv()
    args = parse_arguments(argv)

    if args.no_playback:
        settings.audio.playback_enabled = False

    try:
        return asyncio.run(run_application(args))
    except KeyboardInterrupt:
        logger.info("Application terminated by user")
        return 0
