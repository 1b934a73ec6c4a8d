"""
Tests for the terminal interface and application wiring.

This module tests command parsing and dispatch, collection re-rendering
on store changes, and the commands the application exposes per variant.
"""

import logging

import pytest
from unittest.mock import AsyncMock, MagicMock

from voice_control.application import Application, main, parse_arguments
from voice_control.config import settings
from voice_control.config.logging_config import LoggingManager
from voice_control.events.event_interface import EventType, Subscription
from voice_control.presentation.cli import CliInterface
from voice_control.services.realtime_session import SessionState
from voice_control.utils.error_handling import NegotiationError


@pytest.fixture
def cli(bus):
    return CliInterface(
        title="Voice Ordering Assistant",
        render=lambda: ["Your Order", "   [tea] Tea x1  $2.50", "Total: $2.50"],
        command_help={"qty": "Set an item's quantity"},
        color_output=False,
        bus=bus,
    )


@pytest.fixture
def fake_session():
    session = MagicMock()
    session.state = SessionState.IDLE
    session.start = AsyncMock()
    session.stop = AsyncMock()
    session.add_listener.side_effect = lambda listener: Subscription(lambda: None, "inbound")
    return session


@pytest.fixture
def cart_app(bus, fake_session):
    return Application(variant="cart", bus=bus, session=fake_session)


def test_parse_command(cli):
    assert cli.parse_command("/qty tea 3") == (True, "qty", "tea 3")
    assert cli.parse_command("  /LIST  ") == (True, "list", None)
    assert cli.parse_command("hello there") == (False, None, None)
    assert cli.parse_command("") == (False, None, None)


def test_quit_emits_shutdown(cli, bus):
    shutdown = MagicMock()
    bus.on(EventType.SHUTDOWN, shutdown)

    assert cli.process_command("quit") is False
    shutdown.assert_called_once()


def test_callbacks_and_errors(cli, capsys):
    """Test dispatch to callbacks and reporting of bad arguments."""
    callback = MagicMock()
    failing = MagicMock(side_effect=ValueError("usage: /qty <id> <n>"))

    assert cli.process_command("start", None, {"start": callback}) is True
    assert cli.process_command("qty", "tea", {"qty": failing}) is True
    assert cli.process_command("dance", None, {}) is True

    callback.assert_called_once_with(None)
    output = capsys.readouterr().out
    assert "Invalid arguments for /qty: usage: /qty <id> <n>" in output
    assert "Unknown command: /dance" in output


def test_help_lists_base_and_domain_commands(cli, capsys):
    cli.process_command("help")

    output = capsys.readouterr().out
    assert "/start" in output
    assert "/qty" in output


def test_collection_rerendered_on_change(cli, bus, capsys):
    bus.emit(EventType.COLLECTION_CHANGED, {"domain": "cart", "action": "add", "id": "tea"})

    output = capsys.readouterr().out
    assert "Your Order" in output
    assert "Total: $2.50" in output


def test_active_session_is_announced(cli, bus, capsys):
    bus.emit(EventType.SESSION_STATE_CHANGED, {"state": "active", "previous": "connecting"})

    assert "Voice assistant is active and listening..." in capsys.readouterr().out


def test_application_wires_dispatcher(cart_app, fake_session):
    fake_session.add_listener.assert_called_once_with(cart_app.dispatcher.handle_event)
    assert cart_app.domain.name == "cart"


def test_cart_commands(cart_app):
    """Test the terminal shortcuts operating directly on the cart."""
    store = cart_app.domain.store
    store.add("tea", "Tea", 2.5)
    handlers = cart_app._get_command_handlers()

    handlers["qty"]("tea 3")
    assert store.get("tea").quantity == 3

    with pytest.raises(ValueError):
        handlers["qty"]("tea")

    handlers["remove"]("tea")
    assert len(store) == 0
    assert "play" not in handlers


def test_playlist_commands(bus, fake_session, monkeypatch):
    monkeypatch.setattr(settings.audio, "playback_enabled", True)
    track_player = MagicMock()
    app = Application(variant="playlist", bus=bus, session=fake_session, track_player=track_player)
    store = app.domain.store
    handlers = app._get_command_handlers()

    track_player.attach.assert_called_once_with(store)

    handlers["play"]("0")
    assert store.is_playing

    handlers["pause"](None)
    assert not store.is_playing

    with pytest.raises(ValueError):
        handlers["remove"](None)


@pytest.mark.asyncio
async def test_stop_closes_track_player(bus, fake_session, monkeypatch):
    monkeypatch.setattr(settings.audio, "playback_enabled", True)
    track_player = MagicMock()
    track_player.close = AsyncMock()
    app = Application(variant="playlist", bus=bus, session=fake_session, track_player=track_player)

    await app.stop()

    track_player.close.assert_awaited_once()
    track_player.attach.return_value.cancel.assert_called_once()


def test_no_playback_skips_track_player(bus, fake_session, monkeypatch):
    monkeypatch.setattr(settings.audio, "playback_enabled", False)
    track_player = MagicMock()

    app = Application(variant="playlist", bus=bus, session=fake_session, track_player=track_player)

    assert app.track_player is None
    track_player.attach.assert_not_called()


@pytest.fixture
def restore_log_level():
    yield
    LoggingManager.setup_logging(settings.logging.level)


def test_log_level_reconfigures_root_logger(bus, fake_session, monkeypatch, restore_log_level):
    monkeypatch.setattr(settings, "debug_mode", False)

    Application(variant="cart", bus=bus, session=fake_session, log_level="ERROR")

    root = logging.getLogger()
    assert root.level == logging.ERROR
    assert all(handler.level == logging.ERROR for handler in root.handlers)


def test_debug_mode_overrides_log_level(bus, fake_session, monkeypatch, restore_log_level):
    monkeypatch.setattr(settings, "debug_mode", False)

    Application(variant="cart", bus=bus, session=fake_session, debug_mode=True, log_level="ERROR")

    assert logging.getLogger().level == logging.DEBUG


def test_main_passes_log_level(monkeypatch):
    app_class = MagicMock()
    app_class.return_value.run = AsyncMock()
    monkeypatch.setattr("voice_control.application.Application", app_class)

    assert main(["--variant", "cart", "--log-level", "ERROR"]) == 0

    _, kwargs = app_class.call_args
    assert kwargs["log_level"] == "ERROR"
    assert kwargs["variant"] == "cart"


@pytest.mark.asyncio
async def test_start_session_failure_is_reported(cart_app, fake_session, capsys):
    fake_session.start.side_effect = NegotiationError("Token endpoint returned HTTP 500")

    assert await cart_app.start_session() is False
    assert "Type /start to try again" in capsys.readouterr().out


@pytest.mark.asyncio
async def test_shutdown_event_stops_application(cart_app, bus, fake_session):
    bus.emit(EventType.SHUTDOWN, {"reason": "test"})
    assert cart_app.shutdown_event.is_set()

    await cart_app.stop()
    fake_session.stop.assert_awaited_once()


def test_parse_arguments():
    args = parse_arguments(["--variant", "cart", "--autostart", "--no-playback"])

    assert args.variant == "cart"
    assert args.autostart is True
    assert args.no_playback is True
    assert args.select_devices is False
