"""
Domain modules.

A domain module bundles everything that differs between the assistant
variants: the state store, the tool registry announced to the model, the
command handler applying tool calls, and the text renderer used by the
terminal UI. The session and dispatcher are written once against this
bundle.
"""

from dataclasses import dataclass
from typing import Any, Callable, List, Optional

from voice_control.domain.cart.commands import CartCommandHandler
from voice_control.domain.cart.state import CartStore
from voice_control.domain.cart.view import render_cart
from voice_control.domain.commands import CommandHandler
from voice_control.domain.playlist.commands import PlaylistCommandHandler
from voice_control.domain.playlist.state import DEMO_TRACK, PlaylistStore
from voice_control.domain.playlist.view import render_playlist
from voice_control.domain.tools import ToolRegistry
from voice_control.events.event_interface import EventBus, event_bus
from voice_control.system_instructions import get_assistant_config
from voice_control.utils.error_handling import ConfigError


@dataclass
class DomainModule:
    """The variant-specific half of the assistant."""

    name: str
    title: str
    store: Any
    registry: ToolRegistry
    handler: CommandHandler
    renderer: Callable[[Any], List[str]]

    def render(self) -> List[str]:
        return self.renderer(self.store)


def create_playlist_module(bus: Optional[EventBus] = None) -> DomainModule:
    store = PlaylistStore((DEMO_TRACK,), bus=bus or event_bus)
    return DomainModule(
        name="playlist",
        title="Voice Audio Player Assistant",
        store=store,
        registry=get_assistant_config("playlist"),
        handler=PlaylistCommandHandler(store),
        renderer=render_playlist,
    )


def create_cart_module(bus: Optional[EventBus] = None) -> DomainModule:
    store = CartStore(bus=bus or event_bus)
    return DomainModule(
        name="cart",
        title="Voice Ordering Assistant",
        store=store,
        registry=get_assistant_config("cart"),
        handler=CartCommandHandler(store),
        renderer=render_cart,
    )


def create_domain_module(variant: str, bus: Optional[EventBus] = None) -> DomainModule:
    """
    Build the domain module for a variant.

    Raises:
        ConfigError: If the variant is not known
    """
    factories = {
        "playlist": create_playlist_module,
        "cart": create_cart_module,
    }
    factory = factories.get(variant.lower())
    if factory is None:
        raise ConfigError(
            f"Unknown assistant variant '{variant}'",
            details={"variant": variant, "known": sorted(factories)}
        )
    return factory(bus)
