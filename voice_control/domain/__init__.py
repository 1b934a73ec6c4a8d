"""
Domain logic module for the Voice Control Assistant.

This package contains the state and tool definitions of each assistant
variant:
- playlist: tracks, the "now playing" selection and play/pause tools
- cart: line items, quantities, totals and ordering tools

The domain layer is independent of the transport and presentation; the
remote model only reaches it through a command handler.
"""

from voice_control.domain.cart.state import CartItem, CartStore
from voice_control.domain.commands import CommandHandler, narration
from voice_control.domain.playlist.state import PlaylistStore, Track
from voice_control.domain.tools import ToolParameter, ToolRegistry, ToolSpec

__all__ = [
    # Shared
    'CommandHandler',
    'narration',
    'ToolParameter',
    'ToolRegistry',
    'ToolSpec',

    # Playlist domain
    'PlaylistStore',
    'Track',

    # Cart domain
    'CartItem',
    'CartStore',
]
