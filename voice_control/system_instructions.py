"""
System instructions for the Realtime API.

This module provides the prompts and function tool definitions announced
to the model for each assistant variant.
"""

from voice_control.domain.tools import ToolRegistry

# Music playlist assistant instructions
PLAYLIST_ASSISTANT = (
    "You are a voice assistant that controls a music playlist. "
    "The user can ask you to add tracks, remove tracks, play a track or pause playback. "
    "Use the provided functions for every change to the playlist; never pretend a change happened. "
    "When adding a track, invent a short unique track_id if the user does not give one, "
    "and use a direct URL to an audio file. "
    "Keep spoken confirmations short and friendly. Always respond in English."
)

# Function tools for the playlist
PLAYLIST_TOOLS = [
    {
        "type": "function",
        "name": "add_track",
        "description": "Add a track to the playlist",
        "parameters": {
            "type": "object",
            "properties": {
                "track_id": {
                    "type": "string",
                    "description": "Unique ID of the track"
                },
                "title": {
                    "type": "string",
                    "description": "Track title"
                },
                "artist": {
                    "type": "string",
                    "description": "Track artist or creator"
                },
                "url": {
                    "type": "string",
                    "description": "URL to stream the track audio from"
                }
            },
            "required": ["track_id", "title", "artist", "url"]
        }
    },
    {
        "type": "function",
        "name": "remove_track",
        "description": "Remove a track from the playlist by its ID",
        "parameters": {
            "type": "object",
            "properties": {
                "track_id": {
                    "type": "string",
                    "description": "Unique ID of the track to remove"
                }
            },
            "required": ["track_id"]
        }
    },
    {
        "type": "function",
        "name": "play_track",
        "description": "Play a specific track or resume the currently selected one",
        "parameters": {
            "type": "object",
            "properties": {
                "track_id": {
                    "type": "string",
                    "description": "Track ID to play (optional; plays the current track if omitted)"
                }
            },
            "required": []
        }
    },
    {
        "type": "function",
        "name": "pause_track",
        "description": "Pause the track that is currently playing",
        "parameters": {
            "type": "object",
            "properties": {},
            "required": []
        }
    }
]

# Shopping cart assistant instructions
CART_ASSISTANT = (
    "You are a voice ordering assistant that manages a shopping cart. "
    "The user can add items, remove items, change quantities, clear the cart "
    "or ask what is in the cart. Use the provided functions for every change; "
    "never pretend a change happened. Give each distinct item a short stable id "
    "and reuse that id when the user orders the same item again. "
    "Prices are in US dollars. Keep spoken confirmations short. Always respond in English."
)

# Function tools for the cart
CART_TOOLS = [
    {
        "type": "function",
        "name": "add_item",
        "description": "Add one unit of an item to the cart",
        "parameters": {
            "type": "object",
            "properties": {
                "id": {
                    "type": "string",
                    "description": "Unique ID of the item"
                },
                "item_name": {
                    "type": "string",
                    "description": "Display name of the item"
                },
                "price": {
                    "type": "number",
                    "description": "Unit price of the item in US dollars"
                }
            },
            "required": ["id", "item_name", "price"]
        }
    },
    {
        "type": "function",
        "name": "remove_item",
        "description": "Remove an item from the cart by its ID",
        "parameters": {
            "type": "object",
            "properties": {
                "id": {
                    "type": "string",
                    "description": "Unique ID of the item to remove"
                }
            },
            "required": ["id"]
        }
    },
    {
        "type": "function",
        "name": "update_quantity",
        "description": "Set the quantity of an item already in the cart",
        "parameters": {
            "type": "object",
            "properties": {
                "id": {
                    "type": "string",
                    "description": "Unique ID of the item"
                },
                "quantity": {
                    "type": "integer",
                    "description": "New quantity, at least 1"
                }
            },
            "required": ["id", "quantity"]
        }
    },
    {
        "type": "function",
        "name": "clear_cart",
        "description": "Remove every item from the cart",
        "parameters": {
            "type": "object",
            "properties": {},
            "required": []
        }
    },
    {
        "type": "function",
        "name": "get_cart",
        "description": "Get the current contents of the cart and the total price",
        "parameters": {
            "type": "object",
            "properties": {},
            "required": []
        }
    }
]

PLAYLIST_REGISTRY = ToolRegistry.from_schemas(PLAYLIST_TOOLS, PLAYLIST_ASSISTANT)
CART_REGISTRY = ToolRegistry.from_schemas(CART_TOOLS, CART_ASSISTANT)


def get_assistant_config(variant: str) -> ToolRegistry:
    """
    Get the tool registry for an assistant variant.

    Args:
        variant: Assistant variant ("playlist" or "cart")

    Returns:
        The variant's registry, carrying its instructions and tools. Unknown
        variants get an empty registry.
    """
    assistant_configs = {
        "playlist": PLAYLIST_REGISTRY,
        "cart": CART_REGISTRY,
    }

    return assistant_configs.get(variant.lower(), ToolRegistry(()))
