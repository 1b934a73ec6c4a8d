"""
Command handler for the cart tools.
"""

import json
from typing import Any, Dict, List, Optional

from voice_control.config.logging_config import get_logger
from voice_control.domain.cart.state import CartStore
from voice_control.domain.commands import (
    ClientEvent,
    CommandHandler,
    function_call_output,
    narration,
)
from voice_control.utils.error_handling import MalformedFunctionCall

logger = get_logger(__name__)


class CartCommandHandler(CommandHandler):
    """Applies cart tool calls to a ``CartStore``."""

    def __init__(self, store: CartStore):
        self.store = store
        super().__init__()

    def _setup_commands(self) -> None:
        self.commands = {
            "add_item": self.add_item,
            "remove_item": self.remove_item,
            "update_quantity": self.update_quantity,
            "clear_cart": self.clear_cart,
            "get_cart": self.get_cart,
        }

    def add_item(self, args: Dict[str, Any], call_id: Optional[str] = None) -> List[ClientEvent]:
        if args["price"] < 0:
            raise MalformedFunctionCall(
                "Price must not be negative",
                details={"tool": "add_item", "price": args["price"]}
            )

        item = self.store.add(args["id"], args["item_name"], float(args["price"]))
        return [narration(
            f'"{item.name}" was added to the cart. The cart now holds {item.quantity} of it.'
        )]

    def remove_item(self, args: Dict[str, Any], call_id: Optional[str] = None) -> List[ClientEvent]:
        self.store.remove(args["id"])
        return [narration("Item was removed from the cart.")]

    def update_quantity(self, args: Dict[str, Any], call_id: Optional[str] = None) -> List[ClientEvent]:
        quantity = args["quantity"]
        if quantity < 1:
            raise MalformedFunctionCall(
                "Quantity must be at least 1",
                details={"tool": "update_quantity", "quantity": quantity}
            )

        item = self.store.update_quantity(args["id"], quantity)
        if item is None:
            return []
        return [narration(f'Quantity of "{item.name}" was updated to {item.quantity}.')]

    def clear_cart(self, args: Dict[str, Any], call_id: Optional[str] = None) -> List[ClientEvent]:
        self.store.clear()
        return [narration("The cart was cleared.")]

    def get_cart(self, args: Dict[str, Any], call_id: Optional[str] = None) -> List[ClientEvent]:
        # Read-only: the snapshot goes back on the function's return channel, no narration
        if not call_id:
            logger.debug("get_cart called without a call_id; nothing to return")
            return []
        return [function_call_output(call_id, json.dumps(self.store.snapshot()))]
