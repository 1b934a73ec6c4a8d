"""
Cart state for the shopping cart variant.

Line items are unique by id; adding an id that is already in the cart
bumps its quantity instead of inserting a second line.
"""

from dataclasses import asdict, dataclass, replace
from typing import Any, Dict, Optional, Tuple

from voice_control.config.logging_config import get_logger
from voice_control.events.event_interface import EventBus, EventType, event_bus
from voice_control.utils.error_handling import ErrorSeverity, LookupMiss

logger = get_logger(__name__)


@dataclass(frozen=True)
class CartItem:
    """A cart line item."""

    id: str
    name: str
    price: float
    quantity: int = 1

    def __post_init__(self):
        if self.quantity < 1:
            raise ValueError(f"Quantity must be at least 1, got {self.quantity}")

    @property
    def line_total(self) -> float:
        return self.price * self.quantity

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class CartStore:
    """Ordered, id-unique collection of cart line items."""

    def __init__(self, items: Tuple[CartItem, ...] = (), bus: Optional[EventBus] = None):
        self._bus = bus or event_bus
        self._items: Dict[str, CartItem] = {}
        for item in items:
            self._items.setdefault(item.id, item)

    # Read-only views

    def items(self) -> Tuple[CartItem, ...]:
        return tuple(self._items.values())

    def get(self, item_id: str) -> Optional[CartItem]:
        return self._items.get(item_id)

    def __contains__(self, item_id: object) -> bool:
        return item_id in self._items

    def __len__(self) -> int:
        return len(self._items)

    @property
    def total_price(self) -> float:
        return sum(item.line_total for item in self._items.values())

    @property
    def item_count(self) -> int:
        return sum(item.quantity for item in self._items.values())

    def snapshot(self) -> Dict[str, Any]:
        return {
            "items": [item.to_dict() for item in self._items.values()],
            "item_count": self.item_count,
            "total_price": round(self.total_price, 2),
        }

    # Mutations

    def add(self, item_id: str, name: str, price: float) -> CartItem:
        """
        Add one unit of an item.

        An existing line keeps its name and price and gains one unit.

        Returns:
            CartItem: The resulting line item
        """
        existing = self._items.get(item_id)
        if existing is not None:
            item = replace(existing, quantity=existing.quantity + 1)
            logger.info(f"Incremented {item_id} to quantity {item.quantity}")
        else:
            item = CartItem(id=item_id, name=name, price=price)
            logger.info(f"Added {item_id}: {name} at {price}")

        self._items[item_id] = item
        self._changed("add", item_id)
        return item

    def remove(self, item_id: str) -> bool:
        """
        Remove a line item by id.

        Returns:
            bool: True if an item was removed
        """
        if item_id not in self._items:
            LookupMiss(
                f"Cannot remove item {item_id}: not in cart",
                severity=ErrorSeverity.INFO,
                details={"item_id": item_id}
            ).log()
            return False

        del self._items[item_id]
        logger.info(f"Removed item {item_id}")
        self._changed("remove", item_id)
        return True

    def update_quantity(self, item_id: str, quantity: int) -> Optional[CartItem]:
        """
        Set the quantity of an existing line item.

        Returns:
            Optional[CartItem]: The updated item, or None if the id is unknown

        Raises:
            ValueError: If quantity is below 1
        """
        if quantity < 1:
            raise ValueError(f"Quantity must be at least 1, got {quantity}")

        existing = self._items.get(item_id)
        if existing is None:
            LookupMiss(
                f"Cannot update quantity of {item_id}: not in cart",
                details={"item_id": item_id}
            ).log()
            return None

        item = replace(existing, quantity=quantity)
        self._items[item_id] = item
        logger.info(f"Set quantity of {item_id} to {quantity}")
        self._changed("update_quantity", item_id)
        return item

    def clear(self) -> int:
        """
        Empty the cart.

        Returns:
            int: Number of line items removed
        """
        removed = len(self._items)
        self._items.clear()
        logger.info(f"Cleared cart ({removed} items)")
        self._changed("clear", None)
        return removed

    def _changed(self, action: str, item_id: Optional[str]) -> None:
        self._bus.emit(
            EventType.COLLECTION_CHANGED,
            {"domain": "cart", "action": action, "id": item_id}
        )
