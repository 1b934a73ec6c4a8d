"""
Text rendering of the cart for the terminal UI.
"""

from typing import List

from voice_control.domain.cart.state import CartStore


def render_cart(store: CartStore) -> List[str]:
    """Render the order as plain text lines with line totals and a grand total."""
    items = store.items()
    if not items:
        return ["No items in cart yet. Start your order by speaking!"]

    lines = ["Your Order"]
    for item in items:
        lines.append(f"   [{item.id}] {item.name} x{item.quantity}  ${item.line_total:.2f}")

    lines.append(f"Total: ${store.total_price:.2f}")
    return lines
