"""
Tests for the cart domain.

This module tests line item merging, quantity updates, totals and the
order rendering.
"""

import json

import pytest

from voice_control.domain.cart.commands import CartCommandHandler
from voice_control.domain.cart.state import CartItem, CartStore
from voice_control.domain.cart.view import render_cart
from voice_control.domain.modules import create_cart_module, create_domain_module
from voice_control.events.event_interface import EventType
from voice_control.utils.error_handling import ConfigError, MalformedFunctionCall


@pytest.fixture
def store(bus):
    return CartStore(bus=bus)


@pytest.fixture
def changes(bus):
    recorded = []
    bus.on(EventType.COLLECTION_CHANGED, lambda e: recorded.append((e.data["action"], e.data["id"])))
    return recorded


def test_add_merges_by_id(store, changes):
    """Test that re-adding an id bumps its quantity and keeps the first name and price."""
    store.add("tea", "Tea", 2.5)
    item = store.add("tea", "Green Tea", 9.0)

    assert len(store) == 1
    assert item == CartItem(id="tea", name="Tea", price=2.5, quantity=2)
    assert store.total_price == pytest.approx(5.0)
    assert changes == [("add", "tea"), ("add", "tea")]


def test_update_quantity(store):
    store.add("tea", "Tea", 2.5)

    item = store.update_quantity("tea", 3)

    assert item.quantity == 3
    assert store.total_price == pytest.approx(7.5)
    assert store.item_count == 3


def test_update_quantity_edge_cases(store, changes):
    store.add("tea", "Tea", 2.5)

    assert store.update_quantity("coffee", 2) is None
    with pytest.raises(ValueError):
        store.update_quantity("tea", 0)

    assert store.get("tea").quantity == 1
    assert changes == [("add", "tea")]


def test_remove_and_clear(store, changes):
    store.add("a", "Apple", 1.0)
    store.add("b", "Bread", 3.0)

    assert store.remove("a") is True
    assert store.remove("a") is False
    assert store.clear() == 1

    assert len(store) == 0
    assert store.total_price == 0
    assert changes[-2:] == [("remove", "a"), ("clear", None)]


def test_cart_item_rejects_zero_quantity():
    with pytest.raises(ValueError):
        CartItem(id="x", name="X", price=1.0, quantity=0)


def test_snapshot_rounds_total(store):
    store.add("a", "Apple", 0.1)
    store.add("b", "Bread", 0.2)

    snapshot = store.snapshot()

    assert snapshot["total_price"] == 0.3
    assert snapshot["item_count"] == 2
    assert [i["id"] for i in snapshot["items"]] == ["a", "b"]


def test_render_cart(store):
    store.add("tea", "Tea", 2.5)
    store.update_quantity("tea", 3)
    store.add("bun", "Bun", 1.25)

    lines = render_cart(store)

    assert lines == [
        "Your Order",
        "   [tea] Tea x3  $7.50",
        "   [bun] Bun x1  $1.25",
        "Total: $8.75",
    ]


def test_render_empty_cart(store):
    assert render_cart(store) == ["No items in cart yet. Start your order by speaking!"]


def test_negative_price_is_rejected(store):
    handler = CartCommandHandler(store)

    with pytest.raises(MalformedFunctionCall):
        handler.handle("add_item", {"id": "x", "item_name": "X", "price": -1})

    assert len(store) == 0


def test_add_item_narration_mentions_quantity(store):
    handler = CartCommandHandler(store)
    handler.handle("add_item", {"id": "tea", "item_name": "Tea", "price": 2.5})

    events = handler.handle("add_item", {"id": "tea", "item_name": "Tea", "price": 2.5})

    assert events[0]["type"] == "response.create"
    assert "2" in events[0]["response"]["instructions"]


def test_get_cart_needs_call_id(store):
    handler = CartCommandHandler(store)
    store.add("tea", "Tea", 2.5)

    assert handler.handle("get_cart", {}) == []

    events = handler.handle("get_cart", {}, call_id="call_9")
    assert json.loads(events[0]["item"]["output"])["item_count"] == 1


def test_domain_module_factory(bus):
    module = create_domain_module("Cart", bus)

    assert module.name == "cart"
    assert module.title == "Voice Ordering Assistant"
    assert module.render() == render_cart(module.store)
    assert create_cart_module(bus).store is not module.store

    with pytest.raises(ConfigError):
        create_domain_module("karaoke", bus)
