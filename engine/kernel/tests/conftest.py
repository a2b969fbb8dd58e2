"""
Engine kernel test configuration.

Shared fixtures for the pure kernel tests. Nothing here touches disk or
the network.
"""

import pytest

from engine.kernel.types import ActionBinding, PlaceholderBinding


@pytest.fixture
def shop_data():
    """Aggregated data as the backend hands it to the renderer."""
    return {
        "__meta__": {
            "shop": {"method": "GET", "status": 200, "url": "https://api.example.test/shop"},
        },
        "shop": {
            "title": "Snacks",
            "items": [{"name": "Chips", "price": 2.5}, {"name": "Nuts", "price": 3}],
        },
    }


@pytest.fixture
def title_binding():
    return PlaceholderBinding(placeholder="headline", api_name="shop", json_path="title")


@pytest.fixture
def buy_action():
    return ActionBinding(id="action_1", selector="#buy", api_name="orders", fields=["qty", "note"])
