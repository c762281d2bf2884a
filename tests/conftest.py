"""
Pytest configuration for coin changer tests.

This conftest.py adds the repository root to sys.path so that tests
can import the package without installing it.
"""

import asyncio
import sys
from pathlib import Path

import pytest


# Add the repository root and the tests directory to sys.path for proper imports
for path in (Path(__file__).parent.parent, Path(__file__).parent):
    if str(path) not in sys.path:
        sys.path.insert(0, str(path))

from fakes import FakeTransport, fast_mdb_settings  # noqa: E402
from mdb_changer.event_system import EventPublisher  # noqa: E402
from mdb_changer.infrastructure.settings import (  # noqa: E402
    InventorySettings,
    ServiceSettings,
    Settings,
)


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def event_queue():
    return asyncio.Queue()


@pytest.fixture
def publisher(event_queue):
    return EventPublisher(event_queue)


@pytest.fixture
def mdb_settings():
    return fast_mdb_settings()


@pytest.fixture
def inventory_settings():
    return InventorySettings(tube_capacity=50, security_stock=0, use_fallback_coin_map=True)


@pytest.fixture
def settings(mdb_settings, inventory_settings):
    return Settings(
        mdb=mdb_settings,
        inventory=inventory_settings,
        services=ServiceSettings(forward_to_websocket=False),
    )
