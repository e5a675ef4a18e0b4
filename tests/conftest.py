"""pytest configuration for mdns_browser tests."""

from __future__ import annotations

import pytest

from mdns_browser.bus import EventBus

from tests.helpers import FakeSurface


@pytest.fixture
def bus():
    return EventBus(capacity=16)


@pytest.fixture
def surface():
    # 15 rows → 10-row viewport
    return FakeSurface(width=80, height=15)
